"""Restaurant and menu management."""

import re
from typing import Any, Dict, List, Optional

from pymongo.database import Database

from database import create_document, get_documents, serialize_doc, to_object_id
from errors import Forbidden, InvalidInput, NotFound
from log import get_logger
from schemas import MenuItem, MenuItemUpdate, Restaurant, RestaurantCreate

logger = get_logger(__name__)


def _get_restaurant(db: Database, restaurant_id: str) -> Dict[str, Any]:
    oid = to_object_id(restaurant_id)
    doc = db["restaurant"].find_one({"_id": oid}) if oid else None
    if not doc:
        raise NotFound("Restaurant not found")
    return doc


def _require_owner(restaurant: Dict[str, Any], user_id: str) -> None:
    if restaurant.get("user") != user_id:
        logger.warning(f"User {user_id} is not the owner of restaurant {restaurant['_id']}")
        raise Forbidden("Not the owner of this restaurant")


def create_restaurant(db: Database, user_id: str, payload: RestaurantCreate) -> Dict[str, Any]:
    if db["restaurant"].find_one({"user": user_id}):
        raise InvalidInput("Restaurant already exists for this user")
    restaurant = Restaurant(user=user_id, **payload.model_dump())
    restaurant_id = create_document(db, "restaurant", restaurant)
    logger.info(f"Created restaurant {restaurant_id} for user {user_id}")
    return serialize_doc(db["restaurant"].find_one({"_id": to_object_id(restaurant_id)}))


def get_restaurant(db: Database, restaurant_id: str) -> Dict[str, Any]:
    """Restaurant with its menu item documents in place of their ids."""
    doc = _get_restaurant(db, restaurant_id)
    doc["menus"] = list_menu(db, restaurant_id)
    return serialize_doc(doc)


def search_restaurants(db: Database, query: str = "", cuisines: Optional[List[str]] = None) -> List[Dict[str, Any]]:
    filt: Dict[str, Any] = {}
    if query:
        pattern = re.escape(query)
        filt["$or"] = [
            {"restaurantName": {"$regex": pattern, "$options": "i"}},
            {"city": {"$regex": pattern, "$options": "i"}},
            {"country": {"$regex": pattern, "$options": "i"}},
        ]
    if cuisines:
        filt["cuisines"] = {"$in": cuisines}
    return [serialize_doc(d) for d in get_documents(db, "restaurant", filt)]


def list_menu(db: Database, restaurant_id: str) -> List[Dict[str, Any]]:
    restaurant = _get_restaurant(db, restaurant_id)
    ids = [oid for oid in (to_object_id(m) for m in restaurant.get("menus", [])) if oid]
    if not ids:
        return []
    return [serialize_doc(d) for d in get_documents(db, "menuitem", {"_id": {"$in": ids}})]


def add_menu_item(db: Database, user_id: str, restaurant_id: str, item: MenuItem) -> Dict[str, Any]:
    restaurant = _get_restaurant(db, restaurant_id)
    _require_owner(restaurant, user_id)
    item_id = create_document(db, "menuitem", item)
    db["restaurant"].update_one({"_id": restaurant["_id"]}, {"$push": {"menus": item_id}})
    logger.info(f"Added menu item {item_id} to restaurant {restaurant_id}")
    return serialize_doc(db["menuitem"].find_one({"_id": to_object_id(item_id)}))


def update_menu_item(db: Database, user_id: str, item_id: str, patch: MenuItemUpdate) -> Dict[str, Any]:
    oid = to_object_id(item_id)
    item = db["menuitem"].find_one({"_id": oid}) if oid else None
    if not item:
        raise NotFound("Menu item not found")
    restaurant = db["restaurant"].find_one({"menus": item_id})
    if not restaurant:
        raise NotFound("Restaurant not found")
    _require_owner(restaurant, user_id)
    update_data = patch.model_dump(exclude_unset=True)
    if update_data:
        db["menuitem"].update_one({"_id": oid}, {"$set": update_data})
    return serialize_doc(db["menuitem"].find_one({"_id": oid}))
