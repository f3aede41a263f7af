"""
Order and payment reconciliation.

A checkout builds a pending order from the cart, prices it from the
restaurant's own menu, and opens a hosted Stripe session. The order is stored
only once the session exists. Stripe later posts ``checkout.session.completed``
and the matching order is confirmed with the settled amount.

Known gap: if the process dies after the session is created but before the
order is inserted, the session's metadata points at an order that was never
saved and its completion event is answered with 404.
"""

import json
from typing import Any, Dict, List, Tuple

from bson import ObjectId
from pymongo.database import Database

from config import get_config
from database import create_document, get_documents, serialize_doc, to_object_id
from errors import GatewayError, InvalidInput, InvalidState, NotFound
from log import get_logger
from payments import CHECKOUT_COMPLETED, CheckoutSession, GatewayEvent, StripeGateway
from schemas import CartLine, CheckoutSessionRequest, Order

logger = get_logger(__name__)

PENDING = "pending"
CONFIRMED = "confirmed"


def load_restaurant_menu(db: Database, restaurant_id: str) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
    """Return the restaurant document and its menu item documents."""
    oid = to_object_id(restaurant_id)
    restaurant = db["restaurant"].find_one({"_id": oid}) if oid else None
    if not restaurant:
        logger.warning(f"Restaurant not found for ID: {restaurant_id}")
        raise NotFound("Restaurant not found.")
    menu_ids = [mid for mid in (to_object_id(m) for m in restaurant.get("menus", [])) if mid]
    menu_items = get_documents(db, "menuitem", {"_id": {"$in": menu_ids}}) if menu_ids else []
    return restaurant, menu_items


def create_line_items(cart_items: List[CartLine], menu_items: List[Dict[str, Any]],
                      currency: str) -> List[Dict[str, Any]]:
    """Price each cart line from the matching menu item, never from the client's copy."""
    by_id = {str(item["_id"]): item for item in menu_items}
    line_items = []
    for cart_item in cart_items:
        menu_item = by_id.get(cart_item.menu_id)
        if menu_item is None:
            logger.warning(f"Menu item not found for ID {cart_item.menu_id}")
            raise InvalidInput(f"Menu item id {cart_item.menu_id} not found")
        line_items.append({
            "price_data": {
                "currency": currency,
                "product_data": {
                    "name": menu_item["name"],
                    "images": [menu_item["image"]] if menu_item.get("image") else [],
                },
                "unit_amount": int(round(float(menu_item["price"]) * 100)),
            },
            "quantity": cart_item.quantity,
        })
    return line_items


def create_checkout_session(db: Database, gateway: StripeGateway, user_id: str,
                            request: CheckoutSessionRequest) -> CheckoutSession:
    restaurant, menu_items = load_restaurant_menu(db, request.restaurant_id)
    if not menu_items:
        logger.warning(f"No menu items found for restaurant: {request.restaurant_id}")
        raise InvalidState("No menu items found for the restaurant")

    order_id = ObjectId()
    order = Order(
        restaurant=str(restaurant["_id"]),
        user=user_id,
        delivery_details=request.delivery_details,
        cart_items=request.cart_items,
        status=PENDING,
    )

    config = get_config()
    line_items = create_line_items(request.cart_items, menu_items, config.currency)
    logger.debug(f"Line items for order {order_id}: {line_items}")

    images = [item["price_data"]["product_data"]["images"][0]
              for item in line_items if item["price_data"]["product_data"]["images"]]
    session = gateway.create_checkout_session(
        line_items=line_items,
        success_url=f"{config.frontend_url}/order/status",
        cancel_url=f"{config.frontend_url}/cart",
        allowed_countries=config.allowed_countries,
        metadata={"orderId": str(order_id), "images": json.dumps(images)},
    )
    if not session.url:
        logger.error(f"Checkout session {session.id} has no URL, order {order_id} not saved")
        raise GatewayError("Error while creating session")

    doc = order.model_dump(by_alias=True)
    doc["_id"] = order_id
    create_document(db, "order", doc)
    logger.info(f"Saved pending order {order_id} for session {session.id}")
    return session


def handle_gateway_event(db: Database, event: GatewayEvent) -> None:
    """Apply a verified gateway event. Only completed checkouts change state.

    Redelivering the same completion leaves the confirmed order untouched.
    """
    if event.type != CHECKOUT_COMPLETED:
        logger.debug(f"Ignoring gateway event {event.id} of type {event.type}")
        return

    order_id = event.metadata.get("orderId")
    oid = to_object_id(order_id) if order_id else None
    order = db["order"].find_one({"_id": oid}) if oid else None
    if not order:
        logger.error(f"Order not found for session: {order_id}")
        raise NotFound("Order not found")

    if order.get("status") == CONFIRMED:
        logger.info(f"Order {order_id} already confirmed, event {event.id} ignored")
        return

    update: Dict[str, Any] = {"status": CONFIRMED}
    if event.amount_total is not None:
        update["totalAmount"] = event.amount_total
    db["order"].update_one({"_id": oid, "status": {"$ne": CONFIRMED}}, {"$set": update})
    logger.info(f"Order {order_id} confirmed with amount {event.amount_total}")


def list_orders(db: Database, user_id: str) -> List[Dict[str, Any]]:
    """Every order owned by ``user_id``, with purchaser and restaurant expanded."""
    users: Dict[str, Any] = {}
    restaurants: Dict[str, Any] = {}
    orders = []
    for order in get_documents(db, "order", {"user": user_id}):
        ref = order.get("user")
        if ref not in users:
            user = db["user"].find_one({"_id": to_object_id(ref)})
            if user:
                user = {k: v for k, v in user.items() if k != "password"}
            users[ref] = user
        ref = order.get("restaurant")
        if ref not in restaurants:
            restaurants[ref] = db["restaurant"].find_one({"_id": to_object_id(ref)})
        order["user"] = users[order.get("user")]
        order["restaurant"] = restaurants[ref]
        orders.append(serialize_doc(order))
    return orders
