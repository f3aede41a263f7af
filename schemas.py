"""
Database Schemas for the Food Ordering backend

Each Pydantic model represents a collection in MongoDB. The collection name
is the lowercase of the class name (e.g., MenuItem -> "menuitem").
Field aliases follow the JSON the web client sends and receives.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class MenuItem(CamelModel):
    """
    Dish offered by a restaurant
    Collection name: "menuitem"
    """
    name: str = Field(..., min_length=1, description="Dish name")
    description: Optional[str] = Field(None, description="Short description")
    price: float = Field(..., ge=0, description="Unit price in major currency units")
    image: Optional[str] = Field(None, description="Image URL")


class Restaurant(CamelModel):
    """
    Restaurant with its menu item references
    Collection name: "restaurant"
    """
    user: str = Field(..., description="Owner user id")
    restaurant_name: str = Field(..., alias="restaurantName", min_length=1)
    city: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    delivery_time: int = Field(..., alias="deliveryTime", ge=0, description="Minutes")
    cuisines: List[str] = Field(default_factory=list)
    image_url: Optional[str] = Field(None, alias="imageUrl")
    menus: List[str] = Field(default_factory=list, description="Menu item ids")


class CartLine(CamelModel):
    """Item the client wants to buy. Only menu_id and quantity are trusted."""
    menu_id: str = Field(..., alias="menuId", min_length=1)
    name: str
    image: Optional[str] = None
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)


class DeliveryDetails(CamelModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)


class Order(CamelModel):
    """
    Customer order awaiting or past payment.
    Collection name: "order"
    """
    restaurant: str = Field(..., description="Restaurant id")
    user: str = Field(..., description="Purchaser user id")
    delivery_details: DeliveryDetails = Field(..., alias="deliveryDetails")
    cart_items: List[CartLine] = Field(..., alias="cartItems")
    total_amount: Optional[int] = Field(None, alias="totalAmount", description="Settled amount, minor units")
    status: Literal["pending", "confirmed"] = Field("pending")


# ----------------------------
# Request bodies
# ----------------------------
class CheckoutSessionRequest(CamelModel):
    cart_items: List[CartLine] = Field(..., alias="cartItems", min_length=1)
    delivery_details: DeliveryDetails = Field(..., alias="deliveryDetails")
    restaurant_id: str = Field(..., alias="restaurantId", min_length=1)


class RestaurantCreate(CamelModel):
    restaurant_name: str = Field(..., alias="restaurantName", min_length=1)
    city: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    delivery_time: int = Field(..., alias="deliveryTime", ge=0)
    cuisines: List[str] = Field(default_factory=list)
    image_url: Optional[str] = Field(None, alias="imageUrl")


class MenuItemUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    image: Optional[str] = None

    @field_validator("name", "price")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        return v
