from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool
from pymongo.database import Database

import orders
import restaurants
from auth import get_current_user_id
from config import get_config
from database import get_db
from errors import AppError
from log import get_logger
from payments import StripeGateway, get_gateway
from schemas import CheckoutSessionRequest, MenuItem, MenuItemUpdate, RestaurantCreate

logger = get_logger(__name__)

app = FastAPI(title="Food Ordering API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ----------------------------
# Error rendering
# ----------------------------
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{location}: {first.get('msg')}" if location else str(first.get("msg", "Invalid request"))
    return JSONResponse(status_code=400, content={"success": False, "message": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})


# ----------------------------
# Root & health
# ----------------------------
@app.get("/")
def read_root():
    return {"message": "Food Ordering Backend Running"}


@app.get("/test")
def test_database():
    config = get_config()
    response = {
        "backend": "Running",
        "database": "Not Available",
        "database_url": "Set" if config.database_url else "Not Set",
        "database_name": "Set" if config.database_name else "Not Set",
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        db = get_db()
        response["database"] = "Available"
        response["connection_status"] = "Connected"
        response["collections"] = db.list_collection_names()
        response["database"] = "Connected & Working"
    except Exception as e:
        logger.warning(f"Database check failed: {e}")
        response["database"] = f"Error: {str(e)[:80]}"
    return response


# ----------------------------
# Restaurants & menus
# ----------------------------
@app.post("/api/v1/restaurant", status_code=201)
def create_restaurant(payload: RestaurantCreate, user_id: str = Depends(get_current_user_id),
                      db: Database = Depends(get_db)):
    restaurant = restaurants.create_restaurant(db, user_id, payload)
    return {"success": True, "restaurant": restaurant}


@app.get("/api/v1/restaurant/search")
def search_restaurants(q: str = "", cuisines: Optional[List[str]] = Query(None), db: Database = Depends(get_db)):
    return {"success": True, "data": restaurants.search_restaurants(db, q, cuisines)}


@app.get("/api/v1/restaurant/{restaurant_id}")
def get_restaurant(restaurant_id: str, db: Database = Depends(get_db)):
    return {"success": True, "restaurant": restaurants.get_restaurant(db, restaurant_id)}


@app.get("/api/v1/restaurant/{restaurant_id}/menu")
def list_menu(restaurant_id: str, db: Database = Depends(get_db)):
    return {"success": True, "menus": restaurants.list_menu(db, restaurant_id)}


@app.post("/api/v1/restaurant/{restaurant_id}/menu", status_code=201)
def add_menu_item(restaurant_id: str, item: MenuItem, user_id: str = Depends(get_current_user_id),
                  db: Database = Depends(get_db)):
    menu = restaurants.add_menu_item(db, user_id, restaurant_id, item)
    return {"success": True, "menu": menu}


@app.patch("/api/v1/menu/{item_id}")
def update_menu_item(item_id: str, patch: MenuItemUpdate, user_id: str = Depends(get_current_user_id),
                     db: Database = Depends(get_db)):
    menu = restaurants.update_menu_item(db, user_id, item_id, patch)
    return {"success": True, "menu": menu}


# ----------------------------
# Orders (Cart -> Checkout -> Webhook confirmation)
# ----------------------------
@app.get("/api/v1/order")
def get_orders(user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)):
    return {"success": True, "orders": orders.list_orders(db, user_id)}


@app.post("/api/v1/order/checkout/create-checkout-session")
def create_checkout_session(payload: CheckoutSessionRequest, user_id: str = Depends(get_current_user_id),
                            db: Database = Depends(get_db), gateway: StripeGateway = Depends(get_gateway)):
    logger.info(f"Checkout requested by {user_id} for restaurant {payload.restaurant_id}")
    session = orders.create_checkout_session(db, gateway, user_id, payload)
    return {"session": session.model_dump()}


@app.post("/api/v1/order/webhook")
async def stripe_webhook(request: Request, db: Database = Depends(get_db),
                         gateway: StripeGateway = Depends(get_gateway)):
    payload = await request.body()
    event = gateway.construct_event(payload, request.headers.get("stripe-signature"))
    await run_in_threadpool(orders.handle_gateway_event, db, event)
    return Response(status_code=200)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_config().port)
