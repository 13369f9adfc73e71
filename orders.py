"""
Orders

An order is placed from the user's cart. Each item keeps a snapshot of the
product's name, image and price at that moment, and the total is computed from
the stored product prices, never from client input.

Stock is checked, then decremented per item with $inc after the order is
written; the sequence is not atomic across documents.
"""
import logging
from typing import Any, Dict, List, Mapping

from pymongo.database import Database

import cart
from database import sanitize, to_obj_id
from errors import NotFoundError, ValidationError
from schemas import Order, OrderItem

logger = logging.getLogger(__name__)


def place_order(db: Database, user_id: str) -> Dict[str, Any]:
    items = cart.cart_items(db, user_id)
    if not items:
        raise ValidationError("Cart is empty")

    oids = [oid for oid in (to_obj_id(i["product"]) for i in items) if oid is not None]
    products = {str(p["_id"]): p for p in db["product"].find({"_id": {"$in": oids}})}

    order_items = []
    for item in items:
        product = products.get(item["product"])
        if product is None:
            raise ValidationError("A product in the cart is no longer available")
        if item["quantity"] > product.get("quantity", 0):
            raise ValidationError(f"Only {product.get('quantity', 0)} of {product['name']} in stock")
        order_items.append(OrderItem(
            product=item["product"],
            name=product["name"],
            image=product["image"],
            price=product["price"],
            quantity=item["quantity"],
        ))

    total = round(sum(i.price * i.quantity for i in order_items), 2)
    doc = Order(user=str(user_id), items=order_items, totalPrice=total).model_dump()
    res = db["order"].insert_one(doc)
    doc["_id"] = res.inserted_id

    for item in order_items:
        db["product"].update_one({"_id": to_obj_id(item.product)}, {"$inc": {"quantity": -item.quantity}})
    cart.clear_cart(db, user_id)

    logger.info(f"Order {res.inserted_id} placed by {user_id} for {total}")
    return sanitize(doc)


def list_orders(db: Database, user_id: str) -> List[Dict[str, Any]]:
    return [sanitize(o) for o in db["order"].find({"user": str(user_id)}).sort("createdAt", -1)]


def get_order(db: Database, order_id: str, user: Mapping[str, Any]) -> Dict[str, Any]:
    """One order; only its owner or an admin can see it."""
    oid = to_obj_id(order_id)
    order = db["order"].find_one({"_id": oid}) if oid is not None else None
    if not order or (order["user"] != str(user["id"]) and user.get("role") != "admin"):
        raise NotFoundError("Order not found")
    return sanitize(order)
