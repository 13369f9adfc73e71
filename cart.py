"""Shopping carts, one per user."""
from typing import Any, Dict, List

from pymongo.database import Database

from catalog import find_product
from database import to_obj_id
from errors import NotFoundError, ValidationError
from schemas import Cart, CartItem, utcnow


def cart_items(db: Database, user_id: str) -> List[Dict[str, Any]]:
    cart = db["cart"].find_one({"user": str(user_id)})
    return cart["items"] if cart else []


def _save(db: Database, user_id: str, items: List[Dict[str, Any]]) -> None:
    doc = Cart(user=str(user_id), items=items, updatedAt=utcnow()).model_dump()
    db["cart"].update_one({"user": doc["user"]}, {"$set": doc}, upsert=True)


def _check_stock(product: Dict[str, Any], quantity: int) -> None:
    if quantity > product.get("quantity", 0):
        raise ValidationError(f"Only {product.get('quantity', 0)} of {product['name']} in stock")


def get_cart(db: Database, user_id: str) -> Dict[str, Any]:
    """Cart lines with current product name, price and image; deleted products are left out."""
    items = cart_items(db, user_id)
    oids = [oid for oid in (to_obj_id(i["product"]) for i in items) if oid is not None]
    products = {
        str(p["_id"]): p
        for p in db["product"].find({"_id": {"$in": oids}}, {"name": 1, "price": 1, "image": 1})
    } if oids else {}

    lines = []
    for item in items:
        product = products.get(item["product"])
        if product is None:
            continue
        lines.append({
            "product": item["product"],
            "name": product["name"],
            "price": product["price"],
            "image": product["image"],
            "quantity": item["quantity"],
        })
    return {
        "user": str(user_id),
        "items": lines,
        "totalItems": sum(line["quantity"] for line in lines),
        "subtotal": round(sum(line["price"] * line["quantity"] for line in lines), 2),
    }


def add_item(db: Database, user_id: str, product_id: str, quantity: int = 1) -> Dict[str, Any]:
    """Add a product to the cart; adding one that is already there raises its quantity."""
    product = find_product(db, product_id, {"name": 1, "quantity": 1})
    product_id = str(product["_id"])

    items = cart_items(db, user_id)
    for item in items:
        if item["product"] == product_id:
            item["quantity"] += quantity
            break
    else:
        items.append(CartItem(product=product_id, quantity=quantity).model_dump())

    _check_stock(product, next(i["quantity"] for i in items if i["product"] == product_id))
    _save(db, user_id, items)
    return get_cart(db, user_id)


def update_item(db: Database, user_id: str, product_id: str, quantity: int) -> Dict[str, Any]:
    items = cart_items(db, user_id)
    item = next((i for i in items if i["product"] == product_id), None)
    if item is None:
        raise NotFoundError("Item not in cart")
    _check_stock(find_product(db, product_id, {"name": 1, "quantity": 1}), quantity)
    item["quantity"] = quantity
    _save(db, user_id, items)
    return get_cart(db, user_id)


def remove_item(db: Database, user_id: str, product_id: str) -> Dict[str, Any]:
    items = cart_items(db, user_id)
    remaining = [i for i in items if i["product"] != product_id]
    if len(remaining) == len(items):
        raise NotFoundError("Item not in cart")
    _save(db, user_id, remaining)
    return get_cart(db, user_id)


def clear_cart(db: Database, user_id: str) -> None:
    db["cart"].delete_one({"user": str(user_id)})
