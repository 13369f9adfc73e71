"""
Product catalog

Categories, products and their embedded reviews. Every function takes the
database handle first and returns sanitized, JSON-ready documents.

Review aggregation is a plain read-modify-write on the product document: two
reviews submitted for the same product at the same moment can overwrite each
other's numReviews/rating update.
"""
import logging
import math
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pydantic import ValidationError as PydanticValidationError
from pymongo import ReturnDocument
from pymongo.database import Database

from database import sanitize, to_obj_id
from errors import DuplicateError, NotFoundError, UploadError, ValidationError
from schemas import Product, ProductFields, Review, utcnow
from uploads import ImageHost

logger = logging.getLogger(__name__)

PAGE_SIZE = 6
LIST_ALL_LIMIT = 12
TOP_LIMIT = 4
NEW_LIMIT = 5
SIMILAR_LIMIT = 4
SIMILAR_FIELDS = {"name": 1, "price": 1, "image": 1, "rating": 1, "numReviews": 1, "category": 1}

REQUIRED_FIELDS_MESSAGE = (
    "All fields (name, brand, description, price, category, quantity, and main image) are required."
)


# Categories

def resolve_category(db: Database, name: str) -> str:
    """Return the id of the category called `name`, creating it if needed."""
    category = db["category"].find_one({"name": name})
    if category:
        return str(category["_id"])
    res = db["category"].insert_one({"name": name})
    logger.info(f"Created category {name!r} ({res.inserted_id})")
    return str(res.inserted_id)


def _category_ref(db: Database, value: str) -> str:
    # Forms send either an existing category id or a category name
    oid = to_obj_id(value)
    if oid is not None and db["category"].find_one({"_id": oid}, {"_id": 1}):
        return str(oid)
    return resolve_category(db, value)


def list_categories(db: Database) -> List[Dict[str, Any]]:
    return [sanitize(c) for c in db["category"].find({}).sort("name", 1)]


def get_category(db: Database, category_id: str) -> Dict[str, Any]:
    oid = to_obj_id(category_id)
    category = db["category"].find_one({"_id": oid}) if oid is not None else None
    if not category:
        raise NotFoundError("Category not found")
    return sanitize(category)


def _populate_categories(db: Database, products: List[Dict[str, Any]], name_only: bool = False) -> List[Dict[str, Any]]:
    """Replace each product's category id with the category document (None if dangling)."""
    oids = {to_obj_id(p.get("category")) for p in products}
    oids.discard(None)
    projection = {"name": 1} if name_only else None
    found = {str(c["_id"]): c for c in db["category"].find({"_id": {"$in": list(oids)}}, projection)}
    for p in products:
        p["category"] = found.get(str(p.get("category")))
    return products


# Products

def parse_product_fields(raw: Mapping[str, Any]) -> ProductFields:
    """Validate submitted product fields, dropping absent (None) values first."""
    values = {key: value for key, value in raw.items() if value is not None}
    try:
        return ProductFields.model_validate(values)
    except PydanticValidationError as exc:
        missing = [
            str(err["loc"][0]) for err in exc.errors()
            if err["type"] in ("missing", "string_too_short") or err.get("input") == ""
        ]
        if missing:
            raise ValidationError(REQUIRED_FIELDS_MESSAGE)
        invalid = ", ".join(str(err["loc"][0]) for err in exc.errors())
        raise ValidationError(f"Invalid product fields: {invalid}")


def find_product(db: Database, product_id: str, projection: dict = None) -> Dict[str, Any]:
    oid = to_obj_id(product_id)
    product = db["product"].find_one({"_id": oid}, projection) if oid is not None else None
    if not product:
        raise NotFoundError("Product not found")
    return product


def create_product(
    db: Database,
    host: ImageHost,
    fields: ProductFields,
    main_image: Optional[bytes],
    additional_images: Sequence[bytes],
    distributor_id: str,
) -> Dict[str, Any]:
    if not main_image:
        raise ValidationError(REQUIRED_FIELDS_MESSAGE)

    image_url = host.upload(main_image)
    if not image_url:
        raise UploadError("Failed to upload main image")

    additional_urls = []
    for index, data in enumerate(additional_images):
        url = host.upload(data)
        if url:
            additional_urls.append(url)
        else:
            logger.warning(f"Dropping additional image #{index} for {fields.name!r}: upload failed")

    category_id = _category_ref(db, fields.category)

    doc = Product(
        **fields.model_dump(exclude={"category"}),
        category=category_id,
        distributor=distributor_id,
        image=image_url,
        additionalImages=additional_urls,
    ).model_dump()
    res = db["product"].insert_one(doc)
    doc["_id"] = res.inserted_id
    logger.info(f"Product {res.inserted_id} created by distributor {distributor_id}")
    return sanitize(doc)


def update_product(
    db: Database,
    host: ImageHost,
    product_id: str,
    fields: ProductFields,
    new_image: Optional[bytes] = None,
) -> Dict[str, Any]:
    product = find_product(db, product_id, {"_id": 1})

    changes = fields.model_dump()
    if new_image:
        image_url = host.upload(new_image)
        if not image_url:
            raise UploadError("Failed to upload image")
        changes["image"] = image_url
    changes["category"] = _category_ref(db, fields.category)
    changes["updatedAt"] = utcnow()

    updated = db["product"].find_one_and_update(
        {"_id": product["_id"]},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise NotFoundError("Product not found")
    return sanitize(updated)


def delete_product(db: Database, product_id: str) -> Optional[Dict[str, Any]]:
    """Delete a product; returns the removed document, or None if there was none."""
    oid = to_obj_id(product_id)
    if oid is None:
        return None
    removed = db["product"].find_one_and_delete({"_id": oid})
    if removed:
        logger.info(f"Product {oid} deleted")
    return sanitize(removed) if removed else None


# Reviews

def aggregate_rating(reviews: Iterable[Mapping[str, Any]]) -> Tuple[int, float]:
    """Return (numReviews, mean rating); the mean is 0 when there are no reviews."""
    ratings = [r["rating"] for r in reviews]
    if not ratings:
        return 0, 0
    return len(ratings), sum(ratings) / len(ratings)


def add_review(db: Database, product_id: str, user: Mapping[str, Any],
               rating: Optional[int], comment: Optional[str]) -> Dict[str, Any]:
    product = find_product(db, product_id)

    if not comment or not comment.strip():
        raise ValidationError("Comment cannot be empty")
    if rating is None or isinstance(rating, bool) or not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5")

    reviews = product.get("reviews", [])
    if any(str(r["user"]) == str(user["id"]) for r in reviews):
        raise DuplicateError("Product already reviewed")

    review = Review(user=str(user["id"]), name=user.get("username", ""), rating=rating, comment=comment)
    reviews = reviews + [review.model_dump()]
    num_reviews, average = aggregate_rating(reviews)

    changes = {"reviews": reviews, "numReviews": num_reviews, "rating": average, "updatedAt": utcnow()}
    db["product"].update_one({"_id": product["_id"]}, {"$set": changes})
    product.update(changes)
    return sanitize(product)


def get_reviews(db: Database, product_id: str) -> List[Dict[str, Any]]:
    """Reviews of a product with each reviewer resolved to {id, username}."""
    product = find_product(db, product_id, {"reviews": 1})
    reviews = product.get("reviews", [])
    oids = [oid for oid in (to_obj_id(r["user"]) for r in reviews) if oid is not None]
    users = {str(u["_id"]): sanitize(u) for u in db["user"].find({"_id": {"$in": oids}}, {"username": 1})} if oids else {}
    result = []
    for r in reviews:
        item = sanitize(r)
        item["user"] = users.get(str(r["user"]))
        result.append(item)
    return result


# Queries

def search_products(db: Database, keyword: Optional[str] = None, page: int = 1,
                    page_size: int = PAGE_SIZE) -> Dict[str, Any]:
    query = {"name": {"$regex": re.escape(keyword), "$options": "i"}} if keyword else {}
    page = max(page, 1)
    count = db["product"].count_documents(query)
    pages = math.ceil(count / page_size)
    cursor = db["product"].find(query).sort("_id", 1).skip((page - 1) * page_size).limit(page_size)
    return {
        "products": [sanitize(p) for p in cursor],
        "page": page,
        "pages": pages,
        "hasMore": page < pages,
    }


def list_all(db: Database, limit: int = LIST_ALL_LIMIT) -> List[Dict[str, Any]]:
    products = list(db["product"].find({}).sort("createdAt", -1).limit(limit))
    return sanitize(_populate_categories(db, products))


def top_rated(db: Database, limit: int = TOP_LIMIT) -> List[Dict[str, Any]]:
    return [sanitize(p) for p in db["product"].find({}).sort("rating", -1).limit(limit)]


def newest(db: Database, limit: int = NEW_LIMIT) -> List[Dict[str, Any]]:
    return [sanitize(p) for p in db["product"].find({}).sort("_id", -1).limit(limit)]


def filter_products(db: Database, categories: Sequence[str] = (),
                    price_range: Sequence[float] = ()) -> List[Dict[str, Any]]:
    """Products in any of `categories` (ids or names) priced within [min, max]."""
    query: Dict[str, Any] = {}
    if categories:
        oids = [oid for oid in (to_obj_id(c) for c in categories) if oid is not None]
        matched = db["category"].find(
            {"$or": [{"_id": {"$in": oids}}, {"name": {"$in": list(categories)}}]},
            {"_id": 1},
        )
        query["category"] = {"$in": [str(c["_id"]) for c in matched]}
    if price_range:
        if len(price_range) != 2:
            raise ValidationError("Price range must be [min, max]")
        low, high = price_range
        query["price"] = {"$gte": low, "$lte": high}
    return [sanitize(p) for p in db["product"].find(query)]


def by_distributor(db: Database, distributor_id: str) -> List[Dict[str, Any]]:
    products = list(db["product"].find({"distributor": str(distributor_id)}).sort("createdAt", -1))
    return sanitize(_populate_categories(db, products, name_only=True))


def similar(db: Database, product_id: str, limit: int = SIMILAR_LIMIT) -> List[Dict[str, Any]]:
    product = find_product(db, product_id, {"category": 1})
    products = list(
        db["product"]
        .find({"category": product.get("category"), "_id": {"$ne": product["_id"]}}, SIMILAR_FIELDS)
        .limit(limit)
    )
    return sanitize(_populate_categories(db, products, name_only=True))


def get_by_id(db: Database, product_id: str) -> Dict[str, Any]:
    product = find_product(db, product_id)
    return sanitize(_populate_categories(db, [product], name_only=True)[0])
