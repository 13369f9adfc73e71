import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import blogs
import cart
import catalog
import orders
from auth import create_access_token, get_current_user, hash_password, require_role, verify_password
from config import API_TITLE, API_VERSION, configure_logging, get_allowed_origins
from database import get_db, sanitize
from errors import AppError, UploadError, ValidationError
from schemas import (
    BlogRequest,
    CartItemRequest,
    CartQuantityRequest,
    FilterRequest,
    LoginRequest,
    ReviewRequest,
    SignupRequest,
    TokenResponse,
    User as UserSchema,
)
from uploads import ImageHost, get_image_host

configure_logging()
logger = logging.getLogger(__name__)

# App and CORS
app = FastAPI(title=API_TITLE, version=API_VERSION)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

can_manage_products = require_role("admin", "distributor")


# Error responses: always {"error": <message>}

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        loc = ".".join(str(part) for part in errors[0]["loc"] if part != "body")
        message = f"{loc}: {errors[0]['msg']}" if loc else errors[0]["msg"]
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(PyMongoError)
async def storage_error_handler(request: Request, exc: PyMongoError):
    logger.exception(f"{request.method} {request.url.path} storage failure", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Server Error"})


# Helpers

def product_form(
    name: Optional[str] = Form(None),
    brand: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    quantity: Optional[str] = Form(None),
) -> dict:
    return {
        "name": name,
        "brand": brand,
        "description": description,
        "price": price,
        "category": category,
        "quantity": quantity,
    }


def read_upload(file: Optional[UploadFile]) -> Optional[bytes]:
    if file is None:
        return None
    return file.file.read() or None


# User Routes
@app.post("/api/users", response_model=TokenResponse, status_code=201)
def signup(payload: SignupRequest, db: Database = Depends(get_db)):
    if db["user"].find_one({"email": payload.email}):
        raise HTTPException(status_code=409, detail="Email already registered")
    user_doc = UserSchema(
        username=payload.username,
        email=payload.email,
        password_hash=hash_password(payload.password),
        role=payload.role,
    ).model_dump()
    res = db["user"].insert_one(user_doc)
    user_doc["_id"] = res.inserted_id
    user_doc.pop("password_hash")
    token = create_access_token({"sub": str(res.inserted_id)})
    logger.info(f"User {res.inserted_id} signed up as {payload.role}")
    return TokenResponse(access_token=token, user=sanitize(user_doc))


@app.post("/api/users/auth", response_model=TokenResponse)
def login(payload: LoginRequest, db: Database = Depends(get_db)):
    user = db["user"].find_one({"email": payload.email})
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    token = create_access_token({"sub": str(user["_id"])})
    user.pop("password_hash", None)
    return TokenResponse(access_token=token, user=sanitize(user))


@app.get("/api/users/profile")
def profile(current_user=Depends(get_current_user)):
    return current_user


# Category Routes
@app.get("/api/category/categories")
def list_categories(db: Database = Depends(get_db)):
    return catalog.list_categories(db)


@app.get("/api/category/{category_id}")
def read_category(category_id: str, db: Database = Depends(get_db)):
    return catalog.get_category(db, category_id)


# Product Routes
# Fixed paths are registered before /api/products/{product_id}
@app.get("/api/products")
def fetch_products(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    db: Database = Depends(get_db),
):
    return catalog.search_products(db, search, page)


@app.post("/api/products", status_code=201)
def add_product(
    form: dict = Depends(product_form),
    image: Optional[UploadFile] = File(None),
    additionalImages: Optional[List[UploadFile]] = File(None),
    db: Database = Depends(get_db),
    host: ImageHost = Depends(get_image_host),
    current_user=Depends(can_manage_products),
):
    fields = catalog.parse_product_fields(form)
    extra = [data for data in (read_upload(f) for f in additionalImages or []) if data]
    return catalog.create_product(db, host, fields, read_upload(image), extra, current_user["id"])


@app.get("/api/products/all")
def fetch_all_products(db: Database = Depends(get_db)):
    return catalog.list_all(db)


@app.get("/api/products/top")
def fetch_top_products(db: Database = Depends(get_db)):
    return catalog.top_rated(db)


@app.get("/api/products/new")
def fetch_new_products(db: Database = Depends(get_db)):
    return catalog.newest(db)


@app.post("/api/products/filter")
def filter_products(payload: FilterRequest, db: Database = Depends(get_db)):
    return catalog.filter_products(db, payload.checked, payload.radio)


@app.get("/api/products/distributor")
def fetch_distributor_products(db: Database = Depends(get_db), current_user=Depends(get_current_user)):
    return catalog.by_distributor(db, current_user["id"])


@app.get("/api/products/{product_id}")
def fetch_product(product_id: str, db: Database = Depends(get_db)):
    return catalog.get_by_id(db, product_id)


@app.put("/api/products/{product_id}")
def update_product(
    product_id: str,
    form: dict = Depends(product_form),
    image: Optional[UploadFile] = File(None),
    db: Database = Depends(get_db),
    host: ImageHost = Depends(get_image_host),
    current_user=Depends(can_manage_products),
):
    fields = catalog.parse_product_fields(form)
    return catalog.update_product(db, host, product_id, fields, read_upload(image))


@app.delete("/api/products/{product_id}")
def remove_product(product_id: str, db: Database = Depends(get_db), current_user=Depends(can_manage_products)):
    return catalog.delete_product(db, product_id)


@app.post("/api/products/{product_id}/reviews", status_code=201)
def create_product_review(
    product_id: str,
    payload: ReviewRequest,
    db: Database = Depends(get_db),
    current_user=Depends(get_current_user),
):
    catalog.add_review(db, product_id, current_user, payload.rating, payload.comment)
    return {"message": "Review added"}


@app.get("/api/products/{product_id}/reviews")
def fetch_product_reviews(product_id: str, db: Database = Depends(get_db)):
    return catalog.get_reviews(db, product_id)


@app.get("/api/products/{product_id}/similar")
def fetch_similar_products(product_id: str, db: Database = Depends(get_db)):
    return catalog.similar(db, product_id)


# Blog Routes
@app.post("/api/blogs/create", status_code=201)
def create_blog(payload: BlogRequest, db: Database = Depends(get_db), current_user=Depends(get_current_user)):
    return blogs.create_blog(db, payload, current_user["id"])


@app.get("/api/blogs/get-blogs")
def get_blogs(db: Database = Depends(get_db)):
    return blogs.list_blogs(db)


@app.get("/api/blogs/{blog_id}")
def get_blog(blog_id: str, db: Database = Depends(get_db)):
    return blogs.get_blog(db, blog_id)


# Cart Routes
@app.get("/api/cart")
def get_cart(db: Database = Depends(get_db), current_user=Depends(get_current_user)):
    return cart.get_cart(db, current_user["id"])


@app.post("/api/cart")
def add_to_cart(payload: CartItemRequest, db: Database = Depends(get_db), current_user=Depends(get_current_user)):
    return cart.add_item(db, current_user["id"], payload.product, payload.quantity)


@app.put("/api/cart/{product_id}")
def update_cart_item(
    product_id: str,
    payload: CartQuantityRequest,
    db: Database = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return cart.update_item(db, current_user["id"], product_id, payload.quantity)


@app.delete("/api/cart/{product_id}")
def remove_cart_item(product_id: str, db: Database = Depends(get_db), current_user=Depends(get_current_user)):
    return cart.remove_item(db, current_user["id"], product_id)


# Order Routes
@app.post("/api/orders", status_code=201)
def place_order(db: Database = Depends(get_db), current_user=Depends(get_current_user)):
    return orders.place_order(db, current_user["id"])


@app.get("/api/orders/mine")
def my_orders(db: Database = Depends(get_db), current_user=Depends(get_current_user)):
    return orders.list_orders(db, current_user["id"])


@app.get("/api/orders/{order_id}")
def get_order(order_id: str, db: Database = Depends(get_db), current_user=Depends(get_current_user)):
    return orders.get_order(db, order_id, current_user)


# Upload Route
@app.post("/api/upload")
def upload_image(
    image: Optional[UploadFile] = File(None),
    host: ImageHost = Depends(get_image_host),
    current_user=Depends(get_current_user),
):
    data = read_upload(image)
    if not data:
        raise ValidationError("No image file provided")
    url = host.upload(data)
    if not url:
        raise UploadError("Failed to upload image")
    return {"message": "Image uploaded successfully", "image": url}


# Utility endpoints
@app.get("/")
def root():
    return {"message": "API is running!"}


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    try:
        collections = db.list_collection_names()
        return {"backend": "ok", "database": "ok", "collections": collections}
    except PyMongoError as e:
        return {"backend": "ok", "database": f"error: {e}"}
