"""
Database Schemas for the ShopSphere store

MongoDB collections are defined below using Pydantic models. Each class name is
converted to lowercase for the collection name (Product -> "product").

We will use these collections:
- user: shoppers, distributors and admins
- category: product categories, created on first use
- product: catalog entries with their reviews embedded
- cart: one shopping cart per user, holding product ids and quantities
- order: placed orders with a snapshot of each item
- blog: blog posts

References between documents (product.category, product.distributor,
review.user, blog.author) are stored as string ids.

The second half of the module holds the request shapes accepted at the HTTP
boundary.
"""

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

Role = Literal["admin", "distributor", "customer"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password_hash: str = Field(..., description="BCrypt hash of password")
    role: Role = Field("customer")
    createdAt: datetime = Field(default_factory=utcnow)


class Category(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)


class Review(BaseModel):
    user: str = Field(..., description="Reference to user _id")
    name: str = Field("", description="Reviewer display name at submission time")
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1)
    createdAt: datetime = Field(default_factory=utcnow)


class Product(BaseModel):
    name: str = Field(..., min_length=1)
    brand: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=0)
    category: str = Field(..., description="Reference to category _id")
    distributor: str = Field(..., description="Reference to the creating user _id")
    image: str
    additionalImages: List[str] = Field(default_factory=list)
    reviews: List[Review] = Field(default_factory=list)
    numReviews: int = Field(0, ge=0)
    rating: float = Field(0, ge=0, le=5)
    createdAt: datetime = Field(default_factory=utcnow)
    updatedAt: datetime = Field(default_factory=utcnow)


class CartItem(BaseModel):
    product: str = Field(..., description="Reference to product _id")
    quantity: int = Field(..., ge=1)


class Cart(BaseModel):
    user: str = Field(..., description="Reference to user _id")
    items: List[CartItem] = Field(default_factory=list)
    updatedAt: datetime = Field(default_factory=utcnow)


class OrderItem(BaseModel):
    product: str
    name: str
    image: str
    price: float = Field(..., ge=0, description="Unit price when the order was placed")
    quantity: int = Field(..., ge=1)


class Order(BaseModel):
    user: str = Field(..., description="Reference to user _id")
    items: List[OrderItem] = Field(..., min_length=1)
    totalPrice: float = Field(..., ge=0)
    status: Literal["pending", "paid", "shipped", "delivered", "cancelled"] = "pending"
    createdAt: datetime = Field(default_factory=utcnow)


class Blog(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    image: Optional[str] = None
    author: str = Field(..., description="Reference to user _id")
    createdAt: datetime = Field(default_factory=utcnow)


# Request shapes

class ProductFields(BaseModel):
    """Editable product fields, sent as multipart form values."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    brand: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    category: str = Field(..., min_length=1, description="Category name or id")
    quantity: int = Field(..., ge=0)


class ReviewRequest(BaseModel):
    # Both optional here so the review rules report them with their own messages
    rating: Optional[int] = None
    comment: Optional[str] = None


class FilterRequest(BaseModel):
    checked: List[str] = Field(default_factory=list, description="Category ids or names")
    radio: List[float] = Field(default_factory=list, description="[min, max] price, inclusive")


class SignupRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str
    role: Literal["distributor", "customer"] = "customer"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: dict


class BlogRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    image: Optional[str] = None


class CartItemRequest(BaseModel):
    product: str = Field(..., min_length=1, description="Product id")
    quantity: int = Field(1, ge=1)


class CartQuantityRequest(BaseModel):
    quantity: int = Field(..., ge=1)
