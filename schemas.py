"""
Database Schemas for the Clothing Store

Each Pydantic model below corresponds to a MongoDB collection.
The collection name is the lowercase class name (e.g., Product -> "product").
"""
from typing import List, Optional, Literal
from pydantic import BaseModel, Field, EmailStr

DEFAULT_COLORS = ["Black", "White", "Gray", "Navy", "Green"]
MAX_IMAGES = 5
DEFAULT_DELIVERY_FEE = 8.0

OrderStatus = Literal["pending", "processing", "completed", "cancelled"]
ORDER_STATUSES = ("pending", "processing", "completed", "cancelled")


class User(BaseModel):
    email: EmailStr = Field(..., description="Unique email address")
    password_hash: str = Field(..., description="BCrypt password hash")
    role: Literal["admin"] = "admin"


class Product(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0, allow_inf_nan=False)
    category: str = Field(..., min_length=1)
    imageUrls: List[str] = Field(default_factory=list, max_length=MAX_IMAGES, description="Data URLs or paths")
    colors: List[str] = Field(default_factory=lambda: list(DEFAULT_COLORS))
    inStock: bool = True
    stockQuantity: int = Field(0, ge=0)


class OrderItem(BaseModel):
    product: str = Field(..., description="Reference to product _id")
    productName: str = Field(..., description="Product name at order time")
    quantity: int = Field(..., ge=1)
    size: Optional[str] = None
    color: Optional[str] = None
    price: float = Field(..., ge=0, allow_inf_nan=False, description="Unit price at order time")


class Order(BaseModel):
    customerName: str = Field(..., min_length=1)
    customerPhone: str = Field(..., min_length=1)
    customerAddress: str = Field(..., min_length=1)
    items: List[OrderItem] = Field(..., min_length=1)
    totalAmount: float = Field(..., ge=0, allow_inf_nan=False)
    deliveryFee: float = Field(DEFAULT_DELIVERY_FEE, ge=0, allow_inf_nan=False)
    status: OrderStatus = "pending"
