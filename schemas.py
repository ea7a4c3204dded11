"""
Database Schemas for the storefront

Each Pydantic model maps to a MongoDB collection.

Collections:
- mobile, laptops, gaming, tv, audio (one per product category)
- user
- nickname
- review
- product_stats
- popular_product
- cart
- order
"""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, EmailStr


class User(BaseModel):
    """
    Users collection schema
    Collection name: "user"
    """
    email: EmailStr = Field(..., description="Email address")
    password_hash: str = Field(..., description="BCrypt password hash")
    is_admin: bool = Field(False, description="Admin user flag")
    email_verified: bool = Field(False, description="Set once the verification token is consumed")
    nickname: Optional[str] = Field(None, description="Unique public nickname")
    display_name: Optional[str] = Field(None, description="Name shown on reviews")
    avatar: Optional[str] = Field(None, description="Avatar as URL or base64 data URI")
    custom_id: str = Field(..., description="Human readable id derived from the email prefix")
    favorites: List[str] = Field(default_factory=list, description="Favorited product ids")
    helpful_reviews: List[str] = Field(default_factory=list, description="Review ids marked helpful")


class Product(BaseModel):
    """
    Product schema shared by every category collection.
    Category specific attributes ride along as extra fields.
    """
    model_config = ConfigDict(extra="allow", protected_namespaces=())

    name: str = Field("", description="Display name")
    brand: str = Field("", description="Brand")
    model: str = Field("", description="Model")
    model_number: Optional[str] = Field(None, description="Manufacturer model number")
    color: Optional[str] = None
    memory: Optional[str] = None
    price: float = Field(..., ge=0, description="Price")
    description: str = Field("", description="Product description")
    image: str = Field("", description="Primary image URL or data URI")
    images: List[str] = Field(default_factory=list, description="Additional image URLs")
    search_keywords: List[str] = Field(default_factory=list)
    click_count: int = 0
    favorite_count: int = 0
    cart_count: int = 0
    popularity_score: int = 0
    rating: float = Field(0, ge=0, le=5, description="Average rating")
    review_count: int = Field(0, ge=0)


class Reply(BaseModel):
    id: str
    user_id: str
    user_name: str
    text: str
    date: str
    is_admin: bool = False


class Review(BaseModel):
    """
    Reviews collection schema
    Collection name: "review"
    """
    product_id: str
    user_id: str
    user_name: str = "Anonymous"
    user_avatar: str = ""
    rating: int = Field(..., ge=1, le=5)
    text: str
    date: str
    helpful: int = 0
    replies: List[Reply] = Field(default_factory=list)


class CartLine(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class Cart(BaseModel):
    """
    Shopping cart schema (per client session)
    Collection name: "cart"
    """
    session_id: str = Field(..., description="Client session identifier")
    items: List[CartLine] = Field(default_factory=list)


class OrderItem(BaseModel):
    product_id: str
    name: str
    price: float
    quantity: int = Field(1, ge=1)
    image: Optional[str] = None
    category: Optional[str] = None


class Order(BaseModel):
    """
    Orders collection schema
    Collection name: "order"
    """
    order_number: str
    user_id: Optional[str] = None
    items: List[OrderItem]
    name: str
    phone: str
    email: Optional[str] = None
    address: Optional[str] = None
    total: float
    status: str = Field("placed", description="placed | shipped | delivered | cancelled")
    date: str
