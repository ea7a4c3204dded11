import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import FastAPI, HTTPException, Depends, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pymongo.errors import DuplicateKeyError, PyMongoError

import database
from database import get_db, create_document, serialize_doc
from schemas import User as UserSchema, Product as ProductSchema, CartLine
from auth import (
    create_token,
    create_verification_token,
    custom_user_id,
    decode_verification_token,
    get_current_user,
    get_optional_user,
    hash_password,
    require_admin,
    verify_password,
)
from catalog import CATEGORIES, find_product, format_product_name, generate_product_id, is_category
from filters import active_facets, apply_filters, extract_filters, sort_products
from keywords import build_product_keywords, reindex_search_keywords
from popularity import POPULAR_PRODUCTS_LIMIT, get_popular_products, recompute_popular_products, track_interaction
from profiles import list_favorites, nickname_available, reserve_nickname, toggle_favorite, update_profile
from search import search_products
from variants import find_color_variants
import cart as carts
import reviews as product_reviews

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

SEARCH_RESULT_LIMIT = int(os.getenv("SEARCH_RESULT_LIMIT", 10))

# App init
app = FastAPI(title="Storefront API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def public_user(user: dict) -> Dict[str, Any]:
    return {
        "id": str(user["_id"]),
        "email": user.get("email"),
        "nickname": user.get("nickname"),
        "display_name": user.get("display_name"),
        "avatar": user.get("avatar"),
        "custom_id": user.get("custom_id"),
        "is_admin": user.get("is_admin", False),
        "email_verified": user.get("email_verified", False),
    }


def require_category(category: str) -> str:
    if not is_category(category):
        raise HTTPException(status_code=404, detail=f"Unknown category: {category}")
    return category


# Request models
class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    nickname: Optional[str] = Field(None, min_length=3)
    display_name: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class VerifyRequest(BaseModel):
    token: str


class ProfileUpdateRequest(BaseModel):
    nickname: Optional[str] = Field(None, min_length=3)
    display_name: Optional[str] = None
    avatar: Optional[str] = None


class ProductCreateRequest(BaseModel):
    model_config = ConfigDict(extra="allow", protected_namespaces=())

    name: Optional[str] = None
    brand: str
    model: str
    model_number: Optional[str] = None
    color: Optional[str] = None
    memory: Optional[str] = None
    price: float = Field(..., ge=0)
    description: str
    image: str = ""
    images: List[str] = []


class ProductUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="allow", protected_namespaces=())

    name: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    model_number: Optional[str] = None
    color: Optional[str] = None
    memory: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    image: Optional[str] = None
    images: Optional[List[str]] = None


class ReviewRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    text: str


class ReplyRequest(BaseModel):
    text: str = Field(..., min_length=1)


class CartAddRequest(BaseModel):
    session_id: str
    product_id: str
    quantity: int = Field(1, ge=1)


class CartRemoveRequest(BaseModel):
    session_id: str
    product_id: str


class CheckoutRequest(BaseModel):
    session_id: Optional[str] = None
    items: Optional[List[CartLine]] = None
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None
    address: Optional[str] = None


# Routes
@app.get("/")
def root():
    return {"message": "Storefront API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        if database.db is not None:
            response["database"] = "✅ Available"
            response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
            response["database_name"] = database.db.name
            response["connection_status"] = "Connected"
            try:
                collections = database.db.list_collection_names()
                response["collections"] = collections[:10]
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
        else:
            response["database"] = "⚠️  Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"
    return response


# Auth
@app.post("/api/auth/signup")
def signup(req: SignupRequest, db=Depends(get_db)):
    existing = db["user"].find_one({"email": req.email})
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")
    if req.nickname and not nickname_available(db, req.nickname):
        raise HTTPException(status_code=409, detail="This nickname is already taken")

    user = UserSchema(
        email=req.email,
        password_hash=hash_password(req.password),
        nickname=req.nickname,
        display_name=req.display_name or req.nickname,
        custom_id=custom_user_id(req.email),
    )
    user_id = create_document("user", user, database=db)
    created = db["user"].find_one({"_id": ObjectId(user_id)})
    if req.nickname and not reserve_nickname(db, req.nickname, user_id):
        db["user"].update_one({"_id": created["_id"]}, {"$set": {"nickname": None}})
        raise HTTPException(status_code=409, detail="This nickname is already taken")

    # Delivering the verification token by email is left to the caller
    return {
        "token": create_token(created),
        "verification_token": create_verification_token(created),
        "user": public_user(created),
    }


@app.post("/api/auth/login")
def login(req: LoginRequest, db=Depends(get_db)):
    user = db["user"].find_one({"email": req.email})
    if not user or not verify_password(req.password, user.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return {"token": create_token(user), "user": public_user(user)}


@app.post("/api/auth/verify")
def verify_email(req: VerifyRequest, db=Depends(get_db)):
    user_id = decode_verification_token(req.token)
    if not user_id or not ObjectId.is_valid(user_id):
        raise HTTPException(status_code=400, detail="Invalid verification token")
    result = db["user"].update_one({"_id": ObjectId(user_id)}, {"$set": {"email_verified": True}})
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="User not found")
    return {"verified": True}


@app.get("/api/auth/me")
def me(user=Depends(get_current_user)):
    return public_user(user)


@app.patch("/api/auth/me")
def update_me(req: ProfileUpdateRequest, user=Depends(get_current_user), db=Depends(get_db)):
    try:
        updated = update_profile(db, user, nickname=req.nickname, display_name=req.display_name, avatar=req.avatar)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return public_user(updated)


# Catalog
@app.get("/api/categories")
def list_categories(db=Depends(get_db)):
    return [{"name": c, "count": db[c].count_documents({})} for c in CATEGORIES]


@app.get("/api/products/{category}")
def list_products(
    request: Request,
    category: str,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    sort: Optional[str] = None,
    db=Depends(get_db),
):
    require_category(category)
    products = list(db[category].find({}))

    active = active_facets(products, request.query_params.multi_items())
    products = apply_filters(products, active, min_price, max_price)

    if sort:
        products = sort_products(products, sort)
    return [serialize_doc({**p, "category": category}) for p in products]


@app.get("/api/products/{category}/filters")
def product_filters(category: str, db=Depends(get_db)):
    require_category(category)
    return extract_filters(db[category].find({}))


@app.get("/api/products/{category}/{product_id}")
def get_product(category: str, product_id: str, db=Depends(get_db)):
    require_category(category)
    p = db[category].find_one({"_id": product_id})
    if not p:
        raise HTTPException(status_code=404, detail="Product not found")
    try:
        track_interaction(db, product_id, click=True, category=category)
    except PyMongoError:
        logger.exception("Failed to record view of %s/%s", category, product_id)
    return serialize_doc({**p, "category": category})


@app.get("/api/products/{category}/{product_id}/variants")
def product_variants(category: str, product_id: str, db=Depends(get_db)):
    require_category(category)
    p = db[category].find_one({"_id": product_id})
    if not p:
        raise HTTPException(status_code=404, detail="Product not found")
    return find_color_variants(db, category, p)


@app.post("/api/products/{category}")
def create_product(category: str, req: ProductCreateRequest, admin=Depends(require_admin), db=Depends(get_db)):
    require_category(category)
    data = req.model_dump()
    if not data.get("name"):
        data["name"] = format_product_name(category, data)
    if not data["name"]:
        raise HTTPException(status_code=400, detail="Product name is required")

    product_id = generate_product_id(category, data)
    if not product_id:
        raise HTTPException(status_code=400, detail="Cannot derive a product id from the given attributes")
    if db[category].find_one({"_id": product_id}):
        raise HTTPException(status_code=409, detail=f"Product {product_id} already exists")

    data["search_keywords"] = build_product_keywords(data, category)
    prod = ProductSchema(**data)
    try:
        _id = create_document(category, {"_id": product_id, **prod.model_dump()}, database=db)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail=f"Product {product_id} already exists")
    logger.info("Created product %s in %s", _id, category)
    return {"id": _id}


@app.put("/api/products/{category}/{product_id}")
def update_product(category: str, product_id: str, req: ProductUpdateRequest,
                   admin=Depends(require_admin), db=Depends(get_db)):
    require_category(category)
    updates = {k: v for k, v in req.model_dump().items() if v is not None}
    updates.pop("_id", None)
    updates.pop("id", None)
    if not updates:
        raise HTTPException(status_code=400, detail="No updates provided")
    existing = db[category].find_one({"_id": product_id})
    if not existing:
        raise HTTPException(status_code=404, detail="Product not found")

    merged = {**existing, **updates}
    updates["search_keywords"] = build_product_keywords(merged, category)
    updates["updated_at"] = datetime.now(timezone.utc)
    db[category].update_one({"_id": product_id}, {"$set": updates})
    return {"updated": True}


@app.delete("/api/products/{category}/{product_id}")
def delete_product(category: str, product_id: str, admin=Depends(require_admin), db=Depends(get_db)):
    require_category(category)
    result = db[category].delete_one({"_id": product_id})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"deleted": True}


# Search & popularity
@app.get("/api/search")
def search(q: str = "", limit: int = Query(SEARCH_RESULT_LIMIT, ge=1, le=100), db=Depends(get_db)):
    return search_products(db, q, limit=limit)


@app.get("/api/popular")
def popular(limit: int = Query(10, ge=1, le=100), db=Depends(get_db)):
    return [serialize_doc(p) for p in get_popular_products(db, limit)]


# Reviews
@app.get("/api/reviews/{product_id}")
def get_reviews(product_id: str, db=Depends(get_db)):
    return [serialize_doc(r) for r in product_reviews.list_reviews(db, product_id)]


@app.post("/api/reviews/{product_id}")
def post_review(product_id: str, req: ReviewRequest, user=Depends(get_current_user), db=Depends(get_db)):
    if len(req.text.strip()) < 3:
        raise HTTPException(status_code=400, detail="Review text must be at least 3 characters.")
    if not find_product(db, product_id):
        raise HTTPException(status_code=404, detail="Product not found")
    review = product_reviews.submit_review(db, product_id, user, req.rating, req.text)
    return serialize_doc(review)


@app.post("/api/reviews/{product_id}/{review_id}/replies")
def post_reply(product_id: str, review_id: str, req: ReplyRequest,
               user=Depends(get_current_user), db=Depends(get_db)):
    if not req.text.strip():
        raise HTTPException(status_code=400, detail="Reply text is required")
    reply = product_reviews.add_reply(db, product_id, review_id, user, req.text)
    if reply is None:
        raise HTTPException(status_code=404, detail="Review not found")
    return reply


@app.post("/api/reviews/{product_id}/{review_id}/helpful")
def post_helpful(product_id: str, review_id: str, user=Depends(get_current_user), db=Depends(get_db)):
    try:
        helpful = product_reviews.mark_helpful(db, product_id, review_id, user)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if helpful is None:
        raise HTTPException(status_code=404, detail="Review not found")
    return {"helpful": helpful}


# Favorites
@app.get("/api/favorites")
def get_favorites(user=Depends(get_current_user), db=Depends(get_db)):
    return [serialize_doc(p) for p in list_favorites(db, user)]


@app.post("/api/favorites/{product_id}")
def post_favorite(product_id: str, user=Depends(get_current_user), db=Depends(get_db)):
    state = toggle_favorite(db, user, product_id)
    if state is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"product_id": product_id, "is_favorite": state}


# Cart
@app.get("/api/cart")
def get_cart(session_id: str = Query(...), db=Depends(get_db)):
    return {"items": carts.get_cart(db, session_id)}


@app.post("/api/cart/add")
def add_to_cart(req: CartAddRequest, db=Depends(get_db)):
    if not find_product(db, req.product_id):
        raise HTTPException(status_code=404, detail="Product not found")
    items = carts.add_to_cart(db, req.session_id, req.product_id, req.quantity)
    try:
        track_interaction(db, req.product_id, cart=True)
    except PyMongoError:
        logger.exception("Failed to record cart add of %s", req.product_id)
    return {"items": items}


@app.post("/api/cart/update")
def update_cart(req: CartAddRequest, db=Depends(get_db)):
    return {"items": carts.update_quantity(db, req.session_id, req.product_id, req.quantity)}


@app.post("/api/cart/remove")
def remove_from_cart(req: CartRemoveRequest, db=Depends(get_db)):
    return {"items": carts.remove_from_cart(db, req.session_id, req.product_id)}


# Orders
@app.post("/api/checkout")
def checkout(req: CheckoutRequest, user=Depends(get_optional_user), db=Depends(get_db)):
    from_session = req.items is None
    if not from_session:
        lines = [i.model_dump() for i in req.items]
    elif req.session_id:
        lines = carts.get_cart(db, req.session_id)
    else:
        raise HTTPException(status_code=400, detail="Provide items or a session_id")

    try:
        order = carts.checkout(db, lines, req.name, req.phone, req.email, req.address, user=user)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=404, detail=f"Product not found: {e.args[0]}")

    # explicit items leave the session cart alone
    if from_session:
        carts.clear_cart(db, req.session_id)
    return serialize_doc(order)


@app.get("/api/orders")
def get_orders(user=Depends(get_current_user), db=Depends(get_db)):
    return [serialize_doc(o) for o in carts.list_orders(db, str(user["_id"]))]


# Admin
@app.get("/api/admin/stats")
def admin_stats(admin=Depends(require_admin), db=Depends(get_db)):
    users = db["user"].count_documents({})
    orders = db["order"].count_documents({})
    products = sum(db[c].count_documents({}) for c in CATEGORIES)
    return {"users": users, "orders": orders, "products": products}


@app.post("/api/admin/popular/recompute")
def admin_recompute_popular(limit: int = Query(POPULAR_PRODUCTS_LIMIT, ge=1), admin=Depends(require_admin),
                            db=Depends(get_db)):
    return {"updated": recompute_popular_products(db, limit)}


@app.post("/api/admin/keywords/reindex")
def admin_reindex_keywords(admin=Depends(require_admin), db=Depends(get_db)):
    return {"updated": reindex_search_keywords(db)}


@app.post("/api/admin/ratings/backfill")
def admin_backfill_ratings(admin=Depends(require_admin), db=Depends(get_db)):
    return {"updated": product_reviews.backfill_ratings(db)}


# Seed demo products on startup
DEMO_PRODUCTS: Dict[str, List[dict]] = {
    "mobile": [
        {
            "brand": "Apple",
            "model": "iPhone 15 Pro",
            "memory": "256GB",
            "color": "Black Titanium",
            "price": 1199,
            "description": "6.1-inch Super Retina XDR, A17 Pro chip",
            "image": "https://images.unsplash.com/photo-1695048133142-1a20484d2569?q=80&w=1200&auto=format&fit=crop",
        },
        {
            "brand": "Samsung",
            "model": "Galaxy S23",
            "memory": "256GB",
            "color": "Phantom Black",
            "price": 649,
            "description": "Dynamic AMOLED, Snapdragon 8 Gen 2",
            "image": "https://images.unsplash.com/photo-1670272543330-01a57a97dc97?q=80&w=1200&auto=format&fit=crop",
        },
    ],
    "laptops": [
        {
            "brand": "Apple",
            "model": "MacBook Air",
            "processor": "Apple M2",
            "ram": "8GB",
            "storage_type": "256GB SSD",
            "color": "Midnight",
            "price": 1099,
            "description": "13.6-inch Liquid Retina, M2 chip",
            "image": "https://images.unsplash.com/photo-1517336714731-489689fd1ca8?q=80&w=1200&auto=format&fit=crop",
        },
    ],
    "gaming": [
        {
            "brand": "Logitech",
            "model": "G Pro X Superlight",
            "device_type": "Mouse",
            "connectivity": "Wireless",
            "color": "Black",
            "price": 159,
            "description": "Lightweight wireless gaming mouse",
            "image": "https://images.unsplash.com/photo-1527814050087-3793815479db?q=80&w=1200&auto=format&fit=crop",
        },
    ],
    "tv": [
        {
            "brand": "Samsung",
            "model": "QN90B",
            "diagonal": "55",
            "resolution": "4K",
            "display_type": "QLED",
            "price": 1299,
            "description": "Neo QLED with quantum matrix technology",
            "image": "https://images.unsplash.com/photo-1593359677879-a4bb92f829d1?q=80&w=1200&auto=format&fit=crop",
        },
    ],
    "audio": [
        {
            "brand": "Sony",
            "model": "WH-1000XM5",
            "subtype": "headphones",
            "connectivity": "Bluetooth",
            "color": "Black",
            "price": 349,
            "description": "Noise-cancelling headphones",
            "image": "https://images.unsplash.com/photo-1518441902110-9d8f13635159?q=80&w=1200&auto=format&fit=crop",
        },
    ],
}


def seed_products(db) -> int:
    inserted = 0
    for category, products in DEMO_PRODUCTS.items():
        if db[category].count_documents({}) > 0:
            continue
        for prod in products:
            data = {**prod, "name": format_product_name(category, prod)}
            data["search_keywords"] = build_product_keywords(data, category)
            doc = ProductSchema(**data).model_dump()
            create_document(category, {"_id": generate_product_id(category, data), **doc}, database=db)
            inserted += 1
    return inserted


@app.on_event("startup")
def seed_products_if_empty():
    if database.db is None:
        return
    try:
        inserted = seed_products(database.db)
        if inserted:
            logger.info("Seeded %d demo products", inserted)
    except PyMongoError:
        logger.exception("Seeding demo products failed")


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
