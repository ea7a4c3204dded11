import os
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends, Header, HTTPException
from jose import jwt, JWTError
from passlib.context import CryptContext

from database import get_db

# Security/JWT
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALG = "HS256"
TOKEN_TTL = timedelta(days=7)
VERIFY_TTL = timedelta(days=2)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

_CUSTOM_ID_STRIP = re.compile(r"[^a-z0-9-_]")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash or "")


def custom_user_id(email: str) -> str:
    """Readable user id: the email prefix, lowercased, with anything outside [a-z0-9-_] removed."""
    return _CUSTOM_ID_STRIP.sub("", email.split("@")[0].lower())


def create_token(user: dict) -> str:
    payload = {
        "sub": str(user["_id"]),
        "email": user.get("email"),
        "is_admin": user.get("is_admin", False),
        "exp": datetime.now(timezone.utc) + TOKEN_TTL,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)


def create_verification_token(user: dict) -> str:
    payload = {
        "sub": str(user["_id"]),
        "purpose": "verify_email",
        "exp": datetime.now(timezone.utc) + VERIFY_TTL,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)


def decode_verification_token(token: str) -> Optional[str]:
    """Return the user id carried by a verification token, or None if it is invalid."""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except JWTError:
        return None
    if payload.get("purpose") != "verify_email":
        return None
    return payload.get("sub")


def _user_from_header(authorization: str, db) -> dict:
    token = authorization.replace("Bearer ", "").strip()
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
        if payload.get("purpose"):
            raise HTTPException(status_code=401, detail="Invalid token")
        user = db["user"].find_one({"_id": ObjectId(payload.get("sub"))})
    except (JWTError, InvalidId, TypeError):
        raise HTTPException(status_code=401, detail="Invalid token")
    if not user:
        raise HTTPException(status_code=401, detail="Invalid token user")
    return user


def get_current_user(authorization: Optional[str] = Header(None), db=Depends(get_db)):
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    return _user_from_header(authorization, db)


def get_optional_user(authorization: Optional[str] = Header(None), db=Depends(get_db)):
    """Like get_current_user, but guests get None instead of a 401."""
    if not authorization:
        return None
    return _user_from_header(authorization, db)


def require_admin(user=Depends(get_current_user)):
    if not user.get("is_admin"):
        raise HTTPException(status_code=403, detail="Admin only")
    return user
