"""
Accounts and authentication: password hashing, JWT access tokens, the
bearer-token dependency used by protected routes, and the /api/auth routes.
"""
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt  # PyJWT
from argon2 import PasswordHasher as Argon2Hasher
from argon2.exceptions import InvalidHashError, VerificationError
from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.hash import bcrypt as bcrypt_hasher
from pydantic import BaseModel, EmailStr, Field, field_validator
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from config import settings
from database import USERS, create_document, get_db, to_object_id, utcnow
from errors import AuthenticationError, ConflictError
from schemas import BIO_MAX_LENGTH, User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

# -------------------------------------------------------------------
# Auth/JWT utilities
# -------------------------------------------------------------------
JWT_ALGORITHM = "HS256"
security = HTTPBearer(auto_error=False)
argon2_hasher = Argon2Hasher()

USERNAME_RE = re.compile(r"^[A-Za-z0-9_]{3,30}$")
PASSWORD_MIN_LENGTH = 6


def create_jwt(payload: dict, minutes: Optional[int] = None) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=minutes or settings.JWT_EXPIRE_MIN)
    to_encode = {**payload, "iat": int(now.timestamp()), "exp": int(exp.timestamp())}
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_jwt(token: str) -> dict:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired", code="TOKEN_EXPIRED")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Token is not valid", code="TOKEN_INVALID")


def hash_password(password: str, algo: str = "bcrypt") -> str:
    if algo == "argon2":
        return argon2_hasher.hash(password)
    return bcrypt_hasher.hash(password)


def verify_password(password: str, pwd_hash: str, algo: str = "bcrypt") -> bool:
    if algo == "argon2":
        try:
            return argon2_hasher.verify(pwd_hash, password)
        except (VerificationError, InvalidHashError):
            return False
    try:
        return bcrypt_hasher.verify(password, pwd_hash)
    except ValueError:
        return False


def serialize_user(user: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(user["_id"]),
        "username": user.get("username"),
        "email": user.get("email"),
        "avatar": user.get("avatar", ""),
        "bio": user.get("bio", ""),
        "created_at": user.get("created_at"),
    }


def issue_token(user: Dict[str, Any]) -> str:
    return create_jwt({"sub": str(user["_id"]), "username": user.get("username")})


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    """Resolve the bearer token to the caller's user document."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("No token, authorization denied", code="TOKEN_MISSING")

    data = decode_jwt(credentials.credentials)
    user_id = to_object_id(data.get("sub"))
    user = db[USERS].find_one({"_id": user_id}) if user_id is not None else None
    if not user:
        raise AuthenticationError("Token is not valid", code="TOKEN_INVALID")
    return user


# -------------------------------------------------------------------
# Models
# -------------------------------------------------------------------
class RegisterIn(BaseModel):
    username: str
    email: EmailStr
    password: str
    algo: str = Field("bcrypt", pattern="^(bcrypt|argon2)$")

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str) -> str:
        v = v.strip()
        if not USERNAME_RE.match(v):
            raise ValueError("Username must be 3-30 characters of letters, numbers or underscores")
        return v

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        if len(v) < PASSWORD_MIN_LENGTH:
            raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
        return v


class LoginIn(BaseModel):
    email: EmailStr
    password: str


class ProfileUpdateIn(BaseModel):
    avatar: Optional[str] = None
    bio: Optional[str] = None

    @field_validator("bio")
    @classmethod
    def check_bio(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if len(v) > BIO_MAX_LENGTH:
            raise ValueError(f"Bio must be at most {BIO_MAX_LENGTH} characters")
        return v


# -------------------------------------------------------------------
# Auth endpoints
# -------------------------------------------------------------------
@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(data: RegisterIn, db: Database = Depends(get_db)):
    email = data.email.lower()
    if db[USERS].find_one({"email": email}):
        raise ConflictError("Email already registered")
    if db[USERS].find_one({"username": data.username}):
        raise ConflictError("Username already taken")

    user = User(
        username=data.username,
        email=email,
        password_hash=hash_password(data.password, data.algo),
        algo=data.algo,
    )
    try:
        user_doc = create_document(db, USERS, user.model_dump())
    except DuplicateKeyError:
        raise ConflictError("Email or username already registered")
    logger.info("Registered user %s (%s)", user_doc["username"], user_doc["_id"])

    return {
        "message": "User registered successfully",
        "token": issue_token(user_doc),
        "user": serialize_user(user_doc),
    }


@router.post("/login")
def login(data: LoginIn, db: Database = Depends(get_db)):
    user = db[USERS].find_one({"email": data.email.lower()})
    if not user or not verify_password(data.password, user.get("password_hash", ""), user.get("algo", "bcrypt")):
        raise AuthenticationError("Invalid credentials", code="INVALID_CREDENTIALS")

    logger.info("User %s logged in", user["_id"])
    return {
        "message": "Login successful",
        "token": issue_token(user),
        "user": serialize_user(user),
    }


@router.get("/me")
def me(current_user: Dict[str, Any] = Depends(get_current_user)):
    return {"user": serialize_user(current_user)}


@router.put("/profile")
def update_profile(
    data: ProfileUpdateIn,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    updates = data.model_dump(exclude_none=True)
    updates["updated_at"] = utcnow()
    db[USERS].update_one({"_id": current_user["_id"]}, {"$set": updates})
    user = db[USERS].find_one({"_id": current_user["_id"]})
    return {"message": "Profile updated successfully", "user": serialize_user(user)}
