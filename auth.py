"""
Admin authentication: password hashing, signed session tokens and the
`require_admin` dependency that gates admin-only routes.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Request, Response
from passlib.context import CryptContext

from config import settings
from database import get_db, get_document_by_id
from errors import InvalidCredentials, Unauthorized

logger = logging.getLogger(__name__)

JWT_ALGO = "HS256"
TOKEN_TTL = timedelta(days=7)
COOKIE_NAME = "token"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed:
        # no stored hash, still spend the time of a real check
        pwd_context.dummy_verify()
        return False
    try:
        return pwd_context.verify(password, hashed)
    except ValueError:
        logger.warning("Stored password hash is not a recognised format")
        return False


def create_token(user_id: str) -> str:
    exp = datetime.now(timezone.utc) + TOKEN_TTL
    return jwt.encode({"sub": user_id, "exp": exp}, settings.jwt_secret, algorithm=JWT_ALGO)


def decode_token(token: str) -> dict:
    """Decode and check a session token; any failure is reported as Unauthorized."""
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALGO])
    except jwt.InvalidTokenError as e:
        # expired, bad signature and malformed tokens all look the same to the caller
        logger.debug("Rejected session token: %s", e)
        raise Unauthorized("Invalid or expired token")


def token_from_request(request: Request) -> Optional[str]:
    token = request.cookies.get(COOKIE_NAME)
    if token:
        return token
    header = request.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def set_session_cookie(response: Response, token: str) -> None:
    secure = settings.is_production
    response.set_cookie(
        COOKIE_NAME,
        token,
        max_age=int(TOKEN_TTL.total_seconds()),
        path="/",
        httponly=True,
        secure=secure,
        samesite="lax" if secure else "strict",
    )


def clear_session_cookie(response: Response) -> None:
    secure = settings.is_production
    response.delete_cookie(
        COOKIE_NAME,
        path="/",
        httponly=True,
        secure=secure,
        samesite="lax" if secure else "strict",
    )


async def authenticate_admin(db, email: str, password: str) -> dict:
    """Check admin credentials and return `{token, user}` with the public user projection."""
    user = await db["user"].find_one({"email": email})
    if user is None:
        # keep the timing of unknown-email failures close to wrong-password ones
        pwd_context.dummy_verify()
        logger.info("Login failed for %s: unknown email", email)
        raise InvalidCredentials()
    if not verify_password(password, user.get("password_hash")):
        logger.info("Login failed for %s: wrong password", email)
        raise InvalidCredentials()
    user_id = str(user["_id"])
    logger.info("Admin %s logged in", email)
    return {
        "token": create_token(user_id),
        "user": {"id": user_id, "email": user["email"], "role": user.get("role", "admin")},
    }


def is_authenticated(request: Request) -> bool:
    token = token_from_request(request)
    if not token:
        return False
    try:
        decode_token(token)
    except Unauthorized:
        return False
    return True


async def require_admin(request: Request, db=Depends(get_db)) -> dict:
    token = token_from_request(request)
    if not token:
        raise Unauthorized("Authentication required")
    payload = decode_token(token)
    user = await get_document_by_id(db, "user", payload.get("sub", ""))
    if not user or user.get("role") != "admin":
        raise Unauthorized("Invalid or expired token")
    user.pop("password_hash", None)
    return user
