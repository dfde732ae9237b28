"""
Password hashing, bearer tokens and the FastAPI dependencies that guard
admin and customer routes.

Two principal kinds share one signing key. The kind is written into every
token and checked on the way in, so a customer token never opens an admin
route even though its signature is valid.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

import bcrypt
import jwt
from fastapi import Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from . import storage
from .config import ADMIN_TOKEN_TTL_HOURS, ALGORITHM, BCRYPT_ROUNDS, CUSTOMER_TOKEN_TTL_DAYS, SECRET_KEY
from .database import get_db
from .errors import Unauthorized
from .models import Customer, User

logger = logging.getLogger(__name__)

ADMIN = "admin"
CUSTOMER = "customer"

TOKEN_TTL = {
    ADMIN: timedelta(hours=ADMIN_TOKEN_TTL_HOURS),
    CUSTOMER: timedelta(days=CUSTOMER_TOKEN_TTL_DAYS),
}

# Claim holding the human-facing identifier of each principal kind
IDENTIFIER_CLAIM = {
    ADMIN: "username",
    CUSTOMER: "accountNumber",
}

EXPIRED_SESSION_MESSAGE = "جلسة منتهية الصلاحية"

bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode()


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def create_access_token(principal_id: int, identifier: str, kind: str, ttl: Optional[timedelta] = None) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": str(principal_id),
        "id": principal_id,
        IDENTIFIER_CLAIM[kind]: identifier,
        "kind": kind,
        "iat": now,
        "exp": now + (ttl or TOKEN_TTL[kind]),
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str, expected_kind: str) -> dict:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.InvalidTokenError as e:
        logger.info("Rejected %s token: %s", expected_kind, e)
        raise Unauthorized(EXPIRED_SESSION_MESSAGE, status.HTTP_403_FORBIDDEN) from e

    if payload.get("kind") != expected_kind or not isinstance(payload.get("id"), int):
        logger.warning("Rejected %s token on a %s route", payload.get("kind"), expected_kind)
        raise Unauthorized(EXPIRED_SESSION_MESSAGE, status.HTTP_403_FORBIDDEN)

    return payload


def authenticate(db: Session, identifier: str, password: str, kind: str) -> Union[User, Customer]:
    """
    Check credentials for either principal kind.

    Admins are looked up by username; customers by account number, falling
    back to phone number.
    """
    if kind == ADMIN:
        principal = storage.get_user_by_username(db, identifier)
        unknown_message = wrong_password_message = "اسم المستخدم أو كلمة المرور غير صحيحة"
    else:
        principal = storage.find_customer(db, identifier)
        unknown_message = "رقم الحساب أو رقم الهاتف غير صحيح"
        wrong_password_message = "كلمة المرور غير صحيحة"

    if principal is None:
        logger.info("Login failed for unknown %s %r", kind, identifier)
        raise Unauthorized(unknown_message)

    if not verify_password(password, principal.password):
        logger.info("Login failed for %s %r: bad password", kind, identifier)
        raise Unauthorized(wrong_password_message)

    return principal


def issue_token(principal: Union[User, Customer]) -> str:
    if isinstance(principal, User):
        return create_access_token(principal.id, principal.username, ADMIN)
    return create_access_token(principal.id, principal.account_number, CUSTOMER)


def _token_from(credentials: Optional[HTTPAuthorizationCredentials]) -> str:
    if credentials is None or not credentials.credentials:
        raise Unauthorized()
    return credentials.credentials


def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    payload = decode_token(_token_from(credentials), ADMIN)
    user = storage.get_user(db, payload["id"])
    if user is None:
        raise Unauthorized(EXPIRED_SESSION_MESSAGE, status.HTTP_403_FORBIDDEN)
    return user


def get_current_customer(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Customer:
    payload = decode_token(_token_from(credentials), CUSTOMER)
    customer = storage.get_customer(db, payload["id"])
    if customer is None:
        raise Unauthorized(EXPIRED_SESSION_MESSAGE, status.HTTP_403_FORBIDDEN)
    return customer
