import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from . import storage
from .config import DEFAULT_ADMIN_PASSWORD, DEFAULT_ADMIN_USERNAME
from .database import get_db
from .errors import ValidationFailed
from .models import User
from .schemas import AdminLoginOut, LoginIn, UserOut
from .security import ADMIN, authenticate, get_current_admin, hash_password, issue_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def ensure_default_admin(db: Session) -> User:
    """Create the default admin account, failing if it already exists."""
    if storage.get_user_by_username(db, DEFAULT_ADMIN_USERNAME):
        raise ValidationFailed("المدير موجود بالفعل")

    user = storage.create_user(db, DEFAULT_ADMIN_USERNAME, hash_password(DEFAULT_ADMIN_PASSWORD))
    logger.info("Created default admin %r", user.username)
    return user


@router.post("/login", response_model=AdminLoginOut)
def login(credentials: LoginIn, db: Session = Depends(get_db)):
    user = authenticate(db, credentials.username, credentials.password, ADMIN)
    return {"token": issue_token(user), "user": user}


@router.post("/setup")
def setup(db: Session = Depends(get_db)):
    user = ensure_default_admin(db)
    return {"message": "تم إنشاء المدير بنجاح", "username": user.username}


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_admin)):
    return user
