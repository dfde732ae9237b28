from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from . import storage
from .database import get_db
from .schemas import PublicSettingsOut, SettingsOut, SettingsUpdate
from .security import get_current_admin

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("", response_model=SettingsOut, dependencies=[Depends(get_current_admin)])
def get_settings(db: Session = Depends(get_db)):
    """Company info and numbering config; defaults when nothing was saved yet."""
    return SettingsOut.from_row(storage.get_settings(db))


@router.put("", response_model=SettingsOut, dependencies=[Depends(get_current_admin)])
def update_settings(payload: SettingsUpdate, db: Session = Depends(get_db)):
    row = storage.update_settings(db, payload.model_dump(exclude_unset=True))
    return SettingsOut.from_row(row)


@router.get("/public", response_model=PublicSettingsOut)
def get_public_settings(db: Session = Depends(get_db)):
    return PublicSettingsOut.model_validate(SettingsOut.from_row(storage.get_settings(db)).model_dump())
