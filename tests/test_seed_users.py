from order_tracker import storage
from order_tracker.database import SessionLocal
from order_tracker.security import verify_password
from order_tracker.seed_users import seed_users


def test_seed_creates_default_admin_once(db):
    assert seed_users(SessionLocal) is True
    assert seed_users(SessionLocal) is False

    user = storage.get_user_by_username(db, "admin")
    assert verify_password("admin123", user.password)
