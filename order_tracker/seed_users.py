import logging

from .api_auth import ensure_default_admin
from .config import DEFAULT_ADMIN_USERNAME
from .database import SessionLocal, init_db
from .errors import ValidationFailed

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def seed_users(session_factory=SessionLocal) -> bool:
    """Create the default admin if missing. Returns True when a user was created."""
    # Ensure tables exist
    init_db()

    db = session_factory()
    try:
        ensure_default_admin(db)
    except ValidationFailed:
        logger.info("Admin %r already exists.", DEFAULT_ADMIN_USERNAME)
        return False
    finally:
        db.close()

    logger.info("Successfully seeded admin %r.", DEFAULT_ADMIN_USERNAME)
    return True


def main():
    seed_users()


if __name__ == "__main__":
    main()
