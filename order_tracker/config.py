import os
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent / '.env'
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./data/order_tracker.sqlite")

# Security Config
SECRET_KEY = os.getenv("SESSION_SECRET", "default-secret-key")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ADMIN_TOKEN_TTL_HOURS = int(os.getenv("ADMIN_TOKEN_TTL_HOURS", "24"))
CUSTOMER_TOKEN_TTL_DAYS = int(os.getenv("CUSTOMER_TOKEN_TTL_DAYS", "30"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "10"))

DEFAULT_ADMIN_USERNAME = os.getenv("DEFAULT_ADMIN_USERNAME", "admin")
DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD", "admin123")

# How many recent identifiers are scanned when generating the next number
NUMBER_LOOKBACK = int(os.getenv("NUMBER_LOOKBACK", "100"))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
