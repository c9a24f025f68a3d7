import os
from pathlib import Path
from dotenv import load_dotenv

# Force-load .env (Windows-safe, reload-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH)

DATABASE_URL = os.getenv("DATABASE_URL")

STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
CHECKOUT_CURRENCY = os.getenv("CHECKOUT_CURRENCY", "usd")

JWT_SECRET = os.getenv("JWT_SECRET")

SITE_DOMAIN = os.getenv("SITE_DOMAIN", "http://localhost:5173")
TRACKING_PREFIX = os.getenv("TRACKING_PREFIX", "ZAP")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
