import os
import re
from dotenv import load_dotenv

# Carrega o .env da raiz do projeto
load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./ordering.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Tenant resolution
PLATFORM_DOMAIN = os.getenv("PLATFORM_DOMAIN", "yourapi.com").strip().lower()
TENANT_CACHE_TTL_SECONDS = float(os.getenv("TENANT_CACHE_TTL_SECONDS", "300"))
_reserved_env = os.getenv("RESERVED_SUBDOMAINS", "www,api,admin,app,dashboard,cdn,static")
RESERVED_SUBDOMAINS = frozenset(
    part.strip().lower() for part in _reserved_env.split(",") if part.strip()
)
PLATFORM_ADMIN_TOKEN = os.getenv("PLATFORM_ADMIN_TOKEN", "").strip()

# Orders
ORDER_NUMBER_PREFIX = os.getenv("ORDER_NUMBER_PREFIX", "GC").strip()
ORDER_NUMBER_MAX_ATTEMPTS = max(int(os.getenv("ORDER_NUMBER_MAX_ATTEMPTS", "3")), 1)

# Receipts
RECEIPT_PROVIDER = os.getenv("RECEIPT_PROVIDER", "mock").strip().lower()
RECEIPT_API_URL = os.getenv("RECEIPT_API_URL", "").strip()
RECEIPT_API_KEY = os.getenv("RECEIPT_API_KEY", "").strip()
RECEIPT_FROM_EMAIL = os.getenv("RECEIPT_FROM_EMAIL", "").strip()
RECEIPT_TIMEOUT_SECONDS = float(os.getenv("RECEIPT_TIMEOUT_SECONDS", "10"))
RECEIPTS_ENABLED = os.getenv("RECEIPTS_ENABLED", "1").strip().lower() in _TRUTHY

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

if PLATFORM_DOMAIN and not IS_DEV:
    CORS_ALLOW_ORIGIN_REGEX = rf"^https://([a-z0-9-]+\.)?{re.escape(PLATFORM_DOMAIN)}$"
else:
    CORS_ALLOW_ORIGIN_REGEX = None
