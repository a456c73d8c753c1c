"""
Runtime configuration, read once from the environment (and a local .env file).

Every value has a development default except JWT_SECRET_KEY, which is
checked where tokens are signed.
"""
import os

from dotenv import load_dotenv

load_dotenv()


def _csv(value: str) -> list[str]:
    return [part.strip().lower() for part in value.split(",") if part.strip()]


def _choice(name: str, default: str, allowed: tuple[str, ...]) -> str:
    value = os.getenv(name, default).strip().lower()
    if value not in allowed:
        raise ValueError(f"{name} must be one of {', '.join(allowed)} (got {value!r})")
    return value


# --- Database ---
DB_USER = os.getenv("POSTGRES_USER", "postgres")
DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
DB_HOST = os.getenv("POSTGRES_HOST", "localhost")  # In Docker, this will be 'postgres'
DB_PORT = os.getenv("POSTGRES_PORT", "5433")
DB_NAME = os.getenv("POSTGRES_DB", "backoffice")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+asyncpg://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)
DB_ECHO = os.getenv("DB_ECHO", "false").lower() == "true"

# --- Identity ---
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
BOOTSTRAP_ADMIN_EMAILS = _csv(os.getenv("BOOTSTRAP_ADMIN_EMAILS", ""))

# --- Orders ---
ORDER_TX_MAX_ATTEMPTS = int(os.getenv("ORDER_TX_MAX_ATTEMPTS", "5"))
# on_create: spend counted when the order is placed; on_payment: when it is paid
LEDGER_SPEND_POLICY = _choice("LEDGER_SPEND_POLICY", "on_create", ("on_create", "on_payment"))
# keep: deleting an order leaves stock and ledger alone; restock: compensate both
ORDER_DELETE_POLICY = _choice("ORDER_DELETE_POLICY", "keep", ("keep", "restock"))
ORDER_RATE_LIMIT = os.getenv("ORDER_RATE_LIMIT", "60/minute")

# --- Observability ---
SERVICE_NAME = os.getenv("SERVICE_NAME", "backoffice")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT", "")

# --- Notifications ---
NOTIFICATION_WEBHOOK_URL = os.getenv("NOTIFICATION_WEBHOOK_URL", "")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "")
ADMIN_URL = os.getenv("ADMIN_URL", "http://localhost:3002")
STORE_NAME = os.getenv("STORE_NAME", "BibiGin")
BANK_IBAN = os.getenv("BANK_IBAN", "")
BANK_NAME = os.getenv("BANK_NAME", "")
BANK_BENEFICIARY = os.getenv("BANK_BENEFICIARY", STORE_NAME)
