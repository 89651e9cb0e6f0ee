"""Service configuration read from the environment"""
import os
from dotenv import load_dotenv

load_dotenv()


def _bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    return (
        f"postgresql+asyncpg://{os.getenv('DB_USER')}:{os.getenv('DB_PASSWORD')}"
        f"@{os.getenv('DB_HOST')}:{os.getenv('DB_PORT', '5432')}/{os.getenv('DB_NAME')}"
    )


DATABASE_URL = _database_url()
DB_ECHO = _bool("DB_ECHO", False)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Single authoritative clock for every stored timestamp
CARE_TIMEZONE = os.getenv("CARE_TIMEZONE", "UTC")

KEYCLOAK_URL = os.getenv("KEYCLOAK_URL")
KEYCLOAK_REALM = os.getenv("KEYCLOAK_REALM")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "RS256")
CAPABILITIES_FILE = os.getenv("CAPABILITIES_FILE")
INTERACTIONS_FILE = os.getenv("INTERACTIONS_FILE")

CACHE_ENABLED = _bool("CACHE_ENABLED", True)

NOTIFICATIONS_BACKEND = os.getenv("NOTIFICATIONS_BACKEND", "rabbitmq")
NOTIFY_OUTBOX_SIZE = int(os.getenv("NOTIFY_OUTBOX_SIZE", "1000"))
NOTIFY_MAX_ATTEMPTS = int(os.getenv("NOTIFY_MAX_ATTEMPTS", "5"))
NOTIFY_RETRY_BASE_SECONDS = float(os.getenv("NOTIFY_RETRY_BASE_SECONDS", "0.5"))

RABBITMQ_HOST = os.getenv("RABBITMQ_HOST", "localhost")
RABBITMQ_PORT = int(os.getenv("RABBITMQ_PORT", "5672"))
RABBITMQ_USER = os.getenv("RABBITMQ_USER", "guest")
RABBITMQ_PASSWORD = os.getenv("RABBITMQ_PASSWORD", "guest")
RABBITMQ_NOTIFY_EXCHANGE = os.getenv("RABBITMQ_NOTIFY_EXCHANGE", "carecoord.notifications")
RABBITMQ_FAMILY_EXCHANGE = os.getenv("RABBITMQ_FAMILY_EXCHANGE", "carecoord.family")

NO_SHOW_GRACE_MINUTES = int(os.getenv("NO_SHOW_GRACE_MINUTES", "30"))
