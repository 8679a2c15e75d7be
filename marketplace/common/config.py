import os
from dataclasses import dataclass


def _get_bool(env_name: str, default: bool = False) -> bool:
    val = os.getenv(env_name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass
class Settings:
    # App
    APP_HOST: str = os.getenv("APP_HOST", "0.0.0.0")
    APP_PORT: int = int(os.getenv("APP_PORT", "8000"))
    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret-change-me")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    INSTANCE_ID: str = os.getenv("INSTANCE_ID", "unknown")

    # Database (SQLite by default in a Docker volume)
    DB_URL: str = os.getenv("DB_URL", "sqlite+aiosqlite:////data/marketplace.db")
    SEED_DEMO_DATA: bool = _get_bool("SEED_DEMO_DATA", False)

    # Redis (password reset codes)
    REDIS_HOST: str = os.getenv("REDIS_HOST", "redis")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    REDIS_USERNAME: str = os.getenv("REDIS_USERNAME", "")
    REDIS_PASSWORD: str = os.getenv("REDIS_PASSWORD", "")
    REDIS_SSL: bool = _get_bool("REDIS_SSL", False)
    RESET_CODE_TTL_SECONDS: int = int(os.getenv("RESET_CODE_TTL_SECONDS", "900"))
    RESET_CODE_MAX_ATTEMPTS: int = int(os.getenv("RESET_CODE_MAX_ATTEMPTS", "5"))

    # Kafka
    KAFKA_BOOTSTRAP_SERVERS: str = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "kafka:9092")
    NOTIFICATIONS_TOPIC: str = os.getenv("NOTIFICATIONS_TOPIC", "notifications")
    NOTIFICATIONS_ENABLED: bool = _get_bool("NOTIFICATIONS_ENABLED", True)
    NOTIFICATIONS_WORKER: bool = _get_bool("NOTIFICATIONS_WORKER", True)
    # upper bound on one fire-and-forget publish, producer start included
    NOTIFICATIONS_PUBLISH_TIMEOUT: float = float(os.getenv("NOTIFICATIONS_PUBLISH_TIMEOUT", "5"))

    # SMTP
    SMTP_HOST: str = os.getenv("SMTP_HOST", "")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USER: str = os.getenv("SMTP_USER", "")
    SMTP_PASS: str = os.getenv("SMTP_PASS", "")
    SMTP_FROM: str = os.getenv("SMTP_FROM", "")
    SUPPORT_EMAIL: str = os.getenv("SUPPORT_EMAIL", "support@sycloseouts.com")

    # Wire transfer instructions
    WIRE_ACCOUNT_NUMBER: str = os.getenv("WIRE_ACCOUNT_NUMBER", "12345678")
    WIRE_ROUTING_NUMBER: str = os.getenv("WIRE_ROUTING_NUMBER", "12345678")

    # Orders
    ESTIMATED_DELIVERY_DAYS: int = int(os.getenv("ESTIMATED_DELIVERY_DAYS", "7"))
    COMMISSION_RATE: float = float(os.getenv("COMMISSION_RATE", "0.035"))


settings = Settings()
