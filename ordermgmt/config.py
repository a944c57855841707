"""Runtime configuration for the app (overridable during tests/runtime)."""
import os
from typing import NamedTuple, Optional


class Settings(NamedTuple):
    database_url: str
    jwt_secret: str
    jwt_exp_seconds: int
    log_level: str
    # seeds the first administrator of an empty database when both are set
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None


def load_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./orders.db"),
        jwt_secret=os.getenv("JWT_SECRET", "dev-secret"),
        jwt_exp_seconds=int(os.getenv("JWT_EXP_SECONDS", str(60 * 60 * 24))),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        admin_email=os.getenv("ADMIN_EMAIL") or None,
        admin_password=os.getenv("ADMIN_PASSWORD") or None,
    )


state = load_settings()


def get_settings() -> Settings:
    return state


def override_settings(**values) -> Settings:
    global state
    state = state._replace(**values)
    return state
