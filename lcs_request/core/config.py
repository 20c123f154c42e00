# lcs_request/core/config.py
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings
import logging


class Settings(BaseSettings):
    """Application settings for the request layer"""
    APP_NAME: str = "LCS Request"
    DEBUG: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # Programmer errors (bad header keys, bad segment positions) raise when enabled
    THROW_ERRORS: bool = False

    # Nonce settings
    NONCE_TTL: int = 3600
    NONCE_LENGTH: int = 32
    NONCE_RESET_MAX_TRIALS: int = 3
    NONCE_RESET_WINDOW: int = 86400
    DEFAULT_NONCE_NAME: str = "lcs_request_nonce"
    AJAX_NONCE_ACTION: str = "lcs_ajax_nonce"

    # Session settings
    SESSION_COOKIE_NAME: str = "lcs_session"
    SESSION_TTL: int = 86400
    REDIS_URL: Optional[str] = Field(default=None)

    # Rate limits
    RATE_LIMIT_NONCE: str = "30/minute"
    RATE_LIMIT_NONCE_RESET: str = "10/minute"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore"
    }


# Settings singleton
settings = Settings()


def validate_required_settings() -> bool:
    """Check that settings are usable, warn about anything suspicious"""
    logger = logging.getLogger(__name__)
    problems = []

    if settings.NONCE_LENGTH < 32:
        problems.append(f"NONCE_LENGTH={settings.NONCE_LENGTH} (needs at least 32 bytes)")

    if settings.NONCE_RESET_MAX_TRIALS < 1:
        problems.append(f"NONCE_RESET_MAX_TRIALS={settings.NONCE_RESET_MAX_TRIALS}")

    if not settings.REDIS_URL:
        logger.info("No REDIS_URL set - sessions are kept in memory")

    if problems:
        logger.warning(f"Questionable settings: {', '.join(problems)}")
        return False

    return True
