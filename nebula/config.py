import logging
import os
import secrets
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel

from .session import DEFAULT_TTL_SECONDS

logger = logging.getLogger(__name__)

ENV_PREFIX = "NEBULA_"


class Settings(BaseModel):
    session_secret: str
    data_dir: Path = Path("nebula_data")
    session_ttl: int = DEFAULT_TTL_SECONDS
    cookie_secure: bool = True
    host: str = "127.0.0.1"
    port: int = 8765
    log_level: str = "info"


def _flag(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from NEBULA_* environment variables."""
    env = os.environ if environ is None else environ

    def get(name: str) -> Optional[str]:
        value = env.get(ENV_PREFIX + name)
        return value if value else None

    secret = get("SESSION_SECRET")
    if secret is None:
        # sessions will not survive a restart
        logger.warning("NEBULA_SESSION_SECRET is not set, using a random per-process secret")
        secret = secrets.token_urlsafe(32)

    values = {"session_secret": secret}
    if get("DATA_DIR"):
        values["data_dir"] = Path(get("DATA_DIR"))
    if get("SESSION_TTL"):
        values["session_ttl"] = int(get("SESSION_TTL"))
    if get("COOKIE_SECURE"):
        values["cookie_secure"] = _flag(get("COOKIE_SECURE"))
    if get("HOST"):
        values["host"] = get("HOST")
    if get("PORT"):
        values["port"] = int(get("PORT"))
    if get("LOG_LEVEL"):
        values["log_level"] = get("LOG_LEVEL").lower()
    return Settings(**values)
