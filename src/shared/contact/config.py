"""Environment-backed settings for the contact form service."""

import os
import logging
from functools import lru_cache
from typing import Dict, List, Optional

DELIVERY_LOG = "log"
DELIVERY_SMTP = "smtp"
DELIVERY_MODES = (DELIVERY_LOG, DELIVERY_SMTP)

DEFAULT_CORS_ORIGINS = "http://localhost:3000"
DEFAULT_SMTP_TIMEOUT_SECONDS = 10.0


class ContactSettings:
    """
    Resolved configuration for contact delivery and the HTTP app.

    Built once at startup by `load_settings()`. The SMTP values are kept as
    given (possibly None) so the SMTP delivery can report a misconfiguration
    per request instead of failing the whole app.
    """

    def __init__(
        self,
        delivery_mode: str = DELIVERY_LOG,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        from_email: Optional[str] = None,
        to_email: Optional[str] = None,
        smtp_timeout: float = DEFAULT_SMTP_TIMEOUT_SECONDS,
        cors_origins: Optional[List[str]] = None,
    ):
        self.delivery_mode = delivery_mode
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.from_email = from_email or smtp_user
        self.to_email = to_email or smtp_user
        self.smtp_timeout = smtp_timeout
        self.cors_origins = cors_origins if cors_origins is not None else [DEFAULT_CORS_ORIGINS]

    def missing_smtp_settings(self) -> List[str]:
        """Names of the SMTP values required to send mail that are not set."""
        required = {
            "SMTP_HOST": self.smtp_host,
            "SMTP_PORT": self.smtp_port,
            "SMTP_USER": self.smtp_user,
            "SMTP_PASSWORD": self.smtp_password,
        }
        return [name for name, value in required.items() if not value]

    @property
    def smtp_configured(self) -> bool:
        return not self.missing_smtp_settings()


def _parse_port(raw: Optional[str]) -> Optional[int]:
    if not raw:
        return None
    try:
        port = int(raw)
    except ValueError:
        logging.warning(f"Ignoring non-numeric SMTP_PORT value: {raw!r}")
        return None
    if port <= 0 or port > 65535:
        logging.warning(f"Ignoring out-of-range SMTP_PORT value: {port}")
        return None
    return port


def _parse_timeout(raw: Optional[str]) -> float:
    if not raw:
        return DEFAULT_SMTP_TIMEOUT_SECONDS
    try:
        timeout = float(raw)
    except ValueError:
        logging.warning(f"Ignoring invalid SMTP_TIMEOUT_SECONDS value: {raw!r}")
        return DEFAULT_SMTP_TIMEOUT_SECONDS
    return timeout if timeout > 0 else DEFAULT_SMTP_TIMEOUT_SECONDS


def load_settings(environ: Optional[Dict[str, str]] = None) -> ContactSettings:
    """Read contact settings from the environment (or the given mapping)."""
    env = os.environ if environ is None else environ

    delivery_mode = (env.get("CONTACT_DELIVERY") or DELIVERY_LOG).strip().lower()
    if delivery_mode not in DELIVERY_MODES:
        logging.warning(
            f"Unknown CONTACT_DELIVERY {delivery_mode!r}, falling back to {DELIVERY_LOG!r}"
        )
        delivery_mode = DELIVERY_LOG

    origins = env.get("CORS_ORIGINS") or DEFAULT_CORS_ORIGINS

    settings = ContactSettings(
        delivery_mode=delivery_mode,
        smtp_host=env.get("SMTP_HOST") or None,
        smtp_port=_parse_port(env.get("SMTP_PORT")),
        smtp_user=env.get("SMTP_USER") or None,
        smtp_password=env.get("SMTP_PASSWORD") or None,
        from_email=env.get("CONTACT_FROM_EMAIL") or None,
        to_email=env.get("CONTACT_TO_EMAIL") or None,
        smtp_timeout=_parse_timeout(env.get("SMTP_TIMEOUT_SECONDS")),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
    )

    if settings.delivery_mode == DELIVERY_SMTP and not settings.smtp_configured:
        missing = ", ".join(settings.missing_smtp_settings())
        logging.warning(f"SMTP delivery selected but not configured (missing: {missing})")

    return settings


@lru_cache(maxsize=1)
def get_settings() -> ContactSettings:
    """Settings for this process, loaded on first use."""
    return load_settings()
