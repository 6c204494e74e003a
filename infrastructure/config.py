from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv


DEFAULT_EMAIL_DOMAIN = "demo-casino.local"


@dataclass(frozen=True)
class LedgerSettings:
    """Process configuration, read once at startup."""

    remote_url: Optional[str] = None
    remote_key: Optional[str] = None
    db_path: str = "casino.db"
    session_path: str = "session.db"
    email_domain: str = DEFAULT_EMAIL_DOMAIN
    log_level: str = "INFO"

    @property
    def remote_configured(self) -> bool:
        return bool(self.remote_url) and bool(self.remote_key)

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> "LedgerSettings":
        return cls(
            remote_url=environ.get("LEDGER_REMOTE_URL") or None,
            remote_key=environ.get("LEDGER_REMOTE_KEY") or None,
            db_path=environ.get("LEDGER_DB_PATH", "casino.db"),
            session_path=environ.get("LEDGER_SESSION_PATH", "session.db"),
            email_domain=environ.get("LEDGER_EMAIL_DOMAIN", DEFAULT_EMAIL_DOMAIN),
            log_level=environ.get("LEDGER_LOG_LEVEL", "INFO"),
        )


def load_settings() -> LedgerSettings:
    """Load `.env` (if present) and build settings from the environment."""

    load_dotenv()
    return LedgerSettings.from_env(os.environ)
