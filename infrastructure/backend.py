from __future__ import annotations

import logging
from dataclasses import dataclass

from domain.repositories import ProfileStore
from infrastructure.config import LedgerSettings
from infrastructure.db.profile_store_postgres import PostgresProfileStore
from infrastructure.db.profile_store_sqlite import SqliteProfileStore
from infrastructure.dispatch import BackgroundWriter, ImmediateWriter, WriteDispatcher


logger = logging.getLogger(__name__)

REMOTE = "remote"
LOCAL = "local"


@dataclass(frozen=True)
class ActiveBackend:
    """The store chosen at startup and the dispatcher its writes go through."""

    name: str
    store: ProfileStore
    writer: WriteDispatcher

    def close(self) -> None:
        self.writer.close()


def select_backend(settings: LedgerSettings) -> ActiveBackend:
    """
    Choose the persistence backend for the lifetime of the process.

    The remote store is used only when both its URL and key are set;
    otherwise the local SQLite store is used.
    """

    if settings.remote_configured:
        store = PostgresProfileStore(
            {"dsn": settings.remote_url, "password": settings.remote_key},
            email_domain=settings.email_domain,
        )
        logger.info("Using remote ledger store")
        return ActiveBackend(name=REMOTE, store=store, writer=BackgroundWriter())

    logger.info("Remote store not configured, using local store at %s", settings.db_path)
    return ActiveBackend(
        name=LOCAL,
        store=SqliteProfileStore(settings.db_path),
        writer=ImmediateWriter(),
    )
