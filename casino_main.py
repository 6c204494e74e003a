import logging
import sys
from typing import List, Optional

from application.ledger import LedgerOperations
from application.session import SessionManager
from infrastructure.backend import select_backend
from infrastructure.config import load_settings
from infrastructure.db.session_identity_sqlite import SqliteSessionIdentityStore
from interfaces.cli.commands import parse_args, run_command


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = load_settings()
    setup_logging(args.log_level or settings.log_level)

    backend = select_backend(settings)
    session = SessionManager(
        backend.store,
        SqliteSessionIdentityStore(settings.session_path),
    )
    ledger = LedgerOperations(session, backend.store, backend.writer)

    try:
        session.resolve()
        return run_command(args, session, ledger)
    finally:
        backend.close()


if __name__ == "__main__":
    sys.exit(main())
