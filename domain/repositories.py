from __future__ import annotations

from typing import Any, Callable, List, Optional, Protocol

from .models import BetRecord, Profile, Stats


class UsernameTakenError(Exception):
    """Raised by a store when registering a username that already exists."""

    def __init__(self, username: str) -> None:
        super().__init__(f"Username already taken: {username}")
        self.username = username


class ProfileStore(Protocol):
    """
    Abstraction over profile and statistics persistence.

    Implementations are responsible for:
    - Mapping between database rows and the `Profile` / `Stats` models.
    - Hiding any SQL / driver details from the application layer.
    - Their own notion of account authentication.
    """

    # True when `authenticate` checks a password; such stores also derive
    # an e-mail identity from the username.
    requires_password: bool

    def accepts_profile_id(self, profile_id: str) -> bool:
        """Return True if `profile_id` has a shape this store can issue."""

        ...

    def current_session(self) -> Optional[str]:
        """Return the profile ID of a live authenticated session, if any."""

        ...

    def authenticate(self, username: str, password: str) -> Optional[str]:
        """Return the profile ID for valid credentials, or None."""

        ...

    def sign_out(self) -> None:
        ...

    def create_profile(self, username: str, password: str) -> Profile:
        """
        Persist a new profile with default values.

        Raises `UsernameTakenError` if the username already exists.
        """

        ...

    def create_stats(self, profile_id: str) -> None:
        """Persist a zeroed statistics row for the profile."""

        ...

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        ...

    def get_profile_by_username(self, username: str) -> Optional[Profile]:
        ...

    def get_stats(self, profile_id: str) -> Optional[Stats]:
        ...

    def get_recent_bets(self, profile_id: str, limit: int) -> List[BetRecord]:
        """Return the most recent wagers, newest first."""

        ...

    def update_profile(self, profile_id: str, **fields: Any) -> None:
        """
        Overwrite the given profile columns.

        Accepted fields: balance, level, experience, last_daily_bonus_date,
        currency.
        """

        ...

    def record_wager(self, profile_id: str, bet: BetRecord, stats: Stats) -> None:
        """
        Persist a wager.

        `stats` is the client-side aggregate after applying the wager.
        Stores that aggregate server-side may ignore it.
        """

        ...


class SessionIdentityStore(Protocol):
    """
    Device-local storage for the current session's profile ID.

    Survives process restarts so the session can be resolved on startup.
    """

    def get_current(self) -> Optional[str]:
        ...

    def set_current(self, profile_id: str) -> None:
        ...

    def clear_current(self) -> None:
        ...


class WriteDispatcher(Protocol):
    """
    Runs persistence writes on behalf of the ledger.

    Writes are best-effort: a failure is logged and never reaches the
    caller, and the in-memory projection is not rolled back.
    """

    def submit(self, operation: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        ...

    def close(self) -> None:
        """Finish any queued writes."""

        ...
