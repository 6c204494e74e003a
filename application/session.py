from __future__ import annotations

import logging
import re
import threading
from typing import Optional

from domain.models import RECENT_BETS_LIMIT, Stats, User
from domain.repositories import ProfileStore, SessionIdentityStore, UsernameTakenError


logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

# Usernames become the local part of an e-mail address on password stores.
_EMAIL_LOCAL_PART_RE = re.compile(r"^[^\s@]+$")


class SessionManager:
    """
    Owns the authenticated identity and the in-memory `User` projection.

    Only this class and `LedgerOperations` write to the projection; both
    hold `lock` while doing so. None of the public methods raise: failed
    logins return False, failed registrations return None, and a session
    that cannot be resolved leaves the manager logged out.
    """

    def __init__(
        self,
        store: ProfileStore,
        identity_store: SessionIdentityStore,
        recent_bets_limit: int = RECENT_BETS_LIMIT,
    ) -> None:
        self._store = store
        self._identity_store = identity_store
        self._recent_bets_limit = recent_bets_limit
        self._user: Optional[User] = None
        self.lock = threading.RLock()

    @property
    def user(self) -> Optional[User]:
        return self._user

    @property
    def recent_bets_limit(self) -> int:
        return self._recent_bets_limit

    def _set_user(self, user: Optional[User]) -> Optional[User]:
        with self.lock:
            self._user = user
        return user

    def _load(self, profile_id: str) -> Optional[User]:
        profile = self._store.get_profile(profile_id)
        if profile is None:
            return None

        stats = self._store.get_stats(profile_id)
        if stats is None:
            logger.warning("No stats row for profile %s, using zeroed stats", profile_id)
            stats = Stats()

        bets = self._store.get_recent_bets(profile_id, self._recent_bets_limit)
        return User(profile=profile, stats=stats, recent_bets=bets)

    def _discard_stored_identity(self) -> None:
        self._identity_store.clear_current()
        self._set_user(None)

    def resolve(self) -> Optional[User]:
        """
        Restore the session on startup.

        A live session reported by the store wins. Otherwise the stored
        identity reference is used, provided the active store could have
        issued it; a reference it rejects is discarded.
        """

        try:
            profile_id = self._store.current_session()
            if profile_id:
                user = self._load(profile_id)
                if user is not None:
                    self._identity_store.set_current(user.id)
                    return self._set_user(user)

            stored_id = self._identity_store.get_current()
            if not stored_id:
                return self._set_user(None)

            if not self._store.accepts_profile_id(stored_id):
                logger.warning(
                    "Discarding stored session reference %r: not valid for the active store",
                    stored_id,
                )
                self._discard_stored_identity()
                return None

            user = self._load(stored_id)
            if user is None:
                logger.warning("Stored session reference %s has no profile, discarding", stored_id)
                self._discard_stored_identity()
                return None

            return self._set_user(user)
        except Exception:
            logger.error("Session resolution failed", exc_info=True)
            return self._set_user(None)

    def _credentials_acceptable(self, username: str, password: str) -> bool:
        if not self._store.requires_password:
            return True
        if len(password) < MIN_PASSWORD_LENGTH:
            logger.info(
                "Registration rejected, password shorter than %d characters",
                MIN_PASSWORD_LENGTH,
            )
            return False
        if not _EMAIL_LOCAL_PART_RE.match(username):
            logger.info("Registration rejected, %r cannot form an e-mail address", username)
            return False
        return True

    def login(self, username: str, password: str) -> bool:
        username = username.strip()
        if not username:
            return False

        try:
            profile_id = self._store.authenticate(username, password)
            if profile_id is None:
                logger.info("Login failed for %r", username)
                return False

            user = self._load(profile_id)
            if user is None:
                logger.warning("Authenticated %r but profile %s is missing", username, profile_id)
                return False

            self._identity_store.set_current(user.id)
        except Exception:
            logger.error("Login for %r failed", username, exc_info=True)
            return False

        self._set_user(user)
        logger.info("Logged in as %s", username)
        return True

    def register(self, username: str, password: str) -> Optional[User]:
        """
        Create an account with a starting balance and sign it in.

        Stores that check passwords require at least `MIN_PASSWORD_LENGTH`
        characters and a username usable as an e-mail local part.

        Statistics are best-effort: if the stats row cannot be created the
        account is still registered with zeroed in-memory stats.
        """

        username = username.strip()
        if not username:
            return None
        if not self._credentials_acceptable(username, password):
            return None

        try:
            if self._store.get_profile_by_username(username) is not None:
                logger.info("Registration rejected, username %r exists", username)
                return None
            profile = self._store.create_profile(username, password)
        except UsernameTakenError:
            logger.info("Registration rejected, username %r exists", username)
            return None
        except Exception:
            logger.error("Registration for %r failed", username, exc_info=True)
            return None

        try:
            self._store.create_stats(profile.id)
        except Exception:
            logger.error("Could not create stats for profile %s", profile.id, exc_info=True)

        try:
            self._identity_store.set_current(profile.id)
        except Exception:
            logger.error("Could not store session reference for %s", profile.id, exc_info=True)

        logger.info("Registered %s", username)
        return self._set_user(User(profile=profile, stats=Stats()))

    def logout(self) -> None:
        try:
            self._store.sign_out()
        except Exception:
            logger.error("Store sign-out failed", exc_info=True)
        try:
            self._identity_store.clear_current()
        except Exception:
            logger.error("Could not clear stored session reference", exc_info=True)
        self._set_user(None)

    def refresh(self) -> Optional[User]:
        """
        Reload the projection from the store.

        This is the only point where optimistic in-memory state is
        reconciled with what was actually persisted.
        """

        current = self._user
        if current is None:
            return None
        try:
            user = self._load(current.id)
        except Exception:
            logger.error("Refreshing profile %s failed", current.id, exc_info=True)
            return current

        if user is None:
            logger.warning("Profile %s no longer exists, logging out", current.id)
            self.logout()
            return None
        return self._set_user(user)
