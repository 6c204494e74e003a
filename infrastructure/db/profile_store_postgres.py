from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, List, Optional

import psycopg2
from psycopg2 import errors
from werkzeug.security import check_password_hash, generate_password_hash

from domain.models import BetRecord, Currency, Profile, Stats
from domain.repositories import ProfileStore, UsernameTakenError


logger = logging.getLogger(__name__)

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
_ZERO_WIDTH_RE = re.compile("[\u200b-\u200d\ufeff]")

_PROFILE_COLUMNS = (
    "id, username, balance, is_admin, level, experience, "
    "last_daily_bonus_date, currency, created_at"
)
_UPDATABLE_FIELDS = frozenset(
    {"balance", "level", "experience", "last_daily_bonus_date", "currency"}
)


def synthetic_email(username: str, domain: str) -> str:
    """
    Map a username onto the e-mail identity used by the remote auth table.

    Zero-width characters and surrounding whitespace are stripped and the
    result is lower-cased.
    """

    cleaned = _ZERO_WIDTH_RE.sub("", username).strip().lower()
    return f"{cleaned}@{domain}"


class PostgresProfileStore(ProfileStore):
    """
    Postgres-backed implementation of `ProfileStore`, the authoritative store.

    Profile IDs are UUIDs issued by the database. Credentials live in an
    `auth_users` table keyed by a synthetic e-mail derived from the
    username. Wager statistics are aggregated server-side by a trigger on
    `bets`, so `record_wager` only inserts the bet row.
    """

    requires_password = True

    def __init__(self, db_params: dict, email_domain: str) -> None:
        self._db_params = db_params
        self._email_domain = email_domain
        self._session_profile_id: Optional[str] = None
        self._ensure_schema()

    def _get_connection(self):
        return psycopg2.connect(**self._db_params)

    def _ensure_schema(self) -> None:
        """
        Ensure that the tables and the stats trigger exist.

        `gen_random_uuid()` is built in from Postgres 13.
        """

        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS profiles (
                        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                        username TEXT NOT NULL UNIQUE,
                        balance DOUBLE PRECISION NOT NULL DEFAULT 1000,
                        is_admin BOOLEAN NOT NULL DEFAULT FALSE,
                        level INTEGER NOT NULL DEFAULT 1,
                        experience INTEGER NOT NULL DEFAULT 0,
                        last_daily_bonus_date DATE,
                        currency TEXT NOT NULL DEFAULT 'USD',
                        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
                    )
                    """
                )
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS auth_users (
                        email TEXT PRIMARY KEY,
                        password_hash TEXT NOT NULL,
                        profile_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE
                    )
                    """
                )
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS user_stats (
                        profile_id UUID PRIMARY KEY REFERENCES profiles(id) ON DELETE CASCADE,
                        total_bets INTEGER NOT NULL DEFAULT 0,
                        total_wins INTEGER NOT NULL DEFAULT 0,
                        total_losses INTEGER NOT NULL DEFAULT 0,
                        biggest_win DOUBLE PRECISION NOT NULL DEFAULT 0,
                        biggest_loss DOUBLE PRECISION NOT NULL DEFAULT 0,
                        total_wagered DOUBLE PRECISION NOT NULL DEFAULT 0,
                        total_won DOUBLE PRECISION NOT NULL DEFAULT 0
                    )
                    """
                )
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS bets (
                        id BIGSERIAL PRIMARY KEY,
                        profile_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
                        game TEXT NOT NULL,
                        bet_amount DOUBLE PRECISION NOT NULL,
                        win_amount DOUBLE PRECISION NOT NULL,
                        multiplier DOUBLE PRECISION,
                        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
                    )
                    """
                )
                cur.execute(
                    """
                    CREATE OR REPLACE FUNCTION apply_wager_to_user_stats()
                    RETURNS TRIGGER AS $$
                    DECLARE
                        profit DOUBLE PRECISION := NEW.win_amount - NEW.bet_amount;
                    BEGIN
                        INSERT INTO user_stats (profile_id) VALUES (NEW.profile_id)
                        ON CONFLICT (profile_id) DO NOTHING;

                        UPDATE user_stats SET
                            total_bets = total_bets + 1,
                            total_wins = total_wins + CASE WHEN profit > 0 THEN 1 ELSE 0 END,
                            total_losses = total_losses + CASE WHEN profit < 0 THEN 1 ELSE 0 END,
                            biggest_win = GREATEST(biggest_win, profit),
                            biggest_loss = LEAST(biggest_loss, profit),
                            total_wagered = total_wagered + NEW.bet_amount,
                            total_won = total_won + NEW.win_amount
                        WHERE profile_id = NEW.profile_id;
                        RETURN NEW;
                    END;
                    $$ LANGUAGE plpgsql
                    """
                )
                cur.execute("DROP TRIGGER IF EXISTS bets_apply_user_stats ON bets")
                cur.execute(
                    """
                    CREATE TRIGGER bets_apply_user_stats
                    AFTER INSERT ON bets
                    FOR EACH ROW EXECUTE FUNCTION apply_wager_to_user_stats()
                    """
                )
                conn.commit()
        logger.info("Remote ledger schema created/verified")

    @staticmethod
    def _to_domain(row: tuple) -> Profile:
        return Profile(
            id=str(row[0]),
            username=row[1],
            balance=float(row[2]),
            is_admin=bool(row[3]),
            level=int(row[4]),
            experience=int(row[5]),
            last_daily_bonus_date=row[6],
            currency=Currency(row[7]),
            created_at=row[8],
        )

    # Session / identity

    def accepts_profile_id(self, profile_id: str) -> bool:
        return bool(profile_id) and _UUID_RE.match(profile_id) is not None

    def current_session(self) -> Optional[str]:
        return self._session_profile_id

    def authenticate(self, username: str, password: str) -> Optional[str]:
        email = synthetic_email(username, self._email_domain)
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT password_hash, profile_id FROM auth_users WHERE email = %s",
                    (email,),
                )
                row = cur.fetchone()

        if not row or not check_password_hash(row[0], password):
            return None

        self._session_profile_id = str(row[1])
        return self._session_profile_id

    def sign_out(self) -> None:
        self._session_profile_id = None

    # Profiles

    def create_profile(self, username: str, password: str) -> Profile:
        """
        Create the profile and its credentials in one transaction.

        A successful sign-up also signs the new account in.
        """

        email = synthetic_email(username, self._email_domain)
        try:
            with self._get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"""
                        INSERT INTO profiles (username)
                        VALUES (%s)
                        RETURNING {_PROFILE_COLUMNS}
                        """,
                        (username,),
                    )
                    profile = self._to_domain(cur.fetchone())
                    cur.execute(
                        """
                        INSERT INTO auth_users (email, password_hash, profile_id)
                        VALUES (%s, %s, %s)
                        """,
                        (email, generate_password_hash(password), profile.id),
                    )
                    conn.commit()
        except errors.UniqueViolation:
            raise UsernameTakenError(username) from None

        self._session_profile_id = profile.id
        return profile

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        if not self.accepts_profile_id(profile_id):
            return None
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT {_PROFILE_COLUMNS} FROM profiles WHERE id = %s",
                    (profile_id,),
                )
                row = cur.fetchone()
                if not row:
                    return None
                return self._to_domain(row)

    def get_profile_by_username(self, username: str) -> Optional[Profile]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT {_PROFILE_COLUMNS} FROM profiles WHERE username = %s",
                    (username,),
                )
                row = cur.fetchone()
                if not row:
                    return None
                return self._to_domain(row)

    def update_profile(self, profile_id: str, **fields: Any) -> None:
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update profile fields: {sorted(unknown)}")
        if not fields:
            return

        values = [
            value.value if isinstance(value, Currency) else value
            for value in fields.values()
        ]
        assignments = ", ".join(f"{name} = %s" for name in fields)
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"UPDATE profiles SET {assignments} WHERE id = %s",
                    (*values, profile_id),
                )
                conn.commit()

    # Statistics

    def create_stats(self, profile_id: str) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO user_stats (profile_id) VALUES (%s)
                    ON CONFLICT (profile_id) DO NOTHING
                    """,
                    (profile_id,),
                )
                conn.commit()

    def get_stats(self, profile_id: str) -> Optional[Stats]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT total_bets, total_wins, total_losses, biggest_win,
                           biggest_loss, total_wagered, total_won
                    FROM user_stats
                    WHERE profile_id = %s
                    """,
                    (profile_id,),
                )
                row = cur.fetchone()
                if not row:
                    return None
                return Stats(
                    total_bets=int(row[0]),
                    total_wins=int(row[1]),
                    total_losses=int(row[2]),
                    biggest_win=float(row[3]),
                    biggest_loss=float(row[4]),
                    total_wagered=float(row[5]),
                    total_won=float(row[6]),
                )

    def record_wager(self, profile_id: str, bet: BetRecord, stats: Stats) -> None:
        # `stats` is ignored: the `bets_apply_user_stats` trigger aggregates.
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO bets (profile_id, game, bet_amount, win_amount, multiplier, created_at)
                    VALUES (%s, %s, %s, %s, %s, COALESCE(%s, now()))
                    """,
                    (
                        profile_id,
                        bet.game,
                        bet.bet_amount,
                        bet.win_amount,
                        bet.multiplier,
                        bet.created_at,
                    ),
                )
                conn.commit()

    def get_recent_bets(self, profile_id: str, limit: int) -> List[BetRecord]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT game, bet_amount, win_amount, multiplier, created_at
                    FROM bets
                    WHERE profile_id = %s
                    ORDER BY id DESC
                    LIMIT %s
                    """,
                    (profile_id, limit),
                )
                rows = cur.fetchall()
                return [
                    BetRecord(
                        game=row[0],
                        bet_amount=float(row[1]),
                        win_amount=float(row[2]),
                        multiplier=float(row[3]) if row[3] is not None else None,
                        created_at=row[4] if isinstance(row[4], datetime) else None,
                    )
                    for row in rows
                ]
