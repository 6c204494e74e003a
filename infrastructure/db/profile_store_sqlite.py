from __future__ import annotations

import secrets
import sqlite3
from datetime import date, datetime, timezone
from typing import Any, List, Optional

from domain.models import BetRecord, Currency, Profile, Stats
from domain.repositories import ProfileStore, UsernameTakenError


_PROFILE_COLUMNS = (
    "id, username, balance, is_admin, level, experience, "
    "last_daily_bonus_date, currency, created_at"
)
_UPDATABLE_FIELDS = frozenset(
    {"balance", "level", "experience", "last_daily_bonus_date", "currency"}
)


class SqliteProfileStore(ProfileStore):
    """
    SQLite-backed implementation of `ProfileStore`, the device-local fallback.

    This store owns the `profiles`, `user_stats` and `bets` tables. It is
    self-initialising: the tables are created if needed. Login is a
    username lookup only; no secret is stored or checked.
    """

    requires_password = False

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._ensure_tables()

    def _get_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def _ensure_tables(self) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS profiles (
                    id TEXT PRIMARY KEY,
                    username TEXT NOT NULL UNIQUE,
                    balance REAL NOT NULL DEFAULT 1000,
                    is_admin INTEGER NOT NULL DEFAULT 0,
                    level INTEGER NOT NULL DEFAULT 1,
                    experience INTEGER NOT NULL DEFAULT 0,
                    last_daily_bonus_date TEXT,
                    currency TEXT NOT NULL DEFAULT 'USD',
                    created_at TEXT NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS user_stats (
                    profile_id TEXT PRIMARY KEY REFERENCES profiles(id),
                    total_bets INTEGER NOT NULL DEFAULT 0,
                    total_wins INTEGER NOT NULL DEFAULT 0,
                    total_losses INTEGER NOT NULL DEFAULT 0,
                    biggest_win REAL NOT NULL DEFAULT 0,
                    biggest_loss REAL NOT NULL DEFAULT 0,
                    total_wagered REAL NOT NULL DEFAULT 0,
                    total_won REAL NOT NULL DEFAULT 0
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS bets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    profile_id TEXT NOT NULL REFERENCES profiles(id),
                    game TEXT NOT NULL,
                    bet_amount REAL NOT NULL,
                    win_amount REAL NOT NULL,
                    multiplier REAL,
                    created_at TEXT NOT NULL
                )
                """
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_bets_profile ON bets(profile_id, id)"
            )
            conn.commit()

    @staticmethod
    def _to_domain(row: sqlite3.Row) -> Profile:
        return Profile(
            id=str(row[0]),
            username=row[1],
            balance=float(row[2]),
            is_admin=bool(row[3]),
            level=int(row[4]),
            experience=int(row[5]),
            last_daily_bonus_date=date.fromisoformat(row[6]) if row[6] else None,
            currency=Currency(row[7]),
            created_at=datetime.fromisoformat(row[8]),
        )

    # Session / identity

    def accepts_profile_id(self, profile_id: str) -> bool:
        return bool(profile_id)

    def current_session(self) -> Optional[str]:
        # The local store has no authentication service of its own.
        return None

    def authenticate(self, username: str, password: str) -> Optional[str]:
        profile = self.get_profile_by_username(username)
        if profile is None:
            return None
        return profile.id

    def sign_out(self) -> None:
        pass

    # Profiles

    def create_profile(self, username: str, password: str) -> Profile:
        profile = Profile(
            id=secrets.token_hex(8),
            username=username,
            created_at=datetime.now(timezone.utc),
        )
        try:
            with self._get_connection() as conn:
                cur = conn.cursor()
                cur.execute(
                    f"""
                    INSERT INTO profiles ({_PROFILE_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        profile.id,
                        profile.username,
                        profile.balance,
                        int(profile.is_admin),
                        profile.level,
                        profile.experience,
                        None,
                        profile.currency.value,
                        profile.created_at.isoformat(),
                    ),
                )
                conn.commit()
        except sqlite3.IntegrityError:
            raise UsernameTakenError(username) from None
        return profile

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(f"SELECT {_PROFILE_COLUMNS} FROM profiles WHERE id = ?", (profile_id,))
            row = cur.fetchone()
            if not row:
                return None
            return self._to_domain(row)

    def get_profile_by_username(self, username: str) -> Optional[Profile]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                f"SELECT {_PROFILE_COLUMNS} FROM profiles WHERE username = ?",
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

        values = []
        for name, value in fields.items():
            if isinstance(value, date):
                value = value.isoformat()
            elif isinstance(value, Currency):
                value = value.value
            values.append(value)

        assignments = ", ".join(f"{name} = ?" for name in fields)
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                f"UPDATE profiles SET {assignments} WHERE id = ?",
                (*values, profile_id),
            )
            conn.commit()

    # Statistics

    def create_stats(self, profile_id: str) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "INSERT OR IGNORE INTO user_stats (profile_id) VALUES (?)",
                (profile_id,),
            )
            conn.commit()

    def get_stats(self, profile_id: str) -> Optional[Stats]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT total_bets, total_wins, total_losses, biggest_win,
                       biggest_loss, total_wagered, total_won
                FROM user_stats
                WHERE profile_id = ?
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
        """
        Insert the wager and store the client-computed aggregate.

        Both statements run in one transaction.
        """

        created_at = bet.created_at or datetime.now(timezone.utc)
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO bets (profile_id, game, bet_amount, win_amount, multiplier, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    profile_id,
                    bet.game,
                    bet.bet_amount,
                    bet.win_amount,
                    bet.multiplier,
                    created_at.isoformat(),
                ),
            )
            cur.execute(
                """
                INSERT INTO user_stats (
                    profile_id, total_bets, total_wins, total_losses,
                    biggest_win, biggest_loss, total_wagered, total_won
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (profile_id) DO UPDATE SET
                    total_bets = excluded.total_bets,
                    total_wins = excluded.total_wins,
                    total_losses = excluded.total_losses,
                    biggest_win = excluded.biggest_win,
                    biggest_loss = excluded.biggest_loss,
                    total_wagered = excluded.total_wagered,
                    total_won = excluded.total_won
                """,
                (
                    profile_id,
                    stats.total_bets,
                    stats.total_wins,
                    stats.total_losses,
                    stats.biggest_win,
                    stats.biggest_loss,
                    stats.total_wagered,
                    stats.total_won,
                ),
            )
            conn.commit()

    def get_recent_bets(self, profile_id: str, limit: int) -> List[BetRecord]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT game, bet_amount, win_amount, multiplier, created_at
                FROM bets
                WHERE profile_id = ?
                ORDER BY id DESC
                LIMIT ?
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
                    created_at=datetime.fromisoformat(row[4]),
                )
                for row in rows
            ]
