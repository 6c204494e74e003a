from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Callable, Optional, Tuple, Union

from application.session import SessionManager
from domain.currency import format_amount, parse_currency
from domain.leveling import apply_experience, level_rewards, next_level_requirement
from domain.models import BetRecord, Currency, LevelRewards, Stats
from domain.repositories import ProfileStore, WriteDispatcher


logger = logging.getLogger(__name__)

EXPERIENCE_PER_WAGERED_UNIT = 10


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LedgerOperations:
    """
    Mutation surface for the logged-in player's balance and progression.

    Every operation updates the session's in-memory projection first and
    then hands the matching write to the dispatcher. The caller never
    waits on persistence, and a failed write does not undo the in-memory
    change; the next `SessionManager.refresh()` reconciles the two.

    Without an active session every mutation is a no-op.
    """

    def __init__(
        self,
        session: SessionManager,
        store: ProfileStore,
        writer: WriteDispatcher,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._session = session
        self._store = store
        self._writer = writer
        self._clock = clock

    def _today(self) -> date:
        # Calendar days are UTC days.
        return self._clock().astimezone(timezone.utc).date()

    @property
    def logged_in(self) -> bool:
        return self._session.user is not None

    # Balance

    def get_balance(self) -> float:
        user = self._session.user
        return user.balance if user is not None else 0.0

    def update_balance(self, delta: float) -> Optional[float]:
        """Apply `delta`, clamping at zero. Returns the new balance."""

        with self._session.lock:
            user = self._session.user
            if user is None:
                return None
            balance = max(0.0, user.profile.balance + delta)
            user.profile.balance = balance
            self._writer.submit(self._store.update_profile, user.id, balance=balance)
        return balance

    # Experience

    @staticmethod
    def next_level_requirement(level: int) -> int:
        return next_level_requirement(level)

    @staticmethod
    def level_rewards(level: int) -> LevelRewards:
        return level_rewards(level)

    def add_experience(self, amount: int) -> Optional[Tuple[int, int]]:
        """Add experience, resolving level-ups. Returns `(level, experience)`."""

        with self._session.lock:
            user = self._session.user
            if user is None:
                return None
            level, experience = apply_experience(
                user.profile.level, user.profile.experience, amount
            )
            if level > user.profile.level:
                logger.info("%s reached level %d", user.username, level)
            user.profile.level = level
            user.profile.experience = experience
            self._writer.submit(
                self._store.update_profile, user.id, experience=experience, level=level
            )
        return level, experience

    # Daily bonus

    def daily_bonus_available(self) -> bool:
        user = self._session.user
        return user is not None and user.profile.last_daily_bonus_date != self._today()

    def claim_daily_bonus(self) -> float:
        """
        Pay today's bonus once per calendar day.

        Returns the amount paid, or 0 if it was already claimed today or
        nobody is logged in.
        """

        today = self._today()
        with self._session.lock:
            user = self._session.user
            if user is None or user.profile.last_daily_bonus_date == today:
                return 0
            bonus = level_rewards(user.profile.level).daily_bonus
            balance = user.profile.balance + bonus
            user.profile.balance = balance
            user.profile.last_daily_bonus_date = today
            self._writer.submit(
                self._store.update_profile,
                user.id,
                balance=balance,
                last_daily_bonus_date=today,
            )
        logger.info("Daily bonus of %s paid to %s", bonus, user.username)
        return bonus

    # Wagers

    def record_wager(
        self,
        bet_amount: float,
        win_amount: float,
        game: str = "unknown",
        multiplier: Optional[float] = None,
    ) -> Optional[Stats]:
        """
        Fold a settled wager into the statistics and award experience.

        The balance is not touched here; games settle it separately with
        `update_balance`. Returns the updated statistics.
        """

        bet = BetRecord(
            game=game,
            bet_amount=bet_amount,
            win_amount=win_amount,
            multiplier=multiplier,
            created_at=self._clock(),
        )
        profit = bet.profit

        with self._session.lock:
            user = self._session.user
            if user is None:
                return None

            stats = user.stats
            stats.total_bets += 1
            if profit > 0:
                stats.total_wins += 1
            elif profit < 0:
                stats.total_losses += 1
            stats.biggest_win = max(stats.biggest_win, profit)
            stats.biggest_loss = min(stats.biggest_loss, profit)
            stats.total_wagered += bet_amount
            stats.total_won += win_amount

            user.recent_bets.insert(0, bet)
            del user.recent_bets[self._session.recent_bets_limit:]

            stats_after = replace(stats)
            self._writer.submit(self._store.record_wager, user.id, bet, stats_after)
            self.add_experience(int(bet_amount / EXPERIENCE_PER_WAGERED_UNIT))

        return stats_after

    # Currency

    def set_currency(self, code: Union[str, Currency]) -> Optional[Currency]:
        """Change the display currency. The stored balance is not rescaled."""

        currency = parse_currency(code)
        with self._session.lock:
            user = self._session.user
            if user is None:
                return None
            user.profile.currency = currency
            self._writer.submit(self._store.update_profile, user.id, currency=currency)
        return currency

    def format_amount(self, amount: Optional[float]) -> str:
        user = self._session.user
        currency = user.profile.currency if user is not None else Currency.USD
        return format_amount(amount, currency)
