from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional


STARTING_BALANCE = 1000.0
RECENT_BETS_LIMIT = 50


class Currency(str, Enum):
    """Display currencies. Stored amounts are always in the canonical unit."""

    USD = "USD"
    GBP = "GBP"
    EUR = "EUR"
    BTC = "BTC"
    ETH = "ETH"
    LTC = "LTC"


@dataclass
class Profile:
    """
    Authoritative account record for a casino player.

    This model is independent of the storage backend; both stores map
    their rows onto it.
    """

    id: str
    username: str
    balance: float = STARTING_BALANCE
    is_admin: bool = False
    level: int = 1
    experience: int = 0
    last_daily_bonus_date: Optional[date] = None
    currency: Currency = Currency.USD
    created_at: Optional[datetime] = None


@dataclass
class Stats:
    """Cumulative betting statistics, one row per profile."""

    total_bets: int = 0
    total_wins: int = 0
    total_losses: int = 0
    biggest_win: float = 0.0
    biggest_loss: float = 0.0
    total_wagered: float = 0.0
    total_won: float = 0.0


@dataclass
class BetRecord:
    """A single wager as reported by a game."""

    game: str
    bet_amount: float
    win_amount: float
    multiplier: Optional[float] = None
    created_at: Optional[datetime] = None

    @property
    def profit(self) -> float:
        return self.win_amount - self.bet_amount


@dataclass
class LevelRewards:
    daily_bonus: int
    title: str


@dataclass
class User:
    """
    In-memory projection of a Profile + Stats pair.

    UI code reads this object instead of querying storage after every
    mutation; only the session manager and the ledger write to it.
    """

    profile: Profile
    stats: Stats = field(default_factory=Stats)
    recent_bets: List[BetRecord] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.profile.id

    @property
    def username(self) -> str:
        return self.profile.username

    @property
    def balance(self) -> float:
        return self.profile.balance

