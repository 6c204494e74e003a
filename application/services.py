from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from application.ledger import LedgerOperations
from domain.models import Stats


@dataclass
class OperationResult:
    """Generic result type for game-facing operations."""

    success: bool
    error_message: Optional[str] = None
    balance: Optional[float] = None
    stats: Optional[Stats] = None


def _validate_positive_amount(amount: float) -> Optional[str]:
    if amount <= 0:
        return "Bet amount must be greater than zero."
    return None


def place_wager(
    ledger: LedgerOperations,
    bet_amount: float,
    win_amount: float,
    game: str,
    multiplier: Optional[float] = None,
) -> OperationResult:
    """
    Settle a wager whose outcome a game has already decided.

    - The player's balance changes by `win_amount - bet_amount`.
    - The wager is folded into the statistics and awards experience.

    Games own their random outcomes; this is the only way they should
    move money. Validation problems are returned, never raised.
    """

    error = _validate_positive_amount(bet_amount)
    if error:
        return OperationResult(success=False, error_message=error)
    if win_amount < 0:
        return OperationResult(success=False, error_message="Win amount cannot be negative.")

    if not ledger.logged_in:
        return OperationResult(success=False, error_message="You need to be logged in to play.")

    if ledger.get_balance() < bet_amount:
        return OperationResult(success=False, error_message="Insufficient balance.")

    balance = ledger.update_balance(win_amount - bet_amount)
    stats = ledger.record_wager(bet_amount, win_amount, game=game, multiplier=multiplier)

    return OperationResult(success=True, balance=balance, stats=stats)
