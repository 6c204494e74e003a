from __future__ import annotations

import argparse
from typing import Callable, Dict, List, Optional

from application.ledger import LedgerOperations
from application.services import place_wager
from application.session import SessionManager
from domain.models import Currency


Output = Callable[[str], None]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="casino",
        description="Demo casino ledger: accounts, balance and progression",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Overrides LEDGER_LOG_LEVEL",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    register = sub.add_parser("register", help="create an account and log in")
    register.add_argument("username")
    register.add_argument("password")

    login = sub.add_parser("login", help="log in to an existing account")
    login.add_argument("username")
    login.add_argument("password", nargs="?", default="")

    sub.add_parser("logout", help="end the current session")
    sub.add_parser("whoami", help="show balance, level and statistics")
    sub.add_parser("bonus", help="claim today's daily bonus")

    wager = sub.add_parser("wager", help="settle a wager reported by a game")
    wager.add_argument("game")
    wager.add_argument("bet", type=float)
    wager.add_argument("win", type=float)
    wager.add_argument("--multiplier", type=float, default=None)

    currency = sub.add_parser("currency", help="change the display currency")
    currency.add_argument("code", choices=[c.value for c in Currency])

    return parser


def _describe_user(session: SessionManager, ledger: LedgerOperations) -> List[str]:
    user = session.user
    if user is None:
        return ["Not logged in."]

    profile, stats = user.profile, user.stats
    rewards = ledger.level_rewards(profile.level)
    lines = [
        f"{profile.username} ({rewards.title})",
        f"Balance: {ledger.format_amount(profile.balance)}",
        f"Level {profile.level}: {profile.experience}/"
        f"{ledger.next_level_requirement(profile.level)} XP",
        f"Bets: {stats.total_bets} (won {stats.total_wins}, lost {stats.total_losses})",
        f"Wagered: {ledger.format_amount(stats.total_wagered)}, "
        f"won: {ledger.format_amount(stats.total_won)}",
        f"Biggest win: {ledger.format_amount(stats.biggest_win)}, "
        f"biggest loss: {ledger.format_amount(abs(stats.biggest_loss))}",
    ]
    if ledger.daily_bonus_available():
        lines.append(f"Daily bonus available: {ledger.format_amount(rewards.daily_bonus)}")
    return lines


def run_command(
    args: argparse.Namespace,
    session: SessionManager,
    ledger: LedgerOperations,
    output: Output = print,
) -> int:
    """Run one parsed command against a resolved session. Returns an exit code."""

    def handle_register() -> int:
        user = session.register(args.username, args.password)
        if user is None:
            output(f"Could not register {args.username!r}: username taken or invalid.")
            return 1
        output(f"Welcome {user.username}! Starting balance {ledger.format_amount(user.balance)}.")
        return 0

    def handle_login() -> int:
        if not session.login(args.username, args.password):
            output("Invalid username or password.")
            return 1
        output(f"Logged in as {args.username}.")
        return 0

    def handle_logout() -> int:
        session.logout()
        output("Logged out.")
        return 0

    def handle_whoami() -> int:
        for line in _describe_user(session, ledger):
            output(line)
        return 0 if session.user is not None else 1

    def handle_bonus() -> int:
        if session.user is None:
            output("Not logged in.")
            return 1
        bonus = ledger.claim_daily_bonus()
        if not bonus:
            output("Daily bonus already claimed today.")
            return 1
        output(f"Claimed {ledger.format_amount(bonus)}. Balance {ledger.format_amount(ledger.get_balance())}.")
        return 0

    def handle_wager() -> int:
        result = place_wager(ledger, args.bet, args.win, args.game, multiplier=args.multiplier)
        if not result.success:
            output(result.error_message or "Wager failed.")
            return 1
        output(f"Balance {ledger.format_amount(result.balance)}.")
        return 0

    def handle_currency() -> int:
        if ledger.set_currency(args.code) is None:
            output("Not logged in.")
            return 1
        output(f"Display currency set to {args.code}.")
        return 0

    handlers: Dict[str, Callable[[], int]] = {
        "register": handle_register,
        "login": handle_login,
        "logout": handle_logout,
        "whoami": handle_whoami,
        "bonus": handle_bonus,
        "wager": handle_wager,
        "currency": handle_currency,
    }
    return handlers[args.command]()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)
