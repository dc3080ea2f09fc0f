"""
Bankroll Ledger
===============

The only long-lived state in the engine: balance, risk limits and bet
history. All mutation goes through place_bet / settle_bet / deposit /
withdraw, serialized by a single re-entrant lock.

Stakes leave the balance when a bet is placed; settlement credits the
returns (stake * odds on a win, the stake back on a void).

Usage:
    ledger = BankrollLedger(initial_balance=1000, path="data/ledger.json")
    bet_id = ledger.place_bet(fixture_id=1, market=MatchResult(pick="home"), odds=2.1, amount=25)
    ledger.settle_by_score(bet_id, Scoreline(home=2, away=0))
"""

import json
import os
import tempfile
import threading
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
import logging

from tahmin.config import RiskLimits
from tahmin.data.schemas import BetOutcome, Market, Scoreline, parse_market
from tahmin.data.processors.validate import usable_odds, validate_positive, validate_scoreline

logger = logging.getLogger(__name__)

PENDING = "pending"


class LedgerError(RuntimeError):
    """Ledger operation refused (unknown bet, insufficient funds, risk limit)."""


@dataclass
class LedgerBet:
    """One bet in the ledger."""
    id: str
    fixture_id: Optional[int]
    pick: str
    odds: float
    amount: float
    confidence: float = 0.0
    market: Optional[Market] = None
    result: str = PENDING
    returns: float = 0.0
    created_at: datetime = field(default_factory=datetime.now)
    settled_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.result == PENDING

    @property
    def profit(self) -> float:
        return 0.0 if self.is_pending else self.returns - self.amount

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "fixture_id": self.fixture_id,
            "pick": self.pick,
            "odds": self.odds,
            "amount": self.amount,
            "confidence": self.confidence,
            "market": self.market.model_dump() if self.market is not None else None,
            "result": self.result,
            "returns": self.returns,
            "created_at": self.created_at.isoformat(),
            "settled_at": self.settled_at.isoformat() if self.settled_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LedgerBet":
        return cls(
            id=data["id"],
            fixture_id=data.get("fixture_id"),
            pick=data["pick"],
            odds=float(data["odds"]),
            amount=float(data["amount"]),
            confidence=float(data.get("confidence", 0.0)),
            market=parse_market(data["market"]) if data.get("market") else None,
            result=data.get("result", PENDING),
            returns=float(data.get("returns", 0.0)),
            created_at=datetime.fromisoformat(data["created_at"]),
            settled_at=datetime.fromisoformat(data["settled_at"]) if data.get("settled_at") else None,
        )


def settlement_returns(amount: float, odds: float, outcome: BetOutcome) -> float:
    """Money credited back to the balance for a settled bet."""
    if outcome == BetOutcome.WON:
        return amount * odds
    if outcome == BetOutcome.HALF_WON:
        return amount / 2 * odds + amount / 2
    if outcome == BetOutcome.HALF_LOST:
        return amount / 2
    if outcome == BetOutcome.VOID:
        return amount
    return 0.0


class BankrollLedger:
    """
    Thread-safe bankroll store with risk limits and optional JSON persistence.

    Every public method takes the lock, so concurrent place/settle calls
    never lose an update. ``clock`` is injectable for tests.
    """

    def __init__(
        self,
        initial_balance: float = 1000.0,
        limits: Optional[RiskLimits] = None,
        path: Optional[Union[str, Path]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.limits = limits or RiskLimits()
        self.path = Path(path) if path else None
        self._clock = clock
        self._lock = threading.RLock()

        self.initial_balance = validate_positive(initial_balance, "initial_balance", allow_zero=True)
        self.balance = self.initial_balance
        self.bets: Dict[str, LedgerBet] = {}

        self.current_streak = 0   # positive = wins, negative = losses
        self.best_streak = 0
        self.worst_streak = 0

        self.peak_equity = self.initial_balance
        self.max_drawdown = 0.0
        self.max_drawdown_pct = 0.0

        if self.path and self.path.exists():
            self._load()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def pending_bets(self) -> List[LedgerBet]:
        with self._lock:
            return [b for b in self.bets.values() if b.is_pending]

    @property
    def exposure(self) -> float:
        """Money currently tied up in pending bets."""
        with self._lock:
            return sum(b.amount for b in self.bets.values() if b.is_pending)

    @property
    def equity(self) -> float:
        with self._lock:
            return self.balance + self.exposure

    def get_bet(self, bet_id: str) -> LedgerBet:
        with self._lock:
            bet = self.bets.get(bet_id)
            if bet is None:
                raise LedgerError(f"Unknown bet id: {bet_id}")
            return bet

    def _loss_since(self, start: date) -> float:
        return sum(
            b.amount - b.returns
            for b in self.bets.values()
            if not b.is_pending
            and b.returns < b.amount
            and b.settled_at is not None
            and b.settled_at.date() >= start
        )

    def daily_loss_used(self) -> float:
        with self._lock:
            return self._loss_since(self._clock().date())

    def weekly_loss_used(self) -> float:
        with self._lock:
            today = self._clock().date()
            return self._loss_since(today - timedelta(days=today.weekday()))

    def is_within_limits(self, amount: float) -> Tuple[bool, Optional[str]]:
        """
        Check a prospective stake against balance and risk limits.

        Returns:
            (allowed, reason); reason is None when allowed
        """
        with self._lock:
            limits = self.limits
            if amount > self.balance:
                return False, f"Insufficient balance: {self.balance:.2f}"

            max_by_pct = self.balance * limits.max_bet_pct
            if amount > max_by_pct:
                return False, f"Exceeds {limits.max_bet_pct:.0%} of bankroll (max {max_by_pct:.2f})"

            if amount > limits.max_single_bet:
                return False, f"Single bet limit: {limits.max_single_bet:.2f}"

            daily = self.daily_loss_used()
            if daily + amount > limits.daily_loss_limit:
                return False, (
                    f"Daily loss limit ({limits.daily_loss_limit:.2f}) would be exceeded; "
                    f"lost today: {daily:.2f}"
                )

            weekly = self.weekly_loss_used()
            if weekly + amount > limits.weekly_loss_limit:
                return False, (
                    f"Weekly loss limit ({limits.weekly_loss_limit:.2f}) would be exceeded; "
                    f"lost this week: {weekly:.2f}"
                )

            return True, None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def place_bet(
        self,
        fixture_id: Optional[int],
        odds: float,
        amount: float,
        market: Optional[Market] = None,
        pick: Optional[str] = None,
        confidence: float = 0.0,
        enforce_limits: bool = True,
    ) -> str:
        """Record a new pending bet and take its stake from the balance."""
        amount = validate_positive(amount, "amount")
        if not usable_odds(odds):
            raise LedgerError(f"Invalid odds: {odds}")
        if isinstance(market, dict):
            market = parse_market(market)
        if pick is None:
            pick = market.label if market is not None else "?"

        with self._lock:
            if enforce_limits:
                allowed, reason = self.is_within_limits(amount)
            else:
                allowed, reason = amount <= self.balance, f"Insufficient balance: {self.balance:.2f}"
            if not allowed:
                raise LedgerError(reason)

            bet = LedgerBet(
                id=uuid.uuid4().hex[:12],
                fixture_id=fixture_id,
                pick=pick,
                odds=float(odds),
                amount=round(amount, 2),
                confidence=confidence,
                market=market,
                created_at=self._clock(),
            )
            self.bets[bet.id] = bet
            self.balance = round(self.balance - bet.amount, 2)
            self._save()

        logger.info(
            f"Placed {bet.id}: {bet.pick} @ {bet.odds} for {bet.amount:.2f} | "
            f"Balance: {self.balance:.2f}"
        )
        return bet.id

    def settle_bet(self, bet_id: str, outcome: Union[BetOutcome, str]) -> LedgerBet:
        """Settle a pending bet and credit its returns."""
        outcome = BetOutcome(outcome)
        with self._lock:
            bet = self.get_bet(bet_id)
            if not bet.is_pending:
                raise LedgerError(f"Bet {bet_id} already settled as {bet.result}")

            bet.returns = round(settlement_returns(bet.amount, bet.odds, outcome), 2)
            bet.result = outcome.value
            bet.settled_at = self._clock()
            self.balance = round(self.balance + bet.returns, 2)

            self._update_streak(outcome)
            self._update_drawdown()
            self._save()

        logger.info(
            f"Settled {bet_id}: {outcome.value} | Profit: {bet.profit:+.2f} | "
            f"Balance: {self.balance:.2f}"
        )
        return bet

    def settle_by_score(self, bet_id: str, score: Any) -> LedgerBet:
        """Settle a bet from the final score using its structured market."""
        score = validate_scoreline(score)
        with self._lock:
            bet = self.get_bet(bet_id)
            if bet.market is None:
                raise LedgerError(f"Bet {bet_id} has no market to evaluate")
            return self.settle_bet(bet_id, bet.market.evaluate(score))

    def deposit(self, amount: float) -> float:
        amount = validate_positive(amount, "amount")
        with self._lock:
            self.balance = round(self.balance + amount, 2)
            self.peak_equity += amount
            self._save()
        logger.info(f"Deposit {amount:.2f} | Balance: {self.balance:.2f}")
        return self.balance

    def withdraw(self, amount: float) -> float:
        amount = validate_positive(amount, "amount")
        with self._lock:
            if amount > self.balance:
                raise LedgerError(
                    f"Cannot withdraw {amount:.2f}; balance is {self.balance:.2f}"
                )
            self.balance = round(self.balance - amount, 2)
            self.peak_equity = max(self.equity, self.peak_equity - amount)
            self._save()
        logger.info(f"Withdraw {amount:.2f} | Balance: {self.balance:.2f}")
        return self.balance

    def update_limits(self, **changes: Any) -> RiskLimits:
        """Replace risk limits; the new values are validated as a whole."""
        with self._lock:
            current = {k: getattr(self.limits, k) for k in self.limits.__dataclass_fields__}
            self.limits = RiskLimits(**{**current, **changes})
            self._save()
            return self.limits

    def _update_streak(self, outcome: BetOutcome) -> None:
        if outcome in (BetOutcome.WON, BetOutcome.HALF_WON):
            self.current_streak = self.current_streak + 1 if self.current_streak >= 0 else 1
        elif outcome in (BetOutcome.LOST, BetOutcome.HALF_LOST):
            self.current_streak = self.current_streak - 1 if self.current_streak <= 0 else -1
        else:
            return
        self.best_streak = max(self.best_streak, self.current_streak)
        self.worst_streak = min(self.worst_streak, self.current_streak)

    def _update_drawdown(self) -> None:
        equity = self.equity
        if equity > self.peak_equity:
            self.peak_equity = equity
        drawdown = self.peak_equity - equity
        if drawdown > self.max_drawdown:
            self.max_drawdown = drawdown
            self.max_drawdown_pct = drawdown / self.peak_equity * 100 if self.peak_equity > 0 else 0.0

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def daily_pnl(self) -> Dict[str, Dict[str, float]]:
        """Per-day P&L of settled bets, keyed by ISO settlement date."""
        with self._lock:
            days: Dict[str, Dict[str, float]] = defaultdict(lambda: {
                "staked": 0.0, "returns": 0.0, "bets": 0, "won": 0, "lost": 0,
            })
            for bet in self.bets.values():
                if bet.is_pending or bet.settled_at is None:
                    continue
                day = days[bet.settled_at.date().isoformat()]
                day["staked"] += bet.amount
                day["returns"] += bet.returns
                day["bets"] += 1
                if bet.result in (BetOutcome.WON.value, BetOutcome.HALF_WON.value):
                    day["won"] += 1
                elif bet.result in (BetOutcome.LOST.value, BetOutcome.HALF_LOST.value):
                    day["lost"] += 1

            for day in days.values():
                day["profit_loss"] = round(day["returns"] - day["staked"], 2)
                day["roi"] = (day["profit_loss"] / day["staked"] * 100) if day["staked"] else 0.0
            return dict(sorted(days.items()))

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            settled = [b for b in self.bets.values() if not b.is_pending]
            won = [b for b in settled if b.result in (BetOutcome.WON.value, BetOutcome.HALF_WON.value)]
            lost = [b for b in settled if b.result in (BetOutcome.LOST.value, BetOutcome.HALF_LOST.value)]
            total_staked = sum(b.amount for b in settled)
            total_returns = sum(b.returns for b in settled)
            profit = total_returns - total_staked
            decided = len(won) + len(lost)

            return {
                "balance": self.balance,
                "initial_balance": self.initial_balance,
                "pending_bets": len(self.pending_bets),
                "exposure": self.exposure,
                "total_bets": len(settled),
                "won": len(won),
                "lost": len(lost),
                "void": len(settled) - decided,
                "win_rate": len(won) / decided * 100 if decided else 0.0,
                "total_staked": round(total_staked, 2),
                "total_returns": round(total_returns, 2),
                "profit_loss": round(profit, 2),
                "roi": profit / total_staked * 100 if total_staked else 0.0,
                "avg_odds": sum(b.odds for b in settled) / len(settled) if settled else 0.0,
                "current_streak": self.current_streak,
                "best_streak": self.best_streak,
                "worst_streak": self.worst_streak,
                "peak_equity": self.peak_equity,
                "max_drawdown": round(self.max_drawdown, 2),
                "max_drawdown_pct": round(self.max_drawdown_pct, 2),
            }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        with self._lock:
            return {
                "initial_balance": self.initial_balance,
                "balance": self.balance,
                "limits": {k: getattr(self.limits, k) for k in self.limits.__dataclass_fields__},
                "bets": [b.to_dict() for b in self.bets.values()],
                "current_streak": self.current_streak,
                "best_streak": self.best_streak,
                "worst_streak": self.worst_streak,
                "peak_equity": self.peak_equity,
                "max_drawdown": self.max_drawdown,
                "max_drawdown_pct": self.max_drawdown_pct,
                "last_updated": self._clock().isoformat(),
            }

    def _save(self) -> None:
        """Write state atomically: temp file in the same directory, then replace."""
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(self.to_dict(), f, indent=2)
            os.replace(tmp, self.path)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def _load(self) -> None:
        try:
            state = json.loads(self.path.read_text())
        except json.JSONDecodeError as e:
            raise LedgerError(f"Corrupt ledger file {self.path}: {e}") from e

        self.initial_balance = float(state.get("initial_balance", self.initial_balance))
        self.balance = float(state.get("balance", self.balance))
        if state.get("limits"):
            self.limits = RiskLimits(**state["limits"])
        self.bets = {b["id"]: LedgerBet.from_dict(b) for b in state.get("bets", [])}
        self.current_streak = int(state.get("current_streak", 0))
        self.best_streak = int(state.get("best_streak", 0))
        self.worst_streak = int(state.get("worst_streak", 0))
        self.peak_equity = float(state.get("peak_equity", self.balance))
        self.max_drawdown = float(state.get("max_drawdown", 0.0))
        self.max_drawdown_pct = float(state.get("max_drawdown_pct", 0.0))

        logger.info(f"Loaded ledger: balance={self.balance:.2f}, {len(self.bets)} bets")
