"""Payment collaborator: entry payments, refunds and prize settlement.

``LedgerPaymentGateway`` simulates a wallet network with in-memory balances.
Real signing and transfer live behind the same ``PaymentGateway`` interface.
"""

from __future__ import annotations

from abc import ABC
from abc import abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from decimal import ROUND_FLOOR
import logging
import threading
import time

from bingo_server.rooms.room import AMOUNT_DECIMALS
from bingo_server.rooms.room import round_amount

logger = logging.getLogger(__name__)

PLATFORM_ACCOUNT = "platform"
DEFAULT_FEE_PERCENT = 2.0
DEFAULT_REFUND_COOLDOWN_SECONDS = 600

SETTLEMENT_PENDING = "pending"
SETTLEMENT_PAID = "paid"
SETTLEMENT_FAILED = "failed"

_MINOR_UNIT = Decimal(1).scaleb(-AMOUNT_DECIMALS)


def split_pot(total_pot: float, fee_percent: float) -> tuple[float, float]:
    """Return (winner_prize, platform_fee); the prize is floored to the minor unit."""
    pot = Decimal(str(total_pot))
    share = (Decimal(100) - Decimal(str(fee_percent))) / Decimal(100)
    prize = (pot * share).quantize(_MINOR_UNIT, rounding=ROUND_FLOOR)
    if prize < 0:
        prize = Decimal(0)
    return float(prize), float(pot - prize)


class PaymentGateway(ABC):
    """Calls the room lifecycle makes into the payment network."""

    fee_percent: float = DEFAULT_FEE_PERCENT

    @abstractmethod
    def make_payment(self, payer: str, amount: float, memo: str) -> bool:
        """Collect amount from payer; memo identifies the room. False on failure."""

    @abstractmethod
    def release_payment(self, payer: str, memo: str) -> None:
        """Mark payer's payment for memo as refundable (the room no longer holds it)."""

    @abstractmethod
    def request_refund(self, payer: str, memo: str) -> bool:
        """Return a released payment once its cool-down has passed."""

    @abstractmethod
    def distribute_prize(self, winner: str, total_pot: float) -> bool:
        """Pay the winner their share of the pot and route the fee to the platform."""


@dataclass(slots=True)
class PaymentRecord:
    payer: str
    memo: str
    amount: float
    paid_at: float
    released: bool = False
    refunded: bool = False


class LedgerPaymentGateway(PaymentGateway):
    """In-memory ledger standing in for wallet transfers."""

    def __init__(
        self,
        *,
        fee_percent: float = DEFAULT_FEE_PERCENT,
        refund_cooldown_seconds: float = DEFAULT_REFUND_COOLDOWN_SECONDS,
        starting_balance: float = 0.0,
        clock: Callable[[], float] = time.time,
        platform_account: str = PLATFORM_ACCOUNT,
    ) -> None:
        if not 0 <= fee_percent < 100:
            raise ValueError("fee_percent must be in [0, 100)")
        self.fee_percent = fee_percent
        self.refund_cooldown_seconds = refund_cooldown_seconds
        self.platform_account = platform_account
        self._starting_balance = round_amount(starting_balance)
        self._clock = clock
        self._balances: dict[str, float] = {}
        self._payments: list[PaymentRecord] = []
        self._lock = threading.Lock()

    def _balance(self, identity: str) -> float:
        return self._balances.setdefault(identity, self._starting_balance)

    def credit(self, identity: str, amount: float) -> float:
        """Add funds to an account (faucet for demos and tests) and return the new balance."""
        if amount <= 0:
            raise ValueError("credit amount must be positive")
        with self._lock:
            self._balances[identity] = round_amount(self._balance(identity) + amount)
            return self._balances[identity]

    def balance_of(self, identity: str) -> float:
        with self._lock:
            return self._balance(identity)

    def payments_for(self, payer: str) -> list[PaymentRecord]:
        with self._lock:
            return [record for record in self._payments if record.payer == payer]

    def make_payment(self, payer: str, amount: float, memo: str) -> bool:
        amount = round_amount(amount)
        if amount <= 0:
            return False
        with self._lock:
            balance = self._balance(payer)
            if balance < amount:
                logger.warning("payment declined payer=%s memo=%s amount=%s balance=%s", payer, memo, amount, balance)
                return False
            self._balances[payer] = round_amount(balance - amount)
            self._payments.append(PaymentRecord(payer=payer, memo=memo, amount=amount, paid_at=self._clock()))
        logger.info("payment collected payer=%s memo=%s amount=%s", payer, memo, amount)
        return True

    def release_payment(self, payer: str, memo: str) -> None:
        with self._lock:
            for record in reversed(self._payments):
                if record.payer == payer and record.memo == memo and not record.released:
                    record.released = True
                    return

    def request_refund(self, payer: str, memo: str) -> bool:
        now = self._clock()
        with self._lock:
            for record in self._payments:
                if record.payer != payer or record.memo != memo:
                    continue
                if not record.released or record.refunded:
                    continue
                if now - record.paid_at < self.refund_cooldown_seconds:
                    return False
                record.refunded = True
                self._balances[payer] = round_amount(self._balance(payer) + record.amount)
                logger.info("refund paid payer=%s memo=%s amount=%s", payer, memo, record.amount)
                return True
        return False

    def distribute_prize(self, winner: str, total_pot: float) -> bool:
        if total_pot <= 0:
            return False
        prize, fee = split_pot(total_pot, self.fee_percent)
        with self._lock:
            self._balances[winner] = round_amount(self._balance(winner) + prize)
            self._balances[self.platform_account] = round_amount(self._balance(self.platform_account) + fee)
        logger.info("prize distributed winner=%s prize=%s fee=%s", winner, prize, fee)
        return True


@dataclass(slots=True)
class Settlement:
    """Observable settlement state for one finished paid room."""

    room_id: str
    winner: str
    total_pot: float
    winner_prize: float
    platform_fee: float
    status: str = SETTLEMENT_PENDING
    error: str | None = None


class SettlementBook:
    """Thread-safe record of settlements keyed by room id."""

    def __init__(self) -> None:
        self._items: dict[str, Settlement] = {}
        self._lock = threading.Lock()

    def open(self, *, room_id: str, winner: str, total_pot: float, fee_percent: float) -> Settlement:
        prize, fee = split_pot(total_pot, fee_percent)
        settlement = Settlement(
            room_id=room_id,
            winner=winner,
            total_pot=total_pot,
            winner_prize=prize,
            platform_fee=fee,
        )
        with self._lock:
            self._items[room_id] = settlement
        return settlement

    def mark(self, room_id: str, status: str, error: str | None = None) -> None:
        with self._lock:
            settlement = self._items.get(room_id)
            if settlement is None:
                return
            settlement.status = status
            settlement.error = error

    def get(self, room_id: str) -> Settlement | None:
        with self._lock:
            return self._items.get(room_id)


__all__ = [
    "DEFAULT_FEE_PERCENT",
    "DEFAULT_REFUND_COOLDOWN_SECONDS",
    "LedgerPaymentGateway",
    "PLATFORM_ACCOUNT",
    "PaymentGateway",
    "PaymentRecord",
    "SETTLEMENT_FAILED",
    "SETTLEMENT_PAID",
    "SETTLEMENT_PENDING",
    "Settlement",
    "SettlementBook",
    "split_pot",
]
