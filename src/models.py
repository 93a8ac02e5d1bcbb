from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN
from enum import Enum
from typing import Dict, List, Optional, Union

DECIMAL_PLACES = 4
QUANTUM = Decimal(1).scaleb(-DECIMAL_PLACES)


def quantize(value: Decimal) -> Decimal:
    """Round to the fixed ledger scale of 4 fractional digits."""
    return value.quantize(QUANTUM, rounding=ROUND_HALF_EVEN)


def fits_scale(value: Decimal) -> bool:
    """True if the value is exact at 4 fractional digits within the decimal context precision."""
    try:
        return quantize(value) == value
    except InvalidOperation:
        return False


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"


class TransactionStatus(Enum):
    NORMAL = "normal"
    DISPUTED = "disputed"
    RESOLVED = "resolved"
    CHARGED_BACK = "charged_back"


class DiscardReason(Enum):
    ACCOUNT_LOCKED = "account_locked"
    MISSING_AMOUNT = "missing_amount"
    INVALID_AMOUNT = "invalid_amount"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    NO_SUCH_ACCOUNT = "no_such_account"
    DUPLICATE_TRANSACTION = "duplicate_transaction"
    UNKNOWN_TRANSACTION = "unknown_transaction"
    CLIENT_MISMATCH = "client_mismatch"
    NOT_DISPUTABLE = "not_disputable"
    ALREADY_DISPUTED = "already_disputed"
    NOT_UNDER_DISPUTE = "not_under_dispute"


@dataclass(frozen=True)
class Deposit:
    client_id: int
    transaction_id: int
    amount: Optional[Decimal] = None


@dataclass(frozen=True)
class Withdrawal:
    client_id: int
    transaction_id: int
    amount: Optional[Decimal] = None


@dataclass(frozen=True)
class Dispute:
    client_id: int
    transaction_id: int


@dataclass(frozen=True)
class Resolve:
    client_id: int
    transaction_id: int


@dataclass(frozen=True)
class Chargeback:
    client_id: int
    transaction_id: int


Record = Union[Deposit, Withdrawal, Dispute, Resolve, Chargeback]

RECORD_TYPES = {
    TransactionType.DEPOSIT: Deposit,
    TransactionType.WITHDRAWAL: Withdrawal,
    TransactionType.DISPUTE: Dispute,
    TransactionType.RESOLVE: Resolve,
    TransactionType.CHARGEBACK: Chargeback,
}


@dataclass
class TransactionRecord:
    """A deposit or withdrawal kept for later dispute lookups."""

    transaction_id: int
    client_id: int
    kind: TransactionType
    amount: Decimal
    status: TransactionStatus = TransactionStatus.NORMAL

    def __repr__(self) -> str:
        return (
            f"TransactionRecord({self.kind.value}, client={self.client_id}, "
            f"tx={self.transaction_id}, amount={self.amount}, status={self.status.value})"
        )


@dataclass
class ClientAccount:
    client_id: int
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    locked: bool = False

    @property
    def total(self) -> Decimal:
        return self.available + self.held

    def credit(self, amount: Decimal) -> None:
        self.available = quantize(self.available + amount)

    def debit(self, amount: Decimal) -> None:
        self.available = quantize(self.available - amount)

    def hold(self, amount: Decimal) -> None:
        self.available = quantize(self.available - amount)
        self.held = quantize(self.held + amount)

    def release_hold(self, amount: Decimal) -> None:
        self.held = quantize(self.held - amount)
        self.available = quantize(self.available + amount)

    def remove_held(self, amount: Decimal) -> None:
        self.held = quantize(self.held - amount)

    def lock(self) -> None:
        self.locked = True


@dataclass(frozen=True)
class Outcome:
    """Result of applying one record: accepted, or discarded with a reason."""

    record: Record
    reason: Optional[DiscardReason] = None

    @property
    def accepted(self) -> bool:
        return self.reason is None

    @classmethod
    def applied(cls, record: Record) -> "Outcome":
        return cls(record)

    @classmethod
    def discarded(cls, record: Record, reason: DiscardReason) -> "Outcome":
        return cls(record, reason)


@dataclass
class ReplaySummary:
    """Counters and discard events collected while replaying a record stream."""

    applied: int = 0
    discards: List[Outcome] = field(default_factory=list)

    def record(self, outcome: Outcome) -> None:
        if outcome.accepted:
            self.applied += 1
        else:
            self.discards.append(outcome)

    @property
    def discarded(self) -> int:
        return len(self.discards)

    def discards_by_reason(self) -> Dict[DiscardReason, int]:
        return dict(Counter(outcome.reason for outcome in self.discards))
