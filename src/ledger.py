import logging
from decimal import Decimal
from typing import Iterable, Optional

from log_config import TRACE
from models import (
    Chargeback,
    ClientAccount,
    Deposit,
    DiscardReason,
    Dispute,
    Outcome,
    Record,
    ReplaySummary,
    Resolve,
    TransactionRecord,
    TransactionStatus,
    TransactionType,
    Withdrawal,
    fits_scale,
    quantize,
)
from ledger_state import LedgerState

logger = logging.getLogger(__name__)


def validate_amount(amount: Optional[Decimal]) -> Optional[DiscardReason]:
    """Return a discard reason if the amount cannot be applied, else None."""
    if amount is None:
        return DiscardReason.MISSING_AMOUNT
    if not amount.is_finite() or amount < 0 or not fits_scale(amount):
        return DiscardReason.INVALID_AMOUNT
    return None


class Ledger:
    """
    Applies transaction records to ledger state, one at a time, in arrival order.

    Every record yields an Outcome. Rejections are logged through the injected
    logger and never raised, so a caller can fold over any stream of records.
    """

    def __init__(self, state: Optional[LedgerState] = None, log: Optional[logging.Logger] = None):
        self._state = state if state is not None else LedgerState()
        self._log = log if log is not None else logger

    @property
    def state(self) -> LedgerState:
        return self._state

    def accounts(self):
        return self._state.get_all_accounts()

    def apply(self, record: Record) -> Outcome:
        """
        Apply a single record.

        Returns Outcome.applied(record) when the ledger changed, or
        Outcome.discarded(record, reason) when it was left untouched.
        """
        self._log.log(TRACE, f"Applying {record}")

        account = self._state.get_account(record.client_id)
        if account is not None and account.locked:
            return self._discard(record, DiscardReason.ACCOUNT_LOCKED)

        match record:
            case Deposit():
                return self._handle_deposit(record)
            case Withdrawal():
                return self._handle_withdrawal(account, record)
            case Dispute():
                return self._handle_dispute(record)
            case Resolve():
                return self._handle_resolve(record)
            case Chargeback():
                return self._handle_chargeback(record)
            case _:
                raise TypeError(f"Unsupported record type: {type(record).__name__}")

    def _handle_deposit(self, record: Deposit) -> Outcome:
        reason = validate_amount(record.amount)
        if reason is not None:
            return self._discard(record, reason, f"amount {record.amount}")

        if self._state.has_transaction(record.transaction_id):
            return self._discard(record, DiscardReason.DUPLICATE_TRANSACTION)

        # Only deposits grow the account total; all other changes stay within it.
        existing = self._state.get_account(record.client_id)
        current_total = existing.total if existing is not None else Decimal("0")
        if not fits_scale(current_total + record.amount):
            return self._discard(record, DiscardReason.INVALID_AMOUNT, "balance would exceed decimal precision")

        account = self._state.get_or_create_account(record.client_id)
        account.credit(record.amount)
        self._store(record, TransactionType.DEPOSIT)
        return self._applied(record, account)

    def _handle_withdrawal(self, account: Optional[ClientAccount], record: Withdrawal) -> Outcome:
        reason = validate_amount(record.amount)
        if reason is not None:
            return self._discard(record, reason, f"amount {record.amount}")

        if self._state.has_transaction(record.transaction_id):
            return self._discard(record, DiscardReason.DUPLICATE_TRANSACTION)

        if account is None:
            return self._discard(record, DiscardReason.NO_SUCH_ACCOUNT)

        if account.available < record.amount:
            return self._discard(record, DiscardReason.INSUFFICIENT_FUNDS, f"available {account.available}")

        account.debit(record.amount)
        self._store(record, TransactionType.WITHDRAWAL)
        return self._applied(record, account)

    def _handle_dispute(self, record: Dispute) -> Outcome:
        original = self._state.get_transaction(record.transaction_id)

        if original is None:
            return self._discard(record, DiscardReason.UNKNOWN_TRANSACTION)

        if original.client_id != record.client_id:
            return self._discard(record, DiscardReason.CLIENT_MISMATCH, f"owned by client {original.client_id}")

        # Withdrawals are never disputable: the funds have already left the account.
        if original.kind != TransactionType.DEPOSIT:
            return self._discard(record, DiscardReason.NOT_DISPUTABLE, f"{original.kind.value} cannot be disputed")

        if original.status == TransactionStatus.DISPUTED:
            return self._discard(record, DiscardReason.ALREADY_DISPUTED)

        # Resolved and charged back deposits are terminal.
        if original.status != TransactionStatus.NORMAL:
            return self._discard(record, DiscardReason.NOT_DISPUTABLE, f"status is {original.status.value}")

        account = self._state.get_or_create_account(original.client_id)
        if account.available < original.amount:
            return self._discard(
                record,
                DiscardReason.INSUFFICIENT_FUNDS,
                f"cannot hold {original.amount}, available {account.available}",
            )

        account.hold(original.amount)
        original.status = TransactionStatus.DISPUTED
        return self._applied(record, account)

    def _handle_resolve(self, record: Resolve) -> Outcome:
        original = self._find_disputed(record)
        if original is None:
            return self._discard(record, DiscardReason.NOT_UNDER_DISPUTE)

        account = self._state.get_or_create_account(original.client_id)
        account.release_hold(original.amount)
        original.status = TransactionStatus.RESOLVED
        return self._applied(record, account)

    def _handle_chargeback(self, record: Chargeback) -> Outcome:
        original = self._find_disputed(record)
        if original is None:
            return self._discard(record, DiscardReason.NOT_UNDER_DISPUTE)

        account = self._state.get_or_create_account(original.client_id)
        account.remove_held(original.amount)
        account.lock()
        original.status = TransactionStatus.CHARGED_BACK
        self._log.info(f"Client {account.client_id} locked after chargeback of tx {record.transaction_id}")
        return self._applied(record, account)

    def _find_disputed(self, record: Record) -> Optional[TransactionRecord]:
        """Return the referenced transaction only if it belongs to the client and is under dispute."""
        original = self._state.get_transaction(record.transaction_id)
        if original is None:
            self._log.debug(f"tx {record.transaction_id}: not found")
            return None
        if original.client_id != record.client_id:
            self._log.debug(f"tx {record.transaction_id}: owned by client {original.client_id}, not {record.client_id}")
            return None
        if original.status != TransactionStatus.DISPUTED:
            self._log.debug(f"tx {record.transaction_id}: status is {original.status.value}")
            return None
        return original

    def _store(self, record: Record, kind: TransactionType) -> None:
        self._state.store_transaction(
            TransactionRecord(
                transaction_id=record.transaction_id,
                client_id=record.client_id,
                kind=kind,
                amount=quantize(record.amount),
            )
        )

    def _applied(self, record: Record, account: ClientAccount) -> Outcome:
        self._log.debug(f"Applied {record}: {account}")
        return Outcome.applied(record)

    def _discard(self, record: Record, reason: DiscardReason, detail: Optional[str] = None) -> Outcome:
        message = f"Discarded {record}: {reason.value}"
        if detail:
            message = f"{message} ({detail})"
        self._log.warning(message)
        return Outcome.discarded(record, reason)


def replay(records: Iterable[Record], ledger: Ledger) -> ReplaySummary:
    """Apply every record in order and collect the outcomes."""
    summary = ReplaySummary()
    for record in records:
        summary.record(ledger.apply(record))
    return summary
