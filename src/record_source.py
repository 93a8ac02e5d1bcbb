import csv
import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterator, Optional

from models import RECORD_TYPES, Deposit, Record, TransactionType, Withdrawal

logger = logging.getLogger(__name__)

MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1


class RecordFormatError(ValueError):
    """Raised when a CSV row cannot be turned into a transaction record."""


def _parse_id(value: Optional[str], name: str, maximum: int) -> int:
    if not value:
        raise RecordFormatError(f"missing {name}")
    if not (value.isascii() and value.isdigit()):
        raise RecordFormatError(f"invalid {name} {value!r}")
    parsed = int(value)
    if not 0 <= parsed <= maximum:
        raise RecordFormatError(f"{name} {parsed} out of range 0..{maximum}")
    return parsed


def _parse_amount(value: Optional[str]) -> Optional[Decimal]:
    if not value:
        return None
    # Decimal() would accept digit separators
    if "_" in value:
        raise RecordFormatError(f"invalid amount {value!r}")
    try:
        return Decimal(value)
    except InvalidOperation:
        raise RecordFormatError(f"invalid amount {value!r}") from None


def parse_row(row: Dict[Optional[str], Optional[str]]) -> Record:
    """
    Parse a CSV row into a typed record.

    Header names and values are whitespace-stripped. The type tag is matched
    exactly. The amount column is only read for deposits and withdrawals; a
    missing amount there is left as None for the ledger to reject.
    """
    normalized = {
        k.strip(): v.strip()
        for k, v in row.items()
        if k is not None and v is not None
    }

    try:
        transaction_type = TransactionType(normalized.get("type", ""))
    except ValueError:
        raise RecordFormatError(f"unknown type {normalized.get('type')!r}") from None

    client_id = _parse_id(normalized.get("client"), "client", MAX_CLIENT_ID)
    transaction_id = _parse_id(normalized.get("tx"), "tx", MAX_TRANSACTION_ID)

    record_type = RECORD_TYPES[transaction_type]
    if record_type in (Deposit, Withdrawal):
        return record_type(client_id, transaction_id, _parse_amount(normalized.get("amount")))
    return record_type(client_id, transaction_id)


class CsvRecordSource:
    """
    Lazily reads transaction records from a CSV file.

    The file is opened on entering the context, so an unreadable input fails
    before any record is produced. Malformed rows are logged and skipped.
    """

    def __init__(self, filepath: str):
        self._filepath = filepath
        self._file = None
        self.malformed = 0

    def __enter__(self) -> "CsvRecordSource":
        self._file = open(self._filepath, "r", encoding="utf-8", errors="replace", newline="")
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def __iter__(self) -> Iterator[Record]:
        if self._file is None:
            raise RuntimeError(f"{self._filepath} is not open")

        reader = csv.DictReader(self._file)
        for row in reader:
            try:
                yield parse_row(row)
            except RecordFormatError as e:
                self.malformed += 1
                logger.warning(f"Skipping line {reader.line_num}: {e}")
