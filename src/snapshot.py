import csv
from decimal import Decimal
from typing import Mapping, TextIO

from models import ClientAccount, quantize

FIELDNAMES = ["client", "available", "held", "total", "locked"]


def format_decimal(value: Decimal) -> str:
    """Format decimal with exactly 4 decimal places."""
    return f"{quantize(value):f}"


def write_accounts(accounts: Mapping[int, ClientAccount], out: TextIO) -> None:
    """Write one CSV row per account, ordered by client id."""
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(FIELDNAMES)
    for client_id in sorted(accounts.keys()):
        account = accounts[client_id]
        writer.writerow([
            client_id,
            format_decimal(account.available),
            format_decimal(account.held),
            format_decimal(account.total),
            str(account.locked).lower(),
        ])
