import csv
import logging
import os
import sys
from typing import Mapping, Optional, Sequence

from ledger import Ledger, replay
from log_config import configure_logging
from record_source import CsvRecordSource
from snapshot import write_accounts

logger = logging.getLogger(__name__)


def main(argv: Optional[Sequence[str]] = None, environ: Optional[Mapping[str, str]] = None) -> int:
    argv = sys.argv if argv is None else argv
    environ = os.environ if environ is None else environ

    if len(argv) != 2:
        print("Usage: python main.py <input.csv>", file=sys.stderr)
        return 2

    configure_logging(environ)
    filepath = argv[1]
    logger.info(f"Replaying {filepath}")

    ledger = Ledger()
    try:
        with CsvRecordSource(filepath) as source:
            summary = replay(source, ledger)
    except OSError as e:
        logger.error(f"Cannot read {filepath}: {e}")
        return 1
    except csv.Error as e:
        logger.error(f"Cannot parse {filepath}: {e}")
        return 1

    logger.info(
        f"Applied: {summary.applied}, "
        f"Discarded: {summary.discarded}, "
        f"Malformed: {source.malformed}"
    )
    for reason, count in sorted(summary.discards_by_reason().items(), key=lambda item: item[0].value):
        logger.debug(f"  {reason.value}: {count}")

    write_accounts(ledger.accounts(), sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())
