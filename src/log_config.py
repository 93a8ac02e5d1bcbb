import logging
import sys
from typing import Mapping, Optional, Tuple

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

LOG_LEVEL_ENV = "LEDGER_LOG"
DEFAULT_LOG_LEVEL = "off"

# "off" sits above CRITICAL so nothing is emitted.
OFF = logging.CRITICAL + 10

LOG_LEVELS = {
    "off": OFF,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": TRACE,
}


def parse_log_level(value: Optional[str]) -> Tuple[int, bool]:
    """
    Map a level name to a logging level.

    Returns (level, recognised). Unset or blank values give the default level;
    unknown names also fall back to the default but report recognised=False.
    """
    if value is None or not value.strip():
        return LOG_LEVELS[DEFAULT_LOG_LEVEL], True
    level = LOG_LEVELS.get(value.strip().lower())
    if level is None:
        return LOG_LEVELS[DEFAULT_LOG_LEVEL], False
    return level, True


def configure_logging(environ: Mapping[str, str]) -> int:
    """Configure root logging to stderr from the LEDGER_LOG setting. Returns the level used."""
    raw = environ.get(LOG_LEVEL_ENV)
    level, recognised = parse_log_level(raw)
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )
    if not recognised:
        # logging may be off, so this goes straight to stderr
        print(f"Unrecognised {LOG_LEVEL_ENV} value {raw!r}, using {DEFAULT_LOG_LEVEL!r}", file=sys.stderr)
    return level
