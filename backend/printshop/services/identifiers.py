"""
Sequential document numbers such as ``INV20250001`` and ``PJ20250042``.

Numbers come from a counter row per (kind, year) that is bumped by one atomic
upsert on its own connection. The increment commits immediately, so a caller
whose surrounding transaction later fails burns the number instead of handing
it out twice.
"""
import logging

from sqlalchemy import text
from sqlalchemy.engine import Engine

from printshop.errors import SequenceExhausted, ValidationError

logger = logging.getLogger("printshop.identifiers")

KINDS = ("INV", "PJ")
MAX_SEQUENCE = 9999

_INCREMENT_SQL = text(
    """
    INSERT INTO sequence_counters (kind, year, value)
    VALUES (:kind, :year, 1)
    ON CONFLICT(kind, year) DO UPDATE SET value = value + 1
    RETURNING value
    """
)


def _check(kind: str, year: int):
    if kind not in KINDS:
        raise ValidationError(f"Unknown identifier kind '{kind}'")
    if not isinstance(year, int) or not 1000 <= year <= 9999:
        raise ValidationError(f"Year must be a four-digit integer, got {year!r}")


def format_identifier(kind: str, year: int, sequence: int) -> str:
    _check(kind, year)
    if sequence < 1:
        raise ValidationError("sequence must be >= 1")
    if sequence > MAX_SEQUENCE:
        raise SequenceExhausted(kind, year)
    return f"{kind}{year}{sequence:04d}"


def allocate_identifier(engine: Engine, kind: str, year: int) -> str:
    _check(kind, year)
    with engine.begin() as conn:
        value = conn.execute(_INCREMENT_SQL, {"kind": kind, "year": year}).scalar_one()
    if value > MAX_SEQUENCE:
        logger.error("Identifier sequence %s/%s exhausted", kind, year)
        raise SequenceExhausted(kind, year)
    number = format_identifier(kind, year, value)
    logger.debug("Allocated %s", number)
    return number
