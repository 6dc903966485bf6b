# Overview: Allocation of human-readable sale numbers.

"""
Sale numbers look like SALE-000123.

The sequence lives in its own counter row (SaleSequence) and is advanced with
a single UPDATE, so two requests can never be handed the same value. The row
is created lazily and seeded from the sales already on file, which keeps the
numbering continuous for databases that pre-date the counter.

If the sequential number is already taken (e.g. a sale was written with that
number by hand) or the counter cannot be read, a non-sequential timestamp
number is issued instead: SALE-<last 9 digits of epoch ms>-<3 random digits>.
"""

from __future__ import annotations

import random
import re

from flask import current_app
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from ..extensions import db
from ..models import Sale, SaleSequence
from partspos.time_utils import epoch_millis


SALE_NUMBER_PREFIX = "SALE"
SALE_NUMBER_PAD = 6
SEQUENCE_NAME = "SALE"
FALLBACK_ATTEMPTS = 5

SEQUENTIAL_PATTERN = re.compile(r"^SALE-(\d{6})$")
FALLBACK_PATTERN = re.compile(r"^SALE-\d{9}-\d{3}$")


class SaleNumberError(Exception):
    """Raised when no unique sale number could be produced."""


def format_sale_number(value: int) -> str:
    return f"{SALE_NUMBER_PREFIX}-{value:0{SALE_NUMBER_PAD}d}"


def parse_sale_number(sale_number: str | None) -> int | None:
    """Return the numeric suffix of a sequential sale number, or None."""
    if not sale_number:
        return None
    match = SEQUENTIAL_PATTERN.match(sale_number)
    if not match:
        return None
    return int(match.group(1))


def is_valid_sale_number(sale_number: str) -> bool:
    return bool(SEQUENTIAL_PATTERN.match(sale_number) or FALLBACK_PATTERN.match(sale_number))


def sale_number_exists(sale_number: str) -> bool:
    return db.session.query(Sale.id).filter(Sale.sale_number == sale_number).first() is not None


def _initial_sequence_value() -> int:
    """
    First value for a fresh counter: one past the latest sale's number, or
    the number of existing sales + 1 when that number is not sequential.
    """
    latest = db.session.query(Sale.sale_number).order_by(Sale.id.desc()).first()
    if latest is not None:
        suffix = parse_sale_number(latest[0])
        if suffix is not None:
            return suffix + 1
    count = db.session.query(func.count(Sale.id)).scalar() or 0
    return count + 1


def _advance_counter() -> int | None:
    stmt = (
        update(SaleSequence)
        .where(SaleSequence.name == SEQUENCE_NAME)
        .values(next_number=SaleSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    current = (
        db.session.query(SaleSequence.next_number)
        .filter(SaleSequence.name == SEQUENCE_NAME)
        .scalar()
    )
    return current - 1


def allocate_sequence_value() -> int:
    """
    Atomically take the next counter value.

    Must be the first write of the caller's transaction: on a lost race to
    create the counter row the session is rolled back and the UPDATE replayed.
    """
    value = _advance_counter()
    if value is not None:
        return value

    initial = _initial_sequence_value()
    db.session.add(SaleSequence(name=SEQUENCE_NAME, next_number=initial + 1))
    try:
        db.session.flush()
        return initial
    except IntegrityError:
        db.session.rollback()
        value = _advance_counter()
        if value is None:
            raise
        return value


def fallback_sale_number() -> str:
    """Non-sequential number derived from the clock plus a small random suffix."""
    for _ in range(FALLBACK_ATTEMPTS):
        millis = str(epoch_millis())[-9:]
        candidate = f"{SALE_NUMBER_PREFIX}-{millis}-{random.randint(0, 999):03d}"
        if not sale_number_exists(candidate):
            return candidate
    raise SaleNumberError("Could not generate a unique sale number")


def next_sale_number() -> str:
    """
    Produce a sale number that is unused at the time of the call.

    Call at the start of the sale transaction, before any other write.
    """
    try:
        candidate = format_sale_number(allocate_sequence_value())
        if not sale_number_exists(candidate):
            return candidate
        current_app.logger.warning("Sale number %s already in use, issuing fallback number", candidate)
    except OperationalError:
        # Lock timeouts are retried by the caller (run_with_retry)
        raise
    except SQLAlchemyError:
        # Nothing else has been written in this transaction yet
        db.session.rollback()
        current_app.logger.exception("Sale number counter unavailable, issuing fallback number")

    return fallback_sale_number()
