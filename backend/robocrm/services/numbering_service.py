# Overview: Contract number generation (mask-driven and sequential-suffix strategies).

from __future__ import annotations

import re
from typing import Iterable, Optional

from ..extensions import db
from ..models import Contract
from ..time_utils import today


SEQUENCE_TOKEN = "{NNN}"
YEAR_TOKEN = "{YYYY}"
MASK_PAD = 3

SEQUENTIAL_PREFIX = "CON-"
SEQUENTIAL_PAD = 5

_TRAILING_DIGITS = re.compile(r"(\d+)$")


class NumberingError(ValueError):
    pass


def next_sequence_value(candidates: Iterable[str], prefix: str, pad: int, suffix: str = "") -> str:
    """
    Max of the digit runs found between prefix and suffix, plus one,
    left-padded to `pad` and re-embedded. Non-matching candidates are ignored.
    """
    pattern = re.compile("^" + re.escape(prefix) + r"(\d+)" + re.escape(suffix) + "$")
    highest = 0
    for value in candidates:
        if not value:
            continue
        m = pattern.match(value)
        if m:
            highest = max(highest, int(m.group(1)))
    return f"{prefix}{highest + 1:0{pad}d}{suffix}"


def render_mask(mask: str, year: int) -> tuple[str, str]:
    """Split a mask around {NNN} after substituting {YYYY}. Returns (prefix, suffix)."""
    if mask.count(SEQUENCE_TOKEN) != 1:
        raise NumberingError("contract number mask must contain {NNN} exactly once")
    rendered = mask.replace(YEAR_TOKEN, f"{year:04d}")
    prefix, suffix = rendered.split(SEQUENCE_TOKEN)
    return prefix, suffix


def next_masked_number(existing: Iterable[str], mask: str, year: int) -> str:
    prefix, suffix = render_mask(mask, year)
    return next_sequence_value(existing, prefix, MASK_PAD, suffix)


def next_sequential_number(latest: Optional[str]) -> str:
    """
    CON-<trailing digits + 1> padded to 5 digits. Only the most recent number
    is consulted; CON-00001 when there is none or it carries no digits.
    """
    if latest:
        m = _TRAILING_DIGITS.search(latest)
        if m:
            return f"{SEQUENTIAL_PREFIX}{int(m.group(1)) + 1:0{SEQUENTIAL_PAD}d}"
    return f"{SEQUENTIAL_PREFIX}{1:0{SEQUENTIAL_PAD}d}"


# --- DB-backed wrappers ------------------------------------------------------

def generate_masked_contract_number(mask: str, year: Optional[int] = None) -> str:
    year = year or today().year
    prefix, _ = render_mask(mask, year)
    rows = (
        db.session.query(Contract.contract_number)
        .filter(Contract.contract_number.like(f"{prefix}%"))
        .all()
    )
    return next_masked_number((r[0] for r in rows), mask, year)


def generate_sequential_contract_number() -> str:
    latest = (
        db.session.query(Contract.contract_number)
        .order_by(Contract.created_at.desc(), Contract.id.desc())
        .limit(1)
        .scalar()
    )
    return next_sequential_number(latest)
