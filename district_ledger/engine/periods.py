"""Indian financial-year helpers (April → March)."""
from __future__ import annotations

import re
from datetime import date
from typing import Optional

from dateutil.relativedelta import relativedelta

from district_ledger.core.exceptions import ValidationError

MONTHS = [
    "April", "May", "June", "July", "August", "September",
    "October", "November", "December", "January", "February", "March",
]

_FY_RE = re.compile(r"^(\d{4})-(\d{2})$")


def financial_year_for(day: date) -> str:
    """2025-05-10 → "2025-26", 2026-02-01 → "2025-26"."""
    start_year = (day - relativedelta(months=3)).year
    return f"{start_year}-{(start_year + 1) % 100:02d}"


def current_financial_year(today: Optional[date] = None) -> str:
    return financial_year_for(today or date.today())


def validate_financial_year(financial_year: str) -> int:
    """Return the FY's starting calendar year, or raise ValidationError."""
    m = _FY_RE.match(financial_year or "")
    if not m:
        raise ValidationError(f"financial_year must look like 2025-26, got {financial_year!r}")
    start_year = int(m.group(1))
    if (start_year + 1) % 100 != int(m.group(2)):
        raise ValidationError(f"financial_year {financial_year!r} does not span consecutive years")
    return start_year


def validate_month(month: str) -> str:
    if month not in MONTHS:
        raise ValidationError(f"month must be one of {', '.join(MONTHS)}; got {month!r}")
    return month


def period_start(month: str, financial_year: str) -> date:
    """First calendar day of ``month`` inside ``financial_year``."""
    start_year = validate_financial_year(financial_year)
    offset = MONTHS.index(validate_month(month))
    return date(start_year, 4, 1) + relativedelta(months=offset)
