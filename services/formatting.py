"""Date and ordering helpers shared by transforms, forms and templates."""

from __future__ import annotations

from datetime import date, datetime
from typing import Dict, Optional, Tuple


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    text = (value or "").strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(text[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


def format_date(value: Optional[str]) -> str:
    """'1986-01-06' -> '06 Jan 1986'; blank for anything unparseable."""
    parsed = parse_iso_date(value)
    if parsed is None:
        return ""
    return parsed.strftime("%d %b %Y")


def format_long_form_date(value: Optional[str]) -> str:
    """'2026-01-06T10:00:00Z' -> '6 January 2026'."""
    parsed = parse_iso_date(value)
    if parsed is None:
        return ""
    return f"{parsed.day} {parsed.strftime('%B')} {parsed.year}"


def date_string_from_three_fields(day: str, month: str, year: str) -> str:
    return f"{year.strip()}-{month.strip().zfill(2)}-{day.strip().zfill(2)}"


def parse_date_parts(value: Optional[str]) -> Dict[str, str]:
    parsed = parse_iso_date(value)
    if parsed is None:
        return {"day": "", "month": "", "year": ""}
    return {"day": str(parsed.day), "month": str(parsed.month), "year": str(parsed.year)}


def build_ordering(sort_by: str, sort_order: str) -> str:
    return f"-{sort_by}" if sort_order == "desc" else sort_by


def parse_ordering(raw: Optional[str]) -> Tuple[str, str]:
    text = (raw or "").strip()
    if text.startswith("-"):
        return text[1:], "desc"
    return text, "asc"
