"""
Préparation des données de charts: filtres temporels, brush domain,
filtre devise et formatage des valeurs / dates pour l'affichage.
"""
from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from api.exceptions import ValidationException

logger = logging.getLogger(__name__)

TIME_FILTERS = ("D", "W", "M", "Q", "Y", "ALL")

_ISO_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_US_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})")
_MONTH_YEAR_RE = re.compile(r"^([A-Za-z]+)\s+(\d{4})$")
_QUARTER_RE = re.compile(r"^Q([1-4])\s+(\d{4})$")
_YEAR_RE = re.compile(r"^\d{4}$")


def _naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_date(value: Any) -> Optional[datetime]:
    """
    Parse une date dans les formats rencontrés dans les résultats de requêtes.

    Formats: datetime/date, ISO (2024-01-31, 2024-01-31T00:00:00Z), US (01/31/2024),
    mois-année (Jan 2024, January 2024), trimestre (Q1 2024), année (2024),
    timestamp en millisecondes. Retourne None si illisible.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    try:
        if _ISO_RE.match(text):
            return _naive_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
        match = _US_RE.match(text)
        if match:
            month, day, year = (int(g) for g in match.groups())
            return datetime(year, month, day)
        match = _MONTH_YEAR_RE.match(text)
        if match:
            month_name, year = match.groups()
            for fmt in ("%b %Y", "%B %Y"):
                try:
                    return datetime.strptime(f"{month_name} {year}", fmt)
                except ValueError:
                    continue
            return None
        match = _QUARTER_RE.match(text)
        if match:
            quarter, year = int(match.group(1)), int(match.group(2))
            return datetime(year, (quarter - 1) * 3 + 1, 1)
        if _YEAR_RE.match(text):
            return datetime(int(text), 1, 1)
    except ValueError:
        logger.debug(f"Unparseable date: {value!r}")
    return None


def get_cutoff_date(time_filter: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Date de coupure pour un filtre temporel (None pour ALL)."""
    now = now or _naive_utc(datetime.now(timezone.utc))
    if time_filter == "ALL":
        return None
    if time_filter == "D":
        return now - timedelta(days=1)
    if time_filter == "W":
        return now - timedelta(days=7)
    offsets = {"M": pd.DateOffset(months=1), "Q": pd.DateOffset(months=3), "Y": pd.DateOffset(years=1)}
    if time_filter not in offsets:
        raise ValidationException("time_filter", f"must be one of {', '.join(TIME_FILTERS)}", time_filter)
    return (pd.Timestamp(now) - offsets[time_filter]).to_pydatetime()


def filter_by_time(
    rows: Iterable[Dict[str, Any]],
    time_filter: str,
    date_field: str = "date",
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Garde les lignes postérieures à la coupure; les dates illisibles sont conservées."""
    rows = list(rows)
    cutoff = get_cutoff_date(time_filter, now)
    if cutoff is None:
        return rows
    kept = []
    for row in rows:
        parsed = parse_date(row.get(date_field))
        if parsed is None or parsed >= cutoff:
            kept.append(row)
    return kept


def filter_by_brush(
    rows: Iterable[Dict[str, Any]],
    start: Any = None,
    end: Any = None,
    date_field: str = "date",
) -> List[Dict[str, Any]]:
    """Brush domain: sous-intervalle [start, end] inclusif, bornes optionnelles."""
    rows = list(rows)
    start_dt = parse_date(start) if start is not None else None
    end_dt = parse_date(end) if end is not None else None
    if start is not None and start_dt is None:
        raise ValidationException("start", "unparseable date", start)
    if end is not None and end_dt is None:
        raise ValidationException("end", "unparseable date", end)
    if start_dt and end_dt and start_dt > end_dt:
        raise ValidationException("start", "start must be before end", {"start": start, "end": end})

    kept = []
    for row in rows:
        parsed = parse_date(row.get(date_field))
        if parsed is None:
            continue
        if start_dt and parsed < start_dt:
            continue
        if end_dt and parsed > end_dt:
            continue
        kept.append(row)
    return kept


def filter_by_currency(rows: Iterable[Dict[str, Any]], currency: Optional[str]) -> List[Dict[str, Any]]:
    rows = list(rows)
    if not currency or currency.upper() == "ALL":
        return rows
    wanted = currency.upper()
    return [row for row in rows if str(row.get("currency") or "").upper() == wanted]


# ── Formatage ─────────────────────────────────────────────────────────

def _scaled(value: float, decimals: int) -> Optional[str]:
    abs_value = abs(value)
    sign = "-" if value < 0 else ""
    for threshold, suffix in ((1e9, "B"), (1e6, "M"), (1e3, "K")):
        if abs_value >= threshold:
            return f"{sign}{abs_value / threshold:.{decimals}f}{suffix}"
    return None


def format_volume(value: Optional[float]) -> str:
    """$1.2B / $3.4M / $5.6K, sinon $12.34"""
    value = float(value or 0)
    scaled = _scaled(value, 1)
    if scaled is None:
        return f"${value:.2f}"
    return f"-${scaled[1:]}" if scaled.startswith("-") else f"${scaled}"


def format_number(value: Optional[float]) -> str:
    value = float(value or 0)
    scaled = _scaled(value, 2)
    return scaled if scaled is not None else f"{value:,.0f}"


def format_percentage(value: Optional[float], decimals: int = 2) -> str:
    return f"{float(value or 0):.{decimals}f}%"


def format_value(value: Optional[float], unit: Optional[str] = None) -> str:
    """Valeur avec échelle (2 décimales) et unité préfixe ($) ou suffixe (%, SOL)."""
    value = float(value or 0)
    formatted = _scaled(value, 2) or f"{value:.2f}"
    if not unit:
        return formatted
    if unit in ("%", "SOL"):
        return f"{formatted} {unit}"
    return f"{unit}{formatted}"


def format_field_name(name: str) -> str:
    """snake_case / kebab-case -> 'Title Case'"""
    words = re.split(r"[_\-\s]+", name or "")
    return " ".join(w[:1].upper() + w[1:].lower() for w in words if w)


def format_display_date(value: Any, time_filter: str = "M") -> str:
    """Libellé d'axe: Q -> 'Q1 2024', M -> 'Jan 2024', Y -> '2024', W/D -> 'Jan 5'."""
    parsed = parse_date(value)
    if parsed is None:
        return str(value)
    if time_filter == "Q":
        return f"Q{(parsed.month - 1) // 3 + 1} {parsed.year}"
    if time_filter == "M":
        return parsed.strftime("%b %Y")
    if time_filter == "Y":
        return str(parsed.year)
    return f"{parsed.strftime('%b')} {parsed.day}"
