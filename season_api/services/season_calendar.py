"""Season calendar loading.

The calendar for a year is a static ``SAISON <year>.csv`` file, semicolon
separated, with a header row and six columns::

    start;end;period type;season;min stay;comment
    01/07/2026;31/08/2026;Semaine;Haute Saison;2 nuits;Vacances d'été

Dates are kept as ``dd/MM/yyyy`` strings on the parsed periods and only
converted to ISO when items are built for a submission.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from urllib.parse import quote

import httpx
from dateutil.easter import easter

from season_api.core.config import Settings, get_settings
from season_api.core.errors import SeasonCalendarNotFound
from season_api.schemas.season import (
    CsvParseError,
    PeriodInput,
    SeasonCounts,
    SeasonPeriod,
    SeasonPricingItem,
)

logger = logging.getLogger(__name__)

CSV_DELIMITER = ";"
CSV_COLUMNS = 6
DMY_FORMAT = "%d/%m/%Y"

EASTER_PERIOD_TYPE = "Week-end Pâques"
EASTER_SEASON = "TRÈS HAUTE SAISON"
EASTER_MIN_STAY = "3 nuits"

_EASTER_PATTERN = re.compile(r"pâques|paques", re.IGNORECASE)
_DIGITS = re.compile(r"\d+")


@dataclass
class SeasonCalendarParse:
    periods: list[SeasonPeriod] = field(default_factory=list)
    errors: list[CsvParseError] = field(default_factory=list)


def dmy_to_iso(dmy: str) -> str:
    dd, mm, yyyy = dmy.strip().split("/")
    return f"{yyyy}-{mm.zfill(2)}-{dd.zfill(2)}"


def iso_to_dmy(iso: str) -> str:
    yyyy, mm, dd = iso.strip().split("-")
    return f"{dd.zfill(2)}/{mm.zfill(2)}/{yyyy}"


def dmy_to_date(dmy: str) -> date:
    return datetime.strptime(dmy.strip(), DMY_FORMAT).date()


def date_to_dmy(value: date) -> str:
    return value.strftime(DMY_FORMAT)


def extract_min_stay(min_stay_text: str) -> int | None:
    match = _DIGITS.search(min_stay_text or "")
    return int(match.group(0)) if match else None


def parse_season_csv(text: str) -> SeasonCalendarParse:
    """Parse the raw file into periods, collecting rejected rows as errors."""
    result = SeasonCalendarParse()
    lines = text.strip().splitlines()

    # line 1 is the header
    for line_number, line in enumerate(lines[1:], start=2):
        if not line.strip():
            continue

        parts = line.split(CSV_DELIMITER)
        if len(parts) < CSV_COLUMNS:
            result.errors.append(
                CsvParseError(
                    line=line_number,
                    raw=line,
                    reason=f"expected {CSV_COLUMNS} fields, got {len(parts)}",
                )
            )
            continue

        start, end, period_type, season, min_stay_text, comment = (
            part.strip() for part in parts[:CSV_COLUMNS]
        )
        try:
            start_date = dmy_to_date(start)
            end_date = dmy_to_date(end)
        except ValueError:
            result.errors.append(
                CsvParseError(line=line_number, raw=line, reason="invalid dd/MM/yyyy date")
            )
            continue
        if end_date < start_date:
            result.errors.append(
                CsvParseError(line=line_number, raw=line, reason="end date before start date")
            )
            continue

        result.periods.append(
            SeasonPeriod(
                start_date=start,
                end_date=end,
                period_type=period_type,
                season_label=season,
                min_stay_text=min_stay_text,
                comment=comment,
            )
        )

    if result.errors:
        logger.warning("Season calendar: %d row(s) rejected", len(result.errors))
    return result


def easter_weekend(year: int) -> tuple[date, date]:
    """Good Friday through Easter Monday."""
    sunday = easter(year)
    return sunday - timedelta(days=2), sunday + timedelta(days=1)


def _with_note(comment: str, note: str) -> str:
    return f"{comment} • {note}" if comment else note


def adjust_easter_weekend(periods: list[SeasonPeriod], year: int) -> list[SeasonPeriod]:
    """Carve the Easter weekend out as its own very-high-season period.

    The period mentioning Easter (or, failing that, the first one overlapping
    the weekend) is replaced by up to three contiguous segments. When nothing
    overlaps, the Easter period is simply added.
    """
    easter_start, easter_end = easter_weekend(year)
    patched = list(periods)

    idx = next(
        (
            i
            for i, p in enumerate(patched)
            if _EASTER_PATTERN.search(f"{p.period_type} {p.comment}")
        ),
        None,
    )
    if idx is None:
        idx = next(
            (
                i
                for i, p in enumerate(patched)
                if dmy_to_date(p.start_date) <= easter_end
                and dmy_to_date(p.end_date) >= easter_start
            ),
            None,
        )

    note = (
        f"Corrigé Pâques {year} "
        f"({easter_start:%d/%m} → {easter_end:%d/%m}, min {extract_min_stay(EASTER_MIN_STAY)} nuits)"
    )

    if idx is None:
        patched.append(
            SeasonPeriod(
                start_date=date_to_dmy(easter_start),
                end_date=date_to_dmy(easter_end),
                period_type=EASTER_PERIOD_TYPE,
                season_label=EASTER_SEASON,
                min_stay_text=EASTER_MIN_STAY,
                comment="Ajout automatique selon dates officielles",
            )
        )
    else:
        original = patched.pop(idx)
        start = dmy_to_date(original.start_date)
        end = dmy_to_date(original.end_date)

        if start < easter_start:
            patched.append(
                original.model_copy(
                    update={
                        "end_date": date_to_dmy(easter_start - timedelta(days=1)),
                        "comment": _with_note(original.comment, "segment avant Pâques"),
                    }
                )
            )
        patched.append(
            SeasonPeriod(
                start_date=date_to_dmy(easter_start),
                end_date=date_to_dmy(easter_end),
                period_type=EASTER_PERIOD_TYPE,
                season_label=EASTER_SEASON,
                min_stay_text=EASTER_MIN_STAY,
                comment=_with_note(original.comment, note),
            )
        )
        if end > easter_end:
            patched.append(
                original.model_copy(
                    update={
                        "start_date": date_to_dmy(easter_end + timedelta(days=1)),
                        "comment": _with_note(original.comment, "segment après Pâques"),
                    }
                )
            )

    patched.sort(key=lambda p: dmy_to_date(p.start_date))
    return patched


def count_seasons(periods: list[SeasonPeriod]) -> SeasonCounts:
    counts = SeasonCounts()
    for period in periods:
        label = period.season_label.lower()
        if "très" in label or "tres" in label:
            counts.tres_haute += 1
        elif "haute" in label:
            counts.haute += 1
        elif "moyenne" in label:
            counts.moyenne += 1
        elif "basse" in label:
            counts.basse += 1
    return counts


def season_file_name(year: int) -> str:
    return f"SAISON {year}.csv"


async def fetch_season_csv(year: int, settings: Settings | None = None) -> str:
    """Read the season file from the local directory or the static asset host."""
    settings = settings or get_settings()
    file_name = season_file_name(year)

    if settings.season_csv_dir:
        path = Path(settings.season_csv_dir) / file_name
        if not path.is_file():
            raise SeasonCalendarNotFound(f"No season calendar for {year}.")
        return path.read_text(encoding="utf-8-sig")

    if not settings.season_csv_base_url:
        raise SeasonCalendarNotFound("No season calendar source is configured.")

    url = f"{settings.season_csv_base_url.rstrip('/')}/{quote(file_name)}"
    async with httpx.AsyncClient(timeout=httpx.Timeout(15.0)) as client:
        response = await client.get(url, headers={"Cache-Control": "no-store"})
    if response.status_code == 404:
        raise SeasonCalendarNotFound(f"No season calendar for {year}.")
    response.raise_for_status()
    return response.content.decode("utf-8-sig")


async def load_season_calendar(
    year: int,
    *,
    adjust_easter: bool = True,
    settings: Settings | None = None,
) -> SeasonCalendarParse:
    text = await fetch_season_csv(year, settings)
    parsed = parse_season_csv(text)
    if adjust_easter:
        parsed.periods = adjust_easter_weekend(parsed.periods, year)
    logger.info("Loaded %d season periods for %s", len(parsed.periods), year)
    return parsed


def build_items(
    periods: list[SeasonPeriod],
    inputs: dict[int, PeriodInput] | None = None,
) -> list[SeasonPricingItem]:
    """Merge owner inputs into the calendar, converting dates to ISO."""
    inputs = inputs or {}
    items: list[SeasonPricingItem] = []
    for idx, period in enumerate(periods):
        entered = inputs.get(idx) or PeriodInput()
        min_stay = entered.min_stay
        if min_stay is None:
            min_stay = extract_min_stay(period.min_stay_text)
        items.append(
            SeasonPricingItem(
                start_date=dmy_to_iso(period.start_date),
                end_date=dmy_to_iso(period.end_date),
                period_type=period.period_type,
                season=period.season_label,
                price=entered.price,
                min_stay=min_stay,
                comment=period.comment,
                closed=entered.closed,
                closed_on_arrival=entered.closed_on_arrival,
                closed_on_departure=entered.closed_on_departure,
            )
        )
    return items
