"""
Suggested nightly prices for the season calendar.

    suggested = round(standard × season multiplier × (1 + boost))

then clamped to the owner's minimum / maximum when those are set. Arithmetic
is done in Decimal so that halves round up the same way on every platform.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from season_api.schemas.season import SeasonPeriod

WEEKEND_BOOST = Decimal("0.08")
HOLIDAY_BOOST = Decimal("0.04")

# Checked in order: "très haute" must win over its "haute" substring.
SEASON_MULTIPLIERS: tuple[tuple[tuple[str, ...], Decimal], ...] = (
    (("très haute", "tres haute"), Decimal("1.20")),
    (("haute",), Decimal("1.10")),
    (("moyenne",), Decimal("1.00")),
    (("basse",), Decimal("0.90")),
)
DEFAULT_MULTIPLIER = Decimal("1.00")


def _normalize(value: str | None) -> str:
    return (value or "").lower()


def season_multiplier(season_label: str | None) -> Decimal:
    label = _normalize(season_label)
    for needles, multiplier in SEASON_MULTIPLIERS:
        if any(needle in label for needle in needles):
            return multiplier
    return DEFAULT_MULTIPLIER


def extra_boost(period_type: str | None, comment: str | None) -> Decimal:
    p = _normalize(period_type)
    c = _normalize(comment)
    boost = Decimal("0")
    if "week-end" in p or "weekend" in p:
        boost += WEEKEND_BOOST
    # trailing space in "zone " is intentional
    if "vacances" in c or "zone " in c:
        boost += HOLIDAY_BOOST
    return 1 + boost


def _positive(value: float | None) -> Decimal | None:
    if value is None or value <= 0:
        return None
    return Decimal(str(value))


def _as_number(value: Decimal) -> int | float:
    return int(value) if value == value.to_integral_value() else float(value)


def suggest_price(
    period: SeasonPeriod,
    base_min: float | None,
    base_standard: float | None,
    base_max: float | None = None,
) -> int | float | None:
    """Return the suggested price for a period, or None without a standard price."""
    if base_standard is None or base_standard <= 0:
        return None

    multiplier = season_multiplier(period.season_label) * extra_boost(
        period.period_type, period.comment
    )
    price = (Decimal(str(base_standard)) * multiplier).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )

    lower = _positive(base_min)
    upper = _positive(base_max)
    if lower is not None:
        price = max(price, lower)
    if upper is not None:
        price = min(price, upper)
    return _as_number(price)


def suggest_prices(
    periods: list[SeasonPeriod],
    base_min: float | None,
    base_standard: float | None,
    base_max: float | None = None,
) -> list[int | float | None]:
    return [suggest_price(p, base_min, base_standard, base_max) for p in periods]
