from __future__ import annotations

from .exceptions import InvalidMetricError
from .models import MetricPair, Quantity
from .patterns import match_distance_line, match_duration_line


def normalize_distance(raw: Quantity | str) -> Quantity:
    """Canonical distance: trimmed value, lower-cased unit, one space between them.

    The numeric value is kept verbatim (thousands separators included) so that
    the stored string round-trips with what the page displays."""
    text = str(raw) if isinstance(raw, Quantity) else raw
    parsed = match_distance_line(" ".join(text.split()))
    if parsed is None:
        raise InvalidMetricError(f"not a distance: {text!r}")
    value, unit = parsed
    return Quantity(value=value, unit=unit.lower())


def normalize_duration(raw: str) -> str:
    """Trim the duration and check its shape. Hour digits are never re-padded."""
    duration = raw.strip()
    if match_duration_line(duration) is None:
        raise InvalidMetricError(f"not a duration: {raw!r}")
    return duration


def normalize(pair: MetricPair) -> MetricPair:
    return MetricPair(
        distance=normalize_distance(pair.distance),
        duration=normalize_duration(pair.duration),
    )
