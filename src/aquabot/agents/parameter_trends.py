from __future__ import annotations

from typing import Any, Iterable, Literal, Mapping, Sequence


Trend = Literal["up", "down", "stable"]

TREND_THRESHOLD = 0.05
RECENT_WINDOW = 3

# Parameter key -> (display name, unit, lower is better)
TRACKED_PARAMETERS: dict[str, tuple[str, str, bool]] = {
    "ph": ("pH", "", False),
    "ammonia": ("Ammonia", " ppm", True),
    "nitrite": ("Nitrite", " ppm", True),
    "nitrate": ("Nitrate", " ppm", True),
    "temperature": ("Temp", "°F", False),
    "salinity": ("Salinity", "", False),
}


def calculate_trend(values: Sequence[float], threshold: float = TREND_THRESHOLD) -> Trend:
    """Compare the mean of the last three values with the three before them.

    ``values`` must be chronological (oldest first).
    """
    if len(values) < 2:
        return "stable"

    recent = list(values[-RECENT_WINDOW:])
    older = list(values[-2 * RECENT_WINDOW : -RECENT_WINDOW])
    if not recent or not older:
        return "stable"

    recent_avg = sum(recent) / len(recent)
    older_avg = sum(older) / len(older)
    if older_avg == 0:
        return "up" if recent_avg > 0 else "stable"

    change = (recent_avg - older_avg) / older_avg
    if abs(change) < threshold:
        return "stable"
    return "up" if change > 0 else "down"


def is_good_direction(parameter: str, trend: Trend) -> bool:
    if trend == "stable":
        return True
    _, _, lower_is_better = TRACKED_PARAMETERS.get(parameter, ("", "", False))
    if lower_is_better:
        return trend == "down"
    return trend == "up"


def parameter_series(
    readings: Iterable[Mapping[str, Any]],
    parameter: str,
) -> list[float]:
    """Chronological values for ``parameter`` from newest-first readings."""
    values = [
        float(reading[parameter])
        for reading in readings
        if isinstance(reading.get(parameter), (int, float))
    ]
    values.reverse()
    return values


def analyze_trends(readings: Sequence[Mapping[str, Any]]) -> dict[str, Trend]:
    trends: dict[str, Trend] = {}
    for parameter in TRACKED_PARAMETERS:
        values = parameter_series(readings, parameter)
        if len(values) >= 2:
            trends[parameter] = calculate_trend(values)
    return trends


def worsening_parameters(readings: Sequence[Mapping[str, Any]]) -> list[str]:
    return [
        parameter
        for parameter, trend in analyze_trends(readings).items()
        if not is_good_direction(parameter, trend)
    ]


def format_trend_lines(readings: Sequence[Mapping[str, Any]]) -> list[str]:
    lines: list[str] = []
    for parameter, trend in analyze_trends(readings).items():
        display_name = TRACKED_PARAMETERS[parameter][0]
        note = "" if is_good_direction(parameter, trend) else " (watch this)"
        lines.append(f"- {display_name}: {trend}{note}")
    return lines
