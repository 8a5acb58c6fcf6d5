"""Tank context for the chat system prompt.

Raw rows come from the persistence layer in its own column naming
(``ammonia_ppm``, ``next_due_date``, nested ``species`` and
``maintenance_logs``); ``build_tank_context`` normalises them once so prompt
formatting never has to know about storage details.
"""

from __future__ import annotations

from typing import Any, Mapping

from typing_extensions import NotRequired, TypedDict

from aquabot.agents.parameter_trends import TRACKED_PARAMETERS, format_trend_lines


MAX_PARAMETER_READINGS = 5
MAX_MAINTENANCE_TASKS = 10
MAX_UPCOMING_IN_PROMPT = 5

_PARAMETER_COLUMNS = {
    "ph": "ph",
    "ammonia": "ammonia_ppm",
    "nitrite": "nitrite_ppm",
    "nitrate": "nitrate_ppm",
    "temperature": "temperature_f",
    "salinity": "salinity",
}


class TankInfo(TypedDict):
    id: str
    name: str
    type: str
    volume_gallons: float
    dimensions: NotRequired[str]
    substrate: NotRequired[str]
    setup_date: NotRequired[str]
    notes: NotRequired[str]


class ParameterReading(TypedDict, total=False):
    date: str
    ph: float
    ammonia: float
    nitrite: float
    nitrate: float
    temperature: float
    salinity: float


class LivestockEntry(TypedDict):
    name: str
    species: str | None
    quantity: int
    date_added: str | None


class MaintenanceEntry(TypedDict):
    type: str
    title: str
    next_due: str | None
    last_completed: str | None


class UserProfile(TypedDict):
    skill_level: str
    unit_preference_volume: str
    unit_preference_temp: str


class TankContext(TypedDict):
    tank: TankInfo
    parameters: list[ParameterReading]
    livestock: list[LivestockEntry]
    maintenance: list[MaintenanceEntry]
    user: UserProfile


def build_tank_context(snapshot: Mapping[str, Any] | None) -> TankContext | None:
    if not isinstance(snapshot, Mapping):
        return None
    tank_row = snapshot.get("tank")
    if not isinstance(tank_row, Mapping) or not tank_row.get("id"):
        return None

    return TankContext(
        tank=_normalize_tank(tank_row),
        parameters=_normalize_parameters(snapshot.get("parameters")),
        livestock=_normalize_livestock(snapshot.get("livestock")),
        maintenance=_normalize_maintenance(snapshot.get("maintenance")),
        user=_normalize_user(snapshot.get("user")),
    )


def _normalize_tank(row: Mapping[str, Any]) -> TankInfo:
    tank = TankInfo(
        id=str(row["id"]),
        name=str(row.get("name") or "My Tank"),
        type=str(row.get("type") or "freshwater"),
        volume_gallons=row.get("volume_gallons") or 0,
    )
    length, width, height = (
        row.get("length_inches"),
        row.get("width_inches"),
        row.get("height_inches"),
    )
    if length and width and height:
        tank["dimensions"] = f'{length}" x {width}" x {height}"'
    for key in ("substrate", "setup_date", "notes"):
        if row.get(key):
            tank[key] = str(row[key])
    return tank


def _normalize_parameters(rows: Any) -> list[ParameterReading]:
    if not isinstance(rows, list):
        return []
    dated = [row for row in rows if isinstance(row, Mapping)]
    dated.sort(key=lambda row: str(row.get("measured_at") or ""), reverse=True)

    readings: list[ParameterReading] = []
    for row in dated[:MAX_PARAMETER_READINGS]:
        reading = ParameterReading(date=str(row.get("measured_at") or ""))
        for key, column in _PARAMETER_COLUMNS.items():
            value = row.get(column)
            # Zero is a real reading for ammonia and nitrite; trends need it.
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                reading[key] = value
        readings.append(reading)
    return readings


def _normalize_livestock(rows: Any) -> list[LivestockEntry]:
    if not isinstance(rows, list):
        return []
    entries: list[LivestockEntry] = []
    for row in rows:
        if not isinstance(row, Mapping) or row.get("is_active") is False:
            continue
        species = row.get("species")
        entries.append(
            LivestockEntry(
                name=str(row.get("custom_name") or row.get("nickname") or "Unknown"),
                species=species.get("common_name") if isinstance(species, Mapping) else None,
                quantity=int(row.get("quantity") or 1),
                date_added=row.get("date_added"),
            )
        )
    return entries


def _normalize_maintenance(rows: Any) -> list[MaintenanceEntry]:
    if not isinstance(rows, list):
        return []
    tasks = [row for row in rows if isinstance(row, Mapping) and row.get("is_active") is not False]
    tasks.sort(key=lambda row: (row.get("next_due_date") is None, str(row.get("next_due_date") or "")))

    entries: list[MaintenanceEntry] = []
    for row in tasks[:MAX_MAINTENANCE_TASKS]:
        logs = row.get("maintenance_logs")
        last_completed = None
        if isinstance(logs, list) and logs and isinstance(logs[0], Mapping):
            last_completed = logs[0].get("completed_at") or None
        entries.append(
            MaintenanceEntry(
                type=str(row.get("type") or "custom"),
                title=str(row.get("title") or "Maintenance"),
                next_due=row.get("next_due_date"),
                last_completed=last_completed,
            )
        )
    return entries


def _normalize_user(row: Any) -> UserProfile:
    if not isinstance(row, Mapping):
        row = {}
    return UserProfile(
        skill_level=str(row.get("skill_level") or "beginner"),
        unit_preference_volume=str(row.get("unit_preference_volume") or "gallons"),
        unit_preference_temp=str(row.get("unit_preference_temp") or "fahrenheit"),
    )


def _format_value(key: str, value: float, unit: str, temp_unit: str) -> str:
    if key == "temperature" and temp_unit == "celsius":
        return f"{round((value - 32) * 5 / 9, 1):g}°C"
    return f"{value}{unit}"


def format_context_for_prompt(context: TankContext) -> str:
    tank = context["tank"]
    lines = [
        f"## Tank: {tank['name']}",
        f"- Type: {tank['type']}",
        f"- Volume: {tank['volume_gallons']} gallons",
    ]
    if "dimensions" in tank:
        lines.append(f"- Dimensions: {tank['dimensions']}")
    if "substrate" in tank:
        lines.append(f"- Substrate: {tank['substrate']}")
    if "setup_date" in tank:
        lines.append(f"- Setup Date: {tank['setup_date']}")

    parameters = context["parameters"]
    if parameters:
        latest = parameters[0]
        temp_unit = context["user"]["unit_preference_temp"]
        # Zero values read as "not measured" in the latest-reading line.
        values = [
            f"{display}: {_format_value(key, latest[key], unit, temp_unit)}"  # type: ignore[literal-required]
            for key, (display, unit, _) in TRACKED_PARAMETERS.items()
            if latest.get(key)
        ]
        lines.append("\n## Latest Water Parameters")
        if values:
            lines.append(f"As of {latest.get('date')}: {', '.join(values)}")

        trend_lines = format_trend_lines(parameters)
        if trend_lines:
            lines.append("\n## Parameter Trends")
            lines.extend(trend_lines)

    if context["livestock"]:
        lines.append("\n## Livestock")
        for animal in context["livestock"]:
            species_info = f" ({animal['species']})" if animal["species"] else ""
            lines.append(f"- {animal['quantity']}x {animal['name']}{species_info}")

    upcoming = [task for task in context["maintenance"] if task["next_due"]]
    if upcoming:
        lines.append("\n## Upcoming Maintenance")
        for task in upcoming[:MAX_UPCOMING_IN_PROMPT]:
            lines.append(f"- {task['title']}: due {task['next_due']}")

    user = context["user"]
    lines.append("\n## User Profile")
    lines.append(f"- Skill Level: {user['skill_level']}")
    lines.append(f"- Units: {user['unit_preference_volume']}, {user['unit_preference_temp']}")
    return "\n".join(lines)
