"""Weekly health report for sharing with a clinician.

Summarizes a WeeklyHealthData series into averages and plain-language
status lines, and renders it as text. Hydration is stored in mL and
reported in liters.
"""

import math
from datetime import UTC, date, datetime

from pydantic import BaseModel

from health.domain.models import HealthMetricKind, WeeklyHealthData

TREND_THRESHOLD = 0.10


class ReportSummary(BaseModel):
    average_steps: float
    average_heart_rate: float
    average_water_intake: float  # liters
    average_temperature: float
    steps_goal_achievement: int  # percent of days at or above goal
    heart_rate_variability: str
    hydration_status: str
    temperature_status: str


class WeeklyReport(BaseModel):
    patient_name: str
    report_date: date
    weekly_data: WeeklyHealthData
    summary: ReportSummary


def _present(values: list[float | None]) -> list[float]:
    return [v for v in values if v is not None]


def weekly_average(values: list[float | None]) -> float:
    """Mean of the present values, rounded to 2 dp. Zero for an empty series."""
    present = _present(values)
    if not present:
        return 0.0
    return round(sum(present) / len(present), 2)


def weekly_trend(values: list[float | None]) -> str:
    """Compare the first and second half of a series: "up", "down" or "stable"."""
    present = _present(values)
    if len(present) < 2:
        return "stable"
    middle = len(present) // 2
    first = sum(present[:middle]) / middle
    second = sum(present[middle:]) / (len(present) - middle)
    if first == 0:
        return "up" if second > 0 else "stable"
    change = (second - first) / first
    if change > TREND_THRESHOLD:
        return "up"
    if change < -TREND_THRESHOLD:
        return "down"
    return "stable"


def goal_achievement(steps: list[float | None], goal: float) -> int:
    present = _present(steps)
    if not present:
        return 0
    return round(100 * sum(1 for s in present if s >= goal) / len(present))


def heart_rate_variability(rates: list[float | None]) -> str:
    present = _present(rates)
    if not present:
        return "No data"
    mean = weekly_average(present)
    deviation = math.sqrt(sum((r - mean) ** 2 for r in present) / len(present))
    if deviation < 5:
        return "Low variability"
    if deviation < 15:
        return "Normal variability"
    return "High variability"


def hydration_status(average_liters: float) -> str:
    if average_liters < 1.5:
        return "Below recommended (needs improvement)"
    if average_liters < 2.5:
        return "Adequate hydration"
    if average_liters < 3.5:
        return "Good hydration"
    return "Excellent hydration"


def temperature_status(average_celsius: float) -> str:
    if average_celsius < 36.1:
        return "Below normal range"
    if average_celsius > 37.2:
        return "Above normal range"
    return "Normal range"


def generate_weekly_report(
    weekly: WeeklyHealthData, patient_name: str, steps_goal: int = 10000
) -> WeeklyReport:
    steps = weekly.values(HealthMetricKind.STEPS)
    rates = weekly.values(HealthMetricKind.HEART_RATE)
    water_liters = [
        v / 1000 if v is not None else None for v in weekly.values(HealthMetricKind.HYDRATION)
    ]
    temperatures = weekly.values(HealthMetricKind.BODY_TEMPERATURE)

    average_water = weekly_average(water_liters)
    average_temperature = weekly_average(temperatures)
    summary = ReportSummary(
        average_steps=weekly_average(steps),
        average_heart_rate=weekly_average(rates),
        average_water_intake=average_water,
        average_temperature=average_temperature,
        steps_goal_achievement=goal_achievement(steps, steps_goal),
        heart_rate_variability=heart_rate_variability(rates),
        hydration_status=hydration_status(average_water),
        temperature_status=temperature_status(average_temperature),
    )
    return WeeklyReport(
        patient_name=patient_name,
        report_date=datetime.now(UTC).date(),
        weekly_data=weekly,
        summary=summary,
    )


def format_health_value(value: float | None, kind: HealthMetricKind) -> str:
    """Display string for one metric value; "--" when nothing was recorded."""
    if value is None or value <= 0:
        return "--"
    if kind == HealthMetricKind.STEPS:
        return f"{round(value):,}"
    if kind == HealthMetricKind.DISTANCE:
        return f"{round(value, 2):g}"
    if kind in (HealthMetricKind.WEIGHT, HealthMetricKind.BODY_TEMPERATURE, HealthMetricKind.SLEEP):
        return f"{round(value, 1):g}"
    return str(round(value))


def format_report_for_doctor(report: WeeklyReport) -> str:
    s = report.summary
    lines = [
        "WEEKLY HEALTH REPORT",
        "",
        f"Patient: {report.patient_name}",
        f"Report Date: {report.report_date.isoformat()}",
        "",
        "SUMMARY:",
        f"- Average Daily Steps: {s.average_steps:,.2f} ({s.steps_goal_achievement}% goal achievement)",
        f"- Average Heart Rate: {s.average_heart_rate:g} bpm ({s.heart_rate_variability})",
        f"- Average Water Intake: {s.average_water_intake:.1f}L ({s.hydration_status})",
        f"- Average Body Temperature: {s.average_temperature:.1f}°C ({s.temperature_status})",
        "",
        "DETAILED DATA:",
        "Daily Breakdown:",
    ]

    series = report.weekly_data.series
    for i, entry in enumerate(series.get(HealthMetricKind.STEPS, [])):

        def at(kind: HealthMetricKind) -> float:
            entries = series.get(kind, [])
            return (entries[i].value or 0) if i < len(entries) else 0

        lines.append(
            f"{entry.day.isoformat()}: {round(at(HealthMetricKind.STEPS)):,} steps, "
            f"{round(at(HealthMetricKind.HEART_RATE))} bpm, "
            f"{at(HealthMetricKind.HYDRATION) / 1000:.1f}L, "
            f"{at(HealthMetricKind.BODY_TEMPERATURE):.1f}°C"
        )

    lines += ["", "This report was automatically generated from the patient's health monitoring app."]
    return "\n".join(lines)
