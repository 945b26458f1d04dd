"""Validation rules for partial snapshot writes.

Plausibility ranges for every writable metric, checked before any platform
record is built. Returns a list of ValidationError; empty list means valid.
A rejected write is reported to the caller as `False`, never raised.
"""

import math
from dataclasses import dataclass
from typing import Any


@dataclass
class ValidationError:
    field: str
    rule: str
    reason: str
    value: Any


# (low, high) inclusive plausibility bounds in snapshot display units
_RANGES: dict[str, tuple[float, float, str]] = {
    "steps": (0, 200_000, "steps_out_of_range"),
    "heart_rate": (20, 300, "heart_rate_out_of_range"),
    "distance": (0, 1_000, "distance_out_of_range"),
    "weight": (1, 700, "weight_out_of_range"),
    "height": (30, 300, "height_out_of_range"),
    "body_temperature": (25, 45, "body_temperature_out_of_range"),
    "hydration": (0, 20_000, "hydration_out_of_range"),
}
_SYSTOLIC_RANGE = (40, 300)
_DIASTOLIC_RANGE = (20, 200)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_health_write(record: dict[str, Any]) -> list[ValidationError]:
    """Validate the present fields of a partial snapshot before writing.

    Returns an empty list if valid; otherwise returns all violations.
    """
    errors: list[ValidationError] = []
    present = {k: v for k, v in record.items() if v is not None}

    # Rule 1: Something to write
    if not present:
        errors.append(ValidationError("(root)", "required", "empty_write", None))
        return errors

    # Rule 2: Finite numbers only
    # Rule 3: Per-metric plausibility range
    for field_name, (low, high, reason) in _RANGES.items():
        value = present.get(field_name)
        if value is None:
            continue
        if not _is_number(value) or not math.isfinite(value):
            errors.append(ValidationError(field_name, "finite", "non_finite_value", value))
            continue
        if value < low or value > high:
            errors.append(ValidationError(field_name, "range", reason, value))

    # Rule 4: Blood pressure components in range
    bp = present.get("blood_pressure")
    if bp is not None:
        systolic = bp.get("systolic") if isinstance(bp, dict) else getattr(bp, "systolic", None)
        diastolic = bp.get("diastolic") if isinstance(bp, dict) else getattr(bp, "diastolic", None)
        for name, value, (low, high) in (
            ("systolic", systolic, _SYSTOLIC_RANGE),
            ("diastolic", diastolic, _DIASTOLIC_RANGE),
        ):
            if not _is_number(value) or not math.isfinite(value):
                errors.append(
                    ValidationError(f"blood_pressure.{name}", "finite", "non_finite_value", value)
                )
            elif value < low or value > high:
                errors.append(
                    ValidationError(
                        f"blood_pressure.{name}", "range", "blood_pressure_out_of_range", value
                    )
                )

        # Rule 5: Systolic above diastolic
        if (
            _is_number(systolic)
            and _is_number(diastolic)
            and math.isfinite(systolic)
            and math.isfinite(diastolic)
            and systolic <= diastolic
        ):
            errors.append(
                ValidationError(
                    "blood_pressure",
                    "ordering",
                    "blood_pressure_order_invalid",
                    {"systolic": systolic, "diastolic": diastolic},
                )
            )

    return errors
