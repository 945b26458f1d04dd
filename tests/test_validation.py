"""Parametrized tests for the partial-write validation rules."""

import pytest

from health.domain.validation import validate_health_write


@pytest.mark.parametrize(
    "record, expected_field, expected_reason",
    [
        # Rule 1: Something to write
        ({}, "(root)", "empty_write"),
        ({"steps": None, "weight": None}, "(root)", "empty_write"),
        # Rule 2: Finite numbers only
        ({"heart_rate": float("nan")}, "heart_rate", "non_finite_value"),
        ({"distance": float("inf")}, "distance", "non_finite_value"),
        ({"weight": "70"}, "weight", "non_finite_value"),
        # Rule 3: Per-metric plausibility range
        ({"steps": -1}, "steps", "steps_out_of_range"),
        ({"steps": 200_001}, "steps", "steps_out_of_range"),
        ({"heart_rate": 19}, "heart_rate", "heart_rate_out_of_range"),
        ({"heart_rate": 301}, "heart_rate", "heart_rate_out_of_range"),
        ({"weight": 0}, "weight", "weight_out_of_range"),
        ({"height": 301}, "height", "height_out_of_range"),
        ({"body_temperature": 46}, "body_temperature", "body_temperature_out_of_range"),
        ({"hydration": 20_001}, "hydration", "hydration_out_of_range"),
        # Rule 4: Blood pressure components in range
        (
            {"blood_pressure": {"systolic": 301, "diastolic": 80}},
            "blood_pressure.systolic",
            "blood_pressure_out_of_range",
        ),
        (
            {"blood_pressure": {"systolic": 120, "diastolic": 10}},
            "blood_pressure.diastolic",
            "blood_pressure_out_of_range",
        ),
        # Rule 5: Systolic above diastolic
        (
            {"blood_pressure": {"systolic": 80, "diastolic": 90}},
            "blood_pressure",
            "blood_pressure_order_invalid",
        ),
    ],
    ids=[
        "empty",
        "all_none",
        "nan_heart_rate",
        "inf_distance",
        "string_weight",
        "negative_steps",
        "too_many_steps",
        "heart_rate_low",
        "heart_rate_high",
        "zero_weight",
        "height_high",
        "fever_out_of_range",
        "hydration_high",
        "systolic_high",
        "diastolic_low",
        "bp_inverted",
    ],
)
def test_rule_violation(record, expected_field, expected_reason):
    errors = validate_health_write(record)
    matches = [e for e in errors if e.field == expected_field and e.reason == expected_reason]
    assert matches, f"expected {expected_reason} on {expected_field}, got {errors}"


def test_valid_write_passes():
    errors = validate_health_write(
        {
            "steps": 8000,
            "heart_rate": 72,
            "distance": 5.2,
            "weight": 70.5,
            "height": 175,
            "blood_pressure": {"systolic": 120, "diastolic": 80},
            "body_temperature": 36.8,
            "hydration": 1500,
        }
    )
    assert errors == []


def test_bounds_are_inclusive():
    assert validate_health_write({"steps": 0, "heart_rate": 20, "hydration": 20_000}) == []


def test_all_violations_reported():
    errors = validate_health_write({"steps": -5, "heart_rate": 500})
    assert {e.field for e in errors} == {"steps", "heart_rate"}
