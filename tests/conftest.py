"""Shared fixtures for engagement plan service tests.

Sets environment defaults before the API module builds its graph.
"""

import os

import pytest

os.environ.setdefault("ENGAGEMENT_THRESHOLD_SEVERITY", "warning")
os.environ.setdefault("LOG_LEVEL", "WARNING")


@pytest.fixture
def scenario_protocol() -> dict:
    """One phase, one supplement."""
    return {
        "supplements": [{"name": "Vitamin D3", "start_week": 1}],
        "phases": [
            {"name": "Foundation", "start_week": 1, "duration_weeks": 4, "goal": "Stabilize energy"},
        ],
    }


@pytest.fixture
def rich_protocol() -> dict:
    """Three phases with clinic treatments, retests and every safety constraint type."""
    return {
        "supplements": [
            {"name": "Vitamin D3", "start_week": 1, "dosage": "5000 IU daily"},
            {"name": "Magnesium Glycinate", "start_week": 1, "dosage": "400 mg at night"},
            {"name": "Omega-3", "start_week": 5},
            {"name": "CoQ10", "start_week": 9},
            {"name": "Milk Thistle", "start_week": 20},
        ],
        "clinic_treatments": [
            {"name": "IV Glutathione", "start_week": 5, "frequency": "2x per week", "indication": "Detox support"},
            {"name": "Infrared Sauna"},
        ],
        "lifestyle_protocols": [{"name": "Hydration protocol"}, "Sleep optimization"],
        "retest_schedule": [
            {"name": "Comprehensive metabolic panel", "timing": "Week 12", "purpose": "Track liver markers"},
            {"test": "Vitamin D level"},
        ],
        "safety_constraints": [
            {"type": "absolute_contraindication", "constraint": "STOP if oxygen saturation drops below 92%"},
            {"type": "hold_condition", "constraint": "HOLD and contact clinic when fever > 38.5"},
            {"type": "warning_sign", "constraint": "Persistent headache"},
            {"type": "monitoring_requirement", "constraint": "Weekly blood pressure log"},
            {"type": "precaution", "constraint": "Take with food"},
        ],
        "phases": [
            {
                "name": "Foundation",
                "start_week": 1,
                "duration_weeks": 4,
                "goal": "Stabilize energy",
                "readiness_criteria": ["Energy stable for two consecutive weeks"],
            },
            {"name": "Expansion", "start_week": 5, "duration_weeks": 4, "goal": "Support detox pathways"},
            {"name": "Optimization", "start_week": 9, "duration_weeks": 4},
        ],
    }


@pytest.fixture
def empty_protocol() -> dict:
    return {}
