"""
Sample incidents used to seed a fresh demo collection.

Dates are relative to the moment of seeding so the demo always shows
recent activity.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from allertrack.data.schema import Incident

_SEED: List[Dict[str, Any]] = [
    {
        "id": "demo-1",
        "days_ago": 2,
        "severity": "Moderate",
        "symptoms": ["Sneezing", "Runny nose", "Itchy eyes"],
        "foods": ["Peanuts", "Milk"],
        "activities": ["Outdoor walk"],
        "environmental_factors": {
            "weather": "Sunny",
            "location": "Park",
            "stress_level": 3,
            "pollen_count": "High",
        },
        "medications": ["Antihistamine"],
        "duration_minutes": 45,
        "notes": (
            "Had peanut butter sandwich for lunch, then went for a walk in the park. "
            "Symptoms started about 30 minutes after eating."
        ),
    },
    {
        "id": "demo-2",
        "days_ago": 5,
        "severity": "Mild",
        "symptoms": ["Itchy skin", "Mild rash"],
        "foods": ["Shellfish"],
        "activities": ["Dinner at restaurant"],
        "environmental_factors": {"weather": "Cloudy", "location": "Restaurant", "stress_level": 2},
        "medications": [],
        "duration_minutes": 20,
        "notes": "Tried shrimp for the first time at a seafood restaurant. Mild reaction on arms.",
    },
    {
        "id": "demo-3",
        "days_ago": 10,
        "severity": "Severe",
        "symptoms": ["Difficulty breathing", "Swelling", "Hives", "Nausea"],
        "foods": ["Tree nuts", "Almonds"],
        "activities": ["Baking"],
        "environmental_factors": {"weather": "Indoor", "location": "Home kitchen", "stress_level": 1},
        "medications": ["EpiPen", "Emergency room visit"],
        "duration_minutes": 120,
        "notes": (
            "Severe reaction while baking almond cookies. Used EpiPen and went to "
            "emergency room. Full recovery after treatment."
        ),
    },
    {
        "id": "demo-4",
        "days_ago": 15,
        "severity": "Moderate",
        "symptoms": ["Sneezing", "Watery eyes", "Congestion"],
        "foods": [],
        "activities": ["Gardening", "Outdoor activities"],
        "environmental_factors": {
            "weather": "Windy",
            "location": "Garden",
            "stress_level": 2,
            "pollen_count": "Very High",
            "temperature": 75,
            "humidity": 60,
        },
        "medications": ["Nasal spray", "Eye drops"],
        "duration_minutes": 90,
        "notes": (
            "Spring allergies acting up while gardening. High pollen count and "
            "windy conditions made it worse."
        ),
    },
    {
        "id": "demo-5",
        "days_ago": 20,
        "severity": "Mild",
        "symptoms": ["Itchy throat", "Mild cough"],
        "foods": ["Eggs"],
        "activities": ["Breakfast"],
        "environmental_factors": {"weather": "Indoor", "location": "Home", "stress_level": 1},
        "medications": [],
        "duration_minutes": 15,
        "notes": "Mild reaction to scrambled eggs at breakfast. Symptoms resolved quickly.",
    },
]


def initial_demo_incidents(
    owner_id: str = "demo-user",
    now: Optional[datetime] = None,
) -> List[Incident]:
    """Build the seed set, newest first."""
    now = now or datetime.now(timezone.utc)
    incidents = []
    for entry in _SEED:
        data = dict(entry)
        when = now - timedelta(days=data.pop("days_ago"))
        incidents.append(
            Incident(
                owner=owner_id,
                occurred_at=when,
                created_at=when,
                updated_at=when,
                **data,
            )
        )
    return incidents
