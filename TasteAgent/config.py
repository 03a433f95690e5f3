"""
Configuration file for Taste Agent
Contains API settings, timeouts, recommendation category queries and
day planning constants
"""

import os
from dataclasses import dataclass
from typing import Dict, Any, List, Optional
from dotenv import load_dotenv

from TasteAgent.errors import ConfigurationError

# Load environment variables
load_dotenv()

# API Configuration
OPENAI_MODEL = "gpt-4o-mini"
QLOO_BASE_URL = "https://hackathon.api.qloo.com"
QLOO_INSIGHTS_PATH = "/v2/insights"

# Request timeouts (seconds). Model calls are observably slower.
TIMEOUTS = {
    "openai": 45,
    "default": 30
}

# Completion settings per operation
COMPLETION_SETTINGS = {
    "seed_extraction": {"temperature": 0.3, "max_tokens": 800},
    "ecosystem_analysis": {"temperature": 0.7, "max_tokens": 1500},
    "day_planning": {"temperature": 0.3, "max_tokens": 1200}
}

# Seed categories accepted from the model
SEED_CATEGORIES = ["food", "activity", "media", "general"]
DEFAULT_SEED_CATEGORY = "general"
DEFAULT_SEED_CONFIDENCE = 0.5

# Recommendation categories queried against the Qloo Insights API.
# Keys are the response keys returned to callers.
RECOMMENDATION_CATEGORIES: Dict[str, Dict[str, Any]] = {
    "food": {
        "entity_type": "urn:entity:place",
        "tags": ["urn:tag:genre:place:restaurant", "urn:tag:genre:place:cafe"],
        "limit": 12
    },
    "activities": {
        "entity_type": "urn:entity:place",
        "tags": [
            "urn:tag:category:place:museum",
            "urn:tag:category:place:attraction",
            "urn:tag:category:place:park"
        ],
        "limit": 8
    },
    "movies": {
        "entity_type": "urn:entity:movie",
        "tags": [],
        "limit": 6
    },
    "tv_shows": {
        "entity_type": "urn:entity:tv_show",
        "tags": [],
        "limit": 6
    },
    "music": {
        "entity_type": "urn:entity:artist",
        "tags": [],
        "limit": 6
    },
    "books": {
        "entity_type": "urn:entity:book",
        "tags": [],
        "limit": 6
    }
}

# Food results: names containing any of these (case-insensitive) are dropped
FOOD_NAME_DENYLIST = [
    # Retail stores
    "walmart", "target", "supercenter", "grocery",
    # Gas stations
    "shell", "bp", "gas", "fuel"
]
FOOD_DISPLAY_LIMIT = 8

# Day planning
PLAN_PERIODS = ["morning", "late_morning", "afternoon", "evening", "night"]
FALLBACK_START_TIMES = ["9:00 AM", "11:30 AM", "2:00 PM", "5:00 PM", "7:30 PM"]
FALLBACK_DURATION_MINUTES = 90

# Estimated visit duration (minutes) when an item carries none
DEFAULT_DURATIONS = {
    "food": 90,
    "activity": 120
}
DEFAULT_DURATION_MINUTES = 60

# Ecosystem analysis prompt limits
ECOSYSTEM_LIMITS = {
    "items_per_category": 5,
    "description_chars": 100,
    "connections": 10
}

# Functions exposed by the HTTP adapter
EXPOSED_FUNCTIONS = ["taste", "plan-day", "ecosystem-analysis", "health"]


@dataclass(frozen=True)
class Settings:
    """Process-wide settings, read once from the environment."""
    openai_api_key: Optional[str] = None
    qloo_api_key: Optional[str] = None
    qloo_base_url: str = QLOO_BASE_URL
    openai_model: str = OPENAI_MODEL
    openai_timeout: float = TIMEOUTS["openai"]
    qloo_timeout: float = TIMEOUTS["default"]

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            qloo_api_key=os.getenv("QLOO_API_KEY") or None,
            qloo_base_url=os.getenv("QLOO_BASE_URL", QLOO_BASE_URL).rstrip("/"),
            openai_model=os.getenv("OPENAI_MODEL", OPENAI_MODEL),
            openai_timeout=float(os.getenv("OPENAI_TIMEOUT_SECONDS", TIMEOUTS["openai"])),
            qloo_timeout=float(os.getenv("QLOO_TIMEOUT_SECONDS", TIMEOUTS["default"]))
        )

    @property
    def insights_url(self) -> str:
        return f"{self.qloo_base_url}{QLOO_INSIGHTS_PATH}"

    def require_openai(self) -> None:
        if not self.openai_api_key:
            raise ConfigurationError("OpenAI API key not configured")

    def require_qloo(self) -> None:
        if not self.qloo_api_key:
            raise ConfigurationError("Qloo API key not configured")

    def key_status(self) -> Dict[str, bool]:
        return {
            "openaiKey": bool(self.openai_api_key),
            "qlooKey": bool(self.qloo_api_key)
        }


def default_duration(category: Optional[str]) -> int:
    """Category-based estimated duration in minutes."""
    return DEFAULT_DURATIONS.get(category or "", DEFAULT_DURATION_MINUTES)


def category_names() -> List[str]:
    return list(RECOMMENDATION_CATEGORIES.keys())
