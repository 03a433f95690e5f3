"""
Day planning: order a user's selected items into a one-day schedule.

The model proposes the schedule. A reply is accepted only if it holds one
well-formed slot per selected item; otherwise the items are laid out in
their original order on a fixed cycle of five start times.
"""

import json
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from openai import OpenAIError

from TasteAgent.config import (
    PLAN_PERIODS,
    FALLBACK_START_TIMES,
    FALLBACK_DURATION_MINUTES,
    Settings,
    default_duration
)
from TasteAgent.llm_utils import parse_model_reply, request_completion

logger = logging.getLogger(__name__)


DAY_PLAN_SYSTEM_PROMPT = """You are an expert day planner who creates optimal daily itineraries. Your goal is to create a logical, enjoyable sequence of activities that flows naturally.

SCHEDULING PRINCIPLES:
1. NEVER schedule food items back-to-back (no breakfast→lunch or lunch→dinner without activities between)
2. Consider natural timing: breakfast (8-10am), lunch (12-2pm), dinner (6-8pm)
3. Group activities by location/neighborhood when possible to minimize travel
4. Account for estimated duration and business hours
5. Create natural transitions (e.g., museum→coffee→dinner)
6. Leave buffer time between activities (15-30 minutes)
7. Schedule every selected item exactly once

RESPONSE FORMAT - Return a JSON array with this exact structure:
[
  {
    "timeSlot": "9:00 AM",
    "period": "morning",
    "item": {
      "name": "item name",
      "category": "food|activity|movie|tv_show|artist|book",
      "duration": 90,
      "reasoning": "Why this item fits this time slot"
    }
  }
]

TIME PERIODS: morning (8-11am), late_morning (11am-1pm), afternoon (1-5pm), evening (5-8pm), night (8pm+)"""


@dataclass
class DayPlanResult:
    entries: List[Dict[str, Any]]
    used_fallback: bool
    error: Optional[str] = None

    @property
    def total_duration(self) -> int:
        return sum(entry["item"].get("duration") or FALLBACK_DURATION_MINUTES for entry in self.entries)


def _to_minutes(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        minutes = int(float(value))
    except (TypeError, ValueError):
        return None
    return minutes if minutes > 0 else None


def prepare_items(selected_items: List[Dict]) -> List[Dict[str, Any]]:
    """Planner view of each selected item, with a category-based duration when none is given."""
    prepared = []
    for item in selected_items:
        category = item.get("category")
        if not isinstance(category, str):
            category = None
        prepared.append({
            "name": item.get("name"),
            "category": category,
            "description": item.get("description"),
            "location": item.get("location"),
            "estimatedDuration": _to_minutes(item.get("estimatedDuration")) or default_duration(category),
            "priceRange": item.get("priceRange"),
            "businessHours": item.get("businessHours"),
            "neighborhood": item.get("neighborhood")
        })
    return prepared


def build_plan_prompt(items: List[Dict[str, Any]], city: Optional[str], preferences: Any) -> str:
    blocks = []
    for i, item in enumerate(items, 1):
        lines = [
            f"{i}. {item['name']} ({item['category']})",
            f"   - Description: {item['description'] or 'n/a'}",
            f"   - Duration: ~{item['estimatedDuration']} minutes",
            f"   - Location: {item['location'] or 'n/a'}"
        ]
        if item.get("neighborhood"):
            lines.append(f"   - Neighborhood: {item['neighborhood']}")
        if item.get("businessHours"):
            lines.append(f"   - Hours: {json.dumps(item['businessHours'], default=str)}")
        if item.get("priceRange"):
            lines.append(f"   - Price: {item['priceRange']}")
        blocks.append("\n".join(lines))

    return f"""Plan a day in {city or 'the city'} using these selected items:

{chr(10).join(blocks)}

User preferences: {json.dumps(preferences or {}, default=str)}

Create an optimal day plan that flows naturally, avoids food-after-food scheduling, and considers timing and location logistics."""


def normalize_plan(data: Any, items: List[Dict[str, Any]]) -> Tuple[Optional[List[Dict[str, Any]]], Optional[str]]:
    """
    Validate a decoded model plan against the selected items.

    Returns:
        (entries, None) when the plan is usable, (None, reason) otherwise
    """
    if not isinstance(data, list):
        return None, "plan is not a list"
    if len(data) != len(items):
        return None, f"plan has {len(data)} slots for {len(items)} items"

    durations = {item["name"]: item["estimatedDuration"] for item in items}
    categories = {item["name"]: item["category"] for item in items}

    entries = []
    for index, slot in enumerate(data):
        if not isinstance(slot, dict):
            return None, f"slot {index} is not an object"

        time_slot = slot.get("timeSlot")
        period = slot.get("period")
        item = slot.get("item")

        if not isinstance(time_slot, str) or not time_slot.strip():
            return None, f"slot {index} has no timeSlot"
        if period not in PLAN_PERIODS:
            return None, f"slot {index} has invalid period {period!r}"
        if not isinstance(item, dict) or not isinstance(item.get("name"), str) or not item["name"]:
            return None, f"slot {index} has no item name"

        name = item["name"]
        reasoning = item.get("reasoning")
        entries.append({
            "timeSlot": time_slot.strip(),
            "period": period,
            "item": {
                "name": name,
                "category": item.get("category") or categories.get(name),
                "duration": _to_minutes(item.get("duration")) or durations.get(name) or FALLBACK_DURATION_MINUTES,
                "reasoning": reasoning if isinstance(reasoning, str) else ""
            }
        })

    planned = Counter(entry["item"]["name"] for entry in entries)
    selected = Counter(item["name"] for item in items)
    if planned != selected:
        missing = sorted((selected - planned).elements())
        unknown = sorted((planned - selected).elements())
        return None, f"plan does not schedule each item once (missing {missing}, unexpected {unknown})"

    return entries, None


def fallback_plan(selected_items: List[Dict]) -> List[Dict[str, Any]]:
    """Sequential plan: original order on the fixed start-time and period cycle."""
    plan = []
    for index, item in enumerate(selected_items):
        slot = index % len(FALLBACK_START_TIMES)
        plan.append({
            "timeSlot": FALLBACK_START_TIMES[slot],
            "period": PLAN_PERIODS[slot],
            "item": {
                "name": item.get("name"),
                "category": item.get("category"),
                "duration": _to_minutes(item.get("estimatedDuration")) or FALLBACK_DURATION_MINUTES,
                "reasoning": f"Scheduled item {index + 1}"
            }
        })
    return plan


def find_adjacent_food(plan: List[Dict[str, Any]]) -> List[Tuple[int, int]]:
    """Index pairs of consecutive slots that are both food."""
    pairs = []
    for i in range(len(plan) - 1):
        current = (plan[i].get("item") or {}).get("category")
        following = (plan[i + 1].get("item") or {}).get("category")
        if current == "food" and following == "food":
            pairs.append((i, i + 1))
    return pairs


def plan_day(
    selected_items: List[Dict],
    city: Optional[str],
    preferences: Any,
    llm_client,
    settings: Settings
) -> DayPlanResult:
    """
    Build a day plan for the selected items.

    Never raises for model problems: a failed call or an unusable reply
    yields the fallback plan, so the result always has one slot per item.
    """
    items = prepare_items(selected_items)
    messages = [
        {"role": "system", "content": DAY_PLAN_SYSTEM_PROMPT},
        {"role": "user", "content": build_plan_prompt(items, city, preferences)}
    ]

    try:
        content = request_completion(llm_client, settings, "day_planning", messages)
    except OpenAIError as e:
        logger.error(f"Day plan completion failed, using fallback plan: {e}")
        return DayPlanResult(entries=fallback_plan(selected_items), used_fallback=True, error=str(e))

    reply = parse_model_reply(content, expected=list)
    if not reply.ok:
        logger.error(f"Failed to parse day plan response, using fallback plan: {reply.error}")
        return DayPlanResult(entries=fallback_plan(selected_items), used_fallback=True, error=reply.error)

    entries, problem = normalize_plan(reply.data, items)
    if entries is None:
        logger.error(f"Day plan response rejected, using fallback plan: {problem}")
        return DayPlanResult(entries=fallback_plan(selected_items), used_fallback=True, error=problem)

    adjacent = find_adjacent_food(entries)
    if adjacent:
        logger.warning(f"Day plan schedules food back-to-back at slots {adjacent}")

    logger.info(f"Generated day plan with {len(entries)} scheduled items")
    return DayPlanResult(entries=entries, used_fallback=False)
