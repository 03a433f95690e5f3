import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, List, Optional, Tuple

import requests

from TasteAgent.config import (
    RECOMMENDATION_CATEGORIES,
    FOOD_NAME_DENYLIST,
    FOOD_DISPLAY_LIMIT,
    Settings
)

# Initialize logger
logger = logging.getLogger(__name__)


def build_insights_params(
    entity_type: str,
    city: str,
    tags: Optional[List[str]] = None,
    search_terms: Optional[List[str]] = None,
    limit: int = 8
) -> List[Tuple[str, str]]:
    """
    Query parameters for the Qloo Insights API.

    Returned as a list of pairs because filter.tags and signal.interests.query
    repeat once per value.
    """
    params = [
        ("filter.type", entity_type),
        ("filter.location.query", city),
        ("limit", str(limit))
    ]

    for tag in tags or []:
        params.append(("filter.tags", tag))

    # Seed search terms as interest signals
    for term in search_terms or []:
        params.append(("signal.interests.query", term))

    return params


def query_insights(
    settings: Settings,
    entity_type: str,
    city: str,
    tags: Optional[List[str]] = None,
    search_terms: Optional[List[str]] = None,
    limit: int = 8
) -> List[Dict]:
    """
    Fetch recommended entities of one type from the Qloo Insights API.
    Returns RAW entity dicts without formatting.

    Args:
        settings: Runtime settings (API key, base URL, timeout)
        entity_type: Entity URN, e.g. "urn:entity:movie"
        city: Free-text location filter
        tags: Tag URNs to filter by (optional)
        search_terms: Interest signals, one query parameter each
        limit: Maximum entities to return

    Returns:
        List of entity dicts. Empty on any HTTP or transport failure.
    """
    params = build_insights_params(entity_type, city, tags, search_terms, limit)
    headers = {"X-Api-Key": settings.qloo_api_key or ""}

    try:
        response = requests.get(
            settings.insights_url,
            headers=headers,
            params=params,
            timeout=settings.qloo_timeout
        )
        response.raise_for_status()
        data = response.json()

        results = data.get("results") if isinstance(data, dict) else None
        entities = results.get("entities") if isinstance(results, dict) else None
        if not isinstance(entities, list):
            entities = []
        print(f"Found {len(entities)} entities for {entity_type}")
        return entities

    except requests.exceptions.HTTPError as e:
        status = getattr(e.response, "status_code", None)
        logger.warning(f"Qloo API call failed for {entity_type}: HTTP {status}")
        return []
    except requests.exceptions.RequestException as e:
        logger.warning(f"Qloo API request error for {entity_type}: {e}")
        return []
    except ValueError as e:
        logger.warning(f"Qloo API returned invalid JSON for {entity_type}: {e}")
        return []


def _entity_key(entity: Dict) -> Optional[str]:
    entity_id = entity.get("entity_id") or entity.get("id")
    if entity_id:
        return f"id:{entity_id}"
    name = entity.get("name")
    if isinstance(name, str) and name.strip():
        return f"name:{name.strip().lower()}"
    return None


def dedupe_entities(entities: List[Dict]) -> List[Dict]:
    """Drop repeated entities (same id, or same name when there is no id), keeping the first."""
    seen = set()
    unique = []
    for entity in entities:
        if not isinstance(entity, dict):
            continue
        key = _entity_key(entity)
        if key is not None and key in seen:
            continue
        if key is not None:
            seen.add(key)
        unique.append(entity)
    return unique


def is_denylisted_food(entity: Dict) -> bool:
    """True for retail stores and gas stations, matched by name substring."""
    name = entity.get("name")
    if not isinstance(name, str):
        return False
    name = name.lower()
    return any(term in name for term in FOOD_NAME_DENYLIST)


def filter_food_results(entities: List[Dict], limit: int = FOOD_DISPLAY_LIMIT) -> List[Dict]:
    """Remove retail/fuel businesses from food results and truncate to the display count."""
    kept = []
    for entity in entities:
        if is_denylisted_food(entity):
            print(f"Filtered non-food place: {entity.get('name')}")
            continue
        kept.append(entity)
    return kept[:limit]


def post_process(category: str, entities: List[Dict], limit: int) -> List[Dict]:
    """Dedupe a category's results, then apply the food filter or the category limit."""
    unique = dedupe_entities(entities)
    if category == "food":
        return filter_food_results(unique)
    return unique[:limit]


def fetch_recommendations(
    settings: Settings,
    search_terms: List[str],
    city: str,
    categories: Optional[Dict[str, Dict[str, Any]]] = None
) -> Dict[str, List[Dict]]:
    """
    Fetch every recommendation category concurrently.

    Uses ThreadPoolExecutor with one worker per category. A failing category
    comes back as an empty list and never affects the others.

    Returns:
        Dict mapping {category: filtered entity list}
    """
    categories = categories or RECOMMENDATION_CATEGORIES
    recommendations: Dict[str, List[Dict]] = {name: [] for name in categories}

    print(f"Fetching {len(categories)} recommendation categories for {city} "
          f"({len(search_terms)} interest signals)")

    with ThreadPoolExecutor(max_workers=max(len(categories), 1)) as executor:
        futures = {
            executor.submit(
                query_insights,
                settings,
                query["entity_type"],
                city,
                query.get("tags", []),
                search_terms,
                query.get("limit", 8)
            ): name
            for name, query in categories.items()
        }

        for future in as_completed(futures):
            name = futures[future]
            try:
                recommendations[name] = post_process(name, future.result(), categories[name].get("limit", 8))
            except Exception as e:
                logger.exception(f"Unexpected error fetching {name}: {e}")
                recommendations[name] = []

    return recommendations
