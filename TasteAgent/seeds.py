"""
Seed extraction: turn a free-text vibe into a handful of typed seeds.

A seed is a short search phrase with a category, a confidence and the
search terms sent to the recommendation service as interest signals. The
same completion also returns advisory vibe context and cultural insights.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from TasteAgent.config import (
    SEED_CATEGORIES,
    DEFAULT_SEED_CATEGORY,
    DEFAULT_SEED_CONFIDENCE,
    Settings
)
from TasteAgent.errors import UpstreamParseError
from TasteAgent.llm_utils import parse_model_reply, request_completion

logger = logging.getLogger(__name__)


SEED_SYSTEM_PROMPT = """You are an advanced cultural taste analyzer that extracts seeds, context, and insights from user vibes for personalized recommendations.

Extract 3-5 taste seeds from the user's vibe description. Each seed should be:
- Specific and actionable (not abstract concepts)
- Suitable for searching recommendation APIs
- Focused on concrete experiences, places, or activities

Return comprehensive cultural intelligence in this EXACT JSON structure:

{
  "seeds": [
    {
      "text": "specific seed phrase",
      "category": "food|activity|media|general",
      "confidence": 0.0-1.0,
      "searchTerms": ["term1", "term2", "term3"]
    }
  ],
  "vibeContext": {
    "timeOfDay": "morning|afternoon|evening|night|null",
    "season": "spring|summer|fall|winter|null",
    "isIndoor": boolean,
    "isOutdoor": boolean,
    "isHybrid": boolean,
    "socialSize": "intimate|group|null",
    "mood": "relaxed|energetic|romantic|adventurous|cozy|sophisticated|null",
    "pace": "slow|moderate|fast|null",
    "culturalStyle": "mainstream|indie|artisanal|luxury|casual|eclectic|null",
    "priceRange": "budget|moderate|upscale|luxury|null"
  },
  "culturalInsights": {
    "primaryThemes": ["theme1", "theme2", "theme3"],
    "personalityTraits": ["trait1", "trait2"],
    "culturalProfile": "2-3 sentence personality description",
    "recommendations": ["actionable suggestion 1", "actionable suggestion 2"]
  }
}

Focus on extracting seeds that would lead to different, personalized recommendations.
Be precise and conservative - use null when uncertain."""


DEFAULT_VIBE_CONTEXT = {
    "isIndoor": False,
    "isOutdoor": False,
    "isHybrid": False
}

DEFAULT_CULTURAL_INSIGHTS = {
    "primaryThemes": [],
    "personalityTraits": [],
    "culturalProfile": "",
    "recommendations": []
}


@dataclass(frozen=True)
class Seed:
    text: str
    category: str = DEFAULT_SEED_CATEGORY
    confidence: float = DEFAULT_SEED_CONFIDENCE
    search_terms: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "category": self.category,
            "confidence": self.confidence,
            "searchTerms": list(self.search_terms)
        }


@dataclass
class SeedExtraction:
    seeds: List[Seed]
    vibe_context: Dict[str, Any]
    cultural_insights: Dict[str, Any]

    def search_terms(self) -> List[str]:
        """All seed search terms, in seed order."""
        return [term for seed in self.seeds for term in seed.search_terms]


def _clamp_confidence(value: Any) -> float:
    if isinstance(value, bool):
        return DEFAULT_SEED_CONFIDENCE
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return DEFAULT_SEED_CONFIDENCE
    if confidence != confidence:  # NaN
        return DEFAULT_SEED_CONFIDENCE
    return min(max(confidence, 0.0), 1.0)


def normalize_seed(raw: Any) -> Seed:
    """
    Build a Seed from one element of the model's seed array.

    Raises:
        ValueError: element is not an object or has no usable text
    """
    if not isinstance(raw, dict):
        raise ValueError(f"Seed must be an object, got {type(raw).__name__}")

    text = raw.get("text")
    if not isinstance(text, str) or not text.strip():
        raise ValueError("Seed is missing its text")
    text = text.strip()

    category = raw.get("category")
    if isinstance(category, str):
        category = category.strip().lower()
    if category not in SEED_CATEGORIES:
        category = DEFAULT_SEED_CATEGORY

    terms = raw.get("searchTerms")
    if isinstance(terms, str):
        terms = [terms]
    if not isinstance(terms, list):
        terms = []
    search_terms = [t.strip() for t in terms if isinstance(t, str) and t.strip()]
    if not search_terms:
        search_terms = [text]

    return Seed(
        text=text,
        category=category,
        confidence=_clamp_confidence(raw.get("confidence", DEFAULT_SEED_CONFIDENCE)),
        search_terms=search_terms
    )


def parse_seed_reply(content: str) -> SeedExtraction:
    """
    Parse the seed extraction reply.

    Accepts the documented object ({"seeds": [...], "vibeContext": ...}) or a
    bare seed array. Anything else, an empty seed list, or a malformed seed
    fails the whole extraction.

    Raises:
        UpstreamParseError
    """
    reply = parse_model_reply(content)
    if not reply.ok:
        raise UpstreamParseError(f"Failed to parse seed extraction response: {reply.error}", raw=reply.raw)

    payload = reply.data
    if isinstance(payload, list):
        raw_seeds, vibe_context, insights = payload, None, None
    elif isinstance(payload, dict):
        raw_seeds = payload.get("seeds")
        vibe_context = payload.get("vibeContext")
        insights = payload.get("culturalInsights")
    else:
        raise UpstreamParseError("Failed to parse seed extraction response: unexpected JSON type", raw=reply.raw)

    if not isinstance(raw_seeds, list) or not raw_seeds:
        raise UpstreamParseError("Failed to parse seed extraction response: no seeds returned", raw=reply.raw)

    try:
        seeds = [normalize_seed(item) for item in raw_seeds]
    except ValueError as e:
        raise UpstreamParseError(f"Failed to parse seed extraction response: {e}", raw=reply.raw)

    context = dict(DEFAULT_VIBE_CONTEXT)
    if isinstance(vibe_context, dict):
        context.update(vibe_context)

    cultural_insights = dict(DEFAULT_CULTURAL_INSIGHTS)
    if isinstance(insights, dict):
        cultural_insights.update(insights)

    return SeedExtraction(seeds=seeds, vibe_context=context, cultural_insights=cultural_insights)


def extract_seeds(vibe: str, city: Optional[str], llm_client, settings: Settings) -> SeedExtraction:
    """
    Extract taste seeds from a vibe with one completion call.

    Args:
        vibe: Free-text vibe description (non-empty)
        city: City name, used as prompt context only
        llm_client: OpenAI-compatible client
        settings: Runtime settings

    Returns:
        SeedExtraction with at least one seed

    Raises:
        UpstreamParseError: reply did not parse into seeds
    """
    location = f" for {city}" if city else ""
    messages = [
        {"role": "system", "content": SEED_SYSTEM_PROMPT},
        {"role": "user", "content": f'Extract seeds from this vibe: "{vibe}"{location}'}
    ]

    content = request_completion(llm_client, settings, "seed_extraction", messages)
    extraction = parse_seed_reply(content)

    logger.info(f"Extracted {len(extraction.seeds)} seeds: {[s.text for s in extraction.seeds]}")
    return extraction
