"""
Cultural ecosystem analysis.

Two layers:
- Heuristic discovery over the recommended entities: pairwise cross-category
  connections from shared keywords, themes aggregated from those
  connections, and an overall coherence score.
- An optional model pass that reads the entities, connections, themes and
  prior insights and answers with new connections, themes, insights and a
  short narrative.

The model pass never raises on a bad reply. It returns an
EcosystemAnalysis with available=False so callers can tell "analysis
unavailable" from "analysis found nothing".
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from openai import OpenAIError

from TasteAgent.config import ECOSYSTEM_LIMITS, Settings
from TasteAgent.llm_utils import parse_model_reply, request_completion

logger = logging.getLogger(__name__)


CULTURAL_KEYWORDS = [
    'artisanal', 'indie', 'local', 'authentic', 'creative', 'intimate',
    'vintage', 'craft', 'organic', 'sustainable', 'community', 'underground',
    'experimental', 'traditional', 'modern', 'eclectic', 'bohemian',
    # Adventure/outdoor
    'outdoor', 'adventure', 'nature', 'hiking', 'exploration', 'wilderness',
    'scenic', 'dramatic', 'epic', 'journey', 'quest', 'survival', 'action',
    'thriller', 'suspense', 'mystery', 'dark', 'intense', 'gritty',
    # Emotional/thematic
    'family', 'friendship', 'love', 'betrayal', 'redemption', 'coming-of-age',
    'dystopian', 'fantasy', 'sci-fi', 'historical', 'biographical', 'documentary'
]

GENRE_GROUPS = [
    ['action', 'adventure', 'thriller'],
    ['drama', 'mystery', 'suspense'],
    ['comedy', 'family', 'romantic'],
    ['fantasy', 'sci-fi', 'supernatural'],
    ['documentary', 'biographical', 'historical']
]

NEIGHBORHOODS = ['downtown', 'uptown', 'arts district', 'old town', 'creative district']

THEME_DESCRIPTIONS = {
    'artisanal': 'Handcrafted, authentic experiences that value quality over quantity',
    'indie': 'Independent, creative expressions outside mainstream culture',
    'local': 'Community-rooted experiences that celebrate place and tradition',
    'authentic': 'Genuine, unfiltered cultural expressions',
    'creative': 'Innovative, artistic approaches to culture and experience',
    'intimate': 'Personal, close-knit cultural experiences',
    'vintage': 'Nostalgic, time-honored cultural elements',
    'sustainable': 'Environmentally and socially conscious cultural choices',
    'community': 'Shared, collective cultural experiences'
}

# Heuristic limits
ENTITIES_PER_CATEGORY_COMPARED = 3
MIN_CONNECTION_STRENGTH = 0.3
MAX_CONNECTIONS = 20
MIN_THEME_STRENGTH = 0.2
MAX_THEMES = 8
BASE_CONNECTION_STRENGTH = 0.35

ECOSYSTEM_SYSTEM_PROMPT = "You are a world-class cultural anthropologist. Respond only with valid JSON."


# ---------------------------------------------------------------------------
# Defensive accessors
# ---------------------------------------------------------------------------

def _as_list(value: Any) -> List:
    return value if isinstance(value, list) else []


def _as_float(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _percent(value: Any) -> int:
    return round(_as_float(value) * 100)


def entity_name(entity: Any) -> str:
    if isinstance(entity, dict):
        name = entity.get('name')
        return name if isinstance(name, str) and name else 'Unknown'
    if isinstance(entity, str) and entity:
        return entity
    return 'Unknown'


def entity_description(entity: Dict) -> str:
    description = entity.get('description')
    if not description:
        properties = entity.get('properties')
        if isinstance(properties, dict):
            description = properties.get('description')
    return description if isinstance(description, str) else ''


def entity_location(entity: Dict) -> str:
    location = entity.get('location')
    if isinstance(location, str):
        return location
    properties = entity.get('properties')
    if isinstance(properties, dict) and isinstance(properties.get('address'), str):
        return properties['address']
    return ''


def entity_ref(entity: Dict, category: str) -> Dict[str, Any]:
    """Compact reference used inside connections."""
    return {
        'id': entity.get('entity_id') or entity.get('id'),
        'name': entity_name(entity),
        'category': entity.get('category') or category
    }


def _label(entity: Any) -> str:
    name = entity_name(entity)
    entity_type = entity.get('category') if isinstance(entity, dict) else None
    return f"{name} ({entity_type or 'unknown'})"


# ---------------------------------------------------------------------------
# Heuristic discovery
# ---------------------------------------------------------------------------

def score_connection(entity1: Dict, entity2: Dict, seed_texts: List[str]) -> Dict[str, Any]:
    """Strength, reason and shared themes between two entities of different categories."""
    strength = 0.0
    shared: List[str] = []
    reason = ''

    desc1 = entity_description(entity1).lower()
    desc2 = entity_description(entity2).lower()

    for keyword in CULTURAL_KEYWORDS:
        if keyword in desc1 and keyword in desc2:
            shared.append(keyword)
            strength += 0.15

    for seed_text in seed_texts:
        if seed_text and seed_text in desc1 and seed_text in desc2:
            shared.append(seed_text)
            strength += 0.2

    for group in GENRE_GROUPS:
        if any(g in desc1 for g in group) and any(g in desc2 for g in group):
            strength += 0.25
            shared.append(f"{group[0]} genre")
            reason = f"Both share {group[0]} genre elements"

    words1 = [w for w in entity_name(entity1).lower().split(' ') if len(w) > 3]
    words2 = [w for w in entity_name(entity2).lower().split(' ') if len(w) > 3]
    for word1 in words1:
        for word2 in words2:
            if word1 == word2:
                strength += 0.15
                shared.append(f'"{word1}" theme')
                if not reason:
                    reason = f'Both feature "{word1}" elements'

    loc1 = entity_location(entity1).lower()
    loc2 = entity_location(entity2).lower()
    if loc1 and loc2:
        for neighborhood in NEIGHBORHOODS:
            if neighborhood in loc1 and neighborhood in loc2:
                strength += 0.1
                shared.append(f"{neighborhood} area")

    if strength == 0:
        strength = BASE_CONNECTION_STRENGTH
        first_seed = seed_texts[0] if seed_texts else 'adventure'
        reason = f"Both reflect your {first_seed} preferences"
        shared.append('taste alignment')
    elif shared:
        reason = f"Connected through {' and '.join(shared[:2])} elements"

    return {
        'connectionStrength': min(strength, 1.0),
        'connectionReason': reason,
        'sharedThemes': list(dict.fromkeys(shared))
    }


def discover_connections(entities: Dict[str, List[Dict]], seed_texts: Optional[List[str]] = None) -> List[Dict]:
    """
    Pairwise connections between the first few entities of every two categories.

    Returns:
        Up to MAX_CONNECTIONS connections above MIN_CONNECTION_STRENGTH, strongest first
    """
    seed_texts = [s.lower() for s in (seed_texts or []) if isinstance(s, str)]
    categories = [c for c in entities if _as_list(entities[c])]
    connections = []

    for i, category1 in enumerate(categories):
        for category2 in categories[i + 1:]:
            for entity1 in _as_list(entities[category1])[:ENTITIES_PER_CATEGORY_COMPARED]:
                for entity2 in _as_list(entities[category2])[:ENTITIES_PER_CATEGORY_COMPARED]:
                    if not isinstance(entity1, dict) or not isinstance(entity2, dict):
                        continue
                    scored = score_connection(entity1, entity2, seed_texts)
                    if scored['connectionStrength'] > MIN_CONNECTION_STRENGTH:
                        connections.append({
                            'fromEntity': entity_ref(entity1, category1),
                            'toEntity': entity_ref(entity2, category2),
                            **scored
                        })

    connections.sort(key=lambda c: c['connectionStrength'], reverse=True)
    logger.info(f"Discovered {len(connections)} cultural connections")
    return connections[:MAX_CONNECTIONS]


def describe_theme(theme: str, vibe: str) -> str:
    return THEME_DESCRIPTIONS.get(theme, f"Cultural theme reflecting {theme} values in {vibe}")


def extract_themes(entities: Dict[str, List[Dict]], connections: List[Dict], vibe: str) -> List[Dict]:
    """Aggregate shared themes across connections, or one theme per category when there are none."""
    frequency: Dict[str, float] = {}
    theme_types: Dict[str, List[str]] = {}
    examples: Dict[str, List[str]] = {}

    for connection in _as_list(connections):
        if not isinstance(connection, dict):
            continue
        strength = _as_float(connection.get('connectionStrength'))
        from_entity = connection.get('fromEntity')
        to_entity = connection.get('toEntity')
        for theme in _as_list(connection.get('sharedThemes')):
            if not isinstance(theme, str) or not theme:
                continue
            frequency[theme] = frequency.get(theme, 0.0) + strength
            types = theme_types.setdefault(theme, [])
            for entity in (from_entity, to_entity):
                entity_type = entity.get('category', 'unknown') if isinstance(entity, dict) else 'unknown'
                if entity_type not in types:
                    types.append(entity_type)
            examples.setdefault(theme, []).extend([entity_name(from_entity), entity_name(to_entity)])

    if not frequency:
        return [
            {
                'theme': f"{category} preferences",
                'strength': 0.6,
                'entityTypes': [category],
                'examples': [entity_name(e) for e in _as_list(items)[:3]],
                'description': f"Your taste in {category} reflects your {vibe} vibe"
            }
            for category, items in entities.items()
        ][:5]

    themes = [
        {
            'theme': theme,
            'strength': min(score, 1.0),
            'entityTypes': theme_types[theme],
            'examples': list(dict.fromkeys(examples[theme]))[:4],
            'description': describe_theme(theme, vibe)
        }
        for theme, score in frequency.items()
        if score > MIN_THEME_STRENGTH
    ]
    themes.sort(key=lambda t: t['strength'], reverse=True)
    return themes[:MAX_THEMES]


def ecosystem_score(entities: Dict[str, List[Dict]], connections: List[Dict], themes: List[Dict]) -> float:
    """Coherence in [0, 1]: connection density + theme strength + category diversity."""
    entity_count = sum(len(_as_list(items)) for items in entities.values())
    if entity_count == 0:
        return 0.0

    max_connections = entity_count * (entity_count - 1) / 2
    density = min((len(connections) + 1) / max(max_connections / 4, 1), 1.0) * 0.4

    if themes:
        theme_strength = sum(_as_float(t.get('strength')) for t in themes if isinstance(t, dict)) / len(themes) * 0.3
    else:
        theme_strength = 0.15

    diversity = min(len(entities) / 5, 1.0) * 0.3

    return round(min(density + theme_strength + diversity, 1.0), 3)


# ---------------------------------------------------------------------------
# Model analysis
# ---------------------------------------------------------------------------

@dataclass
class EcosystemAnalysis:
    available: bool
    ai_connections: List[Dict] = field(default_factory=list)
    ai_themes: List[Dict] = field(default_factory=list)
    ai_insights: List[Dict] = field(default_factory=list)
    narrative: str = ''
    error: Optional[str] = None
    raw: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'aiConnections': self.ai_connections,
            'aiThemes': self.ai_themes,
            'aiInsights': self.ai_insights,
            'ecosystemNarrative': self.narrative
        }


def _summarize_insights(cultural_insights: Any) -> str:
    """Render prior insights, whatever shape they arrive in."""
    if isinstance(cultural_insights, dict) and cultural_insights:
        lines = []
        profile = cultural_insights.get('culturalProfile')
        if profile:
            lines.append(f"• Cultural Profile: {profile}")
        for key, label in (('primaryThemes', 'Primary Themes'), ('personalityTraits', 'Personality Traits')):
            values = cultural_insights.get(key)
            if isinstance(values, list) and values:
                lines.append(f"• {label}: {', '.join(str(v) for v in values)}")
            elif isinstance(values, str) and values:
                lines.append(f"• {label}: {values}")
        # Output of an earlier analysis fed back in
        narrative = cultural_insights.get('ecosystemNarrative')
        if isinstance(narrative, str) and narrative:
            lines.append(f"• Earlier Narrative: {narrative}")
        ai_themes = [t.get('theme') for t in _as_list(cultural_insights.get('aiThemes'))
                     if isinstance(t, dict) and t.get('theme')]
        if ai_themes:
            lines.append(f"• Earlier Themes: {', '.join(ai_themes)}")
        return '\n'.join(lines) if lines else 'None provided'

    if isinstance(cultural_insights, list) and cultural_insights:
        titles = [i.get('title') for i in cultural_insights if isinstance(i, dict) and i.get('title')]
        return '\n'.join(f"• {t}" for t in titles) if titles else 'None provided'

    return 'None provided'


def build_analysis_prompt(
    vibe: str,
    city: str,
    entities: Dict[str, List[Dict]],
    connections: Any = None,
    themes: Any = None,
    cultural_insights: Any = None
) -> str:
    items_per_category = ECOSYSTEM_LIMITS['items_per_category']
    description_chars = ECOSYSTEM_LIMITS['description_chars']
    connections = _as_list(connections)
    themes = _as_list(themes)

    total_items = sum(len(_as_list(items)) for items in entities.values())

    domain_blocks = []
    for entity_type, items in entities.items():
        items = _as_list(items)
        lines = []
        for item in items[:items_per_category]:
            if isinstance(item, dict):
                lines.append(f"• {entity_name(item)}: {entity_description(item)[:description_chars]}")
            else:
                lines.append(f"• {entity_name(item)}")
        domain_blocks.append(f"{str(entity_type).upper()} ({len(items)} items):\n" + '\n'.join(lines))

    connection_lines = []
    for conn in connections[:ECOSYSTEM_LIMITS['connections']]:
        if not isinstance(conn, dict):
            continue
        connection_lines.append(
            f"• {_label(conn.get('fromEntity'))} ↔ {_label(conn.get('toEntity'))}: "
            f"{conn.get('connectionReason') or 'related'} [{_percent(conn.get('connectionStrength'))}% strength]"
        )

    theme_lines = []
    for theme in themes:
        if isinstance(theme, dict):
            theme_lines.append(f"• {theme.get('theme', 'unnamed')}: {_percent(theme.get('strength'))}% strength")
        elif isinstance(theme, str):
            theme_lines.append(f"• {theme}")

    return f"""You are a world-class cultural anthropologist analyzing a person's cultural ecosystem. Provide deep, sophisticated analysis of their taste profile.

PERSON'S VIBE: "{vibe}" in {city}

CULTURAL DOMAINS ({len(entities)} types, {total_items} total items):
{chr(10).join(domain_blocks) or 'None'}

EXISTING CONNECTIONS ({len(connections)} found):
{chr(10).join(connection_lines) or 'None'}

EXISTING THEMES:
{chr(10).join(theme_lines) or 'None'}

INITIAL AI INSIGHTS:
{_summarize_insights(cultural_insights)}

TASK: Provide sophisticated cultural analysis in this EXACT JSON format:

{{
  "aiConnections": [
    {{
      "fromEntity": "entity name",
      "toEntity": "entity name",
      "connectionStrength": 0.7,
      "connectionReason": "Deep psychological/cultural reason",
      "sharedThemes": ["theme1", "theme2"],
      "psychologicalInsight": "Why this connection reveals deeper personality traits"
    }}
  ],
  "aiThemes": [
    {{
      "theme": "Sophisticated theme name",
      "strength": 0.8,
      "description": "Deep analysis of this cultural theme",
      "psychologicalMeaning": "What this reveals about personality/values",
      "entityTypes": ["relevant", "entity", "types"],
      "examples": ["specific examples from their choices"]
    }}
  ],
  "aiInsights": [
    {{
      "type": "psychological",
      "title": "Sophisticated Insight Title",
      "description": "Deep cultural/psychological analysis",
      "confidence": 0.9,
      "supportingEntities": ["relevant entities"],
      "actionableAdvice": "Specific recommendation based on this insight"
    }}
  ],
  "ecosystemNarrative": "A compelling 3-4 sentence narrative that tells the story of this person's cultural identity."
}}

Focus on psychological insights, cultural patterns, and sophisticated analysis. Be intellectually rigorous but accessible."""


def parse_analysis_reply(content: str) -> EcosystemAnalysis:
    reply = parse_model_reply(content, expected=dict)
    if not reply.ok:
        return EcosystemAnalysis(available=False, error=reply.error, raw=reply.raw)

    data = reply.data
    narrative = data.get('ecosystemNarrative')
    return EcosystemAnalysis(
        available=True,
        ai_connections=[c for c in _as_list(data.get('aiConnections')) if isinstance(c, dict)],
        ai_themes=[t for t in _as_list(data.get('aiThemes')) if isinstance(t, dict)],
        ai_insights=[i for i in _as_list(data.get('aiInsights')) if isinstance(i, dict)],
        narrative=narrative if isinstance(narrative, str) else '',
        raw=reply.raw
    )


def analyze_ecosystem(
    vibe: str,
    city: str,
    entities: Dict[str, List[Dict]],
    connections: Any,
    themes: Any,
    cultural_insights: Any,
    llm_client,
    settings: Settings
) -> EcosystemAnalysis:
    """Ask the model for cross-domain connections, themes, insights and a narrative."""
    prompt = build_analysis_prompt(vibe, city, entities, connections, themes, cultural_insights)
    messages = [
        {"role": "system", "content": ECOSYSTEM_SYSTEM_PROMPT},
        {"role": "user", "content": prompt}
    ]

    try:
        content = request_completion(llm_client, settings, "ecosystem_analysis", messages)
    except OpenAIError as e:
        logger.error(f"Ecosystem analysis call failed: {e}")
        return EcosystemAnalysis(available=False, error=f"Completion request failed: {e}")

    analysis = parse_analysis_reply(content)
    if analysis.available:
        logger.info(
            f"AI ecosystem analysis complete: {len(analysis.ai_connections)} connections, "
            f"{len(analysis.ai_themes)} themes, {len(analysis.ai_insights)} insights"
        )
    else:
        logger.error(f"Failed to parse ecosystem analysis response: {analysis.error}")
    return analysis
