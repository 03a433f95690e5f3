# # Taste Agent
# Turns a free-text vibe and a city into cultural recommendations, an optional
# cross-domain ecosystem analysis, and a day plan for the items the user picks.

# Imports
import os
import sys
import json
import logging
import time
from typing import Any, Dict, Optional

from openai import OpenAI, OpenAIError

from TasteAgent.config import Settings, EXPOSED_FUNCTIONS
from TasteAgent.errors import InputValidationError, TasteAgentError, UpstreamParseError
from TasteAgent.seeds import extract_seeds
from TasteAgent.tools import fetch_recommendations
from TasteAgent.ecosystem import (
    analyze_ecosystem,
    discover_connections,
    extract_themes,
    ecosystem_score
)
from TasteAgent.day_planner import plan_day

from monitoring import LLMMonitor, MonitoredLLMClient, get_global_monitor
from shared_utils import log_structured, new_request_id

# Configure logging
handlers = [logging.StreamHandler()]

# Add file handler only when a log file is requested (never inside Lambda)
if os.getenv('TASTE_AGENT_LOG_FILE') and not os.getenv('AWS_LAMBDA_FUNCTION_NAME'):
    handlers.append(logging.FileHandler(os.getenv('TASTE_AGENT_LOG_FILE'), mode='a'))

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=handlers
)
logger = logging.getLogger(__name__)


def _require_text(body: Dict[str, Any], *fields: str) -> None:
    missing = [f for f in fields if not isinstance(body.get(f), str) or not body.get(f).strip()]
    if missing:
        raise InputValidationError(f"Missing required fields: {' and '.join(missing)}")


class TastePipeline:
    """
    Vibe-to-plan orchestration shared by every deployment target.

    Operations:
    - recommend(): seed extraction -> category fan-out -> filtering
    - analyze(): optional cross-domain ecosystem analysis
    - plan(): day plan for selected items

    Usage:
        pipeline = TastePipeline(Settings.from_env())
        data = pipeline.recommend({"vibe": "rainy day jazz", "city": "Chicago"})
    """

    def __init__(self, settings: Optional[Settings] = None, llm_client=None, monitor: Optional[LLMMonitor] = None):
        self.settings = settings or Settings.from_env()
        self.monitor = monitor or get_global_monitor()
        self._raw_llm_client = llm_client
        self._llm = None

    @property
    def llm(self) -> MonitoredLLMClient:
        """Monitored OpenAI client, created on first use once the key is known to be set."""
        if self._llm is None:
            self.settings.require_openai()
            client = self._raw_llm_client or OpenAI(
                api_key=self.settings.openai_api_key,
                timeout=self.settings.openai_timeout,
                max_retries=0
            )
            self._llm = MonitoredLLMClient(client, self.monitor)
        return self._llm

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def recommend(self, body: Dict[str, Any], request_id: Optional[str] = None) -> Dict[str, Any]:
        """Extract seeds from the vibe and fetch filtered recommendations for the city."""
        request_id = request_id or new_request_id()
        start_time = time.time()

        _require_text(body, 'vibe', 'city')
        vibe = body['vibe'].strip()
        city = body['city'].strip()

        # Both credentials are checked before any network call
        self.settings.require_openai()
        self.settings.require_qloo()

        log_structured('INFO', f'Processing taste request: "{vibe}" in {city}',
                       request_id=request_id, stage='initialization')

        try:
            extraction = extract_seeds(vibe, city, self.llm, self.settings)
        except OpenAIError as e:
            raise TasteAgentError(f"OpenAI API error: {e}")

        log_structured('INFO', 'Extracted seeds', request_id=request_id, stage='seed_extraction',
                       seeds=[s.text for s in extraction.seeds])

        recommendations = fetch_recommendations(self.settings, extraction.search_terms(), city)

        counts = {name: len(items) for name, items in recommendations.items()}
        log_structured('INFO', 'Retrieved recommendations', request_id=request_id, stage='recommendations',
                       total=sum(counts.values()), duration_ms=int((time.time() - start_time) * 1000),
                       **counts)

        return {
            'seeds': [seed.to_dict() for seed in extraction.seeds],
            'vibeContext': extraction.vibe_context,
            'culturalInsights': extraction.cultural_insights,
            'recommendations': recommendations,
            'city': city,
            'vibe': vibe
        }

    def analyze(self, body: Dict[str, Any], request_id: Optional[str] = None) -> Dict[str, Any]:
        """Cross-domain ecosystem analysis of an existing recommendation set."""
        request_id = request_id or new_request_id()

        _require_text(body, 'vibe', 'city')
        entities = body.get('entities')
        if not isinstance(entities, dict) or not entities:
            raise InputValidationError("Missing required fields: vibe, city, and entities")

        self.settings.require_openai()

        vibe = body['vibe'].strip()
        city = body['city'].strip()
        seed_texts = [s.get('text') for s in body.get('seeds') or [] if isinstance(s, dict)]

        connections = body.get('connections')
        if not isinstance(connections, list):
            connections = []
        # Caller-supplied connections may be loose; only objects are usable
        connections = [c for c in connections if isinstance(c, dict)]
        if not connections:
            connections = discover_connections(entities, seed_texts)
        themes = body.get('themes')
        if not isinstance(themes, list) or not themes:
            themes = extract_themes(entities, connections, vibe)

        log_structured('INFO', 'Ecosystem analysis request received', request_id=request_id,
                       stage='ecosystem_analysis', categories=list(entities.keys()),
                       connections=len(connections), themes=len(themes))

        analysis = analyze_ecosystem(
            vibe, city, entities, connections, themes,
            body.get('culturalInsights'), self.llm, self.settings
        )
        if not analysis.available:
            log_structured('ERROR', 'Ecosystem analysis unavailable', request_id=request_id,
                           stage='ecosystem_analysis', error=analysis.error)
            raise UpstreamParseError(f"Failed to parse ecosystem analysis response: {analysis.error}",
                                     raw=analysis.raw)

        return {
            **analysis.to_dict(),
            'connections': connections,
            'themes': themes,
            'ecosystemScore': ecosystem_score(entities, connections, themes)
        }

    def plan(self, body: Dict[str, Any], request_id: Optional[str] = None) -> Dict[str, Any]:
        """Schedule the selected items into a single day."""
        request_id = request_id or new_request_id()

        selected_items = body.get('selectedItems')
        if not isinstance(selected_items, list) or not selected_items:
            raise InputValidationError("Missing or empty selectedItems array")
        for item in selected_items:
            if not isinstance(item, dict) or not isinstance(item.get('name'), str) or not item['name'].strip():
                raise InputValidationError("Every selected item needs a name")

        self.settings.require_openai()

        city = body.get('city')
        preferences = body.get('preferences') or {}

        log_structured('INFO', f'Planning day for {len(selected_items)} items in {city}',
                       request_id=request_id, stage='day_planning')

        result = plan_day(selected_items, city, preferences, self.llm, self.settings)

        log_structured('INFO', 'Day planning completed', request_id=request_id, stage='day_planning',
                       slots=len(result.entries), used_fallback=result.used_fallback)

        return {
            'dayPlan': result.entries,
            'city': city,
            'totalItems': len(selected_items),
            'estimatedTotalDuration': result.total_duration,
            'usedFallback': result.used_fallback
        }

    def health(self) -> Dict[str, Any]:
        return {
            'status': 'ok',
            'timestamp': time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime()),
            **self.settings.key_status(),
            'functions': EXPOSED_FUNCTIONS,
            'llm': self.monitor.get_summary()
        }


# For local testing
if __name__ == "__main__":
    vibe = sys.argv[1] if len(sys.argv) > 1 else "cozy rainy afternoon with jazz and ramen"
    city = sys.argv[2] if len(sys.argv) > 2 else "Chicago"

    pipeline = TastePipeline()
    print("API Keys Status:")
    for key, present in pipeline.settings.key_status().items():
        print(f"{key}: {'Set' if present else 'Missing'}")

    result = pipeline.recommend({"vibe": vibe, "city": city})
    print(json.dumps(result, indent=2))
