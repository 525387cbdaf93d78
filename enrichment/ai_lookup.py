"""Generative lookup of festival details through Gemini."""
import json
import logging
import re
from typing import Any, Dict, Optional

import google.generativeai as genai

from enrichment.base import EnrichmentKind, EnrichmentStrategy, EnrichmentTarget, StrategyResult
from processor.models import FestivalRecord

logger = logging.getLogger(__name__)

JSON_STRUCTURE_EXAMPLE = """
{
  "entity": "Event Name",
  "type": "Type of event (e.g., Sale, Expo, Tournament)",
  "status": "Current status",
  "overview": {
    "description": "Brief summary",
    "primary_platform": "Platform",
    "organizers": ["List of organizers"],
    "objective": "Goal",
    "banner_image_url": "URL to a logo or banner image if found, else null"
  },
  "event_details": {
    "current_edition": "Date or Year",
    "typical_duration": "Duration",
    "offerings": ["List of offerings"]
  },
  "key_participants": {
    "notable_studios": ["List of studios"],
    "featured_games": [
      {
        "title": "Game Title",
        "developer": "Dev Name",
        "genre": "Genre",
        "image_url": "URL to game cover/header if found, else null",
        "steam_url": "Steam store page URL if available, else null"
      }
    ]
  },
  "industry_context": {
    "location": "City/Region",
    "significance": "Why this matters"
  }
}
"""

PROMPT_TEMPLATE = """
Find details about the video game event or sale named "{name}".
Use trusted, up-to-date sources.

Extract the information and format it EXACTLY as a valid JSON object.
Follow this structure example:
{structure}

1. If specific text details are not found, use "N/A".
2. For "banner_image_url" and "image_url", only use a URL that is explicitly present in a source. Otherwise set it to null.
3. Ensure "featured_games" contains real games associated with this specific event.
4. For "steam_url", only include a valid store.steampowered.com/app/ URL.
5. Return ONLY the raw JSON string.
"""

_FENCE = re.compile(r'^```(?:json)?\s*|\s*```$')


class MalformedPayloadError(ValueError):
    """The model response is not a usable JSON object."""


def parse_payload(text: str) -> Dict[str, Any]:
    """
    Parse the model's JSON answer, tolerating markdown code fences.

    Raises:
        MalformedPayloadError: If the text is not a JSON object
    """
    cleaned = _FENCE.sub('', (text or '').strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MalformedPayloadError(f"Invalid JSON from model: {e}") from e
    if not isinstance(data, dict):
        raise MalformedPayloadError("Model response is not a JSON object")
    return data


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> list:
    return list(value) if isinstance(value, list) else []


def convert_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a model payload into ai_enrichment fields with null defaults."""
    overview = _section(data, 'overview')
    details = _section(data, 'event_details')
    participants = _section(data, 'key_participants')
    context = _section(data, 'industry_context')

    featured_games = []
    for game in _list(participants.get('featured_games')):
        if not isinstance(game, dict):
            continue
        featured_games.append({
            'title': game.get('title') or '',
            'developer': game.get('developer') or '',
            'genre': game.get('genre') or '',
            'image_url': game.get('image_url') or None,
            'steam_url': game.get('steam_url') or None,
        })

    return {
        'entity': data.get('entity') or None,
        'type': data.get('type') or None,
        'status': data.get('status') or None,
        'overview': {
            'description': overview.get('description') or None,
            'primary_platform': overview.get('primary_platform') or None,
            'organizers': _list(overview.get('organizers')),
            'objective': overview.get('objective') or None,
            'banner_image_url': overview.get('banner_image_url') or None,
        },
        'event_details': {
            'current_edition': details.get('current_edition') or None,
            'typical_duration': details.get('typical_duration') or None,
            'offerings': _list(details.get('offerings')),
        },
        'key_participants': {
            'notable_studios': _list(participants.get('notable_studios')),
            'featured_games': featured_games,
        },
        'industry_context': {
            'location': context.get('location') or None,
            'significance': context.get('significance') or None,
        },
    }


class AILookupStrategy(EnrichmentStrategy):
    """Asks Gemini for structured details about a festival."""

    name = 'ai-lookup'
    kind = EnrichmentKind.AI
    target = EnrichmentTarget.AI

    def __init__(
        self,
        api_key: str,
        model_name: str = 'gemini-2.0-flash',
        version: int = 1,
        timeout: int = 15,
        model: Optional[Any] = None
    ):
        """
        Args:
            api_key: Gemini API key (empty disables the strategy)
            model_name: Gemini model to query
            version: Enrichment version stamped on written documents
            timeout: Request timeout in seconds
            model: Pre-built model object (tests)
        """
        self.api_key = api_key
        self.model_name = model_name
        self.version = version
        self.timeout = timeout
        self._model = model

    def is_configured(self) -> bool:
        return bool(self.api_key) or self._model is not None

    @property
    def model(self):
        if self._model is None:
            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(self.model_name)
        return self._model

    def enrich(self, festival: FestivalRecord) -> StrategyResult:
        if not festival.name.strip():
            return StrategyResult.skip('No festival name to look up')

        prompt = PROMPT_TEMPLATE.format(name=festival.name, structure=JSON_STRUCTURE_EXAMPLE)
        response = self.model.generate_content(
            prompt,
            request_options={'timeout': self.timeout}
        )

        try:
            payload = parse_payload(response.text)
        except MalformedPayloadError as e:
            return StrategyResult.failure(str(e))

        return StrategyResult(fields=convert_payload(payload))
