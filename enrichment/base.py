"""Shared types for enrichment strategies."""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import requests

from processor.models import FestivalRecord

logger = logging.getLogger(__name__)

USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)


class EnrichmentKind(str, Enum):
    """Selection predicate a strategy works from."""
    PAGE = 'page'
    STEAM_PAGE = 'steam_page'
    IMAGE_SEARCH = 'image_search'
    AI = 'ai'


class EnrichmentTarget(str, Enum):
    """Sub-document a strategy writes to."""
    SCRAPE = 'enrichment'
    AI = 'ai_enrichment'


@dataclass
class StrategyResult:
    """Outcome of one strategy call for one festival."""
    fields: Dict[str, Any] = field(default_factory=dict)
    success: bool = True
    skipped: bool = False
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> 'StrategyResult':
        return cls(success=False, error=error)

    @classmethod
    def skip(cls, reason: str) -> 'StrategyResult':
        return cls(success=False, skipped=True, error=reason)


class EnrichmentStrategy:
    """
    Base class for enrichment strategies.

    Subclasses set ``name``, ``kind`` and ``target`` and implement
    ``enrich``. Expected failures are returned as failed results; unexpected
    exceptions are caught by the runner.
    """

    name = 'strategy'
    kind = EnrichmentKind.PAGE
    target = EnrichmentTarget.SCRAPE
    stamps_verification = False
    version = 0

    def is_configured(self) -> bool:
        return True

    def enrich(self, festival: FestivalRecord) -> StrategyResult:
        raise NotImplementedError


def fetch_page(url: str, timeout: int = 15) -> Optional[str]:
    """
    Fetch a webpage and return its HTML.

    Args:
        url: Page URL
        timeout: Request timeout in seconds (default: 15)

    Returns:
        HTML content, or None on network error or non-2xx status
    """
    try:
        response = requests.get(
            url,
            headers={
                'User-Agent': USER_AGENT,
                'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
                'Accept-Language': 'en-US,en;q=0.5',
            },
            timeout=timeout,
            allow_redirects=True
        )
    except requests.RequestException as e:
        logger.warning(f"Failed to fetch {url}: {e}")
        return None

    if not response.ok:
        logger.warning(f"HTTP {response.status_code} for {url}")
        return None

    return response.text
