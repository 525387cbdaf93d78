"""Image search through the RapidAPI Google search endpoint."""
import logging
from typing import Optional

import requests

from enrichment.base import EnrichmentKind, EnrichmentStrategy, EnrichmentTarget, StrategyResult
from processor.models import FestivalRecord

logger = logging.getLogger(__name__)


class ImageSearchStrategy(EnrichmentStrategy):
    """Finds a cover image for festivals without one."""

    name = 'image-search'
    kind = EnrichmentKind.IMAGE_SEARCH
    target = EnrichmentTarget.SCRAPE

    def __init__(self, api_key: str, host: str, timeout: int = 15, results: int = 5):
        """
        Args:
            api_key: RapidAPI key (empty disables the strategy)
            host: RapidAPI Google search host
            timeout: Request timeout in seconds
            results: Number of image results to request
        """
        self.api_key = api_key
        self.host = host
        self.timeout = timeout
        self.results = results

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def enrich(self, festival: FestivalRecord) -> StrategyResult:
        if not festival.name.strip():
            return StrategyResult.skip('No festival name to search for')

        image_url = self.search(f"steam {festival.name}")
        if not image_url:
            return StrategyResult.failure('No image found')
        return StrategyResult(fields={'image_url': image_url})

    def search(self, query: str) -> Optional[str]:
        """
        Search for an image.

        Args:
            query: Search terms

        Returns:
            First absolute image URL in the results, or None

        Raises:
            requests.RequestException: On network errors or non-2xx status
        """
        response = requests.post(
            f"https://{self.host}/search",
            json={'q': query, 'num': self.results, 'type': 'image'},
            headers={
                'X-RapidAPI-Key': self.api_key,
                'X-RapidAPI-Host': self.host,
            },
            timeout=self.timeout
        )
        response.raise_for_status()

        for result in response.json().get('results') or []:
            url = result.get('url') if isinstance(result, dict) else None
            if url and url.startswith('http'):
                return url
        return None
