"""Steam sale page image lookup."""
import logging
from typing import Optional

from bs4 import BeautifulSoup

from enrichment.base import (
    EnrichmentKind,
    EnrichmentStrategy,
    EnrichmentTarget,
    StrategyResult,
    fetch_page,
)
from processor.models import FestivalRecord

logger = logging.getLogger(__name__)

# Spreadsheet formula errors exported as cell text.
INVALID_MARKERS = ('#VALUE!', '#REF!', '#N/A')


def find_capsule_image(html: str) -> Optional[str]:
    """Return the sale header capsule (or best fallback) image URL."""
    soup = BeautifulSoup(html, 'html.parser')

    capsule = soup.select_one('img.sale_header_capsule')
    if capsule and capsule.get('src'):
        return capsule['src']

    header = soup.select_one('img[src*="header_586x192"]')
    if header and header.get('src'):
        return header['src']

    og_image = soup.find('meta', attrs={'property': 'og:image'})
    if og_image and og_image.get('content'):
        return og_image['content']

    return None


class SteamPageStrategy(EnrichmentStrategy):
    """Takes the header image from a festival's latest Steam sale page."""

    name = 'steam-page'
    kind = EnrichmentKind.STEAM_PAGE
    target = EnrichmentTarget.SCRAPE

    def __init__(self, timeout: int = 15):
        self.timeout = timeout

    def enrich(self, festival: FestivalRecord) -> StrategyResult:
        url = festival.latest_steam_page.strip()
        if not url or any(marker in url for marker in INVALID_MARKERS):
            return StrategyResult.skip('No usable Steam page URL')

        html = fetch_page(url, timeout=self.timeout)
        if html is None:
            return StrategyResult.failure('Failed to fetch Steam page')

        image_url = find_capsule_image(html)
        if not image_url:
            return StrategyResult.failure('No Steam image found')

        return StrategyResult(fields={'image_url': image_url})
