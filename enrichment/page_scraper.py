"""Official-page metadata scraper."""
import logging
import re
from typing import Optional
from urllib.parse import urljoin

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

LOGO_SELECTORS = [
    'link[rel="icon"]',
    'link[rel="shortcut icon"]',
    'link[rel="apple-touch-icon"]',
    '.logo img',
    '#logo img',
    'header img[src*="logo"]',
    'img[alt*="logo" i]',
    'img[class*="logo" i]',
]

LOCATION_PATTERNS = [
    re.compile(r'(?:held in|located in|takes place in|happening in)\s+([A-Z][a-zA-Z\s,]+)', re.IGNORECASE),
    re.compile(r'([A-Z][a-zA-Z]+,\s*[A-Z]{2,})'),
]

ORGANIZER_PATTERNS = [
    re.compile(r'(?:organized by|hosted by|presented by|brought to you by)\s+([A-Za-z0-9\s&]+)', re.IGNORECASE),
]

FORM_HOSTS = ('docs.google.com/forms', 'forms.gle')

MAX_DESCRIPTION_LENGTH = 500
MAX_ORGANIZER_LENGTH = 100


def clean_url(url: str) -> str:
    """Take the first URL of a cell that may list several."""
    return url.strip().split('\n')[0].split(' ')[0].strip()


def resolve_url(url: Optional[str], base_url: str) -> Optional[str]:
    """
    Resolve a possibly relative URL against the page URL.

    Args:
        url: URL as found in the page
        base_url: URL of the page

    Returns:
        Absolute URL or None
    """
    if not url:
        return None
    if url.startswith('http://') or url.startswith('https://'):
        return url
    if url.startswith('//'):
        return 'https:' + url
    try:
        return urljoin(base_url, url)
    except ValueError:
        return None


def extract_metadata(html: str, base_url: str) -> dict:
    """
    Extract enrichment fields from a page.

    Args:
        html: Page HTML
        base_url: URL the page was fetched from

    Returns:
        Dictionary of enrichment fields (values may be None)
    """
    soup = BeautifulSoup(html, 'html.parser')

    def meta(attribute: str, value: str) -> Optional[str]:
        tag = soup.find('meta', attrs={attribute: value})
        return tag.get('content') if tag else None

    og_image = meta('property', 'og:image')
    twitter_image = meta('name', 'twitter:image')
    description = meta('property', 'og:description') or meta('name', 'description') or ''

    logo_url = None
    for selector in LOGO_SELECTORS:
        element = soup.select_one(selector)
        if element is None:
            continue
        source = element.get('href') or element.get('src')
        if source:
            logo_url = resolve_url(source, base_url)
            break

    twitter = None
    discord = None
    for link in soup.find_all('a', href=True):
        href = link['href']
        if not twitter and ('twitter.com' in href or 'x.com' in href):
            twitter = href
        if not discord and 'discord' in href:
            discord = href

    body = soup.body.get_text(' ') if soup.body else soup.get_text(' ')

    location = None
    for pattern in LOCATION_PATTERNS:
        match = pattern.search(body)
        if match:
            location = match.group(1).strip()
            break

    organizer = None
    for pattern in ORGANIZER_PATTERNS:
        match = pattern.search(body)
        if match:
            organizer = match.group(1).strip()[:MAX_ORGANIZER_LENGTH]
            break

    return {
        'image_url': resolve_url(og_image or twitter_image, base_url),
        'logo_url': logo_url,
        'description': description[:MAX_DESCRIPTION_LENGTH] or None,
        'twitter': twitter,
        'discord': discord,
        'location': location,
        'organizer': organizer,
    }


class PageScrapeStrategy(EnrichmentStrategy):
    """Scrapes Open Graph and page metadata from a festival's official page."""

    name = 'page-scrape'
    kind = EnrichmentKind.PAGE
    target = EnrichmentTarget.SCRAPE
    stamps_verification = True

    def __init__(self, timeout: int = 15):
        self.timeout = timeout

    def enrich(self, festival: FestivalRecord) -> StrategyResult:
        if not festival.event_official_page.strip():
            return StrategyResult.skip('No official page URL')

        url = clean_url(festival.event_official_page)

        if any(host in url for host in FORM_HOSTS):
            return StrategyResult(fields={'description': f"Submission form for {festival.name}"})

        html = fetch_page(url, timeout=self.timeout)
        if html is None:
            return StrategyResult.failure('Failed to fetch page')

        return StrategyResult(fields=extract_metadata(html, url))
