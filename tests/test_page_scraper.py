"""Unit tests for the official-page scraper."""
import responses
from requests.exceptions import Timeout

from enrichment.page_scraper import PageScrapeStrategy, clean_url, extract_metadata, resolve_url

PAGE_URL = 'https://indiefest.example/'

PAGE_HTML = """
<html>
  <head>
    <meta property="og:image" content="/media/banner.png">
    <meta name="twitter:image" content="https://cdn.example/twitter.png">
    <meta property="og:description" content="The biggest indie showcase of the summer.">
    <link rel="icon" href="/favicon.ico">
  </head>
  <body>
    <p>The festival is held in Cologne, Germany every August.</p>
    <p>Organized by Indie Arena Booth and friends</p>
    <a href="https://x.com/indiefest">X</a>
    <a href="https://twitter.com/other">Twitter</a>
    <a href="https://discord.gg/indiefest">Discord</a>
  </body>
</html>
"""


class TestHelpers:
    """Test cases for URL helpers."""

    def test_clean_url_takes_first_entry(self):
        assert clean_url(' https://a.example\nhttps://b.example ') == 'https://a.example'
        assert clean_url('https://a.example https://b.example') == 'https://a.example'

    def test_resolve_url(self):
        assert resolve_url('/logo.png', 'https://site.example/page') == 'https://site.example/logo.png'
        assert resolve_url('//cdn.example/x.png', PAGE_URL) == 'https://cdn.example/x.png'
        assert resolve_url('http://a.example/x.png', PAGE_URL) == 'http://a.example/x.png'
        assert resolve_url(None, PAGE_URL) is None


class TestExtractMetadata:
    """Test cases for extract_metadata."""

    def test_extracts_fields(self):
        metadata = extract_metadata(PAGE_HTML, PAGE_URL)

        assert metadata['image_url'] == 'https://indiefest.example/media/banner.png'
        assert metadata['logo_url'] == 'https://indiefest.example/favicon.ico'
        assert metadata['description'] == 'The biggest indie showcase of the summer.'
        assert metadata['twitter'] == 'https://x.com/indiefest'
        assert metadata['discord'] == 'https://discord.gg/indiefest'
        assert metadata['location'].startswith('Cologne')
        assert metadata['organizer'].startswith('Indie Arena Booth')

    def test_description_truncated(self):
        html = f'<html><head><meta name="description" content="{"x" * 800}"></head></html>'

        metadata = extract_metadata(html, PAGE_URL)

        assert len(metadata['description']) == 500

    def test_bare_page_yields_empty_fields(self):
        metadata = extract_metadata('<html><body><p>hello</p></body></html>', PAGE_URL)

        assert metadata == {
            'image_url': None,
            'logo_url': None,
            'description': None,
            'twitter': None,
            'discord': None,
            'location': None,
            'organizer': None,
        }


class TestPageScrapeStrategy:
    """Test cases for PageScrapeStrategy."""

    @responses.activate
    def test_enrich_success(self, festival_factory):
        responses.add(responses.GET, PAGE_URL, body=PAGE_HTML, status=200)
        festival = festival_factory('Indie Fest', event_official_page=PAGE_URL)

        result = PageScrapeStrategy().enrich(festival)

        assert result.success is True
        assert result.fields['description'] == 'The biggest indie showcase of the summer.'
        assert 'Mozilla' in responses.calls[0].request.headers['User-Agent']

    @responses.activate
    def test_enrich_http_error_is_failure(self, festival_factory):
        responses.add(responses.GET, PAGE_URL, status=404)

        result = PageScrapeStrategy().enrich(festival_factory('Indie Fest', event_official_page=PAGE_URL))

        assert result.success is False
        assert result.skipped is False
        assert result.error == 'Failed to fetch page'

    @responses.activate
    def test_enrich_timeout_is_failure(self, festival_factory):
        responses.add(responses.GET, PAGE_URL, body=Timeout('slow'))

        result = PageScrapeStrategy().enrich(festival_factory('Indie Fest', event_official_page=PAGE_URL))

        assert result.success is False

    def test_missing_url_is_skip(self, festival_factory):
        result = PageScrapeStrategy().enrich(festival_factory('Indie Fest'))

        assert result.skipped is True

    @responses.activate
    def test_google_form_not_fetched(self, festival_factory):
        festival = festival_factory('Indie Fest', event_official_page='https://forms.gle/abc123')

        result = PageScrapeStrategy().enrich(festival)

        assert result.success is True
        assert result.fields == {'description': 'Submission form for Indie Fest'}
        assert len(responses.calls) == 0
