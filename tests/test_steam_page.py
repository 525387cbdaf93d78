"""Unit tests for the Steam sale page strategy."""
import pytest
import responses

from enrichment.steam_page import SteamPageStrategy, find_capsule_image

STEAM_URL = 'https://store.steampowered.com/sale/indiefest'


class TestFindCapsuleImage:
    """Test cases for find_capsule_image."""

    def test_prefers_sale_capsule(self):
        html = """
        <meta property="og:image" content="https://cdn.steam/og.jpg">
        <img src="https://cdn.steam/header_586x192.jpg">
        <img class="sale_header_capsule" src="https://cdn.steam/capsule.jpg">
        """

        assert find_capsule_image(html) == 'https://cdn.steam/capsule.jpg'

    def test_falls_back_to_header_then_og(self):
        header_html = '<img src="https://cdn.steam/header_586x192.jpg">'
        og_html = '<meta property="og:image" content="https://cdn.steam/og.jpg">'

        assert find_capsule_image(header_html) == 'https://cdn.steam/header_586x192.jpg'
        assert find_capsule_image(og_html) == 'https://cdn.steam/og.jpg'

    def test_no_image(self):
        assert find_capsule_image('<html></html>') is None


class TestSteamPageStrategy:
    """Test cases for SteamPageStrategy."""

    @responses.activate
    def test_enrich_success(self, festival_factory):
        responses.add(
            responses.GET,
            STEAM_URL,
            body='<img class="sale_header_capsule" src="https://cdn.steam/capsule.jpg">',
            status=200
        )

        result = SteamPageStrategy().enrich(festival_factory('Indie Fest', latest_steam_page=STEAM_URL))

        assert result.success is True
        assert result.fields == {'image_url': 'https://cdn.steam/capsule.jpg'}

    @responses.activate
    def test_page_without_image_is_failure(self, festival_factory):
        responses.add(responses.GET, STEAM_URL, body='<html></html>', status=200)

        result = SteamPageStrategy().enrich(festival_factory('Indie Fest', latest_steam_page=STEAM_URL))

        assert result.success is False
        assert result.error == 'No Steam image found'

    @pytest.mark.parametrize('value', ['', '   ', '#VALUE!', '#REF!'])
    def test_unusable_cells_are_skipped(self, festival_factory, value):
        result = SteamPageStrategy().enrich(festival_factory('Indie Fest', latest_steam_page=value))

        assert result.skipped is True
