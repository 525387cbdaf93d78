"""Unit tests for the Gemini lookup strategy."""
import json
from unittest.mock import Mock, patch

import pytest

from enrichment.ai_lookup import (
    AILookupStrategy,
    MalformedPayloadError,
    convert_payload,
    parse_payload,
)

PAYLOAD = {
    'entity': 'Indie Arena Booth',
    'type': 'Expo',
    'status': 'Active',
    'overview': {
        'description': 'Indie area at gamescom',
        'primary_platform': 'PC',
        'organizers': ['Super Crowd'],
        'objective': 'Showcase indies',
        'banner_image_url': None,
    },
    'event_details': {'current_edition': '2024', 'typical_duration': '5 days', 'offerings': ['Booth']},
    'key_participants': {
        'notable_studios': ['Studio A'],
        'featured_games': [{'title': 'Game', 'developer': 'Dev', 'genre': 'Puzzle'}, 'junk'],
    },
    'industry_context': {'location': 'Cologne', 'significance': 'Large'},
}


def model_returning(text):
    model = Mock()
    model.generate_content.return_value = Mock(text=text)
    return model


class TestParsePayload:
    """Test cases for parse_payload."""

    def test_strips_code_fences(self):
        text = '```json\n{"entity": "X"}\n```'

        assert parse_payload(text) == {'entity': 'X'}

    @pytest.mark.parametrize('text', ['not json', '[1, 2]', '', None])
    def test_malformed(self, text):
        with pytest.raises(MalformedPayloadError):
            parse_payload(text)


class TestConvertPayload:
    """Test cases for convert_payload."""

    def test_full_payload(self):
        converted = convert_payload(PAYLOAD)

        assert converted['entity'] == 'Indie Arena Booth'
        assert converted['overview']['organizers'] == ['Super Crowd']
        assert converted['key_participants']['featured_games'] == [{
            'title': 'Game',
            'developer': 'Dev',
            'genre': 'Puzzle',
            'image_url': None,
            'steam_url': None,
        }]
        assert converted['industry_context']['location'] == 'Cologne'

    def test_missing_sections_get_defaults(self):
        converted = convert_payload({'entity': 'X', 'overview': 'not a dict'})

        assert converted['type'] is None
        assert converted['overview']['organizers'] == []
        assert converted['event_details']['offerings'] == []
        assert converted['key_participants'] == {'notable_studios': [], 'featured_games': []}


class TestAILookupStrategy:
    """Test cases for AILookupStrategy."""

    def test_enrich_success(self, festival_factory):
        model = model_returning('```json\n' + json.dumps(PAYLOAD) + '\n```')
        strategy = AILookupStrategy(api_key='key', timeout=15, model=model)

        result = strategy.enrich(festival_factory('Indie Arena Booth'))

        assert result.success is True
        assert result.fields['entity'] == 'Indie Arena Booth'
        prompt = model.generate_content.call_args.args[0]
        assert '"Indie Arena Booth"' in prompt
        assert model.generate_content.call_args.kwargs['request_options'] == {'timeout': 15}

    def test_malformed_response_is_failure(self, festival_factory):
        strategy = AILookupStrategy(api_key='key', model=model_returning('Sorry, I cannot help'))

        result = strategy.enrich(festival_factory('Indie Arena Booth'))

        assert result.success is False
        assert result.error.startswith('Invalid JSON from model')

    def test_not_configured_without_key(self):
        assert AILookupStrategy(api_key='').is_configured() is False

    @patch('enrichment.ai_lookup.genai')
    def test_model_built_lazily(self, mock_genai):
        strategy = AILookupStrategy(api_key='key', model_name='gemini-2.0-flash')
        mock_genai.configure.assert_not_called()

        model = strategy.model

        mock_genai.configure.assert_called_once_with(api_key='key')
        mock_genai.GenerativeModel.assert_called_once_with('gemini-2.0-flash')
        assert model is mock_genai.GenerativeModel.return_value
