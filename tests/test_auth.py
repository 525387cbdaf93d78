"""Unit tests for bearer authentication."""
import pytest

from api.auth import get_header, is_authorized


def test_get_header_is_case_insensitive():
    assert get_header({'authorization': 'Bearer x'}, 'Authorization') == 'Bearer x'
    assert get_header({'Authorization': 'Bearer x'}, 'authorization') == 'Bearer x'
    assert get_header(None, 'Authorization') is None


@pytest.mark.parametrize('headers,expected', [
    ({'Authorization': 'Bearer s3cret'}, True),
    ({'authorization': 'Bearer s3cret'}, True),
    ({'Authorization': 'Bearer wrong'}, False),
    ({'Authorization': 's3cret'}, False),
    ({'Authorization': 'bearer s3cret'}, False),
    ({'Authorization': 'Bearer s3cret '}, False),
    ({'Authorization': 'Bearer ✓'}, False),
    ({}, False),
])
def test_is_authorized(headers, expected):
    assert is_authorized(headers, 's3cret') is expected


def test_unset_secret_rejects_everything():
    """An empty secret must not authorize 'Bearer '."""
    assert is_authorized({'Authorization': 'Bearer '}, '') is False
