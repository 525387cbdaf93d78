"""Unit tests for the Google Sheets CSV client."""
from unittest.mock import patch

import pytest
import responses
from responses import matchers
from requests.exceptions import ConnectionError as RequestsConnectionError

from processor.errors import SheetFetchError
from processor.models import Partition
from sheets.google_sheets import (
    GoogleSheetsClient,
    parse_csv,
    parse_festival_sheet,
    parse_steam_sheet,
)

SPREADSHEET_ID = 'sheet-123'
EXPORT_URL = f"https://docs.google.com/spreadsheets/d/{SPREADSHEET_ID}/export"

FESTIVAL_CSV = (
    'Indie festival list,,,\n'
    'Updated weekly,,,\n'
    ',Type,Submission Open,Days to submit\n'
    'SUBMISSIONS OPEN,,,\n'
    'Indie Arena Booth,Expo,TRUE,12\n'
    ',,,\n'
    'Day of the Devs,Showcase,false,\n'
)

STEAM_CSV = (
    'Festival,2021,2022,2023,Details 2021,Details 2022,Details 2023\n'
    'Indie Arena Booth,Y,N,Y,Front page,,Sale page\n'
)


class TestParsing:
    """Test cases for CSV parsing helpers."""

    def test_parse_csv_skips_leading_rows_before_dropping_blanks(self):
        rows = parse_csv('\n\nA,B\n1,2\n,\n', skip_rows=2)

        assert rows == [['A', 'B'], ['1', '2']]

    def test_parse_csv_keeps_quoted_commas(self):
        rows = parse_csv('"Name, with comma",x\n')

        assert rows == [['Name, with comma', 'x']]

    def test_parse_festival_sheet(self):
        """Two informational rows are skipped, then the label row is used."""
        sheet = parse_festival_sheet(FESTIVAL_CSV, header_rows=2)

        assert sheet.columns.header == ['', 'Type', 'Submission Open', 'Days to submit']
        assert len(sheet.rows) == 3
        assert sheet.rows[1][''] == 'Indie Arena Booth'
        assert sheet.rows[1]['Days to submit'] == '12'

    def test_parse_festival_sheet_empty(self):
        sheet = parse_festival_sheet('only,header\n', header_rows=2)

        assert sheet.rows == []

    def test_parse_steam_sheet(self):
        rows = parse_steam_sheet(STEAM_CSV)

        assert rows == [['Indie Arena Booth', 'Y', 'N', 'Y', 'Front page', '', 'Sale page']]


class TestGoogleSheetsClient:
    """Test cases for GoogleSheetsClient."""

    @responses.activate
    def test_fetch_festival_sheet(self):
        responses.add(
            responses.GET,
            EXPORT_URL,
            body=FESTIVAL_CSV,
            status=200,
            match=[matchers.query_param_matcher({'format': 'csv', 'gid': '0'})]
        )

        client = GoogleSheetsClient(SPREADSHEET_ID)
        sheet = client.fetch_festival_sheet(Partition.CURATED)

        assert len(sheet.rows) == 3
        assert 'gid=0' in responses.calls[0].request.url

    @responses.activate
    def test_fetch_under_consideration_uses_its_tab(self):
        responses.add(responses.GET, EXPORT_URL, body=FESTIVAL_CSV, status=200)

        client = GoogleSheetsClient(SPREADSHEET_ID)
        client.fetch_festival_sheet(Partition.UNDER_CONSIDERATION)

        assert 'gid=857302855' in responses.calls[0].request.url

    @responses.activate
    def test_fetch_steam_sheet(self):
        responses.add(responses.GET, EXPORT_URL, body=STEAM_CSV, status=200)

        client = GoogleSheetsClient(SPREADSHEET_ID)
        rows = client.fetch_steam_sheet()

        assert rows[0][0] == 'Indie Arena Booth'
        assert 'gid=2061623943' in responses.calls[0].request.url

    @responses.activate
    @patch('sheets.google_sheets.time.sleep')
    def test_fetch_retries_then_succeeds(self, mock_sleep):
        """Transient failures are retried with exponential backoff."""
        responses.add(responses.GET, EXPORT_URL, body=RequestsConnectionError('reset'))
        responses.add(responses.GET, EXPORT_URL, status=503)
        responses.add(responses.GET, EXPORT_URL, body=STEAM_CSV, status=200)

        client = GoogleSheetsClient(SPREADSHEET_ID, max_retries=3, base_delay=1)
        rows = client.fetch_steam_sheet()

        assert len(rows) == 1
        assert len(responses.calls) == 3
        assert [call.args[0] for call in mock_sleep.call_args_list] == [1, 2]

    @responses.activate
    @patch('sheets.google_sheets.time.sleep')
    def test_fetch_raises_after_all_retries(self, mock_sleep):
        responses.add(responses.GET, EXPORT_URL, status=500)

        client = GoogleSheetsClient(SPREADSHEET_ID, max_retries=2)

        with pytest.raises(SheetFetchError) as exc_info:
            client.fetch_festival_sheet(Partition.CURATED)

        assert exc_info.value.sheet == 'Curated'
        assert exc_info.value.status_code == 500
        assert len(responses.calls) == 2
        assert mock_sleep.call_count == 1
