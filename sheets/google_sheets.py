"""CSV export client for the indie festival spreadsheet."""
import csv
import io
import logging
import time
from dataclasses import dataclass
from typing import Dict, List

import requests

from processor.errors import SheetFetchError
from processor.models import Partition
from sheets.columns import ResolvedColumns, resolve_columns, rows_to_mappings

logger = logging.getLogger(__name__)

USER_AGENT = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36'


@dataclass(frozen=True)
class SheetConfig:
    """One tab of the spreadsheet."""
    name: str
    gid: str
    header_rows: int
    description: str


FESTIVAL_SHEETS: Dict[Partition, SheetConfig] = {
    Partition.CURATED: SheetConfig(
        name='Curated',
        gid='0',
        header_rows=2,
        description='Main list of verified festivals'
    ),
    Partition.UNDER_CONSIDERATION: SheetConfig(
        name='On the Fence',
        gid='857302855',
        header_rows=2,
        description='Festivals under consideration'
    ),
}

STEAM_SHEET = SheetConfig(
    name='Steam feature tracker',
    gid='2061623943',
    header_rows=1,
    description='Steam sale/featuring opportunities'
)


@dataclass
class FestivalSheet:
    """Parsed festival tab: resolved columns plus label-keyed rows."""
    columns: ResolvedColumns
    rows: List[Dict[str, str]]


def parse_csv(csv_content: str, skip_rows: int = 0) -> List[List[str]]:
    """
    Parse CSV text into rows.

    The first ``skip_rows`` records are discarded as-is; of the remaining
    records, those with no content are dropped.
    """
    reader = csv.reader(io.StringIO(csv_content))
    rows = list(reader)[skip_rows:]
    return [row for row in rows if any(cell.strip() for cell in row)]


def parse_festival_sheet(csv_content: str, header_rows: int = 2) -> FestivalSheet:
    """
    Parse a festival tab export.

    The tab starts with ``header_rows`` informational rows, followed by the
    label row and the data rows.

    Args:
        csv_content: Raw CSV export
        header_rows: Number of leading non-data rows to skip

    Returns:
        FestivalSheet with resolved columns and label-keyed rows
    """
    rows = parse_csv(csv_content, skip_rows=header_rows)
    if not rows:
        return FestivalSheet(columns=resolve_columns([]), rows=[])

    header = [label.strip() for label in rows[0]]
    return FestivalSheet(
        columns=resolve_columns(header),
        rows=rows_to_mappings(header, rows[1:])
    )


def parse_steam_sheet(csv_content: str, header_rows: int = 1) -> List[List[str]]:
    """Parse the Steam tracker tab into positional rows."""
    return parse_csv(csv_content, skip_rows=header_rows)


class GoogleSheetsClient:
    """Fetches spreadsheet tabs through the public CSV export."""

    EXPORT_URL = "https://docs.google.com/spreadsheets/d/{spreadsheet_id}/export"

    def __init__(
        self,
        spreadsheet_id: str,
        timeout: int = 15,
        max_retries: int = 3,
        base_delay: float = 1
    ):
        """
        Initialize the sheets client.

        Args:
            spreadsheet_id: ID of the public spreadsheet
            timeout: HTTP request timeout in seconds (default: 15)
            max_retries: Attempts per export before giving up (default: 3)
            base_delay: Initial backoff delay in seconds (default: 1)
        """
        self.spreadsheet_id = spreadsheet_id
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay

    @property
    def spreadsheet_url(self) -> str:
        return f"https://docs.google.com/spreadsheets/d/{self.spreadsheet_id}"

    def fetch_festival_sheet(self, partition: Partition) -> FestivalSheet:
        """
        Fetch and parse the festival tab of a partition.

        Raises:
            SheetFetchError: If the export cannot be retrieved
        """
        sheet = FESTIVAL_SHEETS[Partition(partition)]
        csv_content = self.fetch_csv(sheet)
        parsed = parse_festival_sheet(csv_content, header_rows=sheet.header_rows)
        logger.info(f"Fetched {len(parsed.rows)} rows from '{sheet.name}'")
        return parsed

    def fetch_steam_sheet(self) -> List[List[str]]:
        """
        Fetch and parse the Steam feature tracker tab.

        Raises:
            SheetFetchError: If the export cannot be retrieved
        """
        csv_content = self.fetch_csv(STEAM_SHEET)
        rows = parse_steam_sheet(csv_content, header_rows=STEAM_SHEET.header_rows)
        logger.info(f"Fetched {len(rows)} rows from '{STEAM_SHEET.name}'")
        return rows

    def fetch_csv(self, sheet: SheetConfig) -> str:
        """
        Fetch the CSV export of a tab with retry logic.

        Args:
            sheet: Tab configuration

        Returns:
            CSV content as string

        Raises:
            SheetFetchError: If all retry attempts fail
        """
        url = self.EXPORT_URL.format(spreadsheet_id=self.spreadsheet_id)
        params = {'format': 'csv', 'gid': sheet.gid}

        for attempt in range(self.max_retries):
            try:
                logger.info(
                    f"Fetching '{sheet.name}' export "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )
                response = requests.get(
                    url,
                    params=params,
                    headers={'User-Agent': USER_AGENT},
                    timeout=self.timeout
                )
                response.raise_for_status()
                return response.text

            except requests.RequestException as e:
                if attempt < self.max_retries - 1:
                    delay = self.base_delay * (2 ** attempt)
                    logger.warning(
                        f"Export request failed (attempt {attempt + 1}/{self.max_retries}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {self.max_retries} attempts to fetch '{sheet.name}' failed. "
                        f"Last error: {e}"
                    )
                    status_code = e.response.status_code if e.response is not None else None
                    raise SheetFetchError(sheet.name, str(e), status_code=status_code) from e
