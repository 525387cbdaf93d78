"""Steam feature tracker row normalization."""
import logging
from typing import Iterable, List, Optional, Sequence, Union

from processor.errors import UnsupportedYearError
from processor.festival_processor import clean_string, deduplicate
from processor.models import STEAM_YEAR_FIELDS, SteamFeatureRecord, SteamYear

logger = logging.getLogger(__name__)

# Positional layout: name, statuses for each tracked year, details for each.
STEAM_COLUMN_ORDER = (
    'festival_name',
    'year2021', 'year2022', 'year2023',
    'details2021', 'details2022', 'details2023',
)

HEADER_LABEL = 'Festival'


def parse_year(value: Union[str, int, None]) -> SteamYear:
    """
    Validate a requested year against the tracked years.

    Raises:
        UnsupportedYearError: If the year is not tracked
    """
    try:
        return SteamYear(int(value))
    except (TypeError, ValueError):
        supported = ', '.join(str(year.value) for year in STEAM_YEAR_FIELDS)
        raise UnsupportedYearError(
            f"Unsupported year '{value}'. Supported years: {supported}"
        ) from None


class SteamFeatureProcessor:
    """Converts Steam tracker rows into SteamFeatureRecord objects."""

    def process_rows(self, rows: Iterable[Sequence[str]]) -> List[SteamFeatureRecord]:
        rows = list(rows)
        features = [
            feature for feature in (self.normalize_row(row) for row in rows)
            if feature
        ]
        unique = deduplicate(features, key=lambda f: f.festival_name, label='steam feature')
        logger.info(f"Normalized {len(unique)} steam features out of {len(rows)} rows")
        return unique

    def normalize_row(self, row: Sequence[str]) -> Optional[SteamFeatureRecord]:
        """Normalize one positional row; header and blank rows yield None."""
        cells = [clean_string(cell) for cell in row]
        cells += [''] * (len(STEAM_COLUMN_ORDER) - len(cells))

        values = dict(zip(STEAM_COLUMN_ORDER, cells))
        if not values['festival_name'] or values['festival_name'] == HEADER_LABEL:
            return None
        return SteamFeatureRecord(**values)
