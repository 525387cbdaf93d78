"""Festival row normalization, deduplication and slug allocation."""
import hashlib
import logging
import re
from typing import Callable, Hashable, Iterable, List, Mapping, Optional, Set, TypeVar

from processor.models import FestivalRecord, Partition
from sheets.columns import ResolvedColumns

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Section-header rows in the curated tab ("SUBMISSIONS OPEN", "CLOSING SOON").
SECTION_MARKERS = ('OPEN', 'CLOSING')

_LEADING_INT = re.compile(r'^\s*([+-]?\d+)')


def clean_string(value: Optional[str]) -> str:
    """Trim a cell, treating missing values as empty."""
    if not value:
        return ''
    return value.strip()


def parse_boolean(value: Optional[str]) -> bool:
    """True only for a case-insensitive ``true`` token."""
    return clean_string(value).upper() == 'TRUE'


def parse_number(value: Optional[str]) -> Optional[int]:
    """
    Parse the leading integer of a cell.

    Args:
        value: Raw cell value (e.g., "12", "12 days", "3.5")

    Returns:
        Parsed integer or None if the cell does not start with digits
    """
    match = _LEADING_INT.match(value or '')
    if not match:
        return None
    return int(match.group(1))


def generate_slug(name: str) -> str:
    """
    Build a URL-safe slug from a festival name.

    Lowercases, drops punctuation, joins words with single hyphens.
    """
    slug = name.lower().strip()
    slug = re.sub(r'[^\w\s-]', '', slug, flags=re.ASCII)
    slug = re.sub(r'\s+', '-', slug)
    slug = re.sub(r'-+', '-', slug)
    return slug.strip('-')


def generate_festival_id(name: str, partition: str) -> str:
    """
    Generate a stable public identifier from the identity key.

    Args:
        name: Festival name
        partition: Partition value

    Returns:
        SHA256 hex digest of "partition|name"
    """
    composite = f"{partition}|{name}"
    return hashlib.sha256(composite.encode('utf-8')).hexdigest()


class SlugAllocator:
    """Hands out slugs that are unique across all partitions."""

    def __init__(self, taken: Iterable[str] = ()):
        self._taken: Set[str] = set(slug for slug in taken if slug)

    def allocate(self, name: str) -> str:
        """Reserve a slug for ``name``, appending -1, -2, ... on collision."""
        base_slug = generate_slug(name) or 'festival'
        slug = base_slug
        counter = 1
        while slug in self._taken:
            slug = f"{base_slug}-{counter}"
            counter += 1
        self._taken.add(slug)
        return slug

    def release(self, slug: str) -> None:
        self._taken.discard(slug)

    def __contains__(self, slug: str) -> bool:
        return slug in self._taken


def deduplicate(
    records: Iterable[T],
    key: Callable[[T], Hashable],
    label: str = 'record'
) -> List[T]:
    """
    Drop records whose key was already seen; the first occurrence wins.

    Args:
        records: Records in source order
        key: Identity key function
        label: Noun used in log messages

    Returns:
        Records with unique keys, in source order
    """
    seen = set()
    unique = []
    for record in records:
        identity = key(record)
        if identity in seen:
            logger.warning(f"Dropping duplicate {label}: {identity}")
            continue
        seen.add(identity)
        unique.append(record)
    return unique


class FestivalProcessor:
    """Converts raw sheet rows into canonical festival records."""

    def process_rows(
        self,
        rows: Iterable[Mapping[str, str]],
        partition: Partition,
        columns: ResolvedColumns
    ) -> List[FestivalRecord]:
        """
        Normalize and deduplicate the rows of one partition.

        Args:
            rows: Label-keyed rows from the sheet
            partition: Partition the rows belong to
            columns: Resolved column mapping of the sheet

        Returns:
            Unique FestivalRecord objects in sheet order
        """
        rows = list(rows)
        records = []
        for row in rows:
            record = self.normalize_row(row, partition, columns)
            if record:
                records.append(record)

        unique = deduplicate(records, key=lambda r: r.identity, label='festival')
        logger.info(
            f"Normalized {len(unique)} festivals out of {len(rows)} rows "
            f"for partition '{Partition(partition).value}'"
        )
        return unique

    def normalize_row(
        self,
        row: Mapping[str, str],
        partition: Partition,
        columns: ResolvedColumns
    ) -> Optional[FestivalRecord]:
        """
        Normalize a single row.

        Args:
            row: Label-keyed row
            partition: Partition tag
            columns: Resolved column mapping

        Returns:
            FestivalRecord, or None if the row has no usable name
        """
        name = clean_string(columns.value(row, 'name'))
        if not name or self._is_section_marker(name, partition):
            return None

        partition_value = Partition(partition).value
        return FestivalRecord(
            name=name,
            partition=partition_value,
            festival_id=generate_festival_id(name, partition_value),
            type=clean_string(columns.value(row, 'type')),
            when=clean_string(columns.value(row, 'when')),
            deadline=clean_string(columns.value(row, 'deadline')) or None,
            submission_open=parse_boolean(columns.value(row, 'submission_open')),
            price=clean_string(columns.value(row, 'price')),
            has_steam_page=clean_string(columns.value(row, 'has_steam_page')),
            worth_it=clean_string(columns.value(row, 'worth_it')),
            comments=clean_string(columns.value(row, 'comments')),
            event_official_page=clean_string(columns.value(row, 'event_official_page')),
            latest_steam_page=clean_string(columns.value(row, 'latest_steam_page')),
            days_to_submit=parse_number(columns.value(row, 'days_to_submit')),
        )

    def _is_section_marker(self, name: str, partition: Partition) -> bool:
        if Partition(partition) != Partition.CURATED:
            return False
        return any(marker in name for marker in SECTION_MARKERS)
