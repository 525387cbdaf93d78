"""Column mapping for spreadsheet exports.

Sheet headers contain merged cells and multi-line labels, so each field is
described by the labels it may appear under. The mapping is resolved once per
header row; fields whose labels are absent are reported as ``ColumnNotFound``
instead of silently reading empty values.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


# Field -> candidate labels, in lookup order.
FESTIVAL_COLUMNS: Dict[str, Tuple[str, ...]] = {
    'name': ('Festival', ''),
    'type': ('Type',),
    'when': ('When',),
    'deadline': ('Deadline (YYYY-MM-DD)', 'Deadline'),
    'submission_open': ('Submission Open',),
    'price': ('Price',),
    'has_steam_page': ('Steam page',),
    'worth_it': (
        'Was it worth the price? Opinions are biased (check comments)',
        'Was it worth the price?',
    ),
    'comments': ('Comments',),
    'event_official_page': ('Event official page',),
    'latest_steam_page': ('Latest Steam page',),
    'days_to_submit': ('Days to submit',),
}

# Fields that fall back to the first column when their labels are empty.
POSITIONAL_FALLBACKS: Dict[str, int] = {'name': 0}


def normalize_label(label: str) -> str:
    """Collapse whitespace (including embedded newlines) and case."""
    return re.sub(r'\s+', ' ', label or '').strip().casefold()


@dataclass(frozen=True)
class ColumnNotFound:
    """A field whose labels are not present in the header."""
    field: str
    labels: Tuple[str, ...]


@dataclass
class ResolvedColumns:
    """Header labels resolved for each known field."""
    header: List[str]
    labels: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    fallbacks: Dict[str, int] = field(default_factory=dict)
    missing: List[ColumnNotFound] = field(default_factory=list)

    def value(self, row: Mapping[str, str], field_name: str) -> Optional[str]:
        """
        Read a field from a row keyed by header label.

        Args:
            row: Mapping of header label to raw cell value
            field_name: Field to read

        Returns:
            First non-empty value among the resolved labels, the positional
            fallback, or None when nothing usable is present
        """
        for label in self.labels.get(field_name, ()):
            value = row.get(label)
            if value and value.strip():
                return value

        position = self.fallbacks.get(field_name)
        if position is not None and position < len(self.header):
            value = row.get(self.header[position])
            if value and value.strip():
                return value

        return None


def resolve_columns(
    header: Sequence[str],
    columns: Mapping[str, Tuple[str, ...]] = FESTIVAL_COLUMNS,
    fallbacks: Mapping[str, int] = POSITIONAL_FALLBACKS
) -> ResolvedColumns:
    """
    Resolve field labels against a header row.

    Args:
        header: Header labels in column order
        columns: Field to candidate labels mapping
        fallbacks: Field to column index used when labels yield nothing

    Returns:
        ResolvedColumns with missing fields listed as ColumnNotFound
    """
    header = list(header)
    index = {}
    for label in header:
        index.setdefault(normalize_label(label), label)

    resolved = ResolvedColumns(header=header, fallbacks=dict(fallbacks))
    for field_name, candidates in columns.items():
        found = tuple(
            index[normalize_label(candidate)]
            for candidate in candidates
            if normalize_label(candidate) in index
        )
        if found:
            resolved.labels[field_name] = found
        elif field_name not in fallbacks:
            resolved.missing.append(ColumnNotFound(field_name, tuple(candidates)))

    if resolved.missing:
        logger.warning(
            "Sheet header is missing columns: "
            + ', '.join(missing.field for missing in resolved.missing)
        )
    return resolved


def rows_to_mappings(header: Sequence[str], rows: Sequence[Sequence[str]]) -> List[Dict[str, str]]:
    """
    Convert positional rows into label-keyed mappings.

    Duplicate labels keep the first column's value; short rows are padded
    with empty strings.
    """
    mappings = []
    for row in rows:
        mapping: Dict[str, str] = {}
        for position, label in enumerate(header):
            value = row[position] if position < len(row) else ''
            mapping.setdefault(label, value)
        mappings.append(mapping)
    return mappings
