"""Read-side queries over the festival, Steam feature and sync log tables."""
import logging
import math
import re
from collections import Counter
from dataclasses import asdict, fields
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from processor.errors import InvalidQueryError
from processor.models import (
    STEAM_YEAR_FIELDS,
    FestivalRecord,
    SteamFeatureRecord,
    SyncAuditEntry,
    VerificationStatus,
)
from processor.steam_processor import parse_year

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
DEFAULT_UPCOMING_DAYS = 30
DEFAULT_HISTORY_LIMIT = 10
TBA = 'TBA'

# Sub-documents are not orderable.
SORTABLE_FIELDS = frozenset(
    f.name for f in fields(FestivalRecord)
    if f.name not in ('enrichment', 'ai_enrichment')
)

_CAMEL_BOUNDARY = re.compile(r'(?<!^)(?=[A-Z])')


def to_snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub('_', name).lower()


def sort_records(records: List[Any], field_name: str, descending: bool = False) -> List[Any]:
    """Sort records by an attribute, keeping missing values last in both orders."""
    present = [r for r in records if getattr(r, field_name) is not None]
    missing = [r for r in records if getattr(r, field_name) is None]
    present.sort(key=lambda r: getattr(r, field_name), reverse=descending)
    return present + missing


def _contains(haystack: Optional[str], needle: str) -> bool:
    return needle in (haystack or '').lower()


class FestivalQueries:
    """Filtering, pagination and aggregate views for the read API."""

    def __init__(self, store):
        self.store = store

    # Festivals

    def list_festivals(
        self,
        partition: Optional[str] = None,
        festival_type: Optional[str] = None,
        submission_open: Optional[bool] = None,
        search: Optional[str] = None,
        sort_by: str = 'name',
        sort_order: str = 'asc',
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE
    ) -> Dict[str, Any]:
        """
        Filter, sort and paginate festivals.

        Args:
            partition: Restrict to one partition
            festival_type: Case-insensitive substring of the type
            submission_open: Restrict to open or closed submissions
            search: Case-insensitive substring of name, comments or type
            sort_by: Festival attribute (snake_case or camelCase)
            sort_order: 'asc' or 'desc'
            page: 1-based page number
            limit: Page size

        Returns:
            Dict with 'data' (festival records) and 'pagination'

        Raises:
            InvalidQueryError: On unknown sort fields or bad paging values
        """
        sort_field = to_snake_case(sort_by)
        if sort_field not in SORTABLE_FIELDS:
            raise InvalidQueryError(f"Cannot sort by '{sort_by}'")
        if sort_order not in ('asc', 'desc'):
            raise InvalidQueryError(f"Invalid sort order '{sort_order}'")
        if page < 1 or limit < 1:
            raise InvalidQueryError("page and limit must be positive integers")

        if partition:
            festivals = list(self.store.get_partition_festivals(partition).values())
        else:
            festivals = self.store.get_all_festivals()

        if festival_type:
            needle = festival_type.lower()
            festivals = [f for f in festivals if _contains(f.type, needle)]

        if submission_open is not None:
            festivals = [f for f in festivals if f.submission_open == submission_open]

        if search:
            needle = search.lower()
            festivals = [
                f for f in festivals
                if _contains(f.name, needle)
                or _contains(f.comments, needle)
                or _contains(f.type, needle)
            ]

        festivals = sort_records(festivals, sort_field, descending=sort_order == 'desc')

        total = len(festivals)
        start = (page - 1) * limit
        return {
            'data': festivals[start:start + limit],
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'total_pages': math.ceil(total / limit),
            },
        }

    def get_by_id(self, festival_id: str) -> Optional[FestivalRecord]:
        return self.store.find_festival_by_id(festival_id)

    def get_by_slug(self, slug: str) -> Optional[FestivalRecord]:
        return self.store.find_festival_by_slug(slug)

    def open_submissions(self) -> List[FestivalRecord]:
        festivals = [f for f in self.store.get_all_festivals() if f.submission_open]
        return sort_records(festivals, 'deadline')

    def upcoming_deadlines(self, days: int = DEFAULT_UPCOMING_DAYS) -> Dict[str, Any]:
        """
        Festivals whose submission window closes within the next days.

        Returns:
            Dict with 'data' and the 'period' covered (ISO dates)
        """
        if days < 0:
            raise InvalidQueryError("days must not be negative")

        festivals = [
            f for f in self.store.get_all_festivals()
            if f.deadline not in (None, '', TBA)
            and f.days_to_submit is not None
            and 0 <= f.days_to_submit <= days
        ]
        festivals.sort(key=lambda f: (f.days_to_submit, f.name))

        today = date.today()
        return {
            'data': festivals,
            'period': {
                'from': today.isoformat(),
                'to': (today + timedelta(days=days)).isoformat(),
            },
        }

    def tba_festivals(self) -> List[FestivalRecord]:
        festivals = [f for f in self.store.get_all_festivals() if f.deadline == TBA]
        return sorted(festivals, key=lambda f: (f.name, f.partition))

    def festival_types(self) -> List[str]:
        return sorted({f.type.strip() for f in self.store.get_all_festivals() if f.type and f.type.strip()})

    def festival_stats(self) -> Dict[str, Any]:
        festivals = self.store.get_all_festivals()
        partitions = Counter(f.partition for f in festivals)
        by_type = Counter(f.type or 'Unknown' for f in festivals)

        return {
            'total': len(festivals),
            'curated': partitions.get('curated', 0),
            'under_consideration': partitions.get('underConsideration', 0),
            'open_submissions': sum(1 for f in festivals if f.submission_open),
            'by_type': [
                {'type': festival_type, 'count': count}
                for festival_type, count in sorted(by_type.items(), key=lambda item: (-item[1], item[0]))
            ],
        }

    def enrichment_stats(self) -> Dict[str, int]:
        festivals = self.store.get_all_festivals()
        statuses = Counter(f.enrichment.verification_status or VerificationStatus.PENDING.value for f in festivals)

        return {
            'total': len(festivals),
            'verified': statuses.get(VerificationStatus.VERIFIED.value, 0),
            'pending': statuses.get(VerificationStatus.PENDING.value, 0),
            'failed': statuses.get(VerificationStatus.FAILED.value, 0),
            'with_images': sum(1 for f in festivals if f.enrichment.image_url),
            'with_descriptions': sum(1 for f in festivals if f.enrichment.description),
            'with_social_links': sum(
                bool(f.enrichment.twitter) + bool(f.enrichment.discord) for f in festivals
            ),
        }

    # Steam features

    def steam_features(self) -> List[SteamFeatureRecord]:
        return sorted(self.store.get_all_steam_features(), key=lambda f: f.festival_name)

    def steam_feature_by_name(self, name: str) -> Optional[SteamFeatureRecord]:
        """First feature (by name) whose festival name contains the text, ignoring case."""
        needle = name.lower()
        for feature in self.steam_features():
            if needle in feature.festival_name.lower():
                return feature
        return None

    def featured_festivals(self, year: Any = 2023) -> List[SteamFeatureRecord]:
        """
        Festivals featured by Steam in a year.

        Raises:
            UnsupportedYearError: If the year is not tracked
        """
        steam_year = parse_year(year)
        return [f for f in self.steam_features() if f.slot(steam_year).status == 'Y']

    def steam_feature_stats(self) -> Dict[str, int]:
        features = self.store.get_all_steam_features()
        stats = {'total': len(features)}
        for year in STEAM_YEAR_FIELDS:
            statuses = Counter(f.slot(year).status for f in features)
            stats[f'featured{year.value}'] = statuses.get('Y', 0)
            stats[f'no_featuring{year.value}'] = statuses.get('N', 0)
        return stats

    # Sync log

    def sync_history(self, limit: int = DEFAULT_HISTORY_LIMIT) -> List[SyncAuditEntry]:
        if limit < 1:
            raise InvalidQueryError("limit must be a positive integer")
        return self.store.get_sync_history(limit=limit)

    def last_sync(self) -> Optional[SyncAuditEntry]:
        history = self.store.get_sync_history(limit=1)
        return history[0] if history else None


def to_document(record: Any) -> Dict[str, Any]:
    """Dataclass record as a JSON-ready dict."""
    return asdict(record)
