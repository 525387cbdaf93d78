"""Data models for festival sync and enrichment."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class Partition(str, Enum):
    """Source partitions of the festival spreadsheet."""
    CURATED = 'curated'
    UNDER_CONSIDERATION = 'underConsideration'


class VerificationStatus(str, Enum):
    PENDING = 'pending'
    VERIFIED = 'verified'
    FAILED = 'failed'
    OUTDATED = 'outdated'


class AIEnrichmentStatus(str, Enum):
    PENDING = 'pending'
    ENRICHED = 'enriched'
    FAILED = 'failed'
    SKIPPED = 'skipped'


class SyncStatus(str, Enum):
    SUCCESS = 'success'
    PARTIAL = 'partial'
    FAILED = 'failed'


class SteamYear(IntEnum):
    """Years tracked by the Steam feature sheet."""
    Y2021 = 2021
    Y2022 = 2022
    Y2023 = 2023


@dataclass
class FestivalEnrichment:
    """Scrape-derived enrichment sub-document."""
    image_url: Optional[str] = None
    logo_url: Optional[str] = None
    description: Optional[str] = None
    twitter: Optional[str] = None
    discord: Optional[str] = None
    location: Optional[str] = None
    organizer: Optional[str] = None
    verification_status: str = VerificationStatus.PENDING.value
    verified_at: Optional[str] = None
    last_checked_at: Optional[str] = None


def _default_overview() -> Dict[str, Any]:
    return {
        'description': None,
        'primary_platform': None,
        'organizers': [],
        'objective': None,
        'banner_image_url': None,
    }


def _default_event_details() -> Dict[str, Any]:
    return {'current_edition': None, 'typical_duration': None, 'offerings': []}


def _default_participants() -> Dict[str, Any]:
    return {'notable_studios': [], 'featured_games': []}


def _default_industry_context() -> Dict[str, Any]:
    return {'location': None, 'significance': None}


@dataclass
class AIEnrichment:
    """Generative-lookup enrichment sub-document."""
    entity: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None
    overview: Dict[str, Any] = field(default_factory=_default_overview)
    event_details: Dict[str, Any] = field(default_factory=_default_event_details)
    key_participants: Dict[str, Any] = field(default_factory=_default_participants)
    industry_context: Dict[str, Any] = field(default_factory=_default_industry_context)
    version: int = 0
    enriched_at: Optional[str] = None
    enrichment_status: str = AIEnrichmentStatus.PENDING.value


@dataclass
class FestivalRecord:
    """Canonical festival entry, keyed by (name, partition)."""
    name: str
    partition: str
    type: str = ''
    when: str = ''
    deadline: Optional[str] = None
    submission_open: bool = False
    price: str = ''
    has_steam_page: str = ''
    worth_it: str = ''
    comments: str = ''
    event_official_page: str = ''
    latest_steam_page: str = ''
    days_to_submit: Optional[int] = None
    festival_id: Optional[str] = None
    slug: Optional[str] = None
    last_synced_epoch: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    enrichment: FestivalEnrichment = field(default_factory=FestivalEnrichment)
    ai_enrichment: AIEnrichment = field(default_factory=AIEnrichment)

    @property
    def identity(self) -> tuple:
        return (self.name, self.partition)

    def descriptive_fields(self) -> Dict[str, Any]:
        """Fields owned by the spreadsheet, written on every sync pass."""
        return {
            'type': self.type,
            'when': self.when,
            'deadline': self.deadline,
            'submission_open': self.submission_open,
            'price': self.price,
            'has_steam_page': self.has_steam_page,
            'worth_it': self.worth_it,
            'comments': self.comments,
            'event_official_page': self.event_official_page,
            'latest_steam_page': self.latest_steam_page,
            'days_to_submit': self.days_to_submit,
        }


@dataclass
class FeatureSlot:
    """Featuring outcome for one year."""
    status: str = ''
    details: str = ''


# Fixed year -> (status attribute, details attribute) table.
STEAM_YEAR_FIELDS = {
    SteamYear.Y2021: ('year2021', 'details2021'),
    SteamYear.Y2022: ('year2022', 'details2022'),
    SteamYear.Y2023: ('year2023', 'details2023'),
}


@dataclass
class SteamFeatureRecord:
    """Steam featuring history of one festival."""
    festival_name: str
    year2021: str = ''
    year2022: str = ''
    year2023: str = ''
    details2021: str = ''
    details2022: str = ''
    details2023: str = ''
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def slot(self, year: SteamYear) -> FeatureSlot:
        status_field, details_field = STEAM_YEAR_FIELDS[year]
        return FeatureSlot(
            status=getattr(self, status_field),
            details=getattr(self, details_field)
        )

    def tracked_fields(self) -> Dict[str, str]:
        fields = {}
        for status_field, details_field in STEAM_YEAR_FIELDS.values():
            fields[status_field] = getattr(self, status_field)
            fields[details_field] = getattr(self, details_field)
        return fields


@dataclass
class SyncAuditEntry:
    """Immutable record of one sync pass."""
    log_id: str
    synced_at: str
    epoch: int
    partitions: List[str]
    festivals_count: int
    steam_features_count: int
    deleted_count: int
    status: str
    errors: List[str]


@dataclass
class PartitionResult:
    """Outcome of reconciling one partition."""
    partition: str
    upserted: int = 0
    deleted: int = 0
    errors: List[str] = field(default_factory=list)
    aborted: bool = False


@dataclass
class SyncReport:
    """Aggregate result of a sync pass."""
    epoch: int
    timestamp: str
    partitions: Dict[str, PartitionResult]
    festivals_count: int
    steam_features_count: int
    deleted_count: int
    status: str
    errors: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'epoch': self.epoch,
            'timestamp': self.timestamp,
            'partitions': {
                name: {
                    'upserted': result.upserted,
                    'deleted': result.deleted,
                    'aborted': result.aborted,
                    'errors': result.errors,
                }
                for name, result in self.partitions.items()
            },
            'festivals_count': self.festivals_count,
            'steam_features_count': self.steam_features_count,
            'deleted_count': self.deleted_count,
            'status': self.status,
            'errors': self.errors,
        }


@dataclass
class EnrichmentStats:
    """Result of one enrichment pass."""
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total': self.total,
            'succeeded': self.succeeded,
            'failed': self.failed,
            'skipped': self.skipped,
            'errors': self.errors,
        }
