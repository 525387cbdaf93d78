"""Selection of festivals that need enrichment."""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from enrichment.base import EnrichmentKind
from processor.models import AIEnrichmentStatus, FestivalRecord, VerificationStatus

logger = logging.getLogger(__name__)

# Bound applied by API callers that do not pass a limit.
DEFAULT_API_LIMIT = 10


@dataclass
class SelectionCriteria:
    force: bool = False
    min_version: Optional[int] = None


def _needs_page_scrape(festival: FestivalRecord, criteria: SelectionCriteria) -> bool:
    status = festival.enrichment.verification_status
    return not status or status == VerificationStatus.PENDING.value


def _needs_steam_image(festival: FestivalRecord, criteria: SelectionCriteria) -> bool:
    return bool(festival.latest_steam_page) and not festival.enrichment.image_url


def _needs_image_search(festival: FestivalRecord, criteria: SelectionCriteria) -> bool:
    return not festival.enrichment.image_url


def _needs_ai_lookup(festival: FestivalRecord, criteria: SelectionCriteria) -> bool:
    ai = festival.ai_enrichment
    if not ai.enrichment_status or ai.enrichment_status == AIEnrichmentStatus.PENDING.value:
        return True
    if criteria.min_version is not None and (ai.version is None or ai.version < criteria.min_version):
        return True
    return False


PREDICATES: Dict[EnrichmentKind, Callable[[FestivalRecord, SelectionCriteria], bool]] = {
    EnrichmentKind.PAGE: _needs_page_scrape,
    EnrichmentKind.STEAM_PAGE: _needs_steam_image,
    EnrichmentKind.IMAGE_SEARCH: _needs_image_search,
    EnrichmentKind.AI: _needs_ai_lookup,
}


class EnrichmentSelector:
    """Read-only query for festivals matching an enrichment predicate."""

    def __init__(self, store):
        self.store = store

    def select(
        self,
        kind: EnrichmentKind,
        criteria: Optional[SelectionCriteria] = None,
        limit: Optional[int] = None
    ) -> List[FestivalRecord]:
        """
        Select festivals needing a kind of enrichment.

        Args:
            kind: Enrichment kind whose predicate applies
            criteria: Force flag and minimum AI version
            limit: Maximum number of festivals; 0 or None is unbounded

        Returns:
            Matching festivals ordered by name
        """
        criteria = criteria or SelectionCriteria()
        predicate = PREDICATES[EnrichmentKind(kind)]

        festivals = [
            festival for festival in self.store.get_all_festivals()
            if criteria.force or predicate(festival, criteria)
        ]
        festivals.sort(key=lambda f: (f.name, f.partition))

        if limit is not None and limit > 0:
            festivals = festivals[:limit]

        logger.info(
            f"Selected {len(festivals)} festivals for {EnrichmentKind(kind).value} enrichment",
            extra={'force': criteria.force, 'limit': limit}
        )
        return festivals
