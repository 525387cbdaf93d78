"""Scheduled pipeline: sync, bounded enrichment, frontend revalidation."""
import logging
import time
from typing import Any, Dict, Optional

import requests

from enrichment.base import EnrichmentStrategy
from enrichment.runner import EnrichmentRunner
from enrichment.selector import SelectionCriteria
from processor.models import EnrichmentStats
from sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


class FrontendRevalidator:
    """Asks the frontend to drop its cached festival pages."""

    def __init__(self, url: str, timeout: int = 15):
        self.url = url
        self.timeout = timeout

    def trigger(self) -> Dict[str, Any]:
        """
        Call the revalidation endpoint.

        Returns:
            Dict with 'success' and 'message'; failures are reported, not raised
        """
        if not self.url:
            return {'success': False, 'message': 'Revalidation URL not configured'}

        try:
            response = requests.get(
                self.url,
                headers={'Cache-Control': 'no-cache, no-store'},
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.warning(f"Frontend revalidation error: {e}")
            return {'success': False, 'message': str(e)}

        if not response.ok:
            logger.warning(f"Frontend revalidation failed: HTTP {response.status_code}")
            return {'success': False, 'message': f"HTTP {response.status_code}: {response.text}"}

        logger.info("Frontend revalidation triggered")
        return {'success': True, 'message': 'Revalidation triggered'}


class PostSyncPipeline:
    """Sync followed by small enrichment passes over new festivals."""

    IMAGE_DELAY_MS = 1500
    AI_DELAY_MS = 2000

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        runner: EnrichmentRunner,
        image_strategy: EnrichmentStrategy,
        ai_strategy: EnrichmentStrategy,
        revalidator: Optional[FrontendRevalidator] = None
    ):
        self.orchestrator = orchestrator
        self.runner = runner
        self.image_strategy = image_strategy
        self.ai_strategy = ai_strategy
        self.revalidator = revalidator

    def run(self, image_limit: int = 5, ai_limit: int = 3) -> Dict[str, Any]:
        """
        Run sync, then image and AI enrichment, then revalidation.

        Args:
            image_limit: Maximum festivals for the image pass
            ai_limit: Maximum festivals for the AI pass

        Returns:
            Dict with 'sync', 'enrichment' and 'revalidation' reports
        """
        start_time = time.time()

        logger.info("Step 1: syncing from Google Sheets")
        sync_report = self.orchestrator.run()

        logger.info("Step 2: enriching new festivals")
        images = self._enrich(self.image_strategy, image_limit, self.IMAGE_DELAY_MS)
        ai = self._enrich(
            self.ai_strategy,
            ai_limit,
            self.AI_DELAY_MS,
            criteria=SelectionCriteria(min_version=self.ai_strategy.version)
        )

        revalidation = None
        if self.revalidator is not None:
            logger.info("Step 3: triggering frontend revalidation")
            revalidation = self.revalidator.trigger()

        duration = round(time.time() - start_time, 2)
        logger.info(
            "Post-sync pipeline completed",
            extra={
                'duration_seconds': duration,
                'festivals_count': sync_report.festivals_count,
                'deleted_count': sync_report.deleted_count,
                'images_enriched': images.succeeded,
                'ai_enriched': ai.succeeded,
            }
        )

        return {
            'sync': sync_report.to_dict(),
            'enrichment': {
                'images': images.to_dict(),
                'ai': ai.to_dict(),
            },
            'revalidation': revalidation,
            'duration_seconds': duration,
        }

    def _enrich(
        self,
        strategy: EnrichmentStrategy,
        limit: int,
        delay_ms: int,
        criteria: Optional[SelectionCriteria] = None
    ) -> EnrichmentStats:
        # Enrichment is best effort once the sync has been recorded.
        try:
            return self.runner.enrich_pending(strategy, criteria, limit=limit, delay_ms=delay_ms)
        except Exception as e:
            logger.error(f"{strategy.name} enrichment pass failed: {e}", exc_info=True)
            return EnrichmentStats(errors=[f"{strategy.name}: {e}"])
