"""Sequential, rate-limited enrichment runner."""
import logging
import time
from dataclasses import asdict
from typing import Callable, Dict, List, Optional

from enrichment.base import EnrichmentStrategy, EnrichmentTarget, StrategyResult
from enrichment.selector import EnrichmentSelector, SelectionCriteria
from processor.models import (
    AIEnrichmentStatus,
    EnrichmentStats,
    FestivalRecord,
    VerificationStatus,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

MAX_ERRORS = 50


class EnrichmentRunner:
    """
    Applies one strategy to festivals one at a time.

    Calls never overlap; the runner sleeps ``delay_ms`` between festivals.
    Every attempted festival gets a status and timestamp written back, so a
    later pass can tell "never attempted" apart from "attempted and
    incomplete". A single festival's failure never aborts the batch.
    """

    def __init__(
        self,
        store,
        selector: Optional[EnrichmentSelector] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.store = store
        self.selector = selector or EnrichmentSelector(store)
        self.sleep = sleep

    def enrich_pending(
        self,
        strategy: EnrichmentStrategy,
        criteria: Optional[SelectionCriteria] = None,
        limit: Optional[int] = None,
        delay_ms: int = 1000
    ) -> EnrichmentStats:
        """
        Select festivals for a strategy and enrich them.

        Args:
            strategy: Strategy to apply
            criteria: Selection criteria (force flag, minimum version)
            limit: Maximum number of festivals (0/None is unbounded)
            delay_ms: Pause between festivals in milliseconds

        Returns:
            EnrichmentStats for the pass
        """
        if not strategy.is_configured():
            logger.warning(f"{strategy.name} enrichment is not configured, skipping")
            return EnrichmentStats()

        festivals = self.selector.select(strategy.kind, criteria, limit)
        return self.run(festivals, strategy, delay_ms)

    def run(
        self,
        festivals: List[FestivalRecord],
        strategy: EnrichmentStrategy,
        delay_ms: int = 1000
    ) -> EnrichmentStats:
        stats = EnrichmentStats(total=len(festivals))
        if not festivals:
            logger.info(f"No festivals need {strategy.name} enrichment")
            return stats

        logger.info(f"Enriching {stats.total} festivals with {strategy.name}")

        for i, festival in enumerate(festivals):
            progress = f"[{i + 1}/{stats.total}]"
            logger.info(f"{progress} {strategy.name}: {festival.name}")

            try:
                result = strategy.enrich(festival)
            except Exception as e:
                logger.warning(f"{progress} {strategy.name} raised for '{festival.name}': {e}")
                result = StrategyResult.failure(str(e))

            try:
                self._persist(festival, strategy, result)
            except Exception as e:
                self._record_error(stats, f"{festival.name}: {e}")
                stats.failed += 1
                self._stamp_failure(festival, strategy, str(e))
            else:
                if result.success:
                    stats.succeeded += 1
                elif result.skipped:
                    stats.skipped += 1
                else:
                    stats.failed += 1
                    if result.error:
                        self._record_error(stats, f"{festival.name}: {result.error}")

            if (i + 1) % 10 == 0:
                logger.info(
                    f"Progress: {i + 1}/{stats.total} "
                    f"({stats.succeeded} succeeded, {stats.failed} failed)"
                )

            if i < len(festivals) - 1:
                self.sleep(max(delay_ms, 0) / 1000)

        logger.info(
            f"{strategy.name} enrichment complete",
            extra=stats.to_dict()
        )
        return stats

    def _persist(
        self,
        festival: FestivalRecord,
        strategy: EnrichmentStrategy,
        result: StrategyResult
    ) -> None:
        """Merge returned fields into the sub-document and stamp its status."""
        found = {key: value for key, value in result.fields.items() if value}
        self.store.update_enrichment(
            festival.partition,
            festival.name,
            strategy.target.value,
            self._build_document(festival, strategy, result, found)
        )
        self._log_outcome(festival, strategy, result, found)

    def _stamp_failure(
        self,
        festival: FestivalRecord,
        strategy: EnrichmentStrategy,
        error: str
    ) -> None:
        """Write only the failed status when the merged document was rejected."""
        document = self._build_document(festival, strategy, StrategyResult.failure(error), {})
        try:
            self.store.update_enrichment(
                festival.partition,
                festival.name,
                strategy.target.value,
                document
            )
        except Exception as e:
            logger.error(f"Could not stamp {strategy.name} status of '{festival.name}': {e}")

    def _build_document(
        self,
        festival: FestivalRecord,
        strategy: EnrichmentStrategy,
        result: StrategyResult,
        found: Dict
    ) -> Dict:
        now = utc_now_iso()
        if strategy.target == EnrichmentTarget.AI:
            document = asdict(festival.ai_enrichment)
            document.update(found)
            if result.success:
                status = AIEnrichmentStatus.ENRICHED
            elif result.skipped:
                status = AIEnrichmentStatus.SKIPPED
            else:
                status = AIEnrichmentStatus.FAILED
            document['enrichment_status'] = status.value
            document['version'] = strategy.version
            document['enriched_at'] = now
        else:
            document = asdict(festival.enrichment)
            document.update(found)
            document['last_checked_at'] = now
            # Image-only strategies leave the official-page verification alone.
            if strategy.stamps_verification:
                if result.success:
                    document['verification_status'] = VerificationStatus.VERIFIED.value
                    document['verified_at'] = now
                else:
                    document['verification_status'] = VerificationStatus.FAILED.value
        return document

    def _log_outcome(
        self,
        festival: FestivalRecord,
        strategy: EnrichmentStrategy,
        result: StrategyResult,
        found: Dict
    ) -> None:
        if result.success:
            logger.info(f"  Found: {', '.join(sorted(found)) or 'basic info'}")
        elif result.skipped:
            logger.info(f"  Skipped '{festival.name}': {result.error}")
        else:
            logger.info(f"  {strategy.name} failed for '{festival.name}': {result.error}")

    def _record_error(self, stats: EnrichmentStats, message: str) -> None:
        if len(stats.errors) < MAX_ERRORS:
            stats.errors.append(message)
