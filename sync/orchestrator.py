"""Sync orchestration across spreadsheet partitions."""
import logging
import time
import uuid
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from processor.errors import SyncInProgressError
from processor.festival_processor import FestivalProcessor, SlugAllocator
from processor.models import (
    Partition,
    PartitionResult,
    SyncAuditEntry,
    SyncReport,
    SyncStatus,
    utc_now_iso,
)
from processor.steam_processor import SteamFeatureProcessor
from sheets.google_sheets import FESTIVAL_SHEETS, STEAM_SHEET
from sync.reconciler import Reconciler

logger = logging.getLogger(__name__)

DEFAULT_PARTITIONS = (Partition.CURATED, Partition.UNDER_CONSIDERATION)


def derive_status(error_count: int, attempted: int) -> SyncStatus:
    """
    Derive the audit status of a pass.

    Args:
        error_count: Number of errors collected during the pass
        attempted: Number of sheets the pass attempted

    Returns:
        SUCCESS without errors, PARTIAL with fewer errors than sheets
        attempted, FAILED otherwise
    """
    if error_count == 0:
        return SyncStatus.SUCCESS
    if error_count < attempted:
        return SyncStatus.PARTIAL
    return SyncStatus.FAILED


class SyncOrchestrator:
    """Runs the reconciler for every partition and records an audit entry."""

    LOCK_TTL_SECONDS = 900

    def __init__(
        self,
        store,
        source,
        partitions: Sequence[Partition] = DEFAULT_PARTITIONS,
        reconciler: Optional[Reconciler] = None,
        festival_processor: Optional[FestivalProcessor] = None,
        steam_processor: Optional[SteamFeatureProcessor] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Args:
            store: DynamoDBManager (or compatible) store
            source: GoogleSheetsClient (or compatible) row source
            partitions: Partitions to reconcile, in order
            reconciler: Reconciler to use (default: built on ``store``)
            festival_processor: Festival row normalizer
            steam_processor: Steam row normalizer
            clock: Seconds-since-epoch clock used to stamp sync epochs
        """
        self.store = store
        self.source = source
        self.partitions = [Partition(p) for p in partitions]
        self.reconciler = reconciler or Reconciler(store)
        self.festival_processor = festival_processor or FestivalProcessor()
        self.steam_processor = steam_processor or SteamFeatureProcessor()
        self.clock = clock

    def run(self, epoch: Optional[int] = None) -> SyncReport:
        """
        Run one sync pass under the sync lock.

        Args:
            epoch: Sync epoch in milliseconds (default: now)

        Returns:
            SyncReport aggregating every partition

        Raises:
            SyncInProgressError: If another pass holds the lock
        """
        owner = str(uuid.uuid4())
        if not self.store.acquire_sync_lock(owner, ttl_seconds=self.LOCK_TTL_SECONDS):
            raise SyncInProgressError("A sync pass is already in progress")

        try:
            return self._run(epoch if epoch is not None else int(self.clock() * 1000))
        finally:
            self.store.release_sync_lock(owner)

    def _run(self, epoch: int) -> SyncReport:
        timestamp = utc_now_iso()
        logger.info("Starting sync pass", extra={'epoch': epoch})

        slugs = SlugAllocator(self.store.get_all_slugs())
        results: Dict[str, PartitionResult] = {}
        errors: List[str] = []

        for partition in self.partitions:
            result = self._sync_partition(partition, epoch, slugs)
            results[partition.value] = result
            errors.extend(result.errors)

        steam_count, steam_errors = self._sync_steam_features()
        errors.extend(steam_errors)

        festivals_count = self._count_festivals(results)
        deleted_count = sum(result.deleted for result in results.values())
        status = derive_status(len(errors), attempted=len(self.partitions) + 1)

        report = SyncReport(
            epoch=epoch,
            timestamp=timestamp,
            partitions=results,
            festivals_count=festivals_count,
            steam_features_count=steam_count,
            deleted_count=deleted_count,
            status=status.value,
            errors=errors
        )
        self._record_audit_entry(report)

        logger.info(
            "Sync pass completed",
            extra={
                'epoch': epoch,
                'status': status.value,
                'festivals_count': festivals_count,
                'steam_features_count': steam_count,
                'deleted_count': deleted_count,
                'error_count': len(errors),
            }
        )
        return report

    def _sync_partition(
        self,
        partition: Partition,
        epoch: int,
        slugs: SlugAllocator
    ) -> PartitionResult:
        sheet_name = FESTIVAL_SHEETS[partition].name
        try:
            sheet = self.source.fetch_festival_sheet(partition)
        except Exception as e:
            logger.error(
                f"Failed to fetch '{sheet_name}'; partition left untouched: {e}",
                extra={'error_type': type(e).__name__}
            )
            return PartitionResult(
                partition=partition.value,
                errors=[f"{sheet_name}: {e}"],
                aborted=True
            )

        records = self.festival_processor.process_rows(sheet.rows, partition, sheet.columns)

        try:
            return self.reconciler.reconcile(partition.value, records, epoch, slugs=slugs)
        except Exception as e:
            logger.error(
                f"Reconciliation of '{sheet_name}' aborted: {e}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            return PartitionResult(
                partition=partition.value,
                errors=[f"{sheet_name}: {e}"],
                aborted=True
            )

    def _sync_steam_features(self) -> Tuple[int, List[str]]:
        try:
            rows = self.source.fetch_steam_sheet()
        except Exception as e:
            logger.error(f"Failed to fetch '{STEAM_SHEET.name}': {e}")
            return 0, [f"{STEAM_SHEET.name}: {e}"]

        errors = []
        synced = 0
        for feature in self.steam_processor.process_rows(rows):
            try:
                self.store.upsert_steam_feature(feature)
                synced += 1
            except Exception as e:
                logger.warning(f"Failed to upsert steam feature '{feature.festival_name}': {e}")
                errors.append(f"{feature.festival_name}: {e}")

        logger.info(f"Synced {synced} steam features")
        return synced, errors

    def _count_festivals(self, results: Dict[str, PartitionResult]) -> int:
        """Count stored festivals per partition after reconciliation."""
        total = 0
        for partition, result in results.items():
            try:
                total += self.store.count_festivals(partition)
            except Exception as e:
                logger.warning(
                    f"Could not count festivals of '{partition}', using upsert count: {e}"
                )
                total += result.upserted
        return total

    def _record_audit_entry(self, report: SyncReport) -> None:
        entry = SyncAuditEntry(
            log_id=str(uuid.uuid4()),
            synced_at=report.timestamp,
            epoch=report.epoch,
            partitions=list(report.partitions),
            festivals_count=report.festivals_count,
            steam_features_count=report.steam_features_count,
            deleted_count=report.deleted_count,
            status=report.status,
            errors=report.errors
        )
        try:
            self.store.put_sync_log(entry)
        except Exception as e:
            logger.error(f"Failed to record sync audit entry: {e}", exc_info=True)
