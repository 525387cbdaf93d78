"""Reconciliation of one source partition against the festivals table."""
import logging
from typing import List, Optional

from processor.festival_processor import SlugAllocator
from processor.models import FestivalRecord, PartitionResult

logger = logging.getLogger(__name__)


class Reconciler:
    """
    Upserts a partition's records and deletes the ones gone from the source.

    Each record is written with the current sync epoch. Once every record has
    been attempted, stored records of the partition that carry an older (or
    no) epoch are deleted. Deletion only runs when at least one record was
    upserted in the pass, so an empty or failed source pull never wipes a
    partition. A stored record whose upsert failed is re-stamped with the
    epoch alone; if that also fails it is deleted like any stale record.
    """

    def __init__(self, store):
        """
        Args:
            store: DynamoDBManager (or compatible) festival store
        """
        self.store = store

    def reconcile(
        self,
        partition: str,
        records: List[FestivalRecord],
        epoch: int,
        slugs: Optional[SlugAllocator] = None
    ) -> PartitionResult:
        """
        Reconcile deduplicated records of one partition.

        Args:
            partition: Partition being synced
            records: Deduplicated records for the partition
            epoch: Sync epoch, unique per pass
            slugs: Slug allocator shared across partitions of the pass

        Returns:
            PartitionResult with upserted/deleted counts and row errors
        """
        result = PartitionResult(partition=partition)
        existing = self.store.get_partition_festivals(partition)
        if slugs is None:
            slugs = SlugAllocator(self.store.get_all_slugs())

        logger.info(
            f"Reconciling partition '{partition}': {len(records)} source records, "
            f"{len(existing)} stored"
        )

        for record in records:
            if self._upsert(record, existing.get(record.name), epoch, slugs, result):
                result.upserted += 1

        if result.upserted == 0:
            if not records:
                result.errors.append(
                    f"{partition}: source returned no usable rows; stale deletion skipped"
                )
            logger.warning(
                f"No festivals upserted for '{partition}'; skipping stale deletion"
            )
            return result

        try:
            stored = self.store.get_partition_festivals(partition)
        except Exception as e:
            result.errors.append(f"{partition}: stale lookup failed: {e}")
            return result

        stale = [
            festival for festival in stored.values()
            if festival.last_synced_epoch is None or festival.last_synced_epoch < epoch
        ]
        for festival in stale:
            try:
                self.store.delete_festival(partition, festival.name)
                result.deleted += 1
                logger.info(f"Deleted stale festival '{festival.name}' from '{partition}'")
            except Exception as e:
                result.errors.append(f"{festival.name}: delete failed: {e}")

        logger.info(
            f"Partition '{partition}' reconciled: {result.upserted} upserted, "
            f"{result.deleted} deleted, {len(result.errors)} errors"
        )
        return result

    def _upsert(
        self,
        record: FestivalRecord,
        stored: Optional[FestivalRecord],
        epoch: int,
        slugs: SlugAllocator,
        result: PartitionResult
    ) -> bool:
        slug = None
        if stored is None or not stored.slug:
            slug = slugs.allocate(record.name)

        try:
            self.store.upsert_festival(record, epoch, slug=slug)
            return True
        except Exception as e:
            if slug:
                slugs.release(slug)
            logger.warning(f"Failed to upsert festival '{record.name}': {e}")
            result.errors.append(f"{record.name}: {e}")
            if stored is not None:
                self._confirm(record, epoch)
            return False

    def _confirm(self, record: FestivalRecord, epoch: int) -> None:
        """Stamp the stored copy with the epoch so it is not deleted as stale."""
        try:
            self.store.touch_festival(record.partition, record.name, epoch)
            logger.info(f"Kept stored copy of '{record.name}' after failed upsert")
        except Exception as e:
            logger.warning(f"Stored copy of '{record.name}' will be deleted as stale: {e}")
