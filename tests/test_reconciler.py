"""Tests for partition reconciliation against mocked DynamoDB."""
from unittest.mock import patch

from botocore.exceptions import ClientError

from processor.festival_processor import SlugAllocator
from sync.reconciler import Reconciler


def client_error(code='InternalServerError'):
    return ClientError({'Error': {'Code': code, 'Message': 'boom'}}, 'UpdateItem')


def names(manager, partition='curated'):
    return set(manager.get_partition_festivals(partition))


class TestReconciler:
    """Test cases for Reconciler.reconcile."""

    def test_stale_records_are_deleted(self, dynamodb_manager, festival_factory):
        """A record missing from the next pull is removed."""
        reconciler = Reconciler(dynamodb_manager)
        reconciler.reconcile('curated', [festival_factory('A'), festival_factory('B')], epoch=1000)

        result = reconciler.reconcile('curated', [festival_factory('A')], epoch=2000)

        assert names(dynamodb_manager) == {'A'}
        assert result.upserted == 1
        assert result.deleted == 1
        assert result.errors == []

    def test_reconcile_is_idempotent(self, dynamodb_manager, festival_factory):
        reconciler = Reconciler(dynamodb_manager)
        batch = [festival_factory('A'), festival_factory('B')]

        reconciler.reconcile('curated', batch, epoch=1000)
        first = {f.name: f.slug for f in dynamodb_manager.get_all_festivals()}
        result = reconciler.reconcile('curated', batch, epoch=2000)
        second = {f.name: f.slug for f in dynamodb_manager.get_all_festivals()}

        assert first == second
        assert result.deleted == 0

    def test_empty_source_never_deletes(self, dynamodb_manager, festival_factory):
        """Zero usable rows skips stale deletion entirely."""
        reconciler = Reconciler(dynamodb_manager)
        reconciler.reconcile('curated', [festival_factory('A'), festival_factory('B')], epoch=1000)

        result = reconciler.reconcile('curated', [], epoch=2000)

        assert names(dynamodb_manager) == {'A', 'B'}
        assert result.deleted == 0
        assert result.errors == ['curated: source returned no usable rows; stale deletion skipped']

    def test_other_partitions_untouched(self, dynamodb_manager, festival_factory):
        reconciler = Reconciler(dynamodb_manager)
        reconciler.reconcile('underConsideration', [festival_factory('X', partition='underConsideration')], epoch=1000)

        reconciler.reconcile('curated', [festival_factory('A')], epoch=2000)

        assert names(dynamodb_manager, 'underConsideration') == {'X'}

    def test_records_without_epoch_are_stale(self, dynamodb_manager, festival_factory):
        """Records created out-of-band (no sync epoch) are deleted."""
        dynamodb_manager.festivals.put_item(Item={'partition': 'curated', 'name': 'Manual'})

        result = Reconciler(dynamodb_manager).reconcile('curated', [festival_factory('A')], epoch=1000)

        assert names(dynamodb_manager) == {'A'}
        assert result.deleted == 1

    def test_enrichment_survives_sync(self, dynamodb_manager, festival_factory):
        reconciler = Reconciler(dynamodb_manager)
        reconciler.reconcile('curated', [festival_factory('A')], epoch=1000)
        dynamodb_manager.update_enrichment(
            'curated', 'A', 'ai_enrichment',
            {'entity': 'A', 'version': 2, 'enrichment_status': 'enriched'}
        )

        reconciler.reconcile('curated', [festival_factory('A', type='Expo')], epoch=2000)
        stored = dynamodb_manager.get_festival('curated', 'A')

        assert stored.type == 'Expo'
        assert stored.ai_enrichment.entity == 'A'
        assert stored.ai_enrichment.version == 2
        assert stored.ai_enrichment.enrichment_status == 'enriched'

    def test_single_upsert_failure_is_isolated(self, dynamodb_manager, festival_factory):
        """One failing row yields one error; the rest of the pass completes."""
        reconciler = Reconciler(dynamodb_manager)
        reconciler.reconcile('curated', [festival_factory(n) for n in ('A', 'B', 'C', 'Old')], epoch=1000)
        original_upsert = dynamodb_manager.upsert_festival

        def flaky_upsert(festival, epoch, slug=None):
            if festival.name == 'B':
                raise client_error()
            return original_upsert(festival, epoch, slug=slug)

        with patch.object(dynamodb_manager, 'upsert_festival', side_effect=flaky_upsert):
            result = reconciler.reconcile(
                'curated', [festival_factory(n) for n in ('A', 'B', 'C')], epoch=2000
            )

        assert result.upserted == 2
        assert len(result.errors) == 1
        assert result.errors[0].startswith('B: ')
        assert names(dynamodb_manager) == {'A', 'B', 'C'}
        assert result.deleted == 1
        epochs = {f.name: f.last_synced_epoch for f in dynamodb_manager.get_all_festivals()}
        assert epochs == {'A': 2000, 'B': 2000, 'C': 2000}

    def test_unconfirmed_failed_record_is_deleted(self, dynamodb_manager, festival_factory):
        """No stored record keeps an older epoch after a pass."""
        reconciler = Reconciler(dynamodb_manager)
        reconciler.reconcile('curated', [festival_factory('A'), festival_factory('B')], epoch=1000)
        original_upsert = dynamodb_manager.upsert_festival

        def flaky_upsert(festival, epoch, slug=None):
            if festival.name == 'B':
                raise client_error()
            return original_upsert(festival, epoch, slug=slug)

        with patch.object(dynamodb_manager, 'upsert_festival', side_effect=flaky_upsert), \
                patch.object(dynamodb_manager, 'touch_festival', side_effect=client_error()):
            result = reconciler.reconcile('curated', [festival_factory('A'), festival_factory('B')], epoch=2000)

        assert names(dynamodb_manager) == {'A'}
        assert result.deleted == 1
        assert all(f.last_synced_epoch == 2000 for f in dynamodb_manager.get_all_festivals())

    def test_all_upserts_failing_skips_deletion(self, dynamodb_manager, festival_factory):
        reconciler = Reconciler(dynamodb_manager)
        reconciler.reconcile('curated', [festival_factory('A'), festival_factory('B')], epoch=1000)

        with patch.object(dynamodb_manager, 'upsert_festival', side_effect=client_error()):
            result = reconciler.reconcile('curated', [festival_factory('A')], epoch=2000)

        assert names(dynamodb_manager) == {'A', 'B'}
        assert result.upserted == 0
        assert result.deleted == 0
        assert len(result.errors) == 1

    def test_slugs_unique_across_partitions(self, dynamodb_manager, festival_factory):
        reconciler = Reconciler(dynamodb_manager)
        slugs = SlugAllocator()

        reconciler.reconcile('curated', [festival_factory('Indie Fest')], epoch=1000, slugs=slugs)
        reconciler.reconcile(
            'underConsideration',
            [festival_factory('Indie Fest', partition='underConsideration')],
            epoch=1000,
            slugs=slugs
        )

        assert dynamodb_manager.get_festival('curated', 'Indie Fest').slug == 'indie-fest'
        assert dynamodb_manager.get_festival('underConsideration', 'Indie Fest').slug == 'indie-fest-1'

    def test_existing_slug_is_kept(self, dynamodb_manager, festival_factory):
        reconciler = Reconciler(dynamodb_manager)
        reconciler.reconcile('curated', [festival_factory('Indie Fest')], epoch=1000)

        # A fresh allocator seeded from storage must not hand out a new slug.
        reconciler.reconcile('curated', [festival_factory('Indie Fest')], epoch=2000)

        assert dynamodb_manager.get_all_slugs() == {'indie-fest'}

    def test_failed_upsert_releases_its_slug(self, dynamodb_manager, festival_factory):
        slugs = SlugAllocator()

        with patch.object(dynamodb_manager, 'upsert_festival', side_effect=client_error()):
            Reconciler(dynamodb_manager).reconcile('curated', [festival_factory('Indie Fest')], epoch=1, slugs=slugs)

        assert 'indie-fest' not in slugs
