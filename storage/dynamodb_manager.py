"""DynamoDB manager for festival, Steam feature and sync log storage."""
import logging
import math
import time
from dataclasses import asdict, fields
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set, Tuple

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from processor.models import (
    AIEnrichment,
    FestivalEnrichment,
    FestivalRecord,
    SteamFeatureRecord,
    SyncAuditEntry,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

SYNC_LOCK_ID = 'sync-lock'
AUDIT_ENTRY = 'audit'
LOCK_ENTRY = 'lock'


def _plain(value: Any) -> Any:
    """Convert DynamoDB Decimals (recursively) into ints or floats."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


def _dynamo(value: Any) -> Any:
    """Convert floats (recursively) into Decimals; NaN and infinity become None."""
    if isinstance(value, float):
        return Decimal(str(value)) if math.isfinite(value) else None
    if isinstance(value, dict):
        return {k: _dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_dynamo(v) for v in value]
    return value


def _known_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


def build_set_expression(
    values: Dict[str, Any],
    if_absent: Optional[Dict[str, Any]] = None
) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
    """
    Build a SET update expression with placeholders for every attribute.

    Args:
        values: Attributes to overwrite
        if_absent: Attributes to initialise only when missing

    Returns:
        Tuple of (UpdateExpression, ExpressionAttributeNames,
        ExpressionAttributeValues)
    """
    clauses = []
    names = {}
    expression_values = {}

    for i, (attribute, value) in enumerate(values.items()):
        names[f'#attr{i}'] = attribute
        expression_values[f':value{i}'] = value
        clauses.append(f'#attr{i} = :value{i}')

    for i, (attribute, value) in enumerate((if_absent or {}).items()):
        names[f'#init{i}'] = attribute
        expression_values[f':init{i}'] = value
        clauses.append(f'#init{i} = if_not_exists(#init{i}, :init{i})')

    return 'SET ' + ', '.join(clauses), names, expression_values


class DynamoDBManager:
    """Manager for DynamoDB operations."""

    def __init__(
        self,
        festivals_table: str,
        steam_features_table: str,
        sync_log_table: str,
        region_name: Optional[str] = None
    ):
        """
        Initialize DynamoDB resource and table references.

        Args:
            festivals_table: Table keyed by (partition, name)
            steam_features_table: Table keyed by festival_name
            sync_log_table: Table keyed by log_id
            region_name: AWS region (default: from environment)
        """
        self.dynamodb = boto3.resource('dynamodb', region_name=region_name)
        self.festivals = self.dynamodb.Table(festivals_table)
        self.steam_features = self.dynamodb.Table(steam_features_table)
        self.sync_logs = self.dynamodb.Table(sync_log_table)
        logger.info(
            f"Initialized DynamoDBManager for tables: {festivals_table}, "
            f"{steam_features_table}, {sync_log_table}"
        )

    # Festivals

    def get_partition_festivals(self, partition: str) -> Dict[str, FestivalRecord]:
        """
        Retrieve every festival of a partition.

        Returns:
            Dictionary mapping festival name to FestivalRecord
        """
        try:
            items = self._paginate(
                self.festivals.query,
                KeyConditionExpression=Key('partition').eq(partition)
            )
        except ClientError as e:
            logger.error(f"Error querying partition '{partition}': {e}")
            raise

        festivals = {}
        for item in items:
            festival = self._item_to_festival(item)
            if festival:
                festivals[festival.name] = festival
        return festivals

    def get_all_festivals(self) -> List[FestivalRecord]:
        """Retrieve all festivals using a paginated Scan."""
        try:
            items = self._paginate(self.festivals.scan)
        except ClientError as e:
            logger.error(f"Error scanning festivals table: {e}")
            raise

        festivals = [self._item_to_festival(item) for item in items]
        festivals = [festival for festival in festivals if festival]
        logger.info(f"Retrieved {len(festivals)} festivals from DynamoDB")
        return festivals

    def get_all_slugs(self) -> Set[str]:
        """Retrieve every slug currently stored, across partitions."""
        try:
            items = self._paginate(
                self.festivals.scan,
                ProjectionExpression='#slug',
                ExpressionAttributeNames={'#slug': 'slug'}
            )
        except ClientError as e:
            logger.error(f"Error scanning festival slugs: {e}")
            raise
        return {item['slug'] for item in items if item.get('slug')}

    def get_festival(self, partition: str, name: str) -> Optional[FestivalRecord]:
        try:
            response = self.festivals.get_item(Key={'partition': partition, 'name': name})
        except ClientError as e:
            logger.error(f"Error reading festival '{name}': {e}")
            raise
        item = response.get('Item')
        return self._item_to_festival(item) if item else None

    def find_festival_by_id(self, festival_id: str) -> Optional[FestivalRecord]:
        return self._find_festival(Attr('festival_id').eq(festival_id))

    def find_festival_by_slug(self, slug: str) -> Optional[FestivalRecord]:
        return self._find_festival(Attr('slug').eq(slug))

    def count_festivals(self, partition: str) -> int:
        return len(self.get_partition_festivals(partition))

    def upsert_festival(
        self,
        festival: FestivalRecord,
        epoch: int,
        slug: Optional[str] = None
    ) -> None:
        """
        Insert or update the descriptive fields of a festival.

        Enrichment sub-documents are initialised when absent and never
        overwritten, so data written by enrichment passes survives syncs.

        Args:
            festival: Normalized festival
            epoch: Sync epoch confirming the festival's presence
            slug: Slug to assign (only for festivals without one)
        """
        now = utc_now_iso()
        values = festival.descriptive_fields()
        values['festival_id'] = festival.festival_id
        values['last_synced_epoch'] = epoch
        values['updated_at'] = now
        if slug:
            values['slug'] = slug

        if_absent = {
            'created_at': now,
            'enrichment': asdict(FestivalEnrichment()),
            'ai_enrichment': asdict(AIEnrichment()),
        }

        expression, names, expression_values = build_set_expression(values, if_absent)
        try:
            self.festivals.update_item(
                Key={'partition': festival.partition, 'name': festival.name},
                UpdateExpression=expression,
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=expression_values
            )
        except ClientError as e:
            logger.error(f"Error upserting festival '{festival.name}': {e}")
            raise

    def touch_festival(self, partition: str, name: str, epoch: int) -> None:
        """Confirm an existing festival for a sync epoch without other changes."""
        try:
            self.festivals.update_item(
                Key={'partition': partition, 'name': name},
                UpdateExpression='SET last_synced_epoch = :epoch',
                ConditionExpression='attribute_exists(#pk)',
                ExpressionAttributeNames={'#pk': 'partition'},
                ExpressionAttributeValues={':epoch': epoch}
            )
        except ClientError as e:
            logger.error(f"Error confirming festival '{name}': {e}")
            raise

    def update_enrichment(
        self,
        partition: str,
        name: str,
        attribute: str,
        document: Dict[str, Any]
    ) -> None:
        """
        Replace an enrichment sub-document of an existing festival.

        Args:
            partition: Festival partition
            name: Festival name
            attribute: 'enrichment' or 'ai_enrichment'
            document: Full merged sub-document

        Raises:
            ClientError: If the festival no longer exists or the write fails
        """
        try:
            self.festivals.update_item(
                Key={'partition': partition, 'name': name},
                UpdateExpression='SET #doc = :doc',
                ConditionExpression='attribute_exists(#pk)',
                ExpressionAttributeNames={'#doc': attribute, '#pk': 'partition'},
                ExpressionAttributeValues={':doc': _dynamo(document)}
            )
        except ClientError as e:
            logger.error(f"Error updating {attribute} of '{name}': {e}")
            raise

    def delete_festival(self, partition: str, name: str) -> None:
        try:
            self.festivals.delete_item(Key={'partition': partition, 'name': name})
        except ClientError as e:
            logger.error(f"Error deleting festival '{name}': {e}")
            raise

    # Steam features

    def upsert_steam_feature(self, feature: SteamFeatureRecord) -> None:
        """Insert or update a Steam feature record keyed by festival name."""
        now = utc_now_iso()
        values = feature.tracked_fields()
        values['updated_at'] = now

        expression, names, expression_values = build_set_expression(
            values, {'created_at': now}
        )
        try:
            self.steam_features.update_item(
                Key={'festival_name': feature.festival_name},
                UpdateExpression=expression,
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=expression_values
            )
        except ClientError as e:
            logger.error(f"Error upserting steam feature '{feature.festival_name}': {e}")
            raise

    def get_all_steam_features(self) -> List[SteamFeatureRecord]:
        try:
            items = self._paginate(self.steam_features.scan)
        except ClientError as e:
            logger.error(f"Error scanning steam features table: {e}")
            raise
        return [
            SteamFeatureRecord(**_known_fields(SteamFeatureRecord, _plain(item)))
            for item in items
        ]

    # Sync log

    def put_sync_log(self, entry: SyncAuditEntry) -> None:
        item = asdict(entry)
        item['entry_type'] = AUDIT_ENTRY
        try:
            self.sync_logs.put_item(Item=item)
        except ClientError as e:
            logger.error(f"Error writing sync log entry: {e}")
            raise

    def get_sync_history(self, limit: int = 10) -> List[SyncAuditEntry]:
        """
        Retrieve the most recent sync log entries.

        Args:
            limit: Maximum number of entries (default: 10)

        Returns:
            SyncAuditEntry objects, newest first
        """
        try:
            items = self._paginate(
                self.sync_logs.scan,
                FilterExpression=Attr('entry_type').eq(AUDIT_ENTRY)
            )
        except ClientError as e:
            logger.error(f"Error scanning sync log table: {e}")
            raise

        items.sort(key=lambda item: item.get('synced_at', ''), reverse=True)
        return [
            SyncAuditEntry(**_known_fields(SyncAuditEntry, _plain(item)))
            for item in items[:limit]
        ]

    def acquire_sync_lock(self, owner: str, ttl_seconds: int = 900) -> bool:
        """
        Take the sync lock unless another live owner holds it.

        Args:
            owner: Identifier of the sync pass
            ttl_seconds: Lock lifetime; expired locks can be taken over

        Returns:
            True if the lock was acquired
        """
        now = int(time.time())
        try:
            self.sync_logs.put_item(
                Item={
                    'log_id': SYNC_LOCK_ID,
                    'entry_type': LOCK_ENTRY,
                    'owner': owner,
                    'expires_at': now + ttl_seconds,
                },
                ConditionExpression=Attr('log_id').not_exists() | Attr('expires_at').lt(now)
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                logger.warning(f"Sync lock is held by another pass; '{owner}' not started")
                return False
            logger.error(f"Error acquiring sync lock: {e}")
            raise
        return True

    def release_sync_lock(self, owner: str) -> None:
        try:
            self.sync_logs.delete_item(
                Key={'log_id': SYNC_LOCK_ID},
                ConditionExpression=Attr('owner').eq(owner)
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                logger.warning(f"Sync lock no longer owned by '{owner}'")
                return
            logger.error(f"Error releasing sync lock: {e}")
            raise

    # Helpers

    def _paginate(self, operation, **kwargs) -> List[Dict[str, Any]]:
        """Run a Query or Scan and follow LastEvaluatedKey to the end."""
        response = operation(**kwargs)
        items = response.get('Items', [])

        while 'LastEvaluatedKey' in response:
            response = operation(
                ExclusiveStartKey=response['LastEvaluatedKey'],
                **kwargs
            )
            items.extend(response.get('Items', []))

        return items

    def _find_festival(self, condition) -> Optional[FestivalRecord]:
        try:
            items = self._paginate(self.festivals.scan, FilterExpression=condition)
        except ClientError as e:
            logger.error(f"Error searching festivals table: {e}")
            raise
        return self._item_to_festival(items[0]) if items else None

    def _item_to_festival(self, item: dict) -> Optional[FestivalRecord]:
        """
        Convert DynamoDB item to FestivalRecord object.

        Args:
            item: DynamoDB item dictionary

        Returns:
            FestivalRecord object or None if conversion fails
        """
        try:
            data = _plain(item)
            enrichment = FestivalEnrichment(
                **_known_fields(FestivalEnrichment, data.get('enrichment') or {})
            )
            ai_enrichment = AIEnrichment(
                **_known_fields(AIEnrichment, data.get('ai_enrichment') or {})
            )
            data = _known_fields(FestivalRecord, data)
            data['enrichment'] = enrichment
            data['ai_enrichment'] = ai_enrichment
            return FestivalRecord(**data)
        except (KeyError, TypeError) as e:
            logger.warning(f"Failed to convert item to FestivalRecord: {e}")
            return None
