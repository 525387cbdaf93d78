"""Shared fixtures: mocked DynamoDB tables and sample records."""
import boto3
import pytest
from moto import mock_aws

from processor.festival_processor import generate_festival_id
from processor.models import FestivalRecord, Partition
from storage.dynamodb_manager import DynamoDBManager

FESTIVALS_TABLE = 'test-festivals'
STEAM_FEATURES_TABLE = 'test-steam-features'
SYNC_LOG_TABLE = 'test-sync-logs'


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Point boto3 at fake credentials so no test can reach AWS."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


@pytest.fixture
def dynamodb_tables():
    """Create the festivals, Steam feature and sync log tables in moto."""
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name='us-east-1')

        festivals = dynamodb.create_table(
            TableName=FESTIVALS_TABLE,
            KeySchema=[
                {'AttributeName': 'partition', 'KeyType': 'HASH'},
                {'AttributeName': 'name', 'KeyType': 'RANGE'}
            ],
            AttributeDefinitions=[
                {'AttributeName': 'partition', 'AttributeType': 'S'},
                {'AttributeName': 'name', 'AttributeType': 'S'}
            ],
            BillingMode='PAY_PER_REQUEST'
        )
        steam_features = dynamodb.create_table(
            TableName=STEAM_FEATURES_TABLE,
            KeySchema=[{'AttributeName': 'festival_name', 'KeyType': 'HASH'}],
            AttributeDefinitions=[{'AttributeName': 'festival_name', 'AttributeType': 'S'}],
            BillingMode='PAY_PER_REQUEST'
        )
        sync_logs = dynamodb.create_table(
            TableName=SYNC_LOG_TABLE,
            KeySchema=[{'AttributeName': 'log_id', 'KeyType': 'HASH'}],
            AttributeDefinitions=[{'AttributeName': 'log_id', 'AttributeType': 'S'}],
            BillingMode='PAY_PER_REQUEST'
        )

        yield {
            'festivals': festivals,
            'steam_features': steam_features,
            'sync_logs': sync_logs,
        }


@pytest.fixture
def dynamodb_manager(dynamodb_tables):
    """DynamoDBManager bound to the mocked tables."""
    return DynamoDBManager(
        festivals_table=FESTIVALS_TABLE,
        steam_features_table=STEAM_FEATURES_TABLE,
        sync_log_table=SYNC_LOG_TABLE,
        region_name='us-east-1'
    )


def make_festival(name: str, partition: str = Partition.CURATED.value, **fields) -> FestivalRecord:
    """Build a FestivalRecord the way the festival processor would."""
    fields.setdefault('type', 'Showcase')
    return FestivalRecord(
        name=name,
        partition=partition,
        festival_id=generate_festival_id(name, partition),
        **fields
    )


@pytest.fixture
def festival_factory():
    return make_festival
