"""Shared fixtures: moto-backed DynamoDB tables and stores."""
import boto3
import pytest
from moto import mock_aws

from factories import TABLE_PREFIX
from storage.record_store import RecordStore
from storage.token_store import TokenStore

TABLE_KEYS = {
    'events': 'id',
    'guests': 'id',
    'tasks': 'id',
    'expenses': 'id',
    'rsvp-tokens': 'token',
    'rsvp-batches': 'guest_id',
}


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Fake AWS credentials so boto3 never reaches a real account."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


@pytest.fixture
def dynamodb():
    """Create mock DynamoDB tables for every record type."""
    with mock_aws():
        resource = boto3.resource('dynamodb', region_name='us-east-1')

        for suffix, key in TABLE_KEYS.items():
            resource.create_table(
                TableName=f'{TABLE_PREFIX}-{suffix}',
                KeySchema=[{'AttributeName': key, 'KeyType': 'HASH'}],
                AttributeDefinitions=[{'AttributeName': key, 'AttributeType': 'S'}],
                BillingMode='PAY_PER_REQUEST'
            )

        yield resource


@pytest.fixture
def record_store(dynamodb):
    """RecordStore bound to the mock tables."""
    return RecordStore(TABLE_PREFIX, dynamodb=dynamodb)


@pytest.fixture
def token_store(dynamodb):
    """TokenStore bound to the mock tables."""
    return TokenStore(TABLE_PREFIX, dynamodb=dynamodb)
