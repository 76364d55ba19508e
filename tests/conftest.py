import os
from datetime import datetime, timedelta, timezone

import boto3
import pytest
from jose import jwt
from moto import mock_aws

from eventhub.config import settings
from eventhub.database.dynamodb import DynamoEventStore
from eventhub.database.event_store import InMemoryEventStore
from scripts.init_dynamodb import create_table_if_not_exists, delete_table

TEST_TABLE_NAME = "EventHub_Test"


@pytest.fixture(scope="session")
def aws_mock():
    """Serve DynamoDB from moto for the whole session"""
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
    os.environ["AWS_ACCESS_KEY_ID"] = "fake"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "fake"

    with mock_aws():
        yield


@pytest.fixture(scope="session")
def dynamodb_table(aws_mock):
    """Create test DynamoDB table for the session"""
    resource = boto3.resource("dynamodb", region_name="us-east-1")
    table = create_table_if_not_exists(TEST_TABLE_NAME, dynamodb=resource)

    yield table

    # Cleanup: Delete test table
    delete_table(TEST_TABLE_NAME, dynamodb=resource)


@pytest.fixture
def dynamodb_resource(dynamodb_table):
    """Get DynamoDB resource for tests"""
    resource = boto3.resource("dynamodb", region_name="us-east-1")

    # Clean up the table before each test
    table = resource.Table(TEST_TABLE_NAME)
    response = table.scan()
    for item in response.get("Items", []):
        table.delete_item(Key={"PK": item["PK"], "SK": item["SK"]})

    return resource


@pytest.fixture
def dynamo_store(dynamodb_resource):
    return DynamoEventStore(dynamodb_resource, TEST_TABLE_NAME)


@pytest.fixture
def memory_store():
    return InMemoryEventStore()


@pytest.fixture
def future_date():
    return (datetime.now(timezone.utc) + timedelta(days=7)).replace(microsecond=0)


@pytest.fixture
def event_fields(future_date):
    """Valid create payload for the service layer"""
    return {
        "title": "Python Meetup",
        "description": "Talks and pizza",
        "location": "Community Hall",
        "date": future_date,
        "capacity": 2,
    }


@pytest.fixture
def stored_fields(event_fields):
    """Fields as the service hands them to a store"""
    return {**event_fields, "createdBy": "owner-1"}


@pytest.fixture
def make_token():
    def _make_token(user_id, **claims):
        payload = dict(claims)
        if user_id is not None:
            payload["sub"] = user_id
        return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)

    return _make_token


@pytest.fixture
def auth_headers(make_token):
    def _auth_headers(user_id):
        return {"Authorization": f"Bearer {make_token(user_id)}"}

    return _auth_headers
