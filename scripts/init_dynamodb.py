import logging
import time

from botocore.exceptions import ClientError

from eventhub.config import settings
from eventhub.database.dynamodb import get_db_connection

logger = logging.getLogger(__name__)


def create_table_if_not_exists(table_name=None, dynamodb=None):
    """Create the events table with its GSIs if it doesn't exist"""
    table_name = table_name or settings.events_table_name
    dynamodb = dynamodb or get_db_connection()

    try:
        # Check if table exists
        table = dynamodb.Table(table_name)
        table.table_status
        logger.info(f"Table {table_name} already exists")
        return table
    except ClientError as e:
        if e.response["Error"]["Code"] != "ResourceNotFoundException":
            raise

    # Create table with GSIs
    table = dynamodb.create_table(
        TableName=table_name,
        KeySchema=[
            {"AttributeName": "PK", "KeyType": "HASH"},
            {"AttributeName": "SK", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "PK", "AttributeType": "S"},
            {"AttributeName": "SK", "AttributeType": "S"},
            {"AttributeName": "GSI_EventsByDate_PK", "AttributeType": "S"},
            {"AttributeName": "GSI_EventsByDate_SK", "AttributeType": "S"},
            {"AttributeName": "GSI_EventsByOwner_PK", "AttributeType": "S"},
            {"AttributeName": "GSI_EventsByOwner_SK", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
        GlobalSecondaryIndexes=[
            {
                "IndexName": "GSI_EventsByDate",
                "KeySchema": [
                    {"AttributeName": "GSI_EventsByDate_PK", "KeyType": "HASH"},
                    {"AttributeName": "GSI_EventsByDate_SK", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
            {
                "IndexName": "GSI_EventsByOwner",
                "KeySchema": [
                    {"AttributeName": "GSI_EventsByOwner_PK", "KeyType": "HASH"},
                    {"AttributeName": "GSI_EventsByOwner_SK", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
    )

    # Wait for table to be ready
    logger.info(f"Creating table {table_name}...")
    table.wait_until_exists()

    # Wait for GSIs to be active
    logger.info("Waiting for GSIs to be active...")
    while True:
        table.reload()
        gsi_statuses = [gsi["IndexStatus"] for gsi in table.global_secondary_indexes]
        if all(status == "ACTIVE" for status in gsi_statuses):
            break
        time.sleep(1)

    logger.info(f"Table {table_name} created successfully")
    return table


def delete_table(table_name=None, dynamodb=None):
    """Delete the events table"""
    table_name = table_name or settings.events_table_name
    dynamodb = dynamodb or get_db_connection()

    try:
        table = dynamodb.Table(table_name)
        table.delete()
        table.wait_until_not_exists()
        logger.info(f"Table {table_name} deleted successfully")
    except ClientError as e:
        if e.response["Error"]["Code"] != "ResourceNotFoundException":
            raise
        logger.info(f"Table {table_name} does not exist")


if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level.upper())
    create_table_if_not_exists()
