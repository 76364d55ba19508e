import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError, NoCredentialsError

from eventhub.config import settings
from eventhub.database.event_store import EventStore
from eventhub.schemas.event import EventOut

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

# Attributes stored with an event item that are not part of EventOut
INTERNAL_ATTRIBUTES = {
    "PK",
    "SK",
    "GSI_EventsByDate_PK",
    "GSI_EventsByDate_SK",
    "GSI_EventsByOwner_PK",
    "GSI_EventsByOwner_SK",
}

EDITABLE_FIELDS = ("title", "description", "location", "date", "capacity", "imageRef")


def get_db_connection():
    try:
        dynamodb = boto3.resource(
            "dynamodb",
            endpoint_url=settings.dynamodb_endpoint_url,
            region_name=settings.aws_region,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
        )
        return dynamodb
    except NoCredentialsError:
        logger.error("AWS credentials not available for DynamoDB")
        raise


def format_date(value: datetime) -> str:
    """Fixed-width UTC string so lexical order equals chronological order"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(DATE_FORMAT)


def parse_date(value: str) -> datetime:
    return datetime.strptime(value, DATE_FORMAT).replace(tzinfo=timezone.utc)


def _event_key(event_id: str) -> Dict[str, str]:
    return {"PK": f"EVENT#{event_id}", "SK": "DETAIL"}


def _is_condition_failure(error: ClientError) -> bool:
    return error.response["Error"]["Code"] == "ConditionalCheckFailedException"


class DynamoEventStore(EventStore):
    """Event store on a single DynamoDB table.

    Attendee admission is one conditional UpdateItem, so DynamoDB serializes
    concurrent joins on the same item and evaluates each against the latest
    attendee set.
    """

    def __init__(self, dynamodb_resource, table_name="EventHub"):
        self.dynamodb = dynamodb_resource
        self.table = dynamodb_resource.Table(table_name)

    def create_event(self, fields: Dict[str, Any]) -> EventOut:
        event_id = str(uuid.uuid4())
        date = format_date(fields["date"])

        item = {
            **_event_key(event_id),
            "id": event_id,
            "title": fields["title"],
            "description": fields["description"],
            "location": fields["location"],
            "date": date,
            "capacity": fields["capacity"],
            "createdBy": fields["createdBy"],
        }
        if fields.get("imageRef") is not None:
            item["imageRef"] = fields["imageRef"]

        # GSI attributes for listing by date and by owner
        item["GSI_EventsByDate_PK"] = "EVENT_TIMELINE"
        item["GSI_EventsByDate_SK"] = f"DATE#{date}"
        item["GSI_EventsByOwner_PK"] = f"OWNER#{fields['createdBy']}"
        item["GSI_EventsByOwner_SK"] = f"DATE#{date}"

        self.table.put_item(
            Item=item, ConditionExpression="attribute_not_exists(PK)"
        )
        return self._to_event(item)

    def get_event(self, event_id: str) -> Optional[EventOut]:
        response = self.table.get_item(Key=_event_key(event_id), ConsistentRead=True)
        item = response.get("Item")
        return self._to_event(item) if item else None

    def list_upcoming(self, now: datetime) -> List[EventOut]:
        return self._query_all(
            IndexName="GSI_EventsByDate",
            KeyConditionExpression=Key("GSI_EventsByDate_PK").eq("EVENT_TIMELINE")
            & Key("GSI_EventsByDate_SK").gte(f"DATE#{format_date(now)}"),
        )

    def list_created_by(self, user_id: str) -> List[EventOut]:
        return self._query_all(
            IndexName="GSI_EventsByOwner",
            KeyConditionExpression=Key("GSI_EventsByOwner_PK").eq(f"OWNER#{user_id}"),
        )

    def list_attending(self, user_id: str) -> List[EventOut]:
        events = []
        scan_params = {
            "FilterExpression": Attr("SK").eq("DETAIL")
            & Attr("attendees").contains(user_id),
        }

        while True:
            response = self.table.scan(**scan_params)
            events.extend(self._to_event(item) for item in response.get("Items", []))

            exclusive_start_key = response.get("LastEvaluatedKey")
            if not exclusive_start_key:
                break
            scan_params["ExclusiveStartKey"] = exclusive_start_key

        return sorted(events, key=lambda event: event.date)

    def update_fields(
        self, event_id: str, partial: Dict[str, Any]
    ) -> Optional[EventOut]:
        changes = {k: v for k, v in partial.items() if k in EDITABLE_FIELDS}
        if not changes:
            return self.get_event(event_id)

        names = {}
        values = {}
        assignments = []
        for field, value in changes.items():
            if field == "date":
                value = format_date(value)
                assignments.append("GSI_EventsByDate_SK = :date_sk")
                assignments.append("GSI_EventsByOwner_SK = :date_sk")
                values[":date_sk"] = f"DATE#{value}"
            names[f"#{field}"] = field
            values[f":{field}"] = value
            assignments.append(f"#{field} = :{field}")

        condition = "attribute_exists(PK)"
        if "capacity" in changes:
            # Never shrink capacity below the attendees already admitted
            names["#attendees"] = "attendees"
            condition += (
                " AND (attribute_not_exists(#attendees)"
                " OR size(#attendees) <= :capacity)"
            )

        try:
            response = self.table.update_item(
                Key=_event_key(event_id),
                UpdateExpression="SET " + ", ".join(assignments),
                ConditionExpression=condition,
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if _is_condition_failure(e):
                return None
            raise

        return self._to_event(response["Attributes"])

    def delete_event(self, event_id: str) -> bool:
        try:
            self.table.delete_item(
                Key=_event_key(event_id),
                ConditionExpression="attribute_exists(PK)",
            )
        except ClientError as e:
            if _is_condition_failure(e):
                return False
            raise
        return True

    def try_join(self, event_id: str, user_id: str) -> Optional[EventOut]:
        # An empty set is stored as a missing attribute; attribute_exists
        # comes first in each branch so size() is never applied to it.
        condition = (
            "attribute_exists(PK) AND ("
            "(attribute_not_exists(#attendees) AND #capacity > :zero)"
            " OR (attribute_exists(#attendees)"
            " AND NOT contains(#attendees, :user_id)"
            " AND size(#attendees) < #capacity))"
        )

        try:
            response = self.table.update_item(
                Key=_event_key(event_id),
                UpdateExpression="ADD #attendees :member",
                ConditionExpression=condition,
                ExpressionAttributeNames={
                    "#attendees": "attendees",
                    "#capacity": "capacity",
                },
                ExpressionAttributeValues={
                    ":member": {user_id},
                    ":user_id": user_id,
                    ":zero": 0,
                },
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if _is_condition_failure(e):
                return None
            raise

        return self._to_event(response["Attributes"])

    def leave(self, event_id: str, user_id: str) -> Optional[EventOut]:
        try:
            response = self.table.update_item(
                Key=_event_key(event_id),
                UpdateExpression="DELETE #attendees :member",
                ConditionExpression="attribute_exists(PK) AND contains(#attendees, :user_id)",
                ExpressionAttributeNames={"#attendees": "attendees"},
                ExpressionAttributeValues={
                    ":member": {user_id},
                    ":user_id": user_id,
                },
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if not _is_condition_failure(e):
                raise
            # Missing event, or the user was not attending (nothing to remove)
            return self.get_event(event_id)

        return self._to_event(response["Attributes"])

    def _query_all(self, **query_params) -> List[EventOut]:
        events = []

        while True:
            response = self.table.query(**query_params)
            events.extend(self._to_event(item) for item in response.get("Items", []))

            exclusive_start_key = response.get("LastEvaluatedKey")
            if not exclusive_start_key:
                break
            query_params["ExclusiveStartKey"] = exclusive_start_key

        return events

    def _to_event(self, item: Dict[str, Any]) -> EventOut:
        data = {k: v for k, v in item.items() if k not in INTERNAL_ATTRIBUTES}
        data["date"] = parse_date(data["date"])
        data["capacity"] = int(data["capacity"])
        data["attendees"] = set(data.get("attendees", set()))
        return EventOut(**data)
