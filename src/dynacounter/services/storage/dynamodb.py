"""DynamoDB implementation of ConditionalStore.

Uses condition expressions for optimistic concurrency control and
TransactWriteItems for all-or-nothing multi-item writes. Works against
AWS or a DynamoDB Local emulator (set ``endpoint_url``).
"""

import logging
import re
from decimal import Decimal
from typing import Any

import boto3
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from ...errors import StoreFault
from .conditional import (
    CONDITIONAL_CHECK_FAILED,
    NO_FAILURE,
    Conflict,
    Ok,
    Precondition,
    PreconditionKind,
    PutOp,
    TransactOp,
    UpdateAddOp,
    WriteOutcome,
)

logger = logging.getLogger(__name__)

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()

# DynamoDB Local sometimes only reports reasons inside the message text
_REASONS_IN_MESSAGE = re.compile(r"cancellation reasons.*?\[(?P<reasons>[^\]]*)\]", re.IGNORECASE)


def to_attribute(value: Any) -> dict:
    """Marshal a Python value into a DynamoDB attribute value."""
    if isinstance(value, float):
        value = Decimal(str(value))
    return _serializer.serialize(value)


def from_attribute(attribute: dict) -> Any:
    """Unmarshal an attribute value; integral numbers come back as int."""
    return _normalize(_deserializer.deserialize(attribute))


def _normalize(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _normalize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_normalize(v) for v in value]
    if isinstance(value, set):
        return {_normalize(v) for v in value}
    return value


def _condition_kwargs(precondition: Precondition | None) -> tuple[dict, dict, dict]:
    """Render a precondition as (expression kwargs, names, values)."""
    if precondition is None:
        return {}, {}, {}
    names = {"#cond": precondition.field}
    if precondition.kind == PreconditionKind.ABSENT:
        return {"ConditionExpression": "attribute_not_exists(#cond)"}, names, {}
    if precondition.kind == PreconditionKind.EXISTS:
        return {"ConditionExpression": "attribute_exists(#cond)"}, names, {}
    values = {":expected": to_attribute(precondition.expected)}
    return {"ConditionExpression": "#cond = :expected"}, names, values


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


class DynamoDBConditionalStore:
    """DynamoDB table with condition expressions for Compare-And-Swap.

    Every item lives in one table keyed by a single string hash key.
    """

    def __init__(
        self,
        table: str,
        endpoint_url: str | None = None,
        region: str | None = None,
        key_attribute: str = "pk",
        aws_access_key_id: str | None = None,
        aws_secret_access_key: str | None = None,
        client: Any = None,
    ):
        """Initialize DynamoDB store.

        Args:
            table: Table name
            endpoint_url: Custom endpoint (e.g. http://localhost:8000 for DynamoDB Local)
            region: AWS region name
            key_attribute: Name of the string hash key
            aws_access_key_id: Explicit credentials (DynamoDB Local accepts any)
            aws_secret_access_key: Explicit credentials
            client: Pre-built boto3 DynamoDB client (tests, shared sessions)
        """
        self.table = table
        self.key_attribute = key_attribute
        if client is None:
            session = boto3.Session(
                aws_access_key_id=aws_access_key_id,
                aws_secret_access_key=aws_secret_access_key,
                region_name=region,
            )
            client = session.client("dynamodb", endpoint_url=endpoint_url)
        self.client = client

    def _key(self, key: str) -> dict:
        return {self.key_attribute: {"S": key}}

    def _fault(self, error: Exception, operation: str, key: str | None = None) -> StoreFault:
        code = _error_code(error) if isinstance(error, ClientError) else type(error).__name__
        target = f" {key}" if key else ""
        logger.error(f"DynamoDB {operation}{target} on {self.table} failed: {error}")
        return StoreFault(f"{operation} failed on {self.table}: {error}", operation=operation, code=code)

    def get(
        self, key: str, fields: list[str] | None = None, consistent: bool = False
    ) -> dict | None:
        """Get an item, optionally projected to ``fields``."""
        request: dict[str, Any] = {
            "TableName": self.table,
            "Key": self._key(key),
            "ConsistentRead": consistent,
        }
        if fields:
            names = {f"#f{i}": name for i, name in enumerate(fields)}
            request["ProjectionExpression"] = ", ".join(names)
            request["ExpressionAttributeNames"] = names

        try:
            response = self.client.get_item(**request)
        except (ClientError, BotoCoreError) as e:
            raise self._fault(e, "get", key) from e

        item = response.get("Item")
        if item is None:
            return None
        return {name: from_attribute(value) for name, value in item.items()}

    def put(self, key: str, item: dict, precondition: Precondition | None = None) -> WriteOutcome:
        """Put a whole item, conditioned when a precondition is given."""
        request = self._put_request(key, item, precondition)
        try:
            self.client.put_item(**request)
        except ClientError as e:
            if _error_code(e) == "ConditionalCheckFailedException":
                logger.debug(f"Conditional put on {key} rejected ({precondition})")
                return Conflict()
            raise self._fault(e, "put", key) from e
        except BotoCoreError as e:
            raise self._fault(e, "put", key) from e
        logger.debug(f"Put {key} into {self.table}")
        return Ok()

    def update_add(
        self, key: str, field: str, delta: int, precondition: Precondition | None = None
    ) -> WriteOutcome:
        """ADD ``delta`` to ``field`` and return the updated value."""
        request = self._update_request(key, field, delta, precondition)
        request["ReturnValues"] = "UPDATED_NEW"
        try:
            response = self.client.update_item(**request)
        except ClientError as e:
            if _error_code(e) == "ConditionalCheckFailedException":
                logger.debug(f"Conditional add on {key}.{field} rejected ({precondition})")
                return Conflict()
            raise self._fault(e, "update_add", key) from e
        except BotoCoreError as e:
            raise self._fault(e, "update_add", key) from e

        new_value = from_attribute(response["Attributes"][field])
        logger.debug(f"Added {delta} to {key}.{field}, now {new_value}")
        return Ok(value=new_value)

    def transact(self, ops: list[TransactOp]) -> WriteOutcome:
        """Run the operations through TransactWriteItems."""
        items = []
        for op in ops:
            if isinstance(op, UpdateAddOp):
                items.append({"Update": self._update_request(op.key, op.field, op.delta, op.precondition)})
            elif isinstance(op, PutOp):
                items.append({"Put": self._put_request(op.key, op.item, op.precondition)})
            else:
                raise StoreFault(f"Unsupported transaction operation: {op!r}", operation="transact")

        try:
            self.client.transact_write_items(TransactItems=items)
        except ClientError as e:
            if _error_code(e) == "TransactionCanceledException":
                conflict = self._cancellation_conflict(e, len(ops))
                if conflict is not None:
                    logger.debug(
                        f"Transaction cancelled at operation {conflict.index}: {conflict.reason}"
                    )
                    return conflict
            raise self._fault(e, "transact") from e
        except BotoCoreError as e:
            raise self._fault(e, "transact") from e

        logger.debug(f"Committed transaction of {len(ops)} operations on {self.table}")
        return Ok()

    def _put_request(self, key: str, item: dict, precondition: Precondition | None) -> dict:
        attributes = {name: to_attribute(value) for name, value in item.items()}
        attributes.update(self._key(key))
        request: dict[str, Any] = {"TableName": self.table, "Item": attributes}
        condition, names, values = _condition_kwargs(precondition)
        request.update(condition)
        if names:
            request["ExpressionAttributeNames"] = names
        if values:
            request["ExpressionAttributeValues"] = values
        return request

    def _update_request(
        self, key: str, field: str, delta: int, precondition: Precondition | None
    ) -> dict:
        condition, names, values = _condition_kwargs(precondition)
        request: dict[str, Any] = {
            "TableName": self.table,
            "Key": self._key(key),
            "UpdateExpression": "ADD #field :delta",
            "ExpressionAttributeNames": {"#field": field, **names},
            "ExpressionAttributeValues": {":delta": to_attribute(delta), **values},
        }
        request.update(condition)
        return request

    @staticmethod
    def _cancellation_conflict(error: ClientError, count: int) -> Conflict | None:
        """Build a Conflict from a TransactionCanceledException.

        Returns None when no per-operation reason can be recovered, in
        which case the caller treats the cancellation as a fault.
        """
        reasons = [r.get("Code") or NO_FAILURE for r in error.response.get("CancellationReasons", [])]
        if not reasons:
            message = error.response.get("Error", {}).get("Message", "")
            match = _REASONS_IN_MESSAGE.search(message)
            if match:
                reasons = [r.strip() or NO_FAILURE for r in match.group("reasons").split(",")]
        if len(reasons) != count:
            return None

        if CONDITIONAL_CHECK_FAILED in reasons:
            index = reasons.index(CONDITIONAL_CHECK_FAILED)
        else:
            failed = [i for i, r in enumerate(reasons) if r != NO_FAILURE]
            if not failed:
                return None
            index = failed[0]
        return Conflict(index=index, reason=reasons[index], reasons=tuple(reasons))

    def ensure_table(self, wait: bool = True) -> bool:
        """Create the table if it doesn't exist.

        Returns:
            True if the table was created, False if it already existed.
        """
        try:
            self.client.describe_table(TableName=self.table)
            return False
        except ClientError as e:
            if _error_code(e) != "ResourceNotFoundException":
                raise self._fault(e, "describe_table") from e
        except BotoCoreError as e:
            raise self._fault(e, "describe_table") from e

        logger.info(f"Creating table: {self.table}")
        try:
            self.client.create_table(
                TableName=self.table,
                KeySchema=[{"AttributeName": self.key_attribute, "KeyType": "HASH"}],
                AttributeDefinitions=[{"AttributeName": self.key_attribute, "AttributeType": "S"}],
                BillingMode="PAY_PER_REQUEST",
            )
        except ClientError as e:
            if _error_code(e) == "ResourceInUseException":
                # Created concurrently by someone else
                return False
            raise self._fault(e, "create_table") from e
        except BotoCoreError as e:
            raise self._fault(e, "create_table") from e

        if wait:
            try:
                self.client.get_waiter("table_exists").wait(TableName=self.table)
            except BotoCoreError as e:
                raise self._fault(e, "create_table") from e
        return True

    def delete_table(self) -> bool:
        """Delete the table.

        Returns:
            True if deleted, False if it didn't exist.
        """
        try:
            self.client.delete_table(TableName=self.table)
        except ClientError as e:
            if _error_code(e) == "ResourceNotFoundException":
                logger.debug(f"Table {self.table} not found for deletion")
                return False
            raise self._fault(e, "delete_table") from e
        except BotoCoreError as e:
            raise self._fault(e, "delete_table") from e
        logger.info(f"Deleted table: {self.table}")
        return True
