"""Base repository class for DynamoDB operations."""

from typing import Any, Generic, TypeVar

import boto3
import structlog
from botocore.exceptions import ClientError

from twogether.models.base import BaseModel
from twogether.utils.exceptions import ConflictError

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)

DEFAULT_TABLE_NAME = "twogether-dev"


def is_conditional_check_failure(e: ClientError) -> bool:
    """Check whether a ClientError is a failed ConditionExpression."""
    return e.response["Error"]["Code"] == "ConditionalCheckFailedException"


class BaseRepository(Generic[T]):
    """Base repository for DynamoDB single-table design."""

    def __init__(
        self,
        model_class: type[T],
        table_name: str | None = None,
        region_name: str | None = None,
    ):
        """Initialize repository.

        Args:
            model_class: The Pydantic model class for this repository.
            table_name: DynamoDB table name.
            region_name: Optional AWS region override.
        """
        self.model_class = model_class
        self.table_name = table_name or DEFAULT_TABLE_NAME
        self.region_name = region_name
        self._dynamodb = None
        self._table = None

    @property
    def dynamodb(self):
        """Get DynamoDB resource (lazy initialization)."""
        if self._dynamodb is None:
            if self.region_name:
                self._dynamodb = boto3.resource("dynamodb", region_name=self.region_name)
            else:
                self._dynamodb = boto3.resource("dynamodb")
        return self._dynamodb

    @property
    def table(self):
        """Get DynamoDB table (lazy initialization)."""
        if self._table is None:
            self._table = self.dynamodb.Table(self.table_name)
        return self._table

    def _build_key(self, pk: str, sk: str) -> dict[str, str]:
        """Build key dictionary for DynamoDB operations."""
        return {"PK": pk, "SK": sk}

    def get(self, pk: str, sk: str) -> T | None:
        """Get an item by its primary key.

        Args:
            pk: Partition key value.
            sk: Sort key value.

        Returns:
            Model instance or None if not found.
        """
        try:
            response = self.table.get_item(Key=self._build_key(pk, sk))
            item = response.get("Item")

            if not item:
                return None

            return self.model_class.from_dynamodb(item)

        except ClientError as e:
            logger.error("DynamoDB get_item failed", error=str(e), pk=pk, sk=sk)
            raise

    def put(
        self,
        item: T,
        condition_expression: str | None = None,
        gsi_keys: dict[str, str] | None = None,
    ) -> T:
        """Put an item into DynamoDB.

        Args:
            item: Model instance to save.
            condition_expression: Optional condition expression.
            gsi_keys: Optional GSI key values to add.

        Returns:
            The saved model instance.

        Raises:
            ConflictError: If the condition expression fails.
        """
        try:
            db_item = item.to_dynamodb()
            db_item.update(item.get_keys())

            if gsi_keys:
                db_item.update(gsi_keys)

            kwargs: dict[str, Any] = {"Item": db_item}
            if condition_expression:
                kwargs["ConditionExpression"] = condition_expression

            self.table.put_item(**kwargs)

            logger.debug(
                "Item saved",
                pk=db_item["PK"],
                sk=db_item["SK"],
                model=self.model_class.__name__,
            )

            return item

        except ClientError as e:
            if is_conditional_check_failure(e):
                raise ConflictError("Item already exists")
            logger.error("DynamoDB put_item failed", error=str(e))
            raise

    def create(self, item: T, gsi_keys: dict[str, str] | None = None) -> T:
        """Create a new item (fails if exists).

        Raises:
            ConflictError: If item already exists.
        """
        return self.put(
            item,
            condition_expression="attribute_not_exists(PK)",
            gsi_keys=gsi_keys,
        )

    def query_items(
        self,
        pk: str,
        sk_begins_with: str | None = None,
        index_name: str | None = None,
        limit: int | None = None,
        scan_forward: bool = True,
        last_key: dict | None = None,
    ) -> tuple[list[dict[str, Any]], dict | None]:
        """Query one page of raw items by partition key.

        Args:
            pk: Partition key value.
            sk_begins_with: Sort key prefix for begins_with condition.
            index_name: Optional GSI name ("GSI1").
            limit: Maximum items to return.
            scan_forward: Sort direction (True = ascending).
            last_key: Last evaluated key for pagination.

        Returns:
            Tuple of (raw items, last_evaluated_key).
        """
        pk_attr, sk_attr = ("GSI1PK", "GSI1SK") if index_name == "GSI1" else ("PK", "SK")

        try:
            if sk_begins_with:
                key_condition = f"{pk_attr} = :pk AND begins_with({sk_attr}, :sk_prefix)"
                expr_values = {":pk": pk, ":sk_prefix": sk_begins_with}
            else:
                key_condition = f"{pk_attr} = :pk"
                expr_values = {":pk": pk}

            kwargs: dict[str, Any] = {
                "KeyConditionExpression": key_condition,
                "ExpressionAttributeValues": expr_values,
                "ScanIndexForward": scan_forward,
            }

            if index_name:
                kwargs["IndexName"] = index_name
            if limit:
                kwargs["Limit"] = limit
            if last_key:
                kwargs["ExclusiveStartKey"] = last_key

            response = self.table.query(**kwargs)

            return response.get("Items", []), response.get("LastEvaluatedKey")

        except ClientError as e:
            logger.error("DynamoDB query failed", error=str(e), pk=pk)
            raise

    def query(
        self,
        pk: str,
        sk_begins_with: str | None = None,
        index_name: str | None = None,
        limit: int | None = None,
        scan_forward: bool = True,
        last_key: dict | None = None,
    ) -> tuple[list[T], dict | None]:
        """Query items by partition key and parse them into models.

        Takes the same arguments as query_items().
        """
        raw_items, last_evaluated_key = self.query_items(
            pk,
            sk_begins_with=sk_begins_with,
            index_name=index_name,
            limit=limit,
            scan_forward=scan_forward,
            last_key=last_key,
        )
        return [self.model_class.from_dynamodb(item) for item in raw_items], last_evaluated_key

    def query_all(
        self,
        pk: str,
        sk_begins_with: str | None = None,
        index_name: str | None = None,
    ) -> list[T]:
        """Query every page for a partition key."""
        results: list[T] = []
        last_key = None
        while True:
            items, last_key = self.query(
                pk,
                sk_begins_with=sk_begins_with,
                index_name=index_name,
                last_key=last_key,
            )
            results.extend(items)
            if not last_key:
                return results
