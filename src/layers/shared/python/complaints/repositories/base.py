"""Base repository class for DynamoDB operations."""

import os
from typing import Any, Generic, TypeVar

import boto3
import structlog
from botocore.exceptions import ClientError

from complaints.models.base import BaseModel
from complaints.utils.exceptions import ConflictError

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)


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
            table_name: DynamoDB table name. Defaults to TABLE_NAME env var.
            region_name: AWS region. Falls back to AWS_REGION env var.
        """
        self.model_class = model_class
        self.table_name = table_name or os.environ.get("TABLE_NAME", "complaints-dev")
        self.region_name = region_name or os.environ.get("AWS_REGION")
        self._dynamodb = None
        self._table = None

    @property
    def dynamodb(self):
        """Get DynamoDB resource (lazy initialization)."""
        if self._dynamodb is None:
            self._dynamodb = boto3.resource("dynamodb", region_name=self.region_name)
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
            response = self.table.get_item(Key=self._build_key(pk, sk), ConsistentRead=True)
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
            ConflictError: If the condition expression failed.
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
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise ConflictError("Item already exists") from e
            logger.error("DynamoDB put_item failed", error=str(e))
            raise

    def create(self, item: T, gsi_keys: dict[str, str] | None = None) -> T:
        """Create a new item (fails if exists).

        Args:
            item: Model instance to create.
            gsi_keys: Optional GSI key values.

        Returns:
            The created model instance.

        Raises:
            ConflictError: If item already exists.
        """
        return self.put(
            item,
            condition_expression="attribute_not_exists(PK)",
            gsi_keys=gsi_keys,
        )

    def query_gsi1(self, gsi1pk: str, limit: int = 1) -> list[T]:
        """Query GSI1 by partition key.

        Args:
            gsi1pk: GSI1 partition key value.
            limit: Maximum items to return.

        Returns:
            Matching model instances.
        """
        try:
            response = self.table.query(
                IndexName="GSI1",
                KeyConditionExpression="GSI1PK = :pk",
                ExpressionAttributeValues={":pk": gsi1pk},
                Limit=limit,
            )
        except ClientError as e:
            logger.error("DynamoDB query failed", error=str(e), gsi1pk=gsi1pk)
            raise

        return [self.model_class.from_dynamodb(item) for item in response.get("Items", [])]
