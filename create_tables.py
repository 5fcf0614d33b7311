# create_tables.py
"""Create the DynamoDB tables used by the backend.

Run once per environment: ``python create_tables.py``. Tables that already
exist are left alone.
"""

import logging
import sys
from typing import Any, Dict, List

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from logging_config import configure_logging
from settings import Settings, get_settings

logger = logging.getLogger(__name__)


def _table_definition(name: str, index_name: str, index_key: str) -> Dict[str, Any]:
    return {
        "TableName": name,
        "KeySchema": [{"AttributeName": "id", "KeyType": "HASH"}],
        "AttributeDefinitions": [
            {"AttributeName": "id", "AttributeType": "S"},
            {"AttributeName": index_key, "AttributeType": "S"},
        ],
        "GlobalSecondaryIndexes": [
            {
                "IndexName": index_name,
                "KeySchema": [{"AttributeName": index_key, "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
            }
        ],
        "BillingMode": "PAY_PER_REQUEST",
    }


def table_definitions(settings: Settings) -> List[Dict[str, Any]]:
    return [
        _table_definition(settings.users_table, "EmailIndex", "email"),
        _table_definition(settings.wardrobe_table, "UserIdIndex", "userId"),
    ]


def create_tables(client, settings: Settings) -> List[str]:
    """Create missing tables and return the names that were created."""
    created = []
    for definition in table_definitions(settings):
        name = definition["TableName"]
        try:
            client.create_table(**definition)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ResourceInUseException":
                logger.info("Table %s already exists", name)
                continue
            raise
        logger.info("Created table %s", name)
        created.append(name)
    return created


def main() -> int:
    configure_logging()
    settings = get_settings()
    client = boto3.client("dynamodb", region_name=settings.aws_region)
    try:
        create_tables(client, settings)
    except (BotoCoreError, ClientError) as e:
        logger.error("Table setup failed: %s. Check AWS credentials, permissions and region.", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
