"""DynamoDB storage for per-user settings documents."""
import json
import logging
import time
from decimal import Decimal
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import ClientError

from settings_sync.policy import SYNC_KEYS, build_sync_document

logger = logging.getLogger(__name__)


def to_dynamo(value: Any) -> Any:
    """Convert floats to Decimal, which is the only number type boto3 accepts."""
    return json.loads(json.dumps(value), parse_float=Decimal)


def from_dynamo(value: Any) -> Any:
    """Convert Decimals read from DynamoDB back to int or float."""
    if isinstance(value, list):
        return [from_dynamo(v) for v in value]
    if isinstance(value, dict):
        return {k: from_dynamo(v) for k, v in value.items()}
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


class SettingsTable:
    """Manager for the settings table (one item per user email)."""

    def __init__(self, table_name: str, region_name: Optional[str] = None):
        """
        Initialize DynamoDB client and table reference.

        Args:
            table_name: Name of the DynamoDB table
            region_name: AWS region (default: from the environment)
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb', region_name=region_name)
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized SettingsTable for table: {table_name}")

    def get_settings(self, user_email: str) -> Optional[Dict[str, Any]]:
        """
        Read a user's settings item.

        Args:
            user_email: Partition key

        Returns:
            Dict with "settings" and "updated_at", or None if absent

        Raises:
            ClientError: If DynamoDB rejects the request
        """
        try:
            response = self.table.get_item(Key={'user_email': user_email})
        except ClientError as e:
            logger.error(f"Error reading settings: {e}")
            raise

        item = response.get('Item')
        if not item:
            return None
        return {
            'settings': from_dynamo(item.get('settings') or {}),
            'updated_at': item.get('updated_at'),
        }

    def put_settings(self, user_email: str, settings: Dict[str, Any],
                     user_name: str = '') -> str:
        """
        Overwrite a user's settings item.

        Unknown keys are dropped and vendor session tokens are removed
        before the write.

        Args:
            user_email: Partition key
            settings: Settings document
            user_name: Display name kept alongside for support lookups

        Returns:
            ISO 8601 timestamp of the write

        Raises:
            ClientError: If DynamoDB rejects the request
        """
        document = build_sync_document(settings)
        dropped = sorted(set(settings) - set(SYNC_KEYS))
        if dropped:
            logger.warning(f"Ignoring unknown settings keys: {dropped}")

        updated_at = time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime())
        item = {
            'user_email': user_email,
            'settings': to_dynamo(document),
            'updated_at': updated_at,
        }
        if user_name:
            item['user_name'] = user_name

        try:
            self.table.put_item(Item=item)
        except ClientError as e:
            logger.error(f"Error writing settings: {e}")
            raise

        logger.info(f"Stored settings ({len(document)} keys)")
        return updated_at
