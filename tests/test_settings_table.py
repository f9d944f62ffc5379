"""Unit tests for the DynamoDB settings table."""
from decimal import Decimal

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from storage.settings_table import SettingsTable, from_dynamo, to_dynamo

TABLE_NAME = 'test-rink-link-user-settings'


@pytest.fixture
def dynamodb_table(aws_credentials):
    """Create a mock DynamoDB table for testing."""
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name='us-east-1')

        table = dynamodb.create_table(
            TableName=TABLE_NAME,
            KeySchema=[
                {'AttributeName': 'user_email', 'KeyType': 'HASH'}
            ],
            AttributeDefinitions=[
                {'AttributeName': 'user_email', 'AttributeType': 'S'}
            ],
            BillingMode='PAY_PER_REQUEST'
        )

        yield table


@pytest.fixture
def settings_table(dynamodb_table):
    """Create SettingsTable instance with mock table."""
    return SettingsTable(TABLE_NAME, region_name='us-east-1')


class TestSettingsTable:
    """Test cases for SettingsTable."""

    def test_get_missing_user(self, settings_table):
        """Test that an unknown user has no document."""
        assert settings_table.get_settings('nobody@example.com') is None

    def test_put_then_get(self, settings_table):
        """Test that a stored document reads back with native numbers."""
        settings = {
            'favorite_ids': ['s1', 's2'],
            'color_mode': 'dark',
            'auto_refresh_interval': 15,
            'home_location': {'lat': 42.26, 'lng': -71.8},
            'notifications_enabled': False,
        }

        updated_at = settings_table.put_settings('parent@example.com', settings, user_name='Pat')
        stored = settings_table.get_settings('parent@example.com')

        assert stored['settings'] == settings
        assert stored['updated_at'] == updated_at
        assert isinstance(stored['settings']['auto_refresh_interval'], int)

    def test_put_overwrites(self, settings_table):
        """Test that each push replaces the whole document."""
        settings_table.put_settings('parent@example.com', {'favorite_ids': ['a'], 'color_mode': 'dark'})
        settings_table.put_settings('parent@example.com', {'favorite_ids': ['b']})

        stored = settings_table.get_settings('parent@example.com')

        assert stored['settings'] == {'favorite_ids': ['b']}

    def test_put_strips_session_tokens_and_unknown_keys(self, settings_table, dynamodb_table):
        """Test that ephemeral and unknown fields are not stored."""
        settings_table.put_settings('parent@example.com', {
            'daysmart_config': {'email': 'a@b.com', 'password': 'pw', 'session_token': 'PHPSESSID=1'},
            'debug_panel_open': True,
        })

        item = dynamodb_table.get_item(Key={'user_email': 'parent@example.com'})['Item']

        assert item['settings'] == {'daysmart_config': {'email': 'a@b.com', 'password': 'pw'}}

    def test_missing_table_raises(self, dynamodb_table):
        """Test that DynamoDB errors propagate."""
        table = SettingsTable('does-not-exist', region_name='us-east-1')

        with pytest.raises(ClientError):
            table.get_settings('parent@example.com')


class TestDecimalConversion:
    """Test cases for number conversion helpers."""

    def test_to_dynamo_converts_floats(self):
        converted = to_dynamo({'lat': 42.26, 'items': [1.5, 2]})

        assert converted == {'lat': Decimal('42.26'), 'items': [Decimal('1.5'), 2]}

    def test_from_dynamo_restores_numbers(self):
        restored = from_dynamo({'a': Decimal('15'), 'b': [Decimal('0.5')], 'c': 'x'})

        assert restored == {'a': 15, 'b': [0.5], 'c': 'x'}
        assert isinstance(restored['a'], int)
