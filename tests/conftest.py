"""Shared fixtures."""
from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def no_backoff_sleep():
    """Skip the vendor client's back-off delays; other waits stay real."""
    with patch('adapters.http_client.VendorHttpClient._backoff') as mock_backoff:
        yield mock_backoff


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake AWS credentials so boto3 never reaches a real account."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')
