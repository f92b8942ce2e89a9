"""
Pytest configuration and fixtures for all tests.
"""

import json
import os
import sys
import pytest

# Add src to Python path before any imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

# Set up test environment variables before importing any modules
os.environ.setdefault('AWS_DEFAULT_REGION', 'us-east-1')
os.environ.setdefault('MAIL_S3_BUCKET', 'ses-inbound-test')
os.environ.setdefault('MAIL_S3_PREFIX', 'inbound/')
os.environ.setdefault('EMAIL_MAPPING', json.dumps({
    'info@example.com': ['jim@example.net', 'jane@example.net'],
    '@example.org': 'ops@example.net',
}))
os.environ.setdefault('LOG_LEVEL', 'INFO')


@pytest.fixture
def ses_event():
    """Load sample SES receipt event from test data."""
    with open(os.path.join(os.path.dirname(__file__), 'events', 'ses-event.json')) as f:
        return json.load(f)


@pytest.fixture
def sample_email():
    """Sample raw email in MIME format with CRLF line endings."""
    return (
        b"Return-Path: <betsy@example.com>\r\n"
        b"DKIM-Signature: v=1; a=rsa-sha256; d=example.com; s=sel;\r\n"
        b"\tbh=abc; b=def\r\n"
        b"From: Betsy <betsy@example.com>\r\n"
        b"To: info@example.com\r\n"
        b"Subject: Test Email Subject\r\n"
        b"Message-ID: <1234@mail.example.com>\r\n"
        b"MIME-Version: 1.0\r\n"
        b"Content-Type: text/plain; charset=\"UTF-8\"\r\n"
        b"\r\n"
        b"Hello,\r\n\r\nThis is a test email body.\r\n"
    )
