"""
Tests for SES sending.
"""

import pytest
from unittest.mock import patch
from botocore.exceptions import ClientError
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from services import ses


class TestSendRawEmail:
    """Test sending raw messages through SES."""

    @patch('services.ses.ses_client')
    def test_send_success(self, mock_ses_client):
        """Test a raw message is sent with its envelope."""
        mock_ses_client.send_raw_email.return_value = {'MessageId': 'ses-123'}
        raw = b"From: a@b.com\r\n\r\nBody"

        response = ses.send_raw_email('info@example.com', ('jim@example.net',), raw)

        assert response == {'MessageId': 'ses-123'}
        mock_ses_client.send_raw_email.assert_called_once_with(
            Source='info@example.com',
            Destinations=['jim@example.net'],
            RawMessage={'Data': raw}
        )

    @patch('services.ses.ses_client')
    def test_send_rejected(self, mock_ses_client):
        """Test SES errors are re-raised."""
        mock_ses_client.send_raw_email.side_effect = ClientError(
            {'Error': {'Code': 'MessageRejected', 'Message': 'Email address is not verified.'}},
            'SendRawEmail'
        )

        with pytest.raises(ClientError):
            ses.send_raw_email('info@example.com', ['jim@example.net'], b"raw")

    @patch('services.ses.ses_client')
    def test_send_empty_source(self, mock_ses_client):
        """Test an empty source is rejected before calling SES."""
        with pytest.raises(ValueError, match="Source address cannot be empty"):
            ses.send_raw_email('', ['jim@example.net'], b"raw")
        mock_ses_client.send_raw_email.assert_not_called()

    @patch('services.ses.ses_client')
    def test_send_no_destinations(self, mock_ses_client):
        """Test empty destinations are rejected before calling SES."""
        with pytest.raises(ValueError, match="Destinations cannot be empty"):
            ses.send_raw_email('info@example.com', [], b"raw")
        mock_ses_client.send_raw_email.assert_not_called()
