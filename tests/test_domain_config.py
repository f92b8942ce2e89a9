"""
Tests for forwarder configuration.
"""

import json
import pytest
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from domain.config import ForwarderConfig, DEFAULT_SEND_CONCURRENCY
from domain.errors import ConfigurationError


@pytest.fixture
def environ():
    """Minimal valid environment."""
    return {
        'MAIL_S3_BUCKET': 'ses-inbound',
        'EMAIL_MAPPING': json.dumps({'@example.com': ['me@example.net']}),
    }


class TestForwarderConfig:
    """Test reading configuration from the environment."""

    def test_defaults(self, environ):
        """Test optional settings fall back to their defaults."""
        config = ForwarderConfig.from_env(environ)

        assert config.email_bucket == 'ses-inbound'
        assert config.email_key_prefix == ''
        assert config.subject_prefix == ''
        assert config.allow_plus_sign is True
        assert config.send_concurrency == DEFAULT_SEND_CONCURRENCY
        assert config.mapping.get('@example.com') == ('me@example.net',)

    def test_all_settings(self, environ):
        """Test every optional setting is read."""
        environ.update({
            'MAIL_S3_PREFIX': 'inbound/',
            'SUBJECT_PREFIX': '[Fwd] ',
            'ALLOW_PLUS_SIGN': 'false',
            'SEND_CONCURRENCY': '3',
        })
        config = ForwarderConfig.from_env(environ)

        assert config.email_key_prefix == 'inbound/'
        assert config.subject_prefix == '[Fwd] '
        assert config.allow_plus_sign is False
        assert config.send_concurrency == 3

    def test_missing_bucket(self, environ):
        """Test the bucket is required."""
        del environ['MAIL_S3_BUCKET']
        with pytest.raises(ConfigurationError, match="MAIL_S3_BUCKET"):
            ForwarderConfig.from_env(environ)

    def test_missing_mapping(self, environ):
        """Test the mapping is required."""
        environ['EMAIL_MAPPING'] = ''
        with pytest.raises(ConfigurationError, match="EMAIL_MAPPING"):
            ForwarderConfig.from_env(environ)

    def test_invalid_mapping(self, environ):
        """Test a malformed mapping is rejected."""
        environ['EMAIL_MAPPING'] = '{"info": '
        with pytest.raises(ConfigurationError, match="not valid JSON"):
            ForwarderConfig.from_env(environ)

    def test_invalid_bool(self, environ):
        """Test unknown boolean values are rejected."""
        environ['ALLOW_PLUS_SIGN'] = 'maybe'
        with pytest.raises(ConfigurationError, match="ALLOW_PLUS_SIGN"):
            ForwarderConfig.from_env(environ)

    @pytest.mark.parametrize("value", ['0', '-2', 'ten'])
    def test_invalid_concurrency(self, environ, value):
        """Test concurrency must be a positive integer."""
        environ['SEND_CONCURRENCY'] = value
        with pytest.raises(ConfigurationError, match="SEND_CONCURRENCY"):
            ForwarderConfig.from_env(environ)

    def test_config_is_immutable(self, environ):
        """Test the configuration cannot be changed after construction."""
        config = ForwarderConfig.from_env(environ)
        with pytest.raises(AttributeError):
            config.subject_prefix = 'changed'
