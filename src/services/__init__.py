"""
Service functions for the AWS resources the forwarder talks to.

This package contains thin wrappers around S3 (stored messages), SES
(sending) and the standard library email parser.
"""

__all__ = ['email', 's3', 'ses']
