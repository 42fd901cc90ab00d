"""
Service functions used by the forwarding pipeline.

This package contains MIME body extraction, raw header rewriting, and the
SES and S3 clients.
"""

__all__ = ['email', 'headers', 's3', 'ses']
