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
os.environ.setdefault('FROM_EMAIL', 'hello@nyah.dev')
os.environ.setdefault('TO_EMAIL', 'nyah@hey.com')
os.environ.setdefault('ENVIRONMENT', 'test')
os.environ.setdefault('LOG_LEVEL', 'INFO')

EVENTS_DIR = os.path.join(os.path.dirname(__file__), 'events')


def load_event(name):
    """Load a Lambda event from tests/events."""
    with open(os.path.join(EVENTS_DIR, name)) as f:
        return json.load(f)


@pytest.fixture
def ses_event():
    """SES Lambda action event (raw email not embedded)."""
    return load_event('ses-event.json')


@pytest.fixture
def sns_event():
    """SES -> SNS event with the raw email embedded as UTF8 content."""
    return load_event('sns-event.json')


@pytest.fixture
def raw_email():
    """Two-part multipart/alternative raw email with CRLF line endings."""
    return (
        b"Return-Path: <bounces@example.com>\r\n"
        b"From: Jane Doe <user@example.com>\r\n"
        b"To: hello@nyah.dev\r\n"
        b"Subject: Hello from Jane\r\n"
        b"MIME-Version: 1.0\r\n"
        b"Content-Type: multipart/alternative; boundary=\"b1\"\r\n"
        b"Content-Transfer-Encoding: 7bit\r\n"
        b"\r\n"
        b"--b1\r\n"
        b"Content-Type: text/plain; charset=\"UTF-8\"\r\n"
        b"\r\n"
        b"Hi there, plain text.\r\n"
        b"\r\n"
        b"--b1\r\n"
        b"Content-Type: text/html; charset=\"UTF-8\"\r\n"
        b"\r\n"
        b"<p>Hi there, <b>HTML</b>.</p>\r\n"
        b"\r\n"
        b"--b1--\r\n"
    )
