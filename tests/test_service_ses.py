"""
Tests for SES mail transfer.
"""

import pytest
from unittest.mock import patch
from botocore.exceptions import ClientError, EndpointConnectionError
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from domain.errors import UpstreamError
from domain.models import OutboundMessage, RawOutboundMessage
from services import ses


@pytest.fixture
def outbound():
    return OutboundMessage(
        source='hello@nyah.dev',
        to_addresses=['nyah@hey.com'],
        reply_to_addresses=['Jane Doe <user@example.com>'],
        subject='Hello from Jane',
        text_body='Hi there, plain text.',
        html_body='<p>Hi there</p>'
    )


@pytest.fixture
def raw_outbound():
    return RawOutboundMessage(
        source='hello@nyah.dev',
        destinations=['nyah@hey.com'],
        data=b"From: Jane Doe <hello@nyah.dev>\r\nSubject: Hi\r\n\r\nBody"
    )


class TestSendEmail:
    """Test composed message sending."""

    @patch('services.ses.ses_client')
    def test_send_email_success(self, mock_ses_client, outbound):
        mock_ses_client.send_email.return_value = {'MessageId': 'ses-123'}

        result = ses.send_email(outbound)

        assert result == 'ses-123'
        mock_ses_client.send_email.assert_called_once_with(**outbound.to_request())

    @patch('services.ses.ses_client')
    def test_send_email_rejected(self, mock_ses_client, outbound):
        mock_ses_client.send_email.side_effect = ClientError(
            {'Error': {'Code': 'MessageRejected', 'Message': 'Email address is not verified.'}},
            'SendEmail'
        )

        with pytest.raises(UpstreamError, match="MessageRejected"):
            ses.send_email(outbound)

        mock_ses_client.send_email.assert_called_once()


class TestSendRawEmail:
    """Test raw message sending."""

    @patch('services.ses.ses_client')
    def test_send_raw_email_success(self, mock_ses_client, raw_outbound):
        mock_ses_client.send_raw_email.return_value = {'MessageId': 'ses-raw-1'}

        result = ses.send_raw_email(raw_outbound)

        assert result == 'ses-raw-1'
        mock_ses_client.send_raw_email.assert_called_once_with(
            Source='hello@nyah.dev',
            Destinations=['nyah@hey.com'],
            RawMessage={'Data': raw_outbound.data}
        )

    @patch('services.ses.ses_client')
    def test_send_raw_email_throttled(self, mock_ses_client, raw_outbound):
        error = ClientError(
            {'Error': {'Code': 'Throttling', 'Message': 'Maximum sending rate exceeded.'}},
            'SendRawEmail'
        )
        mock_ses_client.send_raw_email.side_effect = error

        with pytest.raises(UpstreamError, match="Maximum sending rate exceeded") as exc_info:
            ses.send_raw_email(raw_outbound)

        assert exc_info.value.__cause__ is error
        mock_ses_client.send_raw_email.assert_called_once()

    @patch('services.ses.ses_client')
    def test_send_raw_email_connection_error(self, mock_ses_client, raw_outbound):
        mock_ses_client.send_raw_email.side_effect = EndpointConnectionError(
            endpoint_url='https://email.us-east-1.amazonaws.com'
        )

        with pytest.raises(UpstreamError):
            ses.send_raw_email(raw_outbound)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
