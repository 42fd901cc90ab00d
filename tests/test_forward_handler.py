"""
Tests for the SES email forwarder Lambda handler.
"""

import json
import logging
import pytest
from unittest.mock import Mock, patch
from botocore.exceptions import ClientError
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

import forward_handler
from domain.errors import ConfigurationError, MalformedInputError, UpstreamError


@pytest.fixture(autouse=True)
def reset_pipeline():
    """Rebuild the pipeline from the environment for every test."""
    forward_handler._pipeline = None
    yield
    forward_handler._pipeline = None


@pytest.fixture
def mock_context():
    """Mock Lambda context."""
    context = Mock()
    context.aws_request_id = "test-request-id"
    context.invoked_function_arn = "arn:aws:lambda:us-east-1:123456789012:function:privatemail"
    context.function_name = "privatemail-test"
    return context


def _set_status(sns_event, check, status):
    message = json.loads(sns_event['Records'][0]['Sns']['Message'])
    message['receipt'][check]['status'] = status
    sns_event['Records'][0]['Sns']['Message'] = json.dumps(message)


class TestLambdaHandler:
    """Test the Lambda entry point end to end with SES mocked."""

    @patch('services.ses.ses_client')
    def test_forward_success(self, mock_ses_client, sns_event, mock_context):
        mock_ses_client.send_raw_email.return_value = {'MessageId': 'ses-msg-1'}

        result = forward_handler.lambda_handler(sns_event, mock_context)

        assert result == {'statusCode': 200, 'body': 'ses-msg-1'}
        mock_ses_client.send_raw_email.assert_called_once()
        request = mock_ses_client.send_raw_email.call_args[1]
        assert request['Source'] == 'hello@nyah.dev'
        assert request['Destinations'] == ['nyah@hey.com']
        data = request['RawMessage']['Data']
        assert data.startswith(b'From: Jane Doe <hello@nyah.dev>\r\n')
        assert b'\r\nReply-To: Jane Doe <user@example.com>\r\n' in data
        assert b'\r\nX-Original-To: hello@nyah.dev\r\n' in data
        assert b'\r\nCc: bob@example.com\r\n' in data
        assert b'DKIM-Signature' not in data

    @patch('services.ses.ses_client')
    def test_spam_is_skipped(self, mock_ses_client, sns_event, mock_context):
        _set_status(sns_event, 'spamVerdict', 'FAIL')

        result = forward_handler.lambda_handler(sns_event, mock_context)

        assert result['statusCode'] == 200
        assert 'spam or virus' in result['body']
        mock_ses_client.send_raw_email.assert_not_called()

    @patch('services.ses.ses_client')
    def test_blacklisted_sender_is_skipped(self, mock_ses_client, sns_event, mock_context, monkeypatch):
        monkeypatch.setenv('BLACK_LIST', 'nomatch.org, example.com')

        result = forward_handler.lambda_handler(sns_event, mock_context)

        assert result['statusCode'] == 200
        assert "example.com" in result['body']
        mock_ses_client.send_raw_email.assert_not_called()

    @patch('services.ses.ses_client')
    def test_compose_mode(self, mock_ses_client, sns_event, mock_context, monkeypatch):
        monkeypatch.setenv('FORWARD_MODE', 'compose')
        monkeypatch.setenv('SUBJECT_PREFIX', 'PrivateMail: ')
        mock_ses_client.send_email.return_value = {'MessageId': 'ses-msg-2'}

        result = forward_handler.lambda_handler(sns_event, mock_context)

        assert result['body'] == 'ses-msg-2'
        request = mock_ses_client.send_email.call_args[1]
        assert request['Destination'] == {
            'ToAddresses': ['nyah@hey.com'],
            'CcAddresses': ['bob@example.com']
        }
        assert request['Message']['Subject']['Data'] == 'PrivateMail: Hello from Jane'
        mock_ses_client.send_raw_email.assert_not_called()

    @patch('services.ses.ses_client')
    def test_invalid_event_raises(self, mock_ses_client, mock_context):
        with pytest.raises(MalformedInputError):
            forward_handler.lambda_handler({'invalid': 'data'}, mock_context)

        mock_ses_client.send_raw_email.assert_not_called()

    @patch('services.ses.ses_client')
    def test_missing_content_raises(self, mock_ses_client, ses_event, mock_context):
        with pytest.raises(MalformedInputError):
            forward_handler.lambda_handler(ses_event, mock_context)

        mock_ses_client.send_raw_email.assert_not_called()

    @patch('services.s3.s3_client')
    @patch('services.ses.ses_client')
    def test_content_from_configured_bucket(self, mock_ses_client, mock_s3_client, ses_event,
                                            raw_email, mock_context, monkeypatch):
        monkeypatch.setenv('EMAIL_BUCKET', 'ses-bucket')
        monkeypatch.setenv('EMAIL_KEY_PREFIX', 'inbound/')
        mock_s3_client.get_object.return_value = {'Body': Mock(read=Mock(return_value=raw_email))}
        mock_ses_client.send_raw_email.return_value = {'MessageId': 'ses-msg-3'}

        result = forward_handler.lambda_handler(ses_event, mock_context)

        assert result == {'statusCode': 200, 'body': 'ses-msg-3'}
        mock_s3_client.get_object.assert_called_once_with(
            Bucket='ses-bucket',
            Key='inbound/o3vrnil0e2ic28trm7dfhrc2v0clambda4nbp0g1'
        )

    @patch('services.ses.ses_client')
    def test_ses_failure_raises(self, mock_ses_client, sns_event, mock_context):
        mock_ses_client.send_raw_email.side_effect = ClientError(
            {'Error': {'Code': 'MessageRejected', 'Message': 'Email address is not verified.'}},
            'SendRawEmail'
        )

        with pytest.raises(UpstreamError, match="MessageRejected"):
            forward_handler.lambda_handler(sns_event, mock_context)

        mock_ses_client.send_raw_email.assert_called_once()

    def test_missing_configuration_raises(self, sns_event, mock_context, monkeypatch):
        monkeypatch.delenv('TO_EMAIL')

        with pytest.raises(ConfigurationError):
            forward_handler.lambda_handler(sns_event, mock_context)

    @patch('services.ses.ses_client')
    def test_pipeline_reused_across_invocations(self, mock_ses_client, sns_event, mock_context):
        mock_ses_client.send_raw_email.return_value = {'MessageId': 'ses-msg-1'}

        forward_handler.lambda_handler(sns_event, mock_context)
        pipeline = forward_handler._pipeline
        forward_handler.lambda_handler(sns_event, mock_context)

        assert forward_handler._pipeline is pipeline
        assert mock_ses_client.send_raw_email.call_count == 2


class TestLogLevel:
    """Test LOG_LEVEL parsing."""

    @pytest.mark.parametrize('value,expected', [
        ('DEBUG', logging.DEBUG),
        ('warning', logging.WARNING),
        (' error ', logging.ERROR),
        (None, logging.INFO),
        ('', logging.INFO),
        ('VERBOSE', logging.INFO),
    ])
    def test_log_level(self, value, expected):
        assert forward_handler.log_level(value) == expected


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
