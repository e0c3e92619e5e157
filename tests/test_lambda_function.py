"""Integration tests for Lambda handler."""
import json
import logging
import os
from datetime import date
from unittest.mock import Mock, patch

import pytest
import responses

from factories import (
    TABLE_PREFIX,
    USER_ID,
    make_event,
    make_expense,
    make_guest,
    make_task,
    stored_tokens,
)
from lambda_function import JsonFormatter, lambda_handler, load_config, setup_logging
from processor.errors import DispatchError, NotFoundError, PersistenceError
from processor.models import InvitationResult, RedemptionResult, RsvpStatus

MAIL_API_URL = 'https://mail.example.com'


@pytest.fixture
def mock_env():
    """Set up environment variables for testing."""
    env_vars = {
        'TABLE_PREFIX': TABLE_PREFIX,
        'LOG_LEVEL': 'INFO',
        'RSVP_BASE_URL': 'https://rsvp.example.com/functions/v1',
        'MAIL_API_URL': MAIL_API_URL,
        'MAIL_API_KEY': 'key-123',
        'MAIL_FROM': 'Event Manager <invites@example.com>',
        'TIMEOUT_SECONDS': '5',
        'MAIL_MAX_RETRIES': '1'
    }
    with patch.dict(os.environ, env_vars):
        yield env_vars


@pytest.fixture
def mock_context():
    """Create a mock Lambda context."""
    context = Mock()
    context.function_name = 'test-function'
    context.memory_limit_in_mb = 256
    context.invoked_function_arn = 'arn:aws:lambda:us-east-1:123456789012:function:test-function'
    context.aws_request_id = 'test-request-id'
    return context


def invite_request(body, user_id=USER_ID) -> dict:
    request = {
        'httpMethod': 'POST',
        'path': '/functions/v1/send-invitations',
        'body': body if isinstance(body, str) else json.dumps(body)
    }
    if user_id:
        request['requestContext'] = {'authorizer': {'claims': {'sub': user_id}}}
    return request


def rsvp_request(token) -> dict:
    return {
        'httpMethod': 'GET',
        'path': '/functions/v1/rsvp-response',
        'queryStringParameters': {'token': token} if token else None
    }


def analytics_request(**params) -> dict:
    return {
        'httpMethod': 'GET',
        'path': '/analytics',
        'queryStringParameters': params or None,
        'requestContext': {'authorizer': {'claims': {'sub': USER_ID}}}
    }


class TestSendInvitation:
    """Test cases for the send-invitations route."""

    @patch('lambda_function.build_issuer')
    def test_success(self, mock_build, mock_env, mock_context):
        issuer = Mock()
        issuer.issue.return_value = InvitationResult(
            success=True, guest_id='guest-1', event_id='event-1',
            generation=2, recipient='ada@example.com'
        )
        mock_build.return_value = issuer

        response = lambda_handler(invite_request({'guestId': 'guest-1', 'eventId': 'event-1'}), mock_context)

        assert response['statusCode'] == 200
        body = json.loads(response['body'])
        assert body['success'] is True
        assert body['message'] == 'Invitation sent successfully'
        assert body['generation'] == 2
        assert response['headers']['Access-Control-Allow-Origin'] == '*'
        issuer.issue.assert_called_once_with('guest-1', 'event-1', USER_ID)

    @pytest.mark.parametrize('error,status_code,phase', [
        (NotFoundError('Guest guest-1 not found'), 404, 'lookup'),
        (PersistenceError('write failed'), 500, 'persist'),
        (DispatchError('mail down'), 502, 'dispatch'),
    ])
    @patch('lambda_function.build_issuer')
    def test_phase_errors(self, mock_build, error, status_code, phase, mock_env, mock_context):
        issuer = Mock()
        issuer.issue.side_effect = error
        mock_build.return_value = issuer

        response = lambda_handler(invite_request({'guestId': 'guest-1', 'eventId': 'event-1'}), mock_context)

        assert response['statusCode'] == status_code
        body = json.loads(response['body'])
        assert body['success'] is False
        assert body['phase'] == phase
        assert body['error_type'] == type(error).__name__

    @pytest.mark.parametrize('body', [
        {'guestId': 'guest-1'},
        {'eventId': 'event-1'},
        'not json',
        '[1, 2]',
    ])
    @patch('lambda_function.build_issuer')
    def test_invalid_body(self, mock_build, body, mock_env, mock_context):
        response = lambda_handler(invite_request(body), mock_context)

        assert response['statusCode'] == 400
        assert json.loads(response['body'])['error_type'] == 'ValidationError'
        mock_build.assert_not_called()

    @patch('lambda_function.build_issuer')
    def test_requires_authenticated_caller(self, mock_build, mock_env, mock_context):
        response = lambda_handler(
            invite_request({'guestId': 'guest-1', 'eventId': 'event-1'}, user_id=None),
            mock_context
        )

        assert response['statusCode'] == 400
        assert json.loads(response['body'])['error_type'] == 'ValidationError'
        mock_build.assert_not_called()

    @patch('lambda_function.build_issuer')
    def test_unexpected_error(self, mock_build, mock_env, mock_context):
        mock_build.side_effect = RuntimeError('boom')

        response = lambda_handler(invite_request({'guestId': 'g', 'eventId': 'e'}), mock_context)

        assert response['statusCode'] == 500
        body = json.loads(response['body'])
        assert body['error'] == 'boom'
        assert body['error_type'] == 'RuntimeError'


class TestRsvpResponse:
    """Test cases for the rsvp-response route."""

    @patch('lambda_function.build_issuer')
    def test_success_page(self, mock_build, mock_env, mock_context):
        issuer = Mock()
        issuer.redeem.return_value = RedemptionResult(
            guest_id='guest-1', status=RsvpStatus.accepted,
            responded_at='2025-03-01T10:00:00+00:00'
        )
        mock_build.return_value = issuer

        response = lambda_handler(rsvp_request('tok'), mock_context)

        assert response['statusCode'] == 200
        assert response['headers']['Content-Type'].startswith('text/html')
        assert 'Thank you for your response' in response['body']
        issuer.redeem.assert_called_once_with('tok')

    def test_invalid_token_page(self, dynamodb, mock_env, mock_context):
        response = lambda_handler(rsvp_request('unknown'), mock_context)

        assert response['statusCode'] == 400
        assert 'Invalid or expired link' in response['body']

    def test_missing_token_page(self, dynamodb, mock_env, mock_context):
        response = lambda_handler(rsvp_request(None), mock_context)

        assert response['statusCode'] == 400
        assert 'Invalid or expired link' in response['body']


class TestEndToEnd:
    """Invitation and response against moto tables and a mocked mail API."""

    @responses.activate
    def test_invite_then_respond(self, record_store, mock_env, mock_context):
        record_store.put_event(make_event())
        record_store.put_guest(make_guest())
        responses.add(responses.POST, f'{MAIL_API_URL}/emails', json={'id': 'msg-1'}, status=200)

        response = lambda_handler(invite_request({'guestId': 'guest-1', 'eventId': 'event-1'}), mock_context)
        assert response['statusCode'] == 200

        sent = json.loads(responses.calls[0].request.body)
        assert sent['to'] == ['ada@example.com']
        accept_url = next(
            line.split(': ', 1)[1] for line in sent['text'].splitlines()
            if 'rsvp-response' in line and line.startswith('Yes')
        )
        token = accept_url.split('token=', 1)[1]

        first = lambda_handler(rsvp_request(token), mock_context)
        second = lambda_handler(rsvp_request(token), mock_context)

        assert first['statusCode'] == 200
        assert second['statusCode'] == 400
        assert record_store.get_guest('guest-1').rsvp_status is RsvpStatus.accepted

    @responses.activate
    def test_mail_failure_reports_dispatch(self, record_store, mock_env, mock_context):
        record_store.put_event(make_event())
        record_store.put_guest(make_guest())
        responses.add(responses.POST, f'{MAIL_API_URL}/emails', body='down', status=503)

        response = lambda_handler(invite_request({'guestId': 'guest-1', 'eventId': 'event-1'}), mock_context)

        assert response['statusCode'] == 502
        assert json.loads(response['body'])['phase'] == 'dispatch'

    @responses.activate
    def test_other_users_guest_is_not_invited(self, record_store, dynamodb, mock_env, mock_context):
        record_store.put_event(make_event())
        record_store.put_guest(make_guest())

        response = lambda_handler(
            invite_request({'guestId': 'guest-1', 'eventId': 'event-1'}, user_id='someone-else'),
            mock_context
        )

        assert response['statusCode'] == 404
        assert json.loads(response['body'])['phase'] == 'lookup'
        assert len(responses.calls) == 0
        assert stored_tokens(dynamodb, 'guest-1') == []

class TestAnalytics:
    """Test cases for the analytics route."""

    @pytest.fixture
    def seeded(self, record_store):
        today = date.today()
        record_store.put_event(make_event(date=today, budget=10000.0))
        record_store.put_event(make_event(id='old', date=date(today.year - 1, 1, 1)))
        record_store.put_expense(make_expense(id='x1', amount=3000.0))
        record_store.put_expense(make_expense(id='x2', amount=4500.0))
        record_store.put_expense(make_expense(id='x3', event_id='old', amount=100.0))
        record_store.put_task(make_task())
        for i, status in enumerate(['accepted', 'accepted', 'declined', 'pending', 'maybe']):
            record_store.put_guest(make_guest(id=f'g{i}', rsvp_status=RsvpStatus(status)))
        record_store.put_guest(make_guest(id='other-user', user_id='user-2'))
        return record_store

    def test_month_analytics(self, seeded, mock_env, mock_context):
        response = lambda_handler(analytics_request(), mock_context)

        assert response['statusCode'] == 200
        body = json.loads(response['body'])
        assert body['period'] == 'month'
        assert body['analytics']['total_events'] == 1
        assert body['analytics']['total_guests'] == 5
        assert body['analytics']['accepted_guests'] == 2
        assert body['display']['rsvp_rate'] == '40.0%'
        assert body['display']['budget_utilization'] == '75.0%'
        assert body['display']['total_spent_amount'] == '7,500'
        assert body['display']['remaining_budget'] == '2,500'

    def test_status_filter(self, seeded, mock_env, mock_context):
        response = lambda_handler(analytics_request(period='year', status='planning'), mock_context)

        body = json.loads(response['body'])
        assert body['analytics']['total_events'] == 0
        assert body['display']['rsvp_rate'] == '0.0%'

    def test_invalid_period(self, dynamodb, mock_env, mock_context):
        response = lambda_handler(analytics_request(period='decade'), mock_context)

        assert response['statusCode'] == 400

    def test_requires_user(self, dynamodb, mock_env, mock_context):
        request = analytics_request()
        request['requestContext'] = {}

        response = lambda_handler(request, mock_context)

        assert response['statusCode'] == 400


class TestRouting:
    """Test cases for request routing."""

    def test_options_preflight(self, mock_env, mock_context):
        response = lambda_handler({'httpMethod': 'OPTIONS', 'path': '/send-invitations'}, mock_context)

        assert response['statusCode'] == 200
        assert 'Access-Control-Allow-Headers' in response['headers']

    def test_unknown_route(self, mock_env, mock_context):
        response = lambda_handler({'httpMethod': 'GET', 'path': '/nowhere'}, mock_context)

        assert response['statusCode'] == 404

    @patch('lambda_function.build_issuer')
    def test_http_api_event_shape(self, mock_build, mock_env, mock_context):
        issuer = Mock()
        issuer.issue.return_value = InvitationResult(
            success=True, guest_id='g', event_id='e', generation=1, recipient='a@b.c'
        )
        mock_build.return_value = issuer
        event = {
            'rawPath': '/send-invitations',
            'requestContext': {
                'http': {'method': 'POST'},
                'authorizer': {'jwt': {'claims': {'sub': USER_ID}}}
            },
            'body': json.dumps({'guestId': 'g', 'eventId': 'e'})
        }

        response = lambda_handler(event, mock_context)

        assert response['statusCode'] == 200
        issuer.issue.assert_called_once_with('g', 'e', USER_ID)


class TestConfigAndLogging:
    """Test cases for configuration and log setup."""

    def test_load_config_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = load_config()

        assert config['table_prefix'] == 'event-planner'
        assert config['timeout_seconds'] == 10
        assert config['mail_max_retries'] == 3
        assert config['mail_api_url'] == 'https://api.resend.com'

    def test_setup_logging(self):
        setup_logging('DEBUG')

        root_logger = logging.getLogger()
        assert root_logger.level == logging.DEBUG
        assert len(root_logger.handlers) == 1
        assert isinstance(root_logger.handlers[0].formatter, JsonFormatter)

    def test_json_formatter_includes_extra(self):
        record = logging.LogRecord('test', logging.INFO, __file__, 1, 'hello %s', ('world',), None)
        record.guest_id = 'guest-1'

        data = json.loads(JsonFormatter().format(record))

        assert data['message'] == 'hello world'
        assert data['level'] == 'INFO'
        assert data['guest_id'] == 'guest-1'
        assert 'args' not in data
