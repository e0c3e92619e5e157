"""AWS Lambda handler for event invitations, RSVP responses and analytics."""
import json
import logging
import os
import time
from dataclasses import asdict
from typing import Any, Dict, Optional

from invitations.issuer import InvitationIssuer
from invitations.mailer import MailClient
from invitations.templates import render_response_page
from processor.analytics import AnalyticsAggregator
from processor.errors import (
    DispatchError,
    InvalidTokenError,
    IssuerError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from processor.formatting import to_display
from storage.record_store import RecordStore
from storage.token_store import TokenStore

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'authorization, x-client-info, apikey, content-type',
}

ERROR_STATUS_CODES = {
    ValidationError: 400,
    NotFoundError: 404,
    PersistenceError: 500,
    DispatchError: 502,
}

# Attributes present on every LogRecord; anything else came from `extra`
_RESERVED_LOG_ATTRS = set(vars(logging.LogRecord('', 0, '', 0, '', None, None))) | {'message', 'asctime'}


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in vars(record).items():
            if key not in _RESERVED_LOG_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def load_config() -> Dict[str, Any]:
    """Read configuration from environment variables."""
    return {
        'table_prefix': os.environ.get('TABLE_PREFIX', 'event-planner'),
        'log_level': os.environ.get('LOG_LEVEL', 'INFO'),
        'rsvp_base_url': os.environ.get(
            'RSVP_BASE_URL', 'http://localhost:54321/functions/v1'
        ),
        'mail_api_url': os.environ.get('MAIL_API_URL', MailClient.DEFAULT_API_URL),
        'mail_api_key': os.environ.get('MAIL_API_KEY', ''),
        'mail_from': os.environ.get('MAIL_FROM', 'Event Manager <invites@example.com>'),
        'timeout_seconds': int(os.environ.get('TIMEOUT_SECONDS', '10')),
        'mail_max_retries': int(os.environ.get('MAIL_MAX_RETRIES', '3')),
    }


def json_response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {**CORS_HEADERS, 'Content-Type': 'application/json'},
        'body': json.dumps(body, default=str)
    }


def html_response(status_code: int, html: str) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {**CORS_HEADERS, 'Content-Type': 'text/html; charset=utf-8'},
        'body': html
    }


def build_issuer(config: Dict[str, Any]) -> InvitationIssuer:
    """Wire the issuer to DynamoDB and the mail API."""
    records = RecordStore(config['table_prefix'], timeout=config['timeout_seconds'])
    tokens = TokenStore(
        config['table_prefix'],
        timeout=config['timeout_seconds'],
        dynamodb=records.dynamodb
    )
    mailer = MailClient(
        api_key=config['mail_api_key'],
        sender=config['mail_from'],
        api_url=config['mail_api_url'],
        timeout=config['timeout_seconds'],
        max_retries=config['mail_max_retries']
    )
    return InvitationIssuer(records, tokens, mailer, config['rsvp_base_url'])


def _parse_body(event: Dict[str, Any]) -> Dict[str, Any]:
    body = event.get('body') or '{}'
    try:
        payload = json.loads(body) if isinstance(body, str) else body
    except json.JSONDecodeError as e:
        raise ValidationError(f"Request body is not valid JSON: {e}")
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def _query_param(event: Dict[str, Any], name: str) -> Optional[str]:
    return (event.get('queryStringParameters') or {}).get(name)


def _user_id(event: Dict[str, Any]) -> str:
    authorizer = (event.get('requestContext') or {}).get('authorizer') or {}
    # REST APIs put Cognito claims at the top, HTTP API JWT authorizers nest them
    claims = authorizer.get('claims') or authorizer.get('jwt', {}).get('claims') or {}
    user_id = claims.get('sub')
    if not user_id:
        raise ValidationError("Missing authenticated user")
    return user_id


def handle_send_invitation(event: Dict[str, Any], config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Issue an invitation for the guest and event named in the request body.

    Args:
        event: API Gateway request with body {"guestId": ..., "eventId": ...}
            from an authenticated caller who owns both records
        config: Handler configuration

    Returns:
        JSON response with success flag or phase-tagged error
    """
    logger = logging.getLogger(__name__)
    user_id = _user_id(event)
    payload = _parse_body(event)
    guest_id = payload.get('guestId')
    event_id = payload.get('eventId')
    if not guest_id or not event_id:
        raise ValidationError("guestId and eventId are required")

    issuer = build_issuer(config)
    try:
        result = issuer.issue(guest_id, event_id, user_id)
    except IssuerError as e:
        logger.error(
            f"Invitation failed during {e.phase}: {e.message}",
            extra={'guest_id': guest_id, 'event_id': event_id, 'error_type': type(e).__name__}
        )
        status_code = ERROR_STATUS_CODES.get(type(e), 500)
        return json_response(status_code, {'success': False, **e.to_dict()})

    return json_response(200, {
        'success': result.success,
        'message': 'Invitation sent successfully',
        'generation': result.generation
    })


def handle_rsvp_response(event: Dict[str, Any], config: Dict[str, Any]) -> Dict[str, Any]:
    """Redeem the token from a response link and render the outcome page."""
    logger = logging.getLogger(__name__)
    token = _query_param(event, 'token')

    issuer = build_issuer(config)
    try:
        result = issuer.redeem(token)
    except (InvalidTokenError, NotFoundError) as e:
        logger.warning(f"RSVP response rejected: {e.message}")
        return html_response(400, render_response_page())

    return html_response(200, render_response_page(result.status))


def handle_analytics(event: Dict[str, Any], config: Dict[str, Any]) -> Dict[str, Any]:
    """Aggregate the caller's records for the requested period and status."""
    user_id = _user_id(event)
    try:
        aggregator = AnalyticsAggregator(
            period=_query_param(event, 'period') or 'month',
            status_filter=_query_param(event, 'status')
        )
    except ValueError as e:
        raise ValidationError(f"Invalid analytics filter: {e}")

    records = RecordStore(config['table_prefix'], timeout=config['timeout_seconds'])
    result = aggregator.aggregate(
        events=records.list_events(user_id),
        tasks=records.list_tasks(user_id),
        guests=records.list_guests(user_id),
        expenses=records.list_expenses(user_id)
    )
    return json_response(200, {
        'period': aggregator.period.value,
        'analytics': asdict(result),
        'display': to_display(result)
    })


ROUTES = {
    ('POST', 'send-invitations'): handle_send_invitation,
    ('GET', 'rsvp-response'): handle_rsvp_response,
    ('GET', 'analytics'): handle_analytics,
}


def _route(event: Dict[str, Any]):
    method = event.get('httpMethod') or (
        event.get('requestContext', {}).get('http', {}).get('method', '')
    )
    path = event.get('path') or event.get('rawPath') or ''
    return method.upper(), path.rstrip('/').rsplit('/', 1)[-1]


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for the event planner API.

    Args:
        event: API Gateway proxy event
        context: Lambda context object

    Returns:
        API Gateway proxy response
    """
    config = load_config()

    setup_logging(config['log_level'])
    logger = logging.getLogger(__name__)

    start_time = time.time()
    method, route = _route(event)

    if method == 'OPTIONS':
        return {'statusCode': 200, 'headers': CORS_HEADERS, 'body': 'ok'}

    handler = ROUTES.get((method, route))
    if handler is None:
        return json_response(404, {'message': f"No route for {method} /{route}"})

    logger.info("Request started", extra={'route': route, 'method': method})

    try:
        response = handler(event, config)
    except ValidationError as e:
        logger.warning(f"Rejected invalid request: {e}")
        response = json_response(400, {
            'success': False,
            'error': str(e),
            'error_type': type(e).__name__
        })
    except Exception as e:
        logger.error(
            f"Request failed: {str(e)}",
            extra={'route': route, 'error_type': type(e).__name__},
            exc_info=True
        )
        response = json_response(500, {
            'success': False,
            'error': str(e),
            'error_type': type(e).__name__
        })

    duration = time.time() - start_time
    logger.info(
        "Request completed",
        extra={
            'route': route,
            'status_code': response['statusCode'],
            'duration_seconds': round(duration, 2)
        }
    )
    return response
