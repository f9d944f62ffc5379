"""AWS Lambda handler for the Rink Link API (settings sync and facility integrations)."""
import json
import logging
import os
import time
from dataclasses import asdict, is_dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from botocore.exceptions import ClientError

from adapters.catalog import PublicCatalogReader
from adapters.daysmart import DaySmartAdapter
from adapters.errors import FacilityError, NeedsReauth
from adapters.icehockeypro import IceHockeyProAdapter
from processor.models import ChildProfile
from storage.credential_cipher import CredentialCipher
from storage.settings_table import SettingsTable

STATUS_BY_CODE = {
    'INVALID_CREDENTIALS': 401,
    'NEEDS_REAUTH': 401,
    'UNREACHABLE': 503,
    'UPSTREAM_ERROR': 502,
    'PARTIAL_IMPORT': 502,
    'UNSUPPORTED': 400,
    'BAD_REQUEST': 400,
}

# Kept across warm invocations
_catalog_reader: Optional[PublicCatalogReader] = None


class BadRequest(ValueError):
    """The request is missing a field or carries an invalid one."""


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

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


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


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if is_dataclass(value):
        return asdict(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps(body, default=_json_default)
    }


def error_response(error: FacilityError) -> Dict[str, Any]:
    """Map an adapter failure to an HTTP response."""
    body = {'error': error.message, 'code': error.code}
    if isinstance(error, NeedsReauth):
        body['needs_reauth'] = True
    if error.retryable:
        body['retryable'] = True
    return _response(STATUS_BY_CODE.get(error.code, 500), body)


def _claims(event: Dict[str, Any]) -> Dict[str, Any]:
    authorizer = (event.get('requestContext') or {}).get('authorizer') or {}
    claims = authorizer.get('claims') or (authorizer.get('jwt') or {}).get('claims') or {}
    return claims if isinstance(claims, dict) else {}


def _parse_body(event: Dict[str, Any]) -> Dict[str, Any]:
    raw = event.get('body')
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except ValueError as e:
        raise BadRequest('Request body is not valid JSON') from e
    if not isinstance(body, dict):
        raise BadRequest('Request body must be a JSON object')
    return body


def _require(body: Dict[str, Any], *fields: str) -> None:
    missing = [f for f in fields if not body.get(f)]
    if missing:
        raise BadRequest(f"Missing required field(s): {', '.join(missing)}")


def get_catalog_reader(timeout: int) -> PublicCatalogReader:
    global _catalog_reader
    if _catalog_reader is None:
        _catalog_reader = PublicCatalogReader({
            DaySmartAdapter.vendor: DaySmartAdapter(timeout=timeout),
            IceHockeyProAdapter.vendor: IceHockeyProAdapter(timeout=timeout),
        })
    return _catalog_reader


def handle_sync(method: str, event: Dict[str, Any], table_name: str,
                cipher: CredentialCipher) -> Dict[str, Any]:
    """
    Read or overwrite the caller's settings document.

    Args:
        method: HTTP method (GET or PUT)
        event: API Gateway proxy event
        table_name: DynamoDB table holding settings
        cipher: Encrypts passwords before storage

    Returns:
        API Gateway proxy response
    """
    logger = logging.getLogger(__name__)
    claims = _claims(event)
    user_email = claims.get('email')
    if not user_email:
        return _response(401, {'error': 'Unauthorized', 'code': 'UNAUTHORIZED'})

    table = SettingsTable(table_name=table_name)

    if method == 'GET':
        stored = table.get_settings(user_email)
        if stored is None:
            logger.info("No settings stored for caller")
            return _response(200, {'settings': None, 'updated_at': None})
        return _response(200, {
            'settings': cipher.decrypt_settings(stored['settings']),
            'updated_at': stored['updated_at']
        })

    if method == 'PUT':
        settings = _parse_body(event).get('settings')
        if not isinstance(settings, dict):
            raise BadRequest('settings must be an object')
        updated_at = table.put_settings(
            user_email,
            cipher.encrypt_settings(settings),
            user_name=claims.get('name') or ''
        )
        return _response(200, {'success': True, 'updated_at': updated_at})

    return _response(405, {'error': f'Method {method} not allowed', 'code': 'METHOD_NOT_ALLOWED'})


def handle_daysmart(action: str, body: Dict[str, Any], timeout: int) -> Dict[str, Any]:
    """Dispatch a DaySmart integration action."""
    if action == 'schedule':
        _require(body, 'facility_id')
        sessions = get_catalog_reader(timeout).get_sessions(DaySmartAdapter.vendor, body['facility_id'])
        return _response(200, {'sessions': sessions, 'count': len(sessions)})

    adapter = DaySmartAdapter(timeout=timeout)

    if action == 'validate':
        _require(body, 'facility_id')
        valid, facility_name = adapter.validate_facility(body['facility_id'])
        return _response(200, {'valid': valid, 'facility_name': facility_name})

    if action == 'login':
        _require(body, 'email', 'password', 'facility_id')
        result = adapter.authenticate(body['email'], body['password'], body['facility_id'])
        return _response(200, {
            'success': True,
            'session_token': result.session_token,
            'facility_id': result.facility_id,
            'facility_name': result.facility_name,
            'customers': result.roster_members
        })

    if action == 'sync':
        _require(body, 'facility_id', 'session_token')
        result = adapter.import_activities(
            body['facility_id'],
            body['session_token'],
            owner_ids=body.get('customer_ids') or (),
            facility_name=body.get('facility_name')
        )
        return _response(200, {
            'facility_name': result.facility_name,
            'upcoming': result.upcoming,
            'past': result.past,
            'owner_names': result.owner_names,
            'errors': result.errors,
            'count': len(result.activities)
        })

    if action == 'programs':
        _require(body, 'facility_id', 'session_token')
        programs = adapter.list_programs(
            body['facility_id'],
            body['session_token'],
            body.get('customer_ids') or []
        )
        return _response(200, {'programs': programs})

    raise BadRequest(f"Unknown action: {action}")


def handle_icehockeypro(action: str, body: Dict[str, Any], timeout: int) -> Dict[str, Any]:
    """Dispatch an IceHockeyPro integration action."""
    if action == 'camps':
        camps = get_catalog_reader(timeout).get_sessions(IceHockeyProAdapter.vendor)
        return _response(200, {'camps': camps, 'count': len(camps)})

    adapter = IceHockeyProAdapter(timeout=timeout)

    if action == 'login':
        _require(body, 'email', 'password')
        result = adapter.authenticate(body['email'], body['password'])
        return _response(200, {
            'success': True,
            'session_token': result.session_token,
            'has_orders': result.has_orders
        })

    if action == 'sync':
        _require(body, 'session_token')
        profiles = [
            ChildProfile(
                id=str(p.get('id')),
                display_name=p.get('display_name') or p.get('name') or '',
                date_of_birth=p.get('date_of_birth')
            )
            for p in body.get('profiles') or []
            if isinstance(p, dict) and p.get('id') is not None
        ]
        result = adapter.import_orders(body['session_token'], profiles)
        return _response(200, {
            'matched': result.matched,
            'unmatched': result.unmatched,
            'errors': result.errors,
            'scraped_links': result.scraped_links,
            'skipped_links': result.skipped_links
        })

    raise BadRequest(f"Unknown action: {action}")


INTEGRATIONS = {
    DaySmartAdapter.vendor: handle_daysmart,
    IceHockeyProAdapter.vendor: handle_icehockeypro,
}


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for the Rink Link API.

    Routes:
        GET|PUT /sync
        POST /integrations/{vendor}?action=...

    Args:
        event: API Gateway proxy event
        context: Lambda context object

    Returns:
        API Gateway proxy response
    """
    # Read configuration from environment variables
    table_name = os.environ.get('TABLE_NAME', 'rink-link-user-settings')
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    timeout_seconds = int(os.environ.get('TIMEOUT_SECONDS', '30'))
    encryption_key = os.environ.get('CREDENTIAL_ENCRYPTION_KEY', '')

    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    request_context = event.get('requestContext') or {}
    method = (event.get('httpMethod') or (request_context.get('http') or {}).get('method') or 'GET').upper()
    path = event.get('path') or event.get('rawPath') or ''

    logger.info(
        f"Request started: {method} {path}",
        extra={'table_name': table_name, 'timeout_seconds': timeout_seconds}
    )

    try:
        if path.rstrip('/').endswith('/sync'):
            response = handle_sync(method, event, table_name, CredentialCipher(encryption_key))
        elif '/integrations/' in path:
            vendor = (event.get('pathParameters') or {}).get('vendor') or path.rstrip('/').rsplit('/', 1)[-1]
            handler = INTEGRATIONS.get(vendor)
            if handler is None:
                response = _response(404, {'error': f'Unknown integration: {vendor}', 'code': 'NOT_FOUND'})
            elif method != 'POST':
                response = _response(405, {'error': f'Method {method} not allowed', 'code': 'METHOD_NOT_ALLOWED'})
            else:
                action = (event.get('queryStringParameters') or {}).get('action') or ''
                response = handler(action, _parse_body(event), timeout_seconds)
        else:
            response = _response(404, {'error': 'Not found', 'code': 'NOT_FOUND'})

    except FacilityError as e:
        logger.warning(
            f"Integration request failed: {e.message}",
            extra={'error_type': type(e).__name__, 'code': e.code}
        )
        response = error_response(e)

    except BadRequest as e:
        response = _response(400, {'error': str(e), 'code': 'BAD_REQUEST'})

    except ClientError as e:
        logger.error(
            f"Settings storage error: {str(e)}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        response = _response(500, {'error': 'Settings storage unavailable', 'code': 'STORAGE_ERROR'})

    except Exception as e:
        logger.error(
            f"Request failed: {str(e)}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        response = _response(500, {'error': 'Internal error', 'code': 'INTERNAL_ERROR'})

    duration = time.time() - start_time
    logger.info(
        f"Request completed with status {response['statusCode']}",
        extra={'duration_seconds': round(duration, 2)}
    )
    return response
