# credittrack/functions/api_handler/app.py

import json
import logging
from typing import Optional

from botocore.exceptions import ClientError

from credittrack.shared.exceptions import (
    CreditTrackException, ValidationException, NOT_AUTHENTICATED, FORBIDDEN, NOT_FOUND, VALIDATION
)
from credittrack.shared.models import Principal, to_json_safe
from credittrack.shared.repositories import UserRepository, CreditRecordRepository
from credittrack.shared.services import CreditRecordService, UserAdminService

logger = logging.getLogger()
logger.setLevel(logging.INFO)

STATUS_CODES = {
    NOT_AUTHENTICATED: 401,
    FORBIDDEN: 403,
    NOT_FOUND: 404,
    VALIDATION: 400,
}

HEADERS = {"Access-Control-Allow-Origin": "*"}


def build_services(dynamodb_resource=None):
    user_repo = UserRepository(dynamodb_resource=dynamodb_resource)
    record_repo = CreditRecordRepository(dynamodb_resource=dynamodb_resource)
    return CreditRecordService(record_repo, user_repo), UserAdminService(user_repo)


def extract_principal(event) -> Optional[Principal]:
    """Reads the Cognito authorizer claims; None when the caller is anonymous."""
    authorizer = (event.get('requestContext') or {}).get('authorizer') or {}
    claims = authorizer.get('claims') or {}
    user_id = claims.get('sub')
    role = claims.get('custom:role')
    if not user_id or not role:
        return None
    return Principal(id=user_id, role=role)


def respond(status_code: int, body) -> dict:
    return {"statusCode": status_code, "headers": HEADERS, "body": to_json_safe(body)}


def _parse_body(event) -> dict:
    try:
        body = json.loads(event.get('body') or '{}')
    except json.JSONDecodeError:
        raise ValidationException("Request body must be valid JSON")
    if not isinstance(body, dict):
        raise ValidationException("Request body must be a JSON object")
    return body


# --- Credit routes ---

def handle_create_record(event, principal, credit_service):
    body = _parse_body(event)
    record = credit_service.create_record(
        principal,
        body.get('consumer_id'),
        body.get('loan_type'),
        body.get('amount'),
        body.get('due_date')
    )
    return respond(201, record.to_dict())


def handle_consumer_records(event, principal, credit_service):
    consumer_id = event['pathParameters']['id']
    records = credit_service.list_records_for_consumer(principal, consumer_id)
    return respond(200, [record.to_response() for record in records])


def handle_lender_records(event, principal, credit_service):
    records = credit_service.list_records_for_lender(principal)
    return respond(200, [record.to_response() for record in records])


def handle_update_status(event, principal, credit_service):
    record_id = event['pathParameters']['id']
    body = _parse_body(event)
    record = credit_service.update_status(
        principal, record_id, body.get('payment_status'), body.get('payment_amount')
    )
    return respond(200, record.to_dict())


def handle_score(event, principal, credit_service):
    consumer_id = event['pathParameters']['id']
    return respond(200, credit_service.compute_score(principal, consumer_id))


# --- User administration routes ---

def handle_list_users(event, principal, user_service):
    return respond(200, [user.to_dict() for user in user_service.list_users(principal)])


def handle_user_stats(event, principal, user_service):
    return respond(200, user_service.get_stats(principal))


def handle_pending_lenders(event, principal, user_service):
    return respond(200, [user.to_dict() for user in user_service.list_pending_lenders(principal)])


def handle_search_user(event, principal, user_service):
    query_params = event.get('queryStringParameters') or {}
    user = user_service.search_user(principal, query_params.get('email'), query_params.get('role'))
    return respond(200, user.to_dict())


def handle_approve_lender(event, principal, user_service):
    user_service.approve_lender(principal, event['pathParameters']['id'])
    return respond(200, {"msg": "Lender approved successfully"})


def handle_delete_user(event, principal, user_service):
    user_service.delete_user(principal, event['pathParameters']['id'])
    return respond(200, {"msg": "User removed"})


CREDIT_ROUTES = {
    ('POST', '/credit'): handle_create_record,
    ('GET', '/credit/consumer/{id}'): handle_consumer_records,
    ('GET', '/credit/lender'): handle_lender_records,
    ('PUT', '/credit/{id}/status'): handle_update_status,
    ('GET', '/credit/score/{id}'): handle_score,
}

USER_ROUTES = {
    ('GET', '/users'): handle_list_users,
    ('GET', '/users/stats'): handle_user_stats,
    ('GET', '/users/pending'): handle_pending_lenders,
    ('GET', '/users/search'): handle_search_user,
    ('PUT', '/users/approve/{id}'): handle_approve_lender,
    ('DELETE', '/users/{id}'): handle_delete_user,
}


def lambda_handler(event, context):
    """Main Router."""
    http_method = event.get('httpMethod')
    resource = event.get('resource')
    principal = extract_principal(event)

    user_id = principal.id if principal else 'anonymous'
    logger.info(f"API Request | User: {user_id} | Method: {http_method} | Path: {resource}")

    route = (http_method, resource)
    if route not in CREDIT_ROUTES and route not in USER_ROUTES:
        return respond(404, {"error": "Route not found"})

    credit_service, user_service = build_services()
    try:
        if route in CREDIT_ROUTES:
            return CREDIT_ROUTES[route](event, principal, credit_service)
        return USER_ROUTES[route](event, principal, user_service)
    except CreditTrackException as e:
        logger.warning(f"Request rejected | User: {user_id} | {e.error_code}: {e.message}")
        return respond(STATUS_CODES.get(e.error_code, 400), {"error": e.message})
    except ClientError as e:
        logger.error(f"DynamoDB error on {http_method} {resource}: {e.response['Error']['Message']}")
        return respond(500, {"error": "Internal server error"})
