# tests/integration/test_api.py

import json

import pytest
from botocore.exceptions import ClientError

from credittrack.functions.api_handler import app
from credittrack.functions.api_handler.app import lambda_handler


def generate_api_event(resource, method, body=None, path_params=None, query_params=None,
                       user_id="lender-acme", role="lender"):
    claims = {}
    if user_id:
        claims = {"sub": user_id, "custom:role": role}
    return {
        "resource": resource,
        "httpMethod": method,
        "body": json.dumps(body) if body is not None else None,
        "pathParameters": path_params,
        "queryStringParameters": query_params,
        "requestContext": {"authorizer": {"claims": claims}}
    }


def create_loan(consumer_id="consumer-alice", amount=5000, user_id="lender-acme"):
    event = generate_api_event(
        "/credit", "POST",
        body={"consumer_id": consumer_id, "loan_type": "Personal", "amount": amount, "due_date": "2027-01-31"},
        user_id=user_id
    )
    return lambda_handler(event, None)


def test_create_and_list_records(dynamodb_mock, seeded_users):
    response = create_loan()
    assert response["statusCode"] == 201
    record = json.loads(response["body"])
    assert record["payment_status"] == "Outstanding"
    assert record["amount"] == 5000

    event = generate_api_event("/credit/consumer/{id}", "GET", path_params={"id": "consumer-alice"},
                               user_id="consumer-alice", role="consumer")
    response = lambda_handler(event, None)
    assert response["statusCode"] == 200
    assert [r["record_id"] for r in json.loads(response["body"])] == [record["record_id"]]

    response = lambda_handler(generate_api_event("/credit/lender", "GET"), None)
    assert [r["record_id"] for r in json.loads(response["body"])] == [record["record_id"]]


def test_error_status_codes(dynamodb_mock, seeded_users):
    # Not authenticated
    assert create_loan(user_id=None)["statusCode"] == 401
    # Unknown consumer
    assert create_loan(consumer_id="consumer-ghost")["statusCode"] == 404
    # Bad amount
    assert create_loan(amount=-5)["statusCode"] == 400

    # Consumer reading someone else's records
    event = generate_api_event("/credit/consumer/{id}", "GET", path_params={"id": "consumer-alice"},
                               user_id="consumer-bob", role="consumer")
    response = lambda_handler(event, None)
    assert response["statusCode"] == 403
    assert "Not authorized" in json.loads(response["body"])["error"]


def test_invalid_json_body(dynamodb_mock, seeded_users):
    event = generate_api_event("/credit", "POST")
    event["body"] = "{not json"
    assert lambda_handler(event, None)["statusCode"] == 400


def test_update_status_and_score(dynamodb_mock, seeded_users):
    record = json.loads(create_loan()["body"])

    # Another lender may not touch the record
    event = generate_api_event("/credit/{id}/status", "PUT", path_params={"id": record["record_id"]},
                               body={"payment_status": "Paid"}, user_id="lender-zenith")
    assert lambda_handler(event, None)["statusCode"] == 403

    event = generate_api_event("/credit/{id}/status", "PUT", path_params={"id": record["record_id"]},
                               body={"payment_status": "Defaulted", "payment_amount": 0})
    response = lambda_handler(event, None)
    assert response["statusCode"] == 200
    assert json.loads(response["body"])["payment_status"] == "Defaulted"

    event = generate_api_event("/credit/{id}/status", "PUT", path_params={"id": "missing"},
                               body={"payment_status": "Paid"})
    assert lambda_handler(event, None)["statusCode"] == 404

    # Any lender can read the score
    event = generate_api_event("/credit/score/{id}", "GET", path_params={"id": "consumer-alice"},
                               user_id="lender-zenith")
    body = json.loads(lambda_handler(event, None)["body"])
    assert body["score"] == 650
    assert body["rating"] == "Fair"
    assert body["factors"] == {"late_payments": 0, "defaults": 1, "outstanding_debt": 0, "total_records": 1}


def test_user_admin_routes(dynamodb_mock, seeded_users):
    admin = {"user_id": "admin-root", "role": "admin"}

    response = lambda_handler(generate_api_event("/users", "GET", **admin), None)
    assert len(json.loads(response["body"])) == 5

    response = lambda_handler(generate_api_event("/users/stats", "GET", **admin), None)
    assert json.loads(response["body"])["pending_approvals"] == 1

    response = lambda_handler(generate_api_event("/users/pending", "GET", **admin), None)
    assert [u["user_id"] for u in json.loads(response["body"])] == ["lender-zenith"]

    event = generate_api_event("/users/approve/{id}", "PUT", path_params={"id": "lender-zenith"}, **admin)
    response = lambda_handler(event, None)
    assert response["statusCode"] == 200
    assert json.loads(response["body"])["msg"] == "Lender approved successfully"

    event = generate_api_event("/users/approve/{id}", "PUT", path_params={"id": "consumer-bob"}, **admin)
    assert lambda_handler(event, None)["statusCode"] == 400

    event = generate_api_event("/users/{id}", "DELETE", path_params={"id": "consumer-bob"}, **admin)
    assert lambda_handler(event, None)["statusCode"] == 200
    assert lambda_handler(event, None)["statusCode"] == 404

    # Lenders cannot administer users
    assert lambda_handler(generate_api_event("/users", "GET"), None)["statusCode"] == 403


def test_search_user_route(dynamodb_mock, seeded_users):
    event = generate_api_event("/users/search", "GET", query_params={"email": "alice@example.com"})
    response = lambda_handler(event, None)
    assert response["statusCode"] == 200
    assert json.loads(response["body"])["user_id"] == "consumer-alice"

    event = generate_api_event("/users/search", "GET", query_params=None)
    assert lambda_handler(event, None)["statusCode"] == 400

    event = generate_api_event("/users/search", "GET", query_params={"email": "alice@example.com"},
                               user_id="consumer-bob", role="consumer")
    assert lambda_handler(event, None)["statusCode"] == 403


def test_unknown_route(dynamodb_mock):
    response = lambda_handler(generate_api_event("/loans", "GET"), None)
    assert response["statusCode"] == 404
    assert "Route not found" in response["body"]


def test_store_failure_maps_to_500(mocker):
    """DynamoDB errors surface as a generic 500."""
    credit_service = mocker.Mock()
    credit_service.list_records_for_lender.side_effect = ClientError(
        {"Error": {"Code": "ResourceNotFoundException", "Message": "Table missing"}}, "Query"
    )
    mocker.patch.object(app, "build_services", return_value=(credit_service, mocker.Mock()))

    response = lambda_handler(generate_api_event("/credit/lender", "GET"), None)
    assert response["statusCode"] == 500
    assert json.loads(response["body"]) == {"error": "Internal server error"}


def test_null_authorizer_is_not_authenticated(dynamodb_mock):
    event = generate_api_event("/credit/lender", "GET")
    event["requestContext"] = {"authorizer": None}
    response = lambda_handler(event, None)
    assert response["statusCode"] == 401

    event["requestContext"] = None
    assert lambda_handler(event, None)["statusCode"] == 401


def test_unstorable_amount_is_a_bad_request(dynamodb_mock, seeded_users):
    response = create_loan(amount="1" * 41)
    assert response["statusCode"] == 400
    assert json.loads(response["body"])["error"] == "Amount exceeds supported precision"

    record = json.loads(create_loan()["body"])
    event = generate_api_event("/credit/{id}/status", "PUT", path_params={"id": record["record_id"]},
                               body={"payment_status": "Paid", "payment_amount": "1e200"})
    assert lambda_handler(event, None)["statusCode"] == 400


def test_listings_include_counterparty_names(dynamodb_mock, seeded_users):
    create_loan()

    event = generate_api_event("/credit/consumer/{id}", "GET", path_params={"id": "consumer-alice"},
                               user_id="consumer-alice", role="consumer")
    records = json.loads(lambda_handler(event, None)["body"])
    assert records[0]["lender"] == {"user_id": "lender-acme", "name": "Acme Bank"}

    records = json.loads(lambda_handler(generate_api_event("/credit/lender", "GET"), None)["body"])
    assert records[0]["consumer"]["name"] == "Alice"
    assert records[0]["consumer"]["id_number"] == "ID-1001"
