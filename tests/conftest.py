import os
import pytest
import boto3
from moto import mock_aws

from credittrack.shared.dynamodb_schemas import create_tables
from credittrack.shared.models import User, ROLE_CONSUMER, ROLE_LENDER, ROLE_ADMIN
from credittrack.shared.repositories import UserRepository, CreditRecordRepository
from credittrack.shared.services import CreditRecordService, UserAdminService

# Set environment variables for testing
os.environ['AWS_DEFAULT_REGION'] = 'us-east-1'
os.environ['AWS_REGION'] = 'us-east-1'
os.environ['USERS_TABLE'] = 'CreditTrack-Users-Test'
os.environ['CREDIT_RECORDS_TABLE'] = 'CreditTrack-CreditRecords-Test'


@pytest.fixture
def aws_credentials():
    """Mocked AWS Credentials for moto."""
    os.environ['AWS_ACCESS_KEY_ID'] = 'testing'
    os.environ['AWS_SECRET_ACCESS_KEY'] = 'testing'
    os.environ['AWS_SECURITY_TOKEN'] = 'testing'
    os.environ['AWS_SESSION_TOKEN'] = 'testing'


@pytest.fixture
def dynamodb_mock(aws_credentials):
    """Fixture to set up the mocked DynamoDB tables."""
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name='us-east-1')
        create_tables(dynamodb)
        yield dynamodb


@pytest.fixture
def user_repo(dynamodb_mock):
    return UserRepository(dynamodb_resource=dynamodb_mock)


@pytest.fixture
def record_repo(dynamodb_mock):
    return CreditRecordRepository(dynamodb_resource=dynamodb_mock)


@pytest.fixture
def credit_service(record_repo, user_repo):
    return CreditRecordService(record_repo, user_repo)


@pytest.fixture
def user_service(user_repo):
    return UserAdminService(user_repo)


@pytest.fixture
def seeded_users(user_repo):
    """Two consumers, two lenders (one pending approval) and an admin."""
    users = {
        "alice": User(user_id="consumer-alice", name="Alice", email="alice@example.com",
                      role=ROLE_CONSUMER, id_number="ID-1001", created_at="2026-01-01T00:00:00+00:00"),
        "bob": User(user_id="consumer-bob", name="Bob", email="bob@example.com",
                    role=ROLE_CONSUMER, id_number="ID-1002", created_at="2026-01-02T00:00:00+00:00"),
        "acme": User(user_id="lender-acme", name="Acme Bank", email="loans@acme.example",
                     role=ROLE_LENDER, id_number="LN-2001", is_approved=True,
                     created_at="2026-01-03T00:00:00+00:00"),
        "zenith": User(user_id="lender-zenith", name="Zenith Credit", email="ops@zenith.example",
                       role=ROLE_LENDER, id_number="LN-2002", created_at="2026-01-04T00:00:00+00:00"),
        "root": User(user_id="admin-root", name="Root", email="admin@credittrack.example",
                     role=ROLE_ADMIN, created_at="2026-01-05T00:00:00+00:00"),
    }
    for user in users.values():
        user_repo.save_user(user)
    return users
