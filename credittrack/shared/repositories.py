import os
import logging
import time
from typing import List, Optional, Dict, Any

import boto3
from boto3.dynamodb.conditions import Key, Attr
from botocore.exceptions import ClientError

from credittrack.shared import models
from credittrack.shared.validators import CreditValidator
from credittrack.shared.dynamodb_schemas import (
    USERS_TABLE_SCHEMA, CREDIT_RECORDS_TABLE_SCHEMA, USERS_EMAIL_INDEX, USERS_ROLE_INDEX,
    RECORDS_CONSUMER_INDEX, RECORDS_LENDER_INDEX, resolve_table_name
)

# Configure logging for audit trails and errors
logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

# Retry configuration
MAX_RETRIES = 3
INITIAL_BACKOFF = 0.1  # 100ms
MAX_BACKOFF = 2.0  # 2 seconds

RETRYABLE_ERROR_CODES = ['ProvisionedThroughputExceededException', 'ThrottlingException',
                         'RequestLimitExceeded', 'InternalServerError', 'ServiceUnavailable']


class BaseRepository:
    """Shared table wiring, retries and pagination for DynamoDB repositories."""

    schema = None

    def __init__(self, dynamodb_resource=None):
        self.dynamodb = dynamodb_resource or boto3.resource('dynamodb', region_name=os.environ.get('AWS_REGION', 'ap-south-1'))
        self.table_name = resolve_table_name(self.schema)
        self.table = self.dynamodb.Table(self.table_name)

    def _retry_with_backoff(self, operation, *args, **kwargs):
        """Execute operation with exponential backoff retry logic."""
        backoff = INITIAL_BACKOFF
        for attempt in range(MAX_RETRIES):
            try:
                return operation(*args, **kwargs)
            except ClientError as e:
                error_code = e.response['Error']['Code']
                # Retry on throttling and transient errors
                if error_code in RETRYABLE_ERROR_CODES and attempt < MAX_RETRIES - 1:
                    logger.warning(f"Retrying after {error_code}, attempt {attempt + 1}/{MAX_RETRIES}")
                    time.sleep(backoff)
                    backoff = min(backoff * 2, MAX_BACKOFF)
                    continue
                raise

    def _collect(self, operation, **params) -> List[Dict[str, Any]]:
        """Runs a query or scan to exhaustion, following LastEvaluatedKey."""
        items = []
        while True:
            response = self._retry_with_backoff(operation, **params)
            items.extend(response.get('Items', []))
            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                return items
            params['ExclusiveStartKey'] = last_key

    def _count(self, operation, **params) -> int:
        total = 0
        params['Select'] = 'COUNT'
        while True:
            response = self._retry_with_backoff(operation, **params)
            total += response.get('Count', 0)
            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                return total
            params['ExclusiveStartKey'] = last_key


class UserRepository(BaseRepository):
    schema = USERS_TABLE_SCHEMA

    def save_user(self, user: models.User) -> bool:
        """Saves a new user or overwrites an existing one."""
        CreditValidator.validate_user(user)
        try:
            self._retry_with_backoff(self.table.put_item, Item=user.to_dict())
            logger.info(f"Successfully saved user {user.user_id} ({user.role})")
            return True
        except ClientError as e:
            logger.error(f"Failed to save user {user.user_id}: {e.response['Error']['Message']}")
            raise

    def get_user(self, user_id: str) -> Optional[models.User]:
        """Retrieves a user by ID."""
        try:
            response = self._retry_with_backoff(
                self.table.get_item, Key={'user_id': user_id}, ConsistentRead=True
            )
            item = response.get('Item')
            if item:
                return models.User.from_dict(item)
            return None
        except ClientError as e:
            logger.error(f"Error retrieving user {user_id}: {e.response['Error']['Message']}")
            raise

    def batch_get_users(self, user_ids: List[str]) -> List[models.User]:
        """Retrieves multiple users in a single batch operation."""
        if not user_ids:
            return []

        try:
            # DynamoDB batch_get_item has a limit of 100 items
            batch_size = 100
            all_users = []

            for i in range(0, len(user_ids), batch_size):
                keys = [{'user_id': uid} for uid in user_ids[i:i + batch_size]]

                response = self._retry_with_backoff(
                    self.dynamodb.batch_get_item,
                    RequestItems={self.table_name: {'Keys': keys}}
                )
                items = response.get('Responses', {}).get(self.table_name, [])
                all_users.extend([models.User.from_dict(item) for item in items])

                # Handle unprocessed keys
                unprocessed = response.get('UnprocessedKeys', {})
                while unprocessed:
                    logger.warning(f"Retrying {len(unprocessed)} unprocessed keys")
                    time.sleep(INITIAL_BACKOFF)
                    response = self._retry_with_backoff(self.dynamodb.batch_get_item, RequestItems=unprocessed)
                    items = response.get('Responses', {}).get(self.table_name, [])
                    all_users.extend([models.User.from_dict(item) for item in items])
                    unprocessed = response.get('UnprocessedKeys', {})

            return all_users
        except ClientError as e:
            logger.error(f"Error in batch get users: {e.response['Error']['Message']}")
            raise

    def get_user_by_email(self, email: str, role: Optional[str] = None) -> Optional[models.User]:
        """Finds a user by email, optionally restricted to one role."""
        try:
            query_params = {
                'IndexName': USERS_EMAIL_INDEX,
                'KeyConditionExpression': Key('email').eq(email)
            }
            if role:
                query_params['FilterExpression'] = Attr('role').eq(role)

            items = self._collect(self.table.query, **query_params)
            return models.User.from_dict(items[0]) if items else None
        except ClientError as e:
            logger.error(f"Error querying user by email: {e.response['Error']['Message']}")
            raise

    def list_users(self) -> List[models.User]:
        """Scans every user record."""
        try:
            return [models.User.from_dict(item) for item in self._collect(self.table.scan)]
        except ClientError as e:
            logger.error(f"Error listing users: {e.response['Error']['Message']}")
            raise

    def list_users_by_role(self, role: str, is_approved: Optional[bool] = None) -> List[models.User]:
        """Queries users of one role, oldest registration first."""
        try:
            query_params = {
                'IndexName': USERS_ROLE_INDEX,
                'KeyConditionExpression': Key('role').eq(role)
            }
            if is_approved is not None:
                query_params['FilterExpression'] = Attr('is_approved').eq(is_approved)

            items = self._collect(self.table.query, **query_params)
            return [models.User.from_dict(item) for item in items]
        except ClientError as e:
            logger.error(f"Error querying users by role {role}: {e.response['Error']['Message']}")
            raise

    def count_users(self, role: Optional[str] = None, is_approved: Optional[bool] = None) -> int:
        """Counts users, optionally by role and approval flag."""
        try:
            if role is None:
                return self._count(self.table.scan)

            query_params = {
                'IndexName': USERS_ROLE_INDEX,
                'KeyConditionExpression': Key('role').eq(role)
            }
            if is_approved is not None:
                query_params['FilterExpression'] = Attr('is_approved').eq(is_approved)
            return self._count(self.table.query, **query_params)
        except ClientError as e:
            logger.error(f"Error counting users: {e.response['Error']['Message']}")
            raise

    def approve_lender(self, user_id: str) -> bool:
        """Atomically sets the approval flag on an existing user."""
        try:
            self._retry_with_backoff(
                self.table.update_item,
                Key={'user_id': user_id},
                UpdateExpression="SET is_approved = :a",
                ConditionExpression="attribute_exists(user_id)",
                ExpressionAttributeValues={':a': True}
            )
            logger.info(f"Successfully approved lender {user_id}")
            return True
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                logger.warning(f"User {user_id} does not exist for approval.")
                return False
            logger.error(f"Failed to approve lender {user_id}: {e.response['Error']['Message']}")
            raise

    def delete_user(self, user_id: str) -> bool:
        """Deletes a user record."""
        try:
            self._retry_with_backoff(
                self.table.delete_item,
                Key={'user_id': user_id},
                ConditionExpression="attribute_exists(user_id)"
            )
            logger.info(f"Successfully deleted user {user_id}")
            return True
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                logger.warning(f"User {user_id} does not exist for deletion.")
                return False
            logger.error(f"Failed to delete user {user_id}: {e.response['Error']['Message']}")
            raise


class CreditRecordRepository(BaseRepository):
    schema = CREDIT_RECORDS_TABLE_SCHEMA

    def save_record(self, record: models.CreditRecord) -> bool:
        """Persists a new credit record together with its opening history entry."""
        try:
            self._retry_with_backoff(
                self.table.put_item,
                Item=record.to_dict(),
                ConditionExpression="attribute_not_exists(record_id)"
            )
            logger.info(f"Successfully saved credit record {record.record_id} for consumer {record.consumer_id}")
            return True
        except ClientError as e:
            logger.error(f"Failed to save credit record {record.record_id}: {e.response['Error']['Message']}")
            raise

    def get_record(self, record_id: str) -> Optional[models.CreditRecord]:
        """Retrieves a credit record by its ID."""
        try:
            response = self._retry_with_backoff(
                self.table.get_item, Key={'record_id': record_id}, ConsistentRead=True
            )
            item = response.get('Item')
            if item:
                return models.CreditRecord.from_dict(item)
            return None
        except ClientError as e:
            logger.error(f"Error retrieving credit record {record_id}: {e.response['Error']['Message']}")
            raise

    def get_records_by_consumer(self, consumer_id: str) -> List[models.CreditRecord]:
        """Queries all records for a consumer, newest first."""
        try:
            items = self._collect(
                self.table.query,
                IndexName=RECORDS_CONSUMER_INDEX,
                KeyConditionExpression=Key('consumer_id').eq(consumer_id),
                ScanIndexForward=False  # Most recent first
            )
            return [models.CreditRecord.from_dict(item) for item in items]
        except ClientError as e:
            logger.error(f"Error querying records for consumer {consumer_id}: {e.response['Error']['Message']}")
            raise

    def get_records_by_lender(self, lender_id: str) -> List[models.CreditRecord]:
        """Queries all records created by a lender, newest first."""
        try:
            items = self._collect(
                self.table.query,
                IndexName=RECORDS_LENDER_INDEX,
                KeyConditionExpression=Key('lender_id').eq(lender_id),
                ScanIndexForward=False  # Most recent first
            )
            return [models.CreditRecord.from_dict(item) for item in items]
        except ClientError as e:
            logger.error(f"Error querying records for lender {lender_id}: {e.response['Error']['Message']}")
            raise

    def append_payment(self, record_id: str, entry: models.PaymentEntry) -> Optional[models.CreditRecord]:
        """
        Appends a history entry and overwrites the current status in one
        conditional update. Returns the updated record, or None if it does not exist.
        """
        try:
            response = self._retry_with_backoff(
                self.table.update_item,
                Key={'record_id': record_id},
                UpdateExpression=(
                    "SET payment_status = :s, "
                    "payment_history = list_append(if_not_exists(payment_history, :empty), :entry)"
                ),
                ConditionExpression="attribute_exists(record_id)",
                ExpressionAttributeValues={
                    ':s': entry.status,
                    ':entry': [entry.to_dict()],
                    ':empty': []
                },
                ReturnValues="ALL_NEW"
            )
            logger.info(f"Successfully updated credit record {record_id} to {entry.status}")
            return models.CreditRecord.from_dict(response['Attributes'])
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                logger.warning(f"Credit record {record_id} does not exist for status update.")
                return None
            logger.error(f"Failed to update credit record {record_id}: {e.response['Error']['Message']}")
            raise
