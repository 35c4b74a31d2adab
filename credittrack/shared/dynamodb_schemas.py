"""
DynamoDB table schema definitions for CreditTrack.

This module provides programmatic access to table schemas, indexes, and
configuration for use in repository classes, tests, and infrastructure code.
"""

import os
from typing import Dict, List, Any
from dataclasses import dataclass, field


@dataclass
class AttributeDefinition:
    """DynamoDB attribute definition."""
    name: str
    type: str  # S (String), N (Number), B (Binary)
    description: str = ""


@dataclass
class GlobalSecondaryIndex:
    """DynamoDB Global Secondary Index definition."""
    index_name: str
    partition_key: str
    sort_key: str = None
    projection_type: str = "ALL"
    description: str = ""


@dataclass
class TableSchema:
    """Complete DynamoDB table schema definition."""
    table_name: str
    partition_key: str
    sort_key: str = None
    attributes: List[AttributeDefinition] = field(default_factory=list)
    global_secondary_indexes: List[GlobalSecondaryIndex] = field(default_factory=list)
    billing_mode: str = "PAY_PER_REQUEST"
    tags: Dict[str, str] = field(default_factory=dict)


# ==========================================
# Constants
# ==========================================

USERS_TABLE = "CreditTrack-Users"
CREDIT_RECORDS_TABLE = "CreditTrack-CreditRecords"

USERS_EMAIL_INDEX = "email-index"
USERS_ROLE_INDEX = "role-created_at-index"
RECORDS_CONSUMER_INDEX = "consumer_id-created_at-index"
RECORDS_LENDER_INDEX = "lender_id-created_at-index"

_TAGS = {
    "Project": "CreditTrack",
    "Environment": "Production",
    "ManagedBy": "Infrastructure-Scripts"
}


# ==========================================
# CreditTrack-Users Table Schema
# ==========================================

USERS_TABLE_SCHEMA = TableSchema(
    table_name=USERS_TABLE,
    partition_key="user_id",
    attributes=[
        AttributeDefinition("user_id", "S", "Primary key - unique user identifier (UUID or Cognito sub)"),
        AttributeDefinition("email", "S", "Unique login email"),
        AttributeDefinition("role", "S", "consumer, lender, admin"),
        AttributeDefinition("created_at", "S", "ISO 8601 timestamp of registration"),
    ],
    global_secondary_indexes=[
        GlobalSecondaryIndex(
            index_name=USERS_EMAIL_INDEX,
            partition_key="email",
            description="Look up a user by email (search endpoint)"
        ),
        GlobalSecondaryIndex(
            index_name=USERS_ROLE_INDEX,
            partition_key="role",
            sort_key="created_at",
            description="List users of one role (pending lender queue, stats)"
        ),
    ],
    tags=_TAGS
)


# ==========================================
# CreditTrack-CreditRecords Table Schema
# ==========================================

CREDIT_RECORDS_TABLE_SCHEMA = TableSchema(
    table_name=CREDIT_RECORDS_TABLE,
    partition_key="record_id",
    attributes=[
        AttributeDefinition("record_id", "S", "Primary key - unique credit record identifier (UUID)"),
        AttributeDefinition("consumer_id", "S", "Consumer the obligation belongs to"),
        AttributeDefinition("lender_id", "S", "Lender who created (and owns) the record"),
        AttributeDefinition("created_at", "S", "ISO 8601 timestamp of record creation"),
    ],
    global_secondary_indexes=[
        GlobalSecondaryIndex(
            index_name=RECORDS_CONSUMER_INDEX,
            partition_key="consumer_id",
            sort_key="created_at",
            description="All records for a consumer, sorted by creation time"
        ),
        GlobalSecondaryIndex(
            index_name=RECORDS_LENDER_INDEX,
            partition_key="lender_id",
            sort_key="created_at",
            description="All records created by a lender, sorted by creation time"
        ),
    ],
    tags=_TAGS
)


# ==========================================
# Helper Functions
# ==========================================

def resolve_table_name(schema: TableSchema) -> str:
    """Physical table name, overridable per environment."""
    env_var = {
        USERS_TABLE: "USERS_TABLE",
        CREDIT_RECORDS_TABLE: "CREDIT_RECORDS_TABLE",
    }[schema.table_name]
    return os.environ.get(env_var, schema.table_name)


def to_boto3_attribute_definitions(schema: TableSchema) -> List[Dict[str, str]]:
    return [
        {"AttributeName": attr.name, "AttributeType": attr.type}
        for attr in schema.attributes
    ]


def to_boto3_key_schema(schema: TableSchema) -> List[Dict[str, str]]:
    key_schema = [{"AttributeName": schema.partition_key, "KeyType": "HASH"}]

    if schema.sort_key:
        key_schema.append({"AttributeName": schema.sort_key, "KeyType": "RANGE"})

    return key_schema


def to_boto3_gsi_definitions(schema: TableSchema) -> List[Dict[str, Any]]:
    gsi_definitions = []

    for gsi in schema.global_secondary_indexes:
        key_schema = [{"AttributeName": gsi.partition_key, "KeyType": "HASH"}]

        if gsi.sort_key:
            key_schema.append({"AttributeName": gsi.sort_key, "KeyType": "RANGE"})

        gsi_definitions.append({
            "IndexName": gsi.index_name,
            "KeySchema": key_schema,
            "Projection": {"ProjectionType": gsi.projection_type}
        })

    return gsi_definitions


def create_table_params(schema: TableSchema, table_name: str = None) -> Dict[str, Any]:
    """
    Generate complete boto3 create_table parameters.

    Args:
        schema: TableSchema object
        table_name: Physical name to create; defaults to the environment override

    Returns:
        Dictionary of parameters for boto3 create_table call
    """
    params = {
        "TableName": table_name or resolve_table_name(schema),
        "AttributeDefinitions": to_boto3_attribute_definitions(schema),
        "KeySchema": to_boto3_key_schema(schema),
        "BillingMode": schema.billing_mode,
    }

    if schema.global_secondary_indexes:
        params["GlobalSecondaryIndexes"] = to_boto3_gsi_definitions(schema)

    if schema.tags:
        params["Tags"] = [{"Key": k, "Value": v} for k, v in schema.tags.items()]

    return params


def create_tables(dynamodb_resource) -> List[Any]:
    """Create every CreditTrack table and wait until each is active."""
    tables = []
    for schema in (USERS_TABLE_SCHEMA, CREDIT_RECORDS_TABLE_SCHEMA):
        table = dynamodb_resource.create_table(**create_table_params(schema))
        table.wait_until_exists()
        tables.append(table)
    return tables
