"""
Test fixtures for Lambda function tests.

Provides common test data, mocked AWS resources and event builders.
"""

import base64
import json
from typing import Any, Callable, Dict, Generator, Optional

import boto3
import pytest
from boto3.dynamodb.types import TypeSerializer
from moto import mock_aws

from src.utils.dynamodb import clear_all_overrides

TABLE_NAMES = {
    "POSTS_TABLE_NAME": "latimere-posts-ue1-dev",
    "ANSWERS_TABLE_NAME": "latimere-answers-ue1-dev",
    "USER_PROFILES_TABLE_NAME": "latimere-user-profiles-ue1-dev",
    "INVITATIONS_TABLE_NAME": "latimere-invitations-ue1-dev",
    "LEADS_TABLE_NAME": "latimere-leads-ue1-dev",
}

_serializer = TypeSerializer()


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Strip configuration that would leak between tests."""
    for name in (
        "ENVIRONMENT",
        "CONTACT_MODE",
        "CONTACT_DELIVERY_MODE",
        "EMAIL_FEATURE_ENABLED",
        "SES_FROM",
        "EMAIL_FROM",
        "SES_TO",
        "EMAIL_TO",
        "SES_CC",
        "SES_BCC",
        "SES_CONFIGURATION_SET",
        "SENDER_EMAIL",
        "SITE_URL",
        "APP_URL",
        "CONTACT_EMAIL",
        "APPSYNC_GRAPHQL_ENDPOINT",
        "APPSYNC_API_KEY",
        "AMPLIFY_CONFIG_JSON",
        "USE_REAL_APPSYNC_LOCAL",
        "AFFILIATION_OWNER_FIELD",
        "INVITE_TOKEN_SECRET",
        "ACCEPT_POINTS",
        "INVITE_TTL_MINUTES",
        "INBOUND_BUCKET",
        "INBOUND_PREFIX",
        *TABLE_NAMES,
    ):
        monkeypatch.delenv(name, raising=False)
    yield
    clear_all_overrides()


@pytest.fixture
def aws_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set fake AWS credentials and table names for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.setenv("AWS_REGION", "us-east-1")
    for env_name, table_name in TABLE_NAMES.items():
        monkeypatch.setenv(env_name, table_name)


@pytest.fixture
def appsync_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """API key configuration for the GraphQL client."""
    monkeypatch.setenv("APPSYNC_GRAPHQL_ENDPOINT", "https://example.appsync-api.us-east-1.amazonaws.com/graphql")
    monkeypatch.setenv("APPSYNC_API_KEY", "da2-testkey")


@pytest.fixture
def dynamodb_tables(aws_credentials: None) -> Generator[Dict[str, Any], None, None]:
    """Create every mock DynamoDB table, keyed by accessor name."""
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")
        created: Dict[str, Any] = {}

        for env_name, table_name in TABLE_NAMES.items():
            accessor = env_name[: -len("_TABLE_NAME")].lower()
            created[accessor] = dynamodb.create_table(
                TableName=table_name,
                KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
                AttributeDefinitions=[{"AttributeName": "id", "AttributeType": "S"}],
                BillingMode="PAY_PER_REQUEST",
            )

        yield created


@pytest.fixture
def lambda_context() -> Any:
    """Mock Lambda context."""

    class Context:
        function_name = "test-function"
        memory_limit_in_mb = 128
        invoked_function_arn = "arn:aws:lambda:us-east-1:123456789012:function:test-function"
        aws_request_id = "test-request-id"

    return Context()


@pytest.fixture
def api_event() -> Callable[..., Dict[str, Any]]:
    """Factory for HTTP API (v2) proxy events."""

    def build(
        method: str = "POST",
        body: Optional[Any] = None,
        query: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
        groups: Optional[str] = None,
        sub: str = "user-123",
        base64_body: bool = False,
    ) -> Dict[str, Any]:
        raw_body = None if body is None else (body if isinstance(body, str) else json.dumps(body))
        if raw_body is not None and base64_body:
            raw_body = base64.b64encode(raw_body.encode("utf-8")).decode("ascii")

        claims: Dict[str, Any] = {"sub": sub}
        if groups is not None:
            claims["cognito:groups"] = groups

        return {
            "version": "2.0",
            "rawPath": "/api/test",
            "headers": headers or {},
            "queryStringParameters": query,
            "body": raw_body,
            "isBase64Encoded": base64_body,
            "requestContext": {
                "requestId": "test-correlation-id",
                "http": {"method": method, "path": "/api/test", "sourceIp": "203.0.113.9"},
                "authorizer": {"jwt": {"claims": claims}},
            },
        }

    return build


def _image(item: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if item is None:
        return None
    return {key: _serializer.serialize(value) for key, value in item.items()}


@pytest.fixture
def stream_record() -> Callable[..., Dict[str, Any]]:
    """Factory for DynamoDB stream records from plain dict images."""

    def build(
        event_name: str,
        new: Optional[Dict[str, Any]] = None,
        old: Optional[Dict[str, Any]] = None,
        event_id: str = "evt-1",
    ) -> Dict[str, Any]:
        change: Dict[str, Any] = {"StreamViewType": "NEW_AND_OLD_IMAGES"}
        if new is not None:
            change["NewImage"] = _image(new)
        if old is not None:
            change["OldImage"] = _image(old)
        return {"eventID": event_id, "eventName": event_name, "eventSource": "aws:dynamodb", "dynamodb": change}

    return build

