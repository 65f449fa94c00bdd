"""
Minimal AppSync GraphQL client.

Supports the three authorization modes the API exposes: API key (public
forms and admin routes), Cognito user pool ID token (calls made on behalf of
the signed-in user) and IAM SigV4 (Lambda triggers).
"""

import json
import os
from typing import Any, Dict, List, Optional, TypedDict

import boto3
import requests
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest

from .config import get_appsync_endpoint, get_appsync_settings, get_iam_graphql_endpoint
from .errors import AppError, ErrorCode
from .logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 10


class GraphQLResult(TypedDict):
    """Raw outcome of a GraphQL POST."""

    statusCode: int
    data: Optional[Dict[str, Any]]
    errors: List[Dict[str, Any]]


def first_error_message(errors: List[Dict[str, Any]], default: str = "See logs") -> str:
    if errors and errors[0].get("message"):
        return str(errors[0]["message"])
    return default


class AppSyncClient:
    """Posts GraphQL documents to an AppSync endpoint."""

    def __init__(
        self,
        endpoint: str,
        api_key: Optional[str] = None,
        auth_token: Optional[str] = None,
        use_iam: bool = False,
        region: Optional[str] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        self.endpoint = endpoint
        self.api_key = api_key
        self.auth_token = auth_token
        self.use_iam = use_iam
        self.region = region or os.getenv("AWS_REGION") or "us-east-1"
        self.timeout = timeout

    def _headers(self, body: str) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.use_iam:
            credentials = boto3.Session().get_credentials()
            if credentials is None:
                raise AppError(ErrorCode.CONFIGURATION_ERROR, "No AWS credentials available for IAM signing")
            request = AWSRequest(method="POST", url=self.endpoint, data=body, headers=headers)
            SigV4Auth(credentials.get_frozen_credentials(), "appsync", self.region).add_auth(request)
            return dict(request.headers.items())
        if self.auth_token:
            # User pool auth expects the raw ID token, no "Bearer " prefix
            headers["Authorization"] = self.auth_token
        elif self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    def post(self, query: str, variables: Optional[Dict[str, Any]] = None) -> GraphQLResult:
        """
        Send a GraphQL request without interpreting GraphQL errors.

        Raises:
            AppError: UPSTREAM_ERROR if the endpoint cannot be reached
        """
        body = json.dumps({"query": query, "variables": variables or {}})
        try:
            response = requests.post(self.endpoint, data=body, headers=self._headers(body), timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("AppSync request failed", endpoint=self.endpoint, error=str(e))
            raise AppError(ErrorCode.UPSTREAM_ERROR, f"AppSync network error: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        return {
            "statusCode": response.status_code,
            "data": payload.get("data"),
            "errors": list(payload.get("errors") or []),
        }

    def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Send a GraphQL request and return its data.

        Raises:
            AppError: UPSTREAM_ERROR on HTTP failures or GraphQL errors
        """
        result = self.post(query, variables)

        if result["statusCode"] >= 400:
            logger.error(
                "AppSync HTTP error",
                status=result["statusCode"],
                errors=result["errors"] or None,
            )
            raise AppError(
                ErrorCode.UPSTREAM_ERROR,
                f"AppSync error: HTTP {result['statusCode']}",
                {"status": result["statusCode"]},
            )
        if result["errors"]:
            logger.error("AppSync GraphQL errors", errors=result["errors"])
            raise AppError(
                ErrorCode.UPSTREAM_ERROR,
                first_error_message(result["errors"], "AppSync returned errors"),
                {"errors": result["errors"]},
            )
        return result["data"] or {}

    def paginate(
        self, query: str, field: str, variables: Optional[Dict[str, Any]] = None, page_size: int = 100
    ) -> List[Dict[str, Any]]:
        """Follow nextToken through a list query and return every item of ``data[field]``."""
        items: List[Dict[str, Any]] = []
        next_token: Optional[str] = None
        while True:
            page_vars = {**(variables or {}), "limit": page_size, "nextToken": next_token}
            page = self.execute(query, page_vars).get(field) or {}
            items.extend(item for item in page.get("items") or [] if item)
            next_token = page.get("nextToken")
            if not next_token:
                return items


def api_key_client() -> AppSyncClient:
    """Client using the configured API key (see config.get_appsync_settings)."""
    settings = get_appsync_settings()
    return AppSyncClient(settings["endpoint"], api_key=settings["apiKey"])


def iam_client() -> AppSyncClient:
    return AppSyncClient(get_iam_graphql_endpoint(), use_iam=True)


def user_pool_client(id_token: str) -> AppSyncClient:
    endpoint = get_appsync_endpoint()
    if not endpoint:
        raise AppError(ErrorCode.CONFIGURATION_ERROR, "AppSync endpoint is not configured")
    return AppSyncClient(endpoint, auth_token=id_token)
