"""
Centralized DynamoDB table access utilities.

Provides singleton-pattern table accessors with lazy initialization
and test override support.
"""

import os
from typing import TYPE_CHECKING, Optional

import boto3

from .config import get_required_env

if TYPE_CHECKING:
    from mypy_boto3_dynamodb import DynamoDBServiceResource
    from mypy_boto3_dynamodb.service_resource import Table


# Module-level cache for test overrides
_table_overrides: dict[str, Optional["Table"]] = {}

# Accessor name -> environment variable holding the physical table name
TABLE_ENV_VARS: dict[str, str] = {
    "posts": "POSTS_TABLE_NAME",
    "answers": "ANSWERS_TABLE_NAME",
    "user_profiles": "USER_PROFILES_TABLE_NAME",
    "invitations": "INVITATIONS_TABLE_NAME",
    "leads": "LEADS_TABLE_NAME",
}


def _get_dynamodb() -> "DynamoDBServiceResource":
    """Get DynamoDB resource with optional endpoint override for LocalStack."""
    return boto3.resource("dynamodb", endpoint_url=os.getenv("DYNAMODB_ENDPOINT"))


def is_configured(name: str) -> bool:
    """True when the table is overridden or its name variable is set."""
    return bool(_table_overrides.get(name) or os.getenv(TABLE_ENV_VARS[name]))


class TableAccessor:
    """Centralized access to DynamoDB tables with environment-based naming."""

    _instance: Optional["TableAccessor"] = None

    def __new__(cls) -> "TableAccessor":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def _table(self, name: str) -> "Table":
        if override := _table_overrides.get(name):
            return override
        table_name = get_required_env(TABLE_ENV_VARS[name])
        return _get_dynamodb().Table(table_name)

    @property
    def posts(self) -> "Table":
        """Community Post table (acceptedAnswerId, score)."""
        return self._table("posts")

    @property
    def answers(self) -> "Table":
        """Community Answer table (postId, owner, isAccepted, score)."""
        return self._table("answers")

    @property
    def user_profiles(self) -> "Table":
        """UserProfile table (reputation and vote counters)."""
        return self._table("user_profiles")

    @property
    def invitations(self) -> "Table":
        return self._table("invitations")

    @property
    def leads(self) -> "Table":
        return self._table("leads")


# Singleton instance for import
tables = TableAccessor()


# Test utilities
def override_table(table_name: str, table: Optional["Table"]) -> None:
    """Override a table for testing. Set to None to clear override."""
    _table_overrides[table_name] = table


def clear_all_overrides() -> None:
    """Clear all table overrides (call in test teardown)."""
    _table_overrides.clear()


def reset_singleton() -> None:
    """Reset the singleton instance (for testing isolation)."""
    TableAccessor._instance = None
