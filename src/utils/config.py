"""
Environment configuration helpers.

Every value is read from the process environment on each call so that tests
can patch the environment and warm Lambda containers pick up the same values.
"""

import json
import os
from typing import Dict, List, Optional, TypedDict

from .errors import AppError, ErrorCode

TRUTHY = {"1", "true", "yes", "on"}

DEFAULT_CONTACT_EMAIL = "taylor@latimere.com"
DEFAULT_SITE_URL = "https://www.latimere.com"
LOCAL_SITE_URL = "http://localhost:3000"

# Lambda environment names that may carry the GraphQL endpoint for IAM-signed calls
IAM_ENDPOINT_ENV_VARS = (
    "API_LATIMEREHOSTOS_GRAPHQLAPIENDPOINTOUTPUT",
    "API_URL",
    "GRAPHQL_ENDPOINT",
    "GRAPHQL_URL",
    "APPSYNC_GRAPHQL_ENDPOINT",
)


class AppSyncSettings(TypedDict):
    """Endpoint and API key for the GraphQL API."""

    endpoint: str
    apiKey: str


def get_required_env(name: str, default: Optional[str] = None) -> str:
    """Get a required environment variable.

    Args:
        name: Environment variable name
        default: Optional default for test environments

    Returns:
        The environment variable value

    Raises:
        ValueError: If the env var is not set and no default is provided
    """
    value = os.getenv(name, default)
    if value is None:
        raise ValueError(f"Required environment variable '{name}' is not set")
    return value


def get_env(*names: str) -> str:
    """First non-blank value among the given environment variables, else ''."""
    for name in names:
        value = (os.getenv(name) or "").strip()
        if value:
            return value
    return ""


def env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in TRUTHY


def env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, ""))
    except ValueError:
        return default


def env_list(name: str) -> List[str]:
    return [part.strip() for part in os.getenv(name, "").split(",") if part.strip()]


def get_environment() -> str:
    return os.getenv("ENVIRONMENT", "dev").strip().lower()


def is_production() -> bool:
    return get_environment() in ("prod", "production")


def is_local_mock() -> bool:
    """GraphQL calls are simulated when running locally without a real API."""
    return get_environment() == "local" and os.getenv("USE_REAL_APPSYNC_LOCAL") != "1"


def get_site_url() -> str:
    """Public site base URL without a trailing slash."""
    configured = get_env("SITE_URL", "APP_URL")
    if configured:
        return configured.rstrip("/")
    return LOCAL_SITE_URL if get_environment() == "local" else DEFAULT_SITE_URL


def get_contact_email() -> str:
    return get_env("CONTACT_EMAIL") or DEFAULT_CONTACT_EMAIL


def get_contact_mode() -> str:
    mode = get_env("CONTACT_MODE").lower()
    if mode:
        return mode
    return "ses" if is_production() else ""


def email_feature_enabled() -> bool:
    """EMAIL_FEATURE_ENABLED wins when set; otherwise email is on only in production."""
    return env_bool("EMAIL_FEATURE_ENABLED", default=is_production())


def notifications_enabled() -> bool:
    return get_contact_mode() in ("ses", "email") and email_feature_enabled()


def get_sender_address() -> str:
    return get_env("SES_FROM", "EMAIL_FROM")


def get_ses_region() -> str:
    return get_env("SES_REGION", "AWS_REGION") or "us-east-1"


def _amplify_config() -> Dict[str, str]:
    raw = get_env("AMPLIFY_CONFIG_JSON")
    if not raw:
        return {}
    try:
        config = json.loads(raw)
    except ValueError as e:
        raise AppError(ErrorCode.CONFIGURATION_ERROR, "AMPLIFY_CONFIG_JSON is not valid JSON") from e
    return config if isinstance(config, dict) else {}


def get_appsync_endpoint() -> str:
    """GraphQL endpoint from APPSYNC_GRAPHQL_ENDPOINT or the Amplify config ('' if neither)."""
    endpoint = get_env("APPSYNC_GRAPHQL_ENDPOINT")
    if endpoint:
        return endpoint
    return str(_amplify_config().get("aws_appsync_graphqlEndpoint") or "")


def get_appsync_settings() -> AppSyncSettings:
    """Resolve the GraphQL endpoint and API key.

    Explicit APPSYNC_* variables win; otherwise the Amplify client configuration
    JSON in AMPLIFY_CONFIG_JSON is consulted.

    Raises:
        AppError: CONFIGURATION_ERROR when no endpoint/key pair can be found
    """
    endpoint = get_appsync_endpoint()
    api_key = get_env("APPSYNC_API_KEY") or str(_amplify_config().get("aws_appsync_apiKey") or "")

    if not (endpoint and api_key):
        raise AppError(
            ErrorCode.CONFIGURATION_ERROR,
            "AppSync endpoint or API key is not configured",
            {"hasEndpoint": bool(endpoint), "hasApiKey": bool(api_key)},
        )
    return {"endpoint": endpoint, "apiKey": api_key}


def get_iam_graphql_endpoint() -> str:
    endpoint = get_env(*IAM_ENDPOINT_ENV_VARS)
    if not endpoint:
        raise AppError(ErrorCode.CONFIGURATION_ERROR, "GraphQL endpoint is not configured")
    return endpoint
