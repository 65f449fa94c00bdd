"""
Shared helper utilities for CDK stack construction.

This module provides:
- Region abbreviation mapping for resource naming
- Resource naming function (rn)
- Site URL and .env loading
"""

import os
from pathlib import Path
from typing import Callable, Optional

# Pattern: {name}-{region_abbrev}-{env} e.g. latimere-posts-ue1-dev
REGION_ABBREVIATIONS: dict[str, str] = {
    "us-east-1": "ue1",
    "us-east-2": "ue2",
    "us-west-1": "uw1",
    "us-west-2": "uw2",
    "ca-central-1": "cc1",
    "eu-west-1": "ew1",
    "eu-central-1": "ec1",
}


def get_region() -> str:
    """Get the AWS region from environment variables or default to us-east-1."""
    return os.getenv("AWS_REGION") or os.getenv("CDK_DEFAULT_REGION") or "us-east-1"


def get_region_abbrev(region: Optional[str] = None) -> str:
    """Get the region abbreviation for resource naming.

    Args:
        region: AWS region code. If None, reads from environment.

    Returns:
        Region abbreviation (e.g., 'ue1' for 'us-east-1')
    """
    if region is None:
        region = get_region()
    return REGION_ABBREVIATIONS.get(region, region[:3])


def make_resource_namer(region_abbrev: str, env_name: str) -> Callable[..., str]:
    """Create a resource naming function.

    Args:
        region_abbrev: Region abbreviation (e.g., 'ue1')
        env_name: Environment name (e.g., 'dev', 'prod')

    Returns:
        A function that takes a base name and returns a fully qualified name
    """

    def rn(name: str, abbrev: str = region_abbrev, env: str = env_name) -> str:
        """Generate resource name with region and environment suffix."""
        return f"{name}-{abbrev}-{env}"

    return rn


def get_site_url(env_name: str, base_domain: str) -> str:
    """Public site URL used in email links.

    Prod serves the bare domain under www; other environments get a prefix.
    """
    if env_name == "prod":
        return f"https://www.{base_domain}"
    return f"https://{env_name}.{base_domain}"


def load_env_file(path: Path) -> dict[str, str]:
    """Load KEY=VALUE lines from a .env file without overriding the environment.

    Returns the variables that were applied.
    """
    applied: dict[str, str] = {}
    if not path.exists():
        return applied
    for raw in path.read_text().splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = (part.strip() for part in line.split("=", 1))
        if key and not os.getenv(key):
            os.environ[key] = value
            applied[key] = value
    return applied
