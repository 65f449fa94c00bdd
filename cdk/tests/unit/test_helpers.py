"""Tests for CDK helper utilities."""

import os
from unittest.mock import patch

from cdk.helpers import (
    REGION_ABBREVIATIONS,
    get_region,
    get_region_abbrev,
    get_site_url,
    load_env_file,
    make_resource_namer,
)


class TestRegionAbbreviations:
    """Tests for REGION_ABBREVIATIONS constant."""

    def test_us_east_1(self):
        """US East 1 abbreviation is ue1."""
        assert REGION_ABBREVIATIONS["us-east-1"] == "ue1"

    def test_ca_central_1(self):
        """Canada Central abbreviation is cc1."""
        assert REGION_ABBREVIATIONS["ca-central-1"] == "cc1"


class TestGetRegion:
    """Tests for get_region function."""

    def test_returns_aws_region_env_var(self):
        """Returns AWS_REGION environment variable when set."""
        with patch.dict(os.environ, {"AWS_REGION": "us-west-2"}, clear=True):
            assert get_region() == "us-west-2"

    def test_returns_cdk_default_region_if_aws_region_not_set(self):
        """Returns CDK_DEFAULT_REGION when AWS_REGION is not set."""
        with patch.dict(os.environ, {"CDK_DEFAULT_REGION": "eu-west-1"}, clear=True):
            assert get_region() == "eu-west-1"

    def test_returns_us_east_1_as_default(self):
        """Returns us-east-1 when no region environment variables are set."""
        with patch.dict(os.environ, {}, clear=True):
            assert get_region() == "us-east-1"


class TestGetRegionAbbrev:
    """Tests for get_region_abbrev function."""

    def test_known_region(self):
        assert get_region_abbrev("us-west-2") == "uw2"

    def test_unknown_region_uses_prefix(self):
        """Unknown regions fall back to the first three characters."""
        assert get_region_abbrev("af-south-1") == "af-"

    def test_reads_environment_when_region_omitted(self):
        with patch.dict(os.environ, {"AWS_REGION": "us-east-2"}, clear=True):
            assert get_region_abbrev() == "ue2"


class TestMakeResourceNamer:
    """Tests for make_resource_namer function."""

    def test_appends_region_and_env(self):
        rn = make_resource_namer("ue1", "dev")
        assert rn("latimere-posts") == "latimere-posts-ue1-dev"

    def test_overrides(self):
        """Explicit abbrev/env arguments override the bound defaults."""
        rn = make_resource_namer("ue1", "dev")
        assert rn("latimere-posts", abbrev="uw2", env="prod") == "latimere-posts-uw2-prod"


class TestGetSiteUrl:
    """Tests for get_site_url function."""

    def test_prod_uses_www(self):
        assert get_site_url("prod", "latimere.com") == "https://www.latimere.com"

    def test_other_env_prefixed(self):
        assert get_site_url("dev", "latimere.com") == "https://dev.latimere.com"


class TestLoadEnvFile:
    """Tests for load_env_file function."""

    def test_missing_file(self, tmp_path):
        assert load_env_file(tmp_path / ".env") == {}

    def test_applies_unset_keys_only(self, tmp_path):
        """Existing variables win over the file; comments and blanks are ignored."""
        env_file = tmp_path / ".env"
        env_file.write_text("# comment\n\nBASE_DOMAIN = latimere.dev\nENVIRONMENT=prod\nnot a pair\n")

        with patch.dict(os.environ, {"ENVIRONMENT": "dev"}, clear=True):
            applied = load_env_file(env_file)
            assert os.environ["BASE_DOMAIN"] == "latimere.dev"
            assert os.environ["ENVIRONMENT"] == "dev"

        assert applied == {"BASE_DOMAIN": "latimere.dev"}
