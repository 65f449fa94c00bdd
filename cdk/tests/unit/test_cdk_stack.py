"""Synthesis tests for the full backend stack."""

import os
from unittest.mock import patch

import pytest
from aws_cdk import App, assertions

from cdk.cdk_stack import CdkStack


@pytest.fixture
def template():
    env = {"AWS_REGION": "us-east-1", "BASE_DOMAIN": "latimere.com"}
    with patch.dict(os.environ, env, clear=True):
        app = App()
        stack = CdkStack(app, "TestStack", env_name="test")
        return assertions.Template.from_stack(stack)


def test_cdk_stack_importable():
    """Test that CdkStack can be imported."""
    assert CdkStack is not None


def test_tables_and_bucket_named_for_environment(template):
    template.has_resource_properties("AWS::DynamoDB::Table", {"TableName": "latimere-invitations-ue1-test"})
    template.has_resource_properties("AWS::S3::Bucket", {"BucketName": "latimere-inbound-mail-ue1-test"})


def test_stream_triggers_wired(template):
    template.resource_count_is("AWS::Lambda::EventSourceMapping", 3)


def test_site_url_derived_from_domain(template):
    """Non-prod environments get an env-prefixed site URL and a no-reply sender."""
    template.has_resource_properties(
        "AWS::Lambda::Function",
        {
            "FunctionName": "latimere-send-invitation-email-ue1-test",
            "Environment": {
                "Variables": assertions.Match.object_like(
                    {"SITE_URL": "https://test.latimere.com", "SES_FROM": "no-reply@latimere.com"}
                )
            },
        },
    )


def test_stream_arn_outputs(template):
    outputs = template.find_outputs("*")
    assert {"AnswersTableStreamArn", "VotesTableStreamArn", "InvitationsTableStreamArn"} <= set(outputs)
    assert "InboundMailBucketName" in outputs
