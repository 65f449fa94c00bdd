"""Tests for the s3_buckets module."""

import pytest
from aws_cdk import App, Stack, assertions
from aws_cdk import aws_s3 as s3

from cdk.s3_buckets import INBOUND_PREFIX, create_s3_buckets


class TestCreateS3Buckets:
    """Tests for create_s3_buckets function."""

    @pytest.fixture
    def stack(self):
        """Create a test stack."""
        app = App()
        return Stack(app, "TestStack")

    @pytest.fixture
    def rn(self):
        """Create a resource naming function."""

        def _rn(name: str) -> str:
            return f"{name}-ue1-test"

        return _rn

    def test_returns_inbound_mail_bucket(self, stack, rn):
        result = create_s3_buckets(stack, rn)

        assert list(result) == ["inbound_mail_bucket"]
        assert isinstance(result["inbound_mail_bucket"], s3.Bucket)

    def test_inbound_mail_bucket_name(self, stack, rn):
        """Inbound mail bucket should have correct name in CloudFormation template."""
        create_s3_buckets(stack, rn)
        template = assertions.Template.from_stack(stack)
        template.has_resource_properties("AWS::S3::Bucket", {"BucketName": "latimere-inbound-mail-ue1-test"})

    def test_blocks_public_access(self, stack, rn):
        create_s3_buckets(stack, rn)
        template = assertions.Template.from_stack(stack)
        template.has_resource_properties(
            "AWS::S3::Bucket",
            {
                "PublicAccessBlockConfiguration": {
                    "BlockPublicAcls": True,
                    "BlockPublicPolicy": True,
                    "IgnorePublicAcls": True,
                    "RestrictPublicBuckets": True,
                }
            },
        )

    def test_inbound_objects_expire(self, stack, rn):
        create_s3_buckets(stack, rn)
        template = assertions.Template.from_stack(stack)
        template.has_resource_properties(
            "AWS::S3::Bucket",
            {
                "LifecycleConfiguration": {
                    "Rules": [assertions.Match.object_like({"Prefix": INBOUND_PREFIX, "ExpirationInDays": 90})]
                }
            },
        )

    def test_ses_may_write_inbound_prefix(self, stack, rn):
        """SES receipt rule needs PutObject on the inbound prefix."""
        create_s3_buckets(stack, rn)
        template = assertions.Template.from_stack(stack)
        template.has_resource_properties(
            "AWS::S3::BucketPolicy",
            {
                "PolicyDocument": {
                    "Statement": assertions.Match.array_with(
                        [
                            assertions.Match.object_like(
                                {"Action": "s3:PutObject", "Principal": {"Service": "ses.amazonaws.com"}}
                            )
                        ]
                    )
                }
            },
        )
