"""
S3 bucket creation for the CDK stack.

Creates:
- Inbound mail bucket the SES receipt rule writes raw messages into
"""

from typing import Callable

from aws_cdk import Duration, RemovalPolicy
from aws_cdk import aws_iam as iam
from aws_cdk import aws_s3 as s3
from constructs import Construct

INBOUND_PREFIX = "inbound/"


def create_s3_buckets(stack: Construct, rn: Callable[[str], str]) -> dict[str, s3.Bucket]:
    """Create S3 buckets for the application.

    Args:
        stack: CDK Construct (usually the Stack instance)
        rn: helper function to create resource names (rn(name: str) -> str)

    Returns:
        Dict with 'inbound_mail_bucket'
    """
    inbound_mail_bucket = s3.Bucket(
        stack,
        "InboundMail",
        bucket_name=rn("latimere-inbound-mail"),
        versioned=False,
        encryption=s3.BucketEncryption.S3_MANAGED,
        block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
        removal_policy=RemovalPolicy.RETAIN,
        lifecycle_rules=[s3.LifecycleRule(prefix=INBOUND_PREFIX, expiration=Duration.days(90))],
    )

    # SES writes the raw message before invoking the ingest Lambda
    inbound_mail_bucket.add_to_resource_policy(
        iam.PolicyStatement(
            principals=[iam.ServicePrincipal("ses.amazonaws.com")],
            actions=["s3:PutObject"],
            resources=[inbound_mail_bucket.arn_for_objects(f"{INBOUND_PREFIX}*")],
        )
    )

    return {"inbound_mail_bucket": inbound_mail_bucket}
