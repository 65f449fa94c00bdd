import os

from aws_cdk import CfnOutput, Stack
from constructs import Construct

from .dynamodb_tables import create_dynamodb_tables
from .helpers import get_region_abbrev, get_site_url, make_resource_namer
from .iam_roles import create_lambda_execution_role
from .lambdas import build_lambda_environment, create_lambda_functions
from .s3_buckets import create_s3_buckets


class CdkStack(Stack):
    """
    Latimere Host OS - Backend Stack

    Creates:
    - Community, profile, invitation and lead DynamoDB tables
    - Inbound mail S3 bucket
    - Lambda execution role
    - Stream trigger, scheduled and API route Lambda functions
    """

    def __init__(self, scope: Construct, construct_id: str, env_name: str = "dev", **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.env_name = env_name

        self.region_abbrev = get_region_abbrev()

        # Helper for consistent resource naming: {name}-{region}-{env}
        rn = make_resource_namer(self.region_abbrev, env_name)
        self.resource_name = rn

        base_domain = os.getenv("BASE_DOMAIN", "latimere.com")
        site_url = os.getenv("SITE_URL") or get_site_url(env_name, base_domain)
        sender_email = os.getenv("SES_FROM", f"no-reply@{base_domain}")

        self.tables = create_dynamodb_tables(self, rn)
        buckets = create_s3_buckets(self, rn)
        self.inbound_mail_bucket = buckets["inbound_mail_bucket"]

        self.lambda_execution_role = create_lambda_execution_role(self, rn, self.tables, self.inbound_mail_bucket)

        lambda_env = build_lambda_environment(
            self.tables,
            self.inbound_mail_bucket,
            env_name=env_name,
            site_url=site_url,
            sender_email=sender_email,
            extra={
                "APPSYNC_GRAPHQL_ENDPOINT": os.getenv("APPSYNC_GRAPHQL_ENDPOINT", ""),
                "CONTACT_EMAIL": os.getenv("CONTACT_EMAIL", ""),
                "CONTACT_DELIVERY_MODE": os.getenv("CONTACT_DELIVERY_MODE", ""),
            },
        )
        self.lambda_functions = create_lambda_functions(
            self,
            rn,
            self.lambda_execution_role,
            self.tables,
            self.inbound_mail_bucket,
            lambda_env,
        )

        CfnOutput(self, "InboundMailBucketName", value=self.inbound_mail_bucket.bucket_name)
        for key in ("answers_table", "votes_table", "invitations_table"):
            CfnOutput(
                self,
                f"{key.title().replace('_', '')}StreamArn",
                value=self.tables[key].table_stream_arn or "",
            )
