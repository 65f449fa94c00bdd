"""
IAM roles and policies for the CDK stack.

Creates:
- Lambda execution role with DynamoDB, SES, S3 and AppSync permissions
"""

from typing import Callable, Dict

from aws_cdk import aws_dynamodb as dynamodb
from aws_cdk import aws_iam as iam
from aws_cdk import aws_s3 as s3
from constructs import Construct


def create_lambda_execution_role(
    stack: Construct,
    rn: Callable[[str], str],
    tables: Dict[str, dynamodb.ITable],
    inbound_mail_bucket: s3.IBucket,
) -> iam.Role:
    """Create the Lambda execution role with appropriate permissions.

    Args:
        stack: CDK Construct (usually the Stack instance)
        rn: helper function to create resource names
        tables: Dict of DynamoDB tables to grant access to
        inbound_mail_bucket: Bucket holding raw inbound email

    Returns:
        The Lambda execution role
    """
    lambda_execution_role = iam.Role(
        stack,
        "LambdaExecutionRole",
        role_name=rn("latimere-lambda-exec"),
        assumed_by=iam.ServicePrincipal("lambda.amazonaws.com"),
        managed_policies=[iam.ManagedPolicy.from_aws_managed_policy_name("service-role/AWSLambdaBasicExecutionRole")],
    )

    for table in tables.values():
        table.grant_read_write_data(lambda_execution_role)
        lambda_execution_role.add_to_policy(
            iam.PolicyStatement(
                actions=["dynamodb:Query"],
                resources=[f"{table.table_arn}/index/*"],
            )
        )

    inbound_mail_bucket.grant_read(lambda_execution_role)

    lambda_execution_role.add_to_policy(
        iam.PolicyStatement(
            actions=["ses:SendEmail", "ses:SendRawEmail"],
            resources=["*"],  # Identity ARNs differ between sandbox and production
        )
    )

    # IAM-signed GraphQL calls from the inbound mail Lambda
    lambda_execution_role.add_to_policy(
        iam.PolicyStatement(
            actions=["appsync:GraphQL"],
            resources=["arn:aws:appsync:*:*:apis/*/types/Mutation/*"],
        )
    )

    return lambda_execution_role
