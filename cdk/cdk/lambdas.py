"""Lambda function definitions for the Latimere Host OS stack.

This module creates all Lambda functions used by the application:
- DynamoDB stream triggers (accepted answers, vote reputation, invitation email)
- Inbound email ingestion from S3
- Scheduled heartbeat tasks
- API routes (invitations, referrals, admin referrals, revenue audits, contact)
"""

import os
from typing import TYPE_CHECKING, Any, Dict, Optional

from aws_cdk import Duration
from aws_cdk import aws_events as events
from aws_cdk import aws_events_targets as targets
from aws_cdk import aws_iam as iam
from aws_cdk import aws_lambda as lambda_
from aws_cdk import aws_lambda_event_sources as event_sources
from constructs import Construct

if TYPE_CHECKING:
    from aws_cdk import aws_dynamodb as dynamodb
    from aws_cdk import aws_s3 as s3

# (construct id, function name suffix, handler path)
API_ROUTES = [
    ("LookupInvitationFn", "lookup-invitation", "handlers.invitations.lookup_invitation"),
    ("AcceptInvitationFn", "accept-invitation", "handlers.invitations.accept_invitation"),
    ("CompleteInvitationFn", "complete-invitation", "handlers.invitations.complete_invitation"),
    ("SendInvitationFn", "send-invitation", "handlers.invitations.send_invitation"),
    ("CreateReferralFn", "create-referral", "handlers.referrals.create_referral"),
    ("StartReferralFn", "start-referral", "handlers.referrals.start_referral"),
    ("CompleteReferralFn", "complete-referral", "handlers.referrals.complete_referral"),
    ("GetReferralByTokenFn", "get-referral-by-token", "handlers.referrals.get_referral_by_token"),
    ("ListReferralsByRealtorFn", "list-referrals-by-realtor", "handlers.referrals.list_referrals_by_realtor"),
    ("AdminListReferralsFn", "admin-list-referrals", "handlers.admin_referrals.list_referrals"),
    ("AdminUpdateReferralFn", "admin-update-referral", "handlers.admin_referrals.update_referral"),
    ("CreateReferralPartnerFn", "create-referral-partner", "handlers.admin_referrals.create_referral_partner"),
    ("CreateRevenueAuditFn", "create-revenue-audit", "handlers.revenue_audits.create_revenue_audit"),
    ("ConvertRevenueAuditFn", "convert-revenue-audit", "handlers.revenue_audits.convert_audit_to_property"),
    ("SubmitContactFn", "submit-contact", "handlers.contact.submit_contact"),
]

STREAM_TRIGGERS = [
    ("AcceptAnswerTriggerFn", "accept-answer-trigger", "handlers.accept_answer_trigger.lambda_handler", "answers_table"),
    ("VoteReputationTriggerFn", "vote-reputation-trigger", "handlers.vote_reputation_trigger.lambda_handler", "votes_table"),
    (
        "SendInvitationEmailFn",
        "send-invitation-email",
        "handlers.send_invitation_email.lambda_handler",
        "invitations_table",
    ),
]


def build_lambda_environment(
    tables: Dict[str, "dynamodb.Table"],
    inbound_mail_bucket: "s3.Bucket",
    env_name: str,
    site_url: str,
    sender_email: str,
    extra: Optional[Dict[str, str]] = None,
) -> Dict[str, str]:
    """Common environment variables shared by every function."""
    env = {
        "ENVIRONMENT": env_name,
        "LOG_LEVEL": "INFO",
        "SITE_URL": site_url,
        "APP_URL": site_url,
        "SES_FROM": sender_email,
        "SENDER_EMAIL": sender_email,
        "INBOUND_BUCKET": inbound_mail_bucket.bucket_name,
        "INBOUND_PREFIX": "inbound/",
        "POSTS_TABLE_NAME": tables["posts_table"].table_name,
        "ANSWERS_TABLE_NAME": tables["answers_table"].table_name,
        "USER_PROFILES_TABLE_NAME": tables["user_profiles_table"].table_name,
        "INVITATIONS_TABLE_NAME": tables["invitations_table"].table_name,
        "LEADS_TABLE_NAME": tables["leads_table"].table_name,
    }
    if extra:
        env.update({key: value for key, value in extra.items() if value})
    return env


def _function(
    scope: Construct,
    rn: Any,
    construct_id: str,
    name: str,
    handler: str,
    code: lambda_.Code,
    role: iam.Role,
    environment: Dict[str, str],
    timeout: int = 30,
) -> lambda_.Function:
    return lambda_.Function(
        scope,
        construct_id,
        function_name=rn(f"latimere-{name}"),
        runtime=lambda_.Runtime.PYTHON_3_13,
        handler=handler,
        code=code,
        timeout=Duration.seconds(timeout),
        memory_size=256,
        role=role,
        environment=environment,
    )


def create_lambda_functions(
    scope: Construct,
    rn: Any,  # Resource naming function
    lambda_execution_role: iam.Role,
    tables: Dict[str, "dynamodb.Table"],
    inbound_mail_bucket: "s3.Bucket",
    lambda_env: Dict[str, str],
) -> dict[str, lambda_.Function]:
    """Create all Lambda functions for the stack.

    Stream triggers are wired to their table streams with a DynamoEventSource
    and the scheduled tasks get EventBridge rules.

    Args:
        scope: CDK construct scope
        rn: Resource naming function (name -> formatted name)
        lambda_execution_role: IAM role for Lambda execution
        tables: DynamoDB tables keyed as returned by create_dynamodb_tables
        inbound_mail_bucket: Bucket SES writes inbound mail into
        lambda_env: Environment variables for every function

    Returns:
        Dictionary of Lambda functions keyed by construct id
    """
    # Use only the src directory for Lambda code (not the entire repo)
    lambda_code_path = os.path.join(os.path.dirname(__file__), "..", "..", "src")

    lambda_code = lambda_.Code.from_asset(
        lambda_code_path,
        exclude=[
            "__pycache__",
            "*.pyc",
            ".pytest_cache",
        ],
    )

    functions: dict[str, lambda_.Function] = {}

    for construct_id, name, handler, table_key in STREAM_TRIGGERS:
        fn = _function(scope, rn, construct_id, name, handler, lambda_code, lambda_execution_role, lambda_env)
        fn.add_event_source(
            event_sources.DynamoEventSource(
                tables[table_key],
                starting_position=lambda_.StartingPosition.LATEST,
                batch_size=10,
                retry_attempts=3,
                bisect_batch_on_error=True,
            )
        )
        functions[construct_id] = fn

    email_ingest_fn = _function(
        scope,
        rn,
        "EmailIngestFn",
        "email-ingest",
        "handlers.email_ingest.lambda_handler",
        lambda_code,
        lambda_execution_role,
        lambda_env,
        timeout=60,
    )
    email_ingest_fn.add_permission(
        "AllowSesInvoke",
        principal=iam.ServicePrincipal("ses.amazonaws.com"),
        source_account=inbound_mail_bucket.stack.account,
    )
    functions["EmailIngestFn"] = email_ingest_fn

    scheduler_fn = _function(
        scope,
        rn,
        "SchedulerFn",
        "scheduler",
        "handlers.scheduled_tasks.scheduler_handler",
        lambda_code,
        lambda_execution_role,
        lambda_env,
    )
    events.Rule(
        scope,
        "SchedulerRule",
        rule_name=rn("latimere-scheduler"),
        schedule=events.Schedule.rate(Duration.minutes(15)),
        targets=[targets.LambdaFunction(scheduler_fn)],
    )
    functions["SchedulerFn"] = scheduler_fn

    ical_import_fn = _function(
        scope,
        rn,
        "IcalImportFn",
        "ical-import",
        "handlers.scheduled_tasks.ical_import_handler",
        lambda_code,
        lambda_execution_role,
        lambda_env,
    )
    events.Rule(
        scope,
        "IcalImportRule",
        rule_name=rn("latimere-ical-import"),
        schedule=events.Schedule.rate(Duration.hours(1)),
        targets=[targets.LambdaFunction(ical_import_fn)],
    )
    functions["IcalImportFn"] = ical_import_fn

    for construct_id, name, handler in API_ROUTES:
        functions[construct_id] = _function(
            scope, rn, construct_id, name, handler, lambda_code, lambda_execution_role, lambda_env
        )

    return functions
