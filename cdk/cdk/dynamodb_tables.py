from typing import Callable, Dict

from aws_cdk import RemovalPolicy
from aws_cdk import aws_dynamodb as ddb
from constructs import Construct

# Tables whose streams drive Lambda triggers
STREAM_TABLES = ("answers_table", "votes_table", "invitations_table")


def _table(stack: Construct, construct_id: str, table_name: str, stream: bool = False) -> ddb.Table:
    return ddb.Table(
        stack,
        construct_id,
        table_name=table_name,
        partition_key=ddb.Attribute(name="id", type=ddb.AttributeType.STRING),
        billing_mode=ddb.BillingMode.PAY_PER_REQUEST,
        point_in_time_recovery_specification=ddb.PointInTimeRecoverySpecification(point_in_time_recovery_enabled=True),
        stream=ddb.StreamViewType.NEW_AND_OLD_IMAGES if stream else None,
        removal_policy=RemovalPolicy.RETAIN,
        deletion_protection=True,
    )


def create_dynamodb_tables(stack: Construct, rn: Callable[[str], str]) -> Dict[str, ddb.Table]:
    """Create all DynamoDB tables used by the Lambda functions and return them in a dict.

    Answer, Vote and Invitation tables carry NEW_AND_OLD_IMAGES streams so the
    triggers can compare the before and after state of each record.

    Args:
        stack: CDK Construct (usually the Stack instance)
        rn: helper function to create resource names (rn(name: str) -> str)

    Returns:
        Mapping of table names to Table constructs
    """
    posts_table = _table(stack, "PostsTable", rn("latimere-posts"))

    answers_table = _table(stack, "AnswersTable", rn("latimere-answers"), stream=True)
    answers_table.add_global_secondary_index(
        index_name="postId-index",
        partition_key=ddb.Attribute(name="postId", type=ddb.AttributeType.STRING),
        projection_type=ddb.ProjectionType.ALL,
    )

    votes_table = _table(stack, "VotesTable", rn("latimere-votes"), stream=True)
    votes_table.add_global_secondary_index(
        index_name="targetId-index",
        partition_key=ddb.Attribute(name="targetId", type=ddb.AttributeType.STRING),
        projection_type=ddb.ProjectionType.KEYS_ONLY,
    )

    user_profiles_table = _table(stack, "UserProfilesTable", rn("latimere-user-profiles"))

    invitations_table = _table(stack, "InvitationsTable", rn("latimere-invitations"), stream=True)
    invitations_table.add_global_secondary_index(
        index_name="email-index",
        partition_key=ddb.Attribute(name="email", type=ddb.AttributeType.STRING),
        projection_type=ddb.ProjectionType.ALL,
    )

    leads_table = _table(stack, "LeadsTable", rn("latimere-leads"))

    return {
        "posts_table": posts_table,
        "answers_table": answers_table,
        "votes_table": votes_table,
        "user_profiles_table": user_profiles_table,
        "invitations_table": invitations_table,
        "leads_table": leads_table,
    }
