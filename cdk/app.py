#!/usr/bin/env python3
import os
from pathlib import Path

import aws_cdk as cdk

from cdk.cdk_stack import CdkStack
from cdk.helpers import get_region, get_region_abbrev, load_env_file

load_env_file(Path(__file__).parent / ".env")

app = cdk.App()

# dev/prod from context, then ENVIRONMENT
env_name = app.node.try_get_context("environment") or os.getenv("ENVIRONMENT", "dev")
region = get_region()
region_abbrev = get_region_abbrev(region)

CdkStack(
    app,
    f"LatimereStack-{region_abbrev}-{env_name}",
    stack_name=f"latimere-{region_abbrev}-{env_name}",
    env_name=env_name,
    env=cdk.Environment(account=os.getenv("AWS_ACCOUNT_ID") or os.getenv("CDK_DEFAULT_ACCOUNT"), region=region),
    description=f"Latimere Host OS - Backend ({region_abbrev}-{env_name})",
)

app.synth()
