#!/usr/bin/env python3
"""WorldPulse CDK Application Entry Point."""

import aws_cdk as cdk

from worldpulse_stack.worldpulse_stack import WorldPulseStack

app = cdk.App()

# Environment configuration
env = cdk.Environment(
    region=app.node.try_get_context("region") or "us-east-1"
)

# Get environment name from context (default: development)
environment = app.node.try_get_context("environment") or "development"

WorldPulseStack(
    app,
    f"WorldPulseStack-{environment}",
    environment=environment,
    env=env,
)

app.synth()
