"""WorldPulse Infrastructure Stack.

This stack defines the AWS resources for the daily sentiment sweep:
- DynamoDB table for the latest/archive sentiment cache
- Lambda function running the ingestion scheduler
- EventBridge rule triggering the sweep once a day
- Secrets Manager reference for the Gemini API key
"""

from pathlib import Path

from aws_cdk import BundlingOptions, Duration, RemovalPolicy, Stack
from aws_cdk import aws_dynamodb as dynamodb
from aws_cdk import aws_events as events
from aws_cdk import aws_events_targets as targets
from aws_cdk import aws_lambda as lambda_
from aws_cdk import aws_secretsmanager as secretsmanager
from constructs import Construct

# Repository root holding pyproject.toml and the worldpulse_ingest package
PROJECT_ROOT = Path(__file__).resolve().parents[3]

SWEEP_HOUR_UTC = "8"


class WorldPulseStack(Stack):
    """Main infrastructure stack for the WorldPulse sweep."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment: str = "development",
        **kwargs,
    ) -> None:
        """Initialize the WorldPulse stack.

        Args:
            scope: CDK scope
            construct_id: Stack ID
            environment: Deployment environment (development, staging, production)
            **kwargs: Additional stack arguments
        """
        super().__init__(scope, construct_id, **kwargs)

        self.deploy_environment = environment

        self.sentiment_table = self._create_dynamodb_table()
        self.sweep_function = self._create_lambda_function()
        self.daily_rule = self._create_daily_rule()

        self.sentiment_table.grant_read_write_data(self.sweep_function)

    def _create_dynamodb_table(self) -> dynamodb.Table:
        """Create DynamoDB table for the sentiment cache.

        Table schema:
        - PK: LATEST or ARCHIVE#<country>
        - SK: COUNTRY#<country> or DAY#<YYYY-MM-DD>

        Returns:
            DynamoDB Table construct
        """
        return dynamodb.Table(
            self,
            "SentimentTable",
            table_name=f"worldpulse-sentiment-{self.deploy_environment}",
            partition_key=dynamodb.Attribute(
                name="PK",
                type=dynamodb.AttributeType.STRING,
            ),
            sort_key=dynamodb.Attribute(
                name="SK",
                type=dynamodb.AttributeType.STRING,
            ),
            billing_mode=dynamodb.BillingMode.PAY_PER_REQUEST,
            removal_policy=(
                RemovalPolicy.DESTROY
                if self.deploy_environment == "development"
                else RemovalPolicy.RETAIN
            ),
        )

    def _create_lambda_function(self) -> lambda_.Function:
        """Create the sweep Lambda function.

        Reserved concurrency of one keeps a single scheduler in front
        of the API quota.

        Returns:
            Lambda Function construct
        """
        secret_name = f"worldpulse/{self.deploy_environment}/gemini-api-key"

        function = lambda_.Function(
            self,
            "SweepFunction",
            function_name=f"worldpulse-sweep-{self.deploy_environment}",
            runtime=lambda_.Runtime.PYTHON_3_12,
            handler="worldpulse_ingest.handler.lambda_handler",
            code=lambda_.Code.from_asset(
                str(PROJECT_ROOT),
                exclude=["infrastructure", "tests", ".git", "*.md"],
                bundling=BundlingOptions(
                    image=lambda_.Runtime.PYTHON_3_12.bundling_image,
                    command=["bash", "-c", "pip install . -t /asset-output"],
                ),
            ),
            timeout=Duration.minutes(15),
            memory_size=256,
            reserved_concurrent_executions=1,
            environment={
                "DYNAMODB_TABLE_NAME": self.sentiment_table.table_name,
                "GEMINI_SECRET_NAME": secret_name,
            },
        )

        api_key_secret = secretsmanager.Secret.from_secret_name_v2(
            self,
            "GeminiApiKeySecret",
            secret_name,
        )
        api_key_secret.grant_read(function)

        return function

    def _create_daily_rule(self) -> events.Rule:
        """Trigger the sweep every day at 08:00 UTC.

        Returns:
            EventBridge Rule construct
        """
        rule = events.Rule(
            self,
            "DailySweepRule",
            rule_name=f"worldpulse-daily-sweep-{self.deploy_environment}",
            schedule=events.Schedule.cron(minute="0", hour=SWEEP_HOUR_UTC),
        )
        rule.add_target(
            targets.LambdaFunction(
                self.sweep_function,
                event=events.RuleTargetInput.from_object({"force": False}),
            )
        )
        return rule
