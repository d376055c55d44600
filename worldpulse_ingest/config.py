"""Configuration for the WorldPulse ingestion service.

This module provides configuration for DynamoDB, the text-generation
API and the ingestion scheduler, supporting both local development
(.env / environment variables) and AWS deployment (Secrets Manager).
"""

import os
from dataclasses import dataclass
from functools import lru_cache

import boto3
from botocore.exceptions import ClientError
from dotenv import load_dotenv

load_dotenv()


@dataclass
class DynamoDBConfig:
    """DynamoDB configuration.

    Attributes:
        table_name: Name of the DynamoDB table
        endpoint_url: Custom endpoint URL (for DynamoDB Local)
        region_name: AWS region
    """

    table_name: str
    endpoint_url: str | None
    region_name: str


@dataclass
class GenAIConfig:
    """Text-generation API configuration.

    Attributes:
        api_key: Gemini API key (None when not configured)
        model: Model identifier used for generateContent
        endpoint: Base URL of the Generative Language API
    """

    api_key: str | None
    model: str
    endpoint: str


@dataclass
class SchedulerConfig:
    """Ingestion scheduler tuning.

    Attributes:
        batch_size: Countries per external call
        min_interval_seconds: Minimum spacing between two external calls
        max_retries: Rate-limit retries before giving up on a batch
        initial_backoff_seconds: First backoff delay, doubled per attempt
    """

    batch_size: int
    min_interval_seconds: float
    max_retries: int
    initial_backoff_seconds: float


def get_dynamodb_config() -> DynamoDBConfig:
    """Get DynamoDB configuration from environment variables.

    Environment Variables:
        DYNAMODB_TABLE_NAME: Table name (empty = in-memory only)
        DYNAMODB_ENDPOINT_URL: Custom endpoint (for local development)
        AWS_REGION: AWS region

    Returns:
        DynamoDBConfig instance
    """
    return DynamoDBConfig(
        table_name=os.getenv("DYNAMODB_TABLE_NAME", ""),
        endpoint_url=os.getenv("DYNAMODB_ENDPOINT_URL"),
        region_name=os.getenv("AWS_REGION", ""),
    )


@lru_cache(maxsize=10)
def _get_secret(secret_name: str) -> str | None:
    """Get secret value from AWS Secrets Manager.

    Args:
        secret_name: Name of the secret in Secrets Manager

    Returns:
        Secret value or None if not found
    """
    region = os.getenv("AWS_REGION", "")
    if not region:
        return None

    client = boto3.client("secretsmanager", region_name=region)
    try:
        response = client.get_secret_value(SecretId=secret_name)
        return response.get("SecretString")
    except ClientError:
        return None


def get_genai_config() -> GenAIConfig:
    """Get text-generation API configuration.

    Supports two modes:
    1. Direct environment variable (local development):
       - GEMINI_API_KEY
    2. Secrets Manager (Lambda deployment):
       - GEMINI_SECRET_NAME → reads from Secrets Manager

    Returns:
        GenAIConfig instance
    """
    api_key = os.getenv("GEMINI_API_KEY")

    if not api_key:
        secret_name = os.getenv("GEMINI_SECRET_NAME")
        if secret_name:
            api_key = _get_secret(secret_name)

    return GenAIConfig(
        api_key=api_key,
        model=os.getenv("GEMINI_MODEL", DEFAULT_MODEL),
        endpoint=os.getenv("GEMINI_ENDPOINT", DEFAULT_ENDPOINT),
    )


def get_scheduler_config() -> SchedulerConfig:
    """Get scheduler tuning from WORLDPULSE_* environment variables."""
    return SchedulerConfig(
        batch_size=int(os.getenv("WORLDPULSE_BATCH_SIZE", BATCH_SIZE)),
        min_interval_seconds=float(
            os.getenv("WORLDPULSE_MIN_INTERVAL_SECONDS", MIN_REQUEST_INTERVAL_SECONDS)
        ),
        max_retries=int(os.getenv("WORLDPULSE_MAX_RETRIES", MAX_RETRIES)),
        initial_backoff_seconds=float(
            os.getenv("WORLDPULSE_INITIAL_BACKOFF_SECONDS", INITIAL_BACKOFF_SECONDS)
        ),
    )


# Text-generation API
DEFAULT_MODEL = "gemini-3-flash-preview"
DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta"
REQUEST_TIMEOUT_SECONDS = 120

# Constants for DynamoDB schema
DYNAMODB_LATEST_PK = "LATEST"
DYNAMODB_COUNTRY_PREFIX = "COUNTRY#"
DYNAMODB_ARCHIVE_PREFIX = "ARCHIVE#"
DYNAMODB_DAY_PREFIX = "DAY#"
DYNAMODB_PROBE_PK = "PROBE"
DYNAMODB_PROBE_SK = "connectivity_check"

# Freshness and quota settings
FRESHNESS_WINDOW_SECONDS = 22 * 60 * 60  # 22 hours
QUOTA_COOLDOWN_SECONDS = 24 * 60 * 60
BATCH_SIZE = 5
MIN_REQUEST_INTERVAL_SECONDS = 15  # 5 RPM free tier -> 4 RPM with margin
MAX_RETRIES = 2
INITIAL_BACKOFF_SECONDS = 15

# Selection coordinator
PRIORITY_WAIT_TIMEOUT_SECONDS = 45
POLL_INTERVAL_SECONDS = 1

# Record shape
LABEL_THRESHOLD = 0.05
MAX_HEADLINES = 5
