import logging
from typing import Optional

import boto3
import botocore.session
from botocore.config import Config as BotoConfig
from botocore.credentials import DeferredRefreshableCredentials
from botocore.exceptions import BotoCoreError, ClientError

from banana_weather.config import settings
from banana_weather.errors import ConfigurationError

logger = logging.getLogger(__name__)

_base_session = boto3.Session(
    aws_access_key_id=settings.aws_access_key_id,
    aws_secret_access_key=settings.aws_secret_access_key,
    aws_session_token=settings.aws_session_token,
    region_name=settings.aws_region,
)

_session: Optional[boto3.Session] = None
_clients: dict = {}


def _fetch_role_credentials() -> dict:
    """Assume the Bedrock role and return credentials in botocore's metadata format."""
    sts_client = _base_session.client("sts", config=BotoConfig(retries={"max_attempts": 3}))
    try:
        response = sts_client.assume_role(
            RoleArn=settings.bedrock_role_arn,
            RoleSessionName="banana-weather",
            DurationSeconds=3600,
        )
    except (ClientError, BotoCoreError):
        logger.exception("Unable to assume IAM role %s", settings.bedrock_role_arn)
        raise

    credentials = response["Credentials"]
    logger.info("Assumed role %s until %s", settings.bedrock_role_arn, credentials["Expiration"])
    return {
        "access_key": credentials["AccessKeyId"],
        "secret_key": credentials["SecretAccessKey"],
        "token": credentials["SessionToken"],
        "expiry_time": credentials["Expiration"].isoformat(),
    }


def _get_session() -> boto3.Session:
    """Return the session every client is built from.

    With a role ARN configured the session carries refreshable credentials, so
    clients that were already handed out re-assume the role before it expires.
    """
    global _session
    if _session is None:
        if settings.bedrock_role_arn:
            core_session = botocore.session.get_session()
            core_session._credentials = DeferredRefreshableCredentials(
                refresh_using=_fetch_role_credentials,
                method="sts-assume-role",
            )
            _session = boto3.Session(botocore_session=core_session, region_name=settings.aws_region)
        else:
            _session = _base_session
    return _session


def _create_client(service_name: str):
    try:
        client = _get_session().client(
            service_name,
            region_name=settings.aws_region,
            config=BotoConfig(retries={"max_attempts": 5, "mode": "adaptive"}),
        )
    except (ClientError, BotoCoreError) as exc:
        logger.exception("Failed to create %s client", service_name)
        raise ConfigurationError(f"Unable to create {service_name} client.") from exc
    logger.info("Created %s client in %s", service_name, settings.aws_region)
    return client


def _get_client(service_name: str):
    client = _clients.get(service_name)
    if client is None:
        client = _create_client(service_name)
        _clients[service_name] = client
    return client


def get_bedrock_runtime_client():
    return _get_client("bedrock-runtime")


def get_s3_client():
    return _get_client("s3")


def get_location_client():
    return _get_client("location")
