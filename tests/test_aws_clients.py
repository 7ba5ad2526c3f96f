from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from banana_weather.services import aws_clients
from conftest import client_error

ROLE_ARN = "arn:aws:iam::123456789012:role/banana-weather"


def role_credentials(key_id, lifetime):
    return {
        "Credentials": {
            "AccessKeyId": key_id,
            "SecretAccessKey": f"{key_id}-secret",
            "SessionToken": f"{key_id}-token",
            "Expiration": datetime.now(timezone.utc) + lifetime,
        }
    }


@pytest.fixture
def sts(monkeypatch):
    client = MagicMock()
    base_session = MagicMock()
    base_session.client.return_value = client
    monkeypatch.setattr(aws_clients, "_base_session", base_session)
    monkeypatch.setattr(aws_clients, "_session", None)
    monkeypatch.setattr(aws_clients, "_clients", {})
    monkeypatch.setattr(
        aws_clients,
        "settings",
        aws_clients.settings.model_copy(update={"bedrock_role_arn": ROLE_ARN, "aws_region": "us-east-1"}),
    )
    return client


def test_role_credentials_use_botocore_metadata(sts):
    sts.assume_role.return_value = role_credentials("AKIAFIRST", timedelta(hours=1))

    metadata = aws_clients._fetch_role_credentials()

    assert metadata["access_key"] == "AKIAFIRST"
    assert metadata["secret_key"] == "AKIAFIRST-secret"
    assert metadata["token"] == "AKIAFIRST-token"
    assert datetime.fromisoformat(metadata["expiry_time"]) > datetime.now(timezone.utc)
    assert sts.assume_role.call_args.kwargs["RoleArn"] == ROLE_ARN


def test_clients_are_built_once(sts):
    first = aws_clients.get_s3_client()

    assert aws_clients.get_s3_client() is first
    sts.assume_role.assert_not_called()


def test_handed_out_client_refreshes_expiring_role(sts):
    sts.assume_role.side_effect = [
        role_credentials("AKIAFIRST", timedelta(minutes=1)),
        role_credentials("AKIASECOND", timedelta(hours=1)),
    ]
    client = aws_clients.get_s3_client()
    credentials = client._request_signer._credentials

    assert credentials.get_frozen_credentials().access_key == "AKIAFIRST"
    # one minute left is inside botocore's mandatory refresh window
    assert credentials.get_frozen_credentials().access_key == "AKIASECOND"
    assert aws_clients.get_s3_client() is client
    assert sts.assume_role.call_count == 2


def test_role_failure_reaches_the_caller(sts):
    sts.assume_role.side_effect = client_error("AccessDenied", "AssumeRole")
    client = aws_clients.get_s3_client()

    with pytest.raises(ClientError) as excinfo:
        client._request_signer._credentials.get_frozen_credentials()
    assert "AccessDenied" in str(excinfo.value)


def test_without_role_uses_base_session(monkeypatch):
    base_session = MagicMock()
    monkeypatch.setattr(aws_clients, "_base_session", base_session)
    monkeypatch.setattr(aws_clients, "_session", None)
    monkeypatch.setattr(aws_clients, "_clients", {})
    monkeypatch.setattr(aws_clients, "settings", aws_clients.settings.model_copy(update={"bedrock_role_arn": None}))

    client = aws_clients.get_location_client()

    assert client is base_session.client.return_value
    assert base_session.client.call_args.args == ("location",)
