import datetime

import boto3
import pytest
from botocore.stub import Stubber

from lambdaeip import deploy

STACK_NAME = "static-ip"
STACK_ID = "arn:aws:cloudformation:us-east-1:123456789012:stack/static-ip/guid"


@pytest.fixture
def cloudformation_stub():
    client = boto3.client(
        "cloudformation",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    with Stubber(client) as stubber:
        yield client, stubber
        stubber.assert_no_pending_responses()


def describe_stacks_response(outputs):
    return {
        "Stacks": [
            {
                "StackName": STACK_NAME,
                "StackId": STACK_ID,
                "CreationTime": datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc),
                "StackStatus": "UPDATE_COMPLETE",
                "Outputs": [
                    {"OutputKey": key, "OutputValue": value} for key, value in outputs.items()
                ],
            }
        ]
    }


def test_get_stack_outputs(cloudformation_stub):
    client, stubber = cloudformation_stub
    stubber.add_response(
        "describe_stacks",
        describe_stacks_response({"PublicIps": "203.0.113.10,203.0.113.11"}),
        {"StackName": STACK_NAME},
    )

    assert deploy.get_stack_outputs(client, STACK_NAME) == {
        "PublicIps": "203.0.113.10,203.0.113.11"
    }


def test_missing_stack(cloudformation_stub):
    client, stubber = cloudformation_stub
    stubber.add_client_error(
        "describe_stacks", "ValidationError", "Stack with id static-ip does not exist"
    )
    stubber.add_client_error(
        "describe_stacks", "ValidationError", "Stack with id static-ip does not exist"
    )

    assert not deploy.stack_exists(client, STACK_NAME)
    with pytest.raises(LookupError, match="static-ip"):
        deploy.get_stack_outputs(client, STACK_NAME)


def test_refresh_token_parameter():
    assert deploy.refresh_token_parameter(None) == {
        "ParameterKey": "RefreshToken",
        "UsePreviousValue": True,
    }
    assert deploy.refresh_token_parameter("abc") == {
        "ParameterKey": "RefreshToken",
        "ParameterValue": "abc",
    }


def test_update_without_changes_is_not_an_error(cloudformation_stub, capsys):
    client, stubber = cloudformation_stub
    stubber.add_client_error(
        "update_stack", "ValidationError", "No updates are to be performed."
    )

    deploy.update_stack(client, STACK_NAME, "https://bucket.s3.amazonaws.com/primary.json", "sha256:1")

    assert "already up to date" in capsys.readouterr().out


def test_update_failure_propagates(cloudformation_stub):
    client, stubber = cloudformation_stub
    stubber.add_client_error("update_stack", "ValidationError", "Template format error")

    with pytest.raises(client.exceptions.ClientError):
        deploy.update_stack(
            client, STACK_NAME, "https://bucket.s3.amazonaws.com/primary.json", "sha256:1"
        )
