import io
import json
import urllib.request

import boto3
import pytest
from botocore.stub import Stubber


class FakeResponse(io.BytesIO):
    def __init__(self, body=b"", headers=None):
        super().__init__(body)
        self.headers = headers or {}


class HttpRecorder:
    def __init__(self):
        self.requests = []
        self.responses = []

    def urlopen(self, request, *args, **kwargs):
        self.requests.append(request)
        if self.responses:
            return self.responses.pop(0)
        return FakeResponse()


@pytest.fixture
def http(monkeypatch):
    recorder = HttpRecorder()
    monkeypatch.setattr(urllib.request, "urlopen", recorder.urlopen)
    return recorder


@pytest.fixture
def custom_resource_event():
    def make(request_type="Create", properties=None, physical_resource_id=None):
        event = {
            "RequestType": request_type,
            "ResponseURL": "https://cloudformation-custom-resource-response.example/response",
            "StackId": "arn:aws:cloudformation:us-east-1:123456789012:stack/test/guid",
            "RequestId": "request-1",
            "LogicalResourceId": "NetworkInterface",
            "ResourceType": "Custom::NetworkInterfaceLookup",
            "ResourceProperties": properties or {},
        }
        if physical_resource_id is not None:
            event["PhysicalResourceId"] = physical_resource_id
        return event

    return make


@pytest.fixture
def sent_response(http):
    def get():
        (request,) = http.requests
        assert request.get_method() == "PUT"
        return json.loads(request.data)

    return get


@pytest.fixture
def ec2_stub():
    client = boto3.client(
        "ec2",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    with Stubber(client) as stubber:
        yield client, stubber
        stubber.assert_no_pending_responses()


def lambda_interface(interface_id, subnet_id, public_ip=None):
    interface = {
        "NetworkInterfaceId": interface_id,
        "SubnetId": subnet_id,
        "InterfaceType": "lambda",
        "PrivateIpAddress": "10.10.0.12",
        "AvailabilityZone": "us-east-1a",
        "Groups": [{"GroupId": "sg-0123", "GroupName": "test"}],
        "Status": "in-use",
    }
    if public_ip is not None:
        interface["Association"] = {"PublicIp": public_ip, "AllocationId": "eipalloc-1"}
    return interface


def interface_filters(security_group_id, subnet_id):
    return [
        {"Name": "interface-type", "Values": ["lambda"]},
        {"Name": "group-id", "Values": [security_group_id]},
        {"Name": "subnet-id", "Values": [subnet_id]},
    ]
