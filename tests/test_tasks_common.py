import pytest

from lambdaeip.tasks import common


def test_success_response_is_put_to_response_url(http, custom_resource_event, sent_response):
    event = custom_resource_event()

    with common.cloudformation_custom_resource(event) as resource:
        resource["PhysicalResourceId"] = "eni-0abc"
        resource["Data"] = {"NetworkInterfaceId": "eni-0abc"}

    (request,) = http.requests
    assert request.full_url == event["ResponseURL"]
    assert request.get_header("Content-type") == ""
    response = sent_response()
    assert response["Status"] == "SUCCESS"
    assert response["PhysicalResourceId"] == "eni-0abc"
    assert response["Data"] == {"NetworkInterfaceId": "eni-0abc"}
    assert response["StackId"] == event["StackId"]
    assert response["RequestId"] == event["RequestId"]
    assert response["LogicalResourceId"] == event["LogicalResourceId"]


def test_exception_becomes_failed_response(http, custom_resource_event, sent_response):
    with common.cloudformation_custom_resource(custom_resource_event()):
        raise ValueError("boom")

    response = sent_response()
    assert response["Status"] == "FAILED"
    assert response["Reason"] == "ValueError: boom"


def test_failed_create_falls_back_to_request_id(http, custom_resource_event, sent_response):
    event = custom_resource_event()

    with common.cloudformation_custom_resource(event):
        raise RuntimeError("no interface")

    assert sent_response()["PhysicalResourceId"] == event["RequestId"]


def test_existing_physical_id_is_kept(http, custom_resource_event, sent_response):
    event = custom_resource_event("Delete", physical_resource_id="eni-0old")

    with common.cloudformation_custom_resource(event):
        pass

    assert sent_response()["PhysicalResourceId"] == "eni-0old"


def test_base_exceptions_are_not_swallowed(http, custom_resource_event):
    with pytest.raises(KeyboardInterrupt):
        with common.cloudformation_custom_resource(custom_resource_event()):
            raise KeyboardInterrupt()
