import contextlib
import json
import logging
import urllib.request

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def cloudformation_custom_resource(event):
    resource = {
        "Status": "SUCCESS",
        "LogicalResourceId": event["LogicalResourceId"],
        "RequestId": event["RequestId"],
        "StackId": event["StackId"],
        "PhysicalResourceId": event.get("PhysicalResourceId"),
        "Data": {},
    }
    logger.info(
        "%s request for %s (%s)",
        event["RequestType"],
        event["LogicalResourceId"],
        event.get("PhysicalResourceId") or "new",
    )
    try:
        yield resource
    except Exception as ex:
        logger.exception("Custom resource %s failed", event["LogicalResourceId"])
        resource.update(
            {
                "Status": "FAILED",
                "Reason": f"{type(ex).__name__}: {str(ex)}",
            }
        )
    # CloudFormation rejects responses without a physical id, even failed creates
    if not resource["PhysicalResourceId"]:
        resource["PhysicalResourceId"] = event["RequestId"]
    payload = json.dumps(resource)
    urllib.request.urlopen(
        urllib.request.Request(
            method="PUT",
            url=event["ResponseURL"],
            data=payload.encode("utf-8"),
            headers={"Content-Type": ""},
        )
    )
