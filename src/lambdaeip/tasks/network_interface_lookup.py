import logging

import boto3

from . import common

logger = logging.getLogger(__name__)

LAMBDA_INTERFACE_TYPE = "lambda"


class InterfaceLookupError(LookupError):
    def __init__(self, filters, count):
        self.filters = filters
        self.count = count
        criteria = ", ".join(f"{f['Name']}={','.join(f['Values'])}" for f in filters)
        super().__init__(f"Expected exactly one network interface matching {criteria}, found {count}")


def interface_filters(security_group_id, subnet_id):
    return [
        {
            "Name": "interface-type",
            "Values": [LAMBDA_INTERFACE_TYPE],
        },
        {
            "Name": "group-id",
            "Values": [security_group_id],
        },
        {
            "Name": "subnet-id",
            "Values": [subnet_id],
        },
    ]


def list_function_interfaces(ec2, security_group_id, subnet_id):
    response = ec2.describe_network_interfaces(
        Filters=interface_filters(security_group_id, subnet_id),
    )
    return response["NetworkInterfaces"]


def find_function_interface(ec2, security_group_id, subnet_id):
    """Return the one interface Lambda created for the function in a subnet.

    Lambda shares one interface between all functions with the same security
    group and subnet. Zero or several matches raise InterfaceLookupError.
    """
    interfaces = list_function_interfaces(ec2, security_group_id, subnet_id)
    if len(interfaces) != 1:
        raise InterfaceLookupError(interface_filters(security_group_id, subnet_id), len(interfaces))
    interface = interfaces[0]
    logger.info(
        "Found %s in %s (%s)",
        interface["NetworkInterfaceId"],
        subnet_id,
        interface.get("PrivateIpAddress"),
    )
    return interface


def handler(event):
    with common.cloudformation_custom_resource(event) as resource:
        if event["RequestType"] in {"Create", "Update"}:
            properties = event["ResourceProperties"]
            interface = find_function_interface(
                boto3.client("ec2"),
                properties["SecurityGroupId"],
                properties["SubnetId"],
            )
            resource["PhysicalResourceId"] = interface["NetworkInterfaceId"]
            resource["Data"] = {
                "NetworkInterfaceId": interface["NetworkInterfaceId"],
                "PrivateIpAddress": interface.get("PrivateIpAddress", ""),
                "AvailabilityZone": interface.get("AvailabilityZone", ""),
            }
        # the EIP resources own the address, nothing to undo on delete
