from troposphere import GetAtt, Join, Output, Parameter, Ref, StackName, Tags, Template
from troposphere.cloudformation import CustomResource
from troposphere.ec2 import EIP, EIPAssociation


class NetworkInterfaceLookup(CustomResource):
    resource_type = "Custom::NetworkInterfaceLookup"

    props = {
        "ServiceToken": (str, True),
        "SecurityGroupId": (str, True),
        "SubnetId": (str, True),
        "FunctionArn": (str, True),
        "ImageDigest": (str, False),
        "RefreshToken": (str, False),
    }


def create_template():
    """One subnet's static address: interface lookup, EIP, association.

    Must only be deployed once the function exists, otherwise the lookup finds no
    interface and fails the stack.
    """
    template = Template(Description="Static IP for a Lambda VPC interface")

    service_token = template.add_parameter(
        Parameter(
            "ServiceToken",
            Type="String",
        )
    )

    function_arn = template.add_parameter(
        Parameter(
            "FunctionArn",
            Type="String",
        )
    )

    security_group_id = template.add_parameter(
        Parameter(
            "SecurityGroupId",
            Type="String",
        )
    )

    subnet_id = template.add_parameter(
        Parameter(
            "SubnetId",
            Type="String",
        )
    )

    # a new image or refresh token re-runs the lookup against the current interface
    image_digest = template.add_parameter(
        Parameter(
            "ImageDigest",
            Type="String",
            Default="",
        )
    )

    refresh_token = template.add_parameter(
        Parameter(
            "RefreshToken",
            Type="String",
            Default="",
        )
    )

    network_interface = template.add_resource(
        NetworkInterfaceLookup(
            "NetworkInterface",
            ServiceToken=Ref(service_token),
            FunctionArn=Ref(function_arn),
            SecurityGroupId=Ref(security_group_id),
            SubnetId=Ref(subnet_id),
            ImageDigest=Ref(image_digest),
            RefreshToken=Ref(refresh_token),
        )
    )

    address = template.add_resource(
        EIP(
            "Address",
            Domain="vpc",
            Tags=Tags(
                Name=Join("-", [StackName, "lambda-eip"]),
                **{"lambda-eip:subnet-id": Ref(subnet_id)},
            ),
        )
    )

    template.add_resource(
        EIPAssociation(
            "AddressAssociation",
            AllocationId=GetAtt(address, "AllocationId"),
            NetworkInterfaceId=GetAtt(network_interface, "NetworkInterfaceId"),
            DependsOn=[network_interface],
        )
    )

    template.add_output(
        Output(
            "PublicIp",
            Value=Ref(address),
        )
    )

    template.add_output(
        Output(
            "AllocationId",
            Value=GetAtt(address, "AllocationId"),
        )
    )

    template.add_output(
        Output(
            "NetworkInterfaceId",
            Value=GetAtt(network_interface, "NetworkInterfaceId"),
        )
    )

    return template
