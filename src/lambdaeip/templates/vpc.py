from troposphere import (
    Cidr,
    GetAtt,
    GetAZs,
    Join,
    Output,
    Ref,
    Select,
    StackName,
    Tags,
    Template,
)
from troposphere.ec2 import (
    VPC,
    DHCPOptions,
    InternetGateway,
    Route,
    RouteTable,
    Subnet,
    SubnetRouteTableAssociation,
    VPCDHCPOptionsAssociation,
    VPCGatewayAttachment,
)

VPC_CIDR_BLOCK = "10.10.0.0/16"
SUBNET_CIDR_BITS = 8


def create_template(subnet_count=2):
    """Public-only VPC: every subnet routes to the internet gateway, no NAT."""
    if subnet_count < 1:
        raise ValueError(f"subnet_count must be at least 1, got {subnet_count}")

    template = Template(Description="Public VPC without NAT gateway")

    vpc = template.add_resource(
        VPC(
            "Vpc",
            CidrBlock=VPC_CIDR_BLOCK,
            EnableDnsHostnames=False,
            EnableDnsSupport=True,
            Tags=Tags(Name=StackName),
        )
    )

    dhcp_options = template.add_resource(
        DHCPOptions(
            "DhcpOptions",
            NtpServers=["169.254.169.123"],
            DomainNameServers=["AmazonProvidedDNS"],
            Tags=Tags(Name=StackName),
        )
    )

    template.add_resource(
        VPCDHCPOptionsAssociation(
            "VpcDhcpOptionsAssociation",
            VpcId=Ref(vpc),
            DhcpOptionsId=Ref(dhcp_options),
        )
    )

    internet_gateway = template.add_resource(
        InternetGateway(
            "InternetGateway",
            Tags=Tags(Name=StackName),
        )
    )

    vpc_gateway_attachment = template.add_resource(
        VPCGatewayAttachment(
            "VpcGatewayAttachment",
            VpcId=Ref(vpc),
            InternetGatewayId=Ref(internet_gateway),
        )
    )

    route_table = template.add_resource(
        RouteTable(
            "PublicRouteTable",
            VpcId=Ref(vpc),
            Tags=Tags(Name=StackName),
        )
    )

    template.add_resource(
        Route(
            "InternetRoute",
            DestinationCidrBlock="0.0.0.0/0",
            GatewayId=Ref(internet_gateway),
            RouteTableId=Ref(route_table),
            DependsOn=[vpc_gateway_attachment],
        )
    )

    subnets = []
    for index in range(subnet_count):
        subnet = template.add_resource(
            Subnet(
                f"Subnet{index}",
                MapPublicIpOnLaunch=True,
                VpcId=Ref(vpc),
                CidrBlock=Select(
                    index, Cidr(GetAtt(vpc, "CidrBlock"), subnet_count, SUBNET_CIDR_BITS)
                ),
                AvailabilityZone=Select(index, GetAZs("")),
                Tags=Tags(Name=Join("-", [StackName, f"public{index}"])),
            )
        )

        template.add_resource(
            SubnetRouteTableAssociation(
                f"SubnetRouteTableAssociation{index}",
                RouteTableId=Ref(route_table),
                SubnetId=Ref(subnet),
            )
        )

        subnets.append(subnet)

    template.add_output(
        Output(
            "VpcId",
            Value=Ref(vpc),
        )
    )

    template.add_output(
        Output(
            "SubnetIds",
            Value=Join(",", [Ref(subnet) for subnet in subnets]),
        )
    )

    return template
