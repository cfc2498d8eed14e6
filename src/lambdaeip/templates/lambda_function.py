import json

from awacs import ec2
from awacs.aws import Allow, PolicyDocument, Statement
from troposphere import GetAtt, Output, Parameter, Ref, StackName, Template
from troposphere.awslambda import Permission, VPCConfig
from troposphere.ec2 import SecurityGroup
from troposphere.events import Rule, Target
from troposphere.iam import Policy

from ..tasks.egress_ip import handler
from . import common

KEEP_ALIVE_INPUT = json.dumps({"keepalive": True}, sort_keys=True)


def create_template(keep_alive_schedule=None):
    template = Template(Description="Lambda function in public subnets")

    vpc_id = template.add_parameter(
        Parameter(
            "VpcId",
            Type="String",
        )
    )

    subnet_ids = template.add_parameter(
        Parameter(
            "SubnetIds",
            Type="CommaDelimitedList",
        )
    )

    image_uri = template.add_parameter(
        Parameter(
            "ImageUri",
            Type="String",
        )
    )

    # dedicated so the interface lookup can filter on it
    security_group = template.add_resource(
        SecurityGroup(
            "SecurityGroup",
            GroupDescription=StackName,
            VpcId=Ref(vpc_id),
        )
    )

    role = common.add_lambda_role(
        template,
        Policies=[
            Policy(
                PolicyName="vpc-access",
                PolicyDocument=PolicyDocument(
                    Version="2012-10-17",
                    Statement=[
                        Statement(
                            Effect=Allow,
                            Action=[
                                ec2.CreateNetworkInterface,
                                ec2.DescribeNetworkInterfaces,
                                ec2.DeleteNetworkInterface,
                                ec2.AssignPrivateIpAddresses,
                                ec2.UnassignPrivateIpAddresses,
                            ],
                            Resource=["*"],
                        ),
                    ],
                ),
            ),
        ],
    )

    function, log_group = common.add_image_function(
        template,
        "Function",
        role=role,
        image_uri=Ref(image_uri),
        handler=handler,
        MemorySize=256,
        Timeout=15,
        VpcConfig=VPCConfig(
            SecurityGroupIds=[Ref(security_group)],
            SubnetIds=Ref(subnet_ids),
        ),
    )

    common.add_role_policy(template, role, log_group)

    if keep_alive_schedule:
        keep_alive_rule = template.add_resource(
            Rule(
                "KeepAliveRule",
                Description="Periodic invocation so the VPC interface is not reclaimed",
                ScheduleExpression=keep_alive_schedule,
                State="ENABLED",
                Targets=[
                    Target(
                        Id="keepalive",
                        Arn=GetAtt(function, "Arn"),
                        Input=KEEP_ALIVE_INPUT,
                    ),
                ],
            )
        )

        template.add_resource(
            Permission(
                "KeepAlivePermission",
                Principal="events.amazonaws.com",
                Action="lambda:InvokeFunction",
                FunctionName=GetAtt(function, "Arn"),
                SourceArn=GetAtt(keep_alive_rule, "Arn"),
            )
        )

    template.add_output(
        Output(
            "FunctionArn",
            Value=GetAtt(function, "Arn"),
        )
    )

    template.add_output(
        Output(
            "FunctionName",
            Value=Ref(function),
        )
    )

    template.add_output(
        Output(
            "SecurityGroupId",
            Value=GetAtt(security_group, "GroupId"),
        )
    )

    return template
