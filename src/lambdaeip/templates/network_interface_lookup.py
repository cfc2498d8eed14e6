from awacs import ec2
from awacs.aws import Allow, Statement
from troposphere import GetAtt, Output, Parameter, Ref, Template

from ..tasks.network_interface_lookup import handler
from . import common


def create_template():
    template = Template(Description="Lambda VPC network interface lookup utility")

    image_uri = template.add_parameter(
        Parameter(
            "ImageUri",
            Type="String",
        )
    )

    role = common.add_lambda_role(template)

    # outside the VPC so it can reach the EC2 API and the response URL
    function, log_group = common.add_image_function(
        template,
        "Function",
        role=role,
        image_uri=Ref(image_uri),
        handler=handler,
        MemorySize=256,
        Timeout=30,
    )

    common.add_role_policy(
        template,
        role,
        log_group,
        statements=[
            Statement(
                Effect=Allow,
                Action=[ec2.DescribeNetworkInterfaces],
                Resource=["*"],
            ),
        ],
    )

    template.add_output(
        Output(
            "ServiceToken",
            Value=GetAtt(function, "Arn"),
        )
    )

    return template
