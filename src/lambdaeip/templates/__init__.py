import argparse
import itertools
import json
import pathlib

from troposphere import (
    AccountId,
    Equals,
    GetAtt,
    Join,
    Not,
    Output,
    Parameter,
    Partition,
    Ref,
    Region,
    Select,
    Split,
    Template,
    URLSuffix,
)
from troposphere.cloudformation import Stack
from troposphere.ecr import LifecyclePolicy, Repository
from troposphere.s3 import (
    AbortIncompleteMultipartUpload,
    Bucket,
    BucketEncryption,
    LifecycleConfiguration,
    LifecycleRule,
    PublicAccessBlockConfiguration,
    ServerSideEncryptionByDefault,
    ServerSideEncryptionRule,
)

from ..config import env_optional, positive_int
from . import common, lambda_function, network_interface_lookup, static_ip, vpc

DEFAULT_SUBNET_COUNT = 2


def create_primary_template(subnet_count=DEFAULT_SUBNET_COUNT, keep_alive_schedule=None):
    template = Template(Description="Root stack for Lambda function with static egress IPs")

    image_digest = template.add_parameter(Parameter("ImageDigest", Type="String", Default=""))
    refresh_token = template.add_parameter(Parameter("RefreshToken", Type="String", Default=""))

    # the bootstrap pass only creates the artifact stores
    is_image_digest_defined = "IsImageDigestDefined"
    template.add_condition(is_image_digest_defined, Not(Equals(Ref(image_digest), "")))

    artifact_repository = template.add_resource(
        Repository(
            "ArtifactRepository",
            ImageTagMutability="MUTABLE",
            LifecyclePolicy=LifecyclePolicy(
                LifecyclePolicyText=json.dumps(
                    {
                        "rules": [
                            {
                                "rulePriority": 1,
                                "selection": {
                                    "tagStatus": "untagged",
                                    "countType": "imageCountMoreThan",
                                    "countNumber": 3,
                                },
                                "action": {
                                    "type": "expire",
                                },
                            }
                        ]
                    },
                    indent=None,
                    sort_keys=True,
                    separators=(",", ":"),
                )
            ),
        )
    )

    artifact_repository_url = Join(
        "/",
        [
            Join(
                ".",
                [
                    AccountId,
                    "dkr",
                    "ecr",
                    Region,
                    URLSuffix,
                ],
            ),
            Ref(artifact_repository),
        ],
    )
    image_uri = Join("@", [artifact_repository_url, Ref(image_digest)])

    artifact_bucket = template.add_resource(
        Bucket(
            "ArtifactBucket",
            BucketEncryption=BucketEncryption(
                ServerSideEncryptionConfiguration=[
                    ServerSideEncryptionRule(
                        BucketKeyEnabled=True,
                        ServerSideEncryptionByDefault=ServerSideEncryptionByDefault(
                            SSEAlgorithm="aws:kms",
                            KMSMasterKeyID=Join(
                                ":", ["arn", Partition, "kms", Region, AccountId, "alias/aws/s3"]
                            ),
                        ),
                    )
                ],
            ),
            LifecycleConfiguration=LifecycleConfiguration(
                Rules=[
                    LifecycleRule(
                        AbortIncompleteMultipartUpload=AbortIncompleteMultipartUpload(
                            DaysAfterInitiation=3,
                        ),
                        Status="Enabled",
                    ),
                ],
            ),
            PublicAccessBlockConfiguration=PublicAccessBlockConfiguration(
                BlockPublicAcls=True,
                BlockPublicPolicy=True,
                IgnorePublicAcls=True,
                RestrictPublicBuckets=True,
            ),
        )
    )

    vpc_stack = template.add_resource(
        Stack(
            "Vpc",
            TemplateURL=common.get_template_s3_url(
                Ref(artifact_bucket), vpc.create_template(subnet_count)
            ),
            Condition=is_image_digest_defined,
        )
    )

    lambda_function_stack = template.add_resource(
        Stack(
            "LambdaFunction",
            TemplateURL=common.get_template_s3_url(
                Ref(artifact_bucket), lambda_function.create_template(keep_alive_schedule)
            ),
            Parameters={
                "VpcId": GetAtt(vpc_stack, "Outputs.VpcId"),
                "SubnetIds": GetAtt(vpc_stack, "Outputs.SubnetIds"),
                "ImageUri": image_uri,
            },
            Condition=is_image_digest_defined,
        )
    )

    interface_lookup_stack = template.add_resource(
        Stack(
            "InterfaceLookup",
            TemplateURL=common.get_template_s3_url(
                Ref(artifact_bucket), network_interface_lookup.create_template()
            ),
            Parameters={
                "ImageUri": image_uri,
            },
            Condition=is_image_digest_defined,
        )
    )

    static_ip_template = static_ip.create_template()
    static_ip_stacks = []
    for index in range(subnet_count):
        static_ip_stacks.append(
            template.add_resource(
                Stack(
                    f"StaticIp{index}",
                    TemplateURL=common.get_template_s3_url(
                        Ref(artifact_bucket), static_ip_template
                    ),
                    Parameters={
                        "ServiceToken": GetAtt(interface_lookup_stack, "Outputs.ServiceToken"),
                        "FunctionArn": GetAtt(lambda_function_stack, "Outputs.FunctionArn"),
                        "SecurityGroupId": GetAtt(
                            lambda_function_stack, "Outputs.SecurityGroupId"
                        ),
                        "SubnetId": Select(
                            index, Split(",", GetAtt(vpc_stack, "Outputs.SubnetIds"))
                        ),
                        "ImageDigest": Ref(image_digest),
                        "RefreshToken": Ref(refresh_token),
                    },
                    DependsOn=[lambda_function_stack, interface_lookup_stack],
                    Condition=is_image_digest_defined,
                )
            )
        )

    template.add_output(
        Output(
            "ArtifactBucket",
            Value=Ref(artifact_bucket),
        )
    )

    template.add_output(
        Output(
            "ArtifactRepositoryUrl",
            Value=artifact_repository_url,
        )
    )

    template.add_output(
        Output(
            "FunctionName",
            Value=GetAtt(lambda_function_stack, "Outputs.FunctionName"),
            Condition=is_image_digest_defined,
        )
    )

    template.add_output(
        Output(
            "SecurityGroupId",
            Value=GetAtt(lambda_function_stack, "Outputs.SecurityGroupId"),
            Condition=is_image_digest_defined,
        )
    )

    template.add_output(
        Output(
            "SubnetIds",
            Value=GetAtt(vpc_stack, "Outputs.SubnetIds"),
            Condition=is_image_digest_defined,
        )
    )

    template.add_output(
        Output(
            "PublicIps",
            Value=Join(",", [GetAtt(stack, "Outputs.PublicIp") for stack in static_ip_stacks]),
            Condition=is_image_digest_defined,
        )
    )

    return template


def get_args(argv=None):
    parser = argparse.ArgumentParser(formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    parser.add_argument("--output-dir", type=pathlib.Path, default=pathlib.Path(".") / "templates")
    parser.add_argument(
        "--subnet-count",
        help="Number of public subnets, each gets its own static IP",
        type=positive_int,
        **env_optional("SUBNET_COUNT", DEFAULT_SUBNET_COUNT),
    )
    parser.add_argument(
        "--keep-alive-schedule",
        help="EventBridge schedule expression invoking the function, e.g. 'rate(1 day)'",
        **env_optional("KEEP_ALIVE_SCHEDULE"),
    )
    return parser.parse_args(argv)


def render_templates(subnet_count=DEFAULT_SUBNET_COUNT, keep_alive_schedule=None):
    primary_template = [
        (
            "primary.json",
            common.template_to_json(
                create_primary_template(subnet_count, keep_alive_schedule)
            ).encode("utf-8"),
        )
    ]
    return dict(itertools.chain(primary_template, common.template_registry.items()))


def main(argv=None):
    args = get_args(argv)
    args.output_dir.mkdir(parents=True, exist_ok=True)
    for filename, content in render_templates(args.subnet_count, args.keep_alive_schedule).items():
        print("*", filename)
        with (args.output_dir / filename).open("wb") as f:
            f.write(content)
