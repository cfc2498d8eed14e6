import hashlib

from awacs import logs, sts
from awacs.aws import Allow, PolicyDocument, Principal, Statement
from troposphere import GetAtt, Join, Ref
from troposphere.awslambda import Code, Function, ImageConfig
from troposphere.iam import PolicyType, Role
from troposphere.logs import LogGroup

template_registry = {}

LOG_RETENTION_DAYS = 7


def template_to_json(template):
    return template.to_json(indent=None, sort_keys=True, separators=(",", ":"))


def hash_template(template):
    return hashlib.sha256(template_to_json(template).encode("utf-8")).hexdigest()


def get_template_s3_url(artifact_bucket, template, *, _registry=template_registry):
    sha256 = hash_template(template)
    filename = f"{sha256}.json"
    _registry[filename] = template_to_json(template).encode("utf-8")
    return Join(
        "/",
        ["https://s3.amazonaws.com", artifact_bucket, filename],
    )


def handler_command(handler):
    return Join(":", [handler.__module__, handler.__name__])


def add_lambda_role(template, title="Role", **kwargs):
    return template.add_resource(
        Role(
            title,
            AssumeRolePolicyDocument=PolicyDocument(
                Version="2012-10-17",
                Statement=[
                    Statement(
                        Effect=Allow,
                        Action=[sts.AssumeRole],
                        Principal=Principal("Service", "lambda.amazonaws.com"),
                    ),
                ],
            ),
            **kwargs,
        )
    )


def add_image_function(template, title, *, role, image_uri, handler, **kwargs):
    """Add an image-packaged function running ``handler`` and its log group.

    The image entrypoint is the custom runtime; the command names the handler.
    """
    function = template.add_resource(
        Function(
            title,
            Role=GetAtt(role, "Arn"),
            PackageType="Image",
            Code=Code(
                ImageUri=image_uri,
            ),
            ImageConfig=ImageConfig(
                Command=[handler_command(handler)],
            ),
            **kwargs,
        )
    )

    log_group = template.add_resource(
        LogGroup(
            f"{title}Logs",
            LogGroupName=Join("/", ["/aws/lambda", Ref(function)]),
            RetentionInDays=LOG_RETENTION_DAYS,
        )
    )

    return function, log_group


def add_role_policy(template, role, log_group, statements=(), title="Policy"):
    return template.add_resource(
        PolicyType(
            title,
            PolicyName=Ref(role),
            PolicyDocument=PolicyDocument(
                Version="2012-10-17",
                Statement=[
                    Statement(
                        Effect=Allow,
                        Action=[logs.PutLogEvents, logs.CreateLogStream],
                        Resource=[GetAtt(log_group, "Arn")],
                    ),
                    *statements,
                ],
            ),
            Roles=[Ref(role)],
        )
    )
