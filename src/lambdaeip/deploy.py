import argparse
import base64
import json
import pathlib
import subprocess
import tempfile
import uuid
from typing import Dict, Optional, Tuple

import boto3

from .config import env_default

CAPABILITIES = ["CAPABILITY_IAM"]
NO_UPDATES_MESSAGE = "No updates are to be performed"


def get_args(argv=None):
    parser = argparse.ArgumentParser(formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    parser.add_argument("--stack-name", required=True)
    parser.add_argument("--region", help="AWS region to use")
    parser.add_argument("--profile", help="Use a specific profile from your AWS configuration file")
    parser.add_argument(
        "--template-path",
        help="Directory of hash-addressed CloudFormation templates",
        type=pathlib.Path,
        **env_default("TEMPLATE_PATH"),
    )
    parser.add_argument(
        "--primary-template-path",
        help="Path to CloudFormation template used for root stack",
        type=pathlib.Path,
        **env_default("PRIMARY_TEMPLATE_PATH"),
    )
    parser.add_argument(
        "--image-generator",
        help="Executable that outputs a container image tarball on stdout",
        type=pathlib.Path,
        **env_default("IMAGE_GENERATOR"),
    )
    parser.add_argument(
        "--refresh-interfaces",
        action="store_true",
        help="Look up the function's network interfaces again even if the image is unchanged",
    )
    return parser.parse_args(argv)


def create_session(region: Optional[str], profile: Optional[str]) -> boto3.Session:
    session_kwargs = {}
    if region is not None:
        session_kwargs["region_name"] = region
    if profile is not None:
        session_kwargs["profile_name"] = profile
    return boto3.Session(**session_kwargs)


def stack_exists(cloudformation, stack_name: str) -> bool:
    try:
        response = cloudformation.describe_stacks(StackName=stack_name)
    except cloudformation.exceptions.ClientError:
        return False
    return bool(response["Stacks"])


def get_stack_outputs(cloudformation, stack_name: str) -> Dict[str, str]:
    try:
        response = cloudformation.describe_stacks(StackName=stack_name)
    except cloudformation.exceptions.ClientError as ex:
        raise LookupError(f"Stack {stack_name!r} not found") from ex
    for stack in response["Stacks"]:
        return {output["OutputKey"]: output["OutputValue"] for output in stack.get("Outputs", [])}
    raise LookupError(f"Stack {stack_name!r} not found")


def get_ecr_credentials(ecr) -> Tuple[str, str]:
    response = ecr.get_authorization_token()
    for auth_data in response["authorizationData"]:
        username, password = (
            base64.b64decode(auth_data["authorizationToken"]).decode("utf-8").split(":", 1)
        )
        return username, password
    raise LookupError("ECR credentials not found")


def run_subprocess(args):
    return subprocess.run(args, stdout=subprocess.PIPE, encoding="utf-8", check=True)


def bootstrap_stack(cloudformation, stack_name: str, primary_template_path: pathlib.Path):
    print("Creating CloudFormation stack to bootstrap")
    with primary_template_path.open("r") as f:
        response = cloudformation.create_stack(
            StackName=stack_name,
            TemplateBody=f.read(),
            Capabilities=CAPABILITIES,
            OnFailure="DELETE",
        )
    print("Waiting for stack creation to complete")
    cloudformation.get_waiter("stack_create_complete").wait(StackName=response["StackId"])


def upload_templates(bucket, template_path: pathlib.Path):
    print(f"Uploading templates to s3://{bucket.name}")
    for path_entry in sorted(template_path.glob("**/*")):
        if path_entry.is_file():
            with path_entry.open("rb") as f:
                key = str(path_entry.relative_to(template_path))
                print("*", key)
                bucket.Object(key).upload_fileobj(f)


def publish_image(ecr, image_generator: pathlib.Path, repository_url: str) -> str:
    """Build the image, push it to ECR and return its digest."""
    with tempfile.TemporaryDirectory(prefix=f"{__package__}.") as temp_dir:
        temp_path = pathlib.Path(temp_dir)

        print("Generating container image")
        image_path = (temp_path / "image.tar").resolve()
        with image_path.open("wb") as f:
            subprocess.run([image_generator], stdout=f, stderr=subprocess.PIPE, check=True)

        print("Packing container image")
        canonical_image_path = (temp_path / "canonical-image").resolve()
        run_subprocess(
            [
                "skopeo",
                "copy",
                f"docker-archive:{image_path}",
                f"dir:{canonical_image_path}",
                "--insecure-policy",
                "--dest-compress",
            ]
        )

        process = run_subprocess(["skopeo", "inspect", f"dir:{canonical_image_path}"])
        image_digest = json.loads(process.stdout)["Digest"]

        print(f"Uploading container image to docker://{repository_url}")
        print("*", image_digest)
        username, password = get_ecr_credentials(ecr)
        run_subprocess(
            [
                "skopeo",
                "copy",
                f"dir:{canonical_image_path}",
                f"docker://{repository_url}:latest",
                "--insecure-policy",
                "--dest-creds",
                f"{username}:{password}",
            ]
        )
    return image_digest


def refresh_token_parameter(refresh_token: Optional[str]) -> Dict[str, object]:
    if refresh_token is None:
        return {"ParameterKey": "RefreshToken", "UsePreviousValue": True}
    return {"ParameterKey": "RefreshToken", "ParameterValue": refresh_token}


def update_stack(
    cloudformation,
    stack_name: str,
    template_url: str,
    image_digest: str,
    refresh_token: Optional[str] = None,
):
    print("Updating CloudFormation stack")
    try:
        response = cloudformation.update_stack(
            StackName=stack_name,
            TemplateURL=template_url,
            Parameters=[
                {
                    "ParameterKey": "ImageDigest",
                    "ParameterValue": image_digest,
                },
                refresh_token_parameter(refresh_token),
            ],
            Capabilities=CAPABILITIES,
        )
    except cloudformation.exceptions.ClientError as ex:
        if NO_UPDATES_MESSAGE not in str(ex):
            raise
        print("Stack is already up to date")
        return
    print("Waiting for stack update to complete")
    cloudformation.get_waiter("stack_update_complete").wait(StackName=response["StackId"])


def main(argv=None):
    args = get_args(argv)
    session = create_session(args.region, args.profile)

    cloudformation = session.client("cloudformation")
    if not stack_exists(cloudformation, args.stack_name):
        bootstrap_stack(cloudformation, args.stack_name, args.primary_template_path)
    outputs = get_stack_outputs(cloudformation, args.stack_name)

    bucket = session.resource("s3").Bucket(outputs["ArtifactBucket"])
    upload_templates(bucket, args.template_path)

    image_digest = publish_image(
        session.client("ecr"), args.image_generator, outputs["ArtifactRepositoryUrl"]
    )

    s3_artifact_path = args.primary_template_path.relative_to(args.template_path)
    update_stack(
        cloudformation,
        args.stack_name,
        f"https://{outputs['ArtifactBucket']}.s3.amazonaws.com/{s3_artifact_path}",
        image_digest,
        refresh_token=str(uuid.uuid4()) if args.refresh_interfaces else None,
    )

    outputs = get_stack_outputs(cloudformation, args.stack_name)
    print("Static egress IPs")
    for public_ip in outputs.get("PublicIps", "").split(","):
        if public_ip:
            print("*", public_ip)


if __name__ == "__main__":
    main()
