import argparse
import json
import sys
from typing import Collection, Dict, List, NamedTuple, Optional

from .deploy import create_session, get_stack_outputs
from .tasks.network_interface_lookup import list_function_interfaces

STATUS_OK = "ok"
STATUS_MISSING = "missing"
STATUS_AMBIGUOUS = "ambiguous"
STATUS_UNASSOCIATED = "unassociated"


class SubnetReport(NamedTuple):
    subnet_id: str
    status: str
    network_interface_ids: List[str]
    public_ip: Optional[str]


def inspect_subnet(ec2, security_group_id: str, subnet_id: str, expected_ips: Collection[str]):
    interfaces = list_function_interfaces(ec2, security_group_id, subnet_id)
    interface_ids = [interface["NetworkInterfaceId"] for interface in interfaces]
    if not interfaces:
        # Lambda reclaims interfaces of functions left idle for long enough
        return SubnetReport(subnet_id, STATUS_MISSING, interface_ids, None)
    if len(interfaces) > 1:
        return SubnetReport(subnet_id, STATUS_AMBIGUOUS, interface_ids, None)
    public_ip = interfaces[0].get("Association", {}).get("PublicIp")
    if public_ip is None or public_ip not in expected_ips:
        return SubnetReport(subnet_id, STATUS_UNASSOCIATED, interface_ids, public_ip)
    return SubnetReport(subnet_id, STATUS_OK, interface_ids, public_ip)


def inspect_stack(ec2, outputs: Dict[str, str]) -> List[SubnetReport]:
    try:
        security_group_id = outputs["SecurityGroupId"]
        subnet_ids = outputs["SubnetIds"].split(",")
    except KeyError as ex:
        raise LookupError(f"Stack output {ex} missing, has the image been deployed?") from ex
    expected_ips = set(filter(None, outputs.get("PublicIps", "").split(",")))
    return [
        inspect_subnet(ec2, security_group_id, subnet_id, expected_ips) for subnet_id in subnet_ids
    ]


def invoke_function(lambda_client, function_name: str) -> dict:
    response = lambda_client.invoke(FunctionName=function_name, Payload=b"{}")
    payload = json.loads(response["Payload"].read())
    if "FunctionError" in response:
        raise RuntimeError(f"Function {function_name} failed: {payload}")
    return payload


def get_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Verify every subnet's Lambda interface still holds its static IP",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--stack-name", required=True)
    parser.add_argument("--region", help="AWS region to use")
    parser.add_argument("--profile", help="Use a specific profile from your AWS configuration file")
    parser.add_argument(
        "--invoke",
        action="store_true",
        help="Invoke the function first and report the egress IP it sees",
    )
    return parser.parse_args(argv)


def main(argv=None):
    args = get_args(argv)
    session = create_session(args.region, args.profile)
    outputs = get_stack_outputs(session.client("cloudformation"), args.stack_name)

    if args.invoke:
        payload = invoke_function(session.client("lambda"), outputs["FunctionName"])
        print(f"Function egress IP: {payload.get('PublicIp')}")

    reports = inspect_stack(session.client("ec2"), outputs)
    for report in reports:
        print(
            "*",
            report.subnet_id,
            report.status,
            ",".join(report.network_interface_ids) or "-",
            report.public_ip or "-",
        )

    if any(report.status != STATUS_OK for report in reports):
        print("Invoke the function, then redeploy with --refresh-interfaces to re-associate")
        sys.exit(1)


if __name__ == "__main__":
    main()
