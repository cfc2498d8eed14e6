import argparse
import contextlib
import importlib
import json
import logging
import os
import sys
import urllib.request
from typing import Callable, Dict, Optional

RUNTIME_API_VERSION = "2018-06-01"

logger = logging.getLogger(__name__)


def make_http_request(method, url, *, data=None, headers=None):
    return urllib.request.urlopen(
        urllib.request.Request(
            method=method,
            url=url,
            data=data,
            headers=headers or {},
        )
    )


def error_url(endpoint: str, request_id: Optional[str]) -> str:
    if request_id:
        return f"{endpoint}/invocation/{request_id}/error"
    return f"{endpoint}/init/error"


@contextlib.contextmanager
def report_error(endpoint: str, request_id: Optional[str] = None):
    try:
        yield
    except Exception as ex:
        logger.exception("Invocation %s failed", request_id or "init")
        make_http_request(
            method="POST",
            url=error_url(endpoint, request_id),
            data=json.dumps({"errorType": type(ex).__qualname__, "errorMessage": str(ex)}).encode(
                "utf-8"
            ),
            headers={"Lambda-Runtime-Function-Error-Type": "Unhandled"},
        )
        if request_id is None:
            sys.exit(1)


def load_handler(handler_path: str) -> Callable:
    module_name, callable_name = handler_path.split(":", 1)
    return getattr(importlib.import_module(module_name), callable_name)


def handle_next_invocation(endpoint: str, handler: Callable) -> str:
    invocation = make_http_request("GET", f"{endpoint}/invocation/next")
    request_id = invocation.headers["Lambda-Runtime-Aws-Request-Id"]
    with report_error(endpoint, request_id):
        response = json.dumps(handler(json.loads(invocation.read())))
        make_http_request(
            "POST",
            f"{endpoint}/invocation/{request_id}/response",
            data=response.encode("utf-8"),
        )
    return request_id


def configure_logging(environment: Dict[str, str]):
    logging.basicConfig(
        level=environment.get("LAMBDAEIP_LOG_LEVEL", "INFO").upper(),
        format="%(levelname)s %(name)s %(message)s",
        stream=sys.stdout,
    )


def get_args(argv=None):
    parser = argparse.ArgumentParser()
    parser.add_argument("handler", help="Handler to serve, as module:callable")
    return parser.parse_args(argv)


def main(*, environment: Dict[str, str] = os.environ):
    args = get_args()
    configure_logging(environment)
    endpoint = f"http://{environment['AWS_LAMBDA_RUNTIME_API']}/{RUNTIME_API_VERSION}/runtime"
    with report_error(endpoint):
        handler = load_handler(args.handler)
    logger.info("Serving %s", args.handler)
    while True:
        handle_next_invocation(endpoint, handler)


if __name__ == "__main__":
    main()
