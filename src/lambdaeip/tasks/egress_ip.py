import logging
import urllib.request

logger = logging.getLogger(__name__)

CHECKIP_URL = "https://checkip.amazonaws.com"


def get_public_ip(url=CHECKIP_URL, *, timeout=5):
    with urllib.request.urlopen(urllib.request.Request(method="GET", url=url), timeout=timeout) as response:
        return response.read().decode("utf-8").strip()


def handler(event):
    event = event or {}
    public_ip = get_public_ip()
    if event.get("keepalive"):
        logger.info("Keep-alive invocation, egress address %s", public_ip)
    else:
        logger.info("Egress address %s", public_ip)
    return {
        "PublicIp": public_ip,
        "KeepAlive": bool(event.get("keepalive")),
    }
