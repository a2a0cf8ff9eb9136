"""
Recognizing beacon requests and reading their query parameters.

Everything here runs for each request passing through the proxy, so it must be cheap
and must not raise for any input.
"""

from typing import NamedTuple
from urllib.parse import parse_qsl
from urllib.parse import urlsplit

from mitmproxy import http

TARGET_HOST = "metrics.alfabank.ru"
PATH_SEGMENT = "/metrica/"
PATH_SUFFIX = "/i"

DEFAULT_PORTS = {"http": 80, "https": 443}


class RequestInfo(NamedTuple):
    url: str
    document_url: str = ""
    resource_type: str = ""

    @classmethod
    def from_flow(cls, flow: http.HTTPFlow) -> "RequestInfo":
        """
        Describe an intercepted request. Browsers tell us the page a request
        originates from in the Referer (or Origin) header and the kind of
        resource in Sec-Fetch-Dest.
        """
        headers = flow.request.headers
        return cls(
            url=flow.request.pretty_url,
            document_url=headers.get("referer") or headers.get("origin") or "",
            resource_type=headers.get("sec-fetch-dest", ""),
        )


class BeaconParams(NamedTuple):
    eid: str = ""
    e: str = ""
    se_ca: str = ""
    se_ac: str = ""
    se_la: str = ""
    url: str = ""
    refr: str = ""
    p: str = ""
    aid: str = ""
    uid: str = ""
    cx: str = ""


def _authority(scheme: str, hostname: str, port: int | None) -> str:
    if port is None or DEFAULT_PORTS.get(scheme) == port:
        return hostname
    return f"{hostname}:{port}"


def matches(url: str, host: str = TARGET_HOST) -> bool:
    """
    Check whether url is a beacon request to host: https, the given host,
    a path containing PATH_SEGMENT and ending with PATH_SUFFIX.
    """
    try:
        parts = urlsplit(url)
        if parts.scheme != "https" or not parts.hostname:
            return False
        if _authority(parts.scheme, parts.hostname, parts.port) != host.lower():
            return False
    except ValueError:
        # invalid IPv6 literals, out-of-range ports, ...
        return False
    return PATH_SEGMENT in parts.path and parts.path.endswith(PATH_SUFFIX)


def parse_params(url: str) -> BeaconParams:
    """
    Read the beacon parameters from the query string of url.
    The first occurrence of a parameter wins, absent parameters are empty strings.
    """
    try:
        query = urlsplit(url).query
    except ValueError:
        return BeaconParams()

    found: dict[str, str] = {}
    for key, value in parse_qsl(query, keep_blank_values=True):
        if key in BeaconParams._fields and key not in found:
            found[key] = value
    return BeaconParams(**found)
