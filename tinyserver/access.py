import ipaddress
import logging
from dataclasses import dataclass
from typing import FrozenSet, Optional

from .models import Request, RequestHandler, ResponseSpec, text_response

logger = logging.getLogger(__name__)

ALLOW_SEPARATOR = " "


@dataclass(frozen=True)
class Allowlist:
    addresses: FrozenSet[str] = frozenset()

    @classmethod
    def from_spec(cls, spec: str, sep: str = ALLOW_SEPARATOR) -> "Allowlist":
        # every token goes in, empty ones included
        return cls(frozenset(spec.split(sep)))

    def __contains__(self, ip: object) -> bool:
        return ip in self.addresses

    def __len__(self) -> int:
        return len(self.addresses)


def _is_ip(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def validate_address(address: str) -> Optional[str]:
    """
    Return the bare IP of a transport endpoint such as "10.0.0.5:1000",
    or None when it does not parse.

    Only dotted endpoints get their port stripped. Anything else must be a
    bare IP already, so IPv6 forms like "[::1]:8080" are unsupported.
    """
    if "." in address:
        host, sep, _ = address.rpartition(":")
        if not sep:
            host = address
        return host if _is_ip(host) else None

    return address if _is_ip(address) else None


class AdmissionMiddleware:
    def __init__(self, handler: RequestHandler, allowlist: Allowlist) -> None:
        self.handler = handler
        self.allowlist = allowlist

    def handle(self, req: Request) -> ResponseSpec:
        logger.info("%s %s", req.remote, req.target)

        ip = validate_address(req.remote)
        if ip is not None and ip in self.allowlist:
            return self.handler.handle(req)

        logger.warning("rejected  %s", req.remote)
        return text_response(403, "Forbidden", "Blocked", headers={"X-Content-Type-Options": "nosniff"})
