from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol


@dataclass(frozen=True)
class Request:
    method: str
    target: str
    path: str
    version: str
    headers: Dict[str, str] = field(default_factory=dict)
    remote: str = ""


@dataclass(frozen=True)
class ResponseSpec:
    status: int
    reason: str
    headers: Dict[str, str] = field(default_factory=dict)
    body_path: Optional[str] = None
    body: bytes = b""
    body_size: int = 0


def text_response(status: int, reason: str, text: str, headers: Optional[Dict[str, str]] = None) -> ResponseSpec:
    body = text.encode("utf-8")
    hdrs = {"Content-Type": "text/plain; charset=utf-8"}
    if headers:
        hdrs.update(headers)
    return ResponseSpec(status, reason, headers=hdrs, body=body, body_size=len(body))


class RequestHandler(Protocol):
    def handle(self, req: Request) -> ResponseSpec: ...
