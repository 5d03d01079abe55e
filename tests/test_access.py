import logging

import pytest

from tinyserver.access import AdmissionMiddleware, Allowlist, validate_address
from tinyserver.models import Request, ResponseSpec


class SentinelHandler:
    def __init__(self):
        self.calls = []

    def handle(self, req):
        self.calls.append(req)
        return ResponseSpec(200, "OK")


def make_request(remote, target="/"):
    return Request(method="GET", target=target, path=target, version="HTTP/1.1", remote=remote)


@pytest.mark.parametrize("ip", ["127.0.0.1", "10.0.0.5", "192.168.1.254"])
@pytest.mark.parametrize("port", [0, 80, 54321])
def test_validate_strips_port(ip, port):
    assert validate_address(f"{ip}:{port}") == ip


@pytest.mark.parametrize("raw", ["not-an-ip:8080", "", "999.1.1.1:80", "localhost:80", "1.2.3:80"])
def test_validate_rejects_garbage(raw):
    assert validate_address(raw) is None


def test_validate_dotted_without_port():
    assert validate_address("10.1.2.3") == "10.1.2.3"


def test_validate_ipv6_is_bare_only():
    assert validate_address("::1") == "::1"
    assert validate_address("[::1]:8080") is None


def test_allowlist_from_spec():
    allowlist = Allowlist.from_spec("127.0.0.1 10.0.0.1")
    assert "127.0.0.1" in allowlist
    assert "10.0.0.1" in allowlist
    assert "10.0.0.2" not in allowlist
    assert len(allowlist) == 2


def test_allowlist_keeps_empty_tokens():
    allowlist = Allowlist.from_spec("1.1.1.1  2.2.2.2")
    assert allowlist.addresses == frozenset({"1.1.1.1", "", "2.2.2.2"})


def test_allowlist_is_immutable():
    allowlist = Allowlist.from_spec("127.0.0.1")
    with pytest.raises(AttributeError):
        allowlist.addresses = frozenset({"10.0.0.1"})
    assert isinstance(allowlist.addresses, frozenset)


def test_allowed_request_forwarded(caplog):
    caplog.set_level(logging.INFO)
    handler = SentinelHandler()
    mw = AdmissionMiddleware(handler, Allowlist.from_spec("127.0.0.1"))

    resp = mw.handle(make_request("127.0.0.1:54321"))

    assert resp.status == 200
    assert len(handler.calls) == 1
    assert "127.0.0.1:54321 /" in caplog.messages
    assert not any(m.startswith("rejected") for m in caplog.messages)


@pytest.mark.parametrize("remote", ["10.0.0.5:1000", "127.0.0.2:80", "garbage", "[::1]:80"])
def test_blocked_request_rejected(caplog, remote):
    caplog.set_level(logging.INFO)
    handler = SentinelHandler()
    mw = AdmissionMiddleware(handler, Allowlist.from_spec("127.0.0.1"))

    resp = mw.handle(make_request(remote))

    assert resp.status == 403
    assert resp.body == b"Blocked"
    assert resp.body_size == len(b"Blocked")
    assert handler.calls == []
    assert f"rejected  {remote}" in caplog.messages


def test_failed_validation_never_matches_empty_member():
    handler = SentinelHandler()
    mw = AdmissionMiddleware(handler, Allowlist.from_spec(" 127.0.0.1"))

    resp = mw.handle(make_request("not-an-ip:8080"))

    assert resp.status == 403
    assert handler.calls == []


def test_log_line_uses_raw_target(caplog):
    caplog.set_level(logging.INFO)
    mw = AdmissionMiddleware(SentinelHandler(), Allowlist.from_spec("10.0.0.5"))

    mw.handle(make_request("10.0.0.5:1000", target="/a%20b?x=1"))

    assert "10.0.0.5:1000 /a%20b?x=1" in caplog.messages
