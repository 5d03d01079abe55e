import os
import socket
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, TextIO, Tuple

from . import NAME, VERSION
from .access import ALLOW_SEPARATOR, Allowlist
from .errors import ConfigError, StartupError

CONF_NAME = "server.conf"
DEFAULT_LISTEN = "127.0.0.1:8080"
DEFAULT_ALLOW = "127.0.0.1"

CONF_TEMPLATE = """# generated by: {name} {version}
# date: {date}
# for static file server

## list of allow remote IP address
#allow=127.0.0.1
#allow=192.168.1.x

## specify listen port
#port=:8080
# or
# accept localhost only
#port=127.0.0.1:8080

## specify root directory
#root=public
"""


@dataclass(frozen=True)
class Options:
    port: str = DEFAULT_LISTEN
    root: str = ""
    allow: str = DEFAULT_ALLOW
    conf: str = ""
    version: bool = False
    gen_conf: bool = False
    workers: int = 4
    debug: bool = False


@dataclass(frozen=True)
class Resolution:
    options: Options
    allowlist: Allowlist
    warnings: Tuple[str, ...] = ()
    ignored: Tuple[Tuple[int, str], ...] = ()


@dataclass(frozen=True)
class Config:
    host: str = "127.0.0.1"
    port: int = 8080
    root: str = "."
    allowlist: Allowlist = field(default_factory=Allowlist)
    workers: int = 4
    queue_size: int = 1000
    backlog: int = 128
    recv_timeout: float = 2.0
    accept_timeout: float = 1.0
    max_header_bytes: int = 65536
    chunk_size: int = 64 * 1024

    @classmethod
    def from_options(cls, options: Options, allowlist: Allowlist) -> "Config":
        host, port = parse_listen_address(options.port)
        return cls(host=host, port=port, root=options.root, allowlist=allowlist, workers=options.workers)


def discover_config_path() -> str:
    if os.path.isfile(CONF_NAME):
        return CONF_NAME
    try:
        home = Path.home()
    except (KeyError, RuntimeError):
        return CONF_NAME
    return str(home / CONF_NAME)


def parse_listen_address(address: str) -> Tuple[str, int]:
    """Split "host:port" or ":port" into a bind tuple."""
    host, sep, port = address.rpartition(":")
    if not sep:
        raise StartupError(f"missing port in address: {address!r}")
    host = host.strip("[]")
    if port.isdigit():
        number = int(port)
    else:
        try:
            number = socket.getservbyname(port, "tcp")
        except OSError:
            raise StartupError(f"unknown port: {port!r}") from None
    if not 0 <= number <= 65535:
        raise StartupError(f"invalid port: {number}")
    return host, number


def resolve(
    port: str = DEFAULT_LISTEN,
    root: str = "",
    allow: str = DEFAULT_ALLOW,
    conf: Optional[str] = None,
    positional: Sequence[str] = (),
    version: bool = False,
    gen_conf: bool = False,
    workers: int = 4,
    debug: bool = False,
) -> Resolution:
    """
    Merge command line values with the config file into one Resolution.

    The config file overrides port and root. Its allow= lines replace the
    command line allow list as soon as the file opens, they are never
    merged with it. A single positional argument wins over every root.
    """
    warnings: List[str] = []
    ignored: List[Tuple[int, str]] = []

    if conf is None:
        conf = discover_config_path()

    if conf:
        try:
            f = open(conf, encoding="utf-8", errors="replace")
        except OSError as e:
            warnings.append(str(e))
        else:
            allow_lines: List[str] = []
            with f:
                port, root = _scan_config(f, allow_lines, port, root, ignored)
            allow = ALLOW_SEPARATOR.join(allow_lines)

    if len(positional) == 1:
        root = positional[0]
    elif len(positional) > 1:
        raise ConfigError(f"invalid argument: {list(positional)}")

    if not root:
        try:
            root = os.getcwd()
        except OSError as e:
            raise ConfigError(f"cannot determine working directory: {e}") from e

    options = Options(
        port=port,
        root=root,
        allow=allow,
        conf=conf,
        version=version,
        gen_conf=gen_conf,
        workers=workers,
        debug=debug,
    )
    return Resolution(
        options=options,
        allowlist=Allowlist.from_spec(allow),
        warnings=tuple(warnings),
        ignored=tuple(ignored),
    )


def _scan_config(f: TextIO, allow: List[str], port: str, root: str, ignored: List[Tuple[int, str]]) -> Tuple[str, str]:
    for lineno, raw in enumerate(f, 1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("allow="):
            allow.append(line[len("allow="):])
        elif line.startswith("port="):
            port = line[len("port="):]
        elif line.startswith("root="):
            root = line[len("root="):]
        else:
            ignored.append((lineno, line))
    return port, root


def write_config_template(out: TextIO, date: str) -> None:
    out.write(CONF_TEMPLATE.format(name=NAME, version=VERSION, date=date))
