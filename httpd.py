import argparse
import logging
import os
import stat
import sys
from datetime import date

from tinyserver import NAME, VERSION
from tinyserver.config import DEFAULT_ALLOW, DEFAULT_LISTEN, Config, resolve, write_config_template
from tinyserver.errors import StartupError, TinyServerError
from tinyserver.server import ThreadedHTTPServer as Server

logger = logging.getLogger(NAME)

BANNER = """[simple file server running]
options:
\tport: {port}
\troot: {root}
\tallow: {allow}
push ctrl-c then stopped"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=NAME, description="A static file server for allowed addresses only")
    parser.add_argument("-version", "--version", action="store_true", help="show version")
    parser.add_argument("-port", "--port", type=str, default=DEFAULT_LISTEN, help="listen address")
    parser.add_argument("-root", "--root", type=str, default="", help="specify serv root")
    parser.add_argument("-allow", "--allow", type=str, default=DEFAULT_ALLOW, help="allow address list. separator is space")
    parser.add_argument("-conf", "--conf", type=str, default=None, help="path to configuration file")
    parser.add_argument("-gen-conf", "--gen-conf", dest="gen_conf", action="store_true", help="generate configuration file to stdout")
    parser.add_argument("-workers", "--workers", type=int, default=4, help="number of worker threads")
    parser.add_argument("-debug", "--debug", action="store_true", help="enable debug logging")
    parser.add_argument("paths", nargs="*", metavar="root", help="serv root, overrides -root and the config file")
    return parser


def configure_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=f"[{NAME} {VERSION}]:%(asctime)s %(message)s",
        datefmt="%Y/%m/%d %H:%M:%S",
    )


def check_root(root: str) -> None:
    try:
        st = os.stat(root)
    except OSError as e:
        raise StartupError(str(e)) from e
    if not stat.S_ISDIR(st.st_mode):
        raise StartupError(f"is not directory: {root}")


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.debug)

    try:
        resolution = resolve(
            port=args.port,
            root=args.root,
            allow=args.allow,
            conf=args.conf,
            positional=args.paths,
            version=args.version,
            gen_conf=args.gen_conf,
            workers=args.workers,
            debug=args.debug,
        )
    except TinyServerError as e:
        logger.critical("%s", e)
        return 1

    for warning in resolution.warnings:
        logger.warning("%s", warning)
    for lineno, line in resolution.ignored:
        logger.debug("%s:%d: ignored %r", resolution.options.conf, lineno, line)

    opt = resolution.options
    if opt.version:
        print(f"{NAME} version {VERSION}")
        return 0

    if opt.gen_conf:
        write_config_template(sys.stdout, date.today().isoformat())
        return 0

    try:
        check_root(opt.root)
        config = Config.from_options(opt, resolution.allowlist)
    except TinyServerError as e:
        logger.critical("%s", e)
        return 1

    logger.info(BANNER.format(port=opt.port, root=opt.root, allow=opt.allow))

    server = Server(config)
    try:
        server.run()
    except KeyboardInterrupt:
        server.stop()
    except OSError as e:
        logger.critical("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
