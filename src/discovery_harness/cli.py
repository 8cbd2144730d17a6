"""
Discovery harness command line.

Exposes the building blocks of the harness for use from CI scripts and
for debugging a broken environment by hand.

Usage:
    discovery-harness probe
    discovery-harness patch-hosts mesos-slave 172.17.0.5
    discovery-harness wait-url http://127.0.0.1:8000/service --status 200 --timeout 60
    discovery-harness summary
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from .config import HarnessConfig
from .containment import probe_from_mode
from .errors import HarnessError
from .hosts import HostResolutionPatcher, HostsFileWriter
from .polling import get_request, status_code_is

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure root logging on stderr."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root_logger.addHandler(console_handler)

    return logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="discovery-harness",
        description="Integration harness for service-discovery driven reverse proxies",
    )
    parser.add_argument("--log-level", help="Override LOG_LEVEL")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("probe", help="Report whether this process runs inside a container")

    patch = commands.add_parser("patch-hosts", help="Map a hostname to an IP if containerized")
    patch.add_argument("hostname")
    patch.add_argument("ip_address")

    wait = commands.add_parser("wait-url", help="Poll a URL until it returns a status code")
    wait.add_argument("url")
    wait.add_argument("--status", type=int, default=200)
    wait.add_argument("--timeout", type=float, default=60.0)

    commands.add_parser("summary", help="Print the effective configuration")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = HarnessConfig.from_environment()
        setup_logging(args.log_level or config.log_level)

        if args.command == "probe":
            state = probe_from_mode(config.containment, config.cgroup_file).state()
            print(state.value)
        elif args.command == "patch-hosts":
            patcher = HostResolutionPatcher(
                probe_from_mode(config.containment, config.cgroup_file),
                HostsFileWriter(config.hosts_file),
            )
            mapping = patcher.extend(args.hostname, args.ip_address)
            if mapping is None:
                print("skipped (not containerized)")
            else:
                print(mapping.to_line(), end="")
        elif args.command == "wait-url":
            response = get_request(
                args.url,
                args.timeout,
                status_code_is(args.status),
                interval=config.poll_interval,
            )
            print(response.status_code)
        elif args.command == "summary":
            print(json.dumps(config.get_startup_summary(), indent=2))
    except (HarnessError, OSError, ValueError) as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
