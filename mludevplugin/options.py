"""Command-line options of the MLU device plugin."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from typing import Mapping, Sequence

from .constants import BEST_EFFORT, MODE_DEFAULT, MODES, POLICIES

log = logging.getLogger(__name__)


@dataclass
class Options:
    mode: str = MODE_DEFAULT
    mlu_link_policy: str = BEST_EFFORT
    virtualization_num: int = 1
    disable_health_check: bool = False
    node_name: str = ""
    enable_console: bool = False
    enable_device_type: bool = False
    cnmon_path: str = ""
    socket_path: str = ""


class _Parser(argparse.ArgumentParser):
    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _uint(text: str) -> int:
    try:
        value = int(text, 10)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid unsigned integer {text!r}") from None
    if value < 0:
        raise argparse.ArgumentTypeError(f"invalid unsigned integer {text!r}")
    return value


def _build_parser(environ: Mapping[str, str]) -> argparse.ArgumentParser:
    parser = _Parser(prog="mlu-device-plugin", allow_abbrev=False)
    parser.add_argument("--mode", choices=MODES, default=MODE_DEFAULT,
                        help="device plugin mode")
    parser.add_argument("--mlulink-policy", dest="mlu_link_policy", choices=POLICIES,
                        default=BEST_EFFORT, help="MLULink topology policy")
    parser.add_argument("--virtualization-num", type=_uint,
                        default=environ.get("VIRTUALIZATION_NUM", "1"),
                        help="the virtualization number for each MLU, used only in "
                             "sriov mode or env-share mode [$VIRTUALIZATION_NUM]")
    parser.add_argument("--disable-health-check", action="store_true",
                        help="disable MLU health check")
    parser.add_argument("--node-name", default=environ.get("NODE_NAME", ""),
                        help="host node name [$NODE_NAME]")
    parser.add_argument("--enable-console", action="store_true",
                        help="enable UART console device(/dev/ttyMS) in container")
    parser.add_argument("--enable-device-type", action="store_true",
                        help="enable device registration with type info")
    parser.add_argument("--cnmon-path", default="", help="host cnmon path")
    parser.add_argument("--socket-path", default="",
                        help="socket path for communication between deviceplugin "
                             "and container runtime")
    return parser


def parse_flags(argv: Sequence[str] | None = None,
                environ: Mapping[str, str] | None = None) -> Options:
    """Parse the plugin's flags; exits with 0 on --help and 1 on bad input."""
    args = list(sys.argv[1:] if argv is None else argv)
    env = os.environ if environ is None else environ
    for index, arg in enumerate(args):
        if arg.startswith("-mode"):
            args[index] = arg.replace("-mode", "--mode", 1)
            break
    if env.get("DP_DISABLE_HEALTHCHECKS") == "all":
        args.append("--disable-health-check")
    namespace = _build_parser(env).parse_args(args)
    options = Options(**vars(namespace))
    log.info("Parsed options: %s", options)
    return options