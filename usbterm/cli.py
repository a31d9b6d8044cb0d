"""Command line entry point.

Examples:
  usbterm                                  # the only USB serial port
  usbterm --target arduino                 # prefer ports with Arduino Uno IDs
  usbterm --port /dev/ttyACM1 --baud 9600
  usbterm --port /dev/ttyACM0,/dev/ttyACM1 # first of these that is present
  usbterm list                             # ports, USB IDs and matching targets

Exit with Ctrl-C, or Ctrl-X q when --disable-ctrl-c sends Ctrl-C to the device.
"""

from __future__ import annotations

import argparse
import signal
import sys
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, TextIO

from . import console
from .dispatcher import InputDispatcher, fd_reader
from .errors import UsbTermError
from .pump import ReconnectingPortPump, serial_opener
from .resolver import DeviceCandidate, list_candidates, resolve_port
from .targets import TargetSpec, fingerprints_for, load_targets, match_target
from .terminal import Teardown, TerminalSession, install_interrupt_handler

DEFAULT_BAUD = 115200


@dataclass
class SessionConfig:
    port: str
    baud: int
    target: str
    disable_ctrl_c: bool
    command: str


def _parse_args(argv: List[str]) -> SessionConfig:
    ap = argparse.ArgumentParser(prog="usbterm", description="Serial terminal that reconnects when the board resets")
    ap.add_argument("--port", default="", help="Serial port, or a comma-separated list of acceptable ports")
    ap.add_argument("--baud", type=int, default=DEFAULT_BAUD, help=f"Baud rate (default: {DEFAULT_BAUD})")
    ap.add_argument("--target", default="", help="Target name; ports with its USB IDs are preferred")
    ap.add_argument(
        "--disable-ctrl-c",
        action="store_true",
        help="Send Ctrl-C to the device instead of exiting (exit with Ctrl-X q)",
    )
    ap.add_argument("command", nargs="?", choices=("term", "list"), default="term")
    args = ap.parse_args(argv)
    return SessionConfig(
        port=args.port,
        baud=args.baud,
        target=args.target,
        disable_ctrl_c=args.disable_ctrl_c,
        command=args.command,
    )


def _fmt_id(value: Optional[int]) -> str:
    return "" if value is None else f"{value:04x}"


def show_ports(
    targets: Dict[str, TargetSpec],
    candidates: List[DeviceCandidate],
    out: TextIO,
) -> None:
    for c in candidates:
        target = match_target(targets, c.vid, c.pid) or ""
        out.write(f"{c.name} {_fmt_id(c.vid):>4} {_fmt_id(c.pid):>4} {target}".rstrip() + "\n")
    out.flush()


def run_session(
    cfg: SessionConfig,
    targets: Dict[str, TargetSpec],
    candidates: Optional[List[DeviceCandidate]] = None,
    opener: Optional[Callable] = None,
    stdin_fd: Optional[int] = None,
) -> None:
    if cfg.target and cfg.target not in targets:
        console.warn(f"unknown target {cfg.target!r}; not preferring any USB IDs")
    port = resolve_port(cfg.port, fingerprints_for(targets, cfg.target), candidates=candidates)

    if stdin_fd is None:
        stdin_fd = sys.stdin.fileno()

    pump = ReconnectingPortPump(port, opener or serial_opener(cfg.baud))
    pump.open()

    console.info(f"Connected to {port} @ {cfg.baud} baud.")
    if cfg.disable_ctrl_c:
        console.info("`Ctrl-x q` to exit")
    else:
        console.info("`Ctrl-c` or `Ctrl-x q` to exit")

    term = TerminalSession(stdin_fd)
    teardown = Teardown(term.restore, pump.close)
    previous_handler = None
    try:
        term.enter()
        previous_handler = install_interrupt_handler(teardown)
        pump.start()
        dispatcher = InputDispatcher(pump.write, forward_interrupt=cfg.disable_ctrl_c)
        dispatcher.run(fd_reader(stdin_fd))
    finally:
        teardown.run()
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)


def main(argv: Optional[List[str]] = None) -> int:
    cfg = _parse_args(sys.argv[1:] if argv is None else argv)
    try:
        # Descriptors are only needed to prefer or label ports.
        targets = load_targets() if (cfg.target or cfg.command == "list") else {}
        if cfg.command == "list":
            show_ports(targets, list_candidates(), sys.stdout)
        else:
            run_session(cfg, targets)
    except UsbTermError as e:
        console.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
