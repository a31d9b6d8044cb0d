"""Pick the serial port to open.

Policy, in order:

  - a single --port value is used as given, even if the OS does not list it
  - otherwise USB serial ports are split into those matching the target's
    fingerprints (primary) and all others (secondary)
  - exactly one primary port wins outright, even with other adapters attached
  - several primary ports (e.g. two boards of the same type) or, failing
    that, the secondary ports form the candidate pool
  - a comma-separated --port list picks the first listed name in the pool
  - without a list, the pool must hold exactly one port
"""

from __future__ import annotations

import glob as _glob
import sys
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence

from serial.tools import list_ports

from .errors import AmbiguousPort, NoPortFound, PortNotFound, UnsupportedPlatform
from .targets import Fingerprint


@dataclass(frozen=True)
class DeviceCandidate:
    name: str
    vid: Optional[int] = None
    pid: Optional[int] = None
    is_usb: bool = False
    description: str = ""


def list_candidates() -> List[DeviceCandidate]:
    out = []
    for p in list_ports.comports():
        # pyserial only fills in vid/pid for USB devices.
        out.append(
            DeviceCandidate(
                name=p.device,
                vid=p.vid,
                pid=p.pid,
                is_usb=p.vid is not None,
                description=p.description or "",
            )
        )
    return out


def split_port_spec(port_spec: Optional[str]) -> List[str]:
    return [s for s in (port_spec or "").split(",") if s]


def partition_candidates(
    candidates: Iterable[DeviceCandidate], fingerprints: Sequence[Fingerprint]
) -> tuple[List[str], List[str]]:
    primary: List[str] = []
    secondary: List[str] = []
    for c in candidates:
        if not c.is_usb:
            continue
        if c.vid is not None and c.pid is not None and any(fp.matches(c.vid, c.pid) for fp in fingerprints):
            primary.append(c.name)
        else:
            secondary.append(c.name)
    return primary, secondary


def _platform_family(platform: str) -> str:
    if platform.startswith("linux"):
        return "linux"
    if platform.startswith("freebsd"):
        return "freebsd"
    if platform == "darwin":
        return "darwin"
    if platform in ("win32", "cygwin"):
        return "windows"
    return platform


def resolve_port(
    port_spec: Optional[str],
    fingerprints: Sequence[Fingerprint] = (),
    candidates: Optional[Sequence[DeviceCandidate]] = None,
    platform: Optional[str] = None,
    glob: Callable[[str], List[str]] = _glob.glob,
) -> str:
    requested = split_port_spec(port_spec)
    if len(requested) == 1:
        return requested[0]

    family = _platform_family(platform or sys.platform)

    if family == "freebsd":
        ports = sorted(glob("/dev/cuaU*"))
    elif family in ("linux", "darwin", "windows"):
        if candidates is None:
            candidates = list_candidates()
        primary, secondary = partition_candidates(candidates, fingerprints)
        if len(primary) == 1:
            return primary[0]
        ports = primary if primary else secondary

        if not ports:
            if family == "darwin":
                ports = sorted(glob("/dev/cu.usb*"))
            elif family == "linux":
                ports = sorted(glob("/dev/ttyACM*"))
            else:
                ports = [c.name for c in candidates]
    else:
        raise UnsupportedPlatform(family)

    if not ports:
        raise NoPortFound()

    if not requested:
        if len(ports) == 1:
            return ports[0]
        raise AmbiguousPort(ports)

    for name in requested:
        if name in ports:
            return name

    raise PortNotFound(requested, ports)
