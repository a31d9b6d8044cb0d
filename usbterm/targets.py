"""Named hardware targets and the USB IDs their serial ports enumerate with.

Target descriptors are the board JSON files shipped with TinyGo
(``$TINYGOROOT/targets/*.json``). Only the ``"serial-port"`` key is read:

  "serial-port": ["acm:2341:0043", "usb:1a86:7523"]

acm and usb are the two kinds of serial ports Linux distinguishes (ttyACM*,
ttyUSB*); other operating systems don't, so both are matched the same way.
"""

from __future__ import annotations

import json
import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import MalformedFingerprint, RegistryUnavailable

SERIAL_PORT_KINDS = ("usb", "acm")

_HEX_RE = re.compile(r"[0-9A-Fa-f]+")


@dataclass(frozen=True)
class Fingerprint:
    kind: str
    vid: int
    pid: int

    def matches(self, vid: Optional[int], pid: Optional[int]) -> bool:
        return vid == self.vid and pid == self.pid

    def __str__(self) -> str:
        return f"{self.kind}:{self.vid:04x}:{self.pid:04x}"


@dataclass(frozen=True)
class TargetSpec:
    name: str
    fingerprints: Tuple[Fingerprint, ...] = ()


def _parse_hex16(text: str, source: str, entry: str) -> int:
    # Leading zeros are fine; signs, prefixes, underscores and spaces are not.
    if not _HEX_RE.fullmatch(text):
        raise MalformedFingerprint(source, entry, text)
    value = int(text, 16)
    if value > 0xFFFF:
        raise MalformedFingerprint(source, entry, text)
    return value


def parse_fingerprints(entries: Iterable[str], source: str = "<string>") -> Tuple[Fingerprint, ...]:
    """Parse ``kind:vid:pid`` strings.

    Entries of another kind (or shape) are skipped; bad hex in a usb/acm entry
    raises MalformedFingerprint.
    """

    out: List[Fingerprint] = []
    for entry in entries:
        parts = str(entry).split(":")
        if len(parts) != 3 or parts[0] not in SERIAL_PORT_KINDS:
            continue
        vid = _parse_hex16(parts[1], source, entry)
        pid = _parse_hex16(parts[2], source, entry)
        out.append(Fingerprint(parts[0], vid, pid))
    return tuple(out)


def find_tinygo_root() -> Path:
    env_root = os.environ.get("TINYGOROOT")
    if env_root:
        return Path(env_root)
    try:
        p = subprocess.run(
            ["tinygo", "env", "TINYGOROOT"],
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        raise RegistryUnavailable(f"could not locate target descriptors (tinygo env TINYGOROOT): {e}") from e
    root = p.stdout.strip()
    if not root:
        raise RegistryUnavailable("tinygo env TINYGOROOT printed nothing")
    return Path(root)


def load_target(path: Path) -> TargetSpec:
    try:
        with open(path, "r", encoding="utf-8") as f:
            doc = json.load(f)
    except (OSError, ValueError) as e:
        raise RegistryUnavailable(f"could not read target descriptor {path}: {e}") from e

    if not isinstance(doc, dict):
        raise RegistryUnavailable(f"{path}: expected a JSON object")
    entries = doc.get("serial-port", [])
    if not isinstance(entries, list):
        raise RegistryUnavailable(f"{path}: 'serial-port' must be a list of strings")

    return TargetSpec(name=path.stem, fingerprints=parse_fingerprints(entries, source=str(path)))


def load_targets(root: Optional[Path] = None) -> Dict[str, TargetSpec]:
    if root is None:
        root = find_tinygo_root()
    targets_dir = Path(root) / "targets"
    if not targets_dir.is_dir():
        raise RegistryUnavailable(f"target directory not found: {targets_dir}")

    targets: Dict[str, TargetSpec] = {}
    for path in sorted(targets_dir.glob("*.json")):
        spec = load_target(path)
        targets[spec.name] = spec
    return targets


def fingerprints_for(targets: Dict[str, TargetSpec], name: Optional[str]) -> Tuple[Fingerprint, ...]:
    if not name or name not in targets:
        return ()
    return targets[name].fingerprints


def match_target(targets: Dict[str, TargetSpec], vid: Optional[int], pid: Optional[int]) -> Optional[str]:
    """First target (by name) with a fingerprint for this vid/pid."""
    if vid is None or pid is None:
        return None
    for name in sorted(targets):
        if any(fp.matches(vid, pid) for fp in targets[name].fingerprints):
            return name
    return None
