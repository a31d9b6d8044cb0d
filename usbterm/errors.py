from __future__ import annotations

from typing import Sequence


class UsbTermError(Exception):
    """Base class for failures that stop usbterm before a session starts."""


class RegistryUnavailable(UsbTermError):
    pass


class MalformedFingerprint(UsbTermError):
    def __init__(self, source: str, entry: str, field: str):
        self.source = source
        self.entry = entry
        self.field = field
        super().__init__(f"{source}: could not parse USB ID {field!r} in serial port entry {entry!r}")


class ResolveError(UsbTermError):
    pass


class NoPortFound(ResolveError):
    def __init__(self, message: str = "no serial ports available"):
        super().__init__(message)


class AmbiguousPort(ResolveError):
    def __init__(self, candidates: Sequence[str]):
        self.candidates = list(candidates)
        super().__init__(
            "multiple serial ports available - use --port, available ports are "
            + ", ".join(self.candidates)
        )


class PortNotFound(ResolveError):
    def __init__(self, requested: Sequence[str], available: Sequence[str]):
        self.requested = list(requested)
        self.available = list(available)
        super().__init__(
            f"port you specified '{','.join(self.requested)}' does not exist, "
            f"available ports are {', '.join(self.available)}"
        )


class UnsupportedPlatform(ResolveError):
    def __init__(self, platform: str):
        self.platform = platform
        super().__init__(f"unable to search for a default serial port on this OS ({platform})")


class InitialOpenFailure(UsbTermError):
    def __init__(self, port: str, attempts: int, cause: BaseException | None):
        self.port = port
        self.attempts = attempts
        super().__init__(f"failed to open serial port {port!r} after {attempts} attempts: {cause}")


class TerminalModeError(UsbTermError):
    pass
