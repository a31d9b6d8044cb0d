"""Serial terminal for USB-serial microcontroller boards.

Opens a device, relays bytes both ways between it and the terminal, and waits
out resets and re-enumeration by reopening the same path.
"""

__version__ = "0.1.0"
