"""Passcode inbox viewer: reads one-time passcodes from a mailbox and shows them on a page."""

__all__ = ["__version__"]

__version__ = "0.1.0"
