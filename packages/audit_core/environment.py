"""Capture of machine, user and process metadata for audit events."""

import getpass
import inspect
import locale
import os
import platform
import socket
from functools import lru_cache
from typing import Optional

from .models import EventEnvironment

# Frames from these modules are skipped when looking for the caller.
_INTERNAL_PREFIXES = ("packages.audit_core",)


def _user_name() -> Optional[str]:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        # No login name (e.g. container without passwd entry)
        return None


def _domain_name() -> Optional[str]:
    domain = os.getenv("USERDOMAIN")
    if domain:
        return domain
    try:
        fqdn = socket.getfqdn()
    except OSError:
        return None
    _, _, domain = fqdn.partition(".")
    return domain or None


def _culture() -> Optional[str]:
    try:
        return locale.getlocale()[0]
    except ValueError:
        return None


@lru_cache(maxsize=1)
def _host_facts() -> tuple[Optional[str], Optional[str], Optional[str]]:
    """User, machine and domain name; fixed for the life of the process."""
    return _user_name(), platform.node() or None, _domain_name()


def calling_method_name() -> Optional[str]:
    """Return ``module.function`` of the first frame outside the audit core."""
    frame = inspect.currentframe()
    try:
        while frame is not None:
            module = frame.f_globals.get("__name__", "")
            if not module.startswith(_INTERNAL_PREFIXES):
                return f"{module}.{frame.f_code.co_name}"
            frame = frame.f_back
        return None
    finally:
        del frame


def capture_environment(calling_method: Optional[str] = None) -> EventEnvironment:
    """
    Snapshot the environment an audit event is created in.

    Args:
        calling_method: Explicit caller name; detected from the stack if None

    Returns:
        Frozen environment snapshot
    """
    user_name, machine_name, domain_name = _host_facts()
    return EventEnvironment(
        user_name=user_name,
        machine_name=machine_name,
        domain_name=domain_name,
        calling_method_name=calling_method or calling_method_name(),
        process_id=os.getpid(),
        python_version=platform.python_version(),
        culture=_culture(),
    )
