"""Exceptions raised inside modtoggler. Callers at the edges log and convert them."""

import errno

# Windows ERROR_SHARING_VIOLATION / ERROR_LOCK_VIOLATION
_WINERROR_IN_USE = frozenset({32, 33})
_ERRNO_IN_USE = frozenset({errno.EBUSY, errno.ETXTBSY})


class ModToggleError(Exception):
    """Base class for modtoggler errors."""


class ArchiveError(ModToggleError):
    """Module archive or its identity header cannot be read."""


class InvalidModuleKey(ModToggleError):
    """Module key is empty or points outside the modules directory."""


def is_lock_error(exc: BaseException) -> bool:
    """True when exc means the file is held by another process or access is denied."""
    if isinstance(exc, PermissionError):
        return True
    if not isinstance(exc, OSError):
        return False
    if getattr(exc, "winerror", None) in _WINERROR_IN_USE:
        return True
    if exc.errno in _ERRNO_IN_USE:
        return True
    return "being used by another process" in str(exc)
