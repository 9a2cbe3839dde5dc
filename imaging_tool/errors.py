"""Domain-specific errors for the provisioning engine."""
from __future__ import annotations

from enum import Enum


class MechanismErrorKind(str, Enum):
    UNSUPPORTED_TYPE = "unsupported_type"
    SOURCE_NOT_FOUND = "source_not_found"
    HIVE_LOAD_FAILURE = "hive_load_failure"
    HIVE_UNLOAD_FAILURE = "hive_unload_failure"
    INVALID_COMMAND = "invalid_command"
    INVOCATION_ERROR = "invocation_error"


class ImagingToolError(Exception):
    """Base error for the imaging tool."""

    kind: MechanismErrorKind = MechanismErrorKind.INVOCATION_ERROR


class ManifestError(ImagingToolError):
    """Raised when the manifest file cannot be read or has the wrong shape."""


class UnsupportedDriverTypeError(ImagingToolError):
    """Raised when a driver names a mechanism the dispatcher does not know."""

    kind = MechanismErrorKind.UNSUPPORTED_TYPE


class SourceNotFoundError(ImagingToolError):
    """Raised when a copy source or registry file is missing."""

    kind = MechanismErrorKind.SOURCE_NOT_FOUND


class InvalidInstallCommandError(ImagingToolError):
    """Raised when an install command cannot be interpreted for its mechanism."""

    kind = MechanismErrorKind.INVALID_COMMAND


class HiveLoadError(ImagingToolError):
    """Raised when the default user profile cannot be mounted."""

    kind = MechanismErrorKind.HIVE_LOAD_FAILURE


class ShortcutError(ImagingToolError):
    """Raised when the shell refuses to create a shortcut."""
