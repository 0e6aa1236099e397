"""Error types and sanitization utilities for the Garage Operator."""

from __future__ import annotations

import re
from typing import Any


class ResourceTypeMismatchError(TypeError):
    """Raised when an external client is handed a resource of the wrong kind.

    This only happens when handlers are wired incorrectly and is never retried.
    """

    def __init__(self, expected_kind: str, actual_kind: str) -> None:
        super().__init__(f"managed resource is not a {expected_kind} custom resource (got {actual_kind})")
        self.expected_kind = expected_kind
        self.actual_kind = actual_kind


class ReferenceResolutionError(Exception):
    """Base class for failures resolving a reference to another resource."""

    def __init__(self, message: str, referent_kind: str, referent_name: str, referent_namespace: str) -> None:
        super().__init__(message)
        self.referent_kind = referent_kind
        self.referent_name = referent_name
        self.referent_namespace = referent_namespace


class ReferenceNotFoundError(ReferenceResolutionError):
    """The referenced resource does not exist in the cluster."""


class ReferenceNotReadyError(ReferenceResolutionError):
    """The referenced resource exists but has not observed its external identity yet."""


class ProviderConfigError(Exception):
    """Credentials or endpoint configuration for Garage are missing or invalid."""


class ExternalOperationError(Exception):
    """An external call failed; carries a resource-kind specific label."""

    def __init__(self, label: str, cause: Exception) -> None:
        super().__init__(f"{label}: {cause}")
        self.label = label
        self.cause = cause


def wrap_error(label: str, cause: Exception) -> ExternalOperationError:
    """Wrap an exception with a label such as ``cannot create key``."""
    return ExternalOperationError(label, cause)


# Patterns that might expose sensitive information
SENSITIVE_PATTERNS = [
    r"bearer\s+([A-Za-z0-9\-\._~\+/=]+)",
    r"admin[_\s]?token[\"':\s]+([A-Za-z0-9\-\._~\+/=]+)",
    r"secret[_\s]?access[_\s]?key[\"':\s]+([A-Za-z0-9\-\._~\+/=]+)",
]

# Fields to redact completely
SENSITIVE_FIELDS = {
    "secret_access_key",
    "secretaccesskey",
    "admin_token",
    "admintoken",
    "password",
    "token",
    "credentials",
}


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove sensitive information.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(
            pattern,
            lambda m: m.group(0).replace(m.group(1), "[REDACTED]"),
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized


def sanitize_exception(error: Exception) -> str:
    """Sanitize exception message.

    Args:
        error: Exception object

    Returns:
        Sanitized error message
    """
    return sanitize_error_message(str(error))


def sanitize_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """Sanitize dictionary by redacting sensitive fields.

    Args:
        data: Dictionary to sanitize
        sensitive_keys: Additional keys to redact (merged with SENSITIVE_FIELDS)

    Returns:
        Sanitized dictionary with sensitive values redacted
    """
    all_sensitive = SENSITIVE_FIELDS | {k.lower() for k in (sensitive_keys or set())}
    sanitized: dict[str, Any] = {}

    for key, value in data.items():
        if key.lower() in all_sensitive:
            sanitized[key] = "[REDACTED]"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict(value, sensitive_keys)
        elif isinstance(value, str):
            sanitized[key] = sanitize_error_message(value)
        else:
            sanitized[key] = value

    return sanitized
