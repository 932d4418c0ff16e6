"""
Error types for Netfetch.

Every error raised by the coverage engine derives from NetfetchError and
carries the HTTP status a server-facing caller should answer with.
"""

from __future__ import annotations


class NetfetchError(Exception):
    """Base error for Netfetch."""

    http_status: int = 500


class NamespaceNotFoundError(NetfetchError):
    """An explicitly requested namespace does not exist."""

    http_status = 404

    def __init__(self, namespace: str):
        self.namespace = namespace
        super().__init__(f"namespace {namespace} does not exist")


class PolicyNotFoundError(NetfetchError):
    """A policy looked up by name does not exist."""

    http_status = 404

    def __init__(self, name: str, where: str = "any non-system namespace"):
        self.name = name
        super().__init__(f"network policy {name} not found in {where}")


class FetchError(NetfetchError):
    """
    A read against the cluster API failed.

    Attributes:
        operation: Human readable name of the failed call
        namespace: Namespace the call was scoped to, None for cluster scope
    """

    def __init__(self, operation: str, cause: Exception | str, namespace: str | None = None):
        self.operation = operation
        self.namespace = namespace
        self.cause = cause
        where = f" in namespace {namespace}" if namespace else ""
        super().__init__(f"error {operation}{where}: {cause}")

    @property
    def is_cluster_scope(self) -> bool:
        """Return True if the failed call was not scoped to one namespace."""
        return self.namespace is None


class PolicyDecodeError(NetfetchError):
    """A raw policy manifest could not be turned into a Policy record."""

    def __init__(self, policy_name: str, reason: str):
        self.policy_name = policy_name
        self.reason = reason
        super().__init__(f"cannot decode policy {policy_name}: {reason}")


class SelectorParseError(PolicyDecodeError):
    """A policy selector holds a value that is not a string or is malformed."""


class RemediationError(NetfetchError):
    """Submitting a deny-all policy failed."""

    def __init__(self, target: str, cause: Exception | str):
        self.target = target
        self.cause = cause
        super().__init__(f"failed to apply default deny policy to {target}: {cause}")


class ConfigurationError(NetfetchError):
    """Configuration could not be loaded or is invalid."""
