"""Namespace selection for a scan."""

from __future__ import annotations

import logging
from typing import Iterable

from netfetch.collectors.base import ClusterClient
from netfetch.models import SYSTEM_NAMESPACES

logger = logging.getLogger(__name__)


def select_namespaces(
    client: ClusterClient,
    namespace: str | None = None,
    system_namespaces: Iterable[str] | None = None,
) -> list[str]:
    """
    Resolve the namespaces to scan.

    Args:
        client: Cluster client
        namespace: Explicit namespace; verified to exist when given
        system_namespaces: Denylist override (defaults to SYSTEM_NAMESPACES)

    Returns:
        Namespace names in discovery order, without duplicates

    Raises:
        NamespaceNotFoundError: The explicit namespace does not exist
        FetchError: The namespace list could not be read
    """
    if namespace:
        client.get_namespace(namespace)
        return [namespace]

    denylist = frozenset(system_namespaces) if system_namespaces is not None else SYSTEM_NAMESPACES
    selected: list[str] = []
    for ns in client.list_namespaces():
        if ns.name in denylist:
            logger.debug("Skipping system namespace %s", ns.name)
            continue
        if ns.name not in selected:
            selected.append(ns.name)
    return selected
