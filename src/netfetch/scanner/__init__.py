"""
Scanning for Netfetch.

- ScanOrchestrator: runs coverage scans
- RemediationAction: applies deny-all policies
- TargetPolicyLookup: inspects what a single policy targets
"""

from netfetch.scanner.orchestrator import (
    ClusterFindings,
    NamespaceFindings,
    ScanMode,
    ScanOrchestrator,
)
from netfetch.scanner.remediation import (
    CLUSTERWIDE_DENY_ALL_NAME,
    RemediationAction,
    build_deny_all_policy,
    deny_all_policy_name,
)
from netfetch.scanner.target import TargetPolicyLookup

__all__ = [
    # Orchestrator
    "ClusterFindings",
    "NamespaceFindings",
    "ScanMode",
    "ScanOrchestrator",
    # Remediation
    "CLUSTERWIDE_DENY_ALL_NAME",
    "RemediationAction",
    "build_deny_all_policy",
    "deny_all_policy_name",
    # Target lookup
    "TargetPolicyLookup",
]
