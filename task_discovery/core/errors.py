"""Errors raised while resolving a service's tasks.

The finder never swallows these; the monitor forwards them to its error
callback and keeps polling.
"""
from __future__ import annotations

from typing import Optional


class DiscoveryError(Exception):
    """Base class for task discovery failures."""


class RemoteQueryError(DiscoveryError):
    """A list/describe call against the orchestrator or compute inventory failed."""

    def __init__(
        self,
        operation: str,
        cause: object,
        *,
        cluster: str = "",
        service: str = "",
        identifier: str = "",
    ):
        self.operation = operation
        self.cluster = cluster
        self.service = service
        self.identifier = identifier
        ctx = [f"cluster={cluster}"]
        if service:
            ctx.append(f"service={service}")
        if identifier:
            ctx.append(f"id={identifier}")
        super().__init__(f"{operation}: {cause} ({', '.join(ctx)})")


class PartialFailureError(DiscoveryError):
    """A describe call succeeded but reported failures for some identifiers.

    Only the first failure entry is carried.
    """

    def __init__(self, operation: str, identifier: str, reason: str):
        self.operation = operation
        self.identifier = identifier
        self.reason = reason
        super().__init__(f"{operation} failure on {identifier}: {reason}")


class AmbiguousContainerError(DiscoveryError):
    """No single container of a task can be identified as the service's container."""

    def __init__(self, message: str, *, cluster: str, service: str, task: Optional[str]):
        self.cluster = cluster
        self.service = service
        self.task = task
        super().__init__(f"{message}, cluster={cluster}, service={service}, task={task}")
