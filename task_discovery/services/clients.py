"""Orchestrator and compute inventory clients used by the TaskFinder.

The finder only depends on the two protocols below. The boto3-backed
implementations run each blocking SDK call in the default executor and return
the raw ECS/EC2 response shapes. They make exactly one request per call and
never retry; any SDK exception propagates to the finder.
"""
from __future__ import annotations

import asyncio
import functools
from typing import Any, Optional, Protocol, Sequence

import boto3

from task_discovery.core.config import Settings
from task_discovery.models.schemas import TaskStatus

Page = tuple[list[str], Optional[str]]
Described = tuple[list[dict[str, Any]], list[dict[str, Any]]]


class OrchestratorClient(Protocol):
    """Read-only view of the container orchestrator's control plane."""

    async def list_services(self, cluster: str, page_token: Optional[str], max_results: int) -> Page:
        """Return one page of service ARNs and the next page token, if any."""
        ...

    async def list_task_ids(
        self, cluster: str, service: str, desired_status: TaskStatus, page_token: Optional[str]
    ) -> Page:
        """Return one page of task ARNs with the given desired status."""
        ...

    async def describe_tasks(self, cluster: str, task_ids: Sequence[str]) -> Described:
        """Describe at most 100 tasks; returns ``(tasks, failures)``."""
        ...

    async def describe_container_instances(self, cluster: str, refs: Sequence[str]) -> Described:
        """Describe container instances; returns ``(containerInstances, failures)``."""
        ...


class ComputeClient(Protocol):
    """Read-only view of the compute instance inventory."""

    async def describe_instances(self, instance_ids: Sequence[str]) -> list[dict[str, Any]]:
        """Return reservations, each holding an ``Instances`` list."""
        ...


async def _call(fn, **kwargs) -> dict[str, Any]:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(fn, **kwargs))


class Boto3OrchestratorClient:
    """OrchestratorClient backed by a boto3 ECS client."""

    def __init__(self, ecs):
        self._ecs = ecs

    @classmethod
    def from_settings(cls, settings: Settings) -> "Boto3OrchestratorClient":
        return cls(boto3.client("ecs", region_name=settings.region))

    async def list_services(self, cluster: str, page_token: Optional[str], max_results: int) -> Page:
        kwargs: dict[str, Any] = {"cluster": cluster, "maxResults": max_results}
        if page_token:
            kwargs["nextToken"] = page_token
        resp = await _call(self._ecs.list_services, **kwargs)
        return resp.get("serviceArns", []), resp.get("nextToken")

    async def list_task_ids(
        self, cluster: str, service: str, desired_status: TaskStatus, page_token: Optional[str]
    ) -> Page:
        kwargs: dict[str, Any] = {
            "cluster": cluster,
            "serviceName": service,
            "desiredStatus": desired_status.value,
        }
        if page_token:
            kwargs["nextToken"] = page_token
        resp = await _call(self._ecs.list_tasks, **kwargs)
        return resp.get("taskArns", []), resp.get("nextToken")

    async def describe_tasks(self, cluster: str, task_ids: Sequence[str]) -> Described:
        resp = await _call(self._ecs.describe_tasks, cluster=cluster, tasks=list(task_ids))
        return resp.get("tasks", []), resp.get("failures", [])

    async def describe_container_instances(self, cluster: str, refs: Sequence[str]) -> Described:
        resp = await _call(
            self._ecs.describe_container_instances, cluster=cluster, containerInstances=list(refs)
        )
        return resp.get("containerInstances", []), resp.get("failures", [])


class Boto3ComputeClient:
    """ComputeClient backed by a boto3 EC2 client."""

    def __init__(self, ec2):
        self._ec2 = ec2

    @classmethod
    def from_settings(cls, settings: Settings) -> "Boto3ComputeClient":
        return cls(boto3.client("ec2", region_name=settings.region))

    async def describe_instances(self, instance_ids: Sequence[str]) -> list[dict[str, Any]]:
        resp = await _call(self._ec2.describe_instances, DryRun=False, InstanceIds=list(instance_ids))
        return resp.get("Reservations", [])
