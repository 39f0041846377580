"""Locates the tasks of an ECS service and the hosts they run on.

Joins three remote collections: tasks, the container instances hosting them,
and the EC2 instances behind those container instances. The result is a
snapshot sorted by public DNS name and port.
"""
from __future__ import annotations

from typing import Any, Optional, Sequence

from task_discovery.core.errors import (
    AmbiguousContainerError,
    PartialFailureError,
    RemoteQueryError,
)
from task_discovery.core.logging import get_logger
from task_discovery.models.arn import parse_arn
from task_discovery.models.schemas import TaskInfo, TaskStatus
from task_discovery.services.clients import ComputeClient, OrchestratorClient
from task_discovery.services.snapshot import sort_tasks

log = get_logger("finder")

# DescribeTasks accepts at most 100 task ARNs per call
DESCRIBE_TASKS_LIMIT = 100
LIST_SERVICES_PAGE_SIZE = 10


def chunk(items: Sequence[str], size: int) -> list[list[str]]:
    """Split ``items`` into consecutive lists of at most ``size`` elements."""
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def _dedupe(items) -> list[str]:
    return list(dict.fromkeys(i for i in items if i))


class TaskFinder:
    """
    Resolves a service name to the tasks currently scheduled for it.

    Holds only the client handles and the cluster name, so one finder can be
    shared by any number of monitors. Nothing is retried; every remote failure
    is raised to the caller.
    """

    def __init__(self, orchestrator: OrchestratorClient, compute: ComputeClient, cluster: str):
        self._orchestrator = orchestrator
        self._compute = compute
        self.cluster = cluster

    async def services(self) -> list[str]:
        """Return the ARNs of all services active on the cluster."""
        services: list[str] = []
        token: Optional[str] = None
        while True:
            try:
                page, token = await self._orchestrator.list_services(
                    self.cluster, token, LIST_SERVICES_PAGE_SIZE
                )
            except Exception as e:
                raise RemoteQueryError("ecs list services", e, cluster=self.cluster) from e
            services.extend(page)
            if not token:
                return _dedupe(services)

    async def tasks(self, service: str) -> list[TaskInfo]:
        """Return a service's tasks joined with their hosts, sorted by public DNS name then port."""
        task_arns = await self._fetch_tasks(service)
        if not task_arns:
            return []
        tasks = await self._describe_tasks(service, task_arns)
        instances = await self._locate_tasks(service, tasks)

        infos = []
        for t in tasks:
            host = instances.get(t.get("containerInstanceArn") or "", {})
            infos.append(TaskInfo(
                task_definition=parse_arn(t.get("taskDefinitionArn", "")).short_name,
                desired_status=TaskStatus.from_ecs(t.get("desiredStatus")),
                last_status=TaskStatus.from_ecs(t.get("lastStatus")),
                started_at=t.get("startedAt"),
                stopped_at=t.get("stoppedAt"),
                port=self._port_for_task(t, service),
                ec2_instance_id=host.get("InstanceId", ""),
                public_dns_name=host.get("PublicDnsName", ""),
                private_dns_name=host.get("PrivateDnsName", ""),
                public_ip_address=host.get("PublicIpAddress", ""),
                private_ip_address=host.get("PrivateIpAddress", ""),
            ))
        log.debug("resolved %d tasks for %s/%s", len(infos), self.cluster, service)
        return sort_tasks(infos)

    def _port_for_task(self, t: dict[str, Any], service: str) -> int:
        """Return the first host port bound by the service's container.

        Multi-container tasks must name the service's container after the
        service. Pending tasks have no bindings yet and report port 0.
        """
        containers = t.get("containers") or []
        if len(containers) == 1:
            c = containers[0]
        else:
            matches = [cc for cc in containers if cc.get("name") == service]
            if len(matches) != 1:
                msg = ("no containers configured" if not containers else
                       "ambiguous, multi-container task, one container should match service name")
                raise AmbiguousContainerError(
                    msg, cluster=self.cluster, service=service, task=t.get("taskArn")
                )
            c = matches[0]
        bindings = c.get("networkBindings") or []
        if not bindings:
            return 0
        return int(bindings[0].get("hostPort") or 0)

    async def _fetch_tasks(self, service: str) -> list[str]:
        # ListTasks filters on desired status, so STOPPED is queried as well to
        # keep tasks that are still in the process of stopping.
        running = await self._fetch_tasks_with_status(service, TaskStatus.RUNNING)
        stopping = await self._fetch_tasks_with_status(service, TaskStatus.STOPPED)
        return _dedupe(running + stopping)

    async def _fetch_tasks_with_status(self, service: str, status: TaskStatus) -> list[str]:
        arns: list[str] = []
        token: Optional[str] = None
        while True:
            try:
                page, token = await self._orchestrator.list_task_ids(self.cluster, service, status, token)
            except Exception as e:
                raise RemoteQueryError("ecs list tasks", e, cluster=self.cluster, service=service) from e
            arns.extend(page)
            if not token:
                return arns

    async def _describe_tasks(self, service: str, task_arns: list[str]) -> list[dict[str, Any]]:
        tasks = []
        for batch in chunk(task_arns, DESCRIBE_TASKS_LIMIT):
            try:
                described, failures = await self._orchestrator.describe_tasks(self.cluster, batch)
            except Exception as e:
                raise RemoteQueryError(
                    "ecs describe tasks", e, cluster=self.cluster, service=service, identifier=batch[0]
                ) from e
            if failures:
                f = failures[0]
                raise PartialFailureError("describe task", f.get("arn", ""), f.get("reason", ""))
            tasks.extend(described)
        # Fully stopped tasks are dropped, tasks still stopping are kept.
        return [t for t in tasks if t.get("lastStatus") and t["lastStatus"] != TaskStatus.STOPPED.value]

    async def _locate_tasks(self, service: str, tasks: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
        """Map container instance ARN to the EC2 instance hosting it."""
        ci_arns = _dedupe(t.get("containerInstanceArn") for t in tasks)
        if not ci_arns:
            return {}
        try:
            cis, failures = await self._orchestrator.describe_container_instances(self.cluster, ci_arns)
        except Exception as e:
            raise RemoteQueryError(
                "ecs describe container instances", e, cluster=self.cluster, service=service
            ) from e
        if failures:
            f = failures[0]
            raise PartialFailureError("describe container", f.get("arn", ""), f.get("reason", ""))

        ec2_ids = _dedupe(ci.get("ec2InstanceId") for ci in cis)
        if not ec2_ids:
            return {}
        try:
            reservations = await self._compute.describe_instances(ec2_ids)
        except Exception as e:
            raise RemoteQueryError(
                "ec2 describe instances", e, cluster=self.cluster, service=service
            ) from e
        # TODO: find out when a reservation holds more than one instance; the first is used.
        by_id = {}
        for r in reservations:
            if r.get("Instances"):
                inst = r["Instances"][0]
                by_id[inst.get("InstanceId")] = inst
        return {
            ci["containerInstanceArn"]: by_id[ci["ec2InstanceId"]]
            for ci in cis
            if ci.get("ec2InstanceId") in by_id
        }
