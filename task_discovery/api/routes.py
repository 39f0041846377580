"""API routes for task discovery.

Serves the services of the cluster and the tasks/endpoints of a service.
Monitored services are answered from the monitor's last snapshot once it has
one, anything else is resolved live.
"""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, HTTPException, Request

from task_discovery.core.errors import AmbiguousContainerError, DiscoveryError
from task_discovery.core.logging import get_logger
from task_discovery.models.arn import parse_arn
from task_discovery.models.schemas import EndpointOut, ServiceItem, TaskInfo
from task_discovery.services.finder import TaskFinder
from task_discovery.services.monitor import TaskMonitor
from task_discovery.services.snapshot import running_tasks

log = get_logger("api")
router = APIRouter()


def _finder(request: Request) -> TaskFinder:
    finder = getattr(request.app.state, "finder", None)
    if finder is None:
        raise HTTPException(503, detail="finder not initialised")
    return finder


def _monitor(request: Request, service: str) -> TaskMonitor | None:
    """The monitor for ``service`` once it holds a snapshot, else None."""
    monitors: dict[str, TaskMonitor] = getattr(request.app.state, "monitors", {})
    monitor = monitors.get(service)
    if monitor is None or not monitor.has_snapshot:
        return None
    return monitor


def _raise_http(e: DiscoveryError):
    log.warning("discovery failed: %s", e)
    if isinstance(e, AmbiguousContainerError):
        raise HTTPException(409, detail=str(e)) from e
    raise HTTPException(502, detail=str(e)) from e


async def _tasks(request: Request, service: str) -> list[TaskInfo]:
    monitor = _monitor(request, service)
    if monitor is not None:
        return monitor.all_tasks
    try:
        return await _finder(request).tasks(service)
    except DiscoveryError as e:
        _raise_http(e)


@router.get("/services", response_model=List[ServiceItem])
async def list_services(request: Request):
    """List the services active on the cluster."""
    try:
        arns = await _finder(request).services()
    except DiscoveryError as e:
        _raise_http(e)
    return [ServiceItem(arn=a, name=parse_arn(a).short_name) for a in arns]


@router.get("/services/{service}/tasks", response_model=List[TaskInfo])
async def list_tasks(service: str, request: Request):
    """All tasks of a service, including pending and stopping ones."""
    return await _tasks(request, service)


@router.get("/services/{service}/endpoints", response_model=List[EndpointOut])
async def list_endpoints(service: str, request: Request, healthy: bool = True):
    """Reachable endpoints of a service; only running tasks when ``healthy``."""
    monitor = _monitor(request, service)
    if monitor is not None and healthy:
        tasks = monitor.running_tasks
    else:
        tasks = await _tasks(request, service)
        if healthy:
            tasks = running_tasks(tasks)
    return [EndpointOut.from_task(t) for t in tasks]
