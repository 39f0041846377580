"""Pydantic models for task discovery."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class TaskStatus(str, Enum):
    """Lifecycle state of a task, desired or last observed.

    See http://docs.aws.amazon.com/AmazonECS/latest/developerguide/task_life_cycle.html
    """
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"

    @classmethod
    def from_ecs(cls, value: Optional[str]) -> "TaskStatus":
        """Fold ECS's intermediate lifecycle states into the three tracked ones."""
        return _ECS_STATUS.get((value or "").upper(), cls.PENDING)


_ECS_STATUS = {
    "PROVISIONING": TaskStatus.PENDING,
    "PENDING": TaskStatus.PENDING,
    "ACTIVATING": TaskStatus.PENDING,
    "RUNNING": TaskStatus.RUNNING,
    # containers keep serving until deactivation finishes
    "DEACTIVATING": TaskStatus.RUNNING,
    "STOPPING": TaskStatus.RUNNING,
    "DEPROVISIONING": TaskStatus.STOPPED,
    "STOPPED": TaskStatus.STOPPED,
}


class TaskInfo(BaseModel):
    """One task of a service joined with the network identity of its host.

    Records are immutable values. Host fields stay empty while the host cannot
    be resolved and ``port`` is 0 until the container has a network binding.
    """
    model_config = ConfigDict(frozen=True)

    task_definition: str
    desired_status: TaskStatus
    last_status: TaskStatus
    started_at: Optional[datetime] = None
    stopped_at: Optional[datetime] = None
    port: int = 0
    ec2_instance_id: str = ""
    public_dns_name: str = ""
    private_dns_name: str = ""
    public_ip_address: str = ""
    private_ip_address: str = ""

    @property
    def sort_key(self) -> tuple:
        # Ordered by public DNS name then port; remaining fields only break ties.
        started = self.started_at.timestamp() if self.started_at else 0.0
        return (
            self.public_dns_name,
            self.port,
            self.private_dns_name,
            self.task_definition,
            self.last_status.value,
            self.desired_status.value,
            started,
        )

    def __str__(self) -> str:
        if self.desired_status != self.last_status:
            return (f"[{self.last_status.value} > {self.desired_status.value}] "
                    f"{self.task_definition} @ {self.public_dns_name}:{self.port}")
        return f"[{self.last_status.value}] {self.task_definition} @ {self.public_dns_name}:{self.port}"


class ServiceItem(BaseModel):
    """A service registered on the cluster."""
    arn: str
    name: str


class EndpointOut(BaseModel):
    """Reachable address of one task, shaped like the registry's endpoint items."""
    host: str
    port: int
    status: TaskStatus
    desired_status: TaskStatus
    task_definition: str
    private_host: str = ""
    public_ip: str = ""
    private_ip: str = ""

    @classmethod
    def from_task(cls, t: TaskInfo) -> "EndpointOut":
        return cls(
            host=t.public_dns_name,
            port=t.port,
            status=t.last_status,
            desired_status=t.desired_status,
            task_definition=t.task_definition,
            private_host=t.private_dns_name,
            public_ip=t.public_ip_address,
            private_ip=t.private_ip_address,
        )
