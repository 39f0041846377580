# tests/conftest.py
from typing import Optional

import pytest

from task_discovery.services.finder import TaskFinder

DEF_ARN = "arn:aws:ecs:us-east-1:12345678:task-definition/{name}:{rev}"


class FakeAWS:
    """In-memory ECS + EC2 implementing both client protocols.

    Records every call in ``calls`` and raises for method names put in ``fail``.
    """

    def __init__(self):
        self.service_pages: list[list[str]] = [[]]
        self.tasks: dict[str, dict] = {}
        self.task_failures: dict[str, str] = {}
        self.container_instances: dict[str, dict] = {}
        self.ci_failures: dict[str, str] = {}
        self.instances: dict[str, dict] = {}
        # replaces the one-instance-per-reservation response when set
        self.reservations: Optional[list[dict]] = None
        self.list_page_size = 100
        self.fail: set[str] = set()
        self.calls: list[tuple] = []

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if name in self.fail:
            raise RuntimeError(f"{name} unavailable")

    def calls_to(self, name):
        return [c for c in self.calls if c[0] == name]

    # --- builders ---------------------------------------------------------

    def add_host(self, ci_arn: str, ec2_id: str, public_dns: str, private_dns: str = "",
                 public_ip: str = "", private_ip: str = ""):
        self.container_instances[ci_arn] = {"containerInstanceArn": ci_arn, "ec2InstanceId": ec2_id}
        self.instances[ec2_id] = {
            "InstanceId": ec2_id,
            "PublicDnsName": public_dns,
            "PrivateDnsName": private_dns,
            "PublicIpAddress": public_ip,
            "PrivateIpAddress": private_ip,
        }

    def add_task(self, service: str, arn: str, *, last: str = "RUNNING", desired: str = "RUNNING",
                 host: Optional[str] = None, port: int = 0, containers: Optional[list] = None,
                 definition: str = "web", revision: int = 1, started_at=None):
        if containers is None:
            bindings = [{"hostPort": port, "containerPort": 80}] if port else []
            containers = [{"name": service, "networkBindings": bindings}]
        task = {
            "taskArn": arn,
            "taskDefinitionArn": DEF_ARN.format(name=definition, rev=revision),
            "desiredStatus": desired,
            "lastStatus": last,
            "containers": containers,
            "_service": service,
        }
        if host:
            task["containerInstanceArn"] = host
        if started_at:
            task["startedAt"] = started_at
        self.tasks[arn] = task
        return task

    # --- OrchestratorClient -----------------------------------------------

    async def list_services(self, cluster, page_token, max_results):
        self._record("list_services", cluster, page_token)
        idx = int(page_token or 0)
        nxt = str(idx + 1) if idx + 1 < len(self.service_pages) else None
        return list(self.service_pages[idx]), nxt

    async def list_task_ids(self, cluster, service, desired_status, page_token):
        self._record("list_task_ids", cluster, service, desired_status.value, page_token)
        arns = [a for a, t in self.tasks.items()
                if t["_service"] == service and t["desiredStatus"] == desired_status.value]
        start = int(page_token or 0)
        end = start + self.list_page_size
        return arns[start:end], (str(end) if end < len(arns) else None)

    async def describe_tasks(self, cluster, task_ids):
        self._record("describe_tasks", cluster, list(task_ids))
        assert 0 < len(task_ids) <= 100
        found = [{k: v for k, v in self.tasks[a].items() if k != "_service"}
                 for a in task_ids if a in self.tasks]
        failures = [{"arn": a, "reason": r} for a, r in self.task_failures.items() if a in task_ids]
        return found, failures

    async def describe_container_instances(self, cluster, refs):
        self._record("describe_container_instances", cluster, list(refs))
        found = [self.container_instances[r] for r in refs if r in self.container_instances]
        failures = [{"arn": a, "reason": r} for a, r in self.ci_failures.items() if a in refs]
        return found, failures

    # --- ComputeClient ----------------------------------------------------

    async def describe_instances(self, instance_ids):
        self._record("describe_instances", list(instance_ids))
        if self.reservations is not None:
            return self.reservations
        return [{"Instances": [self.instances[i]]} for i in instance_ids if i in self.instances]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def aws():
    return FakeAWS()


@pytest.fixture
def finder(aws):
    return TaskFinder(aws, aws, "test-cluster")
