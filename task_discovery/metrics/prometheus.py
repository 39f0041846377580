from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

metrics_router = APIRouter()

TD_UPDATES = Counter(
    "td_monitor_updates_total", "Monitor poll cycles by outcome", ["service", "result"]
)
TD_TASKS = Gauge("td_tasks", "Tasks known for a monitored service", ["service"])
TD_RUNNING_TASKS = Gauge("td_running_tasks", "Running tasks for a monitored service", ["service"])
TD_RESOLVE_LATENCY = Histogram("td_resolve_latency_seconds", "Time to resolve a service's tasks")


@metrics_router.get("/metrics")
async def metrics():
    """Prometheus exposition endpoint for task discovery metrics."""
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
