"""Comparison helpers for task snapshots.

Snapshots are lists of TaskInfo already sorted by the finder, so comparison is
positional.
"""
from __future__ import annotations

from typing import Optional, Sequence

from task_discovery.models.schemas import TaskInfo, TaskStatus


def task_infos_equal(a: Optional[Sequence[TaskInfo]], b: Optional[Sequence[TaskInfo]]) -> bool:
    """Return True if two sorted snapshots hold the same records in the same order.

    ``None`` stands for "no snapshot yet" and only equals another ``None``.
    """
    if a is None or b is None:
        return a is b
    if len(a) != len(b):
        return False
    return all(x == y for x, y in zip(a, b))


def running_tasks(tasks: Sequence[TaskInfo]) -> list[TaskInfo]:
    """Return tasks that are currently running AND are desired to be running."""
    return [
        t for t in tasks
        if t.last_status == TaskStatus.RUNNING and t.desired_status == TaskStatus.RUNNING
    ]


def sort_tasks(tasks: Sequence[TaskInfo]) -> list[TaskInfo]:
    """Return tasks in snapshot order: public DNS name, then port."""
    return sorted(tasks, key=lambda t: t.sort_key)
