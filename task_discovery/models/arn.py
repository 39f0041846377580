"""Structured form of Amazon Resource Names as used by ECS."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class ARN(BaseModel):
    """Parts of an ARN such as
    ``arn:aws:ecs:us-east-1:12345678:task-definition/family:456``.

    ``prefix`` is everything before the last "/", ``resource`` and
    ``revision`` are the remainder split on its first ":". Missing parts are
    empty strings.
    """
    model_config = ConfigDict(frozen=True)

    prefix: str = ""
    resource: str = ""
    revision: str = ""

    @property
    def short_name(self) -> str:
        """``resource:revision``, or just ``resource`` when there is no revision."""
        if self.revision:
            return f"{self.resource}:{self.revision}"
        return self.resource

    def __str__(self) -> str:
        if self.prefix:
            return f"{self.prefix}/{self.short_name}"
        return self.short_name


def parse_arn(s: str) -> ARN:
    """Parse ``s`` into an ARN. Never fails; unrecognised input becomes the resource."""
    prefix, sep, rest = s.rpartition("/")
    if not sep:
        prefix, rest = "", s
    resource, _, revision = rest.partition(":")
    return ARN(prefix=prefix, resource=resource, revision=revision)
