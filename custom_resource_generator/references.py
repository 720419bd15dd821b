"""
Deferred values used while a template is being assembled.

A reference stands in for a value that only the deployment engine knows (an
ARN, an attribute of a deployed resource, a field of an SDK call response).
References are immutable and hashable so they can live inside policy
statements and call parameters; they are turned into template intrinsics only
when the template is rendered.
"""

from dataclasses import dataclass
from typing import Any

from .helpers import PHYSICAL_RESOURCE_ID_MARKER


@dataclass(frozen=True)
class Reference:
    """Base class for all deferred values."""

    logical_id: str

    def render(self) -> Any:
        raise NotImplementedError


@dataclass(frozen=True)
class Ref(Reference):
    """The primary identifier of a resource (a `Ref` intrinsic)."""

    def render(self) -> dict:
        return {"Ref": self.logical_id}


@dataclass(frozen=True)
class AttributeReference(Reference):
    """An attribute of a deployed resource (a `Fn::GetAtt` intrinsic)."""

    attribute: str

    def render(self) -> dict:
        return {"Fn::GetAtt": [self.logical_id, self.attribute]}


@dataclass(frozen=True)
class ResponseReference(AttributeReference):
    """
    A field of the response returned by a custom resource's SDK call.

    The deployment engine resolves it after the call has completed, so it is
    only valid inside the template that owns the producing resource.
    """


@dataclass(frozen=True)
class StringResponseReference(ResponseReference):
    """A response field the caller asserts to be string-shaped."""


@dataclass(frozen=True)
class PhysicalResourceIdReference:
    """
    Placeholder for the current physical resource id inside call parameters.

    Only meaningful in Update and Delete calls, where the execution runtime
    substitutes the id assigned by a previous lifecycle event.
    """

    def render(self) -> str:
        return PHYSICAL_RESOURCE_ID_MARKER


def render_value(value: Any) -> Any:
    """Recursively replaces every reference inside `value` with its intrinsic."""
    if isinstance(value, (Reference, PhysicalResourceIdReference)):
        return value.render()
    if isinstance(value, dict):
        return {key: render_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [render_value(item) for item in value]
    return value
