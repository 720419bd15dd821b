"""
Describes the SDK calls a custom resource performs on each lifecycle event,
validates them, and materializes them into the encoded form consumed by the
execution runtime.
"""

import logging
import re
from copy import deepcopy
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator

from .codec import encode_parameters
from .helpers import ConfigurationError
from .physical_id import PhysicalResourceId

logger = logging.getLogger(__name__)


class LifecycleEvent(str, Enum):
    """The lifecycle events of a custom resource, valued by their wire key."""

    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"

    @property
    def option_name(self) -> str:
        """The name of the option configuring this event, e.g. `on_create`."""
        return f"on_{self.value.lower()}"


class SdkCall(BaseModel):
    """
    The raw, user-facing description of one SDK call.

    Field names accept both snake_case and the camelCase spelling used on the
    wire, so YAML configurations may use either.
    """

    # The SDK service, e.g. 'CloudWatchLogs' or 's3'. Case is preserved on the wire.
    service: str

    # The SDK method within the service, e.g. 'putRetentionPolicy'.
    action: str

    # Parameters passed to the SDK method. Booleans are encoded at build time.
    parameters: Optional[Dict[str, Any]] = None

    # How the physical id of the external resource is determined.
    # Required for create and update calls.
    physical_resource_id: Optional[PhysicalResourceId] = Field(
        None, alias="physicalResourceId"
    )

    # A regular expression; failing calls whose error code matches it are
    # reported as successful by the execution runtime.
    ignore_error_codes_matching: Optional[str] = Field(
        None, alias="ignoreErrorCodesMatching"
    )

    # Pins the API version used by the SDK client.
    api_version: Optional[str] = Field(None, alias="apiVersion")

    # Restricts the response data kept for `get_data` to a single path.
    output_path: Optional[str] = Field(None, alias="outputPath")

    # Restricts the response data kept for `get_data` to these paths.
    output_paths: Optional[List[str]] = Field(None, alias="outputPaths")

    # The region the SDK client is created in. Defaults to the stack's region.
    region: Optional[str] = None

    # A role the execution runtime assumes before performing the call.
    assumed_role_arn: Optional[str] = Field(None, alias="assumedRoleArn")

    class Config:
        arbitrary_types_allowed = True
        populate_by_name = True
        extra = "forbid"

    @field_validator("physical_resource_id", mode="before")
    def parse_physical_resource_id(cls, v):
        if isinstance(v, dict):
            return PhysicalResourceId.from_dict(v)
        return v


@dataclass(frozen=True)
class CallSpec:
    """A validated SDK call with its parameters already encoded for transport."""

    service: str
    action: str
    parameters: Optional[Dict[str, Any]] = None
    physical_resource_id: Optional[PhysicalResourceId] = None
    ignore_error_codes_matching: Optional[str] = None
    api_version: Optional[str] = None
    output_path: Optional[str] = None
    output_paths: Optional[Tuple[str, ...]] = None
    region: Optional[str] = None
    assumed_role_arn: Optional[str] = None

    @property
    def declared_output_paths(self) -> Optional[List[str]]:
        """All response paths retained for `get_data`, or None when unrestricted."""
        if self.output_paths is not None:
            return list(self.output_paths)
        if self.output_path is not None:
            return [self.output_path]
        return None

    def to_properties(self) -> Dict[str, Any]:
        """Returns the wire form read by the execution runtime."""
        props: Dict[str, Any] = {"service": self.service, "action": self.action}
        if self.parameters is not None:
            props["parameters"] = deepcopy(self.parameters)
        if self.physical_resource_id is not None:
            props["physicalResourceId"] = self.physical_resource_id.to_dict()
        optional = {
            "apiVersion": self.api_version,
            "outputPath": self.output_path,
            "outputPaths": list(self.output_paths) if self.output_paths else None,
            "ignoreErrorCodesMatching": self.ignore_error_codes_matching,
            "region": self.region,
            "assumedRoleArn": self.assumed_role_arn,
        }
        props.update({key: value for key, value in optional.items() if value is not None})
        return props


def _coerce_sdk_call(event: LifecycleEvent, call: SdkCall | Dict[str, Any]) -> SdkCall:
    if isinstance(call, SdkCall):
        return call
    try:
        return SdkCall.model_validate(call)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid `{event.option_name}` call: {e}") from e


def build_call_spec(event: LifecycleEvent, call: SdkCall | Dict[str, Any]) -> CallSpec:
    """
    Validates one SDK call and materializes it into a `CallSpec`.

    Args:
        event: The lifecycle event the call is bound to.
        call: The call, either as an `SdkCall` or as a raw mapping.

    Returns:
        The validated, encoded call specification.

    Raises:
        ConfigurationError: If the call violates any construction rule.
    """
    call = _coerce_sdk_call(event, call)
    option = event.option_name

    if not call.service or not call.action:
        raise ConfigurationError(
            f"`{option}` requires both `service` and `action` to be non-empty."
        )

    if event is not LifecycleEvent.DELETE and call.physical_resource_id is None:
        raise ConfigurationError(
            f"`physical_resource_id` must be specified for `{option}` calls."
        )

    if (
        call.physical_resource_id is not None
        and call.physical_resource_id.is_response_derived
        and call.ignore_error_codes_matching
    ):
        raise ConfigurationError(
            f"`{option}`: `physical_resource_id` built with "
            "`PhysicalResourceId.from_response_path` cannot be combined with "
            "`ignore_error_codes_matching`; a suppressed error leaves no response "
            "to read the id from."
        )

    if call.ignore_error_codes_matching is not None:
        try:
            re.compile(call.ignore_error_codes_matching)
        except re.error as e:
            raise ConfigurationError(
                f"`{option}`: `ignore_error_codes_matching` is not a valid "
                f"regular expression: {e}"
            ) from e

    if call.output_path is not None and call.output_paths is not None:
        raise ConfigurationError(
            f"`{option}`: `output_path` and `output_paths` cannot be used together."
        )

    spec = CallSpec(
        service=call.service,
        action=call.action,
        parameters=encode_parameters(call.parameters),
        physical_resource_id=call.physical_resource_id,
        ignore_error_codes_matching=call.ignore_error_codes_matching,
        api_version=call.api_version,
        output_path=call.output_path,
        output_paths=tuple(call.output_paths) if call.output_paths is not None else None,
        region=call.region,
        assumed_role_arn=call.assumed_role_arn,
    )
    logger.debug("Materialized %s call %s.%s", event.value, spec.service, spec.action)
    return spec


@dataclass(frozen=True)
class LifecycleConfiguration:
    """The validated calls of a custom resource, keyed by lifecycle event."""

    create: Optional[CallSpec] = None
    update: Optional[CallSpec] = None
    delete: Optional[CallSpec] = None

    @classmethod
    def from_calls(
        cls,
        on_create: SdkCall | Dict[str, Any] | None = None,
        on_update: SdkCall | Dict[str, Any] | None = None,
        on_delete: SdkCall | Dict[str, Any] | None = None,
    ) -> "LifecycleConfiguration":
        """
        Builds the configuration from up to three raw calls.

        When `on_create` is omitted and `on_update` is given, the create call
        is a one-time deep copy of the materialized update call.

        Raises:
            ConfigurationError: If no call is given or any call is invalid.
        """
        if on_create is None and on_update is None and on_delete is None:
            raise ConfigurationError(
                "At least one of `on_create`, `on_update` or `on_delete` must be specified."
            )

        update = (
            build_call_spec(LifecycleEvent.UPDATE, on_update)
            if on_update is not None
            else None
        )
        if on_create is not None:
            create = build_call_spec(LifecycleEvent.CREATE, on_create)
        elif update is not None:
            logger.debug("No `on_create` given, copying `on_update`.")
            create = deepcopy(update)
        else:
            create = None
        delete = (
            build_call_spec(LifecycleEvent.DELETE, on_delete)
            if on_delete is not None
            else None
        )
        return cls(create=create, update=update, delete=delete)

    def get(self, event: LifecycleEvent) -> Optional[CallSpec]:
        return {
            LifecycleEvent.CREATE: self.create,
            LifecycleEvent.UPDATE: self.update,
            LifecycleEvent.DELETE: self.delete,
        }[event]

    def specs(self) -> Iterator[Tuple[LifecycleEvent, CallSpec]]:
        """Yields the present calls in Create, Update, Delete order."""
        for event in LifecycleEvent:
            spec = self.get(event)
            if spec is not None:
                yield event, spec

    def to_properties(self) -> Dict[str, Any]:
        return {event.value: spec.to_properties() for event, spec in self.specs()}
