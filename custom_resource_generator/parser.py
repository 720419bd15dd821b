"""
Parses and validates the generator configuration file and transforms it into
the structured models from `models.py`.
"""

from copy import deepcopy
from typing import Any, Dict, Set, Tuple

from pydantic import ValidationError

from .helpers import ValidationErrorCollector
from .models import GeneratorSettings, ResourceConfig

# Parameter values of the form {get_data: "<ResourceId>.<Field>"} reference a
# field of another resource's response. A single-key mapping under this key is
# always read as a reference, so it cannot be sent as a literal SDK parameter;
# mappings with further keys are passed through unchanged.
GET_DATA_KEY = "get_data"


def parse_get_data(value: Any) -> Tuple[str, str] | None:
    """Returns (resource id, field) if `value` is a get_data reference, else None."""
    if not (isinstance(value, dict) and len(value) == 1 and GET_DATA_KEY in value):
        return None
    target = value[GET_DATA_KEY]
    if not isinstance(target, str) or "." not in target:
        raise ValueError(
            f"`{GET_DATA_KEY}` must be a string of the form '<ResourceId>.<Field>', got {target!r}."
        )
    resource_id, field = target.split(".", 1)
    return resource_id, field


def find_get_data_targets(value: Any) -> Set[str]:
    """Collects the ids of all resources referenced through get_data inside `value`."""
    reference = parse_get_data(value)
    if reference is not None:
        return {reference[0]}
    targets: Set[str] = set()
    if isinstance(value, dict):
        for item in value.values():
            targets |= find_get_data_targets(item)
    elif isinstance(value, list):
        for item in value:
            targets |= find_get_data_targets(item)
    return targets


class ConfigParser:
    """
    Parses the generator configuration and validates each resource entry.

    Errors are collected rather than raised so that every problem in the file
    is reported in one run.
    """

    def __init__(self, config_data: Dict[str, Any], collector: ValidationErrorCollector):
        self.config = config_data or {}
        self.collector = collector

    def parse(self) -> Tuple[GeneratorSettings, Dict[str, ResourceConfig]]:
        settings = self._parse_settings()

        resources: Dict[str, ResourceConfig] = {}
        raw_resources = self.config.get("resources") or {}
        if not isinstance(raw_resources, dict):
            self.collector.add_error("`resources` must be a mapping of logical id to resource.")
            return settings, resources

        if not raw_resources:
            self.collector.add_error("The configuration does not define any `resources`.")

        for logical_id, raw_config in raw_resources.items():
            # Use a deep copy so validation never alters the loaded document.
            try:
                resources[logical_id] = ResourceConfig.model_validate(
                    deepcopy(raw_config or {})
                )
            except ValidationError as e:
                self.collector.add_error(str(e), resource=logical_id)

        self._validate_references(resources, set(raw_resources))
        return settings, resources

    def _parse_settings(self) -> GeneratorSettings:
        try:
            return GeneratorSettings.model_validate(self.config.get("settings") or {})
        except ValidationError as e:
            self.collector.add_error(f"Invalid `settings`: {e}")
            return GeneratorSettings()

    def _validate_references(
        self, resources: Dict[str, ResourceConfig], defined: Set[str]
    ):
        """Checks that every get_data reference points at a defined resource."""
        for logical_id, resource in resources.items():
            for call in (resource.on_create, resource.on_update, resource.on_delete):
                if call is None or not call.parameters:
                    continue
                try:
                    targets = find_get_data_targets(call.parameters)
                except ValueError as e:
                    self.collector.add_error(str(e), resource=logical_id)
                    continue
                for target in sorted(targets):
                    if target not in defined:
                        self.collector.add_error(
                            f"`{GET_DATA_KEY}` references unknown resource '{target}'.",
                            resource=logical_id,
                        )
