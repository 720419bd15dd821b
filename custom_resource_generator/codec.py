"""
Encoding of SDK call parameters for the template transport, and the reverse
operations the execution runtime applies to parameters and responses.

CloudFormation hands custom resource properties to the runtime as strings and
numbers only, so a boolean cannot be told apart from the strings "true" and
"false" once it has travelled. Booleans are therefore replaced by sentinel
strings that cannot collide with ordinary parameter values.
"""

from collections.abc import Mapping
from typing import Any, Dict, Iterable

from .helpers import (
    FALSE_BOOLEAN,
    PHYSICAL_RESOURCE_ID_MARKER,
    TRUE_BOOLEAN,
    ConfigurationError,
)
from .references import PhysicalResourceIdReference, Reference

_DECODED_BOOLEANS = {TRUE_BOOLEAN: True, FALSE_BOOLEAN: False}


class ResponseFieldNotFoundError(KeyError):
    """Raised when a response path does not exist in an SDK call response."""


def encode(value: Any, path: str = "parameters") -> Any:
    """
    Encodes a single parameter value for the template transport.

    Args:
        value: The value to encode. Strings, numbers, booleans, None, mappings,
            sequences and references are supported.
        path: The location of the value, used in error messages.

    Returns:
        The transport-safe representation of `value`.

    Raises:
        ConfigurationError: If the value (or any nested value) has an
            unsupported type.
    """
    # bool is a subclass of int and must be checked first.
    if isinstance(value, bool):
        return TRUE_BOOLEAN if value else FALSE_BOOLEAN
    if value is None or isinstance(value, (str, int, float)):
        return value
    if isinstance(value, PhysicalResourceIdReference):
        return PHYSICAL_RESOURCE_ID_MARKER
    if isinstance(value, Reference):
        # Resolved by the deployment engine at render time, not here.
        return value
    if isinstance(value, Mapping):
        encoded = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise ConfigurationError(
                    f"Parameter keys must be strings, got {type(key).__name__} "
                    f"key {key!r} in `{path}`."
                )
            encoded[key] = encode(item, f"{path}.{key}")
        return encoded
    if isinstance(value, (list, tuple)):
        return [encode(item, f"{path}[{i}]") for i, item in enumerate(value)]
    raise ConfigurationError(
        f"Unsupported value of type {type(value).__name__} in `{path}`; "
        "parameters may only contain strings, numbers, booleans, null, "
        "mappings, sequences and references."
    )


def encode_parameters(parameters: Mapping[str, Any] | None) -> Dict[str, Any] | None:
    """Encodes a whole parameter mapping, preserving key order."""
    if parameters is None:
        return None
    return encode(parameters)


def decode_booleans(value: Any) -> Any:
    """Reverses the boolean encoding. The plain strings "true"/"false" stay strings."""
    if isinstance(value, str):
        return _DECODED_BOOLEANS.get(value, value)
    if isinstance(value, Mapping):
        return {key: decode_booleans(item) for key, item in value.items()}
    if isinstance(value, list):
        return [decode_booleans(item) for item in value]
    return value


def decode(path: str, response: Any) -> Any:
    """
    Extracts the value found at a dotted `path` inside an SDK call response.

    Numeric segments index into lists, e.g. ``Reservations.0.Instances``.

    Raises:
        ResponseFieldNotFoundError: If any segment of the path is absent.
    """
    current = response
    for segment in path.split("."):
        if isinstance(current, Mapping) and segment in current:
            current = current[segment]
        elif (
            isinstance(current, list)
            and segment.isdecimal()
            and int(segment) < len(current)
        ):
            current = current[int(segment)]
        else:
            raise ResponseFieldNotFoundError(
                f"Path '{path}' not found in response: segment '{segment}' is missing."
            )
    return current


def flatten(response: Any, prefix: str = "") -> Dict[str, Any]:
    """
    Flattens a nested response into a single mapping of dotted paths to leaf
    values, the shape in which the execution runtime reports data back.
    """
    flat: Dict[str, Any] = {}
    if isinstance(response, Mapping):
        items = response.items()
    elif isinstance(response, list):
        items = ((str(i), item) for i, item in enumerate(response))
    else:
        return {prefix: response} if prefix else {}

    for key, item in items:
        full_key = f"{prefix}.{key}" if prefix else key
        if isinstance(item, (Mapping, list)) and item:
            flat.update(flatten(item, full_key))
        else:
            flat[full_key] = item
    return flat


def filter_output(flat: Mapping[str, Any], output_paths: Iterable[str] | None) -> Dict[str, Any]:
    """Keeps only the flattened keys that fall under one of `output_paths`."""
    if output_paths is None:
        return dict(flat)
    paths = list(output_paths)
    return {
        key: value
        for key, value in flat.items()
        if any(key.startswith(path) for path in paths)
    }
