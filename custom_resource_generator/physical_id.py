from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from .codec import decode
from .helpers import ConfigurationError


class PhysicalResourceIdKind(str, Enum):
    LITERAL = "literal"
    FROM_RESPONSE = "from_response"


@dataclass(frozen=True)
class PhysicalResourceId:
    """
    The strategy for determining the physical id of the external resource.

    Either a literal value known up front, or a path into the SDK call
    response. Use the `from_literal` and `from_response_path` constructors.
    """

    kind: PhysicalResourceIdKind
    value: str

    @classmethod
    def from_literal(cls, value: str) -> "PhysicalResourceId":
        """A physical id that is the given string."""
        if not value:
            raise ConfigurationError("A literal physical resource id cannot be empty.")
        return cls(PhysicalResourceIdKind.LITERAL, value)

    @classmethod
    def from_response_path(cls, path: str) -> "PhysicalResourceId":
        """A physical id read from the dotted `path` of the SDK call response."""
        if not path:
            raise ConfigurationError("A physical resource id response path cannot be empty.")
        return cls(PhysicalResourceIdKind.FROM_RESPONSE, path)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PhysicalResourceId":
        """Builds an instance from its wire form, `{"id": ...}` or `{"responsePath": ...}`."""
        if not isinstance(data, dict) or len(data) != 1:
            raise ConfigurationError(
                "`physicalResourceId` must have exactly one of the keys `id` or "
                f"`responsePath`, got {data!r}."
            )
        if "id" in data:
            return cls.from_literal(data["id"])
        if "responsePath" in data:
            return cls.from_response_path(data["responsePath"])
        raise ConfigurationError(
            "`physicalResourceId` must have exactly one of the keys `id` or "
            f"`responsePath`, got {data!r}."
        )

    @property
    def is_response_derived(self) -> bool:
        return self.kind is PhysicalResourceIdKind.FROM_RESPONSE

    def to_dict(self) -> Dict[str, str]:
        if self.is_response_derived:
            return {"responsePath": self.value}
        return {"id": self.value}

    def resolve(self, response: Any) -> Any:
        """
        Returns the physical id for a completed call, as the execution runtime
        determines it.

        Raises:
            ResponseFieldNotFoundError: If the id is response-derived and the
                path is missing from `response`.
        """
        if self.is_response_derived:
            return decode(self.value, response)
        return self.value
