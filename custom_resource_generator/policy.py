"""
Derives the IAM grants an execution role needs to perform a set of SDK calls,
or takes them verbatim from the caller.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Sequence, Tuple

from .call_spec import CallSpec
from .catalog import ServiceCatalog
from .helpers import ANY_RESOURCE, POLICY_VERSION, ConfigurationError
from .references import render_value

logger = logging.getLogger(__name__)


def _as_tuple(value: Any) -> Tuple[Any, ...]:
    if isinstance(value, (list, tuple)):
        return tuple(value)
    return (value,)


@dataclass(frozen=True)
class PolicyStatement:
    """An IAM policy statement. Lists are stored as tuples so statements are hashable."""

    actions: Tuple[str, ...]
    resources: Tuple[Any, ...] = (ANY_RESOURCE,)
    effect: str = "Allow"

    def __post_init__(self):
        object.__setattr__(self, "actions", _as_tuple(self.actions))
        object.__setattr__(self, "resources", _as_tuple(self.resources))
        if not self.actions:
            raise ConfigurationError("A policy statement needs at least one action.")
        if not self.resources:
            raise ConfigurationError("A policy statement needs at least one resource.")
        if self.effect not in ("Allow", "Deny"):
            raise ConfigurationError(
                f"Policy statement `effect` must be 'Allow' or 'Deny', got {self.effect!r}."
            )

    def to_json(self) -> Dict[str, Any]:
        actions = list(self.actions)
        resources = render_value(list(self.resources))
        return {
            "Action": actions[0] if len(actions) == 1 else actions,
            "Effect": self.effect,
            "Resource": resources[0] if len(resources) == 1 else resources,
        }


class GrantSet:
    """An insertion-ordered, de-duplicated collection of policy statements."""

    def __init__(self, statements: Iterable[PolicyStatement] = ()):
        self._statements: List[PolicyStatement] = []
        self._seen = set()
        self.extend(statements)

    def add(self, statement: PolicyStatement) -> bool:
        """Adds a statement; returns False if an identical one was already present."""
        # Resources may be intrinsic dicts, so compare rendered statements.
        key = json.dumps(statement.to_json(), sort_keys=True, default=repr)
        if key in self._seen:
            return False
        self._seen.add(key)
        self._statements.append(statement)
        return True

    def extend(self, statements: Iterable[PolicyStatement]):
        for statement in statements:
            self.add(statement)

    def __iter__(self) -> Iterator[PolicyStatement]:
        return iter(self._statements)

    def __len__(self) -> int:
        return len(self._statements)

    def __eq__(self, other) -> bool:
        if not isinstance(other, GrantSet):
            return NotImplemented
        return self._statements == other._statements

    def to_policy_document(self) -> Dict[str, Any]:
        return {
            "Statement": [statement.to_json() for statement in self._statements],
            "Version": POLICY_VERSION,
        }


def infer_grants(
    specs: Iterable[CallSpec],
    catalog: ServiceCatalog,
    resources: Sequence[Any] = (ANY_RESOURCE,),
) -> GrantSet:
    """
    Maps every call to its IAM permission, in call order.

    Args:
        specs: The calls to authorize.
        catalog: The (service, action) -> permission lookup table.
        resources: The resource patterns each grant applies to.

    Returns:
        The de-duplicated grants.

    Raises:
        ConfigurationError: If any call is missing from the catalog.
    """
    grants = GrantSet()
    for spec in specs:
        permission = catalog.permission_for(spec.service, spec.action)
        if grants.add(PolicyStatement(actions=(permission,), resources=tuple(resources))):
            logger.debug("Inferred %s for %s.%s", permission, spec.service, spec.action)
        if spec.assumed_role_arn:
            grants.add(
                PolicyStatement(actions=("sts:AssumeRole",), resources=(spec.assumed_role_arn,))
            )
    return grants


@dataclass(frozen=True)
class CustomResourcePolicy:
    """
    The policy source of a custom resource.

    Either explicit statements, used as they are, or inference from the SDK
    calls with a caller-chosen resource scope.
    """

    statements: Tuple[PolicyStatement, ...] = ()
    resources: Tuple[Any, ...] | None = None
    _explicit: bool = field(default=False, repr=False)

    @classmethod
    def from_statements(cls, statements: Iterable[PolicyStatement]) -> "CustomResourcePolicy":
        """Uses exactly these statements; no inference takes place."""
        statements = tuple(statements)
        if not statements:
            raise ConfigurationError(
                "`CustomResourcePolicy.from_statements` requires at least one statement."
            )
        return cls(statements=statements, _explicit=True)

    @classmethod
    def from_sdk_calls(cls, resources: Any = ANY_RESOURCE) -> "CustomResourcePolicy":
        """Infers one statement per call, scoped to `resources`."""
        resources = _as_tuple(resources)
        if not resources:
            raise ConfigurationError(
                "`CustomResourcePolicy.from_sdk_calls` requires at least one resource."
            )
        return cls(resources=resources)

    @property
    def is_explicit(self) -> bool:
        return self._explicit

    def resolve(self, specs: Iterable[CallSpec], catalog: ServiceCatalog) -> GrantSet:
        if self.is_explicit:
            return GrantSet(self.statements)
        return infer_grants(specs, catalog, self.resources or (ANY_RESOURCE,))
