"""
A minimal CloudFormation template model: the surface through which custom
resources register themselves, reference other resources, and attach IAM
grants to their execution role.
"""

import hashlib
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .helpers import POLICY_VERSION, ConfigurationError
from .policy import GrantSet, PolicyStatement
from .references import AttributeReference, Ref, render_value

logger = logging.getLogger(__name__)

TEMPLATE_FORMAT_VERSION = "2010-09-09"

LAMBDA_SERVICE_PRINCIPAL = "lambda.amazonaws.com"

BASIC_EXECUTION_POLICY_ARN = (
    "arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole"
)

_LOGICAL_ID_PATTERN = re.compile(r"^[A-Za-z0-9]{1,255}$")
_ROLE_ARN_PATTERN = re.compile(r"^arn:[\w-]+:iam::\d{12}:role/(?:[\w+=,.@-]+/)*([\w+=,.@-]+)$")


@dataclass
class CfnResource:
    """A single resource entry of the template."""

    logical_id: str
    resource_type: str
    properties: Dict[str, Any] = field(default_factory=dict)
    depends_on: List[str] = field(default_factory=list)

    def add_dependency(self, logical_id: str):
        if logical_id not in self.depends_on:
            self.depends_on.append(logical_id)

    def to_dict(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"Type": self.resource_type}
        if self.properties:
            entry["Properties"] = render_value(self.properties)
        if self.depends_on:
            entry["DependsOn"] = list(self.depends_on)
        return entry


class Template:
    """An ordered collection of resources that renders to a CloudFormation document."""

    def __init__(self, description: str | None = None):
        self.description = description
        self.resources: Dict[str, CfnResource] = {}
        self._singletons: Dict[Any, Any] = {}
        self._finalizers: List[Callable[[], None]] = []

    def add_resource(
        self,
        logical_id: str,
        resource_type: str,
        properties: Dict[str, Any] | None = None,
        depends_on: List[str] | None = None,
    ) -> CfnResource:
        """
        Registers a resource under a unique logical id.

        Raises:
            ConfigurationError: If the id is malformed or already taken.
        """
        self.check_logical_id(logical_id)
        resource = CfnResource(
            logical_id=logical_id,
            resource_type=resource_type,
            properties=properties or {},
            depends_on=list(depends_on or []),
        )
        self.resources[logical_id] = resource
        logger.debug("Registered %s as %s", logical_id, resource_type)
        return resource

    def check_logical_id(self, logical_id: str):
        """Raises `ConfigurationError` unless `logical_id` is well-formed and unused."""
        if not _LOGICAL_ID_PATTERN.match(logical_id or ""):
            raise ConfigurationError(
                f"Logical id '{logical_id}' must be 1-255 alphanumeric characters."
            )
        if logical_id in self.resources:
            raise ConfigurationError(
                f"A resource with logical id '{logical_id}' already exists in the template."
            )

    def get_resource(self, logical_id: str) -> Optional[CfnResource]:
        return self.resources.get(logical_id)

    def singleton(self, key: Any, factory: Callable[[], Any]) -> Any:
        """Returns the object registered under `key`, creating it on first use."""
        if key not in self._singletons:
            self._singletons[key] = factory()
        return self._singletons[key]

    def get_singleton(self, key: Any) -> Any:
        """Returns the object registered under `key`, or None if it was never created."""
        return self._singletons.get(key)

    def on_render(self, finalizer: Callable[[], None]):
        """Registers a callback that completes deferred properties before rendering."""
        self._finalizers.append(finalizer)

    def resolve(self, value: Any) -> Any:
        """Turns references inside `value` into template intrinsics."""
        return render_value(value)

    def render(self) -> Dict[str, Any]:
        for finalizer in self._finalizers:
            finalizer()
        document: Dict[str, Any] = {"AWSTemplateFormatVersion": TEMPLATE_FORMAT_VERSION}
        if self.description:
            document["Description"] = self.description
        document["Resources"] = {
            logical_id: resource.to_dict()
            for logical_id, resource in self.resources.items()
        }
        return document


class Role:
    """
    An IAM role owned by the template.

    Grants added with `add_to_policy` accumulate across every caller sharing
    the role and render as a single `<RoleId>DefaultPolicy` resource.
    """

    def __init__(
        self,
        template: Template,
        logical_id: str,
        assumed_by: str = LAMBDA_SERVICE_PRINCIPAL,
        managed_policy_arns: List[str] | None = None,
    ):
        self._init_grants(template, logical_id)
        if managed_policy_arns is None:
            managed_policy_arns = [BASIC_EXECUTION_POLICY_ARN]
        properties: Dict[str, Any] = {
            "AssumeRolePolicyDocument": {
                "Statement": [
                    {
                        "Action": "sts:AssumeRole",
                        "Effect": "Allow",
                        "Principal": {"Service": assumed_by},
                    }
                ],
                "Version": POLICY_VERSION,
            }
        }
        if managed_policy_arns:
            properties["ManagedPolicyArns"] = list(managed_policy_arns)
        template.add_resource(logical_id, "AWS::IAM::Role", properties)
        self.role_arn: Any = AttributeReference(logical_id, "Arn")
        self.role_name: Any = Ref(logical_id)
        self.imported = False

    def _init_grants(self, template: Template, logical_id: str):
        self.template = template
        self.logical_id = logical_id
        self.grants = GrantSet()
        self.default_policy: Optional[CfnResource] = None

    @classmethod
    def from_role_arn(cls, template: Template, logical_id: str, role_arn: str) -> "Role":
        """References a role that exists outside of the template."""
        return ImportedRole(template, logical_id, role_arn)

    @property
    def default_policy_id(self) -> str:
        return f"{self.logical_id}DefaultPolicy"

    def add_to_policy(self, statement: PolicyStatement) -> bool:
        """
        Adds a statement to the role's default policy.

        Returns:
            False if an identical statement was already attached.
        """
        if self.default_policy is None:
            self.default_policy = self.template.add_resource(
                self.default_policy_id, "AWS::IAM::Policy"
            )
            self.template.on_render(self._finalize_policy)
        return self.grants.add(statement)

    def grant_pass_role(self, grantee: "Role"):
        """Allows `grantee` to pass this role to an AWS service."""
        grantee.add_to_policy(
            PolicyStatement(actions=("iam:PassRole",), resources=(self.role_arn,))
        )

    def _finalize_policy(self):
        self.default_policy.properties = {
            "PolicyDocument": self.grants.to_policy_document(),
            "PolicyName": self.default_policy_id,
            "Roles": [self.role_name],
        }


class ImportedRole(Role):
    """A role defined outside of the template, referenced by its ARN."""

    def __init__(self, template: Template, logical_id: str, role_arn: str):
        match = _ROLE_ARN_PATTERN.match(role_arn or "")
        if not match:
            raise ConfigurationError(f"'{role_arn}' is not a valid IAM role ARN.")
        self._init_grants(template, logical_id)
        self.role_arn = role_arn
        self.role_name = match.group(1)
        self.imported = True


class ProviderFunction:
    """The Lambda function of the execution runtime that performs the SDK calls."""

    def __init__(
        self,
        template: Template,
        logical_id: str,
        role: Role,
        timeout_seconds: int,
        runtime: str,
        handler: str,
        code: Dict[str, Any],
        function_name: str | None = None,
    ):
        properties: Dict[str, Any] = {
            "Code": dict(code),
            "Handler": handler,
            "Role": role.role_arn,
            "Runtime": runtime,
            "Timeout": timeout_seconds,
        }
        if function_name:
            properties["FunctionName"] = function_name
        depends_on = [] if role.imported else [role.logical_id]
        self.resource = template.add_resource(
            logical_id, "AWS::Lambda::Function", properties, depends_on
        )
        self.logical_id = logical_id
        self.role = role
        self.function_arn = AttributeReference(logical_id, "Arn")


def stable_suffix(*parts: Any) -> str:
    """A short, deterministic suffix derived from `parts`, for generated logical ids."""
    digest = hashlib.sha256(repr(parts).encode("utf-8")).hexdigest()
    return digest[:8].upper()
