"""
The custom resource that performs SDK calls on lifecycle events.

`SdkCallResource` ties the other components together: it validates the calls,
resolves the IAM grants they need, attaches those grants to the execution
role, and registers the resource the execution runtime acts upon.
"""

import logging
import re
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .call_spec import LifecycleConfiguration, SdkCall
from .catalog import ServiceCatalog
from .helpers import (
    DEFAULT_RESOURCE_TYPE,
    DEFAULT_TIMEOUT,
    MAX_TIMEOUT,
    ConfigurationError,
)
from .models import ProviderSettings
from .policy import CustomResourcePolicy, GrantSet
from .references import ResponseReference, StringResponseReference
from .template import ProviderFunction, Role, Template, stable_suffix

logger = logging.getLogger(__name__)

PROVIDER_ID_PREFIX = "SdkCallProvider"

_RESOURCE_TYPE_PATTERN = re.compile(r"^Custom::[A-Za-z0-9_@-]+$")
_MAX_RESOURCE_TYPE_LENGTH = 60


class ResourceState(str, Enum):
    UNVALIDATED = "unvalidated"
    CONFIGURED = "configured"
    READY = "ready"


def _validate_resource_type(resource_type: str):
    if len(resource_type) > _MAX_RESOURCE_TYPE_LENGTH:
        raise ConfigurationError(
            f"`resource_type` '{resource_type}' is longer than "
            f"{_MAX_RESOURCE_TYPE_LENGTH} characters."
        )
    if not _RESOURCE_TYPE_PATTERN.match(resource_type):
        raise ConfigurationError(
            f"`resource_type` '{resource_type}' must start with 'Custom::' followed "
            "by alphanumeric characters, '_', '@' or '-'."
        )


def _timeout_seconds(timeout: timedelta) -> int:
    seconds = timeout.total_seconds()
    if seconds != int(seconds):
        raise ConfigurationError(f"`timeout` must be a whole number of seconds, got {timeout}.")
    if not 1 <= seconds <= MAX_TIMEOUT.total_seconds():
        raise ConfigurationError(
            f"`timeout` must be between 1 second and {MAX_TIMEOUT}, got {timeout}."
        )
    return int(seconds)


def _provider_key(
    role: Optional[Role],
    timeout_seconds: int,
    provider: ProviderSettings,
    function_name: Optional[str],
) -> Tuple[Any, ...]:
    return (
        role.logical_id if role is not None else None,
        timeout_seconds,
        provider.runtime,
        provider.handler,
        function_name,
    )


def _provider_id(key: Tuple[Any, ...]) -> str:
    return f"{PROVIDER_ID_PREFIX}{stable_suffix(*key)}"


def _singleton_key(key: Tuple[Any, ...]) -> Tuple[Any, ...]:
    return ("sdk-call-provider",) + key


class SdkCallResource:
    """
    A custom resource whose create, update and delete events each perform one
    SDK call through a shared execution runtime.

    Construction is all-or-nothing: every configuration error is raised before
    anything is added to the template.

    Args:
        template: The template the resource is added to.
        logical_id: The logical id of the custom resource.
        resource_type: The `Custom::` type of the resource.
        on_create: The call performed on create. Defaults to a copy of `on_update`.
        on_update: The call performed on update.
        on_delete: The call performed on delete.
        policy: Explicit statements, or the resource scope of inferred grants.
            Defaults to grants inferred on any resource.
        role: The execution role. Defaults to the role of the shared provider.
        timeout: The execution runtime timeout. Defaults to two minutes.
        install_latest_sdk: Whether the runtime installs the latest SDK first.
        function_name: A physical name for the provider function.
        provider: Runtime, handler and code location of the provider function.
        catalog: The (service, action) -> permission table used for inference.
    """

    def __init__(
        self,
        template: Template,
        logical_id: str,
        *,
        resource_type: str = DEFAULT_RESOURCE_TYPE,
        on_create: SdkCall | Dict[str, Any] | None = None,
        on_update: SdkCall | Dict[str, Any] | None = None,
        on_delete: SdkCall | Dict[str, Any] | None = None,
        policy: CustomResourcePolicy | None = None,
        role: Role | None = None,
        timeout: timedelta | None = None,
        install_latest_sdk: bool = True,
        function_name: str | None = None,
        provider: ProviderSettings | None = None,
        catalog: ServiceCatalog | None = None,
    ):
        self.template = template
        self.logical_id = logical_id
        self.resource_type = resource_type
        self.state = ResourceState.UNVALIDATED

        template.check_logical_id(logical_id)
        _validate_resource_type(resource_type)
        self.timeout = timeout if timeout is not None else DEFAULT_TIMEOUT
        timeout_seconds = _timeout_seconds(self.timeout)

        # 1. Validate and materialize the calls.
        self.lifecycle = LifecycleConfiguration.from_calls(
            on_create=on_create, on_update=on_update, on_delete=on_delete
        )
        self.state = ResourceState.CONFIGURED

        # 2. Resolve grants before touching the template so a failure leaves it unchanged.
        policy = policy or CustomResourcePolicy.from_sdk_calls()
        catalog = catalog or ServiceCatalog.default()
        specs = [spec for _, spec in self.lifecycle.specs()]
        self.grants: GrantSet = policy.resolve(specs, catalog)

        # 3. Reuse or create the execution runtime and its role.
        provider = provider or ProviderSettings()
        key = _provider_key(role, timeout_seconds, provider, function_name)
        self._check_new_ids(role, key)
        self.provider = self._get_provider(role, key, timeout_seconds, provider, function_name)
        self.role = self.provider.role

        # 4. Attach the grants. A shared role accumulates them across resources.
        for statement in self.grants:
            self.role.add_to_policy(statement)

        # 5. Emit the custom resource itself.
        properties: Dict[str, Any] = {"ServiceToken": self.provider.function_arn}
        properties.update(self.lifecycle.to_properties())
        properties["InstallLatestAwsSdk"] = install_latest_sdk
        self.resource = template.add_resource(
            logical_id,
            resource_type,
            properties,
            depends_on=[self.role.default_policy_id],
        )
        self.state = ResourceState.READY
        logger.info(
            "Configured %s (%s) with %d grant(s) on %s",
            logical_id,
            resource_type,
            len(self.grants),
            self.role.logical_id,
        )

    def _check_new_ids(self, role: Optional[Role], key: Tuple[Any, ...]):
        """
        Checks every logical id this resource is about to add, so that a
        collision is raised before the template is modified.
        """
        provider_id = _provider_id(key)
        new_ids = [self.logical_id]
        existing = self.template.get_singleton(_singleton_key(key))
        if existing is not None:
            role = existing.role
        else:
            new_ids.append(provider_id)
            if role is None:
                new_ids.append(f"{provider_id}ServiceRole")

        if role is None:
            new_ids.append(f"{provider_id}ServiceRoleDefaultPolicy")
        elif role.default_policy is None:
            new_ids.append(role.default_policy_id)

        seen = set()
        for logical_id in new_ids:
            if logical_id in seen:
                raise ConfigurationError(
                    f"Logical id '{logical_id}' is needed twice by '{self.logical_id}'."
                )
            seen.add(logical_id)
            self.template.check_logical_id(logical_id)

    def _get_provider(
        self,
        role: Optional[Role],
        key: Tuple[Any, ...],
        timeout_seconds: int,
        provider: ProviderSettings,
        function_name: Optional[str],
    ) -> ProviderFunction:
        """
        Returns the provider function shared by every resource with the same
        role, timeout, runtime and function name, creating it on first use.
        """
        provider_id = _provider_id(key)

        def create() -> ProviderFunction:
            execution_role = role or Role(self.template, f"{provider_id}ServiceRole")
            return ProviderFunction(
                self.template,
                provider_id,
                execution_role,
                timeout_seconds=timeout_seconds,
                runtime=provider.runtime,
                handler=provider.handler,
                code=provider.code,
                function_name=function_name,
            )

        return self.template.singleton(_singleton_key(key), create)

    @property
    def grant_principal(self) -> Role:
        """The role the SDK calls are performed with."""
        return self.role

    def _declared_output_paths(self) -> Optional[List[str]]:
        declared = [
            spec.declared_output_paths
            for _, spec in self.lifecycle.specs()
            if spec.declared_output_paths is not None
        ]
        if not declared:
            return None
        return [path for paths in declared for path in paths]

    def get_data(self, data_path: str) -> ResponseReference:
        """
        Returns a reference to a field of the SDK call response.

        Raises:
            ConfigurationError: If the calls restrict their output paths and
                `data_path` is not under any of them.
        """
        output_paths = self._declared_output_paths()
        if output_paths is not None and not any(
            data_path.startswith(path) for path in output_paths
        ):
            raise ConfigurationError(
                f"`{data_path}` is not under any of the declared output paths "
                f"({', '.join(output_paths)}) of '{self.logical_id}'."
            )
        return ResponseReference(self.logical_id, data_path)

    def get_data_string(self, data_path: str) -> StringResponseReference:
        """Like `get_data`, for a response field known to hold a string."""
        reference = self.get_data(data_path)
        return StringResponseReference(reference.logical_id, reference.attribute)
