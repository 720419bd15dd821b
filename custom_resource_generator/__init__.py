"""Generates CloudFormation custom resources that perform AWS SDK calls."""

from .call_spec import CallSpec, LifecycleConfiguration, LifecycleEvent, SdkCall
from .catalog import ServiceCatalog
from .helpers import ConfigurationError
from .physical_id import PhysicalResourceId
from .policy import CustomResourcePolicy, GrantSet, PolicyStatement
from .references import PhysicalResourceIdReference
from .resource import ResourceState, SdkCallResource
from .template import Role, Template

__all__ = [
    "CallSpec",
    "ConfigurationError",
    "CustomResourcePolicy",
    "GrantSet",
    "LifecycleConfiguration",
    "LifecycleEvent",
    "PhysicalResourceId",
    "PhysicalResourceIdReference",
    "PolicyStatement",
    "ResourceState",
    "Role",
    "SdkCall",
    "SdkCallResource",
    "ServiceCatalog",
    "Template",
]
