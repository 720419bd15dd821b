"""
Pydantic models for the YAML configuration consumed by the generator, and the
provider settings shared with the programmatic API.
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .call_spec import SdkCall
from .helpers import DEFAULT_RESOURCE_TYPE, DEFAULT_TIMEOUT


class ProviderSettings(BaseModel):
    """How the execution runtime's Lambda function is deployed."""

    runtime: str = "nodejs20.x"
    handler: str = "index.handler"

    # The `Code` property of the function. Packaging the runtime is out of
    # scope; the artifact is expected at this location.
    code: Dict[str, Any] = Field(
        default_factory=lambda: {
            "S3Bucket": "custom-resource-provider-assets",
            "S3Key": "sdk-call-provider.zip",
        }
    )


class GeneratorSettings(BaseModel):
    """The `settings` section of a generator configuration file."""

    description: Optional[str] = None

    # The output file is written as `<template_name>.yaml` (or `.json`).
    template_name: str = "template"

    default_timeout: timedelta = DEFAULT_TIMEOUT
    install_latest_sdk: bool = True
    provider: ProviderSettings = Field(default_factory=ProviderSettings)

    # Additional service catalog files, merged over the packaged catalog.
    catalogs: List[str] = Field(default_factory=list)


class PolicyStatementConfig(BaseModel):
    actions: List[str]
    resources: List[str] = Field(default_factory=lambda: ["*"])
    effect: str = "Allow"

    @field_validator("actions", "resources", mode="before")
    def wrap_single_value(cls, v):
        if isinstance(v, str):
            return [v]
        return v


class PolicyConfig(BaseModel):
    """
    Either explicit `statements`, or the `resources` that inferred grants are
    scoped to. Explicit statements win when both are given.
    """

    statements: List[PolicyStatementConfig] = Field(default_factory=list)
    resources: Optional[List[str]] = None


class ResourceConfig(BaseModel):
    """One entry of the `resources` section of a generator configuration file."""

    resource_type: str = Field(DEFAULT_RESOURCE_TYPE, alias="resourceType")
    on_create: Optional[SdkCall] = Field(None, alias="onCreate")
    on_update: Optional[SdkCall] = Field(None, alias="onUpdate")
    on_delete: Optional[SdkCall] = Field(None, alias="onDelete")
    policy: Optional[PolicyConfig] = None

    # An existing role to run the calls with, instead of the shared provider role.
    role_arn: Optional[str] = Field(None, alias="roleArn")

    timeout: Optional[timedelta] = None
    install_latest_sdk: Optional[bool] = Field(None, alias="installLatestAwsSdk")
    function_name: Optional[str] = Field(None, alias="functionName")

    class Config:
        populate_by_name = True
        extra = "forbid"
