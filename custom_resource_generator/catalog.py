"""
The static lookup table mapping SDK calls to IAM permissions.

The table is kept apart from the inference algorithm in `policy.py` so it can
be extended (from YAML files or in code) without touching the algorithm.
"""

import logging
import os
from copy import deepcopy
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Tuple

import yaml
from pydantic import BaseModel, Field, ValidationError

from .helpers import ConfigurationError, capitalize_first, lower_first

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = os.path.join(
    os.path.dirname(os.path.abspath(__file__)), "data", "service_catalog.yaml"
)

# (lower-cased service name, action with a lower-case first letter)
CatalogKey = Tuple[str, str]


class CatalogServiceEntry(BaseModel):
    """One service of a catalog file."""

    # The IAM namespace of the service, e.g. 'logs' for CloudWatchLogs.
    prefix: str

    # Actions whose permission is `<prefix>:<Action>`.
    actions: List[str] = Field(default_factory=list)

    # Actions whose permission does not follow the naming rule.
    permissions: Dict[str, str] = Field(default_factory=dict)


class CatalogFile(BaseModel):
    services: Dict[str, CatalogServiceEntry] = Field(default_factory=dict)


def _read_catalog_file(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r") as f:
            return yaml.safe_load(f) or {}
    except (IOError, yaml.YAMLError) as e:
        raise ConfigurationError(
            f"Error reading or parsing catalog file '{path}': {e}"
        ) from e


@lru_cache(maxsize=None)
def _default_entries() -> Dict[CatalogKey, str]:
    return ServiceCatalog.parse_entries(
        _read_catalog_file(DEFAULT_CATALOG_PATH), DEFAULT_CATALOG_PATH
    )


def _key(service: str, action: str) -> CatalogKey:
    return service.lower(), lower_first(action)


class ServiceCatalog:
    """An explicit (service, action) -> permission lookup table."""

    def __init__(self, entries: Dict[CatalogKey, str] | None = None):
        self.entries: Dict[CatalogKey, str] = dict(entries or {})

    @classmethod
    def default(cls) -> "ServiceCatalog":
        """Returns a fresh copy of the catalog shipped with the package."""
        return cls(deepcopy(_default_entries()))

    @classmethod
    def load(cls, paths: Iterable[str] = ()) -> "ServiceCatalog":
        """
        Returns the packaged catalog extended with the given catalog files.

        Entries from later files override earlier ones.
        """
        catalog = cls.default()
        for path in paths:
            extra = cls.parse_entries(_read_catalog_file(path), path)
            logger.info("Loaded %d catalog entries from %s", len(extra), path)
            catalog.entries.update(extra)
        return catalog

    @staticmethod
    def parse_entries(data: Dict[str, Any], source: str = "<data>") -> Dict[CatalogKey, str]:
        """Converts the contents of a catalog file into lookup entries."""
        try:
            catalog_file = CatalogFile.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid catalog '{source}': {e}") from e

        entries: Dict[CatalogKey, str] = {}
        for service, entry in catalog_file.services.items():
            for action in entry.actions:
                entries[_key(service, action)] = (
                    f"{entry.prefix}:{capitalize_first(action)}"
                )
            for action, permission in entry.permissions.items():
                entries[_key(service, action)] = permission
        return entries

    def register(self, service: str, action: str, permission: str):
        """Adds or replaces the permission for one SDK call."""
        self.entries[_key(service, action)] = permission

    def permission_for(self, service: str, action: str) -> str:
        """
        Returns the IAM permission required to call `service.action`.

        Raises:
            ConfigurationError: If the call is not in the catalog.
        """
        try:
            return self.entries[_key(service, action)]
        except KeyError:
            raise ConfigurationError(
                f"No IAM permission is known for service `{service}` and action "
                f"`{action}`. Supply an explicit `policy` with "
                "`CustomResourcePolicy.from_statements` or register the call in "
                "the service catalog."
            ) from None

    def __contains__(self, call: CatalogKey) -> bool:
        return _key(*call) in self.entries

    def __len__(self) -> int:
        return len(self.entries)
