"""
This is the main orchestrator of the template generation process.

It coordinates the parsing of the configuration file, the construction of
every custom resource in dependency order, and the final rendering of the
template document.
"""

import json
import logging
import os
import sys
from graphlib import CycleError, TopologicalSorter
from typing import Any, Dict, Iterable, List

import yaml
from jinja2 import Environment, FileSystemLoader

from .catalog import ServiceCatalog
from .helpers import ConfigurationError, ValidationErrorCollector
from .models import GeneratorSettings, PolicyConfig, ResourceConfig
from .parser import ConfigParser, find_get_data_targets, parse_get_data
from .policy import CustomResourcePolicy, PolicyStatement
from .resource import SdkCallResource
from .template import Role, Template, stable_suffix

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.abspath(__file__)), "templates"
)

OUTPUT_FORMATS = ("yaml", "json")


def _to_yaml(value: Any) -> str:
    return yaml.safe_dump(value, sort_keys=False, default_flow_style=False).rstrip()


class Generator:
    """Builds a CloudFormation template from a custom resource configuration."""

    def __init__(
        self,
        config_data: Dict[str, Any],
        template_dir: str = DEFAULT_TEMPLATE_DIR,
        catalog_paths: Iterable[str] = (),
        base_dir: str | None = None,
    ):
        """
        Initializes the generator with the configuration data.

        Args:
            config_data (dict): The generator configuration data.
            template_dir (str): Path to the directory with Jinja2 templates.
            catalog_paths: Extra service catalog files, applied after the
                ones listed in the configuration's settings.
            base_dir (str): Directory relative catalog paths are resolved from.
        """
        self.config_data = config_data
        self.catalog_paths = list(catalog_paths)
        self.base_dir = base_dir or os.getcwd()
        self.jinja_env = Environment(
            loader=FileSystemLoader(template_dir), trim_blocks=True, lstrip_blocks=True
        )
        self.jinja_env.filters["to_yaml"] = _to_yaml

    @classmethod
    def from_files(cls, config_path, catalog_paths=(), template_dir=DEFAULT_TEMPLATE_DIR):
        """Creates a Generator instance by loading the configuration from a file."""
        try:
            with open(config_path, "r") as f:
                config_data = yaml.safe_load(f)
        except (IOError, yaml.YAMLError) as e:
            print(
                f"Error reading or parsing config file '{config_path}': {e}",
                file=sys.stderr,
            )
            sys.exit(1)

        return cls(
            config_data or {},
            template_dir=template_dir,
            catalog_paths=catalog_paths,
            base_dir=os.path.dirname(os.path.abspath(config_path)),
        )

    def build(self) -> tuple[GeneratorSettings, Template]:
        """
        Parses the configuration and builds every resource into a template.

        Configuration errors are collected per resource and reported together;
        the process exits if any were found.
        """
        collector = ValidationErrorCollector()

        # 1. Parse the configuration into structured models.
        settings, resources = ConfigParser(self.config_data, collector).parse()
        collector.report()

        # 2. Load the permission catalog once for all resources.
        catalog_paths = [
            path if os.path.isabs(path) else os.path.join(self.base_dir, path)
            for path in settings.catalogs
        ] + self.catalog_paths
        try:
            catalog = ServiceCatalog.load(catalog_paths)
        except ConfigurationError as e:
            collector.add_error(str(e))
            collector.report()

        # 3. Order resources so that get_data targets are built first.
        order = self._sort_resources(resources, collector)
        collector.report()

        # 4. Build each resource, isolating errors per resource.
        template = Template(description=settings.description)
        built: Dict[str, SdkCallResource] = {}
        roles: Dict[str, Role] = {}
        for logical_id in order:
            resource_config = resources[logical_id]
            missing = sorted(
                target
                for target in self._get_data_targets(resource_config)
                if target not in built
            )
            if missing:
                collector.add_error(
                    f"Skipped because it depends on {', '.join(repr(m) for m in missing)} "
                    "which could not be built.",
                    resource=logical_id,
                )
                continue
            try:
                built[logical_id] = self._build_resource(
                    template, logical_id, resource_config, settings, catalog, built, roles
                )
            except ConfigurationError as e:
                collector.add_error(str(e), resource=logical_id)

        collector.report()
        return settings, template

    def _get_data_targets(self, resource_config: ResourceConfig) -> set[str]:
        targets = set()
        for call in (resource_config.on_create, resource_config.on_update, resource_config.on_delete):
            if call is not None and call.parameters:
                targets |= find_get_data_targets(call.parameters)
        return targets

    def _sort_resources(
        self, resources: Dict[str, ResourceConfig], collector: ValidationErrorCollector
    ) -> List[str]:
        """
        Performs a topological sort of the resources over their get_data
        references, keeping the configuration order where there is no edge.
        """
        # graphlib expects {node: {predecessors}}.
        graph = {
            name: self._get_data_targets(config) & set(resources)
            for name, config in resources.items()
        }
        try:
            sorter = TopologicalSorter(graph)
            sorter.prepare()
        except CycleError as e:
            collector.add_error(
                f"A circular `get_data` dependency was detected between resources: {e.args[1]}"
            )
            return []

        position = {name: i for i, name in enumerate(resources)}
        order = []
        while sorter.is_active():
            ready = sorted(sorter.get_ready(), key=position.__getitem__)
            order.extend(ready)
            sorter.done(*ready)
        return order

    def _substitute_get_data(self, value: Any, built: Dict[str, SdkCallResource]) -> Any:
        reference = parse_get_data(value)
        if reference is not None:
            resource_id, field = reference
            return built[resource_id].get_data(field)
        if isinstance(value, dict):
            return {key: self._substitute_get_data(item, built) for key, item in value.items()}
        if isinstance(value, list):
            return [self._substitute_get_data(item, built) for item in value]
        return value

    def _build_policy(self, policy_config: PolicyConfig | None) -> CustomResourcePolicy | None:
        if policy_config is None:
            return None
        if policy_config.statements:
            return CustomResourcePolicy.from_statements(
                PolicyStatement(
                    actions=tuple(statement.actions),
                    resources=tuple(statement.resources),
                    effect=statement.effect,
                )
                for statement in policy_config.statements
            )
        if policy_config.resources is not None:
            return CustomResourcePolicy.from_sdk_calls(resources=policy_config.resources)
        return None

    def _build_resource(
        self,
        template: Template,
        logical_id: str,
        config: ResourceConfig,
        settings: GeneratorSettings,
        catalog: ServiceCatalog,
        built: Dict[str, SdkCallResource],
        roles: Dict[str, Role],
    ) -> SdkCallResource:
        calls = {}
        for name in ("on_create", "on_update", "on_delete"):
            call = getattr(config, name)
            if call is not None and call.parameters:
                call = call.model_copy(
                    update={"parameters": self._substitute_get_data(call.parameters, built)}
                )
            calls[name] = call

        role = None
        if config.role_arn:
            # Resources naming the same role share it, and so share its grants.
            if config.role_arn not in roles:
                roles[config.role_arn] = Role.from_role_arn(
                    template, f"ImportedRole{stable_suffix(config.role_arn)}", config.role_arn
                )
            role = roles[config.role_arn]

        return SdkCallResource(
            template,
            logical_id,
            resource_type=config.resource_type,
            policy=self._build_policy(config.policy),
            role=role,
            timeout=config.timeout if config.timeout is not None else settings.default_timeout,
            install_latest_sdk=(
                config.install_latest_sdk
                if config.install_latest_sdk is not None
                else settings.install_latest_sdk
            ),
            function_name=config.function_name,
            provider=settings.provider,
            catalog=catalog,
            **calls,
        )

    def render(self, settings: GeneratorSettings, template: Template, output_format: str = "yaml") -> str:
        """Renders the template document in the requested format."""
        document = template.render()
        if output_format == "json":
            return json.dumps(document, indent=2) + "\n"
        if output_format != "yaml":
            raise ValueError(f"Unsupported output format '{output_format}'.")

        summary = [
            {
                "logical_id": logical_id,
                "resource_type": resource.resource_type,
                "events": [key for key in ("Create", "Update", "Delete") if key in resource.properties],
            }
            for logical_id, resource in template.resources.items()
            if "ServiceToken" in resource.properties
        ]
        return self.jinja_env.get_template("template.yaml.j2").render(
            description=settings.description,
            summary=summary,
            document=document,
        )

    def generate(self, output_dir: str, output_format: str = "yaml") -> str:
        """
        Runs the full generation process and writes the template file.

        Returns:
            The path of the written file.
        """
        settings, template = self.build()
        rendered = self.render(settings, template, output_format)

        output_path = os.path.join(output_dir, f"{settings.template_name}.{output_format}")
        with open(output_path, "w") as f:
            f.write(rendered)
        logger.info("Wrote %d resource(s) to %s", len(template.resources), output_path)
        print(f"Successfully generated template: {output_path}")
        return output_path
