"""
Metadata loader for YAML configuration files.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from openmodel.core.exceptions import ConfigurationError
from .registry import (
    TargetSystemTemplate,
    TargetSystemTemplateRegistry,
    TemplateAttribute,
    TemplateObject,
    TemplateRelationship,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path(__file__).parent / "config"


class MetadataLoader:
    """Load metadata definitions from YAML files."""

    def __init__(self, config_dir: Path | None = None):
        self.config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR

    def _load_yaml(self, filename: str) -> dict[str, Any]:
        filepath = self.config_dir / filename
        if not filepath.exists():
            logger.warning(f"Config file not found: {filepath}")
            return {}

        with open(filepath, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(
                    f"Invalid YAML in {filepath}: {e}",
                    config_key=filename,
                ) from e

        return data or {}

    def _parse_attribute(self, data: dict[str, Any]) -> TemplateAttribute:
        return TemplateAttribute(
            name=data["name"],
            conceptual_type=data.get("conceptual_type", "Text"),
            nullable=data.get("nullable", True),
            is_primary_key=data.get("is_primary_key", False),
            is_foreign_key=data.get("is_foreign_key", False),
            length=data.get("length"),
            description=data.get("description"),
        )

    def _parse_object(self, data: dict[str, Any]) -> TemplateObject:
        return TemplateObject(
            name=data["name"],
            domain=data["domain"],
            data_area=data["data_area"],
            object_type=data.get("object_type", "entity"),
            description=data.get("description"),
            position=data.get("position") or {},
            attributes=[self._parse_attribute(a) for a in data.get("attributes", [])],
        )

    def _parse_template(self, data: dict[str, Any]) -> TargetSystemTemplate:
        return TargetSystemTemplate(
            name=data["name"],
            description=data.get("description", ""),
            default_domains=data.get("default_domains", []),
            default_data_areas=data.get("default_data_areas", {}),
            objects=[self._parse_object(o) for o in data.get("objects", [])],
            relationships=[
                TemplateRelationship(
                    source=r["source"],
                    target=r["target"],
                    type=str(r.get("type", "1:N")),
                    source_attribute=r.get("source_attribute"),
                    target_attribute=r.get("target_attribute"),
                )
                for r in data.get("relationships", [])
            ],
        )

    def load_target_systems(self) -> int:
        """Load target system templates into the registry."""
        data = self._load_yaml("target_systems.yaml")

        count = 0
        for template_data in data.get("templates", []):
            try:
                template = self._parse_template(template_data)
            except KeyError as e:
                raise ConfigurationError(
                    f"Template is missing required key {e}",
                    config_key="target_systems.yaml",
                ) from e
            TargetSystemTemplateRegistry.register(template)
            count += 1

        TargetSystemTemplateRegistry.mark_loaded()
        logger.info(f"Loaded {count} target system templates")
        return count

    def load_all(self) -> None:
        """Load all metadata types."""
        self.load_target_systems()


def ensure_templates_loaded(config_dir: Path | None = None) -> None:
    """Load templates once per process."""
    if not TargetSystemTemplateRegistry.is_loaded():
        MetadataLoader(config_dir).load_all()
