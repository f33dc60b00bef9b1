"""
Target system template registry.

Templates describe the default domains, data areas, objects, attributes
and relationships seeded into a new model family for a target system.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class TemplateAttribute:
    """Attribute declared by a template object."""
    name: str
    conceptual_type: str
    nullable: bool = True
    is_primary_key: bool = False
    is_foreign_key: bool = False
    length: int | None = None
    description: str | None = None


@dataclass
class TemplateObject:
    """Object declared by a template."""
    name: str
    domain: str
    data_area: str
    object_type: str = "entity"
    description: str | None = None
    position: dict[str, Any] = field(default_factory=dict)
    attributes: list[TemplateAttribute] = field(default_factory=list)


@dataclass
class TemplateRelationship:
    """Relationship between two template objects, optionally attribute-pinned."""
    source: str
    target: str
    type: str = "1:N"
    source_attribute: str | None = None
    target_attribute: str | None = None


@dataclass
class TargetSystemTemplate:
    """Template for one target system."""
    name: str
    description: str = ""
    default_domains: list[str] = field(default_factory=list)
    default_data_areas: dict[str, list[str]] = field(default_factory=dict)
    objects: list[TemplateObject] = field(default_factory=list)
    relationships: list[TemplateRelationship] = field(default_factory=list)

    def domain_names(self) -> list[str]:
        names = list(self.default_domains)
        for obj in self.objects:
            if obj.domain not in names:
                names.append(obj.domain)
        return names

    def area_names(self, domain: str) -> list[str]:
        names = list(self.default_data_areas.get(domain, []))
        for obj in self.objects:
            if obj.domain == domain and obj.data_area not in names:
                names.append(obj.data_area)
        return names

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "default_domains": self.default_domains,
            "default_data_areas": self.default_data_areas,
            "objects": [obj.name for obj in self.objects],
            "relationship_count": len(self.relationships),
        }


class TargetSystemTemplateRegistry:
    """Class-level registry of target system templates, keyed case-insensitively by name."""

    _types: dict[str, TargetSystemTemplate] = {}
    _loaded: bool = False

    @classmethod
    def register(cls, template: TargetSystemTemplate) -> None:
        cls._types[template.name.lower()] = template

    @classmethod
    def get(cls, name: str | None) -> TargetSystemTemplate | None:
        if not name:
            return None
        return cls._types.get(name.strip().lower())

    @classmethod
    def list_all(cls) -> list[TargetSystemTemplate]:
        return list(cls._types.values())

    @classmethod
    def exists(cls, name: str) -> bool:
        return cls.get(name) is not None

    @classmethod
    def is_loaded(cls) -> bool:
        return cls._loaded

    @classmethod
    def mark_loaded(cls) -> None:
        cls._loaded = True

    @classmethod
    def clear(cls) -> None:
        cls._types.clear()
        cls._loaded = False
