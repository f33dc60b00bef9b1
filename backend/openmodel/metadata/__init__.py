"""
Template metadata loaded from YAML.
"""

from .loader import MetadataLoader, ensure_templates_loaded
from .registry import (
    TargetSystemTemplate,
    TargetSystemTemplateRegistry,
    TemplateAttribute,
    TemplateObject,
    TemplateRelationship,
)

__all__ = [
    "MetadataLoader",
    "ensure_templates_loaded",
    "TargetSystemTemplate",
    "TargetSystemTemplateRegistry",
    "TemplateAttribute",
    "TemplateObject",
    "TemplateRelationship",
]
