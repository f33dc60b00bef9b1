"""
Services Storage Module.

Provides storage services including repositories and engines.
"""

from .repository import (
    AttributeRepository,
    BaseRepository,
    DataAreaRepository,
    DataModelAttributeRepository,
    DataModelObjectRepository,
    DataModelRepository,
    DataObjectRepository,
    DomainRepository,
    GlobalRelationshipRepository,
    ModelRelationshipRepository,
    PropertyRepository,
    SystemRepository,
)
from .entity_engine import EntityEngine, RegistryEngine
from .attribute_engine import AttributeEngine, CascadePropagator, EnhanceResult
from .relationship_engine import LevelSuggestion, RelationshipEngine, suggest_relationship_level
from .property_engine import PropertyEngine
from .family_engine import FamilyBuildResult, FamilyEngine
from .object_lake_engine import ObjectLakeEngine

__all__ = [
    # Repositories
    "BaseRepository",
    "DomainRepository",
    "DataAreaRepository",
    "SystemRepository",
    "DataModelRepository",
    "DataObjectRepository",
    "AttributeRepository",
    "DataModelObjectRepository",
    "DataModelAttributeRepository",
    "GlobalRelationshipRepository",
    "ModelRelationshipRepository",
    "PropertyRepository",
    # Engines
    "RegistryEngine",
    "EntityEngine",
    "AttributeEngine",
    "CascadePropagator",
    "EnhanceResult",
    "RelationshipEngine",
    "LevelSuggestion",
    "suggest_relationship_level",
    "PropertyEngine",
    "FamilyEngine",
    "FamilyBuildResult",
    "ObjectLakeEngine",
]
