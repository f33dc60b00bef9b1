"""
Unified Enumeration Definitions for OpenModel.

Organization:
- Model Layer Domain: Layer
- Relationship Domain: RelationshipType, RelationshipLevel, RelationshipScope
- Property Store Domain: PropertyEntityType, PropertyType
- Object Lake Domain: ObjectLakeSortKey, SortOrder
- Event Domain: EventAction
"""

from enum import Enum


# ============================================================================
# Model Layer Domain
# ============================================================================

class Layer(str, Enum):
    """Abstraction level of a data model."""

    CONCEPTUAL = "conceptual"
    LOGICAL = "logical"
    PHYSICAL = "physical"

    @property
    def source_layer(self) -> "Layer | None":
        """The layer a type for this layer is derived from."""
        if self is Layer.LOGICAL:
            return Layer.CONCEPTUAL
        if self is Layer.PHYSICAL:
            return Layer.LOGICAL
        return None


# ============================================================================
# Relationship Domain
# ============================================================================

class RelationshipType(str, Enum):
    """Relationship cardinality."""

    ONE_TO_ONE = "1:1"
    ONE_TO_MANY = "1:N"
    MANY_TO_ONE = "N:1"
    MANY_TO_MANY = "N:M"
    MANY_TO_MANY_ALT = "M:N"


class RelationshipLevel(str, Enum):
    """Granularity of a relationship endpoint."""

    OBJECT = "object"
    ATTRIBUTE = "attribute"


class RelationshipScope(str, Enum):
    """Whether a relationship is global or bound to a single model."""

    GLOBAL = "global"
    MODEL = "model"


# ============================================================================
# Property Store Domain
# ============================================================================

class PropertyEntityType(str, Enum):
    """Entity kinds that can own properties."""

    MODEL = "model"
    OBJECT = "object"
    MODEL_OBJECT = "model_object"
    ATTRIBUTE = "attribute"
    MODEL_ATTRIBUTE = "model_attribute"


class PropertyType(str, Enum):
    """Declared type tag of a property value."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"
    ARRAY = "array"


# ============================================================================
# Object Lake Domain
# ============================================================================

class ObjectLakeSortKey(str, Enum):
    """Sort keys accepted by the object lake query."""

    NAME = "name"
    UPDATED_AT = "updated_at"
    ATTRIBUTE_COUNT = "attribute_count"
    RELATIONSHIP_COUNT = "relationship_count"
    MODEL_INSTANCE_COUNT = "model_instance_count"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


# ============================================================================
# Event Domain
# ============================================================================

class EventAction(str, Enum):
    """Change kinds carried by domain events."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


__all__ = [
    "Layer",
    "RelationshipType",
    "RelationshipLevel",
    "RelationshipScope",
    "PropertyEntityType",
    "PropertyType",
    "ObjectLakeSortKey",
    "SortOrder",
    "EventAction",
]
