"""
OpenModel domain models.
"""

from .enums import (
    Layer,
    RelationshipType,
    RelationshipLevel,
    RelationshipScope,
    PropertyEntityType,
    PropertyType,
    ObjectLakeSortKey,
    SortOrder,
    EventAction,
)

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
