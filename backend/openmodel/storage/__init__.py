"""
Storage models for the modeling store.
"""

from .orm import (
    Attribute,
    DataArea,
    DataDomain,
    DataModel,
    DataModelAttribute,
    DataModelObject,
    DataModelObjectRelationship,
    DataModelProperty,
    DataObject,
    DataObjectRelationship,
    System,
    utcnow,
)

__all__ = [
    "Attribute",
    "DataArea",
    "DataDomain",
    "DataModel",
    "DataModelAttribute",
    "DataModelObject",
    "DataModelObjectRelationship",
    "DataModelProperty",
    "DataObject",
    "DataObjectRelationship",
    "System",
    "utcnow",
]
