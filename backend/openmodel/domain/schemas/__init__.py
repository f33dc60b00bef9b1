"""
Pydantic schemas for modeling inputs, records and the object lake.
"""

from .modeling import (
    AttributeCreate,
    AttributePatch,
    AttributeRecord,
    DataAreaCreate,
    DataAreaRecord,
    DomainCreate,
    DomainRecord,
    FamilyCreateResult,
    FamilySeed,
    GlobalRelationshipRecord,
    ModelAttributeRecord,
    ModelCreate,
    ModelObjectCreate,
    ModelObjectPatch,
    ModelObjectRecord,
    ModelRecord,
    ModelRelationshipRecord,
    ObjectCreate,
    ObjectRecord,
    PropertyRecord,
    RelationshipCreate,
    RelationshipPatch,
    SystemCreate,
    SystemRecord,
)
from .object_lake import (
    AttributeView,
    ModelAttributeView,
    ModelInstanceView,
    ModelSummary,
    NamedRef,
    ObjectLakeFilters,
    ObjectLakeMeta,
    ObjectLakeObject,
    ObjectLakeResponse,
    ObjectLakeTotals,
    ObjectRelationships,
    ObjectStats,
    PropertyView,
    RelationshipView,
)

__all__ = [
    "AttributeCreate",
    "AttributePatch",
    "AttributeRecord",
    "DataAreaCreate",
    "DataAreaRecord",
    "DomainCreate",
    "DomainRecord",
    "FamilyCreateResult",
    "FamilySeed",
    "GlobalRelationshipRecord",
    "ModelAttributeRecord",
    "ModelCreate",
    "ModelObjectCreate",
    "ModelObjectPatch",
    "ModelObjectRecord",
    "ModelRecord",
    "ModelRelationshipRecord",
    "ObjectCreate",
    "ObjectRecord",
    "PropertyRecord",
    "RelationshipCreate",
    "RelationshipPatch",
    "SystemCreate",
    "SystemRecord",
    "AttributeView",
    "ModelAttributeView",
    "ModelInstanceView",
    "ModelSummary",
    "NamedRef",
    "ObjectLakeFilters",
    "ObjectLakeMeta",
    "ObjectLakeObject",
    "ObjectLakeResponse",
    "ObjectLakeTotals",
    "ObjectRelationships",
    "ObjectStats",
    "PropertyView",
    "RelationshipView",
]
