"""
Object Lake query and response schemas.

The lake presents one denormalized row per canonical object with every
model instance, attribute, relationship and property attached.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from openmodel.domain.models.enums import Layer, ObjectLakeSortKey, SortOrder


class _View(BaseModel):
    model_config = {"protected_namespaces": ()}


_SORT_ALIASES = {
    "updatedat": ObjectLakeSortKey.UPDATED_AT,
    "attributecount": ObjectLakeSortKey.ATTRIBUTE_COUNT,
    "relationshipcount": ObjectLakeSortKey.RELATIONSHIP_COUNT,
    "modelinstancecount": ObjectLakeSortKey.MODEL_INSTANCE_COUNT,
}


class ObjectLakeFilters(_View):
    """Normalized filter set for an object lake query."""

    search: str | None = Field(default=None, description="Case-insensitive match on name or description")
    domain_id: int | None = None
    data_area_id: int | None = None
    system_id: int | None = Field(default=None, description="Source, target or instance target system")
    model_id: int | None = Field(default=None, description="Base model or any kept instance's model")
    layer: Layer | None = None
    object_type: str | None = None
    has_attributes: bool | None = None
    relationship_type: str | None = None
    include_hidden: bool = False
    sort_by: ObjectLakeSortKey = ObjectLakeSortKey.NAME
    sort_order: SortOrder = SortOrder.ASC
    page: int = 1
    page_size: int | None = Field(default=None, description="Defaults to the configured page size")

    @field_validator("search", "object_type", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("layer", mode="before")
    @classmethod
    def lower_layer(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() or None
        return value

    @field_validator("object_type")
    @classmethod
    def lower_object_type(cls, value: str | None) -> str | None:
        return value.lower() if value else value

    @field_validator("relationship_type", mode="before")
    @classmethod
    def upper_relationship_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper() or None
        return value

    @field_validator("sort_by", mode="before")
    @classmethod
    def normalize_sort_key(cls, value: Any) -> Any:
        if value is None or isinstance(value, ObjectLakeSortKey):
            return value or ObjectLakeSortKey.NAME
        key = str(value).strip().replace("_", "").lower()
        if key in _SORT_ALIASES:
            return _SORT_ALIASES[key]
        return ObjectLakeSortKey.NAME

    @field_validator("sort_order", mode="before")
    @classmethod
    def normalize_sort_order(cls, value: Any) -> Any:
        if isinstance(value, str):
            return SortOrder.DESC if value.strip().lower() == "desc" else SortOrder.ASC
        return value or SortOrder.ASC

    @field_validator("page", mode="before")
    @classmethod
    def clamp_page(cls, value: Any) -> int:
        try:
            page = int(value)
        except (TypeError, ValueError):
            return 1
        return max(page, 1)


class RelationshipView(_View):
    """Relationship as seen from one object."""

    id: int
    scope: str
    relationship_type: str
    relationship_level: str
    source_id: int
    target_id: int
    source_object_id: int | None = None
    target_object_id: int | None = None
    source_attribute_id: int | None = None
    target_attribute_id: int | None = None
    model_id: int | None = None
    layer: str | None = None
    name: str | None = None
    description: str | None = None


class PropertyView(_View):
    id: int
    property_name: str
    property_value: Any = None
    property_type: str
    model_id: int
    layer: str | None = None


class ModelAttributeView(_View):
    id: int
    attribute_id: int
    model_id: int
    conceptual_type: str | None = None
    logical_type: str | None = None
    physical_type: str | None = None
    length: int | None = None
    nullable: bool = True
    is_primary_key: bool = False
    is_foreign_key: bool = False
    order_index: int = 0
    layer_specific_config: dict[str, Any] | None = None


class ModelSummary(_View):
    id: int
    name: str
    layer: str
    parent_model_id: int | None = None
    target_system_id: int | None = None


class NamedRef(_View):
    id: int
    name: str


class ModelInstanceView(_View):
    """One instance of the object inside a model."""

    id: int
    model: ModelSummary
    target_system: NamedRef | None = None
    position: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None
    is_visible: bool = True
    layer_specific_config: dict[str, Any] | None = None
    attributes: list[ModelAttributeView] = Field(default_factory=list)
    relationships: list[RelationshipView] = Field(default_factory=list)
    properties: list[PropertyView] = Field(default_factory=list)
    updated_at: datetime | None = None


class AttributeView(_View):
    """Canonical attribute with its per-model overrides."""

    id: int
    name: str
    conceptual_type: str | None = None
    logical_type: str | None = None
    physical_type: str | None = None
    length: int | None = None
    nullable: bool = True
    is_primary_key: bool = False
    is_foreign_key: bool = False
    order_index: int = 0
    description: str | None = None
    metadata_by_model: dict[int, ModelAttributeView] = Field(default_factory=dict)
    properties: list[PropertyView] = Field(default_factory=list)
    updated_at: datetime | None = None


class ObjectRelationships(_View):
    global_: list[RelationshipView] = Field(default_factory=list, alias="global")
    model_specific: list[RelationshipView] = Field(default_factory=list)

    model_config = {"populate_by_name": True, "protected_namespaces": ()}


class ObjectStats(_View):
    attribute_count: int = 0
    relationship_count: int = 0
    model_instance_count: int = 0
    last_updated: datetime | None = None


class ObjectLakeObject(_View):
    """Denormalized cross-layer view of one canonical object."""

    id: int
    name: str
    description: str | None = None
    object_type: str | None = None
    domain: NamedRef | None = None
    data_area: NamedRef | None = None
    source_system: NamedRef | None = None
    target_system: NamedRef | None = None
    base_model: ModelSummary | None = None
    base_metadata: dict[str, Any] | None = None
    position: dict[str, Any] | None = None
    stats: ObjectStats = Field(default_factory=ObjectStats)
    model_instances: list[ModelInstanceView] = Field(default_factory=list)
    attributes: list[AttributeView] = Field(default_factory=list)
    relationships: ObjectRelationships = Field(default_factory=ObjectRelationships)
    properties: list[PropertyView] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    updated_at: datetime | None = None


class ObjectLakeTotals(_View):
    object_count: int = 0
    attribute_count: int = 0
    relationship_count: int = 0
    model_instance_count: int = 0


class ObjectLakeMeta(_View):
    page: int
    page_size: int
    has_more: bool
    generated_at: datetime


class ObjectLakeResponse(_View):
    objects: list[ObjectLakeObject] = Field(default_factory=list)
    totals: ObjectLakeTotals = Field(default_factory=ObjectLakeTotals)
    applied_filters: dict[str, Any] = Field(default_factory=dict)
    meta: ObjectLakeMeta
