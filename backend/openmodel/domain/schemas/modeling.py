"""
Input and record schemas for the modeling service.

Inputs are validated pydantic models; records are read back from ORM
rows with ``model_validate(row, from_attributes=True)``.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from openmodel.domain.models.enums import (
    Layer,
    RelationshipLevel,
    RelationshipScope,
    RelationshipType,
)


class _Schema(BaseModel):
    model_config = {"protected_namespaces": ()}


# ============ Registry inputs ============

class DomainCreate(_Schema):
    """Input for creating a data domain."""

    name: str = Field(..., description="Unique domain name")
    description: str | None = Field(default=None, description="Domain description")
    color_code: str | None = Field(default=None, description="Display colour, e.g. #3b82f6")


class DataAreaCreate(_Schema):
    """Input for creating a data area inside a domain."""

    name: str = Field(..., description="Area name, unique within its domain")
    domain_id: int = Field(..., description="Owning domain")
    description: str | None = None
    color_code: str | None = None


class SystemCreate(_Schema):
    """Input for registering a source or target system."""

    name: str = Field(..., description="Unique system name, e.g. Data Lake")
    category: str = Field(..., description="System category, e.g. Storage")
    system_type: str = Field(..., description="System type, e.g. adls")
    description: str | None = None
    connection_string: str | None = None
    configuration: dict[str, Any] | None = None
    status: str = "disconnected"
    color_code: str | None = None
    can_be_source: bool = True
    can_be_target: bool = True


class ModelCreate(_Schema):
    """Input for creating a single data model row."""

    name: str
    layer: Layer = Layer.CONCEPTUAL
    parent_model_id: int | None = None
    target_system_id: int | None = None
    domain_id: int | None = None
    data_area_id: int | None = None
    description: str | None = None


# ============ Family ============

class FamilySeed(_Schema):
    """Seed for creating a conceptual/logical/physical model family."""

    name: str = Field(..., description="Family name; the conceptual model carries it verbatim")
    description: str | None = None
    target_system_id: int | None = Field(default=None, description="Target system by id")
    target_system: str | None = Field(default=None, description="Target system by name")
    domain_id: int | None = None
    data_area_id: int | None = None
    selected_object_ids: list[int] | None = Field(
        default=None,
        description="Existing canonical objects to seed every layer with",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "name": "QA Verification Model",
                    "target_system": "Data Lake",
                }
            ]
        }
    }


# ============ Canonical entities ============

class ObjectCreate(_Schema):
    """Input for creating a canonical data object."""

    name: str
    description: str | None = None
    object_type: str | None = Field(default=None, description="e.g. entity, table, view")
    model_id: int | None = Field(default=None, description="Model the object is first defined in")
    domain_id: int | None = None
    data_area_id: int | None = None
    source_system_id: int | None = None
    target_system_id: int | None = None
    position: dict[str, Any] | None = None
    object_metadata: dict[str, Any] | None = None
    common_properties: dict[str, Any] | None = None
    is_new: bool = False


class ModelObjectCreate(_Schema):
    """Input for binding a canonical object into a model."""

    object_id: int
    model_id: int
    target_system_id: int | None = None
    position: dict[str, Any] | None = None
    instance_metadata: dict[str, Any] | None = None
    is_visible: bool = True
    layer_specific_config: dict[str, Any] | None = None


class ModelObjectPatch(_Schema):
    """Partial update of an instance; unset fields are left alone."""

    target_system_id: int | None = None
    position: dict[str, Any] | None = None
    instance_metadata: dict[str, Any] | None = None
    is_visible: bool | None = None
    layer_specific_config: dict[str, Any] | None = None


class AttributeCreate(_Schema):
    """Input for creating a canonical attribute."""

    name: str
    object_id: int
    conceptual_type: str | None = Field(default=None, description="Business type, e.g. Identifier")
    logical_type: str | None = Field(default=None, description="Derived from conceptual_type when absent")
    physical_type: str | None = Field(default=None, description="Derived from logical_type when absent")
    data_type: str | None = None
    length: int | None = None
    precision: int | None = None
    scale: int | None = None
    nullable: bool = True
    is_primary_key: bool = False
    is_foreign_key: bool = False
    order_index: int = 0
    description: str | None = None
    common_properties: dict[str, Any] | None = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        return value.strip()


class AttributePatch(_Schema):
    """Partial update of a canonical attribute; unset fields are left alone."""

    name: str | None = None
    conceptual_type: str | None = None
    logical_type: str | None = None
    physical_type: str | None = None
    data_type: str | None = None
    length: int | None = None
    precision: int | None = None
    scale: int | None = None
    nullable: bool | None = None
    is_primary_key: bool | None = None
    is_foreign_key: bool | None = None
    order_index: int | None = None
    description: str | None = None
    common_properties: dict[str, Any] | None = None


# ============ Relationships ============

class RelationshipCreate(_Schema):
    """
    Input for creating a relationship.

    With scope=global the endpoints are canonical object ids and attribute
    pins are canonical attribute ids. With scope=model the endpoints are
    instance ids of ``model_id`` and pins are instance attribute ids.
    """

    scope: RelationshipScope = RelationshipScope.GLOBAL
    source_id: int
    target_id: int
    relationship_type: RelationshipType = RelationshipType.ONE_TO_MANY
    relationship_level: RelationshipLevel | None = None
    source_attribute_id: int | None = None
    target_attribute_id: int | None = None
    model_id: int | None = None
    name: str | None = None
    description: str | None = None
    source_handle: str | None = None
    target_handle: str | None = None
    waypoints: list[Any] | None = None
    relationship_metadata: dict[str, Any] | None = None

    @model_validator(mode="after")
    def require_model_for_model_scope(self) -> "RelationshipCreate":
        if self.scope == RelationshipScope.MODEL and self.model_id is None:
            raise ValueError("model_id is required for model-scoped relationships")
        return self


class RelationshipPatch(_Schema):
    """Partial update of a relationship; unset fields are left alone."""

    relationship_type: RelationshipType | None = None
    name: str | None = None
    description: str | None = None
    source_handle: str | None = None
    target_handle: str | None = None
    waypoints: list[Any] | None = None
    relationship_metadata: dict[str, Any] | None = None


# ============ Records ============

class _Record(_Schema):
    model_config = {"from_attributes": True, "protected_namespaces": ()}


class DomainRecord(_Record):
    id: int
    name: str
    description: str | None = None
    color_code: str | None = None


class DataAreaRecord(_Record):
    id: int
    name: str
    domain_id: int
    description: str | None = None
    color_code: str | None = None


class SystemRecord(_Record):
    id: int
    name: str
    category: str
    system_type: str
    description: str | None = None
    connection_string: str | None = None
    configuration: dict[str, Any] | None = None
    status: str | None = None
    color_code: str | None = None
    can_be_source: bool = True
    can_be_target: bool = True


class ModelRecord(_Record):
    id: int
    name: str
    layer: Layer
    parent_model_id: int | None = None
    target_system_id: int | None = None
    domain_id: int | None = None
    data_area_id: int | None = None
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ObjectRecord(_Record):
    id: int
    name: str
    description: str | None = None
    object_type: str | None = None
    model_id: int | None = None
    domain_id: int | None = None
    data_area_id: int | None = None
    source_system_id: int | None = None
    target_system_id: int | None = None
    position: dict[str, Any] | None = None
    object_metadata: dict[str, Any] | None = None
    common_properties: dict[str, Any] | None = None
    is_new: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ModelObjectRecord(_Record):
    id: int
    object_id: int
    model_id: int
    target_system_id: int | None = None
    position: dict[str, Any] | None = None
    instance_metadata: dict[str, Any] | None = None
    is_visible: bool = True
    layer_specific_config: dict[str, Any] | None = None
    updated_at: datetime | None = None


class AttributeRecord(_Record):
    id: int
    name: str
    object_id: int
    conceptual_type: str | None = None
    logical_type: str | None = None
    physical_type: str | None = None
    data_type: str | None = None
    length: int | None = None
    precision: int | None = None
    scale: int | None = None
    nullable: bool = True
    is_primary_key: bool = False
    is_foreign_key: bool = False
    order_index: int = 0
    description: str | None = None
    common_properties: dict[str, Any] | None = None
    updated_at: datetime | None = None


class ModelAttributeRecord(_Record):
    id: int
    attribute_id: int
    model_object_id: int
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


class GlobalRelationshipRecord(_Record):
    id: int
    source_data_object_id: int
    target_data_object_id: int
    relationship_type: str
    relationship_level: str
    source_attribute_id: int | None = None
    target_attribute_id: int | None = None
    name: str | None = None
    description: str | None = None
    relationship_metadata: dict[str, Any] | None = None


class ModelRelationshipRecord(_Record):
    id: int
    source_model_object_id: int
    target_model_object_id: int
    relationship_type: str
    relationship_level: str
    source_attribute_id: int | None = None
    target_attribute_id: int | None = None
    model_id: int
    layer: str
    name: str | None = None
    description: str | None = None
    source_handle: str | None = None
    target_handle: str | None = None
    waypoints: list[Any] | None = None
    relationship_metadata: dict[str, Any] | None = None


class PropertyRecord(_Record):
    id: int
    entity_type: str
    entity_id: int
    model_id: int
    property_name: str
    property_value: Any = None
    property_type: str
    layer: str | None = None
    description: str | None = None
    is_system_property: bool = False


class FamilyCreateResult(_Schema):
    """The three models of a new family plus per-kind creation counts."""

    conceptual: ModelRecord
    logical: ModelRecord
    physical: ModelRecord
    created_counts: dict[str, int] = Field(default_factory=dict)

    @property
    def models(self) -> list[ModelRecord]:
        return [self.conceptual, self.logical, self.physical]
