"""
ORM models for the multi-layer modeling store.

Canonical identity (DataObject, Attribute) is stored once; per-model
presence is stored as instances (DataModelObject, DataModelAttribute).
Relationships exist in two scopes: global between canonical objects and
model-specific between instances of one model. Properties are attached
polymorphically through (entity_type, entity_id).

Cross-row references are plain foreign key columns resolved by lookup;
no ORM relationship() graph is declared.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from openmodel.infrastructure.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


# ============ Reference registries ============

class DataDomain(TimestampMixin, Base):
    """Top-level business subject area."""

    __tablename__ = "data_domains"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    color_code: Mapped[str | None] = mapped_column(String(20), nullable=True)


class DataArea(TimestampMixin, Base):
    """Sub-area within exactly one domain."""

    __tablename__ = "data_areas"
    __table_args__ = (
        UniqueConstraint("domain_id", "name", name="uq_data_areas_domain_name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    domain_id: Mapped[int] = mapped_column(ForeignKey("data_domains.id"), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    color_code: Mapped[str | None] = mapped_column(String(20), nullable=True)


class System(TimestampMixin, Base):
    """Source or target platform a model is realised on."""

    __tablename__ = "systems"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    system_type: Mapped[str] = mapped_column("type", String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    connection_string: Mapped[str | None] = mapped_column(Text, nullable=True)
    configuration: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    status: Mapped[str] = mapped_column(String(50), default="disconnected")
    color_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    can_be_source: Mapped[bool] = mapped_column(Boolean, default=True)
    can_be_target: Mapped[bool] = mapped_column(Boolean, default=True)


# ============ Models ============

class DataModel(TimestampMixin, Base):
    """One layer of a model family."""

    __tablename__ = "data_models"
    __table_args__ = (
        Index("ix_data_models_parent_layer", "parent_model_id", "layer"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    layer: Mapped[str] = mapped_column(String(20), nullable=False, default="conceptual")
    parent_model_id: Mapped[int | None] = mapped_column(ForeignKey("data_models.id"), nullable=True)
    target_system_id: Mapped[int | None] = mapped_column(ForeignKey("systems.id"), nullable=True)
    domain_id: Mapped[int | None] = mapped_column(ForeignKey("data_domains.id"), nullable=True)
    data_area_id: Mapped[int | None] = mapped_column(ForeignKey("data_areas.id"), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


# ============ Canonical entities ============

class DataObject(TimestampMixin, Base):
    """Canonical business entity, one row per real-world entity."""

    __tablename__ = "data_objects"
    __table_args__ = (
        Index("ix_data_objects_name", "name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    object_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    model_id: Mapped[int | None] = mapped_column(ForeignKey("data_models.id"), nullable=True, index=True)
    domain_id: Mapped[int | None] = mapped_column(ForeignKey("data_domains.id"), nullable=True)
    data_area_id: Mapped[int | None] = mapped_column(ForeignKey("data_areas.id"), nullable=True)
    source_system_id: Mapped[int | None] = mapped_column(ForeignKey("systems.id"), nullable=True)
    target_system_id: Mapped[int | None] = mapped_column(ForeignKey("systems.id"), nullable=True)
    position: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    object_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONType, nullable=True)
    common_properties: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    is_new: Mapped[bool] = mapped_column(Boolean, default=False)


class Attribute(TimestampMixin, Base):
    """Canonical field of a data object with its three layer types."""

    __tablename__ = "attributes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    object_id: Mapped[int] = mapped_column(ForeignKey("data_objects.id"), nullable=False, index=True)
    conceptual_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    logical_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    physical_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    data_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    length: Mapped[int | None] = mapped_column(Integer, nullable=True)
    precision: Mapped[int | None] = mapped_column(Integer, nullable=True)
    scale: Mapped[int | None] = mapped_column(Integer, nullable=True)
    nullable: Mapped[bool] = mapped_column(Boolean, default=True)
    is_primary_key: Mapped[bool] = mapped_column(Boolean, default=False)
    is_foreign_key: Mapped[bool] = mapped_column(Boolean, default=False)
    order_index: Mapped[int] = mapped_column(Integer, default=0)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    common_properties: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    is_new: Mapped[bool] = mapped_column(Boolean, default=False)


# ============ Instances ============

class DataModelObject(TimestampMixin, Base):
    """Presence of a canonical object inside one model."""

    __tablename__ = "data_model_objects"
    __table_args__ = (
        UniqueConstraint("object_id", "model_id", name="uq_data_model_objects_object_model"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    object_id: Mapped[int] = mapped_column(ForeignKey("data_objects.id"), nullable=False, index=True)
    model_id: Mapped[int] = mapped_column(ForeignKey("data_models.id"), nullable=False, index=True)
    target_system_id: Mapped[int | None] = mapped_column(ForeignKey("systems.id"), nullable=True)
    position: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    instance_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONType, nullable=True)
    is_visible: Mapped[bool] = mapped_column(Boolean, default=True)
    layer_specific_config: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)


class DataModelAttribute(TimestampMixin, Base):
    """Per-instance override of a canonical attribute."""

    __tablename__ = "data_model_attributes"
    __table_args__ = (
        UniqueConstraint("attribute_id", "model_object_id", name="uq_data_model_attributes_attr_instance"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    attribute_id: Mapped[int] = mapped_column(ForeignKey("attributes.id"), nullable=False, index=True)
    model_object_id: Mapped[int] = mapped_column(ForeignKey("data_model_objects.id"), nullable=False, index=True)
    model_id: Mapped[int] = mapped_column(ForeignKey("data_models.id"), nullable=False)
    conceptual_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    logical_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    physical_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    length: Mapped[int | None] = mapped_column(Integer, nullable=True)
    nullable: Mapped[bool] = mapped_column(Boolean, default=True)
    is_primary_key: Mapped[bool] = mapped_column(Boolean, default=False)
    is_foreign_key: Mapped[bool] = mapped_column(Boolean, default=False)
    order_index: Mapped[int] = mapped_column(Integer, default=0)
    layer_specific_config: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)


# ============ Relationships ============

class DataObjectRelationship(TimestampMixin, Base):
    """Global relationship between two canonical objects."""

    __tablename__ = "data_object_relationships"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_data_object_id: Mapped[int] = mapped_column(ForeignKey("data_objects.id"), nullable=False, index=True)
    target_data_object_id: Mapped[int] = mapped_column(ForeignKey("data_objects.id"), nullable=False, index=True)
    relationship_type: Mapped[str] = mapped_column("type", String(10), nullable=False)
    relationship_level: Mapped[str] = mapped_column(String(20), default="object")
    source_attribute_id: Mapped[int | None] = mapped_column(ForeignKey("attributes.id"), nullable=True)
    target_attribute_id: Mapped[int | None] = mapped_column(ForeignKey("attributes.id"), nullable=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    relationship_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONType, nullable=True)


class DataModelObjectRelationship(TimestampMixin, Base):
    """Relationship between two instances inside one model."""

    __tablename__ = "data_model_object_relationships"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_model_object_id: Mapped[int] = mapped_column(ForeignKey("data_model_objects.id"), nullable=False, index=True)
    target_model_object_id: Mapped[int] = mapped_column(ForeignKey("data_model_objects.id"), nullable=False, index=True)
    relationship_type: Mapped[str] = mapped_column("type", String(10), nullable=False)
    relationship_level: Mapped[str] = mapped_column(String(20), default="object")
    source_attribute_id: Mapped[int | None] = mapped_column(ForeignKey("data_model_attributes.id"), nullable=True)
    target_attribute_id: Mapped[int | None] = mapped_column(ForeignKey("data_model_attributes.id"), nullable=True)
    model_id: Mapped[int] = mapped_column(ForeignKey("data_models.id"), nullable=False, index=True)
    layer: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_handle: Mapped[str | None] = mapped_column(String(100), nullable=True)
    target_handle: Mapped[str | None] = mapped_column(String(100), nullable=True)
    waypoints: Mapped[list[Any] | None] = mapped_column(JSONType, nullable=True)
    relationship_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONType, nullable=True)


# ============ Properties ============

class DataModelProperty(TimestampMixin, Base):
    """Typed extensible property attached to any entity kind."""

    __tablename__ = "data_model_properties"
    __table_args__ = (
        Index("ix_data_model_properties_entity", "entity_type", "entity_id"),
        UniqueConstraint(
            "entity_type", "entity_id", "model_id", "property_name", "layer",
            name="uq_data_model_properties_key",
        ),
        # NULLs are distinct under the constraint above, so the model-wide
        # (no layer) key needs its own partial index.
        Index(
            "uq_data_model_properties_key_no_layer",
            "entity_type", "entity_id", "model_id", "property_name",
            unique=True,
            sqlite_where=text("layer IS NULL"),
            postgresql_where=text("layer IS NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_type: Mapped[str] = mapped_column(String(30), nullable=False)
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False)
    model_id: Mapped[int] = mapped_column(ForeignKey("data_models.id"), nullable=False)
    property_name: Mapped[str] = mapped_column(String(255), nullable=False)
    property_value: Mapped[Any] = mapped_column(JSONType, nullable=True)
    property_type: Mapped[str] = mapped_column(String(20), nullable=False, default="string")
    layer: Mapped[str | None] = mapped_column(String(20), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_system_property: Mapped[bool] = mapped_column(Boolean, default=False)


__all__ = [
    "utcnow",
    "DataDomain",
    "DataArea",
    "System",
    "DataModel",
    "DataObject",
    "Attribute",
    "DataModelObject",
    "DataModelAttribute",
    "DataObjectRelationship",
    "DataModelObjectRelationship",
    "DataModelProperty",
]
