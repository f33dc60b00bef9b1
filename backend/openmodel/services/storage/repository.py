"""
Repository layer for the modeling store.

Provides data access methods per table; engines compose them inside the
caller's session and transaction.
"""

from __future__ import annotations

import logging
from typing import Any, Generic, Iterable, TypeVar

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from openmodel.storage.orm import (
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
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class BaseRepository(Generic[T]):
    """Base repository with common CRUD operations."""

    model_class: type

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, id: int | None) -> T | None:
        if id is None:
            return None
        result = await self.session.execute(
            select(self.model_class).where(self.model_class.id == id)
        )
        return result.scalar_one_or_none()

    async def list_by_ids(self, ids: Iterable[int]) -> list[T]:
        ids = list(ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(self.model_class)
            .where(self.model_class.id.in_(ids))
            .order_by(self.model_class.id)
        )
        return list(result.scalars().all())

    async def list_all(self) -> list[T]:
        result = await self.session.execute(
            select(self.model_class).order_by(self.model_class.id)
        )
        return list(result.scalars().all())

    async def create(self, **kwargs: Any) -> T:
        instance = self.model_class(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        return instance

    async def update(self, instance: T, **kwargs: Any) -> T:
        for key, value in kwargs.items():
            if hasattr(instance, key):
                setattr(instance, key, value)

        await self.session.flush()
        return instance

    async def delete_where(self, *conditions: Any) -> int:
        result = await self.session.execute(
            delete(self.model_class)
            .where(*conditions)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    async def delete_by_ids(self, ids: Iterable[int]) -> int:
        ids = list(ids)
        if not ids:
            return 0
        return await self.delete_where(self.model_class.id.in_(ids))


# ============ Registries ============

class DomainRepository(BaseRepository[DataDomain]):
    """Repository for data domains."""

    model_class = DataDomain

    async def get_by_name(self, name: str) -> DataDomain | None:
        result = await self.session.execute(
            select(DataDomain).where(func.lower(DataDomain.name) == name.strip().lower())
        )
        return result.scalars().first()


class DataAreaRepository(BaseRepository[DataArea]):
    """Repository for data areas."""

    model_class = DataArea

    async def get_by_name(self, name: str, domain_id: int) -> DataArea | None:
        result = await self.session.execute(
            select(DataArea).where(
                and_(
                    DataArea.domain_id == domain_id,
                    func.lower(DataArea.name) == name.strip().lower(),
                )
            )
        )
        return result.scalars().first()

    async def list_by_domain(self, domain_id: int | None = None) -> list[DataArea]:
        stmt = select(DataArea)
        if domain_id is not None:
            stmt = stmt.where(DataArea.domain_id == domain_id)
        result = await self.session.execute(stmt.order_by(DataArea.id))
        return list(result.scalars().all())


class SystemRepository(BaseRepository[System]):
    """Repository for source and target systems."""

    model_class = System

    async def get_by_name(self, name: str) -> System | None:
        result = await self.session.execute(
            select(System).where(func.lower(System.name) == name.strip().lower())
        )
        return result.scalars().first()


# ============ Models ============

class DataModelRepository(BaseRepository[DataModel]):
    """Repository for data models."""

    model_class = DataModel

    async def find_by_parent_and_layer(self, parent_model_id: int, layer: str) -> DataModel | None:
        result = await self.session.execute(
            select(DataModel)
            .where(
                and_(
                    DataModel.parent_model_id == parent_model_id,
                    DataModel.layer == layer,
                )
            )
            .order_by(DataModel.id)
        )
        return result.scalars().first()

    async def list_by_layer(self, layer: str) -> list[DataModel]:
        result = await self.session.execute(
            select(DataModel).where(DataModel.layer == layer).order_by(DataModel.id)
        )
        return list(result.scalars().all())


# ============ Canonical entities ============

class DataObjectRepository(BaseRepository[DataObject]):
    """Repository for canonical data objects."""

    model_class = DataObject

    async def search(
        self,
        query: str | None = None,
        domain_id: int | None = None,
        data_area_id: int | None = None,
        object_type: str | None = None,
    ) -> list[DataObject]:
        stmt = select(DataObject)

        if query:
            pattern = f"%{_escape_like(query)}%"
            stmt = stmt.where(
                or_(
                    DataObject.name.ilike(pattern, escape="\\"),
                    DataObject.description.ilike(pattern, escape="\\"),
                )
            )

        if domain_id is not None:
            stmt = stmt.where(DataObject.domain_id == domain_id)

        if data_area_id is not None:
            stmt = stmt.where(DataObject.data_area_id == data_area_id)

        if object_type:
            stmt = stmt.where(func.lower(DataObject.object_type) == object_type.lower())

        result = await self.session.execute(stmt.order_by(DataObject.id))
        return list(result.scalars().all())

    async def find_in_model_by_name(self, name: str, model_id: int) -> DataObject | None:
        """Object named `name` defined in, or instantiated into, `model_id`."""
        instantiated = select(DataModelObject.object_id).where(DataModelObject.model_id == model_id)
        result = await self.session.execute(
            select(DataObject)
            .where(
                and_(
                    func.lower(DataObject.name) == name.strip().lower(),
                    or_(
                        DataObject.model_id == model_id,
                        DataObject.id.in_(instantiated),
                    ),
                )
            )
            .order_by(DataObject.id)
        )
        return result.scalars().first()


class AttributeRepository(BaseRepository[Attribute]):
    """Repository for canonical attributes."""

    model_class = Attribute

    async def list_by_object(self, object_id: int) -> list[Attribute]:
        result = await self.session.execute(
            select(Attribute)
            .where(Attribute.object_id == object_id)
            .order_by(Attribute.order_index, Attribute.id)
        )
        return list(result.scalars().all())

    async def list_by_objects(self, object_ids: Iterable[int]) -> list[Attribute]:
        object_ids = list(object_ids)
        if not object_ids:
            return []
        result = await self.session.execute(
            select(Attribute)
            .where(Attribute.object_id.in_(object_ids))
            .order_by(Attribute.order_index, Attribute.id)
        )
        return list(result.scalars().all())

    async def find_by_name(self, object_id: int, name: str) -> Attribute | None:
        result = await self.session.execute(
            select(Attribute)
            .where(
                and_(
                    Attribute.object_id == object_id,
                    func.lower(Attribute.name) == name.strip().lower(),
                )
            )
            .order_by(Attribute.id)
        )
        return result.scalars().first()


# ============ Instances ============

class DataModelObjectRepository(BaseRepository[DataModelObject]):
    """Repository for object instances."""

    model_class = DataModelObject

    async def get_by_object_and_model(self, object_id: int, model_id: int) -> DataModelObject | None:
        result = await self.session.execute(
            select(DataModelObject).where(
                and_(
                    DataModelObject.object_id == object_id,
                    DataModelObject.model_id == model_id,
                )
            )
        )
        return result.scalar_one_or_none()

    async def list_by_object(self, object_id: int) -> list[DataModelObject]:
        return await self.list_by_objects([object_id])

    async def list_by_objects(self, object_ids: Iterable[int]) -> list[DataModelObject]:
        object_ids = list(object_ids)
        if not object_ids:
            return []
        result = await self.session.execute(
            select(DataModelObject)
            .where(DataModelObject.object_id.in_(object_ids))
            .order_by(DataModelObject.id)
        )
        return list(result.scalars().all())

    async def list_by_model(self, model_id: int) -> list[DataModelObject]:
        result = await self.session.execute(
            select(DataModelObject)
            .where(DataModelObject.model_id == model_id)
            .order_by(DataModelObject.id)
        )
        return list(result.scalars().all())


class DataModelAttributeRepository(BaseRepository[DataModelAttribute]):
    """Repository for attribute instances."""

    model_class = DataModelAttribute

    async def get_by_attribute_and_model_object(
        self, attribute_id: int, model_object_id: int
    ) -> DataModelAttribute | None:
        result = await self.session.execute(
            select(DataModelAttribute).where(
                and_(
                    DataModelAttribute.attribute_id == attribute_id,
                    DataModelAttribute.model_object_id == model_object_id,
                )
            )
        )
        return result.scalar_one_or_none()

    async def list_by_attribute(self, attribute_id: int) -> list[DataModelAttribute]:
        result = await self.session.execute(
            select(DataModelAttribute)
            .where(DataModelAttribute.attribute_id == attribute_id)
            .order_by(DataModelAttribute.id)
        )
        return list(result.scalars().all())

    async def list_by_attributes(self, attribute_ids: Iterable[int]) -> list[DataModelAttribute]:
        attribute_ids = list(attribute_ids)
        if not attribute_ids:
            return []
        result = await self.session.execute(
            select(DataModelAttribute)
            .where(DataModelAttribute.attribute_id.in_(attribute_ids))
            .order_by(DataModelAttribute.id)
        )
        return list(result.scalars().all())

    async def list_by_model_objects(self, model_object_ids: Iterable[int]) -> list[DataModelAttribute]:
        model_object_ids = list(model_object_ids)
        if not model_object_ids:
            return []
        result = await self.session.execute(
            select(DataModelAttribute)
            .where(DataModelAttribute.model_object_id.in_(model_object_ids))
            .order_by(DataModelAttribute.order_index, DataModelAttribute.id)
        )
        return list(result.scalars().all())


# ============ Relationships ============

class GlobalRelationshipRepository(BaseRepository[DataObjectRelationship]):
    """Repository for relationships between canonical objects."""

    model_class = DataObjectRelationship

    async def list_for_objects(self, object_ids: Iterable[int]) -> list[DataObjectRelationship]:
        """Relationships with at least one endpoint in `object_ids`."""
        object_ids = list(object_ids)
        if not object_ids:
            return []
        result = await self.session.execute(
            select(DataObjectRelationship)
            .where(
                or_(
                    DataObjectRelationship.source_data_object_id.in_(object_ids),
                    DataObjectRelationship.target_data_object_id.in_(object_ids),
                )
            )
            .order_by(DataObjectRelationship.id)
        )
        return list(result.scalars().all())

    async def list_among(self, object_ids: Iterable[int]) -> list[DataObjectRelationship]:
        """Relationships with both endpoints in `object_ids`."""
        object_ids = list(object_ids)
        if not object_ids:
            return []
        result = await self.session.execute(
            select(DataObjectRelationship)
            .where(
                and_(
                    DataObjectRelationship.source_data_object_id.in_(object_ids),
                    DataObjectRelationship.target_data_object_id.in_(object_ids),
                )
            )
            .order_by(DataObjectRelationship.id)
        )
        return list(result.scalars().all())


class ModelRelationshipRepository(BaseRepository[DataModelObjectRelationship]):
    """Repository for relationships between instances of one model."""

    model_class = DataModelObjectRelationship

    async def list_for_model_objects(self, model_object_ids: Iterable[int]) -> list[DataModelObjectRelationship]:
        model_object_ids = list(model_object_ids)
        if not model_object_ids:
            return []
        result = await self.session.execute(
            select(DataModelObjectRelationship)
            .where(
                or_(
                    DataModelObjectRelationship.source_model_object_id.in_(model_object_ids),
                    DataModelObjectRelationship.target_model_object_id.in_(model_object_ids),
                )
            )
            .order_by(DataModelObjectRelationship.id)
        )
        return list(result.scalars().all())


# ============ Properties ============

class PropertyRepository(BaseRepository[DataModelProperty]):
    """Repository for polymorphic properties."""

    model_class = DataModelProperty

    async def find_by_key(
        self,
        entity_type: str,
        entity_id: int,
        model_id: int,
        property_name: str,
        layer: str | None,
    ) -> DataModelProperty | None:
        layer_clause = (
            DataModelProperty.layer.is_(None)
            if layer is None
            else DataModelProperty.layer == layer
        )
        result = await self.session.execute(
            select(DataModelProperty)
            .where(
                and_(
                    DataModelProperty.entity_type == entity_type,
                    DataModelProperty.entity_id == entity_id,
                    DataModelProperty.model_id == model_id,
                    DataModelProperty.property_name == property_name,
                    layer_clause,
                )
            )
            .order_by(DataModelProperty.id)
        )
        return result.scalars().first()

    async def list_for_entity(self, entity_type: str, entity_id: int) -> list[DataModelProperty]:
        return await self.list_for_entities(entity_type, [entity_id])

    async def list_for_entities(self, entity_type: str, entity_ids: Iterable[int]) -> list[DataModelProperty]:
        entity_ids = list(entity_ids)
        if not entity_ids:
            return []
        result = await self.session.execute(
            select(DataModelProperty)
            .where(
                and_(
                    DataModelProperty.entity_type == entity_type,
                    DataModelProperty.entity_id.in_(entity_ids),
                )
            )
            .order_by(DataModelProperty.id)
        )
        return list(result.scalars().all())

    async def delete_for_entities(self, entity_type: str, entity_ids: Iterable[int]) -> int:
        entity_ids = list(entity_ids)
        if not entity_ids:
            return 0
        return await self.delete_where(
            DataModelProperty.entity_type == entity_type,
            DataModelProperty.entity_id.in_(entity_ids),
        )
