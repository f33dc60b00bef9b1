"""
Property Engine - typed extensible properties on any entity kind.

A property is keyed by (entity_type, entity_id, model_id, property_name,
layer); a null layer is its own model-wide key. Values are stored as JSON
alongside a declared type tag; the value is not checked against the tag.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from openmodel.core.exceptions import NotFoundError, ValidationFailedError
from openmodel.domain.models.enums import Layer, PropertyEntityType, PropertyType
from openmodel.infrastructure.logging import get_logger
from openmodel.storage.orm import DataModelProperty
from .entity_engine import RegistryEngine
from .repository import PropertyRepository

logger = get_logger(__name__)


def _parse(enum_type: type, value: Any, field: str) -> Any:
    if isinstance(value, str):
        value = value.strip().lower()
    try:
        return enum_type(value)
    except ValueError as e:
        raise ValidationFailedError(
            f"Unknown {field}: {value}",
            field=field,
            value=value,
        ) from e


class PropertyEngine:
    """Property Engine - upsert, read and delete polymorphic properties."""

    def __init__(self, session: AsyncSession, registry: RegistryEngine | None = None):
        self.session = session
        self.registry = registry or RegistryEngine(session)
        self.repository = PropertyRepository(session)

    async def set(
        self,
        entity_type: PropertyEntityType | str,
        entity_id: int,
        model_id: int,
        property_name: str,
        value: Any,
        property_type: PropertyType | str = PropertyType.STRING,
        layer: Layer | str | None = None,
        description: str | None = None,
        is_system_property: bool = False,
    ) -> tuple[DataModelProperty, bool]:
        """
        Insert or replace a property.

        Returns:
            (property, created)
        """
        entity_kind = _parse(PropertyEntityType, entity_type, "entity_type")
        value_type = _parse(PropertyType, property_type, "property_type")
        layer_value = _parse(Layer, layer, "layer").value if layer is not None else None
        name = property_name or ""
        if not name.strip():
            raise ValidationFailedError("Property name must not be empty", field="property_name")
        if name != name.strip():
            raise ValidationFailedError(
                "Property name must not have leading or trailing whitespace",
                field="property_name",
                value=name,
            )

        await self.registry.get_model(model_id)

        existing = await self.repository.find_by_key(
            entity_kind.value, entity_id, model_id, name, layer_value
        )
        if existing is not None:
            updated = await self.repository.update(
                existing,
                property_value=value,
                property_type=value_type.value,
                description=description if description is not None else existing.description,
                is_system_property=is_system_property,
            )
            return updated, False

        created = await self.repository.create(
            entity_type=entity_kind.value,
            entity_id=entity_id,
            model_id=model_id,
            property_name=name,
            property_value=value,
            property_type=value_type.value,
            layer=layer_value,
            description=description,
            is_system_property=is_system_property,
        )
        return created, True

    async def list_for(self, entity_type: PropertyEntityType | str, entity_id: int) -> list[DataModelProperty]:
        entity_kind = _parse(PropertyEntityType, entity_type, "entity_type")
        return await self.repository.list_for_entity(entity_kind.value, entity_id)

    async def delete(self, property_id: int) -> DataModelProperty:
        prop = await self.repository.get_by_id(property_id)
        if prop is None:
            raise NotFoundError("DataModelProperty", property_id)
        await self.repository.delete_by_ids([prop.id])
        return prop
