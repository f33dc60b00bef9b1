"""
Relationship Engine - global and model-specific relationships.

Global relationships connect canonical objects and pin canonical
attributes. Model-specific relationships connect two instances of the
same model, pin instance attributes, and carry routing hints for the
diagram renderer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from openmodel.core.exceptions import NotFoundError, ValidationFailedError
from openmodel.domain.models.enums import Layer, RelationshipLevel, RelationshipScope
from openmodel.domain.schemas.modeling import RelationshipCreate, RelationshipPatch
from openmodel.infrastructure.logging import get_logger
from openmodel.storage.orm import (
    DataModel,
    DataModelObjectRelationship,
    DataObjectRelationship,
)
from .entity_engine import EntityEngine

logger = get_logger(__name__)

Relationship = DataObjectRelationship | DataModelObjectRelationship


@dataclass
class LevelSuggestion:
    """Advisory relationship level with optional attribute pins."""
    level: RelationshipLevel
    source_attribute_id: int | None = None
    target_attribute_id: int | None = None


def suggest_relationship_level(
    layer: Layer | str,
    source_attributes: Sequence[Any] = (),
    target_attributes: Sequence[Any] = (),
) -> LevelSuggestion:
    """
    Suggest a relationship level for a layer.

    Conceptual relationships stay at object level. Logical and physical
    relationships are pinned to a primary key on one side and a foreign
    key on the other when both exist.
    """
    if Layer(layer) is Layer.CONCEPTUAL:
        return LevelSuggestion(RelationshipLevel.OBJECT)

    source_pk = next((a for a in source_attributes if a.is_primary_key), None)
    target_fk = next((a for a in target_attributes if a.is_foreign_key), None)
    if source_pk is not None and target_fk is not None:
        return LevelSuggestion(RelationshipLevel.ATTRIBUTE, source_pk.id, target_fk.id)

    source_fk = next((a for a in source_attributes if a.is_foreign_key), None)
    target_pk = next((a for a in target_attributes if a.is_primary_key), None)
    if source_fk is not None and target_pk is not None:
        return LevelSuggestion(RelationshipLevel.ATTRIBUTE, source_fk.id, target_pk.id)

    return LevelSuggestion(RelationshipLevel.OBJECT)


class RelationshipEngine:
    """
    Relationship Engine - validation and persistence of both scopes.

    Provides:
    - Create relationships with endpoint and pin validation
    - Level defaulting from pins or the layer's advisory suggestion
    - Update and delete
    - Replication of global relationships into model-specific ones
    """

    def __init__(self, session: AsyncSession, entities: EntityEngine | None = None):
        self.session = session
        self.entities = entities or EntityEngine(session)
        self.global_repository = self.entities.global_relationships
        self.model_repository = self.entities.model_relationships

    async def create(self, data: RelationshipCreate) -> Relationship:
        """
        Create a relationship in the requested scope.

        Args:
            data: Relationship input

        Returns:
            DataObjectRelationship for scope=global,
            DataModelObjectRelationship for scope=model
        """
        if data.scope == RelationshipScope.GLOBAL:
            return await self._create_global(data)
        return await self._create_model_specific(data)

    def _require_pins(self, data: RelationshipCreate, level: RelationshipLevel) -> None:
        if level == RelationshipLevel.ATTRIBUTE and (
            data.source_attribute_id is None or data.target_attribute_id is None
        ):
            raise ValidationFailedError(
                "Attribute-level relationships require both source and target attributes",
                field="source_attribute_id" if data.source_attribute_id is None else "target_attribute_id",
            )

    async def _create_global(self, data: RelationshipCreate) -> DataObjectRelationship:
        source = await self.entities.get_object(data.source_id)
        target = await self.entities.get_object(data.target_id)

        for attribute_id, owner, side in (
            (data.source_attribute_id, source, "source"),
            (data.target_attribute_id, target, "target"),
        ):
            if attribute_id is None:
                continue
            attribute = await self.entities.attributes.get_by_id(attribute_id)
            if attribute is None:
                raise NotFoundError("Attribute", attribute_id)
            if attribute.object_id != owner.id:
                raise ValidationFailedError(
                    f"Attribute {attribute_id} does not belong to {side} object {owner.id}",
                    field=f"{side}_attribute_id",
                    value=attribute_id,
                )

        level = data.relationship_level
        source_attribute_id, target_attribute_id = data.source_attribute_id, data.target_attribute_id
        if level is None:
            if source_attribute_id is not None and target_attribute_id is not None:
                level = RelationshipLevel.ATTRIBUTE
            else:
                level = RelationshipLevel.OBJECT
        self._require_pins(data, level)
        if level == RelationshipLevel.OBJECT:
            source_attribute_id = target_attribute_id = None

        return await self.global_repository.create(
            source_data_object_id=source.id,
            target_data_object_id=target.id,
            relationship_type=data.relationship_type.value,
            relationship_level=level.value,
            source_attribute_id=source_attribute_id,
            target_attribute_id=target_attribute_id,
            name=data.name,
            description=data.description,
            relationship_metadata=data.relationship_metadata,
        )

    async def _create_model_specific(self, data: RelationshipCreate) -> DataModelObjectRelationship:
        model = await self.entities.registry.get_model(data.model_id)
        source = await self.entities.get_model_object(data.source_id)
        target = await self.entities.get_model_object(data.target_id)

        for instance, side in ((source, "source"), (target, "target")):
            if instance.model_id != model.id:
                raise ValidationFailedError(
                    f"Instance {instance.id} belongs to model {instance.model_id}, not {model.id}",
                    field=f"{side}_id",
                    value=instance.id,
                )

        for attribute_id, instance, side in (
            (data.source_attribute_id, source, "source"),
            (data.target_attribute_id, target, "target"),
        ):
            if attribute_id is None:
                continue
            model_attribute = await self.entities.model_attributes.get_by_id(attribute_id)
            if model_attribute is None:
                raise NotFoundError("DataModelAttribute", attribute_id)
            if model_attribute.model_object_id != instance.id:
                raise ValidationFailedError(
                    f"Attribute {attribute_id} does not belong to {side} instance {instance.id}",
                    field=f"{side}_attribute_id",
                    value=attribute_id,
                )

        level = data.relationship_level
        source_attribute_id, target_attribute_id = data.source_attribute_id, data.target_attribute_id
        if level is None:
            if source_attribute_id is not None and target_attribute_id is not None:
                level = RelationshipLevel.ATTRIBUTE
            else:
                suggestion = suggest_relationship_level(
                    model.layer,
                    await self.entities.model_attributes.list_by_model_objects([source.id]),
                    await self.entities.model_attributes.list_by_model_objects([target.id]),
                )
                level = suggestion.level
                source_attribute_id = suggestion.source_attribute_id
                target_attribute_id = suggestion.target_attribute_id
        else:
            self._require_pins(data, level)
        if level == RelationshipLevel.OBJECT:
            source_attribute_id = target_attribute_id = None

        return await self.model_repository.create(
            source_model_object_id=source.id,
            target_model_object_id=target.id,
            relationship_type=data.relationship_type.value,
            relationship_level=level.value,
            source_attribute_id=source_attribute_id,
            target_attribute_id=target_attribute_id,
            model_id=model.id,
            layer=model.layer,
            name=data.name,
            description=data.description,
            source_handle=data.source_handle,
            target_handle=data.target_handle,
            waypoints=data.waypoints,
            relationship_metadata=data.relationship_metadata,
        )

    async def get(self, relationship_id: int, scope: RelationshipScope | str) -> Relationship:
        scope = RelationshipScope(scope)
        repository = self.global_repository if scope == RelationshipScope.GLOBAL else self.model_repository
        relationship = await repository.get_by_id(relationship_id)
        if relationship is None:
            raise NotFoundError(
                "DataObjectRelationship" if scope == RelationshipScope.GLOBAL else "DataModelObjectRelationship",
                relationship_id,
            )
        return relationship

    async def update(
        self,
        relationship_id: int,
        scope: RelationshipScope | str,
        patch: RelationshipPatch,
    ) -> Relationship:
        relationship = await self.get(relationship_id, scope)
        changes = patch.model_dump(exclude_unset=True)
        if changes.get("relationship_type") is not None:
            changes["relationship_type"] = patch.relationship_type.value
        else:
            changes.pop("relationship_type", None)
        if RelationshipScope(scope) == RelationshipScope.GLOBAL:
            for key in ("source_handle", "target_handle", "waypoints"):
                changes.pop(key, None)

        repository = self.global_repository if RelationshipScope(scope) == RelationshipScope.GLOBAL else self.model_repository
        return await repository.update(relationship, **changes)

    async def delete(self, relationship_id: int, scope: RelationshipScope | str) -> Relationship:
        relationship = await self.get(relationship_id, scope)
        repository = self.global_repository if RelationshipScope(scope) == RelationshipScope.GLOBAL else self.model_repository
        await repository.delete_by_ids([relationship.id])
        return relationship

    async def replicate_into_models(
        self,
        object_ids: Sequence[int],
        models: Sequence[DataModel],
    ) -> int:
        """
        Copy global relationships among `object_ids` into each model.

        Endpoints become the model's instances; attribute pins are
        translated to the instances' attribute rows, falling back to object
        level when a pin cannot be translated.

        Returns:
            Number of model-specific relationships created
        """
        created = 0
        relationships = await self.global_repository.list_among(object_ids)
        if not relationships:
            return created

        for model in models:
            instances = {
                mo.object_id: mo
                for mo in await self.entities.model_objects.list_by_model(model.id)
                if mo.object_id in set(object_ids)
            }
            for relationship in relationships:
                source = instances.get(relationship.source_data_object_id)
                target = instances.get(relationship.target_data_object_id)
                if source is None or target is None:
                    continue

                level = relationship.relationship_level
                source_pin = target_pin = None
                if level == RelationshipLevel.ATTRIBUTE.value:
                    source_pin = await self._translate_pin(relationship.source_attribute_id, source.id)
                    target_pin = await self._translate_pin(relationship.target_attribute_id, target.id)
                    if source_pin is None or target_pin is None:
                        level = RelationshipLevel.OBJECT.value
                        source_pin = target_pin = None

                await self.model_repository.create(
                    source_model_object_id=source.id,
                    target_model_object_id=target.id,
                    relationship_type=relationship.relationship_type,
                    relationship_level=level,
                    source_attribute_id=source_pin,
                    target_attribute_id=target_pin,
                    model_id=model.id,
                    layer=model.layer,
                    name=relationship.name,
                    description=relationship.description,
                    relationship_metadata={"global_relationship_id": relationship.id},
                )
                created += 1

        return created

    async def _translate_pin(self, attribute_id: int | None, model_object_id: int) -> int | None:
        if attribute_id is None:
            return None
        model_attribute = await self.entities.model_attributes.get_by_attribute_and_model_object(
            attribute_id, model_object_id
        )
        return model_attribute.id if model_attribute else None
