"""
Attribute Engine - canonical attribute lifecycle and type cascades.

Provides:
- Create attributes with derived logical/physical types, bound into every
  existing instance of the owning object
- Update attributes, propagating logical type edits to the physical sibling
  model on a best-effort basis
- Enhance one attribute, or every attribute of an object, for a target layer
- Delete attributes with their dependents
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from openmodel.core.exceptions import (
    CascadeUnresolvedError,
    ModelingError,
    NotFoundError,
    ValidationFailedError,
)
from openmodel.domain.models.enums import Layer
from openmodel.domain.schemas.modeling import AttributeCreate, AttributePatch
from openmodel.domain.types import (
    default_length,
    derive_type,
    derive_types,
    logical_to_physical,
    type_field,
)
from openmodel.infrastructure.logging import get_logger
from openmodel.storage.orm import Attribute, DataModel, DataObject
from .entity_engine import EntityEngine

logger = get_logger(__name__)

_LAYER_WORDS = re.compile(r"\b(logical|conceptual)\b", re.IGNORECASE)

# Fields mirrored from a canonical attribute onto its instances on update.
_INSTANCE_FIELDS = (
    "conceptual_type",
    "logical_type",
    "physical_type",
    "length",
    "nullable",
    "is_primary_key",
    "is_foreign_key",
    "order_index",
)

# Instance fields a patch may clear by setting them to None.
_CLEARABLE_FIELDS = ("conceptual_type", "logical_type", "physical_type", "length")


@dataclass
class EnhanceResult:
    """Outcome of enhancing one attribute in a batch."""
    attribute_id: int
    success: bool
    changed: bool = False
    attribute: Attribute | None = None
    error: str | None = None


def _parse_layer(value: Layer | str, field: str = "target_layer") -> Layer:
    try:
        return Layer(value)
    except ValueError as e:
        raise ValidationFailedError(f"Unknown layer: {value}", field=field, value=value) from e


class CascadePropagator:
    """
    Propagates a logical type edit to the matching physical attribute.

    Resolution is structural first (a physical model parented by the
    logical model, or sharing its parent), then by naming convention.
    Every unresolved step raises CascadeUnresolvedError internally; the
    propagator logs it and reports no change.
    """

    def __init__(self, entities: EntityEngine):
        self.entities = entities
        self.models = entities.registry.models

    async def propagate(
        self,
        logical_model: DataModel,
        obj: DataObject,
        attribute: Attribute,
        logical_type: str | None,
        length: int | None = None,
    ) -> Attribute | None:
        try:
            return await self._propagate(logical_model, obj, attribute, logical_type, length)
        except CascadeUnresolvedError as e:
            logger.warning_with_context(
                f"Cascade unresolved: {e.message}",
                context={
                    "attribute_id": attribute.id,
                    "model_id": logical_model.id,
                    **e.details,
                },
            )
            return None

    async def find_physical_sibling(self, logical_model: DataModel) -> DataModel:
        physical = Layer.PHYSICAL.value

        sibling = await self.models.find_by_parent_and_layer(logical_model.id, physical)
        if sibling is None and logical_model.parent_model_id is not None:
            sibling = await self.models.find_by_parent_and_layer(logical_model.parent_model_id, physical)
        if sibling is not None:
            return sibling

        base_name = _LAYER_WORDS.sub("", logical_model.name).strip(" -_").lower()
        if base_name:
            for candidate in await self.models.list_by_layer(physical):
                if base_name in candidate.name.lower():
                    return candidate

        raise CascadeUnresolvedError(
            f"No physical model found for logical model {logical_model.name}",
            step="physical_model",
        )

    async def _propagate(
        self,
        logical_model: DataModel,
        obj: DataObject,
        attribute: Attribute,
        logical_type: str | None,
        length: int | None,
    ) -> Attribute:
        physical_model = await self.find_physical_sibling(logical_model)

        physical_object = await self.entities.objects.find_in_model_by_name(obj.name, physical_model.id)
        if physical_object is None:
            raise CascadeUnresolvedError(
                f"No object named {obj.name} in physical model {physical_model.name}",
                step="physical_object",
                details={"physical_model_id": physical_model.id},
            )

        physical_attribute = await self.entities.attributes.find_by_name(physical_object.id, attribute.name)
        if physical_attribute is None:
            raise CascadeUnresolvedError(
                f"No attribute named {attribute.name} on {physical_object.name}",
                step="physical_attribute",
                details={"physical_object_id": physical_object.id},
            )

        physical_type = logical_to_physical(logical_type)
        new_length = length if length is not None else default_length(logical_type)
        await self.entities.attributes.update(
            physical_attribute,
            physical_type=physical_type,
            length=new_length,
        )

        instance = await self.entities.model_objects.get_by_object_and_model(physical_object.id, physical_model.id)
        if instance is not None:
            model_attribute = await self.entities.model_attributes.get_by_attribute_and_model_object(
                physical_attribute.id, instance.id
            )
            if model_attribute is not None:
                await self.entities.model_attributes.update(
                    model_attribute,
                    logical_type=logical_type,
                    physical_type=physical_type,
                    length=new_length,
                )

        logger.debug(
            f"Propagated {logical_type} -> {physical_type} to attribute {physical_attribute.id} "
            f"in model {physical_model.id}"
        )
        return physical_attribute


class AttributeEngine:
    """Attribute Engine - canonical attributes and layer type cascades."""

    def __init__(self, session: AsyncSession, entities: EntityEngine | None = None):
        self.session = session
        self.entities = entities or EntityEngine(session)
        self.repository = self.entities.attributes
        self.propagator = CascadePropagator(self.entities)

    async def get(self, attribute_id: int) -> Attribute:
        attribute = await self.repository.get_by_id(attribute_id)
        if attribute is None:
            raise NotFoundError("Attribute", attribute_id)
        return attribute

    async def create(self, data: AttributeCreate) -> Attribute:
        """
        Create a canonical attribute.

        Missing logical/physical types are derived from the type above and
        a missing length defaults from the logical type. The attribute is
        bound into every existing instance of its object.
        """
        if not data.name:
            raise ValidationFailedError("Attribute name must not be empty", field="name")
        obj = await self.entities.get_object(data.object_id)

        logical_type, physical_type = derive_types(
            data.conceptual_type, data.logical_type, data.physical_type
        )
        payload = data.model_dump()
        payload.update(
            logical_type=logical_type,
            physical_type=physical_type,
            length=data.length if data.length is not None else default_length(logical_type),
        )
        attribute = await self.repository.create(**payload)

        for instance in await self.entities.model_objects.list_by_object(obj.id):
            await self.entities.bind_attribute(attribute, instance)

        return attribute

    async def update(
        self,
        attribute_id: int,
        patch: AttributePatch,
        model_id: int | None = None,
    ) -> Attribute:
        """
        Apply a patch, then cascade a logical type edit to the physical layer.

        Args:
            attribute_id: Canonical attribute ID
            patch: Fields to change; unset fields are left alone
            model_id: Model the edit is made in; defaults to the model the
                owning object was first defined in

        Returns:
            The updated attribute
        """
        attribute = await self.get(attribute_id)
        changes = patch.model_dump(exclude_unset=True)
        if "name" in changes:
            if not (changes["name"] or "").strip():
                raise ValidationFailedError("Attribute name must not be empty", field="name")
            changes["name"] = changes["name"].strip()

        context_model = None
        if model_id is not None:
            context_model = await self.entities.registry.get_model(model_id)

        await self.repository.update(attribute, **changes)

        mirrored = {
            k: v for k, v in changes.items()
            if k in _INSTANCE_FIELDS and (v is not None or k in _CLEARABLE_FIELDS)
        }
        if mirrored:
            for model_attribute in await self.entities.model_attributes.list_by_attribute(attribute.id):
                await self.entities.model_attributes.update(model_attribute, **mirrored)

        if "logical_type" in changes:
            obj = await self.entities.get_object(attribute.object_id)
            if context_model is None and obj.model_id is not None:
                context_model = await self.entities.registry.models.get_by_id(obj.model_id)
            if context_model is not None and context_model.layer == Layer.LOGICAL.value:
                await self.propagator.propagate(
                    context_model,
                    obj,
                    attribute,
                    changes["logical_type"],
                    changes.get("length"),
                )

        return attribute

    async def enhance(self, attribute_id: int, target_layer: Layer | str) -> tuple[Attribute, bool]:
        """
        Derive the type for `target_layer` from the layer above.

        A no-op when the target has no layer above or the source type is
        empty. Repeated calls yield the same attribute.

        Returns:
            (attribute, changed)
        """
        layer = _parse_layer(target_layer)
        attribute = await self.get(attribute_id)
        return attribute, await self._enhance(attribute, layer)

    async def _enhance(self, attribute: Attribute, layer: Layer) -> bool:
        source_layer = layer.source_layer
        if source_layer is None:
            return False

        source_type = getattr(attribute, type_field(source_layer))
        if not source_type:
            return False

        derived = derive_type(layer, source_type)
        logical_type = derived if layer is Layer.LOGICAL else attribute.logical_type
        changes: dict[str, Any] = {type_field(layer): derived}
        if attribute.length is None:
            length = default_length(logical_type)
            if length is not None:
                changes["length"] = length

        changes = {k: v for k, v in changes.items() if getattr(attribute, k) != v}
        if not changes:
            return False

        await self.repository.update(attribute, **changes)

        for model_attribute in await self.entities.model_attributes.list_by_attribute(attribute.id):
            await self.entities.model_attributes.update(model_attribute, **changes)
        return True

    async def bulk_enhance(self, object_id: int, target_layer: Layer | str) -> list[EnhanceResult]:
        """
        Enhance every attribute of an object independently.

        One result per attribute, including unchanged ones. Each attribute
        runs in its own savepoint, so a failure on one attribute (rejected
        input or a store error) is rolled back alone and the others proceed.
        """
        layer = _parse_layer(target_layer)
        await self.entities.get_object(object_id)

        results: list[EnhanceResult] = []
        for attribute in await self.repository.list_by_object(object_id):
            attribute_id = attribute.id
            try:
                async with self.session.begin_nested():
                    changed = await self._enhance(attribute, layer)
                results.append(EnhanceResult(
                    attribute_id=attribute.id,
                    success=True,
                    changed=changed,
                    attribute=attribute,
                ))
            except (ModelingError, SQLAlchemyError) as e:
                message = e.message if isinstance(e, ModelingError) else f"{type(e).__name__}: {e}"
                logger.warning(f"Failed to enhance attribute {attribute_id}: {message}")
                await self.session.refresh(attribute)
                results.append(EnhanceResult(
                    attribute_id=attribute_id,
                    success=False,
                    attribute=attribute,
                    error=message,
                ))

        return results

    async def delete(self, attribute_id: int) -> dict[str, int]:
        attribute = await self.get(attribute_id)
        return await self.entities.delete_attributes([attribute.id])
