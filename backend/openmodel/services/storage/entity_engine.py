"""
Entity Engine - reference registries and the canonical entity store.

RegistryEngine manages domains, data areas, systems and single model rows.
EntityEngine manages canonical objects, their per-model instances, and
the dependency-ordered cascades that remove them.
"""

from __future__ import annotations

from typing import Any, Iterable

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession

from openmodel.core.exceptions import NotFoundError, ValidationFailedError
from openmodel.domain.models.enums import Layer, PropertyEntityType
from openmodel.domain.schemas.modeling import (
    DataAreaCreate,
    DomainCreate,
    ModelCreate,
    ModelObjectCreate,
    ModelObjectPatch,
    ObjectCreate,
    SystemCreate,
)
from openmodel.domain.types import conceptual_to_logical, default_length, logical_to_physical
from openmodel.infrastructure.logging import get_logger
from openmodel.storage.orm import (
    Attribute,
    DataArea,
    DataDomain,
    DataModel,
    DataModelAttribute,
    DataModelObject,
    DataModelObjectRelationship,
    DataObject,
    DataObjectRelationship,
    System,
)
from .repository import (
    AttributeRepository,
    DataAreaRepository,
    DataModelAttributeRepository,
    DataModelObjectRepository,
    DataModelRepository,
    DataObjectRepository,
    DomainRepository,
    GlobalRelationshipRepository,
    ModelRelationshipRepository,
    PropertyRepository,
    SystemRepository,
)

logger = get_logger(__name__)


class RegistryEngine:
    """
    Registry Engine - domains, data areas, systems and models.

    Every lookup that a caller names explicitly must resolve; a missing
    reference raises NotFoundError before anything is written.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.domains = DomainRepository(session)
        self.areas = DataAreaRepository(session)
        self.systems = SystemRepository(session)
        self.models = DataModelRepository(session)

    # ---- domains & areas ----

    async def create_domain(self, data: DomainCreate) -> DataDomain:
        name = data.name.strip()
        if not name:
            raise ValidationFailedError("Domain name must not be empty", field="name")
        if await self.domains.get_by_name(name) is not None:
            raise ValidationFailedError(f"Domain already exists: {name}", field="name", value=name)
        return await self.domains.create(
            name=name,
            description=data.description,
            color_code=data.color_code,
        )

    async def create_data_area(self, data: DataAreaCreate) -> DataArea:
        name = data.name.strip()
        if not name:
            raise ValidationFailedError("Data area name must not be empty", field="name")
        await self.get_domain(data.domain_id)
        if await self.areas.get_by_name(name, data.domain_id) is not None:
            raise ValidationFailedError(
                f"Data area {name} already exists in domain {data.domain_id}",
                field="name",
                value=name,
            )
        return await self.areas.create(
            name=name,
            domain_id=data.domain_id,
            description=data.description,
            color_code=data.color_code,
        )

    async def get_domain(self, domain_id: int) -> DataDomain:
        domain = await self.domains.get_by_id(domain_id)
        if domain is None:
            raise NotFoundError("DataDomain", domain_id)
        return domain

    async def get_data_area(self, area_id: int) -> DataArea:
        area = await self.areas.get_by_id(area_id)
        if area is None:
            raise NotFoundError("DataArea", area_id)
        return area

    async def ensure_domain(self, name: str) -> tuple[DataDomain, bool]:
        """Get or create a domain by name; returns (domain, created)."""
        domain = await self.domains.get_by_name(name)
        if domain is not None:
            return domain, False
        return await self.domains.create(name=name.strip()), True

    async def ensure_data_area(self, name: str, domain_id: int) -> tuple[DataArea, bool]:
        """Get or create a data area by name within a domain; returns (area, created)."""
        area = await self.areas.get_by_name(name, domain_id)
        if area is not None:
            return area, False
        return await self.areas.create(name=name.strip(), domain_id=domain_id), True

    async def resolve_domain_and_area(
        self,
        domain_id: int | None,
        data_area_id: int | None,
    ) -> tuple[DataDomain | None, DataArea | None]:
        """
        Resolve an optional domain/area pair.

        An area without a domain infers the area's domain; an area that
        belongs to a different domain is rejected.
        """
        domain = await self.get_domain(domain_id) if domain_id is not None else None
        area = await self.get_data_area(data_area_id) if data_area_id is not None else None

        if area is not None and domain is not None and area.domain_id != domain.id:
            raise ValidationFailedError(
                f"Data area {area.name} does not belong to domain {domain.name}",
                field="data_area_id",
                value=data_area_id,
            )
        if area is not None and domain is None:
            domain = await self.get_domain(area.domain_id)

        return domain, area

    # ---- systems ----

    async def create_system(self, data: SystemCreate) -> System:
        name = data.name.strip()
        if not name:
            raise ValidationFailedError("System name must not be empty", field="name")
        if await self.systems.get_by_name(name) is not None:
            raise ValidationFailedError(f"System already exists: {name}", field="name", value=name)
        payload = data.model_dump()
        payload["name"] = name
        return await self.systems.create(**payload)

    async def get_system(self, system_id: int) -> System:
        system = await self.systems.get_by_id(system_id)
        if system is None:
            raise NotFoundError("System", system_id)
        return system

    async def resolve_system(self, system_id: int | None = None, name: str | None = None) -> System | None:
        """Resolve a system by id, else by name; None when neither is given."""
        if system_id is not None:
            return await self.get_system(system_id)
        if name and name.strip():
            system = await self.systems.get_by_name(name)
            if system is None:
                raise NotFoundError("System", name)
            return system
        return None

    # ---- models ----

    async def get_model(self, model_id: int) -> DataModel:
        model = await self.models.get_by_id(model_id)
        if model is None:
            raise NotFoundError("DataModel", model_id)
        return model

    async def create_model(self, data: ModelCreate) -> DataModel:
        name = data.name.strip()
        if not name:
            raise ValidationFailedError("Model name must not be empty", field="name")

        if data.layer == Layer.CONCEPTUAL and data.parent_model_id is not None:
            raise ValidationFailedError(
                "Conceptual models cannot have a parent model",
                field="parent_model_id",
                value=data.parent_model_id,
            )
        if data.parent_model_id is not None:
            parent = await self.get_model(data.parent_model_id)
            if parent.layer != Layer.CONCEPTUAL.value:
                raise ValidationFailedError(
                    f"Parent model {parent.id} is {parent.layer}, expected conceptual",
                    field="parent_model_id",
                    value=parent.id,
                )

        if data.target_system_id is not None:
            await self.get_system(data.target_system_id)
        domain, area = await self.resolve_domain_and_area(data.domain_id, data.data_area_id)

        return await self.models.create(
            name=name,
            layer=data.layer.value,
            parent_model_id=data.parent_model_id,
            target_system_id=data.target_system_id,
            domain_id=domain.id if domain else None,
            data_area_id=area.id if area else None,
            description=data.description,
        )


class EntityEngine:
    """
    Entity Engine - canonical objects and their model instances.

    Provides:
    - Create canonical objects, optionally bound into their defining model
    - Bind objects into models, carrying every canonical attribute along
    - Update and delete instances
    - Delete attributes and objects with their dependents in order
    """

    def __init__(self, session: AsyncSession, registry: RegistryEngine | None = None):
        self.session = session
        self.registry = registry or RegistryEngine(session)
        self.objects = DataObjectRepository(session)
        self.attributes = AttributeRepository(session)
        self.model_objects = DataModelObjectRepository(session)
        self.model_attributes = DataModelAttributeRepository(session)
        self.global_relationships = GlobalRelationshipRepository(session)
        self.model_relationships = ModelRelationshipRepository(session)
        self.properties = PropertyRepository(session)

    # ---- canonical objects ----

    async def get_object(self, object_id: int) -> DataObject:
        obj = await self.objects.get_by_id(object_id)
        if obj is None:
            raise NotFoundError("DataObject", object_id)
        return obj

    async def create_object(self, data: ObjectCreate, bind: bool = True) -> DataObject:
        """
        Create a canonical object.

        Args:
            data: Object input
            bind: Also instantiate the object in ``data.model_id``

        Returns:
            The new DataObject
        """
        name = data.name.strip()
        if not name:
            raise ValidationFailedError("Object name must not be empty", field="name")

        model = await self.registry.get_model(data.model_id) if data.model_id is not None else None
        domain, area = await self.registry.resolve_domain_and_area(data.domain_id, data.data_area_id)
        if data.source_system_id is not None:
            await self.registry.get_system(data.source_system_id)
        if data.target_system_id is not None:
            await self.registry.get_system(data.target_system_id)

        payload = data.model_dump()
        payload.update(
            name=name,
            domain_id=domain.id if domain else None,
            data_area_id=area.id if area else None,
        )
        obj = await self.objects.create(**payload)

        if bind and model is not None:
            await self.bind_object(obj, model, position=data.position)

        logger.debug(f"Created data object {obj.id} ({obj.name})")
        return obj

    # ---- instances ----

    async def get_model_object(self, model_object_id: int) -> DataModelObject:
        instance = await self.model_objects.get_by_id(model_object_id)
        if instance is None:
            raise NotFoundError("DataModelObject", model_object_id)
        return instance

    async def bind_object(
        self,
        obj: DataObject,
        model: DataModel,
        target_system_id: int | None = None,
        position: dict[str, Any] | None = None,
        instance_metadata: dict[str, Any] | None = None,
        is_visible: bool = True,
        layer_specific_config: dict[str, Any] | None = None,
        derive: bool = False,
    ) -> DataModelObject:
        """
        Instantiate `obj` in `model` together with all of its attributes.

        With ``derive`` the attribute instances take types derived from the
        conceptual type instead of copying the canonical ones.
        """
        existing = await self.model_objects.get_by_object_and_model(obj.id, model.id)
        if existing is not None:
            raise ValidationFailedError(
                f"Object {obj.id} is already present in model {model.id}",
                field="object_id",
                value=obj.id,
            )

        config = dict(layer_specific_config or {})
        config.setdefault("layer", model.layer)

        instance = await self.model_objects.create(
            object_id=obj.id,
            model_id=model.id,
            target_system_id=target_system_id if target_system_id is not None else model.target_system_id,
            position=position if position is not None else obj.position,
            instance_metadata=instance_metadata,
            is_visible=is_visible,
            layer_specific_config=config,
        )

        for attribute in await self.attributes.list_by_object(obj.id):
            await self.bind_attribute(attribute, instance, derive=derive)

        return instance

    async def bind_attribute(
        self,
        attribute: Attribute,
        instance: DataModelObject,
        derive: bool = False,
    ) -> DataModelAttribute:
        """Create the per-instance row of `attribute`."""
        logical_type, physical_type = attribute.logical_type, attribute.physical_type
        length = attribute.length
        if derive and attribute.conceptual_type:
            logical_type = conceptual_to_logical(attribute.conceptual_type)
            physical_type = logical_to_physical(logical_type)
            if length is None:
                length = default_length(logical_type)

        return await self.model_attributes.create(
            attribute_id=attribute.id,
            model_object_id=instance.id,
            model_id=instance.model_id,
            conceptual_type=attribute.conceptual_type,
            logical_type=logical_type,
            physical_type=physical_type,
            length=length,
            nullable=attribute.nullable,
            is_primary_key=attribute.is_primary_key,
            is_foreign_key=attribute.is_foreign_key,
            order_index=attribute.order_index,
        )

    async def create_model_object(self, data: ModelObjectCreate) -> DataModelObject:
        obj = await self.get_object(data.object_id)
        model = await self.registry.get_model(data.model_id)
        if data.target_system_id is not None:
            await self.registry.get_system(data.target_system_id)

        return await self.bind_object(
            obj,
            model,
            target_system_id=data.target_system_id,
            position=data.position,
            instance_metadata=data.instance_metadata,
            is_visible=data.is_visible,
            layer_specific_config=data.layer_specific_config,
        )

    async def update_model_object(self, model_object_id: int, patch: ModelObjectPatch) -> DataModelObject:
        instance = await self.get_model_object(model_object_id)
        changes = patch.model_dump(exclude_unset=True)
        if changes.get("target_system_id") is not None:
            await self.registry.get_system(changes["target_system_id"])
        if "is_visible" in changes and changes["is_visible"] is None:
            changes.pop("is_visible")
        return await self.model_objects.update(instance, **changes)

    # ---- cascading deletes ----

    async def delete_model_object(self, model_object_id: int) -> dict[str, int]:
        """
        Delete an instance and everything that hangs off it.

        Order: model relationships, instance properties, attribute
        instances, then the instance row.
        """
        await self.get_model_object(model_object_id)
        return await self._delete_model_objects([model_object_id])

    async def _delete_model_objects(self, model_object_ids: list[int]) -> dict[str, int]:
        counts = {"model_relationships": 0, "model_attributes": 0, "model_objects": 0, "properties": 0}
        if not model_object_ids:
            return counts

        model_attribute_ids = [
            ma.id for ma in await self.model_attributes.list_by_model_objects(model_object_ids)
        ]

        counts["model_relationships"] = await self.model_relationships.delete_where(
            or_(
                DataModelObjectRelationship.source_model_object_id.in_(model_object_ids),
                DataModelObjectRelationship.target_model_object_id.in_(model_object_ids),
                DataModelObjectRelationship.source_attribute_id.in_(model_attribute_ids),
                DataModelObjectRelationship.target_attribute_id.in_(model_attribute_ids),
            )
        )
        counts["properties"] += await self.properties.delete_for_entities(
            PropertyEntityType.MODEL_ATTRIBUTE.value, model_attribute_ids
        )
        counts["properties"] += await self.properties.delete_for_entities(
            PropertyEntityType.MODEL_OBJECT.value, model_object_ids
        )
        counts["model_attributes"] = await self.model_attributes.delete_by_ids(model_attribute_ids)
        counts["model_objects"] = await self.model_objects.delete_by_ids(model_object_ids)
        return counts

    async def delete_attributes(self, attribute_ids: Iterable[int]) -> dict[str, int]:
        """
        Delete canonical attributes and their dependents.

        Order: pinned global relationships, pinned model relationships,
        properties, attribute instances, then the attributes.
        """
        attribute_ids = list(attribute_ids)
        counts = {"relationships": 0, "model_attributes": 0, "attributes": 0, "properties": 0}
        if not attribute_ids:
            return counts

        model_attribute_ids = [
            ma.id for ma in await self.model_attributes.list_by_attributes(attribute_ids)
        ]

        counts["relationships"] += await self.global_relationships.delete_where(
            or_(
                DataObjectRelationship.source_attribute_id.in_(attribute_ids),
                DataObjectRelationship.target_attribute_id.in_(attribute_ids),
            )
        )
        if model_attribute_ids:
            counts["relationships"] += await self.model_relationships.delete_where(
                or_(
                    DataModelObjectRelationship.source_attribute_id.in_(model_attribute_ids),
                    DataModelObjectRelationship.target_attribute_id.in_(model_attribute_ids),
                )
            )
        counts["properties"] += await self.properties.delete_for_entities(
            PropertyEntityType.MODEL_ATTRIBUTE.value, model_attribute_ids
        )
        counts["properties"] += await self.properties.delete_for_entities(
            PropertyEntityType.ATTRIBUTE.value, attribute_ids
        )
        counts["model_attributes"] = await self.model_attributes.delete_by_ids(model_attribute_ids)
        counts["attributes"] = await self.attributes.delete_by_ids(attribute_ids)
        return counts

    async def delete_object(self, object_id: int) -> dict[str, int]:
        """
        Delete a canonical object and everything referencing it.

        Order: global relationships, instances (with their dependents),
        attributes (with their dependents), object properties, the object.
        """
        obj = await self.get_object(object_id)

        counts: dict[str, int] = {}
        counts["relationships"] = await self.global_relationships.delete_where(
            or_(
                DataObjectRelationship.source_data_object_id == obj.id,
                DataObjectRelationship.target_data_object_id == obj.id,
            )
        )

        instance_ids = [mo.id for mo in await self.model_objects.list_by_object(obj.id)]
        for key, value in (await self._delete_model_objects(instance_ids)).items():
            counts[key] = counts.get(key, 0) + value

        attribute_ids = [a.id for a in await self.attributes.list_by_object(obj.id)]
        for key, value in (await self.delete_attributes(attribute_ids)).items():
            counts[key] = counts.get(key, 0) + value

        counts["properties"] = counts.get("properties", 0) + await self.properties.delete_for_entities(
            PropertyEntityType.OBJECT.value, [obj.id]
        )
        counts["objects"] = await self.objects.delete_by_ids([obj.id])

        logger.info_with_context(
            f"Deleted data object {obj.id} ({obj.name})",
            context=counts,
        )
        return counts
