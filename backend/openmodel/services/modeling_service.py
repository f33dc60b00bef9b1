"""
Modeling Service - the asynchronous facade over the modeling core.

Every mutating call opens its own session and runs inside exactly one
transaction; all rows commit or none do. Domain events are published
only after the commit succeeds. Results are returned as pydantic records
detached from the session.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import Any, AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from openmodel.core.config import Settings, get_settings
from openmodel.core.exceptions import ModelingError, store_errors
from openmodel.domain.models.enums import EventAction, Layer, PropertyEntityType, PropertyType, RelationshipScope
from openmodel.domain.schemas.modeling import (
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
from openmodel.domain.schemas.object_lake import ObjectLakeFilters, ObjectLakeResponse
from openmodel.infrastructure.database import create_engine_from_settings, create_session_maker, get_session_maker
from openmodel.infrastructure.logging import get_logger, log_context, log_operation
from openmodel.metadata import ensure_templates_loaded
from openmodel.services.bus import DomainEvent, EventBus
from openmodel.services.storage import (
    AttributeEngine,
    EnhanceResult,
    EntityEngine,
    FamilyEngine,
    ObjectLakeEngine,
    PropertyEngine,
    RegistryEngine,
    RelationshipEngine,
)
from openmodel.storage.orm import DataObjectRelationship

logger = get_logger(__name__)

RelationshipRecord = GlobalRelationshipRecord | ModelRelationshipRecord


def _relationship_record(relationship: Any) -> RelationshipRecord:
    if isinstance(relationship, DataObjectRelationship):
        return GlobalRelationshipRecord.model_validate(relationship)
    return ModelRelationshipRecord.model_validate(relationship)


class ModelingService:
    """
    Modeling Service - entry point for family creation, attribute and
    relationship edits, the property store and the Object Lake.

    Usage:
        service = ModelingService(session_maker)
        family = await service.create_family(FamilySeed(name="Sales", target_system="Data Lake"))
        lake = await service.query_object_lake(ObjectLakeFilters(layer="logical"))
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        settings: Settings | None = None,
        event_bus: EventBus | None = None,
    ):
        self.settings = settings or get_settings()
        if session_maker is None:
            if settings is None:
                session_maker = get_session_maker()
            else:
                session_maker = create_session_maker(create_engine_from_settings(settings.database))
        self.session_maker = session_maker
        self.event_bus = event_bus or EventBus()
        ensure_templates_loaded(self.settings.templates_dir)

    @asynccontextmanager
    async def _transaction(
        self,
        operation: str,
        args: dict[str, Any] | None = None,
        events: list[DomainEvent] | None = None,
        read_only: bool = False,
    ) -> AsyncIterator[AsyncSession]:
        """Run one facade operation in its own session and transaction."""
        started = time.perf_counter()
        try:
            async with store_errors(operation):
                with log_context(operation=operation):
                    async with self.session_maker() as session:
                        if read_only:
                            yield session
                        else:
                            async with session.begin():
                                yield session
        except ModelingError as e:
            log_operation(logger, operation, args, error=e, duration_ms=(time.perf_counter() - started) * 1000)
            raise

        log_operation(logger, operation, args, duration_ms=(time.perf_counter() - started) * 1000)
        if events:
            await self.event_bus.publish_all(events)

    # ---- model families ----

    async def create_family(self, seed: FamilySeed) -> FamilyCreateResult:
        """Create a conceptual/logical/physical family and seed it."""
        events: list[DomainEvent] = []
        async with self._transaction("create_family", {"name": seed.name}, events) as session:
            result = await FamilyEngine(session).create_family(seed)
            for model in result.models:
                events.append(DomainEvent("model", model.id, EventAction.CREATED, layer=model.layer))
            for object_id in result.object_ids:
                events.append(DomainEvent("object", object_id, EventAction.CREATED))

            return FamilyCreateResult(
                conceptual=ModelRecord.model_validate(result.conceptual),
                logical=ModelRecord.model_validate(result.logical),
                physical=ModelRecord.model_validate(result.physical),
                created_counts=dict(result.counts),
            )

    # ---- attributes ----

    async def create_attribute(self, data: AttributeCreate) -> AttributeRecord:
        events: list[DomainEvent] = []
        async with self._transaction("create_attribute", {"object_id": data.object_id}, events) as session:
            attribute = await AttributeEngine(session).create(data)
            events.append(DomainEvent("attribute", attribute.id, EventAction.CREATED))
            return AttributeRecord.model_validate(attribute)

    async def update_attribute(
        self,
        attribute_id: int,
        patch: AttributePatch,
        model_id: int | None = None,
    ) -> AttributeRecord:
        """
        Patch an attribute; a logical type edit made in a logical model
        is carried to the sibling physical model on a best-effort basis.
        """
        events: list[DomainEvent] = []
        args = {"attribute_id": attribute_id, "model_id": model_id}
        async with self._transaction("update_attribute", args, events) as session:
            attribute = await AttributeEngine(session).update(attribute_id, patch, model_id=model_id)
            events.append(DomainEvent(
                "attribute",
                attribute.id,
                EventAction.UPDATED,
                payload=patch.model_dump(exclude_unset=True),
            ))
            return AttributeRecord.model_validate(attribute)

    async def delete_attribute(self, attribute_id: int) -> None:
        events: list[DomainEvent] = []
        async with self._transaction("delete_attribute", {"attribute_id": attribute_id}, events) as session:
            counts = await AttributeEngine(session).delete(attribute_id)
            events.append(DomainEvent("attribute", attribute_id, EventAction.DELETED, payload=counts))

    async def enhance_attribute(self, attribute_id: int, target_layer: Layer | str) -> AttributeRecord:
        events: list[DomainEvent] = []
        args = {"attribute_id": attribute_id, "target_layer": getattr(target_layer, "value", target_layer)}
        async with self._transaction("enhance_attribute", args, events) as session:
            attribute, changed = await AttributeEngine(session).enhance(attribute_id, target_layer)
            if changed:
                events.append(DomainEvent("attribute", attribute.id, EventAction.UPDATED, layer=Layer(target_layer).value))
            return AttributeRecord.model_validate(attribute)

    async def bulk_enhance_attributes(self, object_id: int, target_layer: Layer | str) -> list[EnhanceResult]:
        """Enhance every attribute of an object; one result per attribute."""
        events: list[DomainEvent] = []
        args = {"object_id": object_id, "target_layer": getattr(target_layer, "value", target_layer)}
        async with self._transaction("bulk_enhance_attributes", args, events) as session:
            results = await AttributeEngine(session).bulk_enhance(object_id, target_layer)
            for item in results:
                if item.changed:
                    events.append(DomainEvent("attribute", item.attribute_id, EventAction.UPDATED, layer=Layer(target_layer).value))
            return [
                replace(item, attribute=AttributeRecord.model_validate(item.attribute) if item.attribute else None)
                for item in results
            ]

    # ---- relationships ----

    async def create_relationship(self, data: RelationshipCreate) -> RelationshipRecord:
        events: list[DomainEvent] = []
        args = {"scope": data.scope.value, "source_id": data.source_id, "target_id": data.target_id}
        async with self._transaction("create_relationship", args, events) as session:
            relationship = await RelationshipEngine(session).create(data)
            events.append(DomainEvent(
                f"{data.scope.value}_relationship",
                relationship.id,
                EventAction.CREATED,
                layer=getattr(relationship, "layer", None),
            ))
            return _relationship_record(relationship)

    async def update_relationship(
        self,
        relationship_id: int,
        scope: RelationshipScope | str,
        patch: RelationshipPatch,
    ) -> RelationshipRecord:
        events: list[DomainEvent] = []
        scope = RelationshipScope(scope)
        args = {"relationship_id": relationship_id, "scope": scope.value}
        async with self._transaction("update_relationship", args, events) as session:
            relationship = await RelationshipEngine(session).update(relationship_id, scope, patch)
            events.append(DomainEvent(f"{scope.value}_relationship", relationship.id, EventAction.UPDATED))
            return _relationship_record(relationship)

    async def delete_relationship(self, relationship_id: int, scope: RelationshipScope | str) -> None:
        events: list[DomainEvent] = []
        scope = RelationshipScope(scope)
        args = {"relationship_id": relationship_id, "scope": scope.value}
        async with self._transaction("delete_relationship", args, events) as session:
            await RelationshipEngine(session).delete(relationship_id, scope)
            events.append(DomainEvent(f"{scope.value}_relationship", relationship_id, EventAction.DELETED))

    # ---- properties ----

    async def set_property(
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
    ) -> PropertyRecord:
        events: list[DomainEvent] = []
        args = {"entity_type": getattr(entity_type, "value", entity_type), "entity_id": entity_id, "property_name": property_name}
        async with self._transaction("set_property", args, events) as session:
            prop, created = await PropertyEngine(session).set(
                entity_type,
                entity_id,
                model_id,
                property_name,
                value,
                property_type=property_type,
                layer=layer,
                description=description,
                is_system_property=is_system_property,
            )
            events.append(DomainEvent(
                "property",
                prop.id,
                EventAction.CREATED if created else EventAction.UPDATED,
                layer=prop.layer,
            ))
            return PropertyRecord.model_validate(prop)

    async def get_properties(self, entity_type: PropertyEntityType | str, entity_id: int) -> list[PropertyRecord]:
        async with self._transaction("get_properties", read_only=True) as session:
            props = await PropertyEngine(session).list_for(entity_type, entity_id)
            return [PropertyRecord.model_validate(p) for p in props]

    async def delete_property(self, property_id: int) -> None:
        events: list[DomainEvent] = []
        async with self._transaction("delete_property", {"property_id": property_id}, events) as session:
            prop = await PropertyEngine(session).delete(property_id)
            events.append(DomainEvent("property", prop.id, EventAction.DELETED, layer=prop.layer))

    # ---- object lake ----

    async def query_object_lake(self, filters: ObjectLakeFilters | None = None) -> ObjectLakeResponse:
        filters = filters or ObjectLakeFilters()
        args = filters.model_dump(mode="json", exclude_none=True)
        async with self._transaction("query_object_lake", args, read_only=True) as session:
            return await ObjectLakeEngine(session, self.settings.object_lake).query(filters)

    # ---- registries ----

    async def create_domain(self, data: DomainCreate) -> DomainRecord:
        events: list[DomainEvent] = []
        async with self._transaction("create_domain", {"name": data.name}, events) as session:
            domain = await RegistryEngine(session).create_domain(data)
            events.append(DomainEvent("domain", domain.id, EventAction.CREATED))
            return DomainRecord.model_validate(domain)

    async def create_data_area(self, data: DataAreaCreate) -> DataAreaRecord:
        events: list[DomainEvent] = []
        async with self._transaction("create_data_area", {"name": data.name}, events) as session:
            area = await RegistryEngine(session).create_data_area(data)
            events.append(DomainEvent("data_area", area.id, EventAction.CREATED))
            return DataAreaRecord.model_validate(area)

    async def create_system(self, data: SystemCreate) -> SystemRecord:
        events: list[DomainEvent] = []
        async with self._transaction("create_system", {"name": data.name}, events) as session:
            system = await RegistryEngine(session).create_system(data)
            events.append(DomainEvent("system", system.id, EventAction.CREATED))
            return SystemRecord.model_validate(system)

    async def get_system_by_name(self, name: str) -> SystemRecord | None:
        async with self._transaction("get_system_by_name", read_only=True) as session:
            system = await RegistryEngine(session).systems.get_by_name(name)
            return SystemRecord.model_validate(system) if system else None

    async def list_domains(self) -> list[DomainRecord]:
        async with self._transaction("list_domains", read_only=True) as session:
            return [DomainRecord.model_validate(d) for d in await RegistryEngine(session).domains.list_all()]

    async def list_data_areas(self, domain_id: int | None = None) -> list[DataAreaRecord]:
        async with self._transaction("list_data_areas", read_only=True) as session:
            areas = await RegistryEngine(session).areas.list_by_domain(domain_id)
            return [DataAreaRecord.model_validate(a) for a in areas]

    async def list_systems(self) -> list[SystemRecord]:
        async with self._transaction("list_systems", read_only=True) as session:
            return [SystemRecord.model_validate(s) for s in await RegistryEngine(session).systems.list_all()]

    async def create_model(self, data: ModelCreate) -> ModelRecord:
        events: list[DomainEvent] = []
        async with self._transaction("create_model", {"name": data.name, "layer": data.layer.value}, events) as session:
            model = await RegistryEngine(session).create_model(data)
            events.append(DomainEvent("model", model.id, EventAction.CREATED, layer=model.layer))
            return ModelRecord.model_validate(model)

    async def get_model(self, model_id: int) -> ModelRecord:
        async with self._transaction("get_model", read_only=True) as session:
            return ModelRecord.model_validate(await RegistryEngine(session).get_model(model_id))

    async def list_models(self, layer: Layer | str | None = None) -> list[ModelRecord]:
        async with self._transaction("list_models", read_only=True) as session:
            registry = RegistryEngine(session)
            if layer is None:
                models = await registry.models.list_all()
            else:
                models = await registry.models.list_by_layer(Layer(layer).value)
            return [ModelRecord.model_validate(m) for m in models]

    # ---- canonical objects and instances ----

    async def create_object(self, data: ObjectCreate) -> ObjectRecord:
        events: list[DomainEvent] = []
        async with self._transaction("create_object", {"name": data.name, "model_id": data.model_id}, events) as session:
            obj = await EntityEngine(session).create_object(data)
            events.append(DomainEvent("object", obj.id, EventAction.CREATED))
            return ObjectRecord.model_validate(obj)

    async def get_object(self, object_id: int) -> ObjectRecord:
        async with self._transaction("get_object", read_only=True) as session:
            return ObjectRecord.model_validate(await EntityEngine(session).get_object(object_id))

    async def list_attributes(self, object_id: int) -> list[AttributeRecord]:
        async with self._transaction("list_attributes", read_only=True) as session:
            entities = EntityEngine(session)
            await entities.get_object(object_id)
            return [AttributeRecord.model_validate(a) for a in await entities.attributes.list_by_object(object_id)]

    async def delete_object(self, object_id: int) -> dict[str, int]:
        """Delete an object with its instances, attributes, relationships and properties."""
        events: list[DomainEvent] = []
        async with self._transaction("delete_object", {"object_id": object_id}, events) as session:
            counts = await EntityEngine(session).delete_object(object_id)
            events.append(DomainEvent("object", object_id, EventAction.DELETED, payload=counts))
            return counts

    async def create_model_object(self, data: ModelObjectCreate) -> ModelObjectRecord:
        events: list[DomainEvent] = []
        args = {"object_id": data.object_id, "model_id": data.model_id}
        async with self._transaction("create_model_object", args, events) as session:
            instance = await EntityEngine(session).create_model_object(data)
            events.append(DomainEvent("model_object", instance.id, EventAction.CREATED))
            return ModelObjectRecord.model_validate(instance)

    async def update_model_object(self, model_object_id: int, patch: ModelObjectPatch) -> ModelObjectRecord:
        events: list[DomainEvent] = []
        async with self._transaction("update_model_object", {"model_object_id": model_object_id}, events) as session:
            instance = await EntityEngine(session).update_model_object(model_object_id, patch)
            events.append(DomainEvent("model_object", instance.id, EventAction.UPDATED))
            return ModelObjectRecord.model_validate(instance)

    async def list_model_objects(self, model_id: int) -> list[ModelObjectRecord]:
        async with self._transaction("list_model_objects", read_only=True) as session:
            entities = EntityEngine(session)
            await entities.registry.get_model(model_id)
            return [ModelObjectRecord.model_validate(mo) for mo in await entities.model_objects.list_by_model(model_id)]

    async def delete_model_object(self, model_object_id: int) -> dict[str, int]:
        events: list[DomainEvent] = []
        async with self._transaction("delete_model_object", {"model_object_id": model_object_id}, events) as session:
            counts = await EntityEngine(session).delete_model_object(model_object_id)
            events.append(DomainEvent("model_object", model_object_id, EventAction.DELETED, payload=counts))
            return counts
