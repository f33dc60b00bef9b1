"""
Object Lake Engine - denormalized cross-layer read view.

Answers one query with a fixed series of independent reads inside a
single read-only session, then assembles, filters, sorts and paginates in
memory. Missing optional relations render as None or empty lists.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from openmodel.core.config import ObjectLakeSettings, get_settings
from openmodel.domain.models.enums import Layer, ObjectLakeSortKey, PropertyEntityType, SortOrder
from openmodel.domain.schemas.object_lake import (
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
from openmodel.infrastructure.logging import get_logger
from openmodel.storage.orm import (
    DataModel,
    DataModelObject,
    DataModelObjectRelationship,
    DataModelProperty,
    DataObject,
    DataObjectRelationship,
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


def _named(row: Any) -> NamedRef | None:
    return NamedRef(id=row.id, name=row.name) if row is not None else None


def _model_summary(model: DataModel | None) -> ModelSummary | None:
    if model is None:
        return None
    return ModelSummary(
        id=model.id,
        name=model.name,
        layer=model.layer,
        parent_model_id=model.parent_model_id,
        target_system_id=model.target_system_id,
    )


def _property_view(prop: DataModelProperty) -> PropertyView:
    return PropertyView(
        id=prop.id,
        property_name=prop.property_name,
        property_value=prop.property_value,
        property_type=prop.property_type,
        model_id=prop.model_id,
        layer=prop.layer,
    )


def _global_view(rel: DataObjectRelationship) -> RelationshipView:
    return RelationshipView(
        id=rel.id,
        scope="global",
        relationship_type=rel.relationship_type,
        relationship_level=rel.relationship_level,
        source_id=rel.source_data_object_id,
        target_id=rel.target_data_object_id,
        source_object_id=rel.source_data_object_id,
        target_object_id=rel.target_data_object_id,
        source_attribute_id=rel.source_attribute_id,
        target_attribute_id=rel.target_attribute_id,
        name=rel.name,
        description=rel.description,
    )


def _model_view(
    rel: DataModelObjectRelationship,
    instances: dict[int, DataModelObject],
) -> RelationshipView:
    source = instances.get(rel.source_model_object_id)
    target = instances.get(rel.target_model_object_id)
    return RelationshipView(
        id=rel.id,
        scope="model",
        relationship_type=rel.relationship_type,
        relationship_level=rel.relationship_level,
        source_id=rel.source_model_object_id,
        target_id=rel.target_model_object_id,
        source_object_id=source.object_id if source else None,
        target_object_id=target.object_id if target else None,
        source_attribute_id=rel.source_attribute_id,
        target_attribute_id=rel.target_attribute_id,
        model_id=rel.model_id,
        layer=rel.layer,
        name=rel.name,
        description=rel.description,
    )


def _dedupe(rows: Iterable[Any]) -> list[Any]:
    seen: dict[int, Any] = {}
    for row in rows:
        seen.setdefault(row.id, row)
    return sorted(seen.values(), key=lambda r: r.id)


class ObjectLakeEngine:
    """
    Object Lake Engine - one row per canonical object with everything attached.

    Filters:
    - search, domain_id, data_area_id, object_type: on the object itself
    - layer: keeps only instances in that layer, drops objects without one
    - include_hidden: hidden instances are excluded unless set
    - system_id: object source/target system or a kept instance's target system
    - model_id: object's defining model or a kept instance's model
    - has_attributes, relationship_type: on the assembled row
    """

    def __init__(self, session: AsyncSession, settings: ObjectLakeSettings | None = None):
        self.session = session
        self.settings = settings or get_settings().object_lake
        self.objects = DataObjectRepository(session)
        self.attributes = AttributeRepository(session)
        self.model_objects = DataModelObjectRepository(session)
        self.model_attributes = DataModelAttributeRepository(session)
        self.models = DataModelRepository(session)
        self.domains = DomainRepository(session)
        self.areas = DataAreaRepository(session)
        self.systems = SystemRepository(session)
        self.global_relationships = GlobalRelationshipRepository(session)
        self.model_relationships = ModelRelationshipRepository(session)
        self.properties = PropertyRepository(session)

    def _page_size(self, requested: int | None) -> int:
        if requested is None:
            return self.settings.default_page_size
        return max(1, min(requested, self.settings.max_page_size))

    async def query(self, filters: ObjectLakeFilters) -> ObjectLakeResponse:
        page_size = self._page_size(filters.page_size)

        objects = await self.objects.search(
            query=filters.search,
            domain_id=filters.domain_id,
            data_area_id=filters.data_area_id,
            object_type=filters.object_type,
        )
        object_ids = [obj.id for obj in objects]

        instances = await self.model_objects.list_by_objects(object_ids)
        instance_ids = [mo.id for mo in instances]
        attributes = await self.attributes.list_by_objects(object_ids)
        model_attributes = await self.model_attributes.list_by_model_objects(instance_ids)
        global_relationships = await self.global_relationships.list_for_objects(object_ids)
        model_relationships = await self.model_relationships.list_for_model_objects(instance_ids)

        instances_by_id = {mo.id: mo for mo in instances}
        foreign_ids = {
            endpoint
            for rel in model_relationships
            for endpoint in (rel.source_model_object_id, rel.target_model_object_id)
            if endpoint not in instances_by_id
        }
        for mo in await self.model_objects.list_by_ids(foreign_ids):
            instances_by_id[mo.id] = mo

        models = {
            m.id: m
            for m in await self.models.list_by_ids(
                {mo.model_id for mo in instances} | {obj.model_id for obj in objects if obj.model_id}
            )
        }
        system_ids = {
            sid
            for sid in (
                *(obj.source_system_id for obj in objects),
                *(obj.target_system_id for obj in objects),
                *(mo.target_system_id for mo in instances),
            )
            if sid is not None
        }
        systems = {s.id: s for s in await self.systems.list_by_ids(system_ids)}
        domains = {d.id: d for d in await self.domains.list_by_ids({o.domain_id for o in objects if o.domain_id})}
        areas = {a.id: a for a in await self.areas.list_by_ids({o.data_area_id for o in objects if o.data_area_id})}

        properties: dict[tuple[str, int], list[DataModelProperty]] = defaultdict(list)
        for entity_type, ids in (
            (PropertyEntityType.OBJECT, object_ids),
            (PropertyEntityType.ATTRIBUTE, [a.id for a in attributes]),
            (PropertyEntityType.MODEL_OBJECT, instance_ids),
            (PropertyEntityType.MODEL_ATTRIBUTE, [ma.id for ma in model_attributes]),
        ):
            for prop in await self.properties.list_for_entities(entity_type.value, ids):
                properties[(prop.entity_type, prop.entity_id)].append(prop)

        instances_by_object: dict[int, list[DataModelObject]] = defaultdict(list)
        for mo in instances:
            instances_by_object[mo.object_id].append(mo)
        attributes_by_object = defaultdict(list)
        for attribute in attributes:
            attributes_by_object[attribute.object_id].append(attribute)
        model_attributes_by_instance = defaultdict(list)
        model_attributes_by_attribute = defaultdict(list)
        for ma in model_attributes:
            model_attributes_by_instance[ma.model_object_id].append(ma)
            model_attributes_by_attribute[ma.attribute_id].append(ma)
        global_by_object = defaultdict(list)
        for rel in global_relationships:
            global_by_object[rel.source_data_object_id].append(rel)
            global_by_object[rel.target_data_object_id].append(rel)
        model_by_instance = defaultdict(list)
        for rel in model_relationships:
            model_by_instance[rel.source_model_object_id].append(rel)
            model_by_instance[rel.target_model_object_id].append(rel)

        rows: list[ObjectLakeObject] = []
        for obj in objects:
            kept = [
                mo for mo in instances_by_object[obj.id]
                if (filters.include_hidden or mo.is_visible)
                and (filters.layer is None or getattr(models.get(mo.model_id), "layer", None) == filters.layer.value)
            ]
            if filters.layer is not None and not kept:
                continue
            if filters.model_id is not None and not (
                obj.model_id == filters.model_id or any(mo.model_id == filters.model_id for mo in kept)
            ):
                continue
            if filters.system_id is not None and not (
                filters.system_id in (obj.source_system_id, obj.target_system_id)
                or any(mo.target_system_id == filters.system_id for mo in kept)
            ):
                continue

            object_attributes = attributes_by_object[obj.id]
            if filters.has_attributes is not None and bool(object_attributes) != filters.has_attributes:
                continue

            global_rels = _dedupe(global_by_object[obj.id])
            model_rels = _dedupe(rel for mo in kept for rel in model_by_instance[mo.id])
            if filters.relationship_type and not any(
                (rel.relationship_type or "").upper() == filters.relationship_type
                for rel in (*global_rels, *model_rels)
            ):
                continue

            rows.append(self._assemble(
                obj, kept, object_attributes, global_rels, model_rels,
                models, systems, domains, areas, properties,
                instances_by_id, model_attributes_by_instance,
                model_attributes_by_attribute, model_by_instance,
            ))

        self._sort(rows, filters.sort_by, filters.sort_order)

        totals = ObjectLakeTotals(
            object_count=len(rows),
            attribute_count=sum(row.stats.attribute_count for row in rows),
            relationship_count=sum(row.stats.relationship_count for row in rows),
            model_instance_count=sum(row.stats.model_instance_count for row in rows),
        )
        start = (filters.page - 1) * page_size
        page_rows = rows[start:start + page_size]

        applied = filters.model_dump(mode="json", exclude_none=True)
        applied["page_size"] = page_size

        logger.debug(
            f"Object lake query matched {len(rows)} of {len(objects)} objects, "
            f"returning page {filters.page} ({len(page_rows)} rows)"
        )
        return ObjectLakeResponse(
            objects=page_rows,
            totals=totals,
            applied_filters=applied,
            meta=ObjectLakeMeta(
                page=filters.page,
                page_size=page_size,
                has_more=filters.page * page_size < len(rows),
                generated_at=datetime.now(timezone.utc),
            ),
        )

    def _assemble(
        self,
        obj: DataObject,
        kept: list[DataModelObject],
        object_attributes: list,
        global_rels: list[DataObjectRelationship],
        model_rels: list[DataModelObjectRelationship],
        models: dict,
        systems: dict,
        domains: dict,
        areas: dict,
        properties: dict,
        instances_by_id: dict,
        model_attributes_by_instance: dict,
        model_attributes_by_attribute: dict,
        model_by_instance: dict,
    ) -> ObjectLakeObject:
        kept_ids = {mo.id for mo in kept}

        instance_views = []
        for mo in kept:
            instance_views.append(ModelInstanceView(
                id=mo.id,
                model=_model_summary(models[mo.model_id]),
                target_system=_named(systems.get(mo.target_system_id)),
                position=mo.position,
                metadata=mo.instance_metadata,
                is_visible=mo.is_visible,
                layer_specific_config=mo.layer_specific_config,
                attributes=[
                    ModelAttributeView.model_validate(ma, from_attributes=True)
                    for ma in model_attributes_by_instance[mo.id]
                ],
                relationships=[
                    _model_view(rel, instances_by_id) for rel in _dedupe(model_by_instance[mo.id])
                ],
                properties=[
                    _property_view(p) for p in properties[(PropertyEntityType.MODEL_OBJECT.value, mo.id)]
                ],
                updated_at=mo.updated_at,
            ))

        attribute_views = []
        for attribute in object_attributes:
            attribute_views.append(AttributeView(
                id=attribute.id,
                name=attribute.name,
                conceptual_type=attribute.conceptual_type,
                logical_type=attribute.logical_type,
                physical_type=attribute.physical_type,
                length=attribute.length,
                nullable=attribute.nullable,
                is_primary_key=attribute.is_primary_key,
                is_foreign_key=attribute.is_foreign_key,
                order_index=attribute.order_index,
                description=attribute.description,
                metadata_by_model={
                    ma.model_id: ModelAttributeView.model_validate(ma, from_attributes=True)
                    for ma in model_attributes_by_attribute[attribute.id]
                    if ma.model_object_id in kept_ids
                },
                properties=[
                    _property_view(p) for p in properties[(PropertyEntityType.ATTRIBUTE.value, attribute.id)]
                ],
                updated_at=attribute.updated_at,
            ))

        base_instance = next(
            (mo for mo in kept if getattr(models.get(mo.model_id), "layer", None) == Layer.CONCEPTUAL.value),
            kept[0] if kept else None,
        )
        base_model = models.get(base_instance.model_id) if base_instance else models.get(obj.model_id)

        timestamps = [
            ts for ts in (
                obj.updated_at,
                *(a.updated_at for a in object_attributes),
                *(mo.updated_at for mo in kept),
            )
            if ts is not None
        ]

        domain = domains.get(obj.domain_id)
        area = areas.get(obj.data_area_id)
        source_system = systems.get(obj.source_system_id)
        target_system = systems.get(obj.target_system_id)
        tags = []
        for tag in (obj.object_type, getattr(domain, "name", None), getattr(area, "name", None),
                    getattr(source_system, "name", None), getattr(target_system, "name", None)):
            if tag and tag not in tags:
                tags.append(tag)

        return ObjectLakeObject(
            id=obj.id,
            name=obj.name,
            description=obj.description,
            object_type=obj.object_type,
            domain=_named(domain),
            data_area=_named(area),
            source_system=_named(source_system),
            target_system=_named(target_system),
            base_model=_model_summary(base_model),
            base_metadata=obj.object_metadata,
            position=obj.position,
            stats=ObjectStats(
                attribute_count=len(attribute_views),
                relationship_count=len(global_rels) + len(model_rels),
                model_instance_count=len(instance_views),
                last_updated=max(timestamps) if timestamps else None,
            ),
            model_instances=instance_views,
            attributes=attribute_views,
            relationships=ObjectRelationships(
                global_=[_global_view(rel) for rel in global_rels],
                model_specific=[_model_view(rel, instances_by_id) for rel in model_rels],
            ),
            properties=[_property_view(p) for p in properties[(PropertyEntityType.OBJECT.value, obj.id)]],
            tags=tags,
            updated_at=obj.updated_at,
        )

    @staticmethod
    def _sort(rows: list[ObjectLakeObject], sort_by: ObjectLakeSortKey, order: SortOrder) -> None:
        keys = {
            ObjectLakeSortKey.NAME: lambda row: row.name.lower(),
            ObjectLakeSortKey.UPDATED_AT: lambda row: row.stats.last_updated or datetime.min,
            ObjectLakeSortKey.ATTRIBUTE_COUNT: lambda row: row.stats.attribute_count,
            ObjectLakeSortKey.RELATIONSHIP_COUNT: lambda row: row.stats.relationship_count,
            ObjectLakeSortKey.MODEL_INSTANCE_COUNT: lambda row: row.stats.model_instance_count,
        }
        rows.sort(key=lambda row: row.id)
        rows.sort(key=keys[sort_by], reverse=order == SortOrder.DESC)
