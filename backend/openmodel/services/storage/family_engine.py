"""
Family Engine - creates a conceptual/logical/physical model family.

A family is one conceptual root plus logical and physical models whose
parent_model_id points at the root. The family is seeded with either an
explicit selection of canonical objects or the target system's template,
and every source object is instantiated once per layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from openmodel.core.exceptions import ValidationFailedError
from openmodel.domain.models.enums import Layer, RelationshipLevel
from openmodel.domain.schemas.modeling import FamilySeed
from openmodel.domain.types import default_length, derive_types
from openmodel.infrastructure.logging import get_logger
from openmodel.metadata.registry import TargetSystemTemplate, TargetSystemTemplateRegistry
from openmodel.storage.orm import DataArea, DataDomain, DataModel, DataObject, System
from .entity_engine import EntityEngine
from .relationship_engine import RelationshipEngine

logger = get_logger(__name__)


@dataclass
class FamilyBuildResult:
    """Result of family creation."""
    conceptual: DataModel
    logical: DataModel
    physical: DataModel
    object_ids: list[int] = field(default_factory=list)
    template: str | None = None
    counts: dict[str, int] = field(default_factory=lambda: {
        "models": 0,
        "objects": 0,
        "model_objects": 0,
        "attributes": 0,
        "model_attributes": 0,
        "relationships": 0,
        "domains": 0,
        "data_areas": 0,
    })

    @property
    def models(self) -> list[DataModel]:
        return [self.conceptual, self.logical, self.physical]


class FamilyEngine:
    """
    Family Engine - atomic creation of a three-layer model family.

    Runs inside the caller's transaction; any failure leaves nothing behind.
    """

    def __init__(
        self,
        session: AsyncSession,
        entities: EntityEngine | None = None,
        templates: type[TargetSystemTemplateRegistry] = TargetSystemTemplateRegistry,
    ):
        self.session = session
        self.entities = entities or EntityEngine(session)
        self.registry = self.entities.registry
        self.relationships = RelationshipEngine(session, self.entities)
        self.templates = templates

    async def create_family(self, seed: FamilySeed) -> FamilyBuildResult:
        """
        Create conceptual, logical and physical models and seed them.

        Args:
            seed: Family name, target system, domain/area and optional
                object selection

        Returns:
            FamilyBuildResult with the three models and creation counts
        """
        name = (seed.name or "").strip()
        if not name:
            raise ValidationFailedError("Model name must not be empty", field="name")

        system = await self.registry.resolve_system(seed.target_system_id, seed.target_system)
        domain, area = await self.registry.resolve_domain_and_area(seed.domain_id, seed.data_area_id)

        conceptual = await self._create_model(name, Layer.CONCEPTUAL, None, system, domain, area, seed.description)
        logical = await self._create_model(name, Layer.LOGICAL, conceptual.id, system, domain, area, seed.description)
        physical = await self._create_model(name, Layer.PHYSICAL, conceptual.id, system, domain, area, seed.description)
        result = FamilyBuildResult(conceptual=conceptual, logical=logical, physical=physical)
        result.counts["models"] = 3

        if seed.selected_object_ids:
            objects = await self._select_objects(seed.selected_object_ids, system, domain, area)
            await self._prepare_selected(objects, conceptual)
        else:
            template = self.templates.get(system.name) if system is not None else None
            if template is not None:
                result.template = template.name
                objects = await self._populate_from_template(template, conceptual, result)
            else:
                objects = []

        result.object_ids = [obj.id for obj in objects]
        for model in result.models:
            for obj in objects:
                instance = await self.entities.bind_object(
                    obj,
                    model,
                    position=obj.position,
                    layer_specific_config={"layer": model.layer},
                    derive=True,
                )
                result.counts["model_objects"] += 1
                result.counts["model_attributes"] += len(
                    await self.entities.model_attributes.list_by_model_objects([instance.id])
                )

        result.counts["relationships"] += await self.relationships.replicate_into_models(
            result.object_ids, result.models
        )

        logger.info_with_context(
            f"Created model family {name}",
            context={
                "conceptual_id": conceptual.id,
                "logical_id": logical.id,
                "physical_id": physical.id,
                "template": result.template,
                **result.counts,
            },
        )
        return result

    async def _create_model(
        self,
        name: str,
        layer: Layer,
        parent_model_id: int | None,
        system: System | None,
        domain: DataDomain | None,
        area: DataArea | None,
        description: str | None,
    ) -> DataModel:
        return await self.registry.models.create(
            name=name,
            layer=layer.value,
            parent_model_id=parent_model_id,
            target_system_id=system.id if system else None,
            domain_id=domain.id if domain else None,
            data_area_id=area.id if area else None,
            description=description,
        )

    async def _select_objects(
        self,
        object_ids: list[int],
        system: System | None,
        domain: DataDomain | None,
        area: DataArea | None,
    ) -> list[DataObject]:
        """Existing objects among `object_ids` compatible with the seed's scope."""
        found = await self.entities.objects.list_by_ids(dict.fromkeys(object_ids))
        missing = set(object_ids) - {obj.id for obj in found}
        if missing:
            logger.warning(f"Ignoring unknown selected objects: {sorted(missing)}")

        def matches(value: int | None, expected: object) -> bool:
            return expected is None or value is None or value == expected.id

        selected = []
        for obj in found:
            if (
                matches(obj.domain_id, domain)
                and matches(obj.data_area_id, area)
                and matches(obj.target_system_id, system)
            ):
                selected.append(obj)
            else:
                logger.warning(f"Ignoring selected object {obj.id} ({obj.name}) outside the family scope")
        return selected

    async def _prepare_selected(self, objects: list[DataObject], conceptual: DataModel) -> None:
        """Anchor unowned objects to the conceptual root and fill missing attribute types."""
        for obj in objects:
            if obj.model_id is None:
                await self.entities.objects.update(obj, model_id=conceptual.id)

            for attribute in await self.entities.attributes.list_by_object(obj.id):
                logical_type, physical_type = derive_types(
                    attribute.conceptual_type, attribute.logical_type, attribute.physical_type
                )
                if (logical_type, physical_type) != (attribute.logical_type, attribute.physical_type):
                    await self.entities.attributes.update(
                        attribute,
                        logical_type=logical_type,
                        physical_type=physical_type,
                    )

    async def _populate_from_template(
        self,
        template: TargetSystemTemplate,
        conceptual: DataModel,
        result: FamilyBuildResult,
    ) -> list[DataObject]:
        domains: dict[str, DataDomain] = {}
        areas: dict[tuple[str, str], DataArea] = {}
        for domain_name in template.domain_names():
            domain, created = await self.registry.ensure_domain(domain_name)
            domains[domain_name] = domain
            result.counts["domains"] += int(created)
            for area_name in template.area_names(domain_name):
                area, created = await self.registry.ensure_data_area(area_name, domain.id)
                areas[(domain_name, area_name)] = area
                result.counts["data_areas"] += int(created)

        objects: dict[str, DataObject] = {}
        attributes: dict[tuple[str, str], int] = {}
        for template_object in template.objects:
            obj = await self.entities.objects.create(
                name=template_object.name,
                description=template_object.description,
                object_type=template_object.object_type,
                model_id=conceptual.id,
                domain_id=domains[template_object.domain].id,
                data_area_id=areas[(template_object.domain, template_object.data_area)].id,
                target_system_id=conceptual.target_system_id,
                position=template_object.position,
                object_metadata={"template": template.name},
                is_new=True,
            )
            objects[obj.name] = obj
            result.counts["objects"] += 1

            for index, template_attribute in enumerate(template_object.attributes):
                logical_type, physical_type = derive_types(template_attribute.conceptual_type)
                attribute = await self.entities.attributes.create(
                    name=template_attribute.name,
                    object_id=obj.id,
                    conceptual_type=template_attribute.conceptual_type,
                    logical_type=logical_type,
                    physical_type=physical_type,
                    length=(
                        template_attribute.length
                        if template_attribute.length is not None
                        else default_length(logical_type)
                    ),
                    nullable=template_attribute.nullable,
                    is_primary_key=template_attribute.is_primary_key,
                    is_foreign_key=template_attribute.is_foreign_key,
                    order_index=index,
                    description=template_attribute.description,
                    is_new=True,
                )
                attributes[(obj.name, attribute.name)] = attribute.id
                result.counts["attributes"] += 1

        for template_relationship in template.relationships:
            source = objects.get(template_relationship.source)
            target = objects.get(template_relationship.target)
            if source is None or target is None:
                logger.warning(
                    f"Template {template.name} relationship {template_relationship.source} -> "
                    f"{template_relationship.target} references an unknown object"
                )
                continue

            source_pin = attributes.get((source.name, template_relationship.source_attribute or ""))
            target_pin = attributes.get((target.name, template_relationship.target_attribute or ""))
            pinned = source_pin is not None and target_pin is not None
            await self.relationships.global_repository.create(
                source_data_object_id=source.id,
                target_data_object_id=target.id,
                relationship_type=template_relationship.type,
                relationship_level=(RelationshipLevel.ATTRIBUTE if pinned else RelationshipLevel.OBJECT).value,
                source_attribute_id=source_pin if pinned else None,
                target_attribute_id=target_pin if pinned else None,
            )
            result.counts["relationships"] += 1

        return list(objects.values())
