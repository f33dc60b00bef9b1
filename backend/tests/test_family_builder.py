"""
Tests for model family creation.

Covers the parent-link invariant, per-layer instantiation, type
derivation, target-system templates and validation failures.
"""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from openmodel.core.exceptions import NotFoundError, TransactionFailedError, ValidationFailedError
from openmodel.domain.schemas import AttributeCreate, DomainCreate, FamilySeed, ObjectCreate, SystemCreate
from openmodel.domain.types import conceptual_to_logical, logical_to_physical
from openmodel.services.storage.entity_engine import EntityEngine
from openmodel.storage.orm import (
    Attribute,
    DataModel,
    DataModelAttribute,
    DataModelObject,
    DataModelObjectRelationship,
    DataObject,
)


async def fetch(session_maker, stmt):
    async with session_maker() as session:
        return list((await session.execute(stmt)).scalars().all())


async def count(session_maker, model):
    async with session_maker() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestFamilyStructure:
    """Tests for the three-model family shape."""

    @pytest.mark.asyncio
    async def test_parent_links_point_at_conceptual_root(self, catalog):
        """Logical and physical models are children of the conceptual model."""
        family = catalog.family
        assert family.conceptual.layer == "conceptual"
        assert family.logical.layer == "logical"
        assert family.physical.layer == "physical"
        assert family.conceptual.parent_model_id is None
        assert family.logical.parent_model_id == family.conceptual.id
        assert family.physical.parent_model_id == family.conceptual.id
        assert {m.name for m in family.models} == {"Commerce"}

    @pytest.mark.asyncio
    async def test_models_carry_domain_and_area(self, catalog, sales_scope):
        domain, area = sales_scope
        for model in catalog.family.models:
            assert model.domain_id == domain.id
            assert model.data_area_id == area.id

    @pytest.mark.asyncio
    async def test_every_selected_object_has_one_instance_per_layer(self, service, catalog):
        """Each selected object appears exactly once in each model."""
        for model in catalog.family.models:
            instances = await service.list_model_objects(model.id)
            assert sorted(mo.object_id for mo in instances) == sorted([catalog.user.id, catalog.product.id])
            for instance in instances:
                assert instance.layer_specific_config["layer"] == model.layer

    @pytest.mark.asyncio
    async def test_unowned_objects_are_anchored_to_conceptual_model(self, service, catalog):
        user = await service.get_object(catalog.user.id)
        assert user.model_id == catalog.family.conceptual.id

    @pytest.mark.asyncio
    async def test_created_counts(self, catalog):
        counts = catalog.family.created_counts
        assert counts["models"] == 3
        assert counts["objects"] == 0
        assert counts["model_objects"] == 6
        assert counts["model_attributes"] == 12
        assert counts["relationships"] == 3

    @pytest.mark.asyncio
    async def test_global_relationship_is_replicated_per_layer(self, session_maker, catalog):
        """The pinned User -> Product relationship exists once in each model, still pinned."""
        rows = await fetch(session_maker, select(DataModelObjectRelationship))
        assert sorted(r.model_id for r in rows) == sorted(m.id for m in catalog.family.models)
        for row in rows:
            assert row.relationship_level == "attribute"
            assert row.source_attribute_id is not None
            assert row.relationship_metadata == {"global_relationship_id": catalog.relationship.id}


class TestFamilyTypeDerivation:
    """Tests for attribute types produced by family creation."""

    @pytest.mark.asyncio
    async def test_instance_attributes_carry_derived_types(self, session_maker, catalog):
        rows = await fetch(session_maker, select(DataModelAttribute))
        assert len(rows) == 12
        for row in rows:
            assert row.logical_type == conceptual_to_logical(row.conceptual_type)
            assert row.physical_type == logical_to_physical(row.logical_type)

    @pytest.mark.asyncio
    async def test_manual_override_survives_on_canonical_row(self, service, session_maker):
        obj = await service.create_object(ObjectCreate(name="Note"))
        body = await service.create_attribute(
            AttributeCreate(name="body", object_id=obj.id, conceptual_type="Text", logical_type="TEXT")
        )
        await service.create_family(FamilySeed(name="Notes", selected_object_ids=[obj.id]))

        attribute = (await fetch(session_maker, select(Attribute).where(Attribute.id == body.id)))[0]
        assert attribute.logical_type == "TEXT"
        assert attribute.physical_type == "text"

        instances = await fetch(
            session_maker, select(DataModelAttribute).where(DataModelAttribute.attribute_id == body.id)
        )
        assert len(instances) == 3
        assert {ma.logical_type for ma in instances} == {"VARCHAR"}


class TestFamilyFromTemplate:
    """Tests for template-seeded families."""

    @pytest.mark.asyncio
    async def test_qa_verification_model_on_data_lake(self, service, session_maker, data_lake):
        """The Data Lake template seeds at least six fully scoped objects."""
        family = await service.create_family(
            FamilySeed(name="QA Verification Model", target_system="Data Lake")
        )

        assert len(family.models) == 3
        assert family.conceptual.target_system_id == data_lake.id

        objects = await fetch(
            session_maker, select(DataObject).where(DataObject.model_id == family.conceptual.id)
        )
        assert len(objects) >= 6
        for obj in objects:
            assert obj.domain_id is not None
            assert obj.data_area_id is not None
            assert obj.target_system_id == family.conceptual.target_system_id
            assert obj.is_new
            assert obj.object_metadata == {"template": "Data Lake"}

        assert family.created_counts["objects"] == len(objects)
        assert family.created_counts["model_objects"] == 3 * len(objects)

    @pytest.mark.asyncio
    async def test_template_attributes_follow_type_mapping(self, service, session_maker, data_lake):
        await service.create_family(FamilySeed(name="Lake", target_system_id=data_lake.id))

        attributes = await fetch(session_maker, select(Attribute))
        assert attributes
        for attribute in attributes:
            assert attribute.logical_type == conceptual_to_logical(attribute.conceptual_type)
            assert attribute.physical_type == logical_to_physical(attribute.logical_type)

    @pytest.mark.asyncio
    async def test_template_relationships_replicated_into_each_layer(self, service, session_maker, data_lake):
        family = await service.create_family(FamilySeed(name="Lake", target_system="data lake"))

        for model in family.models:
            rows = await fetch(
                session_maker,
                select(DataModelObjectRelationship).where(DataModelObjectRelationship.model_id == model.id),
            )
            assert len(rows) == 5
            assert sum(1 for r in rows if r.relationship_level == "attribute") == 2

    @pytest.mark.asyncio
    async def test_template_domains_are_reused(self, service, data_lake):
        first = await service.create_family(FamilySeed(name="Lake A", target_system="Data Lake"))
        second = await service.create_family(FamilySeed(name="Lake B", target_system="Data Lake"))

        assert first.created_counts["domains"] > 0
        assert second.created_counts["domains"] == 0
        assert second.created_counts["data_areas"] == 0

    @pytest.mark.asyncio
    async def test_system_without_template_yields_empty_family(self, service, session_maker):
        system = await service.create_system(SystemCreate(name="Archive", category="Storage", system_type="s3"))
        family = await service.create_family(FamilySeed(name="Cold", target_system_id=system.id))

        assert family.created_counts["model_objects"] == 0
        assert await count(session_maker, DataModel) == 3
        assert await count(session_maker, DataModelObject) == 0


class TestFamilySelection:
    """Tests for explicit object selection."""

    @pytest.mark.asyncio
    async def test_unknown_ids_are_dropped(self, service, session_maker):
        obj = await service.create_object(ObjectCreate(name="Invoice"))
        family = await service.create_family(FamilySeed(name="Billing", selected_object_ids=[obj.id, 9999]))

        assert family.created_counts["model_objects"] == 3
        assert await count(session_maker, DataModelObject) == 3

    @pytest.mark.asyncio
    async def test_objects_outside_scope_are_filtered(self, service, sales_scope):
        domain, _ = sales_scope
        other = await service.create_domain(DomainCreate(name="Finance"))
        inside = await service.create_object(ObjectCreate(name="Order", domain_id=domain.id))
        outside = await service.create_object(ObjectCreate(name="Ledger", domain_id=other.id))
        unscoped = await service.create_object(ObjectCreate(name="Tag"))

        family = await service.create_family(
            FamilySeed(name="Orders", domain_id=domain.id, selected_object_ids=[inside.id, outside.id, unscoped.id])
        )

        instances = await service.list_model_objects(family.logical.id)
        assert sorted(mo.object_id for mo in instances) == sorted([inside.id, unscoped.id])


class TestFamilyValidation:
    """Tests for rejected seeds."""

    @pytest.mark.asyncio
    async def test_blank_name_is_rejected(self, service, session_maker):
        with pytest.raises(ValidationFailedError):
            await service.create_family(FamilySeed(name="   "))
        assert await count(session_maker, DataModel) == 0

    @pytest.mark.asyncio
    async def test_unknown_target_system_is_rejected(self, service, session_maker):
        with pytest.raises(NotFoundError):
            await service.create_family(FamilySeed(name="Ghost", target_system="Nowhere"))
        assert await count(session_maker, DataModel) == 0

    @pytest.mark.asyncio
    async def test_unknown_domain_is_rejected(self, service, session_maker):
        with pytest.raises(NotFoundError):
            await service.create_family(FamilySeed(name="Ghost", domain_id=42))
        assert await count(session_maker, DataModel) == 0

    @pytest.mark.asyncio
    async def test_area_from_another_domain_is_rejected(self, service, sales_scope):
        _, area = sales_scope
        other = await service.create_domain(DomainCreate(name="Finance"))
        with pytest.raises(ValidationFailedError):
            await service.create_family(FamilySeed(name="Mixed", domain_id=other.id, data_area_id=area.id))

    @pytest.mark.asyncio
    async def test_failure_midway_leaves_no_family_behind(self, service, session_maker, monkeypatch):
        """All three models and their instances are written together or not at all."""
        invoice = await service.create_object(ObjectCreate(name="Invoice"))
        await service.create_attribute(AttributeCreate(name="total", object_id=invoice.id, conceptual_type="Text"))
        payment = await service.create_object(ObjectCreate(name="Payment"))

        original_bind = EntityEngine.bind_object
        calls = []

        async def failing_bind(entities, *args, **kwargs):
            calls.append(args)
            if len(calls) == 4:
                raise OperationalError("INSERT INTO data_model_objects", {}, Exception("database is locked"))
            return await original_bind(entities, *args, **kwargs)

        monkeypatch.setattr(EntityEngine, "bind_object", failing_bind)
        with pytest.raises(TransactionFailedError):
            await service.create_family(FamilySeed(name="Billing", selected_object_ids=[invoice.id, payment.id]))

        assert len(calls) == 4
        assert await count(session_maker, DataModel) == 0
        assert await count(session_maker, DataModelObject) == 0
        assert await count(session_maker, DataModelAttribute) == 0
