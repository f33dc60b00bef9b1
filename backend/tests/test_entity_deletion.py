"""
Tests for registry entities, instances and cascading deletes.
"""

import pytest
from sqlalchemy import or_, select

from openmodel.core.exceptions import NotFoundError, ValidationFailedError
from openmodel.domain.schemas import (
    DataAreaCreate,
    DomainCreate,
    ModelCreate,
    ModelObjectCreate,
    ObjectCreate,
    SystemCreate,
)
from openmodel.storage.orm import (
    Attribute,
    DataModelAttribute,
    DataModelObject,
    DataModelObjectRelationship,
    DataObject,
    DataObjectRelationship,
)


async def fetch(session_maker, stmt):
    async with session_maker() as session:
        return list((await session.execute(stmt)).scalars().all())


class TestRegistry:
    """Tests for domains, areas, systems and models."""

    @pytest.mark.asyncio
    async def test_duplicate_domain_is_rejected(self, service, sales_scope):
        with pytest.raises(ValidationFailedError):
            await service.create_domain(DomainCreate(name="Sales"))

    @pytest.mark.asyncio
    async def test_area_names_are_scoped_to_their_domain(self, service, sales_scope):
        domain, _ = sales_scope
        finance = await service.create_domain(DomainCreate(name="Finance"))

        area = await service.create_data_area(DataAreaCreate(name="Orders", domain_id=finance.id))
        assert area.domain_id == finance.id

        with pytest.raises(ValidationFailedError):
            await service.create_data_area(DataAreaCreate(name="Orders", domain_id=domain.id))

        assert [a.name for a in await service.list_data_areas(finance.id)] == ["Orders"]
        assert sorted(d.name for d in await service.list_domains()) == ["Finance", "Sales"]

    @pytest.mark.asyncio
    async def test_area_for_unknown_domain(self, service):
        with pytest.raises(NotFoundError):
            await service.create_data_area(DataAreaCreate(name="Orders", domain_id=404))

    @pytest.mark.asyncio
    async def test_systems(self, service, data_lake):
        with pytest.raises(ValidationFailedError):
            await service.create_system(SystemCreate(name="Data Lake", category="Storage", system_type="s3"))

        found = await service.get_system_by_name("data lake")
        assert found.id == data_lake.id
        assert [s.name for s in await service.list_systems()] == ["Data Lake"]

    @pytest.mark.asyncio
    async def test_conceptual_model_cannot_have_parent(self, service):
        root = await service.create_model(ModelCreate(name="Root"))
        with pytest.raises(ValidationFailedError):
            await service.create_model(ModelCreate(name="Nested", layer="conceptual", parent_model_id=root.id))

    @pytest.mark.asyncio
    async def test_parent_must_be_conceptual(self, service):
        root = await service.create_model(ModelCreate(name="Root"))
        logical = await service.create_model(ModelCreate(name="Root", layer="logical", parent_model_id=root.id))
        with pytest.raises(ValidationFailedError):
            await service.create_model(ModelCreate(name="Root", layer="physical", parent_model_id=logical.id))

    @pytest.mark.asyncio
    async def test_list_models_by_layer(self, service, catalog):
        logical = await service.list_models("logical")
        assert [m.id for m in logical] == [catalog.family.logical.id]
        assert len(await service.list_models()) == 3

    @pytest.mark.asyncio
    async def test_get_unknown_model(self, service):
        with pytest.raises(NotFoundError):
            await service.get_model(404)


class TestObjects:
    """Tests for canonical objects and their instances."""

    @pytest.mark.asyncio
    async def test_object_is_bound_into_its_model(self, service):
        model = await service.create_model(ModelCreate(name="Sketch"))
        obj = await service.create_object(ObjectCreate(name="Order", model_id=model.id))

        instances = await service.list_model_objects(model.id)
        assert [mo.object_id for mo in instances] == [obj.id]

    @pytest.mark.asyncio
    async def test_area_from_another_domain(self, service, sales_scope):
        _, area = sales_scope
        finance = await service.create_domain(DomainCreate(name="Finance"))
        with pytest.raises(ValidationFailedError):
            await service.create_object(ObjectCreate(name="Ledger", domain_id=finance.id, data_area_id=area.id))

    @pytest.mark.asyncio
    async def test_object_cannot_be_bound_twice(self, service, catalog):
        with pytest.raises(ValidationFailedError):
            await service.create_model_object(
                ModelObjectCreate(object_id=catalog.user.id, model_id=catalog.family.logical.id)
            )

    @pytest.mark.asyncio
    async def test_new_instance_carries_attributes(self, service, session_maker, catalog):
        model = await service.create_model(ModelCreate(name="Extra", layer="logical"))
        instance = await service.create_model_object(
            ModelObjectCreate(object_id=catalog.user.id, model_id=model.id, position={"x": 5, "y": 5})
        )

        rows = await fetch(
            session_maker, select(DataModelAttribute).where(DataModelAttribute.model_object_id == instance.id)
        )
        assert instance.position == {"x": 5, "y": 5}
        assert sorted(r.attribute_id for r in rows) == sorted([catalog.user_id.id, catalog.email.id])

    @pytest.mark.asyncio
    async def test_list_attributes_in_order(self, service, catalog):
        attributes = await service.list_attributes(catalog.user.id)
        assert [a.name for a in attributes] == ["user_id", "email"]


class TestCascadingDeletes:
    """Tests for deletes that remove every dependent row."""

    @pytest.mark.asyncio
    async def test_delete_object_leaves_no_references(self, service, session_maker, catalog):
        """Nothing refers to a deleted object afterwards."""
        user_id = catalog.user.id
        counts = await service.delete_object(user_id)

        assert counts["objects"] == 1
        assert counts["model_objects"] == 3
        assert counts["attributes"] == 2
        assert counts["model_attributes"] == 6

        assert await fetch(session_maker, select(DataObject).where(DataObject.id == user_id)) == []
        assert await fetch(session_maker, select(DataModelObject).where(DataModelObject.object_id == user_id)) == []
        assert await fetch(session_maker, select(Attribute).where(Attribute.object_id == user_id)) == []
        assert await fetch(
            session_maker,
            select(DataObjectRelationship).where(
                or_(
                    DataObjectRelationship.source_data_object_id == user_id,
                    DataObjectRelationship.target_data_object_id == user_id,
                )
            ),
        ) == []
        assert await fetch(session_maker, select(DataModelObjectRelationship)) == []

        remaining = await fetch(session_maker, select(DataModelObject))
        assert {mo.object_id for mo in remaining} == {catalog.product.id}

    @pytest.mark.asyncio
    async def test_delete_model_object(self, service, session_maker, catalog):
        instances = await service.list_model_objects(catalog.family.physical.id)
        user_instance = next(mo for mo in instances if mo.object_id == catalog.user.id)

        counts = await service.delete_model_object(user_instance.id)

        assert counts["model_objects"] == 1
        assert counts["model_attributes"] == 2
        assert counts["model_relationships"] == 1
        assert await service.get_object(catalog.user.id)
        remaining = await service.list_model_objects(catalog.family.physical.id)
        assert [mo.object_id for mo in remaining] == [catalog.product.id]
        assert len(await fetch(session_maker, select(DataModelObjectRelationship))) == 2

    @pytest.mark.asyncio
    async def test_delete_unknown_entities(self, service):
        with pytest.raises(NotFoundError):
            await service.delete_object(404)
        with pytest.raises(NotFoundError):
            await service.delete_model_object(404)
