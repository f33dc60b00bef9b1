"""
Tests for the Object Lake cross-layer view.
"""

from datetime import timedelta

import pytest

from openmodel.domain.schemas import (
    AttributeCreate,
    ModelObjectPatch,
    ObjectCreate,
    ObjectLakeFilters,
    SystemCreate,
)


async def hide_instance(service, model_id, object_id):
    instances = await service.list_model_objects(model_id)
    instance = next(mo for mo in instances if mo.object_id == object_id)
    await service.update_model_object(instance.id, ModelObjectPatch(is_visible=False))
    return instance


def by_name(response):
    return {row.name: row for row in response.objects}


class TestObjectLakeAssembly:
    """Tests for the shape of each object row."""

    @pytest.mark.asyncio
    async def test_unfiltered_query_returns_both_objects(self, service, catalog):
        response = await service.query_object_lake()

        rows = by_name(response)
        assert set(rows) == {"User", "Product"}
        user = rows["User"]
        assert len(user.relationships.global_) == 1
        assert len(user.relationships.model_specific) == 3
        assert user.relationships.global_[0].source_object_id == catalog.user.id
        assert {r.source_object_id for r in user.relationships.model_specific} == {catalog.user.id}

    @pytest.mark.asyncio
    async def test_stats_match_collections(self, service, catalog):
        response = await service.query_object_lake()

        for row in response.objects:
            assert row.stats.attribute_count == len(row.attributes)
            assert row.stats.model_instance_count == len(row.model_instances)
            assert row.stats.relationship_count == (
                len(row.relationships.global_) + len(row.relationships.model_specific)
            )
            assert row.stats.last_updated is not None

    @pytest.mark.asyncio
    async def test_denormalized_references(self, service, catalog, sales_scope):
        domain, area = sales_scope
        user = by_name(await service.query_object_lake())["User"]

        assert user.domain.name == domain.name
        assert user.data_area.name == area.name
        assert user.base_model.id == catalog.family.conceptual.id
        assert user.tags == ["entity", "Sales", "Orders"]
        assert user.source_system is None

    @pytest.mark.asyncio
    async def test_attribute_overrides_keyed_by_model(self, service, catalog):
        user = by_name(await service.query_object_lake())["User"]
        email = next(a for a in user.attributes if a.name == "email")

        assert set(email.metadata_by_model) == {m.id for m in catalog.family.models}
        assert email.metadata_by_model[catalog.family.physical.id].physical_type == "varchar(255)"

    @pytest.mark.asyncio
    async def test_instances_carry_attributes_and_properties(self, service, catalog):
        logical = catalog.family.logical
        instances = await service.list_model_objects(logical.id)
        instance = next(mo for mo in instances if mo.object_id == catalog.user.id)
        await service.set_property("model_object", instance.id, logical.id, "color", "#ff0000")
        await service.set_property("object", catalog.user.id, logical.id, "owner", "crm")

        user = by_name(await service.query_object_lake(ObjectLakeFilters(layer="logical")))["User"]

        assert [p.property_name for p in user.properties] == ["owner"]
        assert len(user.model_instances) == 1
        view = user.model_instances[0]
        assert view.model.layer == "logical"
        assert [p.property_value for p in view.properties] == ["#ff0000"]
        assert len(view.attributes) == 2
        assert len(view.relationships) == 1

    @pytest.mark.asyncio
    async def test_empty_store(self, service):
        response = await service.query_object_lake()
        assert response.objects == []
        assert response.totals.object_count == 0
        assert response.meta.has_more is False
        assert response.meta.generated_at.utcoffset() == timedelta(0)


class TestObjectLakeFilters:
    """Tests for filter semantics."""

    @pytest.mark.asyncio
    async def test_layer_filter_keeps_only_that_layer(self, service, catalog):
        response = await service.query_object_lake(ObjectLakeFilters(layer="Logical"))

        assert response.objects
        for row in response.objects:
            assert row.model_instances
            assert {mi.model.layer for mi in row.model_instances} == {"logical"}

    @pytest.mark.asyncio
    async def test_hidden_logical_instance(self, service, catalog):
        """A hidden instance drops its object from the layer view only."""
        await hide_instance(service, catalog.family.logical.id, catalog.product.id)

        logical = await service.query_object_lake(ObjectLakeFilters(layer="logical"))
        assert set(by_name(logical)) == {"User"}

        unfiltered = by_name(await service.query_object_lake())
        assert "Product" in unfiltered
        assert unfiltered["Product"].stats.model_instance_count == 2

        with_hidden = by_name(await service.query_object_lake(ObjectLakeFilters(include_hidden=True)))
        assert with_hidden["Product"].stats.model_instance_count == 3

    @pytest.mark.asyncio
    async def test_search_matches_name_or_description(self, service, catalog):
        assert set(by_name(await service.query_object_lake(ObjectLakeFilters(search="USER")))) == {"User"}
        assert set(by_name(await service.query_object_lake(ObjectLakeFilters(search="sellable")))) == {"Product"}
        assert (await service.query_object_lake(ObjectLakeFilters(search="100%"))).objects == []

    @pytest.mark.asyncio
    async def test_has_attributes(self, service, catalog):
        await service.create_object(ObjectCreate(name="Placeholder"))

        empty = await service.query_object_lake(ObjectLakeFilters(has_attributes=False))
        assert set(by_name(empty)) == {"Placeholder"}

        filled = await service.query_object_lake(ObjectLakeFilters(has_attributes=True))
        assert set(by_name(filled)) == {"User", "Product"}

    @pytest.mark.asyncio
    async def test_relationship_type(self, service, catalog):
        one_to_many = await service.query_object_lake(ObjectLakeFilters(relationship_type="1:n"))
        assert set(by_name(one_to_many)) == {"User", "Product"}

        many_to_many = await service.query_object_lake(ObjectLakeFilters(relationship_type="N:M"))
        assert many_to_many.objects == []

    @pytest.mark.asyncio
    async def test_system_filter(self, service, catalog):
        system = await service.create_system(SystemCreate(name="Warehouse", category="Storage", system_type="snowflake"))
        await service.create_object(ObjectCreate(name="Shipment", target_system_id=system.id))

        response = await service.query_object_lake(ObjectLakeFilters(system_id=system.id))
        assert set(by_name(response)) == {"Shipment"}
        assert response.objects[0].target_system.name == "Warehouse"

    @pytest.mark.asyncio
    async def test_model_filter(self, service, catalog):
        await service.create_object(ObjectCreate(name="Loose"))

        response = await service.query_object_lake(ObjectLakeFilters(model_id=catalog.family.physical.id))
        assert set(by_name(response)) == {"User", "Product"}

    @pytest.mark.asyncio
    async def test_domain_and_object_type(self, service, catalog, sales_scope):
        domain, _ = sales_scope
        await service.create_object(ObjectCreate(name="Audit", object_type="view"))

        by_domain = await service.query_object_lake(ObjectLakeFilters(domain_id=domain.id))
        assert set(by_name(by_domain)) == {"User", "Product"}

        views = await service.query_object_lake(ObjectLakeFilters(object_type="VIEW"))
        assert set(by_name(views)) == {"Audit"}

    @pytest.mark.asyncio
    async def test_applied_filters_are_echoed(self, service, catalog):
        response = await service.query_object_lake(ObjectLakeFilters(layer="logical", sort_order="desc"))

        assert response.applied_filters["layer"] == "logical"
        assert response.applied_filters["sort_order"] == "desc"
        assert response.applied_filters["page_size"] == 50


class TestObjectLakeOrdering:
    """Tests for sorting and pagination."""

    @pytest.mark.asyncio
    async def test_sort_by_name(self, service, catalog):
        ascending = await service.query_object_lake(ObjectLakeFilters(sort_by="name"))
        descending = await service.query_object_lake(ObjectLakeFilters(sort_by="name", sort_order="DESC"))

        assert [r.name for r in ascending.objects] == ["Product", "User"]
        assert [r.name for r in descending.objects] == ["User", "Product"]

    @pytest.mark.asyncio
    async def test_ties_broken_by_id(self, service, catalog):
        """Equal attribute counts keep id order in both directions."""
        for order in ("asc", "desc"):
            response = await service.query_object_lake(ObjectLakeFilters(sort_by="attributeCount", sort_order=order))
            assert [r.id for r in response.objects] == [catalog.user.id, catalog.product.id]

    @pytest.mark.asyncio
    async def test_sort_by_attribute_count(self, service, catalog):
        await service.create_attribute(AttributeCreate(name="sku", object_id=catalog.product.id, conceptual_type="Code"))

        response = await service.query_object_lake(ObjectLakeFilters(sort_by="attribute_count", sort_order="desc"))
        assert [r.name for r in response.objects] == ["Product", "User"]

    @pytest.mark.asyncio
    async def test_unknown_sort_key_falls_back_to_name(self, service, catalog):
        response = await service.query_object_lake(ObjectLakeFilters(sort_by="popularity"))
        assert [r.name for r in response.objects] == ["Product", "User"]

    @pytest.mark.asyncio
    async def test_pagination(self, service, catalog):
        first = await service.query_object_lake(ObjectLakeFilters(page=1, page_size=1))
        second = await service.query_object_lake(ObjectLakeFilters(page=2, page_size=1))

        assert [r.name for r in first.objects] == ["Product"]
        assert first.meta.has_more is True
        assert [r.name for r in second.objects] == ["User"]
        assert second.meta.has_more is False
        assert first.totals.object_count == second.totals.object_count == 2
        assert first.totals.model_instance_count == 6

    @pytest.mark.asyncio
    async def test_page_bounds_are_clamped(self, service, catalog):
        response = await service.query_object_lake(ObjectLakeFilters(page=0, page_size=5000))
        assert response.meta.page == 1
        assert response.meta.page_size == 200
        assert len(response.objects) == 2
