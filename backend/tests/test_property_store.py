"""
Tests for the polymorphic property store.
"""

import pytest

from openmodel.core.exceptions import NotFoundError, TransactionFailedError, ValidationFailedError
from openmodel.domain.models.enums import PropertyEntityType, PropertyType
from openmodel.services.storage.repository import PropertyRepository


class TestSetProperty:
    """Tests for set_property upserts."""

    @pytest.mark.asyncio
    async def test_round_trip(self, service, catalog):
        """Name, value and type come back exactly as written."""
        model_id = catalog.family.conceptual.id
        written = await service.set_property(
            "object", catalog.user.id, model_id, "steward", {"team": "crm", "oncall": ["ana", "li"]},
            property_type="json",
        )

        props = await service.get_properties("object", catalog.user.id)

        assert len(props) == 1
        assert props[0].id == written.id
        assert props[0].property_name == "steward"
        assert props[0].property_value == {"team": "crm", "oncall": ["ana", "li"]}
        assert props[0].property_type == "json"
        assert props[0].layer is None

    @pytest.mark.asyncio
    async def test_same_key_replaces_value(self, service, catalog):
        model_id = catalog.family.logical.id
        first = await service.set_property("attribute", catalog.email.id, model_id, "pii", True, "boolean")
        second = await service.set_property("attribute", catalog.email.id, model_id, "pii", False, "boolean")

        assert second.id == first.id
        props = await service.get_properties(PropertyEntityType.ATTRIBUTE, catalog.email.id)
        assert [p.property_value for p in props] == [False]

    @pytest.mark.asyncio
    async def test_null_layer_is_a_distinct_key(self, service, catalog):
        """A model-wide value and a layer value coexist."""
        model_id = catalog.family.logical.id
        model_wide = await service.set_property("object", catalog.product.id, model_id, "retention", 30, "number")
        layered = await service.set_property(
            "object", catalog.product.id, model_id, "retention", 90, "number", layer="logical"
        )

        assert model_wide.id != layered.id
        props = await service.get_properties("object", catalog.product.id)
        assert [(p.layer, p.property_value) for p in props] == [(None, 30), ("logical", 90)]

    @pytest.mark.asyncio
    async def test_tags_are_case_insensitive(self, service, catalog):
        prop = await service.set_property(
            "Model_Object", 1, catalog.family.physical.id, "partitioned", True, PropertyType.BOOLEAN, layer="PHYSICAL"
        )
        assert prop.entity_type == "model_object"
        assert prop.layer == "physical"

    @pytest.mark.asyncio
    async def test_entity_id_is_not_checked(self, service, catalog):
        prop = await service.set_property("model", 12345, catalog.family.conceptual.id, "owner", "data-team")
        assert prop.entity_id == 12345
        assert prop.property_type == "string"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"entity_type": "table"},
            {"property_type": "date"},
            {"layer": "raw"},
            {"property_name": "   "},
            {"property_name": " owner"},
            {"property_name": "owner\t"},
        ],
    )
    async def test_invalid_input_is_rejected(self, service, catalog, kwargs):
        arguments = {
            "entity_type": "object",
            "entity_id": catalog.user.id,
            "model_id": catalog.family.conceptual.id,
            "property_name": "owner",
            "value": "x",
            "property_type": "string",
            **kwargs,
        }
        with pytest.raises(ValidationFailedError):
            await service.set_property(**arguments)
        assert await service.get_properties("object", catalog.user.id) == []

    @pytest.mark.asyncio
    async def test_unknown_model(self, service, catalog):
        with pytest.raises(NotFoundError):
            await service.set_property("object", catalog.user.id, 404, "owner", "x")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("layer", [None, "logical"])
    async def test_duplicate_key_is_rejected_by_the_store(self, service, catalog, monkeypatch, layer):
        """Two writers that both miss the existing row cannot both insert."""
        model_id = catalog.family.logical.id
        await service.set_property("object", catalog.user.id, model_id, "owner", "crm", layer=layer)

        async def stale_lookup(repository, *args):
            return None

        monkeypatch.setattr(PropertyRepository, "find_by_key", stale_lookup)
        with pytest.raises(TransactionFailedError) as info:
            await service.set_property("object", catalog.user.id, model_id, "owner", "billing", layer=layer)

        assert info.value.retryable is True
        monkeypatch.undo()
        props = await service.get_properties("object", catalog.user.id)
        assert [p.property_value for p in props] == ["crm"]


class TestDeleteProperty:
    """Tests for property removal."""

    @pytest.mark.asyncio
    async def test_delete(self, service, catalog):
        prop = await service.set_property("object", catalog.user.id, catalog.family.conceptual.id, "owner", "x")
        await service.delete_property(prop.id)
        assert await service.get_properties("object", catalog.user.id) == []

    @pytest.mark.asyncio
    async def test_delete_unknown(self, service):
        with pytest.raises(NotFoundError):
            await service.delete_property(404)

    @pytest.mark.asyncio
    async def test_object_deletion_removes_its_properties(self, service, catalog):
        model_id = catalog.family.conceptual.id
        await service.set_property("object", catalog.user.id, model_id, "owner", "x")
        await service.set_property("attribute", catalog.email.id, model_id, "pii", True, "boolean")

        await service.delete_object(catalog.user.id)

        assert await service.get_properties("object", catalog.user.id) == []
        assert await service.get_properties("attribute", catalog.email.id) == []
