"""
Tests for the event bus, settings, error translation and template loading.
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from openmodel.core.config import DatabaseSettings, Settings
from openmodel.core.exceptions import (
    ConfigurationError,
    NotFoundError,
    TransactionFailedError,
    ValidationFailedError,
    store_errors,
)
from openmodel.domain.models.enums import EventAction
from openmodel.domain.schemas import DomainCreate, ObjectCreate
from openmodel.metadata import MetadataLoader, TargetSystemTemplateRegistry
from openmodel.services.bus import DomainEvent, EventBus
from openmodel.storage.orm import DataDomain


class TestEventBus:
    """Tests for in-process delivery."""

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_delivery(self):
        bus = EventBus()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        async def recorder(event):
            received.append(event.topic)

        bus.subscribe(broken)
        bus.subscribe(recorder, "object")

        delivered = await bus.publish(DomainEvent("object", 1, EventAction.CREATED))

        assert delivered == 1
        assert received == ["object.created"]

    @pytest.mark.asyncio
    async def test_kind_filter_and_unsubscribe(self):
        bus = EventBus()
        received = []
        bus.subscribe(received.append, "model")

        await bus.publish(DomainEvent("object", 1, EventAction.CREATED))
        await bus.publish(DomainEvent("model", 2, EventAction.UPDATED))
        bus.unsubscribe(received.append, "model")
        await bus.publish(DomainEvent("model", 3, EventAction.DELETED))

        assert [e.entity_id for e in received] == [2]

    def test_events_are_stamped_in_utc(self):
        event = DomainEvent("object", 1, EventAction.CREATED)
        assert event.occurred_at.utcoffset() == timedelta(0)

    @pytest.mark.asyncio
    async def test_service_publishes_after_commit(self, service, event_bus, session_maker):
        """Handlers observe the committed row from a fresh session."""
        seen = []

        async def check_committed(event):
            async with session_maker() as session:
                seen.append(await session.get(DataDomain, event.entity_id))

        event_bus.subscribe(check_committed, "domain")
        domain = await service.create_domain(DomainCreate(name="Sales"))

        assert len(seen) == 1
        assert seen[0].id == domain.id
        assert seen[0].created_at.tzinfo is None

    @pytest.mark.asyncio
    async def test_failed_operation_publishes_nothing(self, service, event_bus):
        received = []
        event_bus.subscribe(received.append)

        with pytest.raises(NotFoundError):
            await service.create_object(ObjectCreate(name="Order", model_id=404))

        assert received == []

    @pytest.mark.asyncio
    async def test_family_events(self, service, event_bus, catalog):
        received = []
        event_bus.subscribe(received.append, "attribute")

        await service.delete_attribute(catalog.email.id)

        assert [(e.entity_id, e.action) for e in received] == [(catalog.email.id, EventAction.DELETED)]


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        settings = Settings()
        assert settings.object_lake.default_page_size == 50
        assert settings.object_lake.max_page_size == 200
        assert settings.database.url.startswith("postgresql+asyncpg://")

    def test_nested_environment_override(self, monkeypatch):
        monkeypatch.setenv("OPENMODEL_OBJECT_LAKE__DEFAULT_PAGE_SIZE", "25")
        monkeypatch.setenv("OPENMODEL_DATABASE__URL", "postgresql://u:p@db:5432/models")

        settings = Settings()

        assert settings.object_lake.default_page_size == 25
        assert settings.database.url == "postgresql+asyncpg://u:p@db:5432/models"

    def test_sqlite_url_uses_async_driver(self):
        assert DatabaseSettings(url="sqlite:///models.db").url == "sqlite+aiosqlite:///models.db"


class TestErrors:
    """Tests for error shapes and store error translation."""

    def test_to_dict(self):
        error = ValidationFailedError("Name must not be empty", field="name", value="")
        data = error.to_dict()

        assert data["error_type"] == "ValidationFailedError"
        assert data["category"] == "validation"
        assert data["details"] == {"field": "name", "value": ""}
        assert data["recoverable"] is False

    def test_not_found_details(self):
        error = NotFoundError("DataModel", 7)
        assert str(error) == "DataModel not found: 7"
        assert error.details == {"entity": "DataModel", "identifier": "7"}

    @pytest.mark.asyncio
    async def test_store_failure_becomes_retryable(self):
        with pytest.raises(TransactionFailedError) as info:
            async with store_errors("create_family"):
                raise OperationalError("INSERT", {}, Exception("database is locked"))

        assert info.value.retryable is True
        assert info.value.details["operation"] == "create_family"
        assert info.value.details["original_type"] == "OperationalError"
        assert isinstance(info.value.__cause__, OperationalError)

    @pytest.mark.asyncio
    async def test_modeling_errors_pass_through(self):
        with pytest.raises(NotFoundError):
            async with store_errors("get_model"):
                raise NotFoundError("DataModel", 1)


class TestMetadataLoader:
    """Tests for target system template loading."""

    def test_bundled_templates(self):
        assert MetadataLoader().load_target_systems() == 5

        template = TargetSystemTemplateRegistry.get("  DATA LAKE ")
        assert template is not None
        assert len(template.objects) >= 6
        assert TargetSystemTemplateRegistry.exists("Reporting System")
        assert TargetSystemTemplateRegistry.get(None) is None

    def test_invalid_yaml(self, tmp_path):
        (tmp_path / "target_systems.yaml").write_text("templates: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            MetadataLoader(tmp_path).load_target_systems()

    def test_missing_required_key(self, tmp_path):
        (tmp_path / "target_systems.yaml").write_text(
            "templates:\n  - name: Broken\n    objects:\n      - name: Orphan\n",
            encoding="utf-8",
        )
        with pytest.raises(ConfigurationError):
            MetadataLoader(tmp_path).load_target_systems()
        assert not TargetSystemTemplateRegistry.exists("Broken")

