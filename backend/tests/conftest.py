"""
Shared fixtures: an in-memory SQLite store and a ModelingService bound to it.
"""

from dataclasses import dataclass

import pytest

from openmodel.core.config import DatabaseSettings, Settings
from openmodel.domain.schemas import (
    AttributeCreate,
    DataAreaCreate,
    DomainCreate,
    FamilySeed,
    ObjectCreate,
    RelationshipCreate,
    SystemCreate,
)
from openmodel.infrastructure.database import (
    create_engine_from_settings,
    create_session_maker,
    init_models,
)
from openmodel.services.bus import EventBus
from openmodel.services.modeling_service import ModelingService

MEMORY_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def settings():
    return Settings(database=DatabaseSettings(url=MEMORY_URL))


@pytest.fixture
async def engine(settings):
    engine = create_engine_from_settings(settings.database)
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def service(session_maker, settings, event_bus):
    return ModelingService(session_maker, settings=settings, event_bus=event_bus)


@pytest.fixture
async def data_lake(service):
    return await service.create_system(
        SystemCreate(name="Data Lake", category="Storage", system_type="adls")
    )


@pytest.fixture
async def sales_scope(service):
    domain = await service.create_domain(DomainCreate(name="Sales"))
    area = await service.create_data_area(DataAreaCreate(name="Orders", domain_id=domain.id))
    return domain, area


@dataclass
class Catalog:
    """User/Product catalog instantiated into one model family."""
    family: object
    user: object
    product: object
    user_id: object
    email: object
    product_id: object
    product_owner: object
    relationship: object


@pytest.fixture
async def catalog(service, sales_scope):
    domain, area = sales_scope
    user = await service.create_object(
        ObjectCreate(name="User", object_type="entity", domain_id=domain.id, data_area_id=area.id)
    )
    product = await service.create_object(
        ObjectCreate(
            name="Product",
            description="Sellable item",
            object_type="entity",
            domain_id=domain.id,
            data_area_id=area.id,
        )
    )
    user_id = await service.create_attribute(
        AttributeCreate(name="user_id", object_id=user.id, conceptual_type="Identifier",
                        nullable=False, is_primary_key=True)
    )
    email = await service.create_attribute(
        AttributeCreate(name="email", object_id=user.id, conceptual_type="Text", order_index=1)
    )
    product_id = await service.create_attribute(
        AttributeCreate(name="product_id", object_id=product.id, conceptual_type="Identifier",
                        nullable=False, is_primary_key=True)
    )
    product_owner = await service.create_attribute(
        AttributeCreate(name="user_id", object_id=product.id, conceptual_type="Reference",
                        is_foreign_key=True, order_index=1)
    )
    relationship = await service.create_relationship(
        RelationshipCreate(
            source_id=user.id,
            target_id=product.id,
            relationship_type="1:N",
            source_attribute_id=user_id.id,
            target_attribute_id=product_owner.id,
        )
    )
    family = await service.create_family(
        FamilySeed(
            name="Commerce",
            domain_id=domain.id,
            data_area_id=area.id,
            selected_object_ids=[user.id, product.id],
        )
    )
    return Catalog(
        family=family,
        user=user,
        product=product,
        user_id=user_id,
        email=email,
        product_id=product_id,
        product_owner=product_owner,
        relationship=relationship,
    )
