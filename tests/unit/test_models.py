"""Unit tests for mapper configuration shared by every service."""

import pytest
from libs.db.base import Base
from services.payments_service import models as _payment_models  # noqa: F401
from services.store_service import models as _store_models  # noqa: F401
from services.wallet_service import models as _wallet_models  # noqa: F401


@pytest.mark.unit
def test_relationships_use_supported_loaders():
    loaders = {
        f"{mapper.class_.__name__}.{rel.key}": rel.lazy
        for mapper in Base.registry.mappers
        for rel in mapper.relationships
    }

    assert loaders["CheckoutSession.items"] == "selectin"
    assert loaders["Order.items"] == "selectin"
    assert "noload" not in loaders.values()
