from typing import Any, Dict
from unittest.mock import MagicMock

import pytest
from bson import ObjectId

from backend.api.tests.mocks import make_collection
from backend.mongo.db import FARMS_COLLECTION, PRODUCERS_COLLECTION

SERVICE_MODULES = (
    "backend.api.services.producer_service",
    "backend.api.services.farm_service",
    "backend.api.services.dashboard_service",
    "backend.scripts.seed_data",
)


@pytest.fixture
def collections(monkeypatch) -> Dict[str, MagicMock]:
    """Substitui get_collection dos serviços por coleções falsas."""
    colls = {PRODUCERS_COLLECTION: make_collection(), FARMS_COLLECTION: make_collection()}
    for module in SERVICE_MODULES:
        monkeypatch.setattr(f"{module}.get_collection", lambda name: colls[name])
    return colls


@pytest.fixture
def producer_doc() -> Dict[str, Any]:
    return {
        "_id": ObjectId(),
        "cpf_cnpj": "12345678909",
        "name": "João Silva",
        "email": "joao@example.com",
    }


@pytest.fixture
def farm_doc(producer_doc) -> Dict[str, Any]:
    return {
        "_id": ObjectId(),
        "producer_id": str(producer_doc["_id"]),
        "name": "Fazenda Santa Maria",
        "city": "Ribeirão Preto",
        "state": "SP",
        "total_area": 100.0,
        "agricultural_area": 60.0,
        "vegetation_area": 30.0,
        "crops": [{"_id": ObjectId(), "name": "Soja", "harvest": "2023"}],
    }
