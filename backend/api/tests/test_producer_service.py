from unittest.mock import AsyncMock

import pytest
from bson import ObjectId
from fastapi import HTTPException
from pymongo.errors import DuplicateKeyError

from backend.api.schemas import ProducerCreate, ProducerUpdate
from backend.api.services.producer_service import ProducerService, duplicate_detail, producer_search_filter
from backend.mongo.db import FARMS_COLLECTION, PRODUCERS_COLLECTION
from backend.api.tests.mocks import make_cursor


@pytest.fixture
def cache():
    return AsyncMock()


@pytest.fixture
def service(cache):
    return ProducerService(cache=cache)


def test_search_filter_matches_name_and_document_digits():
    assert producer_search_filter("") == {}
    query = producer_search_filter("123.456")
    assert {"cpf_cnpj": {"$regex": "123456"}} in query["$or"]
    query = producer_search_filter("Silva")
    assert query == {"$or": [{"name": {"$regex": "Silva", "$options": "i"}}]}


def test_duplicate_detail():
    assert duplicate_detail(DuplicateKeyError("E11000", 11000, {"keyPattern": {"email": 1}})) == "Email já está cadastrado"
    assert duplicate_detail(DuplicateKeyError("E11000", 11000, {"keyPattern": {"cpf_cnpj": 1}})) == "CPF/CNPJ já está cadastrado"
    assert duplicate_detail(DuplicateKeyError("E11000", 11000)) == "CPF/CNPJ já está cadastrado"


@pytest.mark.asyncio
async def test_create_producer_stores_canonical_document(service, collections, cache):
    producers = collections[PRODUCERS_COLLECTION]
    payload = ProducerCreate(cpf_cnpj="123.456.789-09", name="João Silva")
    result = await service.create_producer(payload)

    stored = producers.insert_one.await_args.args[0]
    assert stored["cpf_cnpj"] == "12345678909"
    assert "email" not in stored
    assert result["cpf_cnpj"] == "12345678909"
    assert result["cpf_cnpj_formatted"] == "123.456.789-09"
    assert result["document_type"] == "CPF"
    assert "id" in result
    cache.invalidate.assert_awaited_once()


@pytest.mark.asyncio
async def test_create_producer_duplicate_returns_409(service, collections, cache):
    collections[PRODUCERS_COLLECTION].insert_one.side_effect = DuplicateKeyError(
        "E11000 duplicate key", 11000, {"keyPattern": {"cpf_cnpj": 1}}
    )
    with pytest.raises(HTTPException) as exc:
        await service.create_producer(ProducerCreate(cpf_cnpj="12345678909", name="João Silva"))
    assert exc.value.status_code == 409
    assert exc.value.detail == "CPF/CNPJ já está cadastrado"
    cache.invalidate.assert_not_awaited()


@pytest.mark.asyncio
async def test_list_producers_adds_farm_count(service, collections, producer_doc):
    other = {"_id": ObjectId(), "cpf_cnpj": "12345678000195", "name": "Silva Agro Ltda"}
    producers = collections[PRODUCERS_COLLECTION]
    producers.find.return_value = make_cursor([producer_doc, other])
    producers.count_documents.return_value = 12
    collections[FARMS_COLLECTION].aggregate.return_value = make_cursor([{"_id": str(producer_doc["_id"]), "count": 2}])

    result = await service.list_producers(page=1, limit=2, search="João")

    assert [p["farm_count"] for p in result["items"]] == [2, 0]
    assert result["items"][1]["cpf_cnpj_formatted"] == "12.345.678/0001-95"
    assert result["pagination"] == {"page": 1, "limit": 2, "total": 12, "pages": 6}
    query = producers.find.call_args.args[0]
    assert "$or" in query


@pytest.mark.asyncio
async def test_get_producer_includes_farms(service, collections, producer_doc, farm_doc):
    collections[PRODUCERS_COLLECTION].find_one.return_value = producer_doc
    collections[FARMS_COLLECTION].find.return_value = make_cursor([farm_doc])

    result = await service.get_producer(str(producer_doc["_id"]))

    assert result["id"] == str(producer_doc["_id"])
    assert result["farms"][0]["id"] == str(farm_doc["_id"])
    assert result["farms"][0]["crops"][0]["name"] == "Soja"


@pytest.mark.asyncio
async def test_get_producer_not_found(service, collections):
    with pytest.raises(HTTPException) as exc:
        await service.get_producer(str(ObjectId()))
    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_get_producer_invalid_id(service, collections):
    with pytest.raises(HTTPException) as exc:
        await service.get_producer("123")
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_list_producer_farms_requires_producer(service, collections):
    with pytest.raises(HTTPException) as exc:
        await service.list_producer_farms(str(ObjectId()))
    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_update_producer(service, collections, producer_doc, cache):
    updated = {**producer_doc, "name": "João da Silva"}
    producers = collections[PRODUCERS_COLLECTION]
    producers.find_one_and_update.return_value = updated

    result = await service.update_producer(str(producer_doc["_id"]), ProducerUpdate(name="João da Silva"))

    assert result["name"] == "João da Silva"
    changes = producers.find_one_and_update.await_args.args[1]["$set"]
    assert changes["name"] == "João da Silva"
    assert "updated_at" in changes
    assert "cpf_cnpj" not in changes
    cache.invalidate.assert_awaited_once()


@pytest.mark.asyncio
async def test_update_producer_without_fields(service, collections):
    with pytest.raises(HTTPException) as exc:
        await service.update_producer(str(ObjectId()), ProducerUpdate())
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_update_producer_duplicate_document(service, collections):
    collections[PRODUCERS_COLLECTION].find_one_and_update.side_effect = DuplicateKeyError(
        "E11000", 11000, {"keyPattern": {"cpf_cnpj": 1}}
    )
    with pytest.raises(HTTPException) as exc:
        await service.update_producer(str(ObjectId()), ProducerUpdate(cpf_cnpj="98765432100"))
    assert exc.value.status_code == 409


@pytest.mark.asyncio
async def test_update_producer_not_found(service, collections):
    with pytest.raises(HTTPException) as exc:
        await service.update_producer(str(ObjectId()), ProducerUpdate(name="Maria"))
    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_delete_producer_with_farms_is_blocked(service, collections, cache):
    collections[FARMS_COLLECTION].count_documents.return_value = 2
    with pytest.raises(HTTPException) as exc:
        await service.delete_producer(str(ObjectId()))
    assert exc.value.status_code == 409
    collections[PRODUCERS_COLLECTION].delete_one.assert_not_awaited()
    cache.invalidate.assert_not_awaited()


@pytest.mark.asyncio
async def test_delete_producer(service, collections, cache):
    producer_id = ObjectId()
    await service.delete_producer(str(producer_id))
    collections[PRODUCERS_COLLECTION].delete_one.assert_awaited_once_with({"_id": producer_id})
    cache.invalidate.assert_awaited_once()


@pytest.mark.asyncio
async def test_delete_producer_not_found(service, collections):
    collections[PRODUCERS_COLLECTION].delete_one.return_value.deleted_count = 0
    with pytest.raises(HTTPException) as exc:
        await service.delete_producer(str(ObjectId()))
    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_document_available(service, collections):
    result = await service.check_document_availability("123.456.789-09")
    assert result == {
        "available": True,
        "message": "CPF/CNPJ disponível",
        "cpf_cnpj": "12345678909",
        "formatted": "123.456.789-09",
        "document_type": "CPF",
    }
    collections[PRODUCERS_COLLECTION].find_one.assert_awaited_once_with({"cpf_cnpj": "12345678909"}, {"_id": 1})


@pytest.mark.asyncio
async def test_document_in_use(service, collections, producer_doc):
    collections[PRODUCERS_COLLECTION].find_one.return_value = {"_id": producer_doc["_id"]}
    result = await service.check_document_availability("12.345.678/0001-95")
    assert result["available"] is False
    assert result["message"] == "CPF/CNPJ já está em uso"
    assert result["cpf_cnpj"] == "12345678000195"
    assert result["document_type"] == "CNPJ"


@pytest.mark.asyncio
async def test_document_availability_excludes_own_producer(service, collections):
    producer_id = ObjectId()
    result = await service.check_document_availability("12345678909", exclude_id=str(producer_id))
    assert result["available"] is True
    query = collections[PRODUCERS_COLLECTION].find_one.await_args.args[0]
    assert query == {"cpf_cnpj": "12345678909", "_id": {"$ne": producer_id}}


@pytest.mark.asyncio
@pytest.mark.parametrize("value", ["12345678900", "11111111111", "123", ""])
async def test_document_availability_rejects_invalid_document(service, collections, value):
    with pytest.raises(HTTPException) as exc:
        await service.check_document_availability(value)
    assert exc.value.status_code == 400
    assert exc.value.detail == "CPF/CNPJ inválido"
    collections[PRODUCERS_COLLECTION].find_one.assert_not_awaited()


@pytest.mark.asyncio
async def test_document_availability_rejects_invalid_exclude_id(service, collections):
    with pytest.raises(HTTPException) as exc:
        await service.check_document_availability("12345678909", exclude_id="abc")
    assert exc.value.status_code == 400
