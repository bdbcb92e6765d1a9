import random

import pytest

from backend.api.schemas import find_duplicate_crop
from backend.mongo.db import FARMS_COLLECTION, PRODUCERS_COLLECTION
from backend.scripts import documents
from backend.scripts.seed_data import build_seed, seed
from backend.utils.document_utils import DocumentUtils


def test_documents_validate(capsys):
    exit_code = documents.main(["validate", "123.456.789-09", "12345678000195"])
    lines = capsys.readouterr().out.strip().splitlines()
    assert exit_code == 0
    assert lines[0].split("\t") == ["123.456.789-09", "12345678909", "CPF", "válido", "123.456.789-09"]
    assert lines[1].split("\t")[2:4] == ["CNPJ", "válido"]


def test_documents_validate_fails_on_invalid(capsys):
    exit_code = documents.main(["validate", "12345678909", "12345678900"])
    lines = capsys.readouterr().out.strip().splitlines()
    assert exit_code == 1
    assert lines[1].split("\t")[3] == "inválido"


def test_documents_format(capsys):
    assert documents.main(["format", "12345678000195", "1234"]) == 0
    assert capsys.readouterr().out.splitlines() == ["12.345.678/0001-95", "123.4"]


def test_documents_generate(capsys):
    assert documents.main(["generate", "cnpj", "-n", "3", "--formatted"]) == 0
    generated = capsys.readouterr().out.splitlines()
    assert len(generated) == 3
    assert all(DocumentUtils.validate(value) for value in generated)
    assert all("/" in value for value in generated)


def test_documents_requires_command():
    with pytest.raises(SystemExit):
        documents.main([])


def test_build_seed_produces_consistent_data():
    data = build_seed(20, 3, random.Random(7))
    assert len(data) == 20
    documents_seen = [producer["cpf_cnpj"] for producer, _ in data]
    assert len(set(documents_seen)) == 20
    for producer, farms in data:
        assert DocumentUtils.validate(producer["cpf_cnpj"])
        assert 1 <= len(farms) <= 3
        for farm in farms:
            assert farm["agricultural_area"] + farm["vegetation_area"] <= farm["total_area"]
            assert find_duplicate_crop(farm["crops"]) is None


def test_build_seed_without_farms():
    data = build_seed(3, 0, random.Random(1))
    assert all(farms == [] for _, farms in data)


@pytest.mark.asyncio
async def test_seed_links_farms_to_producers(collections):
    inserted = await seed(4, 2, drop=True, rng=random.Random(3))

    producers = collections[PRODUCERS_COLLECTION]
    farms = collections[FARMS_COLLECTION]
    producers.delete_many.assert_awaited_once_with({})
    farms.delete_many.assert_awaited_once_with({})
    assert inserted["producers"] == 4
    assert producers.insert_one.await_count == 4
    inserted_farms = [farm for call in farms.insert_many.await_args_list for farm in call.args[0]]
    assert inserted["farms"] == len(inserted_farms)
    producer_id = str(producers.insert_one.return_value.inserted_id)
    assert all(farm["producer_id"] == producer_id for farm in inserted_farms)
