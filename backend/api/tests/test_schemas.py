from datetime import datetime

import pytest
from pydantic import ValidationError

from backend.api.schemas import CropIn, FarmCreate, FarmUpdate, ProducerCreate, ProducerUpdate, find_duplicate_crop

PRODUCER_ID = "65f1c0a2b3c4d5e6f7a8b9c0"


def farm_payload(**overrides):
    payload = {
        "producer_id": PRODUCER_ID,
        "name": "Fazenda Boa Vista",
        "city": "Sorriso",
        "state": "mt",
        "total_area": 100,
        "agricultural_area": 60,
        "vegetation_area": 40,
        "crops": [],
    }
    payload.update(overrides)
    return payload


def test_producer_document_is_stored_canonical():
    producer = ProducerCreate(cpf_cnpj="123.456.789-09", name="  João Silva  ")
    assert producer.cpf_cnpj == "12345678909"
    assert producer.name == "João Silva"

    company = ProducerCreate(cpf_cnpj="12.345.678/0001-95", name="Silva Agro Ltda")
    assert company.cpf_cnpj == "12345678000195"


@pytest.mark.parametrize("document", ["12345678900", "11111111111", "123", ""])
def test_producer_rejects_invalid_document(document):
    with pytest.raises(ValidationError) as exc:
        ProducerCreate(cpf_cnpj=document, name="João Silva")
    assert "CPF/CNPJ inválido" in str(exc.value)


def test_producer_name_length():
    with pytest.raises(ValidationError):
        ProducerCreate(cpf_cnpj="12345678909", name="J")
    with pytest.raises(ValidationError):
        ProducerCreate(cpf_cnpj="12345678909", name="J" * 101)


def test_producer_email_is_optional_and_lowercased():
    assert ProducerCreate(cpf_cnpj="12345678909", name="João").email is None
    producer = ProducerCreate(cpf_cnpj="12345678909", name="João", email="Joao@Example.COM")
    assert producer.email == "joao@example.com"
    with pytest.raises(ValidationError):
        ProducerCreate(cpf_cnpj="12345678909", name="João", email="joao@")


def test_producer_address_state():
    producer = ProducerCreate(
        cpf_cnpj="12345678909",
        name="João",
        address={"street": "Rua A", "city": "Londrina", "state": "pr", "zip_code": "86000-000"},
    )
    assert producer.address.state == "PR"
    with pytest.raises(ValidationError):
        ProducerCreate(
            cpf_cnpj="12345678909",
            name="João",
            address={"street": "Rua A", "city": "Londrina", "state": "XX", "zip_code": "86000-000"},
        )


def test_producer_update_only_carries_sent_fields():
    update = ProducerUpdate(name="Maria Souza")
    assert update.model_dump(exclude_unset=True) == {"name": "Maria Souza"}
    assert ProducerUpdate(cpf_cnpj="987.654.321-00").cpf_cnpj == "98765432100"
    with pytest.raises(ValidationError):
        ProducerUpdate(cpf_cnpj="98765432101")


def test_farm_areas_may_equal_total():
    farm = FarmCreate(**farm_payload())
    assert farm.state == "MT"
    assert farm.agricultural_area + farm.vegetation_area == farm.total_area


def test_farm_areas_cannot_exceed_total():
    with pytest.raises(ValidationError) as exc:
        FarmCreate(**farm_payload(agricultural_area=70, vegetation_area=40))
    assert "não pode exceder a área total" in str(exc.value)


@pytest.mark.parametrize("field, value", [
    ("total_area", 0),
    ("total_area", 1_000_001),
    ("agricultural_area", -1),
    ("vegetation_area", -0.5),
    ("state", "XX"),
    ("producer_id", "abc"),
    ("name", "F"),
    ("city", "S"),
])
def test_farm_field_constraints(field, value):
    with pytest.raises(ValidationError):
        FarmCreate(**farm_payload(**{field: value}))


def test_farm_rejects_duplicate_crop_in_same_harvest():
    crops = [{"name": "Soja", "harvest": "2023"}, {"name": "Soja", "harvest": "2023"}]
    with pytest.raises(ValidationError) as exc:
        FarmCreate(**farm_payload(crops=crops))
    assert "mesma cultura" in str(exc.value)


def test_farm_accepts_same_crop_in_different_harvests():
    crops = [{"name": "Soja", "harvest": "2022"}, {"name": "Soja", "harvest": "2023"}, {"name": "Milho", "harvest": "2023"}]
    assert len(FarmCreate(**farm_payload(crops=crops)).crops) == 3


@pytest.mark.parametrize("name", ["Soja", "Cana de Açúcar", "Outros"])
def test_crop_accepts_known_names(name):
    assert CropIn(name=name, harvest="2023").name == name


@pytest.mark.parametrize("payload", [
    {"name": "Mandioca", "harvest": "2023"},
    {"name": "Soja", "harvest": "23"},
    {"name": "Soja", "harvest": "1999"},
    {"name": "Soja", "harvest": str(datetime.utcnow().year + 6)},
    {"name": "Soja", "harvest": "2023", "planted_area": -1},
])
def test_crop_rejects_invalid_payload(payload):
    with pytest.raises(ValidationError):
        CropIn(**payload)


def test_crop_accepts_harvest_up_to_five_years_ahead():
    harvest = str(datetime.utcnow().year + 5)
    assert CropIn(name="Milho", harvest=harvest).harvest == harvest


def test_find_duplicate_crop():
    crops = [{"name": "Soja", "harvest": "2023"}, {"name": "Milho", "harvest": "2023"}]
    assert find_duplicate_crop(crops) is None
    assert find_duplicate_crop(crops + [{"name": "Milho", "harvest": "2023"}]) == {"name": "Milho", "harvest": "2023"}


def test_farm_update_is_partial():
    update = FarmUpdate(total_area=500)
    assert update.model_dump(exclude_unset=True) == {"total_area": 500}
    with pytest.raises(ValidationError):
        FarmUpdate(state="ZZ")
