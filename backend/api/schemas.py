"""
Schemas de entrada da API (pydantic). Todo CPF/CNPJ é validado e convertido
para a forma canônica aqui, antes de chegar aos serviços.
"""
from datetime import datetime
from typing import Annotated, List, Optional
import re

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator

from backend.utils.document_utils import DocumentUtils

BRAZILIAN_STATES = [
    "AC", "AL", "AP", "AM", "BA", "CE", "DF", "ES", "GO",
    "MA", "MT", "MS", "MG", "PA", "PB", "PR", "PE", "PI",
    "RJ", "RN", "RS", "RO", "RR", "SC", "SP", "SE", "TO",
]

CROP_NAMES = [
    "Soja", "Milho", "Algodão", "Café", "Cana de Açúcar",
    "Arroz", "Feijão", "Trigo", "Sorgo", "Outros",
]

MIN_HARVEST_YEAR = 2000
HARVEST_YEARS_AHEAD = 5

EMAIL_PATTERN = re.compile(r"^[\w-]+(\.[\w-]+)*@([\w-]+\.)+[a-zA-Z]{2,7}$")
OBJECT_ID_PATTERN = r"^[0-9a-fA-F]{24}$"


def canonical_document(value: str) -> str:
    digits = DocumentUtils.clean(value)
    if not DocumentUtils.validate(digits):
        raise ValueError("CPF/CNPJ inválido")
    return digits


def _state(value: str) -> str:
    value = value.upper()
    if value not in BRAZILIAN_STATES:
        raise ValueError("Estado deve ser uma sigla válida brasileira")
    return value


def _email(value: str) -> str:
    value = value.lower()
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Email inválido")
    return value


def _crop_name(value: str) -> str:
    if value not in CROP_NAMES:
        raise ValueError(f"Cultura deve ser uma das opções: {', '.join(CROP_NAMES)}")
    return value


def _harvest(value: str) -> str:
    if not re.fullmatch(r"\d{4}", value):
        raise ValueError("Safra deve estar no formato AAAA")
    year = int(value)
    if year < MIN_HARVEST_YEAR or year > datetime.utcnow().year + HARVEST_YEARS_AHEAD:
        raise ValueError("Safra deve ser um ano válido entre 2000 e 5 anos no futuro")
    return value


DocumentId = Annotated[str, AfterValidator(canonical_document)]
StateCode = Annotated[str, AfterValidator(_state)]
Email = Annotated[str, AfterValidator(_email)]
CropName = Annotated[str, AfterValidator(_crop_name)]
Harvest = Annotated[str, AfterValidator(_harvest)]
ObjectIdStr = Annotated[str, Field(pattern=OBJECT_ID_PATTERN)]


# ---------------- Produtores ----------------

class Address(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: StateCode
    zip_code: str = Field(..., min_length=1)


class ProducerCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    cpf_cnpj: DocumentId = Field(..., description="CPF (11 dígitos) ou CNPJ (14 dígitos), com ou sem máscara")
    name: str = Field(..., min_length=2, max_length=100)
    email: Optional[Email] = None
    phone: Optional[str] = None
    address: Optional[Address] = None


class ProducerUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    cpf_cnpj: Optional[DocumentId] = None
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    email: Optional[Email] = None
    phone: Optional[str] = None
    address: Optional[Address] = None


# ---------------- Culturas ----------------

class CropIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: CropName
    harvest: Harvest
    planted_area: Optional[float] = Field(None, ge=0)


def find_duplicate_crop(crops: List[dict]) -> Optional[dict]:
    """
    Retorna a primeira cultura repetida (mesmo nome e safra), se houver.
    Parâmetros:
        crops (List[dict]): culturas com chaves name e harvest
    Retorno:
        dict | None: cultura duplicada
    """
    seen = set()
    for crop in crops:
        key = (crop["name"], crop["harvest"])
        if key in seen:
            return crop
        seen.add(key)
    return None


# ---------------- Fazendas ----------------

class FarmCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    producer_id: ObjectIdStr
    name: str = Field(..., min_length=2, max_length=100)
    city: str = Field(..., min_length=2, max_length=50)
    state: StateCode
    total_area: float = Field(..., ge=0.1, le=1_000_000)
    agricultural_area: float = Field(..., ge=0)
    vegetation_area: float = Field(..., ge=0)
    crops: List[CropIn] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_areas_and_crops(self) -> "FarmCreate":
        if self.agricultural_area + self.vegetation_area > self.total_area:
            raise ValueError("A soma das áreas agricultável e de vegetação não pode exceder a área total")
        if find_duplicate_crop([c.model_dump() for c in self.crops]) is not None:
            raise ValueError("Não é possível ter a mesma cultura plantada duas vezes na mesma safra")
        return self


class FarmUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    producer_id: Optional[ObjectIdStr] = None
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    city: Optional[str] = Field(None, min_length=2, max_length=50)
    state: Optional[StateCode] = None
    total_area: Optional[float] = Field(None, ge=0.1, le=1_000_000)
    agricultural_area: Optional[float] = Field(None, ge=0)
    vegetation_area: Optional[float] = Field(None, ge=0)
