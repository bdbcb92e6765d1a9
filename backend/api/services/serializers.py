"""
Conversão dos documentos MongoDB para o formato de resposta da API.
"""
from typing import Any, Dict, Optional

from backend.utils.document_utils import DocumentUtils
from backend.utils.mongo_utils import with_public_id

PRODUCER_NOT_FOUND_NAME = "Produtor não encontrado"


def serialize_producer(doc: Dict[str, Any]) -> Dict[str, Any]:
    result = with_public_id(doc)
    cpf_cnpj = result.get("cpf_cnpj", "")
    result["cpf_cnpj_formatted"] = DocumentUtils.format(cpf_cnpj)
    result["document_type"] = DocumentUtils.classify(DocumentUtils.clean(cpf_cnpj)).value
    return result


def serialize_crop(crop: Dict[str, Any]) -> Dict[str, Any]:
    return with_public_id(crop)


def serialize_farm(doc: Dict[str, Any], producer: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    crops = doc.get("crops") or []
    result = with_public_id({k: v for k, v in doc.items() if k != "crops"})
    result["crops"] = [serialize_crop(c) for c in crops]
    if producer is not None:
        result["producer"] = {
            "id": str(producer["_id"]),
            "name": producer.get("name"),
            "cpf_cnpj": producer.get("cpf_cnpj"),
        }
    return result
