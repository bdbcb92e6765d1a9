"""
Helpers de MongoDB compartilhados pelos serviços: conversão BSON -> JSON,
parsing de ObjectId e paginação/ordenação de listagens.
"""
from datetime import datetime
from math import ceil
from typing import Any, Dict, Iterable, Optional, Tuple

from bson import ObjectId
from fastapi import HTTPException
from pymongo import ASCENDING, DESCENDING

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def bson_to_json(val: Any) -> Any:
    if isinstance(val, dict):
        return {k: bson_to_json(v) for k, v in val.items()}
    elif isinstance(val, list):
        return [bson_to_json(v) for v in val]
    elif isinstance(val, ObjectId):
        return str(val)
    elif isinstance(val, datetime):
        return val.isoformat()
    else:
        return val


def with_public_id(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Converte o documento para JSON trocando _id por id."""
    result = bson_to_json(doc)
    if "_id" in result:
        result["id"] = str(result.pop("_id"))
    return result


def parse_object_id(value: str, label: str = "id") -> ObjectId:
    """
    Converte string em ObjectId.
    Parâmetros:
        value (str): id recebido na rota
        label (str): nome do campo para a mensagem de erro
    Retorno:
        ObjectId
    Lança HTTPException 400 se o id for inválido.
    """
    if not ObjectId.is_valid(value):
        raise HTTPException(status_code=400, detail=f"{label} inválido")
    return ObjectId(value)


def normalize_pagination(page: Optional[int], limit: Optional[int]) -> Tuple[int, int, int]:
    """Retorna (page, limit, skip) com page >= 1 e limit entre 1 e MAX_PAGE_SIZE."""
    page = max(1, int(page or 1))
    limit = min(MAX_PAGE_SIZE, max(1, int(limit or DEFAULT_PAGE_SIZE)))
    return page, limit, (page - 1) * limit


def parse_sort(sort: Optional[str], allowed: Iterable[str], default: str = "-created_at") -> Tuple[str, int]:
    """
    Converte "-campo"/"campo" em (campo, direção). Campos fora da lista
    permitida caem no padrão.
    """
    sort = (sort or default).strip()
    direction = DESCENDING if sort.startswith("-") else ASCENDING
    field = sort.lstrip("-+")
    if field not in allowed:
        field = default.lstrip("-+")
        direction = DESCENDING if default.startswith("-") else ASCENDING
    return field, direction


def pagination_meta(page: int, limit: int, total: int) -> Dict[str, int]:
    return {"page": page, "limit": limit, "total": total, "pages": ceil(total / limit) if total else 0}
