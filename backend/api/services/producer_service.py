"""
Serviço de produtores: regras de cadastro, listagem, atualização e exclusão.
O CPF/CNPJ chega já validado e canônico pelos schemas; a unicidade é
garantida pelo índice único da coleção.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
import re

from fastapi import HTTPException
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from backend.api.schemas import ProducerCreate, ProducerUpdate
from backend.api.services.serializers import serialize_farm, serialize_producer
from backend.mongo.db import FARMS_COLLECTION, PRODUCERS_COLLECTION, get_collection
from backend.utils.document_utils import DocumentUtils
from backend.utils.logging_utils import build_logger
from backend.utils.mongo_utils import normalize_pagination, pagination_meta, parse_object_id, parse_sort

PRODUCER_SORT_FIELDS = ("name", "created_at", "updated_at")


def duplicate_detail(exc: DuplicateKeyError) -> str:
    key_pattern = (exc.details or {}).get("keyPattern") or {}
    if "email" in key_pattern:
        return "Email já está cadastrado"
    return "CPF/CNPJ já está cadastrado"


def producer_search_filter(search: Optional[str]) -> Dict[str, Any]:
    """
    Monta o filtro de busca: nome (case-insensitive) ou, se houver dígitos,
    trecho do CPF/CNPJ canônico.
    """
    search = (search or "").strip()
    if not search:
        return {}
    clauses: List[Dict[str, Any]] = [{"name": {"$regex": re.escape(search), "$options": "i"}}]
    digits = DocumentUtils.clean(search)
    if digits:
        clauses.append({"cpf_cnpj": {"$regex": re.escape(digits)}})
    return {"$or": clauses}


class ProducerService:
    def __init__(self, cache=None, logger=None):
        """
        Inicializa o serviço de produtores.
        Parâmetros:
            cache (DashboardCache, opcional): cache invalidado após escritas
            logger (logging.Logger, opcional): Logger para logs
        """
        self.cache = cache
        self.logger = logger or build_logger("producer_service")

    async def _invalidate_dashboard(self) -> None:
        if self.cache is not None:
            await self.cache.invalidate()

    async def create_producer(self, payload: ProducerCreate) -> Dict[str, Any]:
        """
        Cadastra um produtor.
        Parâmetros:
            payload (ProducerCreate): dados validados
        Retorno:
            dict: produtor criado
        """
        coll = get_collection(PRODUCERS_COLLECTION)
        now = datetime.utcnow()
        doc = payload.model_dump(exclude_none=True)
        doc.update({"created_at": now, "updated_at": now})
        try:
            res = await coll.insert_one(doc)
        except DuplicateKeyError as exc:
            detail = duplicate_detail(exc)
            self.logger.warning(f"Produtor duplicado: cpf_cnpj={doc['cpf_cnpj']}, detalhe={detail}")
            raise HTTPException(status_code=409, detail=detail)
        doc["_id"] = res.inserted_id
        self.logger.info(f"Produtor criado: producer_id={res.inserted_id}")
        await self._invalidate_dashboard()
        return serialize_producer(doc)

    async def list_producers(self, page: int = 1, limit: int = 10, search: str = "", sort: str = "-created_at") -> Dict[str, Any]:
        """
        Lista produtores paginados, com a quantidade de fazendas de cada um.
        Retorno:
            dict: items e pagination
        """
        page, limit, skip = normalize_pagination(page, limit)
        sort_field, sort_dir = parse_sort(sort, PRODUCER_SORT_FIELDS)
        query = producer_search_filter(search)
        coll = get_collection(PRODUCERS_COLLECTION)
        docs = await coll.find(query).sort(sort_field, sort_dir).skip(skip).limit(limit).to_list(length=limit)
        total = await coll.count_documents(query)

        producer_ids = [str(d["_id"]) for d in docs]
        counts: Dict[str, int] = {}
        if producer_ids:
            farms = get_collection(FARMS_COLLECTION)
            pipeline = [
                {"$match": {"producer_id": {"$in": producer_ids}}},
                {"$group": {"_id": "$producer_id", "count": {"$sum": 1}}},
            ]
            for row in await farms.aggregate(pipeline).to_list(length=None):
                counts[row["_id"]] = row["count"]

        items = []
        for doc in docs:
            item = serialize_producer(doc)
            item["farm_count"] = counts.get(item["id"], 0)
            items.append(item)
        self.logger.info(f"Listando produtores: page={page}, limit={limit}, total={total}")
        return {"items": items, "pagination": pagination_meta(page, limit, total)}

    async def get_producer(self, producer_id: str) -> Dict[str, Any]:
        oid = parse_object_id(producer_id, "producer_id")
        producer = await get_collection(PRODUCERS_COLLECTION).find_one({"_id": oid})
        if not producer:
            self.logger.warning(f"Produtor não encontrado: producer_id={producer_id}")
            raise HTTPException(status_code=404, detail="Produtor não encontrado")
        result = serialize_producer(producer)
        result["farms"] = await self._farms_of(producer_id)
        return result

    async def list_producer_farms(self, producer_id: str) -> List[Dict[str, Any]]:
        oid = parse_object_id(producer_id, "producer_id")
        if not await get_collection(PRODUCERS_COLLECTION).find_one({"_id": oid}, {"_id": 1}):
            raise HTTPException(status_code=404, detail="Produtor não encontrado")
        return await self._farms_of(producer_id)

    async def _farms_of(self, producer_id: str) -> List[Dict[str, Any]]:
        cursor = get_collection(FARMS_COLLECTION).find({"producer_id": producer_id}).sort("created_at", DESCENDING)
        return [serialize_farm(f) for f in await cursor.to_list(length=None)]

    async def check_document_availability(self, cpf_cnpj: str, exclude_id: str = "") -> Dict[str, Any]:
        """
        Informa se um CPF/CNPJ pode ser usado em um cadastro.
        Parâmetros:
            cpf_cnpj (str): documento com ou sem máscara
            exclude_id (str, opcional): produtor ignorado na busca (edição do próprio cadastro)
        Retorno:
            dict: available, message, cpf_cnpj (canônico), formatted, document_type
        """
        digits = DocumentUtils.clean(cpf_cnpj)
        if not DocumentUtils.validate(digits):
            self.logger.warning(f"Consulta de disponibilidade com documento inválido: {cpf_cnpj}")
            raise HTTPException(status_code=400, detail="CPF/CNPJ inválido")
        query: Dict[str, Any] = {"cpf_cnpj": digits}
        if exclude_id:
            query["_id"] = {"$ne": parse_object_id(exclude_id, "exclude_id")}
        existing = await get_collection(PRODUCERS_COLLECTION).find_one(query, {"_id": 1})
        available = existing is None
        self.logger.info(f"Disponibilidade de documento: cpf_cnpj={digits}, disponivel={available}")
        return {
            "available": available,
            "message": "CPF/CNPJ disponível" if available else "CPF/CNPJ já está em uso",
            "cpf_cnpj": digits,
            "formatted": DocumentUtils.format(digits),
            "document_type": DocumentUtils.classify(digits).value,
        }

    async def update_producer(self, producer_id: str, payload: ProducerUpdate) -> Dict[str, Any]:
        """
        Atualiza parcialmente um produtor.
        Parâmetros:
            producer_id (str): ID do produtor
            payload (ProducerUpdate): campos a alterar
        Retorno:
            dict: produtor atualizado
        """
        oid = parse_object_id(producer_id, "producer_id")
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            raise HTTPException(status_code=400, detail="Nenhum campo para atualizar")
        changes["updated_at"] = datetime.utcnow()
        coll = get_collection(PRODUCERS_COLLECTION)
        try:
            updated = await coll.find_one_and_update(
                {"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError as exc:
            detail = duplicate_detail(exc)
            self.logger.warning(f"Atualização com documento duplicado: producer_id={producer_id}, detalhe={detail}")
            raise HTTPException(status_code=409, detail=detail)
        if not updated:
            self.logger.warning(f"Produtor não encontrado para atualização: producer_id={producer_id}")
            raise HTTPException(status_code=404, detail="Produtor não encontrado")
        self.logger.info(f"Produtor atualizado: producer_id={producer_id}, campos={sorted(changes)}")
        await self._invalidate_dashboard()
        return serialize_producer(updated)

    async def delete_producer(self, producer_id: str) -> None:
        """
        Remove um produtor sem fazendas.
        Lança 409 se ainda houver fazendas vinculadas e 404 se não existir.
        """
        oid = parse_object_id(producer_id, "producer_id")
        farm_count = await get_collection(FARMS_COLLECTION).count_documents({"producer_id": producer_id})
        if farm_count > 0:
            self.logger.warning(f"Exclusão bloqueada: producer_id={producer_id}, fazendas={farm_count}")
            raise HTTPException(status_code=409, detail="Não é possível excluir produtor que possui fazendas cadastradas")
        res = await get_collection(PRODUCERS_COLLECTION).delete_one({"_id": oid})
        if res.deleted_count == 0:
            self.logger.warning(f"Produtor não encontrado para remoção: producer_id={producer_id}")
            raise HTTPException(status_code=404, detail="Produtor não encontrado")
        self.logger.info(f"Produtor removido: producer_id={producer_id}")
        await self._invalidate_dashboard()
