"""
Serviço de fazendas e culturas (culturas ficam embutidas no documento da fazenda).
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
import re

from bson import ObjectId
from fastapi import HTTPException

from backend.api.schemas import CropIn, FarmCreate, FarmUpdate, find_duplicate_crop
from backend.api.services.serializers import PRODUCER_NOT_FOUND_NAME, serialize_farm
from backend.mongo.db import FARMS_COLLECTION, PRODUCERS_COLLECTION, get_collection
from backend.utils.logging_utils import build_logger
from backend.utils.mongo_utils import normalize_pagination, pagination_meta, parse_object_id, parse_sort

FARM_SORT_FIELDS = ("name", "city", "state", "total_area", "created_at", "updated_at")

AREA_EXCEEDED_DETAIL = "A soma das áreas agricultável e de vegetação não pode exceder a área total"
DUPLICATE_CROP_DETAIL = "Esta cultura já está plantada nesta safra"


def areas_fit(total_area: float, agricultural_area: float, vegetation_area: float) -> bool:
    return agricultural_area + vegetation_area <= total_area


def farm_filter(search: str = "", state: str = "", crop: str = "", producer_id: str = "") -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    search = (search or "").strip()
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [{"name": pattern}, {"city": pattern}]
    if state:
        query["state"] = state.strip().upper()
    if crop:
        query["crops.name"] = crop.strip()
    if producer_id:
        query["producer_id"] = producer_id.strip()
    return query


def build_crop_doc(payload: CropIn, crop_id: Optional[ObjectId] = None) -> Dict[str, Any]:
    doc = payload.model_dump(exclude_none=True)
    doc["_id"] = crop_id or ObjectId()
    doc["created_at"] = datetime.utcnow()
    return doc


class FarmService:
    def __init__(self, cache=None, logger=None):
        """
        Inicializa o serviço de fazendas.
        Parâmetros:
            cache (DashboardCache, opcional): cache invalidado após escritas
            logger (logging.Logger, opcional): Logger para logs
        """
        self.cache = cache
        self.logger = logger or build_logger("farm_service")

    async def _invalidate_dashboard(self) -> None:
        if self.cache is not None:
            await self.cache.invalidate()

    async def _get_producer(self, producer_id: str, projection: Optional[Dict[str, int]] = None) -> Optional[Dict[str, Any]]:
        if not ObjectId.is_valid(producer_id):
            return None
        return await get_collection(PRODUCERS_COLLECTION).find_one({"_id": ObjectId(producer_id)}, projection)

    async def _require_farm(self, farm_id: str) -> Dict[str, Any]:
        oid = parse_object_id(farm_id, "farm_id")
        farm = await get_collection(FARMS_COLLECTION).find_one({"_id": oid})
        if not farm:
            self.logger.warning(f"Fazenda não encontrada: farm_id={farm_id}")
            raise HTTPException(status_code=404, detail="Fazenda não encontrada")
        return farm

    async def create_farm(self, payload: FarmCreate) -> Dict[str, Any]:
        """
        Cadastra uma fazenda para um produtor existente.
        Parâmetros:
            payload (FarmCreate): dados validados (áreas e culturas já conferidas)
        Retorno:
            dict: fazenda criada
        """
        if not await self._get_producer(payload.producer_id, {"_id": 1}):
            self.logger.warning(f"Produtor inexistente na criação de fazenda: producer_id={payload.producer_id}")
            raise HTTPException(status_code=404, detail="Produtor não encontrado")
        now = datetime.utcnow()
        doc = payload.model_dump(exclude={"crops"})
        doc["crops"] = [build_crop_doc(c) for c in payload.crops]
        doc.update({"created_at": now, "updated_at": now})
        res = await get_collection(FARMS_COLLECTION).insert_one(doc)
        doc["_id"] = res.inserted_id
        self.logger.info(f"Fazenda criada: farm_id={res.inserted_id}, producer_id={payload.producer_id}")
        await self._invalidate_dashboard()
        return serialize_farm(doc)

    async def list_farms(
        self,
        page: int = 1,
        limit: int = 10,
        search: str = "",
        state: str = "",
        crop: str = "",
        producer_id: str = "",
        sort: str = "-created_at",
    ) -> Dict[str, Any]:
        """
        Lista fazendas paginadas e filtradas, com o nome do produtor.
        Retorno:
            dict: items e pagination
        """
        page, limit, skip = normalize_pagination(page, limit)
        sort_field, sort_dir = parse_sort(sort, FARM_SORT_FIELDS)
        query = farm_filter(search, state, crop, producer_id)
        coll = get_collection(FARMS_COLLECTION)
        docs = await coll.find(query).sort(sort_field, sort_dir).skip(skip).limit(limit).to_list(length=limit)
        total = await coll.count_documents(query)

        producer_oids = list({ObjectId(d["producer_id"]) for d in docs if ObjectId.is_valid(d.get("producer_id", ""))})
        names: Dict[str, str] = {}
        if producer_oids:
            cursor = get_collection(PRODUCERS_COLLECTION).find({"_id": {"$in": producer_oids}}, {"name": 1})
            for p in await cursor.to_list(length=None):
                names[str(p["_id"])] = p["name"]

        items = []
        for doc in docs:
            item = serialize_farm(doc)
            item["producer_name"] = names.get(doc.get("producer_id"), PRODUCER_NOT_FOUND_NAME)
            items.append(item)
        self.logger.info(f"Listando fazendas: filtro={query}, total={total}")
        return {"items": items, "pagination": pagination_meta(page, limit, total)}

    async def get_farm(self, farm_id: str) -> Dict[str, Any]:
        farm = await self._require_farm(farm_id)
        producer = await self._get_producer(farm["producer_id"], {"name": 1, "cpf_cnpj": 1})
        result = serialize_farm(farm, producer)
        if producer is None:
            result["producer"] = None
        return result

    async def update_farm(self, farm_id: str, payload: FarmUpdate) -> Dict[str, Any]:
        """
        Atualiza parcialmente uma fazenda, revalidando as áreas no documento resultante.
        Parâmetros:
            farm_id (str): ID da fazenda
            payload (FarmUpdate): campos a alterar (culturas têm rotas próprias)
        Retorno:
            dict: fazenda atualizada
        """
        farm = await self._require_farm(farm_id)
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            raise HTTPException(status_code=400, detail="Nenhum campo para atualizar")
        merged = {**farm, **changes}
        if not areas_fit(merged["total_area"], merged["agricultural_area"], merged["vegetation_area"]):
            self.logger.warning(f"Áreas inconsistentes na atualização: farm_id={farm_id}, changes={changes}")
            raise HTTPException(status_code=400, detail=AREA_EXCEEDED_DETAIL)
        if "producer_id" in changes and not await self._get_producer(changes["producer_id"], {"_id": 1}):
            raise HTTPException(status_code=404, detail="Produtor não encontrado")
        changes["updated_at"] = datetime.utcnow()
        await get_collection(FARMS_COLLECTION).update_one({"_id": farm["_id"]}, {"$set": changes})
        merged.update(changes)
        self.logger.info(f"Fazenda atualizada: farm_id={farm_id}, campos={sorted(changes)}")
        await self._invalidate_dashboard()
        return serialize_farm(merged)

    async def delete_farm(self, farm_id: str) -> None:
        oid = parse_object_id(farm_id, "farm_id")
        res = await get_collection(FARMS_COLLECTION).delete_one({"_id": oid})
        if res.deleted_count == 0:
            self.logger.warning(f"Fazenda não encontrada para remoção: farm_id={farm_id}")
            raise HTTPException(status_code=404, detail="Fazenda não encontrada")
        self.logger.info(f"Fazenda removida: farm_id={farm_id}")
        await self._invalidate_dashboard()

    # ---------------- Culturas ----------------

    async def add_crop(self, farm_id: str, payload: CropIn) -> Dict[str, Any]:
        """
        Adiciona uma cultura à fazenda. A mesma cultura não pode se repetir na mesma safra.
        Retorno:
            dict: fazenda com a nova cultura
        """
        farm = await self._require_farm(farm_id)
        crops: List[Dict[str, Any]] = farm.get("crops") or []
        crop_doc = build_crop_doc(payload)
        if find_duplicate_crop(crops + [crop_doc]) is not None:
            self.logger.warning(f"Cultura duplicada: farm_id={farm_id}, crop={payload.name}/{payload.harvest}")
            raise HTTPException(status_code=409, detail=DUPLICATE_CROP_DETAIL)
        now = datetime.utcnow()
        # o filtro repete a checagem de duplicidade para escritas concorrentes
        res = await get_collection(FARMS_COLLECTION).update_one(
            {"_id": farm["_id"], "crops": {"$not": {"$elemMatch": {"name": payload.name, "harvest": payload.harvest}}}},
            {"$push": {"crops": crop_doc}, "$set": {"updated_at": now}},
        )
        if res.matched_count == 0:
            raise HTTPException(status_code=409, detail=DUPLICATE_CROP_DETAIL)
        farm["crops"] = crops + [crop_doc]
        farm["updated_at"] = now
        self.logger.info(f"Cultura adicionada: farm_id={farm_id}, crop_id={crop_doc['_id']}")
        await self._invalidate_dashboard()
        return serialize_farm(farm)

    def _crop_index(self, farm: Dict[str, Any], crop_oid: ObjectId) -> int:
        for index, crop in enumerate(farm.get("crops") or []):
            if crop.get("_id") == crop_oid:
                return index
        self.logger.warning(f"Cultura não encontrada: farm_id={farm['_id']}, crop_id={crop_oid}")
        raise HTTPException(status_code=404, detail="Cultura não encontrada")

    async def update_crop(self, farm_id: str, crop_id: str, payload: CropIn) -> Dict[str, Any]:
        farm = await self._require_farm(farm_id)
        crop_oid = parse_object_id(crop_id, "crop_id")
        crops: List[Dict[str, Any]] = list(farm.get("crops") or [])
        index = self._crop_index(farm, crop_oid)
        others = [c for i, c in enumerate(crops) if i != index]
        updated = {**crops[index], **payload.model_dump(exclude_none=True)}
        if payload.planted_area is None:
            updated.pop("planted_area", None)
        if find_duplicate_crop(others + [updated]) is not None:
            self.logger.warning(f"Atualização geraria cultura duplicada: farm_id={farm_id}, crop_id={crop_id}")
            raise HTTPException(status_code=409, detail=DUPLICATE_CROP_DETAIL)
        crops[index] = updated
        now = datetime.utcnow()
        await get_collection(FARMS_COLLECTION).update_one(
            {"_id": farm["_id"], "crops._id": crop_oid},
            {"$set": {"crops.$": updated, "updated_at": now}},
        )
        farm["crops"] = crops
        farm["updated_at"] = now
        self.logger.info(f"Cultura atualizada: farm_id={farm_id}, crop_id={crop_id}")
        await self._invalidate_dashboard()
        return serialize_farm(farm)

    async def remove_crop(self, farm_id: str, crop_id: str) -> Dict[str, Any]:
        farm = await self._require_farm(farm_id)
        crop_oid = parse_object_id(crop_id, "crop_id")
        index = self._crop_index(farm, crop_oid)
        now = datetime.utcnow()
        await get_collection(FARMS_COLLECTION).update_one(
            {"_id": farm["_id"]},
            {"$pull": {"crops": {"_id": crop_oid}}, "$set": {"updated_at": now}},
        )
        farm["crops"] = [c for i, c in enumerate(farm["crops"]) if i != index]
        farm["updated_at"] = now
        self.logger.info(f"Cultura removida: farm_id={farm_id}, crop_id={crop_id}")
        await self._invalidate_dashboard()
        return serialize_farm(farm)
