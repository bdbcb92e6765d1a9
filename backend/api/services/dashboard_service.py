"""
Serviço de dashboard: agregações sobre fazendas e culturas.
As pipelines rodam no MongoDB; o pós-processamento (arredondamento,
percentuais, acumulados) fica em funções puras para facilitar testes.
"""
from collections import Counter
from typing import Any, Awaitable, Callable, Dict, List

from backend.mongo.db import FARMS_COLLECTION, PRODUCERS_COLLECTION, get_collection
from backend.utils.logging_utils import build_logger

TOP_N = 5


def _round(value: float) -> float:
    return round(value or 0, 2)


def build_stats(farms: List[Dict[str, Any]], total_producers: int) -> Dict[str, Any]:
    """
    Consolida as estatísticas gerais a partir das fazendas.
    Uma fazenda conta uma vez por cultura, mesmo plantada em várias safras.
    Parâmetros:
        farms (List[dict]): fazendas com state, total_area, agricultural_area, vegetation_area, crops
        total_producers (int): total de produtores cadastrados
    Retorno:
        dict: estatísticas do dashboard
    """
    total_farms = len(farms)
    total_hectares = sum(f.get("total_area", 0) for f in farms)
    by_state = Counter(f["state"] for f in farms if f.get("state"))
    by_crop: Counter = Counter()
    total_crops = 0
    for farm in farms:
        crops = farm.get("crops") or []
        total_crops += len(crops)
        by_crop.update({c["name"] for c in crops if c.get("name")})

    return {
        "total_farms": total_farms,
        "total_producers": total_producers,
        "total_hectares": _round(total_hectares),
        "average_farm_size": _round(total_hectares / total_farms) if total_farms else 0,
        "total_crops": total_crops,
        "farms_by_state": dict(by_state),
        "farms_by_crop": dict(by_crop),
        "land_use": {
            "agricultural": _round(sum(f.get("agricultural_area", 0) for f in farms)),
            "vegetation": _round(sum(f.get("vegetation_area", 0) for f in farms)),
        },
        "top_states": [{"state": s, "count": n} for s, n in by_state.most_common(TOP_N)],
        "top_crops": [{"crop": c, "count": n} for c, n in by_crop.most_common(TOP_N)],
    }


def build_land_use(totals: Dict[str, Any]) -> Dict[str, Any]:
    total = totals.get("total_area", 0) or 0
    agricultural = totals.get("agricultural_area", 0) or 0
    vegetation = totals.get("vegetation_area", 0) or 0
    return {
        "total_area": _round(total),
        "agricultural_area": _round(agricultural),
        "vegetation_area": _round(vegetation),
        "unused_area": _round(total - agricultural - vegetation),
        "agricultural_percentage": _round(agricultural / total * 100) if total else 0,
        "vegetation_percentage": _round(vegetation / total * 100) if total else 0,
        "farm_count": totals.get("farm_count", 0),
    }


def build_crop_distribution(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Consolida as culturas agrupadas por safra. Uma fazenda conta uma vez por
    cultura, mesmo plantada em várias safras (mesma regra de build_stats).
    Parâmetros:
        rows (List[dict]): {"_id": cultura, "harvests", "farms": [[ids]], "states": [[UFs]]}
    Retorno:
        List[dict]: crop, total_farms, states_count, harvests; ordenado por total_farms
    """
    result = []
    for row in rows:
        farms = set().union(*row.get("farms", []))
        states = set().union(*row.get("states", []))
        result.append({
            "crop": row["_id"],
            "total_farms": len(farms),
            "states_count": len(states),
            "harvests": row.get("harvests", []),
        })
    result.sort(key=lambda r: (-r["total_farms"], r["crop"]))
    return result


def farm_size_label(lower: Any) -> str:
    if lower == "other":
        return "Outros"
    index = FARM_SIZE_BOUNDARIES.index(lower)
    upper = FARM_SIZE_BOUNDARIES[index + 1]
    if upper == float("inf"):
        return f"{lower}+ ha"
    return f"{lower}-{upper} ha"


def build_farm_size_distribution(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Rótulos das faixas do $bucket; faixas sem fazendas aparecem com zero."""
    counts = {row["_id"]: row for row in rows}
    result = []
    for lower in FARM_SIZE_BOUNDARIES[:-1]:
        row = counts.get(lower, {})
        result.append({
            "range": farm_size_label(lower),
            "min_area": lower,
            "count": row.get("count", 0),
            "average_area": _round(row.get("average_area", 0)),
        })
    if "other" in counts:
        result.append({
            "range": farm_size_label("other"),
            "min_area": None,
            "count": counts["other"]["count"],
            "average_area": _round(counts["other"].get("average_area", 0)),
        })
    return result


def accumulate_growth(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Converte o agrupamento mensal (ordenado) em série com acumulados.
    Parâmetros:
        rows (List[dict]): {"_id": {"year", "month"}, "farm_count", "total_area"}
    Retorno:
        List[dict]: date, farm_count, total_area, cumulative_farms, cumulative_area
    """
    cumulative_farms = 0
    cumulative_area = 0.0
    series = []
    for row in rows:
        period = row["_id"]
        cumulative_farms += row["farm_count"]
        cumulative_area += row["total_area"] or 0
        series.append({
            "date": f"{period['year']:04d}-{period['month']:02d}-01",
            "farm_count": row["farm_count"],
            "total_area": _round(row["total_area"]),
            "cumulative_farms": cumulative_farms,
            "cumulative_area": _round(cumulative_area),
        })
    return series


FARMS_BY_STATE_PIPELINE = [
    {"$group": {
        "_id": "$state",
        "count": {"$sum": 1},
        "total_area": {"$sum": "$total_area"},
        "agricultural_area": {"$sum": "$agricultural_area"},
        "vegetation_area": {"$sum": "$vegetation_area"},
    }},
    {"$project": {
        "_id": 0,
        "state": "$_id",
        "count": 1,
        "total_area": {"$round": ["$total_area", 2]},
        "agricultural_area": {"$round": ["$agricultural_area", 2]},
        "vegetation_area": {"$round": ["$vegetation_area", 2]},
    }},
    {"$sort": {"count": -1, "state": 1}},
]

CROP_DISTRIBUTION_PIPELINE = [
    {"$unwind": "$crops"},
    {"$group": {
        "_id": {"crop": "$crops.name", "harvest": "$crops.harvest"},
        "farms": {"$addToSet": "$_id"},
        "total_planted_area": {"$sum": {"$ifNull": ["$crops.planted_area", 0]}},
        "states": {"$addToSet": "$state"},
    }},
    {"$sort": {"_id.harvest": 1}},
    {"$group": {
        "_id": "$_id.crop",
        "harvests": {"$push": {
            "harvest": "$_id.harvest",
            "farm_count": {"$size": "$farms"},
            "total_planted_area": {"$round": ["$total_planted_area", 2]},
        }},
        "farms": {"$push": "$farms"},
        "states": {"$push": "$states"},
    }},
]

FARM_SIZE_BOUNDARIES = [0, 100, 500, 1000, 5000, 10000, float("inf")]

FARM_SIZE_PIPELINE = [
    {"$bucket": {
        "groupBy": "$total_area",
        "boundaries": FARM_SIZE_BOUNDARIES,
        "default": "other",
        "output": {
            "count": {"$sum": 1},
            "average_area": {"$avg": "$total_area"},
        },
    }},
]

LAND_USE_PIPELINE = [
    {"$group": {
        "_id": None,
        "total_area": {"$sum": "$total_area"},
        "agricultural_area": {"$sum": "$agricultural_area"},
        "vegetation_area": {"$sum": "$vegetation_area"},
        "farm_count": {"$sum": 1},
    }},
]

GROWTH_PIPELINE = [
    {"$match": {"created_at": {"$type": "date"}}},
    {"$group": {
        "_id": {"year": {"$year": "$created_at"}, "month": {"$month": "$created_at"}},
        "farm_count": {"$sum": 1},
        "total_area": {"$sum": "$total_area"},
    }},
    {"$sort": {"_id.year": 1, "_id.month": 1}},
]

STATS_PROJECTION = {
    "state": 1, "total_area": 1, "agricultural_area": 1, "vegetation_area": 1, "crops.name": 1,
}


class DashboardService:
    def __init__(self, cache=None, logger=None):
        """
        Inicializa o serviço de dashboard.
        Parâmetros:
            cache (DashboardCache, opcional): cache Redis dos resultados
            logger (logging.Logger, opcional): Logger para logs
        """
        self.cache = cache
        self.logger = logger or build_logger("dashboard_service")

    async def _cached(self, key: str, compute: Callable[[], Awaitable[Any]]) -> Any:
        if self.cache is not None:
            cached = await self.cache.get(key)
            if cached is not None:
                return cached
        result = await compute()
        if self.cache is not None:
            await self.cache.set(key, result)
        return result

    async def _aggregate(self, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return await get_collection(FARMS_COLLECTION).aggregate(pipeline).to_list(length=None)

    async def get_stats(self) -> Dict[str, Any]:
        async def compute():
            farms = await get_collection(FARMS_COLLECTION).find({}, STATS_PROJECTION).to_list(length=None)
            total_producers = await get_collection(PRODUCERS_COLLECTION).count_documents({})
            stats = build_stats(farms, total_producers)
            self.logger.info(f"Estatísticas calculadas: fazendas={stats['total_farms']}, produtores={total_producers}")
            return stats
        return await self._cached("stats", compute)

    async def farms_by_state(self) -> List[Dict[str, Any]]:
        return await self._cached("farms_by_state", lambda: self._aggregate(FARMS_BY_STATE_PIPELINE))

    async def crop_distribution(self) -> List[Dict[str, Any]]:
        async def compute():
            return build_crop_distribution(await self._aggregate(CROP_DISTRIBUTION_PIPELINE))
        return await self._cached("crop_distribution", compute)

    async def farm_size_distribution(self) -> List[Dict[str, Any]]:
        async def compute():
            return build_farm_size_distribution(await self._aggregate(FARM_SIZE_PIPELINE))
        return await self._cached("farm_size_distribution", compute)

    async def land_use(self) -> Dict[str, Any]:
        async def compute():
            rows = await self._aggregate(LAND_USE_PIPELINE)
            return build_land_use(rows[0] if rows else {})
        return await self._cached("land_use", compute)

    async def growth(self) -> List[Dict[str, Any]]:
        async def compute():
            return accumulate_growth(await self._aggregate(GROWTH_PIPELINE))
        return await self._cached("growth", compute)
