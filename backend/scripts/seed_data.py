"""
Popula o MongoDB com produtores, fazendas e culturas de exemplo.
Os CPFs/CNPJs são gerados com dígitos verificadores corretos.

    python -m backend.scripts.seed_data --producers 20 --farms-per-producer 3 --drop
"""
import argparse
import asyncio
import random
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId

from backend.api.schemas import CROP_NAMES
from backend.mongo.db import (
    FARMS_COLLECTION,
    PRODUCERS_COLLECTION,
    close_mongo_connection,
    connect_to_mongo,
    ensure_indexes,
    get_collection,
)
from backend.utils.document_utils import DocumentType, DocumentUtils
from backend.utils.logging_utils import build_logger

LOG = build_logger("seed_data")

FIRST_NAMES = ["João", "Maria", "José", "Ana", "Carlos", "Fernanda", "Paulo", "Juliana", "Antônio", "Luiza"]
LAST_NAMES = ["Silva", "Santos", "Oliveira", "Souza", "Pereira", "Costa", "Rodrigues", "Almeida", "Lima", "Ferreira"]
COMPANY_SUFFIXES = ["Agropecuária Ltda", "Agronegócios S.A.", "Fazendas Reunidas Ltda"]
FARM_NAMES = ["Santa Maria", "Boa Vista", "São José", "Esperança", "Três Irmãos", "Bela Vista", "Primavera", "Santa Fé"]
CITIES = [
    ("Ribeirão Preto", "SP"), ("Sertãozinho", "SP"), ("Cuiabá", "MT"), ("Sorriso", "MT"),
    ("Rio Verde", "GO"), ("Londrina", "PR"), ("Cascavel", "PR"), ("Uberaba", "MG"),
    ("Dourados", "MS"), ("Barreiras", "BA"), ("Passo Fundo", "RS"), ("Chapecó", "SC"),
]


def _producer_doc(rng: random.Random, now: datetime) -> Dict[str, Any]:
    city, state = rng.choice(CITIES)
    if rng.random() < 0.7:
        name = f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}"
        cpf_cnpj = DocumentUtils.generate(DocumentType.CPF, rng)
    else:
        name = f"{rng.choice(LAST_NAMES)} {rng.choice(COMPANY_SUFFIXES)}"
        cpf_cnpj = DocumentUtils.generate(DocumentType.CNPJ, rng)
    return {
        "cpf_cnpj": cpf_cnpj,
        "name": name,
        "phone": f"({rng.randint(11, 99)}) 9{rng.randint(1000, 9999)}-{rng.randint(1000, 9999)}",
        "address": {
            "street": f"Estrada Rural, Km {rng.randint(1, 90)}",
            "city": city,
            "state": state,
            "zip_code": f"{rng.randint(10000, 99999)}-000",
        },
        "created_at": now,
        "updated_at": now,
    }


def _farm_doc(rng: random.Random, now: datetime) -> Dict[str, Any]:
    city, state = rng.choice(CITIES)
    total = round(rng.uniform(50, 5000), 2)
    agricultural = round(total * rng.uniform(0.3, 0.7), 2)
    vegetation = round((total - agricultural) * rng.uniform(0.2, 0.9), 2)
    crops = []
    harvest = str(now.year - rng.randint(0, 2))
    names = rng.sample(CROP_NAMES, rng.randint(1, 3))
    for name in names:
        crops.append({
            "_id": ObjectId(),
            "name": name,
            "harvest": harvest,
            "planted_area": round(agricultural / len(names), 2),
            "created_at": now,
        })
    return {
        "name": f"Fazenda {rng.choice(FARM_NAMES)}",
        "city": city,
        "state": state,
        "total_area": total,
        "agricultural_area": agricultural,
        "vegetation_area": vegetation,
        "crops": crops,
        "created_at": now,
        "updated_at": now,
    }


def build_seed(producers: int, farms_per_producer: int, rng: Optional[random.Random] = None) -> List[Tuple[Dict[str, Any], List[Dict[str, Any]]]]:
    """
    Monta os documentos de exemplo (sem producer_id nas fazendas; ligado na inserção).
    Parâmetros:
        producers (int): quantidade de produtores
        farms_per_producer (int): máximo de fazendas por produtor (mínimo 1 se > 0)
        rng (random.Random, opcional): gerador para reprodutibilidade
    Retorno:
        List[Tuple[dict, List[dict]]]: pares produtor/fazendas
    """
    rng = rng or random.Random()
    now = datetime.utcnow()
    seen = set()
    result = []
    while len(result) < producers:
        producer = _producer_doc(rng, now)
        if producer["cpf_cnpj"] in seen:
            continue
        seen.add(producer["cpf_cnpj"])
        count = rng.randint(1, farms_per_producer) if farms_per_producer > 0 else 0
        result.append((producer, [_farm_doc(rng, now) for _ in range(count)]))
    return result


async def seed(producers: int, farms_per_producer: int, drop: bool = False, rng: Optional[random.Random] = None) -> Dict[str, int]:
    """
    Insere os dados de exemplo no banco.
    Retorno:
        dict: quantidade de produtores e fazendas inseridos
    """
    producers_coll = get_collection(PRODUCERS_COLLECTION)
    farms_coll = get_collection(FARMS_COLLECTION)
    if drop:
        LOG.info("Limpando coleções de produtores e fazendas")
        await producers_coll.delete_many({})
        await farms_coll.delete_many({})
    inserted = {"producers": 0, "farms": 0}
    for producer, farms in build_seed(producers, farms_per_producer, rng):
        res = await producers_coll.insert_one(producer)
        inserted["producers"] += 1
        for farm in farms:
            farm["producer_id"] = str(res.inserted_id)
        if farms:
            await farms_coll.insert_many(farms)
            inserted["farms"] += len(farms)
        LOG.debug(f"Produtor semeado: producer_id={res.inserted_id}, fazendas={len(farms)}")
    LOG.info(f"Seed concluído: {inserted}")
    return inserted


async def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Popula o banco com dados de exemplo")
    parser.add_argument("--producers", type=int, default=10)
    parser.add_argument("--farms-per-producer", type=int, default=3)
    parser.add_argument("--drop", action="store_true", help="remove os dados existentes antes")
    parser.add_argument("--seed", type=int, default=None, help="semente do gerador aleatório")
    args = parser.parse_args(argv)

    LOG.info("Conectando ao MongoDB...")
    await connect_to_mongo()
    try:
        await ensure_indexes()
        rng = random.Random(args.seed) if args.seed is not None else None
        await seed(args.producers, args.farms_per_producer, drop=args.drop, rng=rng)
    except Exception:
        LOG.exception("Falha ao popular o banco")
        raise
    finally:
        await close_mongo_connection()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        LOG.info("Seed interrompido pelo usuário")
