from typing import Optional
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase, AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING
import logging
import os


# ====== Conexão MongoDB (motor) ======
_mongo_client: Optional[AsyncIOMotorClient] = None
_mongo_db: Optional[AsyncIOMotorDatabase] = None

MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "rural_producers_db")

PRODUCERS_COLLECTION = "producers"
FARMS_COLLECTION = "farms"

logger = logging.getLogger(__name__)


async def connect_to_mongo() -> None:
	global _mongo_client, _mongo_db
	if _mongo_client is None:
		_mongo_client = AsyncIOMotorClient(MONGO_URI)
		_mongo_db = _mongo_client[MONGO_DB_NAME]
		logger.info(f"Cliente MongoDB criado: db={MONGO_DB_NAME}")

async def close_mongo_connection() -> None:
	global _mongo_client, _mongo_db
	if _mongo_client is not None:
		_mongo_client.close()
		_mongo_client = None
		_mongo_db = None

def get_db() -> AsyncIOMotorDatabase:
	if _mongo_db is None:
		raise RuntimeError("MongoDB nao inicializado. Chame connect_to_mongo no startup da API.")
	return _mongo_db

def get_collection(name: str) -> AsyncIOMotorCollection:
	return get_db()[name]

async def ping() -> bool:
	"""Retorna True se o MongoDB responder ao comando ping."""
	try:
		await get_db().command("ping")
		return True
	except Exception as exc:
		logger.warning(f"MongoDB indisponível: {exc}")
		return False

async def ensure_indexes() -> None:
	"""
	Cria os índices das coleções. O índice único de cpf_cnpj garante que um
	documento canônico não seja cadastrado duas vezes.
	"""
	producers = get_collection(PRODUCERS_COLLECTION)
	await producers.create_index([("cpf_cnpj", ASCENDING)], unique=True, name="uniq_cpf_cnpj")
	await producers.create_index([("email", ASCENDING)], unique=True, sparse=True, name="uniq_email")
	await producers.create_index([("name", ASCENDING)])
	await producers.create_index([("created_at", DESCENDING)])

	farms = get_collection(FARMS_COLLECTION)
	await farms.create_index([("producer_id", ASCENDING)])
	await farms.create_index([("state", ASCENDING)])
	await farms.create_index([("state", ASCENDING), ("city", ASCENDING)])
	await farms.create_index([("crops.name", ASCENDING)])
	await farms.create_index([("crops.harvest", ASCENDING)])
	await farms.create_index([("created_at", DESCENDING)])
	logger.info("Índices MongoDB garantidos")
