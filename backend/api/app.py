
from typing import Any, Dict, List
from fastapi import FastAPI, Request, status, Depends, Path, Query
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging
import uvicorn
import os

from backend.auth.basic import basic_auth
from backend.api.schemas import CropIn, FarmCreate, FarmUpdate, ProducerCreate, ProducerUpdate
from backend.api.services.dashboard_cache import DashboardCache
from backend.api.services.dashboard_service import DashboardService
from backend.api.services.farm_service import FarmService
from backend.api.services.producer_service import ProducerService
from backend.mongo.db import connect_to_mongo, close_mongo_connection, ensure_indexes, ping
from backend.utils.logging_utils import LOG_FORMAT

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper(), format=LOG_FORMAT)
logger = logging.getLogger(__name__)

app = FastAPI(title="Rural Producers API", version="1.0.0")

REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
DASHBOARD_CACHE_TTL = int(os.getenv("DASHBOARD_CACHE_TTL", "60"))

dashboard_cache = DashboardCache(REDIS_URL, ttl=DASHBOARD_CACHE_TTL)
producer_service = ProducerService(cache=dashboard_cache)
farm_service = FarmService(cache=dashboard_cache)
dashboard_service = DashboardService(cache=dashboard_cache)


# Conexão MongoDB no ciclo de vida da aplicação
@app.on_event("startup")
async def on_startup() -> None:
    """
    Evento de inicialização da API.
    Conecta ao MongoDB e garante os índices (inclusive o único de cpf_cnpj).
    """
    logger.info("Iniciando evento de startup da API")
    await connect_to_mongo()
    await ensure_indexes()
    logger.info("Conexão com MongoDB estabelecida")


@app.on_event("shutdown")
async def on_shutdown() -> None:
    logger.info("Iniciando evento de shutdown da API")
    await close_mongo_connection()
    await dashboard_cache.close()
    logger.info("Conexões encerradas")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Converte erros de validação do corpo/parâmetros em 400 com a lista de campos inválidos.
    """
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        message = err.get("msg", "")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append({"field": ".".join(loc), "message": message})
    logger.warning(f"Requisição inválida: {request.method} {request.url.path} erros={errors}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder({"detail": "Dados inválidos fornecidos", "errors": errors}),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Erro inesperado em {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": "Erro interno do servidor"})


@app.get("/")
async def root(_: str = Depends(basic_auth)) -> dict:
    """
    Endpoint de status da API (usado pelo login do frontend).
    """
    logger.info("Endpoint / chamado, status=ok")
    return {"status": "ok"}


@app.get("/health")
async def health() -> JSONResponse:
    """
    Health check sem autenticação: 200 se o MongoDB responde, 503 caso contrário.
    O Redis é reportado mas não derruba o serviço.
    """
    database_up = await ping()
    cache_up = await dashboard_cache.ping()
    body = {
        "status": "ok" if database_up else "degraded",
        "database": "up" if database_up else "down",
        "cache": "up" if cache_up else "down",
    }
    if not database_up:
        logger.warning(f"Health check degradado: {body}")
    return JSONResponse(status_code=200 if database_up else 503, content=body)


######### Producers (prefixo /api/v1)
@app.post("/api/v1/producers", status_code=status.HTTP_201_CREATED)
async def create_producer(payload: ProducerCreate, _: str = Depends(basic_auth)) -> Dict[str, Any]:
    """
    Cadastra um produtor. CPF/CNPJ inválido -> 400; duplicado -> 409.
    """
    logger.debug(f"Recebendo payload de produtor: {payload}")
    return await producer_service.create_producer(payload)


@app.get("/api/v1/producers")
async def list_producers(
    page: int = Query(1, description="Página (>= 1)"),
    limit: int = Query(10, description="Itens por página (1-100)"),
    search: str = Query("", description="Nome ou trecho do CPF/CNPJ"),
    sort: str = Query("-created_at", description="Campo de ordenação, prefixo - para decrescente"),
    _: str = Depends(basic_auth),
) -> Dict[str, Any]:
    return await producer_service.list_producers(page=page, limit=limit, search=search, sort=sort)


@app.get("/api/v1/producers/validate/cpf-cnpj/{cpf_cnpj:path}")
async def check_document_availability(
    cpf_cnpj: str = Path(..., description="CPF ou CNPJ, com ou sem máscara"),
    exclude_id: str = Query("", description="ID do produtor a ignorar (edição)"),
    _: str = Depends(basic_auth),
) -> Dict[str, Any]:
    """
    Verifica se o CPF/CNPJ é válido e ainda não está cadastrado.
    Documento inválido -> 400.
    """
    return await producer_service.check_document_availability(cpf_cnpj, exclude_id)


@app.get("/api/v1/producers/{producer_id}")
async def get_producer(producer_id: str = Path(..., description="ID do produtor"), _: str = Depends(basic_auth)) -> Dict[str, Any]:
    return await producer_service.get_producer(producer_id)


@app.get("/api/v1/producers/{producer_id}/farms")
async def list_producer_farms(producer_id: str = Path(..., description="ID do produtor"), _: str = Depends(basic_auth)) -> List[Dict[str, Any]]:
    return await producer_service.list_producer_farms(producer_id)


@app.put("/api/v1/producers/{producer_id}")
async def update_producer(payload: ProducerUpdate, producer_id: str = Path(..., description="ID do produtor"), _: str = Depends(basic_auth)) -> Dict[str, Any]:
    logger.debug(f"Atualização de produtor: producer_id={producer_id}, payload={payload}")
    return await producer_service.update_producer(producer_id, payload)


@app.delete("/api/v1/producers/{producer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_producer(producer_id: str = Path(..., description="ID do produtor"), _: str = Depends(basic_auth)) -> None:
    logger.info(f"Solicitação de remoção de produtor: producer_id={producer_id}")
    await producer_service.delete_producer(producer_id)
    return None


######### Farms
@app.post("/api/v1/farms", status_code=status.HTTP_201_CREATED)
async def create_farm(payload: FarmCreate, _: str = Depends(basic_auth)) -> Dict[str, Any]:
    logger.debug(f"Recebendo payload de fazenda: {payload}")
    return await farm_service.create_farm(payload)


@app.get("/api/v1/farms")
async def list_farms(
    page: int = Query(1),
    limit: int = Query(10),
    search: str = Query("", description="Nome da fazenda ou cidade"),
    state: str = Query("", description="UF"),
    crop: str = Query("", description="Nome da cultura"),
    producer_id: str = Query(""),
    sort: str = Query("-created_at"),
    _: str = Depends(basic_auth),
) -> Dict[str, Any]:
    return await farm_service.list_farms(
        page=page, limit=limit, search=search, state=state, crop=crop, producer_id=producer_id, sort=sort
    )


@app.get("/api/v1/farms/{farm_id}")
async def get_farm(farm_id: str = Path(..., description="ID da fazenda"), _: str = Depends(basic_auth)) -> Dict[str, Any]:
    return await farm_service.get_farm(farm_id)


@app.put("/api/v1/farms/{farm_id}")
async def update_farm(payload: FarmUpdate, farm_id: str = Path(..., description="ID da fazenda"), _: str = Depends(basic_auth)) -> Dict[str, Any]:
    logger.debug(f"Atualização de fazenda: farm_id={farm_id}, payload={payload}")
    return await farm_service.update_farm(farm_id, payload)


@app.delete("/api/v1/farms/{farm_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_farm(farm_id: str = Path(..., description="ID da fazenda"), _: str = Depends(basic_auth)) -> None:
    logger.info(f"Solicitação de remoção de fazenda: farm_id={farm_id}")
    await farm_service.delete_farm(farm_id)
    return None


######### Crops (embutidas na fazenda)
@app.post("/api/v1/farms/{farm_id}/crops", status_code=status.HTTP_201_CREATED)
async def add_crop(payload: CropIn, farm_id: str = Path(..., description="ID da fazenda"), _: str = Depends(basic_auth)) -> Dict[str, Any]:
    return await farm_service.add_crop(farm_id, payload)


@app.put("/api/v1/farms/{farm_id}/crops/{crop_id}")
async def update_crop(
    payload: CropIn,
    farm_id: str = Path(..., description="ID da fazenda"),
    crop_id: str = Path(..., description="ID da cultura"),
    _: str = Depends(basic_auth),
) -> Dict[str, Any]:
    return await farm_service.update_crop(farm_id, crop_id, payload)


@app.delete("/api/v1/farms/{farm_id}/crops/{crop_id}")
async def remove_crop(
    farm_id: str = Path(..., description="ID da fazenda"),
    crop_id: str = Path(..., description="ID da cultura"),
    _: str = Depends(basic_auth),
) -> Dict[str, Any]:
    return await farm_service.remove_crop(farm_id, crop_id)


######### Dashboard
@app.get("/api/v1/dashboard/stats")
async def dashboard_stats(_: str = Depends(basic_auth)) -> Dict[str, Any]:
    return await dashboard_service.get_stats()


@app.get("/api/v1/dashboard/farms-by-state")
async def dashboard_farms_by_state(_: str = Depends(basic_auth)) -> List[Dict[str, Any]]:
    return await dashboard_service.farms_by_state()


@app.get("/api/v1/dashboard/crop-distribution")
async def dashboard_crop_distribution(_: str = Depends(basic_auth)) -> List[Dict[str, Any]]:
    return await dashboard_service.crop_distribution()


@app.get("/api/v1/dashboard/land-use")
async def dashboard_land_use(_: str = Depends(basic_auth)) -> Dict[str, Any]:
    return await dashboard_service.land_use()


@app.get("/api/v1/dashboard/farm-size-distribution")
async def dashboard_farm_size_distribution(_: str = Depends(basic_auth)) -> List[Dict[str, Any]]:
    return await dashboard_service.farm_size_distribution()


@app.get("/api/v1/dashboard/growth")
async def dashboard_growth(_: str = Depends(basic_auth)) -> List[Dict[str, Any]]:
    return await dashboard_service.growth()


######### ------------------------------ #########
if __name__ == "__main__":
    """
    Inicializa o servidor Uvicorn para rodar a API.
    """
    logger.info("Starting Uvicorn server on 0.0.0.0:3000")
    uvicorn.run(app, host="0.0.0.0", port=3000)
