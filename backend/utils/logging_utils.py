import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def build_logger(name: str) -> logging.Logger:
    """
    Logger no formato padrão do projeto. Só adiciona handler próprio quando
    nenhum ancestral (ex.: root configurado pelo uvicorn) já possui um.
    """
    logger = logging.getLogger(name)
    logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    if not logger.hasHandlers():
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger
