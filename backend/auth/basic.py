from typing import Dict, Tuple
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
import logging
import os
import secrets

security = HTTPBasic(realm="Produtores Rurais")

DEFAULT_CREDENTIALS_FILE = "backend/credentials/basic_auth.txt"

# (caminho, mtime) do arquivo carregado; recarrega quando o arquivo muda
_loaded_from: Tuple[str, float] = ("", 0.0)
_credentials: Dict[str, str] = {}

logger = logging.getLogger(__name__)


def credentials_file() -> str:
	return os.getenv("BASIC_AUTH_CREDENTIALS_FILE", DEFAULT_CREDENTIALS_FILE)


def reset_credentials() -> None:
	global _loaded_from, _credentials
	_loaded_from = ("", 0.0)
	_credentials = {}


def parse_credentials(lines) -> Dict[str, str]:
	"""
	Lê pares usuario:senha, um por linha. Linhas vazias e comentários (#) são ignorados.
	A senha pode conter ':'; só o primeiro separa o usuário.
	"""
	users: Dict[str, str] = {}
	for number, line in enumerate(lines, start=1):
		line = line.strip()
		if not line or line.startswith("#"):
			continue
		username, sep, password = line.partition(":")
		if not sep or not username.strip():
			logger.warning(f"Linha {number} ignorada no arquivo de credenciais (esperado usuario:senha)")
			continue
		users[username.strip()] = password
	return users


def load_credentials(file_path: str) -> Dict[str, str]:
	global _loaded_from, _credentials
	try:
		mtime = os.path.getmtime(file_path)
	except OSError:
		if _loaded_from[0] != file_path:
			logger.warning(f"Arquivo de credenciais não encontrado: {file_path}")
		_loaded_from, _credentials = (file_path, 0.0), {}
		return _credentials
	if _loaded_from == (file_path, mtime):
		return _credentials
	with open(file_path, "r", encoding="utf-8") as f:
		_credentials = parse_credentials(f)
	_loaded_from = (file_path, mtime)
	logger.info(f"Credenciais carregadas: arquivo={file_path}, usuarios={len(_credentials)}")
	return _credentials


async def basic_auth(credentials: HTTPBasicCredentials = Depends(security)) -> str:
	users = load_credentials(credentials_file())
	expected = users.get(credentials.username)
	valid = secrets.compare_digest((expected or "").encode(), credentials.password.encode())
	if expected is None or not valid:
		logger.warning(f"Falha de autenticação: user={credentials.username}")
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Credenciais inválidas", headers={"WWW-Authenticate": "Basic"})
	return credentials.username
