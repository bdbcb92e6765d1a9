import os

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPBasicCredentials

from backend.auth import basic


@pytest.fixture(autouse=True)
def fresh_credentials():
    basic.reset_credentials()
    yield
    basic.reset_credentials()


def test_parse_credentials_skips_comments_and_malformed_lines():
    lines = ["# usuario:senha", "", "admin:admin123", "semseparador", ":semusuario", "ops:a:b:c"]
    assert basic.parse_credentials(lines) == {"admin": "admin123", "ops": "a:b:c"}


def test_load_credentials_missing_file(tmp_path):
    assert basic.load_credentials(str(tmp_path / "nao_existe.txt")) == {}


def test_load_credentials_reloads_changed_file(tmp_path):
    path = tmp_path / "basic_auth.txt"
    path.write_text("admin:admin123\n", encoding="utf-8")
    assert basic.load_credentials(str(path)) == {"admin": "admin123"}
    path.write_text("admin:outra\nmaria:segredo\n", encoding="utf-8")
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + 10))
    assert basic.load_credentials(str(path)) == {"admin": "outra", "maria": "segredo"}


@pytest.mark.asyncio
async def test_basic_auth(tmp_path, monkeypatch):
    path = tmp_path / "basic_auth.txt"
    path.write_text("admin:admin123\n", encoding="utf-8")
    monkeypatch.setenv("BASIC_AUTH_CREDENTIALS_FILE", str(path))

    assert await basic.basic_auth(HTTPBasicCredentials(username="admin", password="admin123")) == "admin"
    for username, password in (("admin", "errada"), ("desconhecido", "admin123")):
        with pytest.raises(HTTPException) as exc:
            await basic.basic_auth(HTTPBasicCredentials(username=username, password=password))
        assert exc.value.status_code == 401
