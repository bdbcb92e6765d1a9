import streamlit as st
import httpx
import os
from typing import Optional, Tuple, Any

from backend.api.schemas import BRAZILIAN_STATES, CROP_NAMES
from backend.utils.document_utils import DocumentUtils

API_BASE = os.getenv("API_BASE", "http://api:3000")  # service name in docker network (docker compose network)
API_V1 = f"{API_BASE}/api/v1"

st.set_page_config(page_title="Produtores Rurais", page_icon="🌾", layout="wide")

# -------------- Helpers --------------
def current_auth() -> Optional[Tuple[str, str]]:
    return st.session_state.get("auth")

async def fetch_json(client: httpx.AsyncClient, method: str, url: str, **kwargs):
    auth = kwargs.pop("auth", current_auth())
    try:
        resp = await client.request(method, url, auth=auth, timeout=10, **kwargs)
        if resp.headers.get("content-type", "").startswith("application/json"):
            data = resp.json()
        else:
            data = {"raw": resp.text}
        if resp.is_error:
            return False, data, resp.status_code
        return True, data, resp.status_code
    except Exception as e:
        return False, {"error": str(e)}, 0

def error_detail(data: Any) -> Any:
    if isinstance(data, dict):
        errors = data.get("errors")
        if errors:
            return "; ".join(f"{e.get('field')}: {e.get('message')}" for e in errors)
        return data.get("detail") or data.get("error") or data
    return data

def show_error(status: int, data: Any) -> None:
    detail = error_detail(data)
    if status == 409:
        st.error(f"Conflito: {detail}")
    elif status == 400:
        st.error(f"Dados inválidos: {detail}")
    elif status == 404:
        st.warning(f"Não encontrado: {detail}")
    else:
        st.error(f"Erro ({status}): {detail}")

async def list_producers(client, page: int, search: str):
    return await fetch_json(client, "GET", f"{API_V1}/producers", params={"page": page, "limit": 10, "search": search})

async def create_producer(client, payload: dict):
    return await fetch_json(client, "POST", f"{API_V1}/producers", json=payload)

async def check_document(client, digits: str):
    return await fetch_json(client, "GET", f"{API_V1}/producers/validate/cpf-cnpj/{digits}")

async def delete_producer(client, producer_id: str):
    return await fetch_json(client, "DELETE", f"{API_V1}/producers/{producer_id}")

async def list_farms(client, page: int, search: str, state: str, crop: str):
    params = {"page": page, "limit": 10, "search": search, "state": state, "crop": crop}
    return await fetch_json(client, "GET", f"{API_V1}/farms", params=params)

async def create_farm(client, payload: dict):
    return await fetch_json(client, "POST", f"{API_V1}/farms", json=payload)

async def delete_farm(client, farm_id: str):
    return await fetch_json(client, "DELETE", f"{API_V1}/farms/{farm_id}")

async def add_crop(client, farm_id: str, payload: dict):
    return await fetch_json(client, "POST", f"{API_V1}/farms/{farm_id}/crops", json=payload)

async def remove_crop(client, farm_id: str, crop_id: str):
    return await fetch_json(client, "DELETE", f"{API_V1}/farms/{farm_id}/crops/{crop_id}")

async def dashboard(client, name: str):
    return await fetch_json(client, "GET", f"{API_V1}/dashboard/{name}")

# -------------- UI Sections --------------
st.title("🌾 Cadastro de Produtores Rurais")
st.caption("Produtores, fazendas, culturas e dashboard (login obrigatório)")

import asyncio

async def validate_credentials(user: str, password: str) -> bool:
    """Realiza uma chamada ao endpoint raiz para validar credenciais Basic Auth."""
    async with httpx.AsyncClient() as client:
        try:
            resp = await client.get(f"{API_BASE}/", auth=(user, password), timeout=5)
            return resp.status_code == 200
        except Exception:
            return False

def logout():
    if "auth" in st.session_state:
        st.session_state.pop("auth")
    st.rerun()

def mask_document() -> None:
    # máscara aplicada a cada digitação
    st.session_state["p_doc"] = DocumentUtils.format(st.session_state.get("p_doc", ""))

async def producers_tab(client):
    st.subheader("Produtores")
    col_form, col_list = st.columns([1, 2])

    with col_form:
        st.markdown("**Novo produtor**")
        p_name = st.text_input("Nome", key="p_name")
        p_doc = st.text_input("CPF ou CNPJ", key="p_doc", on_change=mask_document)
        doc_info = DocumentUtils.describe(p_doc)
        if p_doc and doc_info["type"] != "INVALID" and not doc_info["valid"]:
            st.error("CPF/CNPJ inválido (dígitos verificadores).")
        elif doc_info["valid"]:
            cok, cdata, _ = await check_document(client, doc_info["digits"])
            if cok and not cdata.get("available"):
                st.warning(cdata.get("message"))
            else:
                st.caption(f"{doc_info['type']} válido")
        p_email = st.text_input("Email (opcional)", key="p_email")
        p_phone = st.text_input("Telefone (opcional)", key="p_phone")
        if st.button("Cadastrar produtor", type="primary"):
            if not p_name or len(p_name.strip()) < 2:
                st.warning("Nome deve ter pelo menos 2 caracteres.")
            elif not doc_info["valid"]:
                st.warning("Informe um CPF ou CNPJ válido.")
            else:
                payload = {"name": p_name, "cpf_cnpj": doc_info["digits"]}
                if p_email:
                    payload["email"] = p_email
                if p_phone:
                    payload["phone"] = p_phone
                ok, data, status = await create_producer(client, payload)
                if ok:
                    st.success(f"Produtor cadastrado: {data.get('id')}")
                    st.rerun()
                else:
                    show_error(status, data)

    with col_list:
        c1, c2 = st.columns([3, 1])
        with c1:
            search = st.text_input("Buscar por nome ou documento", key="p_search")
        with c2:
            page = st.number_input("Página", min_value=1, value=1, key="p_page")
        ok, data, status = await list_producers(client, int(page), search)
        if not ok:
            show_error(status, data)
            return
        pagination = data.get("pagination", {})
        st.caption(f"Total: {pagination.get('total', 0)} | Páginas: {pagination.get('pages', 0)}")
        if not data.get("items"):
            st.info("Nenhum produtor encontrado.")
        for p in data.get("items", []):
            label = f"{p.get('name')} | {p.get('cpf_cnpj_formatted')} ({p.get('farm_count', 0)} fazendas)"
            with st.expander(label):
                st.json(p)
                if st.button("Excluir", key=f"del_p_{p['id']}"):
                    dok, ddata, dstatus = await delete_producer(client, p["id"])
                    if dok:
                        st.warning(f"Produtor {p['id']} removido")
                        st.rerun()
                    else:
                        show_error(dstatus, ddata)

async def farms_tab(client):
    st.subheader("Fazendas")
    col_form, col_list = st.columns([1, 2])

    with col_form:
        st.markdown("**Nova fazenda**")
        f_producer = st.text_input("ID do produtor", key="f_producer")
        f_name = st.text_input("Nome da fazenda", key="f_name")
        c1, c2 = st.columns([2, 1])
        with c1:
            f_city = st.text_input("Cidade", key="f_city")
        with c2:
            f_state = st.selectbox("UF", BRAZILIAN_STATES, key="f_state")
        f_total = st.number_input("Área total (ha)", min_value=0.0, value=100.0, key="f_total")
        f_agri = st.number_input("Área agricultável (ha)", min_value=0.0, value=60.0, key="f_agri")
        f_veg = st.number_input("Área de vegetação (ha)", min_value=0.0, value=30.0, key="f_veg")
        if f_agri + f_veg > f_total:
            st.error("A soma das áreas agricultável e de vegetação não pode exceder a área total.")
        f_crops = st.multiselect("Culturas", CROP_NAMES, key="f_crops")
        f_harvest = st.text_input("Safra (AAAA)", key="f_harvest")
        if st.button("Cadastrar fazenda", type="primary"):
            if f_agri + f_veg > f_total:
                st.warning("Corrija as áreas antes de enviar.")
            else:
                payload = {
                    "producer_id": f_producer,
                    "name": f_name,
                    "city": f_city,
                    "state": f_state,
                    "total_area": f_total,
                    "agricultural_area": f_agri,
                    "vegetation_area": f_veg,
                    "crops": [{"name": c, "harvest": f_harvest} for c in f_crops],
                }
                ok, data, status = await create_farm(client, payload)
                if ok:
                    st.success(f"Fazenda cadastrada: {data.get('id')}")
                    st.rerun()
                else:
                    show_error(status, data)

    with col_list:
        c1, c2, c3, c4 = st.columns([2, 1, 1, 1])
        with c1:
            search = st.text_input("Buscar por nome ou cidade", key="f_search")
        with c2:
            state = st.selectbox("UF", [""] + BRAZILIAN_STATES, key="f_filter_state")
        with c3:
            crop = st.selectbox("Cultura", [""] + CROP_NAMES, key="f_filter_crop")
        with c4:
            page = st.number_input("Página", min_value=1, value=1, key="f_page")
        ok, data, status = await list_farms(client, int(page), search, state, crop)
        if not ok:
            show_error(status, data)
            return
        if not data.get("items"):
            st.info("Nenhuma fazenda encontrada.")
        for f in data.get("items", []):
            label = f"{f.get('name')} | {f.get('city')}/{f.get('state')} ({f.get('producer_name')})"
            with st.expander(label):
                st.write(f"Área total: {f.get('total_area')} ha | Agricultável: {f.get('agricultural_area')} ha | Vegetação: {f.get('vegetation_area')} ha")
                for crop_item in f.get("crops", []):
                    cc1, cc2 = st.columns([3, 1])
                    with cc1:
                        st.write(f"• {crop_item.get('name')} ({crop_item.get('harvest')})")
                    with cc2:
                        if st.button("Remover", key=f"del_c_{f['id']}_{crop_item['id']}"):
                            rok, rdata, rstatus = await remove_crop(client, f["id"], crop_item["id"])
                            if rok:
                                st.rerun()
                            else:
                                show_error(rstatus, rdata)
                nc1, nc2, nc3 = st.columns([2, 1, 1])
                with nc1:
                    new_crop = st.selectbox("Cultura", CROP_NAMES, key=f"new_crop_{f['id']}")
                with nc2:
                    new_harvest = st.text_input("Safra", key=f"new_harvest_{f['id']}")
                with nc3:
                    if st.button("Adicionar", key=f"add_c_{f['id']}"):
                        aok, adata, astatus = await add_crop(client, f["id"], {"name": new_crop, "harvest": new_harvest})
                        if aok:
                            st.rerun()
                        else:
                            show_error(astatus, adata)
                if st.button("Excluir fazenda", key=f"del_f_{f['id']}"):
                    dok, ddata, dstatus = await delete_farm(client, f["id"])
                    if dok:
                        st.warning(f"Fazenda {f['id']} removida")
                        st.rerun()
                    else:
                        show_error(dstatus, ddata)

async def dashboard_tab(client):
    st.subheader("Dashboard")
    ok, stats, status = await dashboard(client, "stats")
    if not ok:
        show_error(status, stats)
        return
    m1, m2, m3, m4 = st.columns(4)
    m1.metric("Fazendas", stats.get("total_farms", 0))
    m2.metric("Produtores", stats.get("total_producers", 0))
    m3.metric("Hectares", stats.get("total_hectares", 0))
    m4.metric("Tamanho médio (ha)", stats.get("average_farm_size", 0))

    c1, c2 = st.columns(2)
    with c1:
        st.markdown("**Fazendas por estado**")
        if stats.get("farms_by_state"):
            st.bar_chart([{"UF": k, "Fazendas": v} for k, v in stats["farms_by_state"].items()], x="UF", y="Fazendas")
        else:
            st.info("Sem dados.")
    with c2:
        st.markdown("**Fazendas por cultura**")
        if stats.get("farms_by_crop"):
            st.bar_chart([{"Cultura": k, "Fazendas": v} for k, v in stats["farms_by_crop"].items()], x="Cultura", y="Fazendas")
        else:
            st.info("Sem dados.")

    ok, land_use, status = await dashboard(client, "land-use")
    if ok:
        st.markdown("**Uso do solo**")
        st.bar_chart(
            [
                {"Uso": "Agricultável", "Hectares": land_use.get("agricultural_area", 0)},
                {"Uso": "Vegetação", "Hectares": land_use.get("vegetation_area", 0)},
                {"Uso": "Não utilizada", "Hectares": land_use.get("unused_area", 0)},
            ],
            x="Uso",
            y="Hectares",
        )
        st.caption(f"Agricultável: {land_use.get('agricultural_percentage', 0)}% | Vegetação: {land_use.get('vegetation_percentage', 0)}%")

    ok, sizes, status = await dashboard(client, "farm-size-distribution")
    if ok and sizes:
        st.markdown("**Fazendas por tamanho**")
        st.bar_chart([{"Faixa": s["range"], "Fazendas": s["count"]} for s in sizes], x="Faixa", y="Fazendas")

    ok, growth, status = await dashboard(client, "growth")
    if ok and growth:
        st.markdown("**Crescimento acumulado de fazendas**")
        st.line_chart([{"Mês": g["date"], "Fazendas": g["cumulative_farms"]} for g in growth], x="Mês", y="Fazendas")

async def main_ui():
    # Gating de autenticação
    if "auth" not in st.session_state:
        with st.container():
            st.subheader("🔐 Login")
            with st.form("login_form", clear_on_submit=False):
                user = st.text_input("Usuário", key="login_user")
                pwd = st.text_input("Senha", type="password", key="login_pwd")
                submitted = st.form_submit_button("Entrar")
                if submitted:
                    if not user or not pwd:
                        st.warning("Preencha usuário e senha.")
                    else:
                        ok = await validate_credentials(user, pwd)
                        if ok:
                            st.session_state["auth"] = (user, pwd)
                            st.success("Autenticado com sucesso.")
                            st.rerun()
                        else:
                            st.error("Credenciais inválidas ou serviço indisponível.")
        st.stop()

    auth_user = st.session_state.get("auth")[0]
    st.sidebar.markdown(f"**Usuário:** {auth_user}")
    st.sidebar.button("Sair", on_click=logout)

    async with httpx.AsyncClient() as client:
        tabs = st.tabs(["Produtores", "Fazendas", "Dashboard", "Sobre"])
        with tabs[0]:
            await producers_tab(client)
        with tabs[1]:
            await farms_tab(client)
        with tabs[2]:
            await dashboard_tab(client)
        with tabs[3]:
            st.subheader("Sobre o Projeto")
            st.markdown(
                """
                **Produtores Rurais** – Interface de apoio para a API.
                - Cadastro de produtores com validação de CPF/CNPJ
                - Fazendas, áreas e culturas por safra
                - Dashboard por estado, cultura e uso do solo
                """
            )
            st.caption("Construído com Streamlit + httpx (async)")

asyncio.run(main_ui())
