from datetime import date
from math import isclose

import pytest
import requests

from ibrac.domain.errors import LmeApiError, ValidacaoError
from ibrac.infra.lme_client import MetalsApiClient
from ibrac.infra.repositories import AuditRepo, LmeRepo
from ibrac.usecases.lme import atualizar_lme, configurar_semana, historico_lme, lme_para_data

USD = {"status": "success", "metals": {"copper": 9500.123, "aluminum": 2500.0, "zinc": 2800.0}}
BRL = {"status": "success", "metals": {"copper": 52250.6765}}


def _client(monkeypatch, respostas):
    def fake_get(self, currency):
        r = respostas[currency]
        if isinstance(r, Exception):
            raise r
        return r

    monkeypatch.setattr(MetalsApiClient, "_get", fake_get)
    return MetalsApiClient(api_key="teste")


def test_fetch_latest_converte_para_brl(monkeypatch):
    rec = _client(monkeypatch, {"USD": USD, "BRL": BRL}).fetch_latest()
    assert rec["data"] == date.today().isoformat()
    assert rec["cobre_usd_t"] == 9500.12
    assert rec["aluminio_usd_t"] == 2500.0
    assert rec["niquel_usd_t"] is None
    assert isclose(rec["dolar_brl"], 5.5, abs_tol=1e-4)
    assert isclose(rec["cobre_brl_kg"], 52.25, abs_tol=1e-3)
    assert rec["fonte"] == "api"


def test_fetch_latest_cambio_padrao_quando_brl_falha(monkeypatch):
    rec = _client(monkeypatch, {"USD": USD, "BRL": LmeApiError("timeout")}).fetch_latest()
    assert rec["dolar_brl"] == 5.4


def test_fetch_latest_erros(monkeypatch):
    with pytest.raises(LmeApiError, match="METALS_API_KEY"):
        MetalsApiClient(api_key=None).fetch_latest()
    with pytest.raises(LmeApiError, match="cobre"):
        _client(monkeypatch, {"USD": {"status": "success", "metals": {}}, "BRL": BRL}).fetch_latest()
    with pytest.raises(LmeApiError, match="erro"):
        _client(monkeypatch, {"USD": {"status": "failure", "error_message": "invalid key"}, "BRL": BRL}).fetch_latest()


def test_get_converte_falha_http(monkeypatch):
    def fake_requests_get(*a, **kw):
        raise requests.ConnectionError("sem rede")

    monkeypatch.setattr(requests, "get", fake_requests_get)
    with pytest.raises(LmeApiError, match="USD"):
        MetalsApiClient(api_key="teste")._get("USD")


def test_atualizar_lme_insere_e_atualiza(db, monkeypatch):
    client = _client(monkeypatch, {"USD": USD, "BRL": BRL})
    primeiro = atualizar_lme(client, db_path=db)
    segundo = atualizar_lme(client, db_path=db)
    assert (primeiro["acao"], segundo["acao"]) == ("insert", "update")
    assert primeiro["id"] == segundo["id"]
    assert len(historico_lme(db_path=db)) == 1
    assert isclose(lme_para_data(db_path=db), 52.25, abs_tol=1e-3)
    assert [a["action"] for a in AuditRepo(db).listar("historico_lme")] == ["UPDATE", "INSERT"]


def test_lme_para_data_pega_cotacao_anterior(db):
    repo = LmeRepo(db)
    repo.insert({"data": "2025-03-03", "cobre_brl_kg": 50.0})
    repo.insert({"data": "2025-03-05", "cobre_brl_kg": 51.0})
    assert lme_para_data("2025-03-04", db_path=db) == 50.0
    assert lme_para_data("2025-03-05", db_path=db) == 51.0
    assert lme_para_data("2025-03-01", db_path=db) is None


def test_configurar_semana(db):
    rec = configurar_semana(2025, 10, 9500, 5.5, icms_pct=7, pis_cofins_pct=1.65, taxa_financeira_pct=1.8, db_path=db)
    assert (rec["data_inicio"], rec["data_fim"]) == ("2025-03-03", "2025-03-09")
    assert isclose(rec["lme_base_brl_kg"], 52.25)
    assert isclose(rec["fator_total"], 1.07 * 1.0165 * 1.018)
    assert isclose(rec["lme_final_brl_kg"], 52.25 * 1.07 * 1.0165 * 1.018)

    outra = configurar_semana(2025, 10, 9000, 5.5, db_path=db)
    assert outra["id"] == rec["id"]
    # percentuais omitidos vêm dos parâmetros padrão
    assert outra["icms_pct"] == 7.0
    assert LmeRepo(db).semana(2025, 10)["lme_cobre_usd_t"] == 9000


def test_configurar_semana_invalida(db):
    with pytest.raises(ValidacaoError, match="Semana inválida"):
        configurar_semana(2025, 54, 9500, 5.5, db_path=db)
    with pytest.raises(ValidacaoError):
        configurar_semana(2025, 10, 9500, 5.5, icms_pct=120, db_path=db)
