# ibrac/usecases/lme.py
"""
UC: Cotações LME.

- atualizar_lme(): busca as cotações do dia na API e grava em
  `historico_lme` (insere ou atualiza a linha do dia).
- lme_para_data(): cotação do cobre (R$/kg) vigente numa data.
- configurar_semana(): LME de referência da semana com impostos e custo
  financeiro (`lme_final = lme_base × fator`).
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from ibrac.config import DB_PATH
from ibrac.domain.errors import ValidacaoError
from ibrac.domain.formulas import fator_lme_semana
from ibrac.domain.policies import validar_nao_negativo, validar_pct
from ibrac.infra.db import connect
from ibrac.infra.lme_client import MetalsApiClient
from ibrac.infra.logger import log_database_operation, log_system_event, log_transaction
from ibrac.infra.repositories import AuditRepo, LmeRepo
from ibrac.usecases.parametros import carregar_params


def atualizar_lme(client: Optional[MetalsApiClient] = None, db_path: str = DB_PATH) -> Dict[str, Any]:
    """Grava as cotações de hoje. Retorna o registro e a ação (insert/update)."""
    client = client or MetalsApiClient()
    log_system_event("atualizar_lme_start")
    try:
        rec = client.fetch_latest()
        with connect(db_path) as conn:
            repo = LmeRepo(db_path, conn=conn)
            existente = repo.do_dia(rec["data"])
            if existente:
                repo.update(existente["id"], {k: v for k, v in rec.items() if k != "data"})
                registro_id, acao = existente["id"], "update"
            else:
                registro_id, acao = repo.insert(rec), "insert"
            AuditRepo(db_path, conn=conn).registrar(acao.upper(), "historico_lme", registro_id, rec)
        log_database_operation("historico_lme", acao.upper(), 1, data=rec["data"])
        result = {"id": registro_id, "acao": acao, "registro": rec}
        log_transaction("atualizar_lme", {"data": rec["data"]}, result=acao)
        return result
    except Exception as e:
        log_transaction("atualizar_lme", {}, error=str(e))
        log_system_event("atualizar_lme_error", {"error": str(e)}, level="error")
        raise


def lme_para_data(data: Optional[str] = None, db_path: str = DB_PATH) -> Optional[float]:
    return LmeRepo(db_path).cobre_brl_kg_ate(data or date.today().isoformat())


def historico_lme(limite: int = 30, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    return LmeRepo(db_path).historico(limite)


def configurar_semana(
    ano: int,
    semana: int,
    lme_cobre_usd_t: float,
    dolar_brl: float,
    icms_pct: Optional[float] = None,
    pis_cofins_pct: Optional[float] = None,
    taxa_financeira_pct: Optional[float] = None,
    observacoes: Optional[str] = None,
    db_path: str = DB_PATH,
) -> Dict[str, Any]:
    """Cria ou atualiza a configuração LME da semana ISO (segunda a domingo).

    Percentuais não informados vêm dos parâmetros globais.
    """
    params = carregar_params(db_path)
    icms = validar_pct(params.icms_pct if icms_pct is None else icms_pct, "ICMS")
    pis = validar_pct(params.pis_cofins_pct if pis_cofins_pct is None else pis_cofins_pct, "PIS/COFINS")
    taxa = validar_pct(params.taxa_financeira_pct if taxa_financeira_pct is None else taxa_financeira_pct, "taxa financeira")
    lme_usd = validar_nao_negativo(lme_cobre_usd_t, "LME cobre (US$/t)")
    dolar = validar_nao_negativo(dolar_brl, "dólar")

    try:
        inicio = date.fromisocalendar(int(ano), int(semana), 1)
    except ValueError as e:
        raise ValidacaoError(f"Semana inválida: {ano}/{semana}") from e
    base = lme_usd * dolar / 1000
    fator = fator_lme_semana(icms, pis, taxa)
    rec = {
        "ano": int(ano),
        "semana": int(semana),
        "data_inicio": inicio.isoformat(),
        "data_fim": (inicio + timedelta(days=6)).isoformat(),
        "lme_cobre_usd_t": lme_usd,
        "dolar_brl": dolar,
        "icms_pct": icms,
        "pis_cofins_pct": pis,
        "taxa_financeira_pct": taxa,
        "lme_base_brl_kg": base,
        "fator_total": fator,
        "lme_final_brl_kg": base * fator,
        "observacoes": observacoes,
    }
    with connect(db_path) as conn:
        repo = LmeRepo(db_path, conn=conn)
        existente = repo.semana(rec["ano"], rec["semana"])
        if existente:
            repo.semanas.update(existente["id"], rec)
            rec["id"] = existente["id"]
        else:
            rec["id"] = repo.semanas.insert(rec)
        AuditRepo(db_path, conn=conn).registrar("UPSERT", "lme_semana_config", rec["id"], rec)
    log_database_operation("lme_semana_config", "UPSERT", 1, ano=ano, semana=semana)
    return rec
