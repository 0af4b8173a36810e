# ibrac/usecases/parametros.py
"""
UC: parâmetros globais (taxa financeira, perdas, impostos da LME).

Os valores vivem na tabela `params`; chaves sem valor usam `DEFAULTS`.
"""

from __future__ import annotations

import sqlite3
from typing import Dict, Optional

from ibrac.config import DB_PATH, DEFAULTS, PARAM_KEYS
from ibrac.domain.errors import ValidacaoError
from ibrac.domain.models import Params
from ibrac.domain.policies import validar_pct
from ibrac.infra.db import connect
from ibrac.infra.logger import log_database_operation, log_system_event
from ibrac.infra.repositories import AuditRepo, ParamsRepo


def carregar_params(db_path: str = DB_PATH, conn: Optional[sqlite3.Connection] = None) -> Params:
    repo = ParamsRepo(db_path, conn=conn)
    return Params(**{k: repo.get_float(k, getattr(DEFAULTS, k)) for k in PARAM_KEYS})


def definir_params(valores: Dict[str, float], db_path: str = DB_PATH) -> Params:
    """Grava um ou mais parâmetros (todos percentuais entre 0 e 100)."""
    desconhecidas = [k for k in valores if k not in PARAM_KEYS]
    if desconhecidas:
        raise ValidacaoError(f"Parâmetro desconhecido: {', '.join(desconhecidas)}")
    itens = [(k, str(validar_pct(v, k))) for k, v in valores.items()]

    with connect(db_path) as conn:
        ParamsRepo(db_path, conn=conn).set_many(itens)
        AuditRepo(db_path, conn=conn).registrar("UPDATE", "params", None, dict(itens))
    log_database_operation("params", "UPSERT", len(itens))
    log_system_event("params_updated", dict(itens))
    return carregar_params(db_path)
