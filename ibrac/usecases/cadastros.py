# ibrac/usecases/cadastros.py
"""
UC: Cadastros básicos (tipos de produto, donos, tipos de entrada/saída, parceiros).
"""

from __future__ import annotations

from typing import Any, Dict, List

from ibrac.config import DB_PATH
from ibrac.domain.errors import ValidacaoError
from ibrac.domain.policies import validar_pct
from ibrac.infra.db import connect
from ibrac.infra.logger import log_database_operation
from ibrac.infra.repositories import AuditRepo, TabelaRepo

CADASTROS = {
    "tipos_produto": "nome",
    "donos_material": "nome",
    "tipos_entrada": "nome",
    "tipos_saida": "nome",
    "parceiros": "razao_social",
}

_PERCENTUAIS = ("perda_padrao_pct", "taxa_operacao_pct")


def criar_cadastro(tabela: str, dados: Dict[str, Any], db_path: str = DB_PATH) -> int:
    """Insere um registro de cadastro, recusando nome (ou código) repetido."""
    if tabela not in CADASTROS:
        raise ValidacaoError(f"Cadastro desconhecido: {tabela}")
    campo = CADASTROS[tabela]
    if not str(dados.get(campo) or "").strip():
        raise ValidacaoError(f"{tabela}: '{campo}' é obrigatório")
    for k in _PERCENTUAIS:
        if k in dados:
            dados[k] = validar_pct(dados[k], k)

    with connect(db_path) as conn:
        repo = TabelaRepo(db_path, tabela, conn=conn)
        if repo.find_by_nome(dados[campo], col=campo):
            raise ValidacaoError(f"{tabela}: '{dados[campo]}' já cadastrado")
        if dados.get("codigo") and repo.find_by("codigo", dados["codigo"]):
            raise ValidacaoError(f"{tabela}: código '{dados['codigo']}' já cadastrado")
        novo_id = repo.insert(dados)
        AuditRepo(db_path, conn=conn).registrar("INSERT", tabela, novo_id, dados)
    log_database_operation(tabela, "INSERT", 1, nome=dados[campo])
    return novo_id


def listar_cadastro(tabela: str, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    if tabela not in CADASTROS:
        raise ValidacaoError(f"Cadastro desconhecido: {tabela}")
    return TabelaRepo(db_path, tabela).get_all(order_by=CADASTROS[tabela])
