# ibrac/usecases/importar.py
"""
UC: Importação e exportação de planilhas.

- run_importar(path, layout): lê o XLSX conforme o layout, resolve nomes em
  chaves estrangeiras (criando os cadastros ausentes se `auto_criar`),
  recusa linhas cujo código já existe e grava cada linha num savepoint,
  de modo que uma linha recusada pelo banco vira erro daquela linha.
- run_exportar(path, tabela): grava as linhas de uma tabela em XLSX.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Dict, List, Optional, Tuple

from ibrac.adapters.planilhas import ColunaPlanilha, escrever_planilha, ler_planilha
from ibrac.config import DB_PATH
from ibrac.domain.errors import ValidacaoError
from ibrac.infra.db import connect
from ibrac.infra.logger import (
    log_database_operation,
    log_file_operation,
    log_system_event,
    log_transaction,
)
from ibrac.infra.repositories import TABELAS, AuditRepo, TabelaRepo

C = ColunaPlanilha

# layout -> (tabela, coluna única, colunas)
LAYOUTS: Dict[str, Tuple[str, str, List[ColunaPlanilha]]] = {
    "tipos_produto": ("tipos_produto", "codigo", [
        C("codigo", "Código", obrigatoria=True),
        C("nome", "Nome", obrigatoria=True),
        C("perda_padrao_pct", "Perda Padrão (%)", "number"),
    ]),
    "donos_material": ("donos_material", "nome", [
        C("nome", "Nome", obrigatoria=True),
        C("documento", "Documento"),
        C("is_ibrac", "É IBRAC", "boolean"),
        C("taxa_operacao_pct", "Taxa Operação (%)", "number"),
    ]),
    "parceiros": ("parceiros", "razao_social", [
        C("razao_social", "Razão Social", obrigatoria=True),
        C("cnpj", "CNPJ"),
        C("is_cliente", "Cliente", "boolean"),
        C("is_fornecedor", "Fornecedor", "boolean"),
        C("is_transportadora", "Transportadora", "boolean"),
    ]),
    "entradas": ("entradas", "codigo", [
        C("codigo", "Código", obrigatoria=True),
        C("data_entrada", "Data Entrada", "date", obrigatoria=True),
        C("tipo_entrada_id", "Tipo Entrada", lookup=("tipos_entrada", "nome")),
        C("tipo_produto_id", "Tipo Produto", lookup=("tipos_produto", "nome")),
        C("dono_id", "Dono", lookup=("donos_material", "nome")),
        C("parceiro_id", "Fornecedor", lookup=("parceiros", "razao_social")),
        C("peso_bruto_kg", "Peso Bruto (kg)", "number"),
        C("peso_liquido_kg", "Peso Líquido (kg)", "number", obrigatoria=True),
        C("valor_unitario", "Valor Unitário (R$)", "number"),
        C("valor_total", "Valor Total (R$)", "number"),
        C("nota_fiscal", "Nota Fiscal"),
        C("observacoes", "Observações"),
    ]),
    "sublotes": ("sublotes", "codigo", [
        C("codigo", "Código", obrigatoria=True),
        C("peso_kg", "Peso (kg)", "number", obrigatoria=True),
        C("tipo_produto_id", "Tipo Produto", lookup=("tipos_produto", "nome")),
        C("dono_id", "Dono", lookup=("donos_material", "nome")),
        C("entrada_id", "Entrada", lookup=("entradas", "codigo")),
        C("lote_pai_id", "Lote Pai", lookup=("sublotes", "codigo")),
        C("custo_unitario_total", "Custo Unitário (R$/kg)", "number"),
        C("observacoes", "Observações"),
    ]),
}

# Campo de nome usado ao criar automaticamente um cadastro referenciado
_AUTO_CRIAVEIS = {
    "tipos_entrada": "nome",
    "tipos_produto": "nome",
    "donos_material": "nome",
    "parceiros": "razao_social",
}


def _resolver(conn: sqlite3.Connection, db_path: str, col: ColunaPlanilha, valor: Any,
              auto_criar: bool, criados: List[str]) -> int:
    tabela, campo = col.lookup
    repo = TabelaRepo(db_path, tabela, conn=conn)
    achado = repo.find_by_nome(str(valor), col=campo)
    if achado:
        return int(achado["id"])
    if not auto_criar or tabela not in _AUTO_CRIAVEIS:
        raise ValidacaoError(f'"{valor}" não encontrado em {tabela}')
    novo_id = repo.insert({_AUTO_CRIAVEIS[tabela]: str(valor).strip()})
    criados.append(f"{tabela}:{valor}")
    log_database_operation(tabela, "INSERT", 1, auto_criado=str(valor))
    return novo_id


def run_importar(path: str, layout: str, auto_criar: bool = False, db_path: str = DB_PATH) -> Dict[str, Any]:
    """Importa a planilha. Linhas inválidas não impedem as demais.

    Returns:
        dict com `inseridos`, `duplicados` (códigos recusados), `erros`
        (mensagens por linha) e `criados` (cadastros auto-criados).
    """
    if layout not in LAYOUTS:
        raise ValidacaoError(f"Layout desconhecido: {layout} (use {', '.join(LAYOUTS)})")
    tabela, chave, colunas = LAYOUTS[layout]
    log_system_event("importar_start", {"file_path": path, "layout": layout})
    log_file_operation("import", path)
    try:
        linhas, erros = ler_planilha(path, colunas)
        duplicados: List[str] = []
        criados: List[str] = []
        inseridos = 0
        with connect(db_path) as conn:
            repo = TabelaRepo(db_path, tabela, conn=conn)
            vistos = set()
            for rec in linhas:
                linha = rec.pop("_linha")
                codigo = str(rec[chave])
                if codigo.lower() in vistos or repo.find_by_nome(codigo, col=chave):
                    duplicados.append(codigo)
                    continue
                if tabela == "entradas" and rec.get("valor_total") is None and rec.get("valor_unitario") is not None:
                    rec["valor_total"] = rec["valor_unitario"] * rec["peso_liquido_kg"]
                # cada linha num savepoint: uma linha recusada pelo banco não derruba as demais
                novos: List[str] = []
                conn.execute("SAVEPOINT linha_importada")
                try:
                    for col in colunas:
                        if col.lookup and rec.get(col.coluna_db) is not None:
                            rec[col.coluna_db] = _resolver(conn, db_path, col, rec[col.coluna_db], auto_criar, novos)
                    repo.insert({k: v for k, v in rec.items() if v is not None})
                except (ValidacaoError, sqlite3.IntegrityError) as e:
                    conn.execute("ROLLBACK TO SAVEPOINT linha_importada")
                    conn.execute("RELEASE SAVEPOINT linha_importada")
                    erros.append(f"Linha {linha}: {e}")
                    continue
                conn.execute("RELEASE SAVEPOINT linha_importada")
                criados.extend(novos)
                vistos.add(codigo.lower())
                inseridos += 1
            AuditRepo(db_path, conn=conn).registrar("IMPORT", tabela, None, {
                "arquivo": path, "inseridos": inseridos, "duplicados": duplicados, "criados": criados,
            })

        log_file_operation("import", path, rows_processed=inseridos, duplicados=len(duplicados), erros=len(erros))
        result = {"arquivo": path, "inseridos": inseridos, "duplicados": duplicados, "erros": erros, "criados": criados}
        log_transaction("importar", {"file": path, "layout": layout}, result=inseridos)
        return result
    except Exception as e:
        log_transaction("importar", {"file": path, "layout": layout}, error=str(e))
        log_system_event("importar_error", {"file_path": path, "error": str(e)}, level="error")
        raise


def run_exportar(path: str, tabela: str, db_path: str = DB_PATH, linhas: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """Exporta uma tabela (ou as `linhas` informadas) para XLSX."""
    if linhas is None:
        if tabela not in TABELAS:
            raise ValidacaoError(f"Tabela desconhecida: {tabela}")
        linhas = TabelaRepo(db_path, tabela).get_all()
    n = escrever_planilha(path, linhas, aba=tabela[:31])
    log_file_operation("export", path, rows_processed=n, tabela=tabela)
    return {"arquivo": path, "linhas": n}
