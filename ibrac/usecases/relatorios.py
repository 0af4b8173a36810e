# ibrac/usecases/relatorios.py
"""
Relatórios:
- estoque disponível por produto (com economia vs LME)
- resultado da IBRAC (lucro na perda, serviços, comissões)
- demonstrativo de operações por dono de material
- repasses pendentes por dono

Cada relatório devolve (colunas, linhas, mensagem) para exibição tabular.
"""

from __future__ import annotations

from datetime import date
from typing import Any, List, Optional, Tuple

from ibrac.config import DB_PATH
from ibrac.domain.cenarios import INDUSTRIALIZACAO, OPERACAO_TERCEIRO, formatar_cenario
from ibrac.domain.formulas import economia_vs_lme
from ibrac.infra.db import connect
from ibrac.infra.logger import log_database_operation, log_system_event
from ibrac.infra.migrations import apply_migrations
from ibrac.infra.repositories import LmeRepo, TabelaRepo
from ibrac.infra.views import create_views

Relatorio = Tuple[List[str], List[List[Any]], Optional[str]]


def _preparar(db_path: str) -> None:
    apply_migrations(db_path)
    create_views(db_path)
    log_database_operation("views", "CREATE", 0)


# ----------------------
# 1) Estoque por produto
# ----------------------

def relatorio_estoque(db_path: str = DB_PATH) -> Relatorio:
    """Saldo disponível por produto e economia de produzir vs comprar na LME."""
    log_system_event("relatorio_estoque_start", {"db_path": db_path})
    _preparar(db_path)
    lme = LmeRepo(db_path).cobre_brl_kg_ate(date.today().isoformat()) or 0.0
    with connect(db_path) as c:
        itens = [dict(r) for r in c.execute("SELECT * FROM vw_estoque_por_produto ORDER BY produto_codigo")]

    columns = ["Código", "Produto", "Lotes", "Peso (kg)", "Custo médio (R$/kg)", "Economia vs LME (R$)"]
    rows = []
    for r in itens:
        _, economia = economia_vs_lme(r["peso_kg"], r["custo_medio_kg"], lme)
        rows.append([
            r["produto_codigo"], r["produto_nome"], r["qtd_sublotes"],
            r["peso_kg"], r["custo_medio_kg"], economia,
        ])
    log_system_event("relatorio_estoque_success", {"produtos": len(rows), "lme_kg": lme})
    return columns, rows, None if rows else "Nenhum lote disponível em estoque."


# ----------------------
# 2) Resultado IBRAC
# ----------------------

def relatorio_resultado_ibrac(db_path: str = DB_PATH) -> Relatorio:
    """Lucro na perda dos beneficiamentos + receitas de serviço e comissões."""
    log_system_event("relatorio_resultado_start", {"db_path": db_path})
    _preparar(db_path)
    with connect(db_path) as c:
        lucro = c.execute(
            """
            SELECT COUNT(*), COALESCE(SUM(lucro_perda_kg), 0), COALESCE(SUM(lucro_perda_valor), 0)
            FROM beneficiamentos WHERE status = 'finalizado'
            """
        ).fetchone()
        receitas = {r["cenario"]: dict(r) for r in c.execute("SELECT * FROM vw_resultado_ibrac")}

    columns = ["Origem", "Qtd", "Valor (R$)"]
    rows: List[List[Any]] = [["Lucro na perda", lucro[0], float(lucro[2])]]
    for cenario, label in ((INDUSTRIALIZACAO, "Serviço de industrialização"), (OPERACAO_TERCEIRO, "Comissões")):
        r = receitas.pop(cenario, None)
        rows.append([label, r["qtd_acertos"] if r else 0, float(r["receita"]) if r else 0.0])
    for cenario, r in receitas.items():
        rows.append([formatar_cenario(cenario), r["qtd_acertos"], float(r["receita"])])
    rows.append(["Total", "", sum(float(r[2]) for r in rows)])
    log_system_event("relatorio_resultado_success", {"total": rows[-1][2]})
    return columns, rows, None


# ----------------------
# 3) Demonstrativo por dono
# ----------------------

def relatorio_demonstrativo(dono_id: int, db_path: str = DB_PATH) -> Relatorio:
    """Saídas com lotes do dono: valores, custos, comissão e repasse."""
    log_system_event("relatorio_demonstrativo_start", {"dono_id": dono_id})
    _preparar(db_path)
    dono = TabelaRepo(db_path, "donos_material").get(dono_id)
    with connect(db_path) as c:
        itens = [dict(r) for r in c.execute(
            """
            SELECT s.codigo, s.data_saida, s.cenario_operacao, s.peso_total_kg, s.valor_total,
                   s.custos_cobrados, s.comissao_ibrac, s.valor_repasse_dono,
                   (SELECT a.status FROM acertos_financeiros a
                     WHERE a.referencia_tipo = 'saida' AND a.referencia_id = s.id AND a.tipo = 'divida'
                     LIMIT 1) AS status_repasse
            FROM saidas s
            WHERE s.id IN (
                SELECT i.saida_id FROM saida_itens i JOIN sublotes l ON l.id = i.sublote_id
                WHERE l.dono_id = ?
            )
            ORDER BY s.data_saida, s.id
            """,
            (dono_id,),
        )]

    columns = ["Saída", "Data", "Cenário", "Peso (kg)", "Valor bruto", "Custos", "Comissão", "Repasse", "Status"]
    rows = [
        [
            r["codigo"], r["data_saida"], formatar_cenario(r["cenario_operacao"]), r["peso_total_kg"],
            r["valor_total"], r["custos_cobrados"], r["comissao_ibrac"], r["valor_repasse_dono"],
            r["status_repasse"] or "-",
        ]
        for r in itens
    ]
    msg = None if rows else f"Nenhuma saída com material de {dono['nome']}."
    return columns, rows, msg


# ----------------------
# 4) Repasses pendentes
# ----------------------

def relatorio_repasses(db_path: str = DB_PATH) -> Relatorio:
    _preparar(db_path)
    with connect(db_path) as c:
        itens = [dict(r) for r in c.execute("SELECT * FROM vw_repasses_pendentes ORDER BY total DESC")]
    columns = ["Dono", "Acertos", "Total (R$)"]
    rows = [[r["dono_nome"], r["qtd_acertos"], float(r["total"])] for r in itens]
    return columns, rows, None if rows else "Nenhum repasse pendente."
