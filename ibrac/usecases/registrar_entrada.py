# ibrac/usecases/registrar_entrada.py
"""
UC: Registrar ENTRADA de material.

Cria o documento de entrada e um sublote por volume (ticket de balança).
Todos os lotes nascem `disponivel`. Quando o tipo de entrada gera custo,
o custo unitário dos lotes é valor do documento / peso líquido; remessas
para industrialização entram com custo zero.

`excluir_entrada()` desfaz um registro enquanto nenhum lote saiu do estoque.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from ibrac.config import DB_PATH
from ibrac.domain.errors import ValidacaoError
from ibrac.domain.models import StatusSublote
from ibrac.domain.policies import validar_nao_negativo
from ibrac.infra.db import connect
from ibrac.infra.logger import log_database_operation, log_system_event, log_transaction
from ibrac.infra.repositories import (
    AuditRepo,
    EntradaRepo,
    SaidaRepo,
    SubloteRepo,
    TabelaRepo,
    TransferenciaRepo,
)


def run_registrar_entrada(
    volumes: Sequence[float],
    data_entrada: Optional[str] = None,
    tipo_entrada_id: Optional[int] = None,
    tipo_produto_id: Optional[int] = None,
    dono_id: Optional[int] = None,
    parceiro_id: Optional[int] = None,
    valor_total: Optional[float] = None,
    valor_unitario: Optional[float] = None,
    nota_fiscal: Optional[str] = None,
    codigo: Optional[str] = None,
    observacoes: Optional[str] = None,
    db_path: str = DB_PATH,
) -> Dict[str, Any]:
    """Registra a entrada e seus volumes numa única transação.

    `valor_total` tem precedência; sem ele, usa `valor_unitario * peso`.
    """
    log_system_event("registrar_entrada_start", {"volumes": list(volumes), "codigo": codigo})
    try:
        pesos = [validar_nao_negativo(v, "peso do volume") for v in volumes]
        if not pesos or sum(pesos) <= 0:
            raise ValidacaoError("Informe ao menos um volume com peso")
        peso_liquido = sum(pesos)
        data_entrada = data_entrada or date.today().isoformat()
        if valor_total is None:
            valor_total = validar_nao_negativo(valor_unitario, "valor unitário") * peso_liquido
        valor_total = validar_nao_negativo(valor_total, "valor total")

        with connect(db_path) as conn:
            entradas = EntradaRepo(db_path, conn=conn)
            sublotes = SubloteRepo(db_path, conn=conn)

            gera_custo = True
            if tipo_entrada_id is not None:
                gera_custo = bool(TabelaRepo(db_path, "tipos_entrada", conn=conn).get(tipo_entrada_id)["gera_custo"])
            for tabela, rid in (("tipos_produto", tipo_produto_id), ("donos_material", dono_id), ("parceiros", parceiro_id)):
                if rid is not None:
                    TabelaRepo(db_path, tabela, conn=conn).get(rid)

            if codigo is None:
                codigo = entradas.proximo_codigo("ENT-" + data_entrada.replace("-", ""))
            elif entradas.find_by("codigo", codigo):
                raise ValidacaoError(f"Já existe uma entrada com o código {codigo}")

            entrada_id = entradas.insert({
                "codigo": codigo,
                "data_entrada": data_entrada,
                "tipo_entrada_id": tipo_entrada_id,
                "tipo_produto_id": tipo_produto_id,
                "dono_id": dono_id,
                "parceiro_id": parceiro_id,
                "peso_bruto_kg": peso_liquido,
                "peso_liquido_kg": peso_liquido,
                "valor_unitario": valor_total / peso_liquido,
                "valor_total": valor_total,
                "nota_fiscal": nota_fiscal,
                "status": "recebida",
                "observacoes": observacoes,
            })

            custo_kg = valor_total / peso_liquido if gera_custo else 0.0
            criados: List[Dict[str, Any]] = []
            for n, peso in enumerate(pesos, start=1):
                row = {
                    "codigo": f"{codigo}-V{n:02d}",
                    "peso_kg": peso,
                    "status": StatusSublote.DISPONIVEL,
                    "tipo_produto_id": tipo_produto_id,
                    "dono_id": dono_id,
                    "entrada_id": entrada_id,
                    "custo_unitario_total": custo_kg,
                    "numero_volume": n,
                }
                row["id"] = sublotes.insert(row)
                criados.append(row)

            AuditRepo(db_path, conn=conn).registrar("INSERT", "entradas", entrada_id, {
                "codigo": codigo, "peso_liquido_kg": peso_liquido, "valor_total": valor_total,
                "volumes": len(pesos),
            })

        log_database_operation("entradas", "INSERT", 1, codigo=codigo)
        log_database_operation("sublotes", "INSERT_MANY", len(criados), entrada=codigo)
        result = {"entrada_id": entrada_id, "codigo": codigo, "peso_liquido_kg": peso_liquido, "sublotes": criados}
        log_transaction("registrar_entrada", {"codigo": codigo, "volumes": len(pesos)}, result=entrada_id)
        return result
    except Exception as e:
        log_transaction("registrar_entrada", {"codigo": codigo}, error=str(e))
        log_system_event("registrar_entrada_error", {"error": str(e)}, level="error")
        raise


def _verificar_exclusao(conn, db_path: str, entrada: Dict[str, Any], lotes: List[Dict[str, Any]]) -> None:
    codigo = entrada["codigo"]
    for lote in lotes:
        if lote["status"] != StatusSublote.DISPONIVEL:
            raise ValidacaoError(
                f"Entrada {codigo} não pode ser excluída: lote {lote['codigo']} está {lote['status']}"
            )
    ids = [lote["id"] for lote in lotes]
    vendidos = SaidaRepo(db_path, conn=conn).saidas_dos_sublotes(ids)
    if vendidos:
        raise ValidacaoError(
            f"Entrada {codigo} não pode ser excluída: lote usado na saída {vendidos[0]['codigo']}"
        )
    if TransferenciaRepo(db_path, conn=conn).dos_sublotes(ids):
        raise ValidacaoError(f"Entrada {codigo} não pode ser excluída: há lote transferido de dono")
    if TabelaRepo(db_path, "beneficiamento_entradas", conn=conn).find_by("entrada_id", entrada["id"]):
        raise ValidacaoError(f"Entrada {codigo} não pode ser excluída: documento vinculado a um beneficiamento")


def excluir_entrada(entrada_id: int, db_path: str = DB_PATH) -> Dict[str, Any]:
    """Exclui o documento de entrada e todos os seus lotes.

    Só é permitido enquanto nenhum lote da entrada saiu do estoque: todos
    precisam estar `disponivel`, sem venda, sem transferência de dono e sem
    vínculo com beneficiamento.
    """
    log_system_event("excluir_entrada_start", {"id": entrada_id})
    try:
        with connect(db_path) as conn:
            entradas = EntradaRepo(db_path, conn=conn)
            sublotes = SubloteRepo(db_path, conn=conn)
            entrada = entradas.com_tipo(entrada_id)
            lotes = sublotes.get_all(where={"entrada_id": entrada_id})
            _verificar_exclusao(conn, db_path, entrada, lotes)

            removidos = sublotes.excluir_da_entrada(entrada_id)
            entradas.delete(entrada_id)
            AuditRepo(db_path, conn=conn).registrar("DELETE", "entradas", entrada_id, {
                "codigo": entrada["codigo"],
                "tipo_entrada": entrada["tipo_entrada_nome"],
                "valor_total": entrada["valor_total"],
                "lotes_removidos": [lote["id"] for lote in lotes],
            })

        log_database_operation("sublotes", "DELETE", removidos, entrada=entrada["codigo"])
        log_database_operation("entradas", "DELETE", 1, codigo=entrada["codigo"])
        result = {"codigo": entrada["codigo"], "lotes_removidos": removidos}
        log_transaction("excluir_entrada", {"id": entrada_id}, result=result)
        return result
    except Exception as e:
        log_transaction("excluir_entrada", {"id": entrada_id}, error=str(e))
        log_system_event("excluir_entrada_error", {"error": str(e)}, level="error")
        raise
