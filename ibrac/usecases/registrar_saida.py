# ibrac/usecases/registrar_saida.py
"""
UC: Registrar SAÍDA (venda/consumo/devolução de lotes).

- previa_saida(): classifica a seleção e calcula valores e acertos.
- run_registrar_saida(): grava a saída, os itens, baixa os lotes
  (`vendido`, peso 0) e cria os acertos financeiros do cenário.
- excluir_saida(): devolve os lotes ao estoque e remove os acertos.

Obs.:
- A seleção inteira precisa cair num único cenário.
- O custo de beneficiamento alocado é Σ(peso × custo de beneficiamento/kg)
  dos lotes, e só é deduzido se o tipo de saída cobra custos.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from ibrac.config import DB_PATH
from ibrac.domain.acertos import calcular_saida, custo_perda
from ibrac.domain.cenarios import detectar_cenario_selecao
from ibrac.domain.errors import RegistroNaoEncontrado, ValidacaoError
from ibrac.domain.models import StatusAcerto, StatusSublote, Sublote
from ibrac.domain.policies import exigir_selecionaveis
from ibrac.infra.db import connect
from ibrac.infra.logger import (
    log_database_operation,
    log_saida,
    log_system_event,
    log_transaction,
)
from ibrac.infra.repositories import AcertoRepo, AuditRepo, SaidaRepo, SubloteRepo, TabelaRepo


def _carregar_lotes(sublote_ids: Sequence[int], repo: SubloteRepo) -> List[Sublote]:
    if not sublote_ids:
        raise ValidacaoError("Selecione ao menos um lote")
    if len(set(sublote_ids)) != len(sublote_ids):
        raise ValidacaoError("Lote selecionado mais de uma vez")
    rows = {r["id"]: r for r in repo.detalhes(sublote_ids)}
    lotes = []
    for sid in sublote_ids:
        if sid not in rows:
            raise RegistroNaoEncontrado("sublotes", sid)
        lotes.append(Sublote.from_row(rows[sid]))
    exigir_selecionaveis(lotes)
    return lotes


def _calcular(lotes: List[Sublote], valor_unitario: float, cobra_custos: bool,
              perda_cobrada_pct: float, custos_adicionais: float, data_saida: str):
    cenario = detectar_cenario_selecao(lotes)
    peso_total = sum(s.peso_kg for s in lotes)
    custo_benef = sum(s.peso_kg * s.custo_beneficiamento_kg for s in lotes)
    return calcular_saida(
        cenario,
        peso_total,
        valor_unitario,
        custo_beneficiamento=custo_benef,
        custo_perda=custo_perda(peso_total, perda_cobrada_pct, valor_unitario),
        custos_adicionais=custos_adicionais,
        cobra_custos=cobra_custos,
        taxa_operacao_pct=lotes[0].taxa_operacao_pct,
        dono_id=lotes[0].dono_id,
        data_acerto=data_saida,
    )


def _cobra_custos(tipo_saida_id: Optional[int], db_path: str, conn=None) -> bool:
    if tipo_saida_id is None:
        return True
    tipo = TabelaRepo(db_path, "tipos_saida", conn=conn).get(tipo_saida_id)
    return bool(tipo["cobra_custos"])


def previa_saida(
    sublote_ids: Sequence[int],
    valor_unitario: float,
    tipo_saida_id: Optional[int] = None,
    perda_cobrada_pct: float = 0.0,
    custos_adicionais: float = 0.0,
    db_path: str = DB_PATH,
) -> Dict[str, Any]:
    """Cenário, peso e valores de uma saída, sem gravar."""
    lotes = _carregar_lotes(list(sublote_ids), SubloteRepo(db_path))
    res = _calcular(lotes, valor_unitario, _cobra_custos(tipo_saida_id, db_path),
                    perda_cobrada_pct, custos_adicionais, date.today().isoformat())
    return {"lotes": lotes, "peso_total_kg": sum(s.peso_kg for s in lotes), "resultado": res}


def run_registrar_saida(
    sublote_ids: Sequence[int],
    valor_unitario: float,
    tipo_saida_id: Optional[int] = None,
    cliente_id: Optional[int] = None,
    perda_cobrada_pct: float = 0.0,
    custos_adicionais: float = 0.0,
    data_saida: Optional[str] = None,
    nota_fiscal: Optional[str] = None,
    observacoes: Optional[str] = None,
    db_path: str = DB_PATH,
) -> Dict[str, Any]:
    """Registra a saída e seus acertos numa única transação."""
    data_saida = data_saida or date.today().isoformat()
    log_system_event("registrar_saida_start", {"sublotes": list(sublote_ids), "valor_unitario": valor_unitario})
    codigo = None
    try:
        with connect(db_path) as conn:
            sublotes = SubloteRepo(db_path, conn=conn)
            lotes = _carregar_lotes(list(sublote_ids), sublotes)
            if cliente_id is not None:
                TabelaRepo(db_path, "parceiros", conn=conn).get(cliente_id)
            res = _calcular(lotes, valor_unitario, _cobra_custos(tipo_saida_id, db_path, conn),
                            perda_cobrada_pct, custos_adicionais, data_saida)
            peso_total = sum(s.peso_kg for s in lotes)

            saidas = SaidaRepo(db_path, conn=conn)
            codigo = saidas.proximo_codigo("SAI-" + data_saida.replace("-", ""))
            saida_id = saidas.insert({
                "codigo": codigo,
                "data_saida": data_saida,
                "tipo_saida_id": tipo_saida_id,
                "cliente_id": cliente_id,
                "cenario_operacao": res.cenario,
                "peso_total_kg": peso_total,
                "valor_unitario": valor_unitario,
                "valor_total": res.valor_bruto,
                "custos_cobrados": res.custos_totais,
                "comissao_ibrac": res.comissao_ibrac,
                "valor_repasse_dono": res.valor_repasse_dono,
                "resultado_liquido_dono": res.valor_repasse_dono,
                "nota_fiscal": nota_fiscal,
                "observacoes": observacoes,
                "status": "finalizada",
            })
            for s in lotes:
                saidas.itens.insert({"saida_id": saida_id, "sublote_id": s.id, "peso_kg": s.peso_kg})
                sublotes.atualizar_status(s.id, StatusSublote.VENDIDO, peso_kg=0.0)

            acertos = AcertoRepo(db_path, conn=conn)
            acerto_ids = []
            for a in res.acertos:
                a.referencia_id = saida_id
                acerto_ids.append(acertos.insert(a))

            AuditRepo(db_path, conn=conn).registrar("INSERT", "saidas", saida_id, {
                "codigo": codigo,
                "cenario": res.cenario,
                "sublotes": [s.id for s in lotes],
                "valor_total": res.valor_bruto,
                "acertos": acerto_ids,
            })

        log_database_operation("saida_itens", "INSERT_MANY", len(lotes), codigo=codigo)
        log_database_operation("acertos_financeiros", "INSERT_MANY", len(acerto_ids), codigo=codigo)
        log_saida("insert", codigo, peso_total, res.cenario, valor_total=res.valor_bruto)
        result = {"saida_id": saida_id, "codigo": codigo, "resultado": res, "acerto_ids": acerto_ids}
        log_transaction("registrar_saida", {"sublotes": list(sublote_ids)}, result=codigo)
        return result
    except Exception as e:
        log_transaction("registrar_saida", {"sublotes": list(sublote_ids), "codigo": codigo}, error=str(e))
        log_system_event("registrar_saida_error", {"error": str(e)}, level="error")
        raise


def excluir_saida(saida_id: int, db_path: str = DB_PATH) -> Dict[str, Any]:
    """Exclui a saída, devolvendo os lotes com o peso vendido.

    Bloqueada se algum acerto da saída já foi pago.
    """
    log_system_event("excluir_saida_start", {"id": saida_id})
    try:
        with connect(db_path) as conn:
            saidas = SaidaRepo(db_path, conn=conn)
            acertos = AcertoRepo(db_path, conn=conn)
            sublotes = SubloteRepo(db_path, conn=conn)
            saida = saidas.get(saida_id)

            vinculados = acertos.por_referencia("saida", saida_id)
            if any(a["status"] == StatusAcerto.PAGO for a in vinculados):
                raise ValidacaoError(f"Saída {saida['codigo']} tem acerto já pago e não pode ser excluída")

            itens = saidas.itens.get_all(where={"saida_id": saida_id})
            for item in itens:
                sublotes.atualizar_status(item["sublote_id"], StatusSublote.DISPONIVEL, peso_kg=item["peso_kg"])
            for a in vinculados:
                acertos.delete(a["id"])
            saidas.itens.delete_where("saida_id", saida_id)
            saidas.delete(saida_id)

            AuditRepo(db_path, conn=conn).registrar("DELETE", "saidas", saida_id, {
                "codigo": saida["codigo"],
                "lotes_restaurados": [i["sublote_id"] for i in itens],
                "acertos_removidos": [a["id"] for a in vinculados],
            })

        log_database_operation("saidas", "DELETE", 1, codigo=saida["codigo"])
        log_saida("delete", saida["codigo"], saida.get("peso_total_kg"), saida.get("cenario_operacao"))
        result = {"codigo": saida["codigo"], "lotes_restaurados": len(itens), "acertos_removidos": len(vinculados)}
        log_transaction("excluir_saida", {"id": saida_id}, result=result)
        return result
    except Exception as e:
        log_transaction("excluir_saida", {"id": saida_id}, error=str(e))
        log_system_event("excluir_saida_error", {"error": str(e)}, level="error")
        raise


def listar_saidas(db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    return SaidaRepo(db_path).listar()
