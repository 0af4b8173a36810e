# ibrac/usecases/lotes.py
"""
UC: Operações e consultas sobre um lote individual.

- transferir_dono(): passa o lote para outro dono, com acréscimo de custo opcional.
- historico_lote():  linha do tempo do lote (entrada, beneficiamentos,
  transferências, saídas).
- rastrear_custo():  de onde vem o custo unitário do lote.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from ibrac.config import DB_PATH
from ibrac.domain.cenarios import formatar_cenario
from ibrac.domain.errors import RegistroNaoEncontrado, ValidacaoError
from ibrac.domain.formulas import custo_adicional_kg, custo_medio_ponderado, custo_total_finalizacao
from ibrac.domain.models import StatusBeneficiamento, StatusSublote, Sublote
from ibrac.domain.policies import exigir_selecionaveis, validar_nao_negativo
from ibrac.infra.db import connect
from ibrac.infra.logger import log_database_operation, log_system_event, log_transaction
from ibrac.infra.repositories import (
    AuditRepo,
    BeneficiamentoRepo,
    EntradaRepo,
    SaidaRepo,
    SubloteRepo,
    TabelaRepo,
    TransferenciaRepo,
)


def _lote(repo: SubloteRepo, sublote_id: int) -> Dict[str, Any]:
    rows = repo.detalhes([sublote_id])
    if not rows:
        raise RegistroNaoEncontrado("sublotes", sublote_id)
    return rows[0]


def transferir_dono(
    sublote_id: int,
    novo_dono_id: Optional[int],
    valor_acrescimo: float = 0.0,
    data_transferencia: Optional[str] = None,
    observacoes: Optional[str] = None,
    db_path: str = DB_PATH,
) -> Dict[str, Any]:
    """Transfere um lote disponível para outro dono (`None` = material da casa).

    O acréscimo (R$) é diluído no peso atual do lote e somado ao custo
    unitário. Lotes com filhos ativos não são transferidos: o dono precisa
    ser o mesmo em toda a árvore.
    """
    data_transferencia = data_transferencia or date.today().isoformat()
    log_system_event("transferir_dono_start", {"sublote": sublote_id, "dono": novo_dono_id})
    try:
        acrescimo = validar_nao_negativo(valor_acrescimo, "valor de acréscimo")
        with connect(db_path) as conn:
            sublotes = SubloteRepo(db_path, conn=conn)
            row = _lote(sublotes, sublote_id)
            lote = Sublote.from_row(row)
            exigir_selecionaveis([lote])
            ativos = [
                f for f in sublotes.get_all(where={"lote_pai_id": sublote_id})
                if f["status"] not in StatusSublote.ENCERRADOS
            ]
            if ativos:
                raise ValidacaoError(f"Lote {lote.codigo} tem filhos ativos; transfira os lotes filhos")
            if novo_dono_id is not None:
                TabelaRepo(db_path, "donos_material", conn=conn).get(novo_dono_id)
            if novo_dono_id == lote.dono_id:
                raise ValidacaoError(f"Lote {lote.codigo} já pertence a esse dono")

            custo_novo = lote.custo_unitario_total + acrescimo / lote.peso_kg
            transferencia_id = TransferenciaRepo(db_path, conn=conn).insert({
                "sublote_id": sublote_id,
                "dono_origem_id": lote.dono_id,
                "dono_destino_id": novo_dono_id,
                "peso_kg": lote.peso_kg,
                "valor_acrescimo": acrescimo,
                "custo_unitario_anterior": lote.custo_unitario_total,
                "custo_unitario_novo": custo_novo,
                "data_transferencia": data_transferencia,
                "observacoes": observacoes,
            })
            sublotes.transferir(sublote_id, novo_dono_id, custo_novo)
            AuditRepo(db_path, conn=conn).registrar("UPDATE", "sublotes", sublote_id, {
                "acao": "transferir_dono",
                "dono_origem_id": lote.dono_id,
                "dono_destino_id": novo_dono_id,
                "valor_acrescimo": acrescimo,
            })

        log_database_operation("transferencias_dono", "INSERT", 1, sublote=lote.codigo)
        result = {
            "transferencia_id": transferencia_id,
            "sublote_id": sublote_id,
            "codigo": lote.codigo,
            "dono_origem_id": lote.dono_id,
            "dono_destino_id": novo_dono_id,
            "custo_unitario_anterior": lote.custo_unitario_total,
            "custo_unitario_novo": custo_novo,
        }
        log_transaction("transferir_dono", {"sublote": sublote_id, "dono": novo_dono_id}, result=transferencia_id)
        return result
    except Exception as e:
        log_transaction("transferir_dono", {"sublote": sublote_id, "dono": novo_dono_id}, error=str(e))
        log_system_event("transferir_dono_error", {"error": str(e)}, level="error")
        raise


def _evento(data: Optional[str], tipo: str, descricao: str,
            peso_kg: Optional[float] = None, valor: Optional[float] = None) -> Dict[str, Any]:
    return {"data": data, "tipo": tipo, "descricao": descricao, "peso_kg": peso_kg, "valor": valor}


def historico_lote(sublote_id: int, db_path: str = DB_PATH) -> Dict[str, Any]:
    """Lote e seus eventos em ordem cronológica.

    A origem é o beneficiamento que gerou o lote, o lote-pai de que foi
    desmembrado ou o documento de entrada, nessa ordem de preferência.
    Eventos da mesma data mantêm a ordem em que aconteceram.
    """
    with connect(db_path) as conn:
        sublotes = SubloteRepo(db_path, conn=conn)
        beneficiamentos = BeneficiamentoRepo(db_path, conn=conn)
        lote = _lote(sublotes, sublote_id)
        eventos: List[Dict[str, Any]] = []

        gerador = beneficiamentos.que_gerou(sublote_id)
        if gerador:
            eventos.append(_evento(gerador["data_fim"], "beneficiamento",
                                   f"Gerado no beneficiamento {gerador['codigo']}",
                                   peso_kg=gerador["peso_gerado_kg"]))
        elif lote.get("lote_pai_id"):
            pai = sublotes.get(lote["lote_pai_id"])
            eventos.append(_evento((lote.get("created_at") or "")[:10] or None, "origem",
                                   f"Desmembrado do lote {pai['codigo']}"))
        elif lote.get("entrada_id"):
            entrada = EntradaRepo(db_path, conn=conn).com_tipo(lote["entrada_id"])
            eventos.append(_evento(entrada["data_entrada"], "entrada",
                                   f"Entrada {entrada['codigo']} ({entrada['tipo_entrada_nome'] or 'sem tipo'})",
                                   valor=entrada["valor_total"]))

        for t in TransferenciaRepo(db_path, conn=conn).dos_sublotes([sublote_id]):
            eventos.append(_evento(t["data_transferencia"], "transferencia",
                                   f"Transferido de {t['dono_origem_nome']} para {t['dono_destino_nome']}",
                                   peso_kg=t["peso_kg"], valor=t["valor_acrescimo"]))

        for b in beneficiamentos.com_lote_de_entrada(sublote_id):
            eventos.append(_evento(b["data_inicio"], "beneficiamento",
                                   f"Enviado ao beneficiamento {b['codigo']}", peso_kg=b["peso_kg"]))
            if b["status"] == StatusBeneficiamento.FINALIZADO:
                eventos.append(_evento(b["data_fim"], "beneficiamento",
                                       f"Consumido no beneficiamento {b['codigo']}"))

        for s in SaidaRepo(db_path, conn=conn).do_lote(sublote_id):
            eventos.append(_evento(s["data_saida"], "saida",
                                   f"Saída {s['codigo']} ({formatar_cenario(s['cenario_operacao'])})",
                                   peso_kg=s["peso_kg"]))

    eventos.sort(key=lambda e: e["data"] or "")
    return {"lote": lote, "eventos": eventos}


def _cadeia(sublotes: SubloteRepo, lote: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Ancestrais do lote, da raiz até ele próprio."""
    cadeia = [lote]
    vistos = {lote["id"]}
    pai_id = lote.get("lote_pai_id")
    while pai_id is not None and pai_id not in vistos:
        pai = sublotes.get(pai_id)
        cadeia.append(pai)
        vistos.add(pai_id)
        pai_id = pai.get("lote_pai_id")
    return [
        {"id": x["id"], "codigo": x["codigo"], "custo_unitario_total": float(x["custo_unitario_total"] or 0.0)}
        for x in reversed(cadeia)
    ]


def rastrear_custo(sublote_id: int, db_path: str = DB_PATH) -> Dict[str, Any]:
    """Composição do custo unitário do lote.

    Para um lote gerado por beneficiamento: custo médio ponderado dos lotes
    consumidos mais o custo adicional por kg da operação (fretes, mão de
    obra e encargos financeiros dos documentos). Para um lote vindo direto
    da entrada: valor do documento / peso líquido, ou zero quando o tipo de
    entrada não gera custo. Acréscimos de transferências aparecem à parte.
    """
    with connect(db_path) as conn:
        sublotes = SubloteRepo(db_path, conn=conn)
        beneficiamentos = BeneficiamentoRepo(db_path, conn=conn)
        lote = _lote(sublotes, sublote_id)
        result: Dict[str, Any] = {
            "lote": lote,
            "origem": None,
            "entrada": None,
            "beneficiamento": None,
            "consumidos": [],
            "custo_medio_entrada": 0.0,
            "cadeia": _cadeia(sublotes, lote),
        }

        gerador = beneficiamentos.que_gerou(sublote_id)
        if gerador:
            itens = [
                i for i in beneficiamentos.itens_entrada.get_all(where={"beneficiamento_id": gerador["id"]})
                if not i.get("intermediario")
            ]
            codigos = {r["id"]: r["codigo"] for r in sublotes.detalhes([i["sublote_id"] for i in itens])}
            taxas = beneficiamentos.taxas_financeiras(gerador["id"])
            custo_total = custo_total_finalizacao(
                gerador["custo_frete_ida"], gerador["custo_frete_volta"],
                gerador["custo_mo_terceiro"], gerador["custo_mo_ibrac"], taxas,
            )
            result["origem"] = "beneficiamento"
            result["consumidos"] = [
                {
                    "sublote_id": i["sublote_id"],
                    "codigo": codigos.get(i["sublote_id"]),
                    "peso_kg": float(i["peso_kg"] or 0.0),
                    "custo_unitario": float(i["custo_unitario"] or 0.0),
                }
                for i in itens
            ]
            result["custo_medio_entrada"] = custo_medio_ponderado(
                (c["peso_kg"], c["custo_unitario"]) for c in result["consumidos"]
            )
            result["beneficiamento"] = {
                "id": gerador["id"],
                "codigo": gerador["codigo"],
                "data_inicio": gerador["data_inicio"],
                "data_fim": gerador["data_fim"],
                "peso_entrada_kg": gerador["peso_entrada_kg"],
                "peso_saida_kg": gerador["peso_saida_kg"],
                "custo_frete": float(gerador["custo_frete_ida"] or 0) + float(gerador["custo_frete_volta"] or 0),
                "custo_mo": float(gerador["custo_mo_terceiro"] or 0) + float(gerador["custo_mo_ibrac"] or 0),
                "custo_financeiro": sum(taxas),
                "custo_total": custo_total,
                "custo_adicional_kg": custo_adicional_kg(custo_total, gerador["peso_saida_kg"] or 0),
            }
        elif lote.get("entrada_id"):
            entrada = EntradaRepo(db_path, conn=conn).com_tipo(lote["entrada_id"])
            peso = float(entrada["peso_liquido_kg"] or 0.0)
            gera_custo = bool(entrada["gera_custo"])
            result["origem"] = "entrada"
            result["entrada"] = {
                "id": entrada["id"],
                "codigo": entrada["codigo"],
                "data_entrada": entrada["data_entrada"],
                "tipo_entrada": entrada["tipo_entrada_nome"],
                "gera_custo": gera_custo,
                "valor_total": float(entrada["valor_total"] or 0.0),
                "peso_liquido_kg": peso,
                "custo_kg": float(entrada["valor_total"] or 0.0) / peso if gera_custo and peso > 0 else 0.0,
            }

        transferencias = TransferenciaRepo(db_path, conn=conn).dos_sublotes([sublote_id])
    result["transferencias"] = transferencias
    result["acrescimo_transferencias_kg"] = sum(
        float(t["custo_unitario_novo"] or 0) - float(t["custo_unitario_anterior"] or 0) for t in transferencias
    )
    return result
