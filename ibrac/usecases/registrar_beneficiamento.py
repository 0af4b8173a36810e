# ibrac/usecases/registrar_beneficiamento.py
"""
UC: Beneficiamento (processamento de lotes).

- previa_beneficiamento(): consolida a seleção e calcula custos, sem gravar.
- criar_beneficiamento():  grava a operação `em_andamento` e reserva os lotes.
- finalizar_beneficiamento(): registra o peso real, gera os lotes derivados
  com o novo custo unitário e consome os lotes de entrada.
- excluir_beneficiamento(): desfaz a operação, devolvendo os lotes de
  entrada ao estoque com o peso original.

Cada operação que grava roda numa única transação SQLite: se qualquer passo
falhar, nada é persistido.

Itens de entrada:
- lote folha (sem filhos ativos) -> item normal, soma peso e gera lote derivado;
- lote-pai selecionado e filhos intermediários -> item `intermediario`,
  só acompanha as mudanças de status.
"""

from __future__ import annotations

import sqlite3
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from ibrac.config import DB_PATH
from ibrac.domain.consolidacao import (
    consolidar_por_documento,
    consolidar_por_produto,
    descendentes,
    folhas,
    indice_filhos,
    verificar_relacionados,
)
from ibrac.domain.errors import RegistroNaoEncontrado, ValidacaoError
from ibrac.domain.formulas import (
    calcular_custos,
    custo_adicional_kg,
    custo_total_finalizacao,
    lucro_perda,
    perda_real_pct,
    ratear_saida,
)
from ibrac.domain.models import (
    PerdasPorProduto,
    StatusBeneficiamento,
    StatusSublote,
    Sublote,
    TaxasKg,
)
from ibrac.domain.policies import exigir_selecionaveis, validar_nao_negativo, validar_pct
from ibrac.infra.db import connect
from ibrac.infra.logger import (
    log_beneficiamento,
    log_database_operation,
    log_system_event,
    log_transaction,
)
from ibrac.infra.repositories import (
    AuditRepo,
    BeneficiamentoRepo,
    LmeRepo,
    SaidaRepo,
    SubloteRepo,
    TabelaRepo,
    TransferenciaRepo,
)
from ibrac.usecases.parametros import carregar_params


def _catalogo(repo: SubloteRepo) -> List[Sublote]:
    """Lotes ativos (não consumidos/vendidos), já validados."""
    return [
        Sublote.from_row(r) for r in repo.todos()
        if r.get("status") not in StatusSublote.ENCERRADOS
    ]


def _montar(sublote_ids: Sequence[int], perdas: Optional[PerdasPorProduto], taxas: TaxasKg,
            taxa_financeira_pct: float, repo: SubloteRepo) -> Dict[str, Any]:
    if not sublote_ids:
        raise ValidacaoError("Selecione ao menos um lote")
    if len(set(sublote_ids)) != len(sublote_ids):
        raise ValidacaoError("Lote selecionado mais de uma vez")

    for nome in ("frete_ida", "frete_volta", "mo_terceiro", "mo_ibrac"):
        validar_nao_negativo(getattr(taxas, nome), f"custo {nome} (R$/kg)")

    catalogo = _catalogo(repo)
    por_id = {s.id: s for s in catalogo}
    selecionados: List[Sublote] = []
    for sid in sublote_ids:
        s = por_id.get(sid)
        if s is None:
            # inexistente ou já consumido/vendido
            row = repo.detalhes([sid])
            if not row:
                raise RegistroNaoEncontrado("sublotes", sid)
            s = Sublote.from_row(row[0])
        selecionados.append(s)

    exigir_selecionaveis(selecionados)
    verificar_relacionados(selecionados, catalogo)

    filhos = indice_filhos(catalogo)
    contribuintes: List[Sublote] = []
    intermediarios: List[Sublote] = []
    for s in selecionados:
        fs = folhas(s, filhos)
        contribuintes.extend(fs)
        ids_folhas = {f.id for f in fs}
        intermediarios.extend(
            x for x in [s, *descendentes(s.id, filhos)] if x.id not in ids_folhas
        )
    exigir_selecionaveis(contribuintes)

    grupos = consolidar_por_produto(selecionados, catalogo, perdas)
    documentos = consolidar_por_documento(selecionados, catalogo, taxa_financeira_pct)
    custos = calcular_custos(grupos, documentos, taxas)
    return {
        "selecionados": selecionados,
        "contribuintes": contribuintes,
        "intermediarios": intermediarios,
        "grupos": grupos,
        "documentos": documentos,
        "custos": custos,
        "taxa_financeira_pct": validar_pct(taxa_financeira_pct, "taxa financeira"),
    }


def previa_beneficiamento(
    sublote_ids: Sequence[int],
    perdas: Optional[PerdasPorProduto] = None,
    taxas: Optional[TaxasKg] = None,
    taxa_financeira_pct: Optional[float] = None,
    db_path: str = DB_PATH,
) -> Dict[str, Any]:
    """Consolidação e custos da seleção, sem gravar nada."""
    taxas = taxas or TaxasKg()
    if taxa_financeira_pct is None:
        taxa_financeira_pct = carregar_params(db_path).taxa_financeira_pct
    return _montar(list(sublote_ids), perdas, taxas, taxa_financeira_pct, SubloteRepo(db_path))


def criar_beneficiamento(
    sublote_ids: Sequence[int],
    perdas: Optional[PerdasPorProduto] = None,
    taxas: Optional[TaxasKg] = None,
    taxa_financeira_pct: Optional[float] = None,
    tipo_beneficiamento: str = "interno",
    data_inicio: Optional[str] = None,
    observacoes: Optional[str] = None,
    db_path: str = DB_PATH,
) -> Dict[str, Any]:
    """Grava um beneficiamento `em_andamento` e marca os lotes `em_beneficiamento`."""
    taxas = taxas or TaxasKg()
    data_inicio = data_inicio or date.today().isoformat()
    log_system_event("criar_beneficiamento_start", {"sublotes": list(sublote_ids)})
    codigo = None
    try:
        with connect(db_path) as conn:
            params = carregar_params(db_path, conn=conn)
            if taxa_financeira_pct is None:
                taxa_financeira_pct = params.taxa_financeira_pct
            sublotes = SubloteRepo(db_path, conn=conn)
            m = _montar(list(sublote_ids), perdas, taxas, taxa_financeira_pct, sublotes)
            custos = m["custos"]

            repo = BeneficiamentoRepo(db_path, conn=conn)
            codigo = repo.proximo_codigo("BEN-" + data_inicio.replace("-", ""))
            ben_id = repo.insert({
                "codigo": codigo,
                "status": StatusBeneficiamento.EM_ANDAMENTO,
                "tipo_beneficiamento": tipo_beneficiamento,
                "data_inicio": data_inicio,
                "custo_frete_ida": custos.custo_frete_ida,
                "custo_frete_volta": custos.custo_frete_volta,
                "custo_mo_terceiro": custos.custo_mo_terceiro,
                "custo_mo_ibrac": custos.custo_mo_ibrac,
                "taxa_financeira_pct": m["taxa_financeira_pct"],
                "perda_padrao_pct": custos.perda_padrao_media_pct,
                "perda_cobrada_pct": custos.perda_cobrada_media_pct,
                "peso_entrada_kg": custos.peso_entrada_kg,
                "peso_saida_kg": custos.peso_saida_estimado_kg,
                "observacoes": observacoes,
            })

            for g in m["grupos"]:
                repo.produtos.insert({
                    "beneficiamento_id": ben_id,
                    "tipo_produto_id": g.tipo_produto_id,
                    "produto_codigo": g.produto_codigo,
                    "peso_entrada_kg": g.peso_kg,
                    "perda_padrao_pct": g.perda_padrao_pct,
                    "perda_cobrada_pct": g.perda_cobrada_pct,
                    "peso_saida_estimado_kg": g.peso_saida_estimado_kg,
                })
            for d in m["documentos"]:
                repo.documentos.insert({
                    "beneficiamento_id": ben_id,
                    "entrada_id": d.entrada_id,
                    "valor_documento": d.valor_documento,
                    "taxa_financeira_pct": d.taxa_financeira_pct,
                    "taxa_financeira_valor": d.taxa_financeira_valor,
                })

            for s, intermediario in [(x, 0) for x in m["contribuintes"]] + [(x, 1) for x in m["intermediarios"]]:
                repo.itens_entrada.insert({
                    "beneficiamento_id": ben_id,
                    "sublote_id": s.id,
                    "tipo_produto_id": s.tipo_produto_id,
                    "peso_kg": s.peso_kg,
                    "custo_unitario": s.custo_unitario_total,
                    "intermediario": intermediario,
                })
                sublotes.atualizar_status(s.id, StatusSublote.EM_BENEFICIAMENTO)

            AuditRepo(db_path, conn=conn).registrar("INSERT", "beneficiamentos", ben_id, {
                "codigo": codigo,
                "sublotes": [s.id for s in m["selecionados"]],
                "custo_total": custos.custo_total,
            })

        n_itens = len(m["contribuintes"]) + len(m["intermediarios"])
        log_database_operation("beneficiamento_itens_entrada", "INSERT_MANY", n_itens, codigo=codigo)
        log_beneficiamento("create", codigo, custos.peso_entrada_kg, custo_total=custos.custo_total)
        result = {
            "beneficiamento_id": ben_id,
            "codigo": codigo,
            "custos": custos,
            "grupos": m["grupos"],
            "documentos": m["documentos"],
        }
        log_transaction("criar_beneficiamento", {"sublotes": list(sublote_ids)}, result=codigo)
        return result
    except Exception as e:
        log_transaction("criar_beneficiamento", {"sublotes": list(sublote_ids), "codigo": codigo}, error=str(e))
        log_system_event("criar_beneficiamento_error", {"error": str(e)}, level="error")
        raise


def _itens_entrada(repo: BeneficiamentoRepo, ben_id: int) -> List[Dict[str, Any]]:
    return repo.itens_entrada.get_all(where={"beneficiamento_id": ben_id})


def finalizar_beneficiamento(
    beneficiamento_id: int,
    peso_saida_real: float,
    tipo_produto_saida_id: Optional[int] = None,
    data_fim: Optional[str] = None,
    lme_referencia_kg: Optional[float] = None,
    db_path: str = DB_PATH,
) -> Dict[str, Any]:
    """Finaliza a operação e gera um lote derivado por lote de entrada.

    O custo total soma os custos operacionais gravados e as taxas
    financeiras gravadas por documento na criação. Sem `lme_referencia_kg`,
    usa a cotação do cobre mais recente até `data_fim`.
    """
    data_fim = data_fim or date.today().isoformat()
    log_system_event("finalizar_beneficiamento_start", {"id": beneficiamento_id, "peso_saida_real": peso_saida_real})
    try:
        peso_real = validar_nao_negativo(peso_saida_real, "peso de saída real")
        if peso_real <= 0:
            raise ValidacaoError("Informe o peso de saída real")

        with connect(db_path) as conn:
            repo = BeneficiamentoRepo(db_path, conn=conn)
            sublotes = SubloteRepo(db_path, conn=conn)
            ben = repo.get(beneficiamento_id)
            if ben["status"] != StatusBeneficiamento.EM_ANDAMENTO:
                raise ValidacaoError(f"Beneficiamento {ben['codigo']} já está {ben['status']}")
            if tipo_produto_saida_id is not None:
                TabelaRepo(db_path, "tipos_produto", conn=conn).get(tipo_produto_saida_id)

            itens = _itens_entrada(repo, beneficiamento_id)
            normais = [i for i in itens if not i.get("intermediario")]
            custo_total = custo_total_finalizacao(
                ben["custo_frete_ida"], ben["custo_frete_volta"],
                ben["custo_mo_terceiro"], ben["custo_mo_ibrac"],
                repo.taxas_financeiras(beneficiamento_id),
            )
            adicional = custo_adicional_kg(custo_total, peso_real)
            rateio = ratear_saida([(i["peso_kg"], i["custo_unitario"]) for i in normais], custo_total, peso_real)

            origem = {r["id"]: r for r in sublotes.detalhes([i["sublote_id"] for i in normais])}
            gerados: List[Dict[str, Any]] = []
            for n, (item, (peso, custo_kg)) in enumerate(zip(normais, rateio), start=1):
                lote = origem[item["sublote_id"]]
                tipo_produto = tipo_produto_saida_id if tipo_produto_saida_id is not None else lote.get("tipo_produto_id")
                row = {
                    "codigo": f"{ben['codigo']}-{n:02d}",
                    "peso_kg": peso,
                    "status": StatusSublote.DISPONIVEL,
                    "tipo_produto_id": tipo_produto,
                    "dono_id": lote.get("dono_id"),
                    "entrada_id": lote.get("entrada_id"),
                    "lote_pai_id": lote["id"],
                    "custo_unitario_total": custo_kg,
                    "custo_beneficiamento_kg": adicional,
                }
                row["id"] = sublotes.insert(row)
                repo.itens_saida.insert({
                    "beneficiamento_id": beneficiamento_id,
                    "sublote_gerado_id": row["id"],
                    "tipo_produto_id": tipo_produto,
                    "peso_kg": peso,
                    "custo_unitario_calculado": custo_kg,
                })
                gerados.append(row)

            for item in itens:
                sublotes.atualizar_status(item["sublote_id"], StatusSublote.CONSUMIDO, peso_kg=0.0)

            peso_entrada = float(ben["peso_entrada_kg"] or 0.0)
            perda_real = perda_real_pct(peso_entrada, peso_real)
            lme = lme_referencia_kg
            if lme is None:
                lme = LmeRepo(db_path, conn=conn).cobre_brl_kg_ate(data_fim) or 0.0
            lucro_kg, lucro_valor = lucro_perda(peso_entrada, ben["perda_cobrada_pct"] or 0.0, perda_real, lme)

            repo.update(beneficiamento_id, {
                "status": StatusBeneficiamento.FINALIZADO,
                "data_fim": data_fim,
                "peso_saida_kg": peso_real,
                "tipo_produto_saida_id": tipo_produto_saida_id,
                "perda_real_pct": perda_real,
                "lme_referencia_kg": lme,
                "lucro_perda_kg": lucro_kg,
                "lucro_perda_valor": lucro_valor,
            })
            AuditRepo(db_path, conn=conn).registrar("UPDATE", "beneficiamentos", beneficiamento_id, {
                "acao": "finalizar",
                "peso_saida_real": peso_real,
                "custo_total": custo_total,
                "lotes_gerados": [g["id"] for g in gerados],
            })

        log_database_operation("sublotes", "INSERT_MANY", len(gerados), beneficiamento=ben["codigo"])
        log_beneficiamento("finalize", ben["codigo"], peso_real, custo_total=custo_total)
        result = {
            "beneficiamento_id": beneficiamento_id,
            "codigo": ben["codigo"],
            "custo_total": custo_total,
            "custo_adicional_kg": adicional,
            "perda_real_pct": perda_real,
            "lucro_perda_kg": lucro_kg,
            "lucro_perda_valor": lucro_valor,
            "lotes_gerados": gerados,
        }
        log_transaction("finalizar_beneficiamento", {"id": beneficiamento_id}, result=result["codigo"])
        return result
    except Exception as e:
        log_transaction("finalizar_beneficiamento", {"id": beneficiamento_id}, error=str(e))
        log_system_event("finalizar_beneficiamento_error", {"error": str(e)}, level="error")
        raise


def _verificar_exclusao(conn: sqlite3.Connection, db_path: str, ben: Dict[str, Any],
                        gerados: List[Dict[str, Any]]) -> None:
    if not gerados:
        return
    ids = [g["id"] for g in gerados]
    vendidos = SaidaRepo(db_path, conn=conn).saidas_dos_sublotes(ids)
    if vendidos:
        raise ValidacaoError(
            f"Beneficiamento {ben['codigo']} não pode ser excluído: "
            f"lote gerado já usado na saída {vendidos[0]['codigo']}"
        )
    transferidos = TransferenciaRepo(db_path, conn=conn).dos_sublotes(ids)
    if transferidos:
        raise ValidacaoError(
            f"Beneficiamento {ben['codigo']} não pode ser excluído: "
            f"lote gerado transferido para {transferidos[0]['dono_destino_nome']}"
        )
    for g in gerados:
        if g["status"] != StatusSublote.DISPONIVEL:
            raise ValidacaoError(
                f"Beneficiamento {ben['codigo']} não pode ser excluído: "
                f"lote gerado {g['codigo']} está {g['status']}"
            )


def excluir_beneficiamento(beneficiamento_id: int, estornar_finalizado: bool = False,
                           db_path: str = DB_PATH) -> Dict[str, Any]:
    """Exclui a operação e devolve os lotes de entrada ao estoque.

    Por padrão só operações em andamento podem ser excluídas. Com
    `estornar_finalizado=True` uma operação finalizada também é desfeita,
    desde que nenhum lote gerado tenha sido vendido, transferido ou usado em
    outro processo. Os lotes gerados são removidos; filhos deles passam a
    apontar para o lote de origem.
    """
    log_system_event("excluir_beneficiamento_start", {"id": beneficiamento_id})
    try:
        with connect(db_path) as conn:
            repo = BeneficiamentoRepo(db_path, conn=conn)
            sublotes = SubloteRepo(db_path, conn=conn)
            ben = repo.get(beneficiamento_id)
            if ben["status"] != StatusBeneficiamento.EM_ANDAMENTO and not estornar_finalizado:
                raise ValidacaoError(
                    f"Beneficiamento {ben['codigo']} está {ben['status']}; "
                    "use o estorno para excluir uma operação finalizada"
                )

            itens_saida = repo.itens_saida.get_all(where={"beneficiamento_id": beneficiamento_id})
            gerados = [sublotes.get(i["sublote_gerado_id"]) for i in itens_saida if i["sublote_gerado_id"]]
            _verificar_exclusao(conn, db_path, ben, gerados)

            itens = _itens_entrada(repo, beneficiamento_id)
            for item in itens:
                sublotes.atualizar_status(item["sublote_id"], StatusSublote.DISPONIVEL, peso_kg=item["peso_kg"])

            repo.excluir(beneficiamento_id)

            for g in gerados:
                sublotes.religar_filhos(g["id"], g.get("lote_pai_id"))
                sublotes.delete(g["id"])

            AuditRepo(db_path, conn=conn).registrar("DELETE", "beneficiamentos", beneficiamento_id, {
                "codigo": ben["codigo"],
                "status": ben["status"],
                "lotes_restaurados": [i["sublote_id"] for i in itens],
                "lotes_removidos": [g["id"] for g in gerados],
            })

        log_database_operation("beneficiamentos", "DELETE", 1, codigo=ben["codigo"])
        log_beneficiamento("delete", ben["codigo"], ben.get("peso_entrada_kg"))
        result = {
            "codigo": ben["codigo"],
            "lotes_restaurados": len(itens),
            "lotes_removidos": len(gerados),
        }
        log_transaction("excluir_beneficiamento", {"id": beneficiamento_id}, result=result)
        return result
    except Exception as e:
        log_transaction("excluir_beneficiamento", {"id": beneficiamento_id}, error=str(e))
        log_system_event("excluir_beneficiamento_error", {"error": str(e)}, level="error")
        raise


def listar_beneficiamentos(status: Optional[str] = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    return BeneficiamentoRepo(db_path).listar(status)
