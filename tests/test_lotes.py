import pytest
from math import isclose

from ibrac.domain.errors import RegistroNaoEncontrado, ValidacaoError
from ibrac.domain.models import PerdasPorProduto, TaxasKg
from ibrac.infra.repositories import AuditRepo, SubloteRepo, TransferenciaRepo
from ibrac.usecases.lotes import historico_lote, rastrear_custo, transferir_dono
from ibrac.usecases.registrar_beneficiamento import (
    criar_beneficiamento,
    excluir_beneficiamento,
    finalizar_beneficiamento,
)
from ibrac.usecases.registrar_entrada import run_registrar_entrada
from ibrac.usecases.registrar_saida import run_registrar_saida

TAXAS = TaxasKg(frete_ida=0.4, frete_volta=0.0, mo_terceiro=0.3, mo_ibrac=0.3)


@pytest.fixture
def lotes(db, cad):
    res = run_registrar_entrada(
        [600, 400], data_entrada="2025-03-10", tipo_entrada_id=cad.compra,
        tipo_produto_id=cad.cobre, dono_id=cad.ibrac, valor_total=50000, db_path=db,
    )
    return [s["id"] for s in res["sublotes"]]


def _beneficiar(db, ids, peso_saida=980):
    perdas = PerdasPorProduto()
    perdas.definir("CU01", 2, 3)
    ben = criar_beneficiamento(ids, perdas, TAXAS, 1.8, data_inicio="2025-03-11", db_path=db)
    return finalizar_beneficiamento(ben["beneficiamento_id"], peso_saida, data_fim="2025-03-12",
                                    lme_referencia_kg=40, db_path=db)


# -------------------------
# Transferência de dono
# -------------------------

def test_transferir_dono_dilui_acrescimo_no_custo(db, cad, lotes):
    res = transferir_dono(lotes[0], cad.terceiro, valor_acrescimo=300,
                          data_transferencia="2025-03-11", observacoes="acordo", db_path=db)

    assert (res["dono_origem_id"], res["dono_destino_id"]) == (cad.ibrac, cad.terceiro)
    assert isclose(res["custo_unitario_novo"], 50.5)
    lote = SubloteRepo(db).get(lotes[0])
    assert lote["dono_id"] == cad.terceiro
    assert isclose(lote["custo_unitario_total"], 50.5)

    [t] = TransferenciaRepo(db).dos_sublotes([lotes[0]])
    assert (t["dono_origem_nome"], t["dono_destino_nome"], t["peso_kg"]) == ("IBRAC", "Fulano Metais", 600)
    assert AuditRepo(db).listar("sublotes")[0]["record_data"]["acao"] == "transferir_dono"


def test_transferir_para_material_da_casa(db, cad):
    res = run_registrar_entrada([100], tipo_entrada_id=cad.compra, dono_id=cad.terceiro,
                                valor_total=1000, db_path=db)
    lote_id = res["sublotes"][0]["id"]
    transferir_dono(lote_id, None, db_path=db)

    assert SubloteRepo(db).get(lote_id)["dono_id"] is None
    [t] = TransferenciaRepo(db).dos_sublotes([lote_id])
    assert t["dono_destino_nome"] == "IBRAC"


def test_transferir_para_o_mesmo_dono_recusado(db, cad, lotes):
    with pytest.raises(ValidacaoError, match="já pertence"):
        transferir_dono(lotes[0], cad.ibrac, db_path=db)
    assert TransferenciaRepo(db).get_all() == []


@pytest.mark.parametrize("acrescimo", [-1, -0.01])
def test_transferir_acrescimo_negativo_recusado(db, cad, lotes, acrescimo):
    with pytest.raises(ValidacaoError):
        transferir_dono(lotes[0], cad.terceiro, valor_acrescimo=acrescimo, db_path=db)
    assert SubloteRepo(db).get(lotes[0])["dono_id"] == cad.ibrac


def test_transferir_lote_indisponivel_ou_inexistente(db, cad, lotes):
    run_registrar_saida([lotes[1]], 45, db_path=db)
    with pytest.raises(ValidacaoError, match="vendido"):
        transferir_dono(lotes[1], cad.terceiro, db_path=db)
    with pytest.raises(RegistroNaoEncontrado):
        transferir_dono(999, cad.terceiro, db_path=db)
    with pytest.raises(RegistroNaoEncontrado):
        transferir_dono(lotes[0], 999, db_path=db)


def test_transferir_lote_com_filhos_ativos_recusado(db, cad, lotes):
    SubloteRepo(db).insert({
        "codigo": "FILHO", "peso_kg": 100, "tipo_produto_id": cad.cobre, "dono_id": cad.ibrac,
        "entrada_id": 1, "lote_pai_id": lotes[0],
    })
    with pytest.raises(ValidacaoError, match="filhos ativos"):
        transferir_dono(lotes[0], cad.terceiro, db_path=db)


def test_lote_transferido_bloqueia_estorno_do_beneficiamento(db, cad, lotes):
    fin = _beneficiar(db, lotes)
    transferir_dono(fin["lotes_gerados"][0]["id"], cad.terceiro, db_path=db)

    with pytest.raises(ValidacaoError, match="transferido para Fulano Metais"):
        excluir_beneficiamento(fin["beneficiamento_id"], estornar_finalizado=True, db_path=db)


# -------------------------
# Histórico
# -------------------------

def test_historico_lote_de_entrada(db, cad, lotes):
    transferir_dono(lotes[0], cad.terceiro, data_transferencia="2025-03-10", db_path=db)
    transferir_dono(lotes[0], cad.ibrac, data_transferencia="2025-03-11", db_path=db)
    _beneficiar(db, lotes)

    h = historico_lote(lotes[0], db_path=db)

    assert h["lote"]["codigo"] == "ENT-20250310-0001-V01"
    assert [(e["data"], e["tipo"]) for e in h["eventos"]] == [
        ("2025-03-10", "entrada"),
        ("2025-03-10", "transferencia"),
        ("2025-03-11", "transferencia"),
        ("2025-03-11", "beneficiamento"),
        ("2025-03-12", "beneficiamento"),
    ]
    assert h["eventos"][0]["descricao"] == "Entrada ENT-20250310-0001 (Compra)"
    assert h["eventos"][1]["descricao"] == "Transferido de IBRAC para Fulano Metais"
    assert h["eventos"][-1]["descricao"] == "Consumido no beneficiamento BEN-20250311-0001"


def test_historico_lote_gerado_e_vendido(db, lotes):
    fin = _beneficiar(db, lotes)
    gerado = fin["lotes_gerados"][0]["id"]
    run_registrar_saida([gerado], 45, data_saida="2025-03-15", db_path=db)

    eventos = historico_lote(gerado, db_path=db)["eventos"]

    assert [e["descricao"] for e in eventos] == [
        "Gerado no beneficiamento BEN-20250311-0001",
        "Saída SAI-20250315-0001 (Material Próprio)",
    ]
    assert isclose(eventos[0]["peso_kg"], 588)


def test_historico_lote_desmembrado(db, cad, lotes):
    filho = SubloteRepo(db).insert({
        "codigo": "FILHO", "peso_kg": 100, "tipo_produto_id": cad.cobre, "entrada_id": 1, "lote_pai_id": lotes[0],
    })
    [evento] = historico_lote(filho, db_path=db)["eventos"]
    assert (evento["tipo"], evento["descricao"]) == ("origem", "Desmembrado do lote ENT-20250310-0001-V01")


def test_historico_lote_inexistente(db):
    with pytest.raises(RegistroNaoEncontrado):
        historico_lote(42, db_path=db)


# -------------------------
# Rastreabilidade de custo
# -------------------------

def test_rastrear_custo_de_lote_de_entrada(db, lotes):
    r = rastrear_custo(lotes[1], db_path=db)

    assert r["origem"] == "entrada"
    assert r["beneficiamento"] is None
    assert (r["entrada"]["codigo"], r["entrada"]["tipo_entrada"]) == ("ENT-20250310-0001", "Compra")
    assert isclose(r["entrada"]["custo_kg"], 50)
    assert [c["codigo"] for c in r["cadeia"]] == ["ENT-20250310-0001-V02"]


def test_rastrear_custo_de_remessa_sem_custo(db, cad):
    res = run_registrar_entrada([300], tipo_entrada_id=cad.remessa, dono_id=cad.cliente,
                                valor_total=9000, db_path=db)
    r = rastrear_custo(res["sublotes"][0]["id"], db_path=db)
    assert (r["entrada"]["gera_custo"], r["entrada"]["custo_kg"]) == (False, 0.0)


def test_rastrear_custo_de_lote_gerado(db, lotes):
    fin = _beneficiar(db, lotes)
    gerado = fin["lotes_gerados"][0]

    r = rastrear_custo(gerado["id"], db_path=db)

    assert r["origem"] == "beneficiamento"
    b = r["beneficiamento"]
    assert b["codigo"] == "BEN-20250311-0001"
    assert isclose(b["custo_frete"], 400)
    assert isclose(b["custo_mo"], 600)
    assert isclose(b["custo_financeiro"], 900)
    assert isclose(b["custo_total"], 1900)
    assert isclose(b["custo_adicional_kg"], 1900 / 980)
    assert [(c["codigo"], c["peso_kg"]) for c in r["consumidos"]] == [
        ("ENT-20250310-0001-V01", 600), ("ENT-20250310-0001-V02", 400),
    ]
    assert isclose(r["custo_medio_entrada"], 50)
    # custo do lote = custo médio consumido + custo adicional por kg
    assert isclose(r["custo_medio_entrada"] + b["custo_adicional_kg"], gerado["custo_unitario_total"])
    assert [c["id"] for c in r["cadeia"]] == [lotes[0], gerado["id"]]


def test_rastrear_custo_com_acrescimo_de_transferencia(db, cad, lotes):
    transferir_dono(lotes[0], cad.terceiro, valor_acrescimo=600, db_path=db)
    r = rastrear_custo(lotes[0], db_path=db)
    assert len(r["transferencias"]) == 1
    assert isclose(r["acrescimo_transferencias_kg"], 1)
    assert isclose(r["lote"]["custo_unitario_total"], r["entrada"]["custo_kg"] + 1)
