import pytest
from math import isclose

from ibrac.domain.errors import RegistroNaoEncontrado, ValidacaoError
from ibrac.infra.repositories import AuditRepo, EntradaRepo, SubloteRepo
from ibrac.usecases.lotes import transferir_dono
from ibrac.usecases.registrar_beneficiamento import criar_beneficiamento
from ibrac.usecases.registrar_entrada import excluir_entrada, run_registrar_entrada
from ibrac.usecases.registrar_saida import run_registrar_saida


def test_entrada_cria_um_sublote_por_volume(db, cad):
    res = run_registrar_entrada(
        [600, 400], data_entrada="2025-03-10", tipo_entrada_id=cad.compra,
        tipo_produto_id=cad.cobre, dono_id=cad.ibrac, valor_total=50000, db_path=db,
    )
    assert res["codigo"] == "ENT-20250310-0001"
    assert res["peso_liquido_kg"] == 1000
    assert [s["codigo"] for s in res["sublotes"]] == ["ENT-20250310-0001-V01", "ENT-20250310-0001-V02"]

    lotes = SubloteRepo(db).disponiveis()
    assert [l["peso_kg"] for l in lotes] == [600, 400]
    assert all(isclose(l["custo_unitario_total"], 50.0) for l in lotes)
    assert lotes[0]["produto_codigo"] == "CU01"

    entrada = EntradaRepo(db).com_tipo(res["entrada_id"])
    assert entrada["status"] == "recebida"
    assert entrada["gera_custo"] == 1
    assert AuditRepo(db).listar("entradas")[0]["record_data"]["volumes"] == 2


def test_remessa_para_industrializacao_entra_sem_custo(db, cad):
    res = run_registrar_entrada([300], data_entrada="2025-03-10", tipo_entrada_id=cad.remessa,
                                dono_id=cad.cliente, valor_total=9000, db_path=db)
    assert res["sublotes"][0]["custo_unitario_total"] == 0.0


def test_valor_unitario_calcula_total(db, cad):
    res = run_registrar_entrada([100, 100], tipo_entrada_id=cad.compra, valor_unitario=30, db_path=db)
    assert EntradaRepo(db).get(res["entrada_id"])["valor_total"] == 6000


def test_codigos_sequenciais_e_duplicado(db, cad):
    a = run_registrar_entrada([10], data_entrada="2025-03-10", db_path=db)
    b = run_registrar_entrada([10], data_entrada="2025-03-10", db_path=db)
    assert (a["codigo"], b["codigo"]) == ("ENT-20250310-0001", "ENT-20250310-0002")
    with pytest.raises(ValidacaoError, match="já existe|Já existe"):
        run_registrar_entrada([10], codigo=a["codigo"], db_path=db)


def test_entrada_invalida(db, cad):
    with pytest.raises(ValidacaoError):
        run_registrar_entrada([], db_path=db)
    with pytest.raises(ValidacaoError):
        run_registrar_entrada([100, -5], db_path=db)
    with pytest.raises(RegistroNaoEncontrado):
        run_registrar_entrada([100], dono_id=999, db_path=db)
    assert SubloteRepo(db).todos() == []


def _compra(db, cad, volumes=(600, 400)):
    return run_registrar_entrada(list(volumes), data_entrada="2025-03-10", tipo_entrada_id=cad.compra,
                                 tipo_produto_id=cad.cobre, dono_id=cad.ibrac, valor_total=50000, db_path=db)


def test_excluir_entrada_remove_documento_e_lotes(db, cad):
    res = _compra(db, cad)
    pai = res["sublotes"][0]["id"]
    SubloteRepo(db).insert({
        "codigo": "ENT-20250310-0001-V01-A", "peso_kg": 200, "tipo_produto_id": cad.cobre,
        "dono_id": cad.ibrac, "entrada_id": res["entrada_id"], "lote_pai_id": pai, "custo_unitario_total": 50,
    })
    outra = run_registrar_entrada([50], data_entrada="2025-03-11", db_path=db)

    out = excluir_entrada(res["entrada_id"], db_path=db)

    assert out == {"codigo": "ENT-20250310-0001", "lotes_removidos": 3}
    with pytest.raises(RegistroNaoEncontrado):
        EntradaRepo(db).get(res["entrada_id"])
    assert [l["entrada_id"] for l in SubloteRepo(db).todos()] == [outra["entrada_id"]]
    log = AuditRepo(db).listar("entradas")[0]
    assert (log["action"], log["record_data"]["tipo_entrada"]) == ("DELETE", "Compra")


def test_excluir_entrada_inexistente(db):
    with pytest.raises(RegistroNaoEncontrado):
        excluir_entrada(999, db_path=db)


def test_excluir_entrada_bloqueada_com_lote_em_beneficiamento(db, cad):
    res = _compra(db, cad)
    criar_beneficiamento([res["sublotes"][0]["id"]], data_inicio="2025-03-10", db_path=db)

    with pytest.raises(ValidacaoError, match="em_beneficiamento"):
        excluir_entrada(res["entrada_id"], db_path=db)
    assert len(SubloteRepo(db).get_all(where={"entrada_id": res["entrada_id"]})) == 2


def test_excluir_entrada_bloqueada_apos_venda(db, cad):
    res = _compra(db, cad)
    run_registrar_saida([res["sublotes"][1]["id"]], 45, data_saida="2025-03-15", db_path=db)

    with pytest.raises(ValidacaoError, match="não pode ser excluída"):
        excluir_entrada(res["entrada_id"], db_path=db)
    assert EntradaRepo(db).get(res["entrada_id"])["codigo"] == "ENT-20250310-0001"


def test_excluir_entrada_bloqueada_apos_transferencia(db, cad):
    res = _compra(db, cad)
    transferir_dono(res["sublotes"][0]["id"], cad.terceiro, db_path=db)

    with pytest.raises(ValidacaoError, match="transferido"):
        excluir_entrada(res["entrada_id"], db_path=db)
