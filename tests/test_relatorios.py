from math import isclose

import pytest

from ibrac.domain.errors import RegistroNaoEncontrado
from ibrac.domain.models import PerdasPorProduto, TaxasKg
from ibrac.infra.repositories import LmeRepo
from ibrac.usecases.registrar_beneficiamento import criar_beneficiamento, finalizar_beneficiamento
from ibrac.usecases.registrar_entrada import run_registrar_entrada
from ibrac.usecases.registrar_saida import run_registrar_saida
from ibrac.usecases.relatorios import (
    relatorio_demonstrativo,
    relatorio_estoque,
    relatorio_repasses,
    relatorio_resultado_ibrac,
)


@pytest.fixture
def operacoes(db, cad):
    """Uma venda de terceiro, uma industrialização e um beneficiamento com lucro na perda."""
    def entrada(tipo, dono, peso, valor, produto=None):
        res = run_registrar_entrada([peso], data_entrada="2025-03-10", tipo_entrada_id=tipo,
                                    tipo_produto_id=produto, dono_id=dono, valor_total=valor, db_path=db)
        return res["sublotes"][0]["id"]

    terceiro = entrada(cad.compra, cad.terceiro, 1000, 8000)
    run_registrar_saida([terceiro], 10, custos_adicionais=1000, data_saida="2025-03-15", db_path=db)

    remessa = entrada(cad.remessa, cad.cliente, 500, 0)
    run_registrar_saida([remessa], 10, custos_adicionais=1200, data_saida="2025-03-15", db_path=db)

    proprio = entrada(cad.compra, cad.ibrac, 1000, 50000, produto=cad.cobre)
    perdas = PerdasPorProduto()
    perdas.definir("CU01", 2, 3)
    ben = criar_beneficiamento([proprio], perdas, TaxasKg(frete_ida=0.4), 1.8, db_path=db)
    finalizar_beneficiamento(ben["beneficiamento_id"], 980, lme_referencia_kg=40, db_path=db)
    return cad


def test_estoque_vazio(db):
    columns, rows, msg = relatorio_estoque(db_path=db)
    assert rows == []
    assert msg == "Nenhum lote disponível em estoque."
    assert "Peso (kg)" in columns


def test_estoque_com_economia_vs_lme(db, operacoes):
    LmeRepo(db).insert({"data": "2025-03-01", "cobre_brl_kg": 60.0})
    columns, rows, msg = relatorio_estoque(db_path=db)
    assert msg is None
    assert len(rows) == 1
    codigo, nome, qtd, peso, custo_medio, economia = rows[0]
    assert (codigo, nome, qtd) == ("CU01", "Cobre mel", 1)
    assert isclose(peso, 980)
    # custo = 50 + (400 + 900) / 980
    assert isclose(custo_medio, 50 + 1300 / 980)
    assert isclose(economia, (60 - custo_medio) * 980)


def test_resultado_ibrac(db, operacoes):
    columns, rows, msg = relatorio_resultado_ibrac(db_path=db)
    assert columns == ["Origem", "Qtd", "Valor (R$)"]
    por_origem = {r[0]: r for r in rows}
    assert por_origem["Lucro na perda"][1:] == [1, 400.0]
    assert por_origem["Serviço de industrialização"][1:] == [1, 1200.0]
    assert por_origem["Comissões"][1:] == [1, 450.0]
    assert isclose(por_origem["Total"][2], 2050.0)


def test_repasses_e_demonstrativo(db, operacoes):
    _, rows, msg = relatorio_repasses(db_path=db)
    assert msg is None
    assert rows == [["Fulano Metais", 1, 8550.0]]

    _, rows, msg = relatorio_demonstrativo(operacoes.terceiro, db_path=db)
    assert len(rows) == 1
    assert rows[0][2] == "Operação Terceiro"
    assert rows[0][7] == 8550
    assert rows[0][8] == "pendente"

    _, rows, msg = relatorio_demonstrativo(operacoes.ibrac, db_path=db)
    assert rows == []
    assert "IBRAC" in msg


def test_demonstrativo_dono_inexistente(db):
    with pytest.raises(RegistroNaoEncontrado):
        relatorio_demonstrativo(999, db_path=db)
