import pytest
from math import isclose

from ibrac.domain.acertos import calcular_saida, custo_perda
from ibrac.domain.cenarios import INDUSTRIALIZACAO, OPERACAO_TERCEIRO, PROPRIO
from ibrac.domain.errors import ValidacaoError
from ibrac.domain.models import StatusAcerto, TipoAcerto


def test_custo_perda():
    assert isclose(custo_perda(1000, 2, 10), 200)
    assert custo_perda(1000, 0, 10) == 0
    with pytest.raises(ValidacaoError):
        custo_perda(1000, 150, 10)


def test_material_proprio_sem_acertos():
    res = calcular_saida(PROPRIO, 100, 10, custo_beneficiamento=150, custo_perda=0, custos_adicionais=0)
    assert res.valor_bruto == 1000
    assert res.acertos == []
    assert res.custo_final_ibrac == 150
    assert res.comissao_ibrac == 0


def test_industrializacao_gera_receita_de_servico():
    res = calcular_saida(INDUSTRIALIZACAO, 1000, 10, custo_beneficiamento=0, custo_perda=0,
                         custos_adicionais=1200, dono_id=3, data_acerto="2025-03-15")
    assert res.receita_servico == 1200
    assert len(res.acertos) == 1
    a = res.acertos[0]
    assert (a.tipo, a.status, a.valor, a.dono_id) == (TipoAcerto.RECEITA, StatusAcerto.CONFIRMADO, 1200, 3)
    assert a.data_acerto == "2025-03-15"


def test_operacao_terceiro_comissao_e_repasse():
    res = calcular_saida(OPERACAO_TERCEIRO, 1000, 10, custo_beneficiamento=0, custo_perda=0,
                         custos_adicionais=1000, taxa_operacao_pct=5, dono_id=7)
    assert res.valor_bruto == 10000
    assert res.custos_totais == 1000
    assert res.comissao_ibrac == 450
    assert res.valor_repasse_dono == 8550

    receita, divida = res.acertos
    assert (receita.tipo, receita.status, receita.valor) == (TipoAcerto.RECEITA, StatusAcerto.CONFIRMADO, 450)
    assert (divida.tipo, divida.status, divida.valor) == (TipoAcerto.DIVIDA, StatusAcerto.PENDENTE, 8550)
    assert divida.dono_id == 7
    assert divida.referencia_id is None


def test_comissao_e_repasse_somam_o_liquido():
    res = calcular_saida(OPERACAO_TERCEIRO, 1, 333.33, custo_beneficiamento=0, custo_perda=0,
                         custos_adicionais=0, taxa_operacao_pct=5)
    assert isclose(res.comissao_ibrac + res.valor_repasse_dono, 333.33)
    assert res.comissao_ibrac == round(res.comissao_ibrac, 2)


def test_tipo_saida_sem_cobranca_nao_deduz_beneficiamento():
    res = calcular_saida(OPERACAO_TERCEIRO, 100, 10, custo_beneficiamento=500, custo_perda=20,
                         custos_adicionais=30, cobra_custos=False, taxa_operacao_pct=10)
    assert res.custos_totais == 50
    assert res.custo_beneficiamento == 500
    assert res.comissao_ibrac == 95


def test_valores_invalidos():
    with pytest.raises(ValidacaoError):
        calcular_saida(PROPRIO, -1, 10, 0, 0, 0)
    with pytest.raises(ValidacaoError):
        calcular_saida(OPERACAO_TERCEIRO, 10, 10, 0, 0, 0, taxa_operacao_pct=101)
    with pytest.raises(ValidacaoError, match="Cenário desconhecido"):
        calcular_saida("outro", 10, 10, 0, 0, 0)


def test_operacao_terceiro_custos_acima_do_bruto_recusada():
    with pytest.raises(ValidacaoError, match="repasse ao dono ficaria negativo"):
        calcular_saida(OPERACAO_TERCEIRO, 100, 10, custo_beneficiamento=0, custo_perda=0,
                       custos_adicionais=5000, taxa_operacao_pct=5, dono_id=7)


def test_operacao_terceiro_custos_iguais_ao_bruto():
    res = calcular_saida(OPERACAO_TERCEIRO, 100, 10, custo_beneficiamento=0, custo_perda=0,
                         custos_adicionais=1000, taxa_operacao_pct=5)
    assert (res.comissao_ibrac, res.valor_repasse_dono) == (0, 0)
