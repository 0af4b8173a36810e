from math import isclose

from ibrac.domain.formulas import (
    calcular_custos,
    custo_adicional_kg,
    custo_medio_ponderado,
    custo_total_finalizacao,
    economia_vs_lme,
    fator_lme_semana,
    lucro_perda,
    media_ponderada,
    perda_real_pct,
    ratear_saida,
)
from ibrac.domain.models import GrupoDocumento, GrupoProduto, TaxasKg


def _grupo(codigo, peso, padrao, cobrada):
    return GrupoProduto(
        produto_codigo=codigo,
        peso_kg=peso,
        perda_padrao_pct=padrao,
        perda_cobrada_pct=cobrada,
        peso_saida_estimado_kg=peso * (1 - cobrada / 100),
    )


def test_media_ponderada():
    assert isclose(media_ponderada([(3, 100), (5, 300)]), 4.5)
    assert media_ponderada([]) == 0.0
    assert media_ponderada([(10, 0)]) == 0.0


def test_calcular_custos_material_proprio():
    grupos = [_grupo("CU01", 1000, 2, 3)]
    docs = [GrupoDocumento(entrada_id=1, valor_documento=50000, taxa_financeira_pct=1.8, taxa_financeira_valor=900)]
    c = calcular_custos(grupos, docs, TaxasKg(frete_ida=0.4, frete_volta=0, mo_terceiro=0.3, mo_ibrac=0.3))

    assert isclose(c.peso_entrada_kg, 1000)
    assert isclose(c.peso_saida_estimado_kg, 970)
    assert isclose(c.custo_operacional, 1000)
    assert isclose(c.custo_financeiro, 900)
    assert isclose(c.custo_total, 1900)
    assert isclose(c.lucro_perda_pct, 1.0)


def test_frete_volta_usa_peso_estimado():
    grupos = [_grupo("CU01", 1000, 2, 3)]
    c = calcular_custos(grupos, [], TaxasKg(frete_volta=0.5))
    assert isclose(c.custo_frete_volta, 485)
    assert c.custo_financeiro == 0


def test_perdas_medias_ponderadas_por_peso():
    grupos = [_grupo("CU01", 300, 2, 4), _grupo("AL01", 100, 6, 8)]
    c = calcular_custos(grupos, [], TaxasKg())
    assert isclose(c.perda_padrao_media_pct, 3.0)
    assert isclose(c.perda_cobrada_media_pct, 5.0)


def test_custo_total_finalizacao_soma_taxas_gravadas():
    assert isclose(custo_total_finalizacao(400, 0, 300, 300, [900]), 1900)
    assert isclose(custo_total_finalizacao(None, 10, 0, 0, [None, 5]), 15)


def test_custo_adicional_e_rateio():
    assert isclose(custo_adicional_kg(1900, 950), 2.0)
    assert custo_adicional_kg(1900, 0) == 0.0

    rateio = ratear_saida([(600, 10), (400, 20)], 1900, 950)
    assert [round(p, 6) for p, _ in rateio] == [570.0, 380.0]
    assert isclose(rateio[0][1], 12.0)
    assert isclose(rateio[1][1], 22.0)


def test_perda_real_pct():
    assert isclose(perda_real_pct(1000, 950), 5.0)
    assert perda_real_pct(0, 10) == 0.0


def test_lucro_perda():
    kg, valor = lucro_perda(1000, 5, 3, 40)
    assert isclose(kg, 20)
    assert isclose(valor, 800)
    # perda real maior que a cobrada: sem lucro
    assert lucro_perda(1000, 3, 5, 40) == (0.0, 0.0)
    # sem LME de referência
    assert lucro_perda(1000, 5, 3, 0) == (0.0, 0.0)


def test_custo_medio_e_economia():
    assert isclose(custo_medio_ponderado([(100, 10), (300, 30)]), 25.0)
    por_kg, total = economia_vs_lme(100, 30, 40)
    assert isclose(por_kg, 10)
    assert isclose(total, 1000)
    assert economia_vs_lme(100, 30, 0) == (0.0, 0.0)


def test_fator_lme_semana():
    assert isclose(fator_lme_semana(7, 1.65, 1.8), 1.07 * 1.0165 * 1.018)
    assert fator_lme_semana(0, 0, 0) == 1.0
