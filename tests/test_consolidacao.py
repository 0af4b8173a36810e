import pytest
from math import isclose

from ibrac.domain.consolidacao import (
    SEM_CODIGO,
    consolidar_por_documento,
    consolidar_por_produto,
    descendentes,
    folhas,
    indice_filhos,
    verificar_relacionados,
)
from ibrac.domain.errors import ValidacaoError
from ibrac.domain.models import PerdasPorProduto, Sublote


def _lote(id, codigo, peso, produto="CU01", pai=None, entrada=10, valor=50000.0, gera_custo=True):
    return Sublote(
        id=id,
        codigo=codigo,
        peso_kg=peso,
        produto_codigo=produto,
        lote_pai_id=pai,
        entrada_id=entrada,
        entrada_codigo=f"ENT-{entrada}" if entrada else None,
        valor_documento=valor,
        gera_custo=gera_custo,
    )


@pytest.fixture
def catalogo():
    return [
        _lote(1, "L1", 1000),
        _lote(2, "L1-A", 600, pai=1),
        _lote(3, "L1-B", 400, produto="AL01", pai=1),
        _lote(4, "L2", 200),
        _lote(5, "R1", 300, entrada=11, valor=10000.0, gera_custo=False),
        _lote(6, "L1-A-1", 250, pai=2),
        _lote(7, "SOLTO", 50, produto=None, entrada=None, valor=0.0),
    ]


def test_indice_e_folhas(catalogo):
    filhos = indice_filhos(catalogo)
    assert [s.id for s in filhos[1]] == [2, 3]
    assert [s.id for s in folhas(catalogo[0], filhos)] == [6, 3]
    # lote sem filhos é a própria folha
    assert [s.id for s in folhas(catalogo[3], filhos)] == [4]


def test_descendentes(catalogo):
    filhos = indice_filhos(catalogo)
    assert [s.id for s in descendentes(1, filhos)] == [2, 3, 6]
    assert descendentes(4, filhos) == []


def test_consolidar_por_produto_substitui_pai_pelos_filhos(catalogo):
    perdas = PerdasPorProduto()
    perdas.definir("CU01", 2, 3)
    sel = [catalogo[1], catalogo[3]]  # L1-A (com filho L1-A-1) e L2
    grupos = consolidar_por_produto(sel, catalogo, perdas)

    assert len(grupos) == 1
    g = grupos[0]
    assert g.produto_codigo == "CU01"
    assert isclose(g.peso_kg, 450)
    assert g.sublote_ids == [6, 4]
    assert isclose(g.peso_saida_estimado_kg, 450 * 0.97)


def test_consolidar_por_produto_ordem_e_sem_codigo(catalogo):
    grupos = consolidar_por_produto([catalogo[0], catalogo[6]], catalogo)
    assert [g.produto_codigo for g in grupos] == ["CU01", "AL01", SEM_CODIGO]
    # sem perdas informadas, estimado = peso
    assert all(isclose(g.peso_saida_estimado_kg, g.peso_kg) for g in grupos)


@pytest.mark.parametrize(
    "selecao,folhas_esperadas",
    [
        ([1], {6, 3}),
        ([2, 3, 4, 5, 7], {6, 3, 4, 5, 7}),
        ([4, 5, 7, 3], {4, 5, 7, 3}),
    ],
)
def test_consolidar_por_produto_conserva_peso(catalogo, selecao, folhas_esperadas):
    por_id = {s.id: s for s in catalogo}
    perdas = PerdasPorProduto()
    perdas.definir("CU01", 2, 3)
    grupos = consolidar_por_produto([por_id[i] for i in selecao], catalogo, perdas)

    ids = [i for g in grupos for i in g.sublote_ids]
    assert len(ids) == len(set(ids))
    assert set(ids) == folhas_esperadas
    assert isclose(sum(g.peso_kg for g in grupos), sum(por_id[i].peso_kg for i in folhas_esperadas))


def test_consolidar_por_produto_recusa_percentual_invalido(catalogo):
    perdas = PerdasPorProduto()
    perdas.definir("CU01", 2, 130)
    with pytest.raises(ValidacaoError):
        consolidar_por_produto([catalogo[3]], catalogo, perdas)


def test_consolidar_por_documento_conta_documento_uma_vez(catalogo):
    docs = consolidar_por_documento([catalogo[1], catalogo[3]], catalogo, 1.8)
    assert len(docs) == 1
    d = docs[0]
    assert d.qtd_sublotes == 2
    assert isclose(d.valor_documento, 50000)
    assert isclose(d.taxa_financeira_valor, 900)


def test_consolidar_por_documento_sem_custo_e_sem_documento(catalogo):
    docs = consolidar_por_documento([catalogo[4], catalogo[6]], catalogo, 1.8)
    por_entrada = {d.entrada_id: d for d in docs}
    assert por_entrada[11].taxa_financeira_pct == 0.0
    assert por_entrada[11].taxa_financeira_valor == 0.0
    assert por_entrada[None].valor_documento == 0.0


def test_verificar_relacionados(catalogo):
    # irmãos podem ser selecionados juntos
    verificar_relacionados([catalogo[1], catalogo[2]], catalogo)
    with pytest.raises(ValidacaoError, match="mesmo material"):
        verificar_relacionados([catalogo[0], catalogo[5]], catalogo)
