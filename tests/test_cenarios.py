import pytest

from ibrac.domain.cenarios import (
    INDUSTRIALIZACAO,
    OPERACAO_TERCEIRO,
    PROPRIO,
    detectar_cenario,
    descrever_cenario,
    detectar_cenario_selecao,
    formatar_cenario,
)
from ibrac.domain.errors import ValidacaoError
from ibrac.domain.models import Sublote


@pytest.mark.parametrize(
    "gera_custo,is_ibrac,dono_id,esperado",
    [
        (False, True, 1, INDUSTRIALIZACAO),
        (False, False, 2, INDUSTRIALIZACAO),
        (True, None, None, PROPRIO),
        (True, True, 1, PROPRIO),
        (True, False, 2, OPERACAO_TERCEIRO),
    ],
)
def test_detectar_cenario(gera_custo, is_ibrac, dono_id, esperado):
    assert detectar_cenario(gera_custo, is_ibrac, dono_id) == esperado


def _lote(id, dono_id=None, is_ibrac=False, gera_custo=True):
    return Sublote(id=id, codigo=f"L{id}", peso_kg=10, dono_id=dono_id, dono_is_ibrac=is_ibrac, gera_custo=gera_custo)


def test_selecao_de_um_cenario():
    assert detectar_cenario_selecao([_lote(1, 5), _lote(2, 5)]) == OPERACAO_TERCEIRO
    assert detectar_cenario_selecao([_lote(1), _lote(2, 1, is_ibrac=True)]) == PROPRIO


def test_selecao_mista_recusada():
    with pytest.raises(ValidacaoError, match="Seleção mista"):
        detectar_cenario_selecao([_lote(1), _lote(2, 5)])


def test_selecao_de_donos_diferentes_recusada():
    with pytest.raises(ValidacaoError, match="donos diferentes"):
        detectar_cenario_selecao([_lote(1, 5), _lote(2, 6)])


def test_selecao_vazia_recusada():
    with pytest.raises(ValidacaoError):
        detectar_cenario_selecao([])


def test_formatar_cenario():
    assert formatar_cenario(INDUSTRIALIZACAO) == "Industrialização"
    assert formatar_cenario("outros") == "outros"


def test_descrever_cenario():
    assert "comissão" in descrever_cenario(OPERACAO_TERCEIRO)
    assert descrever_cenario(PROPRIO).startswith("IBRAC compra")
    assert descrever_cenario("outros") == ""
