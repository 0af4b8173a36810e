"""
Classificação das saídas nos três cenários de operação.

Cenário 1 - material próprio: documento gera custo e o dono é a IBRAC (ou
não há dono).
Cenário 2 - industrialização: documento não gera custo (cliente enviou o
material só para beneficiar), independentemente do dono.
Cenário 3 - operação de terceiro: documento gera custo e o dono é um
terceiro; a IBRAC recebe comissão e repassa o saldo ao dono.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from ibrac.domain.errors import ValidacaoError
from ibrac.domain.models import Sublote


PROPRIO = "proprio"
INDUSTRIALIZACAO = "industrializacao"
OPERACAO_TERCEIRO = "operacao_terceiro"


@dataclass(frozen=True)
class CenarioInfo:
    tipo: str
    label: str
    descricao: str


CENARIOS_CONFIG: Dict[str, CenarioInfo] = {
    PROPRIO: CenarioInfo(PROPRIO, "Material Próprio", "IBRAC compra, beneficia e consome/vende"),
    INDUSTRIALIZACAO: CenarioInfo(
        INDUSTRIALIZACAO, "Industrialização",
        "Cliente envia material para beneficiar, IBRAC presta serviço",
    ),
    OPERACAO_TERCEIRO: CenarioInfo(
        OPERACAO_TERCEIRO, "Operação Terceiro",
        "IBRAC compra em nome do dono, beneficia e vende, cobra comissão",
    ),
}


def detectar_cenario(gera_custo: bool, is_ibrac: Optional[bool], dono_id: Optional[int]) -> str:
    """Classifica uma operação. A primeira regra que casar vence."""
    if not gera_custo:
        return INDUSTRIALIZACAO
    if dono_id is None or is_ibrac:
        return PROPRIO
    return OPERACAO_TERCEIRO


def detectar_cenario_sublote(sublote: Sublote) -> str:
    return detectar_cenario(sublote.gera_custo, sublote.dono_is_ibrac, sublote.dono_id)


def detectar_cenario_selecao(sublotes: Sequence[Sublote]) -> str:
    """Cenário de uma seleção de lotes.

    Todos os lotes precisam cair no mesmo cenário; seleções mistas são
    recusadas. Lotes de donos terceiros diferentes também são recusados,
    pois a comissão e o repasse são por dono.
    """
    if not sublotes:
        raise ValidacaoError("Selecione ao menos um lote")
    cenario = detectar_cenario_sublote(sublotes[0])
    for s in sublotes[1:]:
        outro = detectar_cenario_sublote(s)
        if outro != cenario:
            raise ValidacaoError(
                f"Seleção mista: '{sublotes[0].codigo}' é {formatar_cenario(cenario)} "
                f"e '{s.codigo}' é {formatar_cenario(outro)}"
            )
    if cenario == OPERACAO_TERCEIRO and len({s.dono_id for s in sublotes}) > 1:
        raise ValidacaoError("Seleção com lotes de donos diferentes")
    return cenario


def formatar_cenario(cenario: str) -> str:
    info = CENARIOS_CONFIG.get(cenario)
    return info.label if info else cenario


def descrever_cenario(cenario: str) -> str:
    info = CENARIOS_CONFIG.get(cenario)
    return info.descricao if info else ""
