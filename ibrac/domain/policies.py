"""
Políticas de validação e arredondamento do sistema IBRAC.

Este módulo reúne as regras que protegem as fórmulas de custo contra
entradas fora de faixa (percentuais digitados pelo usuário, pesos
negativos) e o arredondamento monetário aplicado aos acertos financeiros.
As funções são usadas pela camada de aplicação antes de qualquer gravação.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from ibrac.domain.errors import ValidacaoError
from ibrac.domain.models import StatusSublote, Sublote


def validar_pct(valor: Optional[float], nome: str = "percentual") -> float:
    """Valida um percentual informado pelo usuário.

    Regras:
        - ``None`` é tratado como zero (campo não preenchido).
        - Valores fora do intervalo ``[0, 100]`` lançam ``ValidacaoError``.

    Args:
        valor: Percentual digitado.
        nome: Nome do campo, usado na mensagem de erro.

    Returns:
        O percentual como ``float``.
    """
    if valor is None:
        return 0.0
    try:
        v = float(valor)
    except (TypeError, ValueError):
        raise ValidacaoError(f"{nome}: valor inválido ({valor!r})")
    if v < 0 or v > 100:
        raise ValidacaoError(f"{nome}: deve estar entre 0 e 100 (recebido {v})")
    return v


def validar_nao_negativo(valor: Optional[float], nome: str) -> float:
    """Garante que custos em R$/kg, pesos e preços não sejam negativos."""
    if valor is None:
        return 0.0
    v = float(valor)
    if v < 0:
        raise ValidacaoError(f"{nome}: não pode ser negativo (recebido {v})")
    return v


def arredonda_moeda(x: Optional[float]) -> float:
    """Arredonda para centavos (meio para cima), como nos documentos fiscais."""
    if x is None:
        return 0.0
    return float(Decimal(str(x)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def exigir_selecionaveis(sublotes: Iterable[Sublote]) -> None:
    """Recusa lotes consumidos, vendidos, em processo ou sem saldo."""
    for s in sublotes:
        if s.status in StatusSublote.ENCERRADOS:
            raise ValidacaoError(f"Sublote {s.codigo} já está {s.status}")
        if not s.selecionavel:
            raise ValidacaoError(f"Sublote {s.codigo} não está disponível (status={s.status}, peso={s.peso_kg})")
