"""
Cost formulas for beneficiation (processing) runs.

These functions allocate freight, labour and financing costs over a set of
consolidated product groups and re-derive unit costs when a run is
finalized with its real output weight. They also carry the small LME
helpers used by the reports (loss margin valued at LME, savings versus
LME and the weekly LME tax factor).

All functions are pure: they depend solely on their inputs and do not
modify any external state. This makes them safe to unit test
individually.
"""

from typing import Iterable, List, Sequence, Tuple, Union

from ibrac.domain.models import CustosBeneficiamento, GrupoDocumento, GrupoProduto, TaxasKg

Number = Union[int, float]


def media_ponderada(pares: Iterable[Tuple[Number, Number]]) -> float:
    """Return ``Σ(value × weight) / Σ(weight)`` over ``(value, weight)`` pairs.

    Returns 0.0 when the total weight is zero instead of raising
    ``ZeroDivisionError``.
    """
    soma_peso = 0.0
    soma = 0.0
    for valor, peso in pares:
        soma += float(valor) * float(peso)
        soma_peso += float(peso)
    return soma / soma_peso if soma_peso else 0.0


def calcular_custos(
    grupos: Sequence[GrupoProduto],
    documentos: Sequence[GrupoDocumento],
    taxas: TaxasKg,
) -> CustosBeneficiamento:
    """Allocate the costs of a beneficiation run.

    Parameters
    ----------
    grupos:
        Consolidated product groups (weight before loss and estimated
        weight after loss for each product code).
    documentos:
        Consolidated document groups; each one carries its financing
        charge, counted once per distinct source document.
    taxas:
        Per-kg rates typed by the user.

    Notes
    -----
    Inbound freight and both labour costs use the input weight (before
    loss). Outbound freight uses the estimated output weight, i.e. the
    lighter post-loss shipment.
    """
    peso_entrada = sum(g.peso_kg for g in grupos)
    peso_saida = sum(g.peso_saida_estimado_kg for g in grupos)

    frete_ida = taxas.frete_ida * peso_entrada
    frete_volta = taxas.frete_volta * peso_saida
    mo_terceiro = taxas.mo_terceiro * peso_entrada
    mo_ibrac = taxas.mo_ibrac * peso_entrada
    operacional = frete_ida + frete_volta + mo_terceiro + mo_ibrac
    financeiro = sum(d.taxa_financeira_valor for d in documentos)

    perda_padrao = media_ponderada((g.perda_padrao_pct, g.peso_kg) for g in grupos)
    perda_cobrada = media_ponderada((g.perda_cobrada_pct, g.peso_kg) for g in grupos)

    return CustosBeneficiamento(
        peso_entrada_kg=peso_entrada,
        peso_saida_estimado_kg=peso_saida,
        custo_frete_ida=frete_ida,
        custo_frete_volta=frete_volta,
        custo_mo_terceiro=mo_terceiro,
        custo_mo_ibrac=mo_ibrac,
        custo_operacional=operacional,
        custo_financeiro=financeiro,
        custo_total=operacional + financeiro,
        perda_padrao_media_pct=perda_padrao,
        perda_cobrada_media_pct=perda_cobrada,
        lucro_perda_pct=perda_cobrada - perda_padrao,
    )


def custo_total_finalizacao(
    custo_frete_ida: Number,
    custo_frete_volta: Number,
    custo_mo_terceiro: Number,
    custo_mo_ibrac: Number,
    taxas_financeiras_gravadas: Iterable[Number],
) -> float:
    """Total cost of a run at finalization time.

    The financing part comes from the document rows stored when the run
    was created, not from the current global rate.
    """
    operacional = float(custo_frete_ida or 0) + float(custo_frete_volta or 0)
    operacional += float(custo_mo_terceiro or 0) + float(custo_mo_ibrac or 0)
    return operacional + sum(float(v or 0) for v in taxas_financeiras_gravadas)


def custo_adicional_kg(custo_total: Number, peso_saida_real: Number) -> float:
    """Cost added to each output kg (0.0 when there is no output)."""
    peso = float(peso_saida_real)
    return float(custo_total) / peso if peso > 0 else 0.0


def ratear_saida(
    itens: Sequence[Tuple[Number, Number]],
    custo_total: Number,
    peso_saida_real: Number,
) -> List[Tuple[float, float]]:
    """Split the real output weight over the input items.

    ``itens`` holds ``(input_weight, original_unit_cost)`` for each input
    lot. For each one returns ``(derived_weight, new_unit_cost)`` where the
    derived weight is the input share times the real output and the new
    unit cost is ``original_unit_cost + custo_total / peso_saida_real``.
    """
    peso_total = sum(float(p) for p, _ in itens)
    adicional = custo_adicional_kg(custo_total, peso_saida_real)
    out: List[Tuple[float, float]] = []
    for peso, custo_original in itens:
        proporcao = float(peso) / peso_total if peso_total > 0 else 0.0
        out.append((proporcao * float(peso_saida_real), float(custo_original or 0) + adicional))
    return out


def perda_real_pct(peso_entrada: Number, peso_saida_real: Number) -> float:
    """Observed loss percentage of a finalized run."""
    entrada = float(peso_entrada)
    if entrada <= 0:
        return 0.0
    return (entrada - float(peso_saida_real)) / entrada * 100


def lucro_perda(
    peso_entrada: Number,
    perda_cobrada_pct: Number,
    perda_real_pct: Number,
    lme_kg: Number,
) -> Tuple[float, float]:
    """Loss margin in kg and in BRL valued at the LME reference.

    When the charged loss exceeds the real loss the company keeps the
    difference. No margin is reported when it does not, or when there is
    no LME reference.
    """
    diferenca = float(perda_cobrada_pct) - float(perda_real_pct)
    if diferenca <= 0 or float(lme_kg) <= 0:
        return 0.0, 0.0
    kg = float(peso_entrada) * diferenca / 100
    return kg, kg * float(lme_kg)


def custo_medio_ponderado(sublotes: Iterable[Tuple[Number, Number]]) -> float:
    """Weighted average unit cost of ``(weight, unit_cost)`` pairs."""
    return media_ponderada((custo or 0, peso or 0) for peso, custo in sublotes)


def economia_vs_lme(peso_kg: Number, custo_kg: Number, lme_kg: Number) -> Tuple[float, float]:
    """Savings per kg and total of producing at ``custo_kg`` instead of buying at LME."""
    if float(lme_kg) <= 0 or float(peso_kg) <= 0:
        return 0.0, 0.0
    por_kg = float(lme_kg) - float(custo_kg)
    return por_kg, por_kg * float(peso_kg)


def fator_lme_semana(icms_pct: Number, pis_cofins_pct: Number, taxa_financeira_pct: Number) -> float:
    """Compound tax/financing factor applied to the weekly LME base price."""
    return (1 + float(icms_pct) / 100) * (1 + float(pis_cofins_pct) / 100) * (1 + float(taxa_financeira_pct) / 100)
