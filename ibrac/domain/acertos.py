"""
Cálculo dos valores de uma saída e dos acertos financeiros gerados.

Regras por cenário:
- proprio: consumo/venda interna, nenhum acerto é gerado; o resultado
  reportado é o custo final da IBRAC (custo de beneficiamento alocado).
- industrializacao: os custos cobrados viram receita de serviço da IBRAC
  (um acerto `receita` confirmado).
- operacao_terceiro: comissão sobre (valor bruto - custos) é receita da
  IBRAC (confirmada); o saldo é repasse ao dono (acerto `divida` pendente).
  Custos acima do valor bruto são recusados: nenhum acerto expressa um
  saldo devido pelo dono.

Os acertos saem sem `referencia_id`; o caso de uso preenche com o id da
saída antes de gravar.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from ibrac.domain.cenarios import INDUSTRIALIZACAO, OPERACAO_TERCEIRO, PROPRIO
from ibrac.domain.errors import ValidacaoError
from ibrac.domain.models import AcertoFinanceiro, ResultadoSaida, StatusAcerto, TipoAcerto
from ibrac.domain.policies import arredonda_moeda, validar_nao_negativo, validar_pct


def custo_perda(peso_total: float, perda_cobrada_pct: float, valor_unitario: float) -> float:
    """Valor da perda cobrada: kg perdidos x preço unitário."""
    pct = validar_pct(perda_cobrada_pct, "perda cobrada")
    return float(peso_total) * pct / 100 * float(valor_unitario)


def calcular_saida(
    cenario: str,
    peso_total: float,
    valor_unitario: float,
    custo_beneficiamento: float,
    custo_perda: float,
    custos_adicionais: float,
    cobra_custos: bool = True,
    taxa_operacao_pct: float = 0.0,
    dono_id: Optional[int] = None,
    data_acerto: Optional[str] = None,
) -> ResultadoSaida:
    """Calcula valor bruto, custos deduzidos e acertos de uma saída."""
    peso = validar_nao_negativo(peso_total, "peso total")
    preco = validar_nao_negativo(valor_unitario, "valor unitário")
    benef = validar_nao_negativo(custo_beneficiamento, "custo de beneficiamento")
    perda = validar_nao_negativo(custo_perda, "custo da perda")
    adicionais = validar_nao_negativo(custos_adicionais, "custos adicionais")
    data_acerto = data_acerto or date.today().isoformat()

    valor_bruto = arredonda_moeda(peso * preco)
    custos_totais = arredonda_moeda(perda + adicionais + (benef if cobra_custos else 0.0))

    res = ResultadoSaida(
        cenario=cenario,
        valor_bruto=valor_bruto,
        custo_perda=arredonda_moeda(perda),
        custos_adicionais=arredonda_moeda(adicionais),
        custo_beneficiamento=arredonda_moeda(benef),
        custos_totais=custos_totais,
    )

    if cenario == PROPRIO:
        res.custo_final_ibrac = arredonda_moeda(benef)
        return res

    if cenario == INDUSTRIALIZACAO:
        res.receita_servico = custos_totais
        res.acertos.append(AcertoFinanceiro(
            tipo=TipoAcerto.RECEITA,
            valor=custos_totais,
            status=StatusAcerto.CONFIRMADO,
            dono_id=dono_id,
            data_acerto=data_acerto,
            observacoes="Receita de serviço de industrialização",
        ))
        return res

    if cenario == OPERACAO_TERCEIRO:
        pct = validar_pct(taxa_operacao_pct, "taxa de operação")
        liquido = arredonda_moeda(valor_bruto - custos_totais)
        if liquido < 0:
            raise ValidacaoError(
                f"Custos deduzidos (R$ {custos_totais:.2f}) superam o valor bruto (R$ {valor_bruto:.2f}): "
                "o repasse ao dono ficaria negativo"
            )
        comissao = arredonda_moeda(liquido * pct / 100)
        # repasse calculado por diferença: comissão + repasse == líquido
        repasse = arredonda_moeda(liquido - comissao)
        res.comissao_ibrac = comissao
        res.valor_repasse_dono = repasse
        res.acertos.append(AcertoFinanceiro(
            tipo=TipoAcerto.RECEITA,
            valor=comissao,
            status=StatusAcerto.CONFIRMADO,
            dono_id=dono_id,
            data_acerto=data_acerto,
            observacoes=f"Comissão IBRAC ({pct}%)",
        ))
        res.acertos.append(AcertoFinanceiro(
            tipo=TipoAcerto.DIVIDA,
            valor=repasse,
            status=StatusAcerto.PENDENTE,
            dono_id=dono_id,
            data_acerto=data_acerto,
            observacoes="Repasse ao dono do material",
        ))
        return res

    raise ValidacaoError(f"Cenário desconhecido: {cenario}")
