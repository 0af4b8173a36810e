# ibrac/domain/models.py
"""
Modelos (dataclasses) do domínio.

Observação importante:
- Os repositórios devolvem dicionários; o pipeline de consolidação e de
  cálculo trabalha com as dataclasses abaixo. `Sublote.from_row` é a porta
  de entrada: valida as relações obrigatórias antes do cálculo.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ibrac.domain.errors import ValidacaoError


class StatusSublote:
    DISPONIVEL = "disponivel"
    RESERVADO = "reservado"
    EM_BENEFICIAMENTO = "em_beneficiamento"
    CONSUMIDO = "consumido"
    VENDIDO = "vendido"

    TODOS = (DISPONIVEL, RESERVADO, EM_BENEFICIAMENTO, CONSUMIDO, VENDIDO)
    ENCERRADOS = (CONSUMIDO, VENDIDO)


class StatusBeneficiamento:
    EM_ANDAMENTO = "em_andamento"
    FINALIZADO = "finalizado"


class TipoAcerto:
    RECEITA = "receita"   # receita da IBRAC
    DIVIDA = "divida"     # valor devido ao dono do material


class StatusAcerto:
    PENDENTE = "pendente"
    CONFIRMADO = "confirmado"
    PAGO = "pago"


@dataclass
class Params:
    """Parâmetros globais (armazenados na tabela `params` como chave/valor)."""
    taxa_financeira_pct: float = 1.8
    perda_real_pct: float = 3.0
    perda_cobrada_pct: float = 5.0
    icms_pct: float = 7.0
    pis_cofins_pct: float = 1.65


@dataclass
class Sublote:
    """Quantidade física de material, com as relações já resolvidas."""
    id: int
    codigo: str
    peso_kg: float
    status: str = StatusSublote.DISPONIVEL
    tipo_produto_id: Optional[int] = None
    produto_codigo: Optional[str] = None
    dono_id: Optional[int] = None          # None = material da casa
    dono_is_ibrac: bool = False
    taxa_operacao_pct: float = 0.0
    entrada_id: Optional[int] = None
    gera_custo: bool = True
    valor_documento: float = 0.0
    entrada_codigo: Optional[str] = None
    custo_unitario_total: float = 0.0
    custo_beneficiamento_kg: float = 0.0
    lote_pai_id: Optional[int] = None

    @property
    def selecionavel(self) -> bool:
        return self.status == StatusSublote.DISPONIVEL and self.peso_kg > 0

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Sublote":
        """Constrói a partir de uma linha do repositório, validando relações.

        Exige peso não-negativo e status conhecido. Se a linha referencia um
        tipo de produto (``tipo_produto_id``), a junção precisa ter resolvido
        o cadastro (``produto_nome`` presente); o mesmo vale para o dono.
        """
        peso = float(row.get("peso_kg") or 0.0)
        if peso < 0:
            raise ValidacaoError(f"Sublote {row.get('codigo')}: peso negativo ({peso})")
        status = row.get("status") or StatusSublote.DISPONIVEL
        if status not in StatusSublote.TODOS:
            raise ValidacaoError(f"Sublote {row.get('codigo')}: status desconhecido '{status}'")
        if row.get("tipo_produto_id") is not None and row.get("produto_nome") is None:
            raise ValidacaoError(f"Sublote {row.get('codigo')}: tipo de produto inexistente")
        if row.get("dono_id") is not None and row.get("dono_nome") is None:
            raise ValidacaoError(f"Sublote {row.get('codigo')}: dono inexistente")

        gera_custo = row.get("gera_custo")
        return cls(
            id=int(row["id"]),
            codigo=str(row["codigo"]),
            peso_kg=peso,
            status=status,
            tipo_produto_id=row.get("tipo_produto_id"),
            produto_codigo=row.get("produto_codigo"),
            dono_id=row.get("dono_id"),
            dono_is_ibrac=bool(row.get("dono_is_ibrac") or 0),
            taxa_operacao_pct=float(row.get("taxa_operacao_pct") or 0.0),
            entrada_id=row.get("entrada_id"),
            # sem documento/tipo de entrada o material é tratado como comprado
            gera_custo=True if gera_custo is None else bool(gera_custo),
            valor_documento=float(row.get("valor_documento") or 0.0),
            entrada_codigo=row.get("entrada_codigo"),
            custo_unitario_total=float(row.get("custo_unitario_total") or 0.0),
            custo_beneficiamento_kg=float(row.get("custo_beneficiamento_kg") or 0.0),
            lote_pai_id=row.get("lote_pai_id"),
        )


@dataclass
class PerdasProduto:
    perda_padrao_pct: float = 0.0
    perda_cobrada_pct: float = 0.0


@dataclass
class PerdasPorProduto:
    """Percentuais de perda informados pelo usuário, por código de produto.

    Vive apenas durante uma montagem de beneficiamento; é passado
    explicitamente para a consolidação.
    """
    valores: Dict[str, PerdasProduto] = field(default_factory=dict)

    def definir(self, produto_codigo: str, perda_padrao_pct: float, perda_cobrada_pct: float) -> None:
        self.valores[produto_codigo] = PerdasProduto(perda_padrao_pct, perda_cobrada_pct)

    def para(self, produto_codigo: str) -> PerdasProduto:
        return self.valores.get(produto_codigo, PerdasProduto())


@dataclass
class GrupoProduto:
    """Agregado efêmero por código de produto."""
    produto_codigo: str
    peso_kg: float = 0.0
    tipo_produto_id: Optional[int] = None
    sublote_ids: List[int] = field(default_factory=list)
    perda_padrao_pct: float = 0.0
    perda_cobrada_pct: float = 0.0
    peso_saida_estimado_kg: float = 0.0


@dataclass
class GrupoDocumento:
    """Agregado efêmero por documento de entrada."""
    entrada_id: Optional[int]
    codigo: Optional[str] = None
    qtd_sublotes: int = 0
    valor_documento: float = 0.0
    taxa_financeira_pct: float = 0.0
    taxa_financeira_valor: float = 0.0


@dataclass
class TaxasKg:
    """Custos informados em R$/kg na montagem do beneficiamento."""
    frete_ida: float = 0.0
    frete_volta: float = 0.0
    mo_terceiro: float = 0.0
    mo_ibrac: float = 0.0


@dataclass
class CustosBeneficiamento:
    peso_entrada_kg: float
    peso_saida_estimado_kg: float
    custo_frete_ida: float
    custo_frete_volta: float
    custo_mo_terceiro: float
    custo_mo_ibrac: float
    custo_operacional: float
    custo_financeiro: float
    custo_total: float
    perda_padrao_media_pct: float
    perda_cobrada_media_pct: float
    lucro_perda_pct: float


@dataclass
class AcertoFinanceiro:
    tipo: str
    valor: float
    status: str
    dono_id: Optional[int] = None
    referencia_tipo: str = "saida"
    referencia_id: Optional[int] = None
    data_acerto: Optional[str] = None
    observacoes: Optional[str] = None


@dataclass
class ResultadoSaida:
    """Resultado do cálculo de uma saída, por cenário."""
    cenario: str
    valor_bruto: float
    custo_perda: float
    custos_adicionais: float
    custo_beneficiamento: float
    custos_totais: float
    comissao_ibrac: float = 0.0
    valor_repasse_dono: float = 0.0
    receita_servico: float = 0.0
    custo_final_ibrac: float = 0.0
    acertos: List[AcertoFinanceiro] = field(default_factory=list)
