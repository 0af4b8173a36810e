"""
Consolidação de sublotes selecionados para um beneficiamento.

Duas visões são produzidas a partir da mesma seleção:

* por código de produto (``consolidar_por_produto``): lotes-pai são
  substituídos pelos seus filhos, cada um contribuindo com o próprio peso e
  código de produto; os percentuais de perda vêm do usuário
  (``PerdasPorProduto``) e determinam o peso de saída estimado;
* por documento de entrada (``consolidar_por_documento``): o valor do
  documento entra uma única vez, não importa quantos lotes dele foram
  selecionados, e sobre ele incide a taxa financeira global.

A hierarquia pai/filho é uma árvore; o índice ``id -> filhos`` é montado uma
vez por passada.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence

from ibrac.domain.errors import ValidacaoError
from ibrac.domain.models import GrupoDocumento, GrupoProduto, PerdasPorProduto, Sublote
from ibrac.domain.policies import validar_pct


SEM_CODIGO = "SEM_CODIGO"


def indice_filhos(catalogo: Iterable[Sublote]) -> Dict[int, List[Sublote]]:
    """Mapeia id do lote-pai -> filhos presentes no catálogo."""
    idx: Dict[int, List[Sublote]] = defaultdict(list)
    for s in catalogo:
        if s.lote_pai_id is not None:
            idx[s.lote_pai_id].append(s)
    return dict(idx)


def folhas(lote: Sublote, filhos: Dict[int, List[Sublote]]) -> List[Sublote]:
    """Lotes sem filhos abaixo de `lote` (o próprio lote, se não tiver filhos)."""
    out: List[Sublote] = []
    pilha = [lote]
    vistos = set()
    while pilha:
        atual = pilha.pop()
        if atual.id in vistos:
            continue
        vistos.add(atual.id)
        sub = filhos.get(atual.id)
        if sub:
            # mantém a ordem do catálogo ao desempilhar
            pilha.extend(reversed(sub))
        else:
            out.append(atual)
    return out


def descendentes(lote_id: int, filhos: Dict[int, List[Sublote]]) -> List[Sublote]:
    """Todos os lotes abaixo de `lote_id` na árvore (filhos, netos, ...)."""
    out: List[Sublote] = []
    pilha = list(filhos.get(lote_id, []))
    vistos = set()
    while pilha:
        atual = pilha.pop(0)
        if atual.id in vistos:
            continue
        vistos.add(atual.id)
        out.append(atual)
        pilha.extend(filhos.get(atual.id, []))
    return out


def verificar_relacionados(selecionados: Sequence[Sublote], catalogo: Iterable[Sublote]) -> None:
    """Recusa seleções que contenham um lote e algum ancestral dele."""
    por_id = {s.id: s for s in catalogo}
    for s in selecionados:
        por_id.setdefault(s.id, s)
    ids = {s.id for s in selecionados}
    for s in selecionados:
        vistos = {s.id}
        pai_id = s.lote_pai_id
        while pai_id is not None and pai_id not in vistos:
            if pai_id in ids:
                pai = por_id[pai_id]
                raise ValidacaoError(
                    f"O lote '{s.codigo}' é parte do mesmo material que '{pai.codigo}'. "
                    "Não é possível selecionar ambos."
                )
            vistos.add(pai_id)
            pai = por_id.get(pai_id)
            pai_id = pai.lote_pai_id if pai else None


def consolidar_por_produto(
    selecionados: Sequence[Sublote],
    catalogo: Sequence[Sublote],
    perdas: Optional[PerdasPorProduto] = None,
) -> List[GrupoProduto]:
    """Agrupa os lotes selecionados por código de produto.

    Lotes que não estão no catálogo são ignorados. A ordem dos grupos é a
    ordem em que cada código aparece pela primeira vez.
    """
    perdas = perdas or PerdasPorProduto()
    por_id = {s.id: s for s in catalogo}
    filhos = indice_filhos(catalogo)

    grupos: Dict[str, GrupoProduto] = {}
    for sel in selecionados:
        lote = por_id.get(sel.id)
        if lote is None:
            continue
        for contrib in folhas(lote, filhos):
            chave = contrib.produto_codigo or SEM_CODIGO
            grupo = grupos.get(chave)
            if grupo is None:
                grupo = GrupoProduto(produto_codigo=chave, tipo_produto_id=contrib.tipo_produto_id)
                grupos[chave] = grupo
            grupo.peso_kg += contrib.peso_kg
            grupo.sublote_ids.append(contrib.id)

    for chave, grupo in grupos.items():
        p = perdas.para(chave)
        grupo.perda_padrao_pct = validar_pct(p.perda_padrao_pct, f"perda padrão ({chave})")
        grupo.perda_cobrada_pct = validar_pct(p.perda_cobrada_pct, f"perda cobrada ({chave})")
        grupo.peso_saida_estimado_kg = grupo.peso_kg * (1 - grupo.perda_cobrada_pct / 100)
    return list(grupos.values())


def consolidar_por_documento(
    selecionados: Sequence[Sublote],
    catalogo: Sequence[Sublote],
    taxa_financeira_pct: float,
) -> List[GrupoDocumento]:
    """Agrupa a seleção por documento de entrada.

    O valor do documento é tomado uma vez por documento distinto. Documentos
    que não geram custo (remessa para industrialização) não têm custo
    financeiro.
    """
    taxa = validar_pct(taxa_financeira_pct, "taxa financeira")
    por_id = {s.id: s for s in catalogo}
    grupos: Dict[Optional[int], GrupoDocumento] = {}
    for sel in selecionados:
        lote = por_id.get(sel.id)
        if lote is None:
            continue
        grupo = grupos.get(lote.entrada_id)
        if grupo is None:
            valor = lote.valor_documento if lote.entrada_id is not None else 0.0
            grupo = GrupoDocumento(
                entrada_id=lote.entrada_id,
                codigo=lote.entrada_codigo,
                valor_documento=valor,
                taxa_financeira_pct=taxa if lote.gera_custo else 0.0,
            )
            grupo.taxa_financeira_valor = grupo.valor_documento * grupo.taxa_financeira_pct / 100
            grupos[lote.entrada_id] = grupo
        grupo.qtd_sublotes += 1
    return list(grupos.values())
