# ibrac/adapters/planilhas.py
"""
Leitura e escrita de planilhas (XLSX) para importação/exportação.

Estas funções:
- leem planilhas XLSX usando pandas;
- normalizam cabeçalhos (acentos, caixa, pontuação) para casar com o layout;
- convertem os valores conforme o tipo declarado na coluna;
- devolvem as linhas válidas e a lista de erros por linha.

Observações:
- A resolução de chaves estrangeiras (nome -> id) é feita no caso de uso,
  pois depende do banco.
- A numeração das linhas nos erros segue a planilha (cabeçalho = linha 1).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from ibrac.adapters.parsers import parse_numero_br


@dataclass(frozen=True)
class ColunaPlanilha:
    """Mapeamento de uma coluna da planilha para uma coluna do banco.

    `lookup` = (tabela, coluna_nome): o valor da planilha é um nome que deve
    ser trocado pelo id do registro correspondente.
    """
    coluna_db: str
    coluna_excel: str
    tipo: str = "string"          # string | number | date | boolean
    obrigatoria: bool = False
    lookup: Optional[Tuple[str, str]] = None


# ---------------------------
# utilitários de normalização
# ---------------------------

def _slug(s: Any) -> str:
    """Normaliza cabeçalhos: minúsculas, sem acentos, sem não-alfanumérico."""
    if s is None:
        return ""
    s = str(s).strip().lower()
    acentos = dict(zip("áàâãäéèêëíìîïóòôõöúùûüç", "aaaaaeeeeiiiiooooouuuuc"))
    s = "".join(acentos.get(ch, ch) for ch in s)
    s = re.sub(r"[^a-z0-9]+", " ", s)
    s = re.sub(r"\s+", " ", s).strip()
    return s


def _safe_get(row, key):
    """Lê um valor da linha do pandas tratando NA como None."""
    val = row.get(key)
    if val is None or pd.isna(val):
        return None
    if isinstance(val, str) and not val.strip():
        return None
    return val


def _to_bool01(val: Any) -> Optional[int]:
    """Converte valores variados em 0/1 (ou None)."""
    if val is None:
        return None
    s = str(val).strip().lower()
    if s in {"1", "true", "t", "sim", "s", "y", "yes", "x"}:
        return 1
    if s in {"0", "false", "f", "nao", "não", "n", "no"}:
        return 0
    return None


def _to_date_iso(val: Any) -> Optional[str]:
    """Converte valor para data ISO (YYYY-MM-DD) se possível."""
    if val is None:
        return None
    if isinstance(val, pd.Timestamp):
        return val.date().isoformat()
    s = str(val).strip()
    if not s:
        return None
    # ISO primeiro, para não inverter dia/mês em "2025-01-02"
    if re.match(r"^\d{4}-\d{2}-\d{2}", s):
        d = pd.to_datetime(s[:10], format="%Y-%m-%d", errors="coerce")
    else:
        d = pd.to_datetime(s, dayfirst=True, errors="coerce")
    if pd.isna(d):
        return None
    return d.date().isoformat()


def _converter(valor: Any, col: ColunaPlanilha) -> Any:
    """Converte um valor conforme o tipo. Lança ValueError se inválido."""
    if col.tipo == "number":
        num = parse_numero_br(valor)
        if num is None:
            raise ValueError(f'Campo "{col.coluna_excel}" deve ser numérico')
        return num
    if col.tipo == "date":
        iso = _to_date_iso(valor)
        if iso is None:
            raise ValueError(f'Campo "{col.coluna_excel}" deve ser uma data válida')
        return iso
    if col.tipo == "boolean":
        b = _to_bool01(valor)
        return 0 if b is None else b
    return str(valor).strip()


# ---------------------------
# API pública
# ---------------------------

def ler_planilha(path: str, colunas: Sequence[ColunaPlanilha]) -> Tuple[List[Dict[str, Any]], List[str]]:
    """Lê a primeira aba de um XLSX conforme o layout de colunas.

    Returns:
        (linhas_validas, erros). Cada linha válida é um dict com as chaves
        `coluna_db` do layout; colunas ausentes ou vazias viram None.
        Linhas com campo obrigatório vazio ou valor inválido vão para
        `erros` e não aparecem em `linhas_validas`.
    """
    df = pd.read_excel(path, dtype="string")
    df = df.rename(columns={c: _slug(c) for c in df.columns})

    out: List[Dict[str, Any]] = []
    erros: List[str] = []
    for idx, row in df.iterrows():
        linha = int(idx) + 2
        rec: Dict[str, Any] = {}
        valido = True
        for col in colunas:
            valor = _safe_get(row, _slug(col.coluna_excel))
            if valor is None:
                if col.obrigatoria:
                    erros.append(f'Linha {linha}: Campo "{col.coluna_excel}" é obrigatório')
                    valido = False
                rec[col.coluna_db] = None
                continue
            try:
                rec[col.coluna_db] = _converter(valor, col)
            except ValueError as e:
                erros.append(f"Linha {linha}: {e}")
                valido = False
        if valido:
            rec["_linha"] = linha
            out.append(rec)
    return out, erros


def escrever_planilha(path: str, linhas: Sequence[Dict[str, Any]], aba: str = "Dados") -> int:
    """Grava uma lista de dicionários como XLSX (uma aba). Retorna nº de linhas."""
    df = pd.DataFrame(list(linhas))
    df.to_excel(path, sheet_name=aba, index=False)
    return len(df)
