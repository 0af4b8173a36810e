"""
Utilidades de parsing para números digitados em formato brasileiro.

As planilhas e a linha de comando recebem valores como "1.234,56",
"5,5%" ou "R$ 12.000,00". As funções abaixo extraem o número de forma
robusta, aceitando tanto vírgula quanto ponto como separador decimal.
"""

from __future__ import annotations

import re
from typing import Any, Optional, Tuple

_NUM_RE = re.compile(r"[-+]?[\d.,]*\d")


def parse_numero_br(txt: Any) -> Optional[float]:
    """Interpreta um número em formato brasileiro ou internacional.

    Regras:
        - Se houver vírgula e ponto, o separador que aparece por último é o
          decimal ("1.234,56" e "1,234.56" valem 1234.56).
        - Só vírgula: vírgula é decimal ("5,5" → 5.5).
        - Só pontos: mais de um ponto, ou exatamente três dígitos depois do
          único ponto, indicam milhar ("1.200" → 1200.0); senão é decimal.

    Exemplos:
        "R$ 12.000,00" → 12000.0
        "5,5%"        → 5.5
        "1200 kg"     → 1200.0
        "0.35"        → 0.35

    Returns:
        O número, ou None quando o texto não contém número.
    """
    if txt is None:
        return None
    if isinstance(txt, (int, float)):
        return float(txt)
    s = str(txt).strip()
    if not s:
        return None
    m = _NUM_RE.search(s)
    if not m:
        return None
    num = m.group(0)
    if "," in num and "." in num:
        if num.rfind(",") > num.rfind("."):
            num = num.replace(".", "").replace(",", ".")
        else:
            num = num.replace(",", "")
    elif "," in num:
        num = num.replace(".", "").replace(",", ".")
    elif num.count(".") > 1 or (num.count(".") == 1 and len(num.split(".")[1]) == 3):
        num = num.replace(".", "")
    try:
        return float(num)
    except ValueError:
        return None


def parse_percentual(txt: Any) -> Optional[float]:
    """"5,5%" → 5.5 (o símbolo é opcional)."""
    return parse_numero_br(txt)


def parse_perdas_opcao(txt: str) -> Tuple[str, float, float]:
    """Interpreta a opção de perdas por produto: ``CODIGO=padrao:cobrada``.

    Exemplos:
        "CU01=3:5"     → ("CU01", 3.0, 5.0)
        "AL02=2,5"     → ("AL02", 2.5, 2.5)   # cobrada = padrão

    Raises:
        ValueError: formato inválido.
    """
    if txt is None or "=" not in str(txt):
        raise ValueError(f"Perda inválida: {txt!r} (use CODIGO=padrao:cobrada)")
    codigo, valores = str(txt).split("=", 1)
    codigo = codigo.strip()
    partes = valores.split(":", 1)
    padrao = parse_percentual(partes[0])
    cobrada = parse_percentual(partes[1]) if len(partes) > 1 else padrao
    if not codigo or padrao is None or cobrada is None:
        raise ValueError(f"Perda inválida: {txt!r} (use CODIGO=padrao:cobrada)")
    return codigo, padrao, cobrada
