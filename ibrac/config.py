# ibrac/config.py
"""
Configurações globais e valores padrão do sistema IBRAC.
"""

import os
from dataclasses import dataclass


# Caminho padrão do banco de dados SQLite
DB_PATH = os.environ.get("IBRAC_DB", os.path.join(os.getcwd(), "ibrac.db"))

# API de cotações de metais (LME)
METALS_API_URL = os.environ.get("METALS_API_URL", "https://api.metals.dev/v1/latest")
METALS_API_KEY = os.environ.get("METALS_API_KEY")
METALS_API_TIMEOUT = 15


@dataclass
class DefaultConfig:
    """Valores padrão para parâmetros do sistema."""
    taxa_financeira_pct: float = 1.8   # custo financeiro sobre o valor do documento
    perda_real_pct: float = 3.0        # perda técnica esperada no beneficiamento
    perda_cobrada_pct: float = 5.0     # perda cobrada do dono do material
    icms_pct: float = 7.0
    pis_cofins_pct: float = 1.65
    dolar_brl_fallback: float = 5.40   # usado quando a cotação BRL não vem da API


# Instância global dos valores padrão
DEFAULTS = DefaultConfig()

# Chaves aceitas na tabela `params`
PARAM_KEYS = ("taxa_financeira_pct", "perda_real_pct", "perda_cobrada_pct", "icms_pct", "pis_cofins_pct")
