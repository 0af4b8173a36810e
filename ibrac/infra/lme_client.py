# ibrac/infra/lme_client.py
"""
Cliente da API de cotações de metais (metals.dev).

Duas chamadas ao endpoint `latest`: uma cotada em USD (preços LME em US$/t)
e outra em BRL, usada só para derivar o câmbio (cobre BRL / cobre USD).
Quando a segunda chamada não traz o cobre, usa-se o câmbio padrão.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional

import requests

from ibrac.config import DEFAULTS, METALS_API_KEY, METALS_API_TIMEOUT, METALS_API_URL
from ibrac.domain.errors import LmeApiError

# nome na API -> coluna em historico_lme
METAIS = {
    "copper": "cobre_usd_t",
    "aluminum": "aluminio_usd_t",
    "zinc": "zinco_usd_t",
    "lead": "chumbo_usd_t",
    "tin": "estanho_usd_t",
    "nickel": "niquel_usd_t",
}


def _round(x: Optional[float], casas: int) -> Optional[float]:
    return None if x is None else round(float(x), casas)


class MetalsApiClient:
    def __init__(
        self,
        api_key: Optional[str] = METALS_API_KEY,
        url: str = METALS_API_URL,
        timeout: int = METALS_API_TIMEOUT,
        dolar_fallback: float = DEFAULTS.dolar_brl_fallback,
    ) -> None:
        self.api_key = api_key
        self.url = url
        self.timeout = timeout
        self.dolar_fallback = dolar_fallback

    def _get(self, currency: str) -> Dict[str, Any]:
        params = {"api_key": self.api_key, "currency": currency, "unit": "mt"}
        try:
            resp = requests.get(self.url, params=params, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            raise LmeApiError(f"Falha ao consultar cotações ({currency}): {e}") from e
        except ValueError as e:
            raise LmeApiError(f"Resposta inválida da API de cotações ({currency})") from e

    def fetch_latest(self) -> Dict[str, Any]:
        """Cotações do dia prontas para gravar em `historico_lme`."""
        if not self.api_key:
            raise LmeApiError("METALS_API_KEY não configurada")

        usd = self._get("USD")
        if usd.get("status") not in (None, "success"):
            raise LmeApiError(f"API de cotações retornou erro: {usd.get('error_message') or usd.get('status')}")
        metais_usd = usd.get("metals") or {}
        if metais_usd.get("copper") is None:
            raise LmeApiError("API de cotações não retornou o preço do cobre")

        dolar = self.dolar_fallback
        try:
            brl = self._get("BRL")
        except LmeApiError:
            brl = {}
        cobre_brl = (brl.get("metals") or {}).get("copper")
        if cobre_brl:
            dolar = float(cobre_brl) / float(metais_usd["copper"])

        rec: Dict[str, Any] = {"data": date.today().isoformat()}
        for nome, coluna in METAIS.items():
            rec[coluna] = _round(metais_usd.get(nome), 2)
        rec["dolar_brl"] = round(dolar, 4)
        rec["cobre_brl_kg"] = round(rec["cobre_usd_t"] * dolar / 1000, 4)
        aluminio = rec.get("aluminio_usd_t")
        rec["aluminio_brl_kg"] = None if aluminio is None else round(aluminio * dolar / 1000, 4)
        rec["is_media_semanal"] = 0
        rec["fonte"] = "api"
        return rec
