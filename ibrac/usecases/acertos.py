# ibrac/usecases/acertos.py
"""
UC: Repasses pendentes aos donos de material.

- repasses_pendentes(): dívidas pendentes agrupadas por dono.
- conciliar_repasses(): marca dívidas como pagas (data de pagamento = hoje).
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from ibrac.config import DB_PATH
from ibrac.domain.errors import ValidacaoError
from ibrac.domain.policies import arredonda_moeda
from ibrac.infra.db import connect
from ibrac.infra.logger import log_database_operation, log_system_event, log_transaction
from ibrac.infra.repositories import AcertoRepo, AuditRepo


def repasses_pendentes(db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    """Uma entrada por dono: nome, total pendente e os acertos que o compõem."""
    grupos: Dict[Any, Dict[str, Any]] = {}
    for a in AcertoRepo(db_path).pendentes():
        g = grupos.setdefault(a["dono_id"], {
            "dono_id": a["dono_id"],
            "dono_nome": a["dono_nome"],
            "total": 0.0,
            "acertos": [],
        })
        g["total"] = arredonda_moeda(g["total"] + float(a["valor"]))
        g["acertos"].append(a)
    return sorted(grupos.values(), key=lambda g: g["total"], reverse=True)


def conciliar_repasses(
    acerto_ids: Optional[Sequence[int]] = None,
    dono_id: Optional[int] = None,
    data_pagamento: Optional[str] = None,
    db_path: str = DB_PATH,
) -> Dict[str, Any]:
    """Marca como pagos os acertos informados, ou todos os pendentes de um dono."""
    if not acerto_ids and dono_id is None:
        raise ValidacaoError("Informe os acertos ou o dono a conciliar")
    data_pagamento = data_pagamento or date.today().isoformat()
    try:
        with connect(db_path) as conn:
            repo = AcertoRepo(db_path, conn=conn)
            pendentes = repo.pendentes()
            if acerto_ids:
                alvo = [a for a in pendentes if a["id"] in set(acerto_ids)]
                faltando = set(acerto_ids) - {a["id"] for a in alvo}
                if faltando:
                    raise ValidacaoError(f"Acertos não pendentes ou inexistentes: {sorted(faltando)}")
            else:
                alvo = [a for a in pendentes if a["dono_id"] == dono_id]
            n = repo.marcar_pago([a["id"] for a in alvo], data_pagamento)
            total = arredonda_moeda(sum(float(a["valor"]) for a in alvo))
            AuditRepo(db_path, conn=conn).registrar("UPDATE", "acertos_financeiros", None, {
                "acao": "conciliar", "ids": [a["id"] for a in alvo], "total": total,
                "data_pagamento": data_pagamento,
            })
        log_database_operation("acertos_financeiros", "UPDATE", n, status="pago")
        result = {"conciliados": n, "total": total, "data_pagamento": data_pagamento}
        log_transaction("conciliar_repasses", {"ids": acerto_ids, "dono_id": dono_id}, result=result)
        return result
    except Exception as e:
        log_transaction("conciliar_repasses", {"ids": acerto_ids, "dono_id": dono_id}, error=str(e))
        log_system_event("conciliar_repasses_error", {"error": str(e)}, level="error")
        raise
