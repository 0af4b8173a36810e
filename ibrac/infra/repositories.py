# ibrac/infra/repositories.py
"""
Repositórios (DAO) para acesso e manipulação de dados no SQLite.

Classes:
- ParamsRepo
- TabelaRepo (CRUD genérico por tabela, usado pelos cadastros e pela importação)
- SubloteRepo
- EntradaRepo
- BeneficiamentoRepo
- SaidaRepo
- TransferenciaRepo
- AcertoRepo
- LmeRepo
- AuditRepo

Todos aceitam `conn=` para participar de uma transação aberta pelo caso de uso.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import asdict, is_dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .db import using
from ibrac.domain.errors import RegistroNaoEncontrado


# -------------------------
# Helpers
# -------------------------

def _as_dict(row: Any) -> Dict[str, Any]:
    if isinstance(row, dict):
        return row
    if is_dataclass(row):
        return asdict(row)
    if isinstance(row, sqlite3.Row):
        return dict(row)
    raise TypeError("row must be dict, dataclass or sqlite3.Row")


def _rows(cur) -> List[Dict[str, Any]]:
    cols = [d[0] for d in cur.description]
    return [dict(zip(cols, row)) for row in cur.fetchall()]


def _placeholders(ids: Sequence[Any]) -> str:
    return ",".join("?" for _ in ids)


# Tabelas e colunas editáveis via CRUD genérico (nomes nunca vêm do usuário sem passar aqui)
TABELAS: Dict[str, Tuple[str, ...]] = {
    "tipos_produto": ("codigo", "nome", "perda_padrao_pct", "ativo"),
    "donos_material": ("nome", "documento", "is_ibrac", "taxa_operacao_pct", "ativo"),
    "tipos_entrada": ("nome", "gera_custo", "ativo"),
    "tipos_saida": ("nome", "cobra_custos", "ativo"),
    "parceiros": ("razao_social", "cnpj", "is_cliente", "is_fornecedor", "is_transportadora", "ativo"),
    "entradas": (
        "codigo", "data_entrada", "tipo_entrada_id", "tipo_produto_id", "dono_id", "parceiro_id",
        "peso_bruto_kg", "peso_liquido_kg", "valor_unitario", "valor_total", "nota_fiscal",
        "status", "observacoes",
    ),
    "sublotes": (
        "codigo", "peso_kg", "status", "tipo_produto_id", "dono_id", "entrada_id", "lote_pai_id",
        "custo_unitario_total", "custo_beneficiamento_kg", "numero_volume", "observacoes",
    ),
    "beneficiamentos": (
        "codigo", "status", "tipo_beneficiamento", "data_inicio", "data_fim",
        "custo_frete_ida", "custo_frete_volta", "custo_mo_terceiro", "custo_mo_ibrac",
        "taxa_financeira_pct", "perda_padrao_pct", "perda_real_pct", "perda_cobrada_pct", "peso_entrada_kg",
        "peso_saida_kg", "tipo_produto_saida_id", "lme_referencia_kg", "lucro_perda_kg",
        "lucro_perda_valor", "observacoes",
    ),
    "beneficiamento_produtos": (
        "beneficiamento_id", "tipo_produto_id", "produto_codigo", "peso_entrada_kg",
        "perda_padrao_pct", "perda_cobrada_pct", "peso_saida_estimado_kg",
    ),
    "beneficiamento_entradas": (
        "beneficiamento_id", "entrada_id", "valor_documento", "taxa_financeira_pct", "taxa_financeira_valor",
    ),
    "beneficiamento_itens_entrada": (
        "beneficiamento_id", "sublote_id", "tipo_produto_id", "peso_kg", "custo_unitario", "intermediario",
    ),
    "beneficiamento_itens_saida": (
        "beneficiamento_id", "sublote_gerado_id", "tipo_produto_id", "peso_kg", "custo_unitario_calculado",
    ),
    "saidas": (
        "codigo", "data_saida", "tipo_saida_id", "cliente_id", "cenario_operacao", "peso_total_kg",
        "valor_unitario", "valor_total", "custos_cobrados", "comissao_ibrac", "valor_repasse_dono",
        "resultado_liquido_dono", "nota_fiscal", "observacoes", "status",
    ),
    "saida_itens": ("saida_id", "sublote_id", "peso_kg"),
    "transferencias_dono": (
        "sublote_id", "dono_origem_id", "dono_destino_id", "peso_kg", "valor_acrescimo",
        "custo_unitario_anterior", "custo_unitario_novo", "data_transferencia", "observacoes",
    ),
    "acertos_financeiros": (
        "tipo", "valor", "status", "dono_id", "parceiro_id", "referencia_tipo", "referencia_id",
        "data_acerto", "data_pagamento", "observacoes",
    ),
    "historico_lme": (
        "data", "cobre_usd_t", "aluminio_usd_t", "zinco_usd_t", "chumbo_usd_t", "estanho_usd_t",
        "niquel_usd_t", "dolar_brl", "cobre_brl_kg", "aluminio_brl_kg", "is_media_semanal",
        "semana_numero", "fonte",
    ),
    "lme_semana_config": (
        "ano", "semana", "data_inicio", "data_fim", "lme_cobre_usd_t", "dolar_brl", "icms_pct",
        "pis_cofins_pct", "taxa_financeira_pct", "lme_base_brl_kg", "fator_total", "lme_final_brl_kg",
        "observacoes",
    ),
}


# -------------------------
# Params
# -------------------------

class ParamsRepo:
    def __init__(self, db_path: str, conn: Optional[sqlite3.Connection] = None):
        self.db_path = db_path
        self.conn = conn

    def set_many(self, items: Iterable[Tuple[str, str]]) -> None:
        with using(self.db_path, self.conn) as c:
            c.executemany(
                """
                INSERT INTO params (chave, valor)
                VALUES (?, ?)
                ON CONFLICT(chave) DO UPDATE SET valor=excluded.valor
                """,
                list(items),
            )

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        with using(self.db_path, self.conn) as c:
            row = c.execute("SELECT valor FROM params WHERE chave = ?", (key,)).fetchone()
            return row[0] if row else default

    def get_float(self, key: str, default: float) -> float:
        v = self.get(key, None)
        if v is None:
            return default
        try:
            return float(v)
        except (TypeError, ValueError):
            return default


# -------------------------
# CRUD genérico
# -------------------------

class TabelaRepo:
    tabela: str = ""

    def __init__(self, db_path: str, tabela: Optional[str] = None, conn: Optional[sqlite3.Connection] = None):
        self.db_path = db_path
        self.conn = conn
        if tabela is not None:
            self.tabela = tabela
        if self.tabela not in TABELAS:
            raise ValueError(f"tabela não suportada: {self.tabela}")

    @property
    def colunas(self) -> Tuple[str, ...]:
        return TABELAS[self.tabela]

    def _coluna(self, col: str) -> str:
        if col != "id" and col not in self.colunas:
            raise ValueError(f"{self.tabela}: coluna não suportada: {col}")
        return col

    def insert(self, row: Any) -> int:
        row = {k: v for k, v in _as_dict(row).items() if k in self.colunas}
        cols = list(row.keys())
        sql = f"INSERT INTO {self.tabela} ({','.join(cols)}) VALUES ({','.join(':' + k for k in cols)})"
        with using(self.db_path, self.conn) as c:
            cur = c.execute(sql, row)
            return int(cur.lastrowid)

    def get(self, registro_id: int) -> Dict[str, Any]:
        with using(self.db_path, self.conn) as c:
            row = c.execute(f"SELECT * FROM {self.tabela} WHERE id = ?", (registro_id,)).fetchone()
        if row is None:
            raise RegistroNaoEncontrado(self.tabela, registro_id)
        return dict(row)

    def find_by(self, col: str, valor: Any) -> Optional[Dict[str, Any]]:
        col = self._coluna(col)
        with using(self.db_path, self.conn) as c:
            row = c.execute(f"SELECT * FROM {self.tabela} WHERE {col} = ?", (valor,)).fetchone()
        return dict(row) if row else None

    def find_by_nome(self, nome: str, col: str = "nome") -> Optional[Dict[str, Any]]:
        """Busca case-insensitive por nome, usada nas importações."""
        col = self._coluna(col)
        with using(self.db_path, self.conn) as c:
            row = c.execute(
                f"SELECT * FROM {self.tabela} WHERE lower(trim({col})) = lower(trim(?))", (nome,)
            ).fetchone()
        return dict(row) if row else None

    def get_all(self, where: Optional[Dict[str, Any]] = None, order_by: str = "id") -> List[Dict[str, Any]]:
        order_by = self._coluna(order_by)
        sql = f"SELECT * FROM {self.tabela}"
        params: List[Any] = []
        if where:
            conds = []
            for k, v in where.items():
                conds.append(f"{self._coluna(k)} = ?")
                params.append(v)
            sql += " WHERE " + " AND ".join(conds)
        sql += f" ORDER BY {order_by}"
        with using(self.db_path, self.conn) as c:
            return _rows(c.execute(sql, params))

    def update(self, registro_id: int, campos: Dict[str, Any]) -> None:
        if not campos:
            return
        sets = ", ".join(f"{self._coluna(k)} = :{k}" for k in campos)
        with using(self.db_path, self.conn) as c:
            c.execute(f"UPDATE {self.tabela} SET {sets} WHERE id = :_id", {**campos, "_id": registro_id})

    def delete(self, registro_id: int) -> None:
        with using(self.db_path, self.conn) as c:
            c.execute(f"DELETE FROM {self.tabela} WHERE id = ?", (registro_id,))

    def delete_where(self, col: str, valor: Any) -> int:
        col = self._coluna(col)
        with using(self.db_path, self.conn) as c:
            return c.execute(f"DELETE FROM {self.tabela} WHERE {col} = ?", (valor,)).rowcount

    def proximo_codigo(self, prefixo: str) -> str:
        """Gera `PREFIXO-0001`, `PREFIXO-0002`... para o prefixo informado."""
        with using(self.db_path, self.conn) as c:
            codigos = [r[0] for r in c.execute(
                f"SELECT codigo FROM {self.tabela} WHERE codigo LIKE ?", (f"{prefixo}-%",)
            ).fetchall()]
        # maior sufixo numérico; códigos excluídos não são reaproveitados
        sufixos = [c[len(prefixo) + 1:] for c in codigos]
        n = max((int(s) for s in sufixos if s.isdigit()), default=0)
        return f"{prefixo}-{n + 1:04d}"


# -------------------------
# Sublotes
# -------------------------

_SUBLOTE_DETALHE = """
    SELECT
        s.*,
        tp.codigo           AS produto_codigo,
        tp.nome             AS produto_nome,
        d.nome              AS dono_nome,
        d.is_ibrac          AS dono_is_ibrac,
        d.taxa_operacao_pct AS taxa_operacao_pct,
        e.codigo            AS entrada_codigo,
        e.valor_total       AS valor_documento,
        te.gera_custo       AS gera_custo
    FROM sublotes s
    LEFT JOIN tipos_produto  tp ON tp.id = s.tipo_produto_id
    LEFT JOIN donos_material d  ON d.id  = s.dono_id
    LEFT JOIN entradas       e  ON e.id  = s.entrada_id
    LEFT JOIN tipos_entrada  te ON te.id = e.tipo_entrada_id
"""


class SubloteRepo(TabelaRepo):
    tabela = "sublotes"

    def __init__(self, db_path: str, conn: Optional[sqlite3.Connection] = None):
        super().__init__(db_path, conn=conn)

    def disponiveis(self) -> List[Dict[str, Any]]:
        with using(self.db_path, self.conn) as c:
            return _rows(c.execute(
                _SUBLOTE_DETALHE + " WHERE s.status = 'disponivel' AND s.peso_kg > 0 ORDER BY s.codigo"
            ))

    def detalhes(self, ids: Sequence[int]) -> List[Dict[str, Any]]:
        """Linhas detalhadas na ordem de `ids` (ids inexistentes são omitidos)."""
        ids = list(ids)
        if not ids:
            return []
        with using(self.db_path, self.conn) as c:
            rows = _rows(c.execute(_SUBLOTE_DETALHE + f" WHERE s.id IN ({_placeholders(ids)})", ids))
        by_id = {r["id"]: r for r in rows}
        return [by_id[i] for i in ids if i in by_id]

    def todos(self) -> List[Dict[str, Any]]:
        with using(self.db_path, self.conn) as c:
            return _rows(c.execute(_SUBLOTE_DETALHE + " ORDER BY s.codigo"))

    def atualizar_status(self, sublote_id: int, status: str, peso_kg: Optional[float] = None) -> None:
        with using(self.db_path, self.conn) as c:
            if peso_kg is None:
                c.execute(
                    "UPDATE sublotes SET status = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                    (status, sublote_id),
                )
            else:
                c.execute(
                    "UPDATE sublotes SET status = ?, peso_kg = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                    (status, float(peso_kg), sublote_id),
                )

    def religar_filhos(self, antigo_pai_id: int, novo_pai_id: Optional[int]) -> int:
        with using(self.db_path, self.conn) as c:
            return c.execute(
                "UPDATE sublotes SET lote_pai_id = ?, updated_at = CURRENT_TIMESTAMP WHERE lote_pai_id = ?",
                (novo_pai_id, antigo_pai_id),
            ).rowcount

    def transferir(self, sublote_id: int, dono_id: Optional[int], custo_unitario_total: float) -> None:
        with using(self.db_path, self.conn) as c:
            c.execute(
                "UPDATE sublotes SET dono_id = ?, custo_unitario_total = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (dono_id, float(custo_unitario_total), sublote_id),
            )

    def excluir_da_entrada(self, entrada_id: int) -> int:
        """Remove todos os lotes da entrada (filhos antes dos pais)."""
        with using(self.db_path, self.conn) as c:
            c.execute("UPDATE sublotes SET lote_pai_id = NULL WHERE entrada_id = ?", (entrada_id,))
            return c.execute("DELETE FROM sublotes WHERE entrada_id = ?", (entrada_id,)).rowcount


# -------------------------
# Entradas
# -------------------------

class EntradaRepo(TabelaRepo):
    tabela = "entradas"

    def __init__(self, db_path: str, conn: Optional[sqlite3.Connection] = None):
        super().__init__(db_path, conn=conn)

    def com_tipo(self, entrada_id: int) -> Dict[str, Any]:
        with using(self.db_path, self.conn) as c:
            row = c.execute(
                """
                SELECT e.*, te.nome AS tipo_entrada_nome, COALESCE(te.gera_custo, 1) AS gera_custo
                FROM entradas e LEFT JOIN tipos_entrada te ON te.id = e.tipo_entrada_id
                WHERE e.id = ?
                """,
                (entrada_id,),
            ).fetchone()
        if row is None:
            raise RegistroNaoEncontrado("entradas", entrada_id)
        return dict(row)


# -------------------------
# Beneficiamentos
# -------------------------

class BeneficiamentoRepo(TabelaRepo):
    tabela = "beneficiamentos"

    def __init__(self, db_path: str, conn: Optional[sqlite3.Connection] = None):
        super().__init__(db_path, conn=conn)
        self.produtos = TabelaRepo(db_path, "beneficiamento_produtos", conn=conn)
        self.documentos = TabelaRepo(db_path, "beneficiamento_entradas", conn=conn)
        self.itens_entrada = TabelaRepo(db_path, "beneficiamento_itens_entrada", conn=conn)
        self.itens_saida = TabelaRepo(db_path, "beneficiamento_itens_saida", conn=conn)

    def listar(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        sql = """
            SELECT b.*, COUNT(i.id) AS qtd_itens
            FROM beneficiamentos b
            LEFT JOIN beneficiamento_itens_entrada i
                   ON i.beneficiamento_id = b.id AND COALESCE(i.intermediario, 0) = 0
        """
        params: List[Any] = []
        if status:
            sql += " WHERE b.status = ?"
            params.append(status)
        sql += " GROUP BY b.id ORDER BY b.created_at DESC, b.id DESC"
        with using(self.db_path, self.conn) as c:
            return _rows(c.execute(sql, params))

    def taxas_financeiras(self, beneficiamento_id: int) -> List[float]:
        with using(self.db_path, self.conn) as c:
            cur = c.execute(
                "SELECT taxa_financeira_valor FROM beneficiamento_entradas WHERE beneficiamento_id = ?",
                (beneficiamento_id,),
            )
            return [float(r[0] or 0.0) for r in cur.fetchall()]

    def com_lote_de_entrada(self, sublote_id: int) -> List[Dict[str, Any]]:
        """Operações em que o lote entrou (como item normal ou intermediário)."""
        with using(self.db_path, self.conn) as c:
            return _rows(c.execute(
                """
                SELECT b.id, b.codigo, b.status, b.tipo_beneficiamento, b.data_inicio, b.data_fim,
                       i.peso_kg, i.custo_unitario, i.intermediario
                FROM beneficiamento_itens_entrada i JOIN beneficiamentos b ON b.id = i.beneficiamento_id
                WHERE i.sublote_id = ?
                ORDER BY b.data_inicio, b.id
                """,
                (sublote_id,),
            ))

    def que_gerou(self, sublote_id: int) -> Optional[Dict[str, Any]]:
        with using(self.db_path, self.conn) as c:
            row = c.execute(
                """
                SELECT b.*, i.peso_kg AS peso_gerado_kg, i.custo_unitario_calculado
                FROM beneficiamento_itens_saida i JOIN beneficiamentos b ON b.id = i.beneficiamento_id
                WHERE i.sublote_gerado_id = ?
                """,
                (sublote_id,),
            ).fetchone()
        return dict(row) if row else None

    def excluir(self, beneficiamento_id: int) -> None:
        """Remove o beneficiamento e seus filhos (produtos, documentos, itens)."""
        for repo in (self.itens_saida, self.itens_entrada, self.documentos, self.produtos):
            repo.delete_where("beneficiamento_id", beneficiamento_id)
        self.delete(beneficiamento_id)


# -------------------------
# Saídas
# -------------------------

class SaidaRepo(TabelaRepo):
    tabela = "saidas"

    def __init__(self, db_path: str, conn: Optional[sqlite3.Connection] = None):
        super().__init__(db_path, conn=conn)
        self.itens = TabelaRepo(db_path, "saida_itens", conn=conn)

    def saidas_dos_sublotes(self, sublote_ids: Sequence[int]) -> List[Dict[str, Any]]:
        """Saídas que referenciam algum dos lotes informados."""
        ids = list(sublote_ids)
        if not ids:
            return []
        with using(self.db_path, self.conn) as c:
            return _rows(c.execute(
                f"""
                SELECT DISTINCT s.id, s.codigo, i.sublote_id
                FROM saida_itens i JOIN saidas s ON s.id = i.saida_id
                WHERE i.sublote_id IN ({_placeholders(ids)})
                """,
                ids,
            ))

    def do_lote(self, sublote_id: int) -> List[Dict[str, Any]]:
        with using(self.db_path, self.conn) as c:
            return _rows(c.execute(
                """
                SELECT s.id, s.codigo, s.data_saida, s.cenario_operacao, i.peso_kg
                FROM saida_itens i JOIN saidas s ON s.id = i.saida_id
                WHERE i.sublote_id = ?
                ORDER BY s.data_saida, s.id
                """,
                (sublote_id,),
            ))

    def listar(self) -> List[Dict[str, Any]]:
        with using(self.db_path, self.conn) as c:
            return _rows(c.execute(
                """
                SELECT s.*, ts.nome AS tipo_saida_nome
                FROM saidas s LEFT JOIN tipos_saida ts ON ts.id = s.tipo_saida_id
                ORDER BY s.created_at DESC, s.id DESC
                """
            ))


# -------------------------
# Transferências de dono
# -------------------------

class TransferenciaRepo(TabelaRepo):
    tabela = "transferencias_dono"

    def __init__(self, db_path: str, conn: Optional[sqlite3.Connection] = None):
        super().__init__(db_path, conn=conn)

    def dos_sublotes(self, sublote_ids: Sequence[int]) -> List[Dict[str, Any]]:
        """Transferências dos lotes informados, com o nome dos donos (sem dono = material da casa)."""
        ids = list(sublote_ids)
        if not ids:
            return []
        with using(self.db_path, self.conn) as c:
            return _rows(c.execute(
                f"""
                SELECT t.*,
                       COALESCE(o.nome, 'IBRAC') AS dono_origem_nome,
                       COALESCE(d.nome, 'IBRAC') AS dono_destino_nome
                FROM transferencias_dono t
                LEFT JOIN donos_material o ON o.id = t.dono_origem_id
                LEFT JOIN donos_material d ON d.id = t.dono_destino_id
                WHERE t.sublote_id IN ({_placeholders(ids)})
                ORDER BY t.data_transferencia, t.id
                """,
                ids,
            ))


# -------------------------
# Acertos financeiros
# -------------------------

class AcertoRepo(TabelaRepo):
    tabela = "acertos_financeiros"

    def __init__(self, db_path: str, conn: Optional[sqlite3.Connection] = None):
        super().__init__(db_path, conn=conn)

    def pendentes(self) -> List[Dict[str, Any]]:
        with using(self.db_path, self.conn) as c:
            return _rows(c.execute(
                """
                SELECT a.*, COALESCE(d.nome, 'Sem dono') AS dono_nome
                FROM acertos_financeiros a LEFT JOIN donos_material d ON d.id = a.dono_id
                WHERE a.status = 'pendente' AND a.tipo = 'divida'
                ORDER BY a.created_at DESC, a.id DESC
                """
            ))

    def por_referencia(self, referencia_tipo: str, referencia_id: int) -> List[Dict[str, Any]]:
        with using(self.db_path, self.conn) as c:
            return _rows(c.execute(
                "SELECT * FROM acertos_financeiros WHERE referencia_tipo = ? AND referencia_id = ? ORDER BY id",
                (referencia_tipo, referencia_id),
            ))

    def marcar_pago(self, ids: Sequence[int], data_pagamento: str) -> int:
        ids = list(ids)
        if not ids:
            return 0
        with using(self.db_path, self.conn) as c:
            return c.execute(
                f"UPDATE acertos_financeiros SET status = 'pago', data_pagamento = ? "
                f"WHERE status = 'pendente' AND id IN ({_placeholders(ids)})",
                [data_pagamento, *ids],
            ).rowcount


# -------------------------
# LME
# -------------------------

class LmeRepo(TabelaRepo):
    tabela = "historico_lme"

    def __init__(self, db_path: str, conn: Optional[sqlite3.Connection] = None):
        super().__init__(db_path, conn=conn)
        self.semanas = TabelaRepo(db_path, "lme_semana_config", conn=conn)

    def do_dia(self, data: str) -> Optional[Dict[str, Any]]:
        with using(self.db_path, self.conn) as c:
            row = c.execute(
                "SELECT * FROM historico_lme WHERE data = ? AND COALESCE(is_media_semanal, 0) = 0",
                (data,),
            ).fetchone()
        return dict(row) if row else None

    def historico(self, limite: int = 30) -> List[Dict[str, Any]]:
        with using(self.db_path, self.conn) as c:
            return _rows(c.execute(
                "SELECT * FROM historico_lme ORDER BY data DESC LIMIT ?", (int(limite),)
            ))

    def cobre_brl_kg_ate(self, data: str) -> Optional[float]:
        """Cotação do cobre (R$/kg) mais recente até a data informada."""
        with using(self.db_path, self.conn) as c:
            row = c.execute(
                """
                SELECT cobre_brl_kg FROM historico_lme
                WHERE data <= ? AND cobre_brl_kg IS NOT NULL
                ORDER BY data DESC LIMIT 1
                """,
                (data,),
            ).fetchone()
        return float(row[0]) if row else None

    def semana(self, ano: int, semana: int) -> Optional[Dict[str, Any]]:
        with using(self.db_path, self.conn) as c:
            row = c.execute(
                "SELECT * FROM lme_semana_config WHERE ano = ? AND semana = ?", (ano, semana)
            ).fetchone()
        return dict(row) if row else None


# -------------------------
# Auditoria
# -------------------------

class AuditRepo:
    def __init__(self, db_path: str, conn: Optional[sqlite3.Connection] = None):
        self.db_path = db_path
        self.conn = conn

    def registrar(self, action: str, table_name: str, record_id: Any = None,
                  record_data: Optional[Dict[str, Any]] = None, user_id: Optional[str] = None) -> None:
        with using(self.db_path, self.conn) as c:
            c.execute(
                """
                INSERT INTO audit_logs (action, table_name, record_id, record_data, user_id)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    action,
                    table_name,
                    None if record_id is None else str(record_id),
                    json.dumps(record_data or {}, ensure_ascii=False, default=str),
                    user_id,
                ),
            )

    def listar(self, table_name: Optional[str] = None, limite: int = 100) -> List[Dict[str, Any]]:
        sql = "SELECT * FROM audit_logs"
        params: List[Any] = []
        if table_name:
            sql += " WHERE table_name = ?"
            params.append(table_name)
        sql += " ORDER BY id DESC LIMIT ?"
        params.append(int(limite))
        with using(self.db_path, self.conn) as c:
            rows = _rows(c.execute(sql, params))
        for r in rows:
            r["record_data"] = json.loads(r["record_data"]) if r.get("record_data") else {}
        return rows
