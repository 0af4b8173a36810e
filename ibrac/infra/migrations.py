# ibrac/infra/migrations.py
"""
Migrações de schema usando PRAGMA user_version.

V1: cadastros, entradas/sublotes, beneficiamentos, saídas, acertos, LME e auditoria
V2: custo de beneficiamento por kg nos sublotes e marcação de itens intermediários
V3: perda padrão declarada no beneficiamento e transferências de dono
"""

from __future__ import annotations

from typing import List
from .db import connect


SCHEMA_V1: List[str] = [
    # Parâmetros K/V
    """
    CREATE TABLE IF NOT EXISTS params (
        chave TEXT PRIMARY KEY,
        valor TEXT
    );
    """,
    # Cadastros
    """
    CREATE TABLE IF NOT EXISTS tipos_produto (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        codigo TEXT UNIQUE,
        nome TEXT NOT NULL UNIQUE,
        perda_padrao_pct REAL DEFAULT 0,
        ativo INTEGER DEFAULT 1
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS donos_material (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        nome TEXT NOT NULL UNIQUE,
        documento TEXT,
        is_ibrac INTEGER DEFAULT 0,
        taxa_operacao_pct REAL DEFAULT 0,
        ativo INTEGER DEFAULT 1
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS tipos_entrada (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        nome TEXT NOT NULL UNIQUE,
        gera_custo INTEGER DEFAULT 1, -- 0 = remessa para industrialização
        ativo INTEGER DEFAULT 1
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS tipos_saida (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        nome TEXT NOT NULL UNIQUE,
        cobra_custos INTEGER DEFAULT 1,
        ativo INTEGER DEFAULT 1
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS parceiros (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        razao_social TEXT NOT NULL UNIQUE,
        cnpj TEXT,
        is_cliente INTEGER DEFAULT 0,
        is_fornecedor INTEGER DEFAULT 0,
        is_transportadora INTEGER DEFAULT 0,
        ativo INTEGER DEFAULT 1
    );
    """,
    # Documentos de entrada e sublotes
    """
    CREATE TABLE IF NOT EXISTS entradas (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        codigo TEXT NOT NULL UNIQUE,
        data_entrada TEXT NOT NULL,
        tipo_entrada_id INTEGER,
        tipo_produto_id INTEGER,
        dono_id INTEGER,
        parceiro_id INTEGER,
        peso_bruto_kg REAL DEFAULT 0,
        peso_liquido_kg REAL NOT NULL,
        valor_unitario REAL,
        valor_total REAL DEFAULT 0,
        nota_fiscal TEXT,
        status TEXT DEFAULT 'pendente',
        observacoes TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (tipo_entrada_id) REFERENCES tipos_entrada(id),
        FOREIGN KEY (tipo_produto_id) REFERENCES tipos_produto(id),
        FOREIGN KEY (dono_id) REFERENCES donos_material(id),
        FOREIGN KEY (parceiro_id) REFERENCES parceiros(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS sublotes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        codigo TEXT NOT NULL UNIQUE,
        peso_kg REAL NOT NULL DEFAULT 0 CHECK (peso_kg >= 0),
        status TEXT DEFAULT 'disponivel',
        tipo_produto_id INTEGER,
        dono_id INTEGER,
        entrada_id INTEGER,
        lote_pai_id INTEGER,
        custo_unitario_total REAL DEFAULT 0,
        numero_volume INTEGER,
        observacoes TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (tipo_produto_id) REFERENCES tipos_produto(id),
        FOREIGN KEY (dono_id) REFERENCES donos_material(id),
        FOREIGN KEY (entrada_id) REFERENCES entradas(id),
        FOREIGN KEY (lote_pai_id) REFERENCES sublotes(id)
    );
    """,
    # Beneficiamento
    """
    CREATE TABLE IF NOT EXISTS beneficiamentos (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        codigo TEXT NOT NULL UNIQUE,
        status TEXT DEFAULT 'em_andamento',
        tipo_beneficiamento TEXT DEFAULT 'interno',
        data_inicio TEXT,
        data_fim TEXT,
        custo_frete_ida REAL DEFAULT 0,
        custo_frete_volta REAL DEFAULT 0,
        custo_mo_terceiro REAL DEFAULT 0,
        custo_mo_ibrac REAL DEFAULT 0,
        taxa_financeira_pct REAL,
        perda_real_pct REAL,
        perda_cobrada_pct REAL,
        peso_entrada_kg REAL,
        peso_saida_kg REAL,
        tipo_produto_saida_id INTEGER,
        lme_referencia_kg REAL,
        lucro_perda_kg REAL,
        lucro_perda_valor REAL,
        observacoes TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (tipo_produto_saida_id) REFERENCES tipos_produto(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS beneficiamento_produtos (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        beneficiamento_id INTEGER NOT NULL,
        tipo_produto_id INTEGER,
        produto_codigo TEXT,
        peso_entrada_kg REAL NOT NULL,
        perda_padrao_pct REAL,
        perda_cobrada_pct REAL,
        peso_saida_estimado_kg REAL,
        FOREIGN KEY (beneficiamento_id) REFERENCES beneficiamentos(id) ON DELETE CASCADE
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS beneficiamento_entradas (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        beneficiamento_id INTEGER NOT NULL,
        entrada_id INTEGER,
        valor_documento REAL NOT NULL DEFAULT 0,
        taxa_financeira_pct REAL,
        taxa_financeira_valor REAL,
        FOREIGN KEY (beneficiamento_id) REFERENCES beneficiamentos(id) ON DELETE CASCADE,
        FOREIGN KEY (entrada_id) REFERENCES entradas(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS beneficiamento_itens_entrada (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        beneficiamento_id INTEGER NOT NULL,
        sublote_id INTEGER,
        tipo_produto_id INTEGER,
        peso_kg REAL NOT NULL,
        custo_unitario REAL,
        FOREIGN KEY (beneficiamento_id) REFERENCES beneficiamentos(id) ON DELETE CASCADE,
        FOREIGN KEY (sublote_id) REFERENCES sublotes(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS beneficiamento_itens_saida (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        beneficiamento_id INTEGER NOT NULL,
        sublote_gerado_id INTEGER,
        tipo_produto_id INTEGER,
        peso_kg REAL NOT NULL,
        custo_unitario_calculado REAL,
        FOREIGN KEY (beneficiamento_id) REFERENCES beneficiamentos(id) ON DELETE CASCADE,
        FOREIGN KEY (sublote_gerado_id) REFERENCES sublotes(id)
    );
    """,
    # Saídas
    """
    CREATE TABLE IF NOT EXISTS saidas (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        codigo TEXT NOT NULL UNIQUE,
        data_saida TEXT NOT NULL,
        tipo_saida_id INTEGER,
        cliente_id INTEGER,
        cenario_operacao TEXT,
        peso_total_kg REAL NOT NULL,
        valor_unitario REAL,
        valor_total REAL,
        custos_cobrados REAL,
        comissao_ibrac REAL,
        valor_repasse_dono REAL,
        resultado_liquido_dono REAL,
        nota_fiscal TEXT,
        observacoes TEXT,
        status TEXT DEFAULT 'finalizada',
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (tipo_saida_id) REFERENCES tipos_saida(id),
        FOREIGN KEY (cliente_id) REFERENCES parceiros(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS saida_itens (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        saida_id INTEGER NOT NULL,
        sublote_id INTEGER,
        peso_kg REAL NOT NULL,
        FOREIGN KEY (saida_id) REFERENCES saidas(id) ON DELETE CASCADE,
        FOREIGN KEY (sublote_id) REFERENCES sublotes(id)
    );
    """,
    # Acertos financeiros
    """
    CREATE TABLE IF NOT EXISTS acertos_financeiros (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        tipo TEXT NOT NULL,          -- 'receita' | 'divida'
        valor REAL NOT NULL,
        status TEXT DEFAULT 'pendente',
        dono_id INTEGER,
        parceiro_id INTEGER,
        referencia_tipo TEXT,
        referencia_id INTEGER,
        data_acerto TEXT,
        data_pagamento TEXT,
        observacoes TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (dono_id) REFERENCES donos_material(id)
    );
    """,
    # Cotações LME
    """
    CREATE TABLE IF NOT EXISTS historico_lme (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        data TEXT NOT NULL,
        cobre_usd_t REAL,
        aluminio_usd_t REAL,
        zinco_usd_t REAL,
        chumbo_usd_t REAL,
        estanho_usd_t REAL,
        niquel_usd_t REAL,
        dolar_brl REAL,
        cobre_brl_kg REAL,
        aluminio_brl_kg REAL,
        is_media_semanal INTEGER DEFAULT 0,
        semana_numero INTEGER,
        fonte TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS lme_semana_config (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        ano INTEGER NOT NULL,
        semana INTEGER NOT NULL,
        data_inicio TEXT NOT NULL,
        data_fim TEXT NOT NULL,
        lme_cobre_usd_t REAL NOT NULL,
        dolar_brl REAL NOT NULL,
        icms_pct REAL NOT NULL,
        pis_cofins_pct REAL NOT NULL,
        taxa_financeira_pct REAL NOT NULL,
        lme_base_brl_kg REAL,
        fator_total REAL,
        lme_final_brl_kg REAL,
        observacoes TEXT,
        UNIQUE (ano, semana)
    );
    """,
    # Auditoria
    """
    CREATE TABLE IF NOT EXISTS audit_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        action TEXT NOT NULL,
        table_name TEXT NOT NULL,
        record_id TEXT,
        record_data TEXT,
        user_id TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    );
    """,
]


def _ensure_column(conn, table: str, column: str, ddl: str) -> None:
    """Adiciona coluna se não existir."""
    cur = conn.execute(f"PRAGMA table_info({table});")
    cols = [r[1] for r in cur.fetchall()]  # r[1] é o nome da coluna
    if column not in cols:
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {ddl};")


def _apply_v1(conn) -> None:
    for sql in SCHEMA_V1:
        conn.executescript(sql)


def _apply_v2(conn) -> None:
    # custo do beneficiamento por kg carimbado nos lotes gerados
    _ensure_column(conn, "sublotes", "custo_beneficiamento_kg", "custo_beneficiamento_kg REAL DEFAULT 0")
    # filhos de um lote-pai selecionado: mudam de status mas não somam peso
    _ensure_column(conn, "beneficiamento_itens_entrada", "intermediario", "intermediario INTEGER DEFAULT 0")


SCHEMA_V3: List[str] = [
    """
    CREATE TABLE IF NOT EXISTS transferencias_dono (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        sublote_id INTEGER NOT NULL,
        dono_origem_id INTEGER,
        dono_destino_id INTEGER,
        peso_kg REAL NOT NULL,
        valor_acrescimo REAL DEFAULT 0,
        custo_unitario_anterior REAL,
        custo_unitario_novo REAL,
        data_transferencia TEXT,
        observacoes TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (sublote_id) REFERENCES sublotes(id),
        FOREIGN KEY (dono_origem_id) REFERENCES donos_material(id),
        FOREIGN KEY (dono_destino_id) REFERENCES donos_material(id)
    );
    """,
]


def _apply_v3(conn) -> None:
    # perda_real_pct passa a guardar só a perda observada na finalização
    _ensure_column(conn, "beneficiamentos", "perda_padrao_pct", "perda_padrao_pct REAL")
    for sql in SCHEMA_V3:
        conn.executescript(sql)


def apply_migrations(db_path: str) -> None:
    """Aplica migrações incrementais de acordo com PRAGMA user_version."""
    with connect(db_path) as conn:
        ver = conn.execute("PRAGMA user_version;").fetchone()[0] or 0

        if ver < 1:
            _apply_v1(conn)
            conn.execute("PRAGMA user_version = 1;")
            ver = 1

        if ver < 2:
            _apply_v2(conn)
            conn.execute("PRAGMA user_version = 2;")
            ver = 2

        if ver < 3:
            _apply_v3(conn)
            conn.execute("PRAGMA user_version = 3;")
            ver = 3
