# ibrac/infra/views.py
"""
Criação de views auxiliares para consultas frequentes.

Views criadas:
- vw_estoque_por_produto:  saldo disponível por tipo de produto (peso e custo médio).
- vw_repasses_pendentes:   dívidas pendentes com donos de material, por dono.
- vw_resultado_ibrac:      receitas confirmadas/pagas da IBRAC por origem.

Obs.:
- As views assumem que as migrações V1→V2 já foram aplicadas.
- Um conjunto de índices úteis também é criado, caso não existam.
"""

from __future__ import annotations

from .db import connect


def create_views(db_path: str) -> None:
    with connect(db_path) as c:
        # -----------------------
        # Views (drop + create)
        # -----------------------
        c.executescript(
            """
            ---------------------------
            -- Estoque disponível por produto
            ---------------------------
            DROP VIEW IF EXISTS vw_estoque_por_produto;
            CREATE VIEW vw_estoque_por_produto AS
            SELECT
                tp.id                                  AS tipo_produto_id,
                COALESCE(tp.codigo, 'SEM_CODIGO')      AS produto_codigo,
                COALESCE(tp.nome, '-')                 AS produto_nome,
                COUNT(s.id)                            AS qtd_sublotes,
                COALESCE(SUM(s.peso_kg), 0.0)          AS peso_kg,
                CASE WHEN SUM(s.peso_kg) > 0
                     THEN SUM(s.peso_kg * COALESCE(s.custo_unitario_total, 0)) / SUM(s.peso_kg)
                     ELSE 0 END                        AS custo_medio_kg
            FROM sublotes s
            LEFT JOIN tipos_produto tp ON tp.id = s.tipo_produto_id
            WHERE s.status = 'disponivel' AND s.peso_kg > 0
            GROUP BY tp.id;

            ---------------------------
            -- Repasses pendentes por dono
            ---------------------------
            DROP VIEW IF EXISTS vw_repasses_pendentes;
            CREATE VIEW vw_repasses_pendentes AS
            SELECT
                a.dono_id,
                COALESCE(d.nome, 'Sem dono')           AS dono_nome,
                COUNT(a.id)                            AS qtd_acertos,
                SUM(a.valor)                           AS total
            FROM acertos_financeiros a
            LEFT JOIN donos_material d ON d.id = a.dono_id
            WHERE a.status = 'pendente' AND a.tipo = 'divida'
            GROUP BY a.dono_id;

            ---------------------------
            -- Receitas da IBRAC por cenário de origem
            ---------------------------
            DROP VIEW IF EXISTS vw_resultado_ibrac;
            CREATE VIEW vw_resultado_ibrac AS
            SELECT
                COALESCE(s.cenario_operacao, 'outros') AS cenario,
                COUNT(a.id)                            AS qtd_acertos,
                SUM(a.valor)                           AS receita
            FROM acertos_financeiros a
            LEFT JOIN saidas s ON a.referencia_tipo = 'saida' AND s.id = a.referencia_id
            WHERE a.tipo = 'receita' AND a.status IN ('confirmado', 'pago')
            GROUP BY COALESCE(s.cenario_operacao, 'outros');
            """
        )

        # --------------------------------
        # Índices úteis (IF NOT EXISTS)
        # --------------------------------
        c.executescript(
            """
            CREATE INDEX IF NOT EXISTS idx_sublotes_status   ON sublotes(status);
            CREATE INDEX IF NOT EXISTS idx_sublotes_pai      ON sublotes(lote_pai_id);
            CREATE INDEX IF NOT EXISTS idx_sublotes_entrada  ON sublotes(entrada_id);
            CREATE INDEX IF NOT EXISTS idx_benef_itens_ent   ON beneficiamento_itens_entrada(beneficiamento_id);
            CREATE INDEX IF NOT EXISTS idx_benef_itens_sai   ON beneficiamento_itens_saida(beneficiamento_id);
            CREATE INDEX IF NOT EXISTS idx_saida_itens_lote  ON saida_itens(sublote_id);
            CREATE INDEX IF NOT EXISTS idx_acertos_ref       ON acertos_financeiros(referencia_tipo, referencia_id);
            CREATE INDEX IF NOT EXISTS idx_lme_data          ON historico_lme(data);
            """
        )
