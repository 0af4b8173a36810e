# ibrac/infra/db.py
"""
Utilidades de conexão SQLite.

Os repositórios abrem uma conexão por chamada, a menos que recebam uma
conexão compartilhada (`conn=`); nesse caso todas as escritas de um caso de
uso ficam na mesma transação e são desfeitas juntas em caso de erro.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional


@contextmanager
def connect(db_path: str) -> Iterator[sqlite3.Connection]:
    """
    Context manager para abrir conexão SQLite com:
    - foreign_keys ON
    - row_factory = sqlite3.Row
    - commit ao sair (rollback em caso de exceção)
    """
    conn = sqlite3.connect(db_path)
    try:
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


@contextmanager
def using(db_path: str, conn: Optional[sqlite3.Connection]) -> Iterator[sqlite3.Connection]:
    """Reaproveita `conn` (sem commit) ou abre uma conexão própria."""
    if conn is not None:
        yield conn
        return
    with connect(db_path) as c:
        yield c
