from types import SimpleNamespace

import pytest

from ibrac.infra.migrations import apply_migrations
from ibrac.usecases.cadastros import criar_cadastro


@pytest.fixture
def db(tmp_path):
    db_path = str(tmp_path / "ibrac_test.sqlite")
    apply_migrations(db_path)
    return db_path


@pytest.fixture
def cad(db):
    """Cadastros mínimos: produto, tipos de entrada/saída e três donos."""
    return SimpleNamespace(
        cobre=criar_cadastro("tipos_produto", {"codigo": "CU01", "nome": "Cobre mel", "perda_padrao_pct": 2}, db),
        aluminio=criar_cadastro("tipos_produto", {"codigo": "AL01", "nome": "Alumínio perfil"}, db),
        compra=criar_cadastro("tipos_entrada", {"nome": "Compra", "gera_custo": 1}, db),
        remessa=criar_cadastro("tipos_entrada", {"nome": "Remessa para industrialização", "gera_custo": 0}, db),
        venda=criar_cadastro("tipos_saida", {"nome": "Venda", "cobra_custos": 1}, db),
        ibrac=criar_cadastro("donos_material", {"nome": "IBRAC", "is_ibrac": 1}, db),
        terceiro=criar_cadastro("donos_material", {"nome": "Fulano Metais", "taxa_operacao_pct": 5}, db),
        cliente=criar_cadastro("donos_material", {"nome": "Cliente Industrial"}, db),
    )
