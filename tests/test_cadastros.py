import pytest

from ibrac.domain.errors import ValidacaoError
from ibrac.infra.repositories import AuditRepo, ParamsRepo
from ibrac.usecases.cadastros import criar_cadastro, listar_cadastro
from ibrac.usecases.parametros import carregar_params, definir_params


def test_criar_e_listar(db):
    criar_cadastro("parceiros", {"razao_social": "Sucata Sul Ltda", "is_cliente": 1}, db)
    criar_cadastro("parceiros", {"razao_social": "Aço Norte SA"}, db)
    nomes = [p["razao_social"] for p in listar_cadastro("parceiros", db)]
    assert nomes == ["Aço Norte SA", "Sucata Sul Ltda"]
    assert AuditRepo(db).listar("parceiros")[0]["record_data"]["razao_social"] == "Aço Norte SA"


def test_nome_e_codigo_repetidos(db, cad):
    with pytest.raises(ValidacaoError, match="já cadastrado"):
        criar_cadastro("donos_material", {"nome": "  fulano metais "}, db)
    with pytest.raises(ValidacaoError, match="código"):
        criar_cadastro("tipos_produto", {"codigo": "CU01", "nome": "Outro cobre"}, db)


def test_cadastro_invalido(db):
    with pytest.raises(ValidacaoError, match="desconhecido"):
        criar_cadastro("sublotes", {"codigo": "X"}, db)
    with pytest.raises(ValidacaoError, match="obrigatório"):
        criar_cadastro("tipos_saida", {"nome": " "}, db)
    with pytest.raises(ValidacaoError, match="entre 0 e 100"):
        criar_cadastro("donos_material", {"nome": "Beltrano", "taxa_operacao_pct": 120}, db)


def test_params_defaults_e_definir(db):
    p = carregar_params(db)
    assert (p.taxa_financeira_pct, p.perda_real_pct, p.perda_cobrada_pct) == (1.8, 3.0, 5.0)

    p = definir_params({"taxa_financeira_pct": 2.5, "icms_pct": 12}, db_path=db)
    assert p.taxa_financeira_pct == 2.5
    assert p.icms_pct == 12.0
    assert ParamsRepo(db).get("icms_pct") == "12.0"


def test_params_invalidos(db):
    with pytest.raises(ValidacaoError, match="desconhecido"):
        definir_params({"nivel_servico": 0.95}, db_path=db)
    with pytest.raises(ValidacaoError):
        definir_params({"perda_real_pct": -1}, db_path=db)
    assert ParamsRepo(db).get("perda_real_pct") is None
