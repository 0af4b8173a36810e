import json
from math import isclose
from pathlib import Path

from typer.testing import CliRunner

from ibrac.adapters.cli import app
from ibrac.infra.repositories import SubloteRepo
from ibrac.usecases.registrar_beneficiamento import listar_beneficiamentos

runner = CliRunner()


def _ok(args):
    result = runner.invoke(app, args)
    assert result.exit_code == 0, result.output
    return result


def test_cli_migrate_and_params(tmp_path: Path):
    db = str(tmp_path / "ibrac_test.sqlite")
    result = _ok(["migrate", "--db", db])
    assert "Migrações aplicadas" in result.stdout

    _ok(["params", "set", "--db", db, "--taxa-financeira", "2.5"])
    result = _ok(["params", "get", "taxa_financeira_pct", "--db", db])
    assert result.stdout.strip() == "2.5"

    result = _ok(["params", "show", "--db", db])
    assert "perda_cobrada_pct" in result.stdout

    result = runner.invoke(app, ["params", "set", "--db", db, "--icms", "150"])
    assert result.exit_code == 1


def test_cli_fluxo_beneficiamento(tmp_path: Path):
    db = str(tmp_path / "ibrac_test.sqlite")
    _ok(["cadastro", "produto", "CU01", "Cobre mel", "--db", db])
    _ok(["cadastro", "tipo-entrada", "Compra", "--db", db])
    _ok(["cadastro", "dono", "IBRAC", "--ibrac", "--db", db])
    _ok(["entrada", "registrar", "-v", "600", "-v", "400", "--tipo-entrada", "1", "--produto", "1",
         "--dono", "1", "--valor-total", "50000", "--db", db])
    _ok(["lotes", "--db", db])
    assert len(SubloteRepo(db).disponiveis()) == 2

    result = _ok(["beneficiamento", "previa", "1", "2", "--perda", "CU01=2:3", "--frete-ida", "0.4",
                  "--mo-terceiro", "0.3", "--mo-ibrac", "0.3", "--taxa-financeira", "1.8", "--db", db])
    assert "1.900,00" in result.stdout
    assert listar_beneficiamentos(db_path=db) == []

    _ok(["beneficiamento", "criar", "1", "2", "--perda", "CU01=2:3", "--frete-ida", "0.4",
         "--mo-terceiro", "0.3", "--mo-ibrac", "0.3", "--taxa-financeira", "1.8", "--db", db])
    ben = listar_beneficiamentos(db_path=db)
    assert len(ben) == 1 and ben[0]["status"] == "em_andamento"

    _ok(["beneficiamento", "finalizar", str(ben[0]["id"]), "--peso-real", "980", "--lme", "40", "--db", db])
    gerados = SubloteRepo(db).disponiveis()
    assert isclose(sum(g["peso_kg"] for g in gerados), 980)

    _ok(["saida", "previa", str(gerados[0]["id"]), "--preco", "45", "--db", db])

    result = runner.invoke(app, ["beneficiamento", "excluir", str(ben[0]["id"]), "--sim", "--db", db])
    assert result.exit_code == 1
    result = _ok(["beneficiamento", "excluir", str(ben[0]["id"]), "--sim", "--estornar", "--db", db])
    assert "excluído" in result.stdout
    assert [l["peso_kg"] for l in SubloteRepo(db).disponiveis()] == [600, 400]


def test_cli_lote_transferir_historico_custo(tmp_path: Path):
    db = str(tmp_path / "ibrac_test.sqlite")
    _ok(["cadastro", "produto", "CU01", "Cobre mel", "--db", db])
    _ok(["cadastro", "tipo-entrada", "Compra", "--db", db])
    _ok(["cadastro", "dono", "IBRAC", "--ibrac", "--db", db])
    _ok(["cadastro", "dono", "Fulano Metais", "--taxa-operacao", "5", "--db", db])
    _ok(["entrada", "registrar", "-v", "600", "--tipo-entrada", "1", "--produto", "1",
         "--dono", "1", "--valor-total", "30000", "--db", db])

    result = _ok(["lote", "transferir", "1", "--dono", "2", "--acrescimo", "300", "--db", db])
    assert "50,50" in result.stdout
    assert SubloteRepo(db).get(1)["dono_id"] == 2

    result = _ok(["lote", "historico", "1", "--db", db])
    assert "Fulano" in result.stdout

    result = _ok(["lote", "custo", "1", "--db", db])
    assert "Custo do lote" in result.stdout
    assert "50,50" in result.stdout

    result = runner.invoke(app, ["lote", "historico", "99", "--db", db])
    assert result.exit_code == 1


def test_cli_entrada_excluir(tmp_path: Path):
    db = str(tmp_path / "ibrac_test.sqlite")
    _ok(["cadastro", "dono", "Fulano Metais", "--db", db])
    _ok(["entrada", "registrar", "-v", "100", "--valor-total", "1000", "--db", db])
    _ok(["entrada", "registrar", "-v", "200", "--dono", "1", "--valor-total", "2000", "--db", db])
    _ok(["lote", "transferir", "2", "--db", db])

    result = runner.invoke(app, ["entrada", "excluir", "2", "--sim", "--db", db])
    assert result.exit_code == 1
    assert "transferido" in result.output

    result = _ok(["entrada", "excluir", "1", "--sim", "--db", db])
    assert "1 lote(s) removido(s)" in result.stdout
    assert [l["id"] for l in SubloteRepo(db).todos()] == [2]

def test_cli_erros_de_negocio(tmp_path: Path):
    db = str(tmp_path / "ibrac_test.sqlite")
    result = runner.invoke(app, ["saida", "registrar", "99", "--preco", "10", "--db", db])
    assert result.exit_code == 1
    assert "não encontrado" in result.output

    result = runner.invoke(app, ["beneficiamento", "previa", "1", "--perda", "CU01", "--db", db])
    assert result.exit_code == 2

    result = runner.invoke(app, ["lme", "semana", "2025", "54", "--lme-usd", "9500", "--dolar", "5.5", "--db", db])
    assert result.exit_code == 1


def test_cli_lme_semana_e_auditoria(tmp_path: Path):
    db = str(tmp_path / "ibrac_test.sqlite")
    result = _ok(["lme", "semana", "2025", "10", "--lme-usd", "9500", "--dolar", "5.5", "--db", db])
    assert "2025-03-03" in result.stdout

    result = _ok(["auditoria", "--json", "--db", db])
    data = json.loads(result.stdout)
    assert data[0]["table_name"] == "lme_semana_config"
    assert data[0]["record_data"]["semana"] == 10


def test_cli_relatorios(tmp_path: Path):
    db = str(tmp_path / "ibrac_test.sqlite")
    result = _ok(["rel", "estoque", "--db", db])
    assert "Nenhum lote" in result.stdout
    _ok(["rel", "resultado", "--db", db])
    _ok(["rel", "repasses", "--db", db])
    _ok(["acertos", "pendentes", "--db", db])


def test_cli_erro_de_banco_vira_painel(tmp_path: Path, monkeypatch):
    import sqlite3
    from ibrac.adapters import cli

    def travado(*a, **kw):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(cli, "run_importar", travado)
    db = str(tmp_path / "ibrac_test.sqlite")
    result = runner.invoke(app, ["importar", str(tmp_path / "x.xlsx"), "--layout", "tipos_produto", "--db", db])
    assert result.exit_code == 1
    assert "database is locked" in result.output
    assert "Erro no banco de dados" in result.output
