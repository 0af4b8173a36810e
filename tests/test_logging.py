import uuid

import pytest

from ibrac.infra import logger


@pytest.fixture
def logging_ligado(monkeypatch):
    monkeypatch.setattr(logger, "ENABLE_LOGGING", True)


def test_resumo_desligado_retorna_none():
    assert logger.get_log_summary("system") is None


def test_eventos_vao_para_o_arquivo_do_assunto(logging_ligado):
    marca = uuid.uuid4().hex
    logger.log_system_event("test_start", {"marca": marca})
    logger.log_beneficiamento("create", f"BEN-{marca}", 1000.0, custo_total=1900.0)
    logger.log_saida("insert", f"SAI-{marca}", 980.0, "proprio")
    logger.log_transaction("test_error", {"marca": marca}, error="falha simulada")

    assert marca in logger.get_log_summary("system", lines=5)
    assert "BENEFICIAMENTO_CREATE" in logger.get_log_summary("beneficiamentos", lines=5)
    assert f"SAI-{marca}" in logger.get_log_summary("saidas", lines=5)
    assert "TRANSACTION_FAILED: test_error - falha simulada" in logger.get_log_summary("transactions", lines=5)


def test_log_desconhecido(logging_ligado):
    assert logger.get_log_summary("entradas") == "Log entradas não encontrado."
