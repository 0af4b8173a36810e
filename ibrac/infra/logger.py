# ibrac/infra/logger.py
"""
Sistema de logging das operações da IBRAC.

Um logger em arquivo por assunto (transações, beneficiamentos, saídas,
banco de dados, sistema). Os registros só são gravados quando
`ENABLE_LOGGING` está ligado; a CLI liga o logging com a
opção `--log`.
"""

import logging
from pathlib import Path
from typing import Dict, Any, Optional


# Flag global para habilitar/desabilitar logging
ENABLE_LOGGING = False


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Diretório base para logs (na pasta do pacote)
BASE_DIR = Path(__file__).parent.parent
LOGS_DIR = BASE_DIR / "logs"

LOG_FILES = {
    "transactions": LOGS_DIR / "transactions.log",
    "beneficiamentos": LOGS_DIR / "beneficiamentos.log",
    "saidas": LOGS_DIR / "saidas.log",
    "database": LOGS_DIR / "database.log",
    "system": LOGS_DIR / "system.log",
}


def setup_logger(name: str, log_file: str, level: int = logging.INFO) -> logging.Logger:
    """
    Configura um logger com saída em arquivo.

    O arquivo só é aberto na primeira mensagem (`delay=True`), então importar
    o módulo não cria arquivos de log vazios.

    Args:
        name: Nome do logger
        log_file: Caminho do arquivo de log
        level: Nível de logging

    Returns:
        Logger configurado
    """
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    while logger.handlers:
        logger.removeHandler(logger.handlers[0])

    file_handler = logging.FileHandler(log_file, encoding='utf-8', delay=True)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(file_handler)

    return logger


transaction_logger = setup_logger('ibrac.transactions', str(LOG_FILES["transactions"]))
beneficiamento_logger = setup_logger('ibrac.beneficiamentos', str(LOG_FILES["beneficiamentos"]))
saida_logger = setup_logger('ibrac.saidas', str(LOG_FILES["saidas"]))
database_logger = setup_logger('ibrac.database', str(LOG_FILES["database"]))
system_logger = setup_logger('ibrac.system', str(LOG_FILES["system"]))


def _ativo() -> bool:
    return ENABLE_LOGGING


def log_transaction(operation: str, data: Dict[str, Any], result: Optional[Any] = None, error: Optional[str] = None) -> None:
    """
    Registra uma transação completa (sucesso ou falha).

    Args:
        operation: Nome do caso de uso (criar_beneficiamento, registrar_saida, ...)
        data: Dados de entrada relevantes
        result: Resultado da operação (opcional)
        error: Mensagem de erro (opcional)
    """
    if not _ativo():
        return
    if error:
        transaction_logger.error(f"TRANSACTION_FAILED: {operation} - {error} - Data: {data}")
    else:
        transaction_logger.info(f"TRANSACTION_SUCCESS: {operation} - Result: {result} - Data: {data}")


def log_beneficiamento(action: str, codigo: str, peso_kg: Optional[float] = None, **kwargs) -> None:
    """Log de operações de beneficiamento (create, finalize, delete)."""
    if not _ativo():
        return
    log_data = {"action": action, "codigo": codigo, "peso_kg": peso_kg, **kwargs}
    beneficiamento_logger.info(f"BENEFICIAMENTO_{action.upper()}: {log_data}")


def log_saida(action: str, codigo: str, peso_kg: Optional[float] = None, cenario: Optional[str] = None, **kwargs) -> None:
    """Log de operações de saída (insert, delete)."""
    if not _ativo():
        return
    log_data = {"action": action, "codigo": codigo, "peso_kg": peso_kg, "cenario": cenario, **kwargs}
    saida_logger.info(f"SAIDA_{action.upper()}: {log_data}")


def log_database_operation(table: str, operation: str, affected_rows: int = 0, **kwargs) -> None:
    """
    Log de operações no banco.

    Args:
        table: Nome da tabela
        operation: INSERT, UPDATE, DELETE...
        affected_rows: Número de linhas afetadas
    """
    if not _ativo():
        return
    log_data = {"table": table, "operation": operation, "affected_rows": affected_rows, **kwargs}
    database_logger.info(f"DB_{operation}: {log_data}")


def log_system_event(event: str, details: Dict[str, Any] = None, level: str = "info") -> None:
    """
    Log para eventos do sistema.

    Args:
        event: Descrição do evento
        details: Detalhes adicionais (opcional)
        level: Nível do log (info, warning, error)
    """
    if not _ativo():
        return
    log_data = {"event": event, "details": details or {}}
    log_method = getattr(system_logger, level.lower(), system_logger.info)
    log_method(f"SYSTEM_EVENT: {event} - {log_data}")


def log_file_operation(operation: str, file_path: str, rows_processed: int = 0, **kwargs) -> None:
    """Log para importação/exportação de planilhas."""
    if not _ativo():
        return
    log_data = {"operation": operation, "file_path": file_path, "rows_processed": rows_processed, **kwargs}
    system_logger.info(f"FILE_{operation.upper()}: {log_data}")


def get_log_summary(log_type: str = "transactions", lines: int = 100) -> Optional[str]:
    """
    Últimas linhas de um arquivo de log.

    Args:
        log_type: transactions, beneficiamentos, saidas, database ou system
        lines: Número de linhas a retornar
    """
    if not _ativo():
        return None

    log_file = LOG_FILES.get(log_type)
    if not log_file or not log_file.exists():
        return f"Log {log_type} não encontrado."

    try:
        with open(log_file, 'r', encoding='utf-8') as f:
            all_lines = f.readlines()
    except OSError as e:
        return f"Erro ao ler log {log_type}: {e}"
    return ''.join(all_lines[-lines:])
