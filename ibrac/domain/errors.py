"""
Exceções de negócio do sistema.

A camada de casos de uso lança estas exceções antes de qualquer escrita
(validação) ou ao não encontrar registros referenciados. O adaptador CLI as
apresenta ao usuário com a mensagem original.
"""

from __future__ import annotations


class ValidacaoError(ValueError):
    """Regra de negócio violada (seleção vazia, percentuais inválidos, etc.)."""


class RegistroNaoEncontrado(LookupError):
    """Registro referenciado não existe no banco."""

    def __init__(self, tabela: str, registro_id):
        self.tabela = tabela
        self.registro_id = registro_id
        super().__init__(f"{tabela}: registro {registro_id} não encontrado")


class LmeApiError(RuntimeError):
    """Falha ao consultar a API de cotações de metais."""
