from __future__ import annotations


class DomainError(Exception):
    """Base para erros de dominio."""


class LaunchValidationError(DomainError):
    """Pre-condicoes do lancamento falharam antes de qualquer transacao."""


class TransactionSubmissionError(DomainError):
    """Carteira rejeitou ou nao conseguiu enviar a transacao."""


class TransactionConfirmationError(DomainError):
    """Transacao enviada reverteu ou o recibo nao foi observado."""


class ChainReadError(DomainError):
    """Leitura on-chain falhou (endereco invalido, revert, falha de RPC)."""


class LogParsingError(DomainError):
    """Evento esperado nao encontrado ou nao decodificavel no recibo."""


class InvalidTransitionError(DomainError):
    """Evento nao aceito na fase atual da orquestracao."""


class LaunchInProgressError(DomainError):
    """Ja existe um lancamento em andamento."""
