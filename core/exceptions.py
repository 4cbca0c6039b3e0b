"""
Exceções de domínio do ciclo de lançamentos.

Cada exceção carrega um `code` estável (usado pela API para mapear o status
HTTP) e uma mensagem em português pronta para exibição ao usuário.
"""

from typing import Dict, Optional


class RereportsError(Exception):
    """Exceção base para todas as falhas de domínio."""

    code = 'erro'
    default_message = 'Erro ao processar a operação.'
    retryable = False

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class PermissionDenied(RereportsError):
    """O usuário não possui a role exigida pela operação."""

    code = 'permission_denied'
    default_message = 'Você não tem permissão para executar esta operação.'


class PeriodClosed(RereportsError):
    """A janela de lançamento do período não aceita a operação agora."""

    code = 'period_closed'
    default_message = 'O período não está aberto para lançamentos.'


class InvalidTransition(RereportsError):
    """
    Transição de status fora da tabela permitida.

    Indica que o cliente está com uma visão desatualizada do lançamento.
    """

    code = 'invalid_transition'

    def __init__(self, current: str, target: str, message: Optional[str] = None):
        self.current = current
        self.target = target
        super().__init__(
            message or f"Transição inválida: '{current}' -> '{target}'."
        )


class ConflictingTransition(RereportsError):
    """Outra requisição alterou o lançamento entre a leitura e a escrita."""

    code = 'conflicting_transition'
    default_message = 'O lançamento foi alterado por outra operação. Recarregue e tente novamente.'
    retryable = True


class ValidationFailure(RereportsError):
    """Entrada malformada ou incompleta."""

    code = 'validation_failure'
    default_message = 'Dados inválidos.'

    def __init__(self, message: Optional[str] = None, errors: Optional[Dict[str, str]] = None):
        self.errors = errors or {}
        super().__init__(message)


class DependencyUnavailable(RereportsError):
    """Persistência ou serviço de consulta indisponível (inclui timeout)."""

    code = 'dependency_unavailable'
    default_message = 'Serviço temporariamente indisponível. Tente novamente em instantes.'
    retryable = True


class AuditAppendFailed(DependencyUnavailable):
    """
    Falha ao gravar a entrada de auditoria.

    A operação que a disparou é desfeita junto com a transação.
    """

    code = 'audit_append_failed'
    default_message = 'Não foi possível registrar a auditoria. A operação foi desfeita.'
