"""
Módulo de modelos do core.

Importa todos os modelos para facilitar o uso em outras partes do sistema.
"""

from core.models.base import TimestampedModel
from core.models.user import User, UserRole, Role
from core.models.colaborador import ColaboradorElegivel
from core.models.periodo import CalendarioPeriodo, PeriodoStatus
from core.models.lancamento import (
    TipoDespesa, Lancamento, Anexo, Fechamento, EventoPida,
    ClassificacaoDespesa, Origem, LancamentoStatus, FechamentoStatus
)
from core.models.audit import AuditLogEntry, AuditAction, AuditEntityType

__all__ = [
    'TimestampedModel', 'User', 'UserRole', 'Role',
    'ColaboradorElegivel', 'CalendarioPeriodo', 'PeriodoStatus',
    'TipoDespesa', 'Lancamento', 'Anexo', 'Fechamento', 'EventoPida',
    'ClassificacaoDespesa', 'Origem', 'LancamentoStatus', 'FechamentoStatus',
    'AuditLogEntry', 'AuditAction', 'AuditEntityType'
]
