"""
Formulários do sistema Rereports.
"""

from .lancamento_forms import (
    LancamentoForm, LancamentoUpdateForm, TransitionForm, BatchForm,
    AuditFilterForm, PeriodoForm, AnexoForm
)

__all__ = [
    'LancamentoForm', 'LancamentoUpdateForm', 'TransitionForm', 'BatchForm',
    'AuditFilterForm', 'PeriodoForm', 'AnexoForm'
]
