"""
URLs do app core.

Define as rotas da API REST do Rereports (incluídas em /api/v1/).
"""

from django.urls import path

from core.views import api

urlpatterns = [
    # Lançamentos
    path('lancamentos/', api.lancamento_list, name='lancamento_list'),
    path('lancamentos/aprovar-lote/', api.lancamento_approve_batch, name='lancamento_approve_batch'),
    path('lancamentos/rejeitar-lote/', api.lancamento_reject_batch, name='lancamento_reject_batch'),
    path('lancamentos/<uuid:pk>/', api.lancamento_detail, name='lancamento_detail'),
    path('lancamentos/<uuid:pk>/transicao/', api.lancamento_transition, name='lancamento_transition'),
    path('lancamentos/<uuid:pk>/anexos/', api.lancamento_anexos, name='lancamento_anexos'),

    # Períodos
    path('periodos/', api.periodo_list, name='periodo_list'),
    path('periodos/atual/', api.periodo_current, name='periodo_current'),
    path('periodos/<uuid:pk>/', api.periodo_detail, name='periodo_detail'),
    path('periodos/<uuid:pk>/fechamento/', api.periodo_closing, name='periodo_closing'),

    # Auditoria
    path('auditoria/', api.audit_list, name='audit_list'),
    path('auditoria/exportar/', api.audit_export, name='audit_export'),

    # Identidade
    path('colaboradores/inconsistencias-nome/', api.name_inconsistencies, name='name_inconsistencies'),
    path('colaboradores/<uuid:pk>/nome-exibicao/', api.colaborador_display_name, name='colaborador_display_name'),
]
