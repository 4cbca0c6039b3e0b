"""
API REST do ciclo de lançamentos e da auditoria.

Endpoints (prefixo /api/v1/):
- lancamentos/                          GET lista, POST envio
- lancamentos/<id>/                     PATCH alteração, DELETE exclusão
- lancamentos/<id>/transicao/           POST transição de status
- lancamentos/aprovar-lote/             POST aprovação em lote
- lancamentos/rejeitar-lote/            POST rejeição em lote
- lancamentos/<id>/anexos/              GET metadados, POST registro
- periodos/                             GET lista, POST criação
- periodos/atual/                       GET período corrente
- periodos/<id>/                        PATCH alteração, DELETE exclusão
- periodos/<id>/fechamento/             POST fechamento
- auditoria/                            GET consulta
- auditoria/exportar/                   GET relatório
- colaboradores/inconsistencias-nome/   GET divergências de nome
- colaboradores/<id>/nome-exibicao/     GET nome a exibir

O Principal é construído explicitamente a cada requisição a partir do
usuário autenticado e repassado aos services.
"""

import logging

from django.core.exceptions import ObjectDoesNotExist
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import (
    ConflictingTransition, DependencyUnavailable, InvalidTransition, PeriodClosed,
    PermissionDenied, RereportsError, ValidationFailure,
)
from core.forms import (
    AnexoForm, AuditFilterForm, BatchForm, LancamentoForm, LancamentoUpdateForm,
    PeriodoForm, TransitionForm,
)
from core.models import CalendarioPeriodo, ColaboradorElegivel, Lancamento, Role
from core.services import anexos, audit, fechamento, identidade, lancamentos, periodos
from core.services.roles import Principal, principal_for

logger = logging.getLogger(__name__)

ERROR_STATUS = (
    (PermissionDenied, status.HTTP_403_FORBIDDEN),
    (PeriodClosed, status.HTTP_409_CONFLICT),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (ConflictingTransition, status.HTTP_409_CONFLICT),
    (ValidationFailure, status.HTTP_400_BAD_REQUEST),
    (DependencyUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def domain_exception_handler(exc, context):
    """
    Converte as exceções de domínio em respostas JSON.

    Configurado em REST_FRAMEWORK['EXCEPTION_HANDLER'].
    """
    if isinstance(exc, RereportsError):
        http_status = next(
            (code for error_class, code in ERROR_STATUS if isinstance(exc, error_class)),
            status.HTTP_400_BAD_REQUEST,
        )
        body = {'error': exc.code, 'message': exc.message, 'retryable': exc.retryable}
        if isinstance(exc, InvalidTransition):
            body.update(current=exc.current, target=exc.target)
        if isinstance(exc, ValidationFailure) and exc.errors:
            body['errors'] = exc.errors
        logger.warning(f'[API] {exc.code}: {exc.message}')
        return Response(body, status=http_status)

    if isinstance(exc, ObjectDoesNotExist):
        return Response({'error': 'not_found', 'message': 'Registro não encontrado.'}, status=status.HTTP_404_NOT_FOUND)

    return exception_handler(exc, context)


def _principal(request) -> Principal:
    return principal_for(request.user)


def _invalid(form) -> Response:
    return Response(
        {'error': 'validation_failure', 'errors': form.errors.get_json_data()},
        status=status.HTTP_400_BAD_REQUEST,
    )


def _money(value):
    return None if value is None else str(value)


def _lancamento_payload(lancamento: Lancamento, nome_colaborador: str = None) -> dict:
    return {
        'id': str(lancamento.id),
        'colaborador_id': str(lancamento.colaborador_id),
        'colaborador_nome': nome_colaborador or lancamento.colaborador.nome,
        'periodo_id': str(lancamento.periodo_id),
        'tipo_despesa_id': str(lancamento.tipo_despesa_id),
        'origem': lancamento.origem,
        'valor_lancado': _money(lancamento.valor_lancado),
        'valor_considerado': _money(lancamento.valor_considerado),
        'valor_nao_considerado': _money(lancamento.valor_nao_considerado),
        'descricao_fato_gerador': lancamento.descricao_fato_gerador,
        'numero_documento': lancamento.numero_documento or None,
        'parcela': lancamento.parcelamento_numero_parcela,
        'total_parcelas': lancamento.parcelamento_total_parcelas,
        'parcelamento_valor_total': _money(lancamento.parcelamento_valor_total),
        'lancamento_origem_id': str(lancamento.lancamento_origem_id) if lancamento.lancamento_origem_id else None,
        'status': lancamento.status,
        'status_label': lancamento.get_status_display(),
        'motivo_invalidacao': lancamento.motivo_invalidacao or None,
        'version': lancamento.version,
        'fechamento_id': str(lancamento.fechamento_id) if lancamento.fechamento_id else None,
        'created_at': lancamento.created_at,
        'updated_at': lancamento.updated_at,
    }


def _periodo_payload(periodo: CalendarioPeriodo, now=None) -> dict:
    now = now or timezone.now()
    return {
        'id': str(periodo.id),
        'periodo': periodo.periodo,
        'data_inicio': periodo.data_inicio,
        'data_final': periodo.data_final,
        'abre_lancamento': periodo.abre_lancamento,
        'fecha_lancamento': periodo.fecha_lancamento,
        'status': periodo.status,
        'aceita_lancamentos': periodos.can_submit(periodo, now),
    }


# ---------------------------------------------------------------------------
# Lançamentos
# ---------------------------------------------------------------------------

@api_view(['GET', 'POST'])
def lancamento_list(request) -> Response:
    """
    GET: lista lançamentos (RH/Financeiro veem todos; colaborador vê os seus).
    POST: envia um novo lançamento.
    """
    principal = _principal(request)

    if request.method == 'POST':
        form = LancamentoForm(request.data)
        if not form.is_valid():
            return _invalid(form)
        lancamento = lancamentos.submit_expense(principal, **form.cleaned_data)
        return Response(_lancamento_payload(lancamento), status=status.HTTP_201_CREATED)

    qs = Lancamento.objects.select_related('colaborador').order_by('-created_at')
    if not principal.is_hr_viewer:
        qs = qs.filter(colaborador__user_id=principal.user_id)
    if request.query_params.get('periodo_id'):
        qs = qs.filter(periodo_id=request.query_params['periodo_id'])
    if request.query_params.get('status'):
        qs = qs.filter(status=request.query_params['status'])

    itens = list(qs[:500])
    nomes = identidade.display_names_for({l.colaborador for l in itens}, principal.is_hr_viewer)
    return Response({
        'results': [_lancamento_payload(l, nomes.get(str(l.colaborador_id))) for l in itens],
        'count': len(itens),
    })


@api_view(['PATCH', 'DELETE'])
def lancamento_detail(request, pk) -> Response:
    """Alteração ou exclusão de um lançamento enviado pelo próprio colaborador."""
    principal = _principal(request)

    if request.method == 'DELETE':
        lancamentos.delete_expense(principal, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    form = LancamentoUpdateForm(request.data)
    if not form.is_valid():
        return _invalid(form)
    lancamento = lancamentos.update_expense(
        principal, pk, expected_version=form.cleaned_data.get('version'), **form.changes()
    )
    return Response(_lancamento_payload(lancamento))


@api_view(['POST'])
def lancamento_transition(request, pk) -> Response:
    """
    Transição de status.

    Payload:
        {"status": "em_analise|valido|invalido", "motivo_invalidacao": "...", "version": 2}
    """
    form = TransitionForm(request.data)
    if not form.is_valid():
        return _invalid(form)

    lancamento = lancamentos.transition_expense(
        pk,
        form.cleaned_data['status'],
        _principal(request),
        motivo=form.cleaned_data.get('motivo_invalidacao'),
        expected_version=form.cleaned_data.get('version'),
    )
    return Response(_lancamento_payload(lancamento))


@api_view(['POST'])
def lancamento_approve_batch(request) -> Response:
    form = BatchForm(request.data)
    if not form.is_valid():
        return _invalid(form)
    resultado = lancamentos.approve_batch(_principal(request), form.cleaned_data['ids'])
    return Response(resultado.as_dict())


@api_view(['POST'])
def lancamento_reject_batch(request) -> Response:
    form = BatchForm(request.data)
    if not form.is_valid():
        return _invalid(form)
    resultado = lancamentos.reject_batch(
        _principal(request), form.cleaned_data['ids'], form.cleaned_data.get('motivo_invalidacao')
    )
    return Response(resultado.as_dict())


@api_view(['GET', 'POST'])
def lancamento_anexos(request, pk) -> Response:
    """Metadados dos comprovantes de um lançamento."""
    if request.method == 'POST':
        form = AnexoForm(request.data)
        if not form.is_valid():
            return _invalid(form)
        anexos.add_attachment(_principal(request), pk, **form.cleaned_data)
        return Response({'anexos': anexos.attachment_metadata(pk)}, status=status.HTTP_201_CREATED)

    lancamento = lancamentos.load_expense(pk)
    principal = _principal(request)
    if not principal.is_hr_viewer:
        lancamentos.check_owner(principal, lancamento.colaborador)
    return Response({
        'possui_anexos': anexos.has_attachments(pk),
        'anexos': anexos.attachment_metadata(pk),
    })


# ---------------------------------------------------------------------------
# Períodos
# ---------------------------------------------------------------------------

@api_view(['GET', 'POST'])
def periodo_list(request) -> Response:
    if request.method == 'POST':
        form = PeriodoForm(request.data)
        if not form.is_valid():
            return _invalid(form)
        periodo = periodos.create_period(_principal(request), **form.cleaned_data)
        return Response(_periodo_payload(periodo), status=status.HTTP_201_CREATED)

    return Response({'results': [_periodo_payload(p) for p in periodos.ordered_periods()]})


@api_view(['GET'])
def periodo_current(request) -> Response:
    periodo = periodos.current_period(timezone.localdate())
    if periodo is None:
        return Response({'error': 'not_found', 'message': 'Nenhum período cadastrado.'}, status=status.HTTP_404_NOT_FOUND)
    return Response(_periodo_payload(periodo))


@api_view(['PATCH', 'DELETE'])
def periodo_detail(request, pk) -> Response:
    principal = _principal(request)

    if request.method == 'DELETE':
        periodos.delete_period(principal, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    periodo = CalendarioPeriodo.objects.get(pk=pk)
    # Alteração parcial: campos ausentes mantêm o valor atual
    data = {name: request.data.get(name, getattr(periodo, name)) for name in PeriodoForm.Meta.fields}
    form = PeriodoForm(data, instance=periodo)
    if not form.is_valid():
        return _invalid(form)
    changes = {name: form.cleaned_data[name] for name in PeriodoForm.Meta.fields if name in request.data}
    periodo = periodos.update_period(principal, pk, **changes)
    return Response(_periodo_payload(periodo))


@api_view(['POST'])
def periodo_closing(request, pk) -> Response:
    resultado = fechamento.process_closing(_principal(request), pk)
    return Response({
        'id': str(resultado.id),
        'periodo_id': str(resultado.periodo_id),
        'status': resultado.status,
        'total_colaboradores': resultado.total_colaboradores,
        'total_eventos': resultado.total_eventos,
        'valor_total': _money(resultado.valor_total),
        'eventos_pida': [
            {
                'colaborador_id': str(evento.colaborador_id),
                'valor_total_pida': _money(evento.valor_total_pida),
            }
            for evento in resultado.eventos_pida.all()
        ],
    }, status=status.HTTP_201_CREATED)


# ---------------------------------------------------------------------------
# Auditoria
# ---------------------------------------------------------------------------

def _require_audit_viewer(principal: Principal) -> None:
    if not principal.is_hr_viewer:
        raise PermissionDenied('Apenas RH ou Financeiro podem consultar a auditoria.')


@api_view(['GET'])
def audit_list(request) -> Response:
    principal = _principal(request)
    _require_audit_viewer(principal)

    form = AuditFilterForm(request.query_params)
    if not form.is_valid():
        return _invalid(form)

    entries = audit.query(form.to_filter())
    return Response({
        'results': [
            {
                'id': str(e.id),
                'created_at': e.created_at,
                'user_id': str(e.user_id) if e.user_id else None,
                'user_name': e.user_name,
                'action': e.action,
                'entity_type': e.entity_type,
                'entity_id': e.entity_id,
                'entity_description': e.entity_description,
                'old_values': e.old_values,
                'new_values': e.new_values,
                'metadata': e.metadata,
            }
            for e in entries
        ],
        'count': len(entries),
    })


@api_view(['GET'])
def audit_export(request) -> Response:
    principal = _principal(request)
    _require_audit_viewer(principal)

    form = AuditFilterForm(request.query_params)
    if not form.is_valid():
        return _invalid(form)

    report = audit.export_report(form.to_filter())
    report['gerado_por'] = principal.display_name
    return Response(report)


# ---------------------------------------------------------------------------
# Identidade
# ---------------------------------------------------------------------------

@api_view(['GET'])
def name_inconsistencies(request) -> Response:
    principal = _principal(request)
    if not principal.has_role(Role.RH):
        raise PermissionDenied('Apenas o RH pode consultar divergências de nome.')

    resultado = identidade.detect_name_inconsistencies()
    return Response({'results': [i.as_dict() for i in resultado], 'count': len(resultado)})


@api_view(['GET'])
def colaborador_display_name(request, pk) -> Response:
    principal = _principal(request)
    colaborador = ColaboradorElegivel.objects.get(pk=pk)
    if not principal.is_hr_viewer and colaborador.user_id != principal.user_id:
        raise PermissionDenied('Você só pode consultar o seu próprio cadastro.')

    nome = identidade.resolve_display_name(colaborador.id, colaborador.nome, principal.is_hr_viewer)
    return Response({'colaborador_id': str(colaborador.id), 'nome': nome})
