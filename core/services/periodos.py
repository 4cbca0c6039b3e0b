"""
Registro de períodos.

Determina o período corrente e se um período aceita envio e edição de
lançamentos. Todas as comparações de data recebem o relógio ("hoje" ou
"agora") como parâmetro.

Também concentra o cadastro de períodos pelo RH, sempre auditado.
"""

import logging
from datetime import date, datetime, time
from typing import Optional, Sequence

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.db.models import ProtectedError
from django.utils import timezone

from core.exceptions import DependencyUnavailable, PeriodClosed, PermissionDenied, ValidationFailure
from core.models import (
    AuditAction, AuditEntityType, CalendarioPeriodo, Lancamento, LancamentoStatus,
    PeriodoStatus, Role,
)
from core.services import audit
from core.services.roles import Principal

logger = logging.getLogger(__name__)

END_OF_DAY = time(23, 59, 59, 999000)

PERIOD_FIELDS = ('periodo', 'data_inicio', 'data_final', 'abre_lancamento', 'fecha_lancamento')


def _as_local_date(value) -> date:
    """Converte datetime (aware ou naive) ou date para a data local."""
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.date()
    return value


def find_current_period(periods: Sequence[CalendarioPeriodo], today) -> Optional[CalendarioPeriodo]:
    """
    Retorna o período corrente.

    Hoje é normalizado para meia-noite; cada período vale de data_inicio às
    00:00 até data_final às 23:59:59.999. Vence o primeiro período, na ordem
    recebida, cuja competência contém hoje.

    Sem correspondência, retorna o primeiro elemento da sequência. Por isso
    a sequência deve vir ordenada do mais recente para o mais antigo
    (ver ordered_periods).

    Args:
        periods: Períodos ordenados por recência (mais recente primeiro)
        today: Data ou datetime de referência

    Returns:
        Período corrente, ou None se a sequência estiver vazia
    """
    if not periods:
        return None

    today_start = datetime.combine(_as_local_date(today), time.min)

    for periodo in periods:
        inicio = datetime.combine(periodo.data_inicio, time.min)
        final = datetime.combine(periodo.data_final, END_OF_DAY)
        if inicio <= today_start <= final:
            return periodo

    return periods[0]


def ordered_periods():
    """Períodos do mais recente para o mais antigo (pré-condição de find_current_period)."""
    return CalendarioPeriodo.objects.order_by('-data_inicio', '-created_at')


def current_period(today=None) -> Optional[CalendarioPeriodo]:
    today = today if today is not None else timezone.localdate()
    try:
        periods = list(ordered_periods())
    except DatabaseError as e:
        logger.error(f'Erro ao carregar períodos: {str(e)}')
        raise DependencyUnavailable() from e
    return find_current_period(periods, today)


def within_submission_window(periodo: CalendarioPeriodo, now) -> bool:
    """Comparação por data: fecha_lancamento vale até o fim do dia."""
    hoje = _as_local_date(now)
    return periodo.abre_lancamento <= hoje <= periodo.fecha_lancamento


def can_submit(periodo: CalendarioPeriodo, now) -> bool:
    return periodo.status == PeriodoStatus.ABERTO and within_submission_window(periodo, now)


def can_edit(lancamento: Lancamento, periodo: CalendarioPeriodo, now) -> bool:
    """
    Mesma janela de can_submit; além disso só lançamentos ainda enviados
    e fora de fechamento podem ser alterados pelo colaborador.
    """
    if lancamento.is_locked or lancamento.status != LancamentoStatus.ENVIADO:
        return False
    return can_submit(periodo, now)


def ensure_can_submit(periodo: CalendarioPeriodo, now) -> None:
    if not can_submit(periodo, now):
        logger.warning(f'Período {periodo.periodo} fora da janela de lançamento em {_as_local_date(now)}')
        raise PeriodClosed(
            f'O período {periodo.periodo} aceita lançamentos de '
            f'{periodo.abre_lancamento:%d/%m/%Y} a {periodo.fecha_lancamento:%d/%m/%Y}.'
        )


def snapshot(periodo: CalendarioPeriodo) -> dict:
    data = {name: getattr(periodo, name) for name in PERIOD_FIELDS}
    data['status'] = periodo.status
    return data


def _require_rh(principal: Principal) -> None:
    if not principal.has_role(Role.RH):
        raise PermissionDenied('Apenas o RH pode gerenciar períodos.')


def _validated(periodo: CalendarioPeriodo) -> CalendarioPeriodo:
    try:
        periodo.full_clean()
    except ValidationError as e:
        raise ValidationFailure(
            'Dados do período inválidos.',
            errors={field: ' '.join(msgs) for field, msgs in e.message_dict.items()},
        ) from e
    return periodo


@transaction.atomic
def create_period(principal: Principal, **data) -> CalendarioPeriodo:
    """
    Cria um período (RH).

    Raises:
        PermissionDenied: Se o usuário não for RH
        ValidationFailure: Se as datas ou o rótulo forem inválidos
    """
    _require_rh(principal)
    periodo = _validated(CalendarioPeriodo(**{k: v for k, v in data.items() if k in PERIOD_FIELDS}))
    periodo.save()

    audit.append(
        principal, AuditAction.CRIAR, AuditEntityType.PERIODO, periodo.id,
        entity_description=f'Período {periodo.periodo}',
        new_values=snapshot(periodo),
    )
    logger.info(f'Período {periodo.periodo} criado por {principal.display_name}')
    return periodo


@transaction.atomic
def update_period(principal: Principal, periodo_id, **changes) -> CalendarioPeriodo:
    """
    Altera as datas ou o rótulo de um período aberto (RH).

    Raises:
        PeriodClosed: Se o período já estiver fechado
    """
    _require_rh(principal)
    periodo = CalendarioPeriodo.objects.select_for_update().get(pk=periodo_id)
    if periodo.status == PeriodoStatus.FECHADO:
        raise PeriodClosed(f'O período {periodo.periodo} está fechado e não pode ser alterado.')

    old_values = snapshot(periodo)
    for name, value in changes.items():
        if name in PERIOD_FIELDS:
            setattr(periodo, name, value)
    _validated(periodo).save()

    audit.append(
        principal, AuditAction.ATUALIZAR, AuditEntityType.PERIODO, periodo.id,
        entity_description=f'Período {periodo.periodo}',
        old_values=old_values,
        new_values=snapshot(periodo),
    )
    return periodo


@transaction.atomic
def delete_period(principal: Principal, periodo_id) -> None:
    """
    Remove um período sem lançamentos (RH).

    Raises:
        ValidationFailure: Se houver lançamentos ou fechamentos vinculados
    """
    _require_rh(principal)
    periodo = CalendarioPeriodo.objects.select_for_update().get(pk=periodo_id)
    old_values = snapshot(periodo)
    label = periodo.periodo
    periodo_pk = periodo.pk

    try:
        with transaction.atomic():
            periodo.delete()
    except ProtectedError as e:
        raise ValidationFailure(
            f'O período {label} possui lançamentos vinculados e não pode ser excluído.'
        ) from e

    audit.append(
        principal, AuditAction.EXCLUIR, AuditEntityType.PERIODO, periodo_pk,
        entity_description=f'Período {label}',
        old_values=old_values,
    )
    logger.info(f'Período {label} excluído por {principal.display_name}')
