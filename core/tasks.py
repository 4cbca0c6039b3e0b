"""
Tasks assíncronas do Celery.

Rotinas agendadas (ver CELERY_BEAT_SCHEDULE):
- check_pending_expenses: alerta o RH sobre lançamentos parados
- detect_name_inconsistencies_task: registra divergências de nome

Características:
- Logs detalhados de cada etapa com prefixo [TASK]
- Retry automático em falhas de dependência
"""

import logging
from collections import defaultdict
from datetime import timedelta
from typing import Optional

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from core.exceptions import DependencyUnavailable
from core.models import Lancamento, LancamentoStatus, Role, User
from core.services.identidade import detect_name_inconsistencies
from core.utils.formatacao import format_brl

logger = logging.getLogger(__name__)


def _pending_expenses(days: int, now):
    limite = now - timedelta(days=days)
    return list(
        Lancamento.objects.select_related('colaborador', 'tipo_despesa', 'periodo')
        .filter(
            status__in=[LancamentoStatus.ENVIADO, LancamentoStatus.EM_ANALISE],
            created_at__lt=limite,
        )
        .order_by('created_at')
    )


def _build_message(pendentes, now) -> str:
    por_periodo = defaultdict(list)
    for lancamento in pendentes:
        por_periodo[lancamento.periodo.periodo].append(lancamento)

    linhas = [
        f'Existem {len(pendentes)} lançamento(s) aguardando validação há mais tempo que o esperado.',
        '',
    ]
    for periodo, itens in por_periodo.items():
        linhas.append(f'Período: {periodo}')
        for lancamento in itens:
            dias = (now - lancamento.created_at).days
            linhas.append(
                f'  - {lancamento.colaborador.nome} ({lancamento.colaborador.matricula}) | '
                f'{lancamento.tipo_despesa.nome} | R$ {format_brl(lancamento.valor_lancado)} | '
                f'{lancamento.get_status_display()} | {dias} dias'
            )
        linhas.append('')
    return '\n'.join(linhas)


@shared_task(bind=True, max_retries=3)
def check_pending_expenses(self, days: Optional[int] = None) -> dict:
    """
    Envia ao RH o alerta de lançamentos enviados/em análise há mais de N dias.

    Args:
        days: Dias de tolerância (padrão: REREPORTS_PENDING_ALERT_DAYS)

    Returns:
        Dict com 'sent' (e-mails enviados) e 'pending' (lançamentos parados)
    """
    days = days or getattr(settings, 'REREPORTS_PENDING_ALERT_DAYS', 3)
    now = timezone.now()

    logger.info(f'[TASK] Verificando lançamentos pendentes há mais de {days} dias')
    pendentes = _pending_expenses(days, now)

    if not pendentes:
        logger.info('[TASK] Nenhum lançamento pendente encontrado')
        return {'sent': 0, 'pending': 0}

    destinatarios = list(
        User.objects.filter(role_set__role=Role.RH, is_active=True)
        .exclude(email='')
        .values_list('email', flat=True)
        .distinct()
    )
    if not destinatarios:
        logger.warning(f'[TASK] {len(pendentes)} lançamentos pendentes, mas nenhum usuário RH para notificar')
        return {'sent': 0, 'pending': len(pendentes)}

    try:
        enviados = send_mail(
            subject=f'[Rereports] {len(pendentes)} lançamento(s) pendente(s) há mais de {days} dias',
            message=_build_message(pendentes, now),
            from_email=None,
            recipient_list=destinatarios,
            fail_silently=False,
        )
    except OSError as exc:
        logger.error(f'[TASK] Erro ao enviar alerta de pendências: {str(exc)}')
        raise self.retry(exc=exc, countdown=60)

    logger.info(f'[TASK] Alerta enviado para {len(destinatarios)} usuário(s) RH ({len(pendentes)} pendências)')
    return {'sent': len(destinatarios) if enviados else 0, 'pending': len(pendentes)}


@shared_task(bind=True, max_retries=3)
def detect_name_inconsistencies_task(self) -> list:
    """
    Detecta divergências entre o nome do RH e o nome da conta.

    Returns:
        Lista de divergências (dicts) encontradas
    """
    logger.info('[TASK] Iniciando conferência de nomes')
    try:
        inconsistencias = detect_name_inconsistencies()
    except DependencyUnavailable as exc:
        logger.error(f'[TASK] Conferência de nomes indisponível: {exc.message}')
        raise self.retry(exc=exc, countdown=300)

    for item in inconsistencias:
        logger.warning(
            f"[TASK] Nome divergente para matrícula {item.matricula}: "
            f"RH='{item.nome_rh}' conta='{item.nome_conta}'"
        )
    return [item.as_dict() for item in sorted(inconsistencias, key=lambda i: i.matricula)]
