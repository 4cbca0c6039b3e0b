"""
Fechamento do período para a folha.

Etapas (uma única transação):
1. Verifica que não há lançamentos enviados ou em análise
2. Reaplica o teto em ordem estável por colaborador e grupo
3. Agrega os valores considerados por colaborador
4. Calcula os eventos PIDA (teto PIDA + saldo não usado da Cesta)
5. Cria o Fechamento e vincula os lançamentos (bloqueando-os)
6. Fecha o período
"""

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Optional, Tuple

from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from core.exceptions import DependencyUnavailable, PeriodClosed, PermissionDenied, ValidationFailure
from core.models import (
    AuditAction, AuditEntityType, CalendarioPeriodo, ColaboradorElegivel, EventoPida, Fechamento,
    FechamentoStatus, Lancamento, LancamentoStatus, PeriodoStatus, Role,
)
from core.services import audit
from core.services.roles import Principal
from core.services.tetos import ZERO, CeilingLookup, DatabaseCeilingLookup, replay
from core.utils.formatacao import format_brl

logger = logging.getLogger(__name__)


def _recompute_ceilings(lancamentos, ceiling_lookup: CeilingLookup, now=None) -> int:
    """
    Reaplica o teto por colaborador e grupo. Retorna quantos lançamentos
    tiveram os valores ajustados.
    """
    ajustados = 0
    for lancamento, considerado, nao_considerado in replay(lancamentos, ceiling_lookup):
        if (lancamento.valor_considerado, lancamento.valor_nao_considerado) == (considerado, nao_considerado):
            continue
        Lancamento.objects.filter(pk=lancamento.pk).update(
            valor_considerado=considerado,
            valor_nao_considerado=nao_considerado,
            version=F('version') + 1,
            updated_at=now or timezone.now(),
        )
        lancamento.valor_considerado = considerado
        lancamento.valor_nao_considerado = nao_considerado
        ajustados += 1
    return ajustados


def recompute_ceilings(colaborador_id, periodo_id, ceiling_lookup: Optional[CeilingLookup] = None) -> int:
    """
    Reaplica o teto nos lançamentos válidos e ainda não fechados de um
    colaborador no período. Rodar duas vezes não altera nada na segunda.

    Returns:
        Quantidade de lançamentos ajustados
    """
    ceiling_lookup = ceiling_lookup or DatabaseCeilingLookup()
    try:
        with transaction.atomic():
            validos = list(
                Lancamento.objects.select_for_update()
                .select_related('colaborador', 'tipo_despesa')
                .filter(
                    colaborador_id=colaborador_id,
                    periodo_id=periodo_id,
                    status=LancamentoStatus.VALIDO,
                    fechamento__isnull=True,
                )
            )
            ajustados = _recompute_ceilings(validos, ceiling_lookup)
    except DatabaseError as e:
        logger.error(f'Erro ao recalcular teto do colaborador {colaborador_id}: {str(e)}')
        raise DependencyUnavailable() from e

    if ajustados:
        logger.info(f'Teto recalculado para o colaborador {colaborador_id}: {ajustados} lançamento(s) ajustado(s)')
    return ajustados


def pida_amounts(colaborador: ColaboradorElegivel, total_cesta: Decimal) -> Optional[Tuple[Decimal, Decimal, Decimal]]:
    """
    Valores do evento PIDA de um colaborador no fechamento.

    Só há evento para quem tem PIDA e teto de Cesta definido. O valor é o
    teto PIDA mais o saldo da Cesta que não foi usado no período.

    Returns:
        (valor_base_pida, valor_diferenca_cesta, valor_total_pida) ou None
    """
    cesta_teto = colaborador.cesta_beneficios_teto or ZERO
    if not colaborador.tem_pida or cesta_teto <= 0:
        return None
    base = colaborador.pida_teto or ZERO
    diferenca = max(ZERO, cesta_teto - total_cesta)
    total = base + diferenca
    if total <= 0:
        return None
    return base, diferenca, total


def process_closing(
    principal: Principal,
    periodo_id,
    now=None,
    ceiling_lookup: Optional[CeilingLookup] = None,
) -> Fechamento:
    """
    Processa o fechamento de um período.

    Args:
        principal: RH ou FINANCEIRO
        periodo_id: Período a fechar
        now: Relógio de referência
        ceiling_lookup: Consulta de teto (padrão: DatabaseCeilingLookup)

    Returns:
        Fechamento criado

    Raises:
        PermissionDenied: Sem role de RH/FINANCEIRO
        PeriodClosed: Período já fechado
        ValidationFailure: Há lançamentos pendentes de validação
    """
    now = now or timezone.now()
    ceiling_lookup = ceiling_lookup or DatabaseCeilingLookup()

    if not principal.has_any_role(Role.RH, Role.FINANCEIRO):
        raise PermissionDenied('Apenas RH ou Financeiro podem processar o fechamento.')

    try:
        with transaction.atomic():
            periodo = CalendarioPeriodo.objects.select_for_update().get(pk=periodo_id)
            if periodo.status == PeriodoStatus.FECHADO:
                raise PeriodClosed(f'O período {periodo.periodo} já está fechado.')

            pendentes = Lancamento.objects.filter(
                periodo=periodo,
                status__in=[LancamentoStatus.ENVIADO, LancamentoStatus.EM_ANALISE],
            ).count()
            if pendentes:
                raise ValidationFailure(
                    f'Existem {pendentes} lançamentos pendentes de validação. '
                    'Todos os lançamentos devem ser validados antes do fechamento.'
                )

            validos = list(
                Lancamento.objects.select_for_update()
                .select_related('colaborador', 'tipo_despesa')
                .filter(periodo=periodo, status=LancamentoStatus.VALIDO, fechamento__isnull=True)
            )

            ajustados = _recompute_ceilings(validos, ceiling_lookup, now)

            colaboradores = {}
            por_colaborador = defaultdict(lambda: {'nome': '', 'eventos': 0, 'valor': ZERO})
            for lancamento in validos:
                colaboradores[str(lancamento.colaborador_id)] = lancamento.colaborador
                total = por_colaborador[str(lancamento.colaborador_id)]
                total['nome'] = lancamento.colaborador.nome
                total['eventos'] += 1
                total['valor'] += lancamento.valor_considerado or ZERO

            pidas = {}
            for colaborador_id, total in por_colaborador.items():
                valores = pida_amounts(colaboradores[colaborador_id], total['valor'])
                if valores is not None:
                    pidas[colaborador_id] = valores
                    total['pida'] = valores[2]

            valor_cesta = sum((t['valor'] for t in por_colaborador.values()), ZERO)
            valor_pida = sum((valores[2] for valores in pidas.values()), ZERO)

            fechamento = Fechamento.objects.create(
                periodo=periodo,
                processado_por_id=principal.user_id,
                status=FechamentoStatus.SUCESSO,
                total_colaboradores=len(por_colaborador),
                total_eventos=len(validos) + len(pidas),
                valor_total=valor_cesta + valor_pida,
                detalhes={
                    'colaboradores': dict(por_colaborador),
                    'ajustes_teto': ajustados,
                    'valor_cesta': valor_cesta,
                    'valor_pida': valor_pida,
                },
            )

            for colaborador_id, (base, diferenca, total_pida) in pidas.items():
                colaborador = colaboradores[colaborador_id]
                evento = EventoPida.objects.create(
                    colaborador=colaborador,
                    periodo=periodo,
                    fechamento=fechamento,
                    valor_base_pida=base,
                    valor_diferenca_cesta=diferenca,
                    valor_total_pida=total_pida,
                )
                audit.append(
                    principal, AuditAction.CRIAR, AuditEntityType.EVENTO_FOLHA, evento.id,
                    entity_description=(
                        f'PIDA {colaborador.nome} {periodo.periodo} - R$ {format_brl(total_pida)}'
                    ),
                    new_values={
                        'colaborador_id': colaborador.id,
                        'valor_base_pida': base,
                        'valor_diferenca_cesta': diferenca,
                        'valor_total_pida': total_pida,
                    },
                    metadata={'fechamento_id': str(fechamento.id)},
                    now=now,
                )

            Lancamento.objects.filter(pk__in=[l.pk for l in validos]).update(
                fechamento=fechamento,
                version=F('version') + 1,
                updated_at=now,
            )

            periodo.status = PeriodoStatus.FECHADO
            periodo.save(update_fields=['status', 'updated_at'])

            audit.append(
                principal, AuditAction.CRIAR, AuditEntityType.EVENTO_FOLHA, fechamento.id,
                entity_description=f'Fechamento {periodo.periodo}',
                new_values={
                    'total_colaboradores': fechamento.total_colaboradores,
                    'total_eventos': fechamento.total_eventos,
                    'valor_total': fechamento.valor_total,
                    'valor_pida': valor_pida,
                },
                metadata={'periodo_id': str(periodo.id), 'ajustes_teto': ajustados},
                now=now,
            )
            audit.append(
                principal, AuditAction.ATUALIZAR, AuditEntityType.PERIODO, periodo.id,
                entity_description=f'Período {periodo.periodo}',
                old_values={'status': PeriodoStatus.ABERTO},
                new_values={'status': PeriodoStatus.FECHADO},
                metadata={'fechamento_id': str(fechamento.id)},
                now=now,
            )
    except DatabaseError as e:
        logger.error(f'Erro ao processar fechamento do período {periodo_id}: {str(e)}')
        raise DependencyUnavailable() from e

    logger.info(
        f'Fechamento do período {periodo.periodo} concluído: '
        f'{fechamento.total_colaboradores} colaboradores, {fechamento.total_eventos} eventos '
        f'({len(pidas)} PIDA), valor total {fechamento.valor_total}'
    )
    return fechamento
