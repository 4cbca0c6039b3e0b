"""
Service da trilha de auditoria.

Operações:
- append: grava uma entrada (com novas tentativas em savepoint)
- query: consulta filtrada, mais recentes primeiro
- export_report: projeção legível de uma consulta, com o filtro usado

Não existe operação de alteração ou remoção de entradas.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from core.exceptions import AuditAppendFailed, DependencyUnavailable
from core.models.audit import AuditAction, AuditEntityType, AuditLogEntry
from core.services.roles import Principal

logger = logging.getLogger(__name__)


@dataclass
class AuditFilter:
    """
    Filtro de consulta da auditoria.

    Todos os campos são opcionais e combinados com AND. start_date e
    end_date são inclusivos.
    """

    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    user_id: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: Optional[int] = None
    offset: int = 0

    def as_dict(self) -> Dict[str, Any]:
        """Representação serializável do filtro (registrada nos relatórios)."""
        data = asdict(self)
        for key in ('start_date', 'end_date'):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        for key in ('entity_id', 'user_id'):
            if data[key] is not None:
                data[key] = str(data[key])
        return data


def append(
    principal: Principal,
    action: str,
    entity_type: str,
    entity_id,
    entity_description: str = '',
    old_values: Optional[dict] = None,
    new_values: Optional[dict] = None,
    metadata: Optional[dict] = None,
    now: Optional[datetime] = None,
) -> AuditLogEntry:
    """
    Grava uma entrada de auditoria.

    Cada tentativa roda em um savepoint próprio, então uma falha não
    invalida a transação externa. Esgotadas as tentativas, levanta
    AuditAppendFailed, que desfaz a operação que disparou a auditoria.

    Args:
        principal: Autor da ação (nome copiado no momento da gravação)
        action: Valor de AuditAction
        entity_type: Valor de AuditEntityType
        entity_id: Identificador da entidade afetada
        entity_description: Descrição curta para relatórios
        old_values: Retrato antes da alteração
        new_values: Retrato depois da alteração
        metadata: Dados adicionais livres
        now: Data da entrada (padrão: agora)

    Returns:
        AuditLogEntry gravada

    Raises:
        AuditAppendFailed: Se todas as tentativas falharem
    """
    retries = max(1, int(getattr(settings, 'REREPORTS_AUDIT_APPEND_RETRIES', 3)))
    created_at = now or timezone.now()
    last_error = None

    for attempt in range(1, retries + 1):
        try:
            with transaction.atomic():
                entry = AuditLogEntry.objects.create(
                    created_at=created_at,
                    user_id=principal.user_id,
                    user_name=principal.display_name,
                    action=AuditAction(action).value,
                    entity_type=AuditEntityType(entity_type).value,
                    entity_id=str(entity_id),
                    entity_description=(entity_description or '')[:500],
                    old_values=old_values,
                    new_values=new_values,
                    metadata=metadata,
                )
            return entry
        except DatabaseError as e:
            last_error = e
            logger.warning(
                f'Falha ao gravar auditoria ({action} {entity_type} {entity_id}), '
                f'tentativa {attempt}/{retries}: {str(e)}'
            )

    logger.critical(
        f'Auditoria NÃO registrada para {action} {entity_type} {entity_id}. '
        f'Operação será desfeita. Último erro: {str(last_error)}'
    )
    raise AuditAppendFailed() from last_error


def query(audit_filter: Optional[AuditFilter] = None) -> List[AuditLogEntry]:
    """
    Consulta entradas de auditoria, mais recentes primeiro.

    Raises:
        DependencyUnavailable: Se o banco estiver indisponível
    """
    audit_filter = audit_filter or AuditFilter()
    qs = AuditLogEntry.objects.all()

    if audit_filter.entity_type:
        qs = qs.filter(entity_type=audit_filter.entity_type)
    if audit_filter.entity_id:
        qs = qs.filter(entity_id=str(audit_filter.entity_id))
    if audit_filter.user_id:
        qs = qs.filter(user_id=audit_filter.user_id)
    if audit_filter.start_date:
        qs = qs.filter(created_at__gte=audit_filter.start_date)
    if audit_filter.end_date:
        qs = qs.filter(created_at__lte=audit_filter.end_date)

    qs = qs.order_by('-created_at', '-id')

    offset = max(0, audit_filter.offset or 0)
    if audit_filter.limit is not None:
        qs = qs[offset:offset + max(0, audit_filter.limit)]
    elif offset:
        qs = qs[offset:]

    try:
        return list(qs)
    except DatabaseError as e:
        logger.error(f'Erro ao consultar auditoria: {str(e)}')
        raise DependencyUnavailable() from e


def export_report(audit_filter: Optional[AuditFilter] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Gera o relatório legível de uma consulta de auditoria.

    O filtro usado fica registrado no próprio relatório, junto com a data
    de geração e o total de registros.

    Returns:
        Dict com generated_at, filters, total e rows
    """
    audit_filter = audit_filter or AuditFilter()
    now = now or timezone.now()
    entries = query(audit_filter)

    rows = [
        {
            'data': timezone.localtime(entry.created_at).strftime('%d/%m/%Y %H:%M:%S'),
            'usuario': entry.user_name,
            'acao': AuditAction(entry.action).label,
            'entidade': AuditEntityType(entry.entity_type).label,
            'entity_id': entry.entity_id,
            'descricao': entry.entity_description or '-',
            'valores_anteriores': entry.old_values,
            'valores_novos': entry.new_values,
        }
        for entry in entries
    ]

    logger.info(f'Relatório de auditoria gerado com {len(rows)} registros. Filtros: {audit_filter.as_dict()}')

    return {
        'generated_at': now.isoformat(),
        'filters': audit_filter.as_dict(),
        'total': len(rows),
        'rows': rows,
    }
