"""
Máquina de status dos lançamentos.

Fluxo de uma transição (uma única transação):
    permissão -> janela do período -> tabela de status -> teto ->
    escrita compare-and-set -> auditoria

A escrita só acontece se status e versão ainda forem os lidos; caso
contrário outra requisição venceu e a perdedora recebe
ConflictingTransition. Se a auditoria falhar a transação inteira é
desfeita.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Dict, FrozenSet, Iterable, List, Optional

from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from core.exceptions import (
    ConflictingTransition, DependencyUnavailable, InvalidTransition, PeriodClosed,
    PermissionDenied, RereportsError, ValidationFailure,
)
from core.models import (
    AuditAction, AuditEntityType, CalendarioPeriodo, ColaboradorElegivel, Lancamento,
    LancamentoStatus, Origem, PeriodoStatus, Role, TipoDespesa,
)
from core.services import audit, periodos
from core.services.roles import Principal
from core.services.tetos import CeilingLookup, DatabaseCeilingLookup, allocate, replay_budget
from core.utils.formatacao import format_brl

logger = logging.getLogger(__name__)

REVIEWER_ROLES = (Role.RH, Role.FINANCEIRO)

EDITABLE_FIELDS = ('tipo_despesa_id', 'origem', 'valor_lancado', 'descricao_fato_gerador', 'numero_documento')


@dataclass(frozen=True)
class TransitionRule:
    """Regra de uma transição permitida."""

    action: str
    roles: FrozenSet[str]
    requires_reason: bool = False
    applies_ceiling: bool = False


TRANSITIONS: Dict[tuple, TransitionRule] = {
    (LancamentoStatus.ENVIADO, LancamentoStatus.EM_ANALISE): TransitionRule(
        action=AuditAction.INICIAR_ANALISE,
        roles=frozenset({Role.RH}),
    ),
    (LancamentoStatus.EM_ANALISE, LancamentoStatus.VALIDO): TransitionRule(
        action=AuditAction.APROVAR,
        roles=frozenset(REVIEWER_ROLES),
        applies_ceiling=True,
    ),
    (LancamentoStatus.EM_ANALISE, LancamentoStatus.INVALIDO): TransitionRule(
        action=AuditAction.REJEITAR,
        roles=frozenset(REVIEWER_ROLES),
        requires_reason=True,
    ),
    (LancamentoStatus.ENVIADO, LancamentoStatus.INVALIDO): TransitionRule(
        action=AuditAction.REJEITAR,
        roles=frozenset(REVIEWER_ROLES),
        requires_reason=True,
    ),
}


@dataclass
class BatchResult:
    """Resultado de uma operação em lote."""

    sucesso: int = 0
    falhas: int = 0
    erros: List[dict] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {'sucesso': self.sucesso, 'falhas': self.falhas, 'erros': self.erros}


def describe(lancamento: Lancamento) -> str:
    return (
        f'{lancamento.colaborador.nome} - {lancamento.tipo_despesa.nome} - '
        f'R$ {format_brl(lancamento.valor_lancado)}'
    )


def load_expense(expense_id) -> Lancamento:
    try:
        return Lancamento.objects.select_related(
            'colaborador', 'periodo', 'tipo_despesa'
        ).get(pk=expense_id)
    except DatabaseError as e:
        logger.error(f'Erro ao carregar lançamento {expense_id}: {str(e)}')
        raise DependencyUnavailable() from e


def _parse_valor(valor) -> Decimal:
    try:
        valor = Decimal(str(valor)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValidationFailure('Valor inválido.', errors={'valor_lancado': 'Informe um número.'}) from e
    if valor <= 0:
        raise ValidationFailure('O valor deve ser maior que zero.', errors={'valor_lancado': 'Deve ser maior que zero.'})
    return valor


def _check_tipo_and_origem(tipo: TipoDespesa, origem: str) -> None:
    if not tipo.ativo:
        raise ValidationFailure(f'O tipo de despesa {tipo.nome} está inativo.', errors={'tipo_despesa_id': 'Tipo inativo.'})
    if origem not in Origem.values:
        raise ValidationFailure('Origem inválida.', errors={'origem': f"Use um de: {', '.join(Origem.values)}."})
    if not tipo.permite_origem(origem):
        raise ValidationFailure(
            f'O tipo {tipo.nome} não aceita a origem {Origem(origem).label}.',
            errors={'origem': 'Origem não permitida para o tipo de despesa.'},
        )


def check_owner(principal: Principal, colaborador: ColaboradorElegivel) -> None:
    """O colaborador lança para si; o RH pode lançar em nome de qualquer colaborador."""
    if principal.has_role(Role.RH):
        return
    if not principal.has_role(Role.COLABORADOR) or colaborador.user_id != principal.user_id:
        raise PermissionDenied('Você só pode gerenciar seus próprios lançamentos.')


def _full_clean(lancamento: Lancamento) -> None:
    try:
        lancamento.full_clean(exclude=[
            'colaborador', 'periodo', 'tipo_despesa', 'fechamento', 'validado_por', 'lancamento_origem',
        ])
    except ValidationError as e:
        raise ValidationFailure(
            'Dados do lançamento inválidos.',
            errors={name: ' '.join(msgs) for name, msgs in e.message_dict.items()},
        ) from e


@transaction.atomic
def submit_expense(
    principal: Principal,
    *,
    colaborador_id,
    periodo_id,
    tipo_despesa_id,
    origem: str,
    valor_lancado,
    descricao_fato_gerador: str,
    numero_documento: str = '',
    parcelamento_total_parcelas: Optional[int] = None,
    parcelamento_valor_total=None,
    now=None,
) -> Lancamento:
    """
    Cria um lançamento no status enviado.

    Com mais de uma parcela, o lançamento criado é a parcela 1 e as
    demais são criadas nos próximos períodos não fechados, cada uma com
    sua própria entrada de auditoria.

    Args:
        principal: Autor do envio
        colaborador_id: Colaborador beneficiário
        periodo_id: Período de competência
        tipo_despesa_id: Tipo de despesa
        origem: proprio, conjuge ou filhos
        valor_lancado: Valor da despesa (valor de cada parcela, se parcelado)
        descricao_fato_gerador: Descrição do fato gerador
        numero_documento: Número da nota fiscal ou recibo
        parcelamento_total_parcelas: Quantidade de parcelas (1 ou vazio: à vista)
        parcelamento_valor_total: Valor total do parcelamento (padrão: parcela x total)
        now: Relógio de referência (padrão: agora)

    Returns:
        Lancamento criado (primeira parcela, se parcelado)

    Raises:
        PermissionDenied: Sem role ou lançando para outro colaborador
        PeriodClosed: Fora da janela de lançamento
        ValidationFailure: Dados inválidos
    """
    now = now or timezone.now()

    if not principal.has_any_role(Role.COLABORADOR, Role.RH):
        raise PermissionDenied('Apenas colaboradores podem enviar lançamentos.')

    try:
        colaborador = ColaboradorElegivel.objects.get(pk=colaborador_id)
        periodo = CalendarioPeriodo.objects.get(pk=periodo_id)
        tipo = TipoDespesa.objects.get(pk=tipo_despesa_id)
    except ObjectDoesNotExist as e:
        raise ValidationFailure(f'Referência inexistente: {str(e)}') from e

    check_owner(principal, colaborador)
    if not colaborador.ativo:
        raise ValidationFailure(f'O colaborador {colaborador.nome} está inativo.')

    periodos.ensure_can_submit(periodo, now)
    _check_tipo_and_origem(tipo, origem)

    descricao = (descricao_fato_gerador or '').strip()
    if not descricao:
        raise ValidationFailure(
            'Descreva o fato gerador da despesa.',
            errors={'descricao_fato_gerador': 'Campo obrigatório.'},
        )

    valor = _parse_valor(valor_lancado)
    total_parcelas = _parse_parcelas(parcelamento_total_parcelas)
    parcelado = total_parcelas > 1
    valor_total = None
    if parcelado:
        valor_total = _parse_valor(parcelamento_valor_total) if parcelamento_valor_total else valor * total_parcelas

    lancamento = Lancamento(
        colaborador=colaborador,
        periodo=periodo,
        tipo_despesa=tipo,
        origem=origem,
        valor_lancado=valor,
        descricao_fato_gerador=descricao,
        numero_documento=(numero_documento or '').strip(),
        parcelamento_ativo=parcelado,
        parcelamento_valor_total=valor_total,
        parcelamento_numero_parcela=1 if parcelado else None,
        parcelamento_total_parcelas=total_parcelas if parcelado else None,
        status=LancamentoStatus.ENVIADO,
    )
    _full_clean(lancamento)
    lancamento.save()

    new_values = {
        'status': lancamento.status,
        'valor_lancado': lancamento.valor_lancado,
        'tipo_despesa_id': tipo.id,
        'origem': origem,
        'periodo': periodo.periodo,
    }
    if lancamento.numero_documento:
        new_values['numero_documento'] = lancamento.numero_documento
    if parcelado:
        new_values.update(parcela=1, total_parcelas=total_parcelas, valor_total=valor_total)

    audit.append(
        principal, AuditAction.CRIAR, AuditEntityType.LANCAMENTO, lancamento.id,
        entity_description=describe(lancamento),
        new_values=new_values,
        now=now,
    )
    logger.info(f'Lançamento {lancamento.id} enviado por {principal.display_name} ({colaborador.nome})')

    if parcelado:
        _create_installments(principal, lancamento, now)
    return lancamento


def _parse_parcelas(total) -> int:
    if total in (None, ''):
        return 1
    try:
        total = int(total)
    except (ValueError, TypeError) as e:
        raise ValidationFailure(
            'Quantidade de parcelas inválida.',
            errors={'parcelamento_total_parcelas': 'Informe um número inteiro.'},
        ) from e
    if total < 1:
        raise ValidationFailure(
            'Quantidade de parcelas inválida.',
            errors={'parcelamento_total_parcelas': 'Deve ser maior que zero.'},
        )
    return total


def _create_installments(principal: Principal, primeira: Lancamento, now) -> List[Lancamento]:
    """
    Cria as parcelas 2..N nos períodos seguintes ao da primeira parcela.

    Só períodos não fechados recebem parcelas. Se não houver períodos
    suficientes, cria as que couberem.
    """
    total = primeira.parcelamento_total_parcelas
    futuros = list(
        CalendarioPeriodo.objects.filter(data_inicio__gt=primeira.periodo.data_final)
        .exclude(status=PeriodoStatus.FECHADO)
        .order_by('data_inicio')[:total - 1]
    )
    if len(futuros) < total - 1:
        logger.warning(
            f'Parcelamento do lançamento {primeira.id}: {total - 1} parcela(s) futura(s), '
            f'mas apenas {len(futuros)} período(s) disponível(is)'
        )

    parcelas = []
    for numero, periodo in enumerate(futuros, start=2):
        parcela = Lancamento.objects.create(
            colaborador=primeira.colaborador,
            periodo=periodo,
            tipo_despesa=primeira.tipo_despesa,
            origem=primeira.origem,
            valor_lancado=primeira.valor_lancado,
            descricao_fato_gerador=primeira.descricao_fato_gerador,
            numero_documento=primeira.numero_documento,
            parcelamento_ativo=True,
            parcelamento_valor_total=primeira.parcelamento_valor_total,
            parcelamento_numero_parcela=numero,
            parcelamento_total_parcelas=total,
            lancamento_origem=primeira,
            status=LancamentoStatus.ENVIADO,
        )
        audit.append(
            principal, AuditAction.CRIAR, AuditEntityType.LANCAMENTO, parcela.id,
            entity_description=(
                f'Parcela {numero}/{total} de R$ {format_brl(parcela.valor_lancado)} (parcelamento automático)'
            ),
            new_values={
                'status': parcela.status,
                'valor_lancado': parcela.valor_lancado,
                'periodo': periodo.periodo,
                'parcela': numero,
                'total_parcelas': total,
                'lancamento_origem_id': primeira.id,
            },
            now=now,
        )
        parcelas.append(parcela)

    if parcelas:
        logger.info(f'{len(parcelas)} parcela(s) criada(s) a partir do lançamento {primeira.id}')
    return parcelas


def _compare_and_set(lancamento: Lancamento, **values) -> None:
    """
    Grava os valores somente se status e versão ainda forem os lidos.

    Raises:
        ConflictingTransition: Se outra requisição alterou o lançamento
    """
    updated = Lancamento.objects.filter(
        pk=lancamento.pk,
        status=lancamento.status,
        version=lancamento.version,
        fechamento__isnull=True,
    ).update(version=F('version') + 1, **values)

    if updated == 0:
        logger.warning(
            f'Conflito de escrita no lançamento {lancamento.pk} '
            f'(status lido: {lancamento.status}, versão lida: {lancamento.version})'
        )
        raise ConflictingTransition()


def _ceiling_siblings(lancamento: Lancamento) -> List[Lancamento]:
    """
    Lançamentos válidos e abertos do mesmo colaborador, período e grupo.

    Trava a linha do colaborador para que aprovações simultâneas do mesmo
    colaborador reapliquem o teto uma de cada vez.
    """
    try:
        ColaboradorElegivel.objects.select_for_update().filter(pk=lancamento.colaborador_id).first()
        return list(
            Lancamento.objects.select_for_update()
            .filter(
                colaborador_id=lancamento.colaborador_id,
                periodo_id=lancamento.periodo_id,
                tipo_despesa__grupo=lancamento.tipo_despesa.grupo,
                status=LancamentoStatus.VALIDO,
                fechamento__isnull=True,
            )
            .exclude(pk=lancamento.pk)
        )
    except DatabaseError as e:
        logger.error(f'Erro ao carregar lançamentos do teto de {lancamento.colaborador_id}: {str(e)}')
        raise DependencyUnavailable() from e


def transition_expense(
    expense_id,
    target: str,
    principal: Principal,
    motivo: Optional[str] = None,
    expected_version: Optional[int] = None,
    now=None,
    ceiling_lookup: Optional[CeilingLookup] = None,
) -> Lancamento:
    """
    Aplica uma transição de status em um lançamento.

    Args:
        expense_id: ID do lançamento
        target: Status de destino
        principal: Revisor
        motivo: Motivo da invalidação (obrigatório para invalido)
        expected_version: Versão que o cliente leu; se diferir da atual a
            requisição é tratada como concorrente
        now: Relógio de referência
        ceiling_lookup: Consulta de teto (padrão: DatabaseCeilingLookup)

    Returns:
        Lancamento atualizado

    Raises:
        PermissionDenied, PeriodClosed, InvalidTransition,
        ValidationFailure, ConflictingTransition, DependencyUnavailable
    """
    now = now or timezone.now()
    ceiling_lookup = ceiling_lookup or DatabaseCeilingLookup()

    with transaction.atomic():
        # Permissão
        if not principal.has_any_role(*REVIEWER_ROLES):
            raise PermissionDenied('Apenas RH ou Financeiro podem revisar lançamentos.')

        lancamento = load_expense(expense_id)
        current = lancamento.status

        # Janela: a revisão pode acontecer depois da janela de envio,
        # mas nada muda após o fechamento
        if lancamento.is_locked:
            raise PeriodClosed('O lançamento já foi incluído em um fechamento.')

        # Tabela de status
        try:
            target = LancamentoStatus(target).value
        except ValueError as e:
            raise InvalidTransition(current, str(target)) from e
        rule = TRANSITIONS.get((current, target))
        if rule is None:
            logger.warning(f'Transição inválida {current} -> {target} no lançamento {lancamento.id}')
            raise InvalidTransition(current, target)
        if not principal.has_any_role(*rule.roles):
            raise PermissionDenied(
                f"A transição '{current}' -> '{target}' exige a role "
                f"{' ou '.join(sorted(rule.roles))}."
            )

        motivo = (motivo or '').strip()
        if rule.requires_reason and not motivo:
            raise ValidationFailure(
                'Informe o motivo da invalidação.',
                errors={'motivo_invalidacao': 'Campo obrigatório.'},
            )

        if expected_version is not None and expected_version != lancamento.version:
            raise ConflictingTransition()

        values = {'status': target, 'updated_at': now}
        new_values = {'status': target}

        ajustes = []
        if rule.applies_ceiling:
            quote = ceiling_lookup.lookup(
                lancamento.tipo_despesa_id, lancamento.origem,
                lancamento.colaborador_id, lancamento.periodo_id,
            )
            irmaos = _ceiling_siblings(lancamento)
            for item, considerado, nao_considerado in allocate([*irmaos, lancamento], replay_budget(quote, irmaos)):
                if item is lancamento:
                    values.update(valor_considerado=considerado, valor_nao_considerado=nao_considerado)
                elif (item.valor_considerado, item.valor_nao_considerado) != (considerado, nao_considerado):
                    ajustes.append((item, considerado, nao_considerado))
            new_values.update(
                valor_considerado=values['valor_considerado'],
                valor_nao_considerado=values['valor_nao_considerado'],
                teto=quote.ceiling,
                consumido=quote.consumed,
            )
            if ajustes:
                new_values['ajustes_teto'] = [
                    {
                        'id': str(item.id),
                        'valor_considerado': considerado,
                        'valor_nao_considerado': nao_considerado,
                    }
                    for item, considerado, nao_considerado in ajustes
                ]

        if target in (LancamentoStatus.VALIDO, LancamentoStatus.INVALIDO):
            values.update(validado_por_id=principal.user_id, validado_em=now)
            new_values['validado_por'] = principal.display_name
        if rule.requires_reason:
            values['motivo_invalidacao'] = motivo
            new_values['motivo_invalidacao'] = motivo

        try:
            _compare_and_set(lancamento, **values)
            for item, considerado, nao_considerado in ajustes:
                Lancamento.objects.filter(pk=item.pk).update(
                    valor_considerado=considerado,
                    valor_nao_considerado=nao_considerado,
                    version=F('version') + 1,
                    updated_at=now,
                )
        except DatabaseError as e:
            logger.error(f'Erro ao gravar transição do lançamento {lancamento.id}: {str(e)}')
            raise DependencyUnavailable() from e

        audit.append(
            principal, rule.action, AuditEntityType.LANCAMENTO, lancamento.id,
            entity_description=describe(lancamento),
            old_values={'status': current},
            new_values=new_values,
            metadata={'version': lancamento.version + 1},
            now=now,
        )
        if ajustes:
            logger.info(f'Teto redistribuído em {len(ajustes)} lançamento(s) após aprovar {lancamento.id}')

    logger.info(
        f'Lançamento {lancamento.id}: {current} -> {target} por {principal.display_name}'
    )
    lancamento.refresh_from_db()
    return lancamento


@transaction.atomic
def update_expense(principal: Principal, expense_id, now=None, expected_version: Optional[int] = None, **changes) -> Lancamento:
    """
    Altera um lançamento ainda enviado, dentro da janela do período.

    Campos alteráveis: tipo_despesa_id, origem, valor_lancado,
    descricao_fato_gerador, numero_documento.
    """
    now = now or timezone.now()
    lancamento = load_expense(expense_id)
    check_owner(principal, lancamento.colaborador)

    if not periodos.can_edit(lancamento, lancamento.periodo, now):
        if lancamento.is_locked or lancamento.status != LancamentoStatus.ENVIADO:
            raise ValidationFailure('Apenas lançamentos enviados podem ser alterados.')
        periodos.ensure_can_submit(lancamento.periodo, now)

    if expected_version is not None and expected_version != lancamento.version:
        raise ConflictingTransition()

    old_values = {name: getattr(lancamento, name) for name in EDITABLE_FIELDS}
    values = {}
    for name, value in changes.items():
        if name not in EDITABLE_FIELDS or value is None:
            continue
        if name == 'valor_lancado':
            value = _parse_valor(value)
        elif name == 'descricao_fato_gerador':
            value = value.strip()
            if not value:
                raise ValidationFailure('Descreva o fato gerador da despesa.')
        elif name == 'numero_documento':
            value = value.strip()
        values[name] = value

    tipo = lancamento.tipo_despesa
    if 'tipo_despesa_id' in values:
        try:
            tipo = TipoDespesa.objects.get(pk=values['tipo_despesa_id'])
        except ObjectDoesNotExist as e:
            raise ValidationFailure('Tipo de despesa inexistente.') from e
    _check_tipo_and_origem(tipo, values.get('origem', lancamento.origem))

    if not values:
        return lancamento

    _compare_and_set(lancamento, updated_at=now, **values)

    audit.append(
        principal, AuditAction.ATUALIZAR, AuditEntityType.LANCAMENTO, lancamento.id,
        entity_description=describe(lancamento),
        old_values={name: old_values[name] for name in values},
        new_values=values,
        metadata={'version': lancamento.version + 1},
        now=now,
    )
    lancamento.refresh_from_db()
    return lancamento


@transaction.atomic
def delete_expense(principal: Principal, expense_id, now=None) -> None:
    """Exclui um lançamento ainda enviado, dentro da janela do período."""
    now = now or timezone.now()
    lancamento = load_expense(expense_id)
    check_owner(principal, lancamento.colaborador)

    if lancamento.is_locked or lancamento.status != LancamentoStatus.ENVIADO:
        raise ValidationFailure('Apenas lançamentos enviados podem ser excluídos.')
    periodos.ensure_can_submit(lancamento.periodo, now)

    description = describe(lancamento)
    old_values = {
        'status': lancamento.status,
        'valor_lancado': lancamento.valor_lancado,
        'tipo_despesa_id': lancamento.tipo_despesa_id,
        'origem': lancamento.origem,
        'descricao_fato_gerador': lancamento.descricao_fato_gerador,
    }

    deleted, _ = Lancamento.objects.filter(
        pk=lancamento.pk, status=LancamentoStatus.ENVIADO, version=lancamento.version
    ).delete()
    if not deleted:
        raise ConflictingTransition()

    audit.append(
        principal, AuditAction.EXCLUIR, AuditEntityType.LANCAMENTO, expense_id,
        entity_description=description,
        old_values=old_values,
        now=now,
    )
    logger.info(f'Lançamento {expense_id} excluído por {principal.display_name}')


def _run_batch(ids: Iterable, target: str, principal: Principal, **kwargs) -> BatchResult:
    resultado = BatchResult()
    for expense_id in ids:
        try:
            transition_expense(expense_id, target, principal, **kwargs)
            resultado.sucesso += 1
        except (RereportsError, ObjectDoesNotExist) as e:
            resultado.falhas += 1
            resultado.erros.append({'id': str(expense_id), 'erro': str(e)})
    logger.info(
        f'Lote {target} por {principal.display_name}: '
        f'{resultado.sucesso} sucesso(s), {resultado.falhas} falha(s)'
    )
    return resultado


def approve_batch(principal: Principal, ids: Iterable, now=None, ceiling_lookup=None) -> BatchResult:
    """Aprova vários lançamentos; cada um em sua própria transação."""
    return _run_batch(ids, LancamentoStatus.VALIDO, principal, now=now, ceiling_lookup=ceiling_lookup)


def reject_batch(principal: Principal, ids: Iterable, motivo: str, now=None) -> BatchResult:
    """Rejeita vários lançamentos com o mesmo motivo."""
    if not (motivo or '').strip():
        raise ValidationFailure('Informe o motivo da invalidação.', errors={'motivo_invalidacao': 'Campo obrigatório.'})
    return _run_batch(ids, LancamentoStatus.INVALIDO, principal, motivo=motivo, now=now)
