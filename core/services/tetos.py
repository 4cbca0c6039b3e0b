"""
Cálculo de teto dos lançamentos.

valor_considerado = min(valor_lancado, saldo)
valor_nao_considerado = valor_lancado - valor_considerado

onde saldo = teto - já consumido por outros lançamentos válidos do mesmo
colaborador, período e grupo de despesa. Quando o saldo é zero ou negativo,
nada é considerado.

O saldo é distribuído na ordem estável (data de envio, depois id), não na
ordem de aprovação: cada aprovação e o fechamento reaplicam o teto sobre
todo o grupo.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Tuple

from django.db import DatabaseError
from django.db.models import Sum

from core.exceptions import DependencyUnavailable
from core.models import ColaboradorElegivel, Lancamento, LancamentoStatus, TipoDespesa

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


@dataclass(frozen=True)
class CeilingQuote:
    """Teto aplicável e valor já consumido."""

    ceiling: Decimal
    consumed: Decimal = ZERO

    @property
    def remaining(self) -> Decimal:
        return self.ceiling - self.consumed


def apply_ceiling(valor_lancado: Decimal, quote: CeilingQuote) -> Tuple[Decimal, Decimal]:
    """
    Divide o valor lançado entre considerado e não considerado.

    Returns:
        Tupla (valor_considerado, valor_nao_considerado)
    """
    valor_lancado = Decimal(valor_lancado)
    saldo = quote.remaining
    if saldo <= 0:
        return ZERO, valor_lancado
    considerado = min(valor_lancado, saldo)
    return considerado, valor_lancado - considerado


def stable_order(lancamentos: Iterable[Lancamento]) -> List[Lancamento]:
    """Ordem de aplicação do teto: data de envio, desempate pelo id."""
    return sorted(lancamentos, key=lambda l: (l.created_at, str(l.id)))


def allocate(lancamentos: Iterable[Lancamento], ceiling: Decimal) -> List[Tuple[Lancamento, Decimal, Decimal]]:
    """
    Reaplica o teto sobre um conjunto de lançamentos em ordem estável.

    Não depende dos valores já gravados, então recalcular duas vezes o
    mesmo conjunto produz o mesmo resultado.

    Returns:
        Lista de (lancamento, valor_considerado, valor_nao_considerado)
    """
    resultado = []
    consumido = ZERO
    for lancamento in stable_order(lancamentos):
        considerado, nao_considerado = apply_ceiling(
            lancamento.valor_lancado, CeilingQuote(ceiling=Decimal(ceiling), consumed=consumido)
        )
        consumido += considerado
        resultado.append((lancamento, considerado, nao_considerado))
    return resultado


def replay_budget(quote: CeilingQuote, lancamentos: Iterable[Lancamento]) -> Decimal:
    """
    Teto disponível para reaplicar sobre um conjunto de lançamentos.

    Do consumo informado pela consulta, desconta-se apenas o que não vem
    do próprio conjunto (o que o conjunto já consome será redistribuído).
    """
    do_conjunto = sum((l.valor_considerado or ZERO for l in lancamentos), ZERO)
    externo = max(ZERO, quote.consumed - do_conjunto)
    return quote.ceiling - externo


class CeilingLookup:
    """Interface do colaborador de consulta de teto."""

    def lookup(self, tipo_despesa_id, origem: str, colaborador_id, periodo_id) -> CeilingQuote:
        raise NotImplementedError


def replay(lancamentos: Iterable[Lancamento], ceiling_lookup: CeilingLookup) -> List[Tuple[Lancamento, Decimal, Decimal]]:
    """
    Reaplica o teto por colaborador, período e grupo de despesa.

    O teto de cada grupo vem de uma consulta feita com o primeiro
    lançamento do grupo na ordem estável.
    """
    grupos = defaultdict(list)
    for lancamento in lancamentos:
        grupos[(lancamento.colaborador_id, lancamento.periodo_id, lancamento.tipo_despesa.grupo)].append(lancamento)

    resultado = []
    for itens in grupos.values():
        primeiro = stable_order(itens)[0]
        quote = ceiling_lookup.lookup(
            primeiro.tipo_despesa_id, primeiro.origem, primeiro.colaborador_id, primeiro.periodo_id
        )
        resultado.extend(allocate(itens, replay_budget(quote, itens)))
    return resultado


class DatabaseCeilingLookup(CeilingLookup):
    """
    Teto do colaborador (cesta_beneficios_teto) ou, quando não definido,
    o teto padrão do tipo de despesa. O consumo soma os lançamentos
    válidos do mesmo colaborador, período e grupo.
    """

    def ceiling_for(self, tipo_despesa: TipoDespesa, colaborador: ColaboradorElegivel) -> Decimal:
        if colaborador.cesta_beneficios_teto and colaborador.cesta_beneficios_teto > 0:
            return colaborador.cesta_beneficios_teto
        return tipo_despesa.valor_padrao_teto or ZERO

    def lookup(self, tipo_despesa_id, origem: str, colaborador_id, periodo_id) -> CeilingQuote:
        try:
            tipo = TipoDespesa.objects.get(pk=tipo_despesa_id)
            colaborador = ColaboradorElegivel.objects.get(pk=colaborador_id)
            consumido = Lancamento.objects.filter(
                colaborador_id=colaborador_id,
                periodo_id=periodo_id,
                tipo_despesa__grupo=tipo.grupo,
                status=LancamentoStatus.VALIDO,
            ).aggregate(total=Sum('valor_considerado'))['total'] or ZERO
        except DatabaseError as e:
            logger.error(f'Erro ao consultar teto do colaborador {colaborador_id}: {str(e)}')
            raise DependencyUnavailable() from e

        return CeilingQuote(ceiling=self.ceiling_for(tipo, colaborador), consumed=consumido)
