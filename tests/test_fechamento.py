"""Testes do fechamento do período."""

from datetime import timedelta
from decimal import Decimal

import pytest

from core.exceptions import PeriodClosed, PermissionDenied, ValidationFailure
from core.models import AuditEntityType, AuditLogEntry, EventoPida, Lancamento, LancamentoStatus, PeriodoStatus
from core.services import lancamentos
from core.services.fechamento import pida_amounts, process_closing, recompute_ceilings

pytestmark = pytest.mark.django_db


def _valido(make_lancamento, valor, considerado):
    considerado = Decimal(considerado)
    return make_lancamento(
        valor=valor,
        status="valido",
        valor_considerado=considerado,
        valor_nao_considerado=Decimal(valor) - considerado,
    )


def test_fechamento_agrega_e_bloqueia(financeiro, periodo, make_lancamento, now):
    a = _valido(make_lancamento, "200.00", "200.00")
    b = _valido(make_lancamento, "50.00", "50.00")
    make_lancamento(status="invalido", motivo_invalidacao="Duplicado")

    fechamento = process_closing(financeiro, periodo.id, now=now)

    assert fechamento.total_colaboradores == 1
    assert fechamento.total_eventos == 2
    assert fechamento.valor_total == Decimal("250.00")
    periodo.refresh_from_db()
    assert periodo.status == PeriodoStatus.FECHADO
    assert set(Lancamento.objects.filter(fechamento=fechamento).values_list("pk", flat=True)) == {a.pk, b.pk}

    acoes = set(AuditLogEntry.objects.values_list("entity_type", "action"))
    assert (AuditEntityType.EVENTO_FOLHA, "criar") in acoes
    assert (AuditEntityType.PERIODO, "atualizar") in acoes
    assert not EventoPida.objects.exists()


def test_fechamento_reaplica_teto_em_ordem_estavel(rh, periodo, make_lancamento, now):
    # Aprovações provisórias consideraram 200 + 200 com teto 300
    primeiro = _valido(make_lancamento, "200.00", "200.00")
    segundo = _valido(make_lancamento, "200.00", "200.00")
    Lancamento.objects.filter(pk=primeiro.pk).update(created_at=now - timedelta(hours=2))
    Lancamento.objects.filter(pk=segundo.pk).update(created_at=now - timedelta(hours=1))

    fechamento = process_closing(rh, periodo.id, now=now)

    primeiro.refresh_from_db()
    segundo.refresh_from_db()
    assert (primeiro.valor_considerado, primeiro.valor_nao_considerado) == (Decimal("200.00"), Decimal("0.00"))
    assert (segundo.valor_considerado, segundo.valor_nao_considerado) == (Decimal("100.00"), Decimal("100.00"))
    assert fechamento.valor_total == Decimal("300.00")
    assert fechamento.detalhes["ajustes_teto"] == 1


def test_pendentes_impedem_fechamento(rh, periodo, make_lancamento, now):
    make_lancamento(status="em_analise")
    with pytest.raises(ValidationFailure):
        process_closing(rh, periodo.id, now=now)
    periodo.refresh_from_db()
    assert periodo.status == PeriodoStatus.ABERTO


def test_periodo_ja_fechado(rh, periodo, now):
    process_closing(rh, periodo.id, now=now)
    with pytest.raises(PeriodClosed):
        process_closing(rh, periodo.id, now=now)


def test_colaborador_nao_fecha(colaborador_principal, periodo, now):
    with pytest.raises(PermissionDenied):
        process_closing(colaborador_principal, periodo.id, now=now)


def test_lancamento_fechado_nao_muda(rh, periodo, make_lancamento, now):
    lancamento = _valido(make_lancamento, "100.00", "100.00")
    process_closing(rh, periodo.id, now=now)

    with pytest.raises(PeriodClosed):
        lancamentos.transition_expense(lancamento.id, "invalido", rh, motivo="Tarde demais", now=now)
    lancamento.refresh_from_db()
    assert lancamento.status == LancamentoStatus.VALIDO


def test_recalculo_de_teto_idempotente(colaborador, periodo, make_lancamento, now):
    primeiro = _valido(make_lancamento, "250.00", "250.00")
    segundo = _valido(make_lancamento, "100.00", "100.00")
    Lancamento.objects.filter(pk=primeiro.pk).update(created_at=now - timedelta(hours=2))
    Lancamento.objects.filter(pk=segundo.pk).update(created_at=now - timedelta(hours=1))

    assert recompute_ceilings(colaborador.id, periodo.id) == 1
    assert recompute_ceilings(colaborador.id, periodo.id) == 0

    segundo.refresh_from_db()
    assert (segundo.valor_considerado, segundo.valor_nao_considerado) == (Decimal("50.00"), Decimal("50.00"))


def test_fechamento_gera_evento_pida(financeiro, colaborador, periodo, make_lancamento, now):
    colaborador.tem_pida = True
    colaborador.pida_teto = Decimal("500.00")
    colaborador.save()
    _valido(make_lancamento, "200.00", "200.00")

    fechamento = process_closing(financeiro, periodo.id, now=now)

    evento = EventoPida.objects.get(fechamento=fechamento)
    assert evento.colaborador_id == colaborador.id
    assert (evento.valor_base_pida, evento.valor_diferenca_cesta, evento.valor_total_pida) == (
        Decimal("500.00"), Decimal("100.00"), Decimal("600.00"),
    )
    assert fechamento.total_eventos == 2
    assert fechamento.valor_total == Decimal("800.00")
    entry = AuditLogEntry.objects.get(entity_type=AuditEntityType.EVENTO_FOLHA, entity_id=str(evento.id))
    assert entry.action == "criar"
    assert entry.created_at == now
    assert entry.new_values["valor_total_pida"] == "600.00"


@pytest.mark.parametrize(
    "tem_pida,cesta,pida,total_cesta,esperado",
    [
        (True, "300.00", "500.00", "350.00", ("500.00", "0.00", "500.00")),
        (True, "300.00", "0.00", "100.00", ("0.00", "200.00", "200.00")),
        (True, "300.00", "0.00", "300.00", None),
        (True, "0.00", "500.00", "0.00", None),
        (False, "300.00", "500.00", "0.00", None),
    ],
)
def test_valores_do_pida(colaborador, tem_pida, cesta, pida, total_cesta, esperado):
    colaborador.tem_pida = tem_pida
    colaborador.cesta_beneficios_teto = Decimal(cesta)
    colaborador.pida_teto = Decimal(pida)

    valores = pida_amounts(colaborador, Decimal(total_cesta))

    assert valores == (tuple(Decimal(v) for v in esperado) if esperado else None)


def test_fechamento_usa_a_consulta_de_teto_injetada(rh, periodo, make_lancamento, fixed_ceiling, now):
    lancamento = _valido(make_lancamento, "200.00", "200.00")
    lookup = fixed_ceiling("150")

    process_closing(rh, periodo.id, now=now, ceiling_lookup=lookup)

    lancamento.refresh_from_db()
    assert (lancamento.valor_considerado, lancamento.valor_nao_considerado) == (Decimal("150.00"), Decimal("50.00"))
    assert lookup.calls == [
        (lancamento.tipo_despesa_id, "proprio", lancamento.colaborador_id, lancamento.periodo_id)
    ]
