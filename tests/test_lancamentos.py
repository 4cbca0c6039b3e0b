"""Testes da máquina de status dos lançamentos."""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from django.db import DatabaseError
from django.utils import timezone

from core.exceptions import (
    AuditAppendFailed, ConflictingTransition, InvalidTransition, PeriodClosed,
    PermissionDenied, ValidationFailure,
)
from core.models import AuditEntityType, AuditLogEntry, CalendarioPeriodo, Lancamento, LancamentoStatus, PeriodoStatus
from core.services import lancamentos
from core.services.fechamento import recompute_ceilings
from core.services.lancamentos import TRANSITIONS
from core.services.roles import principal_for

pytestmark = pytest.mark.django_db

STATUSES = [s.value for s in LancamentoStatus]
ILLEGAL = [
    (origem, destino)
    for origem in STATUSES
    for destino in STATUSES
    if (origem, destino) not in TRANSITIONS
]


def _entries(lancamento):
    return list(
        AuditLogEntry.objects.filter(
            entity_type=AuditEntityType.LANCAMENTO, entity_id=str(lancamento.id)
        ).order_by("created_at")
    )


class TestSubmit:
    def test_colaborador_envia_lancamento(self, colaborador_principal, colaborador, periodo, tipo, now):
        lancamento = lancamentos.submit_expense(
            colaborador_principal,
            colaborador_id=colaborador.id,
            periodo_id=periodo.id,
            tipo_despesa_id=tipo.id,
            origem="proprio",
            valor_lancado="150.5",
            descricao_fato_gerador="  Mensalidade da academia  ",
            now=now,
        )

        assert lancamento.status == LancamentoStatus.ENVIADO
        assert lancamento.valor_lancado == Decimal("150.50")
        assert lancamento.descricao_fato_gerador == "Mensalidade da academia"
        assert lancamento.valor_considerado is None
        [entry] = _entries(lancamento)
        assert entry.action == "criar"
        assert entry.new_values["status"] == "enviado"

    def test_nao_envia_para_outro_colaborador(self, outro_user, colaborador, periodo, tipo, now):
        with pytest.raises(PermissionDenied):
            lancamentos.submit_expense(
                principal_for(outro_user),
                colaborador_id=colaborador.id,
                periodo_id=periodo.id,
                tipo_despesa_id=tipo.id,
                origem="proprio",
                valor_lancado="10",
                descricao_fato_gerador="x",
                now=now,
            )

    def test_origem_nao_permitida(self, colaborador_principal, colaborador, periodo, tipo, now):
        tipo.origem_permitida = ["filhos"]
        tipo.save()
        with pytest.raises(ValidationFailure) as exc:
            lancamentos.submit_expense(
                colaborador_principal,
                colaborador_id=colaborador.id,
                periodo_id=periodo.id,
                tipo_despesa_id=tipo.id,
                origem="proprio",
                valor_lancado="10",
                descricao_fato_gerador="Material",
                now=now,
            )
        assert "origem" in exc.value.errors

    def test_parcelamento_cria_parcelas_nos_proximos_periodos(
        self, colaborador_principal, colaborador, periodo, tipo, now
    ):
        fevereiro = CalendarioPeriodo.objects.create(
            periodo="02/2026", data_inicio=date(2026, 2, 1), data_final=date(2026, 2, 28),
            abre_lancamento=date(2026, 2, 1), fecha_lancamento=date(2026, 2, 5),
        )
        marco = CalendarioPeriodo.objects.create(
            periodo="03/2026", data_inicio=date(2026, 3, 1), data_final=date(2026, 3, 31),
            abre_lancamento=date(2026, 3, 1), fecha_lancamento=date(2026, 3, 5),
        )

        lancamento = lancamentos.submit_expense(
            colaborador_principal,
            colaborador_id=colaborador.id,
            periodo_id=periodo.id,
            tipo_despesa_id=tipo.id,
            origem="proprio",
            valor_lancado="100.00",
            descricao_fato_gerador="Plano anual da academia",
            numero_documento=" NF-123 ",
            parcelamento_total_parcelas=3,
            now=now,
        )

        assert lancamento.numero_documento == "NF-123"
        assert lancamento.parcelamento_ativo
        assert lancamento.parcelamento_numero_parcela == 1
        assert lancamento.parcelamento_valor_total == Decimal("300.00")
        parcelas = list(lancamento.parcelas.order_by("parcelamento_numero_parcela"))
        assert [(p.periodo_id, p.parcelamento_numero_parcela) for p in parcelas] == [(fevereiro.id, 2), (marco.id, 3)]
        for parcela in parcelas:
            assert parcela.status == LancamentoStatus.ENVIADO
            assert parcela.valor_lancado == Decimal("100.00")
            assert parcela.parcelamento_total_parcelas == 3
            [entry] = _entries(parcela)
            assert entry.action == "criar"
            assert entry.new_values["lancamento_origem_id"] == str(lancamento.id)

    def test_parcelas_so_em_periodos_abertos(self, colaborador_principal, colaborador, periodo, tipo, now):
        CalendarioPeriodo.objects.create(
            periodo="02/2026", data_inicio=date(2026, 2, 1), data_final=date(2026, 2, 28),
            abre_lancamento=date(2026, 2, 1), fecha_lancamento=date(2026, 2, 5),
            status=PeriodoStatus.FECHADO,
        )

        lancamento = lancamentos.submit_expense(
            colaborador_principal,
            colaborador_id=colaborador.id,
            periodo_id=periodo.id,
            tipo_despesa_id=tipo.id,
            origem="proprio",
            valor_lancado="80.00",
            descricao_fato_gerador="Curso parcelado",
            parcelamento_total_parcelas=2,
            parcelamento_valor_total="160.00",
            now=now,
        )

        assert lancamento.parcelamento_total_parcelas == 2
        assert not lancamento.parcelas.exists()
        assert Lancamento.objects.count() == 1

    @pytest.mark.parametrize("valor", ["0", "-5", "abc"])
    def test_valor_invalido(self, colaborador_principal, colaborador, periodo, tipo, now, valor):
        with pytest.raises(ValidationFailure):
            lancamentos.submit_expense(
                colaborador_principal,
                colaborador_id=colaborador.id,
                periodo_id=periodo.id,
                tipo_despesa_id=tipo.id,
                origem="proprio",
                valor_lancado=valor,
                descricao_fato_gerador="Mensalidade",
                now=now,
            )


class TestTransitions:
    def test_fluxo_completo_com_teto(self, rh, financeiro, make_lancamento, fixed_ceiling, now):
        lancamento = make_lancamento(valor="500.00")

        lancamento = lancamentos.transition_expense(lancamento.id, "em_analise", rh, now=now)
        assert lancamento.status == LancamentoStatus.EM_ANALISE

        lookup = fixed_ceiling("300")
        lancamento = lancamentos.transition_expense(
            lancamento.id, "valido", financeiro, now=now, ceiling_lookup=lookup
        )

        assert lancamento.status == LancamentoStatus.VALIDO
        assert lancamento.valor_considerado == Decimal("300.00")
        assert lancamento.valor_nao_considerado == Decimal("200.00")
        assert lancamento.validado_por_id == financeiro.user_id
        assert lancamento.version == 3
        assert lookup.calls == [
            (lancamento.tipo_despesa_id, "proprio", lancamento.colaborador_id, lancamento.periodo_id)
        ]

    def test_cada_transicao_gera_uma_entrada(self, rh, make_lancamento, fixed_ceiling, now):
        lancamento = make_lancamento(valor="80.00")

        lancamentos.transition_expense(lancamento.id, "em_analise", rh, now=now)
        lancamentos.transition_expense(
            lancamento.id, "valido", rh, now=now + timedelta(minutes=5), ceiling_lookup=fixed_ceiling("300")
        )

        entries = _entries(lancamento)
        assert [e.action for e in entries] == ["iniciar_analise", "aprovar"]
        assert [(e.old_values["status"], e.new_values["status"]) for e in entries] == [
            ("enviado", "em_analise"),
            ("em_analise", "valido"),
        ]
        assert entries[1].new_values["valor_considerado"] == "80.00"
        assert entries[1].user_name == "Maria Santos"

    def test_saldo_esgotado_nada_considerado(self, rh, make_lancamento, fixed_ceiling, now):
        lancamento = make_lancamento(valor="50.00", status="em_analise")
        lancamento = lancamentos.transition_expense(
            lancamento.id, "valido", rh, now=now, ceiling_lookup=fixed_ceiling("300", consumed="300")
        )
        assert lancamento.valor_considerado == Decimal("0.00")
        assert lancamento.valor_nao_considerado == Decimal("50.00")

    def test_teto_pelo_banco_considera_outros_validos(self, rh, make_lancamento, now):
        anterior = make_lancamento(
            valor="250.00", status="valido",
            valor_considerado=Decimal("250.00"), valor_nao_considerado=Decimal("0.00"),
        )
        lancamento = make_lancamento(valor="100.00", status="em_analise")
        Lancamento.objects.filter(pk=anterior.pk).update(created_at=now - timedelta(hours=2))
        Lancamento.objects.filter(pk=lancamento.pk).update(created_at=now - timedelta(hours=1))

        lancamento = lancamentos.transition_expense(lancamento.id, "valido", rh, now=now)

        assert lancamento.valor_considerado == Decimal("50.00")
        assert lancamento.valor_nao_considerado == Decimal("50.00")

    def test_aprovacao_fora_de_ordem_segue_ordem_de_envio(self, rh, colaborador, periodo, make_lancamento, now):
        anterior = make_lancamento(valor="200.00", status="em_analise")
        posterior = make_lancamento(valor="200.00", status="em_analise")
        Lancamento.objects.filter(pk=anterior.pk).update(created_at=now - timedelta(hours=2))
        Lancamento.objects.filter(pk=posterior.pk).update(created_at=now - timedelta(hours=1))

        lancamentos.transition_expense(posterior.id, "valido", rh, now=now)
        lancamentos.transition_expense(anterior.id, "valido", rh, now=now + timedelta(minutes=5))

        anterior.refresh_from_db()
        posterior.refresh_from_db()
        assert (anterior.valor_considerado, anterior.valor_nao_considerado) == (Decimal("200.00"), Decimal("0.00"))
        assert (posterior.valor_considerado, posterior.valor_nao_considerado) == (Decimal("100.00"), Decimal("100.00"))
        assert _entries(anterior)[-1].new_values["ajustes_teto"] == [
            {"id": str(posterior.id), "valor_considerado": "100.00", "valor_nao_considerado": "100.00"}
        ]
        assert recompute_ceilings(colaborador.id, periodo.id) == 0

    def test_auditoria_usa_o_relogio_informado(self, rh, make_lancamento, now):
        lancamento = make_lancamento()
        lancamentos.transition_expense(lancamento.id, "em_analise", rh, now=now)

        [entry] = _entries(lancamento)
        assert entry.created_at == now

    @pytest.mark.parametrize("origem", ["enviado", "em_analise"])
    def test_invalidar_exige_motivo(self, rh, make_lancamento, origem, now):
        lancamento = make_lancamento(status=origem)

        with pytest.raises(ValidationFailure):
            lancamentos.transition_expense(lancamento.id, "invalido", rh, motivo="   ", now=now)
        lancamento.refresh_from_db()
        assert lancamento.status == origem

        lancamento = lancamentos.transition_expense(
            lancamento.id, "invalido", rh, motivo="Comprovante ilegível", now=now
        )
        assert lancamento.status == LancamentoStatus.INVALIDO
        assert lancamento.motivo_invalidacao == "Comprovante ilegível"
        assert _entries(lancamento)[-1].new_values["motivo_invalidacao"] == "Comprovante ilegível"

    @pytest.mark.parametrize("origem,destino", ILLEGAL)
    def test_transicao_fora_da_tabela(self, rh, make_lancamento, origem, destino, now):
        extra = {}
        if origem == "valido":
            extra = {"valor_considerado": Decimal("100.00"), "valor_nao_considerado": Decimal("0.00")}
        elif origem == "invalido":
            extra = {"motivo_invalidacao": "Duplicado"}
        lancamento = make_lancamento(status=origem, **extra)

        with pytest.raises(InvalidTransition) as exc:
            lancamentos.transition_expense(lancamento.id, destino, rh, motivo="motivo", now=now)

        assert exc.value.current == origem
        assert exc.value.target == destino
        lancamento.refresh_from_db()
        assert lancamento.status == origem
        assert lancamento.version == 1
        assert _entries(lancamento) == []

    def test_status_desconhecido(self, rh, make_lancamento, now):
        lancamento = make_lancamento()
        with pytest.raises(InvalidTransition):
            lancamentos.transition_expense(lancamento.id, "arquivado", rh, now=now)

    def test_colaborador_nao_revisa(self, colaborador_principal, make_lancamento, now):
        lancamento = make_lancamento()
        with pytest.raises(PermissionDenied):
            lancamentos.transition_expense(lancamento.id, "em_analise", colaborador_principal, now=now)

    def test_financeiro_nao_inicia_analise(self, financeiro, make_lancamento, now):
        lancamento = make_lancamento()
        with pytest.raises(PermissionDenied):
            lancamentos.transition_expense(lancamento.id, "em_analise", financeiro, now=now)

    def test_revisao_depois_da_janela_de_envio(self, rh, make_lancamento):
        lancamento = make_lancamento()
        depois = timezone.make_aware(datetime(2026, 2, 20, 9, 0))
        lancamento = lancamentos.transition_expense(lancamento.id, "em_analise", rh, now=depois)
        assert lancamento.status == LancamentoStatus.EM_ANALISE


class TestConcurrency:
    def test_versao_esperada_desatualizada(self, rh, make_lancamento, now):
        lancamento = make_lancamento()
        lancamentos.transition_expense(lancamento.id, "em_analise", rh, now=now)

        with pytest.raises(ConflictingTransition):
            lancamentos.transition_expense(
                lancamento.id, "invalido", rh, motivo="Duplicado", expected_version=1, now=now
            )

    def test_segunda_escrita_concorrente_perde(self, rh, financeiro, make_lancamento, fixed_ceiling, monkeypatch, now):
        lancamento = make_lancamento(status="em_analise")
        leitura_antiga = Lancamento.objects.select_related("colaborador", "periodo", "tipo_despesa").get(pk=lancamento.pk)

        primeiro = lancamentos.transition_expense(
            lancamento.id, "valido", financeiro, now=now, ceiling_lookup=fixed_ceiling("300")
        )
        assert primeiro.status == LancamentoStatus.VALIDO

        # Segunda requisição leu o lançamento antes da primeira gravar
        monkeypatch.setattr(lancamentos, "load_expense", lambda expense_id: leitura_antiga)
        with pytest.raises(ConflictingTransition):
            lancamentos.transition_expense(lancamento.id, "invalido", rh, motivo="Duplicado", now=now)

        lancamento.refresh_from_db()
        assert lancamento.status == LancamentoStatus.VALIDO
        assert [e.action for e in _entries(lancamento)] == ["aprovar"]


class TestAuditAtomicity:
    def test_falha_na_auditoria_desfaz_transicao(self, rh, make_lancamento, monkeypatch, now):
        lancamento = make_lancamento()

        def falha(*args, **kwargs):
            raise AuditAppendFailed()

        monkeypatch.setattr(lancamentos.audit, "append", falha)

        with pytest.raises(AuditAppendFailed):
            lancamentos.transition_expense(lancamento.id, "em_analise", rh, now=now)

        lancamento.refresh_from_db()
        assert lancamento.status == LancamentoStatus.ENVIADO
        assert lancamento.version == 1

    def test_erro_de_banco_na_auditoria_esgota_tentativas(self, rh, make_lancamento, monkeypatch, settings, now):
        settings.REREPORTS_AUDIT_APPEND_RETRIES = 2
        lancamento = make_lancamento()
        tentativas = []

        def create(**kwargs):
            tentativas.append(kwargs)
            raise DatabaseError("disco cheio")

        monkeypatch.setattr(AuditLogEntry.objects, "create", create)

        with pytest.raises(AuditAppendFailed):
            lancamentos.transition_expense(lancamento.id, "em_analise", rh, now=now)

        assert len(tentativas) == 2
        lancamento.refresh_from_db()
        assert lancamento.status == LancamentoStatus.ENVIADO


class TestUpdateDelete:
    def test_colaborador_altera_lancamento_enviado(self, colaborador_principal, make_lancamento, now):
        lancamento = make_lancamento(valor="100.00")

        lancamento = lancamentos.update_expense(
            colaborador_principal, lancamento.id, now=now, valor_lancado="120.00"
        )

        assert lancamento.valor_lancado == Decimal("120.00")
        assert lancamento.version == 2
        [entry] = _entries(lancamento)
        assert entry.action == "atualizar"
        assert entry.old_values == {"valor_lancado": "100.00"}
        assert entry.new_values == {"valor_lancado": "120.00"}

    def test_nao_altera_em_analise(self, colaborador_principal, make_lancamento, now):
        lancamento = make_lancamento(status="em_analise")
        with pytest.raises(ValidationFailure):
            lancamentos.update_expense(colaborador_principal, lancamento.id, now=now, valor_lancado="120.00")

    def test_nao_altera_fora_da_janela(self, colaborador_principal, make_lancamento):
        lancamento = make_lancamento()
        depois = timezone.make_aware(datetime(2026, 1, 10, 9, 0))
        with pytest.raises(PeriodClosed):
            lancamentos.update_expense(colaborador_principal, lancamento.id, now=depois, valor_lancado="120.00")

    def test_exclusao_auditada(self, colaborador_principal, make_lancamento, now):
        lancamento = make_lancamento()
        lancamento_id = str(lancamento.id)

        lancamentos.delete_expense(colaborador_principal, lancamento.id, now=now)

        assert not Lancamento.objects.filter(pk=lancamento_id).exists()
        entry = AuditLogEntry.objects.get(entity_id=lancamento_id)
        assert entry.action == "excluir"
        assert entry.old_values["status"] == "enviado"


class TestBatch:
    def test_aprovacao_em_lote_reporta_falhas(self, rh, make_lancamento, fixed_ceiling, now):
        a = make_lancamento(valor="100.00", status="em_analise")
        b = make_lancamento(valor="100.00", status="em_analise")
        c = make_lancamento(valor="100.00")

        resultado = lancamentos.approve_batch(rh, [a.id, b.id, c.id], now=now, ceiling_lookup=fixed_ceiling("300"))

        assert resultado.sucesso == 2
        assert resultado.falhas == 1
        assert resultado.erros[0]["id"] == str(c.id)
        c.refresh_from_db()
        assert c.status == LancamentoStatus.ENVIADO

    def test_rejeicao_em_lote_exige_motivo(self, rh, make_lancamento, now):
        a = make_lancamento()
        with pytest.raises(ValidationFailure):
            lancamentos.reject_batch(rh, [a.id], "", now=now)

        resultado = lancamentos.reject_batch(rh, [a.id], "Fora da política", now=now)
        assert resultado.as_dict() == {"sucesso": 1, "falhas": 0, "erros": []}
