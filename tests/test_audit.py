"""Testes da trilha de auditoria: consulta, relatório e imutabilidade."""

from datetime import datetime

import pytest
from django.core.exceptions import ValidationError
from django.utils import timezone

from core.models import AuditAction, AuditEntityType, AuditLogEntry
from core.services import audit
from core.services.audit import AuditFilter

pytestmark = pytest.mark.django_db


def _at(day, hour=12):
    return timezone.make_aware(datetime(2026, 1, day, hour, 0))


@pytest.fixture(name="entries")
def fx_entries(rh_user, financeiro_user):
    """Três entradas em dias diferentes, de dois usuários e duas entidades."""
    dados = [
        (_at(2), rh_user, AuditAction.CRIAR, AuditEntityType.LANCAMENTO, "L1"),
        (_at(3), financeiro_user, AuditAction.APROVAR, AuditEntityType.LANCAMENTO, "L1"),
        (_at(4), rh_user, AuditAction.ATUALIZAR, AuditEntityType.PERIODO, "P1"),
    ]
    return [
        AuditLogEntry.objects.create(
            created_at=created_at,
            user_id=user.id,
            user_name=user.nome,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            entity_description=f"{entity_type} {entity_id}",
        )
        for created_at, user, action, entity_type, entity_id in dados
    ]


class TestAppend:
    def test_copia_nome_do_autor(self, rh):
        entry = audit.append(
            rh, AuditAction.REJEITAR, AuditEntityType.LANCAMENTO, "abc",
            old_values={"status": "enviado"}, new_values={"status": "invalido"},
        )
        entry.refresh_from_db()
        assert entry.user_id == rh.user_id
        assert entry.user_name == "Maria Santos"
        assert entry.new_values == {"status": "invalido"}

    def test_data_informada(self, rh):
        quando = _at(7, 9)
        entry = audit.append(rh, AuditAction.CRIAR, AuditEntityType.PERIODO, "p1", now=quando)
        entry.refresh_from_db()
        assert entry.created_at == quando

    def test_acao_desconhecida(self, rh):
        with pytest.raises(ValueError):
            audit.append(rh, "arquivar", AuditEntityType.LANCAMENTO, "abc")


class TestQuery:
    def test_mais_recentes_primeiro(self, entries):
        resultado = audit.query()
        assert [e.id for e in resultado] == [e.id for e in reversed(entries)]

    def test_filtros_combinados(self, entries, financeiro_user):
        resultado = audit.query(AuditFilter(entity_type=AuditEntityType.LANCAMENTO, user_id=financeiro_user.id))
        assert [e.action for e in resultado] == ["aprovar"]

    def test_filtro_por_entidade(self, entries):
        resultado = audit.query(AuditFilter(entity_type=AuditEntityType.LANCAMENTO, entity_id="L1"))
        assert len(resultado) == 2

    def test_intervalo_de_datas_inclusivo(self, entries):
        resultado = audit.query(AuditFilter(start_date=_at(3), end_date=_at(4)))
        assert [e.entity_id for e in resultado] == ["P1", "L1"]

    def test_limite_e_deslocamento(self, entries):
        resultado = audit.query(AuditFilter(limit=1, offset=1))
        assert [e.id for e in resultado] == [entries[1].id]


class TestExport:
    def test_relatorio_registra_filtro_e_rotulos(self, entries):
        filtro = AuditFilter(entity_type=AuditEntityType.LANCAMENTO)
        gerado_em = _at(10)

        report = audit.export_report(filtro, now=gerado_em)

        assert report["generated_at"] == gerado_em.isoformat()
        assert report["filters"]["entity_type"] == "lancamento"
        assert report["filters"]["limit"] is None
        assert report["total"] == 2
        assert [r["acao"] for r in report["rows"]] == ["Aprovação", "Criação"]
        assert {r["entidade"] for r in report["rows"]} == {"Lançamento"}
        assert report["rows"][0]["usuario"] == "Carlos Oliveira"
        assert report["rows"][0]["data"] == "03/01/2026 12:00:00"


class TestImmutability:
    def test_save_de_entrada_existente(self, entries):
        entry = entries[0]
        entry.user_name = "Outro"
        with pytest.raises(ValidationError):
            entry.save()

    def test_delete_de_entrada(self, entries):
        with pytest.raises(ValidationError):
            entries[0].delete()

    def test_operacoes_em_massa(self, entries):
        with pytest.raises(ValidationError):
            AuditLogEntry.objects.filter(entity_id="L1").update(user_name="Outro")
        with pytest.raises(ValidationError):
            AuditLogEntry.objects.all().delete()
        assert AuditLogEntry.objects.count() == 3
