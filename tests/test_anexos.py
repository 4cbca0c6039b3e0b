"""Testes dos metadados de comprovantes."""

import pytest

from core.exceptions import PeriodClosed, PermissionDenied, ValidationFailure
from core.models import Fechamento
from core.services import anexos
from core.services.roles import principal_for

pytestmark = pytest.mark.django_db

PDF = b"%PDF-1.4 recibo academia janeiro"


def test_registra_hash_do_conteudo(colaborador_principal, make_lancamento):
    lancamento = make_lancamento()

    anexo = anexos.add_attachment(
        colaborador_principal, lancamento.id, "recibo.pdf", "application/pdf", 0, conteudo=PDF
    )

    assert anexo.hash_comprovante == anexos.compute_hash(PDF)
    assert anexo.tamanho == len(PDF)
    assert anexos.has_attachments(lancamento.id)
    [meta] = anexos.attachment_metadata(lancamento.id)
    assert meta["nome_arquivo"] == "recibo.pdf"


def test_comprovante_duplicado_do_mesmo_colaborador(colaborador_principal, make_lancamento):
    primeiro = make_lancamento()
    segundo = make_lancamento()
    anexos.add_attachment(colaborador_principal, primeiro.id, "recibo.pdf", "application/pdf", 0, conteudo=PDF)

    with pytest.raises(ValidationFailure) as exc:
        anexos.add_attachment(colaborador_principal, segundo.id, "copia.pdf", "application/pdf", 0, conteudo=PDF)

    assert "hash_comprovante" in exc.value.errors
    assert not anexos.has_attachments(segundo.id)


def test_outro_colaborador_nao_anexa(outro_user, make_lancamento):
    lancamento = make_lancamento()
    with pytest.raises(PermissionDenied):
        anexos.add_attachment(principal_for(outro_user), lancamento.id, "r.pdf", "application/pdf", 0, conteudo=PDF)


def test_lancamento_fechado_nao_recebe_anexo(rh, rh_user, periodo, make_lancamento):
    fechamento = Fechamento.objects.create(periodo=periodo, processado_por=rh_user)
    lancamento = make_lancamento(status="invalido", motivo_invalidacao="x", fechamento=fechamento)

    with pytest.raises(PeriodClosed):
        anexos.add_attachment(rh, lancamento.id, "r.pdf", "application/pdf", 10, hash_comprovante="a" * 64)


def test_exige_conteudo_ou_hash(rh, make_lancamento):
    lancamento = make_lancamento()
    with pytest.raises(ValidationFailure):
        anexos.add_attachment(rh, lancamento.id, "r.pdf", "application/pdf", 10)
