"""Testes dos comandos de gerenciamento."""

from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from core.models import Role, TipoDespesa, User

pytestmark = pytest.mark.django_db


def test_seed_tipos_despesa_nao_duplica():
    call_command("seed_tipos_despesa", stdout=StringIO())
    total = TipoDespesa.objects.count()
    call_command("seed_tipos_despesa", stdout=StringIO())

    assert TipoDespesa.objects.count() == total
    transporte = TipoDespesa.objects.get(nome="Transporte")
    assert transporte.origem_permitida == ["proprio"]
    assert transporte.permite_origem("proprio")
    assert not transporte.permite_origem("filhos")


def test_init_admin_cria_superusuario_com_roles():
    call_command("init_admin", email="admin@empresa.com", password="s3nha-forte", stdout=StringIO())

    admin = User.objects.get(email="admin@empresa.com")
    assert admin.is_superuser
    assert set(admin.role_set.values_list("role", flat=True)) == {Role.RH, Role.FINANCEIRO}


def test_init_admin_existente_garante_roles(colaborador_user):
    call_command("init_admin", email=colaborador_user.email, stdout=StringIO())

    roles = set(colaborador_user.role_set.values_list("role", flat=True))
    assert roles == {Role.COLABORADOR, Role.RH, Role.FINANCEIRO}


def test_init_admin_sem_senha(monkeypatch):
    monkeypatch.delenv("ADMIN_PASSWORD", raising=False)
    with pytest.raises(CommandError):
        call_command("init_admin", email="novo@empresa.com", password=None, stdout=StringIO())
