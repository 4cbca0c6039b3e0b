"""Fixtures compartilhadas: usuários com roles, colaborador, tipo de despesa e período aberto."""

from datetime import date, datetime
from decimal import Decimal

import pytest
from django.utils import timezone

from core.models import (
    CalendarioPeriodo, ColaboradorElegivel, Lancamento, Origem, Role, TipoDespesa, User,
)
from core.services.roles import principal_for
from core.services.tetos import CeilingLookup, CeilingQuote


@pytest.fixture(name="now")
def fx_now() -> datetime:
    """Relógio fixo dentro da janela de lançamento do período 01/2026."""
    return timezone.make_aware(datetime(2026, 1, 3, 10, 0))


@pytest.fixture(name="rh_user")
def fx_rh_user() -> User:
    return User.objects.create_user("rh@empresa.com", "x", roles=[Role.RH], nome="Maria Santos")


@pytest.fixture(name="financeiro_user")
def fx_financeiro_user() -> User:
    return User.objects.create_user(
        "financeiro@empresa.com", "x", roles=[Role.FINANCEIRO], nome="Carlos Oliveira"
    )


@pytest.fixture(name="colaborador_user")
def fx_colaborador_user() -> User:
    return User.objects.create_user(
        "colaborador@empresa.com", "x", roles=[Role.COLABORADOR], nome="João Silva"
    )


@pytest.fixture(name="outro_user")
def fx_outro_user() -> User:
    return User.objects.create_user("outro@empresa.com", "x", roles=[Role.COLABORADOR], nome="Ana Lima")


@pytest.fixture(name="rh")
def fx_rh(rh_user):
    return principal_for(rh_user)


@pytest.fixture(name="financeiro")
def fx_financeiro(financeiro_user):
    return principal_for(financeiro_user)


@pytest.fixture(name="colaborador_principal")
def fx_colaborador_principal(colaborador_user):
    return principal_for(colaborador_user)


@pytest.fixture(name="colaborador")
def fx_colaborador(colaborador_user) -> ColaboradorElegivel:
    return ColaboradorElegivel.objects.create(
        matricula="1001",
        nome="João Silva",
        email="colaborador@empresa.com",
        departamento="Tecnologia",
        user=colaborador_user,
        cesta_beneficios_teto=Decimal("300.00"),
    )


@pytest.fixture(name="tipo")
def fx_tipo() -> TipoDespesa:
    return TipoDespesa.objects.create(
        nome="Academia",
        grupo="Cesta de Benefícios",
        origem_permitida=[Origem.PROPRIO, Origem.CONJUGE, Origem.FILHOS],
    )


@pytest.fixture(name="periodo")
def fx_periodo() -> CalendarioPeriodo:
    return CalendarioPeriodo.objects.create(
        periodo="01/2026",
        data_inicio=date(2026, 1, 1),
        data_final=date(2026, 1, 31),
        abre_lancamento=date(2026, 1, 1),
        fecha_lancamento=date(2026, 1, 5),
    )


@pytest.fixture(name="make_lancamento")
def fx_make_lancamento(colaborador, periodo, tipo):
    """Cria lançamentos diretamente no banco (sem passar pelo service)."""

    def factory(valor="100.00", status="enviado", **extra) -> Lancamento:
        return Lancamento.objects.create(
            colaborador=extra.pop("colaborador", colaborador),
            periodo=extra.pop("periodo", periodo),
            tipo_despesa=extra.pop("tipo_despesa", tipo),
            origem=extra.pop("origem", Origem.PROPRIO),
            valor_lancado=Decimal(valor),
            descricao_fato_gerador=extra.pop("descricao_fato_gerador", "Mensalidade"),
            status=status,
            **extra,
        )

    return factory


class FixedCeilingLookup(CeilingLookup):
    """Consulta de teto com valores fixos."""

    def __init__(self, ceiling, consumed="0"):
        self.quote = CeilingQuote(ceiling=Decimal(ceiling), consumed=Decimal(consumed))
        self.calls = []

    def lookup(self, tipo_despesa_id, origem, colaborador_id, periodo_id):
        self.calls.append((tipo_despesa_id, origem, colaborador_id, periodo_id))
        return self.quote


@pytest.fixture(name="fixed_ceiling")
def fx_fixed_ceiling():
    return FixedCeilingLookup
