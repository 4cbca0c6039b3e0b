"""
Custom Management Command para popular os tipos de despesa padrão.

Uso:
    python manage.py seed_tipos_despesa

Características:
    - Criação não-interativa (automática)
    - Não duplica tipos já existentes (busca por nome)
"""

from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from core.models import ClassificacaoDespesa, Origem, TipoDespesa

TODAS_ORIGENS = [Origem.PROPRIO, Origem.CONJUGE, Origem.FILHOS]


class Command(BaseCommand):
    """Popula os tipos de despesa da Cesta de Benefícios."""

    help = 'Popula os tipos de despesa padrão da Cesta de Benefícios.'

    TIPOS = [
        {'nome': 'Academia', 'grupo': 'Cesta de Benefícios', 'origem_permitida': TODAS_ORIGENS},
        {'nome': 'Plano Odontológico', 'grupo': 'Cesta de Benefícios', 'origem_permitida': TODAS_ORIGENS},
        {'nome': 'Medicamentos', 'grupo': 'Cesta de Benefícios', 'origem_permitida': TODAS_ORIGENS},
        {'nome': 'Material Escolar', 'grupo': 'Cesta de Benefícios', 'origem_permitida': [Origem.FILHOS]},
        {'nome': 'Cursos e Capacitação', 'grupo': 'Cesta de Benefícios', 'origem_permitida': [Origem.PROPRIO]},
        {'nome': 'Home Office', 'grupo': 'Cesta de Benefícios', 'origem_permitida': [Origem.PROPRIO]},
        {
            'nome': 'Transporte',
            'grupo': 'Mobilidade',
            'classificacao': ClassificacaoDespesa.FIXO,
            'valor_padrao_teto': Decimal('300.00'),
            'origem_permitida': [Origem.PROPRIO],
        },
    ]

    def handle(self, *args, **options):
        criados = 0
        with transaction.atomic():
            for dados in self.TIPOS:
                dados = dict(dados)
                nome = dados.pop('nome')
                dados['origem_permitida'] = [str(o) for o in dados['origem_permitida']]
                _, created = TipoDespesa.objects.get_or_create(nome=nome, defaults=dados)
                if created:
                    criados += 1
                    self.stdout.write(f'   + {nome}')

        self.stdout.write(self.style.SUCCESS(
            f'[OK] {criados} tipo(s) de despesa criado(s), {len(self.TIPOS) - criados} já existente(s).'
        ))
