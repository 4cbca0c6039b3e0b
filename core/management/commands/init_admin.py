"""
Custom Management Command para criar o administrador inicial.

Cria um superusuário com as roles RH e FINANCEIRO para que o primeiro
acesso consiga cadastrar períodos, colaboradores e revisar lançamentos.

Uso:
    python manage.py init_admin --email rh@empresa.com --password ...
"""

import os

from django.core.management.base import BaseCommand, CommandError
from django.db import OperationalError, transaction

from core.models import Role, User, UserRole


class Command(BaseCommand):
    """
    Comando Django para criar o administrador inicial automaticamente.

    Se o usuário já existir, apenas garante que ele possua as roles
    administrativas.
    """

    help = 'Cria o administrador inicial (roles RH e FINANCEIRO) do Rereports.'

    ADMIN_EMAIL = 'admin@rereports.local'
    ADMIN_ROLES = (Role.RH, Role.FINANCEIRO)

    def add_arguments(self, parser):
        parser.add_argument(
            '--email',
            type=str,
            default=os.environ.get('ADMIN_EMAIL', self.ADMIN_EMAIL),
            help=f'Email do administrador (padrão: {self.ADMIN_EMAIL})'
        )
        parser.add_argument(
            '--password',
            type=str,
            default=os.environ.get('ADMIN_PASSWORD'),
            help='Senha do administrador (ou variável ADMIN_PASSWORD)'
        )
        parser.add_argument(
            '--nome',
            type=str,
            default='Administrador',
            help='Nome de exibição do administrador'
        )

    def handle(self, *args, **options):
        email = options['email']
        password = options['password']
        nome = options['nome']

        try:
            existente = User.objects.filter(email=email).first()
            if existente:
                with transaction.atomic():
                    for role in self.ADMIN_ROLES:
                        UserRole.objects.get_or_create(user=existente, role=role)
                self.stdout.write(self.style.WARNING(f'[AVISO] Administrador ja existe: {email}'))
                self.stdout.write(f'   - ID: {existente.id}')
                self.stdout.write(self.style.SUCCESS('[OK] Roles administrativas garantidas.'))
                return

            if not password:
                raise CommandError('Informe --password ou defina ADMIN_PASSWORD no arquivo .env.')

            with transaction.atomic():
                user = User.objects.create_superuser(
                    email=email,
                    password=password,
                    nome=nome,
                    roles=self.ADMIN_ROLES,
                )

            self.stdout.write(self.style.SUCCESS('[OK] Administrador criado com sucesso!'))
            self.stdout.write(f'   - Email: {user.email}')
            self.stdout.write(f'   - ID: {user.id}')
            self.stdout.write(f"   - Roles: {', '.join(self.ADMIN_ROLES)}")

        except OperationalError as e:
            self.stdout.write(self.style.ERROR('[ERRO] Erro ao conectar com o banco de dados!'))
            self.stdout.write(self.style.ERROR(f'   Detalhes: {str(e)}'))
            self.stdout.write(self.style.WARNING(
                '\nVerifique se:'
                '\n  1. O banco de dados está acessível'
                '\n  2. As credenciais no arquivo .env estão corretas'
                '\n  3. As migrações foram aplicadas (python manage.py migrate)'
            ))
            raise CommandError('Falha na conexão com o banco de dados.')
