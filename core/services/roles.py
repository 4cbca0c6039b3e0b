"""
Resolução de roles do usuário autenticado.

Toda decisão de autorização é um predicado sobre o conjunto de roles do
Principal. O Principal é construído explicitamente por requisição e passado
aos services; não existe estado global de autenticação.

Duas implementações intercambiáveis, escolhidas por configuração
(settings.REREPORTS_ROLE_RESOLVER):
- DatabaseRoleResolver: roles gravadas em UserRole
- FixtureRoleResolver: usuários fixos em memória (modo mock)
"""

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Optional
from uuid import UUID

from django.conf import settings
from django.db import DatabaseError
from django.utils.module_loading import import_string

from core.models.user import Role, UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """
    Identidade do autor de uma operação.

    `nome` é o nome de exibição no momento da requisição e é copiado para
    as entradas de auditoria.
    """

    user_id: Optional[UUID] = None
    nome: str = ''
    email: str = ''
    roles: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def display_name(self) -> str:
        return self.nome or self.email or 'Anônimo'

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, *roles: str) -> bool:
        return any(role in self.roles for role in roles)

    @property
    def is_hr_viewer(self) -> bool:
        """RH e FINANCEIRO enxergam o nome oficial do colaborador."""
        return self.has_any_role(Role.RH, Role.FINANCEIRO)


ANONYMOUS = Principal()


class RoleResolver:
    """Interface do resolvedor de roles."""

    def resolve(self, user) -> FrozenSet[str]:
        raise NotImplementedError

    def principal_for(self, user) -> Principal:
        """
        Constrói o Principal de um usuário.

        Usuário ausente ou não autenticado resulta no Principal anônimo,
        sem nenhuma role.
        """
        if user is None or not getattr(user, 'is_authenticated', False):
            return ANONYMOUS
        return Principal(
            user_id=user.pk,
            nome=getattr(user, 'nome', '') or '',
            email=getattr(user, 'email', '') or '',
            roles=self.resolve(user),
        )


class DatabaseRoleResolver(RoleResolver):
    """Lê as roles do usuário em UserRole."""

    def resolve(self, user) -> FrozenSet[str]:
        if user is None or not getattr(user, 'is_authenticated', False):
            return frozenset()
        try:
            return frozenset(
                UserRole.objects.filter(user_id=user.pk).values_list('role', flat=True)
            )
        except DatabaseError as e:
            # Falha de resolução equivale a nenhuma permissão
            logger.error(f'Erro ao resolver roles do usuário {user.pk}: {str(e)}')
            return frozenset()


class FixtureRoleResolver(RoleResolver):
    """
    Resolve roles a partir de settings.REREPORTS_MOCK_USERS.

    Formato:
        {'email@empresa.com': {'nome': 'Nome', 'roles': ['RH']}}
    """

    def __init__(self, users: Optional[dict] = None):
        self.users = users if users is not None else getattr(settings, 'REREPORTS_MOCK_USERS', {})

    def resolve(self, user) -> FrozenSet[str]:
        if user is None or not getattr(user, 'is_authenticated', False):
            return frozenset()
        fixture = self.users.get((user.email or '').lower(), {})
        return frozenset(r for r in fixture.get('roles', []) if r in Role.values)

    def principal_for(self, user) -> Principal:
        principal = super().principal_for(user)
        fixture = self.users.get((principal.email or '').lower())
        if fixture and fixture.get('nome') and not principal.nome:
            return Principal(
                user_id=principal.user_id,
                nome=fixture['nome'],
                email=principal.email,
                roles=principal.roles,
            )
        return principal


def get_role_resolver() -> RoleResolver:
    """Instancia o resolvedor configurado em settings."""
    return import_string(settings.REREPORTS_ROLE_RESOLVER)()


def principal_for(user) -> Principal:
    return get_role_resolver().principal_for(user)
