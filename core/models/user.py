"""
Modelo User customizado e vínculos de roles.

Herdado de AbstractUser do Django, estende com o nome de exibição escolhido
pelo próprio usuário. As roles ficam em UserRole para permitir que um mesmo
usuário acumule várias (ex: RH e FINANCEIRO).
"""

import uuid
from typing import Iterable, Optional

from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models


class Role(models.TextChoices):
    """Roles disponíveis no sistema."""
    COLABORADOR = 'COLABORADOR', 'Colaborador'
    RH = 'RH', 'Recursos Humanos'
    FINANCEIRO = 'FINANCEIRO', 'Financeiro'


class UserManager(BaseUserManager):
    """
    Manager customizado para o modelo User.

    Usa o email como username e permite atribuir roles na criação.
    """

    def create_user(
        self,
        email: str,
        password: Optional[str] = None,
        roles: Iterable[str] = (),
        **extra_fields
    ):
        """
        Cria e salva um usuário comum.

        Args:
            email: Email do usuário (usa como username)
            password: Senha do usuário
            roles: Roles atribuídas ao usuário
            **extra_fields: Campos extras (ex: nome)

        Returns:
            User criado
        """
        if not email:
            raise ValueError('O email é obrigatório')

        email = self.normalize_email(email)

        user = self.model(
            email=email,
            username=email,
            **extra_fields
        )
        user.set_password(password)
        user.save(using=self._db)

        for role in roles:
            UserRole.objects.using(self._db).get_or_create(user=user, role=role)

        return user

    def create_superuser(
        self,
        email: str,
        password: Optional[str] = None,
        **extra_fields
    ):
        """
        Cria e salva um superusuário com as roles de RH e FINANCEIRO.
        """
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        roles = extra_fields.pop('roles', (Role.RH, Role.FINANCEIRO))

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser deve ter is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser deve ter is_superuser=True.')

        return self.create_user(email, password, roles=roles, **extra_fields)


class User(AbstractUser):
    """
    Modelo User customizado herdado de AbstractUser.

    O campo `nome` é o nome de exibição escolhido pelo próprio usuário e
    pode divergir do nome cadastrado pelo RH em ColaboradorElegivel.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        verbose_name='ID',
        help_text='Identificador único (UUID) do usuário'
    )

    email = models.EmailField(
        unique=True,
        db_index=True,
        verbose_name='Email',
        help_text='Email do usuário (usado como username)'
    )

    nome = models.CharField(
        max_length=255,
        blank=True,
        verbose_name='Nome',
        help_text='Nome de exibição escolhido pelo usuário'
    )

    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name='Data de Criação',
        help_text='Data e hora em que o usuário foi criado'
    )

    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name='Data de Atualização',
        help_text='Data e hora da última atualização do usuário'
    )

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        verbose_name = 'Usuário'
        verbose_name_plural = 'Usuários'
        ordering = ['email']

    def save(self, *args, **kwargs):
        """Garante que o username seja sempre igual ao email."""
        if not self.username or self.username != self.email:
            self.username = self.email
        super().save(*args, **kwargs)

    @property
    def display_name(self) -> str:
        return self.nome or self.email

    def __str__(self) -> str:
        return f"{self.display_name} <{self.email}>"


class UserRole(models.Model):
    """
    Vínculo entre usuário e role.

    Um usuário pode ter zero ou mais roles simultaneamente.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        verbose_name='ID'
    )

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='role_set',
        verbose_name='Usuário'
    )

    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        verbose_name='Role'
    )

    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name='Data de Criação'
    )

    class Meta:
        verbose_name = 'Role do Usuário'
        verbose_name_plural = 'Roles dos Usuários'
        constraints = [
            models.UniqueConstraint(fields=['user', 'role'], name='unique_role_per_user'),
        ]

    def __str__(self) -> str:
        return f"{self.user.email} - {self.get_role_display()}"
