"""
Cadastro de colaboradores elegíveis ao reembolso.

O nome registrado aqui é o nome oficial do RH (sistema de registro) e pode
divergir do nome de exibição escolhido na conta vinculada.
"""

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from core.models.base import TimestampedModel


class ColaboradorElegivel(TimestampedModel):
    """
    Colaborador elegível a lançar despesas de reembolso.

    Características:
    - matricula única por colaborador
    - vínculo opcional com a conta de usuário (self-service)
    - tetos da Cesta de Benefícios e do PIDA por colaborador
    """

    matricula = models.CharField(
        max_length=50,
        unique=True,
        verbose_name='Matrícula',
        help_text='Matrícula do colaborador na folha'
    )

    nome = models.CharField(
        max_length=255,
        db_index=True,
        verbose_name='Nome',
        help_text='Nome oficial cadastrado pelo RH'
    )

    email = models.EmailField(
        verbose_name='Email',
        help_text='Email corporativo do colaborador'
    )

    departamento = models.CharField(
        max_length=120,
        blank=True,
        verbose_name='Departamento'
    )

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='colaborador',
        verbose_name='Usuário',
        help_text='Conta de acesso vinculada ao colaborador'
    )

    cesta_beneficios_teto = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))],
        verbose_name='Teto Cesta de Benefícios',
        help_text='Valor máximo considerado por período na Cesta de Benefícios'
    )

    tem_pida = models.BooleanField(
        default=False,
        verbose_name='Tem PIDA'
    )

    pida_teto = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))],
        verbose_name='Teto PIDA'
    )

    ativo = models.BooleanField(
        default=True,
        verbose_name='Ativo',
        help_text='Se o colaborador pode enviar novos lançamentos'
    )

    class Meta:
        verbose_name = 'Colaborador Elegível'
        verbose_name_plural = 'Colaboradores Elegíveis'
        ordering = ['nome']

    def __str__(self) -> str:
        return f"{self.nome} ({self.matricula})"
