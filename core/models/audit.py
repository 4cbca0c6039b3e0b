"""
Trilha de auditoria (somente inclusão).

Cada operação que altera estado grava uma AuditLogEntry com o nome do
usuário no momento da ação, os valores antes/depois e metadados livres.
Entradas nunca são alteradas nem removidas pela aplicação: o model e o
queryset recusam update e delete.
"""

import uuid

from django.core.exceptions import ValidationError
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone


class AuditAction(models.TextChoices):
    """Ações auditadas. O label é o texto usado nos relatórios."""
    CRIAR = 'criar', 'Criação'
    ATUALIZAR = 'atualizar', 'Atualização'
    EXCLUIR = 'excluir', 'Exclusão'
    APROVAR = 'aprovar', 'Aprovação'
    REJEITAR = 'rejeitar', 'Rejeição'
    INICIAR_ANALISE = 'iniciar_analise', 'Início de Análise'


class AuditEntityType(models.TextChoices):
    """Tipos de entidade auditados."""
    LANCAMENTO = 'lancamento', 'Lançamento'
    COLABORADOR = 'colaborador', 'Colaborador'
    TIPO_DESPESA = 'tipo_despesa', 'Tipo de Despesa'
    PERIODO = 'periodo', 'Período'
    EVENTO_FOLHA = 'evento_folha', 'Evento de Folha'


IMMUTABLE_MESSAGE = 'Entradas de auditoria são imutáveis.'


class AuditLogQuerySet(models.QuerySet):
    """QuerySet sem operações de alteração em massa."""

    def update(self, **kwargs):
        raise ValidationError(IMMUTABLE_MESSAGE)

    def delete(self):
        raise ValidationError(IMMUTABLE_MESSAGE)


class AuditLogEntry(models.Model):
    """
    Entrada da trilha de auditoria.

    `user_id` e `user_name` são um retrato do autor no momento da ação,
    não uma referência viva: alterações posteriores no perfil não mudam
    o histórico.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        verbose_name='ID'
    )

    created_at = models.DateTimeField(
        default=timezone.now,
        editable=False,
        db_index=True,
        verbose_name='Data'
    )

    user_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        verbose_name='ID do Usuário'
    )

    user_name = models.CharField(
        max_length=255,
        verbose_name='Usuário',
        help_text='Nome do autor no momento da ação'
    )

    action = models.CharField(
        max_length=20,
        choices=AuditAction.choices,
        verbose_name='Ação'
    )

    entity_type = models.CharField(
        max_length=20,
        choices=AuditEntityType.choices,
        db_index=True,
        verbose_name='Entidade'
    )

    entity_id = models.CharField(
        max_length=64,
        db_index=True,
        verbose_name='ID da Entidade'
    )

    entity_description = models.CharField(
        max_length=500,
        blank=True,
        verbose_name='Descrição'
    )

    old_values = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder, verbose_name='Valores Anteriores')
    new_values = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder, verbose_name='Novos Valores')
    metadata = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder, verbose_name='Metadados')

    objects = AuditLogQuerySet.as_manager()

    class Meta:
        verbose_name = 'Registro de Auditoria'
        verbose_name_plural = 'Registros de Auditoria'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['entity_type', 'entity_id'], name='audit_entity_idx'),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError(IMMUTABLE_MESSAGE)
        kwargs['force_insert'] = True
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(IMMUTABLE_MESSAGE)

    def __str__(self) -> str:
        return f"{self.get_action_display()} {self.get_entity_type_display()} {self.entity_id} por {self.user_name}"
