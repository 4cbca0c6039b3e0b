"""
Classe base para os modelos do Rereports.

Implementa TimestampedModel com UUID como chave primária e timestamps
automáticos de criação e atualização.
"""

import uuid

from django.db import models


class TimestampedModel(models.Model):
    """
    Classe base abstrata para os modelos do domínio.

    Características:
    - UUID como chave primária (não sequencial)
    - Timestamps automáticos (created_at, updated_at)

    Uso:
        class MeuModelo(TimestampedModel):
            nome = models.CharField(max_length=100)
            ...
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        verbose_name='ID',
        help_text='Identificador único (UUID) do registro'
    )

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        verbose_name='Data de Criação',
        help_text='Data e hora em que o registro foi criado'
    )

    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name='Data de Atualização',
        help_text='Data e hora da última atualização do registro'
    )

    class Meta:
        abstract = True
        ordering = ['-created_at']

    def __str__(self) -> str:
        """Representação string do objeto (deve ser sobrescrito nos modelos filhos)."""
        return f"{self.__class__.__name__} ({self.id})"
