"""
Calendário de períodos de lançamento.

Cada período tem duas janelas:
- data_inicio/data_final: competência das despesas
- abre_lancamento/fecha_lancamento: janela de envio e edição
"""

from django.core.exceptions import ValidationError
from django.core.validators import RegexValidator
from django.db import models

from core.models.base import TimestampedModel


class PeriodoStatus(models.TextChoices):
    """Status do período."""
    ABERTO = 'aberto', 'Aberto'
    FECHADO = 'fechado', 'Fechado'


periodo_label_validator = RegexValidator(
    regex=r'^(0[1-9]|1[0-2])/\d{4}$',
    message='O período deve estar no formato MM/AAAA.'
)


class CalendarioPeriodo(TimestampedModel):
    """
    Período de lançamento de despesas.

    Invariantes:
    - data_inicio <= data_final
    - abre_lancamento <= fecha_lancamento

    Um período passa de aberto para fechado apenas via fechamento bem
    sucedido e nunca é reaberto automaticamente.
    """

    periodo = models.CharField(
        max_length=7,
        unique=True,
        validators=[periodo_label_validator],
        verbose_name='Período',
        help_text='Rótulo do período no formato MM/AAAA'
    )

    data_inicio = models.DateField(
        verbose_name='Data Início',
        help_text='Início da competência'
    )

    data_final = models.DateField(
        verbose_name='Data Final',
        help_text='Fim da competência (inclusive)'
    )

    abre_lancamento = models.DateField(
        verbose_name='Abertura de Lançamentos'
    )

    fecha_lancamento = models.DateField(
        verbose_name='Fechamento de Lançamentos',
        help_text='Último dia (inclusive) para enviar ou editar lançamentos'
    )

    status = models.CharField(
        max_length=10,
        choices=PeriodoStatus.choices,
        default=PeriodoStatus.ABERTO,
        db_index=True,
        verbose_name='Status'
    )

    class Meta:
        verbose_name = 'Período'
        verbose_name_plural = 'Períodos'
        ordering = ['-data_inicio', '-created_at']

    def clean(self):
        """
        Valida a ordem das datas das duas janelas.
        """
        super().clean()

        errors = {}
        if self.data_inicio and self.data_final and self.data_inicio > self.data_final:
            errors['data_final'] = 'A data final deve ser igual ou posterior à data de início.'
        if (
            self.abre_lancamento and self.fecha_lancamento
            and self.abre_lancamento > self.fecha_lancamento
        ):
            errors['fecha_lancamento'] = 'O fechamento de lançamentos deve ser igual ou posterior à abertura.'
        if errors:
            raise ValidationError(errors)

    @property
    def is_open(self) -> bool:
        return self.status == PeriodoStatus.ABERTO

    def __str__(self) -> str:
        return f"{self.periodo} ({self.get_status_display()})"
