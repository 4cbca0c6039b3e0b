"""
Modelos do ciclo de vida dos lançamentos de reembolso.

Implementa:
- TipoDespesa: categorias de despesa e origens permitidas
- Lancamento: a despesa enviada pelo colaborador e sua máquina de status
- Anexo: metadados dos comprovantes (o arquivo fica no storage externo)
- Fechamento e EventoPida: resultado do fechamento para a folha

Fluxo de status:
    enviado -> em_analise -> valido
    enviado -> invalido
    em_analise -> invalido
"""

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import MinValueValidator
from django.db import models

from core.models.base import TimestampedModel


class ClassificacaoDespesa(models.TextChoices):
    """Classificação do tipo de despesa."""
    FIXO = 'fixo', 'Fixo'
    VARIAVEL = 'variavel', 'Variável'


class Origem(models.TextChoices):
    """Beneficiário da despesa."""
    PROPRIO = 'proprio', 'Próprio'
    CONJUGE = 'conjuge', 'Cônjuge'
    FILHOS = 'filhos', 'Filhos'


class LancamentoStatus(models.TextChoices):
    """Status do lançamento."""
    ENVIADO = 'enviado', 'Enviado'
    EM_ANALISE = 'em_analise', 'Em Análise'
    VALIDO = 'valido', 'Válido'
    INVALIDO = 'invalido', 'Inválido'


class TipoDespesa(TimestampedModel):
    """
    Tipo de despesa reembolsável.

    O grupo define o escopo do teto: lançamentos do mesmo colaborador,
    período e grupo disputam o mesmo saldo.
    """

    nome = models.CharField(
        max_length=255,
        unique=True,
        verbose_name='Nome'
    )

    grupo = models.CharField(
        max_length=120,
        db_index=True,
        verbose_name='Grupo',
        help_text='Grupo de teto (ex: Cesta de Benefícios)'
    )

    classificacao = models.CharField(
        max_length=10,
        choices=ClassificacaoDespesa.choices,
        default=ClassificacaoDespesa.VARIAVEL,
        verbose_name='Classificação'
    )

    valor_padrao_teto = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0.00'))],
        verbose_name='Teto Padrão',
        help_text='Teto usado quando o colaborador não possui teto próprio'
    )

    origem_permitida = models.JSONField(
        default=list,
        blank=True,
        verbose_name='Origens Permitidas',
        help_text='Lista de origens aceitas (vazia aceita todas)'
    )

    ativo = models.BooleanField(
        default=True,
        verbose_name='Ativo'
    )

    class Meta:
        verbose_name = 'Tipo de Despesa'
        verbose_name_plural = 'Tipos de Despesa'
        ordering = ['grupo', 'nome']

    def clean(self):
        super().clean()
        invalidas = [o for o in (self.origem_permitida or []) if o not in Origem.values]
        if invalidas:
            raise ValidationError({
                'origem_permitida': f"Origens inválidas: {', '.join(map(str, invalidas))}"
            })

    def permite_origem(self, origem: str) -> bool:
        return not self.origem_permitida or origem in self.origem_permitida

    def __str__(self) -> str:
        return f"{self.nome} [{self.grupo}]"


class Lancamento(TimestampedModel):
    """
    Lançamento de despesa enviado por um colaborador.

    Invariantes:
    - valor_considerado + valor_nao_considerado == valor_lancado quando o teto
      já foi aplicado
    - status invalido exige motivo_invalidacao
    - status valido exige teto aplicado

    O campo `version` é incrementado a cada escrita e serve de
    compare-and-set para transições concorrentes. Após a inclusão em um
    fechamento (fechamento preenchido) o lançamento não muda mais.
    """

    colaborador = models.ForeignKey(
        'core.ColaboradorElegivel',
        on_delete=models.PROTECT,
        related_name='lancamentos',
        verbose_name='Colaborador'
    )

    periodo = models.ForeignKey(
        'core.CalendarioPeriodo',
        on_delete=models.PROTECT,
        related_name='lancamentos',
        verbose_name='Período'
    )

    tipo_despesa = models.ForeignKey(
        TipoDespesa,
        on_delete=models.PROTECT,
        related_name='lancamentos',
        verbose_name='Tipo de Despesa'
    )

    origem = models.CharField(
        max_length=10,
        choices=Origem.choices,
        verbose_name='Origem'
    )

    valor_lancado = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))],
        verbose_name='Valor Lançado'
    )

    valor_considerado = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        verbose_name='Valor Considerado',
        help_text='Parcela do valor que cabe no teto'
    )

    valor_nao_considerado = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        verbose_name='Valor Não Considerado',
        help_text='Excedente acima do teto'
    )

    descricao_fato_gerador = models.TextField(
        verbose_name='Descrição do Fato Gerador'
    )

    numero_documento = models.CharField(
        max_length=100,
        blank=True,
        verbose_name='Número do Documento',
        help_text='Número da nota fiscal ou recibo'
    )

    # Parcelamento: a primeira parcela é a enviada; as seguintes são
    # criadas nos próximos períodos e apontam para ela
    parcelamento_ativo = models.BooleanField(
        default=False,
        verbose_name='Parcelado'
    )

    parcelamento_valor_total = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        verbose_name='Valor Total do Parcelamento'
    )

    parcelamento_numero_parcela = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        verbose_name='Número da Parcela'
    )

    parcelamento_total_parcelas = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        verbose_name='Total de Parcelas'
    )

    lancamento_origem = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='parcelas',
        verbose_name='Lançamento de Origem',
        help_text='Primeira parcela do parcelamento'
    )

    status = models.CharField(
        max_length=12,
        choices=LancamentoStatus.choices,
        default=LancamentoStatus.ENVIADO,
        db_index=True,
        verbose_name='Status'
    )

    motivo_invalidacao = models.TextField(
        blank=True,
        verbose_name='Motivo da Invalidação'
    )

    version = models.PositiveIntegerField(
        default=1,
        verbose_name='Versão',
        help_text='Contador de escrita usado no controle de concorrência'
    )

    validado_por = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='lancamentos_validados',
        verbose_name='Validado por'
    )

    validado_em = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name='Validado em'
    )

    fechamento = models.ForeignKey(
        'core.Fechamento',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='lancamentos',
        verbose_name='Fechamento'
    )

    class Meta:
        verbose_name = 'Lançamento'
        verbose_name_plural = 'Lançamentos'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['colaborador', 'periodo', 'status'], name='lancamento_colab_periodo_idx'),
            models.Index(fields=['periodo', 'status'], name='lancamento_periodo_status_idx'),
        ]

    def clean(self):
        super().clean()

        if self.status == LancamentoStatus.INVALIDO and not (self.motivo_invalidacao or '').strip():
            raise ValidationError({
                'motivo_invalidacao': 'Lançamentos inválidos exigem o motivo da invalidação.'
            })

        if self.status == LancamentoStatus.VALIDO and not self.ceiling_applied:
            raise ValidationError({
                'valor_considerado': 'Lançamentos válidos exigem o cálculo do teto.'
            })

        if self.ceiling_applied and (
            self.valor_considerado + self.valor_nao_considerado != self.valor_lancado
        ):
            raise ValidationError({
                'valor_considerado': 'Valor considerado + não considerado deve ser igual ao valor lançado.'
            })

        if self.parcelamento_ativo and not (
            self.parcelamento_total_parcelas
            and self.parcelamento_numero_parcela
            and 1 <= self.parcelamento_numero_parcela <= self.parcelamento_total_parcelas
        ):
            raise ValidationError({
                'parcelamento_numero_parcela': 'Parcela fora do total de parcelas.'
            })

    @property
    def ceiling_applied(self) -> bool:
        return self.valor_considerado is not None and self.valor_nao_considerado is not None

    @property
    def is_locked(self) -> bool:
        """Lançamentos incluídos em um fechamento não mudam mais."""
        return self.fechamento_id is not None

    def __str__(self) -> str:
        return f"{self.colaborador.nome} - {self.tipo_despesa.nome} ({self.get_status_display()})"


class Anexo(TimestampedModel):
    """
    Metadados de um comprovante anexado ao lançamento.

    O conteúdo do arquivo fica no storage externo; aqui guardamos apenas
    nome, tipo, tamanho, caminho e o hash SHA-256 usado para detectar
    comprovantes duplicados.
    """

    lancamento = models.ForeignKey(
        Lancamento,
        on_delete=models.CASCADE,
        related_name='anexos',
        verbose_name='Lançamento'
    )

    nome_arquivo = models.CharField(
        max_length=255,
        verbose_name='Nome do Arquivo'
    )

    tipo_arquivo = models.CharField(
        max_length=120,
        verbose_name='Tipo do Arquivo',
        help_text='MIME type do comprovante'
    )

    tamanho = models.PositiveBigIntegerField(
        verbose_name='Tamanho (bytes)'
    )

    storage_path = models.CharField(
        max_length=500,
        blank=True,
        verbose_name='Caminho no Storage'
    )

    hash_comprovante = models.CharField(
        max_length=64,
        db_index=True,
        verbose_name='Hash SHA-256'
    )

    class Meta:
        verbose_name = 'Anexo'
        verbose_name_plural = 'Anexos'
        ordering = ['created_at']

    def __str__(self) -> str:
        return self.nome_arquivo


class FechamentoStatus(models.TextChoices):
    """Resultado do processamento do fechamento."""
    SUCESSO = 'sucesso', 'Sucesso'
    ERRO = 'erro', 'Erro'


class Fechamento(TimestampedModel):
    """
    Fechamento de um período para a folha.

    Agrega os lançamentos válidos por colaborador. Os lançamentos
    vinculados ficam bloqueados para qualquer alteração.
    """

    periodo = models.ForeignKey(
        'core.CalendarioPeriodo',
        on_delete=models.PROTECT,
        related_name='fechamentos',
        verbose_name='Período'
    )

    processado_por = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='fechamentos',
        verbose_name='Processado por'
    )

    status = models.CharField(
        max_length=10,
        choices=FechamentoStatus.choices,
        default=FechamentoStatus.SUCESSO,
        verbose_name='Status'
    )

    total_colaboradores = models.PositiveIntegerField(default=0, verbose_name='Total de Colaboradores')
    total_eventos = models.PositiveIntegerField(default=0, verbose_name='Total de Eventos')

    valor_total = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal('0.00'),
        verbose_name='Valor Total'
    )

    detalhes = models.JSONField(
        default=dict,
        blank=True,
        encoder=DjangoJSONEncoder,
        verbose_name='Detalhes',
        help_text='Totais por colaborador'
    )

    class Meta:
        verbose_name = 'Fechamento'
        verbose_name_plural = 'Fechamentos'
        ordering = ['-created_at']

    def __str__(self) -> str:
        return f"Fechamento {self.periodo.periodo} ({self.get_status_display()})"


class EventoPida(TimestampedModel):
    """
    Evento de PIDA gerado no fechamento para a folha.

    valor_total_pida = valor_base_pida + valor_diferenca_cesta, onde a
    diferença é o saldo da Cesta de Benefícios não usado no período.
    """

    colaborador = models.ForeignKey(
        'core.ColaboradorElegivel',
        on_delete=models.PROTECT,
        related_name='eventos_pida',
        verbose_name='Colaborador'
    )

    periodo = models.ForeignKey(
        'core.CalendarioPeriodo',
        on_delete=models.PROTECT,
        related_name='eventos_pida',
        verbose_name='Período'
    )

    fechamento = models.ForeignKey(
        Fechamento,
        on_delete=models.PROTECT,
        related_name='eventos_pida',
        verbose_name='Fechamento'
    )

    valor_base_pida = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        verbose_name='Valor Base PIDA',
        help_text='Teto PIDA do colaborador'
    )

    valor_diferenca_cesta = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        verbose_name='Diferença da Cesta',
        help_text='Saldo não usado da Cesta de Benefícios'
    )

    valor_total_pida = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        verbose_name='Valor Total PIDA'
    )

    class Meta:
        verbose_name = 'Evento PIDA'
        verbose_name_plural = 'Eventos PIDA'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['fechamento', 'colaborador'], name='evento_pida_unico_por_fechamento'),
        ]

    def __str__(self) -> str:
        return f"PIDA {self.colaborador.nome} - {self.periodo.periodo}"
