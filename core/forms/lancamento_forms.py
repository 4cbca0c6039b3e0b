"""
Formulários de entrada da API.

Validam e convertem os dados recebidos antes de chamar os services.
As regras de negócio (roles, janela, tabela de status) ficam nos services.
"""

from decimal import Decimal

from django import forms

from core.models import AuditEntityType, CalendarioPeriodo, LancamentoStatus, Origem
from core.services.audit import AuditFilter


class LancamentoForm(forms.Form):
    """Envio de um novo lançamento."""

    colaborador_id = forms.UUIDField(label='Colaborador')
    periodo_id = forms.UUIDField(label='Período')
    tipo_despesa_id = forms.UUIDField(label='Tipo de Despesa')
    origem = forms.ChoiceField(label='Origem', choices=Origem.choices)
    valor_lancado = forms.DecimalField(label='Valor Lançado', max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    descricao_fato_gerador = forms.CharField(label='Descrição do Fato Gerador', max_length=2000)
    numero_documento = forms.CharField(label='Número do Documento', max_length=100, required=False)
    parcelamento_total_parcelas = forms.IntegerField(label='Total de Parcelas', min_value=1, required=False)
    parcelamento_valor_total = forms.DecimalField(
        label='Valor Total do Parcelamento', max_digits=12, decimal_places=2, min_value=Decimal('0.01'), required=False
    )


class LancamentoUpdateForm(forms.Form):
    """Alteração parcial de um lançamento enviado."""

    tipo_despesa_id = forms.UUIDField(label='Tipo de Despesa', required=False)
    origem = forms.ChoiceField(label='Origem', choices=Origem.choices, required=False)
    valor_lancado = forms.DecimalField(
        label='Valor Lançado', max_digits=12, decimal_places=2, min_value=Decimal('0.01'), required=False
    )
    descricao_fato_gerador = forms.CharField(label='Descrição do Fato Gerador', max_length=2000, required=False)
    numero_documento = forms.CharField(label='Número do Documento', max_length=100, required=False)
    version = forms.IntegerField(label='Versão', min_value=1, required=False)

    def changes(self) -> dict:
        return {
            name: value
            for name, value in self.cleaned_data.items()
            if name != 'version' and value not in (None, '')
        }


class TransitionForm(forms.Form):
    """Transição de status solicitada por um revisor."""

    status = forms.ChoiceField(label='Novo Status', choices=LancamentoStatus.choices)
    motivo_invalidacao = forms.CharField(label='Motivo da Invalidação', max_length=2000, required=False)
    version = forms.IntegerField(label='Versão', min_value=1, required=False)

    def clean(self):
        cleaned = super().clean()
        if cleaned.get('status') == LancamentoStatus.INVALIDO and not (cleaned.get('motivo_invalidacao') or '').strip():
            self.add_error('motivo_invalidacao', 'Informe o motivo da invalidação.')
        return cleaned


class BatchForm(forms.Form):
    """Aprovação ou rejeição em lote."""

    motivo_invalidacao = forms.CharField(label='Motivo da Invalidação', max_length=2000, required=False)

    def __init__(self, data=None, *args, **kwargs):
        super().__init__(data, *args, **kwargs)
        self._raw_ids = (data or {}).get('ids') if hasattr(data, 'get') else None

    def clean(self):
        cleaned = super().clean()
        ids = self._raw_ids
        if not isinstance(ids, (list, tuple)) or not ids:
            raise forms.ValidationError('Informe a lista de ids.')
        field = forms.UUIDField()
        cleaned['ids'] = [field.clean(value) for value in ids]
        return cleaned


class AuditFilterForm(forms.Form):
    """Filtro da consulta de auditoria (todos os campos opcionais)."""

    entity_type = forms.ChoiceField(label='Entidade', choices=AuditEntityType.choices, required=False)
    entity_id = forms.CharField(label='ID da Entidade', max_length=64, required=False)
    user_id = forms.UUIDField(label='Usuário', required=False)
    start_date = forms.DateTimeField(label='Data Inicial', required=False)
    end_date = forms.DateTimeField(label='Data Final', required=False)
    limit = forms.IntegerField(label='Limite', min_value=1, max_value=1000, required=False)
    offset = forms.IntegerField(label='Deslocamento', min_value=0, required=False)

    def clean(self):
        cleaned = super().clean()
        start, end = cleaned.get('start_date'), cleaned.get('end_date')
        if start and end and start > end:
            self.add_error('end_date', 'A data final deve ser posterior à inicial.')
        return cleaned

    def to_filter(self) -> AuditFilter:
        data = self.cleaned_data
        return AuditFilter(
            entity_type=data.get('entity_type') or None,
            entity_id=data.get('entity_id') or None,
            user_id=data.get('user_id'),
            start_date=data.get('start_date'),
            end_date=data.get('end_date'),
            limit=data.get('limit'),
            offset=data.get('offset') or 0,
        )


class PeriodoForm(forms.ModelForm):
    """Cadastro de período pelo RH."""

    class Meta:
        model = CalendarioPeriodo
        fields = ['periodo', 'data_inicio', 'data_final', 'abre_lancamento', 'fecha_lancamento']
        labels = {
            'periodo': 'Período (MM/AAAA)',
            'data_inicio': 'Início da Competência',
            'data_final': 'Fim da Competência',
            'abre_lancamento': 'Abertura de Lançamentos',
            'fecha_lancamento': 'Fechamento de Lançamentos',
        }


class AnexoForm(forms.Form):
    """Metadados de um comprovante já enviado ao storage."""

    nome_arquivo = forms.CharField(label='Nome do Arquivo', max_length=255)
    tipo_arquivo = forms.CharField(label='Tipo do Arquivo', max_length=120)
    tamanho = forms.IntegerField(label='Tamanho (bytes)', min_value=0)
    hash_comprovante = forms.RegexField(label='Hash SHA-256', regex=r'^[0-9a-fA-F]{64}$')
    storage_path = forms.CharField(label='Caminho no Storage', max_length=500, required=False)

    def clean_hash_comprovante(self):
        return self.cleaned_data['hash_comprovante'].lower()
