"""
Configuração do Django Admin para o sistema Rereports.

A trilha de auditoria é somente leitura: não é possível incluir, alterar
ou excluir registros pelo Admin.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from core.models import (
    Anexo, AuditLogEntry, CalendarioPeriodo, ColaboradorElegivel, EventoPida, Fechamento,
    Lancamento, TipoDespesa, User, UserRole,
)


class UserRoleInline(admin.TabularInline):
    model = UserRole
    extra = 0


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin do usuário com as roles em linha."""

    list_display = ['email', 'nome', 'is_active', 'is_staff', 'created_at']
    search_fields = ['email', 'nome']
    ordering = ['email']
    readonly_fields = ['id', 'created_at', 'updated_at', 'last_login', 'date_joined']
    inlines = [UserRoleInline]

    fieldsets = (
        ('Informações Básicas', {'fields': ('id', 'email', 'nome', 'password')}),
        ('Permissões', {'fields': ('is_active', 'is_staff', 'is_superuser')}),
        ('Datas', {'fields': ('last_login', 'date_joined', 'created_at', 'updated_at'), 'classes': ('collapse',)}),
    )
    add_fieldsets = (
        (None, {'classes': ('wide',), 'fields': ('email', 'nome', 'password1', 'password2')}),
    )


@admin.register(ColaboradorElegivel)
class ColaboradorElegivelAdmin(admin.ModelAdmin):
    list_display = ['matricula', 'nome', 'departamento', 'cesta_beneficios_teto', 'tem_pida', 'ativo']
    list_filter = ['ativo', 'tem_pida', 'departamento']
    search_fields = ['matricula', 'nome', 'email']
    raw_id_fields = ['user']


@admin.register(TipoDespesa)
class TipoDespesaAdmin(admin.ModelAdmin):
    list_display = ['nome', 'grupo', 'classificacao', 'valor_padrao_teto', 'ativo']
    list_filter = ['grupo', 'classificacao', 'ativo']
    search_fields = ['nome']


@admin.register(CalendarioPeriodo)
class CalendarioPeriodoAdmin(admin.ModelAdmin):
    list_display = ['periodo', 'data_inicio', 'data_final', 'abre_lancamento', 'fecha_lancamento', 'status']
    list_filter = ['status']
    readonly_fields = ['status', 'created_at', 'updated_at']


class AnexoInline(admin.TabularInline):
    model = Anexo
    extra = 0
    readonly_fields = ['nome_arquivo', 'tipo_arquivo', 'tamanho', 'storage_path', 'hash_comprovante', 'created_at']
    can_delete = False


@admin.register(Lancamento)
class LancamentoAdmin(admin.ModelAdmin):
    """
    Consulta de lançamentos.

    Status e valores só mudam pelos services (auditados), então ficam
    somente leitura aqui.
    """

    list_display = ['colaborador', 'tipo_despesa', 'periodo', 'valor_lancado', 'valor_considerado', 'status', 'created_at']
    list_filter = ['status', 'periodo', 'tipo_despesa__grupo']
    search_fields = ['colaborador__nome', 'colaborador__matricula', 'descricao_fato_gerador']
    readonly_fields = [
        'colaborador', 'periodo', 'tipo_despesa', 'origem', 'valor_lancado', 'valor_considerado',
        'valor_nao_considerado', 'descricao_fato_gerador', 'numero_documento', 'parcelamento_ativo',
        'parcelamento_valor_total', 'parcelamento_numero_parcela', 'parcelamento_total_parcelas',
        'lancamento_origem', 'status', 'motivo_invalidacao', 'version',
        'validado_por', 'validado_em', 'fechamento', 'created_at', 'updated_at',
    ]
    inlines = [AnexoInline]

    def has_add_permission(self, request):
        return False


@admin.register(Fechamento)
class FechamentoAdmin(admin.ModelAdmin):
    list_display = ['periodo', 'status', 'total_colaboradores', 'total_eventos', 'valor_total', 'created_at']
    list_filter = ['status']
    readonly_fields = [f.name for f in Fechamento._meta.fields]

    def has_add_permission(self, request):
        return False


@admin.register(EventoPida)
class EventoPidaAdmin(admin.ModelAdmin):
    list_display = ['colaborador', 'periodo', 'valor_base_pida', 'valor_diferenca_cesta', 'valor_total_pida']
    list_filter = ['periodo']
    search_fields = ['colaborador__nome', 'colaborador__matricula']
    readonly_fields = [f.name for f in EventoPida._meta.fields]

    def has_add_permission(self, request):
        return False


@admin.register(AuditLogEntry)
class AuditLogEntryAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'user_name', 'action', 'entity_type', 'entity_id', 'entity_description']
    list_filter = ['action', 'entity_type']
    search_fields = ['user_name', 'entity_id', 'entity_description']
    date_hierarchy = 'created_at'
    readonly_fields = [f.name for f in AuditLogEntry._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
