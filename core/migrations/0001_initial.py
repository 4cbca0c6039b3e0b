import uuid
from decimal import Decimal

import django.contrib.auth.validators
import django.core.serializers.json
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import core.models.user


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.', max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='username')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Identificador único (UUID) do usuário', primary_key=True, serialize=False, verbose_name='ID')),
                ('email', models.EmailField(db_index=True, help_text='Email do usuário (usado como username)', max_length=254, unique=True, verbose_name='Email')),
                ('nome', models.CharField(blank=True, help_text='Nome de exibição escolhido pelo usuário', max_length=255, verbose_name='Nome')),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Data e hora em que o usuário foi criado', verbose_name='Data de Criação')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Data e hora da última atualização do usuário', verbose_name='Data de Atualização')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'Usuário',
                'verbose_name_plural': 'Usuários',
                'ordering': ['email'],
            },
            managers=[
                ('objects', core.models.user.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='UserRole',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False, verbose_name='ID')),
                ('role', models.CharField(choices=[('COLABORADOR', 'Colaborador'), ('RH', 'Recursos Humanos'), ('FINANCEIRO', 'Financeiro')], max_length=20, verbose_name='Role')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Data de Criação')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='role_set', to=settings.AUTH_USER_MODEL, verbose_name='Usuário')),
            ],
            options={
                'verbose_name': 'Role do Usuário',
                'verbose_name_plural': 'Roles dos Usuários',
                'constraints': [models.UniqueConstraint(fields=('user', 'role'), name='unique_role_per_user')],
            },
        ),
        migrations.CreateModel(
            name='ColaboradorElegivel',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Identificador único (UUID) do registro', primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Data e hora em que o registro foi criado', verbose_name='Data de Criação')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Data e hora da última atualização do registro', verbose_name='Data de Atualização')),
                ('matricula', models.CharField(help_text='Matrícula do colaborador na folha', max_length=50, unique=True, verbose_name='Matrícula')),
                ('nome', models.CharField(db_index=True, help_text='Nome oficial cadastrado pelo RH', max_length=255, verbose_name='Nome')),
                ('email', models.EmailField(help_text='Email corporativo do colaborador', max_length=254, verbose_name='Email')),
                ('departamento', models.CharField(blank=True, max_length=120, verbose_name='Departamento')),
                ('cesta_beneficios_teto', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Valor máximo considerado por período na Cesta de Benefícios', max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))], verbose_name='Teto Cesta de Benefícios')),
                ('tem_pida', models.BooleanField(default=False, verbose_name='Tem PIDA')),
                ('pida_teto', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))], verbose_name='Teto PIDA')),
                ('ativo', models.BooleanField(default=True, help_text='Se o colaborador pode enviar novos lançamentos', verbose_name='Ativo')),
                ('user', models.OneToOneField(blank=True, help_text='Conta de acesso vinculada ao colaborador', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='colaborador', to=settings.AUTH_USER_MODEL, verbose_name='Usuário')),
            ],
            options={
                'verbose_name': 'Colaborador Elegível',
                'verbose_name_plural': 'Colaboradores Elegíveis',
                'ordering': ['nome'],
            },
        ),
        migrations.CreateModel(
            name='CalendarioPeriodo',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Identificador único (UUID) do registro', primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Data e hora em que o registro foi criado', verbose_name='Data de Criação')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Data e hora da última atualização do registro', verbose_name='Data de Atualização')),
                ('periodo', models.CharField(help_text='Rótulo do período no formato MM/AAAA', max_length=7, unique=True, validators=[django.core.validators.RegexValidator(message='O período deve estar no formato MM/AAAA.', regex='^(0[1-9]|1[0-2])/\\d{4}$')], verbose_name='Período')),
                ('data_inicio', models.DateField(help_text='Início da competência', verbose_name='Data Início')),
                ('data_final', models.DateField(help_text='Fim da competência (inclusive)', verbose_name='Data Final')),
                ('abre_lancamento', models.DateField(verbose_name='Abertura de Lançamentos')),
                ('fecha_lancamento', models.DateField(help_text='Último dia (inclusive) para enviar ou editar lançamentos', verbose_name='Fechamento de Lançamentos')),
                ('status', models.CharField(choices=[('aberto', 'Aberto'), ('fechado', 'Fechado')], db_index=True, default='aberto', max_length=10, verbose_name='Status')),
            ],
            options={
                'verbose_name': 'Período',
                'verbose_name_plural': 'Períodos',
                'ordering': ['-data_inicio', '-created_at'],
            },
        ),
        migrations.CreateModel(
            name='TipoDespesa',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Identificador único (UUID) do registro', primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Data e hora em que o registro foi criado', verbose_name='Data de Criação')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Data e hora da última atualização do registro', verbose_name='Data de Atualização')),
                ('nome', models.CharField(max_length=255, unique=True, verbose_name='Nome')),
                ('grupo', models.CharField(db_index=True, help_text='Grupo de teto (ex: Cesta de Benefícios)', max_length=120, verbose_name='Grupo')),
                ('classificacao', models.CharField(choices=[('fixo', 'Fixo'), ('variavel', 'Variável')], default='variavel', max_length=10, verbose_name='Classificação')),
                ('valor_padrao_teto', models.DecimalField(blank=True, decimal_places=2, help_text='Teto usado quando o colaborador não possui teto próprio', max_digits=12, null=True, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))], verbose_name='Teto Padrão')),
                ('origem_permitida', models.JSONField(blank=True, default=list, help_text='Lista de origens aceitas (vazia aceita todas)', verbose_name='Origens Permitidas')),
                ('ativo', models.BooleanField(default=True, verbose_name='Ativo')),
            ],
            options={
                'verbose_name': 'Tipo de Despesa',
                'verbose_name_plural': 'Tipos de Despesa',
                'ordering': ['grupo', 'nome'],
            },
        ),
        migrations.CreateModel(
            name='Fechamento',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Identificador único (UUID) do registro', primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Data e hora em que o registro foi criado', verbose_name='Data de Criação')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Data e hora da última atualização do registro', verbose_name='Data de Atualização')),
                ('status', models.CharField(choices=[('sucesso', 'Sucesso'), ('erro', 'Erro')], default='sucesso', max_length=10, verbose_name='Status')),
                ('total_colaboradores', models.PositiveIntegerField(default=0, verbose_name='Total de Colaboradores')),
                ('total_eventos', models.PositiveIntegerField(default=0, verbose_name='Total de Eventos')),
                ('valor_total', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14, verbose_name='Valor Total')),
                ('detalhes', models.JSONField(blank=True, default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder, help_text='Totais por colaborador', verbose_name='Detalhes')),
                ('periodo', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='fechamentos', to='core.calendarioperiodo', verbose_name='Período')),
                ('processado_por', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='fechamentos', to=settings.AUTH_USER_MODEL, verbose_name='Processado por')),
            ],
            options={
                'verbose_name': 'Fechamento',
                'verbose_name_plural': 'Fechamentos',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Lancamento',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Identificador único (UUID) do registro', primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Data e hora em que o registro foi criado', verbose_name='Data de Criação')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Data e hora da última atualização do registro', verbose_name='Data de Atualização')),
                ('origem', models.CharField(choices=[('proprio', 'Próprio'), ('conjuge', 'Cônjuge'), ('filhos', 'Filhos')], max_length=10, verbose_name='Origem')),
                ('valor_lancado', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.01'))], verbose_name='Valor Lançado')),
                ('valor_considerado', models.DecimalField(blank=True, decimal_places=2, help_text='Parcela do valor que cabe no teto', max_digits=12, null=True, verbose_name='Valor Considerado')),
                ('valor_nao_considerado', models.DecimalField(blank=True, decimal_places=2, help_text='Excedente acima do teto', max_digits=12, null=True, verbose_name='Valor Não Considerado')),
                ('descricao_fato_gerador', models.TextField(verbose_name='Descrição do Fato Gerador')),
                ('status', models.CharField(choices=[('enviado', 'Enviado'), ('em_analise', 'Em Análise'), ('valido', 'Válido'), ('invalido', 'Inválido')], db_index=True, default='enviado', max_length=12, verbose_name='Status')),
                ('motivo_invalidacao', models.TextField(blank=True, verbose_name='Motivo da Invalidação')),
                ('version', models.PositiveIntegerField(default=1, help_text='Contador de escrita usado no controle de concorrência', verbose_name='Versão')),
                ('validado_em', models.DateTimeField(blank=True, null=True, verbose_name='Validado em')),
                ('colaborador', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='lancamentos', to='core.colaboradorelegivel', verbose_name='Colaborador')),
                ('fechamento', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='lancamentos', to='core.fechamento', verbose_name='Fechamento')),
                ('periodo', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='lancamentos', to='core.calendarioperiodo', verbose_name='Período')),
                ('tipo_despesa', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='lancamentos', to='core.tipodespesa', verbose_name='Tipo de Despesa')),
                ('validado_por', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='lancamentos_validados', to=settings.AUTH_USER_MODEL, verbose_name='Validado por')),
            ],
            options={
                'verbose_name': 'Lançamento',
                'verbose_name_plural': 'Lançamentos',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['colaborador', 'periodo', 'status'], name='lancamento_colab_periodo_idx'),
                    models.Index(fields=['periodo', 'status'], name='lancamento_periodo_status_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Anexo',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Identificador único (UUID) do registro', primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Data e hora em que o registro foi criado', verbose_name='Data de Criação')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Data e hora da última atualização do registro', verbose_name='Data de Atualização')),
                ('nome_arquivo', models.CharField(max_length=255, verbose_name='Nome do Arquivo')),
                ('tipo_arquivo', models.CharField(help_text='MIME type do comprovante', max_length=120, verbose_name='Tipo do Arquivo')),
                ('tamanho', models.PositiveBigIntegerField(verbose_name='Tamanho (bytes)')),
                ('storage_path', models.CharField(blank=True, max_length=500, verbose_name='Caminho no Storage')),
                ('hash_comprovante', models.CharField(db_index=True, max_length=64, verbose_name='Hash SHA-256')),
                ('lancamento', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='anexos', to='core.lancamento', verbose_name='Lançamento')),
            ],
            options={
                'verbose_name': 'Anexo',
                'verbose_name_plural': 'Anexos',
                'ordering': ['created_at'],
            },
        ),
        migrations.CreateModel(
            name='AuditLogEntry',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now, editable=False, verbose_name='Data')),
                ('user_id', models.UUIDField(blank=True, db_index=True, null=True, verbose_name='ID do Usuário')),
                ('user_name', models.CharField(help_text='Nome do autor no momento da ação', max_length=255, verbose_name='Usuário')),
                ('action', models.CharField(choices=[('criar', 'Criação'), ('atualizar', 'Atualização'), ('excluir', 'Exclusão'), ('aprovar', 'Aprovação'), ('rejeitar', 'Rejeição'), ('iniciar_analise', 'Início de Análise')], max_length=20, verbose_name='Ação')),
                ('entity_type', models.CharField(choices=[('lancamento', 'Lançamento'), ('colaborador', 'Colaborador'), ('tipo_despesa', 'Tipo de Despesa'), ('periodo', 'Período'), ('evento_folha', 'Evento de Folha')], db_index=True, max_length=20, verbose_name='Entidade')),
                ('entity_id', models.CharField(db_index=True, max_length=64, verbose_name='ID da Entidade')),
                ('entity_description', models.CharField(blank=True, max_length=500, verbose_name='Descrição')),
                ('old_values', models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True, verbose_name='Valores Anteriores')),
                ('new_values', models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True, verbose_name='Novos Valores')),
                ('metadata', models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True, verbose_name='Metadados')),
            ],
            options={
                'verbose_name': 'Registro de Auditoria',
                'verbose_name_plural': 'Registros de Auditoria',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['entity_type', 'entity_id'], name='audit_entity_idx'),
                ],
            },
        ),
    ]
