import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('core', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='lancamento',
            name='numero_documento',
            field=models.CharField(blank=True, help_text='Número da nota fiscal ou recibo', max_length=100, verbose_name='Número do Documento'),
        ),
        migrations.AddField(
            model_name='lancamento',
            name='parcelamento_ativo',
            field=models.BooleanField(default=False, verbose_name='Parcelado'),
        ),
        migrations.AddField(
            model_name='lancamento',
            name='parcelamento_valor_total',
            field=models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, verbose_name='Valor Total do Parcelamento'),
        ),
        migrations.AddField(
            model_name='lancamento',
            name='parcelamento_numero_parcela',
            field=models.PositiveSmallIntegerField(blank=True, null=True, verbose_name='Número da Parcela'),
        ),
        migrations.AddField(
            model_name='lancamento',
            name='parcelamento_total_parcelas',
            field=models.PositiveSmallIntegerField(blank=True, null=True, verbose_name='Total de Parcelas'),
        ),
        migrations.AddField(
            model_name='lancamento',
            name='lancamento_origem',
            field=models.ForeignKey(blank=True, help_text='Primeira parcela do parcelamento', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='parcelas', to='core.lancamento', verbose_name='Lançamento de Origem'),
        ),
        migrations.CreateModel(
            name='EventoPida',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Identificador único (UUID) do registro', primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Data e hora em que o registro foi criado', verbose_name='Data de Criação')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Data e hora da última atualização do registro', verbose_name='Data de Atualização')),
                ('valor_base_pida', models.DecimalField(decimal_places=2, help_text='Teto PIDA do colaborador', max_digits=12, verbose_name='Valor Base PIDA')),
                ('valor_diferenca_cesta', models.DecimalField(decimal_places=2, help_text='Saldo não usado da Cesta de Benefícios', max_digits=12, verbose_name='Diferença da Cesta')),
                ('valor_total_pida', models.DecimalField(decimal_places=2, max_digits=12, verbose_name='Valor Total PIDA')),
                ('colaborador', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='eventos_pida', to='core.colaboradorelegivel', verbose_name='Colaborador')),
                ('fechamento', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='eventos_pida', to='core.fechamento', verbose_name='Fechamento')),
                ('periodo', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='eventos_pida', to='core.calendarioperiodo', verbose_name='Período')),
            ],
            options={
                'verbose_name': 'Evento PIDA',
                'verbose_name_plural': 'Eventos PIDA',
                'ordering': ['-created_at'],
                'constraints': [
                    models.UniqueConstraint(fields=('fechamento', 'colaborador'), name='evento_pida_unico_por_fechamento'),
                ],
            },
        ),
    ]
