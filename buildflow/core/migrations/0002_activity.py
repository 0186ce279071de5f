# Generated manually

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('core', '0001_initial'),
        ('pipeline', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Activity',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(choices=[('card_created', 'Card Created'), ('card_updated', 'Card Updated'), ('card_moved', 'Card Moved'), ('card_deleted', 'Card Deleted'), ('stage_created', 'Stage Created'), ('stage_updated', 'Stage Updated'), ('stage_deleted', 'Stage Deleted'), ('stages_reordered', 'Stages Reordered'), ('material_purchase', 'Material Purchased'), ('material_usage', 'Material Used'), ('low_stock_alert', 'Low Stock Alert')], max_length=50)),
                ('description', models.TextField()),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='activities', to='core.company')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='activities', to=settings.AUTH_USER_MODEL)),
                ('card', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='activities', to='pipeline.card')),
            ],
            options={
                'db_table': 'activities',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['company', '-created_at'], name='idx_activity_company_created'),
                    models.Index(fields=['type'], name='idx_activity_type'),
                ],
            },
        ),
    ]
