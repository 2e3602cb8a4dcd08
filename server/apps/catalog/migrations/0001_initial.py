import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='CatalogEntry',
            fields=[
                ('id', models.CharField(editable=False, max_length=32, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('is_folder', models.BooleanField(default=False)),
                ('size_bytes', models.BigIntegerField(default=0, help_text='File size in bytes (always 0 for folders)')),
                ('mime_type', models.CharField(blank=True, default='', max_length=255)),
                ('tags', models.JSONField(blank=True, default=list)),
                ('is_starred', models.BooleanField(default=False)),
                ('is_shared', models.BooleanField(default=False)),
                ('content', models.FileField(blank=True, help_text='Storage key: {user_id}/{entry_id}/filename', max_length=1024, upload_to='')),
                ('checksum_sha256', models.CharField(blank=True, default='', max_length=64)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('modified_at', models.DateTimeField()),
                ('parent', models.ForeignKey(blank=True, help_text='Containing folder; empty for top-level entries', null=True, on_delete=django.db.models.deletion.CASCADE, related_name='children', to='catalog.catalogentry')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='catalog_entries', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Catalog entry',
                'verbose_name_plural': 'Catalog entries',
                'ordering': ['created_at'],
                'indexes': [models.Index(fields=['user', 'parent'], name='catalog_user_parent_idx')],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('size_bytes__gte', 0)), name='catalog_size_non_negative'),
                    models.CheckConstraint(condition=models.Q(('is_folder', False), ('size_bytes', 0), _connector='OR'), name='catalog_folder_size_zero'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StorageQuota',
            fields=[
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name='storage_quota', serialize=False, to=settings.AUTH_USER_MODEL)),
                ('limit_bytes', models.BigIntegerField(default=10737418240, help_text='Storage limit in bytes')),
                ('used_bytes', models.BigIntegerField(default=0, help_text='Bytes currently stored')),
            ],
            options={
                'verbose_name': 'Storage quota',
                'verbose_name_plural': 'Storage quotas',
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('limit_bytes__gte', 0)), name='quota_limit_non_negative'),
                    models.CheckConstraint(condition=models.Q(('used_bytes__gte', 0)), name='quota_used_non_negative'),
                ],
            },
        ),
    ]
