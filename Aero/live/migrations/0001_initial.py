import uuid

import django.core.validators
import django.db.models.deletion
import live.tokens
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('aero', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='LiveLocation',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('latitude', models.FloatField(validators=[django.core.validators.MinValueValidator(-90.0), django.core.validators.MaxValueValidator(90.0)])),
                ('longitude', models.FloatField(validators=[django.core.validators.MinValueValidator(-180.0), django.core.validators.MaxValueValidator(180.0)])),
                ('accuracy', models.FloatField(blank=True, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('triggered_by', models.CharField(choices=[('manual', 'Manual'), ('sos', 'SOS'), ('voice', 'Voice')], default='manual', max_length=10)),
                ('expires_at', models.DateTimeField(blank=True, null=True)),
                ('end_reason', models.CharField(blank=True, choices=[('ended', 'Stopped'), ('expired', 'Expired')], default='', max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='live_locations', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'live_locations',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['user', 'is_active', 'created_at'], name='live_user_active_idx'),
                    models.Index(fields=['is_active', 'expires_at'], name='live_active_expires_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('is_active', True)), fields=('user',), name='uniq_active_live_location_per_user'),
                ],
            },
        ),
        migrations.CreateModel(
            name='LocationShare',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('share_token', models.CharField(db_index=True, default=live.tokens.generate_share_token, editable=False, max_length=64, unique=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('live_location', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='shares', to='live.livelocation')),
                ('recipient_contact', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='location_shares', to='aero.contact')),
                ('sharer_user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='location_shares', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'location_shares',
                'ordering': ['created_at'],
                'constraints': [
                    models.UniqueConstraint(fields=('live_location', 'recipient_contact'), name='uniq_share_session_recipient'),
                ],
            },
        ),
    ]
