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
            name='LastLogin',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('auth_type', models.CharField(max_length=25, verbose_name='認証方式')),
                ('ip', models.CharField(blank=True, max_length=45, verbose_name='IPアドレス')),
                ('user_agent', models.CharField(blank=True, max_length=255, verbose_name='ユーザーエージェント')),
                ('date_creation', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='ログイン日時')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='last_logins', to=settings.AUTH_USER_MODEL, verbose_name='ユーザー')),
            ],
            options={
                'verbose_name': 'ログイン履歴',
                'verbose_name_plural': 'ログイン履歴',
                'ordering': ['-date_creation', '-id'],
            },
        ),
    ]
