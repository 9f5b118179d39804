from django.db import models
from django.conf import settings


class LastLogin(models.Model):
    """ログイン履歴モデル (ユーザごとに直近 NB_LOGINS 件のみ保持)"""
    NB_LOGINS = 10

    auth_type = models.CharField(
        max_length=25,
        verbose_name="認証方式"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='last_logins',
        verbose_name="ユーザー"
    )
    ip = models.CharField(
        max_length=45,
        blank=True,
        verbose_name="IPアドレス"
    )
    user_agent = models.CharField(
        max_length=255,
        blank=True,
        verbose_name="ユーザーエージェント"
    )
    date_creation = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        verbose_name="ログイン日時"
    )

    class Meta:
        verbose_name = "ログイン履歴"
        verbose_name_plural = "ログイン履歴"
        ordering = ['-date_creation', '-id']

    def __str__(self):
        return f"{self.user_id} - {self.auth_type} - {self.date_creation}"
