from django.db import models
from django.contrib.auth.models import AbstractUser


class UserSource(models.TextChoices):
    LOCAL = 'local', 'ローカル'
    LDAP = 'ldap', 'LDAP'


class User(AbstractUser):
    """カスタムユーザモデル (ローカルアカウント)

    source=LDAP のユーザはディレクトリ認証で自動作成されたもの。
    source=LOCAL のユーザはディレクトリ経由では決して認証しない。
    """
    source = models.CharField(
        max_length=20,
        choices=UserSource.choices,
        default=UserSource.LOCAL,
        db_index=True,
        verbose_name="出所"
    )
    name = models.CharField(
        max_length=255,
        blank=True,
        verbose_name="氏名",
        help_text="LDAP の表示名 (作成時に設定)"
    )

    class Meta:
        verbose_name = "ユーザー"
        verbose_name_plural = "ユーザー"

    def __str__(self):  # noqa: D401 - シンプル表示
        return self.username

    @property
    def is_directory_user(self) -> bool:
        return self.source == UserSource.LDAP

    @property
    def is_admin(self) -> bool:
        return self.is_superuser
