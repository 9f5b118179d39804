"""Django ORM / リクエストを使ったローカルユーザストア。"""
import logging

from django.contrib.auth import get_user_model, login
from django.db import IntegrityError, transaction

from .models import UserSource

logger = logging.getLogger('django.security.authentication')

DIRECTORY_BACKEND = 'users.backends.DirectoryBackend'
USER_AGENT_MAX_LENGTH = 255


class DjangoUserStore:
    """1 リクエスト分のユーザストア (セッション / 接続元情報はこの request から取る)"""

    def __init__(self, request):
        self.request = request

    def get_by_username(self, username):
        UserModel = get_user_model()
        try:
            return UserModel.objects.get(username=username)
        except UserModel.DoesNotExist:
            return None

    def create(self, username, name='', email='', is_admin=False, is_directory_user=False):
        """ユーザ作成。同名ユーザの同時作成は username の一意制約で弾かれ False を返す."""
        UserModel = get_user_model()
        try:
            with transaction.atomic():
                user = UserModel(
                    username=username,
                    name=name or '',
                    email=email or '',
                    is_superuser=bool(is_admin),
                    is_staff=bool(is_admin),
                    source=UserSource.LDAP if is_directory_user else UserSource.LOCAL,
                )
                # パスワードは LDAP 側で管理するためローカルでは使用不可にする
                user.set_unusable_password()
                user.save()
        except IntegrityError:
            logger.warning("User create conflict (already exists) | user=%s", username)
            return False
        return True

    def update_session(self, user):
        login(self.request, user, backend=DIRECTORY_BACKEND)

    def get_ip_address(self):
        return self.request.META.get('REMOTE_ADDR', '') or ''

    def get_user_agent(self):
        return (self.request.META.get('HTTP_USER_AGENT', '') or '')[:USER_AGENT_MAX_LENGTH]
