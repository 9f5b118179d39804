# LDAP 認証の入口
#
# ログイン処理は LDAPAuthentication.authenticate(username, password) -> bool のみ。
# 失敗理由 (ユーザ未登録 / パスワード誤り / 同名ローカルユーザ / 作成失敗 / 接続障害)
# は呼び出し側に区別して返さない。区別はログにのみ残す。
#
# 主なログ出力例:
#   - 接続不可 / サービス bind 失敗: `LDAP connection/service bind failed | host=...`
#   - 検索失敗:                      `LDAP search failed | user=... base=...`
#   - パスワード誤り:                `LDAP user bind failed | user=...`
#   - 同名ローカルユーザ:            `LDAP login rejected, username owned by local account | user=...`
#

from django.contrib.auth.backends import ModelBackend
from django.conf import settings
import logging

from .directory import DirectoryClient, LookupStatus
from .models import UserSource
from .reconciler import IdentityReconciler
from .stores import DjangoUserStore

logger = logging.getLogger('django.security.authentication')
dbg_logger = logging.getLogger('users.backends')


class DirectoryBackend(ModelBackend):
    """セッション復元 (get_user) とローカルパスワード認証用のバックエンド。

    LDAP 由来ユーザはローカルパスワードでは認証しない
    (パスワードは LDAP 側でのみ確認する)。
    """

    def authenticate(self, request, username=None, password=None, **kwargs):
        user = super().authenticate(request, username=username, password=password, **kwargs)
        if user is not None and getattr(user, 'source', UserSource.LOCAL) == UserSource.LDAP:
            dbg_logger.debug("Local password auth refused for LDAP user | user=%s", username)
            return None
        return user


class LDAPAuthentication:
    """LDAP 認証ファサード: DirectoryClient -> IdentityReconciler の順に実行する."""

    def __init__(self, client, reconciler, enabled=True):
        self.client = client
        self.reconciler = reconciler
        self.enabled = enabled

    @classmethod
    def for_request(cls, request):
        """設定 / リクエストから標準構成で組み立てる."""
        from audit.services import LoginHistory  # 遅延 import (users <-> audit の循環回避)
        store = DjangoUserStore(request)
        return cls(
            DirectoryClient.from_settings(),
            IdentityReconciler(store, LoginHistory),
            enabled=getattr(settings, 'LDAP_AUTH_ENABLED', True),
        )

    def authenticate(self, username, password):
        if not self.enabled:
            dbg_logger.debug("LDAP authentication disabled | user=%s", username)
            return False

        result = self.client.find_user(username, password)
        if not result.found:
            if result.status in (LookupStatus.CONNECTION_ERROR, LookupStatus.SEARCH_ERROR):
                logger.warning(
                    "LDAP authentication aborted | user=%s status=%s", username, result.status.value,
                    extra={'ldap': {'status': result.status.value, 'detail': result.detail}}
                )
            else:
                dbg_logger.debug("LDAP authentication failed | user=%s detail=%s", username, result.detail)
            return False

        reconciliation = self.reconciler.reconcile(result.identity)
        if not reconciliation.authenticated:
            dbg_logger.debug(
                "LDAP authentication rejected | user=%s outcome=%s", username, reconciliation.outcome.value
            )
            return False

        logger.info("LDAP auth success | user=%s", username)
        return True
