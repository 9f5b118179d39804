import logging

from django.db import transaction

from .models import LastLogin

logger = logging.getLogger(__name__)


class LoginHistory:
    """ログイン履歴サービス"""

    @staticmethod
    def create(auth_type, user_id, ip_address, user_agent):
        """ログイン履歴を 1 件追加し、古い履歴を削除する
        ユーザごとに LastLogin.NB_LOGINS 件を超えた分は古い順に消す。
        """
        with transaction.atomic():
            entry = LastLogin.objects.create(
                auth_type=auth_type,
                user_id=user_id,
                ip=(ip_address or '')[:45],
                user_agent=(user_agent or '')[:255],
            )
            stale_ids = list(
                LastLogin.objects.filter(user_id=user_id)
                .order_by('-date_creation', '-id')
                .values_list('id', flat=True)[LastLogin.NB_LOGINS:]
            )
            if stale_ids:
                LastLogin.objects.filter(id__in=stale_ids).delete()
        logger.debug("Login recorded | user_id=%s auth_type=%s ip=%s", user_id, auth_type, entry.ip)
        return entry

    @staticmethod
    def get_all(user_id):
        """指定ユーザの直近ログイン履歴 (新しい順)"""
        return list(
            LastLogin.objects.filter(user_id=user_id)
            .select_related('user')
            .order_by('-date_creation', '-id')[:LastLogin.NB_LOGINS]
        )
