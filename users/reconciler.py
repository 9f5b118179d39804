"""ディレクトリ認証結果とローカルアカウントの突き合わせ。

判定ポリシー (上から順に評価):
  1. ユーザ名でローカルアカウントを取得
  2. 存在し、かつ LDAP 由来でない → CONFLICT (ローカル管理アカウントの乗っ取り防止)
  2b. 無効化 (is_active=False) されている → DISABLED
  3. 存在しない → LDAP ユーザとして自動作成 (管理者権限なし)。失敗 → PROVISIONING_FAILED
  4. AUTHENTICATED → セッション確立 → ログイン履歴記録

CONFLICT / DISABLED / PROVISIONING_FAILED の経路では副作用を一切発生させない。
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Optional

from .mapping import CandidateIdentity

logger = logging.getLogger('django.security.authentication')
dbg_logger = logging.getLogger(__name__)

AUTH_NAME = 'LDAP'


class ReconcileOutcome(enum.Enum):
    AUTHENTICATED = 'authenticated'
    CONFLICT = 'conflict'
    PROVISIONING_FAILED = 'provisioning_failed'
    DISABLED = 'disabled'


@dataclass(frozen=True)
class Reconciliation:
    outcome: ReconcileOutcome
    account: Any = None

    @property
    def authenticated(self) -> bool:
        return self.outcome is ReconcileOutcome.AUTHENTICATED


class IdentityReconciler:
    """CandidateIdentity をローカルアカウントに対応付ける。

    store: get_by_username / create / update_session / get_ip_address / get_user_agent
    audit: create(auth_type, user_id, ip_address, user_agent)
    """

    def __init__(self, store, audit, auth_name: str = AUTH_NAME):
        self.store = store
        self.audit = audit
        self.auth_name = auth_name

    def reconcile(self, candidate: CandidateIdentity) -> Reconciliation:
        account = self.store.get_by_username(candidate.username)

        if account is not None and not account.is_directory_user:
            # 既に同名のローカルユーザが存在する
            logger.warning(
                "LDAP login rejected, username owned by local account | user=%s", candidate.username,
                extra={'ldap': {'stage': 'reconcile', 'reason': 'conflict'}}
            )
            return Reconciliation(ReconcileOutcome.CONFLICT)

        if account is not None and not getattr(account, 'is_active', True):
            logger.warning("LDAP login rejected, account disabled | user=%s", candidate.username)
            return Reconciliation(ReconcileOutcome.DISABLED)

        if account is None:
            account = self._provision(candidate)
            if account is None:
                return Reconciliation(ReconcileOutcome.PROVISIONING_FAILED)

        self.store.update_session(account)
        self.audit.create(
            self.auth_name,
            account.id,
            self.store.get_ip_address(),
            self.store.get_user_agent(),
        )
        dbg_logger.debug("LDAP login reconciled | user=%s id=%s", account.username, account.id)
        return Reconciliation(ReconcileOutcome.AUTHENTICATED, account)

    def _provision(self, candidate: CandidateIdentity) -> Optional[Any]:
        """ローカルユーザを自動作成し、作成後のレコードを再取得して返す."""
        created = self.store.create(
            username=candidate.username,
            name=candidate.name,
            email=candidate.email,
            is_admin=False,
            is_directory_user=True,
        )
        if not created:
            logger.warning(
                "LDAP user provisioning failed | user=%s", candidate.username,
                extra={'ldap': {'stage': 'reconcile', 'reason': 'provisioning_failed'}}
            )
            return None
        account = self.store.get_by_username(candidate.username)
        if account is None:
            logger.warning("LDAP provisioned user not found after create | user=%s", candidate.username)
            return None
        logger.info("LDAP user provisioned | user=%s id=%s", account.username, account.id)
        return account
