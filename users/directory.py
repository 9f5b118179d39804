# LDAP ディレクトリクライアント (ldap3)
#
# 認証 1 回あたりの流れ:
#   1. Connection 準備 (プロトコル v3 / referral 自動追跡なし / タイムアウト付き)
#   2. サービスアカウントで bind (検索権限を得るためだけの bind)
#   3. ユーザ検索 (フィルタテンプレートにエスケープ済みユーザ名を埋め込む)
#   4. 先頭エントリの DN + 入力パスワードで再 bind (これが実際の資格情報確認)
#
# 主な失敗と LookupResult の対応:
#   - 接続不可 / タイムアウト / サービス bind 失敗 -> CONNECTION_ERROR
#   - 不正フィルタ / サーバ側エラー                 -> SEARCH_ERROR
#   - 該当エントリ無し / パスワード誤り             -> NOT_FOUND (区別しない)
#

from __future__ import annotations

import enum
import logging
import ssl
import string
from dataclasses import dataclass, field
from typing import Any, Optional

from django.conf import settings
from ldap3 import Connection, Server, Tls, SIMPLE, SUBTREE, NONE
from ldap3.core.exceptions import (
    LDAPBindError,
    LDAPCommunicationError,
    LDAPException,
    LDAPResponseTimeoutError,
)
from ldap3.core.results import RESULT_SUCCESS
from ldap3.utils.conv import escape_filter_chars

from .exceptions import DirectoryConfigurationError, DirectorySearchError
from .mapping import AttributeNames, CandidateIdentity, map_entry

logger = logging.getLogger('django.security.authentication')
dbg_logger = logging.getLogger(__name__)

LDAP_PROTOCOL_VERSION = 3
DEFAULT_USER_FILTER = '(uid={username})'


@dataclass(frozen=True)
class DirectoryCredentials:
    """接続先とサービスアカウント (プロセス起動時に一度だけ構築)。"""
    host: str
    port: int = 389
    bind_dn: str = ''
    bind_password: str = field(default='', repr=False)
    verify_tls: bool = True
    use_ssl: bool = False
    start_tls: bool = False
    timeout: int = 5

    @staticmethod
    def load() -> 'DirectoryCredentials':
        return DirectoryCredentials(
            host=getattr(settings, 'LDAP_SERVER_HOST', 'localhost'),
            port=int(getattr(settings, 'LDAP_SERVER_PORT', 389)),
            bind_dn=getattr(settings, 'LDAP_BIND_DN', '') or '',
            bind_password=getattr(settings, 'LDAP_BIND_PASSWORD', '') or '',
            verify_tls=bool(getattr(settings, 'LDAP_SSL_VERIFY', True)),
            use_ssl=bool(getattr(settings, 'LDAP_USE_SSL', False)),
            start_tls=bool(getattr(settings, 'LDAP_START_TLS', False)),
            timeout=int(getattr(settings, 'LDAP_TIMEOUT', 5)),
        )


@dataclass(frozen=True)
class SearchSpec:
    """ユーザ検索条件。filter_template は {username} を 1 箇所だけ含む。"""
    base_dn: str
    filter_template: str = DEFAULT_USER_FILTER
    attributes: AttributeNames = field(default_factory=AttributeNames)

    @staticmethod
    def load() -> 'SearchSpec':
        return SearchSpec(
            base_dn=getattr(settings, 'LDAP_ACCOUNT_BASE', ''),
            filter_template=getattr(settings, 'LDAP_USER_FILTER', DEFAULT_USER_FILTER) or DEFAULT_USER_FILTER,
            attributes=AttributeNames(
                full_name=getattr(settings, 'LDAP_ACCOUNT_FULLNAME', 'displayName'),
                email=getattr(settings, 'LDAP_ACCOUNT_EMAIL', 'mail'),
            ),
        )

    def validate(self) -> None:
        """filter_template が {username} を 1 箇所だけ含むことを確認する (違反時は DirectorySearchError)。

        スロット無し ('(objectClass=person)') は全エントリに一致し、
        '(uid=%s)' 形式は置換されない。どちらも設定誤り。
        """
        try:
            fields = [
                (name, conversion, spec)
                for _, name, spec, conversion in string.Formatter().parse(self.filter_template)
                if name is not None
            ]
        except ValueError as exc:
            raise DirectorySearchError(f"malformed filter template: {self.filter_template!r}") from exc
        if fields != [('username', None, '')]:
            raise DirectorySearchError(
                f"filter template must contain exactly one {{username}} slot: {self.filter_template!r}"
            )

    def build_filter(self, username: str) -> str:
        self.validate()
        return self.filter_template.format(username=escape_filter_chars(username))


class LookupStatus(enum.Enum):
    FOUND = 'found'
    NOT_FOUND = 'not_found'
    SEARCH_ERROR = 'search_error'
    CONNECTION_ERROR = 'connection_error'


@dataclass(frozen=True)
class LookupResult:
    """find_user の結果。detail はログ用 (利用者には出さない)。"""
    status: LookupStatus
    identity: Optional[CandidateIdentity] = None
    detail: str = ''

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND and self.identity is not None

    @classmethod
    def not_found(cls, detail: str = '') -> 'LookupResult':
        return cls(LookupStatus.NOT_FOUND, detail=detail)


class DirectoryClient:
    """LDAP サーバへの接続 / 検索 / 資格情報確認を行うクライアント。

    設定は生成時に受け取った DirectoryCredentials / SearchSpec のみを使い、
    django.conf.settings 等のグローバル状態は参照しない (from_settings は除く)。
    """

    def __init__(self, credentials: DirectoryCredentials, search: SearchSpec):
        self.credentials = credentials
        self.search = search

    @classmethod
    def from_settings(cls) -> 'DirectoryClient':
        return cls(DirectoryCredentials.load(), SearchSpec.load())

    # ---------- 公開 API ----------
    def find_user(self, username: str, password: str) -> LookupResult:
        """ユーザを検索しパスワードを確認する。接続は全ての経路で解放する。"""
        if not username or not password:
            # 空パスワードは匿名 bind 扱いで成功し得るため LDAP へは送らない
            dbg_logger.debug("LDAP lookup skipped (empty username/password) | user=%s", username)
            return LookupResult.not_found('empty credentials')

        conn = None
        try:
            conn = self._build_connection()
            self._service_bind(conn)
            entry = self._search_user_entry(conn, username)
            if entry is None:
                dbg_logger.debug("LDAP user not found | user=%s base=%s", username, self.search.base_dn)
                return LookupResult.not_found('no entry')
            return self._bind_user(conn, username, entry, password)
        except DirectoryConfigurationError as exc:
            logger.error(
                "LDAP connection/service bind failed | host=%s port=%s error=%s",
                self.credentials.host, self.credentials.port, exc,
                extra={'ldap': {'host': self.credentials.host, 'stage': 'service_bind'}}
            )
            return LookupResult(LookupStatus.CONNECTION_ERROR, detail=str(exc))
        except DirectorySearchError as exc:
            logger.error(
                "LDAP search failed | user=%s base=%s error=%s", username, self.search.base_dn, exc,
                extra={'ldap': {'host': self.credentials.host, 'stage': 'search'}}
            )
            return LookupResult(LookupStatus.SEARCH_ERROR, detail=str(exc))
        finally:
            if conn is not None:
                self._release(conn)

    def check_connection(self) -> None:
        """起動時チェック用: フィルタテンプレートとサービスアカウント bind を確認 (失敗時は例外)。"""
        self.search.validate()
        conn = self._build_connection()
        try:
            self._service_bind(conn)
        finally:
            self._release(conn)

    # ---------- 内部処理 ----------
    def _build_tls(self) -> Tls:
        # 証明書検証の無効化はこの Server オブジェクトにだけ適用される
        validate = ssl.CERT_REQUIRED if self.credentials.verify_tls else ssl.CERT_NONE
        if not self.credentials.verify_tls:
            dbg_logger.debug("LDAP TLS certificate verification disabled | host=%s", self.credentials.host)
        return Tls(validate=validate)

    def _build_connection(self) -> Connection:
        """Connection を bind せずに生成 (auto_bind=False)."""
        cred = self.credentials
        try:
            server = Server(
                cred.host,
                port=cred.port,
                use_ssl=cred.use_ssl,
                tls=self._build_tls(),
                get_info=NONE,
                connect_timeout=cred.timeout,
            )
            return Connection(
                server,
                user=cred.bind_dn or None,
                password=cred.bind_password or None,
                version=LDAP_PROTOCOL_VERSION,
                auto_bind=False,
                auto_referrals=False,
                read_only=True,
                raise_exceptions=False,
                receive_timeout=cred.timeout,
            )
        except LDAPException as exc:
            raise DirectoryConfigurationError(f"invalid server configuration: {exc}") from exc

    def _service_bind(self, conn: Connection) -> None:
        try:
            if self.credentials.start_tls and not conn.start_tls():
                raise DirectoryConfigurationError(f"StartTLS failed: {conn.last_error}")
            if not conn.bind():
                raise DirectoryConfigurationError(f"service bind rejected: {_describe(conn.result)}")
        except LDAPException as exc:
            raise DirectoryConfigurationError(str(exc)) from exc

    def _search_user_entry(self, conn: Connection, username: str) -> Any:
        """先頭エントリを返す (0 件なら None)."""
        search_filter = self.search.build_filter(username)
        try:
            found = conn.search(
                search_base=self.search.base_dn,
                search_filter=search_filter,
                search_scope=SUBTREE,
                attributes=self.search.attributes.as_list(),
            )
        except LDAPException as exc:
            raise DirectorySearchError(f"{exc} (filter={search_filter})") from exc
        result = conn.result if isinstance(conn.result, dict) else {}
        if not found and result.get('result', RESULT_SUCCESS) != RESULT_SUCCESS:
            raise DirectorySearchError(_describe(result))
        entries = conn.entries or []
        if not entries:
            return None
        if len(entries) > 1:
            dbg_logger.debug("LDAP search matched several entries, using first | user=%s count=%d", username, len(entries))
        return entries[0]

    def _bind_user(self, conn: Connection, username: str, entry: Any, password: str) -> LookupResult:
        user_dn = getattr(entry, 'entry_dn', '') or ''
        if not user_dn:
            return LookupResult.not_found('entry without dn')
        try:
            bound = conn.rebind(user=user_dn, password=password, authentication=SIMPLE)
        except (LDAPCommunicationError, LDAPResponseTimeoutError) as exc:
            raise DirectoryConfigurationError(f"connection lost during user bind: {exc}") from exc
        except LDAPBindError as exc:
            # ldap3 は bind 中のソケット切断も LDAPBindError に包み直す
            if conn.closed or 'closed the connection' in str(exc):
                raise DirectoryConfigurationError(f"connection lost during user bind: {exc}") from exc
            bound = False
            dbg_logger.debug("LDAP user bind raised | user=%s error=%s", username, exc)
        except LDAPException as exc:
            bound = False
            dbg_logger.debug("LDAP user bind raised | user=%s error=%s", username, exc)
        if not bound:
            logger.info("LDAP user bind failed | user=%s", username, extra={'ldap': {'stage': 'user_bind'}})
            return LookupResult.not_found('invalid credentials')
        identity = map_entry(username, entry, self.search.attributes)
        dbg_logger.debug("LDAP user bind success | user=%s dn=%s", username, user_dn)
        return LookupResult(LookupStatus.FOUND, identity=identity)

    def _release(self, conn: Connection) -> None:
        try:
            conn.unbind()
        except LDAPException as exc:
            dbg_logger.debug("LDAP unbind failed | error=%s", exc)


def _describe(result: Any) -> str:
    if isinstance(result, dict):
        return f"code={result.get('result')} desc={result.get('description')} message={result.get('message')}"
    return str(result)
