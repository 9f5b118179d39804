"""ディレクトリ (LDAP) 認証のエラー分類。

DirectoryClient 内部ではこれらを LookupResult のステータスに変換する。
利用者 (ログイン画面) には種別を区別せず「認証失敗」のみを返す。
"""


class DirectoryError(Exception):
    """LDAP 処理の基底例外"""


class DirectoryConfigurationError(DirectoryError):
    """接続不可 / サービスアカウントでの bind 失敗 (設定誤り)"""


class DirectorySearchError(DirectoryError):
    """検索要求そのものの失敗 (不正フィルタ / サーバエラー)"""
