"""LDAP 検索結果エントリ -> 候補アイデンティティ変換 (I/O なし)。"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class AttributeNames:
    """氏名 / メールアドレスとして読む LDAP 属性名"""
    full_name: str = 'displayName'
    email: str = 'mail'

    def as_list(self) -> list[str]:
        return [name for name in (self.full_name, self.email) if name]


@dataclass(frozen=True)
class CandidateIdentity:
    """ディレクトリ認証に成功したユーザの正規化済み情報 (認証 1 回ごとに生成)"""
    username: str
    name: str = ''
    email: str = ''


def _entry_attributes(entry: Any) -> Optional[Mapping]:
    # ldap3.abstract.entry.Entry は entry_attributes_as_dict を持つ
    attrs = getattr(entry, 'entry_attributes_as_dict', None)
    if isinstance(attrs, Mapping):
        return attrs
    if isinstance(entry, Mapping):
        attrs = entry.get('attributes', entry)
        if isinstance(attrs, Mapping):
            return attrs
    return None


def _lookup(attrs: Mapping, name: str) -> Any:
    if name in attrs:
        return attrs[name]
    # LDAP の属性名は大文字小文字を区別しない
    lowered = name.lower()
    for key, value in attrs.items():
        if isinstance(key, str) and key.lower() == lowered:
            return value
    return None


def _to_text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, bytes):
        return value.decode('utf-8', errors='replace')
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return ''


def first_value(entry: Any, name: str) -> str:
    """属性 `name` の先頭値を文字列で返す。無い / 壊れている場合は ''。"""
    if not name:
        return ''
    try:
        attrs = _entry_attributes(entry)
        if attrs is None:
            return ''
        value = _lookup(attrs, name)
        if isinstance(value, (list, tuple)):
            value = value[0] if value else None
        return _to_text(value).strip()
    except Exception:  # noqa: BLE001 - 不正エントリは「属性なし」と同じ扱い
        return ''


def map_entry(username: str, entry: Any, attributes: AttributeNames) -> CandidateIdentity:
    """検索結果エントリから CandidateIdentity を生成する。

    username は LDAP 上の値ではなくログイン時の入力値をそのまま使う
    (ローカルアカウントの照合キーになるため)。
    """
    return CandidateIdentity(
        username=username,
        name=first_value(entry, attributes.full_name),
        email=first_value(entry, attributes.email),
    )
