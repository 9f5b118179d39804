from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """カスタムユーザ管理"""
    # 既存 fieldsets はタプル。拡張分を足した新しいタプルを生成。
    base_fieldsets = BaseUserAdmin.fieldsets or ()  # type: ignore[assignment]
    fieldsets = tuple(list(base_fieldsets) + [
        ('LDAP / 拡張属性', {
            'fields': ('source', 'name')
        })
    ])
    list_display = ('username', 'name', 'email', 'source', 'is_superuser', 'last_login')
    list_filter = tuple(list(BaseUserAdmin.list_filter) + ['source'])
    search_fields = ('username', 'name', 'email')
