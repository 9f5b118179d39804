from django.contrib import admin
from .models import LastLogin


@admin.register(LastLogin)
class LastLoginAdmin(admin.ModelAdmin):
    """ログイン履歴管理"""
    list_display = ('user', 'auth_type', 'ip', 'date_creation')
    list_filter = ('auth_type', 'date_creation')
    search_fields = ('user__username', 'ip', 'user_agent')
    readonly_fields = ('date_creation',)

    def has_add_permission(self, request):
        # ログイン履歴は追加できない
        return False

    def has_change_permission(self, request, obj=None):
        # ログイン履歴は変更できない
        return False
