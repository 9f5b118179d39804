from rest_framework import generics
from rest_framework.permissions import IsAuthenticated
from .serializers import LastLoginSerializer
from .services import LoginHistory


class LoginHistoryView(generics.ListAPIView):
    """ログイン履歴一覧"""
    serializer_class = LastLoginSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        user = self.request.user
        user_id = user.id
        requested = self.request.GET.get('user', '')
        if requested and user.is_staff:
            # 管理者は他ユーザの履歴も閲覧可能
            try:
                user_id = int(requested)
            except ValueError:
                return []
        return LoginHistory.get_all(user_id)
