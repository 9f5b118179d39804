from rest_framework import generics
from rest_framework.permissions import IsAuthenticated
from django.conf import settings
from django.contrib.auth import authenticate, login, logout
from django.shortcuts import render, redirect, resolve_url
from django.contrib import messages
from django.utils.http import url_has_allowed_host_and_scheme
from django.views import View
from audit.services import LoginHistory
from .backends import LDAPAuthentication
from .serializers import UserSerializer
from .stores import DjangoUserStore

DATABASE_AUTH_NAME = 'Database'
LOGIN_FAILED_MESSAGE = 'ユーザー名またはパスワードが正しくありません。'


class CurrentUserView(generics.RetrieveAPIView):
    """現在のユーザー情報を取得"""
    serializer_class = UserSerializer
    permission_classes = [IsAuthenticated]

    def get_object(self):
        return self.request.user


class LoginView(View):
    """ログイン画面とログイン処理

    ローカルパスワード (LDAP 由来ユーザを除く) → LDAP の順に試す。
    失敗理由は区別せず同じメッセージを表示する。
    """

    def get(self, request):
        if request.user.is_authenticated:
            return redirect(self._next_url(request))
        return render(request, 'users/login.html')

    def post(self, request):
        username = request.POST.get('username', '').strip()
        password = request.POST.get('password', '')

        if not username or not password:
            messages.error(request, 'ユーザー名とパスワードを入力してください。')
            return render(request, 'users/login.html', status=400)

        if self._authenticate_local(request, username, password) or \
                LDAPAuthentication.for_request(request).authenticate(username, password):
            return redirect(self._next_url(request))

        messages.error(request, LOGIN_FAILED_MESSAGE)
        return render(request, 'users/login.html', status=401)

    def _authenticate_local(self, request, username, password):
        user = authenticate(request, username=username, password=password)
        if user is None or not user.is_active:
            return False
        # Django標準のlogin関数を使用（自動的にセッションが作成される）
        login(request, user)
        store = DjangoUserStore(request)
        LoginHistory.create(DATABASE_AUTH_NAME, user.id, store.get_ip_address(), store.get_user_agent())
        return True

    def _next_url(self, request):
        next_url = request.POST.get('next') or request.GET.get('next', '')
        if next_url and url_has_allowed_host_and_scheme(
                next_url, allowed_hosts={request.get_host()}, require_https=request.is_secure()):
            return next_url
        return resolve_url(settings.LOGIN_REDIRECT_URL)


class LogoutView(View):
    """ログアウト処理（Django標準機能を使用）"""

    def get(self, request):
        return self._logout_user(request)

    def post(self, request):
        return self._logout_user(request)

    def _logout_user(self, request):
        """ログアウト処理の実装"""
        if request.user.is_authenticated:
            # Django標準のlogout関数を使用（セッションを適切に処理）
            logout(request)
            messages.success(request, 'ログアウトしました。')
        else:
            messages.info(request, '既にログアウトしています。')

        return redirect('users:login')
