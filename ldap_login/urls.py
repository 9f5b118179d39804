"""
URL configuration for ldap_login project.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""
from django.contrib import admin
from django.urls import path, include
from django.shortcuts import redirect


def root_redirect(request):
    """ルートURLから適切なページにリダイレクト"""
    if request.user.is_authenticated:
        return redirect('users:current-user')
    else:
        return redirect('users:login')


urlpatterns = [
    path('', root_redirect, name='root'),
    path('admin/', admin.site.urls),
    path('users/', include('users.urls')),
    path('api/audit/', include('audit.urls')),
]
