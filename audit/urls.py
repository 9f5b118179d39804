from django.urls import path
from . import views

app_name = 'audit'

urlpatterns = [
    path('logins/', views.LoginHistoryView.as_view(), name='login-history'),
]
