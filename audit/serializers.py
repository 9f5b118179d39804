from rest_framework import serializers
from .models import LastLogin


class LastLoginSerializer(serializers.ModelSerializer):
    """ログイン履歴シリアライザー"""
    user_name = serializers.CharField(source='user.username', read_only=True)

    class Meta:
        model = LastLogin
        fields = [
            'id', 'user_name', 'auth_type',
            'ip', 'user_agent', 'date_creation'
        ]
        read_only_fields = ['date_creation']
