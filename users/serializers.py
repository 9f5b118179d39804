from rest_framework import serializers
from django.contrib.auth import get_user_model

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    """ユーザーシリアライザー"""
    is_admin = serializers.BooleanField(read_only=True)
    is_directory_user = serializers.BooleanField(read_only=True)

    class Meta:
        model = User
        fields = (
            'id', 'username', 'name', 'email',
            'source', 'is_admin', 'is_directory_user'
        )
