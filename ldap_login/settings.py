"""
Django settings for ldap_login project.

環境変数 (.env があれば python-dotenv で読み込み) から設定する。

For more information on this file, see
https://docs.djangoproject.com/en/5.2/topics/settings/
"""
import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / '.env')


def _env_bool(name, default):
    value = os.getenv(name)
    if value is None or value.strip() == '':
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_int(name, default):
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'django-insecure-change-me')

DEBUG = _env_bool('DJANGO_DEBUG', False)

ALLOWED_HOSTS = [h.strip() for h in os.getenv('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',') if h.strip()]


INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'users',
    'audit',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'ldap_login.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [BASE_DIR / 'templates'],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'ldap_login.wsgi.application'


DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': os.getenv('DJANGO_DB_PATH', str(BASE_DIR / 'db.sqlite3')),
    }
}

AUTH_USER_MODEL = 'users.User'

# ローカルパスワード認証 + セッション復元 (LDAP 認証は users.backends.LDAPAuthentication)
AUTHENTICATION_BACKENDS = [
    'users.backends.DirectoryBackend',
]

LOGIN_URL = 'users:login'
LOGIN_REDIRECT_URL = 'users:current-user'

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework.authentication.SessionAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
}

LANGUAGE_CODE = 'ja'
TIME_ZONE = 'Asia/Tokyo'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# ================== LDAP ==================
# LDAP_USER_FILTER は {username} を 1 箇所だけ含むこと (%s 形式は不可。値は RFC 4515 でエスケープして埋め込む)
LDAP_AUTH_ENABLED = _env_bool('LDAP_AUTH', True)
LDAP_SERVER_HOST = os.getenv('LDAP_SERVER', 'localhost')
LDAP_SERVER_PORT = _env_int('LDAP_PORT', 389)
LDAP_USE_SSL = _env_bool('LDAP_USE_SSL', False)
LDAP_START_TLS = _env_bool('LDAP_START_TLS', False)
# False にすると LDAP 接続に限り証明書検証を行わない
LDAP_SSL_VERIFY = _env_bool('LDAP_SSL_VERIFY', True)
LDAP_BIND_DN = os.getenv('LDAP_USERNAME', '')
LDAP_BIND_PASSWORD = os.getenv('LDAP_PASSWORD', '')
LDAP_ACCOUNT_BASE = os.getenv('LDAP_ACCOUNT_BASE', '')
LDAP_USER_FILTER = os.getenv('LDAP_USER_PATTERN', '(uid={username})')
LDAP_ACCOUNT_FULLNAME = os.getenv('LDAP_ACCOUNT_FULLNAME', 'displayName')
LDAP_ACCOUNT_EMAIL = os.getenv('LDAP_ACCOUNT_EMAIL', 'mail')
LDAP_TIMEOUT = _env_int('LDAP_TIMEOUT', 5)


LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'loggers': {
        'django.security.authentication': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'users': {
            'handlers': ['console'],
            'level': os.getenv('LDAP_DEBUG_LEVEL', 'INFO').upper(),
            'propagate': False,
        },
        'audit': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
    },
}
