from django.core.management.base import BaseCommand, CommandError
from users.directory import DirectoryClient, LookupStatus
from users.exceptions import DirectoryConfigurationError, DirectorySearchError


class Command(BaseCommand):
    help = 'Test LDAP connection (service bind) and optionally look up a user without provisioning'

    def add_arguments(self, parser):
        parser.add_argument('--username', type=str, help='Username to test')
        parser.add_argument('--password', type=str, help='Password to test')

    def handle(self, *args, **options):
        username = options.get('username')
        password = options.get('password')

        client = DirectoryClient.from_settings()
        cred = client.credentials

        # LDAP設定の表示 (パスワードは出力しない)
        self.stdout.write(f'LDAP Server: {cred.host}:{cred.port} (ssl={cred.use_ssl} starttls={cred.start_tls})')
        self.stdout.write(f'LDAP TLS verify: {cred.verify_tls}')
        self.stdout.write(f'LDAP Bind DN: {cred.bind_dn or "(anonymous)"}')
        self.stdout.write(f'LDAP Account Base: {client.search.base_dn or "Not configured"}')
        self.stdout.write(f'LDAP User Filter: {client.search.filter_template}')

        # 起動前チェック: フィルタテンプレート不正 / サービスアカウントで bind できなければ設定誤り
        try:
            client.check_connection()
        except DirectorySearchError as e:
            raise CommandError(f'LDAP user filter invalid: {e}') from e
        except DirectoryConfigurationError as e:
            raise CommandError(f'LDAP service bind failed: {e}') from e
        self.stdout.write(self.style.SUCCESS('LDAP service bind successful'))

        if not (username and password):
            self.stdout.write(self.style.WARNING('No username/password provided. Use --username and --password.'))
            return

        self.stdout.write(f'Testing authentication for user: {username}')
        result = client.find_user(username, password)
        if result.found:
            self.stdout.write(self.style.SUCCESS(f'Authentication successful: {result.identity.username}'))
            self.stdout.write(f'Full Name: {result.identity.name}')
            self.stdout.write(f'Email: {result.identity.email}')
        elif result.status is LookupStatus.NOT_FOUND:
            self.stdout.write(self.style.ERROR('Authentication failed (unknown user or invalid password)'))
        else:
            raise CommandError(f'LDAP {result.status.value}: {result.detail}')
