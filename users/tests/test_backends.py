from unittest.mock import patch, MagicMock
from django.contrib.auth import get_user_model, authenticate, SESSION_KEY
from django.contrib.auth.models import AnonymousUser
from django.contrib.sessions.middleware import SessionMiddleware
from django.test import TestCase, RequestFactory, override_settings

from audit.models import LastLogin
from audit.services import LoginHistory
from users.backends import LDAPAuthentication
from users.directory import LookupResult, LookupStatus
from users.mapping import CandidateIdentity
from users.models import UserSource
from users.reconciler import IdentityReconciler
from users.stores import DjangoUserStore

User = get_user_model()


def build_request(ip='10.0.0.5', agent='Mozilla/5.0 (X11)'):
    request = RequestFactory().post('/users/login/', REMOTE_ADDR=ip, HTTP_USER_AGENT=agent)
    SessionMiddleware(lambda r: None).process_request(request)
    request.user = AnonymousUser()
    return request


def found(username, name='', email=''):
    return LookupResult(LookupStatus.FOUND, identity=CandidateIdentity(username, name, email))


class DjangoUserStoreTests(TestCase):

    def test_create_directory_user(self):
        store = DjangoUserStore(build_request())
        self.assertTrue(store.create(username='jdoe', name='John Doe', email='jdoe@example.com',
                                     is_admin=False, is_directory_user=True))
        user = store.get_by_username('jdoe')
        self.assertEqual(user.name, 'John Doe')
        self.assertEqual(user.email, 'jdoe@example.com')
        self.assertEqual(user.source, UserSource.LDAP)
        self.assertTrue(user.is_directory_user)
        self.assertFalse(user.is_admin)
        self.assertFalse(user.is_staff)
        self.assertFalse(user.has_usable_password())

    def test_duplicate_create_is_rejected(self):
        store = DjangoUserStore(build_request())
        self.assertTrue(store.create(username='jdoe', is_directory_user=True))
        self.assertFalse(store.create(username='jdoe', is_directory_user=True))
        self.assertEqual(User.objects.filter(username='jdoe').count(), 1)

    def test_unknown_user(self):
        self.assertIsNone(DjangoUserStore(build_request()).get_by_username('nobody'))

    def test_request_context(self):
        store = DjangoUserStore(build_request(ip='192.0.2.1', agent='x' * 400))
        self.assertEqual(store.get_ip_address(), '192.0.2.1')
        self.assertEqual(len(store.get_user_agent()), 255)

    def test_update_session_logs_user_in(self):
        request = build_request()
        user = User.objects.create_user(username='jdoe', source=UserSource.LDAP)
        DjangoUserStore(request).update_session(user)
        self.assertEqual(request.session[SESSION_KEY], str(user.pk))
        self.assertEqual(request.user, user)


class DirectoryBackendTests(TestCase):

    def test_local_user_password_login(self):
        User.objects.create_user(username='alice', password='pw-alice-1')
        self.assertIsNotNone(authenticate(build_request(), username='alice', password='pw-alice-1'))

    def test_ldap_user_cannot_use_local_password(self):
        user = User.objects.create_user(username='jdoe', password='pw', source=UserSource.LDAP)
        self.assertTrue(user.check_password('pw'))
        self.assertIsNone(authenticate(build_request(), username='jdoe', password='pw'))


class LDAPAuthenticationTests(TestCase):
    """LDAPAuthentication.authenticate (DirectoryClient はモック / ストア・履歴は実 DB)"""

    def _facade(self, lookup, request=None, enabled=True):
        self.request = request or build_request()
        client = MagicMock()
        client.find_user.return_value = lookup
        reconciler = IdentityReconciler(DjangoUserStore(self.request), LoginHistory)
        return LDAPAuthentication(client, reconciler, enabled=enabled), client

    def test_unknown_directory_user(self):
        facade, _ = self._facade(LookupResult.not_found('no entry'))
        self.assertFalse(facade.authenticate('ghost', 'pw'))
        self.assertFalse(User.objects.filter(username='ghost').exists())
        self.assertEqual(LastLogin.objects.count(), 0)

    def test_wrong_password_is_indistinguishable_from_unknown_user(self):
        facade, _ = self._facade(LookupResult.not_found('invalid credentials'))
        self.assertFalse(facade.authenticate('jdoe', 'wrong'))
        self.assertFalse(User.objects.filter(username='jdoe').exists())
        self.assertEqual(LastLogin.objects.count(), 0)
        self.assertNotIn(SESSION_KEY, self.request.session)

    def test_first_login_provisions_account(self):
        facade, client = self._facade(found('jdoe', 'John Doe', 'jdoe@example.com'))

        self.assertTrue(facade.authenticate('jdoe', 'pw'))

        client.find_user.assert_called_once_with('jdoe', 'pw')
        user = User.objects.get(username='jdoe')
        self.assertTrue(user.is_directory_user)
        self.assertFalse(user.is_admin)
        self.assertEqual(user.name, 'John Doe')
        self.assertEqual(self.request.session[SESSION_KEY], str(user.pk))
        history = LastLogin.objects.get()
        self.assertEqual(history.auth_type, 'LDAP')
        self.assertEqual(history.user_id, user.pk)
        self.assertEqual(history.ip, '10.0.0.5')
        self.assertEqual(history.user_agent, 'Mozilla/5.0 (X11)')

    def test_repeated_login_reuses_account(self):
        for _ in range(2):
            facade, _ = self._facade(found('jdoe', 'John Doe', 'jdoe@example.com'))
            self.assertTrue(facade.authenticate('jdoe', 'pw'))
        self.assertEqual(User.objects.filter(username='jdoe').count(), 1)
        self.assertEqual(LastLogin.objects.count(), 2)

    def test_missing_attributes_still_authenticate(self):
        facade, _ = self._facade(found('jdoe'))
        self.assertTrue(facade.authenticate('jdoe', 'pw'))
        user = User.objects.get(username='jdoe')
        self.assertEqual((user.name, user.email), ('', ''))

    def test_local_admin_cannot_be_taken_over(self):
        admin = User.objects.create_superuser(username='admin', password='local-pw', email='admin@local')
        facade, _ = self._facade(found('admin', 'Directory Admin', 'admin@example.com'))

        self.assertFalse(facade.authenticate('admin', 'pw'))

        admin.refresh_from_db()
        self.assertEqual(admin.source, UserSource.LOCAL)
        self.assertEqual(admin.email, 'admin@local')
        self.assertTrue(admin.check_password('local-pw'))
        self.assertEqual(LastLogin.objects.count(), 0)
        self.assertNotIn(SESSION_KEY, self.request.session)

    def test_concurrent_provisioning_creates_one_account(self):
        facade, _ = self._facade(found('jdoe'))
        store = facade.reconciler.store
        # 別リクエストが先に同名ユーザを作成した状態を再現 (lookup 時点では未作成)
        with patch.object(store, 'get_by_username', side_effect=[None, None]):
            User.objects.create_user(username='jdoe', source=UserSource.LDAP)
            self.assertFalse(facade.authenticate('jdoe', 'pw'))
        self.assertEqual(User.objects.filter(username='jdoe').count(), 1)
        self.assertEqual(LastLogin.objects.count(), 0)

    def test_directory_errors_collapse_to_false(self):
        for status in (LookupStatus.CONNECTION_ERROR, LookupStatus.SEARCH_ERROR):
            with self.subTest(status=status):
                facade, _ = self._facade(LookupResult(status, detail='boom'))
                with self.assertLogs('django.security.authentication', level='WARNING'):
                    self.assertFalse(facade.authenticate('jdoe', 'pw'))
        self.assertFalse(User.objects.exists())

    def test_disabled(self):
        facade, client = self._facade(found('jdoe'), enabled=False)
        self.assertFalse(facade.authenticate('jdoe', 'pw'))
        client.find_user.assert_not_called()

    @patch('users.backends.DirectoryClient.from_settings')
    def test_for_request_builds_default_pipeline(self, mock_from_settings):
        mock_from_settings.return_value.find_user.return_value = found('jdoe')
        request = build_request()
        facade = LDAPAuthentication.for_request(request)
        self.assertTrue(facade.authenticate('jdoe', 'pw'))
        self.assertIs(facade.reconciler.store.request, request)
        self.assertEqual(LastLogin.objects.get().auth_type, 'LDAP')

    @override_settings(LDAP_AUTH_ENABLED=False)
    @patch('users.backends.DirectoryClient.from_settings')
    def test_for_request_reads_enabled_flag(self, mock_from_settings):
        facade = LDAPAuthentication.for_request(build_request())
        self.assertFalse(facade.enabled)
        self.assertFalse(facade.authenticate('jdoe', 'pw'))
        mock_from_settings.return_value.find_user.assert_not_called()
