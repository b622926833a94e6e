from django.core.cache import cache
from django.test import override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.test import APITestCase

from dispatch.models import AuditEvent, User


class AuthApiTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.password = 'P@ssw0rd-1'
        self.dispatcher = User.objects.create_user(
            username='dispatcher1', email='dispatch@example.com', password=self.password,
            role=User.ROLE_DISPATCHER, first_name='Dana',
        )
        self.driver = User.objects.create_user(
            username='driver1', email='driver1@example.com', password=self.password, role=User.ROLE_DRIVER,
        )

    def _login(self, username, password=None):
        return self.client.post(reverse('login_view'), {
            'username': username, 'password': password or self.password,
        }, format='json')

    def test_login_with_email_returns_tokens(self):
        r = self._login('dispatch@example.com')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertTrue(r.data['success'])
        self.assertEqual(r.data['role'], 'dispatcher')
        self.assertIn('jwt_access', r.data)
        self.assertIn('jwt_refresh', r.data)
        self.assertEqual(r.data['token'], Token.objects.get(user=self.dispatcher).key)
        self.assertTrue(AuditEvent.objects.filter(action='login', user=self.dispatcher).exists())

    def test_login_wrong_password(self):
        r = self._login('dispatcher1', 'nope')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.data['error'], 'Invalid login credentials')

    def test_login_blank_username(self):
        r = self._login('   ')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(r.data['success'])

    def test_driver_cannot_sign_in(self):
        r = self._login('driver1')
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn('only for dispatchers', r.data['error'])
        self.assertFalse(Token.objects.filter(user=self.driver).exists())

    def test_token_header_authenticates(self):
        token = self._login('dispatcher1').data['token']
        self.client.credentials(HTTP_AUTHORIZATION=f'Token {token}')
        r = self.client.get(reverse('me_view'))
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['user']['email'], 'dispatch@example.com')

    def test_jwt_header_authenticates(self):
        access = self._login('dispatcher1').data['jwt_access']
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {access}')
        r = self.client.get(reverse('trips_all'))
        self.assertEqual(r.status_code, status.HTTP_200_OK)

    def test_me_requires_session(self):
        r = self.client.get(reverse('me_view'))
        self.assertEqual(r.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn('requestId', r.data)

    def test_request_id_is_echoed(self):
        r = self.client.get(reverse('me_view'), HTTP_X_REQUEST_ID='abc-123')
        self.assertEqual(r['X-Request-ID'], 'abc-123')
        self.assertEqual(r.data['requestId'], 'abc-123')

    def test_refresh_and_logout(self):
        tokens = self._login('dispatcher1').data
        r = self.client.post(reverse('jwt_refresh_view'), {'refresh': tokens['jwt_refresh']}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertIn('jwt_access', r.data)

        self.client.credentials(HTTP_AUTHORIZATION=f"Token {tokens['token']}")
        r = self.client.post(reverse('jwt_logout_view'), {}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertFalse(Token.objects.filter(user=self.dispatcher).exists())

    def test_refresh_with_garbage_token(self):
        r = self.client.post(reverse('jwt_refresh_view'), {'refresh': 'not-a-token'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_401_UNAUTHORIZED)

    @override_settings(DISPATCHER_SIGNUP_ENABLED=False)
    def test_signup_disabled(self):
        r = self.client.post(reverse('signup_view'), {
            'email': 'new@example.com', 'password': 'Long-enough-pass-9', 'first_name': 'New',
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(User.objects.filter(email='new@example.com').exists())

    @override_settings(DISPATCHER_SIGNUP_ENABLED=True)
    def test_signup_enabled_creates_dispatcher(self):
        r = self.client.post(reverse('signup_view'), {
            'email': 'New@Example.com', 'password': 'Long-enough-pass-9', 'first_name': 'New',
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        user = User.objects.get(email='new@example.com')
        self.assertEqual(user.role, User.ROLE_DISPATCHER)

    @override_settings(DISPATCHER_SIGNUP_ENABLED=True)
    def test_signup_duplicate_email(self):
        r = self.client.post(reverse('signup_view'), {
            'email': 'dispatch@example.com', 'password': 'Long-enough-pass-9', 'first_name': 'Dup',
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('already exists', r.data['error'])

    def test_healthz_is_public(self):
        r = self.client.get(reverse('healthz'))
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.json(), {'success': True, 'db': True})
