# =============================================================================
# Natours - Authentication Integration Tests
# =============================================================================

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import jwt

from app.config import get_settings
from app.extensions import db
from app.models.user import User, Role, hash_reset_token

from conftest import auth_header, token_for

SIGNUP = {
    'name': 'Lourdes Browning',
    'email': 'Lourdes@Example.com ',
    'password': 'pass1234',
    'password_confirm': 'pass1234',
}


def _token(user_id, issued_at, expires_at):
    payload = {'sub': str(user_id), 'iat': issued_at, 'exp': expires_at}
    return jwt.encode(payload, get_settings().jwt_secret, algorithm='HS256')


def _cookies(resp):
    return ' '.join(resp.headers.getlist('Set-Cookie'))


# =============================================================================
# Signup / Login / Logout
# =============================================================================

class TestSignup:

    def test_signup_logs_the_user_in(self, client, sent_emails):
        resp = client.post('/api/v1/users/signup', json=SIGNUP)
        assert resp.status_code == 201

        body = resp.get_json()
        assert body['status'] == 'success'
        assert body['token']
        user = body['data']['user']
        assert user['email'] == 'lourdes@example.com'
        assert user['role'] == 'user'
        assert 'password' not in user
        assert 'jwt=' in _cookies(resp)
        assert 'HttpOnly' in _cookies(resp)
        sent_emails.assert_called_once()

    def test_signup_ignores_role(self, client, sent_emails):
        resp = client.post('/api/v1/users/signup', json=dict(SIGNUP, role='admin'))
        assert resp.status_code == 201
        assert User.query.filter_by(email='lourdes@example.com').one().role is Role.USER

    def test_passwords_must_match(self, client, sent_emails):
        resp = client.post('/api/v1/users/signup', json=dict(SIGNUP, password_confirm='nope1234'))
        assert resp.status_code == 400
        assert 'Passwords are not the same.' in resp.get_json()['message']

    def test_short_password(self, client, sent_emails):
        resp = client.post('/api/v1/users/signup',
                           json=dict(SIGNUP, password='short', password_confirm='short'))
        assert resp.status_code == 400
        assert 'at least 8 characters' in resp.get_json()['message']

    def test_duplicate_email(self, client, sent_emails, regular_user):
        resp = client.post('/api/v1/users/signup', json=dict(SIGNUP, email='laura@example.com'))
        assert resp.status_code == 400
        assert resp.get_json()['message'] == \
            'Duplicate field value for email. Please use another value.'

    def test_signup_survives_email_failure(self, client):
        with patch('app.utils.email._send_with_retry', return_value=False):
            resp = client.post('/api/v1/users/signup', json=SIGNUP)
        assert resp.status_code == 201


class TestLogin:

    def test_login(self, client, regular_user):
        resp = client.post('/api/v1/users/login',
                           json={'email': 'laura@example.com', 'password': 'pass1234'})
        assert resp.status_code == 200
        token = resp.get_json()['token']
        me = client.get('/api/v1/users/me', headers=auth_header(token))
        assert me.get_json()['data']['data']['name'] == 'Laura Wilson'

    def test_missing_credentials(self, client):
        resp = client.post('/api/v1/users/login', json={'email': 'laura@example.com'})
        assert resp.status_code == 400
        assert resp.get_json()['message'] == 'Please provide email and password!'

    def test_wrong_password(self, client, regular_user):
        resp = client.post('/api/v1/users/login',
                           json={'email': 'laura@example.com', 'password': 'wrong-pass'})
        assert resp.status_code == 401
        assert resp.get_json()['message'] == 'Incorrect email or password.'

    def test_unknown_email_same_message(self, client):
        resp = client.post('/api/v1/users/login',
                           json={'email': 'nobody@example.com', 'password': 'pass1234'})
        assert resp.status_code == 401
        assert resp.get_json()['message'] == 'Incorrect email or password.'

    def test_deactivated_user_cannot_login(self, client, regular_user):
        regular_user.active = False
        db.session.commit()
        resp = client.post('/api/v1/users/login',
                           json={'email': 'laura@example.com', 'password': 'pass1234'})
        assert resp.status_code == 401

    def test_logout_overwrites_cookie(self, client):
        resp = client.get('/api/v1/users/logout')
        assert resp.status_code == 200
        assert resp.get_json() == {'status': 'success'}
        assert 'jwt=loggedout' in _cookies(resp)


# =============================================================================
# Token checks (protect)
# =============================================================================

class TestProtect:

    def test_cookie_token_accepted(self, client, regular_user):
        client.set_cookie('jwt', token_for(regular_user))
        resp = client.get('/api/v1/users/me')
        assert resp.status_code == 200

    def test_loggedout_cookie_is_no_token(self, client):
        client.set_cookie('jwt', 'loggedout')
        resp = client.get('/api/v1/users/me')
        assert resp.status_code == 401
        assert resp.get_json()['message'] == 'You are not logged in. Please log in to get access.'

    def test_invalid_token(self, client):
        resp = client.get('/api/v1/users/me', headers=auth_header('not.a.token'))
        assert resp.status_code == 401
        assert resp.get_json()['message'] == 'Invalid token. Please log in again.'

    def test_expired_token(self, client, regular_user):
        now = datetime.now(timezone.utc)
        token = _token(regular_user.id, now - timedelta(days=2), now - timedelta(days=1))
        resp = client.get('/api/v1/users/me', headers=auth_header(token))
        assert resp.status_code == 401
        assert resp.get_json()['message'] == 'Token expired. Please log in again.'

    def test_token_of_deactivated_user(self, client, regular_user):
        header = auth_header(regular_user)
        regular_user.active = False
        db.session.commit()
        resp = client.get('/api/v1/users/me', headers=header)
        assert resp.status_code == 401
        assert resp.get_json()['message'] == 'The user belonging to the token no longer exists.'

    def test_token_older_than_password_change(self, client, regular_user):
        now = datetime.now(timezone.utc)
        token = _token(regular_user.id, now - timedelta(hours=1), now + timedelta(days=1))
        regular_user.password_changed_at = datetime.utcnow() - timedelta(minutes=5)
        db.session.commit()
        resp = client.get('/api/v1/users/me', headers=auth_header(token))
        assert resp.status_code == 401
        assert resp.get_json()['message'] == \
            'Your password recently changed. Please log in again.'


# =============================================================================
# Password reset / update
# =============================================================================

def _request_reset(client, email='laura@example.com'):
    with patch('app.blueprints.api.auth.send_password_reset_email',
               return_value=True) as send:
        resp = client.post('/api/v1/users/forgot-password', json={'email': email})
    assert resp.status_code == 200
    reset_url = send.call_args.args[1]
    return reset_url.rsplit('/', 1)[1]


class TestPasswordReset:

    NEW_PASSWORD = {'password': 'newpass123', 'password_confirm': 'newpass123'}

    def test_forgot_password_stores_digest(self, client, regular_user):
        with patch('app.blueprints.api.auth.send_password_reset_email',
                   return_value=True) as send:
            resp = client.post('/api/v1/users/forgot-password',
                               json={'email': 'laura@example.com'})
        assert resp.get_json() == {'status': 'success', 'message': 'Token sent to email!'}

        reset_url = send.call_args.args[1]
        assert reset_url.startswith('http://localhost/api/v1/users/reset-password/')
        token = reset_url.rsplit('/', 1)[1]
        assert regular_user.password_reset_token == hash_reset_token(token)
        assert regular_user.password_reset_token != token

    def test_unknown_email(self, client):
        resp = client.post('/api/v1/users/forgot-password', json={'email': 'nobody@example.com'})
        assert resp.status_code == 404
        assert resp.get_json()['message'] == 'There is no user with that email address.'

    def test_email_failure_clears_token(self, client, regular_user):
        with patch('app.blueprints.api.auth.send_password_reset_email', return_value=False):
            resp = client.post('/api/v1/users/forgot-password',
                               json={'email': 'laura@example.com'})
        assert resp.status_code == 500
        assert resp.get_json() == {
            'status': 'error',
            'message': 'There was an error sending the email. Try again later!',
        }
        assert regular_user.password_reset_token is None
        assert regular_user.password_reset_expires is None

    def test_reset_password(self, client, regular_user):
        token = _request_reset(client)
        resp = client.patch(f'/api/v1/users/reset-password/{token}', json=self.NEW_PASSWORD)
        assert resp.status_code == 200
        assert resp.get_json()['token']
        assert regular_user.check_password('newpass123')
        assert regular_user.password_reset_token is None

    def test_reset_token_is_single_use(self, client, regular_user):
        token = _request_reset(client)
        client.patch(f'/api/v1/users/reset-password/{token}', json=self.NEW_PASSWORD)
        resp = client.patch(f'/api/v1/users/reset-password/{token}', json=self.NEW_PASSWORD)
        assert resp.status_code == 400
        assert resp.get_json()['message'] == 'Token is invalid or has expired'

    def test_expired_reset_token(self, client, regular_user):
        token = _request_reset(client)
        regular_user.password_reset_expires = datetime.utcnow() - timedelta(seconds=1)
        db.session.commit()
        resp = client.patch(f'/api/v1/users/reset-password/{token}', json=self.NEW_PASSWORD)
        assert resp.status_code == 400

    def test_reset_requires_matching_passwords(self, client, regular_user):
        token = _request_reset(client)
        resp = client.patch(f'/api/v1/users/reset-password/{token}',
                            json={'password': 'newpass123', 'password_confirm': 'other1234'})
        assert resp.status_code == 400
        assert regular_user.check_password('pass1234')


class TestUpdatePassword:

    def test_wrong_current_password(self, client, regular_user):
        resp = client.patch('/api/v1/users/update-my-password',
                            json={'password_current': 'wrong-one',
                                  'password': 'newpass123', 'password_confirm': 'newpass123'},
                            headers=auth_header(regular_user))
        assert resp.status_code == 401
        assert resp.get_json()['message'] == 'Your current password is wrong.'

    def test_update_password(self, client, regular_user):
        resp = client.patch('/api/v1/users/update-my-password',
                            json={'password_current': 'pass1234',
                                  'password': 'newpass123', 'password_confirm': 'newpass123'},
                            headers=auth_header(regular_user))
        assert resp.status_code == 200
        new_token = resp.get_json()['token']
        assert regular_user.check_password('newpass123')
        assert regular_user.password_changed_at is not None

        me = client.get('/api/v1/users/me', headers=auth_header(new_token))
        assert me.status_code == 200

    def test_requires_login(self, client):
        resp = client.patch('/api/v1/users/update-my-password', json={})
        assert resp.status_code == 401

