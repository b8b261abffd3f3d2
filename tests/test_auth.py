"""
Authentication tests for WashOps
Tests login, JWT validation and role guards
"""
import json
from datetime import datetime, timedelta, timezone
import jwt

from models import db


class TestLogin:
    """Test email/password login"""

    def test_login_success(self, client, test_customer):
        """Email lookup ignores case and surrounding whitespace"""
        response = client.post('/api/auth/login',
            json={'email': '  Customer@Example.com ', 'password': 'TestPass123!'}
        )

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['success'] is True
        assert data['user']['id'] == test_customer.id
        assert 'token' in data

    def test_password_with_markup_characters(self, client, user_factory):
        """Auth bodies are not HTML-escaped before the password check"""
        user_factory('customer', email='amp@example.com', password='a&b<c>"d"12')
        response = client.post('/api/auth/login', json={'email': 'amp@example.com', 'password': 'a&b<c>"d"12'})
        assert response.status_code == 200

    def test_login_wrong_password(self, client, test_customer):
        response = client.post('/api/auth/login',
            json={'email': test_customer.email, 'password': 'WrongPassword'}
        )

        assert response.status_code == 401
        assert json.loads(response.data)['error'] == 'Invalid email or password'

    def test_login_nonexistent_user(self, client):
        response = client.post('/api/auth/login',
            json={'email': 'nobody@example.com', 'password': 'TestPass123!'}
        )

        assert response.status_code == 401

    def test_login_missing_fields(self, client):
        response = client.post('/api/auth/login', json={'email': 'customer@example.com'})
        assert response.status_code == 400

    def test_login_inactive_user(self, client, test_customer):
        test_customer.status = 'suspended'
        db.session.commit()

        response = client.post('/api/auth/login',
            json={'email': test_customer.email, 'password': 'TestPass123!'}
        )

        assert response.status_code == 403


class TestJWTValidation:
    """Test JWT token validation"""

    def test_me_with_valid_token(self, client, auth_headers, test_customer):
        response = client.get('/api/auth/me', headers=auth_headers)

        assert response.status_code == 200
        assert json.loads(response.data)['user']['email'] == test_customer.email

    def test_me_without_token(self, client):
        response = client.get('/api/auth/me')

        assert response.status_code == 401

    def test_me_with_invalid_token(self, client):
        response = client.get('/api/auth/me',
            headers={'Authorization': 'Bearer invalid.token.here'}
        )

        assert response.status_code == 401

    def test_expired_token_rejected(self, client, app, test_customer):
        expired_token = jwt.encode({
            'user_id': test_customer.id,
            'exp': datetime.now(timezone.utc) - timedelta(hours=1)
        }, app.config['JWT_SECRET'], algorithm='HS256')

        response = client.get('/api/auth/me',
            headers={'Authorization': 'Bearer {}'.format(expired_token)}
        )

        assert response.status_code == 401

    def test_token_for_deleted_user(self, client, auth_headers, test_customer):
        db.session.delete(test_customer)
        db.session.commit()

        response = client.get('/api/auth/me', headers=auth_headers)
        assert response.status_code == 401


class TestAuthorization:
    """Role guards"""

    def test_customer_cannot_use_admin_endpoint(self, client, auth_headers, test_staff):
        response = client.put('/api/admin/permissions/users/{}'.format(test_staff.id),
            headers=auth_headers, json={'permission': 'booking.manage', 'granted': True}
        )

        assert response.status_code == 403

    def test_driver_endpoint_rejects_customer_as_unauthenticated(self, client, auth_headers):
        response = client.get('/api/driver/day?status=true', headers=auth_headers)

        assert response.status_code == 401


class TestServer:

    def test_health(self, client):
        response = client.get('/api/health')

        assert response.status_code == 200
        assert json.loads(response.data)['status'] == 'healthy'

    def test_security_headers(self, client):
        response = client.get('/api/health')

        assert response.headers['X-Content-Type-Options'] == 'nosniff'
        assert response.headers['X-Frame-Options'] == 'DENY'

    def test_unknown_route_is_json(self, client):
        response = client.get('/api/nothing-here')

        assert response.status_code == 404
        assert 'error' in json.loads(response.data)
