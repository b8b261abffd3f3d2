"""
Authentication Routes for WashOps Backend
Handles email login, token issuing and role guards
"""

from flask import Blueprint, request, jsonify, current_app
import jwt
import datetime
import logging
from functools import wraps

from models import db, User
from extensions import limiter

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

logger = logging.getLogger(__name__)


# MARK: - Helper Functions

def generate_token(user_id):
    """Generate JWT token for user"""
    payload = {
        'user_id': user_id,
        'exp': datetime.datetime.now(datetime.timezone.utc)
        + datetime.timedelta(days=current_app.config.get('JWT_EXPIRES_DAYS', 30)),
    }
    return jwt.encode(payload, current_app.config['JWT_SECRET'], algorithm='HS256')


def verify_token(token):
    """Verify JWT token and return user_id"""
    try:
        payload = jwt.decode(token, current_app.config['JWT_SECRET'], algorithms=['HS256'])
        return payload.get('user_id')
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def require_auth(f):
    """Decorator to require authentication"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = request.headers.get('Authorization', '').replace('Bearer ', '')
        user_id = verify_token(token) if token else None
        if not user_id or not db.session.get(User, user_id):
            return jsonify({'error': 'Unauthorized'}), 401
        return f(user_id=user_id, *args, **kwargs)
    return decorated_function


def require_role(*roles, status=403):
    """Wrap require_auth and check the user's role.

    Driver endpoints pass ``status=401`` so a non-driver token looks
    unauthenticated there.
    """
    def decorator(f):
        @wraps(f)
        @require_auth
        def wrapper(user_id, *args, **kwargs):
            user = db.session.get(User, user_id)
            if not user or user.role not in roles:
                return jsonify({'error': 'Unauthorized' if status == 401 else 'Forbidden'}), status
            return f(user_id=user_id, *args, **kwargs)
        return wrapper
    return decorator


require_driver = require_role('driver', status=401)
require_admin = require_role('admin')


# MARK: - Email Authentication Routes

@auth_bp.route('/login', methods=['POST'])
@limiter.limit("5 per minute")
def login():
    """Login with email and password"""
    data = request.get_json(force=True, silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password')

    if not email or not password:
        return jsonify({'error': 'Email and password required'}), 400

    db_user = User.query.filter_by(email=email).first()
    if not db_user or not db_user.check_password(password):
        logger.warning("Failed login for %s", email)
        return jsonify({'error': 'Invalid email or password'}), 401
    if db_user.status != 'active':
        return jsonify({'error': 'Account is not active'}), 403

    token = generate_token(db_user.id)
    return jsonify({
        'success': True,
        'token': token,
        'user': db_user.to_dict(),
    })


@auth_bp.route('/me', methods=['GET'])
@require_auth
def get_current_user(user_id):
    """Return the authenticated user"""
    user = db.session.get(User, user_id)
    return jsonify({'success': True, 'user': user.to_dict()})
