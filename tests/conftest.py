"""
Pytest configuration and fixtures for WashOps backend tests
"""
import pytest
from datetime import datetime

from server import create_app
from models import (
    db, User, Partner, Service, Booking, Payment, DutySettings,
    BOOKING_ASSIGNED, TASK_ASSIGNED,
)
from auth_routes import generate_token
from settings_provider import StaticSettingsProvider, DEFAULT_SETTINGS


@pytest.fixture(scope='function')
def app():
    """Fresh application and in-memory database per test"""
    app = create_app('testing')

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client"""
    return app.test_client()


@pytest.fixture
def user_factory(app):
    """Factory for users of any role"""
    counter = {'n': 0}

    def _create_user(role='customer', **kwargs):
        counter['n'] += 1
        defaults = {
            'email': '{}{}@example.com'.format(role, counter['n']),
            'name': '{} {}'.format(role.title(), counter['n']),
            'role': role,
        }
        defaults.update(kwargs)
        password = defaults.pop('password', 'TestPass123!')
        user = User(**defaults)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    return _create_user


@pytest.fixture
def test_customer(user_factory):
    return user_factory('customer', email='customer@example.com', name='Carla Customer')


@pytest.fixture
def test_driver(user_factory):
    return user_factory('driver', email='driver@example.com', name='Dan Driver')


@pytest.fixture
def test_admin(user_factory):
    return user_factory('admin', email='admin@example.com', name='Ada Admin')


@pytest.fixture
def test_staff(user_factory):
    return user_factory('staff', email='staff@example.com', name='Sam Staff')


@pytest.fixture
def test_partner(app):
    partner = Partner(name='Sparkle Fleet', email='fleet@example.com', commission_percentage=None)
    db.session.add(partner)
    db.session.commit()
    return partner


@pytest.fixture
def partner_driver(user_factory, test_partner):
    return user_factory('driver', email='fleetdriver@example.com', name='Fleet Driver',
                        partner_id=test_partner.id)


@pytest.fixture
def test_service(app):
    service = Service(name='Exterior Wash', price_cents=5000, duration_min=45)
    db.session.add(service)
    db.session.commit()
    return service


@pytest.fixture
def settings():
    """Platform settings as seeded by ``flask seed-settings``"""
    return StaticSettingsProvider(values=DEFAULT_SETTINGS)


def _headers(user):
    return {
        'Authorization': 'Bearer {}'.format(generate_token(user.id)),
        'Content-Type': 'application/json',
    }


@pytest.fixture
def auth_headers(test_customer):
    return _headers(test_customer)


@pytest.fixture
def driver_headers(test_driver):
    return _headers(test_driver)


@pytest.fixture
def admin_headers(test_admin):
    return _headers(test_admin)


@pytest.fixture
def staff_headers(test_staff):
    return _headers(test_staff)


@pytest.fixture
def headers_for():
    return _headers


@pytest.fixture
def booking_factory(test_customer, test_driver, test_service):
    """Factory for bookings; assigned to ``test_driver`` unless overridden"""
    def _create_booking(payment_status=None, payment_amount_cents=None, **kwargs):
        defaults = {
            'user_id': test_customer.id,
            'service_id': test_service.id,
            'driver_id': test_driver.id,
            'status': BOOKING_ASSIGNED,
            'task_status': TASK_ASSIGNED,
            'start_at': datetime(2024, 3, 4, 10, 0),
            'end_at': datetime(2024, 3, 4, 10, 45),
            'vehicle_plate': 'DXB 12345',
        }
        defaults.update(kwargs)
        booking = Booking(**defaults)
        db.session.add(booking)
        db.session.flush()
        if payment_status is not None:
            db.session.add(Payment(booking_id=booking.id, status=payment_status,
                                   amount_cents=payment_amount_cents))
        db.session.commit()
        return booking

    return _create_booking


@pytest.fixture
def duty_hours(app):
    """Store a platform-wide duty schedule (driver_id NULL row)"""
    def _set(start_time=None, end_time=None, shifts=None, driver_id=None):
        row = DutySettings(driver_id=driver_id, start_time=start_time, end_time=end_time, shifts=shifts or [])
        db.session.add(row)
        db.session.commit()
        return row

    return _set
