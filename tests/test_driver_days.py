"""
Driver day lifecycle tests: service functions and the /api/driver/day endpoint
"""
import pytest
import json
from datetime import date, datetime

import driver_days
from driver_days import (
    AUTO_CLOSE_REASON, DAY_ALREADY_CLOSED, DAY_ALREADY_OPEN, END_PREVIOUS_DAY,
    NO_OPEN_DAY, WAIT_FOR_DUTY_WINDOW,
)
from duty_windows import build_schedule
from errors import DriverDayError
from models import db, DriverDay, DAY_OPEN, DAY_CLOSED, TASK_COMPLETED
from settings_provider import StaticSettingsProvider

MONDAY = date(2024, 3, 4)


def at(hour, minute=0, day=MONDAY):
    return datetime(day.year, day.month, day.day, hour, minute)


@pytest.fixture
def office_hours():
    return StaticSettingsProvider(default_duty_schedule=build_schedule('08:00', '18:00'))


@pytest.fixture
def unrestricted():
    return StaticSettingsProvider()


def open_day(driver, day_date, started_at, **kwargs):
    day = DriverDay(driver_id=driver.id, day_date=day_date, status=DAY_OPEN, started_at=started_at, **kwargs)
    db.session.add(day)
    db.session.commit()
    return day


class TestDutyScenario:
    """Duty 08:00-18:00, early start refused, cash shift auto-closed in the evening"""

    def test_full_day(self, test_driver, booking_factory, office_hours):
        with pytest.raises(DriverDayError) as excinfo:
            driver_days.start_day(test_driver.id, now=at(7), settings=office_hours)
        assert excinfo.value.requires_action == WAIT_FOR_DUTY_WINDOW
        assert excinfo.value.status == 400
        assert excinfo.value.extra['nextDutyWindowStart'] == '2024-03-04T08:00:00'

        day = driver_days.start_day(test_driver.id, notes='Van 3', now=at(9), settings=office_hours)
        assert day.status == DAY_OPEN
        assert day.started_at == at(9)
        assert day.day_date == MONDAY
        assert day.start_notes == 'Van 3'

        booking_factory(task_status=TASK_COMPLETED, cash_collected=True, cash_amount_cents=5000,
                        task_completed_at=at(10))

        overview = driver_days.get_day_overview(test_driver.id, now=at(19), settings=office_hours)
        assert overview.day.status == DAY_CLOSED
        assert overview.day.cash_collected_cents == 5000
        assert overview.day.auto_closed is True
        assert overview.day.ended_at == at(18)
        assert overview.day.end_notes == AUTO_CLOSE_REASON
        assert [d.id for d in overview.auto_closed] == [day.id]
        assert overview.tasks_completed == 1


class TestStartDay:

    def test_unrestricted_schedule_starts_any_time(self, test_driver, unrestricted):
        day = driver_days.start_day(test_driver.id, now=at(3), settings=unrestricted)
        assert day.status == DAY_OPEN

    def test_already_open_today(self, test_driver, unrestricted):
        driver_days.start_day(test_driver.id, now=at(9), settings=unrestricted)
        with pytest.raises(DriverDayError) as excinfo:
            driver_days.start_day(test_driver.id, now=at(10), settings=unrestricted)
        assert excinfo.value.requires_action == DAY_ALREADY_OPEN

    def test_already_closed_today(self, test_driver, unrestricted):
        driver_days.start_day(test_driver.id, now=at(9), settings=unrestricted)
        driver_days.end_day(test_driver.id, now=at(12))
        with pytest.raises(DriverDayError) as excinfo:
            driver_days.start_day(test_driver.id, now=at(13), settings=unrestricted)
        error = excinfo.value
        assert error.requires_action == DAY_ALREADY_CLOSED
        assert error.extra['canStartNewDay'] is False
        assert error.extra['nextAvailableDate'] == '2024-03-05'
        assert error.extra['previousDay']['status'] == DAY_CLOSED

    def test_previous_open_day_blocks(self, test_driver, unrestricted):
        open_day(test_driver, date(2024, 3, 3), at(9, day=date(2024, 3, 3)))
        with pytest.raises(DriverDayError) as excinfo:
            driver_days.start_day(test_driver.id, now=at(9), settings=unrestricted)
        assert excinfo.value.requires_action == END_PREVIOUS_DAY
        assert excinfo.value.extra['previousDay']['date'] == '2024-03-03'
        assert DriverDay.query.filter_by(driver_id=test_driver.id, status=DAY_OPEN).count() == 1

    def test_stale_previous_day_is_auto_closed_first(self, test_driver, office_hours):
        stale = open_day(test_driver, date(2024, 3, 3), at(9, day=date(2024, 3, 3)))
        day = driver_days.start_day(test_driver.id, now=at(9), settings=office_hours)

        db.session.refresh(stale)
        assert stale.status == DAY_CLOSED
        assert stale.auto_closed is True
        assert stale.ended_at == at(18, day=date(2024, 3, 3))
        assert day.status == DAY_OPEN
        assert DriverDay.query.filter_by(driver_id=test_driver.id, status=DAY_OPEN).count() == 1

    def test_off_day_waits_for_next_scheduled_day(self, test_driver):
        settings = StaticSettingsProvider(default_duty_schedule=build_schedule(shifts=[
            {'name': 'Monday', 'startTime': '08:00', 'endTime': '18:00', 'days': ['MON']},
        ]))
        tuesday = date(2024, 3, 5)
        with pytest.raises(DriverDayError) as excinfo:
            driver_days.start_day(test_driver.id, now=at(9, day=tuesday), settings=settings)
        assert excinfo.value.requires_action == WAIT_FOR_DUTY_WINDOW
        assert excinfo.value.extra['nextDutyWindowStart'] == '2024-03-11T08:00:00'
        assert excinfo.value.extra['dutyWindows'] == []

    def test_overnight_window_from_yesterday_allows_start(self, test_driver):
        settings = StaticSettingsProvider(default_duty_schedule=build_schedule('22:00', '06:00'))
        day = driver_days.start_day(test_driver.id, now=at(2), settings=settings)
        assert day.day_date == MONDAY


class TestEndDay:

    def test_no_open_day(self, test_driver):
        with pytest.raises(DriverDayError) as excinfo:
            driver_days.end_day(test_driver.id, now=at(12))
        assert excinfo.value.requires_action == NO_OPEN_DAY

    def test_end_sums_cash_completed_during_shift(self, test_driver, booking_factory, unrestricted):
        driver_days.start_day(test_driver.id, now=at(9), settings=unrestricted)
        booking_factory(task_status=TASK_COMPLETED, cash_collected=True, cash_amount_cents=3000,
                        task_completed_at=at(10))
        booking_factory(task_status=TASK_COMPLETED, cash_collected=True, cash_amount_cents=2500,
                        task_completed_at=at(11))
        # Before the shift started
        booking_factory(task_status=TASK_COMPLETED, cash_collected=True, cash_amount_cents=9999,
                        task_completed_at=at(8))
        # Card payment, no cash
        booking_factory(task_status=TASK_COMPLETED, cash_collected=False, task_completed_at=at(11))

        day = driver_days.end_day(test_driver.id, notes='All good', now=at(17))
        assert day.status == DAY_CLOSED
        assert day.ended_at == at(17)
        assert day.cash_collected_cents == 5500
        assert day.end_notes == 'All good'
        assert day.auto_closed is False

    def test_end_without_notes_keeps_existing(self, test_driver):
        open_day(test_driver, MONDAY, at(9), end_notes='Set earlier')
        day = driver_days.end_day(test_driver.id, now=at(12))
        assert day.end_notes == 'Set earlier'

    def test_end_closes_previous_date_day(self, test_driver):
        earlier = open_day(test_driver, date(2024, 3, 3), at(9, day=date(2024, 3, 3)))
        day = driver_days.end_day(test_driver.id, now=at(8))
        assert day.id == earlier.id
        assert day.status == DAY_CLOSED


class TestDayOverview:

    def test_previous_open_day_reported(self, test_driver, unrestricted):
        previous = open_day(test_driver, date(2024, 3, 3), at(9, day=date(2024, 3, 3)))
        overview = driver_days.get_day_overview(test_driver.id, now=at(9), settings=unrestricted)
        assert overview.day is None
        assert overview.requires_action == END_PREVIOUS_DAY
        assert overview.previous_open_day.id == previous.id

    def test_open_day_within_schedule_stays_open(self, test_driver, office_hours):
        open_day(test_driver, MONDAY, at(9))
        overview = driver_days.get_day_overview(test_driver.id, now=at(12), settings=office_hours)
        assert overview.day.status == DAY_OPEN
        assert overview.duty.on_duty is True
        assert overview.auto_closed == []

    def test_unsettled_collections(self, test_driver, booking_factory, unrestricted):
        open_day(test_driver, MONDAY, at(9))
        booking_factory(task_status=TASK_COMPLETED, cash_collected=True, cash_amount_cents=4000,
                        task_completed_at=at(10))
        booking_factory(task_status=TASK_COMPLETED, cash_collected=True, cash_amount_cents=1000,
                        cash_settled=True, task_completed_at=at(10, 30))

        overview = driver_days.get_day_overview(test_driver.id, now=at(12), settings=unrestricted)
        assert [c.amount_cents for c in overview.unsettled_collections] == [4000]
        assert overview.unsettled_collections[0].to_dict()['serviceName'] == 'Exterior Wash'


class TestAdministration:

    def test_reset_reopens_todays_closed_day(self, test_driver, unrestricted):
        driver_days.start_day(test_driver.id, now=at(9), settings=unrestricted)
        closed = driver_days.end_day(test_driver.id, now=at(10))

        day = driver_days.reset_day(closed.id, now=at(11))
        assert day.status == DAY_OPEN
        assert day.ended_at is None
        assert DriverDay.query.count() == 1

    def test_reset_rejects_earlier_date(self, test_driver):
        earlier = open_day(test_driver, date(2024, 3, 3), at(9, day=date(2024, 3, 3)))
        driver_days.end_day(test_driver.id, now=at(20, day=date(2024, 3, 3)))
        with pytest.raises(DriverDayError):
            driver_days.reset_day(earlier.id, now=at(9))

    def test_reset_rejects_open_day(self, test_driver):
        day = open_day(test_driver, MONDAY, at(9))
        with pytest.raises(DriverDayError):
            driver_days.reset_day(day.id, now=at(10))

    def test_settle_marks_bookings(self, test_driver, booking_factory):
        day = open_day(test_driver, MONDAY, at(9))
        booking = booking_factory(task_status=TASK_COMPLETED, cash_collected=True, cash_amount_cents=4000,
                                  task_completed_at=at(10))

        settled, count = driver_days.settle_day(day.id, now=at(12))
        assert count == 1
        assert settled.cash_settled_cents == 4000
        db.session.refresh(booking)
        assert booking.cash_settled is True


class TestDriverDayEndpoint:

    @pytest.fixture(autouse=True)
    def frozen_clock(self, monkeypatch):
        self.now = at(9)
        monkeypatch.setattr('routes.driver_day.local_now', lambda: self.now)

    def test_requires_driver(self, client, auth_headers):
        response = client.get('/api/driver/day', headers=auth_headers)
        assert response.status_code == 401

    def test_connectivity_check(self, client, driver_headers, test_driver):
        response = client.get('/api/driver/day?test=true', headers=driver_headers)
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['success'] is True
        assert data['driverId'] == test_driver.id

    def test_start_then_status(self, client, driver_headers):
        response = client.post('/api/driver/day', headers=driver_headers, json={'action': 'start', 'notes': 'hi'})
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['driverDay']['status'] == 'OPEN'
        assert data['driverDay']['startNotes'] == 'hi'
        assert data['driverDay']['tasksCompleted'] == 0

        response = client.get('/api/driver/day?status=true', headers=driver_headers)
        data = json.loads(response.data)
        assert data['hasActiveDay'] is True
        assert data['currentDate'] == '2024-03-04'

    def test_start_outside_duty_window(self, client, driver_headers, duty_hours):
        duty_hours('08:00', '18:00')
        self.now = at(7)
        response = client.post('/api/driver/day', headers=driver_headers, json={'action': 'start'})
        assert response.status_code == 400
        data = json.loads(response.data)
        assert data['requiresAction'] == WAIT_FOR_DUTY_WINDOW
        assert data['nextDutyWindowStart'] == '2024-03-04T08:00:00'

    def test_overview_auto_closes_after_schedule(self, client, driver_headers, duty_hours):
        duty_hours('08:00', '18:00')
        client.post('/api/driver/day', headers=driver_headers, json={'action': 'start'})

        self.now = at(19)
        response = client.get('/api/driver/day', headers=driver_headers)
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['driverDay']['status'] == 'CLOSED'
        assert data['driverDay']['endNotes'] == AUTO_CLOSE_REASON
        assert data['driverDay']['autoClosed'] is True
        assert len(data['autoClosedDays']) == 1

    def test_overview_without_day(self, client, driver_headers):
        response = client.get('/api/driver/day?date=2024-03-01', headers=driver_headers)
        data = json.loads(response.data)
        assert data['driverDay'] is None
        assert data['message'] == 'No shift started for this date'

    def test_bad_date(self, client, driver_headers):
        response = client.get('/api/driver/day?date=yesterday', headers=driver_headers)
        assert response.status_code == 400

    def test_end_without_open_day(self, client, driver_headers):
        response = client.post('/api/driver/day', headers=driver_headers, json={'action': 'end'})
        assert response.status_code == 400
        assert json.loads(response.data)['requiresAction'] == NO_OPEN_DAY

    def test_invalid_action(self, client, driver_headers):
        response = client.post('/api/driver/day', headers=driver_headers, json={'action': 'pause'})
        assert response.status_code == 400
