"""
Price arithmetic and quote endpoint tests
"""
import pytest
import json

from models import db, AdminSetting
from pricing import compute_booking_pricing, discounted_price, reverse_net_base, round_half_away
from settings_provider import PricingSettings


@pytest.fixture
def pricing_settings():
    return PricingSettings(tax_percentage=5, stripe_fee_percentage=3, extra_fee_cents=100)


class TestArithmetic:

    def test_round_half_away(self):
        assert round_half_away(2.5) == 3
        assert round_half_away(-2.5) == -3
        assert round_half_away(2.4) == 2

    @pytest.mark.parametrize('price, pct, expected', [
        (5000, None, 5000),
        (5000, 20, 4000),
        (5000, 150, 0),
        (0, 10, 0),
    ])
    def test_discounted_price(self, price, pct, expected):
        assert discounted_price(price, pct) == expected

    def test_card_breakdown(self, pricing_settings):
        breakdown = compute_booking_pricing(10000, pricing_settings)
        assert breakdown == {
            'net_cents': 10000,
            'vat_cents': 500,
            'processor_fee_cents': 315,
            'extra_fee_cents': 100,
            'total_cents': 10915,
        }

    def test_cash_has_no_fees(self, pricing_settings):
        breakdown = compute_booking_pricing(10000, pricing_settings, card=False)
        assert breakdown['total_cents'] == 10500
        assert breakdown['processor_fee_cents'] == 0

    def test_reverse_recovers_net(self, pricing_settings):
        assert round(reverse_net_base(10915, pricing_settings, card=True)) == 10000
        assert round(reverse_net_base(10500, pricing_settings, card=False)) == 10000

    def test_reverse_never_negative(self, pricing_settings):
        assert reverse_net_base(50, pricing_settings, card=True) == 0.0


class TestQuoteEndpoint:

    def test_card_quote(self, client, test_service):
        db.session.add(AdminSetting(key='EXTRA_FEE_AMOUNT', value='2'))
        db.session.commit()

        response = client.get('/api/pricing/quote?service_id={}'.format(test_service.id))
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['payment'] == 'card'
        assert data['pricing']['net_cents'] == 5000
        assert data['pricing']['extra_fee_cents'] == 200

    def test_cash_quote(self, client, test_service):
        response = client.get('/api/pricing/quote?service_id={}&payment=cash'.format(test_service.id))
        data = json.loads(response.data)
        assert data['pricing']['processor_fee_cents'] == 0
        assert data['pricing']['extra_fee_cents'] == 0

    def test_unknown_service(self, client):
        response = client.get('/api/pricing/quote?service_id=missing')
        assert response.status_code == 404

    def test_bad_payment(self, client, test_service):
        response = client.get('/api/pricing/quote?service_id={}&payment=crypto'.format(test_service.id))
        assert response.status_code == 400
