from decimal import Decimal
from unittest import TestCase

from inksa_settlement.config import SettlementConfig
from inksa_settlement.logic.commission import compute_commission
from inksa_settlement.logic.courier_payment import compute_courier_payment
from inksa_settlement.logic.delivery_fee import compute_delivery_fee
from inksa_settlement.logic.errors import InvalidInput
from inksa_settlement.logic.models import RouteEstimate, VehicleType


def make_route(distance_km=5.0, minutes=12.0, traffic=1.0, weather=1.0, surge=None):
    return RouteEstimate(
        distance_km=distance_km,
        estimated_time_minutes=minutes,
        vehicle_type=VehicleType.MOTORCYCLE,
        traffic_factor=traffic,
        weather_factor=weather,
        surge_multiplier=surge,
    )


class DeliveryFeeTests(TestCase):
    def test_distance_based_fee(self):
        fee = compute_delivery_fee(make_route(), 50)

        self.assertEqual(fee.base_fee, Decimal("3.99"))
        self.assertEqual(fee.distance_fee, Decimal("7.50"))
        self.assertEqual(fee.service_fee, Decimal("2.50"))
        self.assertEqual(fee.total_delivery_fee, Decimal("13.99"))
        self.assertIsNone(fee.surge_fee)
        self.assertIsNone(fee.weather_fee)
        self.assertEqual(fee.calculation_method, "distance_based")

    def test_surge_multiplies_base_and_distance_only(self):
        fee = compute_delivery_fee(make_route(minutes=18.0, traffic=1.5, surge=1.5), 50)

        self.assertEqual(fee.base_fee, Decimal("5.985"))
        self.assertEqual(fee.distance_fee, Decimal("11.25"))
        self.assertEqual(fee.service_fee, Decimal("2.50"))
        self.assertEqual(fee.surge_fee, Decimal("5.745"))
        self.assertEqual(fee.total_delivery_fee, Decimal("19.735"))
        self.assertEqual(fee.to_dict()["total_delivery_fee"], 19.74)

    def test_weather_fee_added_on_top(self):
        fee = compute_delivery_fee(make_route(weather=1.2), 50)

        self.assertEqual(fee.weather_fee, Decimal("2.298"))
        self.assertEqual(fee.total_delivery_fee, Decimal("16.288"))

    def test_free_delivery_overrides_total_but_keeps_components(self):
        fee = compute_delivery_fee(make_route(weather=1.5, surge=1.5, traffic=1.5), 50, promo_code="FRETEGRATIS")

        self.assertEqual(fee.total_delivery_fee, Decimal("0"))
        self.assertTrue(fee.promo_applied)
        self.assertEqual(fee.base_fee, Decimal("5.985"))
        self.assertEqual(fee.distance_fee, Decimal("11.25"))
        self.assertEqual(fee.service_fee, Decimal("2.50"))
        self.assertIsNotNone(fee.weather_fee)
        self.assertIsNotNone(fee.surge_fee)

    def test_free_delivery_code_matching(self):
        self.assertEqual(compute_delivery_fee(make_route(), 50, promo_code=" fretegratis ").total_delivery_fee, 0)
        self.assertEqual(compute_delivery_fee(make_route(), 50, promo_code="FREE_DELIVERY").total_delivery_fee, 0)
        other = compute_delivery_fee(make_route(), 50, promo_code="DESCONTO10")
        self.assertEqual(other.total_delivery_fee, Decimal("13.99"))
        self.assertFalse(other.promo_applied)

    def test_custom_config(self):
        config = SettlementConfig().with_overrides(base_delivery_fee="5.00", distance_rate_per_km="2.00")
        fee = compute_delivery_fee(make_route(), 50, config=config)
        self.assertEqual(fee.total_delivery_fee, Decimal("17.50"))

    def test_negative_order_value_is_rejected(self):
        with self.assertRaises(InvalidInput):
            compute_delivery_fee(make_route(), -1)

    def test_distance_fee_monotonic(self):
        fees = [compute_delivery_fee(make_route(distance_km=km), 30).distance_fee for km in (0, 1, 2.5, 7, 15)]
        self.assertEqual(fees, sorted(fees))


class CommissionTests(TestCase):
    def test_standard_order(self):
        commission = compute_commission(50, Decimal("13.99"))

        self.assertEqual(commission.platform_commission_rate, Decimal("0.20"))
        self.assertEqual(commission.platform_commission_amount, Decimal("10.00"))
        self.assertEqual(commission.payment_processing_fee, Decimal("2.24571"))
        self.assertEqual(commission.restaurant_net_amount, Decimal("37.75429"))

    def test_delivery_fee_is_not_in_commission_base(self):
        low_fee = compute_commission(80, 0)
        high_fee = compute_commission(80, 30)
        self.assertEqual(low_fee.platform_commission_amount, high_fee.platform_commission_amount)
        self.assertGreater(high_fee.payment_processing_fee, low_fee.payment_processing_fee)

    def test_minimum_commission(self):
        commission = compute_commission(5, 0)
        self.assertEqual(commission.platform_commission_amount, Decimal("2.00"))

    def test_small_order_net_can_be_negative(self):
        commission = compute_commission("1.00", "13.99")

        self.assertEqual(commission.platform_commission_amount, Decimal("2.00"))
        self.assertEqual(commission.payment_processing_fee, Decimal("0.82471"))
        self.assertEqual(commission.restaurant_net_amount, Decimal("-1.82471"))
        self.assertEqual(commission.to_dict()["restaurant_net_amount"], -1.82)

    def test_rate_override(self):
        commission = compute_commission(50, 0, commission_rate="0.10")
        self.assertEqual(commission.platform_commission_amount, Decimal("5.00"))

    def test_invalid_inputs(self):
        with self.assertRaises(InvalidInput):
            compute_commission(0, 5)
        with self.assertRaises(InvalidInput):
            compute_commission(10, -1)
        with self.assertRaises(InvalidInput):
            compute_commission(10, 1, commission_rate=0)
        with self.assertRaises(InvalidInput):
            compute_commission(10, 1, commission_rate=1.5)

    def test_commission_never_below_minimum(self):
        for subtotal in ("0.01", "1", "9.99", "10", "10.01", "250"):
            commission = compute_commission(subtotal, 5)
            self.assertGreaterEqual(commission.platform_commission_amount, Decimal("2.00"), msg=subtotal)


class CourierPaymentTests(TestCase):
    def test_regular_delivery(self):
        payment = compute_courier_payment(make_route())

        self.assertEqual(payment.base_pay, Decimal("4.00"))
        self.assertEqual(payment.distance_pay, Decimal("10.00"))
        self.assertEqual(payment.time_pay, Decimal("1.80"))
        self.assertIsNone(payment.weather_bonus)
        self.assertIsNone(payment.surge_bonus)
        self.assertIsNone(payment.incentive_bonus)
        self.assertEqual(payment.total_earnings, Decimal("15.80"))

    def test_surge_route_adds_surge_bonus(self):
        payment = compute_courier_payment(make_route(minutes=18.0, traffic=1.5, surge=1.5))

        self.assertEqual(payment.surge_bonus, Decimal("4.20"))
        self.assertEqual(payment.total_earnings, Decimal("20.90"))

    def test_peak_hours_alone_adds_surge_bonus(self):
        payment = compute_courier_payment(make_route(), is_peak_hours=True)
        self.assertEqual(payment.surge_bonus, Decimal("4.20"))

    def test_weather_bonus(self):
        payment = compute_courier_payment(make_route(weather=1.2))
        self.assertEqual(payment.weather_bonus, Decimal("2.80"))

    def test_incentive_threshold(self):
        self.assertIsNone(compute_courier_payment(make_route(), deliveries_completed=9).incentive_bonus)
        self.assertEqual(compute_courier_payment(make_route(), deliveries_completed=10).incentive_bonus,
                         Decimal("5.00"))
        self.assertEqual(compute_courier_payment(make_route(), deliveries_completed=40).incentive_bonus,
                         Decimal("5.00"))

    def test_guaranteed_minimum_keeps_tip_on_top(self):
        short = make_route(distance_km=0.5, minutes=1.2)

        no_tip = compute_courier_payment(short)
        with_tip = compute_courier_payment(short, tip_amount="3.00")

        self.assertEqual(no_tip.total_earnings, Decimal("8.00"))
        self.assertTrue(no_tip.guarantee_applied)
        self.assertEqual(with_tip.total_earnings, Decimal("11.00"))
        self.assertEqual(with_tip.tip_amount, Decimal("3.00"))

    def test_earnings_never_below_guarantee_plus_tip(self):
        for km in (0, 0.2, 1, 3, 8):
            for tip in (0, 1, 7.5):
                payment = compute_courier_payment(make_route(distance_km=km, minutes=km * 2.4), tip_amount=tip)
                self.assertGreaterEqual(payment.total_earnings, Decimal("8.00") + Decimal(str(tip)))

    def test_invalid_inputs(self):
        with self.assertRaises(InvalidInput):
            compute_courier_payment(make_route(), tip_amount=-1)
        with self.assertRaises(InvalidInput):
            compute_courier_payment(make_route(), deliveries_completed=-2)

    def test_distance_pay_monotonic(self):
        pays = [compute_courier_payment(make_route(distance_km=km)).distance_pay for km in (0, 1, 2.5, 7, 15)]
        self.assertEqual(pays, sorted(pays))
