import math
from unittest import TestCase

from inksa_settlement.config import SettlementConfig
from inksa_settlement.logic.errors import InvalidInput
from inksa_settlement.logic.models import Coordinates, VehicleType
from inksa_settlement.logic.route_estimator import estimate_route, haversine_distance

# latitude que fica a exatos 5 km do equador, no mesmo meridiano
LAT_5KM = math.degrees(5 / 6371)


class HaversineTests(TestCase):
    def test_same_point_is_zero(self):
        self.assertEqual(haversine_distance(-1.4558, -48.5044, -1.4558, -48.5044), 0)

    def test_meridian_distance(self):
        self.assertAlmostEqual(haversine_distance(0, 0, LAT_5KM, 0), 5.0, places=6)

    def test_sao_paulo_to_rio(self):
        distance = haversine_distance(-23.5505, -46.6333, -22.9068, -43.1729)
        self.assertGreater(distance, 350)
        self.assertLess(distance, 365)


class EstimateRouteTests(TestCase):
    def test_motorcycle_without_traffic(self):
        route = estimate_route((0, 0), {"lat": LAT_5KM, "lng": 0}, "motorcycle")

        self.assertAlmostEqual(route.distance_km, 5.0, places=6)
        self.assertAlmostEqual(route.estimated_time_minutes, 12.0, places=6)
        self.assertEqual(route.vehicle_type, VehicleType.MOTORCYCLE)
        self.assertEqual(route.traffic_factor, 1.0)
        self.assertEqual(route.weather_factor, 1.0)
        self.assertIsNone(route.surge_multiplier)

    def test_speeds_per_vehicle(self):
        expected = {"motorcycle": 12.0, "car": 15.0, "bicycle": 25.0, "on_foot": 60.0}
        for vehicle, minutes in expected.items():
            route = estimate_route((0, 0), (LAT_5KM, 0), vehicle)
            self.assertAlmostEqual(route.estimated_time_minutes, minutes, places=6, msg=vehicle)

    def test_legacy_vehicle_names(self):
        self.assertEqual(estimate_route((0, 0), (LAT_5KM, 0), "moto").vehicle_type, VehicleType.MOTORCYCLE)
        self.assertEqual(estimate_route((0, 0), (LAT_5KM, 0), "a_pe").vehicle_type, VehicleType.ON_FOOT)

    def test_traffic_above_threshold_sets_surge(self):
        route = estimate_route((0, 0), (LAT_5KM, 0), "motorcycle", traffic_factor=1.5)

        self.assertEqual(route.surge_multiplier, 1.5)
        self.assertAlmostEqual(route.estimated_time_minutes, 18.0, places=6)

    def test_traffic_at_threshold_has_no_surge(self):
        route = estimate_route((0, 0), (LAT_5KM, 0), "car", traffic_factor=1.3)
        self.assertIsNone(route.surge_multiplier)

    def test_surge_is_capped(self):
        route = estimate_route((0, 0), (LAT_5KM, 0), "car", traffic_factor=3.0)
        self.assertEqual(route.surge_multiplier, 2.0)

    def test_surge_cap_comes_from_config(self):
        config = SettlementConfig().with_overrides(surge_multiplier_max=1.8)
        route = estimate_route((0, 0), (LAT_5KM, 0), "car", traffic_factor=2.5, config=config)
        self.assertEqual(route.surge_multiplier, 1.8)

    def test_weather_factors(self):
        rain = estimate_route((0, 0), (LAT_5KM, 0), "motorcycle", weather_condition="rain")
        heavy = estimate_route((0, 0), (LAT_5KM, 0), "motorcycle", traffic_factor=1.2,
                               weather_condition="heavy_rain")

        self.assertEqual(rain.weather_factor, 1.2)
        self.assertAlmostEqual(rain.estimated_time_minutes, 14.4, places=6)
        self.assertEqual(heavy.weather_factor, 1.5)
        self.assertAlmostEqual(heavy.estimated_time_minutes, 12.0 * 1.2 * 1.5, places=6)

    def test_accepts_coordinates_objects(self):
        route = estimate_route(Coordinates(0.0, 0.0), Coordinates(LAT_5KM, 0.0), VehicleType.BICYCLE)
        self.assertAlmostEqual(route.distance_km, 5.0, places=6)

    def test_invalid_inputs(self):
        with self.assertRaises(InvalidInput) as ctx:
            estimate_route(None, (LAT_5KM, 0), "motorcycle")
        self.assertEqual(ctx.exception.field, "origin_coords")

        with self.assertRaises(InvalidInput):
            estimate_route((0, 0), {"lat": 1.0}, "motorcycle")
        with self.assertRaises(InvalidInput):
            estimate_route((0, 0), (91, 0), "motorcycle")
        with self.assertRaises(InvalidInput) as ctx:
            estimate_route((0, 0), (LAT_5KM, 0), "truck")
        self.assertEqual(ctx.exception.field, "vehicle_type")
        with self.assertRaises(InvalidInput):
            estimate_route((0, 0), (LAT_5KM, 0), "car", traffic_factor=0.8)
        with self.assertRaises(InvalidInput):
            estimate_route((0, 0), (LAT_5KM, 0), "car", weather_condition="snow")

    def test_monotonic_in_distance(self):
        previous = None
        for km in (0.5, 1, 2, 5, 10, 20):
            route = estimate_route((0, 0), (math.degrees(km / 6371), 0), "car", traffic_factor=1.4)
            if previous is not None:
                self.assertGreaterEqual(route.estimated_time_minutes, previous.estimated_time_minutes)
                self.assertGreaterEqual(route.distance_km, previous.distance_km)
            previous = route
