# inksa_settlement/logic/route_estimator.py
import math
import logging

from ..config import DEFAULT_CONFIG, SettlementConfig
from .errors import InvalidInput
from .models import Coordinates, RouteEstimate, VehicleType, WeatherCondition

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371


def haversine_distance(lat1, lon1, lat2, lon2):
    """Calcula a distância (km) entre duas coordenadas usando a fórmula de Haversine"""
    lat1_rad = math.radians(lat1)
    lon1_rad = math.radians(lon1)
    lat2_rad = math.radians(lat2)
    lon2_rad = math.radians(lon2)

    dlon = lon2_rad - lon1_rad
    dlat = lat2_rad - lat1_rad

    a = math.sin(dlat / 2)**2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2)**2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def weather_factor_for(condition, config: SettlementConfig = DEFAULT_CONFIG) -> float:
    condition = WeatherCondition.parse(condition)
    if condition is WeatherCondition.HEAVY_RAIN:
        return config.heavy_rain_factor
    if condition is WeatherCondition.RAIN:
        return config.rain_factor
    return 1.0


def surge_multiplier_for(traffic_factor: float, config: SettlementConfig = DEFAULT_CONFIG):
    """Surge só existe com trânsito acima do limiar; nunca passa do máximo configurado."""
    if traffic_factor > config.surge_traffic_threshold:
        return min(traffic_factor, config.surge_multiplier_max)
    return None


def estimate_route(origin, destination, vehicle_type, traffic_factor=1.0,
                   weather_condition=None, config: SettlementConfig = DEFAULT_CONFIG) -> RouteEstimate:
    """
    Estima distância, tempo e surge entre restaurante e cliente. Função pura, sem chamadas de rede.

    Args:
        origin / destination: Coordinates, {lat, lng} ou [lat, lng].
        vehicle_type: motorcycle | car | bicycle | on_foot (aceita moto/carro/bicicleta/a_pe).
        traffic_factor: >= 1.0, fornecido pelo despacho.
        weather_condition: normal | rain | heavy_rain (sinal opaco, sem API de clima).
    """
    origin = Coordinates.parse(origin, field="origin_coords")
    destination = Coordinates.parse(destination, field="destination_coords")
    vehicle = VehicleType.parse(vehicle_type)

    if isinstance(traffic_factor, bool) or not isinstance(traffic_factor, (int, float)):
        raise InvalidInput("traffic_factor deve ser numérico", field="traffic_factor")
    traffic_factor = float(traffic_factor)
    if not math.isfinite(traffic_factor) or traffic_factor < 1.0:
        raise InvalidInput("traffic_factor deve ser >= 1.0", field="traffic_factor")

    distance_km = haversine_distance(origin.lat, origin.lng, destination.lat, destination.lng)

    # Tempo base sem trânsito, em minutos
    avg_speed = config.vehicle_speeds_kmh[vehicle.value]
    base_time = distance_km / avg_speed * 60

    weather_factor = weather_factor_for(weather_condition, config)
    estimated_time = base_time * traffic_factor * weather_factor

    route = RouteEstimate(
        distance_km=distance_km,
        estimated_time_minutes=estimated_time,
        vehicle_type=vehicle,
        traffic_factor=traffic_factor,
        weather_factor=weather_factor,
        surge_multiplier=surge_multiplier_for(traffic_factor, config),
    )
    logger.debug(f"Rota estimada: {distance_km:.2f} km, {estimated_time:.1f} min ({vehicle.value})")
    return route
