# inksa_settlement/logic/models.py
"""Value objects da liquidação financeira de um pedido. Todos imutáveis, recriados por pedido."""
import math
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from .errors import InvalidInput
from .money import money_to_float


class VehicleType(str, Enum):
    MOTORCYCLE = "motorcycle"
    CAR = "car"
    BICYCLE = "bicycle"
    ON_FOOT = "on_foot"

    @classmethod
    def parse(cls, value) -> "VehicleType":
        if isinstance(value, cls):
            return value
        if not isinstance(value, str) or not value.strip():
            raise InvalidInput("vehicle_type é obrigatório", field="vehicle_type")
        key = value.strip().lower()
        # valores legados gravados pelos apps (perfil do entregador)
        key = _VEHICLE_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            allowed = ", ".join(v.value for v in cls)
            raise InvalidInput(f"vehicle_type inválido: {value!r} (use {allowed})", field="vehicle_type")


_VEHICLE_ALIASES = {
    "moto": "motorcycle",
    "carro": "car",
    "bicicleta": "bicycle",
    "bike": "bicycle",
    "a_pe": "on_foot",
    "a pé": "on_foot",
}


class WeatherCondition(str, Enum):
    NORMAL = "normal"
    RAIN = "rain"
    HEAVY_RAIN = "heavy_rain"

    @classmethod
    def parse(cls, value) -> Optional["WeatherCondition"]:
        if value is None or value == "":
            return None
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidInput(f"weather_condition inválido: {value!r}", field="weather_condition")


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float

    def __post_init__(self):
        for name in ("lat", "lng"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise InvalidInput(f"Coordenada {name} inválida: {value!r}", field=name)
        if not -90.0 <= self.lat <= 90.0:
            raise InvalidInput(f"Latitude fora do intervalo: {self.lat}", field="lat")
        if not -180.0 <= self.lng <= 180.0:
            raise InvalidInput(f"Longitude fora do intervalo: {self.lng}", field="lng")

    @classmethod
    def parse(cls, value, field: str = "coords") -> "Coordinates":
        """Aceita Coordinates, {lat, lng}, {latitude, longitude} ou [lat, lng]."""
        if isinstance(value, cls):
            return value
        if value is None:
            raise InvalidInput(f"{field} é obrigatório", field=field)
        if isinstance(value, dict):
            lat = value.get("lat", value.get("latitude"))
            lng = value.get("lng", value.get("lon", value.get("longitude")))
        elif isinstance(value, (list, tuple)) and len(value) == 2:
            lat, lng = value
        else:
            raise InvalidInput(f"{field} em formato inválido", field=field)
        if lat is None or lng is None:
            raise InvalidInput(f"{field} incompleto: latitude e longitude são obrigatórias", field=field)
        try:
            return cls(float(lat), float(lng))
        except InvalidInput as e:
            raise InvalidInput(e.message, field=field)
        except (TypeError, ValueError):
            raise InvalidInput(f"{field} com valores não numéricos", field=field)

    def to_dict(self):
        return {"lat": self.lat, "lng": self.lng}


@dataclass(frozen=True)
class RouteEstimate:
    distance_km: float
    estimated_time_minutes: float
    vehicle_type: VehicleType
    traffic_factor: float = 1.0
    weather_factor: Optional[float] = None
    surge_multiplier: Optional[float] = None

    def __post_init__(self):
        if self.distance_km < 0:
            raise InvalidInput("distance_km não pode ser negativo", field="distance_km")
        if self.estimated_time_minutes < 0:
            raise InvalidInput("estimated_time_minutes não pode ser negativo", field="estimated_time_minutes")
        if self.traffic_factor < 1.0:
            raise InvalidInput("traffic_factor deve ser >= 1.0", field="traffic_factor")
        if self.weather_factor is not None and self.weather_factor < 1.0:
            raise InvalidInput("weather_factor deve ser >= 1.0", field="weather_factor")

    @property
    def has_weather_impact(self) -> bool:
        return self.weather_factor is not None and self.weather_factor > 1.0

    def to_dict(self):
        return {
            "distance_km": round(self.distance_km, 2),
            "estimated_time_minutes": round(self.estimated_time_minutes, 2),
            "traffic_factor": self.traffic_factor,
            "vehicle_type": self.vehicle_type.value,
            "weather_factor": self.weather_factor,
            "surge_multiplier": self.surge_multiplier,
        }


@dataclass(frozen=True)
class DeliveryFee:
    base_fee: Decimal
    distance_fee: Decimal
    service_fee: Decimal
    total_delivery_fee: Decimal
    surge_fee: Optional[Decimal] = None
    weather_fee: Optional[Decimal] = None
    calculation_method: str = "distance_based"
    promo_applied: bool = False

    def to_dict(self):
        return {
            "base_fee": money_to_float(self.base_fee),
            "distance_fee": money_to_float(self.distance_fee),
            "service_fee": money_to_float(self.service_fee),
            "surge_fee": money_to_float(self.surge_fee),
            "weather_fee": money_to_float(self.weather_fee),
            "total_delivery_fee": money_to_float(self.total_delivery_fee),
            "calculation_method": self.calculation_method,
            "promo_applied": self.promo_applied,
        }


@dataclass(frozen=True)
class Commission:
    order_subtotal: Decimal
    platform_commission_rate: Decimal
    platform_commission_amount: Decimal
    payment_processing_fee: Decimal
    restaurant_net_amount: Decimal

    def to_dict(self):
        return {
            "order_subtotal": money_to_float(self.order_subtotal),
            "platform_commission_rate": float(self.platform_commission_rate),
            "platform_commission_amount": money_to_float(self.platform_commission_amount),
            "payment_processing_fee": money_to_float(self.payment_processing_fee),
            "restaurant_net_amount": money_to_float(self.restaurant_net_amount),
        }


@dataclass(frozen=True)
class CourierPayment:
    base_pay: Decimal
    distance_pay: Decimal
    time_pay: Decimal
    minimum_guaranteed: Decimal
    tip_amount: Decimal
    total_earnings: Decimal
    weather_bonus: Optional[Decimal] = None
    surge_bonus: Optional[Decimal] = None
    incentive_bonus: Optional[Decimal] = None

    @property
    def guarantee_applied(self) -> bool:
        return self.total_earnings == self.minimum_guaranteed + self.tip_amount

    def to_dict(self):
        return {
            "base_pay": money_to_float(self.base_pay),
            "distance_pay": money_to_float(self.distance_pay),
            "time_pay": money_to_float(self.time_pay),
            "minimum_guaranteed": money_to_float(self.minimum_guaranteed),
            "weather_bonus": money_to_float(self.weather_bonus),
            "surge_bonus": money_to_float(self.surge_bonus),
            "tip_amount": money_to_float(self.tip_amount),
            "incentive_bonus": money_to_float(self.incentive_bonus),
            "total_earnings": money_to_float(self.total_earnings),
        }


@dataclass(frozen=True)
class PlatformRevenue:
    total_collected: Decimal
    restaurant_payout: Decimal
    delivery_payout: Decimal
    platform_commission: Decimal
    service_fees: Decimal
    payment_processing_costs: Decimal
    delivery_fee_retained: Decimal
    net_platform_revenue: Decimal

    def to_dict(self):
        return {
            "total_collected": money_to_float(self.total_collected),
            "restaurant_payout": money_to_float(self.restaurant_payout),
            "delivery_payout": money_to_float(self.delivery_payout),
            "platform_commission": money_to_float(self.platform_commission),
            "service_fees": money_to_float(self.service_fees),
            "payment_processing_costs": money_to_float(self.payment_processing_costs),
            "delivery_fee_retained": money_to_float(self.delivery_fee_retained),
            "net_platform_revenue": money_to_float(self.net_platform_revenue),
        }
