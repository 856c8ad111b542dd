# inksa_settlement/logic/delivery_fee.py
import logging
from decimal import Decimal
from typing import Optional

from ..config import DEFAULT_CONFIG, SettlementConfig
from .models import DeliveryFee, RouteEstimate
from .money import ZERO, to_money

logger = logging.getLogger(__name__)


def compute_delivery_fee(route: RouteEstimate, order_value, zone: Optional[str] = None,
                         promo_code: Optional[str] = None,
                         config: SettlementConfig = DEFAULT_CONFIG) -> DeliveryFee:
    """Taxa de entrega cobrada do cliente, baseada na distância.

    O surge multiplica base e distância (a taxa de serviço não). Com código de frete grátis
    o total vira exatamente 0, mas os componentes continuam preenchidos para auditoria.
    """
    order_value = to_money(order_value, field="order_value")
    distance = Decimal(str(route.distance_km))

    base_fee = config.base_delivery_fee
    distance_fee = distance * config.distance_rate_per_km
    service_fee = order_value * config.service_fee_rate

    surge_fee = None
    if route.surge_multiplier:
        multiplier = Decimal(str(route.surge_multiplier))
        unsurged = base_fee + distance_fee
        base_fee *= multiplier
        distance_fee *= multiplier
        # já contido em base_fee/distance_fee; não soma de novo no total
        surge_fee = base_fee + distance_fee - unsurged

    weather_fee = None
    if route.has_weather_impact:
        weather_fee = (base_fee + distance_fee) * (Decimal(str(route.weather_factor)) - 1)

    total = base_fee + distance_fee + service_fee + (weather_fee or ZERO)

    promo_applied = config.is_free_delivery_code(promo_code)
    if promo_applied:
        logger.info(f"Código de frete grátis aplicado ({promo_code}); total calculado era {total}")
        total = ZERO

    if zone:
        logger.debug(f"Taxa calculada para zona {zone}")

    return DeliveryFee(
        base_fee=base_fee,
        distance_fee=distance_fee,
        service_fee=service_fee,
        surge_fee=surge_fee,
        weather_fee=weather_fee,
        total_delivery_fee=total,
        calculation_method="distance_based",
        promo_applied=promo_applied,
    )
