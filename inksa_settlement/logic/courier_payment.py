# inksa_settlement/logic/courier_payment.py
from decimal import Decimal

from ..config import DEFAULT_CONFIG, SettlementConfig
from .errors import InvalidInput
from .models import CourierPayment, RouteEstimate
from .money import ZERO, to_money


def compute_courier_payment(route: RouteEstimate, tip_amount=0, is_peak_hours=False,
                            deliveries_completed=0,
                            config: SettlementConfig = DEFAULT_CONFIG) -> CourierPayment:
    """
    Ganhos do entregador para uma entrega.

    - bônus de clima: % de (base + distância) quando a rota tem fator de clima > 1
    - bônus de surge: % de (base + distância) em horário de pico OU com surge na rota
    - incentivo: valor fixo a partir de N entregas concluídas (limiar único)
    - mínimo garantido: a gorjeta é sempre somada por cima do mínimo
    """
    tip = to_money(tip_amount, field="tip_amount")
    if isinstance(deliveries_completed, bool) or not isinstance(deliveries_completed, int):
        raise InvalidInput("deliveries_completed deve ser inteiro", field="deliveries_completed")
    if deliveries_completed < 0:
        raise InvalidInput("deliveries_completed não pode ser negativo", field="deliveries_completed")

    base_pay = config.base_pay_per_delivery
    distance_pay = Decimal(str(route.distance_km)) * config.distance_pay_per_km
    time_pay = Decimal(str(route.estimated_time_minutes)) * config.time_pay_per_minute

    weather_bonus = None
    if route.has_weather_impact:
        weather_bonus = (base_pay + distance_pay) * config.weather_bonus_rate

    surge_bonus = None
    if is_peak_hours or route.surge_multiplier:
        surge_bonus = (base_pay + distance_pay) * config.surge_bonus_rate

    incentive_bonus = None
    if deliveries_completed >= config.incentive_threshold_deliveries:
        incentive_bonus = config.incentive_bonus_amount

    earned = (base_pay + distance_pay + time_pay + (weather_bonus or ZERO) + (surge_bonus or ZERO)
              + tip + (incentive_bonus or ZERO))
    total_earnings = max(earned, config.minimum_delivery_pay + tip)

    return CourierPayment(
        base_pay=base_pay,
        distance_pay=distance_pay,
        time_pay=time_pay,
        minimum_guaranteed=config.minimum_delivery_pay,
        weather_bonus=weather_bonus,
        surge_bonus=surge_bonus,
        tip_amount=tip,
        incentive_bonus=incentive_bonus,
        total_earnings=total_earnings,
    )
