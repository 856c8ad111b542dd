# inksa_settlement/logic/settlement.py
"""
Liquidação financeira de um pedido: rota -> {frete, entregador} -> comissão -> receita da plataforma.

Pipeline puro e determinístico: as mesmas entradas sempre geram exatamente as mesmas saídas,
então pode ser chamado quantas vezes for preciso (o webhook re-tenta, o preview do checkout
recalcula). Garantir uma única liquidação persistida por pedido é papel do order store.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ..config import DEFAULT_CONFIG, SettlementConfig
from .commission import compute_commission
from .courier_payment import compute_courier_payment
from .delivery_fee import compute_delivery_fee
from .errors import InvalidInput
from .models import (
    Commission,
    Coordinates,
    CourierPayment,
    DeliveryFee,
    PlatformRevenue,
    RouteEstimate,
    VehicleType,
    WeatherCondition,
)
from .money import money_to_float, to_decimal, to_money
from .platform_revenue import compute_platform_revenue
from .route_estimator import estimate_route

logger = logging.getLogger(__name__)

CURRENCY = "BRL"

_TRUE_FLAGS = ("true", "1", "yes", "sim")
_FALSE_FLAGS = ("false", "0", "no", "nao", "não", "")


def _parse_flag(value, field):
    """Aceita bool, 0/1 ou as strings usuais ("false", "sim"...); bool("false") seria True."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_FLAGS:
            return True
        if text in _FALSE_FLAGS:
            return False
    raise InvalidInput(f"{field} deve ser booleano", field=field)


@dataclass(frozen=True)
class SettlementRequest:
    restaurant_coords: Coordinates
    customer_coords: Coordinates
    order_subtotal: Decimal
    vehicle_type: VehicleType
    tip_amount: Decimal = Decimal("0")
    promo_code: Optional[str] = None
    commission_rate_override: Optional[Decimal] = None
    # sinais opacos vindos do despacho
    traffic_factor: float = 1.0
    weather_condition: Optional[WeatherCondition] = None
    is_peak_hours: bool = False
    deliveries_completed: int = 0
    zone: Optional[str] = None

    @classmethod
    def from_payload(cls, data, default_vehicle_type: Optional[str] = None) -> "SettlementRequest":
        """Monta o request a partir do JSON recebido. Qualquer problema vira InvalidInput."""
        if not isinstance(data, dict):
            raise InvalidInput("Corpo da requisição deve ser um objeto JSON")

        vehicle = data.get("vehicle_type") or default_vehicle_type
        override = data.get("commission_rate_override")
        traffic = data.get("traffic_factor", 1.0)
        if traffic is None:
            traffic = 1.0
        if isinstance(traffic, str):
            try:
                traffic = float(traffic)
            except ValueError:
                raise InvalidInput("traffic_factor deve ser numérico", field="traffic_factor")
        deliveries = data.get("deliveries_completed") or 0
        try:
            deliveries = int(deliveries)
        except (TypeError, ValueError):
            raise InvalidInput("deliveries_completed deve ser inteiro", field="deliveries_completed")
        if isinstance(traffic, bool) or not isinstance(traffic, (int, float)):
            raise InvalidInput("traffic_factor deve ser numérico", field="traffic_factor")
        if traffic < 1.0:
            raise InvalidInput("traffic_factor deve ser >= 1.0", field="traffic_factor")
        if deliveries < 0:
            raise InvalidInput("deliveries_completed não pode ser negativo", field="deliveries_completed")

        tip = data.get("tip_amount")
        promo = data.get("promo_code")
        zone = data.get("zone")
        return cls(
            restaurant_coords=Coordinates.parse(data.get("restaurant_coords"), field="restaurant_coords"),
            customer_coords=Coordinates.parse(data.get("customer_coords"), field="customer_coords"),
            order_subtotal=to_money(data.get("order_subtotal"), field="order_subtotal"),
            vehicle_type=VehicleType.parse(vehicle),
            tip_amount=to_money(tip if tip is not None else 0, field="tip_amount"),
            promo_code=str(promo).strip() if promo else None,
            commission_rate_override=(
                to_decimal(override, field="commission_rate_override") if override is not None else None
            ),
            traffic_factor=float(traffic),
            weather_condition=WeatherCondition.parse(data.get("weather_condition")),
            is_peak_hours=_parse_flag(data.get("is_peak_hours"), "is_peak_hours"),
            deliveries_completed=deliveries,
            zone=str(zone).strip() if zone else None,
        )


@dataclass(frozen=True)
class SettlementResult:
    route: RouteEstimate
    delivery_fee: DeliveryFee
    commission: Commission
    courier_payment: CourierPayment
    platform_revenue: PlatformRevenue
    total_order_value: Decimal

    def to_dict(self):
        return {
            "route": self.route.to_dict(),
            "delivery_fee": self.delivery_fee.to_dict(),
            "commission": self.commission.to_dict(),
            "courier_payment": self.courier_payment.to_dict(),
            "platform_revenue": self.platform_revenue.to_dict(),
            "total_order_value": money_to_float(self.total_order_value),
        }

    def ledger_entries(self, order_id, payment_method: Optional[str] = None):
        """Lançamentos para financial_transactions: um por destino do dinheiro, todos 'pending'."""
        revenue = self.platform_revenue
        entries = [
            ("order_payment", self.total_order_value, {"delivery_fee": self.delivery_fee.to_dict()}),
            ("restaurant_payout", revenue.restaurant_payout, {"commission": self.commission.to_dict()}),
            ("delivery_payment", revenue.delivery_payout, {"courier_payment": self.courier_payment.to_dict()}),
            ("platform_revenue", revenue.net_platform_revenue, {"platform_revenue": revenue.to_dict()}),
        ]
        return [
            {
                "order_id": str(order_id),
                "type": entry_type,
                "amount": money_to_float(amount),
                "currency": CURRENCY,
                "status": "pending",
                "payment_method": payment_method,
                "details": details,
            }
            for entry_type, amount, details in entries
        ]


def settle_order(request: SettlementRequest, config: SettlementConfig = DEFAULT_CONFIG) -> SettlementResult:
    route = estimate_route(
        request.restaurant_coords,
        request.customer_coords,
        request.vehicle_type,
        traffic_factor=request.traffic_factor,
        weather_condition=request.weather_condition,
        config=config,
    )

    delivery_fee = compute_delivery_fee(
        route,
        request.order_subtotal,
        zone=request.zone,
        promo_code=request.promo_code,
        config=config,
    )

    courier_payment = compute_courier_payment(
        route,
        tip_amount=request.tip_amount,
        is_peak_hours=request.is_peak_hours,
        deliveries_completed=request.deliveries_completed,
        config=config,
    )

    commission = compute_commission(
        request.order_subtotal,
        delivery_fee.total_delivery_fee,
        commission_rate=request.commission_rate_override,
        config=config,
    )

    platform_revenue = compute_platform_revenue(request.order_subtotal, delivery_fee, commission, courier_payment)

    return SettlementResult(
        route=route,
        delivery_fee=delivery_fee,
        commission=commission,
        courier_payment=courier_payment,
        platform_revenue=platform_revenue,
        total_order_value=request.order_subtotal + delivery_fee.total_delivery_fee,
    )
