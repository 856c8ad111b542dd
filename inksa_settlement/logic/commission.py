# inksa_settlement/logic/commission.py
import logging
from decimal import Decimal

from ..config import DEFAULT_CONFIG, SettlementConfig
from .errors import InvalidInput
from .models import Commission
from .money import ZERO, to_decimal, to_money

logger = logging.getLogger(__name__)


def compute_commission(order_subtotal, delivery_fee, commission_rate=None,
                       config: SettlementConfig = DEFAULT_CONFIG) -> Commission:
    """Comissão da plataforma e valor líquido do restaurante.

    A comissão incide só sobre os itens (a taxa de entrega fica fora da base), com piso em
    minimum_commission. O processamento do pagamento (percentual + fixo sobre itens + frete)
    sai do líquido do restaurante, que NÃO tem piso: pode ficar negativo em pedidos muito pequenos.
    """
    subtotal = to_money(order_subtotal, field="order_subtotal")
    if subtotal <= ZERO:
        raise InvalidInput("order_subtotal deve ser maior que zero", field="order_subtotal")
    fee = to_money(delivery_fee, field="delivery_fee")

    if commission_rate is None:
        rate = config.default_commission_rate
    else:
        rate = to_decimal(commission_rate, field="commission_rate")
        if not ZERO < rate <= Decimal("1"):
            raise InvalidInput("commission_rate deve estar em (0, 1]", field="commission_rate")

    commission_amount = max(subtotal * rate, config.minimum_commission)
    processing_fee = (subtotal + fee) * config.payment_processing_rate + config.payment_processing_fixed
    restaurant_net = subtotal - commission_amount - processing_fee

    if restaurant_net < ZERO:
        # decisão de produto em aberto: registrar, não corrigir
        logger.warning(
            f"Líquido do restaurante negativo: subtotal={subtotal} comissão={commission_amount} "
            f"processamento={processing_fee} líquido={restaurant_net}"
        )

    return Commission(
        order_subtotal=subtotal,
        platform_commission_rate=rate,
        platform_commission_amount=commission_amount,
        payment_processing_fee=processing_fee,
        restaurant_net_amount=restaurant_net,
    )
