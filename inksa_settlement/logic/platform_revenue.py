# inksa_settlement/logic/platform_revenue.py
from .models import Commission, CourierPayment, DeliveryFee, PlatformRevenue
from .money import ZERO, to_money


def compute_platform_revenue(order_subtotal, delivery_fee: DeliveryFee, commission: Commission,
                             courier_payment: CourierPayment) -> PlatformRevenue:
    """Concilia o que foi cobrado com o que é repassado e o que fica com a plataforma."""
    subtotal = to_money(order_subtotal, field="order_subtotal")
    total_collected = subtotal + delivery_fee.total_delivery_fee

    # A plataforma paga parte do frete ao entregador e fica com o resto (gorjeta não entra na conta)
    retained = delivery_fee.total_delivery_fee - (courier_payment.total_earnings - courier_payment.tip_amount)

    # Se o entregador recebe mais do que o frete cobrado, a plataforma absorve sem registrar receita negativa
    net = (commission.platform_commission_amount + delivery_fee.service_fee + max(ZERO, retained)
           - commission.payment_processing_fee)

    return PlatformRevenue(
        total_collected=total_collected,
        restaurant_payout=commission.restaurant_net_amount,
        delivery_payout=courier_payment.total_earnings,
        platform_commission=commission.platform_commission_amount,
        service_fees=delivery_fee.service_fee,
        payment_processing_costs=commission.payment_processing_fee,
        delivery_fee_retained=retained,
        net_platform_revenue=net,
    )
