# inksa_settlement/utils/order_store.py
"""
Order store sobre o Supabase: lê os dados do pedido para a liquidação e grava o resultado.

A liquidação em si é pura; quem garante "no máximo uma liquidação por pedido" é a tabela
order_settlements (unique em order_id), gravada por último. Webhooks repetidos encontram o
registro e não gravam nada; uma gravação interrompida é refeita na próxima notificação.
"""
import logging
from datetime import datetime
from typing import Optional

from ..logic.settlement import SettlementRequest, SettlementResult
from ..logic.money import money_to_float
from .helpers import serialize_data

logger = logging.getLogger(__name__)


class OrderNotFound(LookupError):
    pass


class SupabaseOrderStore:
    def __init__(self, client):
        self.client = client

    # --- leitura ---
    def get_order(self, order_id) -> Optional[dict]:
        response = self.client.table('orders').select('*').eq('id', order_id).execute()
        if not response.data:
            return None
        return response.data[0] if isinstance(response.data, list) else response.data

    def get_restaurant(self, restaurant_id) -> Optional[dict]:
        response = self.client.table('restaurant_profiles').select(
            'id, latitude, longitude, restaurant_name, commission_rate'
        ).eq('id', restaurant_id).execute()
        if not response.data:
            return None
        return response.data[0]

    def build_settlement_request(self, order: dict, default_vehicle_type: Optional[str] = None) -> SettlementRequest:
        """Converte a linha de orders (+ restaurante) no request da liquidação."""
        restaurant = self.get_restaurant(order.get('restaurant_id'))
        if not restaurant:
            raise OrderNotFound(f"Restaurante {order.get('restaurant_id')} não encontrado")

        payload = {
            'restaurant_coords': {'lat': restaurant.get('latitude'), 'lng': restaurant.get('longitude')},
            'customer_coords': {'lat': order.get('client_latitude'), 'lng': order.get('client_longitude')},
            'order_subtotal': order.get('total_amount_items'),
            'vehicle_type': order.get('vehicle_type'),
            'tip_amount': order.get('tip_amount') or 0,
            'promo_code': order.get('promo_code'),
            'commission_rate_override': restaurant.get('commission_rate'),
            'zone': order.get('zone'),
        }
        return SettlementRequest.from_payload(payload, default_vehicle_type=default_vehicle_type)

    # --- escrita ---
    def is_settled(self, order_id) -> bool:
        response = self.client.table('order_settlements').select('order_id').eq('order_id', str(order_id)).execute()
        return bool(response.data)

    def save_settlement(self, order_id, result: SettlementResult, payment_id=None,
                        payment_method: Optional[str] = None) -> bool:
        """Persiste a liquidação. Retorna False se o pedido já tinha sido liquidado.

        Ordem das escritas: lançamentos e colunas de repasse primeiro, registro em
        order_settlements por último. Se algo falhar no meio, o pedido continua sem registro
        e a próxima notificação do gateway refaz tudo; lançamentos usam upsert em
        (order_id, type), então a repetição não duplica linhas.
        """
        if self.is_settled(order_id):
            logger.warning(f"⚠️ Pedido {order_id} já liquidado anteriormente - ignorando nova liquidação")
            return False

        entries = serialize_data(result.ledger_entries(order_id, payment_method=payment_method))
        self.client.table('financial_transactions').upsert(
            entries, on_conflict='order_id,type', ignore_duplicates=True
        ).execute()

        commission = result.commission
        update_data = {
            'delivery_fee': money_to_float(result.delivery_fee.total_delivery_fee),
            'total_amount': money_to_float(result.total_order_value),
            'delivery_distance_km': round(result.route.distance_km, 2),
            'comissao_plataforma': money_to_float(commission.platform_commission_amount),
            'valor_repassado_restaurante': money_to_float(commission.restaurant_net_amount),
            'valor_repassado_entregador': money_to_float(result.courier_payment.total_earnings),
            'updated_at': datetime.utcnow().isoformat(),
        }
        self.client.table('orders').update(update_data).eq('id', order_id).execute()

        settlement_row = {
            'order_id': str(order_id),
            'payment_id': str(payment_id) if payment_id is not None else None,
            'total_order_value': money_to_float(result.total_order_value),
            'settlement': result.to_dict(),
            'created_at': datetime.utcnow().isoformat(),
        }
        claim = self.client.table('order_settlements').upsert(
            settlement_row, on_conflict='order_id', ignore_duplicates=True
        ).execute()
        if not claim.data:
            # outra notificação concorrente gravou primeiro; os valores são os mesmos
            logger.warning(f"⚠️ Pedido {order_id} liquidado por outra notificação concorrente")
            return False

        logger.info(f"✅ Liquidação do pedido {order_id} gravada: {update_data}")
        return True

    def mark_payment_status(self, order_id, payment_status: str, payment_id=None,
                            order_status: Optional[str] = None):
        update_data = {
            'status_pagamento': payment_status,
            'id_transacao_mp': str(payment_id) if payment_id is not None else None,
            'updated_at': datetime.utcnow().isoformat(),
        }
        if order_status:
            update_data['status'] = order_status
        self.client.table('orders').update(update_data).eq('id', order_id).execute()
        logger.info(f"Pedido {order_id}: status_pagamento={payment_status} status={order_status or '-'}")
