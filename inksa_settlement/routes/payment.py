# inksa_settlement/routes/payment.py

from flask import Blueprint, request, jsonify, current_app
import logging
import hmac
import hashlib

from ..logic.errors import InvalidInput
from ..logic.settlement import settle_order
from ..utils.order_store import OrderNotFound
from .financial import get_config_provider

logger = logging.getLogger(__name__)

mp_payment_bp = Blueprint('mp_payment_bp', __name__)

FAILED_STATUSES = ('rejected', 'cancelled', 'refunded', 'charged_back')
WAITING_STATUSES = ('pending', 'in_process', 'authorized')
AWAITING_PAYMENT_STATUS = 'awaiting_payment'


def verify_mp_signature(req, secret):
    """Verifica a assinatura (X-Signature: ts=...,v1=...) da notificação de webhook do Mercado Pago."""
    signature_header = req.headers.get('X-Signature')
    if not signature_header:
        logger.warning("⚠️ Webhook recebido SEM X-Signature")
        return False

    try:
        parts = dict(p.strip().split('=', 1) for p in signature_header.split(',') if '=' in p)
    except ValueError:
        logger.warning("⚠️ Cabeçalho X-Signature com formato inválido")
        return False
    ts = parts.get('ts')
    signature_hash = parts.get('v1')
    if not ts or not signature_hash:
        logger.warning("⚠️ Cabeçalho X-Signature com formato inválido")
        return False

    notification_id = req.args.get('data.id') or req.args.get('id')
    if not notification_id:
        json_data = req.get_json(silent=True) or {}
        notification_id = (json_data.get('data') or {}).get('id', '')

    manifest_string = f"id:{notification_id};"
    request_id = req.headers.get('X-Request-Id')
    if request_id:
        manifest_string += f"request-id:{request_id};"
    manifest_string += f"ts:{ts};"

    local_signature = hmac.new(
        secret.encode(),
        msg=manifest_string.encode(),
        digestmod=hashlib.sha256
    ).hexdigest()

    is_valid = hmac.compare_digest(local_signature, signature_hash)
    if is_valid:
        logger.info("✅ Assinatura do webhook VÁLIDA!")
    else:
        logger.warning("⚠️ Assinatura do webhook INVÁLIDA")
    return is_valid


def _extract_topic(req):
    request_data = req.get_json(silent=True) or req.args.to_dict()
    topic = request_data.get('topic')
    resource_id = request_data.get('id')

    if request_data.get('type') == 'payment' and (request_data.get('data') or {}).get('id'):
        topic = 'payment'
        resource_id = request_data['data']['id']
    elif not topic and req.args.get('topic'):
        topic = req.args.get('topic')
        resource_id = req.args.get('id')
    return topic, resource_id


def _settle_approved_payment(store, order_id, payment_id, payment_data):
    order = store.get_order(order_id)
    if not order:
        logger.error(f"❌ Pedido {order_id} NÃO ENCONTRADO para o pagamento {payment_id}")
        return jsonify({"status": "error", "message": "Pedido não encontrado"}), 404

    config = get_config_provider().get(order.get('zone'))
    try:
        settlement_request = store.build_settlement_request(order, default_vehicle_type=config.default_vehicle_type)
        result = settle_order(settlement_request, config=config)
    except InvalidInput as e:
        # O dinheiro entrou: registra o pagamento mesmo sem conseguir liquidar, para correção manual
        logger.error(f"❌ Pedido {order_id} com dados inválidos para liquidação: {e.message}")
        store.mark_payment_status(order_id, 'approved', payment_id)
        return jsonify({"status": "error", "message": "Dados do pedido inválidos para liquidação",
                        "error": e.message, "field": e.field}), 422

    settled = store.save_settlement(
        order_id, result, payment_id=payment_id, payment_method=payment_data.get('payment_method_id')
    )
    if order.get('status') == AWAITING_PAYMENT_STATUS:
        # status 'pending' libera o pedido para o restaurante
        store.mark_payment_status(order_id, 'approved', payment_id, order_status='pending')
    elif order.get('status_pagamento') != 'approved':
        store.mark_payment_status(order_id, 'approved', payment_id)
    else:
        logger.info(f"Notificação repetida do pagamento {payment_id}: pedido {order_id} já está {order.get('status')}")

    logger.info(f"🎉 Pagamento {payment_id} aprovado e pedido {order_id} liquidado (nova liquidação: {settled})")
    return jsonify({"status": "ok", "settled": settled, "order_id": order_id}), 200


@mp_payment_bp.route('/pagamentos/webhook_mp', methods=['POST'])
def mercadopago_webhook():
    webhook_secret = current_app.config.get("MERCADO_PAGO_WEBHOOK_SECRET")
    if webhook_secret and not verify_mp_signature(request, webhook_secret):
        return jsonify({"status": "error", "message": "Assinatura inválida"}), 401

    topic, resource_id = _extract_topic(request)
    logger.info(f"✅ Webhook do Mercado Pago recebido - Topic: {topic}, Resource ID: {resource_id}")

    if topic != 'payment' or not resource_id:
        logger.info("Notificação ignorada (não é de pagamento)")
        return jsonify({"status": "ignored"}), 200

    sdk = current_app.mp_sdk
    if sdk is None:
        logger.error("❌ SDK Mercado Pago não disponível")
        return jsonify({"status": "error", "message": "Serviço de pagamento indisponível."}), 503

    store = current_app.order_store
    if store is None:
        logger.error("❌ Order store não disponível")
        return jsonify({"status": "error", "message": "Serviço de banco de dados indisponível."}), 503

    try:
        payment_info = sdk.payment().get(resource_id)
        if not (payment_info and "response" in payment_info) or payment_info.get("status", 200) >= 400:
            logger.error(f"❌ Pagamento {resource_id} não encontrado")
            return jsonify({"status": "error", "message": "Detalhes do pagamento não encontrados"}), 404

        payment_data = payment_info["response"]
        status = payment_data.get("status")
        order_id = payment_data.get("external_reference")
        logger.info(f"💳 Pagamento {resource_id}: status={status} pedido={order_id}")

        if not order_id:
            logger.error(f"❌ Pagamento {resource_id} sem external_reference")
            return jsonify({"status": "ignored", "message": "Pagamento sem pedido vinculado"}), 200

        if status == 'approved':
            return _settle_approved_payment(store, order_id, resource_id, payment_data)

        if status in WAITING_STATUSES:
            store.mark_payment_status(order_id, status, resource_id)
        elif status in FAILED_STATUSES:
            logger.warning(f"❌ Pagamento {resource_id} {status}")
            store.mark_payment_status(order_id, status, resource_id, order_status='payment_failed')
        else:
            logger.warning(f"Status de pagamento desconhecido: {status}")

        return jsonify({"status": "ok"}), 200

    except OrderNotFound as e:
        logger.error(f"❌ {e}")
        return jsonify({"status": "error", "message": str(e)}), 404

    except Exception as e:
        logger.error(f"❌ ERRO CRÍTICO ao processar webhook de pagamento: {e}", exc_info=True)
        return jsonify({"status": "error", "message": "Erro ao processar webhook"}), 500
