# inksa_settlement/routes/financial.py
import logging
from flask import Blueprint, request, jsonify, current_app

from ..config import StaticConfigProvider
from ..logic.errors import InvalidInput
from ..logic.settlement import SettlementRequest, settle_order

logger = logging.getLogger(__name__)

financial_bp = Blueprint('financial', __name__)


def get_config_provider():
    provider = current_app.config.get("SETTLEMENT_CONFIG_PROVIDER")
    if provider is None:
        provider = StaticConfigProvider()
        current_app.config["SETTLEMENT_CONFIG_PROVIDER"] = provider
    return provider


@financial_bp.route('/settle', methods=['POST'])
def settle_preview():
    """Simula a liquidação completa de um pedido (checkout, painel financeiro). Nada é gravado."""
    try:
        data = request.get_json(silent=True)
        if not data:
            return jsonify({"status": "error", "error": "Corpo JSON é obrigatório"}), 400

        provider = get_config_provider()
        config = provider.get(data.get('zone') if isinstance(data, dict) else None)
        settlement_request = SettlementRequest.from_payload(data, default_vehicle_type=config.default_vehicle_type)
        result = settle_order(settlement_request, config=config)

        logger.info(
            f"Liquidação simulada: subtotal={settlement_request.order_subtotal} "
            f"total={result.total_order_value} veículo={settlement_request.vehicle_type.value}"
        )
        return jsonify({"status": "success", "data": result.to_dict()}), 200

    except InvalidInput as e:
        logger.warning(f"Entrada inválida na liquidação: {e.message}")
        return jsonify(e.to_dict()), 400

    except Exception as e:
        logger.error(f"Erro inesperado ao calcular liquidação: {e}", exc_info=True)
        return jsonify({"status": "error", "error": "Erro interno ao calcular liquidação"}), 500


@financial_bp.route('/config', methods=['GET'])
def get_settlement_config():
    """Configuração efetiva (padrão ou da zona informada)."""
    zone = request.args.get('zone')
    config = get_config_provider().get(zone)
    return jsonify({"status": "success", "zone": zone, "config": config.to_dict()}), 200
