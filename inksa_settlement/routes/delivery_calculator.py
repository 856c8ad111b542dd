from flask import Blueprint, request, jsonify, current_app
import logging

from ..logic.delivery_fee import compute_delivery_fee
from ..logic.errors import InvalidInput
from ..logic.models import Coordinates
from ..logic.route_estimator import estimate_route
from ..utils.geocoding_utils import geocode_address
from .financial import get_config_provider

logger = logging.getLogger(__name__)

delivery_calculator_bp = Blueprint('delivery_calculator', __name__)


def _client_coordinates(data):
    """Coordenadas do cliente: as enviadas pelo app ou, na falta delas, geocodificadas do endereço."""
    lat = data.get('client_latitude')
    lng = data.get('client_longitude')
    if lat is not None and lng is not None:
        return Coordinates.parse({'lat': lat, 'lng': lng}, field='client_coords')

    address = data.get('client_address') or {}
    if not address:
        raise InvalidInput("Coordenadas ou endereço do cliente são obrigatórios", field='client_coords')
    coords = geocode_address(
        address.get('street'), address.get('number'), address.get('neighborhood'),
        address.get('city'), address.get('state'), address.get('zipcode'),
    )
    if coords is None:
        raise InvalidInput("Não foi possível localizar o endereço do cliente", field='client_address')
    return coords


@delivery_calculator_bp.route('/calculate_fee', methods=['POST'])
def calculate_delivery_fee():
    """Calcula a taxa de entrega baseada no restaurante e localização do cliente"""
    try:
        logger.info("=== INÍCIO calculate_delivery_fee ===")
        data = request.get_json(silent=True) or {}
        logger.info(f"Dados recebidos: {data}")

        restaurant_id = data.get('restaurant_id')
        if not restaurant_id:
            logger.warning("restaurant_id não fornecido")
            return jsonify({"status": "error", "error": "restaurant_id é obrigatório"}), 400

        store = current_app.order_store
        if store is None:
            logger.error("Order store indisponível")
            return jsonify({"status": "error", "error": "Serviço de banco de dados indisponível"}), 503

        restaurant = store.get_restaurant(restaurant_id)
        if not restaurant:
            logger.error(f"Restaurante não encontrado: {restaurant_id}")
            return jsonify({"status": "error", "error": "Restaurante não encontrado"}), 404

        if restaurant.get('latitude') is None or restaurant.get('longitude') is None:
            logger.error("Coordenadas do restaurante não encontradas")
            return jsonify({"status": "error", "error": "Coordenadas do restaurante não cadastradas"}), 400

        config = get_config_provider().get(data.get('zone'))
        route = estimate_route(
            {'lat': restaurant['latitude'], 'lng': restaurant['longitude']},
            _client_coordinates(data),
            data.get('vehicle_type') or config.default_vehicle_type,
            traffic_factor=data.get('traffic_factor') or 1.0,
            weather_condition=data.get('weather_condition'),
            config=config,
        )
        fee = compute_delivery_fee(
            route,
            data.get('order_value', 0),
            zone=data.get('zone'),
            promo_code=data.get('promo_code'),
            config=config,
        )
        logger.info(f"Taxa calculada: R$ {fee.total_delivery_fee} ({route.distance_km:.2f} km)")

        result = {
            "status": "success",
            "data": {
                **fee.to_dict(),
                "delivery_fee": fee.to_dict()["total_delivery_fee"],
                "delivery_distance_km": round(route.distance_km, 2),
                "estimated_time_minutes": round(route.estimated_time_minutes),
                "restaurant_name": restaurant.get('restaurant_name', ''),
                "message": "Cálculo de frete realizado com sucesso"
            }
        }
        return jsonify(result), 200

    except InvalidInput as e:
        logger.warning(f"Erro de validação: {e.message}")
        return jsonify(e.to_dict()), 400

    except Exception as e:
        logger.error(f"Erro inesperado ao calcular frete: {e}", exc_info=True)
        return jsonify({"status": "error", "error": "Erro interno ao calcular o frete"}), 500
