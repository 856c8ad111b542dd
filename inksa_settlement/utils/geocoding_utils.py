# Arquivo: inksa_settlement/utils/geocoding_utils.py
import logging
import requests

from ..logic.models import Coordinates

logger = logging.getLogger(__name__)

NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"
# Para Nominatim, um User-Agent que identifique a aplicação é obrigatório.
USER_AGENT = 'InksaDeliveryApp/1.0 (contact@inksadelivery.com.br)'


def geocode_address(street, number=None, neighborhood=None, city=None, state=None, zipcode=None, timeout=10):
    """
    Geocodifica um endereço completo usando Nominatim (OpenStreetMap).
    A liquidação nunca geocodifica: isto só atende a cotação de frete quando o app não manda coordenadas.

    Returns:
        Coordinates, ou None se a geocodificação falhar.
    """
    address_parts = [
        f"{number} {street}" if number and street else street,
        neighborhood,
        city,
        state,
        zipcode
    ]
    # Filtra None e strings vazias para formar o endereço completo
    full_address = ", ".join(filter(None, address_parts))

    if not full_address:
        logger.warning("Geocodificação: endereço vazio.")
        return None

    params = {
        'q': full_address,
        'format': 'json',
        'limit': 1,
        'addressdetails': 0
    }

    try:
        response = requests.get(NOMINATIM_URL, params=params, headers={'User-Agent': USER_AGENT}, timeout=timeout)
        response.raise_for_status()
        results = response.json()
    except requests.exceptions.RequestException as e:
        logger.error(f"Erro na requisição HTTP de geocodificação para '{full_address}': {e}")
        return None
    except ValueError as e:
        logger.error(f"Erro ao processar resposta JSON da geocodificação para '{full_address}': {e}")
        return None

    if not results:
        logger.warning(f"Geocodificação falhou para o endereço: '{full_address}'. Nenhum resultado encontrado.")
        return None

    try:
        coords = Coordinates(float(results[0].get('lat')), float(results[0].get('lon')))
    except (TypeError, ValueError) as e:
        logger.error(f"Coordenadas inválidas retornadas para '{full_address}': {e}")
        return None

    logger.info(f"Geocodificação bem-sucedida para '{full_address}': Lat={coords.lat}, Lon={coords.lng}")
    return coords
