# inksa_settlement/config.py

"""
Ficheiro central de configurações da liquidação financeira do Inksa Delivery.
Todas as "regras de negócio" que podem mudar com o tempo (ou por região) ficam aqui.

Os valores abaixo são apenas os padrões: cada deployment pode sobrescrevê-los por
variáveis de ambiente (prefixo SETTLEMENT_) e cada região por um mapeamento próprio.
Nada aqui é estado global mutável: os calculadores recebem um SettlementConfig explícito.
"""
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields, replace
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from .logic.errors import ConfigError, InvalidInput
from .logic.money import to_decimal

logger = logging.getLogger(__name__)

# =================================================
# Taxa de entrega cobrada do cliente
# =================================================
BASE_DELIVERY_FEE = Decimal("3.99")
DISTANCE_RATE_PER_KM = Decimal("1.50")
# 5% sobre o valor dos itens
SERVICE_FEE_RATE = Decimal("0.05")
# Códigos que zeram o frete (comparação exata, sem sistema de promoções)
FREE_DELIVERY_CODES = ("FRETEGRATIS", "FREE_DELIVERY")

# =================================================
# Comissão da plataforma e custo de processamento
# =================================================
DEFAULT_COMMISSION_RATE = Decimal("0.20")
MINIMUM_COMMISSION = Decimal("2.00")
# Modelo de cartão: percentual + fixo
PAYMENT_PROCESSING_RATE = Decimal("0.029")
PAYMENT_PROCESSING_FIXED = Decimal("0.39")

# =================================================
# Pagamento do entregador
# =================================================
BASE_PAY_PER_DELIVERY = Decimal("4.00")
DISTANCE_PAY_PER_KM = Decimal("2.00")
TIME_PAY_PER_MINUTE = Decimal("0.15")
MINIMUM_DELIVERY_PAY = Decimal("8.00")
WEATHER_BONUS_RATE = Decimal("0.20")
SURGE_BONUS_RATE = Decimal("0.30")
INCENTIVE_THRESHOLD_DELIVERIES = 10
INCENTIVE_BONUS_AMOUNT = Decimal("5.00")

# =================================================
# Rota, trânsito e clima
# =================================================
SURGE_TRAFFIC_THRESHOLD = 1.3
SURGE_MULTIPLIER_MAX = 2.0
RAIN_FACTOR = 1.2
HEAVY_RAIN_FACTOR = 1.5
# Velocidades médias por tipo de veículo (km/h)
VEHICLE_SPEEDS_KMH = {
    "motorcycle": 25.0,
    "car": 20.0,
    "bicycle": 12.0,
    "on_foot": 5.0,
}
DEFAULT_VEHICLE_TYPE = "motorcycle"


@dataclass(frozen=True)
class SettlementConfig:
    # Entrega (cliente)
    base_delivery_fee: Decimal = BASE_DELIVERY_FEE
    distance_rate_per_km: Decimal = DISTANCE_RATE_PER_KM
    service_fee_rate: Decimal = SERVICE_FEE_RATE
    free_delivery_codes: Tuple[str, ...] = FREE_DELIVERY_CODES

    # Comissão
    default_commission_rate: Decimal = DEFAULT_COMMISSION_RATE
    minimum_commission: Decimal = MINIMUM_COMMISSION
    payment_processing_rate: Decimal = PAYMENT_PROCESSING_RATE
    payment_processing_fixed: Decimal = PAYMENT_PROCESSING_FIXED

    # Entregador
    base_pay_per_delivery: Decimal = BASE_PAY_PER_DELIVERY
    distance_pay_per_km: Decimal = DISTANCE_PAY_PER_KM
    time_pay_per_minute: Decimal = TIME_PAY_PER_MINUTE
    minimum_delivery_pay: Decimal = MINIMUM_DELIVERY_PAY
    weather_bonus_rate: Decimal = WEATHER_BONUS_RATE
    surge_bonus_rate: Decimal = SURGE_BONUS_RATE
    incentive_threshold_deliveries: int = INCENTIVE_THRESHOLD_DELIVERIES
    incentive_bonus_amount: Decimal = INCENTIVE_BONUS_AMOUNT

    # Rota
    surge_traffic_threshold: float = SURGE_TRAFFIC_THRESHOLD
    surge_multiplier_max: float = SURGE_MULTIPLIER_MAX
    rain_factor: float = RAIN_FACTOR
    heavy_rain_factor: float = HEAVY_RAIN_FACTOR
    # somente leitura; fica fora do hash (mappingproxy não é hashable)
    vehicle_speeds_kmh: Mapping[str, float] = field(default_factory=lambda: dict(VEHICLE_SPEEDS_KMH), hash=False)
    default_vehicle_type: str = DEFAULT_VEHICLE_TYPE

    def __post_init__(self):
        object.__setattr__(self, "vehicle_speeds_kmh", MappingProxyType(dict(self.vehicle_speeds_kmh)))
        for name in ("service_fee_rate", "payment_processing_rate", "weather_bonus_rate", "surge_bonus_rate"):
            value = getattr(self, name)
            if not Decimal("0") <= value <= Decimal("1"):
                raise ConfigError(f"{name} deve estar entre 0 e 1", field=name)
        if not Decimal("0") < self.default_commission_rate <= Decimal("1"):
            raise ConfigError("default_commission_rate deve estar em (0, 1]", field="default_commission_rate")
        for name in _DECIMAL_FIELDS:
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} não pode ser negativo", field=name)
        if self.incentive_threshold_deliveries < 0:
            raise ConfigError("incentive_threshold_deliveries não pode ser negativo",
                              field="incentive_threshold_deliveries")
        if self.surge_multiplier_max < 1.0:
            raise ConfigError("surge_multiplier_max deve ser >= 1.0", field="surge_multiplier_max")
        if self.rain_factor < 1.0 or self.heavy_rain_factor < 1.0:
            raise ConfigError("fatores de clima devem ser >= 1.0", field="rain_factor")
        for vehicle in VEHICLE_SPEEDS_KMH:
            speed = self.vehicle_speeds_kmh.get(vehicle)
            if speed is None or speed <= 0:
                raise ConfigError(f"velocidade média inválida para {vehicle}", field="vehicle_speeds_kmh")
        if self.default_vehicle_type not in VEHICLE_SPEEDS_KMH:
            raise ConfigError(f"default_vehicle_type inválido: {self.default_vehicle_type}",
                              field="default_vehicle_type")

    # --- construção ---
    @classmethod
    def from_mapping(cls, data: Mapping, base: Optional["SettlementConfig"] = None) -> "SettlementConfig":
        """Cria uma config a partir de um dict (ex.: overrides de uma região) sobre `base`."""
        base = base or cls()
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Parâmetros de configuração desconhecidos: {', '.join(sorted(unknown))}")
        return base.with_overrides(**data)

    @classmethod
    def from_env(cls, environ: Optional[Mapping] = None, prefix: str = "SETTLEMENT_") -> "SettlementConfig":
        """Lê overrides de deployment: SETTLEMENT_BASE_DELIVERY_FEE=4.50, SETTLEMENT_VEHICLE_SPEED_CAR=18..."""
        environ = os.environ if environ is None else environ
        overrides = {}
        speeds = {}
        for f in fields(cls):
            raw = environ.get(prefix + f.name.upper())
            if raw is not None and raw.strip() != "" and f.name != "vehicle_speeds_kmh":
                overrides[f.name] = raw
        for vehicle in VEHICLE_SPEEDS_KMH:
            raw = environ.get(f"{prefix}VEHICLE_SPEED_{vehicle.upper()}")
            if raw:
                speeds[vehicle] = raw
        if speeds:
            overrides["vehicle_speeds_kmh"] = speeds
        if overrides:
            logger.info(f"Configuração de liquidação sobrescrita via ambiente: {sorted(overrides)}")
        return cls().with_overrides(**overrides)

    def with_overrides(self, **overrides) -> "SettlementConfig":
        converted = {name: _coerce(name, value, self) for name, value in overrides.items()}
        return replace(self, **converted)

    def to_dict(self):
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["vehicle_speeds_kmh"] = dict(self.vehicle_speeds_kmh)
        for name in _DECIMAL_FIELDS:
            data[name] = float(data[name])
        data["free_delivery_codes"] = list(self.free_delivery_codes)
        return data

    def is_free_delivery_code(self, promo_code: Optional[str]) -> bool:
        if not promo_code:
            return False
        normalized = promo_code.strip().upper()
        return any(normalized == code.upper() for code in self.free_delivery_codes)


_DECIMAL_FIELDS = tuple(
    f.name for f in fields(SettlementConfig) if f.type in (Decimal, "Decimal")
)
_FLOAT_FIELDS = tuple(f.name for f in fields(SettlementConfig) if f.type in (float, "float"))


def _coerce(name, value, base: SettlementConfig):
    """Converte valores vindos de env/JSON para o tipo do campo."""
    try:
        if name in _DECIMAL_FIELDS:
            return to_decimal(value, field=name)
        if name in _FLOAT_FIELDS:
            return float(value)
        if name == "incentive_threshold_deliveries":
            return int(value)
        if name == "free_delivery_codes":
            if isinstance(value, str):
                value = value.split(",")
            return tuple(code.strip() for code in value if code and code.strip())
        if name == "vehicle_speeds_kmh":
            speeds = dict(base.vehicle_speeds_kmh)
            speeds.update({k: float(v) for k, v in dict(value).items()})
            return speeds
        if name == "default_vehicle_type":
            return str(value).strip().lower()
    except InvalidInput as e:
        raise ConfigError(e.message, field=name)
    except (TypeError, ValueError):
        raise ConfigError(f"Valor inválido para {name}: {value!r}", field=name)
    raise ConfigError(f"Parâmetro de configuração desconhecido: {name}", field=name)


DEFAULT_CONFIG = SettlementConfig()


class ConfigProvider(ABC):
    @abstractmethod
    def get(self, zone: Optional[str] = None) -> SettlementConfig:
        """Retorna a configuração efetiva para a zona/região informada."""
        raise NotImplementedError()


class StaticConfigProvider(ConfigProvider):
    """Config padrão + overrides fixos por região (chaves em minúsculas)."""

    def __init__(self, default: Optional[SettlementConfig] = None,
                 regions: Optional[Mapping[str, Mapping]] = None):
        self.default = default or DEFAULT_CONFIG
        self.regions = {
            zone.strip().lower(): SettlementConfig.from_mapping(overrides, base=self.default)
            for zone, overrides in (regions or {}).items()
        }

    def get(self, zone: Optional[str] = None) -> SettlementConfig:
        if not zone:
            return self.default
        config = self.regions.get(zone.strip().lower())
        if config is None:
            logger.warning(f"Zona sem configuração própria, usando padrão: {zone}")
            return self.default
        return config
