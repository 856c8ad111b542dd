# inksa_settlement/logic/money.py
"""
Helpers de dinheiro. Todo valor monetário circula como Decimal (sem drift de float);
o arredondamento para centavos acontece só na serialização (to_dict / JSON).
"""
import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import InvalidInput

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value, field: str = "value") -> Decimal:
    """Converte int/float/str/Decimal em Decimal. Floats passam por str() para não herdar ruído binário."""
    if value is None or isinstance(value, bool):
        raise InvalidInput(f"{field} é obrigatório e deve ser numérico", field=field)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidInput(f"{field} deve ser um número finito", field=field)
        result = Decimal(str(value))
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidInput(f"{field} inválido: {value!r}", field=field)
    if not result.is_finite():
        raise InvalidInput(f"{field} deve ser um número finito", field=field)
    return result


def to_money(value, field: str = "amount") -> Decimal:
    """Como to_decimal, mas rejeita valores negativos."""
    amount = to_decimal(value, field)
    if amount < ZERO:
        raise InvalidInput(f"{field} não pode ser negativo", field=field)
    return amount


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def money_to_float(value):
    """Fronteira de serialização: Decimal -> float com 2 casas (None continua None)."""
    if value is None:
        return None
    return float(round_money(value))
