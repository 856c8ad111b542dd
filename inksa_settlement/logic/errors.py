# inksa_settlement/logic/errors.py
from typing import Optional


class SettlementError(Exception):
    """Erro base do cálculo de liquidação de pedidos."""


class InvalidInput(SettlementError, ValueError):
    """Entrada inválida: coordenadas ausentes, veículo desconhecido, valores negativos...

    Falha rápido e é devolvida ao chamador; nunca é re-tentada internamente.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self):
        payload = {"status": "error", "error": self.message}
        if self.field:
            payload["field"] = self.field
        return payload


class ConfigError(InvalidInput):
    """Parâmetro de configuração inválido (env, região ou override)."""
