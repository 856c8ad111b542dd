# inksa_settlement/providers/mp_payouts.py
import os
import logging
from typing import Optional
import mercadopago

from .payout_provider import PayoutProvider, PayoutResult, MockPayoutProvider

logger = logging.getLogger(__name__)

PAYOUT_NOT_ENABLED = (
    "Sua conta Mercado Pago precisa de API de transfer/payout habilitada. "
    "Mantenha PAYOUT_PROVIDER=mock por enquanto."
)


class MercadoPagoPayoutProvider(PayoutProvider):
    """
    ATENÇÃO:
    - O envio automático (transfer/payout) exige escopos específicos na conta.
    - O SDK não expõe um recurso público de payout PIX; enquanto o contrato do endpoint
      habilitado na conta não for conhecido, transfer_pix recusa o envio em vez de
      mandar um payload não verificado. Cada payout fica 'failed' para repasse manual.
    """

    def __init__(self, access_token: Optional[str] = None):
        token = access_token or os.environ.get("MERCADO_PAGO_ACCESS_TOKEN", "")
        if not token:
            raise RuntimeError("MERCADO_PAGO_ACCESS_TOKEN ausente para provider Mercado Pago.")
        self.sdk = mercadopago.SDK(token)

    def transfer_pix(self, *, amount_cents: int, pix_key: str, description: str,
                     reference: Optional[str] = None) -> PayoutResult:
        logger.error("Payout %s de %s centavos recusado: provider Mercado Pago sem API de payout habilitada",
                     reference, amount_cents)
        raise NotImplementedError(PAYOUT_NOT_ENABLED)


def get_payout_provider(mode: Optional[str] = None) -> PayoutProvider:
    mode = (mode or os.environ.get("PAYOUT_PROVIDER", "mock")).lower()   # mock | mercadopago
    if mode == "mercadopago":
        logger.info("Usando provider Mercado Pago para repasses.")
        return MercadoPagoPayoutProvider()
    logger.info("Usando provider MOCK para repasses.")
    return MockPayoutProvider()
