# inksa_settlement/providers/payout_provider.py
import hashlib
from abc import ABC, abstractmethod
from typing import TypedDict, Optional

class PayoutResult(TypedDict):
    ok: bool
    txid: Optional[str]
    raw: dict

class PayoutProvider(ABC):
    @abstractmethod
    def transfer_pix(self, *, amount_cents: int, pix_key: str, description: str,
                     reference: Optional[str] = None) -> PayoutResult:
        """Envia um PIX e retorna txid do provedor. `reference` identifica o payout (idempotência)."""
        raise NotImplementedError()


class MockPayoutProvider(PayoutProvider):
    """Provider de testes: não envia dinheiro, só simula sucesso."""
    def transfer_pix(self, *, amount_cents: int, pix_key: str, description: str,
                     reference: Optional[str] = None) -> PayoutResult:
        # TXID fake estável entre execuções (hash() do Python muda a cada processo)
        digest = hashlib.sha256(f"{amount_cents}|{pix_key}|{description}|{reference}".encode()).hexdigest()
        return {"ok": True, "txid": f"MOCK-{int(digest[:12], 16) % 10_000_000}", "raw": {"mode": "mock"}}
