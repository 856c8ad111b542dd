# inksa_settlement/logic/payout_processor.py
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
import psycopg2
import psycopg2.extras
import uuid as uuidlib

from .money import ZERO, money_to_float

logger = logging.getLogger(__name__)

PARTNER_TYPES = ("restaurant", "delivery")
CYCLE_TYPES = ("daily", "weekly", "bi-weekly", "monthly")

# Mapas fixos (evita concatenar nome de coluna vindo de fora)
_PARTNER_COLUMNS = {
    "delivery": {
        "amount": "valor_repassado_entregador",
        "payout_id": "delivery_payout_id",
        "partner_id": "delivery_id",
    },
    "restaurant": {
        "amount": "valor_repassado_restaurante",
        "payout_id": "restaurant_payout_id",
        "partner_id": "restaurant_id",
    },
}


def period_bounds(cycle_type: str, now=None):
    """Retorna (period_start, period_end) UTC para o ciclo informado.
         - daily: últimas 24h
         - weekly: últimos 7 dias até agora
         - bi-weekly: últimos 14 dias
         - monthly: do 1º dia do mês corrente até agora
    """
    if cycle_type not in CYCLE_TYPES:
        raise ValueError(f"cycle_type inválido: {cycle_type}")
    now = now or datetime.now(timezone.utc)
    if cycle_type == "monthly":
        first = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        return (first, now)
    days = {"daily": 1, "weekly": 7, "bi-weekly": 14}[cycle_type]
    start = (now - timedelta(days=days)).replace(microsecond=0)
    return (start, now)


def process_payouts(conn, partner_type: str, cycle_type: str, now=None):
    """Gera payouts para 'restaurant' ou 'delivery' no período definido.

    Os valores vêm das colunas gravadas pela liquidação do pedido
    (valor_repassado_restaurante / valor_repassado_entregador). Pedidos com valor <= 0
    ficam de fora: líquido negativo de restaurante não é descontado nem pago automaticamente.

    Pré-requisitos no BD:
      - orders.status = 'delivered'
      - orders.status_pagamento = 'approved'
      - orders.restaurant_payout_id / delivery_payout_id (para marcação)
      - tabela payouts (id, partner_id, partner_type, amount, period_start, period_end,
        order_ids_included, status, created_at)
    """
    if partner_type not in PARTNER_TYPES:
        raise ValueError(f"partner_type inválido: {partner_type}")
    period_start, period_end = period_bounds(cycle_type, now=now)

    columns = _PARTNER_COLUMNS[partner_type]
    amount_column = columns["amount"]
    payout_id_column = columns["payout_id"]
    partner_id_column = columns["partner_id"]

    created = []

    with conn.cursor(cursor_factory=psycopg2.extras.DictCursor) as cur:
        # bloqueia pedidos elegíveis para evitar corrida (se rodar concorrente)
        cur.execute(f"""
            SELECT DISTINCT o.{partner_id_column} AS partner_id
            FROM orders o
            WHERE
              o.{partner_id_column} IS NOT NULL
              AND o.status = 'delivered'
              AND o.status_pagamento = 'approved'
              AND o.{amount_column} IS NOT NULL
              AND o.{amount_column} > 0
              AND o.{payout_id_column} IS NULL
              AND o.updated_at >= %s AND o.updated_at <= %s
            FOR UPDATE SKIP LOCKED
        """, (period_start, period_end))

        partners = [row["partner_id"] for row in cur.fetchall()]
        logger.info("Parceiros elegíveis (%s): %s", partner_type, partners)

        for partner_id in partners:
            cur.execute(f"""
                SELECT id, {amount_column} AS repasse
                FROM orders
                WHERE
                  {partner_id_column} = %s
                  AND status = 'delivered'
                  AND status_pagamento = 'approved'
                  AND {amount_column} IS NOT NULL
                  AND {amount_column} > 0
                  AND {payout_id_column} IS NULL
                  AND updated_at >= %s AND updated_at <= %s
                ORDER BY updated_at ASC
            """, (partner_id, period_start, period_end))

            rows = cur.fetchall()
            if not rows:
                continue

            total = sum((Decimal(str(r["repasse"] or 0)) for r in rows), ZERO)
            order_ids = [r["id"] for r in rows]

            payout_id = uuidlib.uuid4()
            cur.execute("""
                INSERT INTO payouts (id, partner_id, partner_type, amount, period_start, period_end, order_ids_included, status, created_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, 'pending', NOW())
                RETURNING id, partner_id, partner_type, amount, period_start, period_end, status
            """, (str(payout_id), str(partner_id), partner_type, total, period_start, period_end, order_ids))

            payout_row = dict(cur.fetchone())

            # marca pedidos com o id do payout
            cur.execute(f"""
                UPDATE orders
                SET {payout_id_column} = %s
                WHERE id = ANY(%s)
            """, (str(payout_id), order_ids))

            created.append({
                "payout_id": str(payout_row["id"]),
                "partner_type": payout_row["partner_type"],
                "partner_id": str(payout_row["partner_id"]),
                "amount": money_to_float(Decimal(str(payout_row["amount"]))),
                "period_start": payout_row["period_start"].isoformat(),
                "period_end": payout_row["period_end"].isoformat(),
                "status": payout_row["status"],
                "orders_count": len(order_ids)
            })

    logger.info("Payouts gerados (%s): %d", partner_type, len(created))
    return created


def get_partner_pix_data(conn, *, partner_type: str, partner_id: str):
    """Busca chave PIX e nome do parceiro."""
    with conn.cursor(cursor_factory=psycopg2.extras.DictCursor) as cur:
        if partner_type == "delivery":
            cur.execute("""
                SELECT dp.pix_key, dp.full_name
                FROM delivery_profiles dp
                WHERE dp.id = %s
                LIMIT 1
            """, (partner_id,))
        else:
            cur.execute("""
                SELECT rp.pix_key, rp.restaurant_name AS full_name
                FROM restaurant_profiles rp
                WHERE rp.id = %s
                LIMIT 1
            """, (partner_id,))
        row = cur.fetchone()
    if not row:
        return None, None
    return row.get("pix_key"), row.get("full_name")


def transfer_payouts(conn, provider, payouts):
    """Envia cada payout pendente via provider (PIX) e marca 'paid' ou 'failed'.

    Os payouts precisam estar commitados antes da chamada: cada status é commitado logo após
    a transferência, então um erro posterior não desfaz o registro de um PIX já enviado.
    Falha de um parceiro não interrompe os demais; o status fica gravado para nova tentativa manual.
    """
    results = []
    for payout in payouts:
        payout_id = payout["payout_id"]
        pix_key, partner_name = get_partner_pix_data(
            conn, partner_type=payout["partner_type"], partner_id=payout["partner_id"]
        )
        if not pix_key:
            logger.error("Parceiro %s sem chave PIX cadastrada; payout %s não enviado",
                         payout["partner_id"], payout_id)
            saved = _save_payout_status(conn, payout_id, "failed", None)
            results.append({**payout, "status": "failed", "error": "pix_key_missing", "status_saved": saved})
            continue

        amount_cents = int(Decimal(str(payout["amount"])) * 100)
        description = f"Repasse Inksa {payout['period_start'][:10]} a {payout['period_end'][:10]}"
        try:
            transfer = provider.transfer_pix(
                amount_cents=amount_cents, pix_key=pix_key, description=description, reference=payout_id
            )
        except Exception as e:
            logger.error("Erro ao transferir payout %s: %s", payout_id, e, exc_info=True)
            transfer = {"ok": False, "txid": None, "raw": {"error": str(e)}}

        status = "paid" if transfer.get("ok") else "failed"
        saved = _save_payout_status(conn, payout_id, status, transfer.get("txid"))
        logger.info("Payout %s para %s (%s): %s", payout_id, partner_name or payout["partner_id"],
                    payout["amount"], status)
        results.append({**payout, "status": status, "payment_ref": transfer.get("txid"), "status_saved": saved})
    return results


def _save_payout_status(conn, payout_id, status, payment_ref):
    try:
        _update_payout_status(conn, payout_id, status, payment_ref)
        conn.commit()
        return True
    except psycopg2.Error:
        # o PIX já saiu; o payout continua 'pending' no banco e precisa de conciliação manual
        logger.critical("Falha ao gravar status '%s' do payout %s (ref %s); conciliar manualmente",
                        status, payout_id, payment_ref, exc_info=True)
        conn.rollback()
        return False


def _update_payout_status(conn, payout_id, status, payment_ref):
    with conn.cursor() as cur:
        cur.execute("""
            UPDATE payouts
            SET status = %s, payment_method = 'pix', payment_ref = %s, updated_at = NOW()
            WHERE id = %s
        """, (status, payment_ref, payout_id))
