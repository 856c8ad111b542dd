# inksa_settlement/routes/payouts.py
import logging
from functools import wraps
from flask import Blueprint, request, jsonify, current_app

from ..logic.payout_processor import CYCLE_TYPES, PARTNER_TYPES, process_payouts, transfer_payouts
from ..providers.mp_payouts import get_payout_provider
from ..utils.helpers import get_db_connection

logger = logging.getLogger(__name__)
payouts_bp = Blueprint("payouts", __name__)


def _db():
    factory = current_app.config.get("DB_CONN_FACTORY")
    if factory:
        return factory()
    return get_db_connection()


def internal_required(fn):
    """Rotas acionadas por cron/edge function: exigem X-Internal-Token."""
    @wraps(fn)
    def _wrap(*a, **kw):
        token = request.headers.get("X-Internal-Token")
        expected = current_app.config.get("PAYOUTS_INTERNAL_TOKEN")
        if not expected:
            return jsonify({"status": "error", "message": "internal_token_not_configured"}), 500
        if token != expected:
            return jsonify({"status": "error", "message": "unauthorized"}), 403
        return fn(*a, **kw)
    return _wrap


# -------------------------------------------------------------------
# POST /api/admin/payouts/process
# -------------------------------------------------------------------
@payouts_bp.route("/process", methods=["POST"])
@internal_required
def process_payouts_route():
    conn = None
    try:
        body = request.get_json(silent=True) or {}
        partner_type = (body.get("partner_type") or "").strip().lower()
        cycle_type = (body.get("cycle_type") or "weekly").strip().lower()
        send_transfers = bool(body.get("transfer", False))

        if partner_type not in PARTNER_TYPES:
            return jsonify({"error": "partner_type inválido (restaurant|delivery)"}), 400
        if cycle_type not in CYCLE_TYPES:
            return jsonify({"error": f"cycle_type inválido ({'|'.join(CYCLE_TYPES)})"}), 400

        conn = _db()
        if not conn:
            return jsonify({"error": "Erro de conexão com banco de dados"}), 500

        provider = get_payout_provider() if send_transfers else None
        result = process_payouts(conn, partner_type=partner_type, cycle_type=cycle_type)
        # payouts gravados antes de qualquer PIX; transfer_payouts commita cada status
        conn.commit()
        if provider and result:
            result = transfer_payouts(conn, provider, result)

        return jsonify({
            "status": "success",
            "partner_type": partner_type,
            "cycle_type": cycle_type,
            "generated_count": len(result),
            "payouts": result
        }), 200
    except Exception:
        logger.exception("Erro ao processar payouts")
        if conn:
            conn.rollback()
        return jsonify({"error": "Erro interno ao processar payouts"}), 500
    finally:
        if conn:
            conn.close()
