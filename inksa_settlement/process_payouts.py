# inksa_settlement/process_payouts.py

"""
Script de processamento de repasses: agrupa os valores liquidados por parceiro no período,
cria os payouts e (opcionalmente) envia as transferências PIX pelo provider configurado.

Uso:
    inksa-process-payouts --partner-type restaurant --cycle-type weekly
    inksa-process-payouts --partner-type all --cycle-type monthly --transfer
"""
import argparse
import logging
import sys
from dotenv import load_dotenv

from .logic.payout_processor import CYCLE_TYPES, PARTNER_TYPES, process_payouts, transfer_payouts
from .providers.mp_payouts import get_payout_provider
from .utils.helpers import get_db_connection

logger = logging.getLogger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(description="Processa repasses de restaurantes e entregadores.")
    parser.add_argument("--partner-type", choices=PARTNER_TYPES + ("all",), default="all")
    parser.add_argument("--cycle-type", choices=CYCLE_TYPES, default="weekly")
    parser.add_argument("--transfer", action="store_true",
                        help="envia os PIX pelo provider (PAYOUT_PROVIDER=mock|mercadopago)")
    parser.add_argument("--dry-run", action="store_true", help="calcula e desfaz (rollback) no final")
    return parser


def run(conn, partner_types, cycle_type, transfer=False, provider=None):
    """Gera os payouts de cada tipo de parceiro; com transfer=True commita antes de enviar os PIX."""
    if transfer and provider is None:
        provider = get_payout_provider()
    results = {}
    for partner_type in partner_types:
        payouts = process_payouts(conn, partner_type=partner_type, cycle_type=cycle_type)
        if transfer and payouts:
            conn.commit()
            payouts = transfer_payouts(conn, provider, payouts)
        results[partner_type] = payouts
    return results


def main(argv=None):
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    load_dotenv()
    args = build_parser().parse_args(argv)

    logger.info("--- Iniciando script de processamento de repasses ---")
    conn = get_db_connection()
    if not conn:
        logger.error("ERRO: Verifique se DATABASE_URL está no .env")
        return 1

    partner_types = PARTNER_TYPES if args.partner_type == "all" else (args.partner_type,)
    try:
        results = run(conn, partner_types, args.cycle_type, transfer=args.transfer and not args.dry_run)
        if args.dry_run:
            conn.rollback()
            logger.info("Dry-run: nenhuma alteração gravada.")
        else:
            conn.commit()
    except Exception:
        logger.exception("ERRO CRÍTICO ao processar repasses")
        conn.rollback()
        return 1
    finally:
        conn.close()

    for partner_type, payouts in results.items():
        total = sum(p["amount"] for p in payouts)
        logger.info(f"{partner_type}: {len(payouts)} payouts, total R$ {total:.2f}")
    logger.info("--- Script concluído ---")
    return 0


if __name__ == "__main__":
    sys.exit(main())
