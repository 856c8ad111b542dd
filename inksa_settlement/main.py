import os
import json
import logging
from datetime import datetime
from flask import Flask, jsonify, request
from flask_cors import CORS
from dotenv import load_dotenv
import mercadopago

from .config import SettlementConfig, StaticConfigProvider
from .routes.delivery_calculator import delivery_calculator_bp
from .routes.financial import financial_bp
from .routes.payment import mp_payment_bp
from .routes.payouts import payouts_bp
from .utils.helpers import create_supabase_client
from .utils.order_store import SupabaseOrderStore

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# ---------------- CORS ----------------
PROD_ORIGINS = [
    "https://clientes.inksadelivery.com.br",
    "https://restaurantes.inksadelivery.com.br",
    "https://entregadores.inksadelivery.com.br",
    "https://admin.inksadelivery.com.br",
    "https://app.inksadelivery.com.br",
]
# Pré-visualizações Vercel e dev local (qualquer porta)
ORIGIN_PATTERNS = [
    r"https://.*\.vercel\.app",
    r"http://localhost:\d+",
    r"http://127\.0\.0\.1:\d+",
]


def _load_regions(app):
    """Overrides por região: SETTLEMENT_REGIONS no arquivo de settings ou JSON em SETTLEMENT_REGIONS_JSON."""
    regions = app.config.get("SETTLEMENT_REGIONS")
    raw = os.environ.get("SETTLEMENT_REGIONS_JSON")
    if not regions and raw:
        regions = json.loads(raw)
    return regions or {}


def create_app(config_overrides=None, order_store=None, mp_sdk=None):
    load_dotenv()

    app = Flask(__name__)
    app.url_map.strict_slashes = False

    # Arquivo de settings opcional por deployment (mesmo formato do antigo config.py)
    if not app.config.from_envvar("INKSA_SETTINGS", silent=True):
        logger.info("INKSA_SETTINGS não definido. Usando configurações padrão + variáveis de ambiente.")

    app.config["MERCADO_PAGO_WEBHOOK_SECRET"] = os.environ.get("MERCADO_PAGO_WEBHOOK_SECRET")
    app.config["PAYOUTS_INTERNAL_TOKEN"] = os.environ.get("PAYOUTS_INTERNAL_TOKEN")
    if config_overrides:
        app.config.update(config_overrides)

    if "SETTLEMENT_CONFIG_PROVIDER" not in app.config:
        app.config["SETTLEMENT_CONFIG_PROVIDER"] = StaticConfigProvider(
            SettlementConfig.from_env(), regions=_load_regions(app)
        )

    extra = [o.strip() for o in os.environ.get("EXTRA_ALLOWED_ORIGINS", "").split(",") if o.strip()]
    CORS(
        app,
        resources={r"/api/*": {"origins": PROD_ORIGINS + ORIGIN_PATTERNS + extra}},
        supports_credentials=True,
        allow_headers=["Content-Type", "Authorization", "X-Internal-Token"],
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
    )

    # --- REGISTRO DE BLUEPRINTS ---
    app.register_blueprint(financial_bp, url_prefix='/api/financial')
    app.register_blueprint(delivery_calculator_bp, url_prefix='/api/delivery')
    app.register_blueprint(mp_payment_bp, url_prefix='/api')
    app.register_blueprint(payouts_bp, url_prefix='/api/admin/payouts')

    # --- Inicialização de Serviços Externos ---
    if mp_sdk is None:
        access_token = os.environ.get("MERCADO_PAGO_ACCESS_TOKEN")
        if access_token:
            mp_sdk = mercadopago.SDK(access_token)
            logger.info("Mercado Pago SDK inicializado com sucesso")
        else:
            logger.warning("MERCADO_PAGO_ACCESS_TOKEN não encontrado!")
    app.mp_sdk = mp_sdk

    if order_store is None:
        client = create_supabase_client()
        order_store = SupabaseOrderStore(client) if client else None
    app.order_store = order_store

    # --- Rotas de Status ---
    @app.route('/')
    def index():
        return jsonify({"status": "online", "message": "Servidor de liquidação Inksa funcionando!"})

    @app.route('/health')
    def health_check_simple():
        return jsonify({
            "status": "ok",
            "message": "Server is running",
            "timestamp": datetime.now().isoformat(),
            "service": "Inksa Settlement API"
        }), 200

    @app.route('/api/health')
    def health_check():
        return jsonify({
            "status": "healthy",
            "database": "connected" if app.order_store else "disconnected",
            "mercado_pago": "configured" if app.mp_sdk else "not_configured",
        })

    # --- Handlers de Erro ---
    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Endpoint não encontrado", "path": request.path}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"error": "Método não permitido", "method": request.method}), 405

    @app.errorhandler(500)
    def internal_error(error):
        logger.error(f"Erro interno: {error}", exc_info=True)
        return jsonify({"error": "Erro interno do servidor"}), 500

    return app


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    debug = os.environ.get('FLASK_DEBUG', 'False').lower() == 'true'
    logger.info(f"Iniciando servidor na porta {port} (debug: {debug})")
    create_app().run(host='0.0.0.0', port=port, debug=debug)
