# inksa_settlement/utils/helpers.py

import os
import json
import uuid
import logging
import psycopg2
from psycopg2.extras import register_uuid
from supabase import create_client, Client
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


# --- Supabase ---
def create_supabase_client() -> Optional[Client]:
    """Cria o client com a service role (bypassa RLS). Retorna None se o ambiente não estiver configurado."""
    url = os.environ.get("SUPABASE_URL")
    # ✅ Aceita ambos os nomes usados nos deploys
    key = os.environ.get("SUPABASE_SERVICE_ROLE_KEY") or os.environ.get("SUPABASE_SERVICE_KEY")
    if not url or not key:
        logger.error("❌ SUPABASE_URL e SUPABASE_SERVICE_KEY são obrigatórias.")
        return None
    try:
        client = create_client(url, key)
        logger.info("✅ Supabase client inicializado.")
        return client
    except Exception as e:
        logger.error(f"❌ Falha ao inicializar Supabase: {e}")
        return None


# --- DB ---
def get_db_connection():
    url = os.environ.get("DATABASE_URL")
    if not url:
        logger.error("❌ DATABASE_URL não encontrada.")
        return None
    try:
        conn = psycopg2.connect(url)
        register_uuid(None, conn)  # garante suporte a UUID no cursor
        return conn
    except Exception as e:
        logger.error(f"❌ Conexão DB falhou: {e}", exc_info=True)
        return None


# --- JSON utils ---
class CustomJSONEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, (datetime, date, time)):
            return obj.isoformat()
        if isinstance(obj, uuid.UUID):
            return str(obj)
        if isinstance(obj, Enum):
            return obj.value
        return super().default(obj)


def serialize_data(data):
    return json.loads(json.dumps(data, cls=CustomJSONEncoder))
