import math
from decimal import Decimal
from types import SimpleNamespace
from unittest import TestCase, mock

import requests

from inksa_settlement.logic.errors import InvalidInput
from inksa_settlement.logic.models import Coordinates, VehicleType
from inksa_settlement.logic.settlement import SettlementRequest, settle_order
from inksa_settlement.utils.geocoding_utils import geocode_address
from inksa_settlement.utils.order_store import OrderNotFound, SupabaseOrderStore

LAT_5KM = math.degrees(5 / 6371)

ORDER = {
    "id": "o-1",
    "restaurant_id": "r-1",
    "client_latitude": LAT_5KM,
    "client_longitude": 0,
    "total_amount_items": 50,
    "tip_amount": None,
    "promo_code": None,
    "vehicle_type": None,
    "zone": None,
}
RESTAURANT = {"id": "r-1", "latitude": 0, "longitude": 0, "restaurant_name": "Bom Sabor", "commission_rate": None}


def make_client(tables):
    client = mock.MagicMock()
    client.table.side_effect = lambda name: tables[name]
    return client


def select_returning(data):
    table = mock.MagicMock()
    table.select.return_value.eq.return_value.execute.return_value.data = data
    return table


class SupabaseOrderStoreReadTests(TestCase):
    def test_get_order(self):
        store = SupabaseOrderStore(make_client({"orders": select_returning([ORDER])}))
        self.assertEqual(store.get_order("o-1"), ORDER)

    def test_get_order_missing(self):
        store = SupabaseOrderStore(make_client({"orders": select_returning([])}))
        self.assertIsNone(store.get_order("nope"))

    def test_build_settlement_request(self):
        store = SupabaseOrderStore(make_client({"restaurant_profiles": select_returning([RESTAURANT])}))

        request = store.build_settlement_request(ORDER, default_vehicle_type="motorcycle")

        self.assertEqual(request.vehicle_type, VehicleType.MOTORCYCLE)
        self.assertEqual(request.order_subtotal, Decimal("50"))
        self.assertEqual(request.tip_amount, Decimal("0"))
        self.assertIsNone(request.commission_rate_override)
        self.assertEqual(request.restaurant_coords, Coordinates(0.0, 0.0))

    def test_restaurant_commission_rate_is_used(self):
        restaurant = dict(RESTAURANT, commission_rate=0.15)
        store = SupabaseOrderStore(make_client({"restaurant_profiles": select_returning([restaurant])}))

        request = store.build_settlement_request(ORDER, default_vehicle_type="motorcycle")
        self.assertEqual(request.commission_rate_override, Decimal("0.15"))

    def test_missing_restaurant(self):
        store = SupabaseOrderStore(make_client({"restaurant_profiles": select_returning([])}))
        with self.assertRaises(OrderNotFound):
            store.build_settlement_request(ORDER)

    def test_order_without_client_coordinates(self):
        store = SupabaseOrderStore(make_client({"restaurant_profiles": select_returning([RESTAURANT])}))
        with self.assertRaises(InvalidInput) as ctx:
            store.build_settlement_request(dict(ORDER, client_latitude=None), default_vehicle_type="car")
        self.assertEqual(ctx.exception.field, "customer_coords")


class FakeTable:
    """Tabela em memória com o subconjunto da API do supabase-py usado pelo order store."""

    def __init__(self, rows=None):
        self.rows = [dict(r) for r in rows or []]
        self.failures = 0

    def select(self, columns='*'):
        return FakeQuery(self, 'select')

    def insert(self, data):
        return FakeQuery(self, 'upsert', data=data)

    def upsert(self, data, on_conflict=None, ignore_duplicates=False):
        return FakeQuery(self, 'upsert', data=data, on_conflict=on_conflict, ignore_duplicates=ignore_duplicates)

    def update(self, data):
        return FakeQuery(self, 'update', data=data)


class FakeQuery:
    def __init__(self, table, op, data=None, on_conflict=None, ignore_duplicates=False):
        self.table = table
        self.op = op
        self.payload = data
        self.on_conflict = on_conflict
        self.ignore_duplicates = ignore_duplicates
        self.filters = {}

    def eq(self, column, value):
        self.filters[column] = value
        return self

    def _matches(self, row):
        return all(str(row.get(k)) == str(v) for k, v in self.filters.items())

    def execute(self):
        if self.table.failures:
            self.table.failures -= 1
            raise RuntimeError("conexão perdida com o Supabase")
        if self.op == 'select':
            return SimpleNamespace(data=[r for r in self.table.rows if self._matches(r)])
        if self.op == 'update':
            matched = [r for r in self.table.rows if self._matches(r)]
            for row in matched:
                row.update(self.payload)
            return SimpleNamespace(data=matched)

        keys = self.on_conflict.split(',') if self.on_conflict else []
        written = []
        for row in self.payload if isinstance(self.payload, list) else [self.payload]:
            existing = [r for r in self.table.rows if keys and all(r.get(k) == row.get(k) for k in keys)]
            if existing:
                if not self.ignore_duplicates:
                    existing[0].update(row)
                    written.append(row)
                continue
            self.table.rows.append(dict(row))
            written.append(row)
        return SimpleNamespace(data=written)


class SupabaseOrderStoreWriteTests(TestCase):
    def setUp(self):
        self.settlements = FakeTable()
        self.transactions = FakeTable()
        self.orders = FakeTable([{"id": "o-1", "status": "awaiting_payment"}])
        self.store = SupabaseOrderStore(make_client({
            "order_settlements": self.settlements,
            "financial_transactions": self.transactions,
            "orders": self.orders,
        }))
        self.result = settle_order(SettlementRequest.from_payload({
            "restaurant_coords": [0, 0],
            "customer_coords": [LAT_5KM, 0],
            "order_subtotal": 50,
            "vehicle_type": "motorcycle",
        }))

    def test_first_settlement_is_persisted(self):
        self.assertTrue(self.store.save_settlement("o-1", self.result, payment_id=123, payment_method="pix"))

        row, = self.settlements.rows
        self.assertEqual(row["order_id"], "o-1")
        self.assertEqual(row["payment_id"], "123")

        self.assertEqual(len(self.transactions.rows), 4)
        self.assertEqual(self.transactions.rows[0]["payment_method"], "pix")

        order = self.orders.rows[0]
        self.assertEqual(order["delivery_fee"], 13.99)
        self.assertEqual(order["comissao_plataforma"], 10.0)
        self.assertEqual(order["valor_repassado_restaurante"], 37.75)
        self.assertEqual(order["valor_repassado_entregador"], 15.8)

    def test_repeated_settlement_is_ignored(self):
        self.assertTrue(self.store.save_settlement("o-1", self.result))
        self.orders.rows[0]["valor_repassado_entregador"] = 99.0

        self.assertFalse(self.store.save_settlement("o-1", self.result))

        self.assertEqual(len(self.settlements.rows), 1)
        self.assertEqual(len(self.transactions.rows), 4)
        self.assertEqual(self.orders.rows[0]["valor_repassado_entregador"], 99.0)

    def test_interrupted_settlement_is_completed_on_retry(self):
        self.transactions.failures = 1
        with self.assertRaises(RuntimeError):
            self.store.save_settlement("o-1", self.result, payment_id=123)
        self.assertEqual(self.settlements.rows, [])

        self.assertTrue(self.store.save_settlement("o-1", self.result, payment_id=123))

        self.assertEqual(len(self.transactions.rows), 4)
        self.assertEqual(self.orders.rows[0]["valor_repassado_entregador"], 15.8)
        self.assertEqual(len(self.settlements.rows), 1)

    def test_retry_after_order_update_failure_does_not_duplicate_ledger(self):
        self.orders.failures = 1
        with self.assertRaises(RuntimeError):
            self.store.save_settlement("o-1", self.result)
        self.assertEqual(len(self.transactions.rows), 4)

        self.assertTrue(self.store.save_settlement("o-1", self.result))

        self.assertEqual(len(self.transactions.rows), 4)
        self.assertEqual(self.orders.rows[0]["comissao_plataforma"], 10.0)

    def test_concurrent_claim_loses(self):
        self.settlements.rows.append({"order_id": "o-1"})
        with mock.patch.object(self.store, "is_settled", return_value=False):
            self.assertFalse(self.store.save_settlement("o-1", self.result))

    def test_mark_payment_status(self):
        self.store.mark_payment_status("o-1", "rejected", 555, order_status="payment_failed")

        order = self.orders.rows[0]
        self.assertEqual(order["status_pagamento"], "rejected")
        self.assertEqual(order["id_transacao_mp"], "555")
        self.assertEqual(order["status"], "payment_failed")

    def test_mark_payment_status_keeps_order_status(self):
        self.store.mark_payment_status("o-1", "in_process", 555)
        self.assertEqual(self.orders.rows[0]["status"], "awaiting_payment")


@mock.patch("inksa_settlement.utils.geocoding_utils.requests.get")
class GeocodeAddressTests(TestCase):
    def test_success(self, get):
        get.return_value.json.return_value = [{"lat": "-1.4558", "lon": "-48.5044"}]

        coords = geocode_address("Av. Nazaré", "100", "Nazaré", "Belém", "PA", "66035-000")

        self.assertEqual(coords, Coordinates(-1.4558, -48.5044))
        self.assertEqual(get.call_args.kwargs["params"]["q"],
                         "100 Av. Nazaré, Nazaré, Belém, PA, 66035-000")
        self.assertIn("User-Agent", get.call_args.kwargs["headers"])

    def test_no_results(self, get):
        get.return_value.json.return_value = []
        self.assertIsNone(geocode_address("Rua Inexistente", city="Belém"))

    def test_http_error(self, get):
        get.side_effect = requests.exceptions.Timeout("lento")
        self.assertIsNone(geocode_address("Rua A", city="Belém"))

    def test_empty_address_skips_request(self, get):
        self.assertIsNone(geocode_address(None))
        get.assert_not_called()
