import os
import sys
import unittest
from decimal import Decimal

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from api.models import Product, SaleItem  # noqa: E402
from register.cart import Cart  # noqa: E402
from utils.pure import format_money, parse_money  # noqa: E402


def make_product(pid, name="Coke 1.5L", price="65", barcode=None):
    return Product(
        id=pid,
        name=name,
        barcode=barcode or f"48000{pid}",
        category="Drinks",
        unit_price=Decimal(price),
        stock_quantity=24,
    )


class CartTestCase(unittest.TestCase):
    def test_same_product_merges_into_one_line(self):
        cart = Cart()
        coke = make_product(1)
        cart.add_or_increment(coke)
        line = cart.add_or_increment(coke)

        self.assertEqual(len(cart), 1)
        self.assertEqual(line.quantity, 2)
        self.assertEqual(cart.total(), Decimal("130"))
        self.assertEqual(cart.item_count, 2)

    def test_lines_keep_insertion_order(self):
        cart = Cart()
        cart.add_or_increment(make_product(1, "Coke"))
        cart.add_or_increment(make_product(2, "Bread"))
        cart.add_or_increment(make_product(1, "Coke"))
        self.assertEqual([line.name for line in cart], ["Coke", "Bread"])

    def test_decrement_floors_at_one(self):
        cart = Cart()
        cart.add_or_increment(make_product(1))
        self.assertTrue(cart.set_quantity(1, -1))
        self.assertEqual(cart.get(1).quantity, 1)

        self.assertTrue(cart.set_quantity(1, 3))
        self.assertEqual(cart.get(1).quantity, 4)
        self.assertTrue(cart.set_quantity(1, -10))
        self.assertEqual(cart.get(1).quantity, 1)

        # unknown product
        self.assertFalse(cart.set_quantity(99, 1))

    def test_total_is_sum_of_line_totals(self):
        cart = Cart()
        cart.add_or_increment(make_product(1, "Soap", "50"))
        cart.add_or_increment(make_product(1, "Soap", "50"))
        cart.add_or_increment(make_product(2, "Rice", "30"))
        self.assertEqual(cart.total(), Decimal("130"))

    def test_remove_and_clear(self):
        cart = Cart()
        cart.add_or_increment(make_product(1))
        cart.add_or_increment(make_product(2, "Bread", "45.50"))
        self.assertEqual(cart.total(), Decimal("110.50"))

        self.assertTrue(cart.remove(1))
        self.assertFalse(cart.remove(1))
        self.assertEqual(len(cart), 1)

        cart.clear()
        self.assertTrue(cart.is_empty)
        self.assertEqual(cart.total(), Decimal("0"))

    def test_deduct_takes_off_only_sold_quantities(self):
        cart = Cart()
        for _ in range(4):
            cart.add_or_increment(make_product(1))
        cart.add_or_increment(make_product(2, "Bread", "45.50"))

        cart.deduct(
            [
                SaleItem(1, 3, Decimal("65")),
                SaleItem(2, 1, Decimal("45.50")),
                SaleItem(99, 1, Decimal("1")),
            ]
        )
        self.assertEqual([(line.product_id, line.quantity) for line in cart], [(1, 1)])


class MoneyTestCase(unittest.TestCase):
    def test_format_money(self):
        self.assertEqual(format_money(Decimal("15")), "₱15")
        self.assertEqual(format_money(Decimal("1234.5")), "₱1,234.50")
        self.assertEqual(format_money(Decimal("0.1"), "$"), "$0.10")

    def test_parse_money(self):
        self.assertEqual(parse_money("150"), Decimal("150"))
        self.assertEqual(parse_money(" ₱1,234.50 "), Decimal("1234.50"))
        self.assertEqual(parse_money("0"), Decimal("0"))
        self.assertIsNone(parse_money(""))
        self.assertIsNone(parse_money("abc"))
        self.assertIsNone(parse_money("-5"))
        self.assertIsNone(parse_money("NaN"))
        self.assertIsNone(parse_money("Infinity"))
