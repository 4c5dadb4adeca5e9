# --- path/bootstrap (keep this at the very top) ---
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

for p in (SRC, ROOT):
    if p.is_dir() and str(p) not in sys.path:
        sys.path.insert(0, str(p))
# --- end path/bootstrap ---

import itertools
import unittest
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal, getcontext

import pricing
from pricing import (
    InvalidLineItem,
    LineItem,
    PREMIUM,
    PricingEngine,
    REGULAR,
    calculate_subtotal,
    calculate_total,
    get_policy,
    register_policy,
)


def scenario_one():
    return [LineItem(Decimal("10.00"), 2), LineItem(Decimal("5.00"), 1)]


class TestLineItem(unittest.TestCase):

    def test_float_price_is_coerced_through_str(self):
        item = LineItem(9.99, 3)
        self.assertEqual(item.unit_price, Decimal("9.99"))
        self.assertEqual(item.line_total, Decimal("29.97"))

    def test_string_and_int_prices(self):
        self.assertEqual(LineItem("1.10", 1).unit_price, Decimal("1.10"))
        self.assertEqual(LineItem(4, 2).line_total, Decimal("8"))

    def test_whole_number_quantities_only(self):
        self.assertEqual(LineItem("10", 2.0).quantity, 2)
        self.assertEqual(LineItem("10", Decimal("3")).quantity, 3)
        for bad in (2.7, Decimal("2.5"), "2", float("nan"), Decimal("Infinity")):
            with self.assertRaises(TypeError):
                LineItem("10", bad)

    def test_line_items_are_immutable(self):
        item = LineItem(Decimal("1.00"), 1)
        with self.assertRaises(AttributeError):
            item.quantity = 5


class TestDiscountPolicies(unittest.TestCase):

    def tearDown(self):
        pricing._POLICIES.pop("vip", None)

    def test_policy_does_not_round(self):
        self.assertEqual(REGULAR.apply(Decimal("0.30")), Decimal("0.2850"))
        self.assertEqual(PREMIUM(Decimal("10")), Decimal("9.00"))

    def test_lookup_is_case_insensitive(self):
        self.assertIs(get_policy(" Premium "), PREMIUM)
        self.assertIs(get_policy("regular"), REGULAR)

    def test_unknown_policy(self):
        with self.assertRaises(ValueError) as ctx:
            get_policy("gold")
        self.assertIn("gold", str(ctx.exception))

    def test_new_policy_without_touching_engine(self):
        register_policy("VIP", "0.80")
        self.assertIn("vip", pricing.available_policies())
        self.assertEqual(PricingEngine("vip").calculate_total(scenario_one()), Decimal("20.00"))


class TestPricingEngine(unittest.TestCase):

    def test_scenario_one(self):
        items = scenario_one()
        self.assertEqual(calculate_subtotal(items), Decimal("25.00"))
        self.assertEqual(calculate_total(items, REGULAR), Decimal("23.75"))
        self.assertEqual(calculate_total(items, PREMIUM), Decimal("22.50"))

    def test_empty_cart_is_zero_for_any_policy(self):
        for policy in (REGULAR, PREMIUM, "premium", lambda s: s * 2):
            self.assertEqual(calculate_total([], policy), 0)

    def test_scenario_three(self):
        self.assertEqual(calculate_total([LineItem(Decimal("100.00"), 1)], PREMIUM), Decimal("90.00"))

    def test_factors_apply_to_subtotal(self):
        items = [LineItem("19.99", 3), LineItem("0.49", 7), LineItem("250", 1)]
        subtotal = calculate_subtotal(items)
        self.assertEqual(calculate_total(items, REGULAR), (subtotal * Decimal("0.95")).quantize(Decimal("0.01")))
        self.assertEqual(calculate_total(items, PREMIUM), (subtotal * Decimal("0.90")).quantize(Decimal("0.01")))

    def test_rounds_half_away_from_zero(self):
        # 0.30 * 0.95 = 0.285
        self.assertEqual(calculate_total([LineItem("0.30", 1)], REGULAR), Decimal("0.29"))
        self.assertEqual(calculate_total([LineItem("-0.30", 1)], REGULAR), Decimal("-0.29"))

    def test_result_has_two_decimal_places(self):
        self.assertEqual(calculate_total([LineItem("3", 1)], PREMIUM).as_tuple().exponent, -2)

    def test_monotonic(self):
        for raw in ("0", "0.01", "1", "25.00", "99.99", "1234.56"):
            items = [LineItem(raw, 1)]
            premium = calculate_total(items, PREMIUM)
            regular = calculate_total(items, REGULAR)
            self.assertLessEqual(premium, regular)
            self.assertLessEqual(regular, Decimal(raw))

    def test_item_order_does_not_matter(self):
        items = scenario_one() + [LineItem("0.33", 3)]
        expected = calculate_total(items, REGULAR)
        for perm in itertools.permutations(items):
            self.assertEqual(calculate_subtotal(perm), calculate_subtotal(items))
            self.assertEqual(calculate_total(perm, REGULAR), expected)

    def test_idempotent(self):
        engine = PricingEngine(PREMIUM)
        items = scenario_one()
        self.assertEqual(engine.calculate_total(items), engine.calculate_total(items))
        self.assertEqual(len(items), 2)

    def test_accepts_policy_name_and_callable(self):
        self.assertEqual(calculate_total(scenario_one(), "PREMIUM"), Decimal("22.50"))
        flat_off = lambda subtotal: subtotal - Decimal("5")
        self.assertEqual(PricingEngine(flat_off).calculate_total(scenario_one()), Decimal("20.00"))

    def test_rejects_non_policy(self):
        with self.assertRaises(TypeError):
            PricingEngine(0.9)

    def test_generator_input(self):
        engine = PricingEngine(REGULAR, validate=True)
        self.assertEqual(engine.calculate_total(iter(scenario_one())), Decimal("23.75"))

    def test_large_amounts_are_priced(self):
        big = [LineItem("123456789012345678901234567.89", 1)]
        self.assertEqual(calculate_total(big, PREMIUM), Decimal("111111110111111111011111111.10"))
        self.assertEqual(calculate_total([LineItem("1e30", 1)], PREMIUM), Decimal("9e29"))
        mixed = [LineItem("1e30", 1), LineItem("0.01", 1)]
        self.assertEqual(calculate_subtotal(mixed), Decimal("1000000000000000000000000000000.01"))
        self.assertEqual(calculate_total(mixed, REGULAR), Decimal("950000000000000000000000000000.01"))

    def test_default_context_is_left_alone(self):
        prec = getcontext().prec
        calculate_total([LineItem("1e40", 3)], REGULAR)
        self.assertEqual(getcontext().prec, prec)

    def test_negative_price_without_validation(self):
        self.assertEqual(calculate_total([LineItem("-10.00", 1)], REGULAR), Decimal("-9.50"))

    def test_validation_rejects_negative_values(self):
        engine = PricingEngine(REGULAR, validate=True)
        with self.assertRaises(InvalidLineItem) as ctx:
            engine.calculate_total([LineItem("1.00", 1), LineItem("-2.00", 1)])
        self.assertEqual(ctx.exception.index, 1)
        self.assertIn("unit price", str(ctx.exception))

        with self.assertRaises(InvalidLineItem) as ctx:
            engine.calculate_subtotal([LineItem("1.00", -1)])
        self.assertEqual(ctx.exception.index, 0)
        self.assertIsInstance(ctx.exception, ValueError)

        for price in ("NaN", "Infinity"):
            with self.assertRaises(InvalidLineItem) as ctx:
                engine.calculate_total([LineItem(price, 1)])
            self.assertIn("not a number", str(ctx.exception))

    def test_parallel_calls_are_independent(self):
        carts = [[LineItem(str(n), n)] for n in range(1, 21)]
        with ThreadPoolExecutor(max_workers=4) as pool:
            regular = list(pool.map(lambda c: calculate_total(c, REGULAR), carts))
            premium = list(pool.map(lambda c: calculate_total(c, PREMIUM), carts))
        self.assertEqual(regular, [calculate_total(c, REGULAR) for c in carts])
        self.assertEqual(premium, [calculate_total(c, PREMIUM) for c in carts])


if __name__ == "__main__":
    unittest.main(verbosity=2)
