import unittest
from decimal import Decimal

from erp.core.errors import InvalidInputError
from erp.core.pagination import get_pagination, paging_data
from erp.core.quantities import parse_identifier, parse_quantity


class QuantityParsingTest(unittest.TestCase):
    def test_accepts_whole_numbers_in_common_shapes(self):
        self.assertEqual(parse_quantity(4), 4)
        self.assertEqual(parse_quantity("12"), 12)
        self.assertEqual(parse_quantity(" 3.0 "), 3)
        self.assertEqual(parse_quantity(7.0), 7)
        self.assertEqual(parse_quantity(Decimal("9")), 9)

    def test_zero_only_when_allowed(self):
        with self.assertRaises(InvalidInputError):
            parse_quantity(0)
        self.assertEqual(parse_quantity(0, allow_zero=True), 0)

    def test_rejections_name_the_field(self):
        with self.assertRaises(InvalidInputError) as ctx:
            parse_quantity("abc", "reorder_level", allow_zero=True)
        self.assertEqual(ctx.exception.field, "reorder_level")
        self.assertEqual(ctx.exception.to_dict()["code"], "INVALID_INPUT")

        for bad in (None, False, "", "nan", "inf", "1.5", -3):
            with self.subTest(value=bad):
                with self.assertRaises(InvalidInputError):
                    parse_quantity(bad, allow_zero=True)

    def test_identifiers_must_be_positive(self):
        self.assertEqual(parse_identifier("15"), 15)
        with self.assertRaises(InvalidInputError) as ctx:
            parse_identifier(0, "customer_id")
        self.assertEqual(ctx.exception.field, "customer_id")


class PaginationTest(unittest.TestCase):
    def test_limits_are_clamped(self):
        self.assertEqual(get_pagination(1, None), (10, 0))
        self.assertEqual(get_pagination(3, 25), (25, 50))
        self.assertEqual(get_pagination(0, 0), (1, 0))
        self.assertEqual(get_pagination(1, 10_000), (200, 0))

    def test_paging_data_counts_pages(self):
        data = paging_data(["a"], total=21, page=3, page_size=10)
        self.assertEqual(data["total_pages"], 3)
        self.assertEqual(paging_data([], 0, 1, 10)["total_pages"], 0)


if __name__ == "__main__":
    unittest.main()
