import unittest
from decimal import Decimal

from pydantic import ValidationError

from app.schemas.quote import Market, MarketClass, Quote


class QuoteSchemaTest(unittest.TestCase):
    def test_for_market_fills_currency_and_class(self):
        quote = Quote.for_market("kenya", symbol="EQTY", price="45.5", change="0.75", change_percent="1.68")

        self.assertEqual(quote.partition, Market.KENYA)
        self.assertEqual(quote.currency, "KES")
        self.assertEqual(quote.market_class, MarketClass.PRIMARY)
        self.assertEqual(quote.display_name, "EQTY")
        self.assertEqual(quote.price, Decimal("45.50"))
        self.assertIsNone(quote.volume)

    def test_zero_price_forces_zero_change_percent(self):
        quote = Quote.for_market(Market.NIGERIA, symbol="ZERO", price=0, change="-1.00", change_percent="-100")

        self.assertEqual(quote.price, Decimal("0"))
        self.assertEqual(quote.change_percent, Decimal("0"))
        self.assertEqual(quote.change, Decimal("-1.00"))

    def test_sub_cent_price_rounding_to_zero_forces_zero_change_percent(self):
        quote = Quote.for_market(Market.NIGERIA, symbol="Z", price="0.004", change_percent="12.5")

        self.assertEqual(quote.price, Decimal("0"))
        self.assertEqual(quote.change_percent, Decimal("0"))

    def test_sub_cent_price_rounding_up_keeps_change_percent(self):
        quote = Quote.for_market(Market.NIGERIA, symbol="Z", price="0.005", change_percent="12.5")

        self.assertEqual(quote.price, Decimal("0.01"))
        self.assertEqual(quote.change_percent, Decimal("12.50"))

    def test_negative_price_is_rejected(self):
        with self.assertRaises(ValidationError):
            Quote.for_market(Market.NIGERIA, symbol="BAD", price="-1")

    def test_empty_symbol_is_rejected(self):
        with self.assertRaises(ValidationError):
            Quote.for_market(Market.NIGERIA, symbol="   ", price="1")

    def test_quote_is_frozen(self):
        quote = Quote.for_market(Market.RWANDA, symbol="BK", price="320")

        with self.assertRaises(ValidationError):
            quote.price = Decimal("1")
        self.assertEqual(quote.market_class, MarketClass.SECONDARY)
        self.assertEqual(quote.currency, "RWF")

    def test_public_dict_uses_class_alias_and_string_decimals(self):
        quote = Quote.for_market(Market.NIGERIA, symbol="MTNN", display_name="MTN Nigeria", price="195", volume=850000)

        payload = quote.public_dict()

        self.assertEqual(payload["class"], "primary-region")
        self.assertEqual(payload["partition"], "nigeria")
        self.assertEqual(payload["price"], "195.00")
        self.assertEqual(payload["display_name"], "MTN Nigeria")
        self.assertEqual(payload["volume"], 850000)
        self.assertFalse(payload["synthetic"])


if __name__ == '__main__':
    unittest.main()
