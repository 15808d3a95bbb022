import unittest
from datetime import datetime, timezone

from app.schemas.quote import Market, MarketClass, Quote
from app.schemas.snapshot import EPOCH, Snapshot, SourceOutcome


def _quote(market, symbol, price="10", **kwargs):
    return Quote.for_market(market, symbol=symbol, price=price, **kwargs)


class SnapshotTest(unittest.TestCase):
    def test_empty_snapshot(self):
        snapshot = Snapshot.empty()

        self.assertTrue(snapshot.is_empty)
        self.assertEqual(snapshot.quotes, ())
        self.assertEqual(snapshot.captured_at, EPOCH)
        self.assertEqual(snapshot.partition("nigeria"), ())

    def test_build_groups_by_partition_in_insertion_order(self):
        quotes = [
            _quote(Market.NIGERIA, "MTNN"),
            _quote(Market.KENYA, "EQTY"),
            _quote(Market.NIGERIA, "GTCO"),
        ]

        snapshot = Snapshot.build(quotes)

        self.assertEqual([q.symbol for q in snapshot.quotes], ["MTNN", "EQTY", "GTCO"])
        self.assertEqual([q.symbol for q in snapshot.partition(Market.NIGERIA)], ["MTNN", "GTCO"])
        self.assertEqual([q.symbol for q in snapshot.partition("KENYA")], ["EQTY"])
        self.assertEqual(snapshot.partition("rwanda"), ())

    def test_duplicate_symbol_last_write_wins_within_partition(self):
        quotes = [
            _quote(Market.NIGERIA, "MTNN", price="100"),
            _quote(Market.NIGERIA, "GTCO"),
            _quote(Market.NIGERIA, "MTNN", price="101"),
            _quote(Market.KENYA, "MTNN", price="5"),
        ]

        snapshot = Snapshot.build(quotes)

        self.assertEqual(len(snapshot.quotes), 3)
        nigeria = snapshot.partition("nigeria")
        self.assertEqual([q.symbol for q in nigeria], ["MTNN", "GTCO"])
        self.assertEqual(str(nigeria[0].price), "101.00")
        self.assertEqual(len(snapshot.partition("kenya")), 1)

    def test_by_class_and_search(self):
        snapshot = Snapshot.build(
            [
                _quote(Market.NIGERIA, "DANGCEM", display_name="Dangote Cement"),
                _quote(Market.RWANDA, "BK", display_name="Bank of Kigali"),
                _quote(Market.KENYA, "BAMB", display_name="Bamburi Cement"),
            ]
        )

        secondary = snapshot.by_class(MarketClass.SECONDARY)
        self.assertEqual([q.symbol for q in secondary], ["BK"])
        self.assertEqual([q.symbol for q in snapshot.search("cement")], ["DANGCEM", "BAMB"])
        self.assertEqual([q.symbol for q in snapshot.search("bk")], ["BK"])
        self.assertEqual(snapshot.search("  "), [])

    def test_replace_partitions_swaps_only_refreshed_markets(self):
        old = Snapshot.build(
            [_quote(Market.NIGERIA, "MTNN", price="1"), _quote(Market.KENYA, "EQTY", price="2")],
            source_outcomes={
                "afx-ngx": SourceOutcome(market=Market.NIGERIA, ok=1, count=1),
                "afx-nse": SourceOutcome(market=Market.KENYA, ok=1, count=1),
            },
            captured_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        fresh = Snapshot.build(
            [_quote(Market.KENYA, "KCB", price="3")],
            source_outcomes={"afx-nse": SourceOutcome(market=Market.KENYA, ok=1, count=1)},
            captured_at=datetime(2024, 1, 2, tzinfo=timezone.utc),
        )

        merged = old.replace_partitions(fresh)

        self.assertEqual([q.symbol for q in merged.quotes], ["MTNN", "KCB"])
        self.assertEqual(merged.captured_at, fresh.captured_at)
        self.assertEqual(set(merged.source_outcomes), {"afx-ngx", "afx-nse"})
        self.assertEqual([q.symbol for q in old.quotes], ["MTNN", "EQTY"])

    def test_replace_partitions_clears_market_that_returned_nothing(self):
        old = Snapshot.build([_quote(Market.KENYA, "EQTY")])
        fresh = Snapshot.build(
            [],
            source_outcomes={"afx-nse": SourceOutcome(market=Market.KENYA, timed_out=1, dropped=5)},
        )

        merged = old.replace_partitions(fresh)

        self.assertEqual(merged.partition("kenya"), ())

    def test_maps_are_read_only(self):
        snapshot = Snapshot.build(
            [_quote(Market.KENYA, "EQTY")],
            source_outcomes={"afx-nse": SourceOutcome(market=Market.KENYA, ok=1, count=1)},
        )

        with self.assertRaises(TypeError):
            snapshot.partition_index["kenya"] = ()
        with self.assertRaises(TypeError):
            snapshot.source_outcomes["afx-ngx"] = SourceOutcome()
        with self.assertRaises(TypeError):
            Snapshot.empty().source_outcomes["x"] = SourceOutcome()
        self.assertEqual([q.symbol for q in snapshot.partition("kenya")], ["EQTY"])
        self.assertEqual(list(snapshot.source_outcomes), ["afx-nse"])

    def test_captured_at_copy_keeps_partition_index(self):
        snapshot = Snapshot.build([_quote(Market.RWANDA, "BK")])
        later = datetime(2030, 1, 1, tzinfo=timezone.utc)

        moved = snapshot.model_copy(update={"captured_at": later})

        self.assertEqual(moved.captured_at, later)
        self.assertEqual([q.symbol for q in moved.partition(Market.RWANDA)], ["BK"])


if __name__ == '__main__':
    unittest.main()
