"""
Unit tests for the collateral ledger and the fillability fold

Covers priority allocation between orders sharing collateral, clipping,
unfunded makers and the amount invariants that must hold after every step.
"""

import pytest

from relayer.core.fillability import (
    CollateralLedger,
    apply_fillability,
    fold_fillability,
    implied_maker_amount,
)
from relayer.core.order import AnnotatedOrder, OrderState
from relayer.core.ranking import OrderRanker
from relayer.utils.exceptions import InvalidOrderException

from conftest import MAKER, OTHER_MAKER, QUOTE, BASE, make_bid


def annotate(*orders):
    return [AnnotatedOrder.fresh(o) for o in orders]


class TestCollateralLedger:
    """Test cases for CollateralLedger."""

    def test_missing_pair_has_no_collateral(self):
        """Unknown pairs read as zero."""
        ledger = CollateralLedger()
        assert ledger.available(MAKER, QUOTE) == 0

    def test_keys_are_case_insensitive(self):
        """Addresses in any case address the same entry."""
        ledger = CollateralLedger({(MAKER.upper().replace("0X", "0x"), QUOTE): 500})
        assert ledger.available(MAKER, QUOTE.upper().replace("0X", "0x")) == 500

    def test_consume_floors_at_zero(self):
        """Over-consumption leaves zero, never a negative balance."""
        ledger = CollateralLedger({(MAKER, QUOTE): 100})
        assert ledger.consume(MAKER, QUOTE, 250) == 0
        assert ledger.available(MAKER, QUOTE) == 0

    def test_negative_balance_rejected(self):
        """A ledger cannot be seeded with negative collateral."""
        with pytest.raises(ValueError):
            CollateralLedger({(MAKER, QUOTE): -1})

    def test_copy_is_independent(self):
        """Copies do not share state with the original."""
        ledger = CollateralLedger({(MAKER, QUOTE): 100})
        clone = ledger.copy()
        clone.consume(MAKER, QUOTE, 40)
        assert ledger.available(MAKER, QUOTE) == 100
        assert clone.available(MAKER, QUOTE) == 60


class TestOrderState:
    """Test cases for OrderState bounds."""

    def test_defaults_to_full_taker_amount(self):
        state = OrderState(1000)
        assert state.remaining_fillable_taker_amount == 1000

    @pytest.mark.parametrize("value", [-1, 1001])
    def test_out_of_range_rejected(self, value):
        """Remaining amount must stay within [0, taker_amount]."""
        state = OrderState(1000)
        with pytest.raises(InvalidOrderException):
            state.remaining_fillable_taker_amount = value


class TestApplyFillability:
    """Test cases for a single fold step."""

    def test_fully_covered_order_unchanged(self):
        """An order the maker can cover keeps its size and draws its maker amount."""
        ledger = CollateralLedger({(MAKER, QUOTE): 5_000})
        annotated, ledger = apply_fillability(AnnotatedOrder.fresh(make_bid(2_000, 1_000)), ledger)

        assert annotated.remaining_fillable_taker_amount == 1_000
        assert ledger.available(MAKER, QUOTE) == 3_000

    def test_clipped_to_available_collateral(self):
        """An under-collateralized order shrinks at its own price."""
        ledger = CollateralLedger({(MAKER, QUOTE): 500})
        annotated, ledger = apply_fillability(AnnotatedOrder.fresh(make_bid(2_000, 1_000)), ledger)

        # 500 maker units at 2 maker per taker -> 250 taker units
        assert annotated.remaining_fillable_taker_amount == 250
        assert ledger.available(MAKER, QUOTE) == 0

    def test_clip_truncates(self):
        """Integer division truncates toward zero."""
        ledger = CollateralLedger({(MAKER, QUOTE): 10})
        annotated, _ = apply_fillability(AnnotatedOrder.fresh(make_bid(3_000, 1_000)), ledger)
        assert annotated.remaining_fillable_taker_amount == 3

    def test_unfunded_maker_forced_to_zero(self):
        """No collateral means nothing is fillable and the ledger is untouched."""
        ledger = CollateralLedger({(MAKER, QUOTE): 0})
        annotated, ledger = apply_fillability(AnnotatedOrder.fresh(make_bid(1_000, 1_000)), ledger)

        assert annotated.remaining_fillable_taker_amount == 0
        assert ledger.available(MAKER, QUOTE) == 0

    def test_missing_pair_forced_to_zero(self):
        """A maker absent from the snapshot is treated as unfunded."""
        annotated, ledger = apply_fillability(
            AnnotatedOrder.fresh(make_bid(1_000, 1_000)), CollateralLedger()
        )
        assert annotated.remaining_fillable_taker_amount == 0
        assert len(ledger) == 0

    def test_implied_maker_amount_uses_remaining(self):
        """The implied amount follows the current remaining size, not the nominal one."""
        annotated = AnnotatedOrder(make_bid(3_000, 1_000), OrderState(1_000, 400))
        assert implied_maker_amount(annotated) == 1_200


class TestFoldFillability:
    """Test cases for folding a ranked sequence over shared collateral."""

    def test_priority_allocation(self):
        """The first-ranked order is covered in full; the next gets what is left."""
        order_a = make_bid(800_000, 800_000, salt=1)
        order_b = make_bid(500_000, 500_000, salt=2)
        ledger = CollateralLedger({(MAKER, QUOTE): 1_000_000})

        a, = annotate(order_a)
        a, ledger = apply_fillability(a, ledger)
        assert a.remaining_fillable_taker_amount == 800_000
        assert ledger.available(MAKER, QUOTE) == 200_000

        b, = annotate(order_b)
        b, ledger = apply_fillability(b, ledger)
        assert b.remaining_fillable_taker_amount == 200_000

    def test_partly_filled_order_starts_from_recorded_remaining(self):
        """
        A partly filled order only claims collateral for what is left of it.

        The first order has 300,000 of 1,000,000 unfilled, so it draws
        300,000 and leaves 700,000 for the maker's next order.
        """
        partly_filled = make_bid(1_000_000, 1_000_000, salt=1, remaining_fillable_taker_amount=300_000)
        untouched = make_bid(1_000_000, 1_000_000, salt=2)
        orders = annotate(partly_filled, untouched)

        assert orders[0].remaining_fillable_taker_amount == 300_000
        assert implied_maker_amount(orders[0]) == 300_000

        result, ledger = fold_fillability(orders, CollateralLedger({(MAKER, QUOTE): 1_000_000}))

        assert [a.remaining_fillable_taker_amount for a in result] == [300_000, 700_000]
        assert ledger.available(MAKER, QUOTE) == 0

    def test_clipped_order_charges_pre_clip_amount(self):
        """
        A clipped order is charged its full implied maker amount.

        B needs 500,000 but only 200,000 is left; the ledger is charged
        500,000 and floors at zero, so C gets nothing even though B only
        draws 200,000.
        """
        orders = annotate(
            make_bid(800_000, 800_000, salt=1),
            make_bid(500_000, 500_000, salt=2),
            make_bid(50_000, 50_000, salt=3),
        )
        result, ledger = fold_fillability(orders, CollateralLedger({(MAKER, QUOTE): 1_000_000}))

        assert [a.remaining_fillable_taker_amount for a in result] == [800_000, 200_000, 0]
        assert ledger.available(MAKER, QUOTE) == 0

    def test_independent_makers_do_not_interfere(self):
        """Orders of different makers draw on different ledger entries."""
        orders = annotate(
            make_bid(1_000, 1_000, maker=MAKER),
            make_bid(1_000, 1_000, maker=OTHER_MAKER),
        )
        ledger = CollateralLedger({(MAKER, QUOTE): 0, (OTHER_MAKER, QUOTE): 5_000})
        result, ledger = fold_fillability(orders, ledger)

        assert [a.remaining_fillable_taker_amount for a in result] == [0, 1_000]
        assert ledger.available(OTHER_MAKER, QUOTE) == 4_000

    def test_invariants_hold_at_every_step(self):
        """Remaining stays in [0, taker_amount] and collateral never goes negative."""
        orders = [
            make_bid(1_000 + 37 * i, 900 + 53 * i, salt=i, maker=MAKER if i % 2 else OTHER_MAKER)
            for i in range(40)
        ]
        ledger = CollateralLedger({(MAKER, QUOTE): 12_345, (OTHER_MAKER, QUOTE): 9_876})

        for order in OrderRanker.rank_bids(orders):
            annotated, ledger = apply_fillability(AnnotatedOrder.fresh(order), ledger)
            assert 0 <= annotated.remaining_fillable_taker_amount <= order.taker_amount
            assert all(ledger.available(*key) >= 0 for key in ledger)

    def test_fold_is_deterministic(self):
        """Identical inputs in any order produce identical ranked results."""
        orders = [make_bid(1_000 + (i % 5), 1_000, salt=i) for i in range(20)]

        def run(sequence):
            ranked = OrderRanker.rank_bids(sequence)
            result, ledger = fold_fillability(annotate(*ranked), CollateralLedger({(MAKER, QUOTE): 7_777}))
            return [(a.order_hash, a.remaining_fillable_taker_amount) for a in result], ledger.as_dict()

        assert run(orders) == run(list(reversed(orders)))

    def test_orders_other_token_untouched(self):
        """Collateral in one token does not fund orders paying another."""
        orders = annotate(make_bid(1_000, 1_000))
        result, _ = fold_fillability(orders, CollateralLedger({(MAKER, BASE): 10_000}))
        assert result[0].remaining_fillable_taker_amount == 0
