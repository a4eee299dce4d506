"""
Tests for the Tag Reconciler.

Tests cover:
- Cycle tag derivation
- Stripping of app-owned cycle tags (any cycle number, any case)
- Idempotence and exclusivity of reconciled tag lists
- Order write-back for subscription and one-time orders
"""
import pytest

from cycletrack.services.tag_reconciler import (
    GIFT_TAG,
    ONE_TIME_TAG,
    derive_tag,
    is_cycle_tag,
    reconcile_order,
    reconcile_tags,
    strip_cycle_tags,
    tag_one_time,
)
from cycletrack.utils.exceptions import UpdateRejected


class TestDeriveTag:
    """Tests for derive_tag."""

    def test_first_cycle_is_free_gift(self):
        assert derive_tag(1) == 'Monthly-Free-Gift'

    def test_later_cycles_carry_number(self):
        assert derive_tag(2) == 'Monthly-order-2-no-Gifts'
        assert derive_tag(4) == 'Monthly-order-4-no-Gifts'
        assert derive_tag(120) == 'Monthly-order-120-no-Gifts'

    @pytest.mark.parametrize('cycle', [0, -1])
    def test_rejects_cycles_below_one(self, cycle):
        with pytest.raises(ValueError):
            derive_tag(cycle)


class TestCycleTagMatching:
    """Tests for the cycle tag pattern."""

    @pytest.mark.parametrize('tag', [
        'Monthly-Free-Gift',
        'monthly-free-gift',
        'Monthly-order-2-no-Gifts',
        'MONTHLY-ORDER-17-NO-GIFTS',
        ' Monthly-order-3-no-Gifts ',
    ])
    def test_matches_cycle_tags(self, tag):
        assert is_cycle_tag(tag)

    @pytest.mark.parametrize('tag', [
        'One-Time',
        'VIP',
        'Monthly-order--no-Gifts',
        'Monthly-order-x-no-Gifts',
        'Monthly-Free-Gift-extra',
        'prefix-Monthly-Free-Gift',
    ])
    def test_leaves_other_tags(self, tag):
        assert not is_cycle_tag(tag)

    def test_strip_keeps_user_tags_in_order(self):
        tags = ['VIP', 'Monthly-Free-Gift', 'wholesale', 'Monthly-order-3-no-Gifts']
        assert strip_cycle_tags(tags) == ['VIP', 'wholesale']


class TestReconcileTags:
    """Tests for reconcile_tags."""

    def test_replaces_existing_cycle_tag(self):
        result = reconcile_tags(['VIP', 'Monthly-Free-Gift'], 'Monthly-order-2-no-Gifts')
        assert result == ['VIP', 'Monthly-order-2-no-Gifts']

    def test_exactly_one_cycle_tag(self):
        current = ['Monthly-Free-Gift', 'monthly-order-2-no-gifts', 'Monthly-order-9-no-Gifts', 'VIP']
        result = reconcile_tags(current, derive_tag(3))

        assert [t for t in result if is_cycle_tag(t)] == ['Monthly-order-3-no-Gifts']
        assert 'VIP' in result

    def test_idempotent(self):
        once = reconcile_tags(['VIP', 'VIP', 'Monthly-Free-Gift'], derive_tag(5))
        twice = reconcile_tags(once, derive_tag(5))
        assert once == twice == ['VIP', 'Monthly-order-5-no-Gifts']

    def test_one_time_tag_is_not_stripped(self):
        result = reconcile_tags(['One-Time'], GIFT_TAG)
        assert result == ['One-Time', GIFT_TAG]


class TestReconcileOrder:
    """Tests for order write-back."""

    def test_writes_tags_and_note(self, mock_shopify, make_order):
        order = make_order(1001, selling_plan='SP1', tags=['VIP', 'Monthly-Free-Gift'])

        result = reconcile_order(mock_shopify, order, 4)

        mock_shopify.update_order.assert_called_once_with(
            order.id, ['VIP', 'Monthly-order-4-no-Gifts'], 'Monthly-order-4-no-Gifts'
        )
        assert result.tags == ['VIP', 'Monthly-order-4-no-Gifts']
        assert result.note == 'Monthly-order-4-no-Gifts'
        assert result.cycle == 4

    def test_user_errors_propagate(self, mock_shopify, make_order):
        mock_shopify.update_order.side_effect = UpdateRejected([{'field': ['tags'], 'message': 'Tags invalid'}])
        order = make_order(1002, selling_plan='SP1')

        with pytest.raises(UpdateRejected) as exc_info:
            reconcile_order(mock_shopify, order, 1)

        assert exc_info.value.message == 'Tags invalid'
        assert exc_info.value.user_errors[0]['field'] == ['tags']


class TestTagOneTime:
    """Tests for one-time order tagging."""

    def test_adds_one_time_tag_and_note(self, mock_shopify, make_order):
        order = make_order(2001, tags=['VIP'])

        result = tag_one_time(mock_shopify, order)

        mock_shopify.update_order.assert_called_once_with(order.id, ['VIP', ONE_TIME_TAG], ONE_TIME_TAG)
        assert result.note == ONE_TIME_TAG

    def test_does_not_duplicate_one_time_tag(self, mock_shopify, make_order):
        order = make_order(2002, tags=['One-Time', 'VIP'])

        result = tag_one_time(mock_shopify, order)

        assert result.tags == ['One-Time', 'VIP']
