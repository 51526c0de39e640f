"""Tests for weight-tier pricing."""

import pytest
from logistics.shared.pricing import net_of_charges, quote, select_tier
from protean.exceptions import ValidationError

_RATE_CARD = {0.5: 100.0, 1.0: 150.0, 2.0: 200.0}


class TestSelectTier:
    def test_smallest_tier_that_holds_the_weight(self):
        assert select_tier(_RATE_CARD, 0.7) == 1.0

    def test_weight_exactly_on_a_tier_boundary(self):
        assert select_tier(_RATE_CARD, 0.5) == 0.5
        assert select_tier(_RATE_CARD, 2.0) == 2.0

    def test_heavier_than_every_tier_uses_the_largest(self):
        assert select_tier(_RATE_CARD, 7.5) == 2.0

    def test_empty_rate_card_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            select_tier({}, 1.0)
        assert "rate_card" in exc.value.messages

    def test_non_positive_weight_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            select_tier(_RATE_CARD, 0)
        assert "weight" in exc.value.messages


class TestQuote:
    def test_fuel_surcharge_and_tax(self):
        price = quote({0.5: 100.0, 1.0: 150.0}, 10, 0.7)
        assert price.tier == 1.0
        assert price.base_charge == 150.0
        assert price.fuel_surcharge == 15.0
        assert price.delivery_charge == 165.0
        assert price.tax == 26.4
        assert price.total == 191.4

    def test_no_fuel_surcharge(self):
        price = quote(_RATE_CARD, 0, 0.4)
        assert price.delivery_charge == 100.0
        assert price.tax == 16.0

    def test_rounds_half_up_to_two_decimals(self):
        price = quote({1.0: 99.99}, 12.5, 1.0)
        # 99.99 × 1.125 = 112.48875
        assert price.delivery_charge == 112.49
        # 112.48875 × 0.16 = 17.9982
        assert price.tax == 18.0


class TestNetOfCharges:
    def test_brand_net_for_one_parcel(self):
        assert net_of_charges(2000, 165, 26.4) == 1808.6

    def test_net_can_be_negative_for_prepaid_parcels(self):
        assert net_of_charges(0, 165, 26.4) == -191.4
