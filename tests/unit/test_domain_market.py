"""Tests for market offers, matching and generation."""

from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import home, stock

from villagewars.domain import market
from villagewars.domain.enums import OfferStatus, ResourceType
from villagewars.domain.errors import InsufficientResourcesError, InvalidActionError

WOOD, CLAY, IRON, CROP = ResourceType.WOOD, ResourceType.CLAY, ResourceType.IRON, ResourceType.CROP


@pytest.fixture
def traders(world, alice, bob):
    for player in (alice, bob):
        village = home(world, player)
        village.buildings["marketplace"] = 1
        stock(village, 5000.0)
    return home(world, alice), home(world, bob)


class TestPosting:
    def test_escrow_and_fee_are_taken(self, world, alice, traders, now):
        seller, _ = traders
        offer = market.create_offer(
            world, alice.id, seller.id, {WOOD: 100}, {CLAY: 120}, now, lots=3
        )

        assert offer.fee == 15
        assert offer.ratio == pytest.approx(1.2)
        assert offer.expires_at == now + timedelta(days=7)
        assert seller.resources[WOOD] == pytest.approx(4700.0)
        assert seller.resources[CROP] == pytest.approx(4985.0)

    def test_minimum_fee(self, world, alice, traders, now):
        offer = market.create_offer(world, alice.id, traders[0].id, {IRON: 10}, {CROP: 10}, now)
        assert offer.fee == 1

    def test_requires_marketplace(self, world, alice, now):
        with pytest.raises(InvalidActionError, match="marketplace"):
            market.create_offer(world, alice.id, home(world, alice).id, {WOOD: 1}, {CLAY: 1}, now)

    def test_rejects_non_positive_amounts(self, world, alice, traders, now):
        with pytest.raises(InvalidActionError, match="must be positive"):
            market.create_offer(world, alice.id, traders[0].id, {WOOD: 0}, {CLAY: 1}, now)
        with pytest.raises(InvalidActionError, match="lots"):
            market.create_offer(world, alice.id, traders[0].id, {WOOD: 1}, {CLAY: 1}, now, lots=0)

    def test_cannot_escrow_more_than_stored(self, world, alice, traders, now):
        with pytest.raises(InsufficientResourcesError):
            market.create_offer(world, alice.id, traders[0].id, {WOOD: 6000}, {CLAY: 1}, now)
        assert traders[0].resources[WOOD] == pytest.approx(5000.0)


class TestTrading:
    def test_partial_accept_then_cancel(self, world, alice, bob, traders, now):
        seller, buyer = traders
        offer = market.create_offer(
            world, alice.id, seller.id, {WOOD: 100}, {CLAY: 120}, now, lots=3
        )

        market.accept_offer(world, bob.id, offer.id, buyer.id, now, quantity=2)

        assert offer.lots_remaining == 1
        assert offer.status == OfferStatus.ACTIVE
        assert buyer.resources[CLAY] == pytest.approx(4760.0)
        assert buyer.resources[WOOD] == pytest.approx(5200.0)
        assert seller.resources[CLAY] == pytest.approx(5240.0)

        market.cancel_offer(world, alice.id, offer.id, now)

        assert offer.status == OfferStatus.CANCELLED
        assert seller.resources[WOOD] == pytest.approx(4800.0)
        assert seller.resources[CROP] == pytest.approx(4985.0)

    def test_last_lot_completes_offer(self, world, alice, bob, traders, now):
        offer = market.create_offer(world, alice.id, traders[0].id, {WOOD: 50}, {IRON: 50}, now)
        market.accept_offer(world, bob.id, offer.id, traders[1].id, now)
        assert offer.status == OfferStatus.COMPLETED
        assert offer.buyer_village_id == traders[1].id
        with pytest.raises(InvalidActionError, match="completed"):
            market.accept_offer(world, bob.id, offer.id, traders[1].id, now)

    def test_own_offer_and_quantity_checks(self, world, alice, bob, traders, now):
        offer = market.create_offer(world, alice.id, traders[0].id, {WOOD: 50}, {IRON: 50}, now)
        with pytest.raises(InvalidActionError, match="your own offer"):
            market.accept_offer(world, alice.id, offer.id, traders[0].id, now)
        with pytest.raises(InvalidActionError, match="between 1 and 1"):
            market.accept_offer(world, bob.id, offer.id, traders[1].id, now, quantity=2)

    def test_only_owner_cancels(self, world, alice, bob, traders, now):
        offer = market.create_offer(world, alice.id, traders[0].id, {WOOD: 50}, {IRON: 50}, now)
        with pytest.raises(InvalidActionError, match="another player"):
            market.cancel_offer(world, bob.id, offer.id, now)

    def test_expiry_returns_escrow(self, world, alice, bob, traders, now):
        offer = market.create_offer(
            world, alice.id, traders[0].id, {WOOD: 500}, {IRON: 500}, now,
            lifetime=timedelta(hours=1),
        )
        later = now + timedelta(hours=2)
        with pytest.raises(InvalidActionError, match="expired"):
            market.accept_offer(world, bob.id, offer.id, traders[1].id, later)

        expired = market.expire_offers(world, later)

        assert expired == [offer]
        assert offer.status == OfferStatus.EXPIRED
        # 4500 after escrow, two hours of production, then the refund.
        assert traders[0].resources[WOOD] == pytest.approx(4500.0 + 2 * 720.0 + 500.0)


class TestListing:
    def test_filters(self, world, alice, bob, traders, now):
        wood_for_clay = market.create_offer(
            world, alice.id, traders[0].id, {WOOD: 100}, {CLAY: 100}, now
        )
        iron_for_crop = market.create_offer(
            world, bob.id, traders[1].id, {IRON: 100}, {CROP: 300}, now + timedelta(seconds=1)
        )
        later = now + timedelta(seconds=2)

        assert market.list_offers(world, later) == [iron_for_crop, wood_for_clay]
        only_wood = market.OfferFilters(offering=WOOD)
        assert market.list_offers(world, later, only_wood) == [wood_for_clay]
        cheap = market.OfferFilters(max_ratio=2.0)
        assert market.list_offers(world, later, cheap) == [wood_for_clay]
        others = market.OfferFilters(exclude_player_id=alice.id)
        assert market.list_offers(world, later, others) == [iron_for_crop]

    def test_stats(self, world, alice, bob, traders, now):
        first = market.create_offer(world, alice.id, traders[0].id, {WOOD: 10}, {CLAY: 10}, now)
        market.create_offer(world, alice.id, traders[0].id, {WOOD: 10}, {CLAY: 10}, now)
        market.accept_offer(world, bob.id, first.id, traders[1].id, now)

        stats = market.market_stats(world, now)

        assert stats["total_offers"] == 2
        assert stats["active_offers"] == 1
        assert stats["completed_offers"] == 1
        assert stats["total_volume"] == 1
        assert stats["recent_offers"] == 2


class TestMatching:
    def test_complementary_offers_settle(self, world, alice, bob, traders, now):
        seller, buyer = traders
        first = market.create_offer(world, alice.id, seller.id, {WOOD: 100}, {CLAY: 100}, now)
        second = market.create_offer(world, bob.id, buyer.id, {CLAY: 100}, {WOOD: 80}, now)
        wood_before, clay_before = seller.resources[WOOD], seller.resources[CLAY]

        matched = market.match_offers(world, now)

        assert matched == [(first.id, second.id)]
        assert first.status == second.status == OfferStatus.COMPLETED
        # Alice gets her clay plus the 20 wood Bob did not ask for.
        assert seller.resources[CLAY] == pytest.approx(clay_before + 100)
        assert seller.resources[WOOD] == pytest.approx(wood_before + 20)
        assert buyer.resources[WOOD] == pytest.approx(5080.0)

    def test_same_player_offers_never_match(self, world, alice, traders, now):
        market.create_offer(world, alice.id, traders[0].id, {WOOD: 100}, {CLAY: 100}, now)
        market.create_offer(world, alice.id, traders[0].id, {CLAY: 100}, {WOOD: 100}, now)
        assert market.match_offers(world, now) == []


class TestGeneration:
    def test_surplus_becomes_sell_offer(self, world, alice, traders, now):
        village = traders[0]
        stock(village, 3000.0)
        village.resources[WOOD] = 9000.0

        created = market.generate_offers(world, now)

        mine = [offer for offer in created if offer.village_id == village.id]
        assert len(mine) == 1
        offer = mine[0]
        assert offer.generated
        assert offer.offering == {WOOD: 7000}
        assert WOOD not in offer.requesting
        assert offer.expires_at == now + timedelta(hours=24)
        assert village.resources[WOOD] == pytest.approx(2000.0)

    def test_villages_without_marketplace_are_skipped(self, world, alice, now):
        stock(home(world, alice), 9000.0)
        assert market.generate_offers(world, now) == []
