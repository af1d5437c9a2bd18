"""Marketplace offers: escrow, fees, acceptance, matching and generation."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from villagewars.utils.rng import generate_seed, percent_roll, random_choice

from .artifacts import effect_magnitude
from .enums import EffectType, OfferStatus, ResourceType
from .errors import GameError, InvalidActionError, NotFoundError
from .models import MarketOffer, OfferID, PlayerID, ResourceAmounts, Village, VillageID, World
from .resources import add_resources, deduct_resources, has_resources, sync_resources
from .rules_config import DEFAULT_RULES, RulesConfig
from .state import get_village, owned_village, record_event

logger = logging.getLogger(__name__)

# How much of the second resource one unit of the first is worth.
BASE_RATIOS: dict[ResourceType, dict[ResourceType, float]] = {
    ResourceType.WOOD: {ResourceType.CLAY: 1.0, ResourceType.IRON: 0.8, ResourceType.CROP: 1.2},
    ResourceType.CLAY: {ResourceType.WOOD: 1.0, ResourceType.IRON: 0.8, ResourceType.CROP: 1.2},
    ResourceType.IRON: {ResourceType.WOOD: 1.25, ResourceType.CLAY: 1.25, ResourceType.CROP: 1.5},
    ResourceType.CROP: {ResourceType.WOOD: 0.83, ResourceType.CLAY: 0.83, ResourceType.IRON: 0.67},
}


@dataclass(slots=True)
class OfferFilters:
    """Optional criteria for listing offers."""

    offering: ResourceType | None = None
    requesting: ResourceType | None = None
    min_ratio: float | None = None
    max_ratio: float | None = None
    exclude_player_id: PlayerID | None = None
    include_generated: bool = True


def get_offer(world: World, offer_id: OfferID) -> MarketOffer:
    offer = world.offers.get(offer_id)
    if offer is None:
        raise NotFoundError("offer", int(offer_id))
    return offer


def _validated(amounts: dict[ResourceType, int], label: str) -> ResourceAmounts:
    cleaned: ResourceAmounts = {}
    for resource, amount in amounts.items():
        try:
            kind = ResourceType(resource)
        except ValueError as exc:
            raise InvalidActionError(f"unknown resource {resource!r}") from exc
        if amount <= 0:
            raise InvalidActionError(f"{label} amount for {kind} must be positive")
        cleaned[kind] = amount
    if not cleaned:
        raise InvalidActionError(f"an offer needs at least one {label} resource")
    return cleaned


def market_fee(
    world: World,
    village: Village,
    offering_total: int,
    now: datetime,
    rules: RulesConfig = DEFAULT_RULES,
) -> int:
    """Crop charged for posting an offer."""

    base = max(rules.market.min_fee, math.floor(offering_total * rules.market.fee_rate))
    discount = min(1.0, effect_magnitude(world, village.id, EffectType.TRADE_BONUS, now) / 100)
    return math.floor(base * (1 - discount))


def create_offer(
    world: World,
    player_id: PlayerID,
    village_id: VillageID,
    offering: dict[ResourceType, int],
    requesting: dict[ResourceType, int],
    now: datetime,
    rules: RulesConfig = DEFAULT_RULES,
    *,
    lots: int = 1,
    lifetime: timedelta | None = None,
    generated: bool = False,
) -> MarketOffer:
    """Escrow ``offering × lots`` and the fee, then publish the offer."""

    village = owned_village(world, player_id, village_id)
    if village.buildings.get("marketplace", 0) < 1:
        raise InvalidActionError("posting offers requires a marketplace")
    if lots <= 0:
        raise InvalidActionError("lots must be positive")
    offered = _validated(offering, "offering")
    wanted = _validated(requesting, "requesting")

    escrow = {resource: amount * lots for resource, amount in offered.items()}
    fee = market_fee(world, village, sum(escrow.values()), now, rules)
    payment = dict(escrow)
    if fee:
        payment[ResourceType.CROP] = payment.get(ResourceType.CROP, 0) + fee

    sync_resources(world, village, now, rules)
    deduct_resources(village, payment)

    offer = MarketOffer(
        id=OfferID(world.next_id()),
        village_id=village.id,
        player_id=player_id,
        offering=offered,
        requesting=wanted,
        ratio=sum(wanted.values()) / sum(offered.values()),
        fee=fee,
        created_at=now,
        expires_at=now + (lifetime or timedelta(days=rules.market.offer_lifetime_days)),
        lots=lots,
        lots_remaining=lots,
        generated=generated,
    )
    world.offers[offer.id] = offer
    logger.info("offer %s posted by village %s (fee %s crop)", int(offer.id), int(village.id), fee)
    return offer


def accept_offer(
    world: World,
    player_id: PlayerID,
    offer_id: OfferID,
    buyer_village_id: VillageID,
    now: datetime,
    rules: RulesConfig = DEFAULT_RULES,
    *,
    quantity: int = 1,
) -> MarketOffer:
    """Buy ``quantity`` lots: the buyer pays the seller and receives the escrow."""

    offer = get_offer(world, offer_id)
    buyer = owned_village(world, player_id, buyer_village_id)
    if offer.status != OfferStatus.ACTIVE:
        raise InvalidActionError(f"offer is {offer.status}")
    if offer.expires_at <= now:
        raise InvalidActionError("offer has expired")
    if offer.player_id == player_id:
        raise InvalidActionError("cannot accept your own offer")
    if quantity <= 0 or quantity > offer.lots_remaining:
        raise InvalidActionError(f"quantity must be between 1 and {offer.lots_remaining}")

    seller = get_village(world, offer.village_id)
    price = {resource: amount * quantity for resource, amount in offer.requesting.items()}
    goods = {resource: amount * quantity for resource, amount in offer.offering.items()}

    sync_resources(world, buyer, now, rules)
    sync_resources(world, seller, now, rules)
    deduct_resources(buyer, price)
    add_resources(buyer, goods, rules)
    add_resources(seller, price, rules)

    offer.lots_remaining -= quantity
    offer.quantity_traded += quantity
    offer.buyer_village_id = buyer.id
    if offer.lots_remaining == 0:
        offer.status = OfferStatus.COMPLETED
        offer.completed_at = now
    record_event(
        world,
        "market_trade",
        f"{buyer.name} bought {quantity} lot(s) from {seller.name}",
        now,
        player_id=player_id,
        village_id=buyer.id,
        data={"offer_id": int(offer.id), "quantity": quantity},
    )
    return offer


def cancel_offer(
    world: World,
    player_id: PlayerID,
    offer_id: OfferID,
    now: datetime,
    rules: RulesConfig = DEFAULT_RULES,
) -> MarketOffer:
    """Withdraw an offer; the escrow comes back, the fee does not."""

    offer = get_offer(world, offer_id)
    if offer.player_id != player_id:
        raise InvalidActionError("offer belongs to another player")
    if offer.status != OfferStatus.ACTIVE:
        raise InvalidActionError(f"offer is {offer.status}")
    _refund_escrow(world, offer, now, rules)
    offer.status = OfferStatus.CANCELLED
    offer.completed_at = now
    return offer


def _refund_escrow(world: World, offer: MarketOffer, now: datetime, rules: RulesConfig) -> None:
    village = world.villages.get(offer.village_id)
    if village is None:
        return
    sync_resources(world, village, now, rules)
    refund = _remaining(offer.offering, offer.lots_remaining)
    add_resources(village, refund, rules)


def expire_offers(
    world: World, now: datetime, rules: RulesConfig = DEFAULT_RULES
) -> list[MarketOffer]:
    """Tick step: expire stale offers and return their escrow."""

    expired = [
        offer
        for offer in world.offers.values()
        if offer.status == OfferStatus.ACTIVE and offer.expires_at <= now
    ]
    for offer in expired:
        _refund_escrow(world, offer, now, rules)
        offer.status = OfferStatus.EXPIRED
        offer.completed_at = now
    return expired


def list_offers(
    world: World, now: datetime, filters: OfferFilters | None = None
) -> list[MarketOffer]:
    """Active, unexpired offers matching ``filters``, newest first."""

    criteria = filters or OfferFilters()
    results: list[MarketOffer] = []
    for offer in world.offers.values():
        if offer.status != OfferStatus.ACTIVE or offer.expires_at <= now:
            continue
        if criteria.offering is not None and criteria.offering not in offer.offering:
            continue
        if criteria.requesting is not None and criteria.requesting not in offer.requesting:
            continue
        if criteria.min_ratio is not None and offer.ratio < criteria.min_ratio:
            continue
        if criteria.max_ratio is not None and offer.ratio > criteria.max_ratio:
            continue
        if criteria.exclude_player_id is not None and offer.player_id == criteria.exclude_player_id:
            continue
        if not criteria.include_generated and offer.generated:
            continue
        results.append(offer)
    return sorted(results, key=lambda offer: (offer.created_at, int(offer.id)), reverse=True)


def market_stats(world: World, now: datetime) -> dict[str, int]:
    counts = {status: 0 for status in OfferStatus}
    for offer in world.offers.values():
        counts[offer.status] += 1
    week_ago = now - timedelta(days=7)
    return {
        "total_offers": len(world.offers),
        "active_offers": counts[OfferStatus.ACTIVE],
        "completed_offers": counts[OfferStatus.COMPLETED],
        "cancelled_offers": counts[OfferStatus.CANCELLED],
        "expired_offers": counts[OfferStatus.EXPIRED],
        "total_volume": sum(offer.quantity_traded for offer in world.offers.values()),
        "recent_offers": sum(1 for offer in world.offers.values() if offer.created_at >= week_ago),
    }


# ---------------------------------------------------------------------------
# Matching and generation


def _remaining(amounts: ResourceAmounts, lots: int) -> ResourceAmounts:
    return {resource: amount * lots for resource, amount in amounts.items()}


def _covers(supply: ResourceAmounts, demand: ResourceAmounts) -> bool:
    return all(supply.get(resource, 0) >= amount for resource, amount in demand.items())


def match_offers(
    world: World, now: datetime, rules: RulesConfig = DEFAULT_RULES
) -> list[tuple[OfferID, OfferID]]:
    """Settle pairs of offers from different players that satisfy each other.

    Each side receives exactly what it requested from the other's escrow; any
    escrow left over is returned to its owner and both offers complete.
    """

    matched: list[tuple[OfferID, OfferID]] = []
    active = sorted(
        (o for o in world.offers.values() if o.status == OfferStatus.ACTIVE and o.expires_at > now),
        key=lambda offer: (offer.created_at, int(offer.id)),
    )
    for first in active:
        if first.status != OfferStatus.ACTIVE:
            continue
        first_supply = _remaining(first.offering, first.lots_remaining)
        first_demand = _remaining(first.requesting, first.lots_remaining)
        for second in active:
            if second is first or second.status != OfferStatus.ACTIVE:
                continue
            if second.player_id == first.player_id:
                continue
            second_supply = _remaining(second.offering, second.lots_remaining)
            second_demand = _remaining(second.requesting, second.lots_remaining)
            if not (_covers(second_supply, first_demand) and _covers(first_supply, second_demand)):
                continue
            _settle(world, first, first_supply, first_demand, second, now, rules)
            _settle(world, second, second_supply, second_demand, first, now, rules)
            first.lots_remaining = 0
            second.lots_remaining = 0
            matched.append((first.id, second.id))
            logger.info("matched offers %s and %s", int(first.id), int(second.id))
            break
    return matched


def _settle(
    world: World,
    offer: MarketOffer,
    supply: ResourceAmounts,
    demand: ResourceAmounts,
    counterpart: MarketOffer,
    now: datetime,
    rules: RulesConfig,
) -> None:
    """Pay ``offer``'s owner its demand and refund whatever escrow the counterpart did not take."""

    village = world.villages.get(offer.village_id)
    counterpart_demand = _remaining(counterpart.requesting, counterpart.lots_remaining)
    if village is not None:
        sync_resources(world, village, now, rules)
        leftover = {
            resource: amount - counterpart_demand.get(resource, 0)
            for resource, amount in supply.items()
        }
        add_resources(village, demand, rules)
        add_resources(village, {r: a for r, a in leftover.items() if a > 0}, rules)
    offer.quantity_traded += offer.lots_remaining
    offer.status = OfferStatus.COMPLETED
    offer.completed_at = now
    offer.buyer_village_id = counterpart.village_id


def generate_offers(
    world: World, now: datetime, rules: RulesConfig = DEFAULT_RULES
) -> list[MarketOffer]:
    """Post automatic sell offers for surpluses and buy offers for shortages."""

    config = rules.market
    created: list[MarketOffer] = []
    lifetime = timedelta(hours=config.generated_offer_lifetime_hours)
    for village in sorted(world.villages.values(), key=lambda v: int(v.id)):
        if village.buildings.get("marketplace", 0) < 1:
            continue
        sync_resources(world, village, now, rules)
        for resource in ResourceType:
            amount = int(village.resources.get(resource, 0.0))
            if amount < config.min_tradeable:
                continue
            seed = generate_seed(
                int(world.id), world.tick_count, f"market:{int(village.id)}:{resource}"
            )
            others = [other for other in ResourceType if other != resource]
            counter = random_choice(f"{seed}:counter", others)["choice"]
            variance = percent_roll(
                f"{seed}:ratio", config.ratio_variance_min, config.ratio_variance_span
            )
            if amount > config.sell_threshold:
                sell = min(amount - config.reserve_after_sale, config.max_generated_amount)
                ask = round(sell * BASE_RATIOS[resource][counter] * variance)
                offer = _try_generate(
                    world, village, {resource: sell}, {counter: ask}, now, rules, lifetime
                )
            elif amount < config.buy_threshold:
                want = config.buy_target - amount
                give = round(want * BASE_RATIOS[resource][counter] * variance)
                if not has_resources(village, {counter: give}):
                    continue
                offer = _try_generate(
                    world, village, {counter: give}, {resource: want}, now, rules, lifetime
                )
            else:
                continue
            if offer is not None:
                created.append(offer)
    return created


def _try_generate(
    world: World,
    village: Village,
    offering: dict[ResourceType, int],
    requesting: dict[ResourceType, int],
    now: datetime,
    rules: RulesConfig,
    lifetime: timedelta,
) -> MarketOffer | None:
    try:
        return create_offer(
            world,
            village.player_id,
            village.id,
            offering,
            requesting,
            now,
            rules,
            lifetime=lifetime,
            generated=True,
        )
    except GameError as exc:
        logger.debug("skipped generated offer for village %s: %s", int(village.id), exc)
        return None
