"""Alliance membership and diplomacy rules."""

from __future__ import annotations

import logging
from datetime import datetime

from .enums import AllianceRank, BattleOutcome, DiplomacyStance, RelationStatus
from .errors import InvalidActionError, NotFoundError
from .models import (
    Alliance,
    AllianceID,
    DiplomaticRelation,
    PlayerID,
    RelationID,
    World,
)
from .rules_config import DEFAULT_RULES, RulesConfig
from .state import get_alliance, get_player, record_event

logger = logging.getLogger(__name__)

RANK_ORDER: dict[AllianceRank, int] = {
    AllianceRank.LEADER: 3,
    AllianceRank.CO_LEADER: 2,
    AllianceRank.ELDER: 1,
    AllianceRank.MEMBER: 0,
}

INVITING_RANKS = frozenset({AllianceRank.LEADER, AllianceRank.CO_LEADER, AllianceRank.ELDER})
DIPLOMAT_RANKS = frozenset({AllianceRank.LEADER, AllianceRank.CO_LEADER})
PEACEFUL_STANCES = frozenset({DiplomacyStance.NAP, DiplomacyStance.CONFEDERATION})


def _membership(world: World, player_id: PlayerID) -> tuple[Alliance, AllianceRank]:
    player = get_player(world, player_id)
    if player.alliance_id is None:
        raise InvalidActionError(f"player {player.name} is not in an alliance")
    alliance = get_alliance(world, player.alliance_id)
    return alliance, alliance.members[player_id]


def create_alliance(
    world: World,
    founder_id: PlayerID,
    name: str,
    tag: str,
    now: datetime,
    rules: RulesConfig = DEFAULT_RULES,
    *,
    description: str = "",
) -> Alliance:
    founder = get_player(world, founder_id)
    name = name.strip()
    tag = tag.strip()
    if founder.alliance_id is not None:
        raise InvalidActionError(f"player {founder.name} already belongs to an alliance")
    if not name or len(name) > rules.alliances.max_name_length:
        raise InvalidActionError(
            f"alliance name must be 1-{rules.alliances.max_name_length} characters"
        )
    if not tag or len(tag) > rules.alliances.tag_length:
        raise InvalidActionError(f"alliance tag must be 1-{rules.alliances.tag_length} characters")
    for existing in world.alliances.values():
        if existing.name.lower() == name.lower():
            raise InvalidActionError(f"alliance name {name!r} is taken")
        if existing.tag.lower() == tag.lower():
            raise InvalidActionError(f"alliance tag {tag!r} is taken")

    alliance = Alliance(
        id=AllianceID(world.next_id()),
        name=name,
        tag=tag,
        leader_id=founder.id,
        created_at=now,
        members={founder.id: AllianceRank.LEADER},
        description=description,
        max_members=rules.alliances.max_members,
    )
    world.alliances[alliance.id] = alliance
    founder.alliance_id = alliance.id
    record_event(
        world,
        "alliance_created",
        f"{founder.name} founded [{tag}] {name}",
        now,
        player_id=founder.id,
        data={"alliance_id": int(alliance.id)},
    )
    logger.info("alliance %s [%s] created by player %s", int(alliance.id), tag, int(founder.id))
    return alliance


def invite_player(
    world: World, inviter_id: PlayerID, invitee_id: PlayerID, now: datetime
) -> Alliance:
    alliance, rank = _membership(world, inviter_id)
    invitee = get_player(world, invitee_id)
    if rank not in INVITING_RANKS:
        raise InvalidActionError("only leaders, co-leaders and elders can invite")
    if invitee.alliance_id is not None:
        raise InvalidActionError(f"player {invitee.name} already belongs to an alliance")
    if invitee.id in alliance.invitations:
        raise InvalidActionError(f"player {invitee.name} is already invited")
    if len(alliance.members) >= alliance.max_members:
        raise InvalidActionError("alliance is full")
    alliance.invitations[invitee.id] = inviter_id
    record_event(
        world,
        "alliance_invitation",
        f"{invitee.name} invited to [{alliance.tag}]",
        now,
        player_id=invitee.id,
        data={"alliance_id": int(alliance.id)},
    )
    return alliance


def accept_invitation(
    world: World, player_id: PlayerID, alliance_id: AllianceID, now: datetime
) -> Alliance:
    player = get_player(world, player_id)
    alliance = get_alliance(world, alliance_id)
    if player_id not in alliance.invitations:
        raise NotFoundError("invitation", int(player_id))
    if player.alliance_id is not None:
        raise InvalidActionError(f"player {player.name} already belongs to an alliance")
    if len(alliance.members) >= alliance.max_members:
        raise InvalidActionError("alliance is full")
    del alliance.invitations[player_id]
    alliance.members[player_id] = AllianceRank.MEMBER
    player.alliance_id = alliance.id
    record_event(
        world,
        "alliance_joined",
        f"{player.name} joined [{alliance.tag}]",
        now,
        player_id=player.id,
        data={"alliance_id": int(alliance.id)},
    )
    return alliance


def decline_invitation(world: World, player_id: PlayerID, alliance_id: AllianceID) -> None:
    alliance = get_alliance(world, alliance_id)
    if alliance.invitations.pop(player_id, None) is None:
        raise NotFoundError("invitation", int(player_id))


def leave_alliance(world: World, player_id: PlayerID, now: datetime) -> None:
    alliance, rank = _membership(world, player_id)
    if rank == AllianceRank.LEADER:
        if len(alliance.members) > 1:
            raise InvalidActionError("the leader must hand over leadership before leaving")
        disband_alliance(world, player_id, now)
        return
    _remove_member(world, alliance, player_id)
    record_event(
        world,
        "alliance_left",
        f"player left [{alliance.tag}]",
        now,
        player_id=player_id,
        data={"alliance_id": int(alliance.id)},
    )


def kick_member(world: World, actor_id: PlayerID, target_id: PlayerID, now: datetime) -> None:
    alliance, rank = _membership(world, actor_id)
    target_rank = alliance.members.get(target_id)
    if target_rank is None:
        raise NotFoundError("alliance member", int(target_id))
    if actor_id == target_id:
        raise InvalidActionError("use leave to quit the alliance")
    allowed = rank == AllianceRank.LEADER or (
        rank == AllianceRank.CO_LEADER and target_rank in (AllianceRank.ELDER, AllianceRank.MEMBER)
    )
    if not allowed:
        raise InvalidActionError(f"a {rank} cannot kick a {target_rank}")
    _remove_member(world, alliance, target_id)
    record_event(
        world,
        "alliance_kicked",
        f"player removed from [{alliance.tag}]",
        now,
        player_id=target_id,
        data={"alliance_id": int(alliance.id)},
    )


def promote_member(
    world: World,
    actor_id: PlayerID,
    target_id: PlayerID,
    new_rank: AllianceRank,
    now: datetime,
) -> Alliance:
    """Change a member's rank; promoting someone to leader hands over leadership."""

    alliance, rank = _membership(world, actor_id)
    if rank != AllianceRank.LEADER:
        raise InvalidActionError("only the leader can change ranks")
    if target_id not in alliance.members:
        raise NotFoundError("alliance member", int(target_id))
    if target_id == actor_id:
        raise InvalidActionError("the leader cannot change their own rank")

    if new_rank == AllianceRank.LEADER:
        alliance.members[actor_id] = AllianceRank.CO_LEADER
        alliance.leader_id = target_id
    alliance.members[target_id] = new_rank
    record_event(
        world,
        "alliance_rank_changed",
        f"rank changed to {new_rank} in [{alliance.tag}]",
        now,
        player_id=target_id,
        data={"alliance_id": int(alliance.id), "rank": str(new_rank)},
    )
    return alliance


def disband_alliance(world: World, actor_id: PlayerID, now: datetime) -> None:
    alliance, rank = _membership(world, actor_id)
    if rank != AllianceRank.LEADER:
        raise InvalidActionError("only the leader can disband the alliance")
    for member_id in list(alliance.members):
        member = world.players.get(member_id)
        if member is not None:
            member.alliance_id = None
    for relation in world.relations.values():
        if alliance.id in (relation.alliance_id, relation.target_alliance_id) and (
            relation.status != RelationStatus.ENDED
        ):
            relation.status = RelationStatus.ENDED
            relation.ended_at = now
    del world.alliances[alliance.id]
    record_event(
        world,
        "alliance_disbanded",
        f"[{alliance.tag}] {alliance.name} disbanded",
        now,
        player_id=actor_id,
        data={"alliance_id": int(alliance.id)},
    )
    logger.info("alliance %s disbanded", int(alliance.id))


def _remove_member(world: World, alliance: Alliance, player_id: PlayerID) -> None:
    del alliance.members[player_id]
    player = world.players.get(player_id)
    if player is not None:
        player.alliance_id = None


# ---------------------------------------------------------------------------
# Diplomacy


def find_relation(
    world: World,
    first: AllianceID,
    second: AllianceID,
    *,
    statuses: frozenset[RelationStatus] = frozenset({RelationStatus.ACTIVE}),
) -> DiplomaticRelation | None:
    pair = {first, second}
    for relation in world.relations.values():
        if relation.status not in statuses:
            continue
        if {relation.alliance_id, relation.target_alliance_id} == pair:
            return relation
    return None


def _diplomat(world: World, actor_id: PlayerID) -> Alliance:
    alliance, rank = _membership(world, actor_id)
    if rank not in DIPLOMAT_RANKS:
        raise InvalidActionError("only leaders and co-leaders handle diplomacy")
    return alliance


def propose_relation(
    world: World,
    actor_id: PlayerID,
    target_alliance_id: AllianceID,
    stance: DiplomacyStance,
    now: datetime,
) -> DiplomaticRelation:
    """Declare war (active at once) or propose a NAP or confederation."""

    alliance = _diplomat(world, actor_id)
    target = get_alliance(world, target_alliance_id)
    if target.id == alliance.id:
        raise InvalidActionError("an alliance cannot hold relations with itself")
    open_statuses = frozenset({RelationStatus.PROPOSED, RelationStatus.ACTIVE})
    if find_relation(world, alliance.id, target.id, statuses=open_statuses) is not None:
        raise InvalidActionError(f"a relation with [{target.tag}] is already open")

    is_war = stance == DiplomacyStance.WAR
    relation = DiplomaticRelation(
        id=RelationID(world.next_id()),
        alliance_id=alliance.id,
        target_alliance_id=target.id,
        stance=stance,
        status=RelationStatus.ACTIVE if is_war else RelationStatus.PROPOSED,
        proposed_by=actor_id,
        created_at=now,
        started_at=now if is_war else None,
        scores={alliance.id: 0, target.id: 0},
    )
    world.relations[relation.id] = relation
    verb = "declared war on" if is_war else f"proposed a {stance} to"
    record_event(
        world,
        "diplomacy",
        f"[{alliance.tag}] {verb} [{target.tag}]",
        now,
        player_id=actor_id,
        data={"relation_id": int(relation.id)},
    )
    return relation


def declare_war(
    world: World, actor_id: PlayerID, target_alliance_id: AllianceID, now: datetime
) -> DiplomaticRelation:
    return propose_relation(world, actor_id, target_alliance_id, DiplomacyStance.WAR, now)


def accept_relation(
    world: World, actor_id: PlayerID, relation_id: RelationID, now: datetime
) -> DiplomaticRelation:
    relation = world.relations.get(relation_id)
    if relation is None:
        raise NotFoundError("relation", int(relation_id))
    alliance = _diplomat(world, actor_id)
    if alliance.id != relation.target_alliance_id:
        raise InvalidActionError("only the receiving alliance can accept a proposal")
    if relation.status != RelationStatus.PROPOSED:
        raise InvalidActionError(f"relation is {relation.status}, not proposed")
    relation.status = RelationStatus.ACTIVE
    relation.started_at = now
    record_event(
        world,
        "diplomacy",
        f"{relation.stance} accepted by [{alliance.tag}]",
        now,
        player_id=actor_id,
        data={"relation_id": int(relation.id)},
    )
    return relation


def end_relation(
    world: World, actor_id: PlayerID, relation_id: RelationID, now: datetime
) -> DiplomaticRelation:
    relation = world.relations.get(relation_id)
    if relation is None:
        raise NotFoundError("relation", int(relation_id))
    alliance = _diplomat(world, actor_id)
    if alliance.id not in (relation.alliance_id, relation.target_alliance_id):
        raise InvalidActionError("alliance is not part of this relation")
    if relation.status == RelationStatus.ENDED:
        raise InvalidActionError("relation has already ended")
    relation.status = RelationStatus.ENDED
    relation.ended_at = now
    record_event(
        world,
        "diplomacy",
        f"{relation.stance} ended by [{alliance.tag}]",
        now,
        player_id=actor_id,
        data={"relation_id": int(relation.id)},
    )
    return relation


def attack_block_reason(world: World, attacker_id: PlayerID, defender_id: PlayerID) -> str | None:
    """Why ``attacker_id`` may not attack ``defender_id``, or None when allowed."""

    if attacker_id == defender_id:
        return "cannot attack your own village"
    attacker = get_player(world, attacker_id)
    defender = get_player(world, defender_id)
    if attacker.alliance_id is None or defender.alliance_id is None:
        return None
    if attacker.alliance_id == defender.alliance_id:
        return "cannot attack a member of your own alliance"
    relation = find_relation(world, attacker.alliance_id, defender.alliance_id)
    if relation is not None and relation.stance in PEACEFUL_STANCES:
        return f"an active {relation.stance} protects this alliance"
    return None


def record_battle_score(
    world: World,
    attacker_id: PlayerID,
    defender_id: PlayerID,
    outcome: BattleOutcome,
    units_killed_by_attacker: int,
    units_killed_by_defender: int,
) -> DiplomaticRelation | None:
    """Credit units destroyed to each side of an active war, if there is one."""

    attacker = world.players.get(attacker_id)
    defender = world.players.get(defender_id)
    if attacker is None or defender is None:
        return None
    if attacker.alliance_id is None or defender.alliance_id is None:
        return None
    relation = find_relation(world, attacker.alliance_id, defender.alliance_id)
    if relation is None or relation.stance != DiplomacyStance.WAR:
        return None
    relation.scores[attacker.alliance_id] = (
        relation.scores.get(attacker.alliance_id, 0) + units_killed_by_attacker
    )
    relation.scores[defender.alliance_id] = (
        relation.scores.get(defender.alliance_id, 0) + units_killed_by_defender
    )
    logger.debug("war %s scores updated after %s", int(relation.id), outcome)
    return relation


# ---------------------------------------------------------------------------
# Statistics


def alliance_stats(world: World, alliance_id: AllianceID) -> dict[str, object]:
    alliance = get_alliance(world, alliance_id)
    members = [world.players[pid] for pid in alliance.members if pid in world.players]
    population = sum(member.population for member in members)
    points = sum(member.points for member in members)
    villages = sum(len(member.village_ids) for member in members)
    ranking = alliance_rankings(world)
    rank = next(
        (index for index, entry in enumerate(ranking, start=1) if entry["id"] == int(alliance.id)),
        None,
    )
    return {
        "id": int(alliance.id),
        "name": alliance.name,
        "tag": alliance.tag,
        "member_count": len(members),
        "population": population,
        "villages": villages,
        "points": points,
        "rank": rank,
    }


def alliance_rankings(world: World) -> list[dict[str, object]]:
    """Alliances ordered by total member points."""

    rows = []
    for alliance in world.alliances.values():
        members = [world.players[pid] for pid in alliance.members if pid in world.players]
        rows.append(
            {
                "id": int(alliance.id),
                "name": alliance.name,
                "tag": alliance.tag,
                "points": sum(member.points for member in members),
                "member_count": len(members),
            }
        )
    return sorted(rows, key=lambda row: (-int(row["points"]), int(row["id"])))


def refresh_alliance_points(world: World) -> None:
    for alliance in world.alliances.values():
        alliance.points = sum(
            world.players[pid].points for pid in alliance.members if pid in world.players
        )
