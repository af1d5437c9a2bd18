"""Tests for player messages and report mailboxes."""

from datetime import timedelta

import pytest

from villagewars.domain import messaging
from villagewars.domain.alliances import accept_invitation, create_alliance, invite_player
from villagewars.domain.enums import ReportStatus, ReportType
from villagewars.domain.errors import InvalidActionError, NotFoundError
from villagewars.domain.players import register_player
from villagewars.domain.state import add_report


def test_send_and_read(world, alice, bob, now):
    message = messaging.send_message(world, alice.id, bob.id, " Hello ", "Nice village", now)
    assert message.subject == "Hello"
    assert messaging.unread_count(world, bob.id) == 1
    assert messaging.outbox(world, alice.id) == [message]

    messaging.mark_read(world, bob.id, message.id)

    assert messaging.unread_count(world, bob.id) == 0
    with pytest.raises(InvalidActionError, match="only the recipient"):
        messaging.mark_read(world, alice.id, message.id)


def test_validation(world, alice, bob, now):
    with pytest.raises(InvalidActionError, match="required"):
        messaging.send_message(world, alice.id, bob.id, "  ", "body", now)
    with pytest.raises(InvalidActionError, match="subject exceeds"):
        messaging.send_message(world, alice.id, bob.id, "x" * 121, "body", now)
    with pytest.raises(InvalidActionError, match="yourself"):
        messaging.send_message(world, alice.id, alice.id, "hi", "body", now)


def test_inbox_is_newest_first(world, alice, bob, now):
    first = messaging.send_message(world, alice.id, bob.id, "one", "body", now)
    second = messaging.send_message(
        world, alice.id, bob.id, "two", "body", now + timedelta(minutes=1)
    )
    assert messaging.inbox(world, bob.id) == [second, first]


def test_delete_hides_per_side(world, alice, bob, now):
    message = messaging.send_message(world, alice.id, bob.id, "hi", "body", now)

    messaging.delete_message(world, bob.id, message.id)
    assert messaging.inbox(world, bob.id) == []
    assert messaging.outbox(world, alice.id) == [message]

    messaging.delete_message(world, alice.id, message.id)
    assert message.id not in world.messages


def test_strangers_cannot_see_messages(world, alice, bob, now):
    carol = register_player(world, "Carol", now)
    message = messaging.send_message(world, alice.id, bob.id, "hi", "body", now)
    with pytest.raises(NotFoundError):
        messaging.delete_message(world, carol.id, message.id)


def test_alliance_broadcast(world, alice, bob, now):
    carol = register_player(world, "Carol", now)
    guild = create_alliance(world, alice.id, "Iron Guild", "IRON", now)
    for member in (bob, carol):
        invite_player(world, alice.id, member.id, now)
        accept_invitation(world, member.id, guild.id, now)

    sent = messaging.broadcast_to_alliance(world, alice.id, "Rally", "Attack at dawn", now)

    assert {message.recipient_id for message in sent} == {bob.id, carol.id}
    assert all(message.alliance_id == guild.id for message in sent)


def test_broadcast_requires_alliance(world, alice, now):
    with pytest.raises(InvalidActionError, match="not in an alliance"):
        messaging.broadcast_to_alliance(world, alice.id, "Rally", "body", now)


def test_report_mailbox(world, alice, bob, now):
    spy = add_report(world, alice.id, ReportType.SPY, ReportStatus.SUCCESS, "Scouted", "", now)
    attack = add_report(
        world, alice.id, ReportType.ATTACK, ReportStatus.VICTORY, "Won", "",
        now + timedelta(seconds=1),
    )

    assert messaging.list_reports(world, alice.id) == [attack, spy]
    assert messaging.list_reports(world, alice.id, report_type=ReportType.SPY) == [spy]

    messaging.mark_report_read(world, alice.id, attack.id)
    assert messaging.list_reports(world, alice.id, unread_only=True) == [spy]
    with pytest.raises(NotFoundError):
        messaging.mark_report_read(world, bob.id, spy.id)
