"""Player messages, alliance broadcasts and report mailboxes."""

from __future__ import annotations

from datetime import datetime

from .enums import ReportType
from .errors import InvalidActionError, NotFoundError
from .models import Message, MessageID, PlayerID, Report, ReportID, World
from .rules_config import DEFAULT_RULES, RulesConfig
from .state import get_alliance, get_player


def _validate(subject: str, body: str, rules: RulesConfig) -> tuple[str, str]:
    subject = subject.strip()
    body = body.strip()
    if not subject or not body:
        raise InvalidActionError("subject and body are required")
    if len(subject) > rules.messaging.max_subject_length:
        raise InvalidActionError(
            f"subject exceeds {rules.messaging.max_subject_length} characters"
        )
    if len(body) > rules.messaging.max_body_length:
        raise InvalidActionError(f"body exceeds {rules.messaging.max_body_length} characters")
    return subject, body


def send_message(
    world: World,
    sender_id: PlayerID,
    recipient_id: PlayerID,
    subject: str,
    body: str,
    now: datetime,
    rules: RulesConfig = DEFAULT_RULES,
) -> Message:
    get_player(world, sender_id)
    get_player(world, recipient_id)
    if sender_id == recipient_id:
        raise InvalidActionError("cannot send a message to yourself")
    subject, body = _validate(subject, body, rules)
    message = Message(
        id=MessageID(world.next_id()),
        sender_id=sender_id,
        recipient_id=recipient_id,
        subject=subject,
        body=body,
        sent_at=now,
    )
    world.messages[message.id] = message
    return message


def broadcast_to_alliance(
    world: World,
    sender_id: PlayerID,
    subject: str,
    body: str,
    now: datetime,
    rules: RulesConfig = DEFAULT_RULES,
) -> list[Message]:
    """Send one copy of a message to every other member of the sender's alliance."""

    sender = get_player(world, sender_id)
    if sender.alliance_id is None:
        raise InvalidActionError("you are not in an alliance")
    alliance = get_alliance(world, sender.alliance_id)
    subject, body = _validate(subject, body, rules)
    sent: list[Message] = []
    for member_id in sorted(alliance.members, key=int):
        if member_id == sender_id:
            continue
        message = Message(
            id=MessageID(world.next_id()),
            sender_id=sender_id,
            recipient_id=member_id,
            subject=subject,
            body=body,
            sent_at=now,
            alliance_id=alliance.id,
        )
        world.messages[message.id] = message
        sent.append(message)
    return sent


def inbox(world: World, player_id: PlayerID, *, unread_only: bool = False) -> list[Message]:
    get_player(world, player_id)
    messages = [
        message
        for message in world.messages.values()
        if message.recipient_id == player_id
        and not message.deleted_by_recipient
        and (not unread_only or not message.is_read)
    ]
    return sorted(messages, key=lambda m: (m.sent_at, int(m.id)), reverse=True)


def outbox(world: World, player_id: PlayerID) -> list[Message]:
    get_player(world, player_id)
    messages = [
        message
        for message in world.messages.values()
        if message.sender_id == player_id and not message.deleted_by_sender
    ]
    return sorted(messages, key=lambda m: (m.sent_at, int(m.id)), reverse=True)


def _visible_message(world: World, player_id: PlayerID, message_id: MessageID) -> Message:
    message = world.messages.get(message_id)
    if message is None or player_id not in (message.sender_id, message.recipient_id):
        raise NotFoundError("message", int(message_id))
    return message


def mark_read(world: World, player_id: PlayerID, message_id: MessageID) -> Message:
    message = _visible_message(world, player_id, message_id)
    if message.recipient_id != player_id:
        raise InvalidActionError("only the recipient can mark a message as read")
    message.is_read = True
    return message


def delete_message(world: World, player_id: PlayerID, message_id: MessageID) -> None:
    """Hide a message for one side; it is removed once both sides deleted it."""

    message = _visible_message(world, player_id, message_id)
    if message.sender_id == player_id:
        message.deleted_by_sender = True
    if message.recipient_id == player_id:
        message.deleted_by_recipient = True
    if message.deleted_by_sender and message.deleted_by_recipient:
        del world.messages[message.id]


def unread_count(world: World, player_id: PlayerID) -> int:
    return len(inbox(world, player_id, unread_only=True))


def list_reports(
    world: World,
    player_id: PlayerID,
    *,
    report_type: ReportType | None = None,
    unread_only: bool = False,
) -> list[Report]:
    get_player(world, player_id)
    reports = [
        report
        for report in world.reports.values()
        if report.player_id == player_id
        and (report_type is None or report.report_type == report_type)
        and (not unread_only or not report.is_read)
    ]
    return sorted(reports, key=lambda r: (r.created_at, int(r.id)), reverse=True)


def mark_report_read(world: World, player_id: PlayerID, report_id: ReportID) -> Report:
    report = world.reports.get(report_id)
    if report is None or report.player_id != player_id:
        raise NotFoundError("report", int(report_id))
    report.is_read = True
    return report
