"""
Guest inbox
Messages are grouped into one conversation per guest. Unread counts only
cover messages from the guest: staff and system messages are born read.
Nothing here commits.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from models.hotel import Guest, Reservation
from models.messaging import Message, MESSAGE_CHANNELS, MESSAGE_SENDERS
from models.user import User


class InboxService:

    @staticmethod
    def post_message(
        db: Session,
        guest: Guest,
        content: str,
        sender: str = "staff",
        channel: str = "direct",
        reservation: Optional[Reservation] = None,
        user: Optional[User] = None,
    ) -> Message:
        if sender not in MESSAGE_SENDERS:
            raise ValueError(f"Unknown sender: {sender}")
        if channel not in MESSAGE_CHANNELS:
            raise ValueError(f"Unknown channel: {channel}")
        if reservation is not None and reservation.guest_id != guest.id:
            raise ValueError("The reservation belongs to another guest")

        incoming = sender == "guest"
        message = Message(
            hotel_id=guest.hotel_id,
            guest_id=guest.id,
            reservation_id=reservation.id if reservation else None,
            sender=sender,
            sender_user_id=user.id if user and sender == "staff" else None,
            channel=channel,
            content=content,
            is_read=not incoming,
            read_at=None if incoming else datetime.utcnow(),
        )
        db.add(message)
        return message

    @staticmethod
    def mark_read(messages: Iterable[Message]) -> int:
        now = datetime.utcnow()
        updated = 0
        for message in messages:
            if not message.is_read:
                message.is_read = True
                message.read_at = now
                updated += 1
        return updated

    @staticmethod
    def conversations(messages: Iterable[Message]) -> List[dict]:
        """
        Folds messages (any order) into conversations, newest activity first.
        The conversation's reservation and channel come from its latest message
        that has one.
        """
        by_guest = {}
        for message in sorted(messages, key=lambda m: (m.created_at, m.id)):
            entry = by_guest.get(message.guest_id)
            if entry is None:
                guest = message.guest
                entry = by_guest[message.guest_id] = {
                    "guest_id": message.guest_id,
                    "hotel_id": message.hotel_id,
                    "guest_name": guest.full_name if guest else "Guest",
                    "guest_email": guest.email if guest else None,
                    "reservation_id": None,
                    "channel": message.channel,
                    "unread_count": 0,
                    "message_count": 0,
                }
            entry["message_count"] += 1
            if message.sender == "guest" and not message.is_read:
                entry["unread_count"] += 1
            if message.reservation_id is not None:
                entry["reservation_id"] = message.reservation_id
            if message.sender != "system":
                entry["channel"] = message.channel
            entry["last_message"] = message.content
            entry["last_sender"] = message.sender
            entry["last_message_at"] = message.created_at
            entry["last_message_id"] = message.id

        return sorted(by_guest.values(), key=lambda c: (c["last_message_at"], c["last_message_id"]), reverse=True)
