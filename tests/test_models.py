# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Tests for messaging data models."""

from datetime import datetime, timedelta, timezone

import pytest

from domus_messaging import (
    Attachment,
    CaseStatus,
    Message,
    MessageCursor,
    Participant,
    ParticipantRole,
    Thread,
    ThreadKind,
    Urgency,
)
from domus_messaging.models import (
    can_transition,
    direct_pair_key,
    format_timestamp,
    parse_timestamp,
)

T0 = datetime(2025, 3, 1, 9, 30, 0, tzinfo=timezone.utc)


class TestTimestamps:
    """Tests for timestamp formatting."""

    def test_fixed_width_format(self):
        """Test that stored timestamps always carry microseconds and Z."""
        assert format_timestamp(T0) == "2025-03-01T09:30:00.000000Z"

    def test_string_order_is_time_order(self):
        """Test that lexical comparison matches chronological order."""
        earlier = format_timestamp(T0 + timedelta(microseconds=999))
        later = format_timestamp(T0 + timedelta(seconds=1))

        assert earlier < later

    def test_naive_datetime_treated_as_utc(self):
        """Test that naive datetimes are assumed UTC."""
        assert format_timestamp(T0.replace(tzinfo=None)) == format_timestamp(T0)

    def test_other_timezones_normalized(self):
        """Test that offsets are converted to UTC."""
        plus_two = T0.astimezone(timezone(timedelta(hours=2)))

        assert format_timestamp(plus_two) == "2025-03-01T09:30:00.000000Z"

    def test_parse(self):
        """Test parsing stored and ISO forms."""
        assert parse_timestamp("2025-03-01T09:30:00.000000Z") == T0
        assert parse_timestamp("2025-03-01T09:30:00+00:00") == T0
        assert parse_timestamp(None) is None
        assert parse_timestamp(T0) is T0


class TestCaseTransitions:
    """Tests for the complaint case status graph."""

    @pytest.mark.parametrize(
        "current,requested",
        [
            (CaseStatus.OPEN, CaseStatus.IN_PROGRESS),
            (CaseStatus.OPEN, CaseStatus.RESOLVED),
            (CaseStatus.IN_PROGRESS, CaseStatus.AWAITING_EXTERNAL),
            (CaseStatus.AWAITING_EXTERNAL, CaseStatus.CLOSED),
            (CaseStatus.RESOLVED, CaseStatus.IN_PROGRESS),
            (CaseStatus.CLOSED, CaseStatus.IN_PROGRESS),
        ],
    )
    def test_allowed(self, current, requested):
        """Test forward moves and reopening."""
        assert can_transition(current, requested)

    @pytest.mark.parametrize(
        "current,requested",
        [
            (CaseStatus.RESOLVED, CaseStatus.OPEN),
            (CaseStatus.IN_PROGRESS, CaseStatus.OPEN),
            (CaseStatus.CLOSED, CaseStatus.RESOLVED),
            (CaseStatus.AWAITING_EXTERNAL, CaseStatus.IN_PROGRESS),
            (CaseStatus.OPEN, CaseStatus.OPEN),
        ],
    )
    def test_rejected(self, current, requested):
        """Test backwards moves other than reopening."""
        assert not can_transition(current, requested)


class TestThread:
    """Tests for Thread documents."""

    def test_direct_pair_key_is_unordered(self):
        """Test that the pair key ignores argument order."""
        assert direct_pair_key("b", "a") == direct_pair_key("a", "b") == "direct:a:b"

    def test_case_document_defaults(self):
        """Test that a case without status or urgency stores the defaults."""
        thread = Thread(
            id="t1",
            kind=ThreadKind.COMPLAINT_CASE,
            created_by="u1",
            created_at=T0,
            raiser_id="u1",
        )

        doc = thread.to_document()

        assert doc["status"] == "open"
        assert doc["urgency"] == "medium"
        assert doc["last_activity_at"] == doc["created_at"]
        assert doc["last_message_at"] is None

    def test_from_document(self):
        """Test reading a stored case."""
        thread = Thread.from_document(
            {
                "_id": "t1",
                "kind": "complaint_case",
                "created_by": "u1",
                "created_at": "2025-03-01T09:30:00.000000Z",
                "raiser_id": "u1",
                "assignee_id": "a1",
                "status": "in_progress",
                "urgency": "high",
            }
        )

        assert thread.is_case
        assert thread.status is CaseStatus.IN_PROGRESS
        assert thread.urgency is Urgency.HIGH
        assert thread.created_at == T0

    def test_direct_document_has_no_case_fields(self):
        """Test that direct threads do not carry case fields."""
        thread = Thread(id="t1", kind=ThreadKind.DIRECT, created_by="a", created_at=T0, pair_key="direct:a:b")

        doc = thread.to_document()

        assert doc["pair_key"] == "direct:a:b"
        assert "status" not in doc


class TestParticipant:
    """Tests for Participant documents."""

    def test_document_id(self):
        """Test the composite membership key."""
        participant = Participant("t1", "u1", ParticipantRole.RAISER, T0)

        doc = participant.to_document()

        assert doc["_id"] == "t1:u1"
        assert Participant.from_document(doc) == participant


class TestMessage:
    """Tests for Message records."""

    def test_payload_uses_id_key(self):
        """Test the insert-event payload shape."""
        message = Message(id="m1", thread_id="t1", sender_id="u1", body="hi", created_at=T0, seq=1)

        payload = message.to_payload()

        assert payload["id"] == "m1"
        assert "_id" not in payload
        assert payload["created_at"] == "2025-03-01T09:30:00.000000Z"

    def test_from_payload_ignores_unknown_fields(self):
        """Test that newer producers can add fields."""
        message = Message.from_payload(
            {
                "id": "m1",
                "thread_id": "t1",
                "sender_id": "u1",
                "created_at": "2025-03-01T09:30:00.000000Z",
                "reactions": [],
            }
        )

        assert message.id == "m1"
        assert message.body == ""
        assert message.attachment_ref is None

    def test_sort_key_breaks_ties_by_id(self):
        """Test ordering of messages sharing a timestamp."""
        a = Message(id="a", thread_id="t", sender_id="u", body="1", created_at=T0)
        b = Message(id="b", thread_id="t", sender_id="u", body="2", created_at=T0)

        assert sorted([b, a], key=lambda m: m.sort_key) == [a, b]

    def test_sort_key_follows_position_first(self):
        """Test that position in the thread outranks timestamp and id."""
        first = Message(id="z", thread_id="t", sender_id="u", body="1", created_at=T0, seq=1)
        second = Message(id="a", thread_id="t", sender_id="u", body="2", created_at=T0, seq=2)

        assert sorted([second, first], key=lambda m: m.sort_key) == [first, second]
        assert first.cursor == MessageCursor(seq=1)


class TestAttachment:
    """Tests for Attachment documents."""

    def test_document_shape(self):
        """Test that the attachment id becomes the document id."""
        attachment = Attachment(
            id="att1",
            owner_user_id="u1",
            storage_key="u1/att1_photo.jpg",
            display_name="photo.jpg",
            content_type="image/jpeg",
            byte_size=4,
            public_ref="u1/att1_photo.jpg",
            url="https://files.test/u1/att1_photo.jpg",
            created_at=T0,
        )

        doc = attachment.to_document()

        assert doc["_id"] == "att1"
        assert "id" not in doc
        assert Attachment.from_document(doc) == attachment
