# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Tests for ChatSession and ThreadView."""

from unittest.mock import patch

import pytest

from domus_messaging import ChatSession, EmptyMessageError, InvalidStateError
from tests.fixtures import LANDLORD, LODGER, OTHER_LODGER, FakeClock, create_test_service


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(clock):
    return create_test_service(clock=clock)


@pytest.fixture
def session(service):
    session = ChatSession(service, LODGER)
    yield session
    session.close()


class TestThreadView:
    """Tests for the live thread view."""

    def test_open_backfills_history(self, service, session):
        """Test that opening shows messages posted earlier."""
        thread = service.start_direct_chat(LODGER, LANDLORD)
        earlier = service.send_message(LANDLORD, thread.id, "Welcome!")

        view = session.open(thread.id)

        assert view.messages == [earlier]
        assert service.unread_count(LODGER) == 0

    def test_live_messages_appended(self, service, session):
        """Test that new messages arrive without refetching."""
        thread = service.start_direct_chat(LODGER, LANDLORD)
        view = session.open(thread.id)

        message = service.send_message(LANDLORD, thread.id, "Rent reminder")

        assert view.messages == [message]

    def test_selected_thread_stays_read(self, service, session, clock):
        """Test that messages arriving in the open thread do not flag it unread."""
        thread = service.start_direct_chat(LODGER, LANDLORD)
        session.open(thread.id)

        clock.advance()
        service.send_message(LANDLORD, thread.id, "Are you in?")

        assert service.unread_count(LODGER) == 0

    def test_background_thread_becomes_unread(self, service, session, clock):
        """Test that a view that is not selected does not mark read."""
        first = service.start_direct_chat(LODGER, LANDLORD)
        second = service.start_direct_chat(LODGER, OTHER_LODGER)
        session.open(first.id)
        session.open(second.id)

        clock.advance()
        service.send_message(LANDLORD, first.id, "Ping")

        unread = {row.thread_id for row in session.inbox() if row.unread}
        assert unread == {first.id}

    def test_message_during_backfill_appears_once(self, service, session):
        """Test that a message both delivered and backfilled is deduplicated."""
        thread = service.start_direct_chat(LODGER, LANDLORD)
        original = service.messages

        def racing(user_id, thread_id, since=None):
            service.send_message(LANDLORD, thread_id, "racing")
            return original(user_id, thread_id, since=since)

        with patch.object(service, "messages", side_effect=racing):
            view = session.open(thread.id)

        assert [m.body for m in view.messages] == ["racing"]

    def test_reopen_reuses_view(self, service, session):
        """Test that reopening a thread keeps the same subscription."""
        thread = service.start_direct_chat(LODGER, LANDLORD)

        first = session.open(thread.id)
        second = session.open(thread.id)

        assert first is second
        assert service.delivery.subscriber_count(thread.id) == 1

    def test_history_resolves_senders(self, service, session):
        """Test sender identities in the view's history."""
        thread = service.start_direct_chat(LODGER, LANDLORD)
        service.send_message(LANDLORD, thread.id, "Hello")
        view = session.open(thread.id)

        history = view.history()

        assert history[0].sender.display_name == "Larry Landlord"
        assert history[0].attachment is None

    def test_close_cancels_subscriptions(self, service, session):
        """Test that closing the session stops delivery."""
        thread = service.start_direct_chat(LODGER, LANDLORD)
        view = session.open(thread.id)

        session.close()

        assert not view.active
        assert service.delivery.subscriber_count(thread.id) == 0
        assert session.selected_thread_id is None


class TestDraftsAndSending:
    """Tests for drafts, staged attachments and send."""

    def test_drafts_are_per_thread(self, service, session):
        """Test that switching threads keeps each draft."""
        first = service.start_direct_chat(LODGER, LANDLORD)
        second = service.start_direct_chat(LODGER, OTHER_LODGER)

        session.open(first.id)
        session.set_draft("About the boiler")
        session.open(second.id)
        assert session.draft == ""
        session.open(first.id)

        assert session.draft == "About the boiler"

    def test_draft_needs_selection(self, session):
        """Test that drafting requires a selected thread."""
        assert session.draft == ""
        with pytest.raises(InvalidStateError):
            session.set_draft("text")
        with pytest.raises(InvalidStateError):
            session.send()

    def test_send_clears_draft_and_attachment(self, service, session):
        """Test a successful send."""
        view = session.open_direct(LANDLORD)
        session.set_draft("Photo of the leak")
        session.stage_attachment("leak.jpg", "image/jpeg", b"jpeg")

        message = session.send()

        assert message.attachment_ref is not None
        assert session.draft == ""
        assert session.staged_attachment is None
        assert view.messages == [message]

    def test_failed_send_keeps_draft(self, service, session):
        """Test that a rejected send can be retried."""
        session.open_direct(LANDLORD)
        session.set_draft("   ")

        with pytest.raises(EmptyMessageError):
            session.send()

        assert session.draft == "   "

    def test_clear_attachment(self, session):
        """Test unstaging an attachment."""
        session.stage_attachment("a.txt", "text/plain", b"a")
        session.clear_attachment()

        assert session.staged_attachment is None
