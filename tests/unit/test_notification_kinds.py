"""Tests for notification rendering."""

from pairly.notifications.kinds import (
    DatePlanned,
    GiftReceived,
    MoodChanged,
    NoteReceived,
    NotificationKind,
    PartnerConnected,
    Welcome,
    render,
)


class TestRender:
    def test_welcome_mentions_invite_code(self):
        rendered = render(Welcome(display_name="Alice", invite_code="AB12CD"))
        assert rendered.kind == NotificationKind.WELCOME
        assert rendered.title == "💕 Welcome, Alice!"
        assert "AB12CD" in rendered.body

    def test_partner_connected(self):
        rendered = render(PartnerConnected(partner_name="Bob", couple_id="c1"))
        assert rendered.kind == NotificationKind.PARTNER
        assert rendered.related_id == "c1"
        assert "Bob" in rendered.body

    def test_long_text_note_is_truncated(self):
        content = "x" * 80
        rendered = render(NoteReceived(sender_name="Alice", note_id="n1", note_type="text", content=content))
        assert rendered.title == "💌 New message from Alice"
        assert rendered.body == '"' + "x" * 50 + '..."'
        assert rendered.full_message == content

    def test_short_text_note_is_quoted_whole(self):
        rendered = render(NoteReceived(sender_name="Alice", note_id="n1", note_type="text", content="hi"))
        assert rendered.body == '"hi"'

    def test_doodle_preview(self):
        rendered = render(NoteReceived(sender_name="Alice", note_id="n1", note_type="doodle", content=""))
        assert rendered.body == "sent you a doodle 🎨"

    def test_missing_sender_name_falls_back(self):
        rendered = render(NoteReceived(sender_name=None, note_id="n1", note_type="text", content="hi"))
        assert rendered.title == "💌 New message from Your partner"

    def test_mood_with_note(self):
        rendered = render(MoodChanged(user_name="Bob", user_id="bob", emoji="😊", label="Happy", note="great day"))
        assert rendered.title == "😊 Bob's mood changed"
        assert rendered.body == "Bob is feeling Happy"
        assert rendered.full_message == 'Bob is feeling Happy: "great day"'
        assert rendered.related_id == "bob"

    def test_gift_with_and_without_message(self):
        with_message = render(GiftReceived(sender_name="Alice", gift_id="g1", label="Rose", message="for you"))
        without = render(GiftReceived(sender_name="Alice", gift_id="g1", label="Rose"))
        assert with_message.full_message == 'Alice sent you Rose: "for you"'
        assert without.full_message == "Alice sent you Rose!"
        assert with_message.body == "You received: Rose"

    def test_date_planned(self):
        rendered = render(DatePlanned(creator_name="Bob", date_id="d1", title="Picnic"))
        assert rendered.kind == NotificationKind.DATE
        assert rendered.body == "Bob planned: Picnic"

    def test_push_payload_shape(self):
        payload = render(GiftReceived(sender_name="Alice", gift_id="g1", label="Rose")).to_payload("bob")
        assert payload == {
            "userId": "bob",
            "type": "gift",
            "title": "🎁 Alice sent you a gift!",
            "body": "You received: Rose",
            "fullMessage": "Alice sent you Rose!",
            "relatedId": "g1",
        }
