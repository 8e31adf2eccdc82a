from zulipbridge.attachments import stage_attachments
from zulipbridge.domain.models import (
    Attachment, Delete, Edit, EventKind, FileInfo, Post, RelayMessage, Upload, ZulipEvent, classify,
)

def test_classify_precedence():
    f = [FileInfo(url="https://media/a")]
    assert isinstance(classify(RelayMessage(event=EventKind.msg_delete, id="1", files=f)), Delete)
    assert isinstance(classify(RelayMessage(id="1", files=f)), Upload)
    assert isinstance(classify(RelayMessage(oversize_files=f)), Post)
    assert isinstance(classify(RelayMessage(id="1", oversize_files=f)), Edit)
    assert isinstance(classify(RelayMessage(id="1", text="x")), Edit)
    assert isinstance(classify(RelayMessage(text="x")), Post)

def test_delete_carries_target_id():
    assert classify(RelayMessage(event=EventKind.msg_delete, id="9")) == Delete(message_id="9")

def test_attachment_compose():
    assert Attachment(comment="cat", url="u").compose() == "cat: u"
    assert Attachment(url="u").compose() == "u"
    assert Attachment(comment="cat").compose() == "cat: "
    assert Attachment().compose() == ""

def test_stage_skips_empty_files_and_flags_oversize():
    msg = RelayMessage(channel="general", account="slack.x", files=[
        FileInfo(name="empty"),
        FileInfo(name="ok", url="https://media/ok", size=5),
        FileInfo(name="big", url="https://media/big", size=50),
    ])
    staged = stage_attachments(msg, media_download_size=10)
    assert staged.attachments == [Attachment(url="https://media/ok")]
    assert len(staged.notices) == 1
    notice = staged.notices[0]
    assert notice.username == "<system> "
    assert notice.channel == "general" and notice.account == "slack.x"
    assert "big" in notice.text

def test_stage_without_limit_keeps_everything():
    msg = RelayMessage(files=[FileInfo(url="https://media/big", size=10**9)])
    assert len(stage_attachments(msg, media_download_size=0).attachments) == 1

def test_zulip_event_from_payload():
    ev = ZulipEvent.from_event({
        "id": 5,
        "type": "message",
        "message": {
            "id": 901,
            "sender_email": "alice@x",
            "sender_id": 7,
            "sender_full_name": "alice",
            "avatar_url": None,
            "stream_id": 3,
            "content": "hi",
            "type": "stream",
        },
    })
    assert ev.id == 5 and ev.message_id == 901
    assert ev.sender_email == "alice@x" and ev.sender_id == 7
    assert ev.avatar_url == ""
    assert ev.stream_id == 3 and ev.content == "hi"

def test_private_message_event_has_no_stream():
    ev = ZulipEvent.from_event({"id": 6, "type": "message", "message": {"sender_email": "a@x", "type": "private"}})
    assert ev.stream_id is None
