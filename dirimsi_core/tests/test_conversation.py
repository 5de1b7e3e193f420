import pytest

from dirimsi_core.domain.conversation import ConversationState
from dirimsi_core.domain.exceptions import BusinessError
from dirimsi_core.domain.models import ChatMessage, ImageAttachment, RetryPolicy


def test_models_exist():
    cm = ChatMessage(role="user", content="hi")
    assert cm.role == "user"
    assert cm.image is None
    assert cm.created_at.tzinfo is not None


def test_state_is_append_only_snapshot():
    state = ConversationState()
    state.append(ChatMessage(role="assistant", content="greeting"))
    snapshot = state.messages
    state.append(ChatMessage(role="user", content="hi"))
    assert len(snapshot) == 1
    assert [m.content for m in state.messages] == ["greeting", "hi"]
    assert isinstance(state.messages, tuple)


def test_state_busy_flag_rejects_second_request():
    state = ConversationState()
    state.begin_request()
    with pytest.raises(BusinessError) as exc:
        state.begin_request()
    assert exc.value.code == "CONVERSATION_BUSY"
    state.end_request()
    assert state.busy is False


def test_state_staged_image():
    state = ConversationState()
    img = ImageAttachment(data=b"\x89PNG", mime_type="image/png")
    state.stage_image(img)
    assert state.take_staged_image() is img
    assert state.pending_image is None


def test_retry_policy_delays_and_validation():
    policy = RetryPolicy(max_attempts=4, initial_delay=0.5, backoff_multiplier=2.0)
    assert [policy.delay_for(n) for n in (1, 2, 3)] == [0.5, 1.0, 2.0]
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
    with pytest.raises(ValueError):
        RetryPolicy(backoff_multiplier=0.5)
    # 倍数为 1 时各次等待相同，不允许
    with pytest.raises(ValueError):
        RetryPolicy(backoff_multiplier=1.0)


def test_image_attachment_from_file(tmp_path):
    path = tmp_path / "mask.jpg"
    path.write_bytes(b"\xff\xd8\xff")
    img = ImageAttachment.from_file(path)
    assert img.mime_type == "image/jpeg"
    assert img.filename == "mask.jpg"
    assert img.as_base64() == "/9j/"
