from assistant_core.domain.conversation import ConversationHistory
from assistant_core.domain.models import ChatMessage


def test_history_preserves_call_order():
    history = ConversationHistory()
    history.append_user("q1")
    history.append_assistant("a1")
    history.append_user("q2")
    history.append_user("q2")
    assert [(m.role, m.content) for m in history.snapshot()] == [
        ("user", "q1"),
        ("assistant", "a1"),
        ("user", "q2"),
        ("user", "q2"),
    ]


def test_system_prompt_inserted_at_head_after_messages():
    history = ConversationHistory()
    history.append_user("hi")
    history.set_system_prompt("sys")
    snap = history.snapshot()
    assert snap[0] == ChatMessage(role="system", content="sys")
    assert snap[1].content == "hi"


def test_system_prompt_replaced_not_duplicated():
    history = ConversationHistory(system_prompt="first")
    history.append_user("hi")
    history.set_system_prompt("second")
    snap = history.snapshot()
    assert len(snap) == 2
    assert [m.role for m in snap].count("system") == 1
    assert snap[0].content == "second"
    assert history.system_prompt == "second"


def test_clear_and_snapshot_is_copy():
    history = ConversationHistory(system_prompt="sys")
    history.append_user("hi")
    snap = history.snapshot()
    snap.append(ChatMessage(role="assistant", content="injected"))
    assert len(history) == 2
    history.clear()
    assert history.snapshot() == []
    assert history.system_prompt is None


def test_last_user_message():
    history = ConversationHistory()
    assert history.last_user_message() is None
    history.append_user("one")
    history.append_assistant("reply")
    history.append_user("two")
    history.append_assistant("reply")
    assert history.last_user_message() == "two"
