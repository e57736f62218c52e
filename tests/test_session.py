import pytest

from vibecoder_agent.core.contracts import ModelTurn, ToolCall, ToolResultTurn, UserTurn
from vibecoder_agent.core.session import ConversationSession, FullHistory, KeepRecentTurns


def _tool_round(i):
    return [
        ModelTurn(tool_calls=(ToolCall("read_file", {"path": f"f{i}.ts"}, call_id=f"c{i}"),)),
        ToolResultTurn("read_file", f"content {i}", call_id=f"c{i}"),
    ]


def _long_history(rounds=6):
    turns = [UserTurn("build a todo app")]
    for i in range(rounds):
        turns.extend(_tool_round(i))
    return turns


def test_session_appends_in_order():
    s = ConversationSession()
    s.add_user("hi")
    s.add_model(ModelTurn(text_fragments=("hello",)))
    s.add_tool_result("list_files", "Repository is empty.", "c1")
    assert s.turns == (
        UserTurn("hi"),
        ModelTurn(text_fragments=("hello",)),
        ToolResultTurn("list_files", "Repository is empty.", "c1"),
    )
    assert len(s) == 3


def test_session_copies_prior_history():
    prior = [UserTurn("a")]
    s = ConversationSession(prior)
    s.add_user("b")
    assert prior == [UserTurn("a")]


def test_full_history_is_the_default():
    turns = _long_history()
    s = ConversationSession(turns)
    assert isinstance(s.policy, FullHistory)
    assert s.for_request() == turns


def test_keep_recent_turns_keeps_first_user_and_tail():
    turns = _long_history(rounds=6)  # 13 turns
    selected = KeepRecentTurns(5).select(turns)

    assert selected[0] == UserTurn("build a todo app")
    assert isinstance(selected[1], UserTurn)
    assert "earlier turns omitted" in selected[1].text
    tail = selected[2:]
    assert isinstance(tail[0], ModelTurn)
    assert tail == turns[-len(tail):]


def test_keep_recent_turns_never_orphans_a_tool_result():
    turns = _long_history(rounds=6)
    for keep in range(2, 12):
        selected = KeepRecentTurns(keep).select(turns)
        for prev, turn in zip(selected, selected[1:]):
            if isinstance(turn, ToolResultTurn):
                assert isinstance(prev, ModelTurn)
                assert turn.call_id in {c.call_id for c in prev.tool_calls}


def test_keep_recent_turns_short_history_untouched():
    turns = _long_history(rounds=1)
    assert KeepRecentTurns(10).select(turns) == turns


def test_keep_recent_turns_rejects_tiny_window():
    with pytest.raises(ValueError):
        KeepRecentTurns(1)


def test_policy_does_not_change_stored_turns():
    turns = _long_history(rounds=6)
    s = ConversationSession(turns, policy=KeepRecentTurns(4))
    assert len(s.for_request()) < len(turns)
    assert s.turns == tuple(turns)


def test_keep_recent_turns_without_user_turn_and_nothing_to_drop():
    turns = [ModelTurn(tool_calls=(ToolCall("list_files", call_id="c"),))] + [
        ToolResultTurn("list_files", "Repository is empty.", call_id="c")
    ] * 6
    selected = KeepRecentTurns(3).select(turns)
    assert selected == turns
    assert not any(isinstance(t, UserTurn) for t in selected)
