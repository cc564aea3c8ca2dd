import pytest

from campushelp.overlay.presentation import badge_label, counterpart_name, visible_threads

from fakes import make_chat


def test_thread_list_hides_finalized_chats() -> None:
    chats = [make_chat("c1", status="active"), make_chat("c2", status="finalized")]
    assert [c.id for c in visible_threads(chats)] == ["c1"]
    # input untouched
    assert len(chats) == 2


@pytest.mark.parametrize("count, label", [(0, None), (1, "1"), (99, "99"), (100, "99+"), (-3, None)])
def test_badge_label(count, label) -> None:
    assert badge_label(count) == label


def test_counterpart_name() -> None:
    chat = make_chat("c1")
    assert counterpart_name(chat, "alice") == "Bob"
    assert counterpart_name(chat, "bob") == "Alice"
