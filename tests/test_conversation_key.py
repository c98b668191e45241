import pytest

from classroom_chat.utils.conversation_key import conversation_key, conversation_participants


@pytest.mark.parametrize(
    "a, b",
    [
        ("alice", "bob"),
        ("uid-9", "uid-10"),
        ("Zed", "adam"),
        ("x", "x"),
    ],
)
def test_key_does_not_depend_on_argument_order(a, b):
    assert conversation_key(a, b) == conversation_key(b, a)


def test_key_is_sorted_pair_joined():
    assert conversation_key("bob", "alice") == "alice_bob"
    assert conversation_participants("bob", "alice") == ["alice", "bob"]


def test_distinct_pairs_get_distinct_keys():
    keys = {
        conversation_key("alice", "bob"),
        conversation_key("alice", "carol"),
        conversation_key("bob", "carol"),
    }
    assert len(keys) == 3
