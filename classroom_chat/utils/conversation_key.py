from typing import List

KEY_SEPARATOR = "_"


def conversation_participants(user_a: str, user_b: str) -> List[str]:
    return sorted([user_a, user_b])


def conversation_key(user_a: str, user_b: str) -> str:
    """Canonical id of the 1:1 conversation between two users.

    The pair is sorted before joining, so the key does not depend on who
    starts the conversation. Identifiers must not contain ``KEY_SEPARATOR``.
    """
    return KEY_SEPARATOR.join(conversation_participants(user_a, user_b))
