import pytest

from nanobanana.models import ConversationTurn, ImagePart, TextPart
from nanobanana.services import InvalidRequest, turns_to_messages, user_message, window_history


def turn(role: str, text: str) -> ConversationTurn:
    return ConversationTurn.model_validate({"role": role, "parts": [{"text": text}]})


def texts(turns: list[ConversationTurn]) -> list[str]:
    return [t.parts[0].text for t in turns]


def test_window_keeps_preceding_model_turn():
    history = [
        turn("user", "u1"),
        turn("model", "m1"),
        turn("user", "u2"),
        turn("model", "m2"),
        turn("user", "u3"),
    ]
    assert texts(window_history(history)) == ["m2", "u3"]


def test_window_single_user_turn():
    assert texts(window_history([turn("user", "only")])) == ["only"]


def test_window_without_model_turn_returns_last_user_turn():
    assert texts(window_history([turn("user", "u1"), turn("user", "u2")])) == ["u2"]


def test_window_keeps_user_turns_after_last_model_turn():
    history = [turn("model", "m1"), turn("user", "u1"), turn("user", "u2")]
    assert texts(window_history(history)) == ["m1", "u1", "u2"]


def test_window_drops_trailing_model_turns():
    history = [turn("model", "m1"), turn("user", "u1"), turn("model", "m2")]
    assert texts(window_history(history)) == ["m1", "u1"]


def test_window_requires_user_turn():
    with pytest.raises(InvalidRequest, match="No user message found."):
        window_history([turn("model", "m1")])
    with pytest.raises(InvalidRequest):
        window_history([])


def test_turns_to_messages_maps_roles_and_parts():
    turns = [
        ConversationTurn.model_validate({"role": "model", "parts": [{"text": "done"}]}),
        ConversationTurn.model_validate(
            {
                "role": "user",
                "parts": [
                    {"text": "make it blue"},
                    {"inlineData": {"mimeType": "image/png", "data": "AAA="}},
                    {"inline_data": {"mime_type": "image/jpeg", "data": "BBB="}},
                    {"fileData": {"mimeType": "image/png", "fileUri": "https://x.test/a.png"}},
                    {},
                ],
            }
        ),
    ]

    assistant, user = turns_to_messages(turns)

    assert assistant.role == "assistant"
    assert assistant.content == [TextPart(text="done")]
    assert user.role == "user"
    assert [p.type for p in user.content] == ["text", "image_url", "image_url", "image_url"]
    assert user.content[1].image_url.url == "data:image/png;base64,AAA="
    assert user.content[2].image_url.url == "data:image/jpeg;base64,BBB="
    assert user.content[3].image_url.url == "https://x.test/a.png"


def test_unknown_role_maps_to_user():
    (message,) = turns_to_messages([turn("system", "hi")])
    assert message.role == "user"


def test_user_message_puts_prompt_first():
    message = user_message("draw a cat", ["data:image/png;base64,AAA="])

    assert message.role == "user"
    assert message.content[0] == TextPart(text="draw a cat")
    assert isinstance(message.content[1], ImagePart)
    assert message.model_dump()["content"][1] == {
        "type": "image_url",
        "image_url": {"url": "data:image/png;base64,AAA="},
    }
