from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypeAlias


@dataclass(frozen=True, slots=True)
class Sender:
    id: int | None
    username: str | None
    first_name: str | None = None


@dataclass(frozen=True, slots=True)
class DocumentRef:
    file_id: str
    file_name: str | None
    file_size: int | None = None


@dataclass(frozen=True, slots=True)
class IncomingBase:
    update_id: int
    chat_id: int | None
    message_id: int | None
    sender: Sender | None


@dataclass(frozen=True, slots=True)
class CommandMessage(IncomingBase):
    command: str
    args: str = ""
    # lowercased `@name` suffix, None when the command names no bot
    addressee: str | None = None


@dataclass(frozen=True, slots=True)
class TextMessage(IncomingBase):
    text: str
    edited: bool = False


@dataclass(frozen=True, slots=True)
class DocumentMessage(IncomingBase):
    document: DocumentRef


@dataclass(frozen=True, slots=True)
class UnsupportedUpdate(IncomingBase):
    kind: str


IncomingUpdate: TypeAlias = (
    CommandMessage | TextMessage | DocumentMessage | UnsupportedUpdate
)

_MESSAGE_KEYS = ("message", "edited_message")


def _parse_sender(raw: Any) -> Sender | None:
    if not isinstance(raw, dict):
        return None
    sender_id = raw.get("id")
    username = raw.get("username")
    first_name = raw.get("first_name")
    return Sender(
        id=sender_id if isinstance(sender_id, int) else None,
        username=username if isinstance(username, str) and username else None,
        first_name=first_name if isinstance(first_name, str) else None,
    )


def parse_command(text: str) -> tuple[str, str | None, str] | None:
    """Split `/cmd@bot args` into ("/cmd", "bot", "args"); None if not a command."""
    if not text.startswith("/"):
        return None
    head, _, args = text.partition(" ")
    head = head.split("\n", 1)[0]
    command, _, addressee = head.lower().partition("@")
    if command == "/":
        return None
    return command, addressee or None, args.strip()


def _update_kind(raw: dict[str, Any]) -> str:
    for key in raw:
        if key != "update_id":
            return key
    return "unknown"


def parse_update(raw: dict[str, Any]) -> IncomingUpdate:
    update_id = raw.get("update_id")
    if not isinstance(update_id, int):
        update_id = -1

    message_key = next((k for k in _MESSAGE_KEYS if isinstance(raw.get(k), dict)), None)
    if message_key is None:
        return UnsupportedUpdate(
            update_id=update_id,
            chat_id=None,
            message_id=None,
            sender=_parse_sender(_find_from(raw)),
            kind=_update_kind(raw),
        )

    msg: dict[str, Any] = raw[message_key]
    chat = msg.get("chat") or {}
    chat_id = chat.get("id") if isinstance(chat.get("id"), int) else None
    message_id = msg.get("message_id")
    base = dict(
        update_id=update_id,
        chat_id=chat_id,
        message_id=message_id if isinstance(message_id, int) else None,
        sender=_parse_sender(msg.get("from")),
    )

    text = msg.get("text")
    if isinstance(text, str):
        command = parse_command(text)
        if command is not None:
            name, addressee, args = command
            return CommandMessage(
                **base, command=name, args=args, addressee=addressee
            )
        return TextMessage(**base, text=text, edited=message_key == "edited_message")

    document = msg.get("document")
    if isinstance(document, dict) and isinstance(document.get("file_id"), str):
        file_name = document.get("file_name")
        file_size = document.get("file_size")
        return DocumentMessage(
            **base,
            document=DocumentRef(
                file_id=document["file_id"],
                file_name=file_name if isinstance(file_name, str) else None,
                file_size=file_size if isinstance(file_size, int) else None,
            ),
        )

    kind = next(
        (k for k in ("photo", "sticker", "voice", "video", "audio") if k in msg),
        message_key,
    )
    return UnsupportedUpdate(**base, kind=kind)


def _find_from(raw: dict[str, Any]) -> Any:
    for value in raw.values():
        if isinstance(value, dict) and isinstance(value.get("from"), dict):
            return value["from"]
    return None
