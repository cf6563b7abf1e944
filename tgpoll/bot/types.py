from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

T = TypeVar("T")


class TelegramObject(BaseModel):
    # Unknown fields are kept so handlers can read payload parts not modelled here.
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class User(TelegramObject):
    id: int
    is_bot: bool = False
    first_name: str = ""
    last_name: Optional[str] = None
    username: Optional[str] = None


class Chat(TelegramObject):
    id: int
    type: str = "private"
    title: Optional[str] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class Message(TelegramObject):
    message_id: int
    date: int = 0
    chat: Chat
    from_user: Optional[User] = Field(None, alias="from")
    text: Optional[str] = None
    caption: Optional[str] = None


class Update(TelegramObject):
    update_id: int
    message: Optional[Message] = None
    edited_message: Optional[Message] = None

    @property
    def effective_message(self) -> Optional[Message]:
        return self.message or self.edited_message


@dataclass(frozen=True)
class ApiMethod(Generic[T]):
    """A Bot API method name bound to the payload type its ``result`` decodes into."""

    name: str
    payload_type: Any
    _adapter: TypeAdapter = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_adapter", TypeAdapter(self.payload_type))

    def decode(self, result: Any) -> T:
        return self._adapter.validate_python(result)


GET_ME: ApiMethod[User] = ApiMethod("getMe", User)
GET_UPDATES: ApiMethod[List[Update]] = ApiMethod("getUpdates", List[Update])
SEND_MESSAGE: ApiMethod[Message] = ApiMethod("sendMessage", Message)
