"""Request schemas and boundary validation.

JSON bodies are bound to these schemas by FastAPI; form bodies are checked
with ``validate``, whose result is either ``Valid`` (holding the parsed
model) or ``Invalid`` (holding field-level messages).
"""

import re
from dataclasses import dataclass, field
from typing import Annotated, Any, Generic, Iterable, TypeVar, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    BeforeValidator,
    Field,
    StringConstraints,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .models import MAX_CONTENT_LENGTH

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

UserName = Annotated[
    str, StringConstraints(strip_whitespace=True, min_length=3, max_length=30)
]
GroupName = Annotated[
    str, StringConstraints(strip_whitespace=True, min_length=3, max_length=50)
]
Identifier = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Password = Annotated[str, StringConstraints(min_length=4)]


def _normalize_email(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    value = value.strip().lower()
    if not EMAIL_RE.match(value):
        raise ValueError("Please enter a valid email")
    return value


Email = Annotated[str, BeforeValidator(_normalize_email)]


class _Schema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RegisterRequest(_Schema):
    name: UserName
    email: Email
    password: Password


class LoginRequest(_Schema):
    email: Email
    password: Password


class GoogleLoginRequest(_Schema):
    code: Identifier


class UpdateProfileRequest(_Schema):
    name: UserName | None = None
    email: Email | None = None

    @model_validator(mode="after")
    def at_least_one_field(self) -> "UpdateProfileRequest":
        if not self.name and not self.email:
            raise ValueError("At least one field (name or email) must be provided")
        return self


class StartConversationRequest(_Schema):
    recipient_id: Identifier = Field(alias="recipientId")


class SendMessageRequest(_Schema):
    conversation_id: Identifier = Field(alias="conversationId")
    content: str | None = Field(default=None, max_length=MAX_CONTENT_LENGTH)


class CreateGroupRequest(_Schema):
    group_name: GroupName = Field(alias="groupName")
    participants: list[Identifier] = Field(min_length=1)


class GroupMembersRequest(_Schema):
    conversation_id: Identifier = Field(alias="conversationId")
    participants: list[Identifier] = Field(min_length=1)


class UpdateGroupRequest(_Schema):
    conversation_id: Identifier = Field(alias="conversationId")
    group_name: GroupName | None = Field(default=None, alias="groupName")


S = TypeVar("S", bound=BaseModel)


@dataclass
class Valid(Generic[S]):
    value: S


@dataclass
class Invalid:
    errors: dict[str, list[str]] = field(default_factory=dict)
    message: str = "Validation error"


def field_errors(items: Iterable[dict]) -> dict[str, list[str]]:
    """Group pydantic error items by field path, body prefix dropped."""
    errors: dict[str, list[str]] = {}
    for item in items:
        loc = list(item["loc"])
        if loc and loc[0] == "body":
            loc = loc[1:]
        location = ".".join(str(part) for part in loc) or "body"
        message = item["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.setdefault(location, []).append(message)
    return errors


def validate(schema: type[S], payload: Any) -> Union[Valid[S], Invalid]:
    """Parse ``payload`` with ``schema`` without raising."""
    try:
        return Valid(schema.model_validate(payload))
    except PydanticValidationError as e:
        return Invalid(errors=field_errors(e.errors()))


def require_valid(schema: type[S], payload: Any) -> S:
    """Parse ``payload`` or raise ``ValidationError`` with field detail."""
    result = validate(schema, payload)
    if isinstance(result, Invalid):
        raise ValidationError(result.message, result.errors)
    return result.value
