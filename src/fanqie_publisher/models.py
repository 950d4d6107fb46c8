from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SessionCredential(BaseModel):
    """
    One browser cookie, in the shape Playwright returns from `context.cookies()`.

    Unknown keys are kept (`extra="allow"`) so a restore/persist cycle does not drop fields newer
    Playwright versions may add.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    value: str = ""
    domain: str = ""
    path: str = "/"
    expires: Optional[float] = None
    http_only: Optional[bool] = Field(default=None, alias="httpOnly")
    secure: Optional[bool] = None
    same_site: Optional[str] = Field(default=None, alias="sameSite")

    @model_validator(mode="after")
    def _require_scope(self) -> "SessionCredential":
        # Playwright rejects a cookie with neither a domain nor a url.
        if not self.domain.strip() and not (self.model_extra or {}).get("url"):
            raise ValueError(f"cookie {self.name!r} has no domain")
        return self

    def key(self) -> tuple[str, str, str]:
        return (self.name, self.domain, self.path)

    def to_record(self) -> dict:
        # Only what was actually set, so records round-trip byte-for-byte (modulo key order).
        return self.model_dump(by_alias=True, exclude_unset=True)

    def to_playwright(self) -> dict:
        out = self.model_dump(by_alias=True, exclude_none=True)
        if not self.domain.strip():
            # url-scoped: Playwright refuses url together with domain or path.
            out.pop("domain", None)
            out.pop("path", None)
        return out


def dedupe_credentials(credentials: Iterable[SessionCredential]) -> list[SessionCredential]:
    """
    Collapse records sharing (name, domain, path). Last one wins; the first one's position is kept.
    """
    out: dict[tuple[str, str, str], SessionCredential] = {}
    for cred in credentials:
        out[cred.key()] = cred
    return list(out.values())


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    CREDENTIALS_SUBMITTED = "credentials_submitted"
    CHALLENGE_PENDING = "challenge_pending"
    AUTHENTICATED = "authenticated"
    TIMED_OUT = "timed_out"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (AuthState.AUTHENTICATED, AuthState.TIMED_OUT, AuthState.FAILED)


class OperationName(str, Enum):
    LOGIN = "login"
    CREATE_WORK = "create_work"
    UPLOAD_CHAPTER = "upload_chapter"
    SUBMIT_CHAPTER = "submit_chapter"

    @classmethod
    def parse(cls, raw: str) -> "OperationName":
        key = (raw or "").strip().lower().replace("-", "_")
        if key in _OPERATION_ALIASES:
            return _OPERATION_ALIASES[key]
        raise ValueError(f"Unknown operation {raw!r} (expected one of: login, create, upload, submit)")


_OPERATION_ALIASES: dict[str, OperationName] = {
    "login": OperationName.LOGIN,
    "create": OperationName.CREATE_WORK,
    "create_work": OperationName.CREATE_WORK,
    "creatework": OperationName.CREATE_WORK,
    "upload": OperationName.UPLOAD_CHAPTER,
    "upload_chapter": OperationName.UPLOAD_CHAPTER,
    "uploadchapter": OperationName.UPLOAD_CHAPTER,
    "submit": OperationName.SUBMIT_CHAPTER,
    "submit_chapter": OperationName.SUBMIT_CHAPTER,
    "submitchapter": OperationName.SUBMIT_CHAPTER,
}


class OperationRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    operation: OperationName = OperationName.CREATE_WORK
    work_title: str = "Test Novel"
    genre: str = "仙侠"
    chapter_content: str = "这是测试章节内容"
    chapter_title: str = "第1章"
    project_id: str = ""
    protagonist_name: str = "主角"


class StepOutcome(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"


class StepResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    step_name: str
    outcome: StepOutcome
    reason: Optional[str] = None

    @classmethod
    def ok(cls, step_name: str) -> "StepResult":
        return cls(step_name=step_name, outcome=StepOutcome.OK)

    @classmethod
    def skipped(cls, step_name: str, reason: str = "control not found") -> "StepResult":
        return cls(step_name=step_name, outcome=StepOutcome.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, step_name: str, reason: str) -> "StepResult":
        return cls(step_name=step_name, outcome=StepOutcome.FAILED, reason=reason)


# Page signals are ephemeral observations; nothing persists them.
@dataclass(frozen=True)
class NavigatedTo:
    url: str


@dataclass(frozen=True)
class ElementVisible:
    probe: str
    visible: bool


@dataclass(frozen=True)
class ConsoleEvent:
    text: str


PageSignal = Union[NavigatedTo, ElementVisible, ConsoleEvent]
