from __future__ import annotations

from typing import Optional

from ..config import CredentialsConfig, PlatformConfig
from ..models import OperationName, OperationRequest
from .locator import by_text
from .selectors import FanqieSelectors
from .steps import ActionSequence, ActionStep, Interaction


# Short genre names accepted on the command line -> the tag label shown in the portal's genre picker.
GENRE_TAGS: dict[str, str] = {
    "仙侠": "东方仙侠",
    "都市": "都市生活",
    "历史": "历史神话",
    "游戏": "游戏异界",
    "科幻": "科幻未来",
    "玄幻": "东方玄幻",
}
DEFAULT_GENRE_TAG = "东方仙侠"


def genre_tag(genre: str) -> str:
    g = (genre or "").strip()
    if g in GENRE_TAGS:
        return GENRE_TAGS[g]
    # Already a full tag label (e.g. "都市生活")?
    if g in GENRE_TAGS.values():
        return g
    return DEFAULT_GENRE_TAG


def login_sequence(
    creds: CredentialsConfig,
    *,
    selectors: Optional[FanqieSelectors] = None,
) -> ActionSequence:
    """
    Password login on the writer login page. The page is already open, so there is no entry URL.
    """
    s = selectors or FanqieSelectors()
    return ActionSequence(
        name="login",
        steps=(
            ActionStep("open password login", s.password_login_tab, settle_ms=1000, optional=True),
            ActionStep("fill username", s.username_input, Interaction.FILL, value=creds.username),
            ActionStep("fill password", s.password_input, Interaction.FILL, value=creds.password),
            ActionStep("accept agreement", s.agreement_checkbox, settle_ms=300, wait_ms=1000, optional=True),
            ActionStep("submit login", s.login_submit, settle_ms=2000),
        ),
    )


def create_work_sequence(
    request: OperationRequest,
    *,
    platform: PlatformConfig,
    selectors: Optional[FanqieSelectors] = None,
) -> ActionSequence:
    s = selectors or FanqieSelectors()
    tag = genre_tag(request.genre)
    return ActionSequence(
        name="create_work",
        entry_url=platform.writer_url,
        steps=(
            ActionStep("open creation dialog", s.create_work_entry, settle_ms=2000),
            ActionStep("fill title", s.work_title_input, Interaction.FILL, value=request.work_title),
            ActionStep("open genre picker", s.genre_picker, settle_ms=1000),
            ActionStep(f"select tag {tag}", (by_text(tag),)),
            ActionStep("confirm genre", s.genre_confirm, settle_ms=1000),
            ActionStep(
                "fill protagonist name",
                s.protagonist_input,
                Interaction.FILL,
                value=request.protagonist_name,
                wait_ms=2000,
                optional=True,
            ),
            ActionStep("submit work", s.create_work_submit, settle_ms=3000),
        ),
    )


def upload_chapter_sequence(
    request: OperationRequest,
    *,
    platform: PlatformConfig,
    selectors: Optional[FanqieSelectors] = None,
) -> ActionSequence:
    s = selectors or FanqieSelectors()
    project_id = (request.project_id or "").strip()
    if project_id:
        # The new-chapter editor opens directly; the dashboard entry button is then absent.
        entry_url = platform.new_chapter_url(project_id)
    else:
        entry_url = platform.writer_url
    return ActionSequence(
        name="upload_chapter",
        entry_url=entry_url,
        steps=(
            ActionStep("open chapter editor", s.chapter_entry, settle_ms=2000, wait_ms=3000, optional=bool(project_id)),
            ActionStep("fill chapter title", s.chapter_title_input, Interaction.FILL, value=request.chapter_title),
            ActionStep("fill chapter content", s.chapter_content_input, Interaction.FILL, value=request.chapter_content),
            ActionStep("save chapter", s.chapter_save, settle_ms=2000),
        ),
    )


def submit_chapter_sequence(
    request: OperationRequest,
    *,
    platform: PlatformConfig,
    selectors: Optional[FanqieSelectors] = None,
) -> ActionSequence:
    s = selectors or FanqieSelectors()
    project_id = (request.project_id or "").strip()
    return ActionSequence(
        name="submit_chapter",
        entry_url=platform.new_chapter_url(project_id) if project_id else "",
        steps=(
            ActionStep("next step", s.next_step, settle_ms=1000, wait_ms=2000, optional=True),
            ActionStep("submit for review", s.submit_for_review, settle_ms=2000),
            ActionStep("confirm publish", s.publish_confirm, settle_ms=2000, wait_ms=3000, optional=True),
        ),
    )


def build_sequence(
    request: OperationRequest,
    *,
    platform: Optional[PlatformConfig] = None,
    selectors: Optional[FanqieSelectors] = None,
) -> ActionSequence:
    platform = platform or PlatformConfig()
    op = request.operation
    if op is OperationName.LOGIN:
        # Authentication is the whole job; nothing left to click.
        return ActionSequence(name="login", steps=())
    if op is OperationName.CREATE_WORK:
        return create_work_sequence(request, platform=platform, selectors=selectors)
    if op is OperationName.UPLOAD_CHAPTER:
        return upload_chapter_sequence(request, platform=platform, selectors=selectors)
    if op is OperationName.SUBMIT_CHAPTER:
        return submit_chapter_sequence(request, platform=platform, selectors=selectors)
    raise ValueError(f"Unsupported operation: {op!r}")
