from __future__ import annotations

from dataclasses import dataclass

from .locator import SelectorStrategy, by_css, by_placeholder, by_role, by_text


@dataclass(frozen=True)
class FanqieSelectors:
    """
    The writer portal is a SPA whose markup changes without notice.
    Keep all UI selectors/text hooks here for easy maintenance; each field is tried in order.
    """

    # Login
    password_login_tab: tuple[SelectorStrategy, ...] = (by_role("button", "密码登录"), by_text("密码登录"))
    username_input: tuple[SelectorStrategy, ...] = (
        by_role("textbox", "请输入手机号/邮箱"),
        by_placeholder("手机号"),
        by_css('input[name="username"], input#username'),
    )
    password_input: tuple[SelectorStrategy, ...] = (
        by_role("textbox", "请输入密码"),
        by_css('input[type="password"], input#password'),
    )
    agreement_checkbox: tuple[SelectorStrategy, ...] = (by_css(".arco-checkbox-mask"),)
    login_submit: tuple[SelectorStrategy, ...] = (
        by_role("button", "登录"),
        by_css('button[type="submit"]'),
    )

    # Popups shown on the writer dashboard after login.
    popup_close: tuple[SelectorStrategy, ...] = (by_css(".byte-modal-close-icon"),)

    # Create work
    create_work_entry: tuple[SelectorStrategy, ...] = (
        by_text("创建书本"),
        by_text("创建新书"),
        by_text("新建书籍"),
        by_text("创建书籍"),
    )
    work_title_input: tuple[SelectorStrategy, ...] = (
        by_role("textbox", "请输入作品名称"),
        by_placeholder("作品名称"),
        by_placeholder("书名"),
        by_css('input[name="title"], input#bookName'),
    )
    genre_picker: tuple[SelectorStrategy, ...] = (
        by_css(".arco-icon-hover"),
        by_text("请选择作品标签"),
    )
    genre_confirm: tuple[SelectorStrategy, ...] = (by_role("button", "确认"), by_role("button", "确定"))
    protagonist_input: tuple[SelectorStrategy, ...] = (
        by_role("textbox", "请输入主角名1"),
        by_placeholder("主角名"),
    )
    create_work_submit: tuple[SelectorStrategy, ...] = (
        by_role("button", "立即创建"),
        by_role("button", "创建", exact=False),
    )

    # Upload chapter
    chapter_entry: tuple[SelectorStrategy, ...] = (
        by_text("上传章节"),
        by_text("新建章节"),
        by_text("添加章节"),
        by_text("写章节"),
    )
    chapter_title_input: tuple[SelectorStrategy, ...] = (
        by_css("input.serial-editor-input-hint-area"),
        by_placeholder("请输入标题"),
        by_placeholder("章节名"),
        by_css('input[name="chapterTitle"]'),
    )
    chapter_content_input: tuple[SelectorStrategy, ...] = (
        by_css('div.serial-editor-content .ProseMirror[contenteditable="true"]'),
        by_css('.ProseMirror[contenteditable="true"]'),
        by_placeholder("正文"),
        by_css('textarea[name="content"], textarea#content'),
        by_css('div[contenteditable="true"]'),
    )
    chapter_save: tuple[SelectorStrategy, ...] = (
        by_css("button.auto-editor-save"),
        by_role("button", "存草稿"),
        by_role("button", "保存草稿"),
        by_role("button", "保存"),
    )

    # Submit chapter for review
    next_step: tuple[SelectorStrategy, ...] = (
        by_css('div.publish-header-right button:has-text("下一步")'),
        by_role("button", "下一步"),
    )
    submit_for_review: tuple[SelectorStrategy, ...] = (
        by_text("提交审核"),
        by_css('div.publish-header-right button:has-text("提交")'),
        by_role("button", "提交"),
        by_role("button", "发布"),
    )
    publish_confirm: tuple[SelectorStrategy, ...] = (
        by_role("button", "确认发布"),
        by_role("button", "确认"),
    )
