"""Content Parser -- 纯文本变换函数，无状态

- `:task` 标记检测与剥离
- 任务 title/note 拆分
- fenced code block 感知的 checklist 定位与勾选
- TaskBot 消息模板渲染

checklist 寻址先把文档切分为 fenced/非 fenced 片段，仅在非 fenced 片段内
按文档顺序编号；重建时原样拼接所有片段。
"""

import re
from collections.abc import Callable

from pydantic import BaseModel, Field

from .config import DEFAULT_TASK_BOT_MESSAGE_TEMPLATE

# `:task` 作为独立单词出现（两侧为空白或字符串边界），大小写不敏感
_TASK_FLAG_RE = re.compile(r"(?<!\S):task(?!\S)", re.IGNORECASE)

# 剥离时连同两侧各一个空白字符（含换行）一起匹配，替换为单个空格
_TASK_FLAG_STRIP_RE = re.compile(r"(?:^|\s):task(?:\s|\Z)", re.IGNORECASE)

_LEADING_BLANK_LINES_RE = re.compile(r"^(?:[ \t]*\n)+")

_FENCE_RE = re.compile(r"```.*?```", re.DOTALL)

_CHECKLIST_RE = re.compile(r"^- \[( |x|X)\] ")


class TaskPayload(BaseModel):
    """从消息内容中提取的任务字段"""

    title: str | None = Field(default=None, description="任务标题，None 表示不创建任务")
    note: str = Field(default="", description="任务备注")


class ChecklistItem(BaseModel):
    """fenced 代码块之外的一条 checklist 行"""

    ordinal: int = Field(description="文档顺序编号，从 0 开始")
    checked: bool
    label: str


def has_task_flag(content: str) -> bool:
    """判断内容是否包含独立的 `:task` 标记"""
    return _TASK_FLAG_RE.search(content) is not None


def strip_task_flag(content: str) -> str:
    """剥离所有 `:task` 标记并 trim

    相邻标记共用分隔空白，一轮替换可能留下标记，因此重复替换直到检测不到。
    标记两侧的换行同样被替换为空格。
    """
    stripped = content
    while has_task_flag(stripped):
        stripped = _TASK_FLAG_STRIP_RE.sub(" ", stripped)
    return stripped.strip()


def _normalize_newlines(content: str) -> str:
    return content.replace("\r\n", "\n").replace("\r", "\n")


def parse_task_payload(content: str) -> TaskPayload:
    """拆分任务 title/note

    剥离 `:task` 标记后，第一行为 title，其余部分（去掉开头空行、
    尾部空白）为 note。没有非空 title 时返回 title=None。
    """
    cleaned = _normalize_newlines(strip_task_flag(content)).rstrip()
    if "\n" not in cleaned:
        title = cleaned.strip()
        return TaskPayload(title=title or None)

    first_line, rest = cleaned.split("\n", 1)
    title = first_line.strip()
    if not title:
        return TaskPayload()
    note = _LEADING_BLANK_LINES_RE.sub("", rest).rstrip()
    return TaskPayload(title=title, note=note)


def _split_fenced(content: str) -> list[tuple[bool, str]]:
    """切分为 (is_fenced, span) 片段列表，拼接后与原文完全一致"""
    segments: list[tuple[bool, str]] = []
    last = 0
    for match in _FENCE_RE.finditer(content):
        segments.append((False, content[last : match.start()]))
        segments.append((True, match.group(0)))
        last = match.end()
    segments.append((False, content[last:]))
    return segments


def _rewrite_checklist(
    content: str,
    visit: Callable[[int, str, re.Match], str | None],
) -> str:
    """按文档顺序遍历非 fenced 片段中的 checklist 行

    visit(ordinal, line, match) 返回新行内容，返回 None 表示不修改。
    """
    ordinal = 0
    parts: list[str] = []
    for is_fenced, span in _split_fenced(content):
        if is_fenced:
            parts.append(span)
            continue
        lines = span.split("\n")
        for i, line in enumerate(lines):
            match = _CHECKLIST_RE.match(line)
            if match is None:
                continue
            replacement = visit(ordinal, line, match)
            if replacement is not None:
                lines[i] = replacement
            ordinal += 1
        parts.append("\n".join(lines))
    return "".join(parts)


def find_checklist_items(content: str) -> list[ChecklistItem]:
    """列出所有可寻址的 checklist 项（fenced 代码块内的行不计入）"""
    items: list[ChecklistItem] = []

    def collect(ordinal: int, line: str, match: re.Match) -> None:
        items.append(
            ChecklistItem(
                ordinal=ordinal,
                checked=match.group(1) in ("x", "X"),
                label=line[match.end() :],
            )
        )

    _rewrite_checklist(content, collect)
    return items


def toggle_checklist_item(content: str, ordinal: int, checked: bool) -> str:
    """将第 ordinal 个 checklist 项改写为 [x] 或 [ ]

    ordinal 不存在时原样返回输入，调用方据此判定为 not found。
    """
    if ordinal < 0:
        return content

    updated = False
    marker = "- [x] " if checked else "- [ ] "

    def toggle(current: int, line: str, match: re.Match) -> str | None:
        nonlocal updated
        if current != ordinal:
            return None
        updated = True
        return marker + line[match.end() :]

    result = _rewrite_checklist(content, toggle)
    return result if updated else content


def render_task_bot_message(template: str | None, title: str, creator: str) -> str:
    """渲染 TaskBot 通知消息，替换所有 {title} 与 {creator} 占位符"""
    source = (template or "").strip() or DEFAULT_TASK_BOT_MESSAGE_TEMPLATE
    return source.replace("{title}", title).replace("{creator}", creator)
