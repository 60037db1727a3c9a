"""Channel-specific rendering of ``ShareContent``."""

from __future__ import annotations

import html
import re
from typing import List

from .content import ShareContent

_MARKDOWN_V2_RESERVED = re.compile(r"([_*\[\]()~`>#+\-=|{}.!\\])")


def escape_markdown_v2(text: str) -> str:
    """Escape every Telegram MarkdownV2 reserved character with a backslash."""
    return _MARKDOWN_V2_RESERVED.sub(r"\\\1", text)


def _escape_link_url(url: str) -> str:
    # Inside (...) of a MarkdownV2 link only ')' and '\' must be escaped
    return url.replace("\\", "\\\\").replace(")", "\\)")


def format_telegram_message(content: ShareContent) -> str:
    esc = escape_markdown_v2
    lines: List[str] = [
        f"\U0001F399 *{esc(content.episode_title)}*",
        esc(content.podcast_name),
        "",
        f"\U0001F4A1 *{esc(content.hook_headline)}*",
    ]
    if content.highlights:
        lines.extend(["", "Key highlights:"])
        lines.extend(f"• {esc(h)}" for h in content.highlights[:3])
    lines.extend(["", f"\U0001F449 [Read full insights]({_escape_link_url(content.insights_url)})"])
    return "\n".join(lines)


def email_subject(content: ShareContent) -> str:
    return f"{content.episode_title} - Summary Ready"


def format_email_text(content: ShareContent) -> str:
    lines: List[str] = [
        f"{content.episode_title}",
        content.podcast_name,
        "",
        content.hook_headline,
    ]
    if content.highlights:
        lines.extend(["", "Key highlights:"])
        lines.extend(f"- {h}" for h in content.highlights)
    lines.extend(["", f"Read full insights: {content.insights_url}"])
    return "\n".join(lines)


def format_email_html(content: ShareContent) -> str:
    esc = html.escape
    parts: List[str] = ['<div style="font-family: sans-serif; max-width: 560px;">']
    if content.podcast_image_url:
        parts.append(
            f'<img src="{esc(content.podcast_image_url)}" alt="{esc(content.podcast_name)}" '
            'width="96" height="96" style="border-radius: 8px;" />'
        )
    parts.append(f"<h1>{esc(content.episode_title)}</h1>")
    parts.append(f"<p>{esc(content.podcast_name)}</p>")
    parts.append(f"<h2>{esc(content.hook_headline)}</h2>")
    if content.highlights:
        parts.append("<h3>Key highlights</h3><ul>")
        parts.extend(f"<li>{esc(h)}</li>" for h in content.highlights)
        parts.append("</ul>")
    parts.append(f'<p><a href="{esc(content.insights_url)}">Read full insights</a></p>')
    parts.append("</div>")
    return "\n".join(parts)
