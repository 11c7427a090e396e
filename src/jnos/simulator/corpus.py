# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Message corpus for the simulator: import and list summaries."""

from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from jnos.constants import PROMPT_RE

# "Message #N" as printed by the R command, with or without a status tag.
MESSAGE_MARKER_RE = re.compile(r"^Message #\d+(?: (?:\[(?:Deleted|Held)\])?)?$")
FROM_LINE_RE = re.compile(r"^From ")
_DATE_RE = re.compile(r"\b(\d{1,2}) (Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)\b")

# Column widths of the JNOS message list
TO_WIDTH = 13
FROM_WIDTH = 8
SUBJECT_WIDTH = 35


def import_messages(text: str) -> list[str]:
    """Split a message file into individual messages, preserving order.

    The file can be an mbox (each message starts with a ``From `` envelope
    line, which is kept) or a transcript of a JNOS session that read
    messages (each starts after a ``Message #N`` line, which is dropped,
    and ends at the next prompt). Text outside any message is ignored.
    """
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()

    messages: list[str] = []
    current: list[str] = []
    in_message = False
    for raw in lines:
        line = raw.rstrip("\r")
        if in_message:
            if PROMPT_RE.match(line):
                messages.append("".join(current))
                current = []
                in_message = False
                continue
            if FROM_LINE_RE.match(line):
                messages.append("".join(current))
                current = []
                in_message = False
        if not in_message:
            if MESSAGE_MARKER_RE.match(line):
                in_message = True
                continue
            if FROM_LINE_RE.match(line):
                in_message = True
        if in_message:
            current.append(line + "\n")
    if in_message:
        messages.append("".join(current))
    return messages


class MessageSummary(BaseModel):
    """The fields of a message shown in a list row."""

    model_config = ConfigDict(frozen=True)

    to: str
    from_: str
    date: str
    size: int
    subject: str


def summarize(message: str) -> MessageSummary:
    """Extract the list fields from a raw message (a rough header scan)."""
    to = from_ = date = subject = ""
    for line in message.split("\n"):
        line = line.rstrip("\r")
        if not line:
            break
        if not to and line.startswith("To:"):
            to = line[3:].strip()
        elif line.startswith(("From ", "From:")):
            from_ = line[5:].strip()
        elif not date and line.startswith("Date:"):
            date = line[5:].strip()
        elif not subject and line.startswith("Subject:"):
            subject = line[8:].strip()

    # List rows need something in every column.
    return MessageSummary(
        to=to[:TO_WIDTH] or "?",
        from_=from_[:FROM_WIDTH] or "?",
        date=list_date(date),
        size=len(message),
        subject=subject[:SUBJECT_WIDTH],
    )


def list_date(date: str) -> str:
    """Convert a Date: header to the list's "Jan 02" form."""
    match = _DATE_RE.search(date)
    if match:
        return f"{match.group(2)} {int(match.group(1)):02d}"
    return datetime.now().strftime("%b %d")
