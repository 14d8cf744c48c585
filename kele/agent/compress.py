"""Tool-output compression applied before results re-enter history."""

from __future__ import annotations

DEFAULT_MAX_OUTPUT_SIZE = 51200
COMPRESS_THRESHOLD = 2048


def compress_tool_output(
    output: str,
    max_size: int = DEFAULT_MAX_OUTPUT_SIZE,
    threshold: int = COMPRESS_THRESHOLD,
) -> str:
    """
    Bound a tool result in two steps.

    1. Hard-truncate to *max_size* and note the original size.
    2. If still longer than *threshold*, keep the first 75% and the last 25%
       of *threshold* characters and replace the middle with a note giving
       the number of characters left out.  Output that would not get shorter
       is returned as is.

    Sizes are counted in characters, not encoded bytes.
    """
    if max_size <= 0:
        max_size = DEFAULT_MAX_OUTPUT_SIZE

    if len(output) > max_size:
        output = (
            output[:max_size]
            + f"\n\n... [output truncated, original {len(output)} characters]"
        )

    if len(output) > threshold:
        head = output[: threshold * 3 // 4]
        tail = output[len(output) - threshold // 4:]
        omitted = len(output) - len(head) - len(tail)
        notice = f"\n\n... [{omitted} characters omitted] ...\n\n"
        if len(head) + len(notice) + len(tail) < len(output):
            output = head + notice + tail

    return output


def truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."
