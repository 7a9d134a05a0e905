"""Call lookups over `dumpsys telecom` output.

Two conventions coexist in the dump. The CallsManager section and the
per-call analytics are indentation-nested and go through the tree parser.
Call state and caller handle live on flat event-log lines, so they are read
with plain substring scans.
"""

import logging
import textwrap
from typing import Optional

from ..parsing.blocks import find_block
from ..parsing.dump import ITEMS_KEY, DumpNode, as_list, child_node, parse_dump

logger = logging.getLogger(__name__)

CALL_PATH = ("CallsManager", "mCallAudioManager")
ALL_CALLS_KEY = "All calls"
CALLER_HANDLE_TOKEN = "CALL_HANDLE (tel:"


def get_current_call(tree: DumpNode) -> Optional[str]:
    """
    Return the id of the tracked call (e.g. "TC@56"), or None if idle.

    Follows CallsManager -> mCallAudioManager -> "All calls" and takes the
    first listed call.
    """
    node: Optional[DumpNode] = tree
    for key in CALL_PATH:
        node = child_node(node, key)
        if node is None:
            return None

    all_calls = as_list(node.get(ALL_CALLS_KEY))
    if not all_calls:
        return None
    section = all_calls[0]

    if isinstance(section, dict):
        items = as_list(section.get(ITEMS_KEY))
    elif isinstance(section, str):
        # Single call written inline: "All calls: TC@1"
        items = [section]
    else:
        items = []

    if not items or not items[0]:
        return None
    return str(items[0])


def extract_analytics(dump: str, call_id: str) -> DumpNode:
    """
    Parse the analytics block for one call.

    Args:
        dump: Raw dump text
        call_id: Call identifier from get_current_call()

    Returns:
        The block's fields, or an empty dict if the block is missing,
        unterminated or not a section.
    """
    token = f"Call {call_id}:"
    match = find_block(dump, token)
    if match is None:
        logger.debug(f"No analytics block for {call_id}")
        return {}

    parsed = parse_dump(_as_section(token, match.body))
    return child_node(parsed, f"Call {call_id}") or {}


def _as_section(token: str, body: str) -> str:
    """Rewrite a brace body as an indented section headed by token."""
    head, _, rest = body.partition("\n")
    lines = [head.strip()] if head.strip() else []
    if rest.strip():
        lines.append(textwrap.dedent(rest))
    return token + "\n" + textwrap.indent("\n".join(lines), "  ")


def get_direction(analytics: DumpNode) -> str:
    """Call direction (INCOMING / OUTGOING) from an analytics block."""
    values = as_list(analytics.get("direction"))
    if values and isinstance(values[0], str):
        return values[0]
    return ""


def _read_to_comma(dump: str, start: int) -> str:
    end = dump.find(",", start)
    if end == -1:
        return dump[start:].strip()
    return dump[start:end].strip()


def get_caller_number(dump: str, call_id: str) -> str:
    """Find the CALL_HANDLE (tel:...) number logged for call_id."""
    start = dump.find(f"Call{call_id}")
    if start == -1:
        return ""
    handle = dump.find(CALLER_HANDLE_TOKEN, start)
    if handle == -1:
        return ""
    return _read_to_comma(dump, handle + len(CALLER_HANDLE_TOKEN))


def get_call_state(dump: str, call_id: str) -> str:
    """Telecom's raw state string from "Call id=<id>, state=<STATE>,"."""
    token = f"Call id={call_id}, state="
    idx = dump.find(token)
    if idx == -1:
        return ""
    return _read_to_comma(dump, idx + len(token))
