
from typing import Any, AsyncIterator, Dict, Mapping, Optional


def _content_text(content: Any) -> Optional[str]:
    if isinstance(content, str):
        return content or None

    # content blocks, e.g. [{'type': 'text', 'text': '...'}]
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get('type') == 'text':
                parts.append(block.get('text') or '')
        return ''.join(parts) or None

    return None


def _extract_text(data: Mapping[str, Any]) -> Optional[str]:
    ch = data.get('chunk')
    if isinstance(ch, str):
        return ch or None

    return _content_text(getattr(ch, 'content', None))


async def adapt_events(stream: AsyncIterator[Dict[str, Any]], node: Optional[str] = None):
    """
    Turn langgraph `astream_events` output into plain answer fragments.

    Only `on_chat_model_stream` events carry answer text; when `node` is
    given, chunks produced by other graph nodes are skipped.
    """
    async for ev in stream:
        if ev.get('event') != 'on_chat_model_stream':
            continue

        if node is not None:
            meta = ev.get('metadata') or {}
            if meta.get('langgraph_node') != node:
                continue

        text = _extract_text(ev.get('data') or {})
        if text:
            yield text
