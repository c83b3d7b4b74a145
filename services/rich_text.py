"""富文本文档处理

消息正文统一保存为 Quill Delta 风格的 JSON 文档：
    {"ops": [{"insert": "text"}, ...]}
"""
import json
from typing import Any, Dict, List, Optional


APOLOGY_PREFIX = "I'm sorry, I couldn't process your message properly. There was a technical error: "


def to_document(text: str) -> str:
    """Wrap plain text into a serialized document."""
    return json.dumps({"ops": [{"insert": text}]}, ensure_ascii=False)


def parse_document(raw: str) -> Optional[Dict[str, Any]]:
    """Parse a serialized document.

    Returns:
        The decoded document, or None when ``raw`` is not a document
        (invalid JSON, no ``ops`` list, or an op without a string insert).
    """
    if not isinstance(raw, str):
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        return None

    if not isinstance(data, dict):
        return None
    ops = data.get("ops")
    if not isinstance(ops, list):
        return None
    for op in ops:
        if not isinstance(op, dict) or not isinstance(op.get("insert"), str):
            return None
    return data


def is_document(raw: str) -> bool:
    return parse_document(raw) is not None


def ensure_document(raw: str) -> str:
    """Pass documents through unchanged, wrap anything else.

    Applying it twice gives the same result as applying it once.
    """
    if is_document(raw):
        return raw
    return to_document(raw)


def apology_document(detail: str) -> str:
    """Fallback document shown when a reply could not be generated."""
    return to_document(f"{APOLOGY_PREFIX}{detail}")


def plain_text(body: str) -> str:
    """Extract plain text from a message body.

    Non-document bodies are treated as plain text already.
    """
    document = parse_document(body)
    if document is None:
        return (body or "").strip()

    parts: List[str] = [op["insert"] for op in document["ops"]]
    return "".join(parts).strip()
