"""In-process JSON-RPC verse bridge backed by a small bundled library."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from walkworthy.models import DEFAULT_TRANSLATION, normalize_translation

logger = logging.getLogger(__name__)

NOT_FOUND_TEXT = "Verse not found in bridge dataset. Please expand the MCP bridge library."
DEFAULT_SEARCH_REF = "Philippians 4:6-7"
MAX_SEARCH_LIMIT = 5

VERSE_LIBRARY: Dict[str, Dict[str, str]] = {
    "Philippians 4:6-7": {
        "ESV": "Do not be anxious about anything, but in everything by prayer and supplication with thanksgiving let your requests be made known to God. And the peace of God, which surpasses all understanding, will guard your hearts and your minds in Christ Jesus.",
        "KJV": "Be careful for nothing; but in every thing by prayer and supplication with thanksgiving let your requests be made known unto God. And the peace of God, which passeth all understanding, shall keep your hearts and minds through Christ Jesus.",
    },
    "1 Peter 5:7": {
        "ESV": "Casting all your anxieties on him, because he cares for you.",
        "KJV": "Casting all your care upon him; for he careth for you.",
    },
    "John 14:27": {
        "ESV": "Peace I leave with you; my peace I give to you. Not as the world gives do I give to you. Let not your hearts be troubled, neither let them be afraid.",
        "KJV": "Peace I leave with you, my peace I give unto you: not as the world giveth, give I unto you. Let not your heart be troubled, neither let it be afraid.",
    },
    "Matthew 11:28-30": {
        "ESV": "Come to me, all who labor and are heavy laden, and I will give you rest. Take my yoke upon you, and learn from me, for I am gentle and lowly in heart, and you will find rest for your souls. For my yoke is easy, and my burden is light.",
        "KJV": "Come unto me, all ye that labour and are heavy laden, and I will give you rest. Take my yoke upon you, and learn of me; for I am meek and lowly in heart: and ye shall find rest unto your souls. For my yoke is easy, and my burden is light.",
    },
    "Psalm 4:8": {
        "ESV": "In peace I will both lie down and sleep; for you alone, O Lord, make me dwell in safety.",
        "KJV": "I will both lay me down in peace, and sleep: for thou, LORD, only makest me dwell in safety.",
    },
    "James 1:5": {
        "ESV": "If any of you lacks wisdom, let him ask God, who gives generously to all without reproach, and it will be given him.",
        "KJV": "If any of you lack wisdom, let him ask of God, that giveth to all men liberally, and upbraideth not; and it shall be given him.",
    },
    "Isaiah 41:10": {
        "ESV": "Fear not, for I am with you; be not dismayed, for I am your God; I will strengthen you, I will help you, I will uphold you with my righteous right hand.",
        "KJV": "Fear thou not; for I am with thee: be not dismayed; for I am thy God: I will strengthen thee; yea, I will help thee; yea, I will uphold thee with the right hand of my righteousness.",
    },
    "Romans 8:38-39": {
        "ESV": "For I am sure that neither death nor life, nor angels nor rulers, nor things present nor things to come, nor powers, nor height nor depth, nor anything else in all creation, will be able to separate us from the love of God in Christ Jesus our Lord.",
        "KJV": "For I am persuaded, that neither death, nor life, nor angels, nor principalities, nor powers, nor things present, nor things to come, Nor height, nor depth, nor any other creature, shall be able to separate us from the love of God, which is in Christ Jesus our Lord.",
    },
    "Psalm 23:4": {
        "ESV": "Even though I walk through the valley of the shadow of death, I will fear no evil, for you are with me; your rod and your staff, they comfort me.",
        "KJV": "Yea, though I walk through the valley of the shadow of death, I will fear no evil: for thou art with me; thy rod and thy staff they comfort me.",
    },
    "Joshua 1:9": {
        "ESV": "Have I not commanded you? Be strong and courageous. Do not be frightened, and do not be dismayed, for the Lord your God is with you wherever you go.",
        "KJV": "Have not I commanded thee? Be strong and of a good courage; be not afraid, neither be thou dismayed: for the LORD thy God is with thee whithersoever thou goest.",
    },
    "Psalm 46:1-2": {
        "ESV": "God is our refuge and strength, a very present help in trouble. Therefore we will not fear though the earth gives way, though the mountains be moved into the heart of the sea.",
        "KJV": "God is our refuge and strength, a very present help in trouble. Therefore will not we fear, though the earth be removed, and though the mountains be carried into the midst of the sea.",
    },
}

KEYWORD_MAP: Dict[str, List[str]] = {
    "anxiety": ["Philippians 4:6-7", "1 Peter 5:7", "John 14:27"],
    "stress": ["Philippians 4:6-7", "Matthew 11:28-30", "Psalm 4:8"],
    "rest": ["Matthew 11:28-30", "Psalm 4:8"],
    "peace": ["John 14:27", "Philippians 4:6-7"],
    "wisdom": ["James 1:5"],
    "courage": ["Joshua 1:9", "Psalm 23:4"],
    "strength": ["Isaiah 41:10", "Psalm 46:1-2"],
    "hope": ["Romans 8:38-39", "Psalm 23:4"],
    "exam": ["James 1:5", "Philippians 4:6-7"],
    "deadline": ["Philippians 4:6-7", "Matthew 11:28-30"],
}


class BridgeError(Exception):
    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code


def _verse(ref: str, translation: str, allow_missing: bool = False) -> Dict[str, Any]:
    record = VERSE_LIBRARY.get(ref)
    if record is None:
        if not allow_missing:
            raise BridgeError(-32000, f"Reference {ref} not found in bridge dataset")
        return {"ref": ref, "text": NOT_FOUND_TEXT, "translation": translation}
    text = record.get(translation) or record.get(DEFAULT_TRANSLATION) or NOT_FOUND_TEXT
    return {"ref": ref, "text": text, "translation": translation}


def search_verses(params: Mapping[str, Any]) -> List[Dict[str, Any]]:
    keywords = params.get("keywords")
    if not isinstance(keywords, list) or not keywords:
        raise BridgeError(-32602, "keywords must be a non-empty array")
    translation = normalize_translation(params.get("translation") if isinstance(params.get("translation"), str) else None)
    try:
        limit = int(params.get("limit") or MAX_SEARCH_LIMIT)
    except (TypeError, ValueError):
        limit = MAX_SEARCH_LIMIT
    limit = max(1, min(MAX_SEARCH_LIMIT, limit))

    refs: List[str] = []
    for keyword in keywords:
        for ref in KEYWORD_MAP.get(str(keyword).strip().lower(), []):
            if ref not in refs:
                refs.append(ref)
            if len(refs) >= limit:
                break
        if len(refs) >= limit:
            break
    if not refs:
        refs.append(DEFAULT_SEARCH_REF)
    return [_verse(ref, translation) for ref in refs[:limit]]


def get_verse_by_reference(params: Mapping[str, Any]) -> Dict[str, Any]:
    ref = params.get("ref")
    if not isinstance(ref, str) or not ref:
        raise BridgeError(-32602, "ref is required")
    translation = normalize_translation(params.get("translation") if isinstance(params.get("translation"), str) else None)
    return _verse(ref, translation, allow_missing=True)


METHODS = {
    "search_verses": search_verses,
    "get_verse_by_reference": get_verse_by_reference,
}


def handle_rpc(request: Any) -> Dict[str, Any]:
    """Dispatch one JSON-RPC 2.0 request and return the response envelope."""

    if not isinstance(request, Mapping) or not isinstance(request.get("method"), str):
        return {"jsonrpc": "2.0", "id": None, "error": {"code": -32600, "message": "Invalid request"}}

    request_id: Optional[Any] = request.get("id")
    method = METHODS.get(request["method"])
    if method is None:
        return {
            "jsonrpc": "2.0",
            "id": request_id,
            "error": {"code": -32601, "message": f"Unknown method {request['method']}"},
        }
    params = request.get("params") or {}
    try:
        result = method(params if isinstance(params, Mapping) else {})
    except BridgeError as exc:
        logger.warning("Verse bridge rejected %s: %s", request["method"], exc)
        return {"jsonrpc": "2.0", "id": request_id, "error": {"code": exc.code, "message": str(exc)}}
    return {"jsonrpc": "2.0", "id": request_id, "result": result}
