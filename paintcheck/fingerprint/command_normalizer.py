"""
Turns raw snapshot command entries into canonical Commands.

Raw entries name their operation under different keys and carry fields
that change between runs (blob handles, typeface ids, timestamps). The
normalizer keeps only what describes the painted result.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from paintcheck.fingerprint.fingerprint_builder import canonical_json
from paintcheck.shared.schemas import Command

logger = logging.getLogger(__name__)

METHOD_KEYS = ("method", "cmd", "name")
UNKNOWN_METHOD = "unknown"

# Opaque or nondeterministic fields: text-run blobs, font handles,
# resource/unique ids, raw pointers and timing.
DENY_FIELDS = frozenset({
    "blob",
    "textBlob",
    "typeface",
    "typefaceId",
    "fontHandle",
    "font",
    "imageId",
    "image",
    "resourceId",
    "uniqueID",
    "uniqueId",
    "pointer",
    "address",
    "timestamp",
    "time",
})

TEXT_DRAW_METHODS = frozenset({"drawTextBlob", "drawText", "drawString", "drawSimpleText"})

SCRIPT_MARKERS = ("const ", "let ", "var ", "function", "document.", "window.", "=>")


def resolve_method(entry: Dict[str, Any]) -> str:
    for key in METHOD_KEYS:
        value = entry.get(key)
        if value:
            return str(value)
    return UNKNOWN_METHOD


def clean_value(value: Any, deny_fields: frozenset = DENY_FIELDS) -> Any:
    if isinstance(value, dict):
        return clean_params(value, deny_fields)
    if isinstance(value, (list, tuple)):
        return [clean_value(v, deny_fields) for v in value]
    return value


def clean_params(params: Optional[Dict[str, Any]], deny_fields: frozenset = DENY_FIELDS) -> Dict[str, Any]:
    if not isinstance(params, dict):
        return {}
    return {
        key: clean_value(value, deny_fields)
        for key, value in params.items()
        if key not in deny_fields
    }


def looks_like_script(text: str, limit: int = 500) -> bool:
    """True for text that reads like injected test-harness code rather than page content."""
    if len(text) > limit:
        return True
    return any(marker in text for marker in SCRIPT_MARKERS)


class CommandNormalizer:
    def __init__(self, script_text_limit: int = 500, deny_fields: Iterable[str] = DENY_FIELDS,
                 stable_order: bool = False):
        self.script_text_limit = script_text_limit
        self.deny_fields = frozenset(deny_fields)
        self.stable_order = stable_order

    def is_script_text(self, command: Command) -> bool:
        if command.method not in TEXT_DRAW_METHODS:
            return False
        text = command.params.get("text")
        return isinstance(text, str) and looks_like_script(text, self.script_text_limit)

    def normalize_entry(self, entry: Dict[str, Any]) -> Command:
        return Command(
            method=resolve_method(entry),
            params=clean_params(entry.get("params"), self.deny_fields),
        )

    def normalize(self, entries: Sequence[Dict[str, Any]],
                  dom_text: Optional[Sequence[Dict[str, Any]]] = None) -> List[Command]:
        """
        Layer commands first (in the order the layers were read), then the
        synthesized DOM text commands. Script-like text draws are dropped
        from the layer commands only; the DOM walker already skips scripts.
        """
        commands: List[Command] = []
        dropped = 0
        for entry in entries:
            command = self.normalize_entry(entry)
            if self.is_script_text(command):
                dropped += 1
                continue
            commands.append(command)
        commands.extend(self.normalize_entry(entry) for entry in dom_text or [])

        if dropped:
            logger.debug(f"Dropped {dropped} script-like text commands")
        if self.stable_order:
            commands.sort(key=lambda c: canonical_json([c]))
        return commands
