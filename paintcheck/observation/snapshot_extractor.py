"""Reads paint command logs out of compositor layer snapshots."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from playwright.sync_api import CDPSession

from paintcheck.shared.schemas import Layer

logger = logging.getLogger(__name__)

DOCUMENT_LAYER_ID = "document"


def decode_command_log(raw: Any) -> List[Dict[str, Any]]:
    """
    Decodes a snapshot command log into a list of command entries.

    The protocol hands the log back as JSON text, a list, or a single
    object (optionally wrapping a `commands` list). Anything else, or text
    that fails to decode, yields no commands.
    """
    if not raw:
        return []
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            logger.debug(f"Command log is not JSON ({e}); ignoring")
            return []
    if isinstance(raw, dict):
        inner = raw.get("commands")
        raw = inner if isinstance(inner, list) else [raw]
    if isinstance(raw, list):
        return [entry for entry in raw if isinstance(entry, dict)]
    return []


@dataclass
class Extraction:
    commands: List[Dict[str, Any]] = field(default_factory=list)
    layer_count: int = 0
    used_fallback: bool = False


class SnapshotExtractor:
    def __init__(self, client: CDPSession):
        self.client = client

    def _snapshot_layer(self, layer: Layer) -> List[Dict[str, Any]]:
        """make → read → release. The snapshot is released on every exit path."""
        result = self.client.send("LayerTree.makeSnapshot", {"layerId": layer.layer_id})
        layer.snapshot_id = result["snapshotId"]
        try:
            log = self.client.send("LayerTree.snapshotCommandLog", {"snapshotId": layer.snapshot_id})
            return decode_command_log(log.get("commandLog"))
        finally:
            try:
                self.client.send("LayerTree.releaseSnapshot", {"snapshotId": layer.snapshot_id})
            except Exception as e:
                logger.debug(f"Layer {layer.layer_id}: release failed ({e})")
            layer.snapshot_id = None

    def read_layer(self, layer: Layer) -> List[Dict[str, Any]]:
        try:
            commands = self._snapshot_layer(layer)
        except Exception as e:
            reason = str(e).split("\n")[0]  # First line of the protocol error
            logger.info(f"Layer {layer.layer_id}: could not snapshot ({reason})")
            return []
        logger.debug(f"Layer {layer.layer_id}: {len(commands)} paint commands")
        return commands

    def extract(self, layers: Iterable[Dict[str, Any]]) -> Extraction:
        extraction = Extraction()
        for raw_layer in layers:
            layer_id = raw_layer.get("layerId")
            if layer_id is None:
                continue
            extraction.layer_count += 1
            extraction.commands.extend(self.read_layer(Layer(layer_id=str(layer_id))))

        if not extraction.commands:
            logger.info("No commands from discovered layers; trying the document layer")
            extraction.used_fallback = True
            extraction.commands.extend(self.read_layer(Layer(layer_id=DOCUMENT_LAYER_ID)))

        if not extraction.commands:
            logger.warning("No paint commands captured; layers may not be accessible on this page")
        return extraction
