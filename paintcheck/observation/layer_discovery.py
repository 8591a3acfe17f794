"""Finds the compositor layers currently present on a page."""

import time
import logging
from typing import Any, Dict, List

from playwright.sync_api import CDPSession, Page

logger = logging.getLogger(__name__)

LAYER_TREE_EVENT = "LayerTree.layerTreeDidChange"

# Promotes every element to its own layer candidate and forces layout.
FORCE_COMPOSITING_JS = """(keepHint) => {
    document.querySelectorAll('*').forEach(el => {
        const orig = el.style.willChange;
        el.style.willChange = 'transform';
        void el.offsetHeight;
        if (!keepHint) el.style.willChange = orig || '';
    });
    if (document.body) {
        const orig = document.body.style.transform;
        document.body.style.transform = 'translateZ(0)';
        void document.body.offsetHeight;
        if (!keepHint) document.body.style.transform = orig || '';
    }
}"""

NEXT_FRAME_JS = "() => new Promise(r => requestAnimationFrame(() => requestAnimationFrame(r)))"

NOOP_SCROLL_JS = """() => {
    window.scrollBy(0, 1);
    window.scrollBy(0, -1);
}"""


def enable_domains(client: CDPSession):
    client.send("DOM.enable")
    client.send("LayerTree.enable")


def force_compositing(page: Page, keep_hint: bool = False):
    page.evaluate(FORCE_COMPOSITING_JS, keep_hint)
    page.evaluate(NEXT_FRAME_JS)


def discover_layers(page: Page, client: CDPSession, timeout: float = 1.0,
                    keep_hint: bool = False, poll_ms: int = 50) -> List[Dict[str, Any]]:
    """
    Forces a compositing pass and waits up to `timeout` seconds for the
    layer tree to be reported. Returns the raw layer dicts, or an empty list
    when the event never arrives. Single attempt.
    """
    received: List[List[Dict[str, Any]]] = []

    def on_layer_tree(params):
        layers = (params or {}).get("layers")
        if layers is not None and not received:
            received.append(list(layers))

    client.on(LAYER_TREE_EVENT, on_layer_tree)
    try:
        force_compositing(page, keep_hint=keep_hint)
        page.evaluate(NOOP_SCROLL_JS)

        deadline = time.monotonic() + timeout
        while not received and time.monotonic() < deadline:
            # Playwright dispatches protocol events while the page waits
            page.wait_for_timeout(poll_ms)
    finally:
        client.remove_listener(LAYER_TREE_EVENT, on_layer_tree)

    if not received:
        logger.info(f"No layer tree update within {timeout}s; continuing without layers")
        return []

    layers = received[0]
    logger.info(f"Found {len(layers)} layers")
    return layers
