from playwright.sync_api import Page
from typing import List, Dict
import logging

logger = logging.getLogger(__name__)

TEXT_WALKER_JS = """() => {
    const SKIP = ['SCRIPT', 'STYLE', 'NOSCRIPT'];
    const walker = document.createTreeWalker(
        document.documentElement,
        NodeFilter.SHOW_TEXT,
        {
            acceptNode: (node) => {
                const parent = node.parentElement;
                if (parent) {
                    const style = getComputedStyle(parent);
                    if (SKIP.includes(parent.tagName) || style.display === 'none' || style.visibility === 'hidden') {
                        return NodeFilter.FILTER_REJECT;
                    }
                }
                return node.textContent.trim() ? NodeFilter.FILTER_ACCEPT : NodeFilter.FILTER_REJECT;
            }
        }
    );
    const texts = [];
    let node;
    while ((node = walker.nextNode())) {
        const parent = node.parentElement;
        if (!parent) continue;
        const rect = parent.getBoundingClientRect();
        if (rect.width > 0 && rect.height > 0) {
            texts.push({
                method: 'drawTextBlob',
                params: {
                    text: node.textContent.trim(),
                    x: Math.round(rect.x),
                    y: Math.round(rect.y + rect.height * 0.8)
                }
            });
        }
    }
    return texts;
}"""


def extract_dom_text(page: Page) -> List[Dict]:
    """
    Synthesizes drawTextBlob commands for the visible text nodes on the page.
    The y coordinate approximates the text baseline (80% down the box).
    Layer logs tend to under-report text, so these are appended after them.
    """
    try:
        texts = page.evaluate(TEXT_WALKER_JS)
    except Exception as e:
        reason = str(e).split("\n")[0]
        logger.warning(f"DOM text extraction failed: {reason}")
        return []
    logger.debug(f"Added {len(texts)} text commands from DOM")
    return texts or []
