from playwright.sync_api import Page


class VisualCapture:
    def __init__(self, page: Page, viewport_width: int = 1280, viewport_height: int = 720):
        self.page = page
        self.viewport = {"width": viewport_width, "height": viewport_height}

    def capture_png(self) -> bytes:
        """Full-page PNG at the fixed viewport, taken once the network is idle."""
        if self.page.viewport_size != self.viewport:
            self.page.set_viewport_size(self.viewport)
        self.page.wait_for_load_state("networkidle")
        return self.page.screenshot(full_page=True, type="png")
