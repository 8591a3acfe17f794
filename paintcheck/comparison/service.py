import os
import logging
from typing import Mapping, Optional, Union

from paintcheck.browser_interaction.session_manager import SessionManager
from paintcheck.comparison.strategies import ComparisonStrategy, FingerprintStrategy, PixelStrategy
from paintcheck.shared.schemas import Artifact, CaptureMode, ComparisonResult
from paintcheck.storage.baseline_store import BaselineStore
from paintcheck.utils.config import ComparisonConfig, TRUTHY

logger = logging.getLogger(__name__)


def is_ci(environ: Optional[Mapping[str, str]] = None) -> bool:
    environ = os.environ if environ is None else environ
    return environ.get("CI", "").strip().lower() in TRUTHY


def resolve_mode(explicit: Union[CaptureMode, str, None] = None,
                 environ: Optional[Mapping[str, str]] = None) -> CaptureMode:
    """
    An explicit mode wins. Otherwise CI runs use pixel comparison and local
    runs use compositor fingerprints.
    """
    if explicit:
        return CaptureMode(explicit)
    return CaptureMode.PIXEL if is_ci(environ) else CaptureMode.COMPOSITOR


class ComparisonService:
    """
    Visual regression facade. The strategy is picked once here; the
    browser is started on the first capture and closed by `close()`.

        with ComparisonService(config) as service:
            result = service.compare("home", url="https://example.com")
    """

    def __init__(self, config: Optional[ComparisonConfig] = None, session: Optional[SessionManager] = None,
                 store: Optional[BaselineStore] = None, mode: Union[CaptureMode, str, None] = None,
                 environ: Optional[Mapping[str, str]] = None):
        self.config = config or ComparisonConfig()
        self.mode = resolve_mode(mode or self.config.mode, environ)
        self.session = session or SessionManager(
            headless=self.config.headless,
            viewport_width=self.config.viewport_width,
            viewport_height=self.config.viewport_height,
            device_scale_factor=self.config.device_scale_factor,
        )
        self.store = store or BaselineStore(self.config.baseline_dir, self.config.actual_dir, self.config.diff_dir)

        self.fingerprint = FingerprintStrategy(self.session, self.store, self.config)
        self.pixels = PixelStrategy(self.session, self.store, self.config)
        self.strategy: ComparisonStrategy = self.pixels if self.mode is CaptureMode.PIXEL else self.fingerprint
        self._closed = False
        logger.debug(f"Comparison mode: {self.mode.value}")

    def _open(self, url: Optional[str]):
        if url:
            self.session.navigate(url)

    # Unified surface, respects the configured mode

    def capture(self, name: str, url: Optional[str] = None) -> Artifact:
        self._open(url)
        return self.strategy.capture(name)

    def compare(self, name: str, url: Optional[str] = None) -> ComparisonResult:
        self._open(url)
        return self.strategy.compare(name)

    # Strategy-specific variants

    def capture_fingerprint(self, name: str, url: Optional[str] = None) -> Artifact:
        self._open(url)
        return self.fingerprint.capture(name)

    def compare_fingerprint(self, name: str, url: Optional[str] = None) -> ComparisonResult:
        self._open(url)
        return self.fingerprint.compare(name)

    def capture_pixels(self, name: str, url: Optional[str] = None) -> Artifact:
        self._open(url)
        return self.pixels.capture(name)

    def compare_pixels(self, name: str, url: Optional[str] = None) -> ComparisonResult:
        self._open(url)
        return self.pixels.compare(name)

    def reset(self, name: Optional[str] = None):
        return self.store.reset(name)

    def close(self):
        if self._closed:
            return
        self._closed = True
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
