"""Capture/compare strategies: compositor fingerprints and pixel screenshots."""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from PIL import UnidentifiedImageError
from playwright.sync_api import Page

from paintcheck.browser_interaction.session_manager import SessionManager
from paintcheck.comparison.diff_engine import DiffEngine, diff_commands
from paintcheck.fingerprint.command_normalizer import CommandNormalizer
from paintcheck.fingerprint.fingerprint_builder import error_marker, fingerprint, hashes_equal
from paintcheck.observation.dom_text import extract_dom_text
from paintcheck.observation.layer_discovery import discover_layers, enable_domains
from paintcheck.observation.snapshot_extractor import SnapshotExtractor
from paintcheck.observation.visual_capture import VisualCapture
from paintcheck.pixel.pixel_diff import compare_png
from paintcheck.shared.schemas import (
    Artifact,
    ArtifactMetadata,
    CaptureMode,
    ComparisonResult,
    ComparisonStatus,
    Viewport,
)
from paintcheck.storage.baseline_store import ACTUAL, BASELINE, BaselineStore, utc_timestamp
from paintcheck.utils.config import ComparisonConfig

logger = logging.getLogger(__name__)

ASSETS_READY_JS = """() => Array.prototype.every.call(
    document.getElementsByTagName('img'), image => image.complete
) && document.readyState === 'complete'"""

FONTS_READY_JS = "() => document.fonts.ready.then(() => true)"


class ComparisonStrategy(ABC):
    mode: CaptureMode

    def __init__(self, session: SessionManager, store: BaselineStore, config: ComparisonConfig):
        self.session = session
        self.store = store
        self.config = config

    @property
    def capture_kind(self) -> str:
        return BASELINE if self.config.update_baseline else ACTUAL

    def metadata(self, page: Page) -> ArtifactMetadata:
        try:
            return ArtifactMetadata(
                url=page.url,
                viewport=Viewport(**(page.viewport_size or {})),
                user_agent=self.session.user_agent(),
            )
        except Exception as e:
            reason = str(e).split("\n")[0]
            logger.warning(f"Could not read page metadata: {reason}")
            return ArtifactMetadata()

    @abstractmethod
    def capture(self, name: str) -> Artifact:
        ...

    @abstractmethod
    def compare(self, name: str) -> ComparisonResult:
        ...


class FingerprintStrategy(ComparisonStrategy):
    mode = CaptureMode.COMPOSITOR

    def __init__(self, session: SessionManager, store: BaselineStore, config: ComparisonConfig,
                 normalizer: Optional[CommandNormalizer] = None, diff_engine: DiffEngine = diff_commands):
        super().__init__(session, store, config)
        self.normalizer = normalizer or CommandNormalizer(
            script_text_limit=config.script_text_limit,
            stable_order=config.stable_order,
        )
        self.diff_engine = diff_engine

    def _settle(self, page: Page, client):
        client.send("Network.setCacheDisabled", {"cacheDisabled": True})
        if page.url != "about:blank":
            page.reload(wait_until="networkidle")
        page.wait_for_function(ASSETS_READY_JS)
        page.evaluate(FONTS_READY_JS)

    def extract(self, name: str) -> Artifact:
        """Runs the capture pipeline against the session's page. Raises on failure."""
        page = self.session.start()
        with self.session.cdp_session() as client:
            self._settle(page, client)
            enable_domains(client)
            layers = discover_layers(page, client, timeout=self.config.layer_timeout)
            extraction = SnapshotExtractor(client).extract(layers)
            if extraction.used_fallback:
                logger.info(f"{name}: commands read from the document layer")
            dom_text = extract_dom_text(page) if self.config.include_dom_text else []

        commands = self.normalizer.normalize(extraction.commands, dom_text)
        digest = fingerprint(commands)
        logger.info(f"Captured {len(commands)} paint commands for {name}, hash: {digest}")
        return Artifact(
            name=name,
            timestamp=utc_timestamp(),
            mode=self.mode,
            hash=digest,
            layer_count=len(layers),
            commands=commands,
            metadata=self.metadata(page),
        )

    def error_artifact(self, name: str, error: Exception) -> Artifact:
        page = self.session.page
        return Artifact(
            name=name,
            timestamp=utc_timestamp(),
            mode=self.mode,
            hash=error_marker(),
            layer_count=0,
            commands=[],
            metadata=self.metadata(page) if page else ArtifactMetadata(),
            error=str(error),
        )

    def companion_image(self, name: str) -> Optional[bytes]:
        """Full-page screenshot kept beside the fingerprint for inspecting mismatches."""
        try:
            capture = VisualCapture(self.session.start(), self.config.viewport_width, self.config.viewport_height)
            return capture.capture_png()
        except Exception as e:
            reason = str(e).split("\n")[0]
            logger.warning(f"Could not take companion screenshot for {name}: {reason}")
            return None

    def _capture(self, name: str) -> Tuple[Artifact, Optional[bytes]]:
        try:
            artifact = self.extract(name)
        except Exception as e:
            # Recorded as an error artifact; the next real capture will mismatch it
            logger.exception(f"Compositor capture failed for {name}")
            return self.error_artifact(name, e), None
        image = self.companion_image(name) if self.config.capture_image else None
        return artifact, image

    def _save(self, artifact: Artifact, image: Optional[bytes], kind: str):
        self.store.save(artifact, kind)
        if image:
            self.store.save_image(artifact.name, image, kind)

    def capture(self, name: str) -> Artifact:
        artifact, image = self._capture(name)
        self._save(artifact, image, self.capture_kind)
        return artifact

    def compare(self, name: str) -> ComparisonResult:
        baseline = self.store.load(name, self.mode, BASELINE)
        if baseline is None:
            artifact, image = self._capture(name)
            self._save(artifact, image, self.capture_kind)
            self._save(artifact, image, BASELINE)
            logger.info(f"Baseline created for {name}: {artifact.hash}")
            return ComparisonResult(
                status=ComparisonStatus.CREATED,
                mode=self.mode,
                baseline_ref=artifact.hash,
                actual_ref=artifact.hash,
                layer_count={"baseline": artifact.layer_count, "actual": artifact.layer_count},
            )

        actual = self.capture(name)
        match = hashes_equal(baseline.hash, actual.hash)
        diff = None if match else self.diff_engine(baseline.commands, actual.commands)
        if not match:
            logger.warning(f"Paint mismatch for {name}: {baseline.hash} != {actual.hash}")
        return ComparisonResult(
            status=ComparisonStatus.MATCH if match else ComparisonStatus.MISMATCH,
            mode=self.mode,
            baseline_ref=baseline.hash,
            actual_ref=actual.hash,
            diff=diff,
            layer_count={"baseline": baseline.layer_count, "actual": actual.layer_count},
        )


class PixelStrategy(ComparisonStrategy):
    mode = CaptureMode.PIXEL

    def _screenshot(self, name: str) -> Artifact:
        page = self.session.start()
        capture = VisualCapture(page, self.config.viewport_width, self.config.viewport_height)
        png = capture.capture_png()
        return Artifact(
            name=name,
            timestamp=utc_timestamp(),
            mode=self.mode,
            image_bytes=png,
            metadata=self.metadata(page),
        )

    def capture(self, name: str) -> Artifact:
        artifact = self._screenshot(name)
        self.store.save(artifact, self.capture_kind)
        return artifact

    def _created(self, artifact: Artifact) -> ComparisonResult:
        path = self.store.save(artifact, BASELINE)
        logger.info(f"Baseline created for {artifact.name}: {path}")
        return ComparisonResult(status=ComparisonStatus.CREATED, mode=self.mode, baseline_ref=path, actual_ref=path)

    def compare(self, name: str) -> ComparisonResult:
        baseline = self.store.load(name, self.mode, BASELINE)
        if baseline is None:
            return self._created(self._screenshot(name))

        actual = self.capture(name)
        try:
            result = compare_png(
                baseline.image_bytes,
                actual.image_bytes,
                threshold=self.config.pixel_threshold,
                include_aa=self.config.include_aa,
            )
        except (UnidentifiedImageError, OSError):
            # Missing header or truncated image data
            logger.warning(f"Baseline image for {name} is unreadable; replacing it")
            return self._created(actual)

        if result.match:
            self.store.remove_diff(name)
        else:
            diff_path = self.store.save_diff(name, result.diff_image)
            logger.warning(
                f"Pixel mismatch for {name}: {result.mismatched_pixels}/{result.total_pixels} "
                f"({result.diff_percentage}%), diff saved to {diff_path}"
            )

        return ComparisonResult(
            status=ComparisonStatus.MATCH if result.match else ComparisonStatus.MISMATCH,
            mode=self.mode,
            baseline_ref=self.store.path_for(name, self.mode, BASELINE),
            actual_ref=self.store.path_for(name, self.mode, self.capture_kind),
            pixels=result,
        )
