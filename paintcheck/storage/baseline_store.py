import os
import glob
import logging
from datetime import datetime, timezone
from typing import List, Optional

from PIL import Image
from pydantic import ValidationError

from paintcheck.shared.schemas import Artifact, CaptureMode

logger = logging.getLogger(__name__)

BASELINE = "baseline"
ACTUAL = "actual"

EXTENSIONS = {
    CaptureMode.COMPOSITOR: "json",
    CaptureMode.PIXEL: "png",
}

# Companion screenshot saved beside a fingerprint when capture_image is set
IMAGE_SUFFIX = "-compositor.png"


class ArtifactError(ValueError):
    pass


def utc_timestamp(epoch: Optional[float] = None) -> str:
    if epoch is None:
        return datetime.now(timezone.utc).isoformat()
    return datetime.fromtimestamp(epoch, tz=timezone.utc).isoformat()


class BaselineStore:
    """
    Name-keyed artifacts on disk: `<dir>/<name>.json` for fingerprints,
    `<dir>/<name>.png` for screenshots, `<dir>/<name>-compositor.png` for the
    screenshots taken alongside fingerprints, `<diff_dir>/<name>-diff.png`
    for pixel diffs.
    """

    def __init__(self, baseline_dir: str, actual_dir: str, diff_dir: str):
        self.dirs = {BASELINE: baseline_dir, ACTUAL: actual_dir}
        self.diff_dir = diff_dir
        for d in (baseline_dir, actual_dir, diff_dir):
            os.makedirs(d, exist_ok=True)

    @staticmethod
    def _check_name(name: str):
        if not name or name in (".", "..") or "/" in name or "\\" in name:
            raise ArtifactError(f"Invalid artifact name: {name!r}")

    def path_for(self, name: str, mode: CaptureMode, kind: str = BASELINE) -> str:
        self._check_name(name)
        if kind not in self.dirs:
            raise ArtifactError(f"Unknown artifact kind: {kind!r}")
        return os.path.join(self.dirs[kind], f"{name}.{EXTENSIONS[mode]}")

    def diff_path(self, name: str) -> str:
        self._check_name(name)
        return os.path.join(self.diff_dir, f"{name}-diff.png")

    def image_path(self, name: str, kind: str = BASELINE) -> str:
        directory = os.path.dirname(self.path_for(name, CaptureMode.COMPOSITOR, kind))
        return os.path.join(directory, f"{name}{IMAGE_SUFFIX}")

    def exists(self, name: str, mode: CaptureMode, kind: str = BASELINE) -> bool:
        return os.path.exists(self.path_for(name, mode, kind))

    def save(self, artifact: Artifact, kind: str = ACTUAL) -> str:
        path = self.path_for(artifact.name, artifact.mode, kind)
        if artifact.mode is CaptureMode.PIXEL:
            with open(path, "wb") as f:
                f.write(artifact.image_bytes)
        else:
            with open(path, "w") as f:
                f.write(artifact.to_json())
        logger.debug(f"Saved {kind} artifact {artifact.name} to {path}")
        return path

    def load(self, name: str, mode: CaptureMode, kind: str = BASELINE) -> Optional[Artifact]:
        """Returns the stored artifact, or None when it is missing or unreadable."""
        path = self.path_for(name, mode, kind)
        if not os.path.exists(path):
            return None

        if mode is CaptureMode.PIXEL:
            with open(path, "rb") as f:
                data = f.read()
            return Artifact(
                name=name,
                timestamp=utc_timestamp(os.path.getmtime(path)),
                mode=mode,
                image_bytes=data,
            )

        with open(path, "rb") as f:
            raw = f.read()
        # Bad UTF-8 surfaces as a ValidationError too
        try:
            return Artifact.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring unreadable {kind} artifact {path}: {e.error_count()} validation errors")
            return None

    def save_image(self, name: str, png: bytes, kind: str = ACTUAL) -> str:
        path = self.image_path(name, kind)
        with open(path, "wb") as f:
            f.write(png)
        logger.debug(f"Saved {kind} screenshot for {name} to {path}")
        return path

    def save_diff(self, name: str, image: Image.Image) -> str:
        path = self.diff_path(name)
        image.save(path, format="PNG")
        return path

    def remove_diff(self, name: str):
        self._remove(self.diff_path(name))

    @staticmethod
    def _remove(path: str) -> bool:
        try:
            os.remove(path)
            return True
        except FileNotFoundError:
            return False

    def reset(self, name: Optional[str] = None) -> List[str]:
        """Deletes the stored artifacts of one name, or of every name. Returns removed paths."""
        if name is not None:
            candidates = [self.path_for(name, mode, kind) for kind in self.dirs for mode in EXTENSIONS]
            candidates.extend(self.image_path(name, kind) for kind in self.dirs)
            candidates.append(self.diff_path(name))
        else:
            candidates = []
            for d in list(self.dirs.values()) + [self.diff_dir]:
                for ext in set(EXTENSIONS.values()):
                    candidates.extend(glob.glob(os.path.join(d, f"*.{ext}")))
        removed = [path for path in candidates if self._remove(path)]
        logger.info(f"Removed {len(removed)} stored artifacts")
        return removed
