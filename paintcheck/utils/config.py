import os
import yaml
from dataclasses import dataclass, fields
from typing import Optional, Mapping

TRUTHY = ("1", "true", "yes", "on")


@dataclass
class ComparisonConfig:
    # Storage
    baseline_dir: str = "baseline-data"
    actual_dir: str = "actual-data"
    diff_dir: str = "diff-images"
    update_baseline: bool = False  # write captures straight into baseline_dir

    # Strategy: "compositor", "pixel", or None to infer from the environment
    mode: Optional[str] = None

    # Pixel comparison
    pixel_threshold: float = 0.1
    include_aa: bool = True

    # Browser
    headless: bool = True
    viewport_width: int = 1280
    viewport_height: int = 720
    device_scale_factor: int = 1

    # Compositor capture
    layer_timeout: float = 1.0  # seconds to wait for LayerTree.layerTreeDidChange
    include_dom_text: bool = True
    stable_order: bool = False
    script_text_limit: int = 500
    capture_image: bool = False  # also save a full-page screenshot beside each fingerprint

    @classmethod
    def load(cls, path: Optional[str] = None) -> "ComparisonConfig":
        if not path:
            return cls()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def from_env(cls, path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> "ComparisonConfig":
        """Loads `path` (if any) and overlays UPDATE_BASELINE / PAINTCHECK_MODE."""
        environ = os.environ if environ is None else environ
        config = cls.load(path)
        if "UPDATE_BASELINE" in environ:
            config.update_baseline = environ["UPDATE_BASELINE"].strip().lower() in TRUTHY
        if environ.get("PAINTCHECK_MODE"):
            config.mode = environ["PAINTCHECK_MODE"].strip().lower()
        return config

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}
