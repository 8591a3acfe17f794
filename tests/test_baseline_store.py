import json
import os
import pytest
from PIL import Image
from pydantic import ValidationError
from paintcheck.pixel.pixel_diff import to_png
from paintcheck.shared.schemas import Artifact, ArtifactMetadata, CaptureMode, Command, Viewport
from paintcheck.storage.baseline_store import ACTUAL, BASELINE, ArtifactError, BaselineStore


@pytest.fixture
def store(tmp_path):
    return BaselineStore(str(tmp_path / "baseline"), str(tmp_path / "actual"), str(tmp_path / "diff"))


def fingerprint_artifact(name="home", digest="0123456789abcdef"):
    return Artifact(
        name=name,
        timestamp="2026-01-01T00:00:00+00:00",
        mode=CaptureMode.COMPOSITOR,
        hash=digest,
        layer_count=2,
        commands=[Command(method="drawRect", params={"x": 1})],
        metadata=ArtifactMetadata(url="file:///page.html", viewport=Viewport(width=1280, height=720), user_agent="UA"),
    )


def pixel_artifact(name="home"):
    return Artifact(
        name=name,
        timestamp="2026-01-01T00:00:00+00:00",
        mode=CaptureMode.PIXEL,
        image_bytes=to_png(Image.new("RGB", (4, 4), "white")),
    )


def test_fingerprint_document_schema(store):
    path = store.save(fingerprint_artifact(), BASELINE)
    assert path.endswith(os.path.join("baseline", "home.json"))

    with open(path) as f:
        doc = json.load(f)
    assert doc["hash"] == "0123456789abcdef"
    assert doc["mode"] == "compositor"
    assert doc["layerCount"] == 2
    assert doc["commands"] == [{"method": "drawRect", "params": {"x": 1}}]
    assert doc["metadata"] == {"url": "file:///page.html", "viewport": {"width": 1280, "height": 720}, "userAgent": "UA"}
    assert "error" not in doc
    assert "image_bytes" not in doc


def test_fingerprint_round_trip(store):
    original = fingerprint_artifact()
    store.save(original, ACTUAL)
    assert store.load("home", CaptureMode.COMPOSITOR, ACTUAL) == original


def test_pixel_round_trip(store):
    artifact = pixel_artifact()
    path = store.save(artifact, BASELINE)
    assert path.endswith("home.png")

    loaded = store.load("home", CaptureMode.PIXEL, BASELINE)
    assert loaded.image_bytes == artifact.image_bytes
    assert loaded.commands is None


def test_missing_artifact_is_none(store):
    assert store.load("nope", CaptureMode.COMPOSITOR) is None
    assert store.load("nope", CaptureMode.PIXEL) is None
    assert not store.exists("nope", CaptureMode.PIXEL)


def test_unreadable_baseline_is_none(store):
    with open(store.path_for("broken", CaptureMode.COMPOSITOR), "w") as f:
        f.write("{not json")
    assert store.load("broken", CaptureMode.COMPOSITOR) is None


@pytest.mark.parametrize("name", ["", "..", "a/b", "a\\b"])
def test_invalid_names(store, name):
    with pytest.raises(ArtifactError):
        store.path_for(name, CaptureMode.COMPOSITOR)


def test_diff_image_save_and_remove(store):
    path = store.save_diff("home", Image.new("RGBA", (2, 2), (255, 0, 0, 255)))
    assert os.path.exists(path)
    store.remove_diff("home")
    assert not os.path.exists(path)
    # removing a diff that is not there is fine
    store.remove_diff("home")


def test_reset_one_name(store):
    store.save(fingerprint_artifact("a"), BASELINE)
    store.save(fingerprint_artifact("b"), BASELINE)
    store.save(pixel_artifact("a"), ACTUAL)

    removed = store.reset("a")
    assert len(removed) == 2
    assert store.exists("b", CaptureMode.COMPOSITOR)


def test_reset_everything(store):
    store.save(fingerprint_artifact("a"), BASELINE)
    store.save(pixel_artifact("b"), ACTUAL)
    store.save_diff("b", Image.new("RGBA", (2, 2)))

    assert len(store.reset()) == 3
    assert store.reset() == []


def test_artifact_payload_must_match_mode():
    with pytest.raises(ValidationError):
        Artifact(name="x", timestamp="t", mode=CaptureMode.COMPOSITOR, hash="0" * 16)
    with pytest.raises(ValidationError):
        Artifact(name="x", timestamp="t", mode=CaptureMode.PIXEL, image_bytes=b"png", commands=[])


def test_error_artifact_flag():
    artifact = fingerprint_artifact(digest="error-1700000000000")
    assert artifact.is_error
    assert not fingerprint_artifact().is_error


def test_non_utf8_fingerprint_is_treated_as_missing(store):
    with open(store.path_for("home", CaptureMode.COMPOSITOR, BASELINE), "wb") as f:
        f.write(b"\xff\xfe{garbage")
    assert store.load("home", CaptureMode.COMPOSITOR, BASELINE) is None


def test_companion_image_sits_beside_fingerprint(store):
    store.save(fingerprint_artifact(), BASELINE)
    path = store.save_image("home", to_png(Image.new("RGB", (4, 4), "white")), BASELINE)

    assert path.endswith(os.path.join("baseline", "home-compositor.png"))
    assert path != store.path_for("home", CaptureMode.PIXEL, BASELINE)
    assert len(store.reset("home")) == 2
    assert not os.path.exists(path)
