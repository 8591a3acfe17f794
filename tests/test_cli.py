from unittest.mock import patch
from click.testing import CliRunner
from paintcheck.main import cli
from paintcheck.shared.schemas import CaptureMode, ComparisonResult, ComparisonStatus, PixelComparison


@patch("paintcheck.main.ComparisonService")
def test_compare_mismatch_exits_nonzero(mock_service_class):
    service = mock_service_class.return_value.__enter__.return_value
    service.compare.return_value = ComparisonResult(
        status=ComparisonStatus.MISMATCH,
        mode=CaptureMode.PIXEL,
        baseline_ref="baseline-data/home.png",
        actual_ref="actual-data/home.png",
        pixels=PixelComparison(match=False, mismatched_pixels=5, total_pixels=100, diff_percentage=5.0),
    )

    result = CliRunner().invoke(cli, ["compare", "home", "--url", "file:///tmp/page.html", "--mode", "pixel"])

    assert result.exit_code == 1
    assert "MISMATCH" in result.output
    assert "5.0%" in result.output
    service.compare.assert_called_once_with("home", url="file:///tmp/page.html")
    config = mock_service_class.call_args[0][0]
    assert config.mode == "pixel"


@patch("paintcheck.main.ComparisonService")
def test_compare_created(mock_service_class):
    service = mock_service_class.return_value.__enter__.return_value
    service.compare.return_value = ComparisonResult(
        status=ComparisonStatus.CREATED, mode=CaptureMode.COMPOSITOR, baseline_ref="0123456789abcdef",
    )

    result = CliRunner().invoke(cli, ["compare", "home", "--url", "file:///tmp/page.html"])
    assert result.exit_code == 0
    assert "Baseline created: 0123456789abcdef" in result.output


def test_reset_with_config(tmp_path):
    config = tmp_path / "paintcheck.yaml"
    config.write_text(
        f"baseline_dir: {tmp_path / 'b'}\nactual_dir: {tmp_path / 'a'}\ndiff_dir: {tmp_path / 'd'}\n"
    )
    (tmp_path / "b").mkdir()
    (tmp_path / "b" / "home.json").write_text("{}")

    result = CliRunner().invoke(cli, ["reset", "home", "--config", str(config)])
    assert result.exit_code == 0
    assert "Removed 1 files" in result.output
    assert not (tmp_path / "b" / "home.json").exists()
