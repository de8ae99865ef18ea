"""Tests for the command line interface."""

from unittest.mock import patch

from typer.testing import CliRunner

from idextract.cli import app
from idextract.models import HealthReport, HealthStatus
from conftest import encode_image, gradient_pixels

runner = CliRunner()


class TestCli:
    def test_fields(self):
        result = runner.invoke(app, ["fields"])
        assert result.exit_code == 0
        assert "cnp" in result.output

    def test_validate_ok(self, tmp_path, jpeg_bytes):
        path = tmp_path / "card.jpg"
        path.write_bytes(jpeg_bytes)

        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 0
        assert "Valid" in result.output

    def test_validate_rejects_mismatched_content(self, tmp_path, png_bytes):
        path = tmp_path / "card.jpg"
        path.write_bytes(png_bytes)

        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 1
        assert "INVALID_SIGNATURE" in result.output

    def test_process_writes_output(self, tmp_path, output_dir):
        source = tmp_path / "card.png"
        source.write_bytes(encode_image(gradient_pixels(1600, 1000), "PNG"))
        target = output_dir / "card.jpg"

        result = runner.invoke(app, ["process", str(source), "--output", str(target)])

        assert result.exit_code == 0, result.output
        assert target.read_bytes()[:3] == b"\xff\xd8\xff"

    def test_process_grayscale(self, tmp_path):
        source = tmp_path / "card.png"
        source.write_bytes(encode_image(gradient_pixels(800, 500), "PNG"))

        result = runner.invoke(app, ["process", str(source), "--grayscale", "--no-exposure"])

        assert result.exit_code == 0, result.output
        assert "grayscale" in result.output

    def test_batch_reports_failures(self, tmp_path, jpeg_bytes):
        (tmp_path / "good.jpg").write_bytes(jpeg_bytes)
        (tmp_path / "bad.jpg").write_bytes(b"garbage")

        result = runner.invoke(app, ["batch", str(tmp_path)])

        assert result.exit_code == 1
        assert "1 succeeded, 1 failed" in result.output

    def test_health(self):
        report = HealthReport(
            status=HealthStatus.DEGRADED,
            service_available=True,
            model_available=False,
            model="qwen2.5vl:7b",
            message="Model qwen2.5vl:7b is not available",
        )
        with patch("idextract.cli.check_health", return_value=report):
            result = runner.invoke(app, ["health"])

        assert result.exit_code == 0
        assert "degraded" in result.output
