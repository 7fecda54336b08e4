"""Tests for the command line interface."""

from unittest.mock import patch

from typer.testing import CliRunner

from docstruct.cli import app

runner = CliRunner()


class TestConvertCommand:
    """Tests for `docstruct convert`."""

    def test_markdown_to_stdout(self, sample_pdf):
        result = runner.invoke(app, ["convert", str(sample_pdf)])

        assert result.exit_code == 0
        assert "# Report" in result.stdout
        assert "Further notes on the figures appear in the appendix." in result.stdout

    def test_markdown_to_file(self, sample_pdf, tmp_path):
        output = tmp_path / "out.md"
        result = runner.invoke(app, ["convert", str(sample_pdf), "-o", str(output)])

        assert result.exit_code == 0
        assert output.read_text(encoding="utf-8").startswith("# Report\n\n")

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["convert", str(tmp_path / "missing.pdf")])
        assert result.exit_code == 1

    def test_encrypted_file(self, sample_pdf):
        with patch("docstruct.cli.DocumentConverter") as converter_cls:
            converter_cls.return_value.convert_file.side_effect = ValueError("Encrypted PDF not supported")
            result = runner.invoke(app, ["convert", str(sample_pdf)])

        assert result.exit_code == 1

    def test_workers_and_deadline_forwarded(self, sample_pdf):
        with patch("docstruct.cli.DocumentConverter") as converter_cls:
            runner.invoke(app, ["convert", str(sample_pdf), "--workers", "3", "--deadline", "2.5"])

        converter_cls.assert_called_once_with(max_workers=3)
        converter_cls.return_value.convert_file.assert_called_once_with(sample_pdf, deadline=2.5)


class TestFontsCommand:
    """Tests for `docstruct fonts`."""

    def test_lists_clusters(self, sample_pdf):
        result = runner.invoke(app, ["fonts", str(sample_pdf)])

        assert result.exit_code == 0
        assert "heading 1" in result.stdout
        assert "body" in result.stdout
        assert "Dominant font" in result.stdout

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["fonts", str(tmp_path / "missing.pdf")])
        assert result.exit_code == 1
