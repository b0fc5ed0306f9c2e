"""Tests for the CLI reference generator script."""

from scripts.generate_cli_reference import generate_cli_reference


class TestGenerateCliReference:
    """Tests for generate_cli_reference."""

    def test_lists_every_command(self) -> None:
        """Every registered command should get a section."""
        page = generate_cli_reference()
        for command in ("check", "init", "quote", "rate", "stats"):
            assert f"### {command}" in page

    def test_documents_arguments_and_options(self) -> None:
        """Arguments and option flags should be listed."""
        page = generate_cli_reference()

        assert "ledgerscope rate SOURCE TARGET [OPTIONS]" in page
        assert "`--prices`, `-p`" in page
        assert "`--verbose`, `-v`" in page
