"""Tests for the subcommand dispatcher."""

import pytest


class TestMainDispatcher:
    def test_no_subcommand_shows_help(self, capsys):
        from songreel.main import main

        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code != 0  # should error without subcommand

    def test_new_subcommand_exists(self):
        """Verify new subcommand is registered (will fail on missing --clips)."""
        from songreel.main import main

        with pytest.raises(SystemExit):
            main(["new"])  # missing required args, but subcommand recognized

    def test_export_subcommand_exists(self):
        from songreel.main import main

        with pytest.raises(SystemExit):
            main(["export"])

    def test_transcribe_subcommand_exists(self):
        from songreel.main import main

        with pytest.raises(SystemExit):
            main(["transcribe"])

    def test_invalid_subcommand_errors(self, capsys):
        from songreel.main import main

        with pytest.raises(SystemExit) as exc_info:
            main(["nonexistent"])
        assert exc_info.value.code != 0
