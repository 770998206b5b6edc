"""
Tests for configuration loading and the command line.
"""

import pytest

from peelcal.cli import build_parser, config_from_args, main
from peelcal.pipeline.config_parser import COMMANDS, CalibrationConfig, load_config, parse_config
from peelcal.pipeline.runner import run_command


class TestCalibrationConfig:
    """Test defaults, validation and per-command settings."""

    def test_defaults(self):
        config = CalibrationConfig()
        assert config.maxiter == 20
        assert config.tolerance == 1e-3
        assert config.peeliter == 3
        assert config.minuvw == 0.0
        assert config.workers is None
        assert config.validate() is config

    @pytest.mark.parametrize("kwargs", [
        {"maxiter": 0},
        {"maxiter": True},
        {"maxiter": 2.5},
        {"tolerance": 0.0},
        {"peeliter": -1},
        {"minuvw": -1.0},
        {"workers": 0},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            CalibrationConfig(**kwargs).validate()

    @pytest.mark.parametrize("name", list(COMMANDS))
    def test_for_command(self, name):
        config = CalibrationConfig.for_command(name)
        assert (config.full, config.collapse_frequency) == COMMANDS[name]

    def test_variant_table(self):
        assert COMMANDS["peel"] == (True, False)
        assert COMMANDS["zest"] == (False, False)
        assert COMMANDS["shave"] == (True, True)
        assert COMMANDS["prune"] == (False, True)
        assert COMMANDS["polcal"] == (True, False)

    def test_for_command_overrides(self):
        base = CalibrationConfig(maxiter=50, peeliter=7)
        config = CalibrationConfig.for_command("zest", base=base, maxiter=None, tolerance=1e-5)
        assert config.maxiter == 50
        assert config.peeliter == 7
        assert config.tolerance == 1e-5

    def test_command_switches_win(self):
        base = CalibrationConfig(full=True, collapse_frequency=True)
        config = CalibrationConfig.for_command("gaincal", base=base)
        assert not config.full
        assert not config.collapse_frequency

    def test_unknown_command(self):
        with pytest.raises(ValueError):
            CalibrationConfig.for_command("selfcal")


class TestLoadConfig:
    """Test YAML configuration files."""

    def test_load(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("maxiter: 50\ntolerance: 1.0e-4\npeeliter: 5\nminuvw: 10\nworkers: 2\n")
        config = load_config(str(path))
        assert config.maxiter == 50
        assert config.tolerance == 1e-4
        assert config.peeliter == 5
        assert config.minuvw == 10.0
        assert config.workers == 2

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(str(path)) == CalibrationConfig()

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError):
            load_config(str(path))

    def test_dashed_keys(self):
        config = parse_config({"collapse-frequency": True, "maxiter": "30"})
        assert config.collapse_frequency
        assert config.maxiter == 30

    def test_unknown_key(self):
        with pytest.raises(ValueError):
            parse_config({"max_iterations": 10})


class TestCLI:
    """Test argument parsing."""

    def test_gaincal(self):
        args = build_parser().parse_args(
            ["gaincal", "data.ms", "--sources", "sky.json", "--output", "cal.h5", "--maxiter", "40"]
        )
        assert args.command == "gaincal"
        assert args.beam == "sine"
        config = config_from_args(args)
        assert config.maxiter == 40
        assert config.tolerance == 1e-3
        assert not config.full

    def test_gaincal_needs_output(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["gaincal", "data.ms", "--sources", "sky.json"])

    def test_peel_output_optional(self):
        args = build_parser().parse_args(["shave", "data.ms", "-s", "sky.json", "--peeliter", "4"])
        assert args.output is None
        config = config_from_args(args)
        assert config.peeliter == 4
        assert config.full
        assert config.collapse_frequency

    def test_applycal(self):
        args = build_parser().parse_args(["applycal", "data.ms", "-j", "cal.h5", "--corrected"])
        assert args.calibration == "cal.h5"
        assert args.corrected
        assert not args.force_imaging

    def test_command_line_beats_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("maxiter: 50\ntolerance: 1.0e-4\n")
        args = build_parser().parse_args(
            ["zest", "data.ms", "-s", "sky.json", "-c", str(path), "--maxiter", "10"]
        )
        config = config_from_args(args)
        assert config.maxiter == 10
        assert config.tolerance == 1e-4

    def test_missing_ms(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main(["zest", str(tmp_path / "missing.ms"), "-s", "sky.json"])
        assert excinfo.value.code == 1
        assert "MS not found" in capsys.readouterr().err

    def test_no_command(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main([])
        assert excinfo.value.code == 0

    def test_unknown_command(self):
        with pytest.raises(ValueError):
            run_command("selfcal", "data.ms")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
