import pytest

from tile_stitcher.__main__ import build_parser, config_from_args, confirm, main, run
from tile_stitcher.models import RetrievalReport

from tests.helpers import RED, write_tile


def _argv(tmp_path, *extra):
    return ["-z", "3", "-t", "16", "-X", "1", "-Y", "1", "-l", str(tmp_path), "-p", "Z_X_Y.png", *extra]


def _answers(*values):
    it = iter(values)
    return lambda _prompt: next(it)


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args(["-z", "2", "-t", "256", "-X", "3", "-Y", "4"])
        assert args.Pattern == "Z_X_Y.jpg"
        assert args.Xmin == 0 and args.Ymin == 0
        assert args.OutputFile == ""
        assert args.Verbose is True
        assert args.Download is False and args.StitchImage is False

    def test_long_options(self):
        args = build_parser().parse_args(
            [
                "--ZoomLevel", "5", "--TileSize", "512", "--Xmin", "1", "--Xmax", "2",
                "--Ymin", "3", "--Ymax", "4", "--DownloadRoot", "http://t/", "--Download",
                "--StitchImage", "--ForceStitch", "--no-Verbose", "--Concurrency", "4",
            ]
        )
        config = config_from_args(args)
        assert config.zoom_level == 5
        assert config.tile_size == 512
        assert config.x_range == (1, 2)
        assert config.y_range == (3, 4)
        assert config.download and config.stitch and config.force_confirm
        assert config.verbose is False
        assert config.concurrency == 4

    def test_missing_required_option_exits_with_usage_error(self):
        with pytest.raises(SystemExit) as excinfo:
            main(["-z", "3", "-X", "1", "-Y", "1"])
        assert excinfo.value.code == 2


class TestConfirm:
    def test_repeats_until_yes_or_no(self):
        assert confirm(_answers("maybe", "", "Y")) is True
        assert confirm(_answers("x", "n")) is False

    def test_end_of_input_means_no(self):
        def eof(_prompt):
            raise EOFError

        assert confirm(eof) is False


class TestMain:
    def test_bad_range_is_a_configuration_error(self, tmp_path, capsys):
        code = main(["-z", "3", "-t", "16", "-x", "2", "-X", "1", "-Y", "1", "-l", str(tmp_path), "-s", "-f"])
        assert code == 1
        assert "Configuration error" in capsys.readouterr().err
        assert list(tmp_path.iterdir()) == []

    def test_forced_stitch(self, tmp_path, capsys):
        write_tile(tmp_path / "3_0_0.png", 16, RED)

        code = main(_argv(tmp_path, "-s", "-f"))

        assert code == 0
        assert (tmp_path / "stitched_0-0_to_1-1.jpg").exists()
        out = capsys.readouterr().out
        assert "Image will be 32 x 32" in out
        assert "missing 3" in out

    def test_unwritable_output_exits_non_zero(self, tmp_path, capsys):
        code = main(_argv(tmp_path, "-s", "-f", "-o", str(tmp_path / "nope" / "x.jpg")))
        assert code == 1
        assert "nope" in capsys.readouterr().err

    def test_nothing_to_do(self, tmp_path):
        assert main(_argv(tmp_path)) == 0
        assert list(tmp_path.iterdir()) == []


class TestRun:
    def test_declined_prompt_does_nothing(self, tmp_path, capsys):
        config = config_from_args(build_parser().parse_args(_argv(tmp_path, "-s")))

        assert run(config, ask=_answers("n")) == 0

        assert list(tmp_path.iterdir()) == []
        assert "Job canceled by user." in capsys.readouterr().out

    def test_accepted_prompt_stitches(self, tmp_path):
        config = config_from_args(build_parser().parse_args(_argv(tmp_path, "-s")))
        assert run(config, ask=_answers("y")) == 0
        assert (tmp_path / "stitched_0-0_to_1-1.jpg").exists()

    def test_download_passes_concurrency(self, tmp_path, monkeypatch, capsys):
        calls = []

        def fake_retrieve(config, concurrency, cancel_flag=None):
            calls.append((config.download_root, concurrency))
            return RetrievalReport(fetched=3, skipped=1)

        monkeypatch.setattr("tile_stitcher.__main__.retrieve_concurrent", fake_retrieve)
        args = build_parser().parse_args(_argv(tmp_path, "-d", "-u", "http://tiles.test/", "-f", "-c", "2"))

        assert run(config_from_args(args)) == 0

        assert calls == [("http://tiles.test/", 2)]
        assert "fetched 3, skipped 1, failed 0" in capsys.readouterr().out

    def test_download_without_root_is_skipped(self, tmp_path, monkeypatch):
        calls = []
        monkeypatch.setattr(
            "tile_stitcher.__main__.retrieve_concurrent",
            lambda *a, **kw: calls.append(a) or RetrievalReport(),
        )
        args = build_parser().parse_args(_argv(tmp_path, "-d", "-f"))

        assert run(config_from_args(args)) == 0
        assert calls == []
