from pathlib import Path

from sharenite_mirror.cli import build_parser


def test_parser_defaults():
    args = build_parser().parse_args(["tester"])

    assert args.username == "tester"
    assert args.refresh is False
    assert args.covers is False
    assert args.data_dir is None


def test_parser_flags():
    args = build_parser().parse_args(["tester", "--refresh", "--covers", "-v", "--data-dir", "/tmp/mirror"])

    assert args.refresh and args.covers and args.verbose
    assert args.data_dir == Path("/tmp/mirror")
