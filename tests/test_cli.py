import json

from clipnote import cli


def test_parser_exposes_refresh_modes() -> None:
    args = cli.build_parser().parse_args(["refresh", "--mode", "all"])

    assert args.command == "refresh"
    assert args.mode == "all"


def test_classify_prints_reference(capsys) -> None:
    exit_code = cli.main(["classify", "https://youtu.be/dQw4w9WgXcQ"])

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert payload["platform"] == "YOUTUBE"
    assert payload["canonical_url"] == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


def test_classify_unknown_exits_non_zero(capsys) -> None:
    assert cli.main(["classify", "https://example.com"]) == 2
    assert json.loads(capsys.readouterr().out)["platform"] == "UNKNOWN"


def test_parse_notes_file(tmp_path, capsys) -> None:
    notes = tmp_path / "notes.txt"
    notes.write_text("1:05 - 1:40 Great save\n// scratch\n", encoding="utf-8")

    assert cli.main(["parse", str(notes)]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["clips"][0]["start"] == "1:05.0"
    assert payload["clips"][0]["text"] == "Great save"
    assert payload["total_duration"] == 35


def test_parse_with_export(tmp_path, capsys) -> None:
    notes = tmp_path / "notes.txt"
    notes.write_text("0:10 - 0:20 a\n", encoding="utf-8")

    cli.main(["parse", str(notes), "--export", "https://chzzk.naver.com/video/9"])

    assert capsys.readouterr().out.startswith("ffmpeg -i")
