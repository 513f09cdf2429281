from pathlib import Path

from tests._fake_host import FakeHost, make_asset
from unity_font_importer_core import (
    ErrorReport,
    ImportFontOption,
    find_font_file,
    import_batch,
    import_batch_asset,
    sanitize_file_name,
)


def test_cancelled_folder_prompt_touches_nothing() -> None:
    """KR: 폴더 선택을 취소하면 아무 에셋도 건드리지 않고 False인지 검증합니다.
    EN: Cancelling the folder prompt touches no asset and returns False.
    """
    host = FakeHost(folder_answer=None)
    selection = [
        host.add_font(make_asset("sharedassets0.assets", 1), "A"),
        host.add_font(make_asset("sharedassets0.assets", 2), "B"),
    ]
    assert import_batch(host, selection, lang="en") is False
    assert host.update_calls == []
    assert host.messages == []


def test_partial_matches_update_only_matching_assets(tmp_path: Path) -> None:
    """KR: N개 중 M개만 파일이 있을 때 M개만 교체되고 나머지는 입력 순서대로 보고되는지 검증합니다.
    EN: With M of N files present, exactly M assets change and the rest are reported in input order.
    """
    (tmp_path / "Alpha.ttf").write_bytes(b"alpha")
    (tmp_path / "Gamma.otf").write_bytes(b"gamma")
    host = FakeHost(folder_answer=str(tmp_path))
    selection = [
        host.add_font(make_asset("sharedassets0.assets", 1), "Alpha"),
        host.add_font(make_asset("sharedassets0.assets", 2), "Beta"),
        host.add_font(make_asset("sharedassets1.assets", 3), "Gamma"),
        host.add_font(make_asset("sharedassets1.assets", 4), "Delta"),
    ]

    assert import_batch(host, selection, lang="en") is True
    assert host.font_data_of(selection[0]) == b"alpha"
    assert host.font_data_of(selection[2]) == b"gamma"
    assert host.font_data_of(selection[1]) == b"old"
    assert host.update_calls == [("sharedassets0.assets", 1), ("sharedassets1.assets", 3)]
    assert host.messages == [(
        "Error",
        "[sharedassets0.assets/2]: font file not found\n[sharedassets1.assets/4]: font file not found",
    )]


def test_no_matches_returns_false_and_dirties_nothing(tmp_path: Path) -> None:
    """KR: 일치하는 파일이 하나도 없으면 False이고 더티 표시가 없는지 검증합니다.
    EN: With no matching file the batch returns False and dirties nothing.
    """
    host = FakeHost(folder_answer=str(tmp_path))
    selection = [
        host.add_font(make_asset("sharedassets0.assets", 1), "A"),
        host.add_font(make_asset("sharedassets0.assets", 2), "B"),
    ]
    assert import_batch(host, selection, lang="en") is False
    assert host.dirty_calls == []
    assert len(host.messages) == 1


def test_shared_container_is_dirtied_once(tmp_path: Path) -> None:
    """KR: 한 컨테이너의 두 에셋이 모두 성공해도 더티 표시는 한 번인지 검증합니다.
    EN: A container with two updated assets is dirtied exactly once.
    """
    (tmp_path / "A.ttf").write_bytes(b"a")
    (tmp_path / "B.ttf").write_bytes(b"b")
    (tmp_path / "C.ttf").write_bytes(b"c")
    host = FakeHost(folder_answer=str(tmp_path))
    selection = [
        host.add_font(make_asset("sharedassets0.assets", 1), "A"),
        host.add_font(make_asset("resources.assets", 5), "C"),
        host.add_font(make_asset("sharedassets0.assets", 2), "B"),
    ]

    assert import_batch(host, selection, lang="en") is True
    assert host.dirty_calls == ["sharedassets0.assets", "resources.assets"]
    assert host.messages == []


def test_container_with_only_failures_is_not_dirtied(tmp_path: Path) -> None:
    """KR: 성공이 없는 컨테이너는 더티 표시되지 않는지 검증합니다.
    EN: A container without any successful change is not dirtied.
    """
    (tmp_path / "A.ttf").write_bytes(b"a")
    (tmp_path / "B.ttf").write_bytes(b"b")
    host = FakeHost(folder_answer=str(tmp_path))
    selection = [
        host.add_font(make_asset("sharedassets0.assets", 1), "A"),
        host.add_font(make_asset("sharedassets1.assets", 2), "B"),
    ]
    host.reject_writes.add(("sharedassets1.assets", 2))

    assert import_batch(host, selection, lang="en") is True
    assert host.dirty_calls == ["sharedassets0.assets"]
    assert host.messages == [("Error", "[sharedassets1.assets/2]: malformed payload")]


def test_identical_sanitized_names_both_import_same_file(tmp_path: Path) -> None:
    """KR: 정리 후 이름이 같은 두 에셋이 같은 파일을 읽어 둘 다 교체되는지 검증합니다(중복 허용).
    EN: Two assets sanitizing to the same name both import the same file (duplication accepted).
    """
    (tmp_path / "UI_Font.ttf").write_bytes(b"shared")
    host = FakeHost(folder_answer=str(tmp_path))
    selection = [
        host.add_font(make_asset("sharedassets0.assets", 1), "UI/Font"),
        host.add_font(make_asset("sharedassets0.assets", 2), "UI:Font"),
    ]

    assert import_batch(host, selection, lang="en") is True
    assert host.font_data_of(selection[0]) == b"shared"
    assert host.font_data_of(selection[1]) == b"shared"
    assert host.messages == []


def test_unreadable_asset_does_not_abort_batch(tmp_path: Path) -> None:
    """KR: 읽을 수 없는 에셋이 있어도 나머지 배치가 계속되는지 검증합니다.
    EN: An unreadable asset does not abort the rest of the batch.
    """
    (tmp_path / "B.ttf").write_bytes(b"b")
    host = FakeHost(folder_answer=str(tmp_path))
    selection = [
        host.add_font(make_asset("sharedassets0.assets", 1), "A"),
        host.add_font(make_asset("sharedassets0.assets", 2), "B"),
    ]
    host.unreadable.add(("sharedassets0.assets", 1))

    assert import_batch(host, selection, lang="en") is True
    assert host.font_data_of(selection[1]) == b"b"
    assert host.messages == [("Error", "[sharedassets0.assets/1]: failed to read")]


def test_report_is_truncated_to_first_twenty_lines(tmp_path: Path) -> None:
    """KR: 25건의 실패 중 처음 20줄만 보고되는지 검증합니다.
    EN: Only the first 20 of 25 failures are presented.
    """
    host = FakeHost(folder_answer=str(tmp_path))
    selection = [host.add_font(make_asset("sharedassets0.assets", i), f"Missing{i}") for i in range(1, 26)]

    assert import_batch(host, selection, lang="en") is False
    assert len(host.messages) == 1
    lines = host.messages[0][1].split("\n")
    assert len(lines) == 20
    assert lines[0] == "[sharedassets0.assets/1]: font file not found"
    assert lines[-1] == "[sharedassets0.assets/20]: font file not found"


def test_option_dispatches_multi_selection_to_folder_prompt(tmp_path: Path) -> None:
    """KR: 선택이 여럿이면 폴더 선택 경로로 분기하는지 검증합니다.
    EN: A multi-asset selection goes through the folder prompt path.
    """
    (tmp_path / "A.ttf").write_bytes(b"a")
    host = FakeHost(file_answer=["unused.ttf"], folder_answer=str(tmp_path))
    selection = [
        host.add_font(make_asset("sharedassets0.assets", 1), "A"),
        host.add_font(make_asset("sharedassets0.assets", 2), "B"),
    ]
    assert ImportFontOption(lang="en").execute(host, "import", selection) is True
    assert host.file_dialog_calls == []


def test_batch_asset_outcomes(tmp_path: Path) -> None:
    """KR: 에셋별 결과 종류와 보고 줄 형식을 검증합니다.
    EN: Validate per-asset outcome kinds and report line format.
    """
    (tmp_path / "Ok.ttf").write_bytes(b"ok")
    host = FakeHost()
    ok = host.add_font(make_asset("level0", 10), "Ok")
    missing = host.add_font(make_asset("level0", 11), "Missing")
    unreadable = host.add_font(make_asset("level0", 12), "Broken")
    host.unreadable.add(("level0", 12))

    ok_outcome = import_batch_asset(host, ok, str(tmp_path))
    assert ok_outcome.succeeded
    assert ok_outcome.error_line("en") is None

    missing_outcome = import_batch_asset(host, missing, str(tmp_path))
    assert missing_outcome.kind == "file_not_found"
    assert missing_outcome.error_line("en") == "[level0/11]: font file not found"

    unreadable_outcome = import_batch_asset(host, unreadable, str(tmp_path))
    assert unreadable_outcome.kind == "parse_error"
    assert unreadable_outcome.error_line("en") == "[level0/12]: failed to read"


def test_ttf_wins_over_otf(tmp_path: Path) -> None:
    """KR: 같은 이름의 ttf/otf가 모두 있으면 ttf가 선택되는지 검증합니다.
    EN: The .ttf candidate wins when both .ttf and .otf exist.
    """
    (tmp_path / "Body.otf").write_bytes(b"otf")
    assert find_font_file(str(tmp_path), "Body") == str(tmp_path / "Body.otf")
    (tmp_path / "Body.ttf").write_bytes(b"ttf")
    assert find_font_file(str(tmp_path), "Body") == str(tmp_path / "Body.ttf")
    assert find_font_file(str(tmp_path), "Other") is None


def test_font_lookup_is_not_recursive(tmp_path: Path) -> None:
    """KR: 하위 폴더의 파일은 찾지 않는지 검증합니다.
    EN: Files in subfolders are not matched.
    """
    nested = tmp_path / "nested"
    nested.mkdir()
    (nested / "Body.ttf").write_bytes(b"ttf")
    assert find_font_file(str(tmp_path), "Body") is None


def test_sanitize_file_name() -> None:
    """KR: 파일 이름에 쓸 수 없는 문자만 치환되는지 검증합니다.
    EN: Only characters invalid in file names are replaced.
    """
    assert sanitize_file_name("NanumGothic SDF") == "NanumGothic SDF"
    assert sanitize_file_name('a<b>c:d"e/f\\g|h?i*j') == "a_b_c_d_e_f_g_h_i_j"
    assert sanitize_file_name("tab\there") == "tab_here"
    assert sanitize_file_name("나눔고딕") == "나눔고딕"
    assert sanitize_file_name("") == ""


def test_error_report_render() -> None:
    """KR: 오류 보고서가 줄 단위로 모이고 잘리는지 검증합니다.
    EN: The error report collects lines and truncates them.
    """
    report = ErrorReport()
    assert not report
    assert report.render() == ""

    for i in range(3):
        report.add(f"line {i}")
    assert report
    assert len(report) == 3
    assert report.render() == "line 0\nline 1\nline 2"
    assert report.render(max_lines=2) == "line 0\nline 1"
