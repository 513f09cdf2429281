from __future__ import annotations

import argparse
import io
import os
import sys
import traceback as tb_module
from typing import NoReturn

import UnityPy

from unity_font_importer_core import (
    FontImportError,
    ImportFontOption,
    Language,
)
from unity_font_importer_workspace import (
    ConsoleHost,
    FontWorkspace,
    cleanup_registered_temp_dirs,
)


class TeeWriter:
    """KR: stdout/stderr를 콘솔과 로그 파일에 동시에 기록합니다.
    EN: Mirror stdout/stderr to both console and log file.
    """

    def __init__(self, file: io.TextIOBase, original_stream: io.TextIOBase) -> None:
        self.file = file
        self.original = original_stream

    def write(self, data: str) -> int:
        self.original.write(data)
        self.file.write(data)
        self.file.flush()
        return len(data)

    def flush(self) -> None:
        self.original.flush()
        self.file.flush()

    def fileno(self) -> int:
        return self.original.fileno()

    @property
    def encoding(self) -> str:
        return self.original.encoding


def get_script_dir() -> str:
    """KR: 실행 기준 디렉터리(스크립트/배포 바이너리)를 반환합니다.
    EN: Return runtime directory for script or frozen executable.
    """
    if getattr(sys, "frozen", False):
        return os.path.dirname(sys.executable)
    return os.path.dirname(os.path.abspath(__file__))


def exit_with_error(message: str, lang: Language = "ko") -> NoReturn:
    """KR: 로컬라이즈된 오류 메시지를 출력하고 종료합니다.
    KR: 터미널에서 실행 중일 때만 엔터 입력을 기다립니다.
    EN: Print localized error message and terminate the process.
    EN: Waits for Enter only when attached to a terminal.
    """
    if lang == "ko":
        print(f"오류: {message}")
    else:
        print(f"Error: {message}")
    if sys.stdin is not None and sys.stdin.isatty():
        if lang == "ko":
            input("\n엔터를 눌러 종료...")
        else:
            input("\nPress Enter to exit...")
    sys.exit(1)


def warn_unitypy_version(
    expected_major_minor: tuple[int, int] = (1, 25),
    lang: Language = "ko",
) -> None:
    """KR: UnityPy 버전이 권장 검증 버전과 다르면 경고합니다.
    EN: Warn when the UnityPy version differs from the validated one.
    """
    version = getattr(UnityPy, "__version__", "")
    try:
        parts = version.split(".")
        major = int(parts[0])
        minor = int(parts[1])
    except (ValueError, IndexError, AttributeError):
        if lang == "ko":
            print(f"[경고] UnityPy 버전을 확인할 수 없습니다: '{version}'")
        else:
            print(f"[Warning] Could not determine UnityPy version: '{version}'")
        return

    if (major, minor) != expected_major_minor:
        expected = f"{expected_major_minor[0]}.{expected_major_minor[1]}.x"
        if lang == "ko":
            print(f"[경고] 현재 UnityPy {version} 사용 중입니다. 권장 검증 버전은 {expected}입니다.")
        else:
            print(f"[Warning] Using UnityPy {version}. Recommended validated version is {expected}.")


def build_parser(lang: Language = "ko") -> argparse.ArgumentParser:
    if lang == "ko":
        description = "Unity Font 에셋의 폰트 데이터를 ttf/otf 파일로 교체합니다."
        epilog = """
예시:
  %(prog)s sharedassets0.assets --list
  %(prog)s sharedassets0.assets --path-id 42 --font NanumGothic.ttf
  %(prog)s sharedassets0.assets fonts.bundle --font-dir .\\fonts --output-dir .\\out
        """
        files_help = "Font 에셋이 들어 있는 컨테이너 파일 (.assets, 번들)"
        path_id_help = "가져올 에셋의 PathID (여러 번 사용 가능)"
        name_help = "가져올 Font 에셋 이름 (여러 번 사용 가능)"
        font_help = "단일 가져오기에 사용할 ttf/otf 파일 (생략 시 입력 요청)"
        font_dir_help = "배치 가져오기에서 '<에셋 이름>.ttf/.otf'를 찾을 폴더 (생략 시 입력 요청)"
        output_help = "수정된 컨테이너를 저장할 폴더 (기본: 원본 덮어쓰기)"
        list_help = "Font 에셋 목록만 출력"
        verbose_help = "모든 로그를 verbose.txt 파일로 저장"
    else:
        description = "Replace Unity Font asset payloads with ttf/otf files."
        epilog = """
Examples:
  %(prog)s sharedassets0.assets --list
  %(prog)s sharedassets0.assets --path-id 42 --font NanumGothic.ttf
  %(prog)s sharedassets0.assets fonts.bundle --font-dir .\\fonts --output-dir .\\out
        """
        files_help = "Container files holding Font assets (.assets, bundles)"
        path_id_help = "PathID of an asset to import into (repeatable)"
        name_help = "Name of a Font asset to import into (repeatable)"
        font_help = "ttf/otf file for single import (prompted when omitted)"
        font_dir_help = "Folder searched for '<asset name>.ttf/.otf' in batch import (prompted when omitted)"
        output_help = "Folder for modified containers (default: overwrite originals)"
        list_help = "Only list Font assets"
        verbose_help = "Save all logs to verbose.txt"

    parser = argparse.ArgumentParser(
        description=description,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=epilog,
    )
    parser.add_argument("files", nargs="+", metavar="ASSET_FILE", help=files_help)
    parser.add_argument("--path-id", type=int, action="append", metavar="PATH_ID", help=path_id_help)
    parser.add_argument("--name", action="append", metavar="NAME", help=name_help)
    parser.add_argument("--font", type=str, metavar="FONT_FILE", help=font_help)
    parser.add_argument("--font-dir", type=str, metavar="DIR", help=font_dir_help)
    parser.add_argument("--output-dir", type=str, metavar="DIR", help=output_help)
    parser.add_argument("--list", action="store_true", help=list_help)
    parser.add_argument("--no-input", action="store_true", help=argparse.SUPPRESS)
    parser.add_argument("--verbose", action="store_true", help=verbose_help)
    return parser


def print_font_list(workspace: FontWorkspace, lang: Language = "ko") -> int:
    entries = workspace.list_fonts()
    for entry in entries:
        size = entry["size"] if entry["size"] is not None else "?"
        print(f"{entry['file']} | PathID {entry['path_id']} | {entry['name']} | {size} bytes")
    if lang == "ko":
        print(f"Font 에셋 {len(entries)}개")
    else:
        print(f"{len(entries)} Font asset(s)")
    return len(entries)


def main_cli(argv: list[str] | None = None, lang: Language = "ko") -> int:
    """KR: 언어별 공통 CLI 진입점입니다. 종료 코드를 반환합니다.
    EN: Shared CLI entrypoint parameterized by language. Returns an exit code.
    """
    is_ko = lang == "ko"
    args = build_parser(lang).parse_args(argv)

    if args.verbose:
        verbose_path = os.path.join(get_script_dir(), "verbose.txt")
        verbose_file = open(verbose_path, "w", encoding="utf-8")
        original_stdout = sys.__stdout__
        original_stderr = sys.__stderr__
        if original_stdout is None or original_stderr is None:
            exit_with_error(
                "표준 출력 스트림을 사용할 수 없습니다." if is_ko else "Standard output streams are unavailable.",
                lang=lang,
            )
        sys.stdout = TeeWriter(verbose_file, original_stdout)
        sys.stderr = TeeWriter(verbose_file, original_stderr)
        if is_ko:
            print(f"[verbose] 로그를 '{verbose_path}'에 저장합니다.")
        else:
            print(f"[verbose] Saving logs to '{verbose_path}'.")

    warn_unitypy_version(lang=lang)

    workspace = FontWorkspace(lang=lang)
    try:
        for path in args.files:
            try:
                workspace.load(path)
            except (OSError, FontImportError) as e:
                exit_with_error(str(e), lang=lang)

        if args.list:
            print_font_list(workspace, lang=lang)
            return 0

        selection = workspace.select_assets(args.path_id, args.name)
        if not selection:
            exit_with_error(
                "가져올 대상 에셋이 없습니다." if is_ko else "No target assets were selected.",
                lang=lang,
            )

        option = ImportFontOption(lang=lang)
        if not option.supports_selection("import", selection):
            exit_with_error(
                "선택한 에셋이 모두 Font 타입이어야 합니다." if is_ko else "All selected assets must be of type Font.",
                lang=lang,
            )

        if is_ko:
            print(f"[import_font] 대상 에셋: {len(selection)}개")
        else:
            print(f"[import_font] Target assets: {len(selection)}")

        host = ConsoleHost(
            workspace,
            font_path=args.font,
            font_dir=args.font_dir,
            interactive=not args.no_input,
            lang=lang,
        )
        try:
            applied = option.execute(host, "import", selection)
        except NotADirectoryError as e:
            exit_with_error(str(e), lang=lang)

        if not applied:
            if is_ko:
                print("변경된 내용이 없습니다.")
            else:
                print("Nothing was changed.")
            return 0

        try:
            saved_paths = workspace.save_dirty(args.output_dir)
        except (OSError, FontImportError) as e:
            exit_with_error(str(e), lang=lang)

        print()
        if is_ko:
            print(f"완료! {len(saved_paths)}개의 파일이 수정되었습니다.")
        else:
            print(f"Done! Modified {len(saved_paths)} file(s).")
        return 0
    finally:
        workspace.close()


def main(argv: list[str] | None = None) -> int:
    """KR: 한국어 CLI 진입점입니다.
    EN: Korean CLI entrypoint.
    """
    return main_cli(argv, lang="ko")


def main_en(argv: list[str] | None = None) -> int:
    """KR: 영어 CLI 진입점입니다.
    EN: English CLI entrypoint.
    """
    return main_cli(argv, lang="en")


def _restore_tee_streams() -> None:
    if isinstance(sys.stdout, TeeWriter):
        sys.stdout.file.close()
        sys.stdout = sys.__stdout__
    if isinstance(sys.stderr, TeeWriter):
        sys.stderr.file.close()
        sys.stderr = sys.__stderr__


def run_main_ko() -> None:
    """KR: 한국어 실행 진입점을 예외 처리와 함께 실행합니다.
    EN: Run Korean entrypoint with top-level exception handling.
    """
    try:
        exit_code = main()
    except Exception as e:
        print(f"\n예상치 못한 오류가 발생했습니다: {e}")
        tb_module.print_exc()
        exit_code = 1
    finally:
        _restore_tee_streams()
        cleanup_registered_temp_dirs()
    sys.exit(exit_code)


def run_main_en() -> None:
    """KR: 영어 실행 진입점을 예외 처리와 함께 실행합니다.
    EN: Run English entrypoint with top-level exception handling.
    """
    try:
        exit_code = main_en()
    except Exception as e:
        print(f"\nAn unexpected error occurred: {e}")
        tb_module.print_exc()
        exit_code = 1
    finally:
        _restore_tee_streams()
        cleanup_registered_temp_dirs()
    sys.exit(exit_code)
