from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Literal, Protocol, Sequence


Language = Literal["ko", "en"]
PluginMode = Literal["import", "export"]
OutcomeKind = Literal["success", "parse_error", "file_not_found", "io_error"]
JsonDict = dict[str, Any]

FONT_TYPE_NAME = "Font"
FONT_FILE_EXTENSIONS = (".ttf", ".otf")
FONT_FILE_PATTERNS = ["*.ttf", "*.otf"]
MAX_REPORT_LINES = 20
_INVALID_FILE_NAME_CHARS = frozenset('<>:"/\\|?*') | frozenset(chr(i) for i in range(32))


class FontImportError(Exception):
    """KR: 폰트 가져오기 오류의 기본 클래스입니다.
    EN: Base class for font import errors.
    """


class ReadError(FontImportError):
    """KR: 에셋 필드 트리를 만들 수 없을 때 발생합니다.
    EN: Raised when an asset field tree cannot be built.
    """


class WriteError(FontImportError):
    """KR: 호스트가 새 페이로드를 받아들이지 못했을 때 발생합니다.
    EN: Raised when the host rejects a new payload.
    """


def debug_parse_enabled() -> bool:
    """KR: 디버그 파싱 로그 활성화 여부를 반환합니다.
    EN: Return whether parse debug logging is enabled.
    """
    return os.environ.get("UFI_DEBUG_PARSE", "").strip() == "1"


def debug_parse_log(message: str) -> None:
    """KR: 디버그 모드일 때만 파싱 로그를 출력합니다.
    EN: Print parsing debug message only when enabled.
    """
    if debug_parse_enabled():
        print(message)


@dataclass
class AssetHandle:
    """KR: 컨테이너 파일 안의 에셋 하나를 가리킵니다.
    EN: Reference to one asset record inside a container file.
    """

    container_name: str
    container_path: str
    path_id: int
    type_name: str
    reader: Any = None

    @property
    def label(self) -> str:
        return f"{os.path.basename(self.container_path)}/{self.path_id}"


class FontFields:
    """KR: Font 타입트리에서 이름/폰트 데이터 두 리프만 노출하는 좁은 뷰입니다.
    EN: Narrow view over a Font typetree exposing only the name and font data leaves.
    """

    def __init__(self, tree: JsonDict, serializer: Callable[[JsonDict], bytes]) -> None:
        self.tree = tree
        self._serializer = serializer

    @property
    def name(self) -> str:
        return str(self.tree.get("m_Name", "") or "")

    @property
    def font_data(self) -> bytes:
        return bytes(self.tree.get("m_FontData", b"") or b"")

    @font_data.setter
    def font_data(self, data: bytes) -> None:
        self.tree["m_FontData"] = bytes(data)

    def serialize(self) -> bytes:
        """KR: 현재 트리를 에셋 바이트로 직렬화합니다.
        EN: Serialize the current tree into asset bytes.
        """
        return self._serializer(self.tree)


class PluginHost(Protocol):
    """KR: 플러그인 옵션이 호스트에 요구하는 기능 집합입니다.
    EN: Capabilities the plugin option requires from its host.
    """

    def open_file_dialog(self, title: str, patterns: list[str], allow_multiple: bool) -> list[str] | None: ...

    def open_folder_dialog(self, title: str) -> str | None: ...

    def show_message_dialog(self, title: str, body: str) -> None: ...

    def parse_font_fields(self, asset: AssetHandle) -> FontFields | None: ...

    def update_asset_payload(self, asset: AssetHandle, data: bytes) -> None: ...

    def mark_dirty(self, container_name: str) -> None: ...


@dataclass(frozen=True)
class ImportOutcome:
    """KR: 에셋 하나에 대한 가져오기 결과입니다.
    EN: Import result for a single asset.
    """

    kind: OutcomeKind
    label: str
    container_name: str
    detail: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.kind == "success"

    def error_line(self, lang: Language = "ko") -> str | None:
        """KR: 실패 결과를 보고서 한 줄로 변환합니다. 성공이면 None입니다.
        EN: Format a failed outcome as one report line. None for success.
        """
        if self.kind == "success":
            return None
        if self.kind == "parse_error":
            message = "읽기 실패" if lang == "ko" else "failed to read"
        elif self.kind == "file_not_found":
            message = "폰트 파일을 찾을 수 없음" if lang == "ko" else "font file not found"
        else:
            message = self.detail or ""
        return f"[{self.label}]: {message}"


class ErrorReport:
    """KR: 에셋별 오류 메시지를 모아 잘린 보고서로 보여줍니다.
    EN: Collect per-asset error messages and present a truncated report.
    """

    def __init__(self) -> None:
        self._buffer: list[str] = []

    def add(self, line: str) -> None:
        self._buffer.append(line + "\n")

    @property
    def lines(self) -> list[str]:
        return "".join(self._buffer).split("\n")[:-1]

    def __bool__(self) -> bool:
        return bool(self._buffer)

    def __len__(self) -> int:
        return len(self.lines)

    def render(self, max_lines: int = MAX_REPORT_LINES) -> str:
        """KR: 처음 max_lines줄만 이어 붙여 반환합니다.
        EN: Join and return at most the first max_lines lines.
        """
        return "\n".join(self.lines[:max_lines])


def is_eligible(asset: AssetHandle, mode: PluginMode) -> bool:
    """KR: import 모드이고 Font 타입인 에셋만 허용합니다.
    EN: Accept only Font assets in import mode.
    """
    return mode == "import" and asset.type_name == FONT_TYPE_NAME


def supports_selection(selection: Sequence[AssetHandle], mode: PluginMode) -> bool:
    """KR: 선택된 모든 에셋이 대상일 때만 옵션을 제공합니다(전부 아니면 전무).
    EN: Offer the option only when every selected asset is eligible (all-or-nothing).
    """
    if not selection:
        return False
    return all(is_eligible(asset, mode) for asset in selection)


def sanitize_file_name(name: str) -> str:
    """KR: 파일 이름에 쓸 수 없는 문자를 '_'로 바꿉니다.
    EN: Replace characters that are invalid in file names with '_'.
    """
    return "".join("_" if ch in _INVALID_FILE_NAME_CHARS else ch for ch in name)


def find_font_file(directory: str, asset_name: str) -> str | None:
    """KR: 디렉터리 바로 아래에서 `<이름>.ttf`, `<이름>.otf` 순서로 찾습니다.
    EN: Probe `<name>.ttf` then `<name>.otf` directly inside the directory.
    """
    for ext in FONT_FILE_EXTENSIONS:
        candidate = os.path.join(directory, asset_name + ext)
        if os.path.isfile(candidate):
            return candidate
    return None


def read_font_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def apply_font_data(host: PluginHost, asset: AssetHandle, fields: FontFields, font_path: str) -> None:
    """KR: 폰트 파일을 읽어 필드에 넣고 직렬화해 호스트에 제출합니다.
    KR: 호스트 업데이트 호출이 유일한 변경 지점이며, 바이트가 완성된 뒤에만 호출됩니다.
    EN: Read the font file, substitute it, serialize and submit to the host.
    EN: The host update call is the only mutation point and runs after the bytes are complete.
    """
    fields.font_data = read_font_file(font_path)
    new_data = fields.serialize()
    host.update_asset_payload(asset, new_data)


def import_batch_asset(
    host: PluginHost,
    asset: AssetHandle,
    directory: str,
) -> ImportOutcome:
    """KR: 배치 가져오기에서 에셋 하나를 처리하고 결과를 반환합니다. 예외를 던지지 않습니다.
    EN: Process one asset of a batch import and return its outcome without raising.
    """
    fields = host.parse_font_fields(asset)
    if fields is None:
        return ImportOutcome("parse_error", asset.label, asset.container_name)

    asset_name = sanitize_file_name(fields.name)
    font_path = find_font_file(directory, asset_name)
    if font_path is None:
        return ImportOutcome("file_not_found", asset.label, asset.container_name)

    try:
        apply_font_data(host, asset, fields, font_path)
    except (OSError, FontImportError) as e:
        return ImportOutcome("io_error", asset.label, asset.container_name, detail=str(e))

    debug_parse_log(f"[import_font] {asset.label} <- {font_path}")
    return ImportOutcome("success", asset.label, asset.container_name)


def fold_outcomes(
    outcomes: Iterable[ImportOutcome],
    lang: Language = "ko",
) -> tuple[ErrorReport, list[str]]:
    """KR: 결과 목록을 오류 보고서와 더티 컨테이너 목록(중복 제거, 첫 성공 순서)으로 접습니다.
    EN: Fold outcomes into an error report and a deduplicated dirty container list (first-success order).
    """
    report = ErrorReport()
    dirty: dict[str, None] = {}
    for outcome in outcomes:
        if outcome.succeeded:
            dirty.setdefault(outcome.container_name, None)
            continue
        line = outcome.error_line(lang)
        if line is not None:
            report.add(line)
    return report, list(dirty)


def _error_title(lang: Language) -> str:
    return "오류" if lang == "ko" else "Error"


def import_single(host: PluginHost, asset: AssetHandle, lang: Language = "ko") -> bool:
    """KR: 에셋 하나에 사용자가 고른 폰트 파일 하나를 가져옵니다.
    KR: 파일 선택을 취소하면 오류 없이 False를 반환합니다.
    EN: Import one user-chosen font file into a single asset.
    EN: Cancelling the file prompt returns False without reporting an error.
    """
    fields = host.parse_font_fields(asset)
    if fields is None:
        message = "Font를 읽지 못했습니다" if lang == "ko" else "Failed to read Font"
        host.show_message_dialog(_error_title(lang), message)
        return False

    title = "폰트 열기" if lang == "ko" else "Open font"
    file_paths = host.open_file_dialog(title, list(FONT_FILE_PATTERNS), False)
    if not file_paths:
        return False

    try:
        apply_font_data(host, asset, fields, file_paths[0])
        host.mark_dirty(asset.container_name)
    except (OSError, FontImportError) as e:
        if lang == "ko":
            message = f"폰트 가져오기 실패: {e}"
        else:
            message = f"Failed to import font: {e}"
        host.show_message_dialog(_error_title(lang), message)
        return False

    if lang == "ko":
        print(f"[import_font] 폰트 교체: {asset.label} <- {file_paths[0]}")
    else:
        print(f"[import_font] Font replaced: {asset.label} <- {file_paths[0]}")
    return True


def import_batch(host: PluginHost, selection: Sequence[AssetHandle], lang: Language = "ko") -> bool:
    """KR: 폴더 하나에서 에셋 이름과 같은 ttf/otf 파일을 찾아 여러 에셋에 가져옵니다.
    KR: 에셋별 실패는 서로 격리되며, 하나라도 기록되었으면 True를 반환합니다.
    EN: Import same-named ttf/otf files from one folder into many assets.
    EN: Per-asset failures are isolated; returns True if at least one asset was written.
    """
    title = "가져올 폴더 선택" if lang == "ko" else "Select import directory"
    directory = host.open_folder_dialog(title)
    if not directory:
        return False

    outcomes: list[ImportOutcome] = []
    for idx, asset in enumerate(selection, start=1):
        outcome = import_batch_asset(host, asset, directory)
        outcomes.append(outcome)
        if lang == "ko":
            print(f"[import_font] 진행 {idx}/{len(selection)}: {asset.label} ({outcome.kind})")
        else:
            print(f"[import_font] Progress {idx}/{len(selection)}: {asset.label} ({outcome.kind})")

    report, dirty_containers = fold_outcomes(outcomes, lang=lang)
    for container_name in dirty_containers:
        host.mark_dirty(container_name)

    if report:
        host.show_message_dialog(_error_title(lang), report.render())

    return len(dirty_containers) > 0


class ImportFontOption:
    """KR: ttf/otf 파일에서 Font 에셋의 폰트 데이터를 가져오는 플러그인 옵션입니다.
    EN: Plugin option importing Font asset payloads from ttf/otf files.
    """

    name = "Import Font"
    description = "Imports Fonts from ttf/otf"
    modes: tuple[PluginMode, ...] = ("import",)

    def __init__(self, lang: Language = "ko") -> None:
        self.lang: Language = lang

    def supports_selection(self, mode: PluginMode, selection: Sequence[AssetHandle]) -> bool:
        return supports_selection(selection, mode)

    def execute(self, host: PluginHost, mode: PluginMode, selection: Sequence[AssetHandle]) -> bool:
        """KR: 선택 개수에 따라 단일/배치 가져오기로 분기합니다.
        EN: Dispatch to single or batch import depending on selection size.
        """
        if not self.supports_selection(mode, selection):
            return False
        if len(selection) > 1:
            return import_batch(host, selection, lang=self.lang)
        return import_single(host, selection[0], lang=self.lang)
