from __future__ import annotations

import atexit
import fnmatch
import gc
import inspect
import os
import shutil
import tempfile
from typing import Any, Callable, Iterable, cast

import UnityPy

from unity_font_importer_core import (
    FONT_TYPE_NAME,
    AssetHandle,
    FontFields,
    FontImportError,
    JsonDict,
    Language,
    ReadError,
    WriteError,
    debug_parse_log,
)


_REGISTERED_TEMP_DIRS: set[str] = set()


def register_temp_dir_for_cleanup(path: str) -> str:
    """KR: 종료 시 삭제할 임시 디렉터리를 등록하고 정규화 경로를 반환합니다.
    EN: Register a temp directory for cleanup at exit and return normalized path.
    """
    normalized = os.path.abspath(path)
    _REGISTERED_TEMP_DIRS.add(normalized)
    return normalized


def cleanup_registered_temp_dirs() -> None:
    """KR: 등록된 임시 디렉터리를 깊은 경로부터 삭제합니다.
    EN: Remove registered temp directories, deepest paths first.
    """
    for temp_dir in sorted(_REGISTERED_TEMP_DIRS, key=len, reverse=True):
        if os.path.isdir(temp_dir):
            shutil.rmtree(temp_dir, ignore_errors=True)
    _REGISTERED_TEMP_DIRS.clear()


atexit.register(cleanup_registered_temp_dirs)


def _close_unitypy_reader(obj: Any) -> None:
    reader = getattr(obj, "reader", None)
    if reader is not None and hasattr(reader, "dispose"):
        reader.dispose()
    if hasattr(obj, "dispose"):
        obj.dispose()


def close_unitypy_env(environment: Any) -> None:
    """KR: Environment에 연결된 UnityPy 파일 리소스를 순회 종료합니다.
    EN: Walk and close UnityPy file resources attached to environment.
    """
    if environment is None:
        return
    stack: list[Any] = []
    files = getattr(environment, "files", None)
    if isinstance(files, dict):
        stack.extend(files.values())
    while stack:
        item = stack.pop()
        try:
            _close_unitypy_reader(item)
        except Exception as e:
            debug_parse_log(f"[workspace] dispose failed: {e!r}")
        sub_files = getattr(item, "files", None)
        if isinstance(sub_files, dict):
            stack.extend(sub_files.values())


def _primary_env_file(env: Any) -> Any:
    env_file = getattr(env, "file", None)
    if env_file is None:
        files = getattr(env, "files", None)
        if isinstance(files, dict) and len(files) == 1:
            env_file = next(iter(files.values()))
    if env_file is None:
        raise WriteError("Could not determine primary UnityPy file object for saving.")
    return env_file


def _save_env_file(env_file: Any, packer: Any = "original") -> bytes:
    """KR: 기본 파일 객체의 save()를 호출합니다. 지원할 때만 packer를 넘깁니다.
    EN: Call save() on the primary file object, passing packer only when supported.
    """
    save_fn = getattr(env_file, "save", None)
    if not callable(save_fn):
        raise WriteError("UnityPy environment file object has no callable save().")
    typed_save = cast(Callable[..., bytes], save_fn)
    # KR: save() 시그니처로 packer 지원 여부를 판별해 내부 TypeError를 가리지 않도록 합니다.
    # EN: Detect packer support from the signature so internal TypeErrors are not swallowed.
    try:
        supports_packer = "packer" in inspect.signature(typed_save).parameters
    except (TypeError, ValueError):
        supports_packer = False
    if packer is None or not supports_packer:
        return typed_save()
    return typed_save(packer=packer)


class FontWorkspace:
    """KR: UnityPy로 컨테이너 파일을 열고 에셋 핸들/더티 상태/저장을 관리합니다.
    KR: 컨테이너 이름은 로드한 파일의 basename이며 더티 추적과 저장의 단위입니다.
    EN: Open container files with UnityPy and manage asset handles, dirty state and saving.
    EN: A container name is the loaded file's basename and the unit of dirty tracking and saving.
    """

    def __init__(self, lang: Language = "ko") -> None:
        self.lang: Language = lang
        self.envs: dict[str, Any] = {}
        self.paths: dict[str, str] = {}
        self.handles: dict[str, list[AssetHandle]] = {}
        self.dirty: dict[str, None] = {}

    def load(self, path: str) -> list[AssetHandle]:
        """KR: 컨테이너 파일 하나를 로드하고 모든 오브젝트의 핸들을 반환합니다.
        EN: Load one container file and return handles for all of its objects.
        """
        path = os.path.abspath(path)
        container_name = os.path.basename(path)
        if container_name in self.envs:
            if self.lang == "ko":
                raise FontImportError(f"같은 이름의 컨테이너가 이미 로드되었습니다: {container_name}")
            raise FontImportError(f"A container with the same name is already loaded: {container_name}")
        if not os.path.isfile(path):
            if self.lang == "ko":
                raise FileNotFoundError(f"'{path}' 파일을 찾을 수 없습니다.")
            raise FileNotFoundError(f"Could not find file '{path}'.")

        try:
            env = UnityPy.load(path)
        except Exception as e:
            if self.lang == "ko":
                raise ReadError(f"UnityPy.load 실패: {path} ({e})") from e
            raise ReadError(f"UnityPy.load failed: {path} ({e})") from e
        handles = [
            AssetHandle(
                container_name=container_name,
                container_path=path,
                path_id=int(obj.path_id),
                type_name=str(obj.type.name),
                reader=obj,
            )
            for obj in env.objects
        ]
        self.envs[container_name] = env
        self.paths[container_name] = path
        self.handles[container_name] = handles

        font_count = sum(1 for h in handles if h.type_name == FONT_TYPE_NAME)
        if self.lang == "ko":
            print(f"[workspace] 로드: {container_name} (오브젝트 {len(handles)}개, Font {font_count}개)")
        else:
            print(f"[workspace] Loaded: {container_name} ({len(handles)} object(s), {font_count} Font(s))")
        return handles

    def assets(self) -> list[AssetHandle]:
        return [h for handles in self.handles.values() for h in handles]

    def font_assets(self) -> list[AssetHandle]:
        return [h for h in self.assets() if h.type_name == FONT_TYPE_NAME]

    @staticmethod
    def peek_name(asset: AssetHandle) -> str:
        """KR: 전체 파싱 없이 에셋 이름을 읽습니다. 실패하면 빈 문자열입니다.
        EN: Read the asset name without a full parse. Empty string on failure.
        """
        try:
            return str(asset.reader.peek_name() or "")
        except Exception as e:
            debug_parse_log(f"[workspace] peek_name failed: {asset.label} ({e!r})")
            return ""

    def select_assets(
        self,
        path_ids: Iterable[int] | None = None,
        names: Iterable[str] | None = None,
    ) -> list[AssetHandle]:
        """KR: PathID/이름으로 에셋을 고릅니다. 둘 다 없으면 모든 Font 에셋을 반환합니다.
        KR: PathID 선택은 타입을 거르지 않으므로 플러그인 선택 검사가 최종 판정합니다.
        EN: Pick assets by path id or name; with neither, return every Font asset.
        EN: Path id selection does not filter by type, the plugin selection gate decides.
        """
        wanted_ids = set(path_ids or [])
        wanted_names = set(names or [])
        if not wanted_ids and not wanted_names:
            return self.font_assets()

        selected: list[AssetHandle] = []
        for asset in self.assets():
            if asset.path_id in wanted_ids:
                selected.append(asset)
            elif wanted_names and asset.type_name == FONT_TYPE_NAME and self.peek_name(asset) in wanted_names:
                selected.append(asset)
        return selected

    def parse_font_fields(self, asset: AssetHandle) -> FontFields | None:
        """KR: Font 타입트리를 읽어 좁은 필드 뷰를 만듭니다. 읽을 수 없으면 None입니다.
        EN: Read the Font typetree into a narrow field view. None when it cannot be read.
        """
        obj = asset.reader
        try:
            tree = obj.read_typetree()
        except Exception as e:
            if self.lang == "ko":
                debug_parse_log(f"[workspace] read_typetree 실패: {asset.label} ({e!r})")
            else:
                debug_parse_log(f"[workspace] read_typetree failed: {asset.label} ({e!r})")
            return None
        if not isinstance(tree, dict) or "m_FontData" not in tree:
            return None

        def _serialize(value: JsonDict) -> bytes:
            # KR: save_typetree는 obj.data를 바꾸므로 직렬화 후 이전 값을 되돌립니다.
            # KR: get_raw_data는 원본 파일 바이트만 읽으므로 결과는 반환값에서 가져옵니다.
            # EN: save_typetree replaces obj.data, so the previous value is restored after serializing.
            # EN: get_raw_data only reads the source file bytes, so the result comes from the return value.
            previous = getattr(obj, "data", None)
            try:
                written = obj.save_typetree(value)
                if written is None:
                    written = getattr(obj, "data", None)
                if written is None:
                    raise WriteError("save_typetree produced no data")
                return bytes(written)
            except WriteError:
                raise
            except Exception as e:
                raise WriteError(f"serialize failed [{type(e).__name__}]: {e}") from e
            finally:
                obj.data = previous

        return FontFields(tree, _serialize)

    def update_asset_payload(self, asset: AssetHandle, data: bytes) -> None:
        """KR: 에셋의 저장 데이터를 새 바이트로 교체합니다.
        EN: Replace the asset's stored data with new bytes.
        """
        if not data:
            raise WriteError("empty asset payload" if self.lang == "en" else "빈 에셋 페이로드")
        try:
            asset.reader.set_raw_data(bytes(data))
        except Exception as e:
            raise WriteError(f"{type(e).__name__}: {e}") from e

    def mark_dirty(self, container_name: str) -> None:
        if container_name not in self.envs:
            if self.lang == "ko":
                raise FontImportError(f"알 수 없는 컨테이너: {container_name}")
            raise FontImportError(f"Unknown container: {container_name}")
        self.dirty.setdefault(container_name, None)

    def save_dirty(self, output_dir: str | None = None) -> list[str]:
        """KR: 더티 컨테이너만 저장합니다. output_dir가 없으면 원본 파일을 덮어씁니다.
        KR: 임시 폴더에 먼저 기록한 뒤 대상 경로로 이동합니다.
        KR: 원본 위치에 저장한 컨테이너는 닫히고 작업 공간에서 해제됩니다.
        EN: Save dirty containers only, overwriting the originals unless output_dir is set.
        EN: Each file is written to a temp folder first, then moved into place.
        EN: A container saved over its source is closed and released from the workspace.
        """
        if not self.dirty:
            return []
        tmp_root = register_temp_dir_for_cleanup(tempfile.mkdtemp(prefix="unity_font_importer_"))
        if output_dir is not None:
            os.makedirs(output_dir, exist_ok=True)

        saved_paths: list[str] = []
        for container_name in list(self.dirty):
            source_path = self.paths[container_name]
            target_path = (
                os.path.join(os.path.abspath(output_dir), container_name)
                if output_dir is not None
                else source_path
            )
            if self.lang == "ko":
                print(f"[workspace] '{container_name}' 저장 중...")
            else:
                print(f"[workspace] Saving '{container_name}'...")

            env_file = _primary_env_file(self.envs[container_name])
            try:
                saved_blob = _save_env_file(env_file)
            except WriteError:
                raise
            except Exception as e:
                raise WriteError(f"{container_name}: save failed [{type(e).__name__}]: {e!r}") from e

            tmp_file = os.path.join(tmp_root, container_name)
            with open(tmp_file, "wb") as f:
                f.write(saved_blob)
            saved_size = len(saved_blob)
            saved_blob = b""
            gc.collect()
            in_place = os.path.normcase(target_path) == os.path.normcase(source_path)
            if in_place:
                # KR: 원본 파일 핸들을 닫아야 덮어쓸 수 있습니다.
                # EN: The source handle must be closed before it can be replaced.
                self._release(container_name)
            shutil.move(tmp_file, target_path)
            saved_paths.append(target_path)
            self.dirty.pop(container_name, None)
            if self.lang == "ko":
                print(f"  저장 완료 (크기: {saved_size} bytes): {target_path}")
            else:
                print(f"  Save complete (size: {saved_size} bytes): {target_path}")

        shutil.rmtree(tmp_root, ignore_errors=True)
        return saved_paths

    def list_fonts(self) -> list[JsonDict]:
        """KR: 로드된 모든 Font 에셋의 요약 정보를 반환합니다.
        EN: Return summary entries for every loaded Font asset.
        """
        entries: list[JsonDict] = []
        for asset in self.font_assets():
            fields = self.parse_font_fields(asset)
            name = fields.name if fields is not None else self.peek_name(asset)
            entries.append({
                "file": asset.container_name,
                "path_id": asset.path_id,
                "name": name,
                "size": len(fields.font_data) if fields is not None else None,
            })
        return entries

    def _release(self, container_name: str) -> None:
        close_unitypy_env(self.envs.pop(container_name, None))
        self.paths.pop(container_name, None)
        self.handles.pop(container_name, None)
        self.dirty.pop(container_name, None)

    def close(self) -> None:
        for env in self.envs.values():
            close_unitypy_env(env)
        self.envs.clear()
        self.paths.clear()
        self.handles.clear()
        self.dirty.clear()
        gc.collect()


class ConsoleHost:
    """KR: 대화상자를 콘솔 프롬프트 또는 미리 지정한 답으로 대신하는 호스트입니다.
    KR: 에셋 관련 기능은 FontWorkspace에 위임합니다.
    EN: Host that answers dialogs from console prompts or preset answers.
    EN: Asset capabilities are delegated to a FontWorkspace.
    """

    def __init__(
        self,
        workspace: FontWorkspace,
        font_path: str | None = None,
        font_dir: str | None = None,
        interactive: bool = True,
        lang: Language = "ko",
    ) -> None:
        self.workspace = workspace
        self.font_path = font_path
        self.font_dir = font_dir
        self.interactive = interactive
        self.lang: Language = lang

    def _prompt(self, title: str) -> str:
        if not self.interactive:
            return ""
        return input(f"{title}: ").strip().strip('"')

    def open_file_dialog(self, title: str, patterns: list[str], allow_multiple: bool) -> list[str] | None:
        """KR: 파일 경로를 받습니다. 빈 입력은 취소(None)입니다.
        EN: Ask for file path(s). Empty input is a cancellation (None).
        """
        answer = self.font_path if self.font_path is not None else self._prompt(title)
        if not answer:
            return None
        paths = [p.strip() for p in answer.split(";")] if allow_multiple else [answer]
        accepted = [
            p for p in paths
            if p and any(fnmatch.fnmatch(os.path.basename(p).lower(), pat.lower()) for pat in patterns)
        ]
        if len(accepted) != len(paths):
            if self.lang == "ko":
                print(f"[import_font] 허용되지 않는 파일 형식입니다 ({', '.join(patterns)}): {answer}")
            else:
                print(f"[import_font] File type not allowed ({', '.join(patterns)}): {answer}")
            return None
        return accepted

    def open_folder_dialog(self, title: str) -> str | None:
        """KR: 폴더 경로를 받습니다. 빈 입력은 취소, 존재하지 않는 폴더는 오류입니다.
        EN: Ask for a folder. Empty input cancels; a missing folder is an error.
        """
        answer = self.font_dir if self.font_dir is not None else self._prompt(title)
        if not answer:
            return None
        if not os.path.isdir(answer):
            if self.lang == "ko":
                raise NotADirectoryError(f"'{answer}'는 유효한 디렉토리가 아닙니다.")
            raise NotADirectoryError(f"'{answer}' is not a valid directory.")
        return answer

    def show_message_dialog(self, title: str, body: str) -> None:
        print(f"[{title}]")
        print(body)

    def parse_font_fields(self, asset: AssetHandle) -> FontFields | None:
        return self.workspace.parse_font_fields(asset)

    def update_asset_payload(self, asset: AssetHandle, data: bytes) -> None:
        self.workspace.update_asset_payload(asset, data)

    def mark_dirty(self, container_name: str) -> None:
        self.workspace.mark_dirty(container_name)
