from __future__ import annotations
"""View-agnostic navigation state machine that wraps controller operations."""
from dataclasses import replace
import logging
import threading
from typing import Callable, Iterable

from .controller import S3NavigatorController
from .directory import normalize_segment
from .errors import NavigationError, NetworkError, ParseError
from .models import DirectoryEntry, NavigationState
from .platform import FileSaver, Platform
from .settings import AppSettings
from .ui_utils import PackageInfo, load_package_info


DispatchFn = Callable[[Callable[[], None]], None]
RunFn = Callable[[Callable[[], None]], None]
Listener = Callable[[NavigationState], None]
EntriesFn = Callable[[list[DirectoryEntry]], None]
SavedFn = Callable[[bool], None]
ErrorFn = Callable[[Exception], None]

LOGGER = logging.getLogger(__name__)


def _format_error(exc: Exception) -> str:
    return str(exc) or exc.__class__.__name__


def _run_in_thread(task: Callable[[], None]) -> None:
    threading.Thread(target=task, daemon=True).start()


class NavigationPresenter:
    """Owns the :class:`NavigationState` and runs listings in the background.

    Every refresh is stamped with a generation number; only the most recently
    issued refresh may apply its result, so a slow response for a folder the
    user already left never overwrites the current view.
    """

    def __init__(
        self,
        *,
        controller: S3NavigatorController | None = None,
        settings: AppSettings | None = None,
        file_saver: FileSaver | None = None,
        platform: Platform | None = None,
        dispatch: DispatchFn | None = None,
        run_in_background: RunFn | None = None,
    ) -> None:
        self._controller = controller or S3NavigatorController(settings=settings)
        self._file_saver = file_saver
        self._platform = platform
        self._dispatch = dispatch or (lambda func: func())
        self._run_in_background = run_in_background or _run_in_thread
        self._package_info = load_package_info()
        self._lock = threading.Lock()
        self._listeners: list[Listener] = []
        self._state = NavigationState(bucket=self._controller.bucket)
        self._generation = 0
        self._refresh_pending = True
        self._active_downloads = 0

    @property
    def state(self) -> NavigationState:
        return self._state

    @property
    def platform(self) -> Platform | None:
        return self._platform

    @property
    def package_info(self) -> PackageInfo:
        return self._package_info

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for every new state; returns an unsubscribe callable."""

        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def start(self, **callbacks) -> int:
        return self.refresh(**callbacks)

    def refresh(
        self,
        *,
        on_success: EntriesFn | None = None,
        on_error: ErrorFn | None = None,
    ) -> int:
        return self._navigate(None, on_success=on_success, on_error=on_error)

    def push(
        self,
        dir_name: str,
        *,
        on_success: EntriesFn | None = None,
        on_error: ErrorFn | None = None,
    ) -> int:
        segment = normalize_segment(dir_name)
        if not segment:
            raise NavigationError(f"Cannot enter a directory named {dir_name!r}")
        return self._navigate(
            lambda segments: segments + (segment,),
            on_success=on_success,
            on_error=on_error,
        )

    def pop(
        self,
        *,
        on_success: EntriesFn | None = None,
        on_error: ErrorFn | None = None,
    ) -> bool:
        """Leave the current directory; returns ``False`` when already at the root."""

        with self._lock:
            at_root = self._state.at_root
        if at_root:
            LOGGER.debug("Ignoring pop at bucket root")
            return False
        self._navigate(
            lambda segments: segments[:-1],
            on_success=on_success,
            on_error=on_error,
        )
        return True

    def go_to(
        self,
        segments: Iterable[str],
        *,
        on_success: EntriesFn | None = None,
        on_error: ErrorFn | None = None,
    ) -> int:
        normalized = tuple(normalize_segment(segment) for segment in segments)
        if not all(normalized):
            raise NavigationError(f"Path contains an empty segment: {list(normalized)!r}")
        return self._navigate(lambda _: normalized, on_success=on_success, on_error=on_error)

    def download(
        self,
        name: str,
        *,
        on_success: SavedFn | None = None,
        on_error: ErrorFn | None = None,
    ) -> None:
        """Fetch ``name`` from the current directory and hand it to the file saver."""

        if self._file_saver is None:
            raise NavigationError("No file saver configured for downloads")
        with self._lock:
            key = self._state.prefix + name
            self._active_downloads += 1
            state = self._replace_state(loading=True, error=None)
        self._publish(state)
        LOGGER.debug("Downloading '%s' from bucket '%s'", key, state.bucket)

        def task() -> None:
            try:
                data = self._controller.download(key)
            except NetworkError as exc:
                LOGGER.exception("Download error for key '%s'", key)
                self._dispatch(lambda error=exc: self._finish_download(error=error, on_error=on_error))
            except Exception as exc:
                LOGGER.exception("Unexpected download error for key '%s'", key)
                self._dispatch(lambda error=exc: self._finish_download(error=error, on_error=on_error))
            else:
                self._dispatch(lambda: self._save_download(name, data, on_success, on_error))

        self._run_in_background(task)

    def _navigate(
        self,
        update_path: Callable[[tuple[str, ...]], tuple[str, ...]] | None,
        *,
        on_success: EntriesFn | None,
        on_error: ErrorFn | None,
    ) -> int:
        with self._lock:
            segments = self._state.path_segments
            if update_path is not None:
                segments = update_path(segments)
            self._generation += 1
            generation = self._generation
            self._refresh_pending = True
            state = self._replace_state(path_segments=segments, loading=True, entries=(), error=None)
        self._publish(state)
        prefix = state.prefix
        LOGGER.debug("Listing prefix '%s' (generation %d)", prefix, generation)

        def task() -> None:
            try:
                entries = self._controller.list_directory(prefix)
            except (NetworkError, ParseError) as exc:
                LOGGER.exception("List error for prefix '%s'", prefix)
                self._dispatch(lambda error=exc: self._finish_refresh(generation, error=error, on_error=on_error))
            except Exception as exc:
                LOGGER.exception("Unexpected list error for prefix '%s'", prefix)
                self._dispatch(lambda error=exc: self._finish_refresh(generation, error=error, on_error=on_error))
            else:
                LOGGER.debug("Listed %d entr(ies) for prefix '%s'", len(entries), prefix)
                self._dispatch(lambda: self._finish_refresh(generation, entries=entries, on_success=on_success))

        self._run_in_background(task)
        return generation

    def _finish_refresh(
        self,
        generation: int,
        *,
        entries: list[DirectoryEntry] | None = None,
        error: Exception | None = None,
        on_success: EntriesFn | None = None,
        on_error: ErrorFn | None = None,
    ) -> None:
        with self._lock:
            if generation != self._generation:
                LOGGER.debug("Discarding stale listing (generation %d, current %d)", generation, self._generation)
                return
            self._refresh_pending = False
            loading = self._active_downloads > 0
            if error is None:
                state = self._replace_state(loading=loading, entries=tuple(entries or ()), error=None)
            else:
                state = self._replace_state(loading=loading, entries=(), error=_format_error(error))
        self._publish(state)
        if error is None:
            if on_success:
                on_success(list(state.entries))
        elif on_error:
            on_error(error)

    def _save_download(
        self,
        name: str,
        data: bytes,
        on_success: SavedFn | None,
        on_error: ErrorFn | None,
    ) -> None:
        try:
            saved = self._file_saver.save(name, data)
        except (OSError, ValueError) as exc:
            LOGGER.exception("Could not save '%s'", name)
            self._finish_download(error=exc, on_error=on_error)
        except Exception as exc:
            LOGGER.exception("Unexpected error saving '%s'", name)
            self._finish_download(error=exc, on_error=on_error)
        else:
            if not saved:
                LOGGER.debug("Save of '%s' cancelled", name)
            self._finish_download(saved=bool(saved), on_success=on_success)

    def _finish_download(
        self,
        *,
        saved: bool = False,
        error: Exception | None = None,
        on_success: SavedFn | None = None,
        on_error: ErrorFn | None = None,
    ) -> None:
        with self._lock:
            self._active_downloads = max(self._active_downloads - 1, 0)
            loading = self._refresh_pending or self._active_downloads > 0
            if error is None:
                state = self._replace_state(loading=loading)
            else:
                state = self._replace_state(loading=loading, error=_format_error(error))
        self._publish(state)
        if error is None:
            if on_success:
                on_success(saved)
        elif on_error:
            on_error(error)

    def _replace_state(self, **changes) -> NavigationState:
        # Caller holds the lock.
        self._state = replace(self._state, **changes)
        return self._state

    def _publish(self, state: NavigationState) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(state)
