"""Context-local capture of diagnostic output.

A Capture collects everything emitted through the logging module, the
warnings module and sys.stdout/sys.stderr by code running in the context
that opened it (the current thread, or the current asyncio task). Other
contexts keep writing to their usual destinations.

Interception hooks are installed when the first capture is opened and
removed when the last open capture is released:

1. A capture handler on the root logger and on every non-propagating logger.
2. A suppressing filter on every other handler that already exists.
3. The root logger lowered to the capture level.
4. ``logging.captureWarnings(True)``.
5. Context-aware proxies in place of ``sys.stdout`` and ``sys.stderr``.
6. A log record factory that, for records created while capturing, extends
   1. and 2. to loggers and handlers set up after the capture was opened.
"""

import contextvars
import dataclasses
import json
import logging
import pprint
import sys
import threading
import traceback
import warnings
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any, Callable, TextIO

from preprocessor_runner.logging.logger import Log
from preprocessor_runner.processor.exceptions import LogCaptureError

_active_capture: contextvars.ContextVar["Capture | None"] = contextvars.ContextVar(
    "active_capture", default=None
)

_STRUCTURED = (dict, list, tuple, set, frozenset)


def _json_default(value: object) -> object:
    if isinstance(value, (set, frozenset)):
        return list(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    return str(value)


def render_value(value: object) -> str:
    """Pretty-print structured values, stringify scalars."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)
    elif isinstance(value, Mapping):
        value = dict(value)
    if not isinstance(value, _STRUCTURED):
        return str(value)
    try:
        return json.dumps(value, indent=2, default=_json_default)
    except (TypeError, ValueError):
        return pprint.pformat(value, indent=2)


def format_arguments(values: Iterable[object]) -> str:
    return " ".join(render_value(value) for value in values)


def format_record(record: logging.LogRecord) -> list[str]:
    """Render a log record as buffer entries: the message, then any traceback."""
    if isinstance(record.args, Mapping):
        args: tuple[object, ...] = (record.args,)
    else:
        args = tuple(record.args or ())

    values: list[object]
    if args and isinstance(record.msg, str) and "%" in record.msg:
        try:
            values = [record.getMessage()]
        except (TypeError, ValueError):
            values = [record.msg, *args]
    else:
        values = [record.msg, *args]

    entries = [format_arguments(values)]
    if record.exc_info and record.exc_info[0] is not None:
        entries.append("".join(traceback.format_exception(*record.exc_info)).rstrip())
    if record.stack_info:
        entries.append(record.stack_info)
    return entries


class Capture:
    """Ordered in-memory line buffer for one protected region."""

    def __init__(self, interceptor: "_Interceptor") -> None:
        self._interceptor = interceptor
        self._lines: list[str] = []
        self._pending = ""
        self._lock = threading.Lock()
        self._token: contextvars.Token["Capture | None"] | None = None
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def drain_text(self) -> list[str]:
        """Return buffered lines in emission order and empty the buffer."""
        with self._lock:
            if self._pending:
                self._lines.append(self._pending)
                self._pending = ""
            lines, self._lines = self._lines, []
        return lines

    def release(self) -> None:
        """Restore the previous destination. Safe to call more than once."""
        if self._released:
            return
        self._released = True
        try:
            if self._token is not None:
                _active_capture.reset(self._token)
        except ValueError as exc:
            raise LogCaptureError(f"Capture released outside its context: {exc}") from exc
        finally:
            self._interceptor.release()

    def __enter__(self) -> "Capture":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

    def _activate(self) -> None:
        self._token = _active_capture.set(self)

    def _accept(self, record: logging.LogRecord) -> None:
        if getattr(record, "_capture_id", None) == id(self):
            return
        record._capture_id = id(self)  # type: ignore[attr-defined]
        entries = format_record(record)
        with self._lock:
            if not self._released:
                self._lines.extend(entries)

    def _write(self, text: str) -> None:
        with self._lock:
            if self._released:
                return
            *complete, self._pending = (self._pending + text).split("\n")
            self._lines.extend(complete)


class _CaptureHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:
        capture = _active_capture.get()
        if capture is not None:
            capture._accept(record)
            return
        # Our handler on the root logger hides logging.lastResort from
        # contexts that are not capturing, so stand in for it.
        last_resort = logging.lastResort
        if (
            last_resort is not None
            and record.levelno >= last_resort.level
            and not self._reaches_other_handler(record.name)
        ):
            last_resort.handle(record)

    def _reaches_other_handler(self, name: str) -> bool:
        logger: logging.Logger | None = logging.getLogger(name)
        while logger is not None:
            if any(handler is not self for handler in logger.handlers):
                return True
            if not logger.propagate:
                return False
            logger = logger.parent
        return False


class _SuppressWhileCapturing(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return _active_capture.get() is None


class _StreamProxy:
    """Routes writes to the active capture, or to the wrapped stream."""

    def __init__(self, wrapped: TextIO) -> None:
        self.wrapped = wrapped

    def write(self, text: str) -> int:
        capture = _active_capture.get()
        if capture is None:
            return self.wrapped.write(text)
        capture._write(text)
        return len(text)

    def writelines(self, lines: Iterable[str]) -> None:
        for line in lines:
            self.write(line)

    def flush(self) -> None:
        if _active_capture.get() is None:
            self.wrapped.flush()

    def __getattr__(self, name: str) -> Any:
        return getattr(self.wrapped, name)


class _Interceptor:
    """Reference-counted installer of the process-wide interception hooks."""

    _STREAMS = ("stdout", "stderr")

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._users = 0
        self._handler = _CaptureHandler()
        self._filter = _SuppressWhileCapturing()
        self._filtered_handlers: list[logging.Handler] = []
        self._handled_loggers: list[logging.Logger] = []
        self._root_level: int | None = None
        self._warnings_enabled = False
        self._proxies: dict[str, _StreamProxy] = {}
        self._previous_factory: Callable[..., logging.LogRecord] | None = None

    @property
    def active(self) -> bool:
        return self._users > 0

    def acquire(self, level: int) -> None:
        with self._lock:
            try:
                if self._users == 0:
                    self._install(level)
                else:
                    self._patch_loggers()
            except Exception as exc:
                if self._users == 0:
                    self._uninstall_quietly()
                raise LogCaptureError(f"Failed to intercept diagnostic output: {exc}") from exc
            self._users += 1

    def release(self) -> None:
        with self._lock:
            if self._users == 0:
                return
            self._users -= 1
            if self._users > 0:
                return
            try:
                self._uninstall()
            except Exception as exc:
                raise LogCaptureError(f"Failed to restore diagnostic output: {exc}") from exc

    def _install(self, level: int) -> None:
        root = logging.getLogger()
        root.addHandler(self._handler)
        self._patch_loggers()

        if root.level != logging.NOTSET and root.level > level:
            self._root_level = root.level
            root.setLevel(level)

        if getattr(warnings.showwarning, "__module__", None) != "logging":
            logging.captureWarnings(True)
            self._warnings_enabled = True

        for name in self._STREAMS:
            stream = getattr(sys, name)
            if stream is not None and not isinstance(stream, _StreamProxy):
                proxy = _StreamProxy(stream)
                setattr(sys, name, proxy)
                self._proxies[name] = proxy

        if self._previous_factory is None:
            self._previous_factory = logging.getLogRecordFactory()
            logging.setLogRecordFactory(self._record_factory)

    def _patch_loggers(self) -> None:
        self._filter_handlers(logging.getLogger())
        try:
            loggers = [
                logger
                for logger in list(logging.root.manager.loggerDict.values())
                if isinstance(logger, logging.Logger)
            ]
        except Exception as exc:
            Log.debug(f"Logger discovery failed, intercepting root logger only: {exc}")
            return
        for logger in loggers:
            self._filter_handlers(logger)
            if not logger.propagate and self._handler not in logger.handlers:
                logger.addHandler(self._handler)
                self._handled_loggers.append(logger)

    def _record_factory(self, *args: Any, **kwargs: Any) -> logging.LogRecord:
        factory = self._previous_factory or logging.LogRecord
        record = factory(*args, **kwargs)
        if _active_capture.get() is not None:
            with self._lock:
                if self._users > 0:
                    self._patch_path(record.name)
        return record

    def _patch_path(self, name: str | None) -> None:
        # Runs before the record is handled, so handlers and loggers set up
        # after install are covered on their first record.
        logger: logging.Logger | None
        if not name or name == logging.root.name:
            logger = logging.root
        else:
            found = logging.root.manager.loggerDict.get(name)
            logger = found if isinstance(found, logging.Logger) else None
        while logger is not None:
            self._filter_handlers(logger)
            if not logger.propagate:
                if logger is not logging.root and self._handler not in logger.handlers:
                    logger.addHandler(self._handler)
                    self._handled_loggers.append(logger)
                return
            logger = logger.parent

    def _filter_handlers(self, logger: logging.Logger) -> None:
        for handler in list(logger.handlers):
            if handler is self._handler or handler in self._filtered_handlers:
                continue
            handler.addFilter(self._filter)
            self._filtered_handlers.append(handler)

    def _uninstall(self) -> None:
        if self._previous_factory is not None:
            if logging.getLogRecordFactory() == self._record_factory:
                logging.setLogRecordFactory(self._previous_factory)
                self._previous_factory = None
            else:
                # Still wrapped by a later factory; stays installed and inert.
                Log.debug("Log record factory replaced while capturing, leaving it in place")

        for name, proxy in self._proxies.items():
            if getattr(sys, name) is proxy:
                setattr(sys, name, proxy.wrapped)
        self._proxies.clear()

        if self._warnings_enabled:
            logging.captureWarnings(False)
            self._warnings_enabled = False

        root = logging.getLogger()
        if self._root_level is not None:
            root.setLevel(self._root_level)
            self._root_level = None

        for handler in self._filtered_handlers:
            handler.removeFilter(self._filter)
        self._filtered_handlers.clear()
        for logger in self._handled_loggers:
            logger.removeHandler(self._handler)
        self._handled_loggers.clear()
        root.removeHandler(self._handler)

    def _uninstall_quietly(self) -> None:
        try:
            self._uninstall()
        except Exception as exc:
            Log.debug(f"Partial interception rollback failed: {exc}")


_INTERCEPTOR = _Interceptor()


class LogCapture:
    """Opens captures of all diagnostic output for the current context."""

    def __init__(self, level: int | str = logging.DEBUG) -> None:
        if isinstance(level, str):
            mapping = logging.getLevelNamesMapping()
            if level.upper() not in mapping:
                raise ValueError(f"Unknown capture level '{level}'")
            level = mapping[level.upper()]
        self._level = level

    @property
    def level(self) -> int:
        return self._level

    def begin(self) -> Capture:
        """Start capturing; the caller must release the returned handle.

        Raises:
            LogCaptureError: if the interception hooks cannot be installed.
        """
        _INTERCEPTOR.acquire(self._level)
        capture = Capture(_INTERCEPTOR)
        capture._activate()
        return capture

    @contextmanager
    def capture(self) -> Iterator[Capture]:
        handle = self.begin()
        try:
            yield handle
        finally:
            handle.release()

    @contextmanager
    def interception(self) -> Iterator[None]:
        """Keep the hooks installed without opening a capture.

        Output from a context whose capture was already released is then
        dropped instead of reaching the restored destinations.
        """
        _INTERCEPTOR.acquire(self._level)
        try:
            yield
        finally:
            _INTERCEPTOR.release()


def interception_active() -> bool:
    """Return True while any capture is open in any context."""
    return _INTERCEPTOR.active
