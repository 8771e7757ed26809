import logging
import sys
import threading
import warnings
from dataclasses import dataclass
from types import MappingProxyType

import pytest

from preprocessor_runner.logging.capture import (
    LogCapture,
    format_arguments,
    interception_active,
    render_value,
)
from preprocessor_runner.processor.exceptions import LogCaptureError

vendor_logger = logging.getLogger("vendor.capture_tests")


@dataclass
class _Tag:
    group: int
    element: int


class TestFormatting:
    def test_scalars_use_plain_string(self) -> None:
        assert render_value(42) == "42"
        assert render_value("text") == "text"
        assert render_value(None) == "None"

    def test_structures_are_pretty_printed(self) -> None:
        assert render_value({"a": 1}) == '{\n  "a": 1\n}'
        assert render_value([1, 2]) == "[\n  1,\n  2\n]"

    def test_dataclass_is_pretty_printed(self) -> None:
        assert render_value(_Tag(16, 16)) == '{\n  "group": 16,\n  "element": 16\n}'

    def test_unserializable_keys_fall_back_to_pformat(self) -> None:
        assert render_value({(1, 2): "x"}) == "{(1, 2): 'x'}"

    def test_arguments_joined_by_single_space(self) -> None:
        assert format_arguments(["Removed", 3, "tags"]) == "Removed 3 tags"


class TestCapturesLogging:
    def test_captures_all_levels(self) -> None:
        with LogCapture().capture() as capture:
            vendor_logger.debug("debug line")
            vendor_logger.info("info line")
            vendor_logger.warning("warning line")
            vendor_logger.error("error line")
            lines = capture.drain_text()

        assert lines == ["debug line", "info line", "warning line", "error line"]

    def test_renders_argument_list(self) -> None:
        with LogCapture().capture() as capture:
            vendor_logger.info("Tags", {"removed": 2}, 3)
            vendor_logger.info("Only dict", {"kept": True})
            lines = capture.drain_text()

        assert lines == [
            'Tags {\n  "removed": 2\n} 3',
            'Only dict {\n  "kept": true\n}',
        ]

    def test_renders_percent_style_messages(self) -> None:
        with LogCapture().capture() as capture:
            vendor_logger.warning("Found %d private tags in %s", 4, "a.dcm")
            lines = capture.drain_text()

        assert lines == ["Found 4 private tags in a.dcm"]

    def test_appends_traceback(self) -> None:
        with LogCapture().capture() as capture:
            try:
                raise ValueError("bad tag")
            except ValueError:
                vendor_logger.exception("Failed")
            lines = capture.drain_text()

        assert lines[0] == "Failed"
        assert "Traceback" in lines[1]
        assert "ValueError: bad tag" in lines[1]

    def test_captures_logger_created_during_capture(self) -> None:
        with LogCapture().capture() as capture:
            logging.getLogger("vendor.created_late").info("late")
            lines = capture.drain_text()

        assert lines == ["late"]

    def test_captures_non_propagating_logger_with_own_handler(self) -> None:
        logger = logging.getLogger("vendor.isolated")
        logger.propagate = False
        logger.setLevel(logging.INFO)
        emitted: list[logging.LogRecord] = []
        handler = logging.Handler()
        handler.emit = emitted.append  # type: ignore[method-assign]
        logger.addHandler(handler)
        try:
            with LogCapture().capture() as capture:
                logger.info("isolated")
                lines = capture.drain_text()
            logger.info("after")
        finally:
            logger.removeHandler(handler)
            logger.propagate = True
            logger.setLevel(logging.NOTSET)

        assert lines == ["isolated"]
        assert [record.getMessage() for record in emitted] == ["after"]

    def test_non_propagating_logger_set_up_during_capture(self) -> None:
        emitted: list[logging.LogRecord] = []
        handler = logging.Handler()
        handler.emit = emitted.append  # type: ignore[method-assign]
        logger: logging.Logger | None = None
        try:
            with LogCapture().capture() as capture:
                logger = logging.getLogger("vendor.lazy_import")
                logger.propagate = False
                logger.addHandler(handler)
                logger.warning("lazy vendor line")
                lines = capture.drain_text()
        finally:
            if logger is not None:
                logger.removeHandler(handler)
                logger.propagate = True

        assert lines == ["lazy vendor line"]
        assert emitted == []
        assert not interception_active()

    def test_stream_handler_added_during_capture_is_not_duplicated(self) -> None:
        logger = logging.getLogger("vendor.pydicom_style")
        with LogCapture().capture() as capture:
            handler = logging.StreamHandler()
            logger.addHandler(handler)
            try:
                logger.warning("pydicom-style line")
            finally:
                logger.removeHandler(handler)
            lines = capture.drain_text()

        assert lines == ["pydicom-style line"]

    def test_renders_single_non_dict_mapping(self) -> None:
        with LogCapture().capture() as capture:
            vendor_logger.info("Tags", MappingProxyType({"removed": 2}))
            lines = capture.drain_text()

        assert lines == ['Tags {\n  "removed": 2\n}']

    def test_drain_empties_buffer(self) -> None:
        with LogCapture().capture() as capture:
            vendor_logger.info("first")
            assert capture.drain_text() == ["first"]
            assert capture.drain_text() == []


class TestCapturesOtherChannels:
    def test_captures_print(self, capsys: pytest.CaptureFixture[str]) -> None:
        with LogCapture().capture() as capture:
            print("from print")
            print("to stderr", file=sys.stderr)
            lines = capture.drain_text()

        assert lines == ["from print", "to stderr"]
        captured = capsys.readouterr()
        assert "from print" not in captured.out
        assert "to stderr" not in captured.err

    def test_keeps_unterminated_stream_text(self) -> None:
        with LogCapture().capture() as capture:
            sys.stdout.write("partial")
            lines = capture.drain_text()

        assert lines == ["partial"]

    def test_captures_warnings(self) -> None:
        with warnings.catch_warnings():
            warnings.simplefilter("always")
            with LogCapture().capture() as capture:
                warnings.warn("deprecated transfer syntax", UserWarning, stacklevel=1)
                lines = capture.drain_text()

        assert len(lines) == 1
        assert "UserWarning: deprecated transfer syntax" in lines[0]


class TestRestoresDestinations:
    def test_logging_reaches_normal_destination_after_release(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        capture = LogCapture().begin()
        vendor_logger.warning("inside")
        capture.release()
        vendor_logger.warning("outside")

        assert capture.drain_text() == ["inside"]
        assert [record.getMessage() for record in caplog.records] == ["outside"]

    def test_restores_after_exception(self, caplog: pytest.LogCaptureFixture) -> None:
        with pytest.raises(RuntimeError):
            with LogCapture().capture():
                vendor_logger.warning("inside")
                raise RuntimeError("transform failed")

        vendor_logger.warning("outside")

        assert not interception_active()
        assert [record.getMessage() for record in caplog.records] == ["outside"]

    def test_restores_streams_and_root_level(self) -> None:
        stdout, stderr = sys.stdout, sys.stderr
        root_level = logging.getLogger().level

        with LogCapture().capture():
            assert sys.stdout is not stdout

        assert sys.stdout is stdout
        assert sys.stderr is stderr
        assert logging.getLogger().level == root_level

    def test_release_is_idempotent(self) -> None:
        capture = LogCapture().begin()
        capture.release()
        capture.release()

        assert capture.released
        assert not interception_active()

    def test_nested_capture_restores_outer(self) -> None:
        log_capture = LogCapture()
        with log_capture.capture() as outer:
            vendor_logger.info("outer 1")
            with log_capture.capture() as inner:
                vendor_logger.info("inner")
            vendor_logger.info("outer 2")
            outer_lines = outer.drain_text()

        assert inner.drain_text() == ["inner"]
        assert outer_lines == ["outer 1", "outer 2"]


class TestContextIsolation:
    def test_other_thread_is_not_captured(self, caplog: pytest.LogCaptureFixture) -> None:
        def emit() -> None:
            vendor_logger.warning("from other thread")

        with LogCapture().capture() as capture:
            worker = threading.Thread(target=emit)
            worker.start()
            worker.join()
            lines = capture.drain_text()

        assert lines == []
        assert [record.getMessage() for record in caplog.records] == ["from other thread"]

    def test_concurrent_captures_keep_separate_buffers(self) -> None:
        log_capture = LogCapture()
        results: dict[str, list[str]] = {}
        barrier = threading.Barrier(2)

        def work(name: str) -> None:
            with log_capture.capture() as capture:
                barrier.wait()
                for index in range(3):
                    vendor_logger.info(name, index)
                    print(name)
                barrier.wait()
                results[name] = capture.drain_text()

        threads = [threading.Thread(target=work, args=(name,)) for name in ("a.dcm", "b.dcm")]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        for name in ("a.dcm", "b.dcm"):
            assert sorted(results[name]) == sorted(
                [f"{name} 0", f"{name} 1", f"{name} 2", name, name, name]
            )
        assert not interception_active()


class _BrokenRegistry(dict):  # type: ignore[type-arg]
    def values(self):  # type: ignore[no-untyped-def, override]
        raise RuntimeError("registry unavailable")


class TestInterceptionFailures:
    def test_discovery_failure_still_captures_root(self, monkeypatch: pytest.MonkeyPatch) -> None:
        registry = _BrokenRegistry(logging.root.manager.loggerDict)
        monkeypatch.setattr(logging.root.manager, "loggerDict", registry)

        with LogCapture().capture() as capture:
            vendor_logger.info("still captured")
            lines = capture.drain_text()

        assert lines == ["still captured"]

    def test_install_failure_raises_log_capture_error(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def broken(capture: bool) -> None:
            raise RuntimeError("no warnings hook")

        monkeypatch.setattr(logging, "captureWarnings", broken)

        with pytest.raises(LogCaptureError, match="Failed to intercept"):
            LogCapture().begin()
        assert not interception_active()

    def test_unknown_level_name(self) -> None:
        with pytest.raises(ValueError, match="Unknown capture level"):
            LogCapture("LOUD")

    def test_level_name_is_resolved(self) -> None:
        assert LogCapture("info").level == logging.INFO
