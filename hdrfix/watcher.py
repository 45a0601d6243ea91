"""
Folder Watcher
--------------
Watches a directory with watchdog and converts new HDR captures as they
appear. Filesystem events only enqueue paths; a single worker thread drains
the queue and runs one independent conversion per file, so a failing file is
logged and the watcher moves on to the next one.
"""

import os
import queue
import threading
import time
from pathlib import Path
from typing import Callable, Optional, Set, Union

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from hdrfix.config import Config
from hdrfix.fileio import output_path_for
from hdrfix.hdr_converter import convert_file
from hdrfix.logger import setup_logger

logger = setup_logger("watcher")

_STOP = object()


def wait_for_file_stable(filepath: Union[str, Path], timeout: float = 10.0, check_interval: float = 0.5) -> bool:
    """
    Wait until the file size is unchanged for two consecutive checks.
    Reads at 0, check_interval, ... up to and including timeout, so
    timeout >= 2 * check_interval is enough for a finished file.
    Returns True if stable, False on timeout or if the file vanished.
    """
    last_size = -1
    stable_checks = 0
    elapsed = 0.0

    while elapsed <= timeout:
        try:
            current_size = os.path.getsize(filepath)
        except OSError:
            return False

        if current_size == last_size and current_size > 0:
            stable_checks += 1
            if stable_checks >= 2:
                return True
        else:
            stable_checks = 0
            last_size = current_size

        time.sleep(check_interval)
        elapsed += check_interval

    return False


class CaptureEventHandler(FileSystemEventHandler):
    """Turns watchdog create/move events into queued input paths."""

    def __init__(self, jobs: queue.Queue, extensions, output_suffix: str):
        super().__init__()
        self.jobs = jobs
        self.extensions = {e.lower() for e in extensions}
        self.output_suffix = output_suffix.lower()

    def wants(self, path: Union[str, Path]) -> bool:
        name = Path(path).name.lower()
        return Path(name).suffix in self.extensions and not name.endswith(self.output_suffix)

    def on_created(self, event):
        if not event.is_directory and self.wants(event.src_path):
            self.jobs.put(Path(event.src_path))

    def on_moved(self, event):
        # Capture tools that write to a temp name and rename
        if not event.is_directory and self.wants(event.dest_path):
            self.jobs.put(Path(event.dest_path))


class ConversionWatcher:
    """
    Convert every new capture in watch_dir to '<stem><OUTPUT_SUFFIX>' beside it.

    Args:
        watch_dir: Directory to observe.
        config: Conversion and watch options.
        convert: Single-file conversion, convert_file(input, output, config).
    """

    def __init__(self, watch_dir: Union[str, Path], config: Config,
                 convert: Callable[[Path, Path, Config], Optional[Path]] = convert_file):
        self.watch_dir = Path(watch_dir)
        self.config = config
        self.convert = convert
        self.jobs: queue.Queue = queue.Queue()
        self.handler = CaptureEventHandler(self.jobs, config.WATCH_EXTENSIONS, config.OUTPUT_SUFFIX)
        self.observer = None
        self._worker: Optional[threading.Thread] = None
        self._seen: Set[Path] = set()
        self.converted = 0
        self.failed = 0

    def process(self, input_path: Path, stable_interval: float = 0.5) -> Optional[Path]:
        """Convert one queued file unless it was already handled or its output exists."""
        input_path = Path(input_path)
        if input_path in self._seen:
            return None
        self._seen.add(input_path)

        output_path = output_path_for(input_path, self.config.OUTPUT_SUFFIX)
        if output_path.exists():
            logger.info(f"Skipping {input_path.name}: {output_path.name} already exists")
            return None

        logger.info(f"Detected: {input_path.name}")
        if not wait_for_file_stable(input_path, self.config.WATCH_STABLE_TIMEOUT, stable_interval):
            logger.warning(f"Timeout waiting for {input_path.name} to finish writing")
            self._seen.discard(input_path)
            self.failed += 1
            return None

        result = self.convert(input_path, output_path, self.config)
        if result is None:
            self.failed += 1
        else:
            self.converted += 1
        return result

    def _drain(self) -> None:
        while True:
            item = self.jobs.get()
            try:
                if item is _STOP:
                    return
                self.process(item)
            except Exception as e:
                # One bad file must not stop the watcher
                logger.error(f"Error processing {item}: {e}", exc_info=True)
                self.failed += 1
            finally:
                self.jobs.task_done()

    def start(self) -> None:
        """Start the observer and the conversion worker."""
        if not self.watch_dir.is_dir():
            raise ValueError(f"Invalid watch directory: {self.watch_dir}")

        self._worker = threading.Thread(target=self._drain, name="hdrfix_watch_worker", daemon=True)
        self._worker.start()

        self.observer = Observer()
        self.observer.schedule(self.handler, str(self.watch_dir), recursive=self.config.WATCH_RECURSIVE)
        self.observer.start()

        mode = "recursively" if self.config.WATCH_RECURSIVE else "non-recursively"
        logger.info(f"Watching {self.watch_dir} ({mode}) for {', '.join(sorted(self.handler.extensions))}")

    def stop(self) -> None:
        """Stop observing, let the queued conversions finish, then stop the worker."""
        if self.observer is not None:
            self.observer.stop()
            self.observer.join()
            self.observer = None
        if self._worker is not None:
            self.jobs.put(_STOP)
            self._worker.join()
            self._worker = None
        logger.info(f"Stopped watching ({self.converted} converted, {self.failed} failed)")

    def is_running(self) -> bool:
        return self.observer is not None and self.observer.is_alive()

    def run_forever(self, poll_interval: float = 1.0) -> None:
        """Block until interrupted (Ctrl+C)."""
        self.start()
        try:
            while self.is_running():
                time.sleep(poll_interval)
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down watcher...")
        finally:
            self.stop()
