"""Watch the incoming directory for sensor CSV drops."""

from pathlib import Path
import logging
import time

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


class CsvDropHandler(FileSystemEventHandler):
    """Hands each new or renamed-in CSV to `callback` once it stops growing."""

    def __init__(self, callback, supported_extensions, settle_seconds: float = 0.5, timeout: int = 10):
        super().__init__()
        self.callback = callback
        self.supported_extensions = supported_extensions
        self.settle_seconds = settle_seconds
        self.timeout = timeout
        self.processing = set()

    def on_created(self, event):
        if not event.is_directory:
            self._handle(Path(event.src_path))

    def on_moved(self, event):
        # Uploaders often write to a temp name and rename when done
        if not event.is_directory:
            self._handle(Path(event.dest_path))

    def _handle(self, filepath: Path):
        if (
            self.supported_extensions
            and filepath.suffix.lower() not in self.supported_extensions
        ):
            logger.debug(f"Ignoring unsupported file: {filepath.name}")
            return

        key = str(filepath)
        if key in self.processing:
            return

        self.processing.add(key)
        try:
            if not self._wait_for_file_ready(filepath):
                return
            logger.info(f"Detected new file: {filepath}")
            self.callback(filepath)
        except Exception:
            logger.exception(f"Error processing file: {filepath}")
        finally:
            self.processing.discard(key)

    def _wait_for_file_ready(self, filepath: Path) -> bool:
        start = time.time()
        last_size = -1
        while time.time() - start < self.timeout:
            try:
                current = filepath.stat().st_size
            except OSError:
                return False
            if current == last_size and current > 0:
                return True
            last_size = current
            time.sleep(self.settle_seconds)
        logger.warning(f"Timeout waiting for file to stabilize: {filepath}")
        return True


class FileWatcher:
    def __init__(self, watch_dir: str, callback, supported_extensions):
        self.watch_dir = Path(watch_dir)
        self.callback = callback
        self.supported_extensions = (
            [e.lower() for e in supported_extensions] if supported_extensions else []
        )
        self.observer = None

    def start(self):
        if not self.watch_dir.exists():
            raise ValueError(f"Watch directory does not exist: {self.watch_dir}")
        handler = CsvDropHandler(self.callback, self.supported_extensions)
        self.observer = Observer()
        self.observer.schedule(handler, str(self.watch_dir), recursive=False)
        self.observer.start()
        logger.info(f"Started watching {self.watch_dir}")

    def stop(self):
        if self.observer:
            self.observer.stop()
            self.observer.join()
            logger.info("Stopped file watcher")
