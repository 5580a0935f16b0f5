"""
Drop-folder ingest service.

Watches the incoming directory for sensor CSV files, validates and stores
each one, then archives or quarantines it.
"""

import logging
import time

from .config import configure_logging, load_config
from .db_writer import DBWriter
from .file_manager import FileManager
from .file_watcher import FileWatcher
from .parsers.parser_registry import ParserRegistry
from .service_logic import process_csv_file
from .storage import get_storage_backend

logger = logging.getLogger(__name__)


class IngestService:
    def __init__(self, config: dict):
        incoming = config["incoming"]
        self.process_existing = incoming.get("process_existing", True)
        self.extensions = ParserRegistry().get_supported_extensions()

        self.file_manager = FileManager(
            incoming["incoming_dir"], incoming["archived_dir"], incoming["quarantine_dir"]
        )
        self.storage = get_storage_backend(config.get("storage"))
        self.db_writer = DBWriter(
            config["database"]["url"],
            connect_timeout=config["database"].get("connect_timeout", 10),
        )
        self.watcher = FileWatcher(incoming["incoming_dir"], self.handle_file, self.extensions)

    def handle_file(self, filepath):
        return process_csv_file(filepath, self.storage, self.db_writer, self.file_manager, logger)

    def process_pending(self) -> int:
        """Process files that were dropped while the service was down."""
        handled = 0
        for filepath in self.file_manager.pending_files(self.extensions):
            try:
                self.handle_file(filepath)
            except Exception:
                # Already quarantined; keep going with the rest
                logger.error(f"Failed to process existing file {filepath.name}")
            handled += 1
        return handled

    def run(self):
        logger.info("Starting heat ingest service")
        if self.process_existing:
            count = self.process_pending()
            logger.info(f"Processed {count} existing file(s)")

        self.watcher.start()
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            logger.info("Shutting down gracefully")
        finally:
            self.watcher.stop()
            self.db_writer.close()
        logger.info("Heat ingest service stopped")


def main():
    config = load_config()
    configure_logging(config)
    if not config["database"]["url"]:
        raise SystemExit("DATABASE_URL is not configured")
    IngestService(config).run()


if __name__ == "__main__":
    main()
