import argparse
import os
import sys

from . import codec
from .chunking import ChunkSplitter
from .config import ProcessorSettings
from .files import FileManager
from .processor import DataProcessor
from .storage import DiskStorage
from .telemetry import (
    LoggingConfig,
    MetricsConfig,
    TracingConfig,
    configure_logging,
    configure_metrics,
    configure_tracing,
)
from .utils import load_env


def _file_manager(settings: ProcessorSettings) -> FileManager:
    return FileManager(DiskStorage(settings.storage_root), settings)


# ---------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------
def count_command(args, settings: ProcessorSettings) -> int:
    rows = _file_manager(settings).count_rows(args.path)
    print(rows)
    return rows


def split_command(args, settings: ProcessorSettings) -> list:
    file_manager = _file_manager(settings)
    local_path = file_manager.resolve(args.path)
    reader = codec.create_reader(local_path, **file_manager.codec_options)

    chunks = []
    try:
        for chunk in ChunkSplitter(file_manager).split(reader, local_path, args.rows, args.format):
            print(f"{chunk.number}\t{chunk.rows}\t{chunk.path}")
            chunks.append(chunk)
    finally:
        if local_path != args.path:
            file_manager.delete_local(local_path)
    return chunks


def worker_command(args, settings: ProcessorSettings) -> int:
    from .dispatch.rabbitmq import RabbitMQService, RabbitMQWorker, RabbitmqClient

    client = RabbitmqClient(
        host=os.getenv("RABBITMQ_HOST", "localhost"),
        port=int(os.getenv("RABBITMQ_PORT", "5672")),
        username=os.getenv("RABBITMQ_USERNAME", "guest"),
        password=os.getenv("RABBITMQ_PASSWORD", "guest"),
        virtual_host=os.getenv("RABBITMQ_VHOST", "/"),
        queue_name=args.queue or settings.queue,
    )
    service = RabbitMQService(client)
    try:
        return RabbitMQWorker(DataProcessor.from_settings(settings), service).run(args.max_messages)
    finally:
        service.close()


# ---------------------------------------------------------------------
# CLI parser
# ---------------------------------------------------------------------
def create_parser():
    parser = argparse.ArgumentParser(
        prog="sheetflow",
        description="Streaming spreadsheet import/export tools",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # -----------------------------------------------------------------
    # sheetflow count <path>
    # -----------------------------------------------------------------
    count_parser = subparsers.add_parser("count", help="Count data rows (header excluded)")
    count_parser.add_argument("path", type=str, help="Local file or storage key")

    # -----------------------------------------------------------------
    # sheetflow split <path> --rows N [--format fmt]
    # -----------------------------------------------------------------
    split_parser = subparsers.add_parser(
        "split",
        help="Split a file into chunk files",
        description="Example: sheetflow split orders.xlsx --rows 5000",
    )
    split_parser.add_argument("path", type=str, help="Local file or storage key")
    split_parser.add_argument("--rows", type=int, default=None, help="Data rows per chunk (default: settings)")
    split_parser.add_argument(
        "--format",
        type=str,
        default=None,
        choices=codec.supported_formats(),
        help="Chunk file format (default: same as the source)",
    )

    # -----------------------------------------------------------------
    # sheetflow worker [--queue name]
    # -----------------------------------------------------------------
    worker_parser = subparsers.add_parser("worker", help="Run a RabbitMQ worker for queued units")
    worker_parser.add_argument("--queue", type=str, default=None, help="Queue to consume (default: settings)")
    worker_parser.add_argument("--max-messages", type=int, default=None, help="Stop after this many messages")

    return parser


# ---------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------
def main(argv=None):
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    load_env()
    configure_logging(LoggingConfig.from_env())
    configure_tracing(TracingConfig.from_env())
    configure_metrics(MetricsConfig.from_env())
    settings = ProcessorSettings.from_env()

    if args.command == "split" and args.rows is None:
        args.rows = settings.chunk_rows

    commands = {
        "count": count_command,
        "split": split_command,
        "worker": worker_command,
    }

    try:
        commands[args.command](args, settings)
    except Exception as exc:
        print(f"[ERROR] {args.command} failed: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
