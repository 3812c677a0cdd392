"""Main module for the images sync CLI."""

import sys
import argparse

from . import __version__
from .sync_images import add_sync_arguments, execute


def main() -> None:
    """
    Entry point for the ``images-sync`` command.

    ``sync`` runs one synchronization of the local image root against the
    originals and processed buckets; ``version`` prints version information.
    """
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="images-sync",
        description="Images Sync - keep a local image tree and its resized variants in S3",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Sync ./data/images using buckets from the environment
  ORIGINALS_BUCKET=originals PROCESSED_BUCKET=processed images-sync sync

  # Custom matrix, process-based workers, MinIO endpoint
  images-sync sync --image-root ./photos --sizes-config sizes.json \\
                   --originals-bucket originals --processed-bucket processed \\
                   --worker process --endpoint-url http://localhost:9000

  # Show version
  images-sync version
        """,
    )

    subparsers: argparse._SubParsersAction = parser.add_subparsers(
        dest="command", help="Available commands"
    )

    sync_parser: argparse.ArgumentParser = subparsers.add_parser(
        "sync", help="Upload new or changed images and their variants"
    )
    add_sync_arguments(sync_parser)

    subparsers.add_parser("version", help="Show version information")

    args: argparse.Namespace = parser.parse_args()

    if args.command == "sync":
        sys.exit(execute(args))

    elif args.command == "version":
        print("Images Sync CLI")
        print(f"Version {__version__}")
        print("Local image tree to S3 sync with resized variants")
        sys.exit(0)

    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
