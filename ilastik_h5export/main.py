#!/usr/bin/env python3
"""
Command line entry point for exporting image stacks to ilastik HDF5 files.
"""

import sys
import argparse

from .core.errors import ExportError
from .core.export_manager import HDF5Exporter
from .core.image_stack import ImageLoader
from .utils.config import add_recent_file, load_config, save_config
from .utils.logger import LogCapture, setup_logger


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Export an image stack to an ilastik HDF5 file')

    parser.add_argument('input', type=str, help='Path to a TIFF stack or image series')
    parser.add_argument('output', type=str, help='Path to the HDF5 file to write into')
    parser.add_argument('--dataset', '-n', type=str, help='Dataset name inside the HDF5 file')
    parser.add_argument('--compression', '-z', type=int, choices=range(10), metavar='0-9',
                        help='Deflate compression level (0 disables compression)')
    parser.add_argument('--overwrite', action='store_true', help='Replace an existing dataset')
    parser.add_argument('--debug', '-d', action='store_true', help='Enable debug mode')
    parser.add_argument('--config', '-c', type=str, help='Path to configuration file')
    parser.add_argument('--no-log-file', action='store_true', help='Log to the console only')

    return parser.parse_args(argv)


def main(argv=None):
    """Application entry point."""
    args = parse_arguments(argv)

    config = load_config(args.config)
    log_config = config['logging']
    logger = setup_logger(
        args.debug or log_config['debug'],
        log_to_file=log_config['log_to_file'] and not args.no_log_file,
    )

    export_config = config['export']
    compression = args.compression if args.compression is not None else export_config['compression']
    dataset_name = args.dataset or export_config['dataset_name']
    overwrite = args.overwrite or export_config['overwrite']

    image = ImageLoader(logger).load_file(args.input)
    if image is None:
        logger.error(f"Could not load {args.input}")
        return 1

    try:
        with LogCapture(logger, f"export {args.input} -> {args.output}:/{dataset_name}"):
            with HDF5Exporter(
                args.output,
                chunk_divisor=export_config['chunk_divisor'],
                write_axistags=export_config['write_axistags'],
                logger=logger,
            ) as exporter:
                result = exporter.export(image, compression, dataset_name, overwrite=overwrite)
    except (ExportError, OSError, ValueError) as e:
        logger.error(f"Export failed: {e}")
        return 1

    print(f"{args.output}:/{result.name} {result.shape} {result.dtype}")

    add_recent_file(config, 'input', args.input)
    add_recent_file(config, 'output', args.output)
    save_config(config, args.config)

    return 0


if __name__ == "__main__":
    sys.exit(main())
