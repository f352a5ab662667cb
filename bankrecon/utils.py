"""
Utility functions for the reconciliation system.

This module contains helper functions that are used across the system but
are not directly related to statement parsing or matching.
"""

import os
import pathlib
import logging

logger = logging.getLogger(__name__)

def setup_logging(debug=False, log_level='info', log_dir=None):
    """Configure logging for the application.

    Args:
        debug (bool): Log at DEBUG regardless of log_level
        log_level (str): Level name used when debug is off
        log_dir (str or pathlib.Path, optional): Directory for ``bankrecon.log`` when
            ``LOG_FILE`` is not set; the working directory otherwise

    Returns:
        str: Path of the log file
    """
    # Determine log level
    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, log_level.upper(), logging.INFO)

    format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    # LOG_FILE wins; otherwise the log sits next to the statement data
    default_file = os.path.join(str(log_dir), 'bankrecon.log') if log_dir else 'bankrecon.log'
    log_file = os.getenv('LOG_FILE', default_file)

    # Create log directory if needed
    parent_dir = os.path.dirname(log_file)
    if parent_dir and not os.path.exists(parent_dir):
        os.makedirs(parent_dir, exist_ok=True)

    # Statement imports are followed both in the log file and on the console
    logging.basicConfig(
        level=level,
        format=format,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )

    return log_file

def resolve_data_dir(data_dir=None):
    """Resolve and create the directory holding persisted statement data.

    Args:
        data_dir (str or pathlib.Path, optional): Explicit directory. When omitted
            the ``DATA_DIR`` environment variable is used, then ``./data``.

    Returns:
        pathlib.Path: Path to the directory
    """
    if data_dir is None:
        data_dir = pathlib.Path(os.getenv('DATA_DIR', os.getcwd())) / 'data'
    dir_path = pathlib.Path(data_dir)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path

def ensure_output_file(output_path, default_name):
    """
    Resolve an output path, appending ``default_name`` when a directory is given.

    Args:
        output_path (str or pathlib.Path): File or directory path
        default_name (str): File name used when output_path is a directory

    Returns:
        pathlib.Path: Path of the file to write

    Side Effects:
        - Creates the parent directory if it doesn't exist
    """
    output_path = pathlib.Path(output_path)
    if output_path.is_dir() or not output_path.suffix:
        output_path = output_path / default_name

    output_path.parent.mkdir(parents=True, exist_ok=True)
    logger.debug(f"Resolved output file {output_path}")
    return output_path
