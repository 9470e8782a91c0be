# utils.py
"""
Utility functions for the layout framework.

This module provides helper functions, such as logging setup and JSON file
I/O, that are used across different parts of the application but do not
belong to a specific domain like physics or rendering.
"""
import logging
import logging.handlers
import json
import os
from typing import Dict, Any

from graph import GraphData, parse_graph_data

# --- Data Contracts ---
#
# setup_logging(config: Dict[str, Any]) -> None:
#   - Inputs:
#     - config: A dictionary containing a "logging" key with "level",
#       "format", and "log_file" sub-keys.
#   - Outputs: None
#   - Side Effects: Configures the root Python logger. Creates a log
#     directory if it doesn't exist. Sets up a console handler and a
#     rotating file handler (skipped when "log_file" is empty or null).
#   - Invariants: After this function runs, the logging system is
#     initialized and ready for use throughout the application.
#
# load_graph_file(path: str) -> GraphData:
#   - Side Effects: Reads and parses a graph JSON file.
#   - Raises: FileNotFoundError, json.JSONDecodeError, MalformedGraphError.
#
# save_positions(path: str, simulation) -> None:
#   - Side Effects: Writes {"iteration", "converged", "positions": {id: [x, y, z]}}.


def setup_logging(config: Dict[str, Any]) -> None:
    """
    Configures the logging system from a configuration dictionary.

    Sets up logging to both the console and a rotating file.
    """
    log_config = config.get('logging', {})
    log_level = log_config.get('level', 'INFO').upper()
    log_format = log_config.get('format', '%(asctime)s - %(levelname)s - %(message)s')
    log_file_path = log_config.get('log_file', 'logs/layout.log')

    # Get the root logger
    logger = logging.getLogger()
    logger.setLevel(log_level)

    # Clear existing handlers to avoid duplication
    if logger.hasHandlers():
        logger.handlers.clear()

    # Create formatter
    formatter = logging.Formatter(log_format)

    # Console Handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file_path:
        # Ensure the log directory exists
        log_dir = os.path.dirname(log_file_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        # Rotating File Handler
        # Rotates when the log reaches 1MB, keeps 5 backup logs.
        file_handler = logging.handlers.RotatingFileHandler(
            log_file_path, maxBytes=1024*1024, backupCount=5
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logging.info("Logging system initialized.")
    logging.debug(f"Log level set to {log_level}.")
    logging.debug(f"Log file path: {log_file_path}")


def _read_json(path: str, what: str) -> Any:
    logging.info(f"Loading {what} from {path}...")
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        logging.info(f"{what.capitalize()} loaded successfully.")
        return data
    except FileNotFoundError:
        logging.error(f"{what.capitalize()} file not found at {path}.")
        raise
    except json.JSONDecodeError:
        logging.error(f"Error decoding JSON from {path}.")
        raise


def load_config(path: str) -> Dict[str, Any]:
    """Loads a JSON configuration file."""
    return _read_json(path, "configuration")


def load_graph_file(path: str) -> GraphData:
    """Loads a layered graph JSON file into an unvalidated GraphData bundle."""
    return parse_graph_data(_read_json(path, "graph"))


def save_positions(path: str, simulation) -> None:
    """Writes the current particle positions of `simulation` as JSON."""
    payload = {
        "iteration": simulation.get_iteration(),
        "converged": simulation.is_converged(),
        "positions": simulation.positions(),
    }
    out_dir = os.path.dirname(path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(payload, f, indent=2)
    logging.info(f"Wrote {len(payload['positions'])} positions to {path}.")
