"""Flask application factory for the SubtleAI HTTP service."""

import argparse
import logging
from typing import Callable, Optional

from flask import Flask, jsonify

from subtleai.config_loader import ConfigLoader, merge_config
from subtleai.factory import create_generator
from subtleai.job_store import JobStore
from subtleai.log_setup import setup_logging
from subtleai.utils import ensure_dir_exists

logger = logging.getLogger(__name__)


def _format_size(num_bytes: int) -> str:
    for unit, size in (("GB", 1024 ** 3), ("MB", 1024 ** 2), ("KB", 1024)):
        if num_bytes >= size:
            return f"{num_bytes / size:g}{unit}"
    return f"{num_bytes} bytes"


def create_app(
    config: Optional[dict] = None,
    generator_factory: Optional[Callable] = None,
    job_store: Optional[JobStore] = None,
    start_cleanup: bool = False,
) -> Flask:
    """
    Args:
        config: Settings dict (see ``DEFAULT_CONFIG``); defaults when None.
        generator_factory: ``(config, api_key, job_store) -> SubtitleGenerator``.
        job_store: Completed-output store; built from ``job_store_dir`` when None.
        start_cleanup: Start the periodic expiry sweep.
    """
    config = config if config is not None else merge_config({})
    app = Flask(__name__)
    app.config["SUBTLEAI"] = config
    app.config["GENERATOR_FACTORY"] = generator_factory or create_generator
    app.config["JOB_STORE"] = job_store or JobStore(
        config["job_store_dir"], expiry_seconds=float(config.get("job_expiry_seconds", 1800))
    )
    app.config["MAX_CONTENT_LENGTH"] = int(config.get("max_upload_bytes", 10 * 1024 * 1024 * 1024))
    ensure_dir_exists(config["upload_dir"])

    from subtleai.web.routes import bp
    app.register_blueprint(bp)

    @app.errorhandler(413)
    def request_entity_too_large(error):
        limit = app.config["MAX_CONTENT_LENGTH"]
        return jsonify({"error": f"File too large. Maximum size is {_format_size(limit)}."}), 413

    if start_cleanup:
        app.config["JOB_STORE"].start_cleanup_thread(float(config.get("cleanup_interval_seconds", 300)))
    return app


def main() -> None:
    parser = argparse.ArgumentParser(description="SubtleAI HTTP service.")
    parser.add_argument("-c", "--config", default=None, help="Path to the configuration YAML file.")
    parser.add_argument("--host", default=None, help="Override the bind address from config.")
    parser.add_argument("--port", type=int, default=None, help="Override the port from config.")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    args = parser.parse_args()

    config = ConfigLoader().load_config(args.config)
    setup_logging(log_level=getattr(logging, args.log_level), log_dir=config["log_dir"], log_file=config["log_file"])
    app = create_app(config, start_cleanup=True)
    host = args.host or config.get("host", "0.0.0.0")
    port = args.port or int(config.get("port", 3001))
    logger.info(f"Server running on http://{host}:{port}")
    app.run(host=host, port=port, threaded=True)
