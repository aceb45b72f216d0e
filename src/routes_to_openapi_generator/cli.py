"""Command line interface for generating and serving OpenAPI documents."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from werkzeug.serving import run_simple

from .config import ConfigLoadError, GeneratorConfig, load_generator_config
from .errors import GenerationError
from .module_loading import AppLoadError, load_object
from .routes import OpenAPIGenerator
from .serve import make_wsgi_app

logger = logging.getLogger(__name__)


class CLIError(RuntimeError):
    """Raised when CLI execution fails."""


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI parser."""
    parser = argparse.ArgumentParser(
        prog="routes-to-openapi",
        description="Generate an OpenAPI document from declared routes",
    )
    parser.add_argument(
        "--app",
        required=True,
        help="Generator or factory as 'package.module:attr' or 'path/to/file.py:attr'",
    )
    parser.add_argument("--config", help="Path to a generator configuration YAML file")
    parser.add_argument("--output", help="Write the document here instead of stdout")
    parser.add_argument("--format", choices=("json", "yaml"), default="json", help="Output format")
    parser.add_argument("--serve", action="store_true", help="Serve the document over HTTP")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind when serving")
    parser.add_argument("--port", type=int, default=8080, help="Port to bind when serving")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging level",
    )
    return parser


def load_generator(reference: str, *, config: Optional[GeneratorConfig] = None) -> OpenAPIGenerator:
    """Load a generator, calling a factory with ``config`` when one is given."""
    target: Any = load_object(reference)
    if isinstance(target, OpenAPIGenerator):
        if config is not None:
            raise CLIError(f"{reference} is already a generator; --config needs a factory")
        return target
    if not callable(target):
        raise CLIError(f"{reference} is neither an OpenAPIGenerator nor a factory")
    generator = target(config=config) if config is not None else target()
    if not isinstance(generator, OpenAPIGenerator):
        raise CLIError(f"{reference} returned {type(generator).__name__}, not an OpenAPIGenerator")
    return generator


def main(argv: list[str] | None = None) -> int:
    """Run CLI and return process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    try:
        config = load_generator_config(Path(args.config)) if args.config else None
        generator = load_generator(args.app, config=config)
        document = generator.document()
    except (ConfigLoadError, AppLoadError, CLIError, GenerationError) as exc:
        parser.error(str(exc))
        return 2

    if args.serve:
        logger.info("Serving %s on %s:%d", args.app, args.host, args.port)
        run_simple(args.host, args.port, make_wsgi_app(generator))
        return 0

    rendered = document.to_yaml() if args.format == "yaml" else document.to_json() + "\n"
    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(rendered, encoding="utf-8")
        logger.info("Wrote %s", output_path)
    else:
        sys.stdout.write(rendered)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
