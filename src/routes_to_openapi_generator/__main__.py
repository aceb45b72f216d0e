"""Allow ``python -m routes_to_openapi_generator``."""

from __future__ import annotations

from .cli import main

raise SystemExit(main())
