"""JSON response envelope for CLI commands.

Every command prints exactly one object ``{"success", "data", "error"}`` to
stdout so callers can pipe the output into other tools.
"""

import json
import sys
from typing import Any, Dict, NoReturn, Optional

import click


def _emit(payload: Dict[str, Any]) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


def emit_success(data: Dict[str, Any]) -> None:
    """Print a success envelope."""
    _emit({"success": True, "data": data, "error": None})


def emit_error(
    message: str,
    *,
    code: str,
    error_type: str = "error",
    remediation: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    exit_code: int = 1,
) -> NoReturn:
    """Print an error envelope and exit non-zero."""
    data: Dict[str, Any] = {"error_code": code, "error_type": error_type}
    if remediation:
        data["remediation"] = remediation
    if details:
        data["details"] = details
    _emit({"success": False, "data": data, "error": message})
    sys.exit(exit_code)
