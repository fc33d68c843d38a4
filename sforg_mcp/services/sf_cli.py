"""Thin wrapper around the Salesforce ``sf`` command-line tool."""
import json
import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from sforg_mcp import config
from sforg_mcp.exceptions import SfCliError, SfCliNotFoundError

logger = logging.getLogger(__name__)

_CLI_NAMES = ("sf", "sfdx")


def _candidate_dirs() -> List[Path]:
    home = Path.home()
    dirs = [
        Path("/usr/local/bin"),
        Path("/opt/homebrew/bin"),
        Path("/usr/bin"),
        home / ".npm-global" / "bin",
        home / ".local" / "bin",
        home / ".volta" / "bin",
    ]
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if appdata:
            dirs.append(Path(appdata) / "npm")
        dirs.append(Path(os.environ.get("ProgramFiles", r"C:\Program Files")) / "sf" / "bin")
    return dirs


def find_sf_cli() -> str:
    """Locate the CLI: SF_CLI_PATH, then PATH, then common install directories."""
    if config.SF_CLI_PATH:
        if Path(config.SF_CLI_PATH).exists():
            return config.SF_CLI_PATH
        logger.warning("SF_CLI_PATH %s does not exist; searching PATH instead", config.SF_CLI_PATH)

    for name in _CLI_NAMES:
        found = shutil.which(name)
        if found:
            return found

    suffixes = (".cmd", ".exe", "") if sys.platform == "win32" else ("",)
    for directory in _candidate_dirs():
        for name in _CLI_NAMES:
            for suffix in suffixes:
                candidate = directory / f"{name}{suffix}"
                if candidate.is_file():
                    return str(candidate)
    raise SfCliNotFoundError()


def flag_list(flag: str, values: Optional[Iterable[str]]) -> List[str]:
    """Repeat ``flag`` for each non-empty value: ``--metadata A --metadata B``."""
    args: List[str] = []
    for value in values or ():
        if value:
            args.extend([flag, value])
    return args


def split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def format_values(values: Dict[str, Any]) -> str:
    """Render a field map as the ``--values`` string the CLI expects."""
    pairs = []
    for key, value in values.items():
        if isinstance(value, bool):
            text = "true" if value else "false"
        elif value is None:
            text = ""
        else:
            text = str(value)
        if "'" in text and '"' in text:
            raise ValueError(f"Value for {key} cannot contain both single and double quotes")
        quote = '"' if "'" in text else "'"
        pairs.append(f"{key}={quote}{text}{quote}")
    return " ".join(pairs)


def run_sf(
    args: List[str],
    target_org: Optional[str] = None,
    cwd: Optional[str] = None,
    timeout: Optional[float] = None,
    json_output: bool = True,
) -> Any:
    """Run ``sf <args>`` and return its decoded JSON output.

    With ``json_output=False`` the command runs without ``--json`` and the raw
    stdout is returned (decoded as JSON when it happens to be JSON).
    """
    cmd = [find_sf_cli(), *args]
    if target_org:
        cmd.extend(["--target-org", target_org])
    if json_output:
        cmd.append("--json")

    logger.info("Running: %s", " ".join(cmd[1:]))
    try:
        proc = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            cwd=cwd,
            timeout=timeout or config.SF_CLI_TIMEOUT,
            check=False,
        )
    except FileNotFoundError as e:
        raise SfCliNotFoundError() from e
    except subprocess.TimeoutExpired as e:
        raise SfCliError(f"sf {' '.join(args[:3])} timed out after {e.timeout:g} seconds") from e

    stdout = (proc.stdout or "").strip()
    stderr = (proc.stderr or "").strip()

    if not json_output:
        if proc.returncode != 0:
            raise SfCliError(stderr or stdout or f"sf exited with code {proc.returncode}",
                             returncode=proc.returncode)
        try:
            return json.loads(stdout)
        except ValueError:
            return stdout

    try:
        payload = json.loads(stdout) if stdout else {}
    except ValueError:
        payload = None

    if payload is None:
        detail = stderr or stdout or f"exit code {proc.returncode}"
        raise SfCliError(f"sf returned non-JSON output: {detail}", returncode=proc.returncode)

    status = payload.get("status", 0) if isinstance(payload, dict) else 0
    if proc.returncode != 0 or status != 0:
        message = payload.get("message") if isinstance(payload, dict) else None
        message = message or stderr or f"sf exited with code {proc.returncode}"
        details = payload.get("result") or payload.get("data") if isinstance(payload, dict) else None
        if details:
            message = f"{message}\n{json.dumps(details, indent=2)}"
        raise SfCliError(message, payload=payload, returncode=proc.returncode)
    return payload
