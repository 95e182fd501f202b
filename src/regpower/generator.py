from __future__ import annotations

import json
import logging
import os
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from .config import AppConfig

logger = logging.getLogger(__name__)

KNOWN_TASKS = ("GetAddressOwnRealToken", "GetBalancesREG", "ClassementREG", "CalculatePowerVotingREG")
RESULT_FILE = "task-result.json"
OPTIONS_FILE = os.path.join("src", "configs", "optionsModifiers.ts")
TASKS_DIR = os.path.join("src", "tasks")


@dataclass
class GeneratorResult:
    success: bool
    output: str = ""
    error: Optional[str] = None
    output_file: Optional[str] = None
    exit_code: Optional[int] = None


@dataclass
class GeneratedFile:
    name: str
    size: int
    modified: str
    type: str


def list_tasks(cfg: AppConfig) -> List[str]:
    tasks_dir = os.path.join(cfg.generator_dir, TASKS_DIR)
    try:
        names = os.listdir(tasks_dir)
    except FileNotFoundError:
        return []
    available = {n[:-3] for n in names if n.endswith(".ts") and ".test." not in n}
    return [t for t in KNOWN_TASKS if t in available]


def read_default_options(cfg: AppConfig) -> Optional[str]:
    try:
        with open(os.path.join(cfg.generator_dir, OPTIONS_FILE), "r", encoding="utf-8") as f:
            return f.read()
    except FileNotFoundError:
        return None


def _write_options(cfg: AppConfig, config_text: str) -> None:
    path = os.path.join(cfg.generator_dir, OPTIONS_FILE)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(config_text)
    logger.info("Generator options written to %s", path)


def _read_result(cfg: AppConfig) -> Dict[str, Any]:
    with open(os.path.join(cfg.generator_dir, RESULT_FILE), "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError("task result is not an object")
    return data


def run_task(
    cfg: AppConfig,
    task: str,
    options: Optional[Dict[str, Any]] = None,
    config_text: Optional[str] = None,
) -> GeneratorResult:
    """Run one generator task as a subprocess.

    Failures of any kind (timeout, launch error, non-zero exit, unreadable
    result) come back as an unsuccessful result; this never retries.
    """
    if task not in KNOWN_TASKS:
        raise ValueError(f"Unknown generator task: {task}")
    if config_text:
        _write_options(cfg, config_text)
    result_path = os.path.join(cfg.generator_dir, RESULT_FILE)
    if os.path.exists(result_path):
        os.remove(result_path)

    cmd = [*cfg.generator_command, json.dumps(options or {}), task]
    logger.info("[%s] starting generator: %s", task, " ".join(cmd[:-2]))
    try:
        proc = subprocess.run(
            cmd,
            cwd=cfg.generator_dir,
            capture_output=True,
            text=True,
            timeout=cfg.generator_timeout_seconds,
        )
    except subprocess.TimeoutExpired as exc:
        logger.error("[%s] timed out after %.0f s", task, cfg.generator_timeout_seconds)
        partial = exc.stdout if isinstance(exc.stdout, str) else ""
        return GeneratorResult(
            success=False,
            output=partial,
            error=f"Timeout: generation took longer than {cfg.generator_timeout_seconds / 60:.0f} minutes and was stopped.",
            exit_code=-1,
        )
    except OSError as exc:
        logger.error("[%s] could not start generator: %s", task, exc)
        return GeneratorResult(success=False, error=str(exc))

    logger.info("[%s] exited with code %s", task, proc.returncode)
    try:
        result = _read_result(cfg)
    except (OSError, ValueError) as exc:
        logger.error("[%s] failed to read task result: %s", task, exc)
        result = {"success": False, "error": proc.stderr or "Failed to read task result"}

    return GeneratorResult(
        success=bool(result.get("success")) and proc.returncode == 0,
        output=proc.stdout,
        error=proc.stderr or result.get("error"),
        output_file=result.get("outputFile") or None,
        exit_code=proc.returncode,
    )


def list_generated_files(out_dir: str) -> List[GeneratedFile]:
    try:
        names = os.listdir(out_dir)
    except FileNotFoundError:
        return []
    files: List[GeneratedFile] = []
    for name in names:
        if not (name.endswith(".json") or name.endswith(".csv")):
            continue
        try:
            st = os.stat(os.path.join(out_dir, name))
        except FileNotFoundError:
            continue
        files.append(
            GeneratedFile(
                name=name,
                size=st.st_size,
                modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc).isoformat(),
                type="json" if name.endswith(".json") else "csv",
            )
        )
    files.sort(key=lambda f: f.modified, reverse=True)
    return files


def resolve_generated_file(out_dir: str, name: str) -> str:
    root = os.path.realpath(out_dir)
    path = os.path.realpath(os.path.join(root, name))
    if os.path.commonpath([root, path]) != root or path == root:
        raise PermissionError(f"Access denied: {name}")
    if not os.path.isfile(path):
        raise FileNotFoundError(name)
    return path


def downloadable_files(out_dir: str) -> List[Tuple[GeneratedFile, str]]:
    """Generated files paired with their resolved path, newest first.

    Files that escape ``out_dir`` or vanished since the listing are skipped.
    """
    found: List[Tuple[GeneratedFile, str]] = []
    for f in list_generated_files(out_dir):
        try:
            found.append((f, resolve_generated_file(out_dir, f.name)))
        except (PermissionError, FileNotFoundError) as exc:
            logger.warning("Skipping generated file %s: %s", f.name, exc)
    return found
