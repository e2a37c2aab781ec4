from __future__ import annotations

import os
import subprocess
import tempfile
from pathlib import Path
from typing import Tuple

from .errors import CompileError

DEFAULT_COMPILER = "mrbc"


def _run(cmd: list[str], timeout_s: int) -> Tuple[int, str, str]:
    try:
        p = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout_s,
            env=os.environ.copy(),
        )
        return p.returncode, p.stdout, p.stderr
    except subprocess.TimeoutExpired as e:
        raise TimeoutError(f"timeout running: {' '.join(cmd)} after {timeout_s}s") from e


def compile_source(source: str, compiler: str = DEFAULT_COMPILER, timeout_s: int = 30) -> bytes:
    """Compile mruby source into an irep blob with the external compiler."""
    with tempfile.TemporaryDirectory(prefix="hostlink-") as tmp:
        src = Path(tmp) / "input.rb"
        out = Path(tmp) / "input.mrb"
        src.write_text(source, encoding="utf-8")
        try:
            rc, stdout, stderr = _run([compiler, "-o", str(out), str(src)], timeout_s=timeout_s)
        except FileNotFoundError as e:
            raise CompileError(f"compiler not found: {compiler}") from e
        except TimeoutError as e:
            raise CompileError(str(e)) from e
        if rc != 0 or not out.exists():
            raise CompileError(stderr or stdout, returncode=rc)
        return out.read_bytes()
