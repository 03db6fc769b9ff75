import stat
import sys
from pathlib import Path

import pytest

FAKE_FRONTEND = Path(__file__).parent / "fake_frontend.py"


@pytest.fixture
def fake_frontend(tmp_path) -> Path:
    """Executable frontend script that runs under the current interpreter."""
    script = tmp_path / "bin" / "swift"
    script.parent.mkdir()
    script.write_text(f"#!{sys.executable}\n" + FAKE_FRONTEND.read_text())
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script
