"""
=============================================================================
EXTRACTOR SERVICE - Refresh the local reading store
=============================================================================
The Sunrun data extractor is a separate binary. It reads its credentials
from a small HCL file in its working directory and writes fresh readings
into sunrun.sqlite3 (or a JSON export) next to it.

The credentials file only exists while the extractor runs:

    write data.hcl  ->  run extractor  ->  delete data.hcl (always)
=============================================================================
"""

import shlex
import subprocess
from pathlib import Path
from typing import List, Optional, Union

from backend.lib.solar_core.errors import ExtractionError


def _hcl_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


def write_extractor_config(path: Union[str, Path], prospect_id: str, jwt_token: str) -> Path:
    """Write the extractor's data.hcl credentials file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        f"prospect_id = {_hcl_string(prospect_id)}\n"
        f"jwt_token = {_hcl_string(jwt_token)}\n",
        encoding="utf-8",
    )
    return path


def remove_extractor_config(path: Union[str, Path]) -> None:
    try:
        Path(path).unlink()
    except FileNotFoundError:
        pass


class ExtractorRunner:
    """
    Usage:
        runner = ExtractorRunner("./target/release/sunrun-data-api",
                                 cwd="sunrun-api-extractor",
                                 config_path="sunrun-api-extractor/data.hcl",
                                 prospect_id="123", jwt_token="...")
        runner.run()
    """

    def __init__(self, command: Union[str, List[str]], cwd: Union[str, Path],
                 config_path: Union[str, Path], prospect_id: str, jwt_token: str,
                 timeout: Optional[float] = 300):
        self.command = shlex.split(command) if isinstance(command, str) else list(command)
        if not self.command:
            raise ValueError("extractor command is empty")
        self.cwd = Path(cwd)
        self.config_path = Path(config_path)
        self.prospect_id = prospect_id
        self.jwt_token = jwt_token
        self.timeout = timeout

    def run(self) -> None:
        """
        Run the extractor once. Raises ExtractionError if it cannot be
        started, times out, or exits non-zero. The credentials file is
        removed in every case.
        """
        write_extractor_config(self.config_path, self.prospect_id, self.jwt_token)
        print("Running Sunrun extractor...")
        try:
            subprocess.run(self.command, cwd=self.cwd, check=True, timeout=self.timeout)
        except subprocess.CalledProcessError as e:
            raise ExtractionError(f"Extractor exited with status {e.returncode}") from e
        except subprocess.TimeoutExpired as e:
            raise ExtractionError(f"Extractor timed out after {self.timeout}s") from e
        except OSError as e:
            raise ExtractionError(f"Could not start extractor: {e}") from e
        finally:
            remove_extractor_config(self.config_path)
        print("Extractor finished")
