"""Bit-flip mutation harness for targets that read one input file.

Each iteration copies the seed, flips one bit in 1% of its bytes (the
first four are left alone), writes the result into the cache directory
and runs ``<target> [targetArgs...] <artifact>``.  Samples that make the
target write to stderr, die from a signal or hang are kept; everything
else is deleted.

Module arguments (JSON)::

    {
        "targetFileLocation": "/usr/local/bin/exif",
        "targetSampleDataLocation": "./samples/photo.jpg",
        "timeoutMs": 3000,
        "stopOnFailure": false
    }
"""

from __future__ import annotations

import uuid
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from plugfuzz.core.errors import ModuleArgumentError, TargetLaunchError
from plugfuzz.fuzzer.mutation import bit_flip
from plugfuzz.fuzzer.process import Completed, TimedOut, run_target
from plugfuzz.plugins.base import STATUS_CONTINUE, BaseFuzzerPlugin

STATUS_SETUP_FAILED = -1
STATUS_TARGET_FAILED = 1


class BitFlipArgs(BaseModel):
    """Argument blob accepted by :class:`BitFlipFuzzer`."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    target_file_location: str = Field(alias="targetFileLocation", min_length=1)
    target_sample_data_location: str = Field(alias="targetSampleDataLocation", min_length=1)
    target_args: tuple[str, ...] = Field(default=(), alias="targetArgs")
    timeout_ms: int = Field(default=3000, alias="timeoutMs", gt=0)
    stop_on_failure: bool = Field(default=False, alias="stopOnFailure")


class BitFlipFuzzer(BaseFuzzerPlugin):
    name = "BitFlipFuzzer"
    description = "Flips random bits in a seed file and feeds it to a target program"

    def __init__(self) -> None:
        super().__init__()
        self.args: BitFlipArgs | None = None
        self.seed: bytes | None = None
        self.iterations = 0
        self.failures = 0
        self.hangs = 0

    def load_args(self, arg_string: str) -> None:
        try:
            self.args = BitFlipArgs.model_validate_json(arg_string)
        except ValidationError as e:
            fields = sorted({".".join(str(p) for p in err["loc"]) or "<root>" for err in e.errors()})
            raise ModuleArgumentError(
                f"{self.name}: invalid module arguments ({', '.join(fields)})",
                details=[err["msg"] for err in e.errors()],
            ) from e

    def execute(self) -> int:
        if self.seed is None:
            status = self._set_up()
            if status != STATUS_CONTINUE:
                return status

        artifact = self._write_artifact(bit_flip(self.seed))
        cmd = [self.args.target_file_location, *self.args.target_args, str(artifact)]

        try:
            outcome = run_target(cmd, timeout=self.args.timeout_ms / 1000)
        except TargetLaunchError as e:
            self.log.error("%s", e.message)
            artifact.unlink(missing_ok=True)
            return STATUS_SETUP_FAILED

        failed = self._classify(outcome, artifact)
        self.iterations += 1
        if failed and self.args.stop_on_failure:
            return STATUS_TARGET_FAILED
        return STATUS_CONTINUE

    def _set_up(self) -> int:
        if self.args is None:
            self.log.error("Module arguments were never loaded")
            return STATUS_SETUP_FAILED
        if not self.cache_dir or not self.cache_dir.strip():
            self.log.error("In this fuzzer cache directory will be needed!")
            return STATUS_SETUP_FAILED
        try:
            self.seed = Path(self.args.target_sample_data_location).read_bytes()
        except OSError as e:
            self.log.error("Cannot read seed %s: %s", self.args.target_sample_data_location, e)
            return STATUS_SETUP_FAILED
        self.log.info("Loaded %d-byte seed from %s", len(self.seed), self.args.target_sample_data_location)
        return STATUS_CONTINUE

    def _write_artifact(self, data: bytes) -> Path:
        base = Path(self.args.target_sample_data_location).name
        artifact = Path(self.cache_dir) / f"{base}_modification_{uuid.uuid4().hex}"
        artifact.write_bytes(data)
        return artifact

    def _classify(self, outcome: Completed | TimedOut, artifact: Path) -> bool:
        """Log the outcome and drop passing artifacts. Returns True on failure."""
        if isinstance(outcome, TimedOut):
            self.hangs += 1
            self.log.error(
                "%d target hanged on processing %s", self.iterations, artifact,
                extra={"artifact": str(artifact)},
            )
            return True

        if not outcome.failed:
            artifact.unlink(missing_ok=True)
            return False

        self.failures += 1
        extra = {"artifact": str(artifact), "exit_code": outcome.exit_code, "duration_ms": outcome.duration_ms}
        stderr = outcome.stderr_text.strip()
        if stderr:
            self.log.warning(
                "%d target failed on processing %s with message:\n%s",
                self.iterations, artifact, stderr,
                extra=extra,
            )
        if outcome.exit_code < 0:
            self.log.warning(
                "%d target failed on processing %s with returning code: %d",
                self.iterations, artifact, outcome.exit_code,
                extra=extra,
            )
        return True


def create_plugin() -> BitFlipFuzzer:
    return BitFlipFuzzer()
