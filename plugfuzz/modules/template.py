"""Skeleton for writing a new fuzzer plugin.

Copy this file next to the other plugins, rename the class and fill in
:meth:`TemplateFuzzer.execute`.
"""

from __future__ import annotations

from plugfuzz.plugins.base import STATUS_CONTINUE, BaseFuzzerPlugin


class TemplateFuzzer(BaseFuzzerPlugin):
    name = "Fuzzer"
    description = "Template to create fuzzer"

    def load_args(self, arg_string: str) -> None:
        self.log.info("Loaded args: %s", arg_string)

    def set_cache_dir(self, path: str) -> None:
        self.log.debug("Cache directory %s not in use", path)

    def execute(self) -> int:
        self.log.info("Execute fuzzer's task ....")
        self.log.info("Finished fuzzer's task")
        return STATUS_CONTINUE


def create_plugin() -> TemplateFuzzer:
    return TemplateFuzzer()
