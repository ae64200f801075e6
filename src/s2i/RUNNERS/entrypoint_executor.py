"""
Resolution and execution of an image's default process.
"""
import logging
from typing import List, Sequence

logger = logging.getLogger(__name__)

class EntrypointExecutor:
    """
    Handles the merging of ENTRYPOINT and CMD instructions according to Docker rules.
    """
    def get_full_command(self, entrypoint: List[str], cmd: List[str]) -> List[str]:
        """
        Combines entrypoint and cmd into a single command list.

        :param entrypoint: The ENTRYPOINT list.
        :param cmd: The CMD list.
        :return: The full command list.
        """
        # With an ENTRYPOINT, CMD only supplies its arguments
        if entrypoint:
            return entrypoint + cmd
        return cmd

    def run_default(self, backend, tag: str, args: Sequence[str] = ()) -> int:
        """
        Starts the image's default process and returns its exit code
        exactly as the container reported it.

        :param backend: Engine backend exposing run(tag, args).
        :param tag: Image to run.
        :param args: Extra arguments; none for the plain default process.
        """
        code = backend.run(tag, args)
        logger.info("Container %s exited with code %s", tag, code)
        return code
