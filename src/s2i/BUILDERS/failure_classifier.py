"""
Attributes a failed engine build to the build stage that caused it.
"""
import re
from typing import Optional

from ..MODELS.build_recipe import BuildRecipe
from ..MODELS.build_result import BuildStage
from .dockerfile_renderer import shell_command

# BuildKit: process "/bin/sh -c cargo install --path ." did not complete successfully: exit code: 101
BUILDKIT_PROCESS = re.compile(r'process "(?:/bin/sh -c )?(.*?)" did not complete successfully')
# Classic builder: The command '/bin/sh -c cargo install --path .' returned a non-zero code: 101
CLASSIC_PROCESS = re.compile(r"The command '(?:/bin/sh -c )?(.*?)' returned a non-zero code")

BASE_IMAGE_ERRORS = (
    "pull access denied",
    "manifest unknown",
    "failed to resolve source metadata",
    "repository does not exist",
    "no such host",
    "toomanyrequests",
)
APT_ERRORS = (
    "unable to locate package",
    "has no installation candidate",
)


def classify_failure(output: str, recipe: BuildRecipe) -> Optional[BuildStage]:
    """
    Finds the stage a build failed in from the engine's output.

    :param output: Combined stdout/stderr of the engine build.
    :param recipe: The recipe that was being built.
    :return: The failing stage, or None if the output names no stage.
    """
    text = output or ""
    lower = text.lower()

    failed = BUILDKIT_PROCESS.findall(text) or CLASSIC_PROCESS.findall(text)
    if failed:
        command = failed[-1]
        if "apt-get" in command or command.startswith("apt "):
            return BuildStage.INSTALL_SYSTEM_DEPENDENCIES
        if shell_command(recipe.install_command) in command or recipe.install_command[0] in command.split():
            return BuildStage.INSTALL_BINARY

    base = recipe.base_reference
    if any(marker in lower for marker in BASE_IMAGE_ERRORS):
        return BuildStage.SELECT_BASE
    if "not found" in lower and base.short_name.lower() in lower:
        return BuildStage.SELECT_BASE

    if any(marker in lower for marker in APT_ERRORS):
        return BuildStage.INSTALL_SYSTEM_DEPENDENCIES

    for line in text.splitlines():
        upper = line.upper()
        if "ERROR" not in upper and "FAILED" not in upper:
            continue
        if "WORKDIR" in line:
            return BuildStage.STAGE_WORKDIR
        if "COPY" in line or "failed to compute cache key" in line:
            return BuildStage.COPY_SOURCE

    return None
