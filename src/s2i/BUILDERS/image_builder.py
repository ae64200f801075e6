# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Builds container images from recipes.
"""
import logging
from typing import Any, Dict, Optional

from ..CONFIG.settings import Settings
from ..MODELS.build_recipe import BuildRecipe, RecipeFile
from ..MODELS.build_result import (BuildResult, BuildStage, BuildState,
                                   ImageDescriptor, STAGE_STATES)
from ..RUNNERS.docker_engine import DockerEngine
from ..RUNNERS.entrypoint_executor import EntrypointExecutor
from ..errors import BackendError, BuildError
from .context_stager import ContextStager
from .dockerfile_renderer import DockerfileRenderer
from .failure_classifier import classify_failure
from .pipeline import BuildPipeline

logger = logging.getLogger(__name__)

STAGE_ORDER = list(BuildStage)


class ImageBuilder:
    """
    Turns a source tree and a recipe into a tagged image whose default
    process is the installed binary.

    The build runs its stages strictly in order: select the base image,
    install system packages (when declared), stage the working directory,
    copy the source tree, install the binary and bind it as the default
    command. The first failing stage aborts the build with a BuildError and
    nothing is retried. The engine only tags an image whose build succeeded.
    """

    def __init__(self, backend=None, settings: Optional[Settings] = None):
        """
        Initializes the ImageBuilder.

        :param backend: Engine backend; defaults to the Docker daemon.
        :param settings: Runtime settings.
        """
        self.settings = settings or Settings()
        self.backend = backend or DockerEngine(self.settings.docker_host,
                                               timeout=self.settings.build_timeout)
        self.renderer = DockerfileRenderer()
        self.executor = EntrypointExecutor()

    def render(self, recipe: BuildRecipe) -> str:
        """Returns the Dockerfile for a recipe."""
        return self.renderer.render(recipe)

    def default_tag(self, recipe: BuildRecipe, variant: Optional[str] = None) -> str:
        return f"{recipe.name}:{variant or 'latest'}"

    def build_variant(self,
                      recipe_file: RecipeFile,
                      variant: Optional[str],
                      source_dir: str,
                      tag: Optional[str] = None) -> BuildResult:
        """
        Builds one declared variant of a recipe file.
        """
        recipe = recipe_file.variant(variant)
        return self.build(recipe, source_dir, tag=tag, variant=variant)

    def build(self,
              recipe: BuildRecipe,
              source_dir: str,
              tag: Optional[str] = None,
              variant: Optional[str] = None) -> BuildResult:
        """
        Builds and verifies the image.

        :param recipe: What to build.
        :param source_dir: The local source tree copied into the image.
        :param tag: Image tag; defaults to <name>:<variant or latest>.
        :param variant: Variant name, recorded in the result.
        :return: The successful build's result.
        :raises BuildError: On the first failing stage. The error's
                            `result` holds the failed BuildResult.
        """
        tag = tag or self.default_tag(recipe, variant)
        pipeline = BuildPipeline(recipe.name)
        result = BuildResult(recipe=recipe.name, tag=tag, variant=variant,
                             system_dependencies=list(recipe.system_dependencies))

        try:
            self._check_base(recipe)
            dockerfile = self.render(recipe)

            stager = ContextStager(root=self.settings.staging_root,
                                   ignore=recipe.ignore,
                                   keep=self.settings.keep_context)
            with stager.stage(source_dir, dockerfile) as staged:
                result.source_digest = staged.digest
                logger.info("[%s] Building %s from %s (%d files, packages: %s)",
                            recipe.name, tag, source_dir, staged.file_count,
                            " ".join(recipe.system_dependencies) or "none")
                outcome = self.backend.build(staged.context_dir, staged.dockerfile_path, tag)

            result.exit_code = outcome.returncode
            result.output = outcome.tail()
            if not outcome.ok:
                stage = classify_failure(outcome.output, recipe)
                self._advance_before(pipeline, recipe, stage)
                raise BuildError(f"Image build for {tag} failed with exit code {outcome.returncode}",
                                 stage=stage, exit_code=outcome.returncode,
                                 output=outcome.tail())

            self._advance_before(pipeline, recipe, BuildStage.INSTALL_BINARY)
            self._check_binary(tag, recipe)
            pipeline.advance(BuildState.BINARY_INSTALLED)

            result.image = self._check_default_command(tag, recipe)
            pipeline.advance(BuildState.ENTRYPOINT_BOUND)
        except BuildError as e:
            pipeline.fail()
            result.state = pipeline.state
            result.history = list(pipeline.history)
            result.failed_stage = e.stage
            if e.exit_code is not None:
                result.exit_code = e.exit_code
            result.output = e.output or result.output
            e.result = result
            logger.error("[%s] %s", recipe.name, e)
            raise

        result.state = pipeline.state
        result.history = list(pipeline.history)
        logger.info("[%s] Built %s (%s), default command %s",
                    recipe.name, tag, result.image.image_id[:19] or "no id", result.image.cmd)
        return result

    def inspect(self, tag: str, recipe: Optional[BuildRecipe] = None) -> ImageDescriptor:
        """
        Reads an image's boundary: default command, entrypoint and
        working directory.
        """
        return descriptor_from_inspect(tag, self.backend.inspect(tag), recipe)

    def verify(self, tag: str, recipe: BuildRecipe) -> ImageDescriptor:
        """
        Checks an existing image against a recipe: the binary must resolve on
        the image's search path and be the default process with no arguments.

        :raises BuildError: If either check fails.
        """
        self._check_binary(tag, recipe)
        return self._check_default_command(tag, recipe)

    def run(self, tag: str) -> int:
        """
        Runs the image's default process; returns its exit code unchanged.
        """
        return self.executor.run_default(self.backend, tag)

    def check_idempotent(self, first: BuildResult, second: BuildResult) -> bool:
        """
        True when two builds of the same source tree produced functionally
        equivalent images.
        """
        if not (first.succeeded and second.succeeded):
            return False
        if first.source_digest != second.source_digest:
            return False
        return first.image.equivalent_to(second.image)

    def _check_base(self, recipe: BuildRecipe) -> None:
        try:
            ref = recipe.base_reference
        except ValueError as e:
            raise BuildError(str(e), stage=BuildStage.SELECT_BASE) from e
        logger.debug("[%s] Base image %s", recipe.name, ref.full_name)

    def _check_binary(self, tag: str, recipe: BuildRecipe) -> None:
        if not self.backend.which(tag, recipe.binary):
            raise BuildError(f"Binary {recipe.binary!r} is not on the search path of {tag}",
                             stage=BuildStage.INSTALL_BINARY)

    def _check_default_command(self, tag: str, recipe: BuildRecipe) -> ImageDescriptor:
        try:
            descriptor = self.inspect(tag, recipe)
        except BackendError as e:
            raise BuildError(str(e), stage=BuildStage.BIND_ENTRYPOINT) from e
        command = self.executor.get_full_command(descriptor.entrypoint, descriptor.cmd)
        if command != recipe.default_command:
            raise BuildError(f"Default command of {tag} is {command}, expected {recipe.default_command}",
                             stage=BuildStage.BIND_ENTRYPOINT)
        return descriptor

    def _advance_before(self, pipeline: BuildPipeline, recipe: BuildRecipe,
                        stage: Optional[BuildStage]) -> None:
        """
        Marks every stage preceding `stage` as completed. An unattributed
        failure leaves the pipeline where it is.
        """
        if stage is None:
            return
        for done in STAGE_ORDER[:STAGE_ORDER.index(stage)]:
            state = STAGE_STATES[done]
            if state is None:
                continue
            if state == BuildState.DEPENDENCIES_INSTALLED and not recipe.system_dependencies:
                continue
            pipeline.advance(state)


def descriptor_from_inspect(tag: str,
                            data: Dict[str, Any],
                            recipe: Optional[BuildRecipe] = None) -> ImageDescriptor:
    """
    Builds an ImageDescriptor from `docker image inspect` output.
    """
    config = data.get("Config") or {}
    cmd = list(config.get("Cmd") or [])
    entrypoint = list(config.get("Entrypoint") or [])
    command = entrypoint or cmd
    return ImageDescriptor(
        tag=tag,
        image_id=data.get("Id", ""),
        base_image=recipe.base_image if recipe else None,
        binary=recipe.binary if recipe else (command[0] if command else None),
        cmd=cmd,
        entrypoint=entrypoint,
        working_directory=config.get("WorkingDir") or None,
    )
