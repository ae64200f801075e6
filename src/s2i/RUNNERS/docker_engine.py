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
Container engine backend talking to the Docker daemon through the docker SDK.
"""
import logging
import os
import shlex
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import docker
import requests
from docker.errors import APIError, BuildError, ContainerError, DockerException, ImageNotFound

from ..errors import BackendError

logger = logging.getLogger(__name__)

OUTPUT_TAIL_LINES = 40


@dataclass
class CommandResult:
    """Exit status and combined output of an engine operation."""
    returncode: int
    output: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def tail(self, lines: int = OUTPUT_TAIL_LINES) -> str:
        return "\n".join(self.output.splitlines()[-lines:])


class DockerEngine:
    """
    Drives the Docker daemon. The client is created on first use so that
    rendering and parsing work without a reachable daemon.
    """

    def __init__(self,
                 base_url: Optional[str] = None,
                 timeout: Optional[float] = None,
                 client=None):
        """
        :param base_url: Daemon address (unix:// or tcp://); the DOCKER_HOST
                         environment is used when unset.
        :param timeout: Seconds the daemon may stay silent before a request is
                        abandoned; None waits forever.
        :param client: A ready docker.DockerClient.
        """
        self.base_url = base_url
        self.timeout = timeout
        self._client = client

    @property
    def client(self):
        if self._client is None:
            try:
                if self.base_url:
                    self._client = docker.DockerClient(base_url=self.base_url, timeout=self.timeout)
                else:
                    self._client = docker.from_env(timeout=self.timeout)
                self._client.ping()
            except DockerException as e:
                raise BackendError(f"Cannot connect to the Docker daemon: {e}") from e
        return self._client

    def build(self, context_dir: str, dockerfile: str, tag: str) -> CommandResult:
        """
        Builds an image from a staged context. The daemon only tags the
        image when every instruction succeeds.

        :param context_dir: Build context directory.
        :param dockerfile: Path of the Dockerfile to use; it may live outside
                           the context.
        :param tag: Tag for the resulting image.
        :return: Exit status and the build log.
        """
        lines: List[str] = []
        returncode = 0
        logger.debug("Building %s from %s", tag, context_dir)
        try:
            stream = self.client.api.build(
                path=os.path.abspath(context_dir),
                dockerfile=os.path.abspath(dockerfile),
                tag=tag,
                decode=True,
                rm=True,
                forcerm=True,
            )
            for entry in stream:
                if "stream" in entry:
                    text = entry["stream"].rstrip("\n")
                    if text:
                        lines.append(text)
                        logger.debug(text)
                elif "status" in entry:
                    lines.append(" ".join(str(entry[k]) for k in ("id", "status") if entry.get(k)))
                elif "error" in entry:
                    lines.append(entry["error"].rstrip("\n"))
                    detail = entry.get("errorDetail") or {}
                    returncode = detail.get("code") or 1
        except (APIError, BuildError) as e:
            lines.append(str(e))
            returncode = 1
        except requests.exceptions.Timeout:
            lines.append(f"Timed out after {self.timeout}s")
            returncode = 124
        except (DockerException, requests.exceptions.RequestException) as e:
            raise BackendError(f"Image build for {tag} could not be started: {e}") from e
        return CommandResult(returncode=returncode, output="\n".join(lines))

    def inspect(self, tag: str) -> Dict[str, Any]:
        """
        Returns the daemon's metadata for an image.

        :raises BackendError: If the image does not exist.
        """
        try:
            return self.client.images.get(tag).attrs
        except ImageNotFound as e:
            raise BackendError(f"Cannot inspect image {tag}: No such image") from e
        except APIError as e:
            raise BackendError(f"Cannot inspect image {tag}: {e}") from e

    def which(self, tag: str, binary: str) -> bool:
        """
        Checks that a binary resolves on the image's executable search path.
        """
        try:
            self.client.containers.run(tag,
                                       command=["-c", f"command -v {shlex.quote(binary)}"],
                                       entrypoint="sh",
                                       remove=True)
        except ContainerError:
            return False
        except (ImageNotFound, APIError) as e:
            raise BackendError(f"Cannot start a container from {tag}: {e}") from e
        return True

    def run(self, tag: str, args: Sequence[str] = ()) -> int:
        """
        Runs the image's default process, streaming its output to stdout.

        :return: The container's exit code, unaltered.
        """
        logger.info("Running %s %s", tag, " ".join(args))
        try:
            container = self.client.containers.run(tag, command=list(args) or None, detach=True)
        except (ImageNotFound, APIError) as e:
            raise BackendError(f"Cannot start a container from {tag}: {e}") from e
        try:
            for chunk in container.logs(stream=True, follow=True):
                sys.stdout.write(chunk.decode(errors="replace"))
                sys.stdout.flush()
            status = container.wait()
        finally:
            container.remove(force=True)
        return status["StatusCode"]
