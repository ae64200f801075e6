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
Exceptions raised while loading recipes and building images.
"""
from typing import Optional


class S2IError(Exception):
    """Base class for all s2i errors."""


class RecipeError(S2IError):
    """A recipe file or recipe value is invalid."""


class PipelineError(S2IError):
    """An illegal build state transition was requested."""


class BackendError(S2IError):
    """The container engine could not be invoked or queried."""


class BuildError(S2IError):
    """
    A build stage failed. Build failures are fatal: no image is tagged and
    nothing is retried.
    """

    def __init__(self,
                 message: str,
                 stage=None,
                 exit_code: Optional[int] = None,
                 output: str = ""):
        super().__init__(message)
        self.stage = stage
        self.exit_code = exit_code
        self.output = output
        # BuildResult of the failed build, attached by the builder
        self.result = None

    def __str__(self) -> str:
        message = super().__str__()
        if self.stage is not None:
            message = f"{message} (stage: {self.stage.value})"
        return message
