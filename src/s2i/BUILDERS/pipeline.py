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
Forward-only state machine tracking the progress of one image build.
"""
from typing import List

from ..MODELS.build_result import BuildState
from ..errors import PipelineError

ORDER = [
    BuildState.PENDING,
    BuildState.BASE_SELECTED,
    BuildState.DEPENDENCIES_INSTALLED,
    BuildState.SOURCE_STAGED,
    BuildState.BINARY_INSTALLED,
    BuildState.ENTRYPOINT_BOUND,
]

# States that may be jumped over
OPTIONAL = {BuildState.DEPENDENCIES_INSTALLED}

TERMINAL = {BuildState.ENTRYPOINT_BOUND, BuildState.FAILED}


class BuildPipeline:
    """
    Tracks build states:

        PENDING -> BASE_SELECTED -> [DEPENDENCIES_INSTALLED] -> SOURCE_STAGED
                -> BINARY_INSTALLED -> ENTRYPOINT_BOUND

    Any non-terminal state may move to FAILED. There is no way back and
    nothing happens after a terminal state.
    """

    def __init__(self, name: str = "build"):
        self.name = name
        self.state = BuildState.PENDING
        self.history: List[BuildState] = [BuildState.PENDING]

    def advance(self, target: BuildState) -> BuildState:
        """
        Moves to a later state, skipping only optional states.

        :param target: The state to move to.
        :return: The new state.
        :raises PipelineError: If the transition is not allowed.
        """
        if self.state in TERMINAL:
            raise PipelineError(f"[{self.name}] Build already finished in state {self.state.value}")
        if target == BuildState.FAILED:
            return self.fail()

        current = ORDER.index(self.state)
        wanted = ORDER.index(target)
        if wanted <= current:
            raise PipelineError(
                f"[{self.name}] Cannot move from {self.state.value} back to {target.value}")
        skipped = [s for s in ORDER[current + 1:wanted] if s not in OPTIONAL]
        if skipped:
            raise PipelineError(
                f"[{self.name}] Cannot skip {', '.join(s.value for s in skipped)} "
                f"on the way to {target.value}")

        self.state = target
        self.history.append(target)
        return target

    def fail(self) -> BuildState:
        if self.state in TERMINAL:
            raise PipelineError(f"[{self.name}] Build already finished in state {self.state.value}")
        self.state = BuildState.FAILED
        self.history.append(BuildState.FAILED)
        return self.state

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL

    @property
    def succeeded(self) -> bool:
        return self.state == BuildState.ENTRYPOINT_BOUND
