"""
Models describing build stages, build outcomes and built images.
"""
from enum import Enum
from typing import List, Optional
import yaml
from pydantic import BaseModel

class BuildStage(str, Enum):
    """
    The operations of an image build, in execution order.
    """
    SELECT_BASE = "select-base"
    INSTALL_SYSTEM_DEPENDENCIES = "install-system-dependencies"
    STAGE_WORKDIR = "stage-workdir"
    COPY_SOURCE = "copy-source"
    INSTALL_BINARY = "install-binary"
    BIND_ENTRYPOINT = "bind-entrypoint"

class BuildState(str, Enum):
    """
    States of the forward-only build pipeline.
    """
    PENDING = "pending"
    BASE_SELECTED = "base-selected"
    DEPENDENCIES_INSTALLED = "dependencies-installed"
    SOURCE_STAGED = "source-staged"
    BINARY_INSTALLED = "binary-installed"
    ENTRYPOINT_BOUND = "entrypoint-bound"
    FAILED = "failed"

# State reached once each stage completes. WORKDIR has no state of its own;
# it completes together with the source copy.
STAGE_STATES = {
    BuildStage.SELECT_BASE: BuildState.BASE_SELECTED,
    BuildStage.INSTALL_SYSTEM_DEPENDENCIES: BuildState.DEPENDENCIES_INSTALLED,
    BuildStage.STAGE_WORKDIR: None,
    BuildStage.COPY_SOURCE: BuildState.SOURCE_STAGED,
    BuildStage.INSTALL_BINARY: BuildState.BINARY_INSTALLED,
    BuildStage.BIND_ENTRYPOINT: BuildState.ENTRYPOINT_BOUND,
}

class ImageDescriptor(BaseModel):
    """
    What a built image exposes at its boundary.
    """
    tag: str
    image_id: str = ""
    base_image: Optional[str] = None
    binary: Optional[str] = None
    cmd: List[str] = []
    entrypoint: List[str] = []
    working_directory: Optional[str] = None

    def equivalent_to(self, other: "ImageDescriptor") -> bool:
        """
        Functional equivalence: same binary, same default process and
        same working directory. Tags and image ids may differ.
        """
        return (self.binary == other.binary
                and self.cmd == other.cmd
                and self.entrypoint == other.entrypoint
                and self.working_directory == other.working_directory)

class BuildResult(BaseModel):
    """
    Outcome of one image build.
    """
    recipe: str
    tag: str
    variant: Optional[str] = None
    system_dependencies: List[str] = []
    state: BuildState = BuildState.PENDING
    history: List[BuildState] = []
    failed_stage: Optional[BuildStage] = None
    exit_code: Optional[int] = None
    source_digest: Optional[str] = None
    image: Optional[ImageDescriptor] = None
    output: str = ""

    @property
    def succeeded(self) -> bool:
        return self.state == BuildState.ENTRYPOINT_BOUND

class MatrixEntry(BaseModel):
    """
    One row of a build matrix report.
    """
    variant: str
    dependencies: List[str]
    tag: str
    succeeded: bool
    failed_stage: Optional[BuildStage] = None
    exit_code: Optional[int] = None
    error: Optional[str] = None

class MatrixReport(BaseModel):
    """
    Which dependency sets build the same source tree successfully.
    """
    recipe: str
    source_digest: Optional[str] = None
    entries: List[MatrixEntry] = []

    def succeeded(self) -> List[str]:
        return [e.variant for e in self.entries if e.succeeded]

    def failed(self) -> List[str]:
        return [e.variant for e in self.entries if not e.succeeded]

    def entry(self, variant: str) -> MatrixEntry:
        for e in self.entries:
            if e.variant == variant:
                return e
        raise KeyError(variant)

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.model_dump(mode="json"), sort_keys=False)
