"""
Staging of the build context: a private copy of the source tree plus the
rendered Dockerfile.
"""
import fnmatch
import hashlib
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..errors import BuildError
from ..MODELS.build_result import BuildStage

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


@dataclass
class StagedContext:
    """A staged build context owned by exactly one build."""
    root: str
    context_dir: str
    dockerfile_path: str
    digest: str
    file_count: int
    keep: bool = False

    def cleanup(self) -> None:
        if not self.keep and os.path.exists(self.root):
            shutil.rmtree(self.root, ignore_errors=True)

    def __enter__(self) -> "StagedContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()


class ContextStager:
    """
    Copies a source tree into a fresh staging directory. The tree is copied
    as is, minus any paths matching the ignore patterns; the Dockerfile is
    written beside the copy so the copy stays identical to the source.
    """

    def __init__(self,
                 root: Optional[str] = None,
                 ignore: Iterable[str] = (),
                 keep: bool = False):
        """
        :param root: Directory under which staging directories are created.
        :param ignore: Glob patterns matched against paths relative to the
                       source root and against bare file names.
        :param keep: Leave staging directories in place after the build.
        """
        self.root = root
        self.ignore = list(ignore)
        self.keep = keep

    def stage(self, source_dir: str, dockerfile: str) -> StagedContext:
        """
        Stages the source tree and the Dockerfile.

        :param source_dir: The local source tree.
        :param dockerfile: Rendered Dockerfile content.
        :return: The staged context.
        :raises BuildError: If the source tree is missing or cannot be copied.
        """
        if not os.path.isdir(source_dir):
            raise BuildError(f"Source tree {source_dir} does not exist",
                             stage=BuildStage.COPY_SOURCE)

        if self.root:
            os.makedirs(self.root, exist_ok=True)
        root = tempfile.mkdtemp(prefix="s2i-", dir=self.root)
        context_dir = os.path.join(root, "context")
        dockerfile_path = os.path.join(root, "Dockerfile")

        try:
            shutil.copytree(source_dir, context_dir, symlinks=True,
                            ignore=self._ignore_function(source_dir))
            with open(dockerfile_path, 'w') as f:
                f.write(dockerfile)
        except OSError as e:
            shutil.rmtree(root, ignore_errors=True)
            raise BuildError(f"Failed to stage source tree {source_dir}: {e}",
                             stage=BuildStage.COPY_SOURCE) from e

        files = list_files(context_dir)
        digest = tree_digest(context_dir, files)
        logger.debug("Staged %d files from %s into %s (digest %s)",
                     len(files), source_dir, context_dir, digest[:12])
        return StagedContext(root=root, context_dir=context_dir,
                             dockerfile_path=dockerfile_path, digest=digest,
                             file_count=len(files), keep=self.keep)

    def _ignore_function(self, source_dir: str):
        if not self.ignore:
            return None
        source_dir = os.path.abspath(source_dir)
        matches = ignore_matcher(self.ignore)

        def ignore(directory: str, names: List[str]) -> List[str]:
            rel_dir = os.path.relpath(os.path.abspath(directory), source_dir)
            return [name for name in names if matches(_join(rel_dir, name), name)]

        return ignore


def ignore_matcher(patterns: Iterable[str]):
    """
    Returns a predicate telling whether a path, given relative to the source
    root and as a bare name, matches one of the ignore patterns.
    """
    patterns = list(patterns)

    def matches(rel: str, name: str) -> bool:
        return any(fnmatch.fnmatch(rel, p) or fnmatch.fnmatch(name, p) for p in patterns)

    return matches


def _join(rel_dir: str, name: str) -> str:
    if rel_dir in (".", ""):
        return name
    return os.path.join(rel_dir, name).replace(os.sep, "/")


def list_files(directory: str, ignore: Iterable[str] = ()) -> List[str]:
    """
    Sorted relative paths (with '/' separators) of all files below directory,
    skipping files and directories that match the ignore patterns.
    """
    matches = ignore_matcher(ignore)
    found = []
    for current, dirs, files in os.walk(directory):
        rel_dir = os.path.relpath(current, directory)
        dirs[:] = sorted(d for d in dirs if not matches(_join(rel_dir, d), d))
        for name in files:
            rel = _join(rel_dir, name)
            if not matches(rel, name):
                found.append(rel)
    return sorted(found)


def tree_digest(directory: str,
                files: Optional[List[str]] = None,
                ignore: Iterable[str] = ()) -> str:
    """
    Content digest of a tree: sha256 over each relative path and its bytes.
    Symlinks contribute their target instead of the linked content. Paths
    matching the ignore patterns are left out, so the digest of a source
    tree equals the digest of its staged copy.
    """
    sha = hashlib.sha256()
    for rel in files if files is not None else list_files(directory, ignore):
        path = os.path.join(directory, rel)
        sha.update(rel.encode("utf-8") + b"\0")
        if os.path.islink(path):
            sha.update(b"link:" + os.readlink(path).encode("utf-8"))
        else:
            with open(path, 'rb') as f:
                for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                    sha.update(chunk)
        sha.update(b"\0")
    return sha.hexdigest()
