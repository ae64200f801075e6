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
Base image reference parsing and validation.
Parses references like 'rust:1.72' or 'ghcr.io/org/toolchain@sha256:...'.
"""

import re
from typing import Optional
from dataclasses import dataclass

# One path component of a repository name
COMPONENT_PATTERN = re.compile(r'^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$')
TAG_PATTERN = re.compile(r'^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$')
DIGEST_PATTERN = re.compile(r'^[a-z0-9]+(?:[.+_-][a-z0-9]+)*:[A-Fa-f0-9]{32,}$')


@dataclass
class ImageReference:
    """
    Parsed image reference.

    Examples:
        - rust -> docker.io/library/rust:latest
        - rust:1.72 -> docker.io/library/rust:1.72
        - myuser/toolchain:v1 -> docker.io/myuser/toolchain:v1
        - localhost:5000/rust:1.72 -> localhost:5000/rust:1.72
    """

    registry: str
    repository: str
    tag: Optional[str] = None
    digest: Optional[str] = None

    DEFAULT_REGISTRY = "docker.io"
    DEFAULT_TAG = "latest"

    @classmethod
    def parse(cls, reference: str) -> "ImageReference":
        """
        Parse and validate an image reference string.

        Args:
            reference: Image reference string (e.g., 'rust:1.72')

        Returns:
            Parsed ImageReference object.

        Raises:
            ValueError: If the reference is empty or malformed.
        """
        if not reference or not reference.strip():
            raise ValueError("Empty image reference")
        original = reference
        if any(c.isspace() for c in reference):
            raise ValueError(f"Image reference contains whitespace: {original!r}")

        digest = None
        if "@" in reference:
            reference, digest = reference.rsplit("@", 1)
            if not DIGEST_PATTERN.match(digest):
                raise ValueError(f"Invalid digest in image reference: {original!r}")

        tag = None
        last_colon = reference.rfind(":")
        if last_colon != -1:
            after_colon = reference[last_colon + 1 :]
            # A colon followed by a path is a registry port, not a tag
            if "/" not in after_colon:
                tag = after_colon
                reference = reference[:last_colon]
                if not TAG_PATTERN.match(tag):
                    raise ValueError(f"Invalid tag in image reference: {original!r}")

        parts = reference.split("/")
        first_part = parts[0]
        if len(parts) > 1 and ("." in first_part or ":" in first_part or first_part == "localhost"):
            registry = first_part
            parts = parts[1:]
        else:
            registry = cls.DEFAULT_REGISTRY
            if len(parts) == 1:
                parts = ["library"] + parts

        for component in parts:
            if not COMPONENT_PATTERN.match(component):
                raise ValueError(f"Invalid repository name in image reference: {original!r}")

        if not tag and not digest:
            tag = cls.DEFAULT_TAG

        return cls(registry=registry, repository="/".join(parts), tag=tag, digest=digest)

    @property
    def toolchain(self) -> str:
        """The last repository component, e.g. 'rust'."""
        return self.repository.rsplit("/", 1)[-1]

    @property
    def version(self) -> Optional[str]:
        """The tag, which names the toolchain version for official images."""
        return self.tag

    @property
    def full_name(self) -> str:
        """Get full image name with registry."""
        name = f"{self.registry}/{self.repository}"
        if self.digest:
            return f"{name}@{self.digest}"
        if self.tag:
            return f"{name}:{self.tag}"
        return name

    @property
    def short_name(self) -> str:
        """Get short image name (without registry if default)."""
        if self.registry == self.DEFAULT_REGISTRY:
            repo = self.repository
            if repo.startswith("library/"):
                repo = repo[8:]
            if self.digest:
                return f"{repo}@{self.digest}"
            if self.tag:
                return f"{repo}:{self.tag}"
            return repo
        return self.full_name

    def __str__(self) -> str:
        return self.short_name

    def __repr__(self) -> str:
        return f"ImageReference({self.full_name})"
