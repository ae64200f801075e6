"""
Models for build recipes: the declared inputs of an image build.
"""
import re
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from ..REGISTRY.image_reference import ImageReference
from ..errors import RecipeError

NAME_PATTERN = re.compile(r'^[a-z0-9][a-z0-9_.-]*$')
# Debian package names, optionally pinned with =version
PACKAGE_PATTERN = re.compile(r'^[a-z0-9][a-z0-9+.-]*(=[A-Za-z0-9.+:~-]+)?$')

DEFAULT_BASE_IMAGE = "rust:1.72"
DEFAULT_INSTALL_COMMAND = ["cargo", "install", "--path", "."]


def has_control_characters(value: str) -> bool:
    """True when a value holds a newline or another control character."""
    return any(ord(c) < 32 or ord(c) == 127 for c in value)


def normalize_packages(packages: List[str]) -> List[str]:
    """
    Validates OS package names and drops duplicates, keeping declared order.

    :raises ValueError: If a name is not a valid package name.
    """
    seen = []
    for pkg in packages:
        pkg = pkg.strip()
        if not PACKAGE_PATTERN.match(pkg):
            raise ValueError(f"Invalid system package name: {pkg!r}")
        if pkg not in seen:
            seen.append(pkg)
    return seen


class BuildRecipe(BaseModel):
    """
    Everything needed to produce the image: a toolchain base, an optional
    set of OS packages, a working directory for the source tree, the
    install command and the binary bound as the default process.
    """
    name: str
    base_image: str = DEFAULT_BASE_IMAGE
    system_dependencies: List[str] = []
    working_directory: Optional[str] = None
    install_command: List[str] = Field(default_factory=lambda: list(DEFAULT_INSTALL_COMMAND))
    binary: Optional[str] = None
    ignore: List[str] = []

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not NAME_PATTERN.match(value):
            raise ValueError(f"Invalid recipe name: {value!r}")
        return value

    @field_validator("base_image")
    @classmethod
    def _check_base_image(cls, value: str) -> str:
        value = value.strip()
        ImageReference.parse(value)
        return value

    @field_validator("system_dependencies")
    @classmethod
    def _check_packages(cls, value: List[str]) -> List[str]:
        return normalize_packages(value)

    @field_validator("install_command")
    @classmethod
    def _check_install_command(cls, value: List[str]) -> List[str]:
        if not value or not value[0].strip():
            raise ValueError("install_command must not be empty")
        for arg in value:
            if has_control_characters(arg):
                raise ValueError(f"install_command argument contains a control character: {arg!r}")
        return value

    @model_validator(mode="after")
    def _fill_defaults(self) -> "BuildRecipe":
        if self.working_directory is None:
            self.working_directory = f"/usr/src/{self.name}"
        if not self.working_directory.startswith("/"):
            raise ValueError(f"working_directory must be absolute: {self.working_directory!r}")
        if has_control_characters(self.working_directory):
            raise ValueError(f"working_directory contains a control character: {self.working_directory!r}")
        if self.binary is None:
            self.binary = self.name
        if (not self.binary or "/" in self.binary or any(c.isspace() for c in self.binary)
                or has_control_characters(self.binary)):
            raise ValueError(f"Invalid binary name: {self.binary!r}")
        return self

    @property
    def base_reference(self) -> ImageReference:
        return ImageReference.parse(self.base_image)

    @property
    def default_command(self) -> List[str]:
        """The image's default process: the binary with no arguments."""
        return [self.binary]

    def with_dependencies(self, packages: List[str]) -> "BuildRecipe":
        """
        Returns a copy of the recipe with a different system dependency set.
        """
        data = self.model_dump()
        data["system_dependencies"] = list(packages)
        return BuildRecipe(**data)


class RecipeFile(BaseModel):
    """
    A recipe together with its named dependency-set variants.
    Equivalent to a parsed recipe YAML file.
    """
    recipe: BuildRecipe
    variants: Dict[str, List[str]] = {}

    @field_validator("variants")
    @classmethod
    def _check_variants(cls, value: Dict[str, List[str]]) -> Dict[str, List[str]]:
        checked = {}
        for name, packages in value.items():
            if not NAME_PATTERN.match(name):
                raise ValueError(f"Invalid variant name: {name!r}")
            checked[name] = normalize_packages(packages or [])
        return checked

    @property
    def variant_names(self) -> List[str]:
        return list(self.variants.keys())

    def variant(self, name: Optional[str] = None) -> BuildRecipe:
        """
        Resolves a variant to a concrete recipe. No name means the recipe's
        own dependency set.

        :raises RecipeError: If the variant is not declared.
        """
        if name is None:
            return self.recipe
        if name not in self.variants:
            known = ", ".join(self.variants) or "none"
            raise RecipeError(f"Unknown variant {name!r} (declared: {known})")
        return self.recipe.with_dependencies(self.variants[name])
