import hashlib
import logging
import os
import re
import pytest

from s2i.PARSERS.dockerfile_parser import DockerfileParser
from s2i.REGISTRY.image_reference import ImageReference
from s2i.RUNNERS.docker_engine import CommandResult
from s2i.errors import BackendError

TRANSCRIPT_DOCKERFILE = """FROM rust:1.72

RUN apt-get update && apt-get install -y clang cmake

WORKDIR /usr/src/transcript
COPY . .

RUN cargo install --path .

CMD ["transcript"]
"""


class FakeEngine:
    """
    Stand-in for the container engine. It interprets the Dockerfile it is
    given: the base image must be known, apt packages must exist in the
    package index, and the install step needs every package listed in the
    source tree's native-deps.txt to have been installed.
    """

    def __init__(self, images=("rust:1.72",), apt_index=("clang", "cmake", "pkg-config")):
        self.images = {ImageReference.parse(i).full_name for i in images}
        self.apt_index = set(apt_index)
        self.built = {}
        self.binaries = {}
        self.builds = []
        self.runs = []
        self.exit_codes = {}
        self.path_override = {}

    def build(self, context_dir, dockerfile, tag):
        with open(dockerfile) as f:
            text = f.read()
        self.builds.append({"tag": tag, "dockerfile": text,
                            "files": sorted(os.listdir(context_dir))})
        instructions = DockerfileParser().parse_from_string(text)
        installed = set()
        workdir = "/"
        cmd = []
        for inst in instructions:
            if inst.instruction == "FROM":
                ref = ImageReference.parse(inst.text)
                if ref.full_name not in self.images:
                    return CommandResult(1, (
                        f"#2 [internal] load metadata for {ref.full_name}\n"
                        f"ERROR: failed to solve: {ref.short_name}: failed to resolve source metadata "
                        f"for {ref.full_name}: {ref.full_name}: not found\n"))
            elif inst.instruction == "RUN" and inst.text.startswith("apt-get"):
                packages = inst.text.split("install -y", 1)[1].split()
                missing = [p for p in packages if p not in self.apt_index]
                if missing:
                    return CommandResult(1, (
                        f"E: Unable to locate package {missing[0]}\n"
                        f"ERROR: failed to solve: process \"/bin/sh -c {inst.text}\" "
                        f"did not complete successfully: exit code: 100\n"))
                installed.update(packages)
            elif inst.instruction == "WORKDIR":
                workdir = inst.text
            elif inst.instruction == "RUN":
                needed = self._native_deps(context_dir)
                missing = [p for p in needed if p not in installed]
                if missing or not os.path.exists(os.path.join(context_dir, "Cargo.toml")):
                    return CommandResult(1, (
                        "   Compiling whisper-rs-sys v0.8.1\n"
                        "error: failed to run custom build command for `whisper-rs-sys v0.8.1`\n"
                        f"  is `{missing[0] if missing else 'Cargo.toml'}` not installed?\n"
                        f"ERROR: failed to solve: process \"/bin/sh -c {inst.text}\" "
                        f"did not complete successfully: exit code: 101\n"))
                self.binaries[tag] = self._package_name(context_dir)
            elif inst.instruction == "CMD":
                cmd = list(inst.arguments)

        digest = hashlib.sha256(text.encode()).hexdigest()
        self.built[tag] = {
            "Id": f"sha256:{digest}",
            "Config": {"Cmd": cmd, "Entrypoint": None, "WorkingDir": workdir},
        }
        return CommandResult(0, f"#9 naming to docker.io/library/{tag} done\n")

    def inspect(self, tag):
        if tag not in self.built:
            raise BackendError(f"Cannot inspect image {tag}: No such image")
        return self.built[tag]

    def which(self, tag, binary):
        if tag in self.path_override:
            return self.path_override[tag]
        return self.binaries.get(tag) == binary

    def run(self, tag, args=()):
        self.runs.append((tag, list(args)))
        return self.exit_codes.get(tag, 0)

    def _native_deps(self, context_dir):
        path = os.path.join(context_dir, "native-deps.txt")
        if not os.path.exists(path):
            return []
        with open(path) as f:
            return [line.strip() for line in f if line.strip()]

    def _package_name(self, context_dir):
        with open(os.path.join(context_dir, "Cargo.toml")) as f:
            match = re.search(r'^name\s*=\s*"([^"]+)"', f.read(), re.MULTILINE)
        return match.group(1) if match else None


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def make_source(tmp_path):
    """
    Creates a minimal cargo project whose native build needs the given
    system packages.
    """
    def factory(native_deps=(), name="transcript", directory="src-tree"):
        root = tmp_path / directory
        (root / "src").mkdir(parents=True)
        (root / "Cargo.toml").write_text(
            f'[package]\nname = "{name}"\nversion = "0.1.0"\nedition = "2021"\n')
        (root / "src" / "main.rs").write_text('fn main() { println!("hello"); }\n')
        if native_deps:
            (root / "native-deps.txt").write_text("\n".join(native_deps) + "\n")
        return str(root)
    return factory


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger("s2i")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)


@pytest.fixture
def transcript_dockerfile():
    return TRANSCRIPT_DOCKERFILE
