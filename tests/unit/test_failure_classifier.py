import pytest
from s2i.BUILDERS.failure_classifier import classify_failure
from s2i.MODELS.build_recipe import BuildRecipe
from s2i.MODELS.build_result import BuildStage

RECIPE = BuildRecipe(name="transcript", system_dependencies=["clang", "cmake"])

@pytest.mark.parametrize("output, stage", [
    ("ERROR: failed to solve: rust:1.99: failed to resolve source metadata for "
     "docker.io/library/rust:1.99: docker.io/library/rust:1.99: not found",
     BuildStage.SELECT_BASE),
    ("pull access denied for rust, repository does not exist or may require 'docker login'",
     BuildStage.SELECT_BASE),
    ("manifest for rust:1.72 not found: manifest unknown", BuildStage.SELECT_BASE),
    ("E: Unable to locate package cmak\n"
     'ERROR: failed to solve: process "/bin/sh -c apt-get update && apt-get install -y clang cmak" '
     "did not complete successfully: exit code: 100",
     BuildStage.INSTALL_SYSTEM_DEPENDENCIES),
    ("The command '/bin/sh -c apt-get update && apt-get install -y clang cmake' "
     "returned a non-zero code: 100",
     BuildStage.INSTALL_SYSTEM_DEPENDENCIES),
    ("error: failed to run custom build command for `whisper-rs-sys`\n"
     'ERROR: failed to solve: process "/bin/sh -c cargo install --path ." '
     "did not complete successfully: exit code: 101",
     BuildStage.INSTALL_BINARY),
    ("The command '/bin/sh -c cargo install --path .' returned a non-zero code: 101",
     BuildStage.INSTALL_BINARY),
    ("ERROR: failed to solve: failed to compute cache key: "
     "failed to calculate checksum of ref: \"/src\": not found",
     BuildStage.COPY_SOURCE),
    ("ERROR [3/5] WORKDIR /usr/src/transcript\nmkdir /usr/src/transcript: read-only file system",
     BuildStage.STAGE_WORKDIR),
    ("something unrelated went wrong", None),
    ("", None),
])
def test_classify_failure(output, stage):
    assert classify_failure(output, RECIPE) == stage

def test_custom_install_command_is_recognised():
    recipe = BuildRecipe(name="transcript", install_command=["make", "install"])
    output = ('ERROR: failed to solve: process "/bin/sh -c make install" '
              "did not complete successfully: exit code: 2")
    assert classify_failure(output, recipe) == BuildStage.INSTALL_BINARY
