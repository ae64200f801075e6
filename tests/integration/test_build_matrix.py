import pytest
import yaml
from s2i.BUILDERS.build_matrix import BuildMatrix
from s2i.BUILDERS.image_builder import ImageBuilder
from s2i.CONFIG.settings import Settings
from s2i.MODELS.build_recipe import BuildRecipe, RecipeFile
from s2i.MODELS.build_result import BuildStage

VARIANTS = {"full": ["clang", "cmake"], "clang-only": ["clang"], "toolchain-only": []}

@pytest.fixture
def matrix(engine, tmp_path):
    builder = ImageBuilder(backend=engine, settings=Settings(staging_root=str(tmp_path / "staging")))
    return BuildMatrix(builder)

@pytest.fixture
def recipe_file():
    return RecipeFile(recipe=BuildRecipe(name="transcript", system_dependencies=["clang", "cmake"]),
                      variants=VARIANTS)

def test_matrix_records_each_dependency_set(matrix, recipe_file, make_source):
    report = matrix.run(recipe_file, make_source(native_deps=["clang", "cmake"]))

    assert [e.variant for e in report.entries] == ["full", "clang-only", "toolchain-only"]
    assert report.succeeded() == ["full"]
    assert report.failed() == ["clang-only", "toolchain-only"]
    assert report.entry("clang-only").failed_stage == BuildStage.INSTALL_BINARY
    assert report.entry("toolchain-only").dependencies == []
    assert report.entry("full").tag == "transcript:full"

def test_source_without_native_needs_builds_everywhere(matrix, recipe_file, make_source):
    report = matrix.run(recipe_file, make_source())
    assert report.failed() == []

def test_clang_only_source(matrix, recipe_file, make_source):
    report = matrix.run(recipe_file, make_source(native_deps=["clang"]))
    assert report.succeeded() == ["full", "clang-only"]
    assert report.failed() == ["toolchain-only"]

def test_variant_subset(matrix, recipe_file, make_source, engine):
    report = matrix.run(recipe_file, make_source(), variants=["toolchain-only"])
    assert [e.variant for e in report.entries] == ["toolchain-only"]
    assert len(engine.builds) == 1

def test_no_variants_builds_the_recipe(matrix, make_source):
    recipe_file = RecipeFile(recipe=BuildRecipe(name="transcript"))
    report = matrix.run(recipe_file, make_source())
    assert [e.variant for e in report.entries] == ["default"]
    assert report.entries[0].succeeded

def test_report_yaml(matrix, recipe_file, make_source):
    report = matrix.run(recipe_file, make_source(native_deps=["cmake"]))
    data = yaml.safe_load(report.to_yaml())
    assert data["recipe"] == "transcript"
    assert data["source_digest"] == report.source_digest
    by_variant = {e["variant"]: e for e in data["entries"]}
    assert by_variant["full"]["succeeded"] is True
    assert by_variant["clang-only"]["failed_stage"] == "install-binary"

def test_report_digest_matches_the_staged_tree(engine, tmp_path, make_source):
    source = make_source()
    (tmp_path / "src-tree" / "build.log").write_text("local noise\n")
    (tmp_path / "src-tree" / "target").mkdir()
    (tmp_path / "src-tree" / "target" / "debug.bin").write_text("artifact\n")
    recipe = BuildRecipe(name="transcript", ignore=["*.log", "target"])
    builder = ImageBuilder(backend=engine, settings=Settings(staging_root=str(tmp_path / "staging")))

    report = BuildMatrix(builder).run(RecipeFile(recipe=recipe), source)
    result = builder.build(recipe, source)

    assert "build.log" not in engine.builds[0]["files"]
    assert report.source_digest == result.source_digest
