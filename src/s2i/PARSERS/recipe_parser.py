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
Parsers for recipe YAML files.
"""
import os
import yaml
from typing import Any, Dict, List, Optional
from pydantic import ValidationError

from ..MODELS.build_recipe import BuildRecipe, RecipeFile
from ..UTILS.string_interpolation import EnvironmentInterpolator
from ..errors import RecipeError

class RecipeParser:
    """
    Parser for recipe files.

    A recipe file holds the recipe fields at the top level and an optional
    `variants` mapping of variant name to system dependency list.
    """
    def __init__(self, context: Optional[Dict[str, str]] = None):
        """
        Initializes the parser with an optional environment context for interpolation.

        :param context: A dictionary of variables for interpolation.
        """
        self.context = dict(os.environ) if context is None else context

    def parse(self, recipe_path: str) -> RecipeFile:
        """
        Parses a recipe file from a path.

        :param recipe_path: Path to the recipe file.
        :return: Parsed recipe file.
        :raises RecipeError: If the file is missing or invalid.
        """
        try:
            with open(recipe_path, 'r') as f:
                content = f.read()
        except OSError as e:
            raise RecipeError(f"Cannot read recipe {recipe_path}: {e}") from e
        return self.parse_from_string(content)

    def parse_from_string(self, content: str) -> RecipeFile:
        """
        Parses a recipe file from a string.

        :param content: YAML content of the recipe file.
        :return: Parsed recipe file.
        """
        try:
            content = EnvironmentInterpolator.interpolate(content, self.context)
        except KeyError as e:
            raise RecipeError(f"Recipe interpolation failed: {e.args[0]}") from e

        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise RecipeError(f"Recipe is not valid YAML: {e}") from e
        if not isinstance(data, dict):
            raise RecipeError("Recipe must be a mapping")

        data = dict(data)
        variants = data.pop('variants', None) or {}
        if not isinstance(variants, dict):
            raise RecipeError("Recipe variants must be a mapping of name to package list")

        try:
            recipe = BuildRecipe(
                name=data.pop('name', None),
                **self._recipe_fields(data),
            )
            return RecipeFile(
                recipe=recipe,
                variants={str(name): self._to_list(pkgs) for name, pkgs in variants.items()},
            )
        except ValidationError as e:
            raise RecipeError(f"Invalid recipe: {e}") from e

    def _recipe_fields(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Normalizes the optional recipe fields, accepting strings where
        lists are expected.
        """
        unknown = set(data) - set(BuildRecipe.model_fields)
        if unknown:
            raise RecipeError(f"Unknown recipe keys: {', '.join(sorted(map(str, unknown)))}")

        fields = dict(data)
        if 'install_command' in fields and isinstance(fields['install_command'], str):
            fields['install_command'] = fields['install_command'].split()
        for key in ('system_dependencies', 'ignore'):
            if key in fields:
                fields[key] = self._to_list(fields[key])
        if 'base_image' in fields and fields['base_image'] is not None:
            fields['base_image'] = str(fields['base_image'])
        return fields

    def _to_list(self, val: Any) -> List[str]:
        """
        Helper to ensure a value is a list of strings.

        :param val: The value to convert.
        :return: A list of strings.
        """
        if val is None:
            return []
        if isinstance(val, str):
            return val.split()
        if not isinstance(val, (list, tuple, dict)):
            return [str(val)]
        return [str(v) for v in val]
