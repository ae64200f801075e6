"""
Parsers for Dockerfiles, extracting instructions and recovering build recipes.
"""
import json
import os
import re
import shlex
from typing import List, Optional, Union
from pydantic import ValidationError

from ..MODELS.dockerfile_ast import DockerfileAST, Instruction
from ..MODELS.build_recipe import BuildRecipe
from ..errors import RecipeError

APT_TOOLS = ("apt-get", "apt")

class DockerfileParser:
    """
    Parser for Dockerfile instructions.
    """
    def parse(self, dockerfile_path: str) -> List[Instruction]:
        """
        Parses a Dockerfile from a file path.

        Args:
            dockerfile_path (str): Path to the Dockerfile.

        Returns:
            List[Instruction]: List of parsed instructions.
        """
        with open(dockerfile_path, 'r') as f:
            content = f.read()
        return self.parse_from_string(content)

    def parse_from_string(self, content: str) -> List[Instruction]:
        """
        Parses a Dockerfile from a string content.

        Args:
            content (str): Content of the Dockerfile.

        Returns:
            List[Instruction]: List of parsed instructions.
        """
        instructions = []

        content = re.sub(r'^\s*#.*$', '', content, flags=re.MULTILINE)
        # Only a backslash right before the newline continues a line
        content = re.sub(r'\\[ \t]*\r?\n', ' ', content)

        pattern = re.compile(r'^[ \t]*([A-Za-z]+)[ \t]+(.*)$', re.MULTILINE)

        for match in pattern.finditer(content):
            inst = match.group(1).upper()
            args_str = match.group(2).strip()
            exec_form = False

            if args_str.startswith('[') and args_str.endswith(']'):
                try:
                    parsed = json.loads(args_str)
                except json.JSONDecodeError:
                    parsed = None
                if isinstance(parsed, list) and all(isinstance(a, str) for a in parsed):
                    args = parsed
                    exec_form = True
                else:
                    args = [args_str]
            else:
                args = [args_str]

            instructions.append(Instruction(
                instruction=inst,
                arguments=args,
                raw=match.group(0).strip(),
                exec_form=exec_form,
            ))

        return instructions

    def parse_ast(self, content: str) -> DockerfileAST:
        return DockerfileAST(instructions=self.parse_from_string(content))

    def to_recipe(self,
                  source: Union[DockerfileAST, List[Instruction]],
                  name: Optional[str] = None) -> BuildRecipe:
        """
        Recovers a build recipe from a single-stage toolchain Dockerfile:
        FROM, an optional apt-get install, WORKDIR, COPY, the install RUN
        and the CMD/ENTRYPOINT binary.

        Args:
            source: Parsed instructions.
            name: Recipe name; defaults to the bound binary's name.

        Raises:
            RecipeError: If the Dockerfile does not describe such a build.
        """
        ast = source if isinstance(source, DockerfileAST) else DockerfileAST(instructions=source)

        base = ast.first("FROM")
        if base is None or not base.text.split():
            raise RecipeError("Dockerfile has no FROM instruction")

        packages: List[str] = []
        install_command: Optional[List[str]] = None
        for run in ast.all("RUN"):
            for segment in self._split_commands(run):
                apt_packages = self._apt_packages(segment)
                if apt_packages is not None:
                    packages.extend(apt_packages)
                elif segment and segment[0] not in APT_TOOLS:
                    install_command = segment

        workdir = ast.last("WORKDIR")
        entrypoint = self._argv(ast.last("ENTRYPOINT"))
        cmd = self._argv(ast.last("CMD"))
        command = entrypoint or cmd
        binary = command[0] if command else None

        fields = {
            "name": name or binary or (os.path.basename(workdir.text) if workdir else None),
            "base_image": base.text.split()[0],
            "system_dependencies": packages,
        }
        if workdir:
            fields["working_directory"] = workdir.text
        if install_command:
            fields["install_command"] = install_command
        if binary:
            fields["binary"] = binary
        if not fields["name"]:
            raise RecipeError("Cannot derive a recipe name from the Dockerfile")

        try:
            return BuildRecipe(**fields)
        except ValidationError as e:
            raise RecipeError(f"Dockerfile does not describe a valid recipe: {e}") from e

    def _split_commands(self, run: Instruction) -> List[List[str]]:
        """
        Splits a RUN instruction into its '&&'-chained commands.
        """
        if run.exec_form:
            return [run.arguments]
        try:
            tokens = shlex.split(run.text)
        except ValueError:
            tokens = run.text.split()
        commands, current = [], []
        for token in tokens:
            if token in ("&&", ";"):
                if current:
                    commands.append(current)
                current = []
            else:
                current.append(token)
        if current:
            commands.append(current)
        return commands

    def _apt_packages(self, command: List[str]) -> Optional[List[str]]:
        """
        Returns the packages of an 'apt-get install' command, None otherwise.
        """
        if len(command) < 2 or command[0] not in APT_TOOLS:
            return None
        if "install" not in command:
            return None
        after = command[command.index("install") + 1:]
        return [token for token in after if not token.startswith("-")]

    def _argv(self, inst: Optional[Instruction]) -> List[str]:
        if inst is None:
            return []
        if inst.exec_form:
            return list(inst.arguments)
        try:
            return shlex.split(inst.text)
        except ValueError:
            return inst.text.split()
