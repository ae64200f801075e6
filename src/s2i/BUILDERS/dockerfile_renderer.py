"""
Renders a build recipe into a Dockerfile.
"""
import json
import shlex
from jinja2 import Template
from ..MODELS.build_recipe import BuildRecipe

DOCKERFILE_TEMPLATE = """FROM {{ base_image }}
{% if system_dependencies %}

RUN {{ apt_command }}
{% endif %}

WORKDIR {{ working_directory }}
COPY . .

RUN {{ install_command }}

CMD {{ default_command }}
"""


def apt_command(packages) -> str:
    """The shell command installing OS packages before the source build."""
    return "apt-get update && apt-get install -y " + " ".join(packages)


def shell_command(argv) -> str:
    """Joins an argv list into shell form, quoting only where needed."""
    return " ".join(shlex.quote(arg) for arg in argv)


class DockerfileRenderer:
    """
    Turns a BuildRecipe into Dockerfile text. Rendering is deterministic:
    the same recipe always yields the same bytes.
    """

    def __init__(self):
        self.template = Template(
            DOCKERFILE_TEMPLATE,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

    def render(self, recipe: BuildRecipe) -> str:
        """
        Renders the Dockerfile. The system dependency stage is omitted
        entirely when the recipe declares no packages.

        :param recipe: The recipe to render.
        :return: The Dockerfile content.
        """
        return self.template.render(
            base_image=recipe.base_image,
            system_dependencies=recipe.system_dependencies,
            apt_command=apt_command(recipe.system_dependencies),
            working_directory=recipe.working_directory,
            install_command=shell_command(recipe.install_command),
            default_command=json.dumps(recipe.default_command),
        )
