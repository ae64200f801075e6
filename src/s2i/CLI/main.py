"""
Command Line Interface for S2I.
"""
import sys
import click
import yaml
from ..BUILDERS.build_matrix import BuildMatrix
from ..BUILDERS.image_builder import ImageBuilder
from ..CONFIG.settings import Settings
from ..PARSERS.dockerfile_parser import DockerfileParser
from ..PARSERS.recipe_parser import RecipeParser
from ..UTILS.logger import setup_logger
from ..errors import BuildError, S2IError

DEFAULT_RECIPE = 'recipes/transcript.yaml'

def fail(message: str, code: int = 1):
    click.echo(f"Error: {message}", err=True)
    sys.exit(code)

def write_output(path: str, content: str):
    try:
        with open(path, 'w') as f:
            f.write(content)
    except OSError as e:
        fail(f"Cannot write {path}: {e.strerror or e}")

def load_recipe_file(ctx):
    try:
        return RecipeParser(ctx.obj['settings'].context).parse(ctx.obj['file'])
    except S2IError as e:
        fail(str(e))

@click.group()
@click.option('--file', '-f', default=DEFAULT_RECIPE, help='Recipe file path')
@click.option('--env-file', default='.env', help='Environment file with S2I_* settings')
@click.option('--log-level', default=None, help='Log level (DEBUG, INFO, WARNING, ERROR)')
@click.pass_context
def cli(ctx, file, env_file, log_level):
    """
    S2I - Source to Image builder.

    Builds the container image of a source-installed tool from a recipe.
    """
    ctx.ensure_object(dict)
    try:
        settings = Settings.load(env_file=env_file, log_level=log_level)
    except S2IError as e:
        fail(str(e))
    setup_logger(level=settings.log_level, log_file=settings.log_file)
    ctx.obj['file'] = file
    ctx.obj['settings'] = settings
    if 'backend' not in ctx.obj:
        ctx.obj['backend'] = None

def get_builder(ctx) -> ImageBuilder:
    return ImageBuilder(backend=ctx.obj.get('backend'), settings=ctx.obj['settings'])

@cli.command()
@click.option('--variant', '-v', default=None, help='Dependency set variant')
@click.option('--out', '-o', default=None, help='Write the Dockerfile here instead of stdout')
@click.pass_context
def render(ctx, variant, out):
    """Print the Dockerfile generated from the recipe."""
    recipe_file = load_recipe_file(ctx)
    try:
        recipe = recipe_file.variant(variant)
    except S2IError as e:
        fail(str(e))
    content = get_builder(ctx).render(recipe)
    if out:
        write_output(out, content)
        click.echo(f"Dockerfile written to {out}")
    else:
        click.echo(content, nl=False)

@cli.command()
@click.argument('source_dir', type=click.Path())
@click.option('--variant', '-v', default=None, help='Dependency set variant')
@click.option('--tag', '-t', default=None, help='Image tag')
@click.pass_context
def build(ctx, source_dir, variant, tag):
    """Build the image from SOURCE_DIR."""
    recipe_file = load_recipe_file(ctx)
    builder = get_builder(ctx)
    try:
        result = builder.build_variant(recipe_file, variant, source_dir, tag=tag)
    except BuildError as e:
        stage = e.stage.value if e.stage else "unknown"
        if e.output:
            click.echo(e.output, err=True)
        fail(f"build failed at stage {stage}: {e}")
    except S2IError as e:
        fail(str(e))
    click.echo(f"Built {result.tag}")
    click.echo(f"Default command: {result.image.cmd}")

@cli.command()
@click.argument('source_dir', type=click.Path())
@click.option('--variant', '-v', 'variants', multiple=True, help='Restrict to these variants')
@click.option('--report', '-r', default=None, help='Write the YAML report to this file')
@click.option('--strict', is_flag=True, help='Exit non-zero if any variant fails')
@click.pass_context
def matrix(ctx, source_dir, variants, report, strict):
    """Build every dependency set variant against SOURCE_DIR."""
    recipe_file = load_recipe_file(ctx)
    try:
        outcome = BuildMatrix(get_builder(ctx)).run(recipe_file, source_dir, list(variants))
    except S2IError as e:
        fail(str(e))

    click.echo(f"{'VARIANT':16} {'PACKAGES':20} {'RESULT':30}")
    click.echo("-" * 66)
    for entry in outcome.entries:
        packages = " ".join(entry.dependencies) or "-"
        if entry.succeeded:
            status = "ok"
        else:
            status = f"failed ({entry.failed_stage.value if entry.failed_stage else 'unknown'})"
        click.echo(f"{entry.variant:16} {packages:20} {status:30}")

    if report:
        write_output(report, outcome.to_yaml())
        click.echo(f"Report written to {report}")
    if strict and outcome.failed():
        sys.exit(1)

@cli.command()
@click.argument('tag')
@click.pass_context
def verify(ctx, tag):
    """Check that TAG runs the recipe's binary by default."""
    recipe_file = load_recipe_file(ctx)
    try:
        descriptor = get_builder(ctx).verify(tag, recipe_file.recipe)
    except S2IError as e:
        fail(str(e))
    click.echo(f"{tag}: default command {descriptor.cmd} OK")

@cli.command()
@click.argument('tag')
@click.pass_context
def inspect(ctx, tag):
    """Show the default process of an image."""
    try:
        descriptor = get_builder(ctx).inspect(tag)
    except S2IError as e:
        fail(str(e))
    click.echo(yaml.safe_dump(descriptor.model_dump(mode="json"), sort_keys=False), nl=False)

@cli.command()
@click.argument('tag')
@click.pass_context
def run(ctx, tag):
    """Run the default process of TAG and exit with its status."""
    try:
        code = get_builder(ctx).run(tag)
    except S2IError as e:
        fail(str(e))
    sys.exit(code)

@cli.command(name='import')
@click.argument('dockerfile', type=click.Path(exists=True, dir_okay=False))
@click.option('--name', '-n', default=None, help='Recipe name')
@click.option('--out', '-o', default=None, help='Write the recipe here instead of stdout')
@click.pass_context
def import_dockerfile(ctx, dockerfile, name, out):
    """Convert an existing Dockerfile into a recipe."""
    parser = DockerfileParser()
    try:
        recipe = parser.to_recipe(parser.parse(dockerfile), name=name)
    except S2IError as e:
        fail(str(e))
    content = yaml.safe_dump(recipe.model_dump(), sort_keys=False)
    if out:
        write_output(out, content)
        click.echo(f"Recipe written to {out}")
    else:
        click.echo(content, nl=False)

def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})

if __name__ == '__main__':
    main()
