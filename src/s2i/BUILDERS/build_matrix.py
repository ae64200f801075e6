"""
Builds every declared dependency set of a recipe against one source tree.
"""
import logging
from typing import List, Optional

from ..MODELS.build_recipe import RecipeFile
from ..MODELS.build_result import MatrixEntry, MatrixReport
from ..errors import BuildError
from .context_stager import tree_digest
from .image_builder import ImageBuilder

logger = logging.getLogger(__name__)

class BuildMatrix:
    """
    Attempts one build per variant, one after another, and records which
    dependency sets succeed. A failing variant does not stop the matrix.
    """
    def __init__(self, builder: ImageBuilder):
        self.builder = builder

    def run(self,
            recipe_file: RecipeFile,
            source_dir: str,
            variants: Optional[List[str]] = None) -> MatrixReport:
        """
        :param recipe_file: Recipe and its declared variants.
        :param source_dir: The source tree every variant is built from.
        :param variants: Subset of variants to build; all by default.
        :return: One entry per variant, in declaration order.
        """
        recipe = recipe_file.recipe
        names = variants if variants else recipe_file.variant_names
        if not names:
            # No declared variants: the recipe's own set is the only one
            names = [None]

        report = MatrixReport(recipe=recipe.name,
                              source_digest=tree_digest(source_dir, ignore=recipe.ignore))
        for name in names:
            variant_recipe = recipe_file.variant(name)
            label = name or "default"
            tag = self.builder.default_tag(recipe, label)
            entry = MatrixEntry(variant=label,
                                dependencies=list(variant_recipe.system_dependencies),
                                tag=tag,
                                succeeded=False)
            try:
                result = self.builder.build(variant_recipe, source_dir, tag=tag, variant=name)
                entry.succeeded = True
                entry.exit_code = result.exit_code
            except BuildError as e:
                entry.failed_stage = e.stage
                entry.exit_code = e.exit_code
                entry.error = str(e)
            logger.info("[%s] Variant %s: %s", recipe.name, label,
                        "ok" if entry.succeeded else f"failed at {entry.failed_stage.value if entry.failed_stage else 'unknown stage'}")
            report.entries.append(entry)
        return report
