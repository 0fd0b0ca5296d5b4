"""
Background resolution.

Fixes the genomic background the null distribution is drawn from and trims
the annotation catalog and the input regions to it.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .catalog import AnnotationCatalog
from .exceptions import ConfigurationError
from .intervals import IntervalSet

logger = logging.getLogger(__name__)


@dataclass
class ResolvedInputs:
    """Reduced data, background and catalog ready for sampling."""
    data: IntervalSet
    background: IntervalSet
    catalog: AnnotationCatalog


class BackgroundResolver:
    """
    Derive the effective background for an enrichment run.

    Without a user background, all annotatable bases (the reduced union of
    every category) form the background. With one, the catalog is restricted
    to it and, optionally, the background is shrunk back to the annotatable
    part. Input regions outside the background are excluded.
    """

    def resolve(
        self,
        data: IntervalSet,
        catalog: AnnotationCatalog,
        background: Optional[IntervalSet] = None,
        restrict_to_annotatable: bool = False,
    ) -> ResolvedInputs:
        if len(catalog) == 0:
            raise ConfigurationError("The annotation catalog is empty; nothing to test")

        if background is None:
            if len(catalog) == 1:
                if restrict_to_annotatable:
                    raise ConfigurationError(
                        "Only one annotation category was given and no background: the "
                        "background would equal the annotation itself. Provide a background."
                    )
                logger.warning(
                    "Only one annotation category (%s) and no background; results are degenerate",
                    catalog.names[0],
                )
            logger.info("All annotatable regions are used as the background")
            resolved_background = catalog.union()
        else:
            resolved_background = background.reduce()
            catalog = catalog.restrict_to(resolved_background)
            if restrict_to_annotatable:
                logger.info("The given background, restricted to annotatable regions, is used")
                resolved_background = catalog.union()
            else:
                logger.info("The given background regions are used as the background")

        reduced_data = data.reduce()
        resolved_data = reduced_data.intersect(resolved_background)

        dropped = reduced_data.total_bases() - resolved_data.total_bases()
        if dropped:
            logger.warning(
                "%d of %d data bases fall outside the background and are excluded",
                dropped, reduced_data.total_bases(),
            )

        return ResolvedInputs(
            data=resolved_data,
            background=resolved_background,
            catalog=catalog,
        )
