# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Field evaluator: select extractor -> extract -> transform -> convert.

A raw value of None (nothing applied, or an optional element was absent)
ends evaluation with None; transformer and converter are skipped. An empty
string is a present value and flows through both.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .errors import ExtractionError, ValueReaderError

if TYPE_CHECKING:
    from .context import EntityCreationContext
    from .converters import Converter, EntityBuilder
    from .extractors import Extractor
    from .reader import ValueReader
    from .transformers import Transformer

logger = logging.getLogger(__name__)


class EntityFieldEvaluator:
    __slots__ = ("extractors", "transformer", "converter")

    def __init__(
        self,
        extractors: tuple[Extractor, ...],
        transformer: Transformer | None,
        converter: Converter,
    ) -> None:
        self.extractors = extractors
        self.transformer = transformer
        self.converter = converter

    def select_extractor(self, reader: ValueReader, context: EntityCreationContext) -> Extractor | None:
        """The single extractor whose condition holds; None when none does."""
        try:
            applicable = [e for e in self.extractors if e.condition.evaluate(reader, context)]
        except ValueReaderError as e:
            raise ExtractionError(f"Evaluating extractor conditions failed: {e}") from e

        if not applicable:
            logger.warning("No extractor applies at %s", context.get_context())
            return None
        if len(applicable) > 1:
            described = ", ".join(e.describe() for e in applicable)
            raise ExtractionError(f"More than one extractor applies. Extractors: {described}")
        return applicable[0]

    def evaluate(
        self,
        reader: ValueReader,
        context: EntityCreationContext,
        builder: EntityBuilder,
    ) -> Any:
        extractor = self.select_extractor(reader, context)
        if extractor is None:
            return None

        try:
            raw = extractor.extract(reader, context)
        except ValueReaderError as e:
            raise ExtractionError(f"{extractor.describe()} failed: {e}") from e
        if raw is None:
            return None

        if self.transformer is not None:
            raw = self.transformer.transform(raw)
        return self.converter.convert(raw, reader, context, builder)

    def describe(self) -> str:
        parts = [" | ".join(e.describe() for e in self.extractors)]
        if self.transformer is not None:
            parts.append(self.transformer.describe())
        parts.append(self.converter.describe())
        return " -> ".join(parts)
