"""
Resolution Pipeline — turns raw operation notation into a canonical operation.

Strategy order, first success wins:
  1. dialect alias (organization map, then system defaults) → library / parser
  2. shortcode parser; edge codes are complete unless an organization
     edgeband profile carries the exact code, other categories are partial
  3. library matcher on the raw notation, then on the parser's kind; a match
     has to fit the numbers the notation carries, otherwise the operation is
     built from those numbers or left unresolved
  4. AI interpreter, if the organization allows it and one is configured

The pipeline reads only. Alias learning and usage counting come back as
learning events in the ResolutionOutcome for the LearningWriter to apply.

Usage:
    pipeline = ResolutionPipeline(library, dialects)
    outcome = await pipeline.resolve_operation(org_id, OperationCategory.GROOVE, "G-ALL-4-10")
    await writer.apply(outcome.learning_events)
"""
from __future__ import annotations

import logging
import time
from typing import Optional

from panelops.config import CONFIDENCE_BY_STRATEGY
from panelops.errors import InvalidNotationShape
from panelops.models.library import DialectConfig, LibraryEntry
from panelops.models.operations import (
    CncOperation,
    DrillingOperation,
    EdgebandOperation,
    GrooveOperation,
    OperationCategory,
)
from panelops.models.resolution import (
    AliasLearned,
    PartNotation,
    PartResolution,
    ResolutionOutcome,
    ResolutionSource,
    ResolvedOperation,
    Unresolved,
    UsageRecorded,
)
from panelops.services.ai_interpreter import OperationInterpreter
from panelops.services.dialect_resolver import DialectResolver
from panelops.services.library_cache import LibrarySnapshot
from panelops.services.library_matcher import LibraryMatcher
from panelops.services.operation_adapter import adapt_operation, edgeband_operation
from panelops.services.operations_library import OperationsLibrary
from panelops.services.shortcode_geometry import CNC_PRIMARY_PARAM, build_operation, carries_numbers, fits
from panelops.services.shortcode_parser import (
    CncShortcode,
    HoleShortcode,
    normalize_notation,
    parse_edge_code,
    parse_shortcode,
    split_overrides,
)

logger = logging.getLogger("panelops-resolver")

_CNC_NAMED_PARAMS: dict[str, str] = {
    "radius": "radius_mm",
    "depth": "depth_mm",
    "width": "width_mm",
    "diameter": "diameter_mm",
}


def apply_overrides(resolved: ResolvedOperation, overrides: dict[str, float]) -> ResolvedOperation:
    """Apply ``@`` parameter overrides to a resolved operation; keys that do not apply are dropped."""
    if not overrides:
        return resolved
    op = resolved.operation
    updates: dict = {}
    applied: dict[str, float] = {}

    if isinstance(op, EdgebandOperation):
        thickness = overrides.get("thickness", overrides.get("value"))
        if thickness:
            updates["thickness_mm"] = thickness
            applied["thickness"] = thickness

    elif isinstance(op, GrooveOperation):
        if "value" in overrides and "depth" not in overrides:
            overrides = {**overrides, "depth": overrides["value"]}
        for key, field_name in (("width", "width_mm"), ("depth", "depth_mm"), ("offset", "offset_mm")):
            if key in overrides:
                updates[field_name] = overrides[key]
                applied[key] = overrides[key]

    elif isinstance(op, DrillingOperation):
        holes = list(op.holes)
        if "diameter" in overrides:
            holes = [h.model_copy(update={"dia_mm": overrides["diameter"]}) for h in holes]
            applied["diameter"] = overrides["diameter"]
        if "depth" in overrides:
            holes = [h.model_copy(update={"depth_mm": overrides["depth"], "through": False}) for h in holes]
            applied["depth"] = overrides["depth"]
        if "centers" in overrides and len(holes) == 2:
            first, second = holes
            holes[1] = second.model_copy(update={"x_mm": first.x_mm + overrides["centers"]})
            applied["centers"] = overrides["centers"]
        if applied:
            updates["holes"] = tuple(holes)

    elif isinstance(op, CncOperation):
        params = dict(op.params)
        primary = CNC_PRIMARY_PARAM.get(op.op_type)
        if "value" in overrides and primary:
            params[primary] = overrides["value"]
            applied["value"] = overrides["value"]
        for key, param in _CNC_NAMED_PARAMS.items():
            if key in overrides:
                params[param] = overrides[key]
                applied[key] = overrides[key]
        if applied:
            updates["params"] = params

    if not applied:
        return resolved
    return resolved.model_copy(update={
        "operation": op.model_copy(update=updates),
        "overrides": {**resolved.overrides, **applied},
    })


def _parser_kind(parsed) -> Optional[str]:
    if isinstance(parsed, HoleShortcode):
        return parsed.kind
    if isinstance(parsed, CncShortcode):
        return parsed.op_type
    return None


class ResolutionPipeline:

    def __init__(
        self,
        library: OperationsLibrary,
        dialects: DialectResolver,
        interpreter: Optional[OperationInterpreter] = None,
    ):
        self._library = library
        self._dialects = dialects
        self._interpreter = interpreter

    async def resolve_operation(
        self,
        organization_id: Optional[str],
        category: OperationCategory,
        raw_notation: str,
    ) -> ResolutionOutcome:
        start = time.time()
        category = OperationCategory(category)
        base, overrides = split_overrides(raw_notation)
        notation = normalize_notation(base)
        if not notation:
            raise InvalidNotationShape("Notation must not be empty")

        config = await self._dialects.get_config(organization_id)
        snapshot = await self._library.snapshot(organization_id)
        matcher = LibraryMatcher(snapshot)
        partial: Optional[dict] = None
        resolved: Optional[ResolvedOperation] = None

        # 1. Dialect alias
        alias_target = self._dialects.lookup(config, category, notation)
        if alias_target is not None:
            resolved = self._resolve_alias(category, raw_notation, alias_target, snapshot, matcher)
            if resolved is None:
                logger.warning(
                    f"Alias {notation} → {alias_target} does not resolve",
                    extra={"organization_id": organization_id, "category": category.value},
                )

        # 2–3. Parser, then library
        if resolved is None:
            parsed = parse_shortcode(category, notation)
            if category == OperationCategory.EDGEBAND:
                found = matcher.find(category, notation)
                if found is not None:
                    resolved = self._from_entry(category, raw_notation, found.entry, ResolutionSource.LIBRARY, found.strategy)
                elif parsed is not None:
                    resolved = self._ad_hoc(category, raw_notation, edgeband_operation(parsed), ResolutionSource.PARSER)
            else:
                partial = parsed.as_hint() if parsed is not None else None
                resolved = self._match_library(category, raw_notation, notation, parsed, matcher)

        # 4. AI fallback
        if resolved is None and config.use_ai_fallback and self._interpreter is not None:
            resolved = await self._interpret(category, raw_notation, notation, snapshot)

        if resolved is None:
            logger.info(
                f"Unresolved {category.value} notation '{raw_notation}'",
                extra={"organization_id": organization_id, "category": category.value},
            )
            return ResolutionOutcome(result=Unresolved(category=category, raw_notation=raw_notation, partial=partial))

        resolved = apply_overrides(resolved, overrides)
        events = self._learning_events(
            organization_id, config, category, notation, alias_target, resolved, snapshot,
        )
        logger.debug(
            f"Resolved '{raw_notation}' → {resolved.canonical_code} via {resolved.source.value}",
            extra={
                "organization_id": organization_id,
                "category": category.value,
                "duration_ms": round((time.time() - start) * 1000, 2),
            },
        )
        return ResolutionOutcome(result=resolved, learning_events=events)

    async def resolve_part(self, organization_id: Optional[str], part: PartNotation) -> PartResolution:
        """Resolve every notation on one part. Blank cells are skipped."""
        resolution = PartResolution(part_id=part.part_id)
        jobs: list[tuple[OperationCategory, str]] = []
        if part.edge:
            jobs.append((OperationCategory.EDGEBAND, part.edge))
        jobs += [(OperationCategory.GROOVE, n) for n in part.grooves]
        jobs += [(OperationCategory.DRILLING, n) for n in part.holes]
        jobs += [(OperationCategory.CNC, n) for n in part.cnc]

        targets = {
            OperationCategory.GROOVE: resolution.grooves,
            OperationCategory.DRILLING: resolution.holes,
            OperationCategory.CNC: resolution.cnc,
        }
        for category, raw in jobs:
            if not normalize_notation(split_overrides(raw)[0]):
                continue
            outcome = await self.resolve_operation(organization_id, category, raw)
            resolution.learning_events.extend(outcome.learning_events)
            if not outcome.resolved:
                resolution.unresolved.append(outcome.result)
            elif category == OperationCategory.EDGEBAND:
                resolution.edging = outcome.result
            else:
                targets[category].append(outcome.result)
        return resolution

    # ── Strategies ─────────────────────────────────────────────────────────────

    def _resolve_alias(
        self,
        category: OperationCategory,
        raw_notation: str,
        canonical: str,
        snapshot: LibrarySnapshot,
        matcher: LibraryMatcher,
    ) -> Optional[ResolvedOperation]:
        entry = snapshot.find_by_code(category, canonical)
        if entry is not None:
            return self._from_entry(category, raw_notation, entry, ResolutionSource.ALIAS, "code")

        if category == OperationCategory.EDGEBAND:
            edges = parse_shortcode(category, canonical)
            if edges is None:
                return None
            return self._ad_hoc(category, raw_notation, edgeband_operation(edges), ResolutionSource.ALIAS)

        found = matcher.find(category, canonical)
        if found is not None:
            return self._from_entry(category, raw_notation, found.entry, ResolutionSource.ALIAS, found.strategy)
        return None

    def _match_library(
        self,
        category: OperationCategory,
        raw_notation: str,
        notation: str,
        parsed,
        matcher: LibraryMatcher,
    ) -> Optional[ResolvedOperation]:
        """
        Library entry for a groove, hole or CNC notation. Past an exact code,
        the entry must fit the parser's numbers (H3 skips H2-110 for H3-100);
        when none does, the numbers alone build the operation (H4, PKT-50),
        and notations they cannot build (SP-25) stay unresolved.
        """
        numbered = carries_numbers(parsed)
        found = matcher.find(category, notation)
        if found is not None and found.strategy != "code" and numbered and not fits(parsed, found.entry):
            found = None

        kind = _parser_kind(parsed)
        if found is None and kind:
            accept = (lambda entry: fits(parsed, entry)) if numbered else None
            found = matcher.find_kind(category, kind, accept=accept)
        if found is not None:
            return self._from_entry(category, raw_notation, found.entry, ResolutionSource.LIBRARY, found.strategy)

        if not numbered:
            return None
        template = matcher.find_kind(category, kind) if kind else None
        operation = build_operation(parsed, notation, template.entry if template else None)
        if operation is None:
            return None
        return self._ad_hoc(category, raw_notation, operation, ResolutionSource.PARSER)

    async def _interpret(
        self,
        category: OperationCategory,
        raw_notation: str,
        notation: str,
        snapshot: LibrarySnapshot,
    ) -> Optional[ResolvedOperation]:
        candidate = await self._interpreter.interpret(category, raw_notation)
        if candidate is None:
            return None
        operation = adapt_operation(category, candidate, fallback_code=notation)
        if operation is None:
            logger.warning(f"AI candidate for '{raw_notation}' matches no operation shape")
            return None

        entry = snapshot.find_by_code(category, operation.code)
        if entry is not None:
            resolved = self._from_entry(category, raw_notation, entry, ResolutionSource.AI, "ai")
        else:
            resolved = self._ad_hoc(category, raw_notation, operation, ResolutionSource.AI)
        return resolved.model_copy(update={"confidence": CONFIDENCE_BY_STRATEGY["ai"], "verified": False})

    @staticmethod
    def _ad_hoc(category, raw_notation, operation, source: ResolutionSource) -> ResolvedOperation:
        return ResolvedOperation(
            category=category,
            raw_notation=raw_notation,
            canonical_code=operation.code,
            source=source,
            operation=operation,
            confidence=CONFIDENCE_BY_STRATEGY[source.value],
        )

    @staticmethod
    def _from_entry(category, raw_notation, entry: LibraryEntry, source: ResolutionSource, strategy: str) -> ResolvedOperation:
        if source == ResolutionSource.LIBRARY:
            confidence = CONFIDENCE_BY_STRATEGY.get(strategy, CONFIDENCE_BY_STRATEGY["keyword"])
        else:
            confidence = CONFIDENCE_BY_STRATEGY[source.value]
        return ResolvedOperation(
            category=category,
            raw_notation=raw_notation,
            canonical_code=entry.code,
            source=source,
            strategy=strategy,
            operation=entry.operation,
            library_entry_id=entry.id,
            confidence=confidence,
        )

    # ── Learning ───────────────────────────────────────────────────────────────

    @staticmethod
    def _learning_events(
        organization_id: Optional[str],
        config: DialectConfig,
        category: OperationCategory,
        notation: str,
        alias_target: Optional[str],
        resolved: ResolvedOperation,
        snapshot: LibrarySnapshot,
    ) -> list:
        events: list = []
        if resolved.library_entry_id is not None:
            entry = snapshot.get(resolved.library_entry_id)
            if entry is not None and not entry.is_system:
                events.append(UsageRecorded(entry_id=entry.id))

        # Unverified AI answers are only learned when they name a library entry
        learnable = resolved.source != ResolutionSource.AI or resolved.library_entry_id is not None or (
            category == OperationCategory.EDGEBAND
        )
        # Edgeband aliases target edge codes, never profile codes
        if category == OperationCategory.EDGEBAND and parse_edge_code(resolved.canonical_code) is None:
            learnable = False
        if (
            config.auto_learn
            and organization_id
            and alias_target is None
            and learnable
            and notation != resolved.canonical_code.upper()
        ):
            events.append(AliasLearned(
                organization_id=organization_id,
                category=category,
                external=notation,
                canonical=resolved.canonical_code,
            ))
        return events
