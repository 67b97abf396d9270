"""
Staged healing pipeline.

Stages are cumulative: running stage N first runs stages 0..N-1 on the
same model. Every stage is followed by a sanity inspection and one
snapshot export labelled STAGE_NN.

    0  baseline (no modification)
    1  split on existing nodes
    2  stage 1 + split on intersections + dangling removal
    3  stage 2 + short collapse + collinear merge (the "heal set")
    4  free-end extension, healing after every extension that moved nodes
    5  group translation, healing and re-extending after every move
    6  rigid links, then split on the new link nodes

A stage that raises stops the run; the failure is logged and returned
as a PipelineResult with success=False.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from framemesh.core.constants import DEFAULT_MAX_ITERATIONS, MAX_STAGE
from framemesh.fem.fem_model import FEModelContext
from framemesh.fem.modifiers import (
    CollinearMergeOptions,
    DanglingRemoveOptions,
    ExtendOptions,
    GroupTranslationOptions,
    IntersectionSplitOptions,
    RigidLinkOptions,
    ShortCollapseOptions,
    SplitByNodesOptions,
    collapse_short_elements,
    create_rigid_links,
    extend_free_ends,
    merge_collinear_nodes,
    remove_dangling_short_elements,
    split_elements_at_intersections,
    split_elements_by_existing_nodes,
    translate_disconnected_groups,
)
from framemesh.fem.sanity import SanityOptions, SanityReport, inspect_model

SnapshotExporter = Callable[[FEModelContext, str, List[int]], None]

STAGE_NAMES = {
    0: "Baseline",
    1: "Split on existing nodes",
    2: "Split on intersections",
    3: "Collapse and merge",
    4: "Extend free ends",
    5: "Translate disconnected groups",
    6: "Rigid links",
}


def stage_label(index: int) -> str:
    return f"STAGE_{index:02d}"


@dataclass(frozen=True)
class PipelineOptions:
    """Options for every pipeline stage.

    Attributes:
        split: Split-on-existing-node options
        intersection: Split-on-intersection options
        dangling: Dangling-stub removal options
        collapse: Short-element collapse options
        collinear: Collinear node merge options
        extend: Free-end extension options
        translation: Group translation options
        rigid: Rigid-link options
        sanity: Sanity inspector options
        max_iterations: Cap for the extension and translation loops
        verbose: List every finding on the target stage
    """
    split: SplitByNodesOptions = field(default_factory=lambda: SplitByNodesOptions(distance_tol=1.0))
    intersection: IntersectionSplitOptions = field(
        default_factory=lambda: IntersectionSplitOptions(dist_tol=1.0))
    dangling: DanglingRemoveOptions = field(
        default_factory=lambda: DanglingRemoveOptions(length_threshold=50.0))
    collapse: ShortCollapseOptions = field(default_factory=lambda: ShortCollapseOptions(tolerance=1.0))
    collinear: CollinearMergeOptions = field(
        default_factory=lambda: CollinearMergeOptions(distance_tolerance=30.0, angle_tolerance_deg=3.0))
    extend: ExtendOptions = field(default_factory=lambda: ExtendOptions(extra_margin=20.0))
    translation: GroupTranslationOptions = field(
        default_factory=lambda: GroupTranslationOptions(extra_margin=50.0))
    rigid: RigidLinkOptions = field(default_factory=lambda: RigidLinkOptions(extra_margin=5.0))
    sanity: SanityOptions = field(default_factory=SanityOptions)
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    verbose: bool = False

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")


@dataclass
class StageResult:
    """Outcome of one stage.

    Attributes:
        index: Stage number
        label: Snapshot label (STAGE_NN)
        success: False if the stage raised
        iterations: Loop iterations used by looping stages
        details: Modifier result records keyed by step name
        report: Sanity report taken after the stage
        elapsed: Wall time in seconds
        error: Error description when success is False
    """
    index: int
    label: str
    success: bool = True
    iterations: int = 0
    details: Dict[str, object] = field(default_factory=dict)
    report: Optional[SanityReport] = None
    elapsed: float = 0.0
    error: Optional[str] = None


@dataclass
class PipelineResult:
    """Outcome of a pipeline run."""
    success: bool = True
    stages: List[StageResult] = field(default_factory=list)
    failed_stage: Optional[int] = None
    error: Optional[str] = None

    @property
    def final_report(self) -> Optional[SanityReport]:
        for stage in reversed(self.stages):
            if stage.report is not None:
                return stage.report
        return None


class HealingPipeline:
    """Runs the healing stages on one model.

    Args:
        context: Model to heal in place
        options: Stage options
        exporter: Called as exporter(context, label, free_end_nodes) after each stage
        logger: Logger for stage progress (module logger if None)
    """

    def __init__(self, context: FEModelContext, options: Optional[PipelineOptions] = None,
                 exporter: Optional[SnapshotExporter] = None,
                 logger: Optional[logging.Logger] = None):
        self.context = context
        self.options = options or PipelineOptions()
        self.exporter = exporter
        self.logger = logger or logging.getLogger(__name__)
        self._stages = {
            0: self._stage_baseline,
            1: self._stage_split_nodes,
            2: self._stage_split_intersections,
            3: self._stage_heal,
            4: self._stage_extend,
            5: self._stage_translate,
            6: self._stage_rigid_links,
        }

    def run(self, target_stage: int = MAX_STAGE) -> PipelineResult:
        """Run stages 0..target_stage.

        Args:
            target_stage: Last stage to run (0-6)

        Returns:
            PipelineResult; success is False if a stage raised.

        Raises:
            ValueError: If target_stage is out of range
        """
        if not 0 <= target_stage <= MAX_STAGE:
            raise ValueError(f"target_stage must be in [0, {MAX_STAGE}], got {target_stage}")

        result = PipelineResult()
        for index in range(target_stage + 1):
            stage = StageResult(index=index, label=stage_label(index))
            result.stages.append(stage)
            verbose = self.options.verbose and index == target_stage
            self.logger.info(f"=== {stage.label}: {STAGE_NAMES[index]} ===")
            started = time.perf_counter()
            try:
                self._stages[index](stage)
                stage.report = inspect_model(self.context, self.options.sanity,
                                             label=stage.label, verbose=verbose)
                if self.exporter is not None:
                    self.exporter(self.context, stage.label, stage.report.free_end_nodes)
            except Exception as e:
                self.logger.error(
                    "Stage %d (%s) failed with %s: %s",
                    index, STAGE_NAMES[index], type(e).__name__, e, exc_info=True,
                )
                stage.success = False
                stage.error = f"{type(e).__name__}: {e}"
                result.success = False
                result.failed_stage = index
                result.error = stage.error
                return result
            finally:
                stage.elapsed = time.perf_counter() - started

            self.logger.info(
                f"{stage.label} complete in {stage.elapsed:.2f}s: "
                f"{len(self.context.nodes)} nodes, {len(self.context.elements)} elements, "
                f"{len(self.context.rigids)} rigids"
            )
        return result

    # Stage bodies

    def _stage_baseline(self, stage: StageResult) -> None:
        pass

    def _stage_split_nodes(self, stage: StageResult) -> None:
        stage.details["split_nodes"] = split_elements_by_existing_nodes(self.context, self.options.split)

    def _run_intersection_split(self, stage: StageResult) -> None:
        stage.details["split_intersections"] = split_elements_at_intersections(
            self.context, self.options.intersection)
        stage.details["dangling"] = remove_dangling_short_elements(self.context, self.options.dangling)

    def _stage_split_intersections(self, stage: StageResult) -> None:
        self._stage_split_nodes(stage)
        self._run_intersection_split(stage)

    def _stage_heal(self, stage: StageResult) -> None:
        self._stage_split_intersections(stage)
        stage.details["collapse"] = collapse_short_elements(self.context, self.options.collapse)
        stage.details["collinear"] = merge_collinear_nodes(self.context, self.options.collinear)

    def _extension_loop(self, stage: StageResult) -> int:
        """Extend and heal until nothing moves; returns iterations used."""
        cap = self.options.max_iterations
        for iteration in range(1, cap + 1):
            extend = extend_free_ends(self.context, self.options.extend)
            stage.details["extend"] = extend
            self.logger.info(f"Extension iteration {iteration}: {extend.total_changes} node(s) changed")
            if extend.total_changes == 0:
                return iteration
            self._stage_heal(stage)
        self.logger.warning(f"Extension loop reached the iteration cap ({cap})")
        return cap

    def _stage_extend(self, stage: StageResult) -> None:
        stage.iterations = self._extension_loop(stage)

    def _stage_translate(self, stage: StageResult) -> None:
        cap = self.options.max_iterations
        for iteration in range(1, cap + 1):
            stage.iterations = iteration
            translation = translate_disconnected_groups(self.context, self.options.translation)
            stage.details["translation"] = translation
            self.logger.info(
                f"Translation iteration {iteration}: {translation.groups_translated} group(s) moved"
            )
            if translation.groups_translated == 0:
                return
            self._stage_heal(stage)
            self._extension_loop(stage)
        self.logger.warning(f"Translation loop reached the iteration cap ({cap})")

    def _stage_rigid_links(self, stage: StageResult) -> None:
        rigid = create_rigid_links(self.context, self.options.rigid)
        stage.details["rigid"] = rigid
        if rigid.rigids_created > 0:
            self._stage_split_nodes(stage)
