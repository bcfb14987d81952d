"""Batch regeneration and release preparation across every tracked library.

Each library is an independent item: a failure is recorded in the outcome
aggregator and the batch moves on. Generation may run on worker threads;
changes to the shared working tree (copy, build, commit, state update) are
serialized.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from .automation import AutomationDecision, generation_decision, release_decision
from .container import ContainerRunner
from .generate import RefinedGeneration, integrate, run_plan
from .gitrepo import Repository
from .githubrepo import PullRequestMetadata
from .outcomes import OutcomeAggregator, PullRequestContent, format_markdown_list
from .provider import save_pipeline_state
from .pullrequest import PullRequestPlan, PullRequestPublisher
from .state import GENERATOR_INPUT_DIR, LibraryState, PipelineState
from .versioning import next_release_version

logger = logging.getLogger(__name__)

REGENERATION_TITLE = "feat: API regeneration"
REGENERATION_BRANCH = "regen"
RELEASE_TITLE = "chore: Library release"
RELEASE_BRANCH = "release"

T = TypeVar("T")
SelectedItem = Tuple[LibraryState, AutomationDecision]

REVIEW_NOTICE = (
    "This pull request includes libraries configured for manual review. "
    "It must be reviewed by a human and must not be merged automatically."
)


@dataclass
class BatchResult:
    content: PullRequestContent
    skipped: List[str] = field(default_factory=list)
    excess: List[str] = field(default_factory=list)
    requires_review: bool = False
    plan: Optional[PullRequestPlan] = None
    pull_request: Optional[PullRequestMetadata] = None

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "successes": list(self.content.successes),
            "errors": list(self.content.errors),
            "skipped": self.skipped,
            "excess": self.excess,
            "requires_review": self.requires_review,
        }
        if self.plan is not None:
            payload["branch"] = self.plan.branch
            payload["title"] = self.plan.title
        if self.pull_request is not None:
            payload["pull_request"] = self.pull_request.model_dump(mode="json")
        return payload


def select_items(
    libraries: Iterable[LibraryState],
    decide: Callable[[LibraryState], AutomationDecision],
    commit_limit: Optional[int],
) -> Tuple[List[SelectedItem], List[str], List[LibraryState]]:
    """Split libraries into (selected, skipped ids, excess) in state order."""

    selected: List[SelectedItem] = []
    skipped: List[str] = []
    excess: List[LibraryState] = []
    for library in libraries:
        decision = decide(library)
        if not decision.proceed:
            logger.info(
                "Skipping %s: automation level %s does not permit this action.",
                library.id,
                decision.level.short_name,
            )
            skipped.append(library.id)
            continue
        if commit_limit is not None and len(selected) >= commit_limit:
            excess.append(library)
            continue
        selected.append((library, decision))
    return selected, skipped, excess


def _run_items(items: Sequence[T], worker: Callable[[T], None], parallelism: int) -> None:
    if parallelism <= 1 or len(items) <= 1:
        for item in items:
            worker(item)
        return
    with ThreadPoolExecutor(max_workers=parallelism) as pool:
        list(pool.map(worker, items))


def _description_suffix(requires_review: bool, excess_lines: Sequence[str], commit_limit: Optional[int]) -> str:
    parts: List[str] = []
    if excess_lines:
        parts.append(
            f"The following changes were not included because the pull request commit limit "
            f"({commit_limit}) was reached:\n{format_markdown_list(excess_lines)}"
        )
    if requires_review:
        parts.append(REVIEW_NOTICE)
    return "\n".join(parts)


def regenerate_libraries(
    *,
    state: PipelineState,
    repo: Repository,
    runner: ContainerRunner,
    publisher: PullRequestPublisher,
    api_root: Path,
    work_root: Path,
    now: datetime,
    build: bool = False,
    commit_limit: Optional[int] = None,
    parallelism: int = 1,
) -> BatchResult:
    """Regenerate every library whose generation automation level permits it."""

    aggregator = OutcomeAggregator()
    repo_lock = threading.Lock()
    review_flags: List[bool] = []
    selected, skipped, excess = select_items(state.libraries, generation_decision, commit_limit)

    def process(item: SelectedItem) -> None:
        library, decision = item
        output_dir = work_root / "output" / library.id
        plan = RefinedGeneration(
            library_id=library.id,
            generator_input_dir=repo.dir / GENERATOR_INPUT_DIR,
            repo_dir=repo.dir,
        )
        try:
            output_dir.mkdir(parents=True, exist_ok=False)
            run_plan(runner, plan, api_root, output_dir)
        except Exception as exc:
            aggregator.record_error(library.id, exc, "generating")
            return
        with repo_lock:
            action = "building"
            try:
                integrate(runner, plan, output_dir, build_library=build)
                action = "committing"
                commit = repo.commit_all(f"feat: regenerate {library.id}")
            except Exception as exc:
                # Partial output must not leak into the next library's commit.
                repo.discard_changes()
                aggregator.record_error(library.id, exc, action)
                return
        if commit is None:
            logger.info("Regeneration of %s produced no changes.", library.id)
            return
        suffix = " (requires review)" if decision.requires_review else ""
        aggregator.record_success(f"Regenerated {library.id}{suffix}")
        review_flags.append(decision.requires_review)

    _run_items(selected, process, parallelism)
    return _publish(
        aggregator,
        publisher,
        skipped=skipped,
        excess_lines=[f"Regenerate {library.id}" for library in excess],
        requires_review=any(review_flags),
        commit_limit=commit_limit,
        title_prefix=REGENERATION_TITLE,
        branch_type=REGENERATION_BRANCH,
        now=now,
    )


def needs_release(library: LibraryState) -> bool:
    return bool(library.last_generated_commit) and library.last_generated_commit != library.last_released_commit


def prepare_releases(
    *,
    state: PipelineState,
    repo: Repository,
    runner: ContainerRunner,
    publisher: PullRequestPublisher,
    now: datetime,
    commit_limit: Optional[int] = None,
    parallelism: int = 1,
) -> BatchResult:
    """Prepare a release of every library with unreleased generation whose release level permits it."""

    aggregator = OutcomeAggregator()
    repo_lock = threading.Lock()
    review_flags: List[bool] = []
    candidates = [library for library in state.libraries if needs_release(library)]
    selected, skipped, excess = select_items(candidates, release_decision, commit_limit)
    # Libraries are replaced by id as releases land; order follows the original state.
    released: Dict[str, LibraryState] = {}

    def process(item: SelectedItem) -> None:
        library, decision = item
        action = "releasing"
        with repo_lock:
            try:
                version = next_release_version(library)
                runner.prepare_library_release(repo.dir, library.id, version)
                action = "updating state for"
                released[library.id] = library.model_copy(
                    update={
                        "current_version": version,
                        "next_version": "",
                        "release_timestamp": now,
                        "last_released_commit": library.last_generated_commit,
                    }
                )
                save_pipeline_state(repo.dir, _with_releases(state, released))
                action = "committing"
                repo.commit_all(f"chore: release {library.id} {version}")
            except Exception as exc:
                released.pop(library.id, None)
                repo.discard_changes()
                aggregator.record_error(library.id, exc, action)
                return
        suffix = " (requires review)" if decision.requires_review else ""
        aggregator.record_success(f"Release {library.id} {version}{suffix}")
        review_flags.append(decision.requires_review)

    _run_items(selected, process, parallelism)
    return _publish(
        aggregator,
        publisher,
        skipped=skipped,
        excess_lines=[f"Release {library.id}" for library in excess],
        requires_review=any(review_flags),
        commit_limit=commit_limit,
        title_prefix=RELEASE_TITLE,
        branch_type=RELEASE_BRANCH,
        now=now,
    )


def _with_releases(state: PipelineState, released: Dict[str, LibraryState]) -> PipelineState:
    libraries = tuple(released.get(library.id, library) for library in state.libraries)
    return state.model_copy(update={"libraries": libraries})


def _publish(
    aggregator: OutcomeAggregator,
    publisher: PullRequestPublisher,
    *,
    skipped: List[str],
    excess_lines: List[str],
    requires_review: bool,
    commit_limit: Optional[int],
    title_prefix: str,
    branch_type: str,
    now: datetime,
) -> BatchResult:
    content = aggregator.finalize()
    suffix = _description_suffix(requires_review, excess_lines, commit_limit)
    metadata = publisher.publish(content, title_prefix, suffix, branch_type, now)
    return BatchResult(
        content=content,
        skipped=skipped,
        excess=excess_lines,
        requires_review=requires_review,
        plan=publisher.last_plan,
        pull_request=metadata,
    )
