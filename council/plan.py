"""Plan mode: a single oracle-phase call that turns a council transcript into work issues."""

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from config.config_loader import PromptsConfig
from council.artifacts import ArtifactStore
from council.beads import BeadsStore, CommentStore
from council.comments import transcript_json
from council.errors import PlanError
from council.format import format_agent_comment, system_comment
from council.providers.base import AIProvider, ProviderRequest, run_provider
from council.schema import AgentResponse, Artifact

logger = logging.getLogger(__name__)

PLAN_ARTIFACT_TYPE = "beads_issue_plan"
PLAN_FILENAME = "beads_issue_plan.json"

_PLAN_SHAPE = {
    "version": 1,
    "issues": [
        {
            "title": "string",
            "description": "string",
            "acceptance": "string (optional)",
            "priority": "0-4 or P0-P4 (optional, default 2)",
            "labels": ["string"],
            "depends_on": ["title of another issue in this plan"],
            "assignee": "string (optional)",
        }
    ],
}


class IssuePlanItem(BaseModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    acceptance: str = ""
    priority: str = "2"
    labels: list[str] = Field(default_factory=list)
    depends_on: list[str] = Field(default_factory=list)
    assignee: str = ""


class IssuePlan(BaseModel):
    version: int = 1
    issues: list[IssuePlanItem] = Field(min_length=1)


def parse_issue_plan_artifact(artifact: Artifact) -> IssuePlan:
    """Validate a ``beads_issue_plan`` artifact.

    Raises:
        PlanError: On wrong type, empty content, invalid JSON or invalid shape.
    """
    if artifact.type != PLAN_ARTIFACT_TYPE:
        raise PlanError(f"Unsupported artifact type: {artifact.type}")
    raw = artifact.content.strip()
    if not raw:
        raise PlanError(f"Empty {PLAN_ARTIFACT_TYPE} artifact content")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise PlanError(f"{PLAN_ARTIFACT_TYPE} content is not valid JSON: {exc}") from exc
    try:
        return IssuePlan.model_validate(data)
    except ValidationError as exc:
        raise PlanError(str(exc)) from exc


def find_latest_plan_file(artifacts_dir: Path, issue_id: str) -> Path | None:
    """Return the most recently written plan file for ``issue_id``, if any."""
    base = artifacts_dir / issue_id
    if not base.is_dir():
        return None
    candidates = [p for p in base.rglob(PLAN_FILENAME) if p.is_file()]
    if not candidates:
        return None
    return max(candidates, key=lambda p: p.stat().st_mtime)


def load_plan_file(plan_path: Path) -> IssuePlan:
    content = plan_path.read_text(encoding="utf-8")
    return parse_issue_plan_artifact(
        Artifact(
            type=PLAN_ARTIFACT_TYPE,
            title=PLAN_ARTIFACT_TYPE,
            content=content,
            mime="application/json",
            suggested_filename=PLAN_FILENAME,
        )
    )


async def run_plan_mode(
    store: CommentStore,
    provider: AIProvider,
    prompts: PromptsConfig,
    artifact_store: ArtifactStore,
    issue_id: str,
    timeout_sec: float | None = None,
) -> AgentResponse:
    """Ask one provider, in the ``oracle`` phase, for an issue plan artifact.

    The response is persisted and posted like any other agent comment; provider
    and schema errors propagate to the caller.
    """
    provider_name = provider.name()
    await store.add_comment(issue_id, system_comment(f"Plan mode requested (provider: `{provider_name}`)"))
    transcript = transcript_json(await store.list_comments(issue_id))

    request = ProviderRequest(
        agent_name=f"{provider_name}-plan-chair",
        round=1,
        phase="oracle",
        prompt=prompts.plan.format(plan_shape=json.dumps(_PLAN_SHAPE, indent=2)),
        transcript=transcript,
        timeout_sec=timeout_sec,
    )
    response = await run_provider(provider, request, prompts)

    refs = await artifact_store.persist(issue_id, 1, "oracle", request.agent_name, response.artifacts)
    await store.add_comment(issue_id, format_agent_comment(provider_name, response, refs))
    if not any(a.type == PLAN_ARTIFACT_TYPE for a in response.artifacts):
        logger.warning("Plan response from %s carried no %s artifact", provider_name, PLAN_ARTIFACT_TYPE)
    return response


async def apply_plan(dev_store: BeadsStore, council_issue_id: str, plan: IssuePlan) -> dict[str, str]:
    """Create one dev issue per plan item, then wire ``depends_on`` as blocking deps.

    ``depends_on`` entries are titles within the same plan; unknown titles are
    skipped. Returns a title -> issue id mapping.
    """
    title_to_id: dict[str, str] = {}
    for item in plan.issues:
        description = f"{item.description.strip()}\n\n---\nFrom council session: {council_issue_id}\n"
        issue_id = await dev_store.create_issue(
            item.title,
            description,
            labels=item.labels,
            priority=item.priority or "2",
            acceptance=item.acceptance,
            issue_type="task",
        )
        title_to_id[item.title] = issue_id

    for item in plan.issues:
        issue_id = title_to_id[item.title]
        for dep_title in item.depends_on:
            depends_on_id = title_to_id.get(dep_title)
            if depends_on_id is None:
                logger.warning("Plan item %r depends on unknown title %r; skipping", item.title, dep_title)
                continue
            await dev_store.add_dependency(issue_id, depends_on_id, "blocks")

    logger.info("Created %d dev issues from plan for %s", len(title_to_id), council_issue_id)
    return title_to_id
