"""Discussions template: categories, labels and seeded discussions."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping, Sequence

from ..policy_runtime.batch import apply_to_org
from ..policy_runtime.config import load_versioned_config, to_bool
from ..policy_runtime.context import PolicyContext
from ..policy_runtime.gh import parse_json_text
from ..policy_runtime.models import (
    PREVIEW_ID,
    BatchOptions,
    BatchSummary,
    PolicyValueError,
    RepoInfo,
    RepoRef,
)
from ..policy_runtime.upsert import EXISTS, find_by_name, upsert_by_name

DEFAULT_LABEL_COLOR = "BFD4F2"

REPO_META_QUERY = (
    "query($owner:String!,$name:String!){repository(owner:$owner,name:$name)"
    "{id hasDiscussionsEnabled}}"
)
LABEL_QUERY = (
    "query($owner:String!,$name:String!,$label:String!){repository(owner:$owner,name:$name)"
    "{labels(first:100,query:$label){nodes{id name}}}}"
)
ADD_LABELS_MUTATION = (
    "mutation($labelableId:ID!,$labelIds:[ID!]!){addLabelsToLabelable("
    "input:{labelableId:$labelableId,labelIds:$labelIds}){clientMutationId}}"
)


def _repository_node(payload: Any) -> Mapping[str, Any]:
    data = payload.get("data") if isinstance(payload, dict) else None
    repository = data.get("repository") if isinstance(data, dict) else None
    return repository if isinstance(repository, dict) else {}


def discussions_enabled(ctx: PolicyContext, ref: RepoRef) -> bool:
    payload = ctx.gh.graphql(REPO_META_QUERY, owner=ref.org, name=ref.repo)
    return _repository_node(payload).get("hasDiscussionsEnabled") is True


def label_id_by_name(ctx: PolicyContext, ref: RepoRef, label_name: str) -> str:
    payload = ctx.gh.graphql(LABEL_QUERY, owner=ref.org, name=ref.repo, label=label_name)
    labels = _repository_node(payload).get("labels") or {}
    found = find_by_name(labels.get("nodes") or [], label_name)
    if found is None:
        return ""
    return str(found.get("id", ""))


def ensure_label(ctx: PolicyContext, ref: RepoRef, label: Mapping[str, Any], preview: bool) -> None:
    name = str(label.get("name", ""))
    existing = {"name": name} if label_id_by_name(ctx, ref, name) else None
    upsert_by_name(
        ctx.reporter,
        kind="label",
        name=name,
        existing=existing,
        create=lambda: ctx.gh.api(
            f"repos/{ref.org}/{ref.repo}/labels",
            method="POST",
            fields=[
                f"name={name}",
                f"color={label.get('color') or DEFAULT_LABEL_COLOR}",
                f"description={label.get('description') or ''}",
            ],
        ),
        preview=preview,
    )


def _list_tolerant(ctx: PolicyContext, path: str, source: str) -> list[dict[str, Any]]:
    """GET a list endpoint; a failed call reads as an empty list."""
    result = ctx.gh.result(["api", path])
    if not result.ok or not result.stdout.strip():
        return []
    parsed = parse_json_text(result.stdout, source)
    return parsed if isinstance(parsed, list) else []


def list_discussion_categories(ctx: PolicyContext, ref: RepoRef) -> list[dict[str, Any]]:
    return _list_tolerant(ctx, f"repos/{ref.org}/{ref.repo}/discussions/categories", "categories list")


def category_id_by_name(ctx: PolicyContext, ref: RepoRef, category_name: str) -> str:
    found = find_by_name(list_discussion_categories(ctx, ref), category_name)
    if found is None:
        return ""
    return str(found.get("id", ""))


def ensure_category(ctx: PolicyContext, ref: RepoRef, category: Mapping[str, Any], preview: bool) -> None:
    name = str(category.get("name", ""))
    existing = find_by_name(list_discussion_categories(ctx, ref), name)
    is_answerable = to_bool(category.get("is_answerable"), False)
    upsert_by_name(
        ctx.reporter,
        kind="category",
        name=name,
        existing=existing,
        create=lambda: ctx.gh.api(
            f"repos/{ref.org}/{ref.repo}/discussions/categories",
            method="POST",
            fields=[
                f"name={name}",
                f"description={category.get('description') or ''}",
                f"emoji={category.get('emoji') or ''}",
            ],
            typed_fields=[f"is_answerable={str(is_answerable).lower()}"],
        ),
        preview=preview,
    )


def create_discussion(
    ctx: PolicyContext,
    ref: RepoRef,
    *,
    title: str,
    body: str,
    category: str,
    preview: bool,
) -> str:
    """Create a discussion unless one with ``title`` exists; return its node id.

    Preview mode returns ``PREVIEW_ID`` for a discussion it would create.
    """
    discussions = _list_tolerant(ctx, f"repos/{ref.org}/{ref.repo}/discussions", "discussions list")
    existing = find_by_name(discussions, title, key="title")

    category_id = ""
    if existing is None:
        category_id = category_id_by_name(ctx, ref, category)
        if not category_id and not preview:
            raise PolicyValueError(detail=f"missing category for discussion '{title}': {category}")

    result = upsert_by_name(
        ctx.reporter,
        kind="discussion",
        name=title,
        existing=existing,
        create=lambda: ctx.gh.api(
            f"repos/{ref.org}/{ref.repo}/discussions",
            method="POST",
            typed_fields=[f"category_id={category_id}", f"title={title}", f"body={body}"],
            jq=".node_id",
        ),
        preview=preview,
    )
    if result.action == EXISTS:
        return str(result.value.get("node_id") or "")
    return str(result.value or "")


def add_labels_to_discussion(
    ctx: PolicyContext, discussion_id: str, label_ids: Sequence[str], preview: bool
) -> None:
    if not discussion_id or discussion_id == PREVIEW_ID or not label_ids:
        return
    if preview:
        ctx.reporter.preview(f"add {len(label_ids)} labels to discussion")
        return
    ctx.gh.api(
        "graphql",
        fields=[f"query={ADD_LABELS_MUTATION}"],
        typed_fields=[f"labelableId={discussion_id}", f"labelIds={json.dumps(list(label_ids))}"],
    )


def ensure_discussions_repo(ctx: PolicyContext, repo_full: str, config_file: Path, preview: bool) -> None:
    config = load_versioned_config(config_file)
    template = config.get("template") or {}
    ref = RepoRef.parse(repo_full)

    if not discussions_enabled(ctx, ref):
        if preview:
            ctx.reporter.preview(f"enable discussions for {ref}")
        else:
            ctx.gh.api(
                f"repos/{ref.org}/{ref.repo}", method="PATCH", typed_fields=["has_discussions=true"]
            )
            ctx.reporter.line(f"updated: discussions enabled for {ref}")

    for category in template.get("categories") or []:
        ensure_category(ctx, ref, category, preview)
    for label in template.get("labels") or []:
        ensure_label(ctx, ref, label, preview)

    for discussion in template.get("initial_discussions") or []:
        discussion_id = create_discussion(
            ctx,
            ref,
            title=str(discussion.get("title", "")),
            body=str(discussion.get("body", "")),
            category=str(discussion.get("category", "")),
            preview=preview,
        )
        label_ids = []
        for label_name in discussion.get("labels") or []:
            label_id = label_id_by_name(ctx, ref, label_name)
            if label_id:
                label_ids.append(label_id)
        add_labels_to_discussion(ctx, discussion_id, label_ids, preview)

    ctx.reporter.line(f"Done: discussions template initialized for {ref}")


def ensure_discussions_org(
    ctx: PolicyContext, org: str, config_file: Path, options: BatchOptions
) -> BatchSummary:
    def _apply(ref: RepoRef, _repo: RepoInfo) -> None:
        ensure_discussions_repo(ctx, ref.full_name, config_file, options.preview)

    return apply_to_org(ctx, org, "discussions", options, _apply)


__all__ = [
    "discussions_enabled",
    "label_id_by_name",
    "ensure_label",
    "list_discussion_categories",
    "category_id_by_name",
    "ensure_category",
    "create_discussion",
    "add_labels_to_discussion",
    "ensure_discussions_repo",
    "ensure_discussions_org",
]
