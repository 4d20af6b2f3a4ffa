"""Map GitLab merge requests onto Notion page properties"""

from datetime import datetime
from typing import Any, Dict, List

from devlog.models.merge_request import Label, MergeRequest

PropertiesMap = Dict[str, Dict[str, Any]]


def unique_key_for(mr: MergeRequest) -> str:
    return f"MR-{mr.iid}"


def _rich_text(content: str) -> Dict[str, Any]:
    return {"rich_text": [{"text": {"content": content}}]}


def _date(value: datetime) -> Dict[str, Any]:
    return {"date": {"start": value.isoformat()}}


def _label_name(label: Label) -> str:
    if isinstance(label, str):
        return label
    return str(label.get("name", ""))


def _label_names(labels) -> List[str]:
    return [_label_name(label) for label in labels or ()]


def map_mr_to_properties(mr: MergeRequest) -> PropertiesMap:
    """Build the Notion properties for one merge request.

    `Merged Date` is only present for merged MRs with a timestamp and
    `Labels` only when the MR has labels.
    """
    properties: PropertiesMap = {
        "Title": {"title": [{"text": {"content": mr.title}}]},
        "Author": _rich_text(mr.author.name),
        "URL": {"url": mr.web_url},
        "State": {"select": {"name": mr.state}},
        "Source Branch": _rich_text(mr.source_branch),
        "Target Branch": _rich_text(mr.target_branch),
        "Created Date": _date(mr.created_at),
        "Updated Date": _date(mr.updated_at),
    }

    if mr.merged_at is not None:
        properties["Merged Date"] = _date(mr.merged_at)

    labels = _label_names(mr.labels)
    if labels:
        properties["Labels"] = {"multi_select": [{"name": name} for name in labels]}

    return properties
