"""
Pydantic models for the Jira collections joined by the label pipeline.

Each model validates one row of a Jira REST page. Ids are coerced to strings
so that mapping rows, option rows and project rows join on equal types.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class JiraRow(BaseModel):
    """Base for rows coming from Jira; unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator("*", mode="before")
    @classmethod
    def _ids_as_strings(cls, value: Any, info) -> Any:
        if info.field_name.endswith("id") or info.field_name.endswith("_id"):
            if isinstance(value, int) and not isinstance(value, bool):
                return str(value)
        return value


class Context(JiraRow):
    """A custom field context."""
    id: str


class ProjectMapping(JiraRow):
    """Join row between a context and a project."""
    context_id: str = Field(alias="contextId")
    project_id: str = Field(alias="projectId")


class OptionRecord(JiraRow):
    """One option defined in a context."""
    id: str
    value: str
    disabled: bool = False


class ProjectInfo(BaseModel):
    """Display key and name of a project."""
    key: str = ""
    name: str = ""


class ProjectRecord(JiraRow):
    """A project row of the project search."""
    id: str
    key: str = ""
    name: str = ""

    def to_info(self) -> ProjectInfo:
        return ProjectInfo(key=self.key, name=self.name)


EMPTY_PROJECT = ProjectInfo()


class Page(BaseModel):
    """One page of a Jira paginated collection."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    values: List[Any]
    is_last: bool = Field(default=True, alias="isLast")
    max_results: Optional[int] = Field(default=None, alias="maxResults")
    start_at: Optional[int] = Field(default=None, alias="startAt")
    total: Optional[int] = None


class BatchRunReport(BaseModel):
    """Outcome of one batch refresh."""

    run_id: str
    succeeded: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)
    label_count: int = 0

    @property
    def ok(self) -> bool:
        return not self.failed
