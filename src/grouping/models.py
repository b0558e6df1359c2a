# src/grouping/models.py — v1
"""Grouping models: options, directory groups, directory tree, grouping plan."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, model_validator

from reviewpipe.core.errors import ConfigurationError

GroupBy = Literal["directory", "file_type", "none"]
GroupSort = Literal["alphabetical", "file_count", "depth"]

ROOT_KEY = "."
NO_EXTENSION_KEY = "no-extension"
UNGROUPED_KEY = "all-files"


class GroupingOptions(BaseModel):
    """How files are partitioned, filtered, and ordered."""

    group_by: GroupBy = "directory"
    sort: GroupSort = "alphabetical"
    include: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)
    include_empty_groups: bool = False
    show_tree: bool = False

    @model_validator(mode="after")
    def validate_filters(self) -> GroupingOptions:
        overlap = set(self.include) & set(self.exclude)
        if overlap:
            raise ConfigurationError(
                f"Groups both included and excluded: {', '.join(sorted(overlap))}"
            )
        return self


class DirectoryTree(BaseModel):
    """One directory node; total_files includes all descendants."""

    name: str
    path: str
    depth: int
    files: list[str] = Field(default_factory=list)
    children: list[DirectoryTree] = Field(default_factory=list)
    total_files: int = 0

    def find(self, path: str) -> DirectoryTree | None:
        if self.path == path:
            return self
        for child in self.children:
            found = child.find(path)
            if found is not None:
                return found
        return None


class DirectoryGroup(BaseModel):
    """Directory-level metadata for one group key."""

    path: str
    files: list[str]
    depth: int
    parent_path: str | None = None
    child_directories: list[str] = Field(default_factory=list)

    @property
    def file_count(self) -> int:
        return len(self.files)


class FileGroup(BaseModel):
    name: str
    files: list[str]


class GroupingPlan(BaseModel):
    """Everything needed to process files group by group."""

    group_by: GroupBy
    groups: list[FileGroup] = Field(default_factory=list)
    excluded_groups: list[str] = Field(default_factory=list)
    excluded_files: list[str] = Field(default_factory=list)
    tree: DirectoryTree | None = None
    directory_groups: list[DirectoryGroup] = Field(default_factory=list)

    @property
    def processing_order(self) -> list[str]:
        return [f for group in self.groups for f in group.files]

    @property
    def total_files(self) -> int:
        return sum(len(g.files) for g in self.groups)


class DirectoryStats(BaseModel):
    """Aggregate directory metrics for a grouping run."""

    total_directories: int = 0
    total_files: int = 0
    average_files_per_directory: float = 0.0
    max_depth: int = 0
    deepest_directories: list[str] = Field(default_factory=list)
    largest_directory: str | None = None
    depth_distribution: dict[int, int] = Field(default_factory=dict)
