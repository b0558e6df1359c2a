# src/grouping/grouper.py — v1
"""File grouping by directory or extension, filtering, ordering, and trees.

Group keys are POSIX-style paths relative to an optional base directory.
Include/exclude entries are prefix matches on the key: an entry matches a
key equal to it or starting with entry + "/". Exclusion is applied first.
"""

from __future__ import annotations

import logging
import posixpath
from pathlib import Path, PurePosixPath
from typing import Iterable, Sequence

from reviewpipe.grouping.models import (
    NO_EXTENSION_KEY,
    ROOT_KEY,
    UNGROUPED_KEY,
    DirectoryGroup,
    DirectoryStats,
    DirectoryTree,
    FileGroup,
    GroupBy,
    GroupingOptions,
    GroupingPlan,
    GroupSort,
)

logger = logging.getLogger(__name__)


def key_depth(key: str) -> int:
    """Depth of a directory key; the root key has depth 0."""
    if key in (ROOT_KEY, ""):
        return 0
    return key.count("/") + 1


def key_matches(key: str, prefix: str) -> bool:
    prefix = prefix.rstrip("/") or ROOT_KEY
    return key == prefix or key.startswith(prefix + "/")


class FileGrouper:
    """Partition file lists into named groups.

    Args:
        base_dir: Paths under this directory are keyed relative to it.
    """

    def __init__(self, base_dir: str | Path | None = None) -> None:
        self._base = Path(base_dir).resolve() if base_dir is not None else None

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def relative_path(self, file: str) -> str:
        """POSIX path of file relative to the base directory when possible."""
        normalized = file.replace("\\", "/")
        if self._base is not None:
            path = Path(file)
            if path.is_absolute():
                try:
                    normalized = path.resolve().relative_to(self._base).as_posix()
                except ValueError:
                    pass
        if normalized.startswith("./"):
            normalized = normalized[2:]
        return normalized

    def directory_key(self, file: str) -> str:
        parent = posixpath.dirname(self.relative_path(file))
        return parent or ROOT_KEY

    @staticmethod
    def extension_key(file: str) -> str:
        suffix = PurePosixPath(file.replace("\\", "/")).suffix
        return suffix[1:].lower() if suffix else NO_EXTENSION_KEY

    def group_key(self, file: str, group_by: GroupBy) -> str:
        if group_by == "directory":
            return self.directory_key(file)
        if group_by == "file_type":
            return self.extension_key(file)
        return UNGROUPED_KEY

    # ------------------------------------------------------------------
    # Grouping
    # ------------------------------------------------------------------

    def group(self, files: Iterable[str], group_by: GroupBy = "directory") -> dict[str, list[str]]:
        """Map group key -> files, preserving input order inside each group."""
        groups: dict[str, list[str]] = {}
        for file in files:
            groups.setdefault(self.group_key(file, group_by), []).append(file)
        return groups

    @staticmethod
    def filter_groups(
        groups: dict[str, list[str]],
        include: Sequence[str] = (),
        exclude: Sequence[str] = (),
    ) -> tuple[dict[str, list[str]], list[str]]:
        """Apply exclude then include prefix filters. Returns (kept, excluded keys)."""
        kept: dict[str, list[str]] = {}
        excluded: list[str] = []
        for key, files in groups.items():
            if any(key_matches(key, prefix) for prefix in exclude):
                excluded.append(key)
                continue
            if include and not any(key_matches(key, prefix) for prefix in include):
                excluded.append(key)
                continue
            kept[key] = files
        return kept, excluded

    @staticmethod
    def sort_keys(groups: dict[str, list[str]], order: GroupSort = "alphabetical") -> list[str]:
        keys = list(groups)
        if order == "file_count":
            return sorted(keys, key=lambda k: (-len(groups[k]), k))
        if order == "depth":
            return sorted(keys, key=lambda k: (key_depth(k), k))
        return sorted(keys)

    # ------------------------------------------------------------------
    # Directory structure
    # ------------------------------------------------------------------

    def build_tree(self, files: Iterable[str]) -> DirectoryTree:
        """Build the directory tree; each path component becomes one node."""
        root = DirectoryTree(name=ROOT_KEY, path=ROOT_KEY, depth=0)
        nodes: dict[str, DirectoryTree] = {ROOT_KEY: root}

        for file in files:
            dir_key = self.directory_key(file)
            if dir_key not in nodes:
                current = ""
                parent = root
                # Absolute keys start with a "/" part so node paths match dir_key
                for depth, part in enumerate(PurePosixPath(dir_key).parts, start=1):
                    current = posixpath.join(current, part) if current else part
                    node = nodes.get(current)
                    if node is None:
                        node = DirectoryTree(name=part.rstrip("/"), path=current, depth=depth)
                        nodes[current] = node
                        parent.children.append(node)
                    parent = node
            nodes[dir_key].files.append(file)

        _count_files(root)
        return root

    def directory_groups(self, groups: dict[str, list[str]]) -> list[DirectoryGroup]:
        """Directory metadata (depth, parent, direct children) for directory keys."""
        result: list[DirectoryGroup] = []
        for key, files in groups.items():
            depth = key_depth(key)
            parent = (posixpath.dirname(key) or ROOT_KEY) if depth > 0 else None
            children = [
                other for other in groups
                if other != key and _is_direct_child(other, key)
            ]
            result.append(DirectoryGroup(
                path=key, files=list(files), depth=depth,
                parent_path=parent, child_directories=sorted(children),
            ))
        return result

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def plan(self, files: Sequence[str], options: GroupingOptions | None = None) -> GroupingPlan:
        """Group, filter, and order files according to options."""
        opts = options or GroupingOptions()
        grouped = self.group(files, opts.group_by)
        kept, excluded = self.filter_groups(grouped, opts.include, opts.exclude)
        listed = dict(kept)
        if opts.include_empty_groups:
            # Excluded groups stay visible with no files to process
            for key in excluded:
                listed[key] = []
        ordered = self.sort_keys(listed, opts.sort)

        excluded_files = [f for key in excluded for f in grouped[key]]
        kept_files = [f for key in ordered for f in listed[key]]

        plan = GroupingPlan(
            group_by=opts.group_by,
            groups=[FileGroup(name=key, files=listed[key]) for key in ordered],
            excluded_groups=excluded,
            excluded_files=excluded_files,
        )
        if opts.group_by == "directory":
            plan.tree = self.build_tree(kept_files)
            by_key = {g.path: g for g in self.directory_groups(listed)}
            plan.directory_groups = [by_key[key] for key in ordered]

        logger.info(
            "Grouped %d files into %d groups by %s (%d groups excluded)",
            len(files), len(plan.groups), opts.group_by, len(excluded),
        )
        return plan


def render_tree(tree: DirectoryTree, show_files: bool = True) -> list[str]:
    """Text rendering of a directory tree, one entry per line."""
    lines: list[str] = []
    _render_node(tree, "", True, show_files, lines)
    return lines


def _render_node(
    node: DirectoryTree, prefix: str, is_last: bool, show_files: bool, lines: list[str],
) -> None:
    connector = "└── " if is_last else "├── "
    count = f" ({len(node.files)} files)" if node.files else ""
    lines.append(f"{prefix}{connector}{node.name}/{count}")

    child_prefix = prefix + ("    " if is_last else "│   ")
    if show_files:
        for i, file in enumerate(node.files):
            last_file = i == len(node.files) - 1 and not node.children
            lines.append(f"{child_prefix}{'└── ' if last_file else '├── '}{posixpath.basename(file)}")
    for i, child in enumerate(node.children):
        _render_node(child, child_prefix, i == len(node.children) - 1, show_files, lines)


def _count_files(node: DirectoryTree) -> int:
    node.total_files = len(node.files) + sum(_count_files(child) for child in node.children)
    return node.total_files


def _is_direct_child(candidate: str, parent: str) -> bool:
    if parent == ROOT_KEY:
        return candidate != ROOT_KEY and "/" not in candidate
    return candidate.startswith(parent + "/") and "/" not in candidate[len(parent) + 1:]


def directory_stats(groups: Sequence[DirectoryGroup]) -> DirectoryStats:
    """Totals, average size, deepest directories, and files per depth."""
    if not groups:
        return DirectoryStats()
    total_files = sum(g.file_count for g in groups)
    max_depth = max(g.depth for g in groups)
    distribution: dict[int, int] = {}
    for g in groups:
        distribution[g.depth] = distribution.get(g.depth, 0) + g.file_count
    largest = min(groups, key=lambda g: (-g.file_count, g.path))
    return DirectoryStats(
        total_directories=len(groups),
        total_files=total_files,
        average_files_per_directory=total_files / len(groups),
        max_depth=max_depth,
        deepest_directories=sorted(g.path for g in groups if g.depth == max_depth),
        largest_directory=largest.path,
        depth_distribution=dict(sorted(distribution.items())),
    )
