"""
Client-side view state: auto-delete filter, pager, keyed selection and
owner grouping over the visible page.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Literal

from recexplorer.models import UnifiedRecording, record_key

AutoDeleteFilter = Literal["all", "auto", "manual"]
AUTO_DELETE_CHOICES: tuple[str, ...] = ("all", "auto", "manual")


def filter_auto_delete(
    records: Iterable[UnifiedRecording], mode: AutoDeleteFilter = "all"
) -> list[UnifiedRecording]:
    """Tri-state auto-delete filter. Only meeting records are affected."""
    result = []
    for record in records:
        if mode == "all" or record.source != "meetings":
            result.append(record)
        elif mode == "auto" and record.auto_delete is True:
            result.append(record)
        elif mode == "manual" and record.auto_delete is False:
            result.append(record)
    return result


@dataclass(frozen=True)
class PageView:
    records: tuple[UnifiedRecording, ...]
    page_index: int
    total_pages: int
    total_filtered: int
    page_size: int

    @property
    def keys(self) -> list[str]:
        return [record_key(r) for r in self.records]

    @property
    def start(self) -> int:
        return self.page_index * self.page_size


def paginate(records: Sequence[UnifiedRecording], page_size: int, page_index: int) -> PageView:
    """Slice one page; an out-of-range index is clamped to the last page."""
    size = page_size if page_size > 0 else 100
    total = len(records)
    total_pages = max(1, math.ceil(total / size))
    index = min(max(page_index, 0), total_pages - 1)
    start = index * size
    return PageView(
        records=tuple(records[start : start + size]),
        page_index=index,
        total_pages=total_pages,
        total_filtered=total,
        page_size=size,
    )


class SelectionState:
    """Set of selected record keys, independent of row position."""

    def __init__(self, keys: Iterable[str] = ()) -> None:
        self._keys: set[str] = set(keys)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    @property
    def keys(self) -> frozenset[str]:
        return frozenset(self._keys)

    def toggle(self, key: str) -> None:
        if key in self._keys:
            self._keys.discard(key)
        else:
            self._keys.add(key)

    def apply_selection(self, keys: Iterable[str], checked: bool) -> None:
        """Set membership for exactly ``keys``; other keys are untouched."""
        if checked:
            self._keys.update(keys)
        else:
            self._keys.difference_update(keys)

    def clear(self) -> None:
        self._keys.clear()

    def all_selected(self, keys: Sequence[str]) -> bool:
        return bool(keys) and all(k in self._keys for k in keys)

    def selected_records(self, records: Iterable[UnifiedRecording]) -> list[UnifiedRecording]:
        return [r for r in records if record_key(r) in self._keys]

    def selected_count(self, records: Iterable[UnifiedRecording]) -> int:
        return len(self.selected_records(records))


@dataclass(frozen=True)
class OwnerGroup:
    """Records on the visible page sharing one owner display name."""

    name: str
    records: tuple[UnifiedRecording, ...]
    keys: tuple[str, ...]
    fully_selected: bool
    collapsed: bool = False

    @property
    def count(self) -> int:
        return len(self.records)


@dataclass
class GroupCollapseState:
    """Owner names whose groups are collapsed; groups default to expanded."""

    collapsed: set[str] = field(default_factory=set)

    def is_collapsed(self, name: str) -> bool:
        return name in self.collapsed

    def toggle(self, name: str) -> None:
        if name in self.collapsed:
            self.collapsed.discard(name)
        else:
            self.collapsed.add(name)

    def collapse_all(self, names: Iterable[str]) -> None:
        self.collapsed.update(names)

    def expand_all(self) -> None:
        self.collapsed.clear()


def group_by_owner(
    page_records: Iterable[UnifiedRecording],
    selection: SelectionState,
    collapse: GroupCollapseState | None = None,
) -> list[OwnerGroup]:
    """Partition the page by owner display name, in first-seen order."""
    buckets: dict[str, list[UnifiedRecording]] = {}
    for record in page_records:
        buckets.setdefault(record.owner_display_name, []).append(record)

    groups = []
    for name, members in buckets.items():
        keys = tuple(record_key(r) for r in members)
        groups.append(
            OwnerGroup(
                name=name,
                records=tuple(members),
                keys=keys,
                fully_selected=selection.all_selected(keys),
                collapsed=collapse.is_collapsed(name) if collapse else False,
            )
        )
    return groups


def toggle_group_selection(group: OwnerGroup, selection: SelectionState) -> None:
    """Select every member of ``group``, or clear them all if already fully selected."""
    selection.apply_selection(group.keys, not group.fully_selected)


class RecordBrowser:
    """Filter chain, pager, selection and grouping over one fetched dataset."""

    def __init__(self, page_size: int = 100) -> None:
        self.records: list[UnifiedRecording] = []
        self.auto_delete: AutoDeleteFilter = "all"
        self.page_size = page_size
        self.page_index = 0
        self.selection = SelectionState()
        self.collapse = GroupCollapseState()

    def load(self, records: Iterable[UnifiedRecording]) -> None:
        """Install the results of a new search; selection starts empty."""
        self.records = list(records)
        self.page_index = 0
        self.selection.clear()

    def replace_records(self, records: Iterable[UnifiedRecording]) -> None:
        """Swap the dataset in place (e.g. after local deletes), keeping the page."""
        self.records = list(records)

    def set_auto_delete(self, mode: AutoDeleteFilter) -> None:
        self.auto_delete = mode
        self.page_index = 0

    def filtered(self) -> list[UnifiedRecording]:
        return filter_auto_delete(self.records, self.auto_delete)

    def page(self) -> PageView:
        view = paginate(self.filtered(), self.page_size, self.page_index)
        self.page_index = view.page_index
        return view

    def go_to_page(self, index: int) -> PageView:
        self.page_index = index
        return self.page()

    def next_page(self) -> PageView:
        view = self.page()
        if view.page_index + 1 < view.total_pages:
            self.page_index += 1
        return self.page()

    def prev_page(self) -> PageView:
        self.page_index = max(0, self.page_index - 1)
        return self.page()

    def groups(self) -> list[OwnerGroup]:
        return group_by_owner(self.page().records, self.selection, self.collapse)

    def select_all_on_page(self, checked: bool = True) -> None:
        self.selection.apply_selection(self.page().keys, checked)

    def all_on_page_selected(self) -> bool:
        return self.selection.all_selected(self.page().keys)

    def selected_records(self) -> list[UnifiedRecording]:
        return self.selection.selected_records(self.filtered())
