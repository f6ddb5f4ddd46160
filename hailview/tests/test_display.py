import unittest
from datetime import datetime, timedelta, timezone

from hailview.display import (
    CHRONOLOGICAL,
    SUMMARY_START,
    apply_task_view_mode,
    build_display_items,
    collapse_consecutive,
    elide_redundant_file_reads,
    group_display_name,
    group_summary,
    pair_adjacent_results,
)
from hailview.lanes import compute_lane_events, compute_task_info
from hailview.models import CollapsedTaskItem, ConsecutiveGroupItem, Event, LaneEvent, PairedToolCallItem

_BASE = datetime(2026, 2, 16, 12, 0, tzinfo=timezone.utc)


def _event(event_id, type_name, data=None, *, task_id=None, offset=0):
    return Event.model_validate(
        {
            "event_id": event_id,
            "timestamp": (_BASE + timedelta(seconds=offset)).isoformat(),
            "event_type": {"type": type_name, "data": data or {}},
            "task_id": task_id,
        }
    )


def _ids(items):
    ids = []
    for item in items:
        if isinstance(item, LaneEvent):
            ids.append(item.event.event_id)
        elif isinstance(item, PairedToolCallItem):
            ids.append(f"{item.call.event.event_id}+{item.result.event.event_id}")
        elif isinstance(item, CollapsedTaskItem):
            ids.append(f"task:{item.task_id}")
        elif isinstance(item, ConsecutiveGroupItem):
            ids.append("group:" + ",".join(lane.event.event_id for lane in item.events))
    return ids


def _read(event_id, path, **kwargs):
    return _event(event_id, "FileRead", {"path": path}, **kwargs)


class TaskViewModeTests(unittest.TestCase):
    def setUp(self) -> None:
        events = [
            _event("u1", "UserMessage"),
            _event("s1", "TaskStart", {"title": "Explore"}, task_id="T"),
            _event("a1", "AgentMessage", task_id="T"),
            _event("e1", "TaskEnd", task_id="T"),
            _event("a2", "AgentMessage"),
        ]
        self.lanes = compute_lane_events(events)
        self.info = compute_task_info(self.lanes)

    def test_chronological_keeps_everything(self) -> None:
        items = apply_task_view_mode(self.lanes, CHRONOLOGICAL, (), self.info)
        self.assertEqual(_ids(items), ["u1", "s1", "a1", "e1", "a2"])

    def test_chronological_collapses_requested_tasks(self) -> None:
        items = apply_task_view_mode(self.lanes, CHRONOLOGICAL, ["T"], self.info)
        self.assertEqual(_ids(items), ["u1", "task:T", "a2"])
        self.assertEqual(items[1].info.title, "Explore")
        self.assertEqual(items[1].lane, 1)

    def test_summary_start_collapses_every_task(self) -> None:
        items = apply_task_view_mode(self.lanes, SUMMARY_START, (), self.info)
        self.assertEqual(_ids(items), ["u1", "task:T", "a2"])

    def test_match_predicate_filters_non_task_events(self) -> None:
        items = apply_task_view_mode(
            self.lanes,
            CHRONOLOGICAL,
            (),
            self.info,
            matches=lambda event: event.event_id != "a2",
        )
        self.assertEqual(_ids(items), ["u1", "s1", "a1", "e1"])

    def test_unknown_mode_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            apply_task_view_mode(self.lanes, "tree", (), self.info)


class ElisionAndPairingTests(unittest.TestCase):
    def test_read_followed_by_edit_of_same_path_is_elided(self) -> None:
        lanes = compute_lane_events(
            [
                _read("r1", "src/a.py"),
                _event("g1", "CodeSearch", {"query": "lane"}),
                _event("e1", "FileEdit", {"path": "src/a.py"}),
                _read("r2", "src/b.py"),
                _event("e2", "FileEdit", {"path": "src/c.py"}),
            ]
        )
        self.assertEqual(_ids(elide_redundant_file_reads(lanes)), ["g1", "e1", "r2", "e2"])

    def test_messages_stop_the_lookahead(self) -> None:
        lanes = compute_lane_events(
            [
                _read("r1", "src/a.py"),
                _event("a1", "AgentMessage"),
                _event("e1", "FileEdit", {"path": "src/a.py"}),
            ]
        )
        self.assertEqual(_ids(elide_redundant_file_reads(lanes)), ["r1", "a1", "e1"])

    def test_call_and_specialised_events_pair_with_next_result(self) -> None:
        lanes = compute_lane_events(
            [
                _event("c1", "ToolCall", {"name": "Grep"}),
                _event("r1", "ToolResult", {"name": "Grep"}),
                _read("f1", "src/a.py"),
                _event("r2", "ToolResult", {"name": "Read"}),
                _event("s1", "ShellCommand", {"command": "ls"}),
                _event("r3", "ToolResult", {"name": "Read"}),
            ]
        )
        self.assertEqual(_ids(pair_adjacent_results(lanes)), ["c1+r1", "f1+r2", "s1", "r3"])


class ConsecutiveGroupTests(unittest.TestCase):
    def test_runs_on_one_lane_collapse(self) -> None:
        lanes = compute_lane_events(
            [
                _read("r1", "src/a.py"),
                _read("r2", "src/b.py"),
                _read("r3", "src/c.py"),
                _event("u1", "UserMessage"),
                _read("r4", "src/d.py"),
            ]
        )
        items = collapse_consecutive(lanes)
        self.assertEqual(_ids(items), ["group:r1,r2,r3", "u1", "r4"])
        self.assertEqual(items[0].count, 3)
        self.assertEqual(items[0].group_key, "FileRead")
        self.assertEqual(group_summary(items[0].events), "a.py, b.py, c.py")

    def test_lane_change_breaks_a_run(self) -> None:
        lanes = compute_lane_events(
            [
                _read("r1", "a.py"),
                _event("s1", "TaskStart", task_id="T"),
                _read("r2", "b.py", task_id="T"),
                _read("r3", "c.py", task_id="T"),
            ]
        )
        self.assertEqual(_ids(collapse_consecutive(lanes)), ["r1", "s1", "group:r2,r3"])

    def test_summary_truncates_long_runs(self) -> None:
        lanes = compute_lane_events([_read(f"r{i}", f"pkg/f{i}.py") for i in range(5)])
        self.assertEqual(group_summary(lanes), "f0.py, f1.py, +3 more")

    def test_group_display_names(self) -> None:
        self.assertEqual(group_display_name("FileRead"), "File Read")
        self.assertEqual(group_display_name("ToolCall:Bash"), "Bash")
        self.assertEqual(group_display_name("ToolResult:Bash"), "Bash result")

    def test_build_display_items_runs_every_step(self) -> None:
        events = [
            _read("r1", "src/a.py"),
            _event("e1", "FileEdit", {"path": "src/a.py"}),
            _event("c1", "ToolCall", {"name": "Bash"}),
            _event("x1", "ToolResult", {"name": "Bash"}),
            _event("s1", "TaskStart", task_id="T"),
            _event("a1", "AgentMessage", task_id="T"),
            _event("t1", "TaskEnd", task_id="T"),
        ]
        lanes = compute_lane_events(events)
        items = build_display_items(lanes, compute_task_info(lanes), CHRONOLOGICAL, ["T"])
        self.assertEqual(_ids(items), ["e1", "c1+x1", "task:T"])


if __name__ == "__main__":
    unittest.main()
