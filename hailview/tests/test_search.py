import unittest
from datetime import datetime, timezone

from hailview.models import Event
from hailview.search import (
    NEXT,
    PREVIOUS,
    build_search_index,
    event_search_text,
    find_matches,
    search_events,
    step_match,
)

_TS = datetime(2026, 2, 16, 12, 0, tzinfo=timezone.utc).isoformat()


def _event(event_id, type_name, data=None, *, blocks=None, task_id=None, attributes=None):
    return Event.model_validate(
        {
            "event_id": event_id,
            "timestamp": _TS,
            "event_type": {"type": type_name, "data": data or {}},
            "task_id": task_id,
            "content": {"blocks": blocks or []},
            "attributes": attributes or {},
        }
    )


def _text(value):
    return [{"type": "Text", "text": value}]


class SearchIndexTests(unittest.TestCase):
    def test_exact_text_block_always_matches_its_event(self) -> None:
        events = [
            _event("u1", "UserMessage", blocks=_text("Why does the Parser drop the LAST line?")),
            _event("a1", "AgentMessage", blocks=_text("Looking now.")),
            _event("r1", "ToolResult", {"name": "Read"}, blocks=_text("def parse(lines):\n    return lines[:-1]")),
        ]
        index = build_search_index(events)
        for position, event in enumerate(events):
            literal = event.content.blocks[0].text
            self.assertIn(position, find_matches(index, literal))

    def test_matching_is_case_insensitive_substring(self) -> None:
        events = [_event("u1", "UserMessage", blocks=_text("Refactor the Lane allocator"))]
        self.assertEqual(search_events(events, "lane ALLOC"), [0])
        self.assertEqual(search_events(events, "  lane  "), [0])

    def test_empty_query_matches_nothing(self) -> None:
        events = [_event("u1", "UserMessage", blocks=_text("anything"))]
        self.assertEqual(search_events(events, ""), [])
        self.assertEqual(search_events(events, "   "), [])
        self.assertEqual(search_events(events, None), [])

    def test_payload_fields_attributes_and_task_are_indexed(self) -> None:
        event = _event(
            "s1",
            "ShellCommand",
            {"command": "pytest -k Lanes", "exit_code": 1},
            task_id="task-42",
            attributes={"model": "gpt-5", "retries": 2},
        )
        haystack = event_search_text(event)
        self.assertIn("shellcommand", haystack)
        self.assertIn("pytest -k lanes", haystack)
        self.assertIn("task-42", haystack)
        self.assertIn('"model": "gpt-5"', haystack)

    def test_code_json_and_unknown_blocks_are_indexed(self) -> None:
        event = _event(
            "a1",
            "AgentMessage",
            blocks=[
                {"type": "Code", "code": "heapq.heappop(free)", "language": "python"},
                {"type": "Json", "data": {"status": "Green"}},
                {"type": "Sticker", "name": "Thumbs Up"},
            ],
        )
        self.assertEqual(search_events([event], "heappop"), [0])
        self.assertEqual(search_events([event], '"status": "green"'), [0])
        self.assertEqual(search_events([event], "thumbs up"), [0])

    def test_non_matching_query(self) -> None:
        events = [_event("u1", "UserMessage", blocks=_text("hello"))]
        self.assertEqual(search_events(events, "goodbye"), [])


class StepMatchTests(unittest.TestCase):
    def test_next_wraps_to_first(self) -> None:
        self.assertEqual(step_match(0, 3, NEXT), 1)
        self.assertEqual(step_match(2, 3, NEXT), 0)

    def test_previous_wraps_to_last(self) -> None:
        self.assertEqual(step_match(1, 3, PREVIOUS), 0)
        self.assertEqual(step_match(0, 3, PREVIOUS), 2)

    def test_stale_cursor_resets(self) -> None:
        self.assertEqual(step_match(7, 3, NEXT), 0)
        self.assertEqual(step_match(None, 3, NEXT), 0)
        self.assertEqual(step_match(7, 3, PREVIOUS), 2)

    def test_no_matches_has_no_cursor(self) -> None:
        self.assertIsNone(step_match(0, 0, NEXT))
        self.assertIsNone(step_match(None, 0, PREVIOUS))

    def test_unknown_direction_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            step_match(0, 3, "sideways")


if __name__ == "__main__":
    unittest.main()
