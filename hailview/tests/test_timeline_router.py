import unittest

from fastapi import HTTPException

from hailview import main
from hailview.routers import timeline as timeline_router
from hailview.routers.timeline import TimelineRequest, ValidateRequest


def _payload(tool="codex", events=None):
    return {
        "session_id": "sess-1",
        "agent": {"provider": "openai", "model": "gpt-5", "tool": tool},
        "context": {"title": "Fix the bug"},
        "events": events
        if events is not None
        else [
            {
                "event_id": "u1",
                "timestamp": "2026-02-16T12:00:00Z",
                "event_type": {"type": "UserMessage"},
                "content": {"blocks": [{"type": "Text", "text": "fix bug"}]},
            },
            {
                "event_id": "c1",
                "timestamp": "2026-02-16T12:00:01Z",
                "event_type": {"type": "ToolCall", "data": {"name": "read_file"}},
                "attributes": {"call_id": "c1"},
            },
            {
                "event_id": "r1",
                "timestamp": "2026-02-16T12:00:02Z",
                "event_type": {"type": "ToolResult", "data": {"name": "read_file", "call_id": "c1"}},
                "content": {"blocks": [{"type": "Text", "text": "contents"}]},
            },
            {
                "event_id": "a1",
                "timestamp": "2026-02-16T12:00:03Z",
                "event_type": {"type": "AgentMessage"},
                "content": {"blocks": [{"type": "Text", "text": "done"}]},
            },
        ],
    }


class TimelineRouterTests(unittest.IsolatedAsyncioTestCase):
    async def test_view_returns_camel_case_timeline(self) -> None:
        response = await timeline_router.view_timeline(TimelineRequest(session=_payload()))

        self.assertEqual(response.sessionId, "sess-1")
        self.assertEqual(response.title, "Fix the bug")
        self.assertEqual(response.viewMode, "unified")
        self.assertTrue(response.nativeSupported)
        self.assertIsNone(response.notice)
        self.assertEqual(response.renderedEventIds, ["u1", "c1", "r1", "a1"])
        self.assertEqual(response.pairs, {"c1": "r1"})
        self.assertEqual(response.stats.event_count, 4)
        self.assertEqual([lane.lane for lane in response.lanes], [0, 0, 0, 0])

    async def test_view_reports_matches_as_event_ids(self) -> None:
        request = TimelineRequest(session=_payload(), query="done")
        response = await timeline_router.view_timeline(request)
        self.assertEqual(response.matchEventIds, ["a1"])
        self.assertEqual(response.matchCursor, 0)

    async def test_native_request_falls_back_for_unregistered_adapter(self) -> None:
        request = TimelineRequest(session=_payload(tool="homegrown-agent"), viewMode="native", enabledKeys=["tool"])
        response = await timeline_router.view_timeline(request)

        self.assertEqual(response.viewMode, "unified")
        self.assertFalse(response.nativeSupported)
        self.assertIn("homegrown-agent", response.notice)
        self.assertEqual(len(response.renderedEventIds), 4)

    async def test_malformed_session_is_422(self) -> None:
        payload = _payload()
        payload["events"][0]["event_type"] = {"type": "Teleport"}
        with self.assertLogs("hailview.timeline", level="WARNING"):
            with self.assertRaises(HTTPException) as ctx:
                await timeline_router.view_timeline(TimelineRequest(session=payload))
        self.assertEqual(ctx.exception.status_code, 422)
        self.assertEqual(ctx.exception.detail["kind"], "UnknownVariant")

    async def test_unknown_view_mode_is_400(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            await timeline_router.view_timeline(TimelineRequest(session=_payload(), viewMode="sideways"))
        self.assertEqual(ctx.exception.status_code, 400)

    async def test_bad_task_view_mode_is_400_after_native_fallback(self) -> None:
        request = TimelineRequest(
            session=_payload(tool="homegrown-agent"),
            viewMode="native",
            taskViewMode="tree",
        )
        with self.assertRaises(HTTPException) as ctx:
            await timeline_router.view_timeline(request)
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertIn("task view mode", ctx.exception.detail)

    async def test_bad_task_view_mode_is_400(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            await timeline_router.view_timeline(TimelineRequest(session=_payload(), taskViewMode="tree"))
        self.assertEqual(ctx.exception.status_code, 400)

    async def test_validate_lists_issues(self) -> None:
        payload = _payload()
        payload["events"][3]["event_id"] = "u1"
        response = await timeline_router.validate_timeline_session(ValidateRequest(session=payload))

        self.assertFalse(response.valid)
        self.assertEqual([issue.code for issue in response.issues], ["DuplicateEventId"])

    async def test_validate_clean_session(self) -> None:
        response = await timeline_router.validate_timeline_session(ValidateRequest(session=_payload()))
        self.assertTrue(response.valid)
        self.assertEqual(response.issues, [])


class HealthTests(unittest.TestCase):
    def test_health_reports_status(self) -> None:
        payload = main.health()
        self.assertEqual(payload["status"], "ok")
        self.assertIn("codex", payload["nativeAdapters"])


if __name__ == "__main__":
    unittest.main()
