from __future__ import annotations

import sys
import unittest
from datetime import datetime, timezone
from pathlib import Path
from typing_extensions import override

from fastapi import HTTPException
from sqlalchemy.pool import StaticPool

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from backend.moodlog.api import moods as moods_api
from backend.moodlog.database import MoodStore, build_engine
from backend.moodlog.rules import Mood
from backend.moodlog.services import MoodRepository


class MoodsApiTests(unittest.IsolatedAsyncioTestCase):
    store: MoodStore | None = None
    repo: MoodRepository | None = None

    @override
    async def asyncSetUp(self):
        engine = build_engine(
            "sqlite+aiosqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        self.store = MoodStore(engine)
        await self.store.connect()
        await self.store.initialize_schema()
        self.repo = MoodRepository(self.store)

    @override
    async def asyncTearDown(self):
        if self.store is not None:
            await self.store.close()

    async def _list(self, **kwargs):
        params = {"limit": None, "page": None, "date_from": None, "date_to": None}
        params.update(kwargs)
        return await moods_api.list_moods(**params, repo=self.repo)

    async def test_create_returns_persisted_entry(self):
        resp = await moods_api.create_mood(
            payload={"date": "2025-09-22", "emoji": Mood.HAPPY.value, "note": "Had a great day!"},
            repo=self.repo,
        )
        self.assertIsInstance(resp.id, int)
        self.assertEqual(resp.emoji, Mood.HAPPY.value)
        self.assertEqual(resp.note, "Had a great day!")
        self.assertIsNotNone(resp.created_at)

    async def test_create_ignores_client_supplied_id_and_timestamps(self):
        resp = await moods_api.create_mood(
            payload={
                "id": 999,
                "date": "2025-09-22",
                "emoji": Mood.SAD.value,
                "created_at": "1999-01-01T00:00:00.000Z",
            },
            repo=self.repo,
        )
        self.assertNotEqual(resp.id, 999)
        self.assertNotEqual(resp.created_at, "1999-01-01T00:00:00.000Z")

    async def test_create_type_errors_are_400(self):
        with self.assertRaises(HTTPException) as ctx:
            await moods_api.create_mood(
                payload={"date": 20250922, "emoji": Mood.HAPPY.value}, repo=self.repo
            )
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertIn("date must be a string", ctx.exception.detail["error"])

    async def test_create_reports_all_rule_violations(self):
        with self.assertRaises(HTTPException) as ctx:
            await moods_api.create_mood(
                payload={"date": "2025-02-30", "emoji": "🙂", "note": "x" * 501}, repo=self.repo
            )
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(len(ctx.exception.detail["details"]), 3)
        self.assertEqual(ctx.exception.detail["kind"], "ValidationError")
        self.assertIn("500", ctx.exception.detail["error"])

    async def test_duplicate_is_409_with_suggestion(self):
        payload = {"date": "2025-09-22", "emoji": Mood.HAPPY.value}
        await moods_api.create_mood(payload=payload, repo=self.repo)

        with self.assertRaises(HTTPException) as ctx:
            await moods_api.create_mood(payload=payload, repo=self.repo)
        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(ctx.exception.detail["kind"], "DuplicateDateError")
        self.assertEqual(ctx.exception.detail["date"], "2025-09-22")
        self.assertIn("already exists", ctx.exception.detail["error"])
        self.assertIn("delet", ctx.exception.detail["suggestion"])

    async def test_get_by_date(self):
        await moods_api.create_mood(
            payload={"date": "2025-09-22", "emoji": Mood.LOVED.value}, repo=self.repo
        )
        resp = await moods_api.get_mood(date="2025-09-22", repo=self.repo)
        self.assertEqual(resp.emoji, Mood.LOVED.value)
        self.assertIsNone(resp.note)

        with self.assertRaises(HTTPException) as ctx:
            await moods_api.get_mood(date="2025-09-23", repo=self.repo)
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(ctx.exception.detail["date"], "2025-09-23")
        self.assertEqual(ctx.exception.detail["kind"], "NotFoundError")

    async def test_bad_path_date_is_400(self):
        for bad in ("not-a-date", "2025-02-30"):
            with self.subTest(date=bad):
                with self.assertRaises(HTTPException) as ctx:
                    await moods_api.get_mood(date=bad, repo=self.repo)
                self.assertEqual(ctx.exception.status_code, 400)
                self.assertEqual(ctx.exception.detail["kind"], "ValidationError")

    async def test_list_response_shape(self):
        for day, mood in (("2025-09-20", Mood.SAD), ("2025-09-21", Mood.NEUTRAL), ("2025-09-22", Mood.HAPPY)):
            await moods_api.create_mood(payload={"date": day, "emoji": mood.value}, repo=self.repo)

        resp = await self._list()
        self.assertEqual([m.date for m in resp.moods], ["2025-09-22", "2025-09-21", "2025-09-20"])

        body = resp.model_dump(by_alias=True)
        self.assertEqual(body["total"], 3)
        self.assertEqual(body["totalPages"], 1)
        self.assertEqual((body["page"], body["limit"]), (1, 20))

    async def test_list_bad_range_is_400(self):
        with self.assertRaises(HTTPException) as ctx:
            await self._list(date_from="2025-09-30", date_to="2025-09-01")
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertIn("From date cannot be after to date", ctx.exception.detail["error"])

        with self.assertRaises(HTTPException) as ctx:
            await self._list(limit=500)
        self.assertEqual(ctx.exception.status_code, 400)

    async def test_delete_then_delete_again(self):
        await moods_api.create_mood(
            payload={"date": "2025-09-22", "emoji": Mood.HAPPY.value, "note": "gone soon"},
            repo=self.repo,
        )

        resp = await moods_api.delete_mood(date="2025-09-22", repo=self.repo)
        self.assertTrue(resp.deleted)
        self.assertEqual(resp.deleted_entry.note, "gone soon")
        self.assertIn("deletedEntry", resp.model_dump(by_alias=True))

        with self.assertRaises(HTTPException) as ctx:
            await moods_api.delete_mood(date="2025-09-22", repo=self.repo)
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertFalse(ctx.exception.detail["deleted"])
        self.assertEqual(ctx.exception.detail["kind"], "NotFoundError")
        self.assertEqual(ctx.exception.detail["date"], "2025-09-22")

    async def test_update_replaces_content(self):
        await moods_api.create_mood(
            payload={"date": "2025-09-22", "emoji": Mood.NEUTRAL.value}, repo=self.repo
        )
        resp = await moods_api.update_mood(
            date="2025-09-22",
            payload={"emoji": Mood.VERY_HAPPY.value, "note": "Actually turned into a great day!"},
            repo=self.repo,
        )
        self.assertEqual(resp.emoji, Mood.VERY_HAPPY.value)

        with self.assertRaises(HTTPException) as ctx:
            await moods_api.update_mood(
                date="2025-09-23", payload={"emoji": Mood.HAPPY.value}, repo=self.repo
            )
        self.assertEqual(ctx.exception.status_code, 404)

    async def test_statistics_for_today(self):
        today = datetime.now(timezone.utc).date().isoformat()
        await moods_api.create_mood(payload={"date": today, "emoji": Mood.SAD.value}, repo=self.repo)

        resp = await moods_api.mood_statistics(days=30, repo=self.repo)
        body = resp.model_dump(by_alias=True)
        self.assertEqual(body["totalEntries"], 1)
        self.assertEqual(body["distribution"], {Mood.SAD.value: 1})
        self.assertEqual(body["period"], 30)
        self.assertEqual(body["dailyBreakdown"][0]["date"], today)

    async def test_health_check(self):
        resp = await moods_api.mood_store_health(repo=self.repo)
        self.assertEqual(resp.status, "ok")
        self.assertEqual(resp.database.status, "healthy")
        self.assertEqual(resp.database.encryption, "disabled")


if __name__ == "__main__":
    unittest.main()
