"""
Tests for the Celery tasks, run eagerly against the test session.
"""
from datetime import date

import pytest

from celerybeat_schedule import beat_schedule
from models import GymMonthlyMetrics, WodifyConnection
from tasks import celery_app
from tasks import learning_tasks, metrics_tasks, sync_tasks


@pytest.fixture
def task_db(db_session, monkeypatch):
    """Hand the test session to tasks; their close() must not end it."""
    monkeypatch.setattr(db_session, "close", lambda: None)
    for module in (metrics_tasks, learning_tasks, sync_tasks):
        monkeypatch.setattr(module, "get_db_sync", lambda: db_session)
    return db_session


class TestRegistration:
    def test_scheduled_tasks_are_registered(self):
        for entry in beat_schedule.values():
            assert entry["task"] in celery_app.tasks

    def test_enqueued_names_are_registered(self):
        assert "metrics.recompute_gym_metrics" in celery_app.tasks
        assert "sync.run_wodify_sync" in celery_app.tasks


class TestMetricsTask:
    def test_recompute(self, task_db, gym, add_member):
        add_member("Ana", date(2024, 1, 15), rate=150)
        result = metrics_tasks.recompute_gym_metrics_task(str(gym.id))
        assert result["status"] == "success"
        assert result["months"] > 0
        assert task_db.query(GymMonthlyMetrics).filter(GymMonthlyMetrics.gym_id == gym.id).count() == result["months"]

    def test_bad_gym_id_reported(self, task_db):
        result = metrics_tasks.recompute_gym_metrics_task("not-a-uuid")
        assert result["status"] == "error"


class TestLearningTask:
    def test_no_cards(self, task_db):
        assert learning_tasks.run_learning_updates_task() == {
            "status": "success", "gyms": 0, "updated": 0, "failed": 0,
        }


class TestSyncTasks:
    def test_not_connected_is_skipped(self, task_db, gym):
        result = sync_tasks.run_wodify_sync_task(str(gym.id))
        assert result["status"] == "skipped"

    def test_scheduled_fan_out(self, task_db, gym, monkeypatch):
        task_db.add(WodifyConnection(gym_id=gym.id, api_key_encrypted="x", api_key_fingerprint="...abcd"))
        task_db.flush()
        queued = []
        monkeypatch.setattr(sync_tasks.run_wodify_sync_task, "delay", queued.append)

        result = sync_tasks.run_scheduled_wodify_syncs_task()
        assert result == {"status": "queued", "count": 1}
        assert queued == [str(gym.id)]
