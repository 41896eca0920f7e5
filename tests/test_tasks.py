"""Tests for tasks.py — synchronous fallback and enqueue wrapper."""

from __future__ import annotations

from unittest.mock import MagicMock


def _sample_task(x, y):
    """A simple function for testing enqueue."""
    return x + y


def _sample_task_with_kwargs(x, multiplier=1):
    return x * multiplier


class TestSynchronousFallback:
    def test_enqueue_runs_sync_without_redis(self):
        from tasks import enqueue
        result = enqueue(_sample_task, 3, 4)
        assert result == 7

    def test_enqueue_with_kwargs(self):
        from tasks import enqueue
        result = enqueue(_sample_task_with_kwargs, 3, multiplier=5)
        assert result == 15

    def test_queue_failure_runs_inline(self, monkeypatch):
        import tasks
        broken = MagicMock()
        broken.enqueue.side_effect = ConnectionError("redis went away")
        monkeypatch.setattr(tasks, "_queue", broken)
        assert tasks.enqueue(_sample_task, 1, 2) == 3

    def test_queue_receives_job(self, monkeypatch):
        import tasks
        queue = MagicMock()
        queue.enqueue.return_value.id = "job-1"
        monkeypatch.setattr(tasks, "_queue", queue)
        job = tasks.enqueue(_sample_task, 1, 2)
        assert job.id == "job-1"
        queue.enqueue.assert_called_once_with(_sample_task, 1, 2)


class TestIsAsyncAvailable:
    def test_returns_false_without_redis(self, app):
        from tasks import is_async_available
        assert is_async_available() is False


class TestInitTasks:
    def test_init_without_redis_url(self, app):
        from tasks import init_tasks, is_async_available
        with app.app_context():
            init_tasks(app)
            assert is_async_available() is False

    def test_init_with_unreachable_redis(self, app):
        from tasks import init_tasks, is_async_available
        app.config["REDIS_URL"] = "redis://127.0.0.1:1"
        with app.app_context():
            init_tasks(app)
            assert is_async_available() is False
