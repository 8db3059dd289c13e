"""Board client cache, overdue projection and optimistic updates"""

from datetime import datetime, timedelta

import pytest

from teamflow.client.board import BoardRequestError, TaskBoardClient

NOW = datetime(2025, 3, 10, 12, 0)


class FakeResponse:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no body")
        return self._payload


class FakeSession:
    """Answers requests from a queue of (status, payload) pairs"""

    def __init__(self):
        self.responses = []
        self.calls = []
        self.on_request = None

    def request(self, method, url, headers=None, timeout=None, json=None):
        self.calls.append((method, url, json))
        if self.on_request is not None:
            self.on_request()
        status, payload = self.responses.pop(0)
        return FakeResponse(status, payload)


def server_task(task_id=1, status="TODO", deadline=NOW - timedelta(hours=1), version=1, **extra):
    task = {
        "id": task_id,
        "title": "Submit Review cho Store",
        "status": status,
        "progress": 0,
        "deadline": deadline.isoformat(),
        "version": version,
        "history": [{"field": "Task", "old_value": "None", "new_value": "Created"}],
    }
    task.update(extra)
    return task


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def board(session):
    client = TaskBoardClient(base_url="http://api.test", token="t", session=session, timeout=1)
    session.responses.append((200, [
        server_task(1, "TODO"),
        server_task(2, "DONE"),
        server_task(3, "IN_PROGRESS", deadline=NOW + timedelta(hours=3)),
    ]))
    client.refresh()
    return client


class TestProjection:
    def test_projects_overdue_without_touching_server_copy(self, board):
        assert board.project_overdue(now=NOW) == [1]

        shown = board.display_task(1)
        assert shown["status"] == "OVERDUE"
        assert shown["projected"] is True
        cached = board.server_task(1)
        assert cached["status"] == "TODO"
        assert len(cached["history"]) == 1

    def test_done_and_future_tasks_are_not_projected(self, board):
        board.project_overdue(now=NOW)
        assert board.display_task(2)["status"] == "DONE"
        assert board.display_task(3)["status"] == "IN_PROGRESS"

    def test_refresh_discards_projection(self, board, session):
        board.project_overdue(now=NOW)
        session.responses.append((200, [server_task(1, "OVERDUE", version=2)]))
        board.refresh()
        shown = board.display_task(1)
        assert shown["status"] == "OVERDUE"
        assert shown["projected"] is False

    def test_timezone_aware_deadlines(self, session):
        client = TaskBoardClient(base_url="http://api.test", session=session)
        session.responses.append((200, [{"id": 9, "status": "TODO", "deadline": "2025-03-10T13:30:00+02:00"}]))
        client.refresh()
        assert client.project_overdue(now=NOW) == [9]


class TestOptimisticUpdates:
    def test_pending_edit_is_shown_during_request(self, board, session):
        seen = []
        session.on_request = lambda: seen.append(board.display_task(3)["status"])
        session.responses.append((200, server_task(3, "DONE", deadline=NOW + timedelta(hours=3), version=2, progress=100)))

        result = board.change_status(3, "DONE")

        assert seen == ["DONE"]
        assert result["progress"] == 100
        assert board.server_task(3)["version"] == 2
        method, url, body = session.calls[-1]
        assert (method, url) == ("PATCH", "http://api.test/tasks/3/status")
        assert body == {"status": "DONE", "expected_version": 1}

    def test_failed_update_reverts_and_raises(self, board, session):
        session.responses.append((409, {"detail": "Task 3 was modified by someone else", "error": "conflict"}))

        with pytest.raises(BoardRequestError) as excinfo:
            board.update_task(3, {"progress": 80})

        assert excinfo.value.status_code == 409
        assert excinfo.value.kind == "conflict"
        shown = board.display_task(3)
        assert shown["progress"] == 0
        assert shown == dict(board.server_task(3), projected=False)

    def test_update_sends_comments_and_version(self, board, session):
        session.responses.append((200, server_task(3, "IN_PROGRESS", deadline=NOW + timedelta(hours=3), version=2, progress=50)))
        board.update_task(3, {"progress": 50}, comments=["halfway"])
        _, url, body = session.calls[-1]
        assert url == "http://api.test/tasks/3"
        assert body == {"progress": 50, "comments": ["halfway"], "expected_version": 1}

    def test_unknown_task_is_not_sent(self, board, session):
        calls = len(session.calls)
        with pytest.raises(KeyError):
            board.change_status(42, "DONE")
        assert len(session.calls) == calls


class TestPolling:
    def test_display_tasks_lists_every_cached_task(self, board):
        board.project_overdue(now=NOW)
        shown = {task["id"]: task for task in board.display_tasks()}
        assert set(shown) == {1, 2, 3}
        assert shown[1]["status"] == "OVERDUE"
        assert shown[2]["status"] == "DONE"
        assert shown[3]["projected"] is False

    def test_start_and_stop_polling(self, board):
        board.start_polling(interval_seconds=3600)
        try:
            jobs = {job.id for job in board._poller.get_jobs()}
            assert jobs == {"board_refresh", "board_overdue_projection"}
            # Starting twice keeps the running poller
            poller = board._poller
            board.start_polling(interval_seconds=3600)
            assert board._poller is poller
        finally:
            board.stop_polling()
        assert board._poller is None

    def test_failed_background_refresh_keeps_cache(self, board, session):
        session.responses.append((500, {"detail": "boom"}))
        board._safe_refresh()
        assert board.server_task(1)["status"] == "TODO"
