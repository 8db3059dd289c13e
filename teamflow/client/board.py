# teamflow/client/board.py
"""
Task board client.

Keeps a local cache of the tasks the API returned and derives what the board
shows from it. Two things are layered on top of the cached server copy and
never written into it:

- the overdue projection: tasks whose deadline has passed are *shown* as
  OVERDUE until the server's own sweep catches up
- pending optimistic edits: shown while a request is in flight, dropped
  when the request fails

Every refresh replaces the cache with server state and discards both.
"""

import copy
import logging
import threading
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import requests
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from teamflow.config.settings import settings
from teamflow.models.task import TaskStatus
from teamflow.services.transitions import is_overdue
from teamflow.utils.clock import to_naive_utc, utcnow

logger = logging.getLogger(__name__)


class BoardRequestError(Exception):
    """The API rejected a request or could not be reached"""

    def __init__(self, message: str, status_code: Optional[int] = None, kind: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.kind = kind


def _parse_deadline(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = to_naive_utc(parsed)
    return parsed


class TaskBoardClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.BOARD['api_url']).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout or settings.BOARD['request_timeout']
        self.token = token

        self._lock = threading.Lock()
        self._tasks: Dict[int, Dict[str, Any]] = {}
        self._projected: Dict[int, TaskStatus] = {}
        self._pending: Dict[int, Dict[str, Any]] = {}
        self._poller: Optional[BackgroundScheduler] = None

    # HTTP plumbing

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, **kwargs):
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise BoardRequestError(f"{method} {path} failed: {e}")

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            raise BoardRequestError(
                body.get("detail") or f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
                kind=body.get("error"),
            )
        if response.status_code == 204:
            return None
        return response.json()

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self._request("POST", "/auth/login", json={"email": email, "password": password})
        self.token = data["access_token"]
        return data["user"]

    # Cache

    def refresh(self) -> List[Dict[str, Any]]:
        """Replace the cache with the server's current task list"""
        tasks = self._request("GET", "/tasks/")
        with self._lock:
            self._tasks = {task["id"]: task for task in tasks}
            self._projected = {}
            self._pending = {}
        logger.info(f"Board refreshed: {len(tasks)} tasks")
        return tasks

    def server_task(self, task_id: int) -> Dict[str, Any]:
        """The cached server copy, exactly as last received"""
        with self._lock:
            return copy.deepcopy(self._tasks[task_id])

    def project_overdue(self, now: Optional[datetime] = None) -> List[int]:
        """Re-evaluate the overdue predicate against the cache.

        Only the projection changes; cached server data and history are left
        as they are. Returns the ids currently projected as OVERDUE.
        """
        now = now or utcnow()
        with self._lock:
            projected = {}
            for task_id, task in self._tasks.items():
                deadline = _parse_deadline(task.get("deadline"))
                if deadline is not None and is_overdue(task["status"], deadline, now):
                    projected[task_id] = TaskStatus.OVERDUE
            self._projected = projected
        if projected:
            logger.debug(f"Projected {len(projected)} tasks as overdue")
        return sorted(projected)

    def display_task(self, task_id: int) -> Dict[str, Any]:
        """What the board shows: server copy + pending edit + overdue projection"""
        with self._lock:
            view = copy.deepcopy(self._tasks[task_id])
            view.update(self._pending.get(task_id, {}))
            if task_id in self._projected and "status" not in self._pending.get(task_id, {}):
                view["status"] = self._projected[task_id].value
                view["projected"] = True
            else:
                view["projected"] = False
        return view

    def display_tasks(self) -> List[Dict[str, Any]]:
        with self._lock:
            ids = list(self._tasks)
        return [self.display_task(task_id) for task_id in ids]

    # Optimistic writes

    def _apply_optimistically(self, task_id: int, override: Dict[str, Any], method: str, path: str, body: Dict[str, Any]):
        with self._lock:
            if task_id not in self._tasks:
                raise KeyError(task_id)
            self._pending[task_id] = dict(override)

        try:
            task = self._request(method, path, json=body)
        except BoardRequestError:
            # Revert; the caller keeps its dialog open with the user's input
            with self._lock:
                self._pending.pop(task_id, None)
            logger.info(f"Optimistic update of task {task_id} reverted")
            raise

        with self._lock:
            self._pending.pop(task_id, None)
            self._projected.pop(task_id, None)
            self._tasks[task_id] = task
        return task

    def update_task(
        self,
        task_id: int,
        changes: Dict[str, Any],
        comments: Iterable[str] = (),
        expected_version: Optional[int] = None,
    ) -> Dict[str, Any]:
        body = dict(changes)
        if isinstance(body.get("deadline"), datetime):
            body["deadline"] = body["deadline"].isoformat()
        comments = list(comments)
        if comments:
            body["comments"] = comments
        if expected_version is None:
            with self._lock:
                expected_version = self._tasks.get(task_id, {}).get("version")
        if expected_version is not None:
            body["expected_version"] = expected_version
        return self._apply_optimistically(task_id, changes, "PUT", f"/tasks/{task_id}", body)

    def change_status(
        self,
        task_id: int,
        status: TaskStatus,
        blocker_reason: Optional[str] = None,
        blocker_related_to: Optional[str] = None,
    ) -> Dict[str, Any]:
        status = TaskStatus(status)
        body = {"status": status.value}
        if blocker_reason is not None:
            body["blocker_reason"] = blocker_reason
        if blocker_related_to is not None:
            body["blocker_related_to"] = blocker_related_to
        with self._lock:
            version = self._tasks.get(task_id, {}).get("version")
        if version is not None:
            body["expected_version"] = version
        return self._apply_optimistically(task_id, {"status": status.value}, "PATCH", f"/tasks/{task_id}/status", body)

    def add_comment(self, task_id: int, text: str) -> Dict[str, Any]:
        return self._request("POST", f"/tasks/{task_id}/comments", json={"text": text})

    # Polling

    def start_polling(self, interval_seconds: Optional[int] = None, refresh: bool = True):
        """Re-run the overdue projection periodically in a background thread"""
        if self._poller is not None:
            return
        interval_seconds = interval_seconds or settings.BOARD['refresh_seconds']
        self._poller = BackgroundScheduler()
        if refresh:
            self._poller.add_job(
                self._safe_refresh,
                trigger=IntervalTrigger(seconds=interval_seconds),
                id='board_refresh',
                name='Board Refresh',
                replace_existing=True
            )
        self._poller.add_job(
            self.project_overdue,
            trigger=IntervalTrigger(seconds=interval_seconds),
            id='board_overdue_projection',
            name='Board Overdue Projection',
            replace_existing=True
        )
        self._poller.start()
        logger.info(f"Board polling started every {interval_seconds}s")

    def stop_polling(self):
        if self._poller is not None:
            self._poller.shutdown(wait=False)
            self._poller = None
            logger.info("Board polling stopped")

    def _safe_refresh(self):
        try:
            self.refresh()
            self.project_overdue()
        except BoardRequestError as e:
            logger.error(f"Board refresh failed: {e.message}")
