"""Task mutations end to end: gate, engine, history and store together"""

from datetime import timedelta

import pytest

from teamflow.models import LogField, StaffRole, TaskPriority, TaskStatus, UpdateLog
from teamflow.services.exceptions import (
    TaskConflictError,
    TaskNotFoundError,
    TaskPermissionError,
    TaskValidationError,
)
from teamflow.services.sweeps import run_overdue_sweep
from teamflow.services.transitions import SYSTEM_RESUMED_DETAILS
from teamflow.utils.clock import utcnow


def fields_of(task):
    return [entry.field for entry in task.history]


class TestCreate:
    def test_new_task_starts_todo_with_creation_entry(self, make_task, staff):
        task = make_task()
        assert task.status == TaskStatus.TODO
        assert task.progress == 0
        assert task.version == 1
        assert task.created_by == staff["manager"].id
        assert fields_of(task) == [LogField.TASK.value]

    def test_staff_cannot_create(self, service, staff):
        with pytest.raises(TaskPermissionError):
            service.create_task(staff["designer"], {
                "title": "x", "purpose": "y", "role": StaffRole.DESIGNER,
                "assigned_to": staff["designer"].id, "deadline": utcnow(),
            })

    def test_assignee_must_match_role(self, make_task):
        with pytest.raises(TaskValidationError):
            make_task(assignee="cs", role=StaffRole.DESIGNER)

    def test_title_is_required(self, make_task):
        with pytest.raises(TaskValidationError):
            make_task(title="   ")


class TestStatusChanges:
    def test_done_forces_progress_and_rejects_repeat(self, service, make_task, staff):
        """Progress 40 -> DONE gives 100 with one Status entry; a second DONE is rejected"""
        task = make_task()
        service.update_task(staff["designer"], task.id, {"progress": 40})

        change = service.change_status(staff["designer"], task.id, TaskStatus.DONE)
        assert change.task.progress == 100
        assert change.task.status == TaskStatus.DONE
        assert fields_of(change.task) == ["Task", "Progress", "Status"]
        history_before = len(change.task.history)

        with pytest.raises(TaskValidationError):
            service.change_status(staff["designer"], task.id, TaskStatus.DONE)
        assert len(service.get_task(staff["designer"], task.id).history) == history_before

    def test_progress_sent_with_done_is_not_logged(self, service, make_task, staff):
        task = make_task()
        change = service.update_task(staff["designer"], task.id, {"status": TaskStatus.DONE, "progress": 40})
        assert change.task.progress == 100
        assert fields_of(change.task) == ["Task", "Status"]

    def test_blocker_with_reason_is_one_entry(self, service, make_task, staff):
        task = make_task()
        change = service.change_status(
            staff["designer"], task.id, TaskStatus.BLOCKER,
            blocker_reason="Waiting for vendor artwork", blocker_related_to="Seller Huyen",
        )
        last = change.task.history[-1]
        assert fields_of(change.task) == ["Task", "Status"]
        assert (last.old_value, last.new_value) == ("TODO", "BLOCKER")
        assert "Waiting for vendor artwork" in last.details
        assert change.task.blocker_related_to == "Seller Huyen"

    def test_blocker_without_reason_rejected(self, service, make_task, staff):
        task = make_task()
        with pytest.raises(TaskValidationError):
            service.change_status(staff["designer"], task.id, TaskStatus.BLOCKER)
        assert fields_of(service.get_task(staff["manager"], task.id)) == ["Task"]

    def test_blocker_fields_outside_blocker_rejected(self, service, make_task, staff):
        task = make_task()
        with pytest.raises(TaskValidationError):
            service.update_task(staff["designer"], task.id, {"blocker_reason": "no reason"})

    def test_editing_reason_while_blocked_logs_blocker_entry(self, service, make_task, staff):
        task = make_task()
        service.change_status(staff["designer"], task.id, TaskStatus.BLOCKER, blocker_reason="Waiting")
        change = service.update_task(staff["designer"], task.id, {"blocker_reason": "Waiting for vendor reply"})
        assert fields_of(change.task)[-1] == LogField.BLOCKER.value
        assert change.task.blocker_reason == "Waiting for vendor reply"
        assert change.task.status == TaskStatus.BLOCKER

    def test_leaving_blocker_clears_reason(self, service, make_task, staff):
        task = make_task()
        service.change_status(staff["designer"], task.id, TaskStatus.BLOCKER, blocker_reason="Waiting")
        change = service.change_status(staff["designer"], task.id, TaskStatus.IN_PROGRESS)
        assert change.task.blocker_reason is None
        assert change.task.blocker_related_to is None


class TestDeadlineExtension:
    def test_extending_blocked_task_resumes_it(self, service, make_task, staff):
        """BLOCKER + assignee extends deadline -> IN_PROGRESS, Deadline then Status entry"""
        task = make_task()
        service.change_status(staff["designer"], task.id, TaskStatus.BLOCKER, blocker_reason="Waiting on vendor")
        new_deadline = task.deadline + timedelta(days=2)

        change = service.update_task(staff["designer"], task.id, {"deadline": new_deadline})

        assert change.task.status == TaskStatus.IN_PROGRESS
        assert change.task.deadline == new_deadline
        assert change.task.blocker_reason is None
        deadline_entry, status_entry = change.task.history[-2:]
        assert deadline_entry.field == LogField.DEADLINE.value
        assert status_entry.field == LogField.STATUS.value
        assert (status_entry.old_value, status_entry.new_value) == ("BLOCKER", "IN_PROGRESS")
        assert status_entry.details == SYSTEM_RESUMED_DETAILS

    def test_extending_overdue_task_resumes_it(self, service, make_task, staff):
        task = make_task(deadline=utcnow() - timedelta(hours=2))
        service.change_status(staff["manager"], task.id, TaskStatus.OVERDUE)
        change = service.update_task(staff["designer"], task.id, {"deadline": utcnow() + timedelta(days=1)})
        assert change.task.status == TaskStatus.IN_PROGRESS

    def test_shortening_deadline_keeps_status(self, service, make_task, staff):
        task = make_task()
        service.change_status(staff["designer"], task.id, TaskStatus.BLOCKER, blocker_reason="Waiting")
        change = service.update_task(staff["designer"], task.id, {"deadline": task.deadline - timedelta(hours=1)})
        assert change.task.status == TaskStatus.BLOCKER
        assert fields_of(change.task)[-1] == LogField.DEADLINE.value

    def test_extension_still_in_the_past_keeps_task_overdue(self, db, service, make_task, staff):
        task = make_task(deadline=utcnow() - timedelta(days=2))
        run_overdue_sweep(db)

        change = service.update_task(staff["designer"], task.id, {"deadline": utcnow() - timedelta(days=1)})
        assert change.task.status == TaskStatus.OVERDUE
        assert fields_of(change.task)[-1] == LogField.DEADLINE.value

        # Nothing left for the next sweep to redo
        assert run_overdue_sweep(db).transitioned == []
        statuses = [e for e in change.task.history if e.field == LogField.STATUS.value]
        assert [(e.old_value, e.new_value) for e in statuses] == [("TODO", "OVERDUE")]


class TestComments:
    def test_two_comments_are_two_entries_in_order(self, service, make_task, staff):
        task = make_task()
        service.add_comment(staff["designer"], task.id, "Started on the mockups")
        service.add_comment(staff["designer"], task.id, "Sent first draft to seller")
        history = service.get_task(staff["designer"], task.id).history
        comments = [e for e in history if e.field == LogField.COMMENT.value]
        assert [c.details for c in comments] == ["Started on the mockups", "Sent first draft to seller"]
        assert all((c.old_value, c.new_value) == ("-", "Note Added") for c in comments)

    def test_comments_do_not_bump_version(self, service, make_task, staff):
        task = make_task()
        service.add_comment(staff["designer"], task.id, "note")
        assert service.get_task(staff["designer"], task.id).version == 1

    def test_comments_commit_with_field_update(self, service, make_task, staff):
        task = make_task()
        change = service.update_task(
            staff["designer"], task.id, {"progress": 30}, comments=["half the files done", "rest tomorrow"]
        )
        assert fields_of(change.task) == ["Task", "Progress", "Comment", "Comment"]
        assert change.task.version == 2

    def test_outsider_cannot_comment(self, service, make_task, staff):
        task = make_task()
        with pytest.raises(TaskPermissionError):
            service.add_comment(staff["seller"], task.id, "drive-by")


class TestReassignment:
    def test_candidates_are_role_matched(self, service, make_task, staff):
        task = make_task(assignee="designer")
        candidates = service.assignee_candidates(staff["manager"], task.id)
        assert {u.role for u in candidates} == {StaffRole.DESIGNER}
        assert {u.email for u in candidates} == {"tu@dtc.com", "lan@dtc.com"}

    def test_cross_department_reassignment_rejected(self, service, make_task, staff):
        task = make_task(assignee="designer")
        with pytest.raises(TaskValidationError):
            service.update_task(staff["manager"], task.id, {"assigned_to": staff["cs"].id})
        assert service.get_task(staff["manager"], task.id).assigned_to == staff["designer"].id

    def test_reassignment_logs_names(self, service, make_task, staff):
        task = make_task(assignee="designer")
        change = service.update_task(staff["manager"], task.id, {"assigned_to": staff["designer2"].id})
        entry = change.task.history[-1]
        assert change.reassigned
        assert entry.field == LogField.ASSIGNED_TO.value
        assert (entry.old_value, entry.new_value) == ("Designer Tu", "Designer Lan")

    def test_role_change_needs_matching_assignee(self, service, make_task, staff):
        task = make_task(assignee="designer")
        with pytest.raises(TaskValidationError):
            service.update_task(staff["manager"], task.id, {"role": StaffRole.CS})
        change = service.update_task(staff["manager"], task.id, {"role": StaffRole.CS, "assigned_to": staff["cs"].id})
        assert fields_of(change.task)[-2:] == [LogField.ROLE.value, LogField.ASSIGNED_TO.value]

    def test_assignee_cannot_reassign(self, service, make_task, staff):
        task = make_task(assignee="designer")
        with pytest.raises(TaskPermissionError):
            service.update_task(staff["designer"], task.id, {"assigned_to": staff["designer2"].id})


class TestPermissions:
    def test_outsider_status_change_leaves_task_untouched(self, service, make_task, staff):
        task = make_task(assignee="designer")
        with pytest.raises(TaskPermissionError):
            service.change_status(staff["cs"], task.id, TaskStatus.DONE)
        reread = service.get_task(staff["manager"], task.id)
        assert reread.status == TaskStatus.TODO
        assert reread.version == 1
        assert fields_of(reread) == ["Task"]

    def test_one_forbidden_field_rejects_whole_request(self, service, make_task, staff):
        task = make_task(assignee="designer")
        with pytest.raises(TaskPermissionError):
            service.update_task(staff["designer"], task.id, {"progress": 50, "priority": TaskPriority.LOW})
        reread = service.get_task(staff["manager"], task.id)
        assert reread.progress == 0
        assert fields_of(reread) == ["Task"]

    def test_assignee_may_resend_unchanged_manager_fields(self, service, make_task, staff):
        """A full form from the assignee carries the current title and priority"""
        task = make_task(assignee="designer")
        change = service.update_task(staff["designer"], task.id, {
            "title": task.title,
            "priority": task.priority,
            "assigned_to": task.assigned_to,
            "progress": 30,
        })
        assert change.task.progress == 30
        assert fields_of(change.task) == ["Task", "Progress"]

    def test_outsider_rejected_even_without_changes(self, service, make_task, staff):
        task = make_task(assignee="designer")
        with pytest.raises(TaskPermissionError):
            service.update_task(staff["designer2"], task.id, {"title": task.title})

    def test_hidden_task_is_not_viewable(self, service, make_task, staff):
        task = make_task(assignee="designer")
        with pytest.raises(TaskPermissionError):
            service.get_task(staff["seller"], task.id)

    def test_listing_is_scoped_for_staff(self, service, make_task, staff):
        make_task(assignee="designer")
        make_task(assignee="cs")
        assert len(service.list_tasks(staff["manager"])) == 2
        assert [t.role for t in service.list_tasks(staff["designer2"])] == [StaffRole.DESIGNER]


class TestConcurrency:
    def test_stale_version_is_a_conflict(self, service, make_task, staff):
        task = make_task()
        service.update_task(staff["manager"], task.id, {"progress": 10}, expected_version=1)
        with pytest.raises(TaskConflictError) as excinfo:
            service.update_task(staff["designer"], task.id, {"progress": 20}, comments=["note"], expected_version=1)
        assert excinfo.value.current_version == 2
        reread = service.get_task(staff["manager"], task.id)
        assert reread.progress == 10
        assert fields_of(reread) == ["Task", "Progress"]

    def test_without_version_diff_is_against_persisted_state(self, service, make_task, staff):
        task = make_task()
        service.update_task(staff["manager"], task.id, {"progress": 10})
        # A client that still believes progress is 0 sends 10 again: nothing to log
        change = service.update_task(staff["designer"], task.id, {"progress": 10})
        assert not change.changed
        assert change.task.version == 2

    def test_every_field_change_bumps_version(self, service, make_task, staff):
        task = make_task()
        service.update_task(staff["manager"], task.id, {"priority": TaskPriority.LOW})
        change = service.change_status(staff["designer"], task.id, TaskStatus.IN_PROGRESS)
        assert change.task.version == 3


class TestValidation:
    @pytest.mark.parametrize("changes", [
        {"progress": 101},
        {"progress": -5},
        {"title": ""},
        {"deadline": None},
        {"role": StaffRole.MANAGER},
    ])
    def test_invalid_updates_write_nothing(self, service, make_task, staff, changes):
        task = make_task()
        with pytest.raises(TaskValidationError):
            service.update_task(staff["manager"], task.id, changes)
        assert fields_of(service.get_task(staff["manager"], task.id)) == ["Task"]

    def test_empty_update_rejected(self, service, make_task, staff):
        task = make_task()
        with pytest.raises(TaskValidationError):
            service.update_task(staff["manager"], task.id, {})


class TestDelete:
    def test_manager_deletes_task_and_history(self, db, service, make_task, staff):
        task = make_task()
        task_id = task.id
        service.delete_task(staff["manager"], task_id)
        with pytest.raises(TaskNotFoundError):
            service.get_task(staff["manager"], task_id)
        assert db.query(UpdateLog).filter(UpdateLog.task_id == task_id).count() == 0

    def test_staff_cannot_delete(self, service, make_task, staff):
        task = make_task()
        with pytest.raises(TaskPermissionError):
            service.delete_task(staff["designer"], task.id)

    def test_missing_task_is_not_found(self, service, staff):
        with pytest.raises(TaskNotFoundError):
            service.update_task(staff["manager"], 9999, {"progress": 5})
