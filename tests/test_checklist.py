"""Daily checklist template activation"""

from datetime import datetime

import pytest

from teamflow.models import DailyTaskTemplate, LogField, StaffRole, TaskStatus
from teamflow.services.checklist import activate_template, create_template, list_templates
from teamflow.services.exceptions import (
    TaskConflictError,
    TaskPermissionError,
    TaskValidationError,
    TemplateNotFoundError,
)

MORNING = datetime(2025, 3, 10, 8, 15)


@pytest.fixture
def template(db):
    template = DailyTaskTemplate(title="Reply Email Support (All stores)", category="Support")
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


class TestActivation:
    def test_creates_in_progress_task_due_end_of_day(self, db, staff, template):
        task = activate_template(db, staff["cs"], template.id, now=MORNING)

        assert task.status == TaskStatus.IN_PROGRESS
        assert task.assigned_to == staff["cs"].id
        assert task.role == StaffRole.CS
        assert task.template_id == template.id
        assert task.deadline == datetime(2025, 3, 10, 23, 59, 59, 999999)
        assert len(task.history) == 1
        entry = task.history[0]
        assert (entry.field, entry.old_value, entry.new_value) == (LogField.SYSTEM.value, "Template", "IN_PROGRESS")
        assert entry.details == "Activated by CS Dao"

    def test_second_activation_same_day_is_a_conflict(self, db, staff, template):
        activate_template(db, staff["cs"], template.id, now=MORNING)
        with pytest.raises(TaskConflictError):
            activate_template(db, staff["cs"], template.id, now=MORNING.replace(hour=15))

    def test_next_day_activation_is_allowed(self, db, staff, template):
        activate_template(db, staff["cs"], template.id, now=MORNING)
        task = activate_template(db, staff["cs"], template.id, now=MORNING.replace(day=11))
        assert task.deadline.day == 11

    def test_manager_activates_for_staff(self, db, staff, template):
        task = activate_template(db, staff["manager"], template.id, assignee_id=staff["cs2"].id, now=MORNING)
        assert task.assigned_to == staff["cs2"].id
        assert task.created_by == staff["manager"].id

    def test_staff_cannot_activate_for_colleague(self, db, staff, template):
        with pytest.raises(TaskPermissionError):
            activate_template(db, staff["cs"], template.id, assignee_id=staff["cs2"].id, now=MORNING)

    def test_manager_cannot_own_checklist_task(self, db, staff, template):
        with pytest.raises(TaskValidationError):
            activate_template(db, staff["manager"], template.id, now=MORNING)

    def test_unknown_or_inactive_template(self, db, staff, template):
        with pytest.raises(TemplateNotFoundError):
            activate_template(db, staff["cs"], 4242, now=MORNING)
        template.is_active = False
        db.commit()
        with pytest.raises(TemplateNotFoundError):
            activate_template(db, staff["cs"], template.id, now=MORNING)


class TestTemplates:
    def test_manager_creates_templates(self, db, staff):
        template = create_template(db, staff["manager"], "Listing sản phẩm mới", "Operation")
        assert template.is_active
        assert [t.id for t in list_templates(db)] == [template.id]

    def test_staff_cannot_create_templates(self, db, staff):
        with pytest.raises(TaskPermissionError):
            create_template(db, staff["cs"], "Check Live Chat", "Support")
