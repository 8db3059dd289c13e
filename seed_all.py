"""
Database seeding script
Creates the tables and populates them with demo staff, checklist templates and tasks
"""

import logging
from datetime import timedelta

from create_tables import create_tables
from teamflow.database import SessionLocal
from teamflow.models import DailyTaskTemplate, StaffRole, TaskPriority, TaskStatus, User
from teamflow.services.task_service import TaskService
from teamflow.utils.clock import utcnow
from teamflow.utils.security import hash_password

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_USERS = [
    {"name": "DTC Manager", "email": "manager@dtc.com", "password": "manager123", "role": StaffRole.MANAGER},
    {"name": "Designer [Tư]", "email": "tu@dtc.com", "password": "designer123", "role": StaffRole.DESIGNER},
    {"name": "Seller 1 [Huyền]", "email": "huyen@dtc.com", "password": "seller123", "role": StaffRole.SELLER},
    {"name": "Seller 2 [Tâm]", "email": "tam@dtc.com", "password": "seller123", "role": StaffRole.SELLER},
    {"name": "CS [Đào]", "email": "dao@dtc.com", "password": "cs123", "role": StaffRole.CS},
    {"name": "CS [Thảo]", "email": "thao@dtc.com", "password": "cs123", "role": StaffRole.CS},
]

DEMO_TEMPLATES = [
    {"title": "Fulfill đơn hàng mới", "category": "Fulfillment"},
    {"title": "Check Telegram/Larksuite với Vendor", "category": "Communication"},
    {"title": "Reply Email Support (All stores)", "category": "Support"},
    {"title": "Check Live Chat & Fanpage", "category": "Support"},
    {"title": "Listing sản phẩm mới", "category": "Operation"},
    {"title": "Submit Review cho Store", "category": "Operation"},
    {"title": "Xử lý Case Dispute (Paypal/Stripe)", "category": "Risk Management"},
]

# (assignee email, fields, hours until deadline, status to move to after creation)
DEMO_TASKS = [
    ("tu@dtc.com", {
        "title": "Check file Fulfillment [Ưu Tiên]",
        "purpose": "Đảm bảo tiến độ fulfillment hàng ngày và xử lý các yêu cầu thiết kế khẩn cấp.",
        "description": "Check file ưu tiên để fulfill (Clone file, redesign, chỉnh sửa file, scale temp)",
        "role": StaffRole.DESIGNER,
        "priority": TaskPriority.HIGH,
    }, 24, TaskStatus.IN_PROGRESS),
    ("huyen@dtc.com", {
        "title": "Research trending và triển khai",
        "purpose": "Tìm kiếm nhân vật và đặc điểm đạt hot topic trending để mở rộng danh mục sản phẩm.",
        "description": "Phân tích nhân vật đặc điểm đạt hot topic trending (movie, cartoon, anime)",
        "role": StaffRole.SELLER,
        "priority": TaskPriority.MEDIUM,
    }, 48, None),
    ("dao@dtc.com", {
        "title": "Fulfill đơn hàng mới",
        "purpose": "Xử lý đơn hàng mới trong ngày",
        "description": "Check và fulfill các đơn hàng mới từ tất cả các store",
        "role": StaffRole.CS,
        "priority": TaskPriority.HIGH,
    }, 12, TaskStatus.IN_PROGRESS),
]

def seed():
    create_tables(drop_existing=True)
    db = SessionLocal()
    try:
        users = {}
        for data in DEMO_USERS:
            user = User(
                name=data["name"],
                email=data["email"],
                hashed_password=hash_password(data["password"]),
                role=data["role"],
                avatar=f"https://api.dicebear.com/7.x/avataaars/svg?seed={data['email'].split('@')[0]}",
            )
            db.add(user)
            users[data["email"]] = user
        for data in DEMO_TEMPLATES:
            db.add(DailyTaskTemplate(**data))
        db.commit()
        logger.info(f"Created {len(users)} users and {len(DEMO_TEMPLATES)} checklist templates")

        manager = users["manager@dtc.com"]
        service = TaskService(db)
        for email, fields, hours, status in DEMO_TASKS:
            assignee = users[email]
            task = service.create_task(manager, dict(
                fields,
                assigned_to=assignee.id,
                deadline=utcnow() + timedelta(hours=hours),
            ))
            if status is not None:
                service.change_status(assignee, task.id, status)
        logger.info(f"Created {len(DEMO_TASKS)} sample tasks")

        for data in DEMO_USERS:
            logger.info(f"  {data['role'].value}: {data['email']} / {data['password']}")
    finally:
        db.close()

if __name__ == "__main__":
    seed()
