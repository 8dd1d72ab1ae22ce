from __future__ import annotations

import argparse
import os
import pathlib
import sys

from sqlalchemy import select

# Ensure imports work when running from any CWD and in Docker (/app)
_HERE = pathlib.Path(__file__).resolve()
_BACKEND_ROOT = _HERE.parents[1]
sys.path.insert(0, str(_BACKEND_ROOT))
sys.path.insert(0, "/app")

from app.core.security import hash_password
from app.db.session import SessionLocal
from app.models.achievement import Achievement, AchievementCondition
from app.models.course import Course, CourseLevel, Module, Task, TaskDifficulty, TestCase
from app.models.user import User, UserRole
from app.services.achievements import TASK_MILESTONES
from app.services.store import SqlAlchemyStore


HELLO_STARTER = """public class Main {
    public static void main(String[] args) {
        // Write your code here

    }
}"""

CATALOG = [
    {
        "title": "Java Fundamentals",
        "description": "Learn the basics of Java programming including syntax, data types, and control structures.",
        "level": CourseLevel.beginner,
        "order": 1,
        "xp_reward": 500,
        "modules": [
            {
                "title": "Introduction to Java",
                "description": "Your first steps into Java programming",
                "content": "<h2>Welcome to Java!</h2><p>Java is a general purpose, class-based language.</p>",
                "xp_reward": 100,
                "tasks": [
                    {
                        "title": "Hello World",
                        "description": 'Write your first Java program that prints "Hello, World!" to the console.',
                        "difficulty": TaskDifficulty.easy,
                        "solution": 'public class Main {\n    public static void main(String[] args) {\n        System.out.println("Hello, World!");\n    }\n}',
                        "xp_reward": 50,
                        "cases": [("", "Hello, World!", False)],
                    },
                ],
            },
            {
                "title": "Variables and Data Types",
                "description": "Learn about different data types and variables in Java",
                "content": "<h2>Variables and Data Types</h2><p>Variables are named containers for values.</p>",
                "xp_reward": 150,
                "tasks": [
                    {
                        "title": "Variable Declaration",
                        "description": "Create variables of different data types and print their values.",
                        "difficulty": TaskDifficulty.easy,
                        "solution": 'public class Main {\n    public static void main(String[] args) {\n        int age = 25;\n        String name = "Java";\n        System.out.println("Age: " + age);\n        System.out.println("Name: " + name);\n    }\n}',
                        "xp_reward": 75,
                        "cases": [("", "Age: 25\nName: Java", False)],
                    },
                    {
                        "title": "Echo Input",
                        "description": "Read one line from standard input and print it back.",
                        "difficulty": TaskDifficulty.easy,
                        "solution": "import java.util.Scanner;\n\npublic class Main {\n    public static void main(String[] args) {\n        Scanner in = new Scanner(System.in);\n        System.out.println(in.nextLine());\n    }\n}",
                        "xp_reward": 75,
                        "cases": [("hello", "hello", False), ("DigitioHub", "DigitioHub", True)],
                    },
                ],
            },
            {
                "title": "Control Structures",
                "description": "Master if statements, loops, and control flow",
                "content": "<h2>Control Structures</h2><p>Loops and branches decide what runs next.</p>",
                "xp_reward": 200,
                "tasks": [
                    {
                        "title": "Simple Loop",
                        "description": "Write a program that prints numbers from 1 to 5 using a for loop.",
                        "difficulty": TaskDifficulty.medium,
                        "solution": "public class Main {\n    public static void main(String[] args) {\n        for (int i = 1; i <= 5; i++) {\n            System.out.println(i);\n        }\n    }\n}",
                        "xp_reward": 100,
                        "cases": [("", "1\n2\n3\n4\n5", False)],
                    },
                ],
            },
        ],
    },
    {
        "title": "Object-Oriented Programming",
        "description": "Master OOP concepts including classes, objects, inheritance, and polymorphism.",
        "level": CourseLevel.intermediate,
        "order": 2,
        "xp_reward": 750,
        "modules": [],
    },
]

MILESTONE_NAMES = {
    1: ("First Steps", "Complete your first task", 50),
    5: ("Java Apprentice", "Complete 5 tasks", 100),
    10: ("Problem Solver", "Complete 10 tasks", 150),
    25: ("Code Crafter", "Complete 25 tasks", 250),
    50: ("Java Journeyman", "Complete 50 tasks", 400),
    100: ("Java Master", "Complete 100 tasks", 750),
}


def ensure_user(db, *, email: str, first_name: str, last_name: str, role: UserRole, password: str) -> User:
    existing = db.scalar(select(User).where(User.email == email))
    if existing is not None:
        return existing

    u = User(
        email=email,
        first_name=first_name,
        last_name=last_name,
        role=role,
        xp=0,
        level=1,
        streak=0,
        password_hash=hash_password(password),
    )
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def seed_catalog(store: SqlAlchemyStore) -> int:
    created = 0
    for c_order, c in enumerate(CATALOG, start=1):
        if store.db.scalar(select(Course).where(Course.title == c["title"])) is not None:
            continue

        course = store.add_course(
            Course(
                title=c["title"],
                description=c["description"],
                level=c["level"],
                order=c.get("order", c_order),
                xp_reward=c["xp_reward"],
            )
        )
        created += 1
        for m_order, m in enumerate(c["modules"], start=1):
            module = store.add_module(
                Module(
                    course_id=course.id,
                    title=m["title"],
                    description=m["description"],
                    content=m["content"],
                    order=m_order,
                    xp_reward=m["xp_reward"],
                )
            )
            for t_order, t in enumerate(m["tasks"], start=1):
                task = store.add_task(
                    Task(
                        module_id=module.id,
                        title=t["title"],
                        description=t["description"],
                        difficulty=t["difficulty"],
                        starter_code=HELLO_STARTER,
                        solution=t["solution"],
                        xp_reward=t["xp_reward"],
                        time_limit=30,
                        memory_limit=256,
                        order=t_order,
                    )
                )
                for tc_order, (stdin, expected, hidden) in enumerate(t["cases"], start=1):
                    store.add_test_case(
                        TestCase(task_id=task.id, input=stdin, expected_output=expected, is_hidden=hidden, order=tc_order)
                    )
    return created


def seed_achievements(store: SqlAlchemyStore) -> int:
    created = 0
    for milestone in TASK_MILESTONES:
        if store.achievements_matching(AchievementCondition.tasks_completed, threshold=milestone):
            continue
        name, description, xp = MILESTONE_NAMES[milestone]
        store.add_achievement(
            Achievement(
                name=name,
                description=description,
                icon="fas fa-star",
                xp_reward=xp,
                condition_type=AchievementCondition.tasks_completed,
                threshold=milestone,
            )
        )
        created += 1

    if not store.achievements_matching(AchievementCondition.course_completed, threshold=1):
        store.add_achievement(
            Achievement(
                name="Course Conqueror",
                description="Complete your first course",
                icon="fas fa-graduation-cap",
                xp_reward=200,
                condition_type=AchievementCondition.course_completed,
                threshold=1,
            )
        )
        created += 1
    return created


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed DigitioHub with the starter Java catalogue and achievements")
    parser.add_argument("--admin-email", default=os.environ.get("DIGITIO_SEED_ADMIN_EMAIL", "admin@digitiohub.io"))
    parser.add_argument("--admin-password", default=os.environ.get("DIGITIO_SEED_ADMIN_PASSWORD", "admin123"))
    parser.add_argument("--skip-catalog", action="store_true")
    args = parser.parse_args()

    with SessionLocal() as db:
        ensure_user(
            db,
            email=args.admin_email,
            first_name="Digitio",
            last_name="Admin",
            role=UserRole.admin,
            password=args.admin_password,
        )

        store = SqlAlchemyStore(db)
        courses = 0 if args.skip_catalog else seed_catalog(store)
        achievements = seed_achievements(store)
        store.commit()

    print(f"Courses created: {courses}")
    print(f"Achievements created: {achievements}")
    print(f"Admin ensured: {args.admin_email}")


if __name__ == "__main__":
    main()
