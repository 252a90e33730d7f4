"""
Application initialization module
Handles startup data: the default super admin and the optional demo catalog
"""

import logging

from skillforge.core.config import Settings, settings
from skillforge.core.database import Database
from skillforge.core.exceptions import Conflict
from skillforge.core.hasher import PasswordHelper
from skillforge.models.course import CourseLevel, LessonType
from skillforge.models.user import User, UserRole

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "password"

DEMO_USERS = [
    {
        "email": "admin@skillforge.com",
        "first_name": "Admin",
        "last_name": "User",
        "role": UserRole.ADMIN,
        "bio": "System administrator",
        "skills": ["Management", "System Administration"],
    },
    {
        "email": "instructor@skillforge.com",
        "first_name": "John",
        "last_name": "Instructor",
        "role": UserRole.INSTRUCTOR,
        "bio": "Experienced software developer and instructor",
        "skills": ["JavaScript", "React", "Node.js", "Teaching"],
    },
    {
        "email": "student@skillforge.com",
        "first_name": "Jane",
        "last_name": "Student",
        "role": UserRole.STUDENT,
        "bio": "Aspiring web developer",
        "skills": ["HTML", "CSS"],
    },
]

DEMO_COURSES = [
    {
        "title": "Complete Web Development Bootcamp",
        "description": (
            "Learn web development from scratch with HTML, CSS, JavaScript and "
            "modern frameworks. This comprehensive course covers everything you "
            "need to become a full-stack developer."
        ),
        "short_description": "Master web development with HTML, CSS, JavaScript and modern frameworks",
        "category": "Programming",
        "subcategory": "Web Development",
        "level": CourseLevel.BEGINNER,
        "price": 99.99,
        "thumbnail": "https://images.pexels.com/photos/270348/pexels-photo-270348.jpeg",
        "preview_video": "https://example.com/preview.mp4",
        "duration": 1200,
        "modules": [
            {
                "id": "module_1",
                "title": "Introduction to Web Development",
                "description": "Learn the basics of web development",
                "order": 1,
                "duration": 120,
                "is_preview": True,
                "lessons": [
                    {
                        "id": "lesson_1",
                        "title": "What is Web Development?",
                        "description": "Overview of web development concepts",
                        "order": 1,
                        "type": LessonType.VIDEO,
                        "content": {"video_url": "https://example.com/video1.mp4"},
                        "duration": 30,
                        "is_preview": True,
                    },
                    {
                        "id": "lesson_2",
                        "title": "Setting Up Your Environment",
                        "description": "Install and configure development tools",
                        "order": 2,
                        "type": LessonType.TEXT,
                        "content": {
                            "text_content": "Step-by-step guide to setting up your development environment."
                        },
                        "duration": 45,
                    },
                ],
            },
            {
                "id": "module_2",
                "title": "HTML Fundamentals",
                "description": "Master HTML structure and semantics",
                "order": 2,
                "duration": 180,
                "lessons": [
                    {
                        "id": "lesson_3",
                        "title": "HTML Structure",
                        "description": "Learn about HTML document structure",
                        "order": 1,
                        "type": LessonType.VIDEO,
                        "content": {"video_url": "https://example.com/video2.mp4"},
                        "duration": 60,
                    }
                ],
            },
        ],
        "requirements": ["Basic computer skills", "No programming experience required"],
        "learning_outcomes": [
            "Build responsive websites with HTML and CSS",
            "Create interactive web applications with JavaScript",
            "Deploy applications to the web",
        ],
        "tags": ["HTML", "CSS", "JavaScript", "Web Development", "Frontend"],
        "rating": 4.8,
        "review_count": 1250,
        "enrollment_count": 5000,
    },
    {
        "title": "Advanced React Development",
        "description": (
            "Take your React skills to the next level with advanced patterns, "
            "performance optimization and modern React features."
        ),
        "short_description": "Advanced React patterns and performance optimization",
        "category": "Programming",
        "subcategory": "Frontend Development",
        "level": CourseLevel.ADVANCED,
        "price": 149.99,
        "thumbnail": "https://images.pexels.com/photos/11035380/pexels-photo-11035380.jpeg",
        "duration": 800,
        "requirements": ["Solid understanding of React basics", "JavaScript ES6+ knowledge"],
        "learning_outcomes": [
            "Master advanced React patterns",
            "Optimize React application performance",
            "Build scalable React applications",
        ],
        "tags": ["React", "JavaScript", "Frontend", "Advanced", "Performance"],
        "rating": 4.9,
        "review_count": 890,
        "enrollment_count": 2500,
    },
]


def init_super_admin(db: Database, config: Settings = settings) -> None:
    """
    Create the default super admin if no admin account exists.

    Credentials come from the admin_default_* settings.
    """
    existing_admin = db.users.find_one(lambda user: user.role == UserRole.ADMIN)
    if existing_admin:
        logger.info(
            f"✅ Admin user already exists (ID: {existing_admin.id}, Email: {existing_admin.email})"
        )
        return

    try:
        super_admin = db.users.create_user(
            {
                "email": config.admin_default_email,
                "password": PasswordHelper.hash_password(config.admin_default_password),
                "first_name": config.admin_default_first_name,
                "last_name": config.admin_default_last_name,
                "role": UserRole.ADMIN,
            }
        )
    except Exception as e:
        logger.error(f"❌ Failed to initialize super admin: {e}")
        raise

    logger.info("=" * 60)
    logger.info("🎉 SUPER ADMIN CREATED SUCCESSFULLY!")
    logger.info("=" * 60)
    logger.info(f"ID: {super_admin.id}")
    logger.info(f"Email: {super_admin.email}")
    logger.info("=" * 60)
    logger.warning("⚠️  IMPORTANT: Change the default password immediately!")
    logger.info("=" * 60)


def seed_demo_data(db: Database, config: Settings = settings) -> None:
    """Load the demo accounts and two published demo courses."""
    password = PasswordHelper.hash_password(DEMO_PASSWORD)
    users = {}
    for fields in DEMO_USERS:
        try:
            user = db.users.create_user({**fields, "password": password})
        except Conflict:
            user = db.users.find_by_email(fields["email"])
        users[user.role] = user

    instructor: User = users[UserRole.INSTRUCTOR]
    if db.courses.find_by_instructor(instructor.id):
        logger.info("Demo courses already present, skipping")
        return

    for fields in DEMO_COURSES:
        db.courses.create(
            {
                **fields,
                "instructor_id": instructor.id,
                "instructor_name": instructor.full_name,
                "currency": config.default_currency,
                "is_published": True,
            }
        )

    logger.info(
        f"🌱 Seeded {len(DEMO_USERS)} demo users and {len(DEMO_COURSES)} demo courses"
    )


def initialize_application(db: Database, config: Settings = settings) -> None:
    """Run all application initialization tasks."""
    logger.info("🚀 Starting application initialization...")

    if config.seed_demo_data:
        seed_demo_data(db, config)

    init_super_admin(db, config)

    logger.info("✅ Application initialization completed!")
