from decimal import Decimal
from sqlalchemy.orm import Session
from ..config import Settings, get_settings
from ..db import models
from ..db.session import Database
from .admin import ensure_admin_exists

DEMO_COURSES = [
    {
        "title": "Yoga Vinyasa",
        "description": "Un style dynamique qui synchronise le mouvement avec la respiration.",
        "price": Decimal("25.00"),
        "duration_min": 60,
        "level": models.CourseLevel.all_levels,
        "capacity": 15,
    },
    {
        "title": "Yoga Doux",
        "description": "Une pratique douce et accessible, parfaite pour les débutants.",
        "price": Decimal("22.00"),
        "duration_min": 60,
        "level": models.CourseLevel.beginner,
        "capacity": 12,
    },
]


def seed(session: Session, settings: Settings) -> None:
    ensure_admin_exists(session, settings.default_admin_email, settings.default_admin_password)
    for course in DEMO_COURSES:
        if session.query(models.Course).filter_by(title=course["title"]).first() is None:
            session.add(models.Course(**course))
    session.commit()


if __name__ == "__main__":
    settings = get_settings()
    database = Database(settings.sqlalchemy_url)
    database.create_all()
    with database.session() as session:
        seed(session, settings)
        print("Seed data created")
    database.dispose()
