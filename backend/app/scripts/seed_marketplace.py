"""
Seed skills, the free billing package, an admin and a pool of approved developers.

Usage (from backend/ with DATABASE_URL set):
  python -m app.scripts.seed_marketplace admin@clevrs.com <admin_password> [developers_per_level]

Idempotent: existing rows (matched by slug, name or email) are left alone.
"""
from __future__ import annotations

import sys

from fastapi_users.password import PasswordHelper

from app.components.billing.quota import get_free_package
from app.models.developer import ApprovalStatus, AvailabilityStatus, DeveloperLevel, DeveloperProfile, DeveloperSkill
from app.models.skill import Skill
from app.models.user import USER_ROLE_CLIENT, USER_ROLE_DEVELOPER, User
from app.platform.database import SessionLocal
from app.shared.utils import utcnow

SKILLS = [
    ("python", "Python"),
    ("react", "React"),
    ("nodejs", "Node.js"),
    ("flutter", "Flutter"),
    ("devops", "DevOps"),
    ("ui-ux", "UI/UX Design"),
]


def _get_or_create_user(db, helper: PasswordHelper, email: str, password: str, **fields) -> User:
    user = db.query(User).filter(User.email == email).first()
    if user:
        return user
    user = User(
        email=email,
        hashed_password=helper.hash(password),
        is_active=True,
        is_verified=True,
        **fields,
    )
    db.add(user)
    db.flush()
    return user


def main() -> None:
    if len(sys.argv) < 3:
        print(
            "Usage: python -m app.scripts.seed_marketplace <admin_email> <admin_password> [developers_per_level]",
            file=sys.stderr,
        )
        sys.exit(1)
    admin_email = sys.argv[1].strip().lower()
    admin_password = sys.argv[2]
    per_level = int(sys.argv[3]) if len(sys.argv) > 3 else 4

    helper = PasswordHelper()
    db = SessionLocal()
    try:
        skills = []
        for slug, name in SKILLS:
            skill = db.query(Skill).filter(Skill.slug == slug).first()
            if not skill:
                skill = Skill(slug=slug, name=name)
                db.add(skill)
                db.flush()
            skills.append(skill)

        get_free_package(db)
        _get_or_create_user(
            db, helper, admin_email, admin_password,
            full_name="Clevrs Admin", role=USER_ROLE_CLIENT, is_superuser=True,
        )

        created = 0
        for level in DeveloperLevel.ALL:
            for index in range(per_level):
                email = f"dev.{level.lower()}.{index + 1}@seed.clevrs.com"
                user = _get_or_create_user(
                    db, helper, email, admin_password,
                    full_name=f"{level.title()} Developer {index + 1}", role=USER_ROLE_DEVELOPER,
                )
                if db.query(DeveloperProfile).filter(DeveloperProfile.user_id == user.id).first():
                    continue
                profile = DeveloperProfile(
                    user_id=user.id,
                    level=level,
                    admin_approval_status=ApprovalStatus.APPROVED,
                    availability_status=AvailabilityStatus.AVAILABLE,
                    whatsapp_verified=index % 2 == 0,
                    approved_at=utcnow(),
                )
                # Spread two skills per developer across the catalogue
                for offset in (0, 1):
                    skill = skills[(index + offset) % len(skills)]
                    profile.skills.append(DeveloperSkill(skill_id=skill.id, years=index + offset + 1))
                db.add(profile)
                created += 1

        db.commit()
        print(f"Seeded {len(skills)} skills and {created} developers (admin: {admin_email}).")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
