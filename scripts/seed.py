"""Seed database with demo candidates and opportunities for matching runs."""

import asyncio
import os
import random
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import create_standalone_engine
from app.models import Candidate, MatchingResult, Opportunity
from app.schemas.matching import WorkMode

SKILLS = [
    "python", "java", "sql", "react", "docker", "kubernetes", "pytorch", "pandas",
    "figma", "rust", "go", "spark", "linux", "git", "typescript", "selenium",
]
TAGS = ["ai", "web", "data", "security", "cloud", "mobile", "research", "devops", "ux", "iot"]

FIRST_NAMES = ["Amina", "Lucas", "Sofia", "Yanis", "Chloe", "Hugo", "Ines", "Noah", "Lea", "Adam"]
LAST_NAMES = ["Martin", "Bernard", "Dubois", "Thomas", "Robert", "Richard", "Petit", "Durand"]

PROJECTS = [
    ("Recommendation engine", ["python", "pandas", "sql"], ["ai", "data"], WorkMode.DEVELOPMENT),
    ("Design system refresh", ["figma", "react", "typescript"], ["ux", "web"], WorkMode.DESIGN),
    ("Cluster observability", ["kubernetes", "docker", "linux"], ["cloud", "devops"], WorkMode.DEVELOPMENT),
    ("Vision model benchmark", ["python", "pytorch"], ["ai", "research"], WorkMode.RESEARCH),
    ("Log analytics pipeline", ["spark", "sql", "python"], ["data", "cloud"], WorkMode.ANALYSIS),
    ("Threat landscape watch", [], ["security", "research"], WorkMode.WATCH),
    ("Developer handbook", ["git"], ["devops"], WorkMode.DOCUMENTATION),
    ("E2E test harness", ["selenium", "typescript"], ["web"], WorkMode.TESTING),
    ("Sensor gateway", ["rust", "go", "linux"], ["iot"], WorkMode.MIXED),
    ("Open topic", [], [], None),
]


async def populate(session: AsyncSession, rng: random.Random, n_candidates: int):
    # --- Opportunities ---
    for title, skills, tags, mode in PROJECTS:
        max_seats = rng.randint(1, 4)
        session.add(
            Opportunity(
                title=title,
                description=f"{title} ({', '.join(tags) or 'any topic'})",
                work_mode=mode.value if mode else None,
                required_skill_ids=skills,
                tag_ids=tags,
                min_seats=rng.randint(0, max_seats),
                max_seats=max_seats,
            )
        )

    # --- Candidates ---
    modes = list(WorkMode) + [None]
    for i in range(n_candidates):
        first, last = rng.choice(FIRST_NAMES), rng.choice(LAST_NAMES)
        mode = rng.choice(modes)
        session.add(
            Candidate(
                full_name=f"{first} {last}",
                email=f"{first.lower()}.{last.lower()}{i}@example.edu",
                preferred_work_mode=mode.value if mode else None,
                skill_ids=rng.sample(SKILLS, rng.randint(0, 6)),
                interest_ids=rng.sample(TAGS, rng.randint(0, 3)),
            )
        )


async def seed(force: bool = False, n_candidates: int = 40):
    engine = create_standalone_engine()
    try:
        async with AsyncSession(engine) as session:
            existing = (await session.execute(select(Candidate).limit(1))).scalar_one_or_none()
            if existing:
                print("DB already has data. Use --force to reset.")
                if not force:
                    return
                for model in [MatchingResult, Opportunity, Candidate]:
                    await session.execute(delete(model))
                await session.commit()
                print("Cleaned existing data.")

            await populate(session, random.Random(42), n_candidates)
            await session.commit()
            print(f"Seeded {len(PROJECTS)} opportunities and {n_candidates} candidates.")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed(force="--force" in sys.argv))
