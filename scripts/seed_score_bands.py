"""Seed the 6 score bands into the score_bands reference table."""
import asyncio
import sys
sys.path.insert(0, ".")

from sqlalchemy import select
from mindpair.database import async_session_factory
from mindpair.models.score_band import ScoreBand
from mindpair.services.scoring_service import DEFAULT_SCORE_BANDS


async def seed():
    async with async_session_factory() as session:
        for band in DEFAULT_SCORE_BANDS:
            existing = await session.execute(
                select(ScoreBand).where(ScoreBand.id == band["id"])
            )
            if existing.scalar_one_or_none() is None:
                session.add(ScoreBand(**band))
                print(f"  Seeded band {band['id']}: {band['min_score']}-{band['max_score']}")
            else:
                print(f"  Band {band['id']} already exists, skipping.")
        await session.commit()
    print("Done seeding score bands.")


if __name__ == "__main__":
    asyncio.run(seed())
