"""
编号生成：年度流水、格式、并发唯一
"""

from archplans.core.database import AsyncSessionLocal
from archplans.models.sequence import PlanSequence
from archplans.services.sequence_service import (
    allocate_sequence,
    format_sequence_number,
    generate_gallery_number,
    generate_plan_number,
    generate_project_number,
    get_current_sequences,
    is_unique_plan_number,
    is_unique_visualization_number,
)

from conftest import run


def test_format_pads_to_four_digits():
    assert format_sequence_number("PA", 2025, 7) == "PA-2025-0007"
    assert format_sequence_number("PA", 2025, 12345) == "PA-2025-12345"


def test_numbers_increase_per_year_and_type():
    async def _go():
        async with AsyncSessionLocal() as db:
            first = await generate_plan_number(db, 2025)
            second = await generate_plan_number(db, 2025)
            other_year = await generate_plan_number(db, 2026)
            project = await generate_project_number(db, 2025)
            gallery = await generate_gallery_number(db, 2025)
            await db.commit()
            return first, second, other_year, project, gallery

    first, second, other_year, project, gallery = run(_go())
    assert first == "PA-2025-0001"
    assert second == "PA-2025-0002"
    assert other_year == "PA-2026-0001"
    assert project == "PRJ-2025-0001"
    assert gallery == "GAL-2025-0001"


def test_rolled_back_allocation_is_not_consumed():
    async def _go():
        async with AsyncSessionLocal() as db:
            await generate_plan_number(db, 2025)
            await db.rollback()
        async with AsyncSessionLocal() as db:
            number = await generate_plan_number(db, 2025)
            await db.commit()
            return number

    assert run(_go()) == "PA-2025-0001"


def test_concurrent_allocations_are_distinct():
    async def _one():
        async with AsyncSessionLocal() as db:
            seq = await allocate_sequence(db, PlanSequence, 2025)
            await db.commit()
            return seq

    async def _go():
        results = []
        # SQLite 单写者，顺序提交多个独立会话
        for _ in range(5):
            results.append(await _one())
        return results

    assert sorted(run(_go())) == [1, 2, 3, 4, 5]


def test_current_sequences_report_next_value():
    async def _go():
        async with AsyncSessionLocal() as db:
            await generate_plan_number(db, 2025)
            await generate_plan_number(db, 2025)
            await db.commit()
            return await get_current_sequences(db, 2025)

    status = run(_go())
    assert status["year"] == 2025
    assert status["plan_sequence"] == 3
    assert status["project_sequence"] == 1
    assert status["gallery_sequence"] == 1


def test_uniqueness_checks(factory):
    plan = factory.plan()

    async def _go():
        async with AsyncSessionLocal() as db:
            return (
                await is_unique_plan_number(db, plan.plan_number),
                await is_unique_plan_number(db, "PA-1999-0001"),
                await is_unique_visualization_number(db, "VIS-1999-0001"),
            )

    assert run(_go()) == (False, True, True)
