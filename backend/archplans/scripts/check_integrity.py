"""
离线数据完整性检查

用法: python -m archplans.scripts.check_integrity [--json]
发现问题时退出码为 1，便于在定时任务中告警。
"""
import argparse
import asyncio
import json
import logging
import sys

import archplans.models  # noqa: F401
from archplans.core.database import Base, create_task_engine_and_session
from archplans.core.logging import setup_logging
from archplans.services.integrity_service import check_data_integrity

logger = logging.getLogger(__name__)

_LABELS = {
    "orphaned_order_items": "孤立订单条目",
    "orphaned_licenses": "孤立授权",
    "invalid_plan_pricing": "定价无效的图纸",
    "over_consumed_licenses": "下载超额的授权",
    "completed_orders_without_licenses": "已完成但无授权的订单",
}


async def _run() -> dict:
    engine, session_factory = create_task_engine_and_session()
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with session_factory() as db:
            return await check_data_integrity(db)
    finally:
        await engine.dispose()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="检查订单、授权、图纸数据的一致性")
    parser.add_argument("--json", action="store_true", help="以 JSON 输出完整报告")
    args = parser.parse_args(argv)

    setup_logging()
    report = asyncio.run(_run())

    if args.json:
        print(json.dumps(report, ensure_ascii=False, indent=2, default=str))
    else:
        for key, label in _LABELS.items():
            ids = report[key]
            print(f"{label}: {len(ids)}" + (f"  {ids[:20]}" if ids else ""))
        print("状态: " + ("正常" if report["is_healthy"] else "存在问题"))
    if not report["is_healthy"]:
        logger.warning("数据完整性检查发现问题")
    return 0 if report["is_healthy"] else 1


if __name__ == "__main__":
    sys.exit(main())
