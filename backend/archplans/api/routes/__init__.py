"""
API 路由
"""
from fastapi import APIRouter
from archplans.api.routes import (
    admin,
    admin_catalog,
    auth,
    categories,
    checkout,
    download,
    gallery,
    licenses,
    orders,
    plans,
    pricing,
    projects,
    visualizations,
    webhooks,
)

api_router = APIRouter()

# 注册子路由
api_router.include_router(auth.router, prefix="/auth", tags=["认证"])
api_router.include_router(plans.router, prefix="/plans", tags=["图纸"])
api_router.include_router(categories.router, prefix="/categories", tags=["分类"])
api_router.include_router(projects.router, prefix="/projects", tags=["项目"])
api_router.include_router(visualizations.router, prefix="/visualizations", tags=["效果图"])
api_router.include_router(gallery.router, prefix="/gallery", tags=["图库"])
api_router.include_router(pricing.router, prefix="/pricing", tags=["造价估算"])
api_router.include_router(checkout.router, prefix="/checkout", tags=["结算"])
api_router.include_router(orders.router, prefix="/orders", tags=["订单"])
api_router.include_router(licenses.router, prefix="/licenses", tags=["授权"])
api_router.include_router(download.router, prefix="/download", tags=["下载"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["支付回调"])
api_router.include_router(admin.router, prefix="/admin", tags=["管理后台"])
api_router.include_router(admin_catalog.router, prefix="/admin", tags=["目录维护"])
