"""
建筑图纸商城后端：目录、购物结算、授权下载与管理后台
"""
__version__ = "1.0.0"
