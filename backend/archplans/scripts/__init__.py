"""
离线运维脚本：python -m archplans.scripts.<name>
"""
