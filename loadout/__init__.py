"""
loadout：技能发现 / 注册表、loadout:// 资源解析、技能脚本沙箱
"""

__version__ = "0.1.0"
