"""配置层：对外暴露全局 settings 实例。"""

from tutor_core.config.settings import Settings, settings

__all__ = ["Settings", "settings"]
