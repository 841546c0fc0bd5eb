"""Tutor Core 顶层包。

该包提供学习内容查看器中 AI 导师对话的核心实现，
包括配置加载、领域模型、Provider 适配、流式交付与降级、
问答编排以及滚动同步等能力。
"""

from tutor_core.api.service import TutorChatSession, ask, open_session

__all__ = ["TutorChatSession", "ask", "open_session"]
