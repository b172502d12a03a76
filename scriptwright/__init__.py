"""
scriptwright: 小说改编短剧的多 Agent 编排引擎。
"""
__version__ = "0.3.0"
