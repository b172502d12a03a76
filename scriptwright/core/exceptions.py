"""
自定义异常类
用于在应用的不同层之间传递具有明确语义的错误信息。
"""


class ScriptwrightError(Exception):
    """所有业务异常的基类"""
    pass


class LLMOperationError(ScriptwrightError):
    """当与大语言模型交互时发生错误"""
    pass


class ConfigurationError(ScriptwrightError):
    """当应用配置不正确或缺失时发生错误"""
    pass


class RecordStoreError(ScriptwrightError):
    """当与记录存储交互时发生错误"""
    pass


class OutlineNotFoundError(ScriptwrightError):
    """引用的大纲ID不存在"""

    def __init__(self, outline_id: int):
        super().__init__(f"outline {outline_id} not found")
        self.outline_id = outline_id


class EpisodeRangeError(ScriptwrightError):
    """追加大纲时指定的起始集数与已有集数冲突或会留下空档"""

    def __init__(self, message: str, next_free: int):
        super().__init__(message)
        self.next_free = next_free
