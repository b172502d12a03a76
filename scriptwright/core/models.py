"""
核心数据模型 (Data Models)
定义项目、章节、故事线、大纲、剧本、资产与提示词模板的表结构。
"""
from sqlalchemy import Column, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# SQLite 默认会复用已删除行的 rowid；大纲ID会出现在对话历史中，删除后不得被新记录复用
_TABLE_OPTIONS = {"sqlite_autoincrement": True}


class Project(Base):
    """项目元数据，对编排引擎只读"""
    __tablename__ = 'projects'
    __table_args__ = _TABLE_OPTIONS

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=True)
    intro = Column(Text, nullable=True)  # 小说简介
    type = Column(String, nullable=True)  # 小说类型
    art_style = Column(String, nullable=True)  # 目标短剧风格
    video_ratio = Column(String, nullable=True)  # 画幅，如 9:16


class Chapter(Base):
    """
    小说章节表
    导入后不可变，chapter_index 在项目内单调递增。
    """
    __tablename__ = 'chapters'
    __table_args__ = (UniqueConstraint('project_id', 'chapter_index'), _TABLE_OPTIONS)

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, nullable=False, index=True)
    chapter_index = Column(Integer, nullable=False)
    reel = Column(String, nullable=True)  # 分卷
    chapter = Column(String, nullable=True)  # 章节名
    chapter_data = Column(Text, nullable=True)  # 正文


class Storyline(Base):
    """故事线，每个项目至多一条"""
    __tablename__ = 'storylines'
    __table_args__ = _TABLE_OPTIONS

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, nullable=False, unique=True)
    content = Column(Text, nullable=True)


class Outline(Base):
    """
    分集大纲表
    data 为带版本号的 JSON 文档，episode 在项目内唯一且连续。
    """
    __tablename__ = 'outlines'
    __table_args__ = (UniqueConstraint('project_id', 'episode'), _TABLE_OPTIONS)

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, nullable=False, index=True)
    episode = Column(Integer, nullable=False)
    data = Column(Text, nullable=True)


class Script(Base):
    """剧本表，与大纲一一对应，内容由后续步骤填充"""
    __tablename__ = 'scripts'
    __table_args__ = _TABLE_OPTIONS

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, nullable=False, index=True)
    outline_id = Column(Integer, nullable=False, index=True)
    name = Column(String, nullable=True)
    content = Column(Text, default="")


class Asset(Base):
    """角色 / 道具 / 场景资产，按 (project_id, type, name) 去重"""
    __tablename__ = 'assets'
    __table_args__ = (UniqueConstraint('project_id', 'type', 'name'), _TABLE_OPTIONS)

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, nullable=False, index=True)
    type = Column(String, nullable=False)
    name = Column(String, nullable=False)
    intro = Column(Text, nullable=True)
    prompt = Column(Text, nullable=True)


class PromptTemplate(Base):
    """提示词模板，custom_value 由运营覆盖，default_value 为内置默认值"""
    __tablename__ = 'prompts'
    __table_args__ = _TABLE_OPTIONS

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String, nullable=False, unique=True)
    custom_value = Column(Text, nullable=True)
    default_value = Column(Text, nullable=True)


# 集合名 -> ORM 模型，RecordStore 只通过集合名访问数据
COLLECTIONS = {
    "project": Project,
    "chapter": Chapter,
    "storyline": Storyline,
    "outline": Outline,
    "script": Script,
    "asset": Asset,
    "prompt": PromptTemplate,
}
