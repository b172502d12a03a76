"""
子 Agent 角色定义：故事师、大纲师与导演。
"""
from enum import Enum


class Persona(str, Enum):
    STORY_AUTHOR = "AI1"
    OUTLINE_AUTHOR = "AI2"
    DIRECTOR = "director"


MAIN_AGENT = "main"

PROMPT_CODES = {
    Persona.STORY_AUTHOR: "outlineScript-a1",
    Persona.OUTLINE_AUTHOR: "outlineScript-a2",
    Persona.DIRECTOR: "outlineScript-director",
}

DESCRIPTIONS = {
    Persona.STORY_AUTHOR: (
        "Call the story-line author. Analyses the novel text and writes the storyline; "
        "saves the result itself with saveStoryline."
    ),
    Persona.OUTLINE_AUTHOR: (
        "Call the outline author. Writes episode outlines from the storyline; "
        "saves the result itself with saveOutline."
    ),
    Persona.DIRECTOR: (
        "Call the director. Reviews storyline and outlines and fixes them itself "
        "with updateOutline or saveStoryline."
    ),
}
