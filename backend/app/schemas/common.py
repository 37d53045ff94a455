from pydantic import BaseModel


class Success(BaseModel):
    success: bool = True


class LogLines(BaseModel):
    max_lines: int
    lines: list[str]
