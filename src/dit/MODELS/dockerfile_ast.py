"""
Models for a parsed Dockerfile: its logical instructions in file order.
"""
from typing import List, Optional
from pydantic import BaseModel

class Instruction(BaseModel):
    """
    One logical Dockerfile instruction, continuations already joined.
    """
    instruction: str  # upper-cased keyword, e.g. FROM
    value: str
    line: int  # line the instruction starts on

class DockerfileAST(BaseModel):
    """
    Represents the complete Abstract Syntax Tree of a Dockerfile.
    """
    instructions: List[Instruction] = []

    def first(self, keyword: str) -> Optional[Instruction]:
        """Return the first instruction named `keyword`, or None."""
        keyword = keyword.upper()
        return next((i for i in self.instructions if i.instruction == keyword), None)

    def find_all(self, keyword: str) -> List[Instruction]:
        keyword = keyword.upper()
        return [i for i in self.instructions if i.instruction == keyword]
